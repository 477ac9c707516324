"""
Product class repository.

Record store adapter over SQLAlchemy's asyncio extension. ``ProductClassStore``
is the contract the navigator, the search index and the importer depend on;
``ProductClassRepository`` implements it on SQLite, where prefix matching is
plain ``LIKE`` on the ``path`` column.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence
import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from ...core.database import DatabaseManager
from ...shared.exceptions import StoreError
from .enums import ConflictMode
from .models import ProductClassRecord
from .schemas import ProductClass, ProductClassCreate

logger = logging.getLogger(__name__)

# columns an upsert may overwrite on an existing full_code
REPLACEABLE_COLUMNS = ("name_hr", "name_en", "start_date", "end_date", "updated_at")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def active_clause(today: Optional[date] = None):
    """Rows that are not expired on ``today``"""
    today = today or utc_today()
    return or_(ProductClassRecord.end_date.is_(None), ProductClassRecord.end_date >= today)


@asynccontextmanager
async def store_operation(db: DatabaseManager, operation: str, transactional: bool = False):
    """
    Yield a session and translate driver failures into StoreError.

    Args:
        db: Database manager owning the session factory
        operation: Short name used in logs and the error details
        transactional: Commit on exit (roll back on failure)
    """
    opener = db.transaction if transactional else db.session
    try:
        async with opener() as session:
            yield session
    except SQLAlchemyError as e:
        logger.error(f"Store operation '{operation}' failed: {e}")
        raise StoreError(f"Store operation '{operation}' failed", operation=operation, original_error=e) from e


class ProductClassStore(ABC):
    """Abstract record store for classification entries"""

    @abstractmethod
    async def get_by_full_code(self, code: str) -> Optional[ProductClass]:
        ...

    @abstractmethod
    async def get_by_official_code(self, code: str) -> Optional[ProductClass]:
        ...

    @abstractmethod
    async def find_by_paths(self, paths: Sequence[str], include_expired: bool = False) -> List[ProductClass]:
        """Entries whose path is in ``paths``, ordered by level ascending."""

    @abstractmethod
    async def find_by_path_pattern(
        self,
        pattern: str,
        level: Optional[int] = None,
        include_expired: bool = False,
    ) -> List[ProductClass]:
        """Entries whose path matches a LIKE pattern, ordered by path."""

    @abstractmethod
    async def find_by_code_prefix(
        self,
        prefix: str,
        limit: int = 20,
        include_expired: bool = False,
    ) -> List[ProductClass]:
        """Entries whose full code starts with ``prefix``, ordered by full code."""

    @abstractmethod
    async def list(
        self,
        level: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
        include_expired: bool = False,
    ) -> List[ProductClass]:
        ...

    @abstractmethod
    async def count(self, level: Optional[int] = None) -> int:
        ...

    @abstractmethod
    async def upsert_many(
        self,
        rows: Sequence[ProductClassCreate],
        conflict_mode: ConflictMode = ConflictMode.REPLACE,
    ) -> int:
        """Insert or update a chunk in one transaction; returns rows written."""

    @abstractmethod
    async def delete_all(self) -> int:
        ...


class ProductClassRepository(ProductClassStore):
    """SQLAlchemy implementation of the product class store"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def _to_domain_model(self, record: ProductClassRecord) -> ProductClass:
        return ProductClass.model_validate(record)

    def _to_domain_list(self, records) -> List[ProductClass]:
        return [self._to_domain_model(record) for record in records]

    async def _get_one(self, operation: str, *criteria) -> Optional[ProductClass]:
        stmt = select(ProductClassRecord).where(*criteria).limit(1)
        async with store_operation(self.db, operation) as session:
            record = (await session.execute(stmt)).scalars().first()
            return self._to_domain_model(record) if record is not None else None

    async def _get_many(self, operation: str, stmt) -> List[ProductClass]:
        async with store_operation(self.db, operation) as session:
            records = (await session.execute(stmt)).scalars().all()
            return self._to_domain_list(records)

    async def get_by_full_code(self, code: str) -> Optional[ProductClass]:
        return await self._get_one("get_by_full_code", ProductClassRecord.full_code == code)

    async def get_by_official_code(self, code: str) -> Optional[ProductClass]:
        return await self._get_one("get_by_official_code", ProductClassRecord.official_code == code)

    async def find_by_paths(self, paths: Sequence[str], include_expired: bool = False) -> List[ProductClass]:
        if not paths:
            return []
        stmt = select(ProductClassRecord).where(ProductClassRecord.path.in_(list(paths)))
        if not include_expired:
            stmt = stmt.where(active_clause())
        stmt = stmt.order_by(ProductClassRecord.level.asc())
        return await self._get_many("find_by_paths", stmt)

    async def find_by_path_pattern(
        self,
        pattern: str,
        level: Optional[int] = None,
        include_expired: bool = False,
    ) -> List[ProductClass]:
        stmt = select(ProductClassRecord).where(ProductClassRecord.path.like(pattern))
        if level is not None:
            stmt = stmt.where(ProductClassRecord.level == level)
        if not include_expired:
            stmt = stmt.where(active_clause())
        stmt = stmt.order_by(ProductClassRecord.path.asc())
        return await self._get_many("find_by_path_pattern", stmt)

    async def find_by_code_prefix(
        self,
        prefix: str,
        limit: int = 20,
        include_expired: bool = False,
    ) -> List[ProductClass]:
        stmt = select(ProductClassRecord).where(
            ProductClassRecord.full_code.startswith(prefix, autoescape=True)
        )
        if not include_expired:
            stmt = stmt.where(active_clause())
        stmt = stmt.order_by(ProductClassRecord.full_code.asc()).limit(limit)
        return await self._get_many("find_by_code_prefix", stmt)

    async def list(
        self,
        level: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
        include_expired: bool = False,
    ) -> List[ProductClass]:
        stmt = select(ProductClassRecord)
        if level is not None:
            stmt = stmt.where(ProductClassRecord.level == level)
        if not include_expired:
            stmt = stmt.where(active_clause())
        stmt = stmt.order_by(ProductClassRecord.path.asc()).limit(limit).offset(offset)
        return await self._get_many("list", stmt)

    async def count(self, level: Optional[int] = None) -> int:
        stmt = select(func.count()).select_from(ProductClassRecord)
        if level is not None:
            stmt = stmt.where(ProductClassRecord.level == level)
        async with store_operation(self.db, "count") as session:
            return (await session.execute(stmt)).scalar_one()

    async def upsert_many(
        self,
        rows: Sequence[ProductClassCreate],
        conflict_mode: ConflictMode = ConflictMode.REPLACE,
    ) -> int:
        if not rows:
            return 0

        table = ProductClassRecord.__table__
        stmt = sqlite_insert(table).values([row.model_dump() for row in rows])
        if conflict_mode is ConflictMode.SKIP:
            stmt = stmt.on_conflict_do_nothing()
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.full_code],
                set_={column: stmt.excluded[column] for column in REPLACEABLE_COLUMNS},
            )

        async with store_operation(self.db, "upsert_many", transactional=True) as session:
            result = await session.execute(stmt)
            written = result.rowcount

        logger.debug(f"Upserted {written}/{len(rows)} rows ({conflict_mode.value})")
        return written

    async def delete_all(self) -> int:
        async with store_operation(self.db, "delete_all", transactional=True) as session:
            result = await session.execute(delete(ProductClassRecord.__table__))
            deleted = result.rowcount
        logger.info(f"Deleted {deleted} product classes")
        return deleted
