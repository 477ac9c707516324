"""
Trigram full-text index over product class names.

The index is an FTS5 external-content table on ``product_classes`` using the
trigram tokenizer. Triggers keep it in step with the primary table inside the
same transaction as each row change, so a committed chunk is always
searchable. ``rebuild_index`` repopulates it from scratch after bulk work.
"""

from typing import List, Optional
import logging

from sqlalchemy import select, text

from ...core.database import DatabaseManager
from ...core.logging_config import log_performance
from .enums import SearchLanguage
from .models import TABLE_NAME, ProductClassRecord
from .repository import ProductClassStore, store_operation, utc_today
from .schemas import ProductClass

logger = logging.getLogger(__name__)

FTS_TABLE = f"{TABLE_NAME}_fts"

INDEX_DDL = [
    f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
        full_code, name_hr, name_en,
        content='{TABLE_NAME}', content_rowid='id', tokenize='trigram'
    )
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS {TABLE_NAME}_ai AFTER INSERT ON {TABLE_NAME} BEGIN
        INSERT INTO {FTS_TABLE}(rowid, full_code, name_hr, name_en)
        VALUES (new.id, new.full_code, new.name_hr, new.name_en);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS {TABLE_NAME}_ad AFTER DELETE ON {TABLE_NAME} BEGIN
        INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, full_code, name_hr, name_en)
        VALUES ('delete', old.id, old.full_code, old.name_hr, old.name_en);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS {TABLE_NAME}_au AFTER UPDATE ON {TABLE_NAME} BEGIN
        INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, full_code, name_hr, name_en)
        VALUES ('delete', old.id, old.full_code, old.name_hr, old.name_en);
        INSERT INTO {FTS_TABLE}(rowid, full_code, name_hr, name_en)
        VALUES (new.id, new.full_code, new.name_hr, new.name_en);
    END
    """,
]

# over-fetch factor applied before level/expiry filtering
OVERFETCH = 2

RESULT_COLUMNS = [column.name for column in ProductClassRecord.__table__.columns]


def escape_query(query: str) -> str:
    """Trim and escape a user query for use inside an FTS5 string literal."""
    return query.strip().replace('"', '""')


def match_expression(query: str, lang: SearchLanguage = SearchLanguage.ALL) -> str:
    """
    Build the FTS5 MATCH expression restricted to the language's columns.

    >>> match_expression('sir', SearchLanguage.HR)
    'name_hr:"sir"'
    >>> match_expression('milk')
    '{name_hr name_en}:"milk"'
    """
    phrase = f'"{escape_query(query)}"'
    columns = lang.columns
    if len(columns) == 1:
        return f"{columns[0]}:{phrase}"
    return "{" + " ".join(columns) + "}:" + phrase


class SearchIndex:
    """Install, rebuild and query the trigram index"""

    def __init__(self, db: DatabaseManager, store: ProductClassStore):
        self.db = db
        self.store = store

    async def install(self) -> None:
        """Create the virtual table and its triggers if they do not exist."""
        async with store_operation(self.db, "install_search_index", transactional=True) as session:
            for statement in INDEX_DDL:
                await session.execute(text(statement))
        logger.info(f"Search index '{FTS_TABLE}' installed")

    @log_performance(component="search_index", operation="rebuild_index")
    async def rebuild_index(self) -> None:
        """Clear and repopulate the index from the primary table."""
        async with store_operation(self.db, "rebuild_index", transactional=True) as session:
            await session.execute(text(f"INSERT INTO {FTS_TABLE}({FTS_TABLE}) VALUES ('rebuild')"))
        logger.info("Search index rebuilt")

    async def index_size(self) -> int:
        """Number of documents currently indexed."""
        # a scan of an external-content table reads the content table, so
        # count the per-document shadow rows instead
        async with store_operation(self.db, "index_size") as session:
            result = await session.execute(text(f"SELECT COUNT(*) FROM {FTS_TABLE}_docsize"))
            return result.scalar_one()

    async def clear_index(self) -> None:
        """Drop every indexed document, leaving the primary table untouched."""
        async with store_operation(self.db, "clear_index", transactional=True) as session:
            await session.execute(text(f"INSERT INTO {FTS_TABLE}({FTS_TABLE}) VALUES ('delete-all')"))
        logger.warning("Search index cleared")

    async def search(
        self,
        query: str,
        lang: SearchLanguage = SearchLanguage.ALL,
        level: Optional[int] = None,
        limit: int = 20,
        include_expired: bool = False,
    ) -> List[ProductClass]:
        """
        Fuzzy text search over names.

        Results keep the index's native relevance order. The index is asked
        for ``limit * 2`` hits; level and expiry filters are applied to those
        hits, so heavy filtering can yield fewer than ``limit`` results.

        Args:
            query: Free text; queries shorter than three characters match
                nothing under the trigram tokenizer
            lang: Name column(s) to match
            level: Optional hierarchy level filter
            limit: Maximum number of results
            include_expired: Keep entries whose end date has passed

        Returns:
            Matching entries, best match first
        """
        if not query or not query.strip():
            return []

        conditions = []
        params = {
            "match": match_expression(query, lang),
            "fetch": limit * OVERFETCH,
            "limit": limit,
        }
        if level is not None:
            conditions.append("pc.level = :level")
            params["level"] = level
        if not include_expired:
            conditions.append("(pc.end_date IS NULL OR pc.end_date >= :today)")
            params["today"] = utc_today().isoformat()

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        columns = ", ".join(f"pc.{name} AS {name}" for name in RESULT_COLUMNS)
        sql = text(f"""
            SELECT {columns}
            FROM (
                SELECT rowid AS id, rank FROM {FTS_TABLE}
                WHERE {FTS_TABLE} MATCH :match
                ORDER BY rank
                LIMIT :fetch
            ) AS hits
            JOIN {TABLE_NAME} AS pc ON pc.id = hits.id
            {where}
            ORDER BY hits.rank
            LIMIT :limit
        """)

        stmt = select(ProductClassRecord).from_statement(sql)
        async with store_operation(self.db, "search") as session:
            records = (await session.execute(stmt, params)).scalars().all()
            results = [ProductClass.model_validate(record) for record in records]

        logger.debug(f"Search '{query}' ({lang.value}) returned {len(results)} rows")
        return results

    async def search_by_code(
        self,
        prefix: str,
        limit: int = 20,
        include_expired: bool = False,
    ) -> List[ProductClass]:
        """Direct prefix scan on full codes; the text index is not involved."""
        prefix = (prefix or "").strip()
        if not prefix:
            return []
        return await self.store.find_by_code_prefix(prefix, limit=limit, include_expired=include_expired)
