"""
FastAPI dependencies and storage bootstrap.

Wires the database manager, store, navigator, search index and service
together. Tests swap the database by overriding ``get_database_manager``.
"""

import logging

from fastapi import Depends

from .database import DatabaseManager
from ..domains.product_classes.models import ProductClassRecord  # noqa: F401  registers the table
from ..domains.product_classes.navigator import HierarchyNavigator
from ..domains.product_classes.repository import ProductClassRepository
from ..domains.product_classes.search_index import SearchIndex
from ..domains.product_classes.service import ProductClassService

logger = logging.getLogger(__name__)

db_manager = DatabaseManager()


async def init_storage(db: DatabaseManager, rebuild_index: bool = False) -> SearchIndex:
    """Create tables, install the search index and optionally rebuild it"""
    await db.create_schema()
    search_index = SearchIndex(db, ProductClassRepository(db))
    await search_index.install()
    if rebuild_index:
        await search_index.rebuild_index()
    return search_index


def build_service(db: DatabaseManager) -> ProductClassService:
    store = ProductClassRepository(db)
    return ProductClassService(
        store=store,
        navigator=HierarchyNavigator(store),
        search_index=SearchIndex(db, store),
    )


def get_database_manager() -> DatabaseManager:
    """FastAPI dependency returning the process-wide database manager"""
    return db_manager


def get_product_class_service(db: DatabaseManager = Depends(get_database_manager)) -> ProductClassService:
    """FastAPI dependency building the product class service"""
    return build_service(db)
