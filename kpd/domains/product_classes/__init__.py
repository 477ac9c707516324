"""
KPD product classification domain.

Path codec, record store, hierarchy navigator, trigram search index,
CSV importer and the HTTP router built on them.
"""

from .enums import CodeKind, ConflictMode, HierarchyLevel, SearchLanguage
from .importer import ProductClassImporter
from .navigator import HierarchyNavigator
from .repository import ProductClassRepository, ProductClassStore
from .schemas import ImportResult, ProductClass, ProductClassCreate
from .search_index import SearchIndex
from .service import ProductClassService

__all__ = [
    'CodeKind',
    'ConflictMode',
    'HierarchyLevel',
    'SearchLanguage',
    'ProductClassImporter',
    'HierarchyNavigator',
    'ProductClassRepository',
    'ProductClassStore',
    'ImportResult',
    'ProductClass',
    'ProductClassCreate',
    'SearchIndex',
    'ProductClassService',
]
