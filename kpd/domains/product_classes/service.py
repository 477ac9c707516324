"""
Product class service.

Facade used by the HTTP layer: resolves public codes to entries, then
delegates to the store, the navigator and the search index. Absence is
reported as ``None``/``[]``; only ``get_by_code_or_raise`` raises.
"""

import logging
from typing import Dict, List, Optional

from ...shared.exceptions import NotFoundException
from .enums import CodeKind, HierarchyLevel, SearchLanguage
from .navigator import HierarchyNavigator
from .path_codec import classify_code
from .repository import ProductClassStore
from .schemas import ProductClass, ProductClassStats
from .search_index import SearchIndex

logger = logging.getLogger(__name__)

# KPD has 21 sections
ROOTS_LIMIT = 100


class ProductClassService:
    """Query operations over the KPD classification"""

    def __init__(self, store: ProductClassStore, navigator: HierarchyNavigator, search_index: SearchIndex):
        self.store = store
        self.navigator = navigator
        self.search_index = search_index

    async def get_by_code(self, code: str) -> Optional[ProductClass]:
        """
        Look up an entry by full code ("A01.11") or official code ("01.11").

        Args:
            code: Public code, surrounding whitespace ignored

        Returns:
            The entry, or None for unknown or malformed codes
        """
        lookup = classify_code(code)
        if lookup.kind is CodeKind.BY_FULL_CODE:
            return await self.store.get_by_full_code(lookup.code)
        if lookup.kind is CodeKind.BY_OFFICIAL_CODE:
            return await self.store.get_by_official_code(lookup.code)
        logger.debug(f"Rejected malformed code lookup: {code!r}")
        return None

    async def get_by_code_or_raise(self, code: str) -> ProductClass:
        entry = await self.get_by_code(code)
        if entry is None:
            raise NotFoundException("Product class", code)
        return entry

    async def list(
        self,
        level: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
        include_expired: bool = False,
    ) -> List[ProductClass]:
        return await self.store.list(level=level, limit=limit, offset=offset, include_expired=include_expired)

    async def list_roots(self, include_expired: bool = False) -> List[ProductClass]:
        """All level-1 sections."""
        return await self.store.list(level=HierarchyLevel.SECTION, limit=ROOTS_LIMIT, include_expired=include_expired)

    async def count(self, level: Optional[int] = None) -> int:
        return await self.store.count(level)

    async def stats(self) -> ProductClassStats:
        """Total entry count plus counts per hierarchy level."""
        by_level: Dict[str, int] = {}
        for level, key in HierarchyLevel.stats_keys().items():
            by_level[key] = await self.store.count(level)
        total = await self.store.count()
        return ProductClassStats(total=total, by_level=by_level)

    async def search(
        self,
        query: str,
        lang: SearchLanguage = SearchLanguage.ALL,
        level: Optional[int] = None,
        limit: int = 20,
        include_expired: bool = False,
    ) -> List[ProductClass]:
        return await self.search_index.search(
            query, lang=lang, level=level, limit=limit, include_expired=include_expired
        )

    async def search_by_code(self, prefix: str, limit: int = 20, include_expired: bool = False) -> List[ProductClass]:
        return await self.search_index.search_by_code(prefix, limit=limit, include_expired=include_expired)

    # Code-addressed navigation: None means the code itself is unknown

    async def children_of(self, code: str, include_expired: bool = False) -> Optional[List[ProductClass]]:
        entry = await self.get_by_code(code)
        if entry is None:
            return None
        return await self.navigator.get_children(entry.path, include_expired=include_expired)

    async def descendants_of(self, code: str, include_expired: bool = False) -> Optional[List[ProductClass]]:
        entry = await self.get_by_code(code)
        if entry is None:
            return None
        return await self.navigator.get_descendants(entry.path, include_expired=include_expired)

    async def ancestors_of(self, code: str, include_expired: bool = False) -> Optional[List[ProductClass]]:
        entry = await self.get_by_code(code)
        if entry is None:
            return None
        return await self.navigator.get_ancestors(entry.path, include_expired=include_expired)

    async def full_path_of(self, code: str, include_expired: bool = False) -> Optional[List[ProductClass]]:
        entry = await self.get_by_code(code)
        if entry is None:
            return None
        return await self.navigator.get_full_path(entry.path, include_expired=include_expired)

    async def parent_of(self, code: str, include_expired: bool = False) -> Optional[ProductClass]:
        """Parent entry; None when the code is unknown, a root, or its parent is not stored."""
        entry = await self.get_by_code(code)
        if entry is None:
            return None
        return await self.navigator.get_parent(entry.path, include_expired=include_expired)
