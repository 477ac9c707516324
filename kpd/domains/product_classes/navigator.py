"""
Hierarchy navigation over structural paths.

Every relation (children, descendants, parent, ancestors) is derived from the
path alone, so gaps in the stored hierarchy never break navigation: a missing
intermediate level simply yields no entry for that position.
"""

from typing import List, Optional

from .path_codec import ancestor_paths, children_prefix, parent_path, segment_count
from .repository import ProductClassStore
from .schemas import ProductClass


class HierarchyNavigator:
    """Read-only hierarchy queries; expired entries are excluded unless asked for"""

    def __init__(self, store: ProductClassStore):
        self.store = store

    async def get_children(self, path: str, include_expired: bool = False) -> List[ProductClass]:
        """Entries exactly one level below ``path``, ordered by path."""
        return await self.store.find_by_path_pattern(
            children_prefix(path),
            level=segment_count(path) + 1,
            include_expired=include_expired,
        )

    async def get_descendants(self, path: str, include_expired: bool = False) -> List[ProductClass]:
        """All entries below ``path`` at any depth, ordered by path."""
        return await self.store.find_by_path_pattern(
            children_prefix(path),
            include_expired=include_expired,
        )

    async def get_parent(self, path: str, include_expired: bool = False) -> Optional[ProductClass]:
        parent = parent_path(path)
        if parent is None:
            return None
        found = await self.store.find_by_paths([parent], include_expired=include_expired)
        return found[0] if found else None

    async def get_ancestors(self, path: str, include_expired: bool = False) -> List[ProductClass]:
        """Stored ancestors ordered root first; roots have none."""
        paths = ancestor_paths(path)
        if not paths:
            return []
        return await self.store.find_by_paths(paths, include_expired=include_expired)

    async def get_full_path(self, path: str, include_expired: bool = False) -> List[ProductClass]:
        """Ancestors followed by the entry itself, if it is stored."""
        return await self.store.find_by_paths(
            ancestor_paths(path) + [path],
            include_expired=include_expired,
        )
