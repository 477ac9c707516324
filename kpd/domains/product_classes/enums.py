"""
Enumerations for the KPD product classification.

Hierarchy levels, search languages, code lookup kinds and import conflict
policies.
"""

from enum import Enum, IntEnum
from typing import Dict, List


class HierarchyLevel(IntEnum):
    """
    The six tiers of the KPD hierarchy.

    Level 1 is the lettered section, level 6 the most specific subcategory.
    """

    SECTION = 1        # "A"
    DIVISION = 2       # "A01"
    GROUP = 3          # "A01.1"
    CLASS = 4          # "A01.11"
    CATEGORY = 5       # "A01.11.1"
    SUBCATEGORY = 6    # "A01.11.11"

    @classmethod
    def is_valid(cls, level: int) -> bool:
        """Check if an integer is a known hierarchy level."""
        return cls.SECTION <= level <= cls.SUBCATEGORY

    @classmethod
    def stats_keys(cls) -> Dict[int, str]:
        """Keys used for per-level counts in statistics payloads."""
        return {
            cls.SECTION: "level_1_sections",
            cls.DIVISION: "level_2_divisions",
            cls.GROUP: "level_3_groups",
            cls.CLASS: "level_4_classes",
            cls.CATEGORY: "level_5_categories",
            cls.SUBCATEGORY: "level_6_subcategories",
        }


class SearchLanguage(str, Enum):
    """Which name column(s) a text search matches against."""

    HR = "hr"
    EN = "en"
    ALL = "all"

    @property
    def columns(self) -> List[str]:
        if self is SearchLanguage.HR:
            return ["name_hr"]
        if self is SearchLanguage.EN:
            return ["name_en"]
        return ["name_hr", "name_en"]


class CodeKind(str, Enum):
    """How a public code resolves to a lookup column."""

    BY_FULL_CODE = "full_code"
    BY_OFFICIAL_CODE = "official_code"
    INVALID = "invalid"


class ConflictMode(str, Enum):
    """Behaviour of a batch upsert when a full code already exists."""

    # replace names, dates and updated_at; codes, path and level stay put
    REPLACE = "replace"
    SKIP = "skip"
