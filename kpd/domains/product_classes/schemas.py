"""
Pydantic schemas for product classes.

Internal domain models returned by the store and the response payloads
exposed over HTTP.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import HierarchyLevel


class ProductClassCreate(BaseModel):
    """A validated entry ready to be upserted"""

    full_code: str = Field(..., min_length=1, description="Letter-prefixed public code")
    official_code: str = Field(..., min_length=1, description="Code without section letter")
    path: str = Field(..., min_length=1, description="Dot-delimited structural key")
    name_hr: str = Field(..., min_length=1, description="Croatian name")
    name_en: str = Field(..., min_length=1, description="English name")
    start_date: date
    end_date: Optional[date] = None
    level: int = Field(..., ge=HierarchyLevel.SECTION, le=HierarchyLevel.SUBCATEGORY)
    inserted_at: datetime
    updated_at: datetime

    @field_validator('full_code', 'official_code', 'name_hr', 'name_en', mode='before')
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class ProductClass(ProductClassCreate):
    """A stored classification entry"""

    model_config = ConfigDict(from_attributes=True)

    id: int


class ProductClassResponse(BaseModel):
    """Public representation of an entry"""

    code: str = Field(..., description="Full code, e.g. A01.11")
    official_code: str
    name_hr: str
    name_en: str
    level: int
    start_date: date
    end_date: Optional[date] = None

    @classmethod
    def from_domain(cls, entry: ProductClass) -> "ProductClassResponse":
        return cls(
            code=entry.full_code,
            official_code=entry.official_code,
            name_hr=entry.name_hr,
            name_en=entry.name_en,
            level=entry.level,
            start_date=entry.start_date,
            end_date=entry.end_date,
        )


class ProductClassPayload(BaseModel):
    """Single-entry response envelope"""

    data: ProductClassResponse


class ProductClassListPayload(BaseModel):
    """List response envelope"""

    data: List[ProductClassResponse]
    count: int

    @classmethod
    def from_entries(cls, entries: List[ProductClass]) -> "ProductClassListPayload":
        items = [ProductClassResponse.from_domain(entry) for entry in entries]
        return cls(data=items, count=len(items))


class ProductClassStats(BaseModel):
    """Entry counts, total and per hierarchy level"""

    total: int
    by_level: Dict[str, int]


@dataclass
class ImportResult:
    """Outcome of an import run: rows written and (line, reason) per rejected row."""
    processed: int = 0
    errors: List[Tuple[int, str]] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def merge(self, other: "ImportResult") -> None:
        self.processed += other.processed
        self.errors.extend(other.errors)
