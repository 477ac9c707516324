"""
Product class table.

One row per KPD entry. ``path`` is the structural key used for hierarchy
navigation; ``full_code`` is the public identity and the upsert conflict key.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ...core.database import Base

TABLE_NAME = "product_classes"


class ProductClassRecord(Base):
    """ORM mapping of a single classification entry"""

    __tablename__ = TABLE_NAME

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    official_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    path: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name_hr: Mapped[str] = mapped_column(Text, nullable=False)
    name_en: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    inserted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_product_classes_level_path", "level", "path"),
    )

    def __repr__(self) -> str:
        return f"<ProductClassRecord {self.full_code} level={self.level}>"
