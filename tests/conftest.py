"""
Pytest configuration and shared fixtures.

Every test gets its own file-backed SQLite database under ``tmp_path`` with the
schema and search index installed. The ``seeded`` fixture loads a small but
realistic slice of the KPD classification through the real importer.
"""

import csv
import gzip
import io
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import pytest
import pytest_asyncio

from kpd.core.database import DatabaseManager
from kpd.core.dependencies import build_service, init_storage
from kpd.domains.product_classes.importer import ProductClassImporter
from kpd.domains.product_classes.navigator import HierarchyNavigator
from kpd.domains.product_classes.repository import ProductClassRepository
from kpd.domains.product_classes.search_index import SearchIndex

CSV_HEADER = [
    "Službena šifra", "Datum početka", "Datum završetka",
    "Službeni naziv HR", "Kratki naziv HR", "Službeni naziv EN", "Kratki naziv EN",
    "Broj razine", "Potpuna šifra",
]


def kpd_row(full_code: str, level: int, name_hr: str, name_en: str,
            start: str = "01.01.2008", end: str = "", official: Optional[str] = None) -> List[str]:
    """Build one CSV row in the column order of the official export."""
    if official is None:
        official = full_code if len(full_code) == 1 else full_code[1:]
    return [official, start, end, name_hr, "", name_en, "", str(level), full_code]


# A01.12 is expired; C10.5 and C10.51 are deliberately absent (level gap).
SAMPLE_ROWS = [
    kpd_row("A", 1, "POLJOPRIVREDA, ŠUMARSTVO I RIBARSTVO", "AGRICULTURE, FORESTRY AND FISHING"),
    kpd_row("A01", 2, "Proizvodi poljoprivrede, lova i usluge povezane s njima",
            "Products of agriculture, hunting and related services"),
    kpd_row("A01.1", 3, "Jednogodišnji usjevi", "Non-perennial crops"),
    kpd_row("A01.11", 4, "Žitarice (osim riže), mahunarke i uljano sjemenje",
            "Cereals (except rice), leguminous crops and oil seeds"),
    kpd_row("A01.11.1", 5, "Pšenica", "Wheat"),
    kpd_row("A01.11.11", 6, "Tvrda pšenica", "Durum wheat"),
    kpd_row("A01.11.12", 6, "Pšenica, osim tvrde pšenice", "Wheat, except durum wheat"),
    kpd_row("A01.12", 4, "Riža, neoljuštena", "Rice, unhusked", end="31.12.2020"),
    kpd_row("A02", 2, "Proizvodi šumarstva", "Products of forestry, logging and related services"),
    kpd_row("C", 1, "PROIZVODI PRERAĐIVAČKE INDUSTRIJE", "MANUFACTURED PRODUCTS"),
    kpd_row("C10", 2, "Prehrambeni proizvodi", "Food products"),
    kpd_row("C10.51.1", 5, "Mlijeko i vrhnje", "Processed liquid milk and cream"),
    kpd_row("C10.51.11", 6, "Prerađeno tekuće mlijeko", "Processed liquid milk"),
]

ACTIVE_SAMPLE_COUNT = len(SAMPLE_ROWS) - 1


def render_csv(rows: Iterable[Sequence[str]], header: Sequence[str] = CSV_HEADER) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


@pytest.fixture
def write_csv(tmp_path):
    """Factory writing rows to a CSV (optionally gzipped, optionally with BOM)."""
    def _write(rows: Iterable[Sequence[str]], name: str = "kpd.csv", bom: bool = False) -> Path:
        content = render_csv(rows)
        if bom:
            content = "\ufeff" + content
        path = tmp_path / name
        if name.endswith(".gz"):
            with gzip.open(path, "wt", encoding="utf-8", newline="") as handle:
                handle.write(content)
        else:
            path.write_text(content, encoding="utf-8", newline="")
        return path

    return _write


@pytest.fixture
def sample_csv(write_csv) -> Path:
    return write_csv(SAMPLE_ROWS)


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'kpd_test.db'}"


@pytest_asyncio.fixture
async def db(database_url):
    """Database with tables and the search index installed"""
    manager = DatabaseManager(database_url=database_url, echo=False)
    await init_storage(manager)
    yield manager
    await manager.close()


@pytest.fixture
def store(db) -> ProductClassRepository:
    return ProductClassRepository(db)


@pytest.fixture
def search_index(db, store) -> SearchIndex:
    return SearchIndex(db, store)


@pytest.fixture
def navigator(store) -> HierarchyNavigator:
    return HierarchyNavigator(store)


@pytest.fixture
def importer(store, search_index) -> ProductClassImporter:
    return ProductClassImporter(store, search_index)


@pytest.fixture
def service(db):
    return build_service(db)


@pytest_asyncio.fixture
async def seeded(importer, sample_csv):
    """Import the sample rows; returns the ImportResult"""
    result = await importer.load_from_file(sample_csv)
    assert result.errors == []
    return result
