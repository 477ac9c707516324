"""
Integration tests for the batch importer against a real SQLite database.
"""

import asyncio
import csv
from typing import List, Optional, Sequence

import pytest

from kpd.domains.product_classes.enums import ConflictMode
from kpd.domains.product_classes.importer import ProductClassImporter
from kpd.domains.product_classes.repository import ProductClassStore
from kpd.domains.product_classes.schemas import ProductClass, ProductClassCreate
from kpd.shared.exceptions import ImportSourceError, StoreError

from conftest import ACTIVE_SAMPLE_COUNT, SAMPLE_ROWS, kpd_row, render_csv

pytestmark = pytest.mark.integration


class StubStore(ProductClassStore):
    """Store with empty reads; subclasses decide what writes do"""

    async def get_by_full_code(self, code: str) -> Optional[ProductClass]:
        return None

    async def get_by_official_code(self, code: str) -> Optional[ProductClass]:
        return None

    async def find_by_paths(self, paths, include_expired=False) -> List[ProductClass]:
        return []

    async def find_by_path_pattern(self, pattern, level=None, include_expired=False) -> List[ProductClass]:
        return []

    async def find_by_code_prefix(self, prefix, limit=20, include_expired=False) -> List[ProductClass]:
        return []

    async def list(self, level=None, limit=100, offset=0, include_expired=False) -> List[ProductClass]:
        return []

    async def count(self, level=None) -> int:
        return 0

    async def upsert_many(self, rows: Sequence[ProductClassCreate], conflict_mode=ConflictMode.REPLACE) -> int:
        return len(rows)

    async def delete_all(self) -> int:
        return 0


class FailingStore(StubStore):
    """Store whose writes always fail"""

    def __init__(self):
        self.attempts = 0

    async def upsert_many(self, rows, conflict_mode=ConflictMode.REPLACE) -> int:
        self.attempts += 1
        raise StoreError("database is locked", operation="upsert_many")


class SlowStore(StubStore):
    """Records how many writes overlap"""

    def __init__(self):
        self.active = 0
        self.max_active = 0

    async def upsert_many(self, rows, conflict_mode=ConflictMode.REPLACE) -> int:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.01)
        finally:
            self.active -= 1
        return len(rows)


class FirstWriteFailsStore(StubStore):
    """First write fails, every later write blocks until cancelled"""

    def __init__(self, error: Exception):
        self.error = error
        self.started = 0
        self.cancelled = 0
        self.release = asyncio.Event()

    async def upsert_many(self, rows, conflict_mode=ConflictMode.REPLACE) -> int:
        self.started += 1
        if self.started == 1:
            raise self.error
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return len(rows)


class TestLoadFromFile:
    """Happy path imports."""

    async def test_imports_every_row(self, importer, store, sample_csv):
        result = await importer.load_from_file(sample_csv)

        assert result.processed == len(SAMPLE_ROWS)
        assert result.errors == []
        assert await store.count() == len(SAMPLE_ROWS)

    async def test_records_are_stored_with_paths(self, importer, store, sample_csv):
        await importer.load_from_file(sample_csv)

        entry = await store.get_by_full_code("A01.11.11")
        assert entry.path == "A.01.1.1.1.1"
        assert entry.official_code == "01.11.11"
        assert entry.level == 6
        assert entry.name_en == "Durum wheat"

        section = await store.get_by_full_code("A")
        assert section.official_code == "A"

    async def test_reimport_is_idempotent(self, importer, store, sample_csv):
        await importer.load_from_file(sample_csv)
        before = {entry.full_code: entry for entry in await store.list(include_expired=True)}

        second = await importer.load_from_file(sample_csv)
        after = {entry.full_code: entry for entry in await store.list(include_expired=True)}

        assert second.processed == len(SAMPLE_ROWS)
        assert await store.count() == len(SAMPLE_ROWS)
        assert set(after) == set(before)
        for code, entry in after.items():
            assert entry.id == before[code].id
            assert entry.path == before[code].path
            assert entry.name_hr == before[code].name_hr
            assert entry.inserted_at == before[code].inserted_at

    async def test_replace_updates_names_and_dates(self, importer, store, write_csv):
        await importer.load_from_file(write_csv([kpd_row("A01.11.1", 5, "Pšenica", "Wheat")], name="v1.csv"))
        updated = write_csv(
            [kpd_row("A01.11.1", 5, "Pšenica (nova)", "Wheat (new)", end="31.12.2099")],
            name="v2.csv",
        )

        result = await importer.load_from_file(updated, conflict_mode=ConflictMode.REPLACE)

        entry = await store.get_by_full_code("A01.11.1")
        assert result.processed == 1
        assert entry.name_hr == "Pšenica (nova)"
        assert entry.name_en == "Wheat (new)"
        assert entry.end_date.year == 2099
        assert entry.path == "A.01.1.1.1"

    async def test_skip_mode_leaves_existing_rows(self, importer, store, write_csv):
        await importer.load_from_file(write_csv([kpd_row("A01.11.1", 5, "Pšenica", "Wheat")], name="v1.csv"))
        changed = write_csv(
            [
                kpd_row("A01.11.1", 5, "Pšenica (nova)", "Wheat (new)"),
                kpd_row("A01.11.2", 5, "Kukuruz", "Maize"),
            ],
            name="v2.csv",
        )

        result = await importer.load_from_file(changed, conflict_mode=ConflictMode.SKIP)

        assert result.processed == 1
        assert (await store.get_by_full_code("A01.11.1")).name_hr == "Pšenica"
        assert (await store.get_by_full_code("A01.11.2")).name_en == "Maize"

    async def test_gzip_with_bom(self, importer, store, write_csv):
        path = write_csv(SAMPLE_ROWS, name="kpd-2025.csv.gz", bom=True)

        result = await importer.load_from_file(path)

        assert result.processed == len(SAMPLE_ROWS)
        assert result.errors == []
        # the BOM sits in front of the header, which must still be skipped
        assert (await store.get_by_full_code("A")).official_code == "A"

    async def test_plain_file_with_bom(self, importer, store, write_csv):
        path = write_csv(SAMPLE_ROWS[:2], bom=True)
        result = await importer.load_from_file(path)
        assert result.processed == 2

    @pytest.mark.parametrize("batch_size,concurrency", [(1, 1), (2, 3), (5, 2), (1000, 4)])
    async def test_chunking_does_not_change_outcome(self, importer, store, sample_csv, batch_size, concurrency):
        result = await importer.load_from_file(sample_csv, batch_size=batch_size, concurrency=concurrency)

        assert result.processed == len(SAMPLE_ROWS)
        assert await store.count() == len(SAMPLE_ROWS)

    async def test_rebuild_index_after_import(self, importer, search_index, sample_csv):
        await importer.load_from_file(sample_csv, rebuild_index=True)
        assert await search_index.index_size() == len(SAMPLE_ROWS)

    async def test_header_only_file(self, importer, write_csv):
        result = await importer.load_from_file(write_csv([]))
        assert result.processed == 0
        assert result.errors == []

    async def test_official_code_column_is_ignored(self, importer, store, write_csv):
        await importer.load_from_file(write_csv([kpd_row("A01.11", 4, "Žitarice", "Cereals", official="1.11")]))

        by_full_code = await store.get_by_full_code("A01.11")
        by_official_code = await store.get_by_official_code("01.11")
        assert by_official_code is not None
        assert by_official_code.id == by_full_code.id
        assert await store.get_by_official_code("1.11") is None

    async def test_chunks_in_flight_are_bounded(self, search_index, sample_csv):
        store = SlowStore()
        importer = ProductClassImporter(store, search_index)

        result = await importer.load_from_file(sample_csv, batch_size=1, concurrency=2)

        assert result.processed == len(SAMPLE_ROWS)
        assert store.max_active == 2


class TestRowErrors:
    """Bad rows are reported and never stop the import."""

    async def test_level_mismatch_is_reported(self, importer, store, write_csv):
        path = write_csv([
            kpd_row("A", 2, "Pogrešna razina", "Wrong level"),
            kpd_row("A01", 2, "Proizvodi poljoprivrede", "Products of agriculture"),
        ])

        result = await importer.load_from_file(path)

        assert result.processed == 1
        assert result.errors == [(1, "Level mismatch: expected 2 levels, got 1")]
        assert await store.get_by_full_code("A") is None

    async def test_errors_carry_data_line_numbers(self, importer, write_csv):
        path = write_csv([
            ["too", "short"],
            kpd_row("A", 1, "POLJOPRIVREDA", "AGRICULTURE"),
            kpd_row("A01", 2, "", "Products of agriculture"),
            kpd_row("A02", 2, "Šumarstvo", "Forestry", start="not-a-date"),
        ])

        result = await importer.load_from_file(path)

        assert result.processed == 1
        assert result.errors == [
            (1, "Invalid row format on line 1: expected at least 9 columns"),
            (3, "Missing Croatian name"),
            (4, "Invalid date format: not-a-date"),
        ]

    async def test_error_order_within_chunk_is_preserved(self, importer, write_csv):
        rows = [kpd_row(f"A0{i}", 1, "X", "Y") for i in range(1, 6)]

        result = await importer.load_from_file(write_csv(rows), batch_size=len(rows))

        assert [line for line, _ in result.errors] == [1, 2, 3, 4, 5]

    async def test_errors_from_all_chunks_are_collected(self, importer, write_csv):
        rows = [kpd_row(f"A0{i}", 1, "X", "Y") for i in range(1, 7)]

        result = await importer.load_from_file(write_csv(rows), batch_size=2, concurrency=3)

        assert sorted(line for line, _ in result.errors) == [1, 2, 3, 4, 5, 6]
        assert result.processed == 0

    async def test_undecodable_bytes_reject_only_their_row(self, importer, store, tmp_path):
        content = render_csv([
            kpd_row("A", 1, "POLJOPRIVREDA", "AGRICULTURE"),
            kpd_row("A01", 2, "Proizvodi XX", "Products of agriculture"),
            kpd_row("A02", 2, "Šumarstvo", "Forestry"),
        ]).encode("utf-8").replace(b"XX", b"\xff\xfe")
        path = tmp_path / "latin.csv"
        path.write_bytes(content)

        result = await importer.load_from_file(path)

        assert result.processed == 2
        assert [line for line, _ in result.errors] == [2]
        assert result.errors[0][1].startswith("Parse error on line 2: UnicodeDecodeError:")
        assert await store.get_by_full_code("A01") is None
        assert (await store.get_by_full_code("A02")).name_hr == "Šumarstvo"

    async def test_unreadable_record_is_reported(self, importer, store, write_csv):
        path = write_csv([
            kpd_row("A", 1, "POLJOPRIVREDA", "AGRICULTURE"),
            kpd_row("A01", 2, "x" * 100, "Products of agriculture"),
            kpd_row("A02", 2, "Šumarstvo", "Forestry"),
        ])
        previous_limit = csv.field_size_limit(50)
        try:
            result = await importer.load_from_file(path)
        finally:
            csv.field_size_limit(previous_limit)

        assert result.processed == 2
        assert [line for line, _ in result.errors] == [2]
        assert result.errors[0][1].startswith("Parse error on line 2: Error: field larger than field limit")
        assert await store.get_by_full_code("A02") is not None


class TestFailures:
    """Source and store failures."""

    async def test_missing_file(self, importer, tmp_path):
        with pytest.raises(ImportSourceError) as exc_info:
            await importer.load_from_file(tmp_path / "missing.csv")
        assert exc_info.value.source_path.endswith("missing.csv")

    async def test_store_error_aborts_import(self, search_index, sample_csv):
        store = FailingStore()
        importer = ProductClassImporter(store, search_index)

        with pytest.raises(StoreError):
            await importer.load_from_file(sample_csv, batch_size=2, concurrency=1)

        assert store.attempts >= 1

    @pytest.mark.parametrize("error", [
        StoreError("disk I/O error", operation="upsert_many"),
        RuntimeError("connection pool closed"),
    ])
    async def test_failed_chunk_cancels_chunks_in_flight(self, search_index, sample_csv, error):
        store = FirstWriteFailsStore(error)
        importer = ProductClassImporter(store, search_index)

        with pytest.raises(type(error)):
            await importer.load_from_file(sample_csv, batch_size=1, concurrency=3)

        assert store.started == 3
        assert store.cancelled == store.started - 1

    async def test_store_error_propagates_from_database(self, importer, store, write_csv):
        """Distinct codes colliding on the same path violate the path constraint."""
        path = write_csv([
            kpd_row("A01.11", 4, "Žitarice", "Cereals"),
            kpd_row("A0111", 4, "Duplikat", "Duplicate"),
        ])

        with pytest.raises(StoreError):
            await importer.load_from_file(path)

        assert await store.count() == 0


async def test_active_sample_count(importer, store, sample_csv):
    """The sample contains exactly one expired entry."""
    await importer.load_from_file(sample_csv)
    assert len(await store.list()) == ACTIVE_SAMPLE_COUNT
