"""
Batch importer for the official KPD CSV export.

Expected columns (header row is skipped):

    0  official code (unused)   5  English name
    1  start date (DD.MM.YYYY)  6  short English name (unused)
    2  end date, may be empty   7  level number
    3  Croatian name            8  full code
    4  short Croatian name (unused)

The official code is always derived from the full code, so a lookup by
either code resolves to the same entry.

Rows are parsed one by one; a bad row, undecodable bytes included, becomes
an error entry and never stops the import. The file is read
lazily and valid rows are written in chunks, several chunks at a time, each
chunk in its own transaction.
"""

import asyncio
import csv
import gzip
import io
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from itertools import islice
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Set, Tuple, Union

from ...core.logging_config import log_performance
from ...shared.exceptions import DataParsingError, DataValidationError, ImportSourceError, StoreError
from .enums import ConflictMode, HierarchyLevel
from .path_codec import encode_path, official_code_for, validate_level
from .repository import ProductClassStore
from .schemas import ImportResult, ProductClassCreate
from .search_index import SearchIndex

logger = logging.getLogger(__name__)

MIN_COLUMNS = 9
DATE_FORMAT_PARTS = 3
SOURCE_ENCODING = "utf-8"


@dataclass(frozen=True)
class RowOk:
    line_number: int
    record: ProductClassCreate


@dataclass(frozen=True)
class RowError:
    line_number: int
    reason: str


ParsedRow = Union[RowOk, RowError]

# (line_number, fields) as read, or the error for a record the CSV reader rejected
SourceRow = Union[Tuple[int, List[str]], RowError]


def _is_plain_number(value: str) -> bool:
    # int() would also take "+1", "1_0" and non-ASCII digits
    return value.isascii() and value.isdigit()


def parse_date(value: str) -> Optional[date]:
    """
    Parse a DD.MM.YYYY date; blank input means no date.

    Raises:
        DataValidationError: "Invalid date format: {value}"
    """
    value = (value or "").strip()
    if not value:
        return None

    parts = value.split(".")
    if len(parts) != DATE_FORMAT_PARTS or not all(_is_plain_number(part) for part in parts):
        raise DataValidationError(f"Invalid date format: {value}", field_name="date")
    try:
        day, month, year = (int(part) for part in parts)
        return date(year, month, day)
    except ValueError:
        raise DataValidationError(f"Invalid date format: {value}", field_name="date") from None


def parse_level(value: str) -> int:
    raw = (value or "").strip()
    if not _is_plain_number(raw) or not HierarchyLevel.is_valid(int(raw)):
        raise DataValidationError(f"Invalid level: {value}", field_name="level")
    return int(raw)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None)


def _strict_text(field: str) -> str:
    """Undo surrogate escaping; raises UnicodeDecodeError for bytes that are not UTF-8."""
    return field.encode(SOURCE_ENCODING, "surrogateescape").decode(SOURCE_ENCODING)


def _printable(field) -> str:
    if isinstance(field, str):
        return field.encode(SOURCE_ENCODING, "surrogateescape").decode(SOURCE_ENCODING, "replace")
    return str(field)


def _build_record(row: Sequence[str], now: datetime) -> ProductClassCreate:
    fields = [_strict_text(field) for field in row[:MIN_COLUMNS]]
    _, start_raw, end_raw, name_hr, _, name_en, _, level_raw, full_code = fields

    start_date = parse_date(start_raw)
    if start_date is None:
        raise DataValidationError("Missing start date", field_name="start_date")
    end_date = parse_date(end_raw)
    level = parse_level(level_raw)

    full_code = full_code.strip()
    if not full_code:
        raise DataValidationError("Missing full code", field_name="full_code")

    path = encode_path(full_code)
    validate_level(path, level)

    name_hr, name_en = name_hr.strip(), name_en.strip()
    if not name_hr:
        raise DataValidationError("Missing Croatian name", field_name="name_hr")
    if not name_en:
        raise DataValidationError("Missing English name", field_name="name_en")

    return ProductClassCreate(
        full_code=full_code,
        official_code=official_code_for(full_code),
        path=path,
        name_hr=name_hr,
        name_en=name_en,
        start_date=start_date,
        end_date=end_date,
        level=level,
        inserted_at=now,
        updated_at=now,
    )


def _parse_error(line_number: int, error: Exception, raw_content: Optional[str] = None) -> RowError:
    parse_error = DataParsingError(
        f"Parse error on line {line_number}: {type(error).__name__}: {error}",
        line_number=line_number,
        raw_content=raw_content,
    )
    logger.debug(f"{parse_error} (row: {parse_error.raw_content})")
    return RowError(line_number, str(parse_error))


def parse_row(row: Sequence[str], line_number: int, now: Optional[datetime] = None) -> ParsedRow:
    """
    Turn one CSV row into a record or a reported error.

    Args:
        row: Raw CSV fields
        line_number: 1-based data row number (header excluded)
        now: Timestamp for inserted_at/updated_at, defaults to the current
            UTC time truncated to seconds

    Returns:
        RowOk with the record, or RowError with the reason
    """
    if len(row) < MIN_COLUMNS:
        return RowError(line_number, f"Invalid row format on line {line_number}: expected at least {MIN_COLUMNS} columns")

    try:
        return RowOk(line_number, _build_record(row, now or _utc_now()))
    except DataValidationError as e:
        return RowError(line_number, str(e))
    except Exception as e:
        return _parse_error(line_number, e, ",".join(_printable(field) for field in row))


def _open_source(path: Path) -> io.TextIOWrapper:
    raw = gzip.open(path, mode="rb") if path.suffix == ".gz" else open(path, mode="rb")
    # utf-8-sig drops the BOM the official export starts with; undecodable
    # bytes survive as surrogates and are rejected per row
    return io.TextIOWrapper(raw, encoding="utf-8-sig", errors="surrogateescape", newline="")


def read_rows(path: Path) -> Iterator[SourceRow]:
    """
    Yield (line_number, fields) for every non-blank data row.

    A record the CSV reader cannot tokenise is yielded as a RowError and
    reading continues with the next record.
    """
    with _open_source(path) as handle:
        reader = csv.reader(handle, delimiter=",", quotechar='"')
        try:
            next(reader, None)
        except csv.Error as e:
            logger.warning(f"Unreadable header in {path}: {e}")

        line_number = 0
        while True:
            line_number += 1
            try:
                fields = next(reader)
            except StopIteration:
                return
            except csv.Error as e:
                yield _parse_error(line_number, e)
                continue
            if not any(field.strip() for field in fields):
                continue
            yield line_number, fields


def _chunked(items: Iterable, size: int) -> Iterator[List]:
    iterator = iter(items)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk


async def _cancel_all(tasks: Set[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


class ProductClassImporter:
    """Load KPD CSV exports into the product class store"""

    def __init__(self, store: ProductClassStore, search_index: SearchIndex):
        self.store = store
        self.search_index = search_index

    @log_performance(component="importer", operation="load_from_file")
    async def load_from_file(
        self,
        path: Union[str, Path],
        batch_size: int = 500,
        concurrency: int = 4,
        conflict_mode: ConflictMode = ConflictMode.REPLACE,
        rebuild_index: bool = False,
    ) -> ImportResult:
        """
        Import a CSV (optionally gzipped) file.

        The file is streamed: at most ``concurrency`` chunks of ``batch_size``
        rows are held in memory at any time.

        Args:
            path: CSV or CSV.gz file
            batch_size: Rows per chunk; each chunk is one transaction
            concurrency: Maximum chunks written at the same time
            conflict_mode: REPLACE updates names and dates of existing codes,
                SKIP leaves them untouched
            rebuild_index: Rebuild the search index once all chunks are written

        Returns:
            ImportResult with the number of rows written and the row errors

        Raises:
            ImportSourceError: The file does not exist
            StoreError: A chunk could not be written; the import stops
        """
        source = Path(path)
        if not source.is_file():
            raise ImportSourceError(f"File not found: {source}", source_path=str(source))
        if batch_size < 1 or concurrency < 1:
            raise ValueError("batch_size and concurrency must be positive")

        logger.info(
            f"Importing product classes from {source} "
            f"(batch_size={batch_size}, concurrency={concurrency}, mode={conflict_mode.value})"
        )

        result = ImportResult()
        chunk_count = 0
        rows = read_rows(source)
        pending: Set[asyncio.Task] = set()

        async def collect_one() -> None:
            nonlocal pending
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                result.merge(task.result())

        try:
            for chunk in _chunked(rows, batch_size):
                if len(pending) >= concurrency:
                    await collect_one()
                pending.add(asyncio.create_task(self._process_chunk(chunk, conflict_mode)))
                chunk_count += 1
            while pending:
                await collect_one()
        except StoreError:
            logger.error(f"Import of {source} aborted after {result.processed} rows")
            raise
        finally:
            # also reached on cancellation of the caller
            await _cancel_all(pending)
            rows.close()

        if rebuild_index:
            await self.search_index.rebuild_index()

        logger.info(
            f"Import finished: {result.processed} processed, {result.error_count} errors "
            f"in {chunk_count} chunks"
        )
        return result

    async def _process_chunk(self, chunk: List[SourceRow], conflict_mode: ConflictMode) -> ImportResult:
        now = _utc_now()
        records: List[ProductClassCreate] = []
        chunk_result = ImportResult()

        for item in chunk:
            parsed = item if isinstance(item, RowError) else parse_row(item[1], item[0], now)
            if isinstance(parsed, RowOk):
                records.append(parsed.record)
            else:
                chunk_result.errors.append((parsed.line_number, parsed.reason))

        try:
            chunk_result.processed = await self.store.upsert_many(records, conflict_mode)
        except StoreError as e:
            first = chunk[0] if chunk else None
            first_line = first.line_number if isinstance(first, RowError) else (first[0] if first else 0)
            logger.error(f"Chunk starting at line {first_line} failed: {e}")
            raise

        return chunk_result

    async def rebuild_index(self) -> None:
        await self.search_index.rebuild_index()
