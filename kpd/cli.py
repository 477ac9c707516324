"""
Command line entry points.

    kpd-import PATH [--batch-size N] [--concurrency N] [--skip-existing] [--rebuild-index]
    kpd-serve [--host HOST] [--port PORT] [--reload]
"""

import asyncio
import sys
from typing import Optional

import click
import uvicorn

from .core.config import settings
from .core.database import DatabaseManager
from .core.dependencies import init_storage
from .core.logging_config import setup_logging
from .domains.product_classes.enums import ConflictMode
from .domains.product_classes.importer import ProductClassImporter
from .domains.product_classes.repository import ProductClassRepository
from .domains.product_classes.schemas import ImportResult
from .shared.exceptions import ImportSourceError, StoreError

SHOWN_ERRORS = 5


async def run_import(
    path: str,
    database_url: Optional[str] = None,
    batch_size: int = 500,
    concurrency: int = 4,
    conflict_mode: ConflictMode = ConflictMode.REPLACE,
    rebuild_index: bool = False,
) -> ImportResult:
    """Bootstrap storage, import one file and dispose the engine"""
    db = DatabaseManager(database_url=database_url)
    try:
        search_index = await init_storage(db)
        importer = ProductClassImporter(ProductClassRepository(db), search_index)
        return await importer.load_from_file(
            path,
            batch_size=batch_size,
            concurrency=concurrency,
            conflict_mode=conflict_mode,
            rebuild_index=rebuild_index,
        )
    finally:
        await db.close()


@click.command(name="kpd-import")
@click.argument("path", type=click.Path(dir_okay=False), required=False)
@click.option("--batch-size", type=click.IntRange(min=1), default=settings.import_batch_size,
              show_default=True, help="Rows per upsert batch")
@click.option("--concurrency", type=click.IntRange(min=1), default=settings.import_concurrency,
              show_default=True, help="Batches written concurrently")
@click.option("--skip-existing", is_flag=True, help="Leave already imported codes untouched")
@click.option("--rebuild-index", is_flag=True, default=settings.rebuild_index_after_import,
              help="Rebuild the search index after the import")
@click.option("--database-url", default=None, help="Override KPD_DATABASE_URL")
@click.option("--log-level", default=None, help="Override KPD_LOG_LEVEL")
def import_main(path, batch_size, concurrency, skip_existing, rebuild_index, database_url, log_level):
    """Import a KPD CSV (or .csv.gz) export into the database."""
    setup_logging(log_level=log_level)

    path = path or settings.data_file
    if not path:
        raise click.UsageError("PATH is required when KPD_DATA_FILE is not set")

    conflict_mode = ConflictMode.SKIP if skip_existing else ConflictMode.REPLACE
    try:
        result = asyncio.run(run_import(
            path,
            database_url=database_url,
            batch_size=batch_size,
            concurrency=concurrency,
            conflict_mode=conflict_mode,
            rebuild_index=rebuild_index,
        ))
    except ImportSourceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except StoreError as e:
        click.echo(f"Import failed: {e} ({e.details.get('cause', 'unknown cause')})", err=True)
        sys.exit(1)

    click.echo(f"Processed: {result.processed}")
    click.echo(f"Errors: {result.error_count}")
    for line_number, reason in result.errors[:SHOWN_ERRORS]:
        click.echo(f"  line {line_number}: {reason}")
    if result.error_count > SHOWN_ERRORS:
        click.echo(f"  ... and {result.error_count - SHOWN_ERRORS} more")


@click.command(name="kpd-serve")
@click.option("--host", default=settings.app_host, show_default=True)
@click.option("--port", type=click.IntRange(1, 65535), default=settings.app_port, show_default=True)
@click.option("--reload", is_flag=True, default=settings.debug, help="Auto-reload on code changes")
def serve_main(host, port, reload):
    """Run the HTTP API under uvicorn."""
    uvicorn.run(
        "kpd.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )
