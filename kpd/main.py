from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.dependencies import db_manager, init_storage
from .core.logging_config import logging_manager, setup_logging
from .domains.product_classes.importer import ProductClassImporter
from .domains.product_classes.repository import ProductClassRepository
from .domains.product_classes.router import router as product_classes_router
from .domains.system.router import router as system_router
from .shared.exceptions.handlers import register_exception_handlers

logger = logging.getLogger(__name__)


async def _seed_if_empty(search_index) -> None:
    store = ProductClassRepository(db_manager)
    if await store.count() > 0:
        return

    logger.info(f"Store is empty, seeding from {settings.data_file}")
    importer = ProductClassImporter(store, search_index)
    result = await importer.load_from_file(
        settings.data_file,
        batch_size=settings.import_batch_size,
        concurrency=settings.import_concurrency,
        rebuild_index=True,
    )
    logger.info(f"Seeded {result.processed} product classes ({result.error_count} row errors)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: logging, schema, optional seeding"""
    setup_logging()
    logger.info("Starting KPD service...")

    try:
        db_manager.connect()
        search_index = await init_storage(db_manager)
        if settings.seed_on_startup and settings.data_file:
            await _seed_if_empty(search_index)
    except Exception as e:
        logger.error(f"Application startup failed: {e}")
        raise

    logger.info("KPD service started")

    yield

    logger.info("Shutting down KPD service...")
    await db_manager.close()
    logging_manager.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="KPD Product Classification API",
        description=(
            "Hierarchy navigation and fuzzy search over the Croatian KPD "
            "product classification (Klasifikacija proizvoda po djelatnostima)."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(product_classes_router)
    app.include_router(system_router)

    return app


app = create_app()
