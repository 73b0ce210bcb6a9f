"""Application entry point: FastAPI app serving the mirrored catalog."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from src import metrics
from src.api.routes import bestsellers, navigation, products, search
from src.config import settings
from src.db.models import Base
from src.db.session import engine
from src.ingest.rules import RULES_VERSION
from src.logging_config import setup_logging
from src.worker.crawl_lock import crawl_lock_manager

setup_logging()
logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


async def create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema on startup; release Redis and DB pools on shutdown."""
    logger.info(f"Catalog mirror {APP_VERSION} starting against {settings.site_root_url}")
    await create_tables()
    metrics.app_info.info({"version": APP_VERSION, "rules_version": RULES_VERSION})

    yield

    logger.info("Shutting down...")
    await crawl_lock_manager.close()
    await engine.dispose()


app = FastAPI(
    title="Catalog Mirror",
    description="Cache-first mirror of an online book catalog",
    version=APP_VERSION,
    lifespan=lifespan,
)

# Local storefront front-ends
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/metrics", "/health"],
).instrument(app).expose(app, include_in_schema=False)

for module in (navigation, bestsellers, products, search):
    app.include_router(module.router)


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "healthy", "rules_version": RULES_VERSION}


if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
