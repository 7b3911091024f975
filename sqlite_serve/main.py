import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI

from sqlite_serve.api.router import build_locations_router
from sqlite_serve.core.config import Settings, load_locations, settings
from sqlite_serve.core.errors import ConfigurationError
from sqlite_serve.core.schemas import LocationConfig, LocationSummary
from sqlite_serve.core.validation import parse_config

logger = logging.getLogger(__name__)


def check_locations(locations: List[LocationConfig]) -> int:
    """Validate every location once at startup and log the broken ones."""
    broken = 0
    for location in locations:
        if not location.has_handler:
            continue
        try:
            parse_config(location, doc_root="", uri=location.path)
        except ConfigurationError as e:
            broken += 1
            logger.error(f"Location {location.path} is misconfigured: {e.message}")
    return broken


def build_app(
    app_settings: Settings, locations: Optional[List[LocationConfig]] = None
) -> FastAPI:
    if locations is None:
        locations = load_locations(app_settings.LOCATIONS_FILE)

    # Report bad directives when the server starts, requests still get a 500
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        broken = check_locations(locations)
        logger.info(f"Configured {len(locations)} locations ({broken} misconfigured)")
        yield

    app = FastAPI(title="sqlite-serve", lifespan=lifespan)

    # Include the router containing one route per location
    app.include_router(
        build_locations_router(
            locations,
            document_root=app_settings.DOCUMENT_ROOT,
            global_templates_dir=app_settings.GLOBAL_TEMPLATES_DIR or None,
        )
    )

    @app.get("/", response_model=dict)
    async def root():
        summaries = [
            LocationSummary(path=loc.path, template=loc.template, params=len(loc.params))
            for loc in locations
            if loc.path and loc.has_handler
        ]
        return {
            "message": "sqlite-serve: SQLite queries rendered through templates",
            "locations": [summary.model_dump() for summary in summaries],
        }

    return app


logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

app = build_app(settings)
