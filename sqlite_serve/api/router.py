import logging
from typing import List, Optional

from fastapi import APIRouter

from sqlite_serve.api.endpoints.locations import make_location_endpoint
from sqlite_serve.core.schemas import LocationConfig

logger = logging.getLogger(__name__)


def build_locations_router(
    locations: List[LocationConfig],
    document_root: str,
    global_templates_dir: Optional[str] = None,
) -> APIRouter:
    """One GET route per location that has a template."""
    router = APIRouter(tags=["Locations"])

    for location in locations:
        if not location.path:
            logger.warning(f"Location without a path (template {location.template!r}), skipping")
            continue
        if not location.has_handler:
            logger.warning(f"Location {location.path} has no template, skipping")
            continue

        router.add_api_route(
            location.path,
            make_location_endpoint(location, document_root, global_templates_dir),
            methods=["GET"],
            name=f"location:{location.path}",
            include_in_schema=False,
        )
        logger.info(f"Serving {location.path} with template {location.template}")

    return router
