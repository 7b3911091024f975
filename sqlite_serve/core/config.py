import logging
from pathlib import Path
from typing import List

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqlite_serve.core.schemas import LocationConfig, LocationsFile

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Default document root, templates are resolved under it (nginx "root")
    DOCUMENT_ROOT: str = "server_root"
    # Shared template directory loaded before every location's own directory
    GLOBAL_TEMPLATES_DIR: str = ""
    LOCATIONS_FILE: str = "locations.json"
    LOG_LEVEL: str = "INFO"

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def load_locations(path: str) -> List[LocationConfig]:
    """
    Read the locations file and merge its defaults into every location.

    A missing file means no locations. A malformed file is a startup error.
    """
    locations_path = Path(path)
    if not locations_path.is_file():
        logger.warning(f"Locations file not found: {path}, no locations configured")
        return []

    try:
        parsed = LocationsFile.model_validate_json(locations_path.read_text(encoding="utf-8"))
    except ValidationError as e:
        logger.error(f"Invalid locations file {path}: {e}")
        raise

    return parsed.resolved_locations()


# Create a single instance of the settings to use everywhere
settings = Settings()
