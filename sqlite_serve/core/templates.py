import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Mapping

from jinja2 import ChainableUndefined, DictLoader, Environment
from jinja2 import TemplateError as Jinja2TemplateError

from sqlite_serve.core.errors import RenderError, TemplateError
from sqlite_serve.core.types import TEMPLATE_SUFFIX

logger = logging.getLogger(__name__)


class TemplateEngine(ABC):
    """A name -> template registry that can render any registered name."""

    @abstractmethod
    def load_from_dir(self, directory: str) -> int:
        """Register every template file in ``directory`` under its stem."""

    @abstractmethod
    def register(self, name: str, path: str) -> None:
        """Parse the file at ``path`` and bind it to ``name`` (last write wins)."""

    @abstractmethod
    def render(self, name: str, data: Mapping[str, Any]) -> str:
        """Render ``name`` against ``data``."""


class Jinja2TemplateEngine(TemplateEngine):
    """
    Jinja2 backed engine with its own registry.

    Templates see each other by registered name, so a page can pull in a
    shared fragment with ``{% include "header" %}``. Unknown fields (nested ones
    too) and None values render as empty strings. One instance per request;
    nothing is shared.
    """

    def __init__(self):
        self.sources: Dict[str, str] = {}
        # DictLoader checks the mapping on every lookup, so re-registering a
        # name invalidates the compiled template cached by the environment
        self.env = Environment(
            loader=DictLoader(self.sources),
            autoescape=True,
            undefined=ChainableUndefined,
            finalize=lambda value: "" if value is None else value,
        )

    def load_from_dir(self, directory: str) -> int:
        """
        Register the template files found directly in ``directory``.

        A missing path, or one that is not a directory, loads nothing. A file
        that fails to register is logged and skipped.
        """
        path = Path(directory)
        if not path.is_dir():
            return 0

        try:
            entries = sorted(path.iterdir())
        except OSError as e:
            raise TemplateError(f"cannot list template directory {directory}: {e}") from e

        count = 0
        for entry in entries:
            if entry.suffix != TEMPLATE_SUFFIX or not entry.is_file():
                continue
            try:
                self.register(entry.stem, str(entry))
            except TemplateError as e:
                logger.warning(f"Failed to register template {entry}: {e.message}")
                continue
            count += 1

        return count

    def register(self, name: str, path: str) -> None:
        try:
            source = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateError(f"cannot read template {path}: {e}") from e

        # Parse now so a broken template fails registration, not rendering
        try:
            self.env.parse(source, name=name, filename=path)
        except Jinja2TemplateError as e:
            raise TemplateError(f"cannot parse template {path}: {e}") from e

        self.sources[name] = source

    def render(self, name: str, data: Mapping[str, Any]) -> str:
        try:
            return self.env.get_template(name).render(data)
        except Exception as e:
            # Any failure inside a template expression is a render failure
            raise RenderError(f"template '{name}': {e}") from e
