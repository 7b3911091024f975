import json
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from jinja2 import Environment

from sqlite_serve.core.database import QueryExecutor
from sqlite_serve.core.errors import SqliteServeError, TemplateError
from sqlite_serve.core.events import EventLogger
from sqlite_serve.core.negotiation import ContentType
from sqlite_serve.core.parameters import VariableResolver, resolve_parameters
from sqlite_serve.core.schemas import ErrorEnvelope, LocationConfig
from sqlite_serve.core.templates import TemplateEngine
from sqlite_serve.core.types import (
    MAIN_TEMPLATE_NAME,
    Row,
    ValidatedConfig,
    resolve_template_path,
)
from sqlite_serve.core.validation import parse_config


# -----------------------------------------------------------------------------
# PROCESSOR MODULE - Orchestration
# Purpose: run one request through validate -> resolve -> query -> templates ->
# render in a fixed order, and turn any failure into a status code and body.
# Nothing here touches the web framework; the endpoint only sends the result.
# -----------------------------------------------------------------------------


class RequestStage(Enum):
    """Stages reported to the event logger."""

    CONFIG = "config"
    PARAMS = "params"
    QUERY = "query"
    TEMPLATE = "template"
    RESPONSE = "response"


@dataclass(frozen=True)
class ProcessedResponse:
    status_code: int
    body: str
    content_type: ContentType


_error_page = Environment(autoescape=True).from_string(
    """<!DOCTYPE html>
<html>
<head><title>Error - sqlite-serve</title></head>
<body style="font-family: monospace; max-width: 800px; margin: 2rem auto; padding: 0 1rem;">
    <h1>Request Processing Error</h1>
    <p>An error occurred while processing your request.</p>
    <details style="margin-top: 1rem; padding: 1rem; border-left: 3px solid #CC9393;">
        <summary style="cursor: pointer; font-weight: bold;">{{ error }}</summary>
        <pre style="margin-top: 1rem; overflow-x: auto;">{{ details }}</pre>
    </details>
    <p style="margin-top: 2rem;"><a href="/">Back to Home</a></p>
</body>
</html>
"""
)


def serialize_rows(rows: List[Row]) -> Optional[str]:
    """Rows as pretty JSON, or None when they cannot be serialized."""
    try:
        return json.dumps(rows, indent=2, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError):
        return None


def failure_body(error: SqliteServeError, content_type: ContentType) -> str:
    """The error document matching the negotiated representation."""
    if content_type.is_structured:
        return ErrorEnvelope(error=error.kind, details=error.message).model_dump_json()
    return _error_page.render(error=error.kind, details=error.message)


class RequestProcessor:
    """
    Runs the request pipeline with injected collaborators.

    The executor, template engine and logger are interfaces, so tests can
    swap in in-memory versions. Build a new processor (and template engine)
    for every request.
    """

    def __init__(
        self,
        query_executor: QueryExecutor,
        template_engine: TemplateEngine,
        logger: EventLogger,
    ):
        self.query_executor = query_executor
        self.template_engine = template_engine
        self.logger = logger

    def handle(
        self,
        location: LocationConfig,
        doc_root: str,
        uri: str,
        resolver: VariableResolver,
        content_type: ContentType,
        global_templates_dir: Optional[str] = None,
    ) -> ProcessedResponse:
        """
        Validate, resolve and process one request, never raising.

        Parameter resolution failures give 400, everything else 500, with a
        failure body in the negotiated representation.
        """
        try:
            config = parse_config(location, doc_root, uri)
            self.logger.debug(RequestStage.CONFIG.value, f"Processing request for {uri}")

            params = resolve_parameters(config.parameters, resolver)
            if params:
                self.logger.debug(RequestStage.PARAMS.value, f"Resolved {len(params)} parameters")

            if content_type.is_structured:
                body = self.process_structured(config, params)
            else:
                body = self.process(config, params, global_templates_dir)

        except SqliteServeError as e:
            level = "warning" if e.status_code < 500 else "error"
            self.logger.log(e.stage, f"{e.kind}: {e.message}", level)
            return ProcessedResponse(e.status_code, failure_body(e, content_type), content_type)

        return ProcessedResponse(200, body, content_type)

    def process(
        self,
        config: ValidatedConfig,
        resolved_params: Sequence[Tuple[str, str]],
        global_templates_dir: Optional[str] = None,
    ) -> str:
        """
        The rendered path: query, load templates, register the main one, render.

        Global templates load first, then the main template's own directory
        (same names override), then the main template is registered under the
        reserved name so it always wins.
        """
        resolved_template = resolve_template_path(config.doc_root, config.uri, config.template_path)
        self.logger.debug(
            RequestStage.TEMPLATE.value, f"Resolved template: {resolved_template.full_path}"
        )

        rows = self._run_query(config, resolved_params)

        if global_templates_dir:
            self._load_templates("global", global_templates_dir)
        self._load_templates("local", resolved_template.directory)

        self.template_engine.register(MAIN_TEMPLATE_NAME, resolved_template.full_path)
        body = self.template_engine.render(MAIN_TEMPLATE_NAME, {"results": rows})

        self.logger.info(
            RequestStage.RESPONSE.value,
            f"Rendered {resolved_template.full_path.split('/')[-1]} "
            f"with {len(rows)} rows and {len(resolved_params)} params",
        )
        return body

    def process_structured(
        self, config: ValidatedConfig, resolved_params: Sequence[Tuple[str, str]]
    ) -> str:
        """The JSON path: run the query and serialize the rows, no templates."""
        rows = self._run_query(config, resolved_params)

        body = serialize_rows(rows)
        if body is None:
            self.logger.warning(RequestStage.RESPONSE.value, "Could not serialize rows, returning []")
            return "[]"

        self.logger.info(
            RequestStage.RESPONSE.value,
            f"Returned {len(rows)} JSON results with {len(resolved_params)} params",
        )
        return body

    def _run_query(
        self, config: ValidatedConfig, resolved_params: Sequence[Tuple[str, str]]
    ) -> List[Row]:
        rows = self.query_executor.execute(config.db_path, config.query, resolved_params)

        self.logger.debug(RequestStage.QUERY.value, f"Query returned {len(rows)} rows")
        return rows

    def _load_templates(self, scope: str, directory: str) -> None:
        # Best effort: a bad directory is logged and the request carries on
        try:
            count = self.template_engine.load_from_dir(directory)
        except TemplateError as e:
            self.logger.warning(RequestStage.TEMPLATE.value, f"Skipped {scope} templates: {e.message}")
            return
        self.logger.debug(
            RequestStage.TEMPLATE.value, f"Loaded {count} {scope} templates from {directory}"
        )

