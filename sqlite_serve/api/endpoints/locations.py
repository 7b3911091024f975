from typing import Callable, Optional

from fastapi import Request, Response

from sqlite_serve.core.database import SqliteQueryExecutor
from sqlite_serve.core.events import RequestLogger
from sqlite_serve.core.negotiation import negotiate_content_type
from sqlite_serve.core.parameters import RequestContext, RequestVariableResolver
from sqlite_serve.core.processor import RequestProcessor
from sqlite_serve.core.schemas import LocationConfig
from sqlite_serve.core.templates import Jinja2TemplateEngine


def make_location_endpoint(
    location: LocationConfig, document_root: str, global_templates_dir: Optional[str]
) -> Callable[[Request], Response]:
    """
    Build the GET handler for one configured location.

    The handler is a plain function: FastAPI runs it on its threadpool, and it
    shares nothing mutable with other requests.
    """
    doc_root = location.root if location.root is not None else document_root

    def serve_location(request: Request) -> Response:
        context = RequestContext.from_request(request, document_root=doc_root)
        content_type = negotiate_content_type(
            request.query_params, request.headers.get("accept")
        )

        # Fresh collaborators per request, no cross-request state
        processor = RequestProcessor(
            query_executor=SqliteQueryExecutor(),
            template_engine=Jinja2TemplateEngine(),
            logger=RequestLogger(f"{context.method} {context.path}"),
        )
        result = processor.handle(
            location,
            doc_root=doc_root,
            uri=context.path,
            resolver=RequestVariableResolver(context),
            content_type=content_type,
            global_templates_dir=global_templates_dir,
        )

        return Response(
            content=result.body,
            status_code=result.status_code,
            media_type=result.content_type.value,
        )

    return serve_location
