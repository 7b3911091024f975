from enum import Enum
from typing import Mapping, Optional

STRUCTURED_MEDIA = "application/json"
RENDERED_MEDIA = "text/html"


class ContentType(str, Enum):
    HTML = "text/html; charset=utf-8"
    JSON = "application/json; charset=utf-8"

    @property
    def is_structured(self) -> bool:
        return self is ContentType.JSON


def negotiate_content_type(
    query_params: Mapping[str, str], accept: Optional[str] = None
) -> ContentType:
    """
    Pick JSON or HTML for the response.

    JSON when the query string carries ``format=json``, or when the Accept
    header lists application/json and text/html is missing or comes after it.
    Everything else gets the rendered HTML page.
    """
    if query_params.get("format", "").lower() == "json":
        return ContentType.JSON

    if accept:
        media_types = [item.split(";", 1)[0].strip().lower() for item in accept.split(",")]
        if STRUCTURED_MEDIA in media_types:
            json_at = media_types.index(STRUCTURED_MEDIA)
            if RENDERED_MEDIA not in media_types or media_types.index(RENDERED_MEDIA) > json_at:
                return ContentType.JSON

    return ContentType.HTML
