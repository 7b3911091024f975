# -----------------------------------------------------------------------------
# ERRORS MODULE
# Every failure of the request pipeline is one of these. Components raise them,
# only the request processor turns them into a status code and a failure body.
# -----------------------------------------------------------------------------


class SqliteServeError(Exception):
    """Base class for request pipeline failures."""

    status_code = 500
    kind = "internal error"
    stage = "request"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(SqliteServeError):
    """A location directive is malformed (bad query, template, parameter...)."""

    kind = "configuration error"
    stage = "config"


class ParameterResolutionError(SqliteServeError):
    """A request variable could not be read. The caller's fault, hence 400."""

    status_code = 400
    kind = "parameter resolution failed"
    stage = "params"


class QueryExecutionError(SqliteServeError):
    """Opening, preparing, binding or stepping the query failed."""

    kind = "query execution failed"
    stage = "query"


class TemplateError(SqliteServeError):
    """A template file is missing or does not parse."""

    kind = "template error"
    stage = "template"


class RenderError(SqliteServeError):
    """The template could not be rendered against the query results."""

    kind = "rendering failed"
    stage = "render"
