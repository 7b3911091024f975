from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Tuple

from starlette.requests import Request

from sqlite_serve.core.errors import ParameterResolutionError
from sqlite_serve.core.types import (
    Named,
    NamedLiteral,
    ParameterBinding,
    Positional,
    PositionalLiteral,
    VariableRef,
)

# -----------------------------------------------------------------------------
# PARAMETERS MODULE
# Purpose: turn the location's parameter bindings into (name, value) pairs for
# the query. Literals pass through, variables are looked up on the request.
# -----------------------------------------------------------------------------


class VariableResolver(ABC):
    """Looks up a request variable such as ``$arg_id``."""

    @abstractmethod
    def resolve(self, variable: VariableRef) -> str:
        """Return the variable's value or raise ParameterResolutionError."""


@dataclass(frozen=True)
class RequestContext:
    """
    Read-only snapshot of the request parts variables can refer to.

    Taken once per request so resolution never touches the live request object.
    """

    method: str = "GET"
    path: str = "/"
    query_string: str = ""
    host: str = ""
    scheme: str = "http"
    remote_addr: str = ""
    document_root: str = ""
    query_params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    path_params: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_request(cls, request: Request, document_root: str = "") -> "RequestContext":
        # First value wins for repeated arguments, like nginx $arg_*
        query_params = {}
        for key, value in request.query_params.multi_items():
            query_params.setdefault(key, value)

        return cls(
            method=request.method,
            path=request.url.path,
            query_string=request.url.query,
            host=request.headers.get("host", request.url.hostname or ""),
            scheme=request.url.scheme,
            remote_addr=request.client.host if request.client else "",
            document_root=document_root,
            query_params=query_params,
            headers={key.lower(): value for key, value in request.headers.items()},
            cookies=dict(request.cookies),
            path_params={key: str(value) for key, value in request.path_params.items()},
        )


class RequestVariableResolver(VariableResolver):
    """Resolves nginx-style variable names against a RequestContext."""

    def __init__(self, context: RequestContext):
        self.context = context

    def resolve(self, variable: VariableRef) -> str:
        name = variable.name
        ctx = self.context

        if name.startswith("arg_"):
            return self._lookup(ctx.query_params, name[len("arg_"):], variable)

        if name.startswith("http_"):
            header = name[len("http_"):].replace("_", "-").lower()
            return self._lookup(ctx.headers, header, variable)

        if name.startswith("cookie_"):
            return self._lookup(ctx.cookies, name[len("cookie_"):], variable)

        builtins = {
            "uri": ctx.path,
            "document_uri": ctx.path,
            "request_uri": f"{ctx.path}?{ctx.query_string}" if ctx.query_string else ctx.path,
            "args": ctx.query_string,
            "query_string": ctx.query_string,
            "is_args": "?" if ctx.query_string else "",
            "request_method": ctx.method,
            "host": ctx.host,
            "remote_addr": ctx.remote_addr,
            "scheme": ctx.scheme,
            "document_root": ctx.document_root,
        }
        if name in builtins:
            return builtins[name]

        # Route path parameters play the part of nginx named captures
        return self._lookup(ctx.path_params, name, variable)

    @staticmethod
    def _lookup(values: Mapping[str, str], key: str, variable: VariableRef) -> str:
        if key not in values:
            raise ParameterResolutionError(f"variable not found: {variable}")
        return values[key]


def resolve_parameters(
    bindings: Iterable[ParameterBinding], resolver: VariableResolver
) -> List[Tuple[str, str]]:
    """
    Resolve every binding to a (param_name, value) pair, in declaration order.

    Positional pairs carry an empty name. Whether the query binds by name or by
    position is decided later from the whole list (see has_named_params).
    """
    resolved: List[Tuple[str, str]] = []

    for binding in bindings:
        if isinstance(binding, Positional):
            resolved.append(("", resolver.resolve(binding.variable)))
        elif isinstance(binding, PositionalLiteral):
            resolved.append(("", binding.value))
        elif isinstance(binding, Named):
            resolved.append((binding.name.value, resolver.resolve(binding.variable)))
        elif isinstance(binding, NamedLiteral):
            resolved.append((binding.name.value, binding.value))
        else:
            raise TypeError(f"unknown parameter binding: {binding!r}")

    return resolved


def has_named_params(params: Iterable[Tuple[str, str]]) -> bool:
    """One named pair is enough to submit the whole list by name."""
    return any(name for name, _ in params)

