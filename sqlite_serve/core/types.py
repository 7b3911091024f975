from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, Optional, Tuple, Union

# -----------------------------------------------------------------------------
# TYPES MODULE - Validated domain values
# Purpose: raw directive strings are parsed once into these wrappers, so the
# rest of the pipeline never has to re-check them.
# Every parse() raises ValueError with a human readable reason.
# -----------------------------------------------------------------------------

VARIABLE_SIGIL = "$"
TEMPLATE_SUFFIX = ".j2"
MAIN_TEMPLATE_NAME = "template"

# One result record: column name -> None, int, float or str (blobs become hex)
Row = Dict[str, Optional[Union[int, float, str]]]


@dataclass(frozen=True)
class DatabasePath:
    value: str

    @classmethod
    def parse(cls, raw: str) -> "DatabasePath":
        if not raw:
            raise ValueError("database path cannot be empty")
        return cls(raw)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SqlQuery:
    """A read-only query. The original casing is kept for execution."""

    text: str

    @classmethod
    def parse(cls, raw: str) -> "SqlQuery":
        normalized = raw.strip().upper()
        if not normalized:
            raise ValueError("query cannot be empty, only SELECT queries are allowed")

        if not normalized.startswith("SELECT"):
            raise ValueError("only SELECT queries are allowed")

        if _has_stacked_statements(raw):
            raise ValueError("query must contain a single statement")

        return cls(raw)

    def __str__(self) -> str:
        return self.text


def _has_stacked_statements(sql: str) -> bool:
    """
    Return True when a statement separator is followed by more SQL.

    Semicolons inside string literals, quoted identifiers and comments do not
    count, and a trailing semicolon (optionally followed by comments) is fine.
    """
    closing = {"'": "'", '"': '"', "`": "`", "[": "]"}
    i = 0
    length = len(sql)
    seen_separator = False

    while i < length:
        char = sql[i]

        if char in closing:
            end = sql.find(closing[char], i + 1)
            # Doubled quotes escape themselves, so just keep scanning
            i = length if end == -1 else end + 1
            if seen_separator:
                return True
            continue

        if sql.startswith("--", i):
            end = sql.find("\n", i)
            i = length if end == -1 else end + 1
            continue

        if sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = length if end == -1 else end + 2
            continue

        if char == ";":
            seen_separator = True
        elif not char.isspace() and seen_separator:
            return True

        i += 1

    return False


@dataclass(frozen=True)
class TemplatePath:
    value: str

    @classmethod
    def parse(cls, raw: str) -> "TemplatePath":
        if not raw:
            raise ValueError("template path cannot be empty")

        # Case-sensitive on purpose: "list.J2" is not a template
        if PurePosixPath(raw).suffix != TEMPLATE_SUFFIX:
            raise ValueError(f"template must be a {TEMPLATE_SUFFIX} file")

        return cls(raw)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class VariableRef:
    """A request variable such as ``$arg_id``, resolved per request."""

    value: str

    @classmethod
    def parse(cls, raw: str) -> "VariableRef":
        if not raw:
            raise ValueError("variable name cannot be empty")

        if not raw.startswith(VARIABLE_SIGIL):
            raise ValueError(f"variable name must start with {VARIABLE_SIGIL}: {raw}")

        if not raw[len(VARIABLE_SIGIL):]:
            raise ValueError(f"variable name after {VARIABLE_SIGIL} cannot be empty")

        return cls(raw)

    @property
    def name(self) -> str:
        """The variable name without its sigil."""
        return self.value[len(VARIABLE_SIGIL):]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ParamName:
    """SQL parameter marker: empty for positional, ``:name`` for named."""

    value: str = ""

    @classmethod
    def parse(cls, raw: str) -> "ParamName":
        if not raw:
            raise ValueError("parameter name cannot be empty")

        if not raw.startswith(":"):
            raise ValueError(f"parameter name must start with ':': {raw}")

        return cls(raw)

    @classmethod
    def positional(cls) -> "ParamName":
        return cls("")

    @property
    def is_positional(self) -> bool:
        return not self.value

    def __str__(self) -> str:
        return self.value


# =========================
# Parameter bindings
# =========================
@dataclass(frozen=True)
class Positional:
    variable: VariableRef

    @property
    def param_name(self) -> str:
        return ""


@dataclass(frozen=True)
class PositionalLiteral:
    value: str

    @property
    def param_name(self) -> str:
        return ""


@dataclass(frozen=True)
class Named:
    name: ParamName
    variable: VariableRef

    @property
    def param_name(self) -> str:
        return self.name.value


@dataclass(frozen=True)
class NamedLiteral:
    name: ParamName
    value: str

    @property
    def param_name(self) -> str:
        return self.name.value


ParameterBinding = Union[Positional, PositionalLiteral, Named, NamedLiteral]


@dataclass(frozen=True)
class ValidatedConfig:
    """Everything one request needs, validated. Built per request, never mutated."""

    db_path: DatabasePath
    query: SqlQuery
    template_path: TemplatePath
    parameters: Tuple[ParameterBinding, ...] = ()
    doc_root: str = ""
    uri: str = ""


@dataclass(frozen=True)
class ResolvedTemplate:
    full_path: str
    directory: str


def resolve_template_path(doc_root: str, uri: str, template: TemplatePath) -> ResolvedTemplate:
    """Join root, request URI and template name. Pure, cannot fail."""
    full_path = f"{doc_root}{uri}/{template.value}"
    directory = str(PurePosixPath(full_path).parent)
    return ResolvedTemplate(full_path=full_path, directory=directory)
