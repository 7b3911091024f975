from typing import Iterable, List, Tuple

from sqlite_serve.core.errors import ConfigurationError
from sqlite_serve.core.schemas import LocationConfig
from sqlite_serve.core.types import (
    VARIABLE_SIGIL,
    DatabasePath,
    Named,
    NamedLiteral,
    ParameterBinding,
    ParamName,
    Positional,
    PositionalLiteral,
    SqlQuery,
    TemplatePath,
    ValidatedConfig,
    VariableRef,
)


def parse_config(raw: LocationConfig, doc_root: str, uri: str) -> ValidatedConfig:
    """
    Turn raw location directives into a ValidatedConfig.

    Pure: no file or database is touched. Any problem raises
    ConfigurationError naming the offending directive.
    """
    try:
        db_path = DatabasePath.parse(raw.db_path)
    except ValueError as e:
        raise ConfigurationError(f"invalid db_path: {e}") from e

    try:
        query = SqlQuery.parse(raw.query)
    except ValueError as e:
        raise ConfigurationError(f"invalid query: {e}") from e

    try:
        template_path = TemplatePath.parse(raw.template)
    except ValueError as e:
        raise ConfigurationError(f"invalid template_path: {e}") from e

    parameters = parse_parameter_bindings(param.as_pair() for param in raw.params)

    return ValidatedConfig(
        db_path=db_path,
        query=query,
        template_path=template_path,
        parameters=tuple(parameters),
        doc_root=doc_root,
        uri=uri,
    )


def parse_parameter_bindings(pairs: Iterable[Tuple[str, str]]) -> List[ParameterBinding]:
    """Classify each (param_name, value) pair as one of the four binding kinds."""
    bindings: List[ParameterBinding] = []

    for param_name, var_name in pairs:
        name = _parse_param_name(param_name) if param_name else None

        if var_name.startswith(VARIABLE_SIGIL):
            try:
                variable = VariableRef.parse(var_name)
            except ValueError as e:
                raise ConfigurationError(f"invalid variable '{var_name}': {e}") from e

            binding = Positional(variable) if name is None else Named(name, variable)
        else:
            binding = PositionalLiteral(var_name) if name is None else NamedLiteral(name, var_name)

        bindings.append(binding)

    return bindings


def _parse_param_name(param_name: str) -> ParamName:
    try:
        return ParamName.parse(param_name)
    except ValueError as e:
        raise ConfigurationError(f"invalid param name '{param_name}': {e}") from e
