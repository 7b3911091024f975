from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =========================
# LOCATION CONFIG (raw, as written in the locations file)
# =========================
class ParamDirective(BaseModel):
    """
    One parameter directive.

    ``["$arg_id"]`` binds positionally, ``[":book_id", "$arg_id"]`` binds by
    name. Values without the ``$`` sigil are literals.
    """

    name: str = ""
    value: str

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def from_directive_args(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"value": data}

        if isinstance(data, (list, tuple)):
            if len(data) == 1:
                return {"value": data[0]}
            if len(data) == 2:
                return {"name": data[0], "value": data[1]}
            raise ValueError("a parameter takes one or two arguments")

        return data

    def as_pair(self):
        return self.name, self.value


class LocationConfig(BaseModel):
    """Unvalidated per-location directives. Empty strings mean "not set"."""

    path: str = ""
    db_path: str = ""
    query: str = ""
    template: str = ""
    params: List[ParamDirective] = []
    root: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("path")
    @classmethod
    def path_is_absolute(cls, v: str) -> str:
        if v and not v.startswith("/"):
            raise ValueError("location path must start with /")
        return v

    def merge(self, parent: "LocationConfig") -> "LocationConfig":
        """Fill unset directives from ``parent``, nginx style."""
        return self.model_copy(
            update={
                "db_path": self.db_path or parent.db_path,
                "query": self.query or parent.query,
                "template": self.template or parent.template,
                "params": self.params or parent.params,
                "root": self.root if self.root is not None else parent.root,
            }
        )

    @property
    def has_handler(self) -> bool:
        # Only the template directive installs the content handler
        return bool(self.template)


class LocationsFile(BaseModel):
    defaults: LocationConfig = LocationConfig()
    locations: List[LocationConfig] = Field(default_factory=list)

    def resolved_locations(self) -> List[LocationConfig]:
        return [location.merge(self.defaults) for location in self.locations]


# =========================
# RESPONSES
# =========================
class ErrorEnvelope(BaseModel):
    error: str
    details: str


class LocationSummary(BaseModel):
    path: str
    template: str
    params: int
