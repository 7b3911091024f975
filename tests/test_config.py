import json

import pytest
from pydantic import ValidationError

from sqlite_serve.core.config import Settings, load_locations
from sqlite_serve.core.schemas import LocationConfig, LocationsFile, ParamDirective


def test_param_directive_forms():
    """Directive style lists and explicit objects describe the same binding"""
    assert ParamDirective.model_validate(["$arg_id"]).as_pair() == ("", "$arg_id")
    assert ParamDirective.model_validate([":id", "$arg_id"]).as_pair() == (":id", "$arg_id")
    assert ParamDirective.model_validate("$arg_id").as_pair() == ("", "$arg_id")
    assert ParamDirective.model_validate({"name": ":id", "value": "7"}).as_pair() == (":id", "7")

    with pytest.raises(ValidationError):
        ParamDirective.model_validate([":id", "$arg_id", "extra"])


def test_location_merge_inherits_unset_directives():
    parent = LocationConfig(
        db_path="catalog.db",
        query="SELECT 1",
        template="default.j2",
        params=[ParamDirective(value="$arg_id")],
        root="/srv",
    )
    child = LocationConfig(path="/books", query="SELECT * FROM books")

    merged = child.merge(parent)

    assert merged.path == "/books"
    assert merged.db_path == "catalog.db"
    assert merged.query == "SELECT * FROM books"
    assert merged.template == "default.j2"
    assert merged.params == parent.params
    assert merged.root == "/srv"


def test_location_merge_keeps_own_values():
    parent = LocationConfig(db_path="prev.db", query="SELECT 2", template="prev.j2", root="/a")
    child = LocationConfig(db_path="existing.db", query="SELECT 1", template="existing.j2", root="")

    merged = child.merge(parent)

    assert (merged.db_path, merged.query, merged.template, merged.root) == (
        "existing.db",
        "SELECT 1",
        "existing.j2",
        "",
    )


def test_location_path_must_be_absolute():
    with pytest.raises(ValidationError):
        LocationConfig(path="books")


def test_load_locations(tmp_path):
    path = tmp_path / "locations.json"
    path.write_text(
        json.dumps(
            {
                "defaults": {"db_path": "catalog.db"},
                "locations": [
                    {"path": "/books", "query": "SELECT * FROM books", "template": "list.j2"},
                    {
                        "path": "/book",
                        "query": "SELECT * FROM books WHERE id = :id",
                        "template": "detail.j2",
                        "params": [[":id", "$arg_id"]],
                    },
                ],
            }
        ),
        encoding="utf-8",
    )

    locations = load_locations(str(path))

    assert [loc.path for loc in locations] == ["/books", "/book"]
    assert all(loc.db_path == "catalog.db" for loc in locations)
    assert locations[1].params[0].as_pair() == (":id", "$arg_id")


def test_load_locations_missing_file(tmp_path):
    assert load_locations(str(tmp_path / "nope.json")) == []


def test_load_locations_invalid_file(tmp_path):
    path = tmp_path / "locations.json"
    path.write_text('{"locations": [{"path": "relative"}]}', encoding="utf-8")

    with pytest.raises(ValidationError):
        load_locations(str(path))


def test_locations_file_defaults_to_empty():
    assert LocationsFile().resolved_locations() == []


def test_settings_defaults(monkeypatch):
    for name in ["DOCUMENT_ROOT", "GLOBAL_TEMPLATES_DIR", "LOCATIONS_FILE", "LOG_LEVEL"]:
        monkeypatch.delenv(name, raising=False)

    app_settings = Settings(_env_file=None)

    assert app_settings.DOCUMENT_ROOT == "server_root"
    assert app_settings.GLOBAL_TEMPLATES_DIR == ""
    assert app_settings.LOCATIONS_FILE == "locations.json"


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("GLOBAL_TEMPLATES_DIR", "/srv/templates")

    assert Settings(_env_file=None).GLOBAL_TEMPLATES_DIR == "/srv/templates"
