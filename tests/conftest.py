import sqlite3
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from sqlite_serve.core.config import Settings
from sqlite_serve.core.database import QueryExecutor
from sqlite_serve.core.errors import (
    ParameterResolutionError,
    QueryExecutionError,
    RenderError,
    TemplateError,
)
from sqlite_serve.core.events import EventLogger
from sqlite_serve.core.parameters import VariableResolver
from sqlite_serve.core.schemas import LocationConfig
from sqlite_serve.core.templates import TemplateEngine
from sqlite_serve.main import build_app

BOOKS = [
    (1, "Clean Code", "Robert C. Martin", 2008, "Programming", 4.7),
    (2, "Designing Data-Intensive Applications", "Martin Kleppmann", 2017, "Databases", 4.8),
    (3, "Introduction to Algorithms", "Thomas H. Cormen", 2009, "Computer Science", 4.6),
]


# =========================
# In-memory fakes
# =========================
class FakeVariableResolver(VariableResolver):
    def __init__(self, values: Dict[str, str]):
        self.values = values
        self.calls: List[str] = []

    def resolve(self, variable):
        self.calls.append(variable.value)
        if variable.value not in self.values:
            raise ParameterResolutionError(f"variable not found: {variable}")
        return self.values[variable.value]


class FakeQueryExecutor(QueryExecutor):
    def __init__(self, rows=None, error: Optional[str] = None):
        self.rows = rows if rows is not None else []
        self.error = error
        self.calls = []

    def execute(self, db_path, query, params):
        self.calls.append((db_path.value, query.text, list(params)))
        if self.error:
            raise QueryExecutionError(self.error)
        return self.rows


class FakeTemplateEngine(TemplateEngine):
    """
    Templates are plain strings, ``directories`` maps a directory to its
    {name: source} files and ``files`` maps a path to its source.
    Rendering returns the source followed by the number of result rows.
    """

    def __init__(self, directories=None, files=None, render_error: Optional[str] = None):
        self.directories: Dict[str, Dict[str, str]] = directories or {}
        self.files: Dict[str, str] = files or {}
        self.render_error = render_error
        self.registry: Dict[str, str] = {}
        self.calls: List[tuple] = []

    def load_from_dir(self, directory):
        self.calls.append(("load_from_dir", directory))
        templates = self.directories.get(directory, {})
        self.registry.update(templates)
        return len(templates)

    def register(self, name, path):
        self.calls.append(("register", name, path))
        if path not in self.files:
            raise TemplateError(f"cannot read template {path}")
        self.registry[name] = self.files[path]

    def render(self, name, data):
        self.calls.append(("render", name))
        if self.render_error:
            raise RenderError(self.render_error)
        return f"{self.registry[name]}:{len(data['results'])}"


class MemoryEventLogger(EventLogger):
    def __init__(self):
        self.entries: List[tuple] = []

    def log(self, stage, message, level="info"):
        self.entries.append((level, stage, message))

    def levels(self):
        return [level for level, _, _ in self.entries]


# =========================
# Fixtures
# =========================
@pytest.fixture
def book_db(tmp_path):
    """A small on-disk book catalog."""
    path = tmp_path / "books.db"
    conn = sqlite3.connect(path)
    conn.execute(
        "CREATE TABLE books (id INTEGER PRIMARY KEY, title TEXT, author TEXT, "
        "year INTEGER, genre TEXT, rating REAL)"
    )
    conn.executemany("INSERT INTO books VALUES (?, ?, ?, ?, ?, ?)", BOOKS)
    conn.commit()
    conn.close()
    return str(path)


@pytest.fixture
def server_root(tmp_path):
    """
    Document root with a /books location directory and a shared template dir:

        root/books/list.j2      main template
        root/books/row.j2       local fragment
        shared/header.j2        global fragment
    """
    root = tmp_path / "root"
    books = root / "books"
    books.mkdir(parents=True)
    (books / "list.j2").write_text(
        '{% include "header" %}'
        "<ul>{% for book in results %}"
        '<li>{% include "row" %}</li>'
        "{% endfor %}</ul>",
        encoding="utf-8",
    )
    (books / "row.j2").write_text("{{ book.title }} ({{ book.missing }})", encoding="utf-8")

    shared = tmp_path / "shared"
    shared.mkdir()
    (shared / "header.j2").write_text("<h1>Books</h1>", encoding="utf-8")
    return root


@pytest.fixture
def books_location(book_db):
    return LocationConfig(
        path="/books",
        db_path=book_db,
        query="SELECT id, title FROM books ORDER BY id",
        template="list.j2",
    )


@pytest.fixture
def make_client(server_root, tmp_path):
    """Factory building a test client over the given locations."""

    def factory(locations, global_templates_dir: Optional[str] = None):
        app_settings = Settings(
            DOCUMENT_ROOT=str(server_root),
            GLOBAL_TEMPLATES_DIR=global_templates_dir or str(tmp_path / "shared"),
            LOCATIONS_FILE=str(tmp_path / "missing.json"),
        )
        app = build_app(app_settings, locations=locations)
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        return client

    return factory


@pytest_asyncio.fixture
async def client(make_client, books_location):
    async with make_client([books_location]) as ac:
        yield ac
