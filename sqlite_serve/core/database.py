import logging
import math
import sqlite3
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from sqlite_serve.core.errors import QueryExecutionError
from sqlite_serve.core.parameters import has_named_params
from sqlite_serve.core.types import DatabasePath, Row, SqlQuery

logger = logging.getLogger(__name__)


class QueryExecutor(ABC):
    @abstractmethod
    def execute(
        self, db_path: DatabasePath, query: SqlQuery, params: Sequence[Tuple[str, str]]
    ) -> List[Row]:
        """Run one read query. Returns every row or raises QueryExecutionError."""


def open_read_only_engine(db_path: str) -> Engine:
    """
    Engine for an existing SQLite file, opened read-only.

    NullPool: every connect() opens a fresh connection and close() really
    closes it, nothing is kept between requests.
    """

    def connect():
        conn = sqlite3.connect(f"file:{quote(db_path)}?mode=ro", uri=True)
        # Invalid UTF-8 in TEXT columns is replaced instead of failing the query
        conn.text_factory = lambda raw: raw.decode("utf-8", errors="replace")
        return conn

    return create_engine("sqlite://", creator=connect, poolclass=NullPool)


def convert_value(value: Any) -> Optional[Union[int, float, str]]:
    """
    Map one SQLite value to its JSON friendly form.

    NULL -> None, INTEGER -> int, REAL -> float (None when not finite),
    TEXT -> str, BLOB -> lowercase hex string.
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    raise QueryExecutionError(f"unsupported column type: {type(value).__name__}")


def bind_parameters(params: Sequence[Tuple[str, str]]):
    """
    Driver parameters for the resolved pairs.

    If any pair is named, all of them are sent by name (dict keyed without the
    leading colon). Otherwise they are sent positionally, in order.
    """
    if not params:
        return None
    if has_named_params(params):
        return {name[1:] if name.startswith(":") else name: value for name, value in params}
    return tuple(value for _, value in params)


class SqliteQueryExecutor(QueryExecutor):
    def execute(
        self, db_path: DatabasePath, query: SqlQuery, params: Sequence[Tuple[str, str]]
    ) -> List[Row]:
        engine = open_read_only_engine(db_path.value)
        try:
            with engine.connect() as conn:
                # exec_driver_sql hands "?" and ":name" markers to sqlite3 untouched
                result = conn.exec_driver_sql(query.text, bind_parameters(params))
                columns = list(result.keys())
                rows = [
                    {column: convert_value(value) for column, value in zip(columns, record)}
                    for record in result
                ]
        except (SQLAlchemyError, sqlite3.Error) as e:
            # Report the driver message, not SQLAlchemy's wrapper text
            reason = getattr(e, "orig", None) or e
            logger.debug(f"Query failed on {db_path}: {reason}")
            raise QueryExecutionError(str(reason)) from e
        finally:
            engine.dispose()

        return rows
