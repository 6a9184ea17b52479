"""
SQLite Engine for the Flight SQL Server

Owns the single process-wide sqlite3 connection. Every other component
reaches SQLite through this object; it is created at startup, handed to the
dispatcher and closed at shutdown.

sqlite3 exposes no compiled-statement object, so statement introspection is
done with two tricks:

- compile check: ``EXPLAIN <sql>`` with every parameter bound to NULL. This
  parses and plans the statement without running it.
- output columns: the statement (placeholders replaced by NULL) is wrapped in
  a throwaway TEMP VIEW; ``PRAGMA table_info`` on the view reports each
  column's declared type exactly as sqlite3_column_decltype() would. Column
  names come from the statement's own cursor description, since the view
  renames duplicates.
"""

import secrets
import sqlite3
import threading
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

import pyarrow as pa
import structlog

from .errors import EngineError, InvalidArgument
from .sql import (
    bind_arguments,
    parameter_names,
    quote_identifier,
    scan_placeholders,
    substitute_nulls,
    table_schema_query,
)
from .tagged_value import unknown_column_type
from .type_mapper import column_field

logger = structlog.get_logger()

SQLITE_ERRORS = (sqlite3.Error, sqlite3.Warning)

EXAMPLE_DATA_SQL = """
CREATE TABLE foreignTable (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  foreignName varchar(100),
  value int);

CREATE TABLE intTable (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  keyName varchar(100),
  value int,
  foreignId int references foreignTable(id));

INSERT INTO foreignTable (foreignName, value) VALUES ('keyOne', 1);
INSERT INTO foreignTable (foreignName, value) VALUES ('keyTwo', 0);
INSERT INTO foreignTable (foreignName, value) VALUES ('keyThree', -1);
INSERT INTO intTable (keyName, value, foreignId) VALUES ('one', 1, 1);
INSERT INTO intTable (keyName, value, foreignId) VALUES ('zero', 0, 1);
INSERT INTO intTable (keyName, value, foreignId) VALUES ('negative one', -1, 1);
"""


def _preview(sql: str) -> str:
    return sql[:100] + "..." if len(sql) > 100 else sql


@dataclass(frozen=True)
class StatementDescription:
    """What SQLite reports about a statement before it runs"""

    query: str
    dataset_schema: pa.Schema
    parameter_names: List[Optional[str]]

    @property
    def parameter_count(self) -> int:
        return len(self.parameter_names)

    @property
    def parameter_schema(self) -> pa.Schema:
        # SQLite doesn't know parameter types before execution, so every
        # parameter accepts any tagged value.
        fields = []
        for position, name in enumerate(self.parameter_names, start=1):
            field_name = name if name is not None else f"parameter_{position}"
            fields.append(pa.field(field_name, unknown_column_type()))
        return pa.schema(fields)


class SQLiteEngine:
    """
    SQLite Execution Handler

    Wraps one sqlite3 connection shared by all requests. The connection is
    opened in autocommit mode; access is serialized with a re-entrant lock so
    concurrent request threads never interleave calls on it.
    """

    def __init__(self, database: str = ":memory:"):
        self.database = database
        self._connection_lock = threading.RLock()

        try:
            self.connection = sqlite3.connect(
                database,
                check_same_thread=False,
                isolation_level=None,
            )
        except SQLITE_ERRORS as e:
            raise EngineError(f"Can't open database: {e}", details={'database': database})

        logger.info("SQLite engine initialized",
                    database=database,
                    sqlite_version=sqlite3.sqlite_version)

    @property
    def sqlite_version(self) -> str:
        return sqlite3.sqlite_version

    def execute_script(self, sql: str):
        """Run a semicolon-separated script (schema setup, fixtures)"""
        with self._connection_lock:
            try:
                self.connection.executescript(sql)
            except SQLITE_ERRORS as e:
                logger.error("SQL script failed", error=str(e), sql=_preview(sql))
                raise EngineError(str(e), details={'sql': _preview(sql)})

    def seed_example_data(self):
        """Create and populate foreignTable/intTable"""
        self.execute_script(EXAMPLE_DATA_SQL)
        logger.info("Example data loaded", tables=["foreignTable", "intTable"])

    def compile(self, query: str) -> Tuple[List[Optional[str]], list]:
        """
        Check that SQLite accepts a statement, without running it.

        Args:
            query: SQL text of a single statement

        Returns:
            Tuple of (parameter names by bind position, placeholder occurrences)

        Raises:
            InvalidArgument: SQLite rejected the statement
        """
        placeholders = scan_placeholders(query)
        names = parameter_names(placeholders)
        nulls = bind_arguments(names, [None] * len(names))

        with self._connection_lock:
            cursor = self.connection.cursor()
            try:
                cursor.execute("EXPLAIN " + query, nulls)
            except SQLITE_ERRORS as e:
                logger.warning("Statement rejected by SQLite",
                               error=str(e), sql=_preview(query))
                raise InvalidArgument(str(e), details={'sql': _preview(query)})
            finally:
                cursor.close()

        return names, placeholders

    def describe(self, query: str) -> StatementDescription:
        """
        Compile a statement and derive its output and parameter shapes.

        Raises:
            InvalidArgument: SQLite rejected the statement
        """
        names, placeholders = self.compile(query)
        dataset_schema = self._dataset_schema(substitute_nulls(query, placeholders))

        logger.debug("Statement described",
                     sql=_preview(query),
                     columns=len(dataset_schema),
                     parameters=len(names))

        return StatementDescription(query=query, dataset_schema=dataset_schema, parameter_names=names)

    def _dataset_schema(self, select_sql: str) -> pa.Schema:
        view_name = quote_identifier(f"_describe_{secrets.token_hex(8)}")

        with self._connection_lock:
            try:
                self.connection.execute(f"CREATE TEMP VIEW {view_name} AS {select_sql}")
            except SQLITE_ERRORS:
                # DML/DDL statements produce no rows and cannot back a view
                return pa.schema([])

            try:
                rows = self.connection.execute(f"PRAGMA temp.table_info({view_name})").fetchall()
            finally:
                self._drop_view(view_name)

            names = self._column_names(select_sql)

        # table_info rows: (cid, name, type, notnull, dflt_value, pk).
        # The view renames duplicate columns ("value:1"), so names come from
        # the statement itself when it reports them.
        if len(names) != len(rows):
            names = [row[1] for row in rows]
        return pa.schema([column_field(name, row[2] or None) for name, row in zip(names, rows)])

    def _column_names(self, select_sql: str) -> List[str]:
        cursor = self.connection.cursor()
        try:
            cursor.execute(select_sql)
            return [column[0] for column in cursor.description or ()]
        except SQLITE_ERRORS as e:
            logger.debug("Column names unavailable", error=str(e), sql=_preview(select_sql))
            return []
        finally:
            cursor.close()

    def _drop_view(self, view_name: str):
        try:
            self.connection.execute(f"DROP VIEW IF EXISTS temp.{view_name}")
        except SQLITE_ERRORS as e:
            logger.warning("Failed to drop introspection view", view=view_name, error=str(e))

    def execute(self, query: str,
                parameters: Union[Sequence[Any], dict] = ()) -> sqlite3.Cursor:
        """
        Execute a statement and return its open cursor.

        The caller owns the cursor and must close it (fetch_page() and the
        result producer do so once the rows are drained).

        Raises:
            EngineError: SQLite failed to execute the statement
        """
        with self._connection_lock:
            cursor = self.connection.cursor()
            try:
                cursor.execute(query, parameters)
            except SQLITE_ERRORS as e:
                cursor.close()
                logger.error("SQLite execution failed",
                             error=str(e),
                             error_type=type(e).__name__,
                             sql=_preview(query))
                raise EngineError(str(e), details={'sql': _preview(query)})

        return cursor

    def execute_update(self, query: str,
                       parameters: Union[Sequence[Any], dict] = ()) -> int:
        """
        Execute a statement and return the number of rows it changed.

        Statements that change no rows (DDL, SELECT) report 0.
        """
        with self._connection_lock:
            cursor = self.execute(query, parameters)
            try:
                rows_affected = cursor.rowcount
            finally:
                cursor.close()

        logger.info("Update executed", sql=_preview(query), rows_affected=rows_affected)
        return max(rows_affected, 0)

    def fetch_page(self, cursor: sqlite3.Cursor, size: int) -> List[tuple]:
        """Fetch up to `size` rows from an open cursor"""
        with self._connection_lock:
            try:
                return cursor.fetchmany(size)
            except SQLITE_ERRORS as e:
                logger.error("SQLite fetch failed", error=str(e))
                raise EngineError(str(e))

    def table_columns(self, table_name: str) -> List[Tuple[str, Optional[str]]]:
        """(name, declared type) of every column of a table, in column order"""
        with self._connection_lock:
            cursor = self.execute(table_schema_query(), (table_name,))
            try:
                rows = cursor.fetchall()
            except SQLITE_ERRORS as e:
                raise EngineError(str(e), details={'table': table_name})
            finally:
                cursor.close()
        return [(name, decltype or None) for name, decltype in rows]

    def close(self):
        """Close the connection; the engine is unusable afterwards"""
        with self._connection_lock:
            try:
                self.connection.close()
                logger.info("SQLite engine shutdown completed", database=self.database)
            except SQLITE_ERRORS as e:
                logger.warning("Error during SQLite engine shutdown", error=str(e))
