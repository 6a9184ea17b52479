"""
Contract Tests: SQLiteEngine

Compile checks, statement description and execution against the seeded
in-memory database.
"""

import pyarrow as pa
import pytest

from sqlite_flightsql.engine import SQLiteEngine
from sqlite_flightsql.errors import EngineError, InvalidArgument
from sqlite_flightsql.tagged_value import unknown_column_type

pytestmark = pytest.mark.contract


class TestDescribe:

    def test_dataset_schema_from_declared_types(self, engine):
        description = engine.describe("SELECT * FROM intTable WHERE value = ?1")

        assert description.dataset_schema.names == ["id", "keyName", "value", "foreignId"]
        assert description.dataset_schema.types == [pa.int64(), pa.utf8(), pa.int64(), pa.int64()]

    def test_parameter_schema_uses_native_names(self, engine):
        description = engine.describe("SELECT * FROM intTable WHERE value = ?1")

        assert description.parameter_count == 1
        assert description.parameter_schema.names == ["?1"]
        assert description.parameter_schema.field(0).type == unknown_column_type()

    def test_anonymous_parameters_get_generated_names(self, engine):
        description = engine.describe("SELECT keyName FROM intTable WHERE value = ? OR id = ?")
        assert description.parameter_schema.names == ["parameter_1", "parameter_2"]

    def test_named_parameters(self, engine):
        description = engine.describe("SELECT id FROM intTable WHERE keyName = :key AND value = @value")
        assert description.parameter_schema.names == [":key", "@value"]

    def test_duplicate_column_names_are_kept(self, engine):
        description = engine.describe(
            "SELECT i.value, f.value FROM intTable i JOIN foreignTable f ON i.foreignId = f.id")

        assert description.dataset_schema.names == ["value", "value"]
        assert description.dataset_schema.types == [pa.int64(), pa.int64()]

    def test_dml_has_empty_dataset_schema(self, engine):
        description = engine.describe("INSERT INTO intTable (keyName, value) VALUES (?, ?)")
        assert len(description.dataset_schema) == 0
        assert description.parameter_count == 2

    def test_describe_does_not_execute(self, engine):
        engine.describe("DELETE FROM intTable")
        cursor = engine.execute("SELECT count(*) FROM intTable")
        assert cursor.fetchall() == [(3,)]
        cursor.close()

    def test_describe_leaves_no_views_behind(self, engine):
        engine.describe("SELECT * FROM foreignTable")
        cursor = engine.execute("SELECT count(*) FROM sqlite_temp_master")
        assert cursor.fetchall() == [(0,)]
        cursor.close()

    @pytest.mark.parametrize("sql", ["SELEC 1", "SELECT * FROM missing_table", ""])
    def test_rejected_sql_is_invalid_argument(self, engine, sql):
        with pytest.raises(InvalidArgument):
            engine.describe(sql)


class TestExecution:

    def test_execute_update_counts_rows(self, engine):
        assert engine.execute_update("UPDATE intTable SET value = value + 1") == 3

    def test_ddl_counts_zero(self, engine):
        assert engine.execute_update("CREATE TABLE extra (id INTEGER)") == 0

    def test_engine_error_passes_message_through(self, engine):
        with pytest.raises(EngineError, match="UNIQUE constraint failed"):
            engine.execute_update("INSERT INTO intTable (id, keyName) VALUES (1, 'dup')")

    def test_fetch_page(self, engine):
        cursor = engine.execute("SELECT id FROM intTable ORDER BY id")
        assert engine.fetch_page(cursor, 2) == [(1,), (2,)]
        assert engine.fetch_page(cursor, 2) == [(3,)]
        cursor.close()

    def test_table_columns(self, engine):
        assert engine.table_columns("intTable") == [
            ("id", "INTEGER"),
            ("keyName", "varchar(100)"),
            ("value", "int"),
            ("foreignId", "int"),
        ]

    def test_table_columns_is_parameterized(self, engine):
        assert engine.table_columns("intTable') --") == []


def test_example_data():
    engine = SQLiteEngine()
    try:
        engine.seed_example_data()
        cursor = engine.execute("SELECT keyName, value FROM intTable ORDER BY id")
        assert cursor.fetchall() == [("one", 1), ("zero", 0), ("negative one", -1)]
        cursor.close()
    finally:
        engine.close()
