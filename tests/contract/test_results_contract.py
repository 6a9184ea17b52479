"""
Contract Tests: Command Result Producer

Cursor paging into record batches, and typing of columns that carry no
usable declared type.
"""

import pyarrow as pa
import pytest

from sqlite_flightsql.results import execute_query

pytestmark = pytest.mark.contract


@pytest.fixture
def dated(engine):
    engine.execute_script("""
        CREATE TABLE d (id INTEGER PRIMARY KEY, x DATETIME);
        INSERT INTO d (x) VALUES (NULL);
        INSERT INTO d (x) VALUES (NULL);
        INSERT INTO d (x) VALUES ('2020-01-01');
    """)
    return engine


class TestUntypedColumns:

    def test_value_after_all_null_first_page(self, dated):
        reader = execute_query(dated, "SELECT x FROM d ORDER BY id", batch_size=2)
        table = reader.read_all()

        assert table.schema.field("x").type == pa.utf8()
        assert table.column("x").to_pylist() == [None, None, "2020-01-01"]
        assert [batch.num_rows for batch in table.to_batches()] == [2, 1]

    def test_all_null_column_stays_null(self, dated):
        table = execute_query(dated, "SELECT x FROM d WHERE x IS NULL", batch_size=1).read_all()

        assert table.schema.field("x").type == pa.null()
        assert table.num_rows == 2

    def test_declared_schema_is_refined(self, dated):
        schema = pa.schema([pa.field("id", pa.int64()), pa.field("x", pa.null())])
        table = execute_query(dated, "SELECT id, x FROM d ORDER BY id", schema=schema,
                              batch_size=1).read_all()

        assert table.schema.types == [pa.int64(), pa.utf8()]
        assert table.column("id").to_pylist() == [1, 2, 3]


def test_empty_result_has_one_batch(engine):
    reader = execute_query(engine, "SELECT * FROM intTable WHERE 0")
    batches = list(reader)

    assert len(batches) == 1
    assert batches[0].num_rows == 0
    assert batches[0].schema.names == ["id", "keyName", "value", "foreignId"]
