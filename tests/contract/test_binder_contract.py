"""
Contract Tests: Parameter Binder

Uploaded parameter batches -> positional bind values on a prepared
statement.
"""

import pyarrow as pa
import pytest

from sqlite_flightsql.binder import ParameterBinder
from sqlite_flightsql.errors import InvalidArgument
from sqlite_flightsql.tagged_value import TaggedValue, encode_tagged_values

pytestmark = pytest.mark.contract


@pytest.fixture
def binder():
    return ParameterBinder()


def batch_of(*columns):
    return pa.record_batch(list(columns), names=[f"p{i}" for i in range(len(columns))])


class TestBindValues:

    def test_string_binds_as_text(self, registry, binder):
        statement = registry.create("SELECT ?")
        binder.bind_all(statement, [batch_of(encode_tagged_values([TaggedValue.string("abc")]))])
        assert statement.bound_value(1) == "abc"

    def test_bool_is_unsupported(self, registry, binder):
        statement = registry.create("SELECT ?")
        batch = batch_of(encode_tagged_values([TaggedValue.boolean(True)]))

        with pytest.raises(InvalidArgument, match="Received unsupported data type: bool"):
            binder.bind_all(statement, [batch])

    def test_int32_is_unsupported(self, registry, binder):
        statement = registry.create("SELECT ?")
        with pytest.raises(InvalidArgument, match="int32"):
            binder.bind_all(statement, [batch_of(pa.array([1], type=pa.int32()))])

    @pytest.mark.parametrize("column,expected", [
        (pa.array(["abc"]), "abc"),
        (pa.array([7], type=pa.int64()), 7),
        (pa.array([1.5]), 1.5),
        (pa.array([b"\x00\x01"]), b"\x00\x01"),
        (pa.array([None], type=pa.utf8()), None),
    ])
    def test_plain_columns(self, registry, binder, column, expected):
        statement = registry.create("SELECT ?")
        statement.bind(1, "previous")

        binder.bind_all(statement, [batch_of(column)])

        assert statement.bound_value(1) == expected

    def test_binary_is_copied_as_bytes(self, registry, binder):
        statement = registry.create("SELECT ?")
        binder.bind_all(statement, [batch_of(pa.array([b"blob"]))])
        assert type(statement.bound_value(1)) is bytes

    def test_columns_bind_left_to_right(self, registry, binder):
        statement = registry.create("SELECT ?, ?")
        binder.bind_all(statement, [batch_of(pa.array(["a"]), pa.array([2], type=pa.int64()))])
        assert statement.parameters() == ("a", 2)

    def test_too_many_columns(self, registry, binder):
        statement = registry.create("SELECT ?")
        with pytest.raises(InvalidArgument):
            binder.bind_all(statement, [batch_of(pa.array(["a"]), pa.array(["b"]))])


class TestRowIteration:

    def test_rows_are_bound_in_order_across_batches(self, registry, binder):
        statement = registry.create("SELECT ?")
        batches = [
            batch_of(pa.array(["r1", "r2"])),
            batch_of(pa.array(["r3"])),
        ]

        seen = []
        for rows_bound in binder.bind_rows(statement, batches):
            seen.append((rows_bound, statement.bound_value(1)))

        assert seen == [(1, "r1"), (2, "r2"), (3, "r3")]

    def test_last_row_stays_bound(self, registry, binder):
        statement = registry.create("SELECT ?")
        count = binder.bind_all(statement, [batch_of(pa.array(["first", "last"]))])
        assert count == 2
        assert statement.bound_value(1) == "last"

    def test_none_batch_ends_input(self, registry, binder):
        statement = registry.create("SELECT ?")
        batches = [batch_of(pa.array(["kept"])), None, batch_of(pa.array(["ignored"]))]

        assert binder.bind_all(statement, batches) == 1
        assert statement.bound_value(1) == "kept"

    def test_empty_batches_are_transparent(self, registry, binder):
        statement = registry.create("SELECT ?")
        batches = [batch_of(pa.array([], type=pa.utf8())), batch_of(pa.array(["x"]))]
        assert binder.bind_all(statement, batches) == 1

    def test_unsent_columns_keep_earlier_values(self, registry, binder):
        """Bindings persist across uploads; a narrower batch only overwrites its own columns"""
        statement = registry.create("SELECT ?, ?")
        binder.bind_all(statement, [batch_of(pa.array(["a"]), pa.array(["b"]))])
        binder.bind_all(statement, [batch_of(pa.array(["c"]))])

        assert statement.parameters() == ("c", "b")

    def test_no_batches(self, registry, binder):
        statement = registry.create("SELECT ?")
        assert binder.bind_all(statement, []) == 0
        assert statement.bound_value(1) is None
