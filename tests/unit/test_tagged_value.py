"""
Unit Tests for tagged parameter values
"""

import pyarrow as pa
import pytest

from sqlite_flightsql.errors import InvalidArgument
from sqlite_flightsql.tagged_value import (
    UNION_FIELDS,
    TaggedValue,
    ValueKind,
    decode_scalar,
    encode_tagged_values,
    kind_for_type,
    unknown_column_type,
)

pytestmark = pytest.mark.unit


class TestUnknownColumnType:

    def test_is_dense_union(self):
        union = unknown_column_type()
        assert pa.types.is_union(union)
        assert union.mode == "dense"

    def test_child_order(self):
        union = unknown_column_type()
        names = [union.field(i).name for i in range(union.num_fields)]
        assert names == [
            "string_value",
            "bool_value",
            "bigint_value",
            "int32_bitmask",
            "string_list",
            "int32_to_int32_list_map",
        ]
        assert len(UNION_FIELDS) == 6


class TestKindForType:

    @pytest.mark.parametrize("arrow_type,kind", [
        (pa.utf8(), ValueKind.STRING),
        (pa.large_utf8(), ValueKind.STRING),
        (pa.bool_(), ValueKind.BOOL),
        (pa.int64(), ValueKind.BIGINT),
        (pa.int32(), ValueKind.INT32),
        (pa.float64(), ValueKind.DOUBLE),
        (pa.float32(), ValueKind.DOUBLE),
        (pa.binary(), ValueKind.BINARY),
        (pa.list_(pa.utf8()), ValueKind.STRING_LIST),
    ])
    def test_supported_types(self, arrow_type, kind):
        assert kind_for_type(arrow_type) is kind

    def test_unsupported_type_names_the_type(self):
        with pytest.raises(InvalidArgument, match="Received unsupported data type: date32"):
            kind_for_type(pa.date32())


class TestDecodeScalar:

    def test_plain_string(self):
        assert decode_scalar(pa.scalar("abc")) == TaggedValue.string("abc")

    def test_plain_null_is_none(self):
        assert decode_scalar(pa.scalar(None, type=pa.utf8())) is None

    def test_plain_binary(self):
        assert decode_scalar(pa.scalar(b"\x00\x01")) == TaggedValue(ValueKind.BINARY, b"\x00\x01")

    def test_union_cells_decode_to_active_child(self):
        column = encode_tagged_values([
            TaggedValue.string("abc"),
            TaggedValue.boolean(True),
            TaggedValue.bigint(7),
            TaggedValue.int32(3),
        ])
        assert decode_scalar(column[0]) == TaggedValue.string("abc")
        assert decode_scalar(column[1]) == TaggedValue.boolean(True)
        assert decode_scalar(column[2]) == TaggedValue.bigint(7)
        assert decode_scalar(column[3]) == TaggedValue.int32(3)


class TestEncodeTaggedValues:

    def test_column_type_matches_parameter_type(self):
        column = encode_tagged_values([TaggedValue.string("x"), TaggedValue.bigint(1)])
        assert column.type == unknown_column_type()
        assert len(column) == 2

    def test_empty(self):
        assert len(encode_tagged_values([])) == 0

    def test_map_values(self):
        column = encode_tagged_values([TaggedValue(ValueKind.INT32_TO_INT32_LIST_MAP, {1: [2, 3]})])
        assert decode_scalar(column[0]) == TaggedValue(ValueKind.INT32_TO_INT32_LIST_MAP, {1: [2, 3]})

    def test_plain_only_kinds_rejected(self):
        with pytest.raises(InvalidArgument):
            encode_tagged_values([TaggedValue(ValueKind.DOUBLE, 1.5)])
