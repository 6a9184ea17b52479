"""
Tagged values: the wire representation of untyped bind parameters

SQLite cannot report parameter types before execution, so every parameter
field of a prepared statement is typed as a dense union able to carry any of
the values below. The same union carries GetSqlInfo values.

Union children, in type-code order:

    0 string_value             utf8
    1 bool_value               bool
    2 bigint_value             int64
    3 int32_bitmask            int32
    4 string_list              list<utf8>
    5 int32_to_int32_list_map  map<int32, list<int32>>

Clients may also upload plain (non-union) parameter columns; float and binary
columns decode to the DOUBLE and BINARY kinds.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence

import pyarrow as pa

from .errors import InvalidArgument


class ValueKind(Enum):
    STRING = "string"
    BOOL = "bool"
    BIGINT = "bigint"
    INT32 = "int32"
    STRING_LIST = "string_list"
    INT32_TO_INT32_LIST_MAP = "int32_to_int32_list_map"
    DOUBLE = "double"
    BINARY = "binary"


UNION_FIELDS: List[pa.Field] = [
    pa.field("string_value", pa.utf8()),
    pa.field("bool_value", pa.bool_()),
    pa.field("bigint_value", pa.int64()),
    pa.field("int32_bitmask", pa.int32()),
    pa.field("string_list", pa.list_(pa.utf8())),
    pa.field("int32_to_int32_list_map", pa.map_(pa.int32(), pa.list_(pa.int32()))),
]

UNION_KINDS: List[ValueKind] = [
    ValueKind.STRING,
    ValueKind.BOOL,
    ValueKind.BIGINT,
    ValueKind.INT32,
    ValueKind.STRING_LIST,
    ValueKind.INT32_TO_INT32_LIST_MAP,
]


def unknown_column_type() -> pa.DataType:
    """Dense union type used for every prepared statement parameter field"""
    return pa.dense_union(UNION_FIELDS, type_codes=list(range(len(UNION_FIELDS))))


@dataclass(frozen=True)
class TaggedValue:
    """A decoded parameter cell: exactly one variant and its Python value"""

    kind: ValueKind
    value: Any

    @classmethod
    def string(cls, value: str) -> "TaggedValue":
        return cls(ValueKind.STRING, value)

    @classmethod
    def boolean(cls, value: bool) -> "TaggedValue":
        return cls(ValueKind.BOOL, value)

    @classmethod
    def bigint(cls, value: int) -> "TaggedValue":
        return cls(ValueKind.BIGINT, value)

    @classmethod
    def int32(cls, value: int) -> "TaggedValue":
        return cls(ValueKind.INT32, value)


def kind_for_type(arrow_type: pa.DataType) -> ValueKind:
    """
    Classify an Arrow type as a tagged value kind.

    Raises:
        InvalidArgument: the type is not one a parameter cell may carry
    """
    types = pa.types
    if types.is_string(arrow_type) or types.is_large_string(arrow_type):
        return ValueKind.STRING
    if types.is_boolean(arrow_type):
        return ValueKind.BOOL
    if types.is_int64(arrow_type):
        return ValueKind.BIGINT
    if types.is_int32(arrow_type):
        return ValueKind.INT32
    if types.is_floating(arrow_type):
        return ValueKind.DOUBLE
    if (types.is_binary(arrow_type) or types.is_large_binary(arrow_type)
            or types.is_fixed_size_binary(arrow_type)):
        return ValueKind.BINARY
    if types.is_map(arrow_type):
        return ValueKind.INT32_TO_INT32_LIST_MAP
    if ((types.is_list(arrow_type) or types.is_large_list(arrow_type))
            and types.is_string(arrow_type.value_type)):
        return ValueKind.STRING_LIST
    raise InvalidArgument(f"Received unsupported data type: {arrow_type}",
                          details={'arrow_type': str(arrow_type)})


def decode_scalar(scalar: pa.Scalar) -> Optional[TaggedValue]:
    """
    Decode one parameter cell.

    Dense union cells decode to their active child; plain cells decode by
    their own type. Null cells decode to None.
    """
    if isinstance(scalar, pa.UnionScalar):
        scalar = scalar.value
        if scalar is None:
            return None
    if not scalar.is_valid:
        return None
    kind = kind_for_type(scalar.type)
    value = scalar.as_py()
    if kind is ValueKind.INT32_TO_INT32_LIST_MAP and value is not None:
        value = dict(value)
    return TaggedValue(kind, value)


def encode_tagged_values(values: Sequence[TaggedValue]) -> pa.Array:
    """
    Build a dense union column (unknown_column_type()) from tagged values.

    Only the six union kinds can be encoded; DOUBLE and BINARY values travel
    as plain columns instead.
    """
    children: List[List[Any]] = [[] for _ in UNION_FIELDS]
    type_ids = []
    offsets = []

    for tagged in values:
        if tagged.kind not in UNION_KINDS:
            raise InvalidArgument(f"Cannot encode {tagged.kind.value} as a tagged union value")
        code = UNION_KINDS.index(tagged.kind)
        value = tagged.value
        if tagged.kind is ValueKind.INT32_TO_INT32_LIST_MAP:
            value = list(value.items())
        type_ids.append(code)
        offsets.append(len(children[code]))
        children[code].append(value)

    arrays = [pa.array(items, type=f.type) for items, f in zip(children, UNION_FIELDS)]
    return pa.UnionArray.from_dense(
        pa.array(type_ids, type=pa.int8()),
        pa.array(offsets, type=pa.int32()),
        arrays,
        [f.name for f in UNION_FIELDS],
        list(range(len(UNION_FIELDS))),
    )
