"""
SQLite → Arrow type mapping

SQLite columns are loosely typed: the only static information is the declared
type text of a column (e.g. "INTEGER", "varchar(100)"), and expression columns
have none at all. This module maps that text onto the Arrow types the Flight
transport carries. Unknown declarations degrade to the null type rather than
failing.
"""

from typing import Any, Optional

import pyarrow as pa


def get_arrow_type(sqlite_type: Optional[str]) -> pa.DataType:
    """
    Convert a SQLite declared column type to an Arrow data type.

    Args:
        sqlite_type: Declared type text, or None when SQLite has not inferred
            a type for the column yet (expression columns)

    Returns:
        The matching Arrow type; pa.null() for absent or unrecognized types
    """
    if sqlite_type is None:
        # SQLite may not know the column type yet.
        return pa.null()

    type_name = sqlite_type.lower()

    if type_name in ('int', 'integer'):
        return pa.int64()
    elif type_name == 'real':
        return pa.float64()
    elif type_name == 'blob':
        return pa.binary()
    elif (type_name == 'text'
          or type_name.startswith('char')
          or type_name.startswith('varchar')):
        return pa.utf8()
    else:
        return pa.null()


def storage_class(value: Any) -> Optional[str]:
    """
    Name the SQLite storage class of a value fetched through sqlite3.

    Used to type result columns whose declared type maps to null, by feeding
    the storage class name back through get_arrow_type().
    """
    if value is None:
        return None
    if isinstance(value, int):
        return 'integer'
    if isinstance(value, float):
        return 'real'
    if isinstance(value, str):
        return 'text'
    if isinstance(value, (bytes, bytearray, memoryview)):
        return 'blob'
    return None


def column_field(name: str, sqlite_type: Optional[str]) -> pa.Field:
    """Build the Arrow field for a SQLite column declaration"""
    return pa.field(name, get_arrow_type(sqlite_type))
