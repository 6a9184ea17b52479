"""
Fixed result schemas for Flight SQL metadata commands

These shapes are part of the Flight SQL protocol, not derived from SQLite.
Rows produced by the metadata queries are converted into them column by
column, so column order here must match the SELECT lists in
sql/metadata_queries.py.
"""

import pyarrow as pa

from .tagged_value import unknown_column_type

CATALOGS_SCHEMA = pa.schema([
    pa.field("catalog_name", pa.utf8()),
])

SCHEMAS_SCHEMA = pa.schema([
    pa.field("catalog_name", pa.utf8()),
    pa.field("schema_name", pa.utf8()),
])

TABLES_SCHEMA = pa.schema([
    pa.field("catalog_name", pa.utf8()),
    pa.field("schema_name", pa.utf8()),
    pa.field("table_name", pa.utf8()),
    pa.field("table_type", pa.utf8()),
])

# IPC-serialized Arrow schema of each table in "table_schema"
TABLES_WITH_SCHEMA_SCHEMA = TABLES_SCHEMA.append(pa.field("table_schema", pa.binary()))

TABLE_TYPES_SCHEMA = pa.schema([
    pa.field("table_type", pa.utf8()),
])

PRIMARY_KEYS_SCHEMA = pa.schema([
    pa.field("catalog_name", pa.utf8()),
    pa.field("schema_name", pa.utf8()),
    pa.field("table_name", pa.utf8()),
    pa.field("column_name", pa.utf8()),
    pa.field("key_sequence", pa.int32()),
    pa.field("key_name", pa.utf8()),
])

IMPORTED_AND_EXPORTED_KEYS_SCHEMA = pa.schema([
    pa.field("pk_catalog_name", pa.utf8()),
    pa.field("pk_schema_name", pa.utf8()),
    pa.field("pk_table_name", pa.utf8()),
    pa.field("pk_column_name", pa.utf8()),
    pa.field("fk_catalog_name", pa.utf8()),
    pa.field("fk_schema_name", pa.utf8()),
    pa.field("fk_table_name", pa.utf8()),
    pa.field("fk_column_name", pa.utf8()),
    pa.field("key_sequence", pa.int32()),
    pa.field("pk_key_name", pa.utf8()),
    pa.field("fk_key_name", pa.utf8()),
    pa.field("update_rule", pa.uint8()),
    pa.field("delete_rule", pa.uint8()),
])

SQL_INFO_SCHEMA = pa.schema([
    pa.field("info_name", pa.uint32()),
    pa.field("value", unknown_column_type()),
])


def tables_schema(include_schema: bool) -> pa.Schema:
    return TABLES_WITH_SCHEMA_SCHEMA if include_schema else TABLES_SCHEMA
