"""
SQL Text Generation Module

Builds the SQL text the server sends to SQLite: metadata queries for the
Flight SQL catalog commands, literal/identifier quoting for request filter
text, and bind placeholder scanning for prepared statements.
"""

from .metadata_queries import (
    FOREIGN_KEY_RULES,
    foreign_key_rule_case,
    get_exported_keys_query,
    get_imported_keys_query,
    get_primary_keys_query,
    get_table_types_query,
    get_tables_query,
    imported_or_exported_keys_query,
    table_schema_query,
)
from .placeholders import Placeholder, bind_arguments, parameter_names, scan_placeholders, substitute_nulls
from .quoting import quote_identifier, quote_literal

__all__ = [
    "FOREIGN_KEY_RULES",
    "foreign_key_rule_case",
    "get_exported_keys_query",
    "get_imported_keys_query",
    "get_primary_keys_query",
    "get_table_types_query",
    "get_tables_query",
    "imported_or_exported_keys_query",
    "table_schema_query",
    "Placeholder",
    "bind_arguments",
    "parameter_names",
    "scan_placeholders",
    "substitute_nulls",
    "quote_identifier",
    "quote_literal",
]
