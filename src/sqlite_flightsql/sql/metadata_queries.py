"""
Metadata Query Builder

SQLite has no information schema, so Flight SQL metadata commands are
answered by SQL synthesized over sqlite_master and the table-valued pragma
functions. Catalog and schema are concepts SQLite lacks; they are always
reported as NULL.

All builders are pure functions of the command. Request filter text is passed
through quote_literal() before it is spliced into the query.
"""

from typing import Sequence

from ..commands import GetExportedKeys, GetImportedKeys, GetPrimaryKeys, GetTables
from .quoting import quote_literal

# Flight SQL referential action codes, in code order (CASCADE = 0)
FOREIGN_KEY_RULES: Sequence[str] = (
    'CASCADE',
    'RESTRICT',
    'SET NULL',
    'NO ACTION',
    'SET DEFAULT',
)

_TABLE_LISTING = (
    "SELECT null as catalog_name, null as schema_name, name as "
    "table_name, type as table_type FROM sqlite_master"
)


def get_tables_query(command: GetTables) -> str:
    """
    Build the table listing query for CommandGetTables.

    Filters are appended only when present on the command; the table type
    filter only when at least one type is requested.

    Args:
        command: GetTables command with optional filters

    Returns:
        SQL text ending in "order by table_name"
    """
    query = [_TABLE_LISTING, " where 1=1"]

    if command.catalog is not None:
        query.append(f" and catalog_name={quote_literal(command.catalog)}")

    if command.schema_filter_pattern is not None:
        query.append(f" and schema_name LIKE {quote_literal(command.schema_filter_pattern)}")

    if command.table_name_filter_pattern is not None:
        query.append(f" and table_name LIKE {quote_literal(command.table_name_filter_pattern)}")

    if command.table_types:
        types = ",".join(quote_literal(table_type) for table_type in command.table_types)
        query.append(f" and table_type IN ({types})")

    query.append(" order by table_name")
    return "".join(query)


def get_table_types_query() -> str:
    return "SELECT DISTINCT type as table_type FROM sqlite_master"


def table_schema_query() -> str:
    """Per-table column introspection; bind the table name as the only parameter"""
    return "SELECT name, type FROM pragma_table_info(?) ORDER BY cid"


def get_primary_keys_query(command: GetPrimaryKeys) -> str:
    """
    Build the primary key query for CommandGetPrimaryKeys.

    The key name cannot be recovered from SQLite, so key_name is NULL like
    catalog_name and schema_name. key_sequence is the column's position in
    the primary key as reported by pragma_table_info.
    """
    query = [
        "SELECT null as catalog_name, null as schema_name, m.table_name as table_name, "
        "p.name as column_name, p.pk as key_sequence, null as key_name\n"
        f"FROM ({_TABLE_LISTING}) m\n"
        "    JOIN pragma_table_info(m.table_name) p\n"
        "where 1=1 and p.pk != 0"
    ]

    if command.catalog is not None:
        query.append(f" and m.catalog_name LIKE {quote_literal(command.catalog)}")

    if command.schema is not None:
        query.append(f" and m.schema_name LIKE {quote_literal(command.schema)}")

    query.append(f" and m.table_name LIKE {quote_literal(command.table)}")
    query.append(" order by m.table_name, p.pk")
    return "".join(query)


def foreign_key_rule_case(column: str) -> str:
    """
    CASE expression mapping a SQLite referential action to its rule code.

    Any value outside FOREIGN_KEY_RULES (including NULL) yields NULL.

    Args:
        column: SQL expression holding the action text, e.g. 'p.on_update'
    """
    branches = "\n".join(
        f"        WHEN {column} = {quote_literal(rule)} THEN {code}"
        for code, rule in enumerate(FOREIGN_KEY_RULES)
    )
    return f"CASE\n{branches}\n    END"


def imported_or_exported_keys_query(filter_sql: str) -> str:
    """
    Shared foreign key listing for CommandGetImportedKeys/ExportedKeys.

    Args:
        filter_sql: Boolean SQL expression over the output columns; callers
            build it from quoted literals only
    """
    return (
        "SELECT * FROM (SELECT NULL AS pk_catalog_name,\n"
        "    NULL AS pk_schema_name,\n"
        "    p.\"table\" AS pk_table_name,\n"
        "    p.\"to\" AS pk_column_name,\n"
        "    NULL AS fk_catalog_name,\n"
        "    NULL AS fk_schema_name,\n"
        "    m.name AS fk_table_name,\n"
        "    p.\"from\" AS fk_column_name,\n"
        "    p.seq AS key_sequence,\n"
        "    NULL AS pk_key_name,\n"
        "    NULL AS fk_key_name,\n"
        f"    {foreign_key_rule_case('p.on_update')} AS update_rule,\n"
        f"    {foreign_key_rule_case('p.on_delete')} AS delete_rule\n"
        "  FROM sqlite_master m\n"
        "  JOIN pragma_foreign_key_list(m.name) p ON m.name != p.\"table\"\n"
        f"  WHERE m.type = 'table') WHERE {filter_sql} ORDER BY\n"
        "  pk_catalog_name, pk_schema_name, pk_table_name, pk_key_name, key_sequence"
    )


def _key_filter(side: str, table: str, catalog, schema) -> str:
    conditions = [f"{side}_table_name = {quote_literal(table)}"]
    if catalog is not None:
        conditions.append(f"{side}_catalog_name = {quote_literal(catalog)}")
    if schema is not None:
        conditions.append(f"{side}_schema_name = {quote_literal(schema)}")
    return " AND ".join(conditions)


def get_imported_keys_query(command: GetImportedKeys) -> str:
    """Foreign keys declared by the given table (filters on the fk side)"""
    return imported_or_exported_keys_query(
        _key_filter('fk', command.table, command.catalog, command.schema))


def get_exported_keys_query(command: GetExportedKeys) -> str:
    """Foreign keys referencing the given table (filters on the pk side)"""
    return imported_or_exported_keys_query(
        _key_filter('pk', command.table, command.catalog, command.schema))
