"""
Unit Tests for the metadata query builder

Text-level checks only; the queries are run against SQLite in
tests/contract/test_dispatcher_contract.py.
"""

import pytest

from sqlite_flightsql.commands import GetExportedKeys, GetImportedKeys, GetPrimaryKeys, GetTables
from sqlite_flightsql.sql import (
    FOREIGN_KEY_RULES,
    foreign_key_rule_case,
    get_exported_keys_query,
    get_imported_keys_query,
    get_primary_keys_query,
    get_table_types_query,
    get_tables_query,
)

pytestmark = pytest.mark.unit


class TestGetTablesQuery:

    def test_no_filters(self):
        assert get_tables_query(GetTables()) == (
            "SELECT null as catalog_name, null as schema_name, name as table_name, "
            "type as table_type FROM sqlite_master where 1=1 order by table_name"
        )

    def test_catalog_and_table_types(self):
        sql = get_tables_query(GetTables(catalog="c", table_types=("table", "view")))
        assert "catalog_name='c'" in sql
        assert "table_type IN ('table','view')" in sql
        assert sql.endswith("order by table_name")

    def test_pattern_filters(self):
        sql = get_tables_query(GetTables(schema_filter_pattern="main%", table_name_filter_pattern="int%"))
        assert " and schema_name LIKE 'main%'" in sql
        assert " and table_name LIKE 'int%'" in sql
        assert "table_type IN" not in sql

    def test_empty_string_filter_is_present(self):
        sql = get_tables_query(GetTables(table_name_filter_pattern=""))
        assert " and table_name LIKE ''" in sql

    def test_empty_table_types_adds_no_filter(self):
        assert "IN (" not in get_tables_query(GetTables(table_types=()))

    def test_filter_text_is_quoted(self):
        sql = get_tables_query(GetTables(table_name_filter_pattern="x' OR '1'='1"))
        assert " and table_name LIKE 'x'' OR ''1''=''1'" in sql


def test_table_types_query():
    assert get_table_types_query() == "SELECT DISTINCT type as table_type FROM sqlite_master"


class TestPrimaryKeysQuery:

    def test_table_filter_is_mandatory(self):
        sql = get_primary_keys_query(GetPrimaryKeys(table="intTable"))
        assert "p.pk != 0" in sql
        assert " and m.table_name LIKE 'intTable'" in sql
        assert "m.catalog_name" not in sql
        assert "m.schema_name" not in sql

    def test_catalog_and_schema_filters(self):
        sql = get_primary_keys_query(GetPrimaryKeys(table="t", catalog="c", schema="s"))
        assert " and m.catalog_name LIKE 'c'" in sql
        assert " and m.schema_name LIKE 's'" in sql


class TestForeignKeyQueries:

    def test_rule_codes_in_order(self):
        case = foreign_key_rule_case("p.on_update")
        assert "WHEN p.on_update = 'CASCADE' THEN 0" in case
        assert "WHEN p.on_update = 'RESTRICT' THEN 1" in case
        assert "WHEN p.on_update = 'SET NULL' THEN 2" in case
        assert "WHEN p.on_update = 'NO ACTION' THEN 3" in case
        assert "WHEN p.on_update = 'SET DEFAULT' THEN 4" in case
        assert "ELSE" not in case

    def test_rule_list(self):
        assert list(FOREIGN_KEY_RULES) == ['CASCADE', 'RESTRICT', 'SET NULL', 'NO ACTION', 'SET DEFAULT']

    def test_imported_keys_filter_foreign_side(self):
        sql = get_imported_keys_query(GetImportedKeys(table="intTable"))
        assert "WHERE fk_table_name = 'intTable' ORDER BY" in sql
        assert "pk_table_name = 'intTable'" not in sql

    def test_exported_keys_filter_primary_side(self):
        sql = get_exported_keys_query(GetExportedKeys(table="foreignTable", catalog="c", schema="s"))
        assert "pk_table_name = 'foreignTable' AND pk_catalog_name = 'c' AND pk_schema_name = 's'" in sql

    def test_self_references_excluded_and_ordered(self):
        sql = get_imported_keys_query(GetImportedKeys(table="t"))
        assert "m.name != p.\"table\"" in sql
        assert sql.endswith("pk_catalog_name, pk_schema_name, pk_table_name, pk_key_name, key_sequence")
