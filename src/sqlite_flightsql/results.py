"""
Command Result Producer

Executes a SQL statement (fixed, generated or prepared) against the engine and
wraps the open cursor as a pyarrow.RecordBatchReader. Rows are paged out of
the cursor lazily, batch_size rows at a time; the cursor is closed once the
stream is exhausted or abandoned.

The first page is fetched eagerly so execution errors surface while the
command is still being dispatched. Columns without a declared type are typed
from their first non-null value; when a page holds only NULLs for such a
column, further pages are buffered until one turns up.
"""

import logging
from typing import Any, Iterator, List, Optional, Sequence, Union

import pyarrow as pa

from .errors import EngineError
from .schemas import TABLES_WITH_SCHEMA_SCHEMA
from .type_mapper import column_field, get_arrow_type, storage_class

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1024


def execute_query(
    engine,
    sql: str,
    parameters: Union[Sequence[Any], dict] = (),
    schema: Optional[pa.Schema] = None,
    batch_size: int = DEFAULT_BATCH_SIZE
) -> pa.RecordBatchReader:
    """
    Execute a statement and stream its rows as Arrow record batches.

    Args:
        engine: SQLiteEngine instance
        sql: Statement text
        parameters: Bind values (tuple, or mapping for named placeholders)
        schema: Expected result schema; null-typed fields are refined from
            the data. When None (or when the column count differs) the
            schema is taken from the cursor description.
        batch_size: Rows per record batch

    Returns:
        RecordBatchReader yielding at least one (possibly empty) batch

    Raises:
        EngineError: SQLite failed to execute or fetch
    """
    cursor = engine.execute(sql, parameters)
    try:
        pages = [engine.fetch_page(cursor, batch_size)]
        description = cursor.description or ()
        if schema is None or len(schema) != len(description):
            schema = pa.schema([pa.field(column[0], pa.null()) for column in description])
        schema = refine_schema(schema, pages[0])

        # Columns still untyped hold only NULLs so far; read ahead until each
        # has a value or the rows run out.
        while _has_untyped_fields(schema) and len(pages[-1]) == batch_size:
            page = engine.fetch_page(cursor, batch_size)
            if not page:
                break
            pages.append(page)
            schema = refine_schema(schema, page)
    except Exception:
        cursor.close()
        raise

    logger.debug(f"Streaming query results: columns={len(schema)}, buffered_pages={len(pages)}")
    return pa.RecordBatchReader.from_batches(
        schema, _stream_batches(engine, cursor, schema, pages, batch_size))


def _has_untyped_fields(schema: pa.Schema) -> bool:
    return any(pa.types.is_null(f.type) for f in schema)


def refine_schema(schema: pa.Schema, rows: Sequence[tuple]) -> pa.Schema:
    """Type null-typed fields from the storage class of their first non-null value"""
    fields = []
    for index, f in enumerate(schema):
        if pa.types.is_null(f.type):
            sample = next((row[index] for row in rows if row[index] is not None), None)
            f = f.with_type(get_arrow_type(storage_class(sample)))
        fields.append(f)
    return pa.schema(fields, metadata=schema.metadata)


def rows_to_batch(rows: Sequence[tuple], schema: pa.Schema) -> pa.RecordBatch:
    """
    Convert fetched rows to a record batch of the given schema.

    Raises:
        EngineError: a value does not fit its column type (SQLite columns
            may hold values of any storage class)
    """
    columns: List[Sequence[Any]] = list(zip(*rows)) if rows else [() for _ in schema]
    try:
        arrays = [pa.array(list(values), type=f.type) for values, f in zip(columns, schema)]
        return pa.RecordBatch.from_arrays(arrays, schema=schema)
    except (pa.ArrowException, OverflowError) as e:
        logger.error(f"Failed to convert rows to Arrow: {e}")
        raise EngineError(f"Result value does not match column type: {e}")


def _stream_batches(engine, cursor, schema: pa.Schema,
                    pages: List[List[tuple]], batch_size: int) -> Iterator[pa.RecordBatch]:
    total_rows = 0
    try:
        for page in pages:
            yield rows_to_batch(page, schema)
            total_rows += len(page)

        while len(page) == batch_size:
            page = engine.fetch_page(cursor, batch_size)
            if not page:
                break
            yield rows_to_batch(page, schema)
            total_rows += len(page)
    finally:
        cursor.close()
        logger.debug(f"Result stream closed after {total_rows} rows")


def empty_result(schema: pa.Schema) -> pa.RecordBatchReader:
    """A stream of exactly one zero-row batch (GetCatalogs, GetSchemas)"""
    batch = pa.RecordBatch.from_arrays([pa.array([], type=f.type) for f in schema], schema=schema)
    return pa.RecordBatchReader.from_batches(schema, [batch])


def table_schema(engine, table_name: str) -> pa.Schema:
    """Arrow schema of a table, from its declared column types"""
    return pa.schema([column_field(name, decltype) for name, decltype in engine.table_columns(table_name)])


def with_table_schemas(engine, reader: pa.RecordBatchReader) -> pa.RecordBatchReader:
    """
    Decorate a table listing stream with a "table_schema" column.

    Each row gets the IPC-serialized Arrow schema of the table it names,
    resolved with one introspection query per table as batches flow through.

    Args:
        engine: SQLiteEngine instance
        reader: Stream shaped like TABLES_SCHEMA

    Returns:
        Stream shaped like TABLES_WITH_SCHEMA_SCHEMA
    """
    def batches() -> Iterator[pa.RecordBatch]:
        for batch in reader:
            names = batch.column(batch.schema.get_field_index("table_name")).to_pylist()
            blobs = [table_schema(engine, name).serialize().to_pybytes() for name in names]
            yield pa.RecordBatch.from_arrays(
                list(batch.columns) + [pa.array(blobs, type=pa.binary())],
                schema=TABLES_WITH_SCHEMA_SCHEMA)

    return pa.RecordBatchReader.from_batches(TABLES_WITH_SCHEMA_SCHEMA, batches())
