"""
Parameter Binder

Applies uploaded parameter batches to a prepared statement. Each batch carries
one column per bind placeholder; column c binds position c + 1. Rows are bound
in row-major order across the whole sequence of batches, so batch boundaries
are invisible to the statement.

Cells decode to TaggedValue (see tagged_value.py). Only four kinds can be
bound to SQLite:

    STRING  -> TEXT
    BIGINT  -> INTEGER
    DOUBLE  -> REAL
    BINARY  -> BLOB

Null cells bind SQL NULL. Every other kind is rejected with InvalidArgument.
"""

from typing import Any, Iterable, Iterator, Optional, Union

import pyarrow as pa
import structlog

from .errors import InvalidArgument
from .tagged_value import TaggedValue, ValueKind, decode_scalar

logger = structlog.get_logger()

ParameterBatch = Union[pa.RecordBatch, pa.Table]


class ParameterBinder:
    """Binds tagged parameter batches positionally to prepared statements"""

    def bind_value(self, statement, position: int, tagged: Optional[TaggedValue]):
        """
        Bind one decoded cell to a 1-based position.

        Raises:
            InvalidArgument: the cell's kind has no SQLite binding, or the
                position is out of range
        """
        statement.bind(position, self.native_value(tagged))

    @staticmethod
    def native_value(tagged: Optional[TaggedValue]) -> Any:
        if tagged is None:
            return None

        kind = tagged.kind
        if kind is ValueKind.STRING:
            return str(tagged.value)
        elif kind is ValueKind.BIGINT:
            return int(tagged.value)
        elif kind is ValueKind.DOUBLE:
            return float(tagged.value)
        elif kind is ValueKind.BINARY:
            return bytes(tagged.value)
        else:
            raise InvalidArgument(f"Received unsupported data type: {kind.value}",
                                  details={'kind': kind.value})

    def bind_row(self, statement, batch: ParameterBatch, row: int):
        for column in range(batch.num_columns):
            tagged = decode_scalar(batch.column(column)[row])
            self.bind_value(statement, column + 1, tagged)

    def bind_rows(self, statement,
                  batches: Iterable[Optional[ParameterBatch]]) -> Iterator[int]:
        """
        Bind every row of every batch, yielding after each full row.

        A None batch ends the input. The caller executes the statement
        between rows (update path) or after the last one (query path).

        Args:
            statement: PreparedStatement held by the caller
            batches: Parameter batches in upload order

        Yields:
            Number of rows bound so far
        """
        rows_bound = 0
        for batch in batches:
            if batch is None:
                break

            if batch.num_columns > statement.parameter_count:
                raise InvalidArgument(
                    f"Parameter batch has {batch.num_columns} columns, "
                    f"statement has {statement.parameter_count} parameters",
                    details={'handle': statement.handle})

            for row in range(batch.num_rows):
                self.bind_row(statement, batch, row)
                rows_bound += 1
                yield rows_bound

        logger.debug("Parameters bound", handle=statement.handle, rows=rows_bound)

    def bind_all(self, statement, batches: Iterable[Optional[ParameterBatch]]) -> int:
        """Bind every row; the last row's values remain bound. Returns the row count."""
        rows_bound = 0
        for rows_bound in self.bind_rows(statement, batches):
            pass
        return rows_bound
