"""
Statement Handle Registry

Process-wide mapping from opaque prepared statement handles to the statements
they name. Handles are 128 random bits rendered as canonical UUID text; they
are issued by create(), looked up by every later prepared statement command
and retired by close(). A retired handle is never reissued or resurrected.

Each PreparedStatement carries its own lock. checkout() holds it for the
bind+execute cycle of one request, so two requests never interleave on the
same statement; a statement closed while a request waits for it reports
NotFound to that request. close() retires a statement at once but waits for
the current holder before releasing its bindings.
"""

import secrets
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Union

import pyarrow as pa
import structlog

from .errors import InvalidArgument, NotFound
from .sql import bind_arguments

logger = structlog.get_logger()


class PreparedStatement:
    """
    A compiled, parameterized statement retained between requests.

    Holds the statement text, its derived schemas and the current positional
    bind values (SQL NULL until bound).
    """

    def __init__(self, handle: str, description):
        self.handle = handle
        self.query: str = description.query
        self.dataset_schema: pa.Schema = description.dataset_schema
        self.parameter_schema: pa.Schema = description.parameter_schema
        self.parameter_names: List[Optional[str]] = list(description.parameter_names)
        self.lock = threading.Lock()
        self.closed = False
        self._bindings: List[Any] = [None] * len(self.parameter_names)

    @property
    def parameter_count(self) -> int:
        return len(self.parameter_names)

    def bind(self, position: int, value: Any):
        """
        Set the value of a bind position (1-based).

        Raises:
            InvalidArgument: position outside 1..parameter_count
        """
        if not 1 <= position <= self.parameter_count:
            raise InvalidArgument(
                f"Bind position {position} out of range: statement has {self.parameter_count} parameters",
                details={'handle': self.handle, 'position': position})
        self._bindings[position - 1] = value

    def bound_value(self, position: int) -> Any:
        return self._bindings[position - 1]

    def clear_bindings(self):
        self._bindings = [None] * self.parameter_count

    def parameters(self) -> Union[tuple, Dict[str, Any]]:
        """Current bindings shaped for sqlite3 execution"""
        return bind_arguments(self.parameter_names, self._bindings)

    def release(self):
        self.closed = True
        self._bindings = [None] * self.parameter_count

    def __repr__(self):
        return f"PreparedStatement(handle={self.handle!r}, parameters={self.parameter_count}, closed={self.closed})"


class StatementHandleRegistry:
    """
    Issues, resolves and retires prepared statement handles.

    Args:
        engine: SQLiteEngine used to compile and describe statements
    """

    def __init__(self, engine):
        self.engine = engine
        self._statements: Dict[str, PreparedStatement] = {}
        self._lock = threading.Lock()

    @staticmethod
    def new_handle() -> str:
        return str(uuid.UUID(bytes=secrets.token_bytes(16)))

    @staticmethod
    def _normalize(handle: Union[str, bytes]) -> str:
        try:
            if isinstance(handle, (bytes, bytearray)):
                handle = handle.decode('ascii')
            return str(uuid.UUID(handle))
        except (ValueError, TypeError, AttributeError, UnicodeDecodeError):
            raise NotFound(f"Malformed prepared statement handle: {handle!r}")

    def create(self, query: str) -> PreparedStatement:
        """
        Compile a statement and register it under a fresh handle.

        Raises:
            InvalidArgument: SQLite rejected the statement
        """
        description = self.engine.describe(query)

        with self._lock:
            handle = self.new_handle()
            while handle in self._statements:
                handle = self.new_handle()
            statement = PreparedStatement(handle, description)
            self._statements[handle] = statement

        logger.info("Prepared statement created",
                    handle=handle,
                    columns=len(statement.dataset_schema),
                    parameters=statement.parameter_count,
                    sql=query[:100])
        return statement

    def resolve(self, handle: Union[str, bytes]) -> PreparedStatement:
        """
        Look up a prepared statement by handle.

        Raises:
            NotFound: handle unknown, already closed or malformed
        """
        key = self._normalize(handle)
        with self._lock:
            statement = self._statements.get(key)
        if statement is None:
            raise NotFound(f"Prepared statement not found: {key}", details={'handle': key})
        return statement

    @contextmanager
    def checkout(self, handle: Union[str, bytes]) -> Iterator[PreparedStatement]:
        """
        Resolve a statement and hold it exclusively for the duration of the block.

        Raises:
            NotFound: handle unknown, or closed while waiting for the statement
        """
        statement = self.resolve(handle)
        with statement.lock:
            if statement.closed:
                raise NotFound(f"Prepared statement not found: {statement.handle}",
                               details={'handle': statement.handle})
            yield statement

    def close(self, handle: Union[str, bytes]):
        """
        Retire a handle and release its statement.

        Raises:
            NotFound: handle unknown, already closed or malformed
        """
        key = self._normalize(handle)
        with self._lock:
            statement = self._statements.pop(key, None)
        if statement is None:
            raise NotFound(f"Prepared statement not found: {key}", details={'handle': key})

        self._retire(statement)
        logger.info("Prepared statement closed", handle=key)

    def close_all(self) -> int:
        """Release every outstanding statement (shutdown)"""
        with self._lock:
            statements = list(self._statements.values())
            self._statements.clear()

        for statement in statements:
            self._retire(statement)

        if statements:
            logger.info("Released outstanding prepared statements", count=len(statements))
        return len(statements)

    @staticmethod
    def _retire(statement: PreparedStatement):
        # Waiters see closed as soon as they get the lock; the holder keeps its bindings.
        statement.closed = True
        with statement.lock:
            statement.release()

    def __len__(self) -> int:
        with self._lock:
            return len(self._statements)

    def __contains__(self, handle) -> bool:
        try:
            key = self._normalize(handle)
        except NotFound:
            return False
        with self._lock:
            return key in self._statements
