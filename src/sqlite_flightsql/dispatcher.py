"""
Command Dispatcher

Maps every Flight SQL command to a pair of handlers through one static table,
ROUTES: an info builder (schema + ticket for GetFlightInfo) and a result
producer (row stream, update count, or action result).

Tickets are the packed command itself, so DoGet replays exactly the command
GetFlightInfo described. Every public operation returns a CommandResult;
failures are returned, never raised past the dispatcher, and never retried.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Type, Union

import pyarrow as pa
import structlog

from . import __version__
from .binder import ParameterBinder
from .commands import (
    COMMAND_TYPE_NAMES,
    Command,
    GetCatalogs,
    GetExportedKeys,
    GetImportedKeys,
    GetPrimaryKeys,
    GetSchemas,
    GetSqlInfo,
    GetTables,
    GetTableTypes,
    PreparedStatementClose,
    PreparedStatementCreate,
    PreparedStatementCreateResult,
    PreparedStatementQuery,
    PreparedStatementUpdate,
    StatementQuery,
    StatementUpdate,
    UpdateResult,
    pack_command,
    unpack_command,
)
from .errors import EngineError, FlightSqlError, InvalidArgument
from .registry import StatementHandleRegistry
from .results import DEFAULT_BATCH_SIZE, empty_result, execute_query, with_table_schemas
from .schemas import (
    CATALOGS_SCHEMA,
    IMPORTED_AND_EXPORTED_KEYS_SCHEMA,
    PRIMARY_KEYS_SCHEMA,
    SCHEMAS_SCHEMA,
    SQL_INFO_SCHEMA,
    TABLE_TYPES_SCHEMA,
    tables_schema,
)
from .sql import (
    get_exported_keys_query,
    get_imported_keys_query,
    get_primary_keys_query,
    get_table_types_query,
    get_tables_query,
)
from .tagged_value import TaggedValue, encode_tagged_values

logger = structlog.get_logger()

SERVER_NAME = "sqlite-flightsql"


class SqlInfo(IntEnum):
    """GetSqlInfo codes answered by this server"""
    FLIGHT_SQL_SERVER_NAME = 0
    FLIGHT_SQL_SERVER_VERSION = 1
    FLIGHT_SQL_SERVER_ARROW_VERSION = 2
    FLIGHT_SQL_SERVER_READ_ONLY = 3
    SQL_DDL_CATALOG = 500
    SQL_DDL_SCHEMA = 501
    SQL_DDL_TABLE = 502
    SQL_IDENTIFIER_QUOTE_CHAR = 504


def sql_info_values() -> Dict[int, TaggedValue]:
    return {
        SqlInfo.FLIGHT_SQL_SERVER_NAME: TaggedValue.string(SERVER_NAME),
        SqlInfo.FLIGHT_SQL_SERVER_VERSION: TaggedValue.string(__version__),
        SqlInfo.FLIGHT_SQL_SERVER_ARROW_VERSION: TaggedValue.string(pa.__version__),
        SqlInfo.FLIGHT_SQL_SERVER_READ_ONLY: TaggedValue.boolean(False),
        SqlInfo.SQL_DDL_CATALOG: TaggedValue.boolean(False),
        SqlInfo.SQL_DDL_SCHEMA: TaggedValue.boolean(False),
        SqlInfo.SQL_DDL_TABLE: TaggedValue.boolean(True),
        SqlInfo.SQL_IDENTIFIER_QUOTE_CHAR: TaggedValue.string('"'),
    }


# Commands whose result schema never depends on SQLite
_FIXED_SCHEMAS: Dict[Type, pa.Schema] = {
    GetCatalogs: CATALOGS_SCHEMA,
    GetSchemas: SCHEMAS_SCHEMA,
    GetTableTypes: TABLE_TYPES_SCHEMA,
    GetPrimaryKeys: PRIMARY_KEYS_SCHEMA,
    GetImportedKeys: IMPORTED_AND_EXPORTED_KEYS_SCHEMA,
    GetExportedKeys: IMPORTED_AND_EXPORTED_KEYS_SCHEMA,
    GetSqlInfo: SQL_INFO_SCHEMA,
}


@dataclass(frozen=True)
class CommandInfo:
    """What GetFlightInfo reports for a command"""

    schema: pa.Schema
    ticket: bytes
    command: Any


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one dispatched operation: a value or a typed error"""

    success: bool
    value: Any = None
    error: Optional[FlightSqlError] = None

    @classmethod
    def ok(cls, value: Any = None) -> "CommandResult":
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, error: FlightSqlError) -> "CommandResult":
        return cls(success=False, error=error)

    def unwrap(self) -> Any:
        """Return the value, or raise the error"""
        if not self.success:
            raise self.error
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'error': self.error.to_dict() if self.error is not None else None,
        }


class Route(NamedTuple):
    """Handler method names for one command class"""
    info: str
    result: str


ROUTES: Dict[Type, Route] = {
    GetCatalogs: Route('_fixed_info', '_get_catalogs'),
    GetSchemas: Route('_fixed_info', '_get_schemas'),
    GetTables: Route('_tables_info', '_get_tables'),
    GetTableTypes: Route('_fixed_info', '_get_table_types'),
    GetPrimaryKeys: Route('_fixed_info', '_get_primary_keys'),
    GetImportedKeys: Route('_fixed_info', '_get_imported_keys'),
    GetExportedKeys: Route('_fixed_info', '_get_exported_keys'),
    GetSqlInfo: Route('_fixed_info', '_get_sql_info'),
    StatementQuery: Route('_statement_query_info', '_statement_query'),
    StatementUpdate: Route('_no_info', '_statement_update'),
    PreparedStatementCreate: Route('_no_info', '_create_prepared_statement'),
    PreparedStatementClose: Route('_no_info', '_close_prepared_statement'),
    PreparedStatementQuery: Route('_prepared_query_info', '_prepared_statement_query'),
    PreparedStatementUpdate: Route('_no_info', '_prepared_statement_update'),
}

_unrouted = set(COMMAND_TYPE_NAMES) - set(ROUTES)
if _unrouted:
    raise RuntimeError(f"Commands without a route: {sorted(cls.__name__ for cls in _unrouted)}")

# Commands answered with a row stream (DoGet), with an update count or
# binding (DoPut), and as actions (DoAction)
STREAM_COMMANDS = tuple(cls for cls, route in ROUTES.items() if route.info != '_no_info')
PUT_COMMANDS = (StatementUpdate, PreparedStatementQuery, PreparedStatementUpdate)
ACTION_COMMANDS = (PreparedStatementCreate, PreparedStatementClose)

CommandInput = Union[Command, bytes, bytearray, memoryview, str]


class CommandDispatcher:
    """
    Routes Flight SQL commands to SQL execution against one engine.

    The dispatcher holds the engine it is given; it does not create or look
    up a connection on its own.

    Args:
        engine: SQLiteEngine instance
        registry: Prepared statement registry (created over `engine` if None)
        binder: Parameter binder (default ParameterBinder())
        batch_size: Rows per record batch in result streams
    """

    def __init__(self, engine, registry: Optional[StatementHandleRegistry] = None,
                 binder: Optional[ParameterBinder] = None,
                 batch_size: int = DEFAULT_BATCH_SIZE):
        self.engine = engine
        self.registry = registry if registry is not None else StatementHandleRegistry(engine)
        self.binder = binder if binder is not None else ParameterBinder()
        self.batch_size = batch_size

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def get_flight_info(self, command: CommandInput) -> CommandResult:
        """Describe a command's result: schema plus the ticket to fetch it"""
        def run(cmd):
            return getattr(self, ROUTES[type(cmd)].info)(cmd)
        return self._dispatch('get_flight_info', command, run)

    def do_get(self, ticket: Union[bytes, str]) -> CommandResult:
        """Replay the command packed in a ticket and return its row stream"""
        def run(cmd):
            if not isinstance(cmd, STREAM_COMMANDS):
                raise InvalidArgument(f"{COMMAND_TYPE_NAMES[type(cmd)]} does not produce a result stream")
            return self._produce(cmd, None)
        return self._dispatch('do_get', ticket, run)

    def do_put(self, command: CommandInput,
               batches: Optional[Iterable[Optional[pa.RecordBatch]]] = None) -> CommandResult:
        """
        Run an update, or bind parameters to a prepared statement.

        Returns an UpdateResult for StatementUpdate and
        PreparedStatementUpdate; None for PreparedStatementQuery, whose
        parameters stay bound for the following DoGet.
        """
        def run(cmd):
            if not isinstance(cmd, PUT_COMMANDS):
                raise InvalidArgument(f"{COMMAND_TYPE_NAMES[type(cmd)]} is not accepted by DoPut")
            if isinstance(cmd, PreparedStatementQuery):
                with self.registry.checkout(cmd.prepared_statement_handle) as statement:
                    self.binder.bind_all(statement, batches or ())
                return None
            return self._produce(cmd, batches)
        return self._dispatch('do_put', command, run)

    def do_action(self, command: CommandInput) -> CommandResult:
        """Create or close a prepared statement"""
        def run(cmd):
            if not isinstance(cmd, ACTION_COMMANDS):
                raise InvalidArgument(f"{COMMAND_TYPE_NAMES[type(cmd)]} is not an action")
            return self._produce(cmd, None)
        return self._dispatch('do_action', command, run)

    def execute(self, command: CommandInput,
                parameters: Optional[Iterable[Optional[pa.RecordBatch]]] = None) -> CommandResult:
        """Run any command through its result producer"""
        return self._dispatch('execute', command, lambda cmd: self._produce(cmd, parameters))

    def close(self):
        """Release outstanding prepared statements and the engine"""
        self.registry.close_all()
        self.engine.close()

    # ------------------------------------------------------------------
    # Dispatch plumbing
    # ------------------------------------------------------------------

    def _dispatch(self, operation: str, command: CommandInput, run) -> CommandResult:
        command_name = None
        try:
            if not isinstance(command, tuple(ROUTES)):
                command = unpack_command(command)
            command_name = COMMAND_TYPE_NAMES[type(command)]
            logger.debug("Dispatching command", operation=operation, command=command_name)
            return CommandResult.ok(run(command))

        except FlightSqlError as e:
            logger.warning("Command failed",
                           operation=operation,
                           command=command_name,
                           error_code=e.code,
                           error=e.message)
            return CommandResult.failed(e)

        except Exception as e:
            logger.error("Unexpected command failure",
                         operation=operation,
                         command=command_name,
                         error=str(e),
                         error_type=type(e).__name__,
                         exc_info=True)
            return CommandResult.failed(EngineError(str(e), details={'error_type': type(e).__name__}))

    def _produce(self, command: Command, parameters) -> Any:
        return getattr(self, ROUTES[type(command)].result)(command, parameters)

    # ------------------------------------------------------------------
    # Info builders
    # ------------------------------------------------------------------

    def _fixed_info(self, command) -> CommandInfo:
        return CommandInfo(_FIXED_SCHEMAS[type(command)], pack_command(command), command)

    def _tables_info(self, command: GetTables) -> CommandInfo:
        return CommandInfo(tables_schema(command.include_schema), pack_command(command), command)

    def _statement_query_info(self, command: StatementQuery) -> CommandInfo:
        description = self.engine.describe(command.query)
        return CommandInfo(description.dataset_schema, pack_command(command), command)

    def _prepared_query_info(self, command: PreparedStatementQuery) -> CommandInfo:
        statement = self.registry.resolve(command.prepared_statement_handle)
        return CommandInfo(statement.dataset_schema, pack_command(command), command)

    def _no_info(self, command) -> CommandInfo:
        raise InvalidArgument(f"{COMMAND_TYPE_NAMES[type(command)]} does not produce a result stream")

    # ------------------------------------------------------------------
    # Metadata producers
    # ------------------------------------------------------------------

    def _query(self, sql: str, schema: Optional[pa.Schema] = None, parameters=()) -> pa.RecordBatchReader:
        return execute_query(self.engine, sql, parameters, schema=schema, batch_size=self.batch_size)

    def _get_catalogs(self, command: GetCatalogs, parameters) -> pa.RecordBatchReader:
        return empty_result(CATALOGS_SCHEMA)

    def _get_schemas(self, command: GetSchemas, parameters) -> pa.RecordBatchReader:
        return empty_result(SCHEMAS_SCHEMA)

    def _get_tables(self, command: GetTables, parameters) -> pa.RecordBatchReader:
        reader = self._query(get_tables_query(command), tables_schema(False))
        if command.include_schema:
            return with_table_schemas(self.engine, reader)
        return reader

    def _get_table_types(self, command: GetTableTypes, parameters) -> pa.RecordBatchReader:
        return self._query(get_table_types_query(), TABLE_TYPES_SCHEMA)

    def _get_primary_keys(self, command: GetPrimaryKeys, parameters) -> pa.RecordBatchReader:
        return self._query(get_primary_keys_query(command), PRIMARY_KEYS_SCHEMA)

    def _get_imported_keys(self, command: GetImportedKeys, parameters) -> pa.RecordBatchReader:
        return self._query(get_imported_keys_query(command), IMPORTED_AND_EXPORTED_KEYS_SCHEMA)

    def _get_exported_keys(self, command: GetExportedKeys, parameters) -> pa.RecordBatchReader:
        return self._query(get_exported_keys_query(command), IMPORTED_AND_EXPORTED_KEYS_SCHEMA)

    def _get_sql_info(self, command: GetSqlInfo, parameters) -> pa.RecordBatchReader:
        available = sql_info_values()
        codes: List[int] = list(command.info) if command.info else list(available)
        codes = [int(code) for code in codes if code in available]

        batch = pa.RecordBatch.from_arrays([
            pa.array(codes, type=pa.uint32()),
            encode_tagged_values([available[code] for code in codes]),
        ], schema=SQL_INFO_SCHEMA)
        return pa.RecordBatchReader.from_batches(SQL_INFO_SCHEMA, [batch])

    # ------------------------------------------------------------------
    # Statement producers
    # ------------------------------------------------------------------

    def _statement_query(self, command: StatementQuery, parameters) -> pa.RecordBatchReader:
        description = self.engine.describe(command.query)
        return self._query(command.query, description.dataset_schema)

    def _statement_update(self, command: StatementUpdate, parameters) -> UpdateResult:
        return UpdateResult(record_count=self.engine.execute_update(command.query))

    def _create_prepared_statement(self, command: PreparedStatementCreate,
                                   parameters) -> PreparedStatementCreateResult:
        statement = self.registry.create(command.query)
        return PreparedStatementCreateResult(
            prepared_statement_handle=statement.handle,
            dataset_schema=statement.dataset_schema,
            parameter_schema=statement.parameter_schema,
        )

    def _close_prepared_statement(self, command: PreparedStatementClose, parameters) -> None:
        self.registry.close(command.prepared_statement_handle)
        return None

    def _prepared_statement_query(self, command: PreparedStatementQuery,
                                  parameters) -> pa.RecordBatchReader:
        with self.registry.checkout(command.prepared_statement_handle) as statement:
            if parameters is not None:
                self.binder.bind_all(statement, parameters)
            return self._query(statement.query, statement.dataset_schema, statement.parameters())

    def _prepared_statement_update(self, command: PreparedStatementUpdate,
                                   parameters) -> UpdateResult:
        with self.registry.checkout(command.prepared_statement_handle) as statement:
            record_count = 0
            executions = 0
            if parameters is not None:
                for _ in self.binder.bind_rows(statement, parameters):
                    record_count += self.engine.execute_update(statement.query, statement.parameters())
                    executions += 1
            if executions == 0:
                record_count = self.engine.execute_update(statement.query, statement.parameters())

        return UpdateResult(record_count=record_count)
