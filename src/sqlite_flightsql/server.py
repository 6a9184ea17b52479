"""
Arrow Flight transport adapter

Forwards Flight RPCs to the CommandDispatcher:

    GetFlightInfo  descriptor.command -> dispatcher.get_flight_info()
    DoGet          ticket             -> dispatcher.do_get()
    DoPut          descriptor.command -> dispatcher.do_put() (update count
                                         written on the metadata channel)
    DoAction       action.body        -> dispatcher.do_action()

Dispatcher errors become Flight statuses: NotFound -> KeyError,
InvalidArgument -> ArrowInvalid, EngineError -> FlightServerError.
"""

import argparse
from typing import Iterator, List, Optional

import pyarrow as pa
import pyarrow.flight as flight
import structlog

from . import __version__
from .commands import PreparedStatementClose, PreparedStatementCreate, unpack_command
from .config import ServerConfig
from .dispatcher import CommandDispatcher, CommandResult
from .engine import SQLiteEngine
from .errors import FlightSqlError, InvalidArgument, NotFound
from .logging_setup import configure_logging
from .results import DEFAULT_BATCH_SIZE

logger = structlog.get_logger()

ACTION_CREATE_PREPARED_STATEMENT = "CreatePreparedStatement"
ACTION_CLOSE_PREPARED_STATEMENT = "ClosePreparedStatement"

ACTIONS = {
    ACTION_CREATE_PREPARED_STATEMENT: (PreparedStatementCreate,
                                       "Creates a reusable prepared statement resource on the server."),
    ACTION_CLOSE_PREPARED_STATEMENT: (PreparedStatementClose,
                                      "Closes a reusable prepared statement resource on the server."),
}


def transport_error(error: FlightSqlError) -> Exception:
    """Exception whose Flight status matches the error's kind"""
    if isinstance(error, NotFound):
        return KeyError(error.message)
    if isinstance(error, InvalidArgument):
        return pa.ArrowInvalid(error.message)
    return flight.FlightServerError(error.message)


def _unwrap(result: CommandResult):
    if not result.success:
        raise transport_error(result.error)
    return result.value


def _iter_batches(reader) -> Iterator[pa.RecordBatch]:
    """Record batches of a DoPut upload, in order"""
    while True:
        try:
            chunk = reader.read_chunk()
        except StopIteration:
            return
        if chunk.data is not None:
            yield chunk.data


class SQLiteFlightSqlServer(flight.FlightServerBase):
    """
    Flight SQL server over one SQLite database.

    Args:
        location: gRPC URI to listen on (port 0 picks a free port)
        dispatcher: CommandDispatcher to serve; when None one is built over
            a new SQLiteEngine for `database`
        database: SQLite database path, ":memory:" by default
        seed_example_data: Load foreignTable/intTable into a new engine
        batch_size: Rows per record batch
    """

    def __init__(self, location: str = "grpc://localhost:31337",
                 dispatcher: Optional[CommandDispatcher] = None,
                 database: str = ":memory:",
                 seed_example_data: bool = True,
                 batch_size: int = DEFAULT_BATCH_SIZE,
                 **kwargs):
        if dispatcher is None:
            engine = SQLiteEngine(database)
            if seed_example_data:
                engine.seed_example_data()
            dispatcher = CommandDispatcher(engine, batch_size=batch_size)

        self.dispatcher = dispatcher
        self.listen_location = location
        super().__init__(location, **kwargs)

    @classmethod
    def from_config(cls, config: ServerConfig) -> "SQLiteFlightSqlServer":
        return cls(
            location=config.location,
            database=config.database,
            seed_example_data=config.seed_example_data,
            batch_size=config.batch_size,
        )

    def _descriptor_command(self, descriptor: flight.FlightDescriptor) -> bytes:
        if descriptor.descriptor_type != flight.DescriptorType.CMD:
            raise pa.ArrowInvalid("Only command descriptors are supported")
        return descriptor.command

    def get_flight_info(self, context, descriptor):
        info = _unwrap(self.dispatcher.get_flight_info(self._descriptor_command(descriptor)))
        endpoint = flight.FlightEndpoint(info.ticket, [])
        return flight.FlightInfo(info.schema, descriptor, [endpoint], -1, -1)

    def get_schema(self, context, descriptor):
        info = _unwrap(self.dispatcher.get_flight_info(self._descriptor_command(descriptor)))
        return flight.SchemaResult(info.schema)

    def do_get(self, context, ticket):
        reader = _unwrap(self.dispatcher.do_get(ticket.ticket))
        return flight.RecordBatchStream(reader)

    def do_put(self, context, descriptor, reader, writer):
        result = _unwrap(self.dispatcher.do_put(
            self._descriptor_command(descriptor), _iter_batches(reader)))
        if result is not None:
            writer.write(pa.py_buffer(result.to_bytes()))

    def do_action(self, context, action):
        if action.type not in ACTIONS:
            raise NotImplementedError(f"Unknown action: {action.type}")

        expected, _ = ACTIONS[action.type]
        body = action.body.to_pybytes() if action.body is not None else b""
        try:
            command = unpack_command(body)
        except InvalidArgument as e:
            raise transport_error(e)
        if not isinstance(command, expected):
            raise pa.ArrowInvalid(f"{action.type} expects a {expected.__name__} body")

        value = _unwrap(self.dispatcher.do_action(command))
        results: List[flight.Result] = []
        if value is not None:
            results.append(flight.Result(pa.py_buffer(value.to_bytes())))
        return results

    def list_actions(self, context):
        return [(name, description) for name, (_, description) in ACTIONS.items()]

    def shutdown(self):
        super().shutdown()
        self.dispatcher.close()


def main(argv=None):
    """Entry point for the sqlite-flightsql command"""
    parser = argparse.ArgumentParser(description="SQLite Flight SQL server")
    parser.add_argument("--host", help="Interface to listen on")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--database", help="SQLite database path (default :memory:)")
    parser.add_argument("--batch-size", type=int, help="Rows per record batch")
    parser.add_argument("--no-example-data", dest="seed_example_data", action="store_const",
                        const=False, default=None, help="Don't create the example tables")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--json-logs", action="store_const", const=True, default=None,
                        help="Emit JSON log lines")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    config = ServerConfig.from_env().with_overrides(
        host=args.host,
        port=args.port,
        database=args.database,
        batch_size=args.batch_size,
        seed_example_data=args.seed_example_data,
        log_level=args.log_level.upper() if args.log_level else None,
        json_logs=args.json_logs,
    )
    configure_logging(config.log_level, config.json_logs)

    server = SQLiteFlightSqlServer.from_config(config)
    logger.info("Flight SQL server listening",
                location=config.location,
                port=server.port,
                database=config.database)
    try:
        server.serve()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.shutdown()


if __name__ == "__main__":
    main()
