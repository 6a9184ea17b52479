"""
Flight SQL Command Vocabulary and Ticket Encoding

Each request the server answers is one of the frozen dataclasses below.
Commands travel in FlightDescriptor.command, in Action bodies and in Tickets
as a self-describing byte string produced by pack_command(): a UTF-8 JSON
object whose "@type" member names the command and whose remaining members are
the command's present fields. Absent optional filters are omitted entirely,
so an empty-string filter and a missing filter stay distinguishable.

Wire results that are not row streams (update counts, prepared statement
creation) are also defined here.
"""

import base64
import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple, Type, Union

import pyarrow as pa
import pyarrow.ipc  # noqa: F401

from .errors import InvalidArgument

TYPE_URL_PREFIX = "type.sqlite-flightsql/"


@dataclass(frozen=True)
class GetCatalogs:
    pass


@dataclass(frozen=True)
class GetSchemas:
    catalog: Optional[str] = None
    schema_filter_pattern: Optional[str] = None


@dataclass(frozen=True)
class GetTables:
    catalog: Optional[str] = None
    schema_filter_pattern: Optional[str] = None
    table_name_filter_pattern: Optional[str] = None
    table_types: Tuple[str, ...] = ()
    include_schema: bool = False


@dataclass(frozen=True)
class GetTableTypes:
    pass


@dataclass(frozen=True)
class GetPrimaryKeys:
    table: str
    catalog: Optional[str] = None
    schema: Optional[str] = None


@dataclass(frozen=True)
class GetImportedKeys:
    table: str
    catalog: Optional[str] = None
    schema: Optional[str] = None


@dataclass(frozen=True)
class GetExportedKeys:
    table: str
    catalog: Optional[str] = None
    schema: Optional[str] = None


@dataclass(frozen=True)
class GetSqlInfo:
    info: Tuple[int, ...] = ()


@dataclass(frozen=True)
class StatementQuery:
    query: str


@dataclass(frozen=True)
class StatementUpdate:
    query: str


@dataclass(frozen=True)
class PreparedStatementCreate:
    query: str


@dataclass(frozen=True)
class PreparedStatementClose:
    prepared_statement_handle: str


@dataclass(frozen=True)
class PreparedStatementQuery:
    prepared_statement_handle: str


@dataclass(frozen=True)
class PreparedStatementUpdate:
    prepared_statement_handle: str


Command = Union[
    GetCatalogs, GetSchemas, GetTables, GetTableTypes, GetPrimaryKeys,
    GetImportedKeys, GetExportedKeys, GetSqlInfo, StatementQuery,
    StatementUpdate, PreparedStatementCreate, PreparedStatementClose,
    PreparedStatementQuery, PreparedStatementUpdate,
]

# Wire names follow the Flight SQL protobuf message names
COMMAND_TYPE_NAMES: Dict[Type, str] = {
    GetCatalogs: "CommandGetCatalogs",
    GetSchemas: "CommandGetDbSchemas",
    GetTables: "CommandGetTables",
    GetTableTypes: "CommandGetTableTypes",
    GetPrimaryKeys: "CommandGetPrimaryKeys",
    GetImportedKeys: "CommandGetImportedKeys",
    GetExportedKeys: "CommandGetExportedKeys",
    GetSqlInfo: "CommandGetSqlInfo",
    StatementQuery: "CommandStatementQuery",
    StatementUpdate: "CommandStatementUpdate",
    PreparedStatementCreate: "ActionCreatePreparedStatementRequest",
    PreparedStatementClose: "ActionClosePreparedStatementRequest",
    PreparedStatementQuery: "CommandPreparedStatementQuery",
    PreparedStatementUpdate: "CommandPreparedStatementUpdate",
}

_COMMANDS_BY_TYPE_URL = {TYPE_URL_PREFIX + name: cls for cls, name in COMMAND_TYPE_NAMES.items()}

# Fields carried as JSON arrays on the wire and tuples in the dataclass
_SEQUENCE_FIELDS = {'table_types': str, 'info': int}


def type_url(command: Command) -> str:
    """Self-describing type name of a command instance"""
    try:
        return TYPE_URL_PREFIX + COMMAND_TYPE_NAMES[type(command)]
    except KeyError:
        raise InvalidArgument(f"Unsupported command type: {type(command).__name__}")


def pack_command(command: Command) -> bytes:
    """
    Serialize a command into its ticket/descriptor byte string.

    Args:
        command: Any Command dataclass instance

    Returns:
        UTF-8 JSON bytes; identical commands always pack to identical bytes
    """
    payload: Dict[str, Any] = {'@type': type_url(command)}
    for f in fields(command):
        value = getattr(command, f.name)
        if value is None:
            continue
        if isinstance(value, tuple):
            value = list(value)
        payload[f.name] = value
    return json.dumps(payload, sort_keys=True, separators=(',', ':')).encode('utf-8')


def unpack_command(data: Union[bytes, bytearray, memoryview, str]) -> Command:
    """
    Rebuild a command from the bytes produced by pack_command().

    Raises:
        InvalidArgument: payload is not valid JSON, names an unknown command,
            carries unknown fields or lacks required ones
    """
    if isinstance(data, memoryview):
        data = data.tobytes()
    try:
        text = data.decode('utf-8') if isinstance(data, (bytes, bytearray)) else data
        payload = json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidArgument(f"Malformed command payload: {e}")

    if not isinstance(payload, dict):
        raise InvalidArgument("Malformed command payload: expected a JSON object")

    url = payload.pop('@type', None)
    cls = _COMMANDS_BY_TYPE_URL.get(url)
    if cls is None:
        raise InvalidArgument(f"Unknown command type: {url!r}")

    known = {f.name for f in fields(cls)}
    unexpected = sorted(set(payload) - known)
    if unexpected:
        raise InvalidArgument(f"Unknown fields for {COMMAND_TYPE_NAMES[cls]}: {', '.join(unexpected)}")

    for name, item_type in _SEQUENCE_FIELDS.items():
        if name in payload:
            values = payload[name]
            if not isinstance(values, list) or not all(isinstance(v, item_type) for v in values):
                raise InvalidArgument(f"Field {name} must be a list of {item_type.__name__}")
            payload[name] = tuple(values)

    try:
        return cls(**payload)
    except TypeError as e:
        raise InvalidArgument(f"Malformed {COMMAND_TYPE_NAMES[cls]}: {e}")


@dataclass(frozen=True)
class UpdateResult:
    """Record count returned on the DoPut metadata channel"""

    record_count: int

    def to_bytes(self) -> bytes:
        return json.dumps({'record_count': self.record_count}).encode('utf-8')

    @classmethod
    def from_bytes(cls, data: bytes) -> "UpdateResult":
        try:
            return cls(record_count=int(json.loads(data.decode('utf-8'))['record_count']))
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            raise InvalidArgument(f"Malformed update result: {e}")


@dataclass(frozen=True)
class PreparedStatementCreateResult:
    """Handle plus derived schemas returned by CreatePreparedStatement"""

    prepared_statement_handle: str
    dataset_schema: pa.Schema = field(compare=False)
    parameter_schema: pa.Schema = field(compare=False)

    def to_bytes(self) -> bytes:
        return json.dumps({
            'prepared_statement_handle': self.prepared_statement_handle,
            'dataset_schema': _encode_schema(self.dataset_schema),
            'parameter_schema': _encode_schema(self.parameter_schema),
        }, sort_keys=True).encode('utf-8')

    @classmethod
    def from_bytes(cls, data: bytes) -> "PreparedStatementCreateResult":
        try:
            payload = json.loads(data.decode('utf-8'))
            return cls(
                prepared_statement_handle=payload['prepared_statement_handle'],
                dataset_schema=_decode_schema(payload['dataset_schema']),
                parameter_schema=_decode_schema(payload['parameter_schema']),
            )
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            raise InvalidArgument(f"Malformed prepared statement result: {e}")


def _encode_schema(schema: pa.Schema) -> str:
    return base64.b64encode(schema.serialize().to_pybytes()).decode('ascii')


def _decode_schema(text: str) -> pa.Schema:
    return pa.ipc.read_schema(pa.py_buffer(base64.b64decode(text)))
