"""
Error taxonomy for the Flight SQL command layer.

Every failure a command can produce is one of three kinds:

- NotFound: unknown, already-closed or malformed prepared statement handle
- InvalidArgument: SQL rejected at compile time, unsupported bind value type,
  malformed ticket or command payload
- EngineError: execution-time failure reported by SQLite (message verbatim)

The dispatcher returns these as the result of the failing command; the
transport adapter turns them into Flight status codes.
"""

from typing import Any, Dict, Optional


class FlightSqlError(Exception):
    """Base class for command failures returned to Flight SQL clients"""

    code = "INTERNAL"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'message': self.message,
            'details': dict(self.details),
        }


class NotFound(FlightSqlError):
    code = "NOT_FOUND"


class InvalidArgument(FlightSqlError):
    code = "INVALID_ARGUMENT"


class EngineError(FlightSqlError):
    code = "ENGINE_ERROR"
