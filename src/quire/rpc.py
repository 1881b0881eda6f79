"""JSON-RPC 2.0 envelope for the quire server.

Requests and responses travel as one JSON object per line: requests are
read from stdin and responses written to stdout. Domain failures reach the
client as an RpcError whose code comes from ``quire.errors.ERROR_CODES``.
"""

from __future__ import annotations

import json
import sys
from typing import Any, TextIO

# A decoded request or response object
JSON = dict[str, Any]


class RpcError(Exception):
    """Error object carried in a response's ``error`` member."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> JSON:
        """The ``error`` member of a response."""
        result: JSON = {"code": self.code, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        return result


# Protocol-level codes; domain codes live in errors.ERROR_CODES
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def jsonrpc_error(request_id: str | int | None, error: RpcError) -> JSON:
    """Build a JSON-RPC 2.0 error response."""
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": error.to_dict(),
    }


def jsonrpc_result(request_id: str | int | None, result: Any) -> JSON:
    """Build a JSON-RPC 2.0 success response."""
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "result": result,
    }


def readline(stream: TextIO | None = None) -> str | None:
    """Read a line, returning None on EOF."""
    line = (stream or sys.stdin).readline()
    if not line:
        return None
    return line.strip()


def write(response: JSON, stream: TextIO | None = None) -> None:
    """Write one JSON-RPC response line."""
    out = stream or sys.stdout
    try:
        out.write(json.dumps(response) + "\n")
        out.flush()
    except BrokenPipeError:
        # Client went away; nothing left to answer
        sys.exit(0)
