"""Error taxonomy for the graph engine.

TransportFailure  -- a collaborator could not be reached or timed out.
MalformedResponse -- a collaborator returned data violating graph invariants.
InvalidFilter     -- a caller-supplied filter or option is out of range.
CodecError        -- a resource id does not follow ``kind/name[@namespace]``.
"""

from __future__ import annotations


class GraphEngineError(Exception):
    """Base class for every error raised by the graph engine."""


class TransportFailure(GraphEngineError):
    """Raised when a collaborator request fails at the transport level.

    Timeouts are transport failures too; only this error type triggers
    the fallback attempt.
    """


class MalformedResponse(GraphEngineError):
    """Raised when a collaborator payload breaks a graph invariant."""


class InvalidFilter(GraphEngineError, ValueError):
    """Raised when a filter references unknown enum values or bad limits."""


class CodecError(GraphEngineError, ValueError):
    """Raised when a resource id cannot be decoded."""

    def __init__(self, resource_id: str, reason: str) -> None:
        super().__init__(f"Invalid resource id {resource_id!r}: {reason}")
        self.resource_id = resource_id
        self.reason = reason
