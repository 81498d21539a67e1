"""Error taxonomy for the remote-debugging client.

- CdpError and subclasses: runtime failures a caller may handle (retry the whole
  logical operation, report to the user, ...).
- ProtocolCorruption / ContextStateError: local faults. They mean the remote API
  contract changed or the caller broke a contract, so they are not CdpErrors and
  should not be caught by generic recovery code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class CdpError(Exception):
    """Base class for recoverable remote-debugging failures."""


class TransportError(CdpError):
    """The message stream failed (connection closed, I/O error)."""


class CdpTimeoutError(CdpError):
    """A wait did not see its terminating frame before the deadline."""


@dataclass
class RpcError(CdpError):
    """The browser answered a command with an Error frame."""

    id: int | None
    code: int
    message: str
    method: str | None = None

    def __str__(self) -> str:
        where = f" ({self.method})" if self.method else ""
        return f"RPC Error({self.code}): {self.message} in processing id {self.id}{where}"


@dataclass
class EvaluationError(CdpError):
    """A script evaluation succeeded on the wire but the script itself threw."""

    expression: str
    description: str
    remote: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        expr = self.expression if len(self.expression) <= 120 else self.expression[:117] + "..."
        return f"Error in querying browser: {self.description} (expression: {expr})"


class ProtocolCorruption(RuntimeError):
    """A received message did not match any shape expected in its context."""

    def __init__(self, reason: str, raw: Any = None) -> None:
        super().__init__(f"{reason}. the API may be corrupted")
        self.reason = reason
        self.raw = raw


class ContextStateError(RuntimeError):
    """An execution context was requested for a frame that has none attached."""


__all__ = [
    "CdpError",
    "CdpTimeoutError",
    "ContextStateError",
    "EvaluationError",
    "ProtocolCorruption",
    "RpcError",
    "TransportError",
]
