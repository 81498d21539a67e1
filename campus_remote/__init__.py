"""Remote-debugging client for driving the campus portal in a headless browser.

The package is split into focused modules:
- transport.py: ordered text-message channel (WebSocket)
- protocol.py: wire frames and typed notification payloads
- session_cdp.py: request/response correlation and notification dispatch
- contexts.py: per-frame execution-context tracking
- domains.py: typed Page/DOM/Input/Runtime commands
- remote.py: navigation helpers and frame-page handles
- config.py, http_client.py, launcher.py: browser discovery and startup
- main.py: command-line entry point

This module is the stable import surface (re-exports).
"""

from __future__ import annotations

from .config import RemoteConfig
from .contexts import MAIN_FRAME, MENU_FRAME, FrameContextTracker, ScriptContextState
from .domains import DOM, EvaluateResult, Input, KeyEventType, Node, Page, RemoteObject, Runtime
from .errors import (
    CdpError,
    CdpTimeoutError,
    ContextStateError,
    EvaluationError,
    ProtocolCorruption,
    RpcError,
    TransportError,
)
from .protocol import (
    ExecutionContextCreated,
    ExecutionContextDestroyed,
    ExecutionContextsCleared,
    FrameNavigated,
    FrameStoppedLoading,
    LoadEventFired,
)
from .remote import FramePage, RemotePortal
from .session_cdp import CdpSession, Subscription
from .transport import Transport, WebSocketTransport

__all__ = [
    "DOM",
    "MAIN_FRAME",
    "MENU_FRAME",
    "CdpError",
    "CdpSession",
    "CdpTimeoutError",
    "ContextStateError",
    "EvaluateResult",
    "EvaluationError",
    "ExecutionContextCreated",
    "ExecutionContextDestroyed",
    "ExecutionContextsCleared",
    "FrameContextTracker",
    "FrameNavigated",
    "FramePage",
    "FrameStoppedLoading",
    "Input",
    "KeyEventType",
    "LoadEventFired",
    "Node",
    "Page",
    "ProtocolCorruption",
    "RemoteConfig",
    "RemoteObject",
    "RemotePortal",
    "RpcError",
    "Runtime",
    "ScriptContextState",
    "Subscription",
    "Transport",
    "TransportError",
    "WebSocketTransport",
]
