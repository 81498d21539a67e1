"""Wire shapes of the remote-debugging protocol.

Outbound:  {"id": <uint>, "method": "Domain.command", "params": {...}}
Inbound:   {"id": <uint>, "result": {...}}
           {"id": <uint>, "error": {"code": <int>, "message": "..."}}
           {"method": "Domain.event", "params": {...}}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from .errors import ProtocolCorruption


@dataclass(frozen=True)
class ResultFrame:
    id: int
    value: dict[str, Any]


@dataclass(frozen=True)
class ErrorFrame:
    id: int | None
    code: int
    message: str
    data: Any = None


@dataclass(frozen=True)
class NotificationFrame:
    method: str
    params: dict[str, Any] = field(default_factory=dict)


InboundFrame = Union[ResultFrame, ErrorFrame, NotificationFrame]


def _is_uint(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def parse_frame(text: str) -> InboundFrame:
    """Classify one received text frame; anything ambiguous is corruption."""
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProtocolCorruption(f"Invalid JSON format ({exc.msg})", text) from exc
    if not isinstance(obj, dict):
        raise ProtocolCorruption("Inbound frame is not a JSON object", text)

    has_id = "id" in obj
    if "method" in obj:
        if has_id or "result" in obj or "error" in obj:
            raise ProtocolCorruption("Frame mixes notification and response fields", text)
        method = obj["method"]
        params = obj.get("params", {})
        if not isinstance(method, str) or not method:
            raise ProtocolCorruption("Notification method must be a non-empty string", text)
        if not isinstance(params, dict):
            raise ProtocolCorruption(f"Notification params of {method} must be an object", text)
        return NotificationFrame(method, params)

    if "result" in obj and "error" in obj:
        raise ProtocolCorruption("Frame carries both result and error", text)

    if "error" in obj:
        err = obj["error"]
        rid = obj.get("id")
        if rid is not None and not _is_uint(rid):
            raise ProtocolCorruption("Error frame id must be an unsigned integer", text)
        if not isinstance(err, dict):
            raise ProtocolCorruption("Error payload must be an object", text)
        code = err.get("code")
        message = err.get("message")
        if not isinstance(code, int) or isinstance(code, bool) or not isinstance(message, str):
            raise ProtocolCorruption("Error payload needs an integer code and a string message", text)
        return ErrorFrame(rid, code, message, err.get("data"))

    if "result" in obj:
        rid = obj.get("id")
        if not _is_uint(rid):
            raise ProtocolCorruption("Result frame id must be an unsigned integer", text)
        value = obj["result"]
        if not isinstance(value, dict):
            raise ProtocolCorruption("Result payload must be an object", text)
        return ResultFrame(rid, value)

    raise ProtocolCorruption("Frame is neither a response nor a notification", text)


def encode_command(msg_id: int, method: str, params: dict[str, Any] | None = None) -> str:
    msg: dict[str, Any] = {"id": msg_id, "method": method}
    if params:
        msg["params"] = params
    return json.dumps(msg, ensure_ascii=False)


# Field accessors used by the typed payloads below. Each raises ProtocolCorruption
# naming the event and field that did not match.


def _req(params: dict[str, Any], key: str, kind: type | tuple[type, ...], event: str) -> Any:
    value = params.get(key)
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ProtocolCorruption(f"Unexpected value type for {event}.{key}", params)
    return value


def _opt(params: dict[str, Any], key: str, kind: type | tuple[type, ...], event: str) -> Any:
    if params.get(key) is None:
        return None
    return _req(params, key, kind, event)


class Event:
    METHOD: ClassVar[str]

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> Event:
        raise NotImplementedError


@dataclass(frozen=True)
class LoadEventFired(Event):
    METHOD: ClassVar[str] = "Page.loadEventFired"
    timestamp: float

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> LoadEventFired:
        return cls(float(_req(params, "timestamp", (int, float), cls.METHOD)))


@dataclass(frozen=True)
class FrameNavigated(Event):
    METHOD: ClassVar[str] = "Page.frameNavigated"
    frame_id: str
    url: str
    name: str | None = None
    parent_id: str | None = None

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> FrameNavigated:
        frame = _req(params, "frame", dict, cls.METHOD)
        return cls(
            frame_id=_req(frame, "id", str, cls.METHOD + ".frame"),
            url=_req(frame, "url", str, cls.METHOD + ".frame"),
            name=_opt(frame, "name", str, cls.METHOD + ".frame"),
            parent_id=_opt(frame, "parentId", str, cls.METHOD + ".frame"),
        )


@dataclass(frozen=True)
class FrameStoppedLoading(Event):
    METHOD: ClassVar[str] = "Page.frameStoppedLoading"
    frame_id: str

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> FrameStoppedLoading:
        return cls(_req(params, "frameId", str, cls.METHOD))


@dataclass(frozen=True)
class ExecutionContextCreated(Event):
    METHOD: ClassVar[str] = "Runtime.executionContextCreated"
    context_id: int
    name: str = ""
    origin: str = ""
    frame_id: str | None = None
    is_default: bool | None = None

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> ExecutionContextCreated:
        ctx = _req(params, "context", dict, cls.METHOD)
        where = cls.METHOD + ".context"
        aux = _opt(ctx, "auxData", dict, where) or {}
        return cls(
            context_id=_req(ctx, "id", int, where),
            name=_opt(ctx, "name", str, where) or "",
            origin=_opt(ctx, "origin", str, where) or "",
            frame_id=_opt(aux, "frameId", str, where + ".auxData"),
            is_default=_opt(aux, "isDefault", bool, where + ".auxData"),
        )


@dataclass(frozen=True)
class ExecutionContextDestroyed(Event):
    METHOD: ClassVar[str] = "Runtime.executionContextDestroyed"
    context_id: int

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> ExecutionContextDestroyed:
        return cls(_req(params, "executionContextId", int, cls.METHOD))


@dataclass(frozen=True)
class ExecutionContextsCleared(Event):
    METHOD: ClassVar[str] = "Runtime.executionContextsCleared"

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> ExecutionContextsCleared:  # noqa: ARG003
        return cls()


@dataclass(frozen=True)
class DocumentUpdated(Event):
    METHOD: ClassVar[str] = "DOM.documentUpdated"

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> DocumentUpdated:  # noqa: ARG003
        return cls()


EVENT_TYPES: dict[str, type[Event]] = {
    t.METHOD: t
    for t in (
        LoadEventFired,
        FrameNavigated,
        FrameStoppedLoading,
        ExecutionContextCreated,
        ExecutionContextDestroyed,
        ExecutionContextsCleared,
        DocumentUpdated,
    )
}


def decode_event(frame: NotificationFrame) -> Event | dict[str, Any]:
    """Typed payload for known notifications, raw params otherwise."""
    event_type = EVENT_TYPES.get(frame.method)
    if event_type is None:
        return frame.params
    return event_type.from_params(frame.params)


__all__ = [
    "EVENT_TYPES",
    "DocumentUpdated",
    "ErrorFrame",
    "Event",
    "ExecutionContextCreated",
    "ExecutionContextDestroyed",
    "ExecutionContextsCleared",
    "FrameNavigated",
    "FrameStoppedLoading",
    "InboundFrame",
    "LoadEventFired",
    "NotificationFrame",
    "ResultFrame",
    "decode_event",
    "encode_command",
    "parse_frame",
]
