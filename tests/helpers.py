from __future__ import annotations

import json
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from campus_remote.errors import TransportError


def result(msg_id: int, value: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"id": msg_id, "result": value or {}}


def error(msg_id: int | None, code: int = -32000, message: str = "boom") -> dict[str, Any]:
    frame: dict[str, Any] = {"error": {"code": code, "message": message}}
    if msg_id is not None:
        frame["id"] = msg_id
    return frame


def event(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"method": method, "params": params or {}}


def frame_navigated(frame_id: str, name: str | None = None, url: str = "https://portal.example/") -> dict[str, Any]:
    frame: dict[str, Any] = {"id": frame_id, "url": url, "loaderId": "L", "parentId": "ROOT"}
    if name is not None:
        frame["name"] = name
    return event("Page.frameNavigated", {"frame": frame})


def context_created(context_id: int, frame_id: str, *, is_default: bool = True) -> dict[str, Any]:
    return event(
        "Runtime.executionContextCreated",
        {
            "context": {
                "id": context_id,
                "origin": "https://portal.example",
                "name": "",
                "auxData": {"frameId": frame_id, "isDefault": is_default},
            }
        },
    )


def context_destroyed(context_id: int) -> dict[str, Any]:
    return event("Runtime.executionContextDestroyed", {"executionContextId": context_id})


def contexts_cleared() -> dict[str, Any]:
    return event("Runtime.executionContextsCleared")


def stopped_loading(frame_id: str) -> dict[str, Any]:
    return event("Page.frameStoppedLoading", {"frameId": frame_id})


def load_fired(ts: float = 1.0) -> dict[str, Any]:
    return event("Page.loadEventFired", {"timestamp": ts})


def string_value(value: str) -> dict[str, Any]:
    return {"result": {"type": "string", "value": value}}


class ScriptedTransport:
    """In-memory transport replaying scripted inbound frames.

    `on_send(message)` may return frames to enqueue in reply to an outbound
    command. Once the script is exhausted, receive() raises TransportError so
    a test can never block.
    """

    def __init__(
        self,
        frames: Iterable[dict[str, Any] | str] = (),
        on_send: Callable[[dict[str, Any]], Iterable[dict[str, Any] | str] | None] | None = None,
    ) -> None:
        self.inbound: deque[str] = deque()
        self.sent: list[dict[str, Any]] = []
        self.received = 0
        self.closed = False
        self.on_send = on_send
        self.feed(*frames)

    def feed(self, *frames: dict[str, Any] | str) -> None:
        for frame in frames:
            self.inbound.append(frame if isinstance(frame, str) else json.dumps(frame))

    def send(self, text: str) -> None:
        if self.closed:
            raise TransportError("closed")
        message = json.loads(text)
        self.sent.append(message)
        if self.on_send is not None:
            self.feed(*(self.on_send(message) or ()))

    def receive(self, timeout: float | None = None) -> str | None:  # noqa: ARG002
        if not self.inbound:
            raise TransportError("script exhausted")
        self.received += 1
        return self.inbound.popleft()

    def close(self) -> None:
        self.closed = True

    def methods(self) -> list[str]:
        return [m["method"] for m in self.sent]
