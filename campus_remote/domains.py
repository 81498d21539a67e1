"""Typed wrappers for the handful of remote commands the client uses.

Every command is one request/response pair on the session: build params,
`send_command`, `await_result`, decode. A result of the wrong shape raises
ProtocolCorruption and is never retried.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from .errors import EvaluationError, ProtocolCorruption, RpcError
from .session_cdp import CdpSession


def _field(result: dict[str, Any], key: str, kind: type | tuple[type, ...], method: str) -> Any:
    value = result.get(key)
    if not isinstance(value, kind) or isinstance(value, bool) and kind is int:
        raise ProtocolCorruption(f"Unexpected value type for {method} result.{key}", result)
    return value


class _Domain:
    def __init__(self, session: CdpSession) -> None:
        self.session = session

    def _call(self, method: str, params: dict[str, Any] | None = None, timeout: float | None = None) -> dict[str, Any]:
        return self.session.call(method, params, timeout=timeout)


# Page


@dataclass(frozen=True)
class NavigateResult:
    frame_id: str
    loader_id: str | None = None


class Page(_Domain):
    def enable(self) -> None:
        self._call("Page.enable")

    def navigate(self, url: str) -> NavigateResult:
        """Ask the tab to navigate. Returns once the command is accepted, not loaded."""
        result = self._call("Page.navigate", {"url": url})
        error_text = result.get("errorText")
        if isinstance(error_text, str) and error_text:
            raise RpcError(None, -1, f"{error_text} ({url})", "Page.navigate")
        return NavigateResult(
            frame_id=_field(result, "frameId", str, "Page.navigate"),
            loader_id=result.get("loaderId") if isinstance(result.get("loaderId"), str) else None,
        )

    def get_resource_tree(self) -> dict[str, Any]:
        return _field(self._call("Page.getResourceTree"), "frameTree", dict, "Page.getResourceTree")

    def create_isolated_world(self, frame_id: str, world_name: str | None = None) -> int:
        params: dict[str, Any] = {"frameId": frame_id}
        if world_name:
            params["worldName"] = world_name
        result = self._call("Page.createIsolatedWorld", params)
        return _field(result, "executionContextId", int, "Page.createIsolatedWorld")


# DOM


def attributes_to_dict(flat: list[str]) -> dict[str, str]:
    """Pair up a DOM.getAttributes list: even indices are names, odd ones values."""
    if len(flat) % 2:
        raise ProtocolCorruption("Attribute list has an odd number of entries", flat)
    return {flat[i]: flat[i + 1] for i in range(0, len(flat), 2)}


class DOM(_Domain):
    def enable(self) -> None:
        self._call("DOM.enable")

    def get_document(self) -> Node:
        root = _field(self._call("DOM.getDocument"), "root", dict, "DOM.getDocument")
        return Node(self, _field(root, "nodeId", int, "DOM.getDocument.root"))

    def node(self, node_id: int) -> Node:
        return Node(self, node_id)

    def query_selector(self, node_id: int, selector: str) -> int:
        """Node id of the first match, 0 when nothing matches."""
        result = self._call("DOM.querySelector", {"nodeId": node_id, "selector": selector})
        return _field(result, "nodeId", int, "DOM.querySelector")

    def query_selector_all(self, node_id: int, selector: str) -> list[int]:
        result = self._call("DOM.querySelectorAll", {"nodeId": node_id, "selector": selector})
        ids = _field(result, "nodeIds", list, "DOM.querySelectorAll")
        if not all(isinstance(i, int) for i in ids):
            raise ProtocolCorruption("DOM.querySelectorAll returned a non-integer node id", result)
        return ids

    def focus(self, node_id: int) -> None:
        self._call("DOM.focus", {"nodeId": node_id})

    def get_attributes(self, node_id: int) -> list[str]:
        result = self._call("DOM.getAttributes", {"nodeId": node_id})
        attrs = _field(result, "attributes", list, "DOM.getAttributes")
        if not all(isinstance(a, str) for a in attrs):
            raise ProtocolCorruption("DOM.getAttributes returned a non-string entry", result)
        return attrs


@dataclass
class Node:
    dom: DOM
    id: int

    def query_selector(self, selector: str) -> Node:
        node_id = self.dom.query_selector(self.id, selector)
        if not node_id:
            raise LookupError(f"No element matches {selector!r}")
        return Node(self.dom, node_id)

    def query_selector_nth(self, selector: str, index: int) -> Node:
        ids = self.dom.query_selector_all(self.id, selector)
        if not 0 <= index < len(ids):
            raise LookupError(f"{selector!r} matched {len(ids)} element(s), index {index} requested")
        return Node(self.dom, ids[index])

    def query_selector_all(self, selector: str) -> list[Node]:
        return [Node(self.dom, i) for i in self.dom.query_selector_all(self.id, selector)]

    def focus(self) -> Node:
        self.dom.focus(self.id)
        return self

    def attributes(self) -> list[str]:
        return self.dom.get_attributes(self.id)

    def attribute(self, name: str) -> str | None:
        return attributes_to_dict(self.attributes()).get(name)


# Input


class KeyEventType(str, enum.Enum):
    KEY_DOWN = "keyDown"
    KEY_UP = "keyUp"
    RAW_KEY_DOWN = "rawKeyDown"
    CHAR = "char"


class Input(_Domain):
    def dispatch_key_event(self, kind: KeyEventType, text: str | None = None, *, wait: bool = True) -> None:
        params: dict[str, Any] = {"type": KeyEventType(kind).value}
        if text is not None:
            params["text"] = text
        if wait:
            self._call("Input.dispatchKeyEvent", params)
        else:
            self.session.send_command("Input.dispatchKeyEvent", params, expect_reply=False)

    def type_text(self, text: str) -> None:
        """One `char` event per character, in order."""
        for ch in text:
            self.dispatch_key_event(KeyEventType.CHAR, ch)


# Runtime


@dataclass(frozen=True)
class RemoteObject:
    type: str
    subtype: str | None = None
    value: Any = None
    description: str | None = None
    object_id: str | None = None
    class_name: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_json(cls, data: Any) -> RemoteObject:
        if not isinstance(data, dict) or not isinstance(data.get("type"), str):
            raise ProtocolCorruption("RemoteObject needs a string type", data)
        return cls(
            type=data["type"],
            subtype=data.get("subtype"),
            value=data.get("value"),
            description=data.get("description"),
            object_id=data.get("objectId"),
            class_name=data.get("className"),
            raw=data,
        )

    @property
    def is_error(self) -> bool:
        return self.subtype == "error"

    def as_str(self) -> str:
        if self.type != "string" or not isinstance(self.value, str):
            raise ProtocolCorruption(f"Expected a string value, got {self.type}", self.raw)
        return self.value


@dataclass(frozen=True)
class EvaluateResult:
    result: RemoteObject
    exception_details: dict[str, Any] | None = None

    @property
    def threw(self) -> bool:
        return self.exception_details is not None or self.result.is_error

    def raise_for_exception(self, expression: str) -> RemoteObject:
        """Return the result, or raise EvaluationError if the script threw."""
        if not self.threw:
            return self.result
        details = self.exception_details or {}
        exc = details.get("exception") if isinstance(details.get("exception"), dict) else None
        description = (
            (exc or {}).get("description") or self.result.description or details.get("text") or "exception"
        )
        raise EvaluationError(expression, str(description), details or self.result.raw)


class Runtime(_Domain):
    def enable(self) -> None:
        """Enable execution-context reporting; existing contexts are reported at once."""
        self._call("Runtime.enable")

    def disable(self) -> None:
        self._call("Runtime.disable")

    def evaluate(
        self,
        expression: str,
        context_id: int | None = None,
        *,
        return_by_value: bool = False,
        timeout: float | None = None,
    ) -> EvaluateResult:
        params: dict[str, Any] = {"expression": expression}
        if return_by_value:
            params["returnByValue"] = True
        if context_id is not None:
            params["contextId"] = context_id
        result = self._call("Runtime.evaluate", params, timeout)
        details = result.get("exceptionDetails")
        if details is not None and not isinstance(details, dict):
            raise ProtocolCorruption("Runtime.evaluate exceptionDetails must be an object", result)
        return EvaluateResult(RemoteObject.from_json(result.get("result")), details)

    def get_properties(self, object_id: str) -> list[dict[str, Any]]:
        result = self._call("Runtime.getProperties", {"objectId": object_id})
        return _field(result, "result", list, "Runtime.getProperties")


__all__ = [
    "DOM",
    "EvaluateResult",
    "Input",
    "KeyEventType",
    "NavigateResult",
    "Node",
    "Page",
    "RemoteObject",
    "Runtime",
    "attributes_to_dict",
]
