"""Session core: request/response RPC and notification delivery over one stream.

There is no background reader. Every wait (`await_result`, `await_notification`,
`drain_until`) runs the receive loop itself on the caller's thread, so
notifications reach subscribers in exactly the order the browser emitted them,
interleaved with whatever the caller happens to be waiting for.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from .errors import CdpTimeoutError, ProtocolCorruption, RpcError
from .protocol import (
    ErrorFrame,
    Event,
    InboundFrame,
    NotificationFrame,
    ResultFrame,
    decode_event,
    encode_command,
    parse_frame,
)
from .transport import Transport, WebSocketTransport

logger = logging.getLogger("campus.remote.session")

E = TypeVar("E", bound=Event)

_LOG_FRAME_LIMIT = 300
# Parked replies beyond this many usually mean ids sent with expect_reply=True
# that nobody awaits.
_PARKED_LOG_THRESHOLD = 32


def _trim(text: str) -> str:
    if len(text) <= _LOG_FRAME_LIMIT:
        return text
    return text[:_LOG_FRAME_LIMIT] + f"... ({len(text)} chars)"


def _method_of(event_type: type[Event] | str) -> str:
    if isinstance(event_type, str):
        return event_type
    return event_type.METHOD


@dataclass(frozen=True)
class Subscription:
    """Handle returned by `subscribe`; pass it back to `unsubscribe`."""

    method: str
    token: int


class CdpSession:
    """One control connection to one browser tab."""

    def __init__(self, transport: Transport, *, timeout: float | None = None) -> None:
        self.transport = transport
        self.timeout = timeout
        self._id_lock = threading.Lock()
        self._next_id = 1
        self._subs_lock = threading.Lock()
        self._subscribers: dict[str, list[tuple[int, Callable[[Any], None]]]] = {}
        self._tokens = itertools.count(1)
        # id -> method for commands whose reply somebody will await.
        self._outstanding: dict[int, str] = {}
        # id -> method for commands sent with expect_reply=False.
        self._fire_and_forget: dict[int, str] = {}
        # Replies that arrived while a different id was being awaited.
        self._parked: dict[int, ResultFrame | ErrorFrame] = {}

    @classmethod
    def connect(cls, ws_url: str, *, connect_timeout: float = 5.0, timeout: float | None = None) -> CdpSession:
        return cls(WebSocketTransport.connect(ws_url, timeout=connect_timeout), timeout=timeout)

    def __enter__(self) -> CdpSession:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────────

    def next_id(self) -> int:
        with self._id_lock:
            msg_id = self._next_id
            self._next_id += 1
            return msg_id

    @property
    def outstanding_ids(self) -> set[int]:
        return set(self._outstanding) | set(self._parked)

    def send_command(self, method: str, params: dict[str, Any] | None = None, *, expect_reply: bool = True) -> int:
        """Transmit a command and return its id without waiting for the reply.

        With `expect_reply=True` the caller owns the id and must pass it to
        `await_result` eventually; a reply that arrives earlier is parked until
        then. Use `expect_reply=False` for commands whose result is never needed.
        """
        msg_id = self.next_id()
        text = encode_command(msg_id, method, params)
        book = self._outstanding if expect_reply else self._fire_and_forget
        book[msg_id] = method
        logger.debug("send %s", _trim(text))
        try:
            self.transport.send(text)
        except Exception:
            book.pop(msg_id, None)
            raise
        return msg_id

    def call(self, method: str, params: dict[str, Any] | None = None, *, timeout: float | None = None) -> dict[str, Any]:
        """Send a command and wait for its result."""
        return self.await_result(self.send_command(method, params), timeout=timeout)

    def await_result(self, msg_id: int, *, timeout: float | None = None) -> dict[str, Any]:
        parked = self._parked.pop(msg_id, None)
        if parked is not None:
            return self._settle(parked)
        if msg_id not in self._outstanding:
            raise ValueError(f"id {msg_id} is not awaiting a reply")

        deadline = self._deadline(timeout)
        while True:
            frame = self._next_frame(deadline, waiting_for=f"reply to id {msg_id}")
            if isinstance(frame, NotificationFrame):
                self._dispatch(frame)
            elif frame.id == msg_id:
                return self._settle(frame)
            else:
                self._absorb_reply(frame)

    # ─────────────────────────────────────────────────────────────────────────
    # Notifications
    # ─────────────────────────────────────────────────────────────────────────

    def subscribe(self, event_type: type[Event] | str, callback: Callable[[Any], None]) -> Subscription:
        """Register `callback` for a notification type.

        Callbacks run synchronously on the thread draining the transport, in
        registration order, and must not block. Known notification types are
        delivered as their typed payload, unknown ones as the raw params dict.
        """
        method = _method_of(event_type)
        token = next(self._tokens)
        with self._subs_lock:
            self._subscribers.setdefault(method, []).append((token, callback))
        return Subscription(method, token)

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove one subscriber. Returns False if it was already removed."""
        with self._subs_lock:
            entries = self._subscribers.get(subscription.method)
            if not entries:
                return False
            for index, (token, _cb) in enumerate(entries):
                if token == subscription.token:
                    del entries[index]
                    if not entries:
                        del self._subscribers[subscription.method]
                    return True
        return False

    def subscriber_count(self, event_type: type[Event] | str) -> int:
        with self._subs_lock:
            return len(self._subscribers.get(_method_of(event_type), ()))

    def await_notification(
        self,
        event_type: type[E] | str,
        *,
        predicate: Callable[[Any], bool] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Run the receive loop until a notification of `event_type` arrives.

        The notification is fanned out to subscribers first and then returned.
        Any Error frame ends the wait with RpcError, whatever its id.
        """
        method = _method_of(event_type)
        deadline = self._deadline(timeout)
        while True:
            frame = self._next_frame(deadline, waiting_for=method)
            if isinstance(frame, NotificationFrame):
                payload = self._dispatch(frame, wanted=method)
                if frame.method == method and (predicate is None or predicate(payload)):
                    return payload
            elif isinstance(frame, ErrorFrame):
                raise self._error_for(frame)
            else:
                self._absorb_reply(frame)

    def drain_until(self, condition: Callable[[], bool], *, timeout: float | None = None) -> None:
        """Dispatch notifications until `condition()` holds.

        The condition is checked before the first receive and after every
        notification; subscribers are expected to flip the state it reads.
        """
        if condition():
            return
        deadline = self._deadline(timeout)
        while True:
            frame = self._next_frame(deadline, waiting_for="notification condition")
            if isinstance(frame, NotificationFrame):
                self._dispatch(frame)
                if condition():
                    return
            elif isinstance(frame, ErrorFrame):
                raise self._error_for(frame)
            else:
                self._absorb_reply(frame)

    # ─────────────────────────────────────────────────────────────────────────
    # Receive loop internals
    # ─────────────────────────────────────────────────────────────────────────

    def _deadline(self, timeout: float | None) -> float | None:
        effective = self.timeout if timeout is None else timeout
        if effective is None:
            return None
        return time.monotonic() + max(0.0, float(effective))

    def _next_frame(self, deadline: float | None, *, waiting_for: str) -> InboundFrame:
        while True:
            remaining: float | None = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise CdpTimeoutError(f"Timed out waiting for {waiting_for}")
            text = self.transport.receive(remaining)
            if text is None:
                continue
            logger.debug("recv %s", _trim(text))
            return parse_frame(text)

    def _dispatch(self, frame: NotificationFrame, wanted: str | None = None) -> Any:
        with self._subs_lock:
            snapshot = tuple(self._subscribers.get(frame.method, ()))
        if not snapshot and frame.method != wanted:
            return None
        payload = decode_event(frame)
        for token, callback in snapshot:
            # Skip subscribers removed by an earlier callback of this same dispatch.
            if not self._is_subscribed(frame.method, token):
                continue
            callback(payload)
        return payload

    def _is_subscribed(self, method: str, token: int) -> bool:
        with self._subs_lock:
            return any(t == token for t, _cb in self._subscribers.get(method, ()))

    def _settle(self, frame: ResultFrame | ErrorFrame) -> dict[str, Any]:
        if isinstance(frame, ErrorFrame):
            raise self._error_for(frame)
        self._outstanding.pop(frame.id, None)
        return frame.value

    def _error_for(self, frame: ErrorFrame) -> RpcError:
        method = None
        if frame.id is not None:
            method = self._outstanding.pop(frame.id, None) or self._fire_and_forget.pop(frame.id, None)
            self._parked.pop(frame.id, None)
        return RpcError(frame.id, frame.code, frame.message, method)

    def _absorb_reply(self, frame: ResultFrame | ErrorFrame) -> None:
        """Handle a reply that is not the one currently awaited."""
        rid = frame.id
        if rid is not None and rid in self._fire_and_forget:
            if isinstance(frame, ErrorFrame):
                raise self._error_for(frame)
            method = self._fire_and_forget.pop(rid)
            logger.debug("discarding result of fire-and-forget id %s (%s)", rid, method)
            return
        if rid is not None and rid in self._outstanding and rid not in self._parked:
            self._parked[rid] = frame
            if len(self._parked) % _PARKED_LOG_THRESHOLD == 0:
                logger.debug("%d replies parked and not yet awaited (ids %s)", len(self._parked), sorted(self._parked))
            return
        if isinstance(frame, ErrorFrame):
            raise self._error_for(frame)
        raise ProtocolCorruption(f"Result for id {rid} which no caller is awaiting", frame)


__all__ = ["CdpSession", "Subscription"]
