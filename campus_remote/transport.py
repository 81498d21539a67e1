"""Ordered text-message channel to one browser tab.

The transport knows nothing about the protocol carried on top of it: it moves
complete text frames in both directions and reports failures as TransportError.
"""

from __future__ import annotations

import logging
import socket
from contextlib import suppress
from typing import Protocol

import websocket

from .errors import TransportError

logger = logging.getLogger("campus.remote.transport")


class Transport(Protocol):
    def send(self, text: str) -> None: ...

    def receive(self, timeout: float | None = None) -> str | None:
        """Return the next text frame, or None when `timeout` elapsed first."""
        ...

    def close(self) -> None: ...


class WebSocketTransport:
    """Low-level CDP WebSocket connection."""

    def __init__(self, ws: websocket.WebSocket, ws_url: str = "") -> None:
        self.ws = ws
        self.ws_url = ws_url
        self._closed = False
        self._released = False

    @classmethod
    def connect(cls, ws_url: str, timeout: float = 5.0) -> WebSocketTransport:
        try:
            ws = websocket.create_connection(ws_url, timeout=timeout, suppress_origin=True)
        except (websocket.WebSocketException, OSError) as exc:
            raise TransportError(f"Failed to connect {ws_url}: {exc}") from exc
        # create_connection's timeout also bounds recv(); reads are unbounded unless
        # receive() is given an explicit timeout.
        ws.settimeout(None)
        logger.debug("connected %s", ws_url)
        return cls(ws, ws_url)

    def send(self, text: str) -> None:
        if self._closed:
            raise TransportError("send on a closed transport")
        try:
            self.ws.send(text)
        except (websocket.WebSocketException, OSError) as exc:
            raise TransportError(str(exc)) from exc

    def receive(self, timeout: float | None = None) -> str | None:
        if self._closed:
            raise TransportError("receive on a closed transport")
        while True:
            try:
                self.ws.settimeout(timeout)
                opcode, data = self.ws.recv_data()
            except (websocket.WebSocketTimeoutException, TimeoutError, socket.timeout):
                return None
            except (websocket.WebSocketException, OSError) as exc:
                raise TransportError(str(exc)) from exc

            if opcode == websocket.ABNF.OPCODE_CLOSE:
                self._closed = True
                self._release_socket()
                raise TransportError("connection closed by the browser")
            if opcode != websocket.ABNF.OPCODE_TEXT:
                # Binary frames carry nothing for us.
                continue
            if isinstance(data, bytes):
                return data.decode("utf-8")
            return data

    def close(self) -> None:
        """Shut the socket down without a close handshake."""
        self._closed = True
        self._release_socket()

    def _release_socket(self) -> None:
        if self._released:
            return
        self._released = True
        sock = getattr(self.ws, "sock", None)
        if sock is not None:
            with suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
            with suppress(OSError):
                sock.close()


__all__ = ["Transport", "WebSocketTransport"]
