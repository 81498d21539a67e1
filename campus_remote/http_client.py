"""Discovery endpoints of the browser's debugging port (`/json`, `/json/version`)."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen

from .config import RemoteConfig
from .errors import CdpError


class HttpClientError(CdpError):
    pass


def http_get_json(url: str, timeout: float = 2.0) -> Any:
    """Fetch JSON from URL."""
    req = Request(url, headers={"User-Agent": "campus-remote/1.0"})
    try:
        with urlopen(req, timeout=timeout) as resp:
            raw = resp.read()
    except (TimeoutError, URLError, OSError) as exc:
        raise HttpClientError(str(exc)) from exc
    try:
        return json.loads(raw.decode(errors="replace"))
    except json.JSONDecodeError as exc:
        raise HttpClientError(f"Invalid JSON from {url}: {exc}") from exc


@dataclass
class BrowserVersion:
    """`json/version` response."""

    protocol_version: str
    webkit_version: str
    browser: str
    user_agent: str
    v8_version: str
    websocket_url: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> BrowserVersion:
        if not isinstance(data, dict):
            raise HttpClientError("json/version: expected an object")
        return cls(
            protocol_version=str(data.get("Protocol-Version", "")),
            webkit_version=str(data.get("WebKit-Version", "")),
            browser=str(data.get("Browser", "")),
            user_agent=str(data.get("User-Agent", "")),
            v8_version=str(data.get("V8-Version", "")),
            websocket_url=data.get("webSocketDebuggerUrl"),
        )


def get_version(config: RemoteConfig) -> BrowserVersion:
    return BrowserVersion.from_json(http_get_json(f"{config.http_endpoint}/json/version", config.http_timeout))


def list_targets(config: RemoteConfig) -> list[dict[str, Any]]:
    """List debuggable targets (tabs, workers, ...)."""
    data = http_get_json(f"{config.http_endpoint}/json", config.http_timeout)
    if not isinstance(data, list):
        raise HttpClientError("json: expected an array of targets")
    return [t for t in data if isinstance(t, dict)]


def page_debugger_url(config: RemoteConfig) -> str:
    """Return the WebSocket URL of the first page target."""
    for target in list_targets(config):
        if target.get("type", "page") != "page":
            continue
        ws_url = target.get("webSocketDebuggerUrl")
        if isinstance(ws_url, str) and ws_url:
            return ws_url
    raise HttpClientError(f"No debuggable page target on port {config.cdp_port}")


__all__ = [
    "BrowserVersion",
    "HttpClientError",
    "get_version",
    "http_get_json",
    "list_targets",
    "page_debugger_url",
]
