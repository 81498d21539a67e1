from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger("campus.remote.config")

if sys.platform.startswith("win"):
    CHROME_DEFAULT_BIN = r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe"
else:
    CHROME_DEFAULT_BIN = "google-chrome-stable"

DEFAULT_CDP_PORT = 9222


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %s", name, raw, default)
        return default


@dataclass
class RemoteConfig:
    binary_path: str = CHROME_DEFAULT_BIN
    cdp_port: int = DEFAULT_CDP_PORT
    headless: bool = True
    extra_flags: list[str] = field(default_factory=list)
    connect_timeout: float = 5.0
    rpc_timeout: float | None = None
    http_timeout: float = 2.0

    @property
    def http_endpoint(self) -> str:
        return f"http://127.0.0.1:{self.cdp_port}"

    @classmethod
    def detect_binary(cls) -> str:
        env_path = os.environ.get("CHROME_BIN")
        if env_path:
            return expand_path(env_path)
        logger.warning('$CHROME_BIN is not set, defaulting to "%s"', CHROME_DEFAULT_BIN)
        return CHROME_DEFAULT_BIN

    @classmethod
    def from_env(cls) -> RemoteConfig:
        flags_raw = os.environ.get("CAMPUS_BROWSER_FLAGS", "")
        extra_flags = [flag.strip() for flag in flags_raw.split(",") if flag.strip()]
        connect_timeout = _env_float("CAMPUS_CONNECT_TIMEOUT", 5.0)
        http_timeout = _env_float("CAMPUS_HTTP_TIMEOUT", 2.0)
        return cls(
            binary_path=cls.detect_binary(),
            cdp_port=_env_int("CAMPUS_CDP_PORT", DEFAULT_CDP_PORT),
            headless=os.environ.get("CAMPUS_HEADLESS", "1") != "0",
            extra_flags=extra_flags,
            connect_timeout=connect_timeout if connect_timeout is not None else 5.0,
            rpc_timeout=_env_float("CAMPUS_RPC_TIMEOUT", None),
            http_timeout=http_timeout if http_timeout is not None else 2.0,
        )
