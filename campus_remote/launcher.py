from __future__ import annotations

import contextlib
import logging
import socket
import subprocess
import time
from dataclasses import dataclass
from urllib.error import URLError
from urllib.request import urlopen

from .config import RemoteConfig

logger = logging.getLogger("campus.remote.launcher")


@dataclass
class LaunchResult:
    command: list[str]
    started: bool
    message: str


class BrowserLauncher:
    """Starts (and owns) a headless browser with a remote-debugging port."""

    def __init__(self, config: RemoteConfig | None = None) -> None:
        self.config = config or RemoteConfig.from_env()
        self.process: subprocess.Popen | None = None

    def __enter__(self) -> BrowserLauncher:
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    def build_launch_command(self, initial_url: str | None = None) -> list[str]:
        cmd = [self.config.binary_path]
        if self.config.headless:
            cmd.append("--headless")
        cmd += [
            "--disable-gpu",
            f"--remote-debugging-port={self.config.cdp_port}",
            "--remote-allow-origins=*",
        ]
        cmd += self.config.extra_flags
        if initial_url:
            cmd.append(initial_url)
        return cmd

    def cdp_ready(self, timeout: float = 0.4) -> bool:
        """Return True if the CDP HTTP endpoint responds."""
        endpoint = f"{self.config.http_endpoint}/json/version"
        try:
            with urlopen(endpoint, timeout=timeout) as resp:
                return resp.status == 200
        except (OSError, TimeoutError, URLError):
            return False

    def launch(self, initial_url: str | None = None, timeout: float = 10.0) -> LaunchResult:
        if self.cdp_ready():
            return LaunchResult([], False, "Chrome already listening on CDP port")

        cmd = self.build_launch_command(initial_url)
        logger.info("[Headless Chrome] Launching %s...", cmd)
        self.process = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        try:
            self.wait_port_open(timeout=timeout)
        except Exception:
            self.stop()
            raise
        return LaunchResult(cmd, True, f"Chrome started on CDP port {self.config.cdp_port}")

    def wait_port_open(self, timeout: float = 10.0, interval: float = 0.1) -> None:
        """Poll until the debugging port accepts TCP connections.

        Connection refused means "not yet"; any other socket error is raised.
        """
        deadline = time.monotonic() + timeout
        while True:
            try:
                with socket.create_connection(("127.0.0.1", self.config.cdp_port), timeout=interval * 5) as conn:
                    with contextlib.suppress(OSError):
                        conn.shutdown(socket.SHUT_RDWR)
                return
            except ConnectionRefusedError:
                pass
            if self.process is not None and self.process.poll() is not None:
                raise ChildProcessError(f"Browser exited with code {self.process.returncode} before opening its port")
            if time.monotonic() >= deadline:
                raise TimeoutError(f"CDP port {self.config.cdp_port} did not open within {timeout:.1f}s")
            time.sleep(interval)

    def stop(self, *, timeout: float = 2.0) -> bool:
        """Best-effort stop of the launcher-owned browser process."""
        proc = self.process
        if proc is None:
            return False
        self.process = None
        if proc.poll() is not None:
            return True

        with contextlib.suppress(OSError):
            proc.terminate()
        try:
            proc.wait(timeout=max(0.1, float(timeout)))
        except subprocess.TimeoutExpired:
            # Escalate to kill.
            with contextlib.suppress(OSError):
                proc.kill()
            with contextlib.suppress(subprocess.TimeoutExpired):
                proc.wait(timeout=1.0)
        return True


__all__ = ["BrowserLauncher", "LaunchResult"]
