from __future__ import annotations

import json
import logging
import socket
from contextlib import closing
from http.server import BaseHTTPRequestHandler, HTTPServer
from threading import Thread

import pytest

from campus_remote.config import CHROME_DEFAULT_BIN, RemoteConfig
from campus_remote.http_client import HttpClientError, get_version, list_targets, page_debugger_url
from campus_remote.launcher import BrowserLauncher


def _free_port() -> int:
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_detect_binary_warns_and_falls_back(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    monkeypatch.delenv("CHROME_BIN", raising=False)
    with caplog.at_level(logging.WARNING, logger="campus.remote.config"):
        cfg = RemoteConfig.from_env()
    assert cfg.binary_path == CHROME_DEFAULT_BIN
    assert any("CHROME_BIN" in rec.getMessage() for rec in caplog.records)


def test_config_reads_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHROME_BIN", "/opt/chrome/chrome")
    monkeypatch.setenv("CAMPUS_CDP_PORT", "9333")
    monkeypatch.setenv("CAMPUS_HEADLESS", "0")
    monkeypatch.setenv("CAMPUS_BROWSER_FLAGS", "--lang=ja, --no-first-run")
    monkeypatch.setenv("CAMPUS_RPC_TIMEOUT", "12.5")
    monkeypatch.setenv("CAMPUS_CONNECT_TIMEOUT", "oops")
    cfg = RemoteConfig.from_env()
    assert cfg.binary_path == "/opt/chrome/chrome"
    assert cfg.cdp_port == 9333
    assert cfg.headless is False
    assert cfg.extra_flags == ["--lang=ja", "--no-first-run"]
    assert cfg.rpc_timeout == 12.5
    assert cfg.connect_timeout == 5.0
    assert cfg.http_endpoint == "http://127.0.0.1:9333"


def test_launcher_builds_command() -> None:
    cfg = RemoteConfig(binary_path="/usr/bin/chrome", cdp_port=9999, extra_flags=["--lang=ja"])
    cmd = BrowserLauncher(cfg).build_launch_command("https://portal.example/")
    assert cmd[0] == "/usr/bin/chrome"
    assert "--headless" in cmd
    assert "--disable-gpu" in cmd
    assert "--remote-debugging-port=9999" in cmd
    assert "--lang=ja" in cmd
    assert cmd[-1] == "https://portal.example/"

    cfg.headless = False
    assert "--headless" not in BrowserLauncher(cfg).build_launch_command()


def test_wait_port_open_times_out_on_refused_port() -> None:
    launcher = BrowserLauncher(RemoteConfig(cdp_port=_free_port()))
    with pytest.raises(TimeoutError):
        launcher.wait_port_open(timeout=0.3, interval=0.05)


def test_wait_port_open_returns_once_listening() -> None:
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as srv:
        srv.bind(("127.0.0.1", 0))
        srv.listen(1)
        launcher = BrowserLauncher(RemoteConfig(cdp_port=srv.getsockname()[1]))
        launcher.wait_port_open(timeout=2.0)


def test_stop_without_process_is_noop() -> None:
    assert BrowserLauncher(RemoteConfig()).stop() is False


def _start_devtools_server(targets: list[dict]) -> tuple[int, Thread, HTTPServer]:
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            if self.path == "/json/version":
                payload = {
                    "Browser": "HeadlessChrome/120.0",
                    "Protocol-Version": "1.3",
                    "User-Agent": "Mozilla/5.0",
                    "V8-Version": "12.0",
                    "WebKit-Version": "537.36",
                    "webSocketDebuggerUrl": "ws://127.0.0.1/devtools/browser/b",
                }
            elif self.path == "/json":
                payload = targets
            else:
                self.send_response(404)
                self.end_headers()
                return
            body = json.dumps(payload).encode()
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: object) -> None:  # noqa: A002
            return

    port = _free_port()
    server = HTTPServer(("127.0.0.1", port), Handler)
    thread = Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return port, thread, server


def test_discovery_endpoints() -> None:
    targets = [
        {"type": "service_worker", "webSocketDebuggerUrl": "ws://127.0.0.1/devtools/page/sw"},
        {"type": "page", "url": "about:blank", "webSocketDebuggerUrl": "ws://127.0.0.1/devtools/page/p1"},
    ]
    port, thread, srv = _start_devtools_server(targets)
    try:
        cfg = RemoteConfig(cdp_port=port)
        version = get_version(cfg)
        assert version.browser == "HeadlessChrome/120.0"
        assert version.protocol_version == "1.3"
        assert len(list_targets(cfg)) == 2
        assert page_debugger_url(cfg) == "ws://127.0.0.1/devtools/page/p1"
        assert BrowserLauncher(cfg).cdp_ready()
    finally:
        srv.shutdown()
        thread.join(timeout=1)


def test_no_page_target_is_an_error() -> None:
    port, thread, srv = _start_devtools_server([])
    try:
        with pytest.raises(HttpClientError):
            page_debugger_url(RemoteConfig(cdp_port=port))
    finally:
        srv.shutdown()
        thread.join(timeout=1)


def test_unreachable_endpoint_raises_http_client_error() -> None:
    with pytest.raises(HttpClientError):
        get_version(RemoteConfig(cdp_port=_free_port(), http_timeout=0.5))


# CLI


def test_cli_parser_defaults() -> None:
    from campus_remote.main import DEFAULT_URL, build_parser

    args = build_parser().parse_args([])
    assert args.url == DEFAULT_URL
    assert args.port is None
    assert args.attach is False

    args = build_parser().parse_args(["https://portal.example/", "--port", "9400", "--attach", "-v"])
    assert (args.url, args.port, args.attach, args.verbose) == ("https://portal.example/", 9400, True, True)


def test_cli_main_applies_overrides_and_maps_errors(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    from campus_remote import main as cli
    from campus_remote.errors import TransportError

    monkeypatch.setenv("CHROME_BIN", "/opt/chrome/chrome")
    seen: dict[str, object] = {}

    def fake_run(config: RemoteConfig, url: str, *, attach: bool = False) -> str:
        seen.update(port=config.cdp_port, timeout=config.rpc_timeout, url=url, attach=attach)
        return url + "home"

    monkeypatch.setattr(cli, "run", fake_run)
    assert cli.main(["https://portal.example/", "--port", "9401", "--timeout", "3", "--attach"]) == 0
    assert seen == {"port": 9401, "timeout": 3.0, "url": "https://portal.example/", "attach": True}
    assert capsys.readouterr().out.strip() == "https://portal.example/home"

    def broken_run(config: RemoteConfig, url: str, *, attach: bool = False) -> str:  # noqa: ARG001
        raise TransportError("connection closed by the browser")

    monkeypatch.setattr(cli, "run", broken_run)
    assert cli.main(["--attach"]) == 1

    def no_browser(config: RemoteConfig, url: str, *, attach: bool = False) -> str:  # noqa: ARG001
        raise FileNotFoundError(config.binary_path)

    monkeypatch.setattr(cli, "run", no_browser)
    assert cli.main([]) == 2
