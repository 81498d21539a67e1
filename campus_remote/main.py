"""
Command-line entry point: launch (or attach to) a headless browser, open a URL
in its first tab and report where the tab ended up.
"""

from __future__ import annotations

import argparse
import logging
import sys

from .config import RemoteConfig
from .errors import CdpError
from .http_client import get_version, page_debugger_url
from .launcher import BrowserLauncher
from .remote import RemotePortal

logger = logging.getLogger("campus.remote")

DEFAULT_URL = "https://dh.force.com/digitalCampus/campusHomepage"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="campus-remote", description=__doc__)
    parser.add_argument("url", nargs="?", default=DEFAULT_URL, help="page to open")
    parser.add_argument("--port", type=int, default=None, help="remote-debugging port (default: $CAMPUS_CDP_PORT or 9222)")
    parser.add_argument("--attach", action="store_true", help="use an already running browser instead of launching one")
    parser.add_argument("--timeout", type=float, default=None, help="seconds to wait for any single reply or event")
    parser.add_argument("-v", "--verbose", action="store_true", help="log protocol traffic")
    return parser


def run(config: RemoteConfig, url: str, *, attach: bool = False) -> str:
    launcher = BrowserLauncher(config)
    try:
        if not attach:
            result = launcher.launch(url)
            logger.info(result.message)

        version = get_version(config)
        logger.info("Headless Chrome: %s :: %s", version.browser, version.protocol_version)
        logger.info("  webkit: %s", version.webkit_version)
        logger.info("  user-agent: %s", version.user_agent)

        ws_url = page_debugger_url(config)
        logger.info("Connecting %s...", ws_url)
        with RemotePortal.connect(ws_url, connect_timeout=config.connect_timeout, timeout=config.rpc_timeout) as portal:
            logger.info("  Connection established.")
            location = portal.page_location()
            if location != url:
                portal.navigate_then_sync(url)
                location = portal.page_location()
            return location
    finally:
        launcher.stop()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    config = RemoteConfig.from_env()
    if args.port is not None:
        config.cdp_port = args.port
    if args.timeout is not None:
        config.rpc_timeout = args.timeout

    try:
        location = run(config, args.url, attach=args.attach)
    except CdpError as exc:
        logger.error("%s", exc)
        return 1
    except (OSError, TimeoutError) as exc:
        logger.error("browser failed: %s", exc)
        return 2
    print(location)
    return 0


if __name__ == "__main__":
    sys.exit(main())
