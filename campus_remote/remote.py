"""Navigation helpers for driving portal pages.

RemotePortal bundles a session with its domain wrappers and adds the
sequencing helpers page walkers need (click and wait for load, follow an
anchor's href, type into a field). FramePage is the handle for framesets whose
content lives in named sub-frames: it owns a FrameContextTracker so scripts
run in the frame's current document.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .contexts import MAIN_FRAME, MENU_FRAME, FrameContextTracker
from .domains import DOM, Input, KeyEventType, Node, Page, RemoteObject, Runtime
from .errors import ContextStateError
from .protocol import LoadEventFired
from .session_cdp import CdpSession

logger = logging.getLogger("campus.remote.portal")


def js_string(value: str) -> str:
    """Quote a Python string as a JavaScript string literal."""
    return json.dumps(value, ensure_ascii=False)


class RemotePortal:
    """High-level controller for one connected browser tab."""

    def __init__(self, session: CdpSession) -> None:
        self.session = session
        self.page = Page(session)
        self.dom = DOM(session)
        self.input = Input(session)
        self.runtime = Runtime(session)

    @classmethod
    def connect(cls, ws_url: str, *, connect_timeout: float = 5.0, timeout: float | None = None) -> RemotePortal:
        """Connect to a tab and enable the Page, DOM and Runtime domains."""
        portal = cls(CdpSession.connect(ws_url, connect_timeout=connect_timeout, timeout=timeout))
        try:
            portal.enable_domains()
        except Exception:
            portal.close()
            raise
        return portal

    def enable_domains(self) -> None:
        self.page.enable()
        self.dom.enable()
        self.runtime.enable()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> RemotePortal:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Script evaluation
    # ─────────────────────────────────────────────────────────────────────────

    def query(self, expression: str, context_id: int | None = None) -> RemoteObject:
        """Evaluate for side effects; raises EvaluationError if the script threw."""
        return self.runtime.evaluate(expression, context_id).raise_for_exception(expression)

    def query_value(self, expression: str, context_id: int | None = None) -> RemoteObject:
        """Evaluate and return the result by value."""
        return self.runtime.evaluate(expression, context_id, return_by_value=True).raise_for_exception(expression)

    def query_json(self, expression: str, context_id: int | None = None) -> Any:
        """Evaluate `JSON.stringify(expression)` and decode the result."""
        raw = self.query_value(f"JSON.stringify({expression})", context_id).as_str()
        return json.loads(raw)

    def page_location(self, context_id: int | None = None) -> str:
        return self.query_value("location.href", context_id).as_str()

    # ─────────────────────────────────────────────────────────────────────────
    # Clicking and navigation
    # ─────────────────────────────────────────────────────────────────────────

    def click_element(self, selector: str, context_id: int | None = None) -> RemotePortal:
        self.query(f"document.querySelector({js_string(selector)}).click()", context_id)
        return self

    def click_nth_element(self, selector: str, index: int, context_id: int | None = None) -> RemotePortal:
        self.query(f"document.querySelectorAll({js_string(selector)})[{int(index)}].click()", context_id)
        return self

    def wait_loading(self, *, timeout: float | None = None) -> RemotePortal:
        """Block until the next full-page load event."""
        self.session.await_notification(LoadEventFired, timeout=timeout)
        return self

    def click_then_sync(self, selector: str, context_id: int | None = None, *, timeout: float | None = None) -> RemotePortal:
        return self.click_element(selector, context_id).wait_loading(timeout=timeout)

    def navigate(self, url: str) -> RemotePortal:
        self.page.navigate(url)
        return self

    def navigate_then_sync(self, url: str, *, timeout: float | None = None) -> RemotePortal:
        return self.navigate(url).wait_loading(timeout=timeout)

    def jump_to_anchor_href(self, selector: str) -> RemotePortal:
        """Follow the href of the first element matching `selector`."""
        return self._jump_to(self.dom.get_document().query_selector(selector))

    def jump_to_nth_anchor_href(self, selector: str, index: int) -> RemotePortal:
        return self._jump_to(self.dom.get_document().query_selector_nth(selector, index))

    def _jump_to(self, anchor: Node) -> RemotePortal:
        href = anchor.attribute("href")
        if href is None:
            raise LookupError(f"element {anchor.id} has no href attribute")
        logger.info("jumping to %s", href)
        return self.navigate(href)

    # ─────────────────────────────────────────────────────────────────────────
    # Forms
    # ─────────────────────────────────────────────────────────────────────────

    def set_input_value(self, selector: str, value: str, context_id: int | None = None) -> RemotePortal:
        self.query(f"document.querySelector({js_string(selector)}).value = {js_string(value)};", context_id)
        return self

    def type_into(self, selector: str, text: str) -> RemotePortal:
        """Focus the element and type `text` one key event per character."""
        self.dom.get_document().query_selector(selector).focus()
        self.input.type_text(text)
        return self

    def press_enter(self, *, wait: bool = False) -> RemotePortal:
        # The reply to a submitting keystroke may arrive after the navigation it
        # triggers, so by default nobody waits for it.
        self.input.dispatch_key_event(KeyEventType.CHAR, "\r", wait=wait)
        return self


class FramePage:
    """Handle for a frameset page whose content lives in named sub-frames.

    `page` is a free-form label for the logical page the frames currently show.
    Moving to another page goes through `continue_as`, which hands the portal
    and tracker to a new handle; the old handle refuses further use.
    """

    def __init__(self, portal: RemotePortal, tracker: FrameContextTracker, page: str) -> None:
        self._portal: RemotePortal | None = portal
        self._tracker: FrameContextTracker | None = tracker
        self.page = page

    @classmethod
    def enter(
        cls,
        portal: RemotePortal,
        page: str = "entry",
        roles: tuple[str, ...] = (MAIN_FRAME, MENU_FRAME),
    ) -> FramePage:
        """Start tracking frames from scratch (all roles Unloaded)."""
        return cls(portal, FrameContextTracker(portal.session, roles), page)

    @property
    def portal(self) -> RemotePortal:
        if self._portal is None:
            raise ContextStateError(f"frame page {self.page!r} was handed over and can no longer be used")
        return self._portal

    @property
    def tracker(self) -> FrameContextTracker:
        if self._tracker is None:
            raise ContextStateError(f"frame page {self.page!r} was handed over and can no longer be used")
        return self._tracker

    def continue_as(self, page: str) -> FramePage:
        nxt = FramePage(self.portal, self.tracker, page)
        self._portal = None
        self._tracker = None
        logger.debug("frame page %s -> %s", self.page, page)
        return nxt

    def leave(self) -> RemotePortal:
        """Stop tracking frames and return the portal."""
        portal = self.portal
        self.tracker.detach()
        self._portal = None
        self._tracker = None
        return portal

    def wait_frame_context(self, require_menu: bool = False, *, timeout: float | None = None) -> FramePage:
        self.tracker.wait_frame_context(require_menu, timeout=timeout)
        return self

    def main_context(self) -> int:
        return self.tracker.context_id_for(self.tracker.roles[0])

    def menu_context(self) -> int:
        if len(self.tracker.roles) < 2:
            raise ContextStateError("this frame page tracks no menu frame")
        return self.tracker.context_id_for(self.tracker.roles[1])

    def is_blank_main(self) -> bool:
        return "/blank.html" in self.portal.page_location(self.main_context())

    def settle(self, require_menu: bool = True, *, timeout: float | None = None) -> FramePage:
        """Wait for the frames, then keep waiting while the main frame is a placeholder."""
        self.wait_frame_context(require_menu, timeout=timeout)
        while self.is_blank_main():
            self.wait_frame_context(require_menu, timeout=timeout)
        return self

    def click_in_main(self, selector: str) -> FramePage:
        self.portal.click_element(selector, self.main_context())
        return self

    def click_in_menu(self, selector: str) -> FramePage:
        self.portal.click_element(selector, self.menu_context())
        return self

    def query_value_in_main(self, expression: str) -> RemoteObject:
        return self.portal.query_value(expression, self.main_context())


__all__ = ["FramePage", "RemotePortal", "js_string"]
