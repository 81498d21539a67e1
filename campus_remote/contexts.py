"""Per-frame JavaScript execution-context tracking.

Frames are tracked by role, the `name` the portal gives its sub-frames
("MainFrame", "MenuFrame"). For each role the tracker keeps a small state:

    Unloaded --navigated(f)--> Empty(f) --context_created(f, c)--> Attached(f, c)
    Attached(f, c) --context_destroyed(c) | cleared--> Empty(f)
    any --navigated(f2)--> Empty(f2)

Navigation always drops the attached context: the old document's context is
about to go away even if the browser has not said so yet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from .errors import ContextStateError
from .protocol import (
    ExecutionContextCreated,
    ExecutionContextDestroyed,
    ExecutionContextsCleared,
    FrameNavigated,
    FrameStoppedLoading,
)
from .session_cdp import CdpSession, Subscription

logger = logging.getLogger("campus.remote.contexts")

MAIN_FRAME = "MainFrame"
MENU_FRAME = "MenuFrame"


@dataclass(frozen=True)
class ScriptContextState:
    kind: Literal["unloaded", "empty", "attached"]
    frame_id: str | None = None
    attached_context: int | None = None

    @classmethod
    def unloaded(cls) -> ScriptContextState:
        return cls("unloaded")

    @classmethod
    def empty(cls, frame_id: str) -> ScriptContextState:
        return cls("empty", frame_id)

    @classmethod
    def attached(cls, frame_id: str, context_id: int) -> ScriptContextState:
        return cls("attached", frame_id, context_id)

    @property
    def is_attached(self) -> bool:
        return self.kind == "attached"

    @property
    def context_id(self) -> int:
        if self.kind != "attached" or self.attached_context is None:
            raise ContextStateError(f"no execution context attached (state: {self})")
        return self.attached_context

    def navigated(self, frame_id: str) -> ScriptContextState:
        return ScriptContextState.empty(frame_id)

    def context_created(self, frame_id: str, context_id: int) -> ScriptContextState:
        if self.kind == "empty" and self.frame_id == frame_id:
            return ScriptContextState.attached(frame_id, context_id)
        return self

    def context_destroyed(self, context_id: int) -> ScriptContextState:
        if self.kind == "attached" and self.attached_context == context_id:
            return ScriptContextState.empty(self.frame_id or "")
        return self

    def cleared(self) -> ScriptContextState:
        if self.kind == "attached":
            return ScriptContextState.empty(self.frame_id or "")
        return self

    def __str__(self) -> str:
        if self.kind == "unloaded":
            return "Unloaded"
        if self.kind == "empty":
            return f"Empty({self.frame_id})"
        return f"Attached({self.frame_id}, {self.attached_context})"


class FrameContextTracker:
    """Keeps one ScriptContextState per frame role, fed by session notifications.

    The first role is the primary one; the second (if any) is the secondary
    role `wait_frame_context(require_secondary_role=True)` also waits for.
    """

    def __init__(self, session: CdpSession, roles: tuple[str, ...] = (MAIN_FRAME, MENU_FRAME)) -> None:
        if not roles:
            raise ValueError("at least one frame role is required")
        self.session = session
        self.roles = tuple(roles)
        self._states: dict[str, ScriptContextState] = {role: ScriptContextState.unloaded() for role in self.roles}
        self._completion: dict[str, bool] = {}
        self._subscriptions: list[Subscription] = [
            session.subscribe(FrameNavigated, self._on_frame_navigated),
            session.subscribe(ExecutionContextCreated, self._on_context_created),
            session.subscribe(ExecutionContextDestroyed, self._on_context_destroyed),
            session.subscribe(ExecutionContextsCleared, self._on_contexts_cleared),
            session.subscribe(FrameStoppedLoading, self._on_frame_stopped_loading),
        ]

    def state(self, role: str) -> ScriptContextState:
        return self._states[role]

    def context_id_for(self, role: str) -> int:
        """Context id of the role's current document; only valid once attached."""
        state = self._states[role]
        if not state.is_attached:
            raise ContextStateError(f"ExecutionContext for {role} has not been created yet ({state})")
        return state.context_id

    def reset(self) -> None:
        for role in self.roles:
            self._states[role] = ScriptContextState.unloaded()
        self._completion.clear()

    def detach(self) -> None:
        """Stop listening to the session."""
        for sub in self._subscriptions:
            self.session.unsubscribe(sub)
        self._subscriptions.clear()

    def wait_frame_context(self, require_secondary_role: bool = False, *, timeout: float | None = None) -> None:
        if require_secondary_role and len(self.roles) < 2:
            raise ContextStateError(f"no secondary frame role to wait for (tracking {', '.join(self.roles)})")
        roles = self.roles[:2] if require_secondary_role else self.roles[:1]
        self.wait_roles(*roles, timeout=timeout)

    def wait_roles(self, *roles: str, timeout: float | None = None) -> None:
        """Drain notifications until every given role's frame has stopped loading."""
        for role in roles:
            if role not in self._states:
                raise KeyError(f"untracked frame role: {role}")
        self._completion = {role: False for role in roles}
        try:
            self.session.drain_until(lambda: all(self._completion.values()), timeout=timeout)
        finally:
            self._completion = {}
        logger.debug("frames settled: %s", ", ".join(f"{r}={self._states[r]}" for r in roles))

    # Notification handlers

    def _on_frame_navigated(self, event: FrameNavigated) -> None:
        if event.name in self._states:
            self._states[event.name] = self._states[event.name].navigated(event.frame_id)
            logger.debug("%s navigated to %s (frame %s)", event.name, event.url, event.frame_id)

    def _on_context_created(self, event: ExecutionContextCreated) -> None:
        if event.frame_id is None or event.is_default is False:
            return
        for role, state in self._states.items():
            self._states[role] = state.context_created(event.frame_id, event.context_id)

    def _on_context_destroyed(self, event: ExecutionContextDestroyed) -> None:
        for role, state in self._states.items():
            self._states[role] = state.context_destroyed(event.context_id)

    def _on_contexts_cleared(self, _event: ExecutionContextsCleared) -> None:
        for role, state in self._states.items():
            self._states[role] = state.cleared()

    def _on_frame_stopped_loading(self, event: FrameStoppedLoading) -> None:
        for role in self._completion:
            if self._states[role].frame_id == event.frame_id:
                self._completion[role] = True


__all__ = ["MAIN_FRAME", "MENU_FRAME", "FrameContextTracker", "ScriptContextState"]
