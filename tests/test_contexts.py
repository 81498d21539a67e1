from __future__ import annotations

import pytest

from campus_remote.contexts import MAIN_FRAME, MENU_FRAME, FrameContextTracker, ScriptContextState
from campus_remote.errors import ContextStateError, TransportError
from campus_remote.session_cdp import CdpSession
from helpers import (
    ScriptedTransport,
    context_created,
    context_destroyed,
    contexts_cleared,
    frame_navigated,
    stopped_loading,
)


def _tracker(*frames) -> tuple[ScriptedTransport, FrameContextTracker]:  # noqa: ANN002
    transport = ScriptedTransport(frames)
    return transport, FrameContextTracker(CdpSession(transport))


# ScriptContextState transitions


def test_state_transitions() -> None:
    s = ScriptContextState.unloaded()
    assert s.context_created("F1", 3) == s
    s = s.navigated("F1")
    assert s == ScriptContextState.empty("F1")
    assert s.context_created("F2", 3) == s
    s = s.context_created("F1", 3)
    assert s == ScriptContextState.attached("F1", 3)
    assert s.context_id == 3
    assert s.context_destroyed(4) == s
    assert s.context_destroyed(3) == ScriptContextState.empty("F1")
    assert s.cleared() == ScriptContextState.empty("F1")
    assert s.navigated("F1") == ScriptContextState.empty("F1")
    assert ScriptContextState.unloaded().cleared() == ScriptContextState.unloaded()


@pytest.mark.parametrize("state", [ScriptContextState.unloaded(), ScriptContextState.empty("F1")])
def test_context_id_requires_attached(state: ScriptContextState) -> None:
    with pytest.raises(ContextStateError):
        _ = state.context_id


# Tracker driven by the session


def test_context_lifecycle_round_trip() -> None:
    transport, tracker = _tracker(
        frame_navigated("F1", MAIN_FRAME),
        context_created(7, "F1"),
        stopped_loading("F1"),
    )
    with pytest.raises(ContextStateError):
        tracker.context_id_for(MAIN_FRAME)

    tracker.wait_frame_context()

    assert tracker.context_id_for(MAIN_FRAME) == 7
    assert transport.received == 3


def test_renavigation_invalidates_context() -> None:
    transport, tracker = _tracker(
        frame_navigated("F1", MAIN_FRAME),
        context_created(7, "F1"),
        stopped_loading("F1"),
    )
    tracker.wait_frame_context()

    transport.feed(frame_navigated("F2", MAIN_FRAME), stopped_loading("F2"))
    tracker.wait_frame_context()
    assert tracker.state(MAIN_FRAME) == ScriptContextState.empty("F2")
    with pytest.raises(ContextStateError):
        tracker.context_id_for(MAIN_FRAME)

    # A context for the old frame does not attach.
    transport.feed(context_created(8, "F1"), context_created(9, "F2"), stopped_loading("F2"))
    tracker.wait_frame_context()
    assert tracker.context_id_for(MAIN_FRAME) == 9


def test_contexts_cleared_resets_every_attached_role() -> None:
    transport, tracker = _tracker(
        frame_navigated("FM", MAIN_FRAME),
        frame_navigated("FN", MENU_FRAME),
        context_created(1, "FM"),
        context_created(2, "FN"),
        stopped_loading("FM"),
        stopped_loading("FN"),
    )
    tracker.wait_frame_context(require_secondary_role=True)
    assert tracker.context_id_for(MAIN_FRAME) == 1
    assert tracker.context_id_for(MENU_FRAME) == 2

    transport.feed(contexts_cleared(), stopped_loading("FM"))
    tracker.wait_frame_context()
    assert tracker.state(MAIN_FRAME) == ScriptContextState.empty("FM")
    assert tracker.state(MENU_FRAME) == ScriptContextState.empty("FN")


def test_context_destroyed_detaches_only_its_frame() -> None:
    transport, tracker = _tracker(
        frame_navigated("FM", MAIN_FRAME),
        frame_navigated("FN", MENU_FRAME),
        context_created(1, "FM"),
        context_created(2, "FN"),
        context_destroyed(2),
        stopped_loading("FN"),
        stopped_loading("FM"),
    )
    tracker.wait_frame_context(require_secondary_role=True)
    assert tracker.context_id_for(MAIN_FRAME) == 1
    assert tracker.state(MENU_FRAME) == ScriptContextState.empty("FN")


def test_wait_for_secondary_role_keeps_draining() -> None:
    transport, tracker = _tracker(
        frame_navigated("FM", MAIN_FRAME),
        context_created(1, "FM"),
        stopped_loading("FM"),
        frame_navigated("FN", MENU_FRAME),
        context_created(2, "FN"),
        stopped_loading("FN"),
    )
    tracker.wait_frame_context(require_secondary_role=True)
    assert transport.received == 6
    assert tracker.context_id_for(MENU_FRAME) == 2


def test_stopped_loading_before_navigation_does_not_complete() -> None:
    transport, tracker = _tracker(stopped_loading("FM"))
    with pytest.raises(TransportError):
        tracker.wait_frame_context()


def test_unnamed_and_foreign_frames_are_ignored() -> None:
    transport, tracker = _tracker(
        frame_navigated("TOP"),
        frame_navigated("AD", "AdFrame"),
        frame_navigated("FM", MAIN_FRAME),
        context_created(5, "TOP"),
        context_created(6, "FM"),
        stopped_loading("TOP"),
        stopped_loading("FM"),
    )
    tracker.wait_frame_context()
    assert tracker.context_id_for(MAIN_FRAME) == 6
    assert transport.received == 7


def test_isolated_world_contexts_are_ignored() -> None:
    transport, tracker = _tracker(
        frame_navigated("FM", MAIN_FRAME),
        context_created(30, "FM", is_default=False),
        context_created(31, "FM"),
        stopped_loading("FM"),
    )
    tracker.wait_frame_context()
    assert tracker.context_id_for(MAIN_FRAME) == 31


def test_detach_stops_tracking() -> None:
    transport, tracker = _tracker()
    assert tracker.session.subscriber_count("Page.frameNavigated") == 1
    tracker.detach()
    assert tracker.session.subscriber_count("Page.frameNavigated") == 0


def test_wait_roles_rejects_untracked_role() -> None:
    _transport, tracker = _tracker()
    with pytest.raises(KeyError):
        tracker.wait_roles("SideFrame")


def test_secondary_role_on_single_role_tracker_is_rejected() -> None:
    transport = ScriptedTransport([frame_navigated("FM", MAIN_FRAME), stopped_loading("FM")])
    tracker = FrameContextTracker(CdpSession(transport), roles=(MAIN_FRAME,))
    with pytest.raises(ContextStateError):
        tracker.wait_frame_context(require_secondary_role=True)
    assert transport.received == 0


def test_reset_returns_every_role_to_unloaded() -> None:
    transport, tracker = _tracker(
        frame_navigated("FM", MAIN_FRAME),
        frame_navigated("FN", MENU_FRAME),
        context_created(1, "FM"),
        context_created(2, "FN"),
        stopped_loading("FM"),
        stopped_loading("FN"),
    )
    tracker.wait_frame_context(require_secondary_role=True)
    tracker.reset()
    assert tracker.state(MAIN_FRAME) == ScriptContextState.unloaded()
    assert tracker.state(MENU_FRAME) == ScriptContextState.unloaded()

    # Still subscribed: the next navigation is tracked from scratch.
    transport.feed(frame_navigated("FM2", MAIN_FRAME), context_created(3, "FM2"), stopped_loading("FM2"))
    tracker.wait_frame_context()
    assert tracker.context_id_for(MAIN_FRAME) == 3
