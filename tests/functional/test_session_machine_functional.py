"""Functional tests for the session state machine.

Covers the pure transition function (no-op boundaries, reveal clamp on
GoBack, the reveal invariant over random sequences) and the persisted
machine (compare-and-swap on version, If-Match staleness, change events and
the two-step reset).
"""

from __future__ import annotations

import random

import pytest

from liveboard.logic import events
from liveboard.logic.errors import StaleState
from liveboard.logic.repository_cases import get_case_config
from liveboard.logic.repository_responses import insert_response, list_responses
from liveboard.logic.repository_session_state import compare_and_set, get_session_state
from liveboard.logic.session_machine import ACTIONS, SessionStateMachine, next_state
from liveboard.models.session_state import SessionState

LAST = 4


def _state(current: int = 0, revealed: int = -1, mode: str = "controlled", version: int = 0) -> SessionState:
    return SessionState(
        case_id="default",
        session_id="A",
        current_step=current,
        revealed_step=revealed,
        display_mode=mode,
        version=version,
    )


# -----------------------------
# Pure transitions
# -----------------------------


def test_advance_increments_until_last_step():
    assert next_state(_state(0), "advance", LAST).current_step == 1
    at_last = _state(LAST)
    assert next_state(at_last, "advance", LAST) is at_last


def test_back_is_noop_at_first_step():
    first = _state(0)
    assert next_state(first, "back", LAST) is first


def test_back_clamps_reveal_cursor():
    moved = next_state(_state(current=3, revealed=3), "back", LAST)
    assert (moved.current_step, moved.revealed_step) == (2, 2)


def test_back_keeps_lower_reveal_cursor():
    moved = next_state(_state(current=3, revealed=1), "back", LAST)
    assert (moved.current_step, moved.revealed_step) == (2, 1)


def test_reveal_stops_at_current_step():
    assert next_state(_state(current=2, revealed=0), "reveal", LAST).revealed_step == 1
    caught_up = _state(current=2, revealed=2)
    assert next_state(caught_up, "reveal", LAST) is caught_up


def test_toggle_mode_flips_both_ways():
    live = next_state(_state(), "toggle_mode", LAST)
    assert live.display_mode == "live"
    assert next_state(live, "toggle_mode", LAST).display_mode == "controlled"


def test_unknown_action_rejected():
    with pytest.raises(ValueError):
        next_state(_state(), "jump", LAST)  # type: ignore[arg-type]


def test_reveal_never_exceeds_current_over_random_sequences():
    rng = random.Random(20261019)
    for _ in range(200):
        state = _state()
        for _ in range(30):
            state = next_state(state, rng.choice(ACTIONS), LAST)  # type: ignore[arg-type]
            assert -1 <= state.revealed_step <= state.current_step <= LAST


# -----------------------------
# Persisted machine
# -----------------------------


def _machine() -> SessionStateMachine:
    return SessionStateMachine(get_case_config("default"), "A")


def test_current_registers_default_state_once():
    machine = _machine()
    first = machine.current()
    again = machine.current()

    assert (first.current_step, first.revealed_step, first.display_mode, first.version) == (0, -1, "controlled", 0)
    assert again == first
    inserts = [e for e in events.get_buffered_events() if e["table"] == "session_state" and e["event"] == "insert"]
    assert len(inserts) == 1


def test_transition_bumps_version_and_publishes_update():
    machine = _machine()
    machine.current()
    events.get_buffered_events()

    state = machine.advance()

    assert (state.current_step, state.version) == (1, 1)
    assert get_session_state("default", "A") == state
    published = events.get_buffered_events()
    assert [(e["table"], e["event"]) for e in published] == [("session_state", "update")]
    assert published[0]["new_row"]["version"] == 1


def test_noop_transition_writes_nothing_and_emits_nothing():
    machine = _machine()
    machine.current()
    events.get_buffered_events()

    state = machine.go_back()

    assert state.version == 0
    assert events.get_buffered_events() == []


def test_expected_version_mismatch_is_stale():
    machine = _machine()
    machine.advance()
    with pytest.raises(StaleState):
        machine.advance(expected_version=0)
    assert get_session_state("default", "A").current_step == 1


def test_compare_and_set_loses_against_newer_write():
    machine = _machine()
    observed = machine.current()
    machine.advance()

    target = next_state(observed, "reveal", LAST)
    assert compare_and_set(observed, target) is False
    assert get_session_state("default", "A").version == 1


def test_reset_clears_responses_then_state():
    machine = _machine()
    for _ in range(3):
        machine.advance()
    machine.reveal()
    machine.toggle_mode()
    for i in range(5):
        insert_response("default", "A", 3, f"student{i}", f"answer {i}", None, None)
    insert_response("default", "B", 3, "other", "kept", None, None)
    events.get_buffered_events()

    state = machine.reset()

    assert (state.current_step, state.revealed_step, state.display_mode) == (0, -1, "controlled")
    assert list_responses("default", "A") == []
    assert len(list_responses("default", "B")) == 1
    published = [(e["table"], e["event"], e["old_row"]) for e in events.get_buffered_events()]
    assert published == [("response", "delete", None), ("session_state", "update", None)]
