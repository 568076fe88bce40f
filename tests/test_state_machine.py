import pytest

from washconnect.core.errors import InvalidStatus, InvalidTransition
from washconnect.core.state_machine import StateMachine, pipeline_transitions


def test_pipeline_transitions_forward_only_with_abort():
    t = pipeline_transitions(["a", "b", "c"], "x")
    assert t == {"a": ["b", "c", "x"], "b": ["c", "x"], "c": [], "x": []}


def test_apply_moves_state_and_returns_entry():
    sm = StateMachine(state="a", allowed_transitions=pipeline_transitions(["a", "b", "c"], "x"))
    entry = sm.apply("b")
    assert sm.state == "b"
    assert entry["from"] == "a" and entry["to"] == "b"
    assert entry["at"] is not None


def test_unknown_state_is_invalid_status():
    sm = StateMachine(state="a", allowed_transitions=pipeline_transitions(["a", "b"]))
    with pytest.raises(InvalidStatus):
        sm.apply("zzz")
    assert sm.state == "a"


def test_backward_and_terminal_moves_rejected():
    sm = StateMachine(state="b", allowed_transitions=pipeline_transitions(["a", "b", "c"], "x"))
    with pytest.raises(InvalidTransition):
        sm.apply("a")
    sm.apply("x")
    assert sm.is_terminal()
    with pytest.raises(InvalidTransition):
        sm.apply("c")
    assert sm.state == "x"


def test_enter_hooks_run_only_on_success():
    seen = []
    sm = StateMachine(state="a", allowed_transitions=pipeline_transitions(["a", "b", "c"]))
    sm.on_enter("c", lambda e: seen.append(e["to"]))
    with pytest.raises(InvalidTransition):
        StateMachine(state="c", allowed_transitions=sm.allowed_transitions).apply("a")
    sm.apply("b")
    assert seen == []
    sm.apply("c")
    assert seen == ["c"]
