from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from datetime import datetime, timezone
import logging

from washconnect.core.errors import InvalidStatus, InvalidTransition

logger = logging.getLogger(__name__)

TransitionEntry = Dict[str, Any]
Hook = Callable[[TransitionEntry], None]


def pipeline_transitions(stages: Sequence[str], abort_state: Optional[str] = None) -> Dict[str, List[str]]:
    """
    Build a forward-only transition map for an ordered pipeline.

    Every stage may advance to any later stage (skipping is allowed, going
    back is not). `abort_state`, when given, is reachable from every stage
    except the last one. The last stage and `abort_state` are terminal.

        >>> pipeline_transitions(["a", "b", "c"], "x")
        {'a': ['b', 'c', 'x'], 'b': ['c', 'x'], 'c': [], 'x': []}
    """
    transitions: Dict[str, List[str]] = {}
    last = len(stages) - 1
    for idx, stage in enumerate(stages):
        successors = list(stages[idx + 1:])
        if abort_state is not None and idx != last:
            successors.append(abort_state)
        transitions[stage] = successors
    if abort_state is not None:
        transitions[abort_state] = []
    return transitions


class StateMachine:
    """
    Small, generic state machine with:
      - a closed set of known states
      - an allowed transitions map (state -> successors)
      - optional on-enter hooks, run after the state changes

    Usage:
      sm = StateMachine(state="pending", allowed_transitions=ALLOWED_TRANSITIONS)
      entry = sm.apply("confirmed")
      order.status = entry["to"]
    """

    def __init__(self, state: str, allowed_transitions: Dict[str, List[str]],
                 states: Optional[Iterable[str]] = None):
        self.state = state or ""
        self.allowed_transitions = allowed_transitions or {}
        self.states = set(states) if states is not None else set(self.allowed_transitions)
        self._enter_hooks: Dict[str, List[Hook]] = {}

    def is_terminal(self, state: Optional[str] = None) -> bool:
        return not self.allowed_transitions.get(self.state if state is None else state)

    def can_transition(self, to_state: str) -> bool:
        return to_state in self.allowed_transitions.get(self.state, [])

    def on_enter(self, state: str, fn: Hook) -> None:
        self._enter_hooks.setdefault(state, []).append(fn)

    def apply(self, to_state: str, at: Optional[datetime] = None) -> TransitionEntry:
        """
        Attempt to transition to `to_state`. Raises InvalidStatus for unknown
        states and InvalidTransition for moves missing from the map.
        Returns the transition entry: {"from", "to", "at"}.
        """
        to_state = (to_state or "").strip()
        if to_state not in self.states:
            raise InvalidStatus(f"Invalid status: {to_state!r}")

        if not self.can_transition(to_state):
            raise InvalidTransition(f"Invalid transition: {self.state} -> {to_state}")

        entry: TransitionEntry = {
            "from": self.state,
            "to": to_state,
            "at": at or datetime.now(timezone.utc),
        }
        self.state = to_state

        # hooks propagate errors; callers run apply() inside their unit of work
        for fn in self._enter_hooks.get(to_state, []):
            fn(entry)

        logger.debug("state %s -> %s", entry["from"], entry["to"])
        return entry
