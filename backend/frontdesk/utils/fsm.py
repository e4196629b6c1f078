"""Small finite state machine helper for enforcing allowed status transitions.

Usage:
    from frontdesk.utils.fsm import TransitionValidator
    FSM = TransitionValidator({
        Status.A: {Status.B},
        Status.B: set(),
    })
    FSM.assert_can_transition(ticket.status, Status.B)

Raises InvalidTransition (rendered as 409) if the move is not allowed.
The graph must name every state, terminal ones with an empty set.
"""
from __future__ import annotations
from typing import Dict, Hashable, Iterable, Optional, Set
from frontdesk.errors import InvalidTransition


class TransitionValidator:
    def __init__(self, graph: Dict[Hashable, Set[Hashable]], field_name: str = 'status', states: Optional[Iterable[Hashable]] = None):
        if states is not None:
            missing = set(states) - set(graph)
            if missing:
                raise ValueError(f'transition graph missing states: {sorted(str(m) for m in missing)}')
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current, target) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current, target):
        if not self.can_transition(current, target):
            raise InvalidTransition(f"Invalid {self.field_name} transition {_label(current)} -> {_label(target)}")
        return True

    def targets(self, current) -> Set[Hashable]:
        return set(self.graph.get(current, set()))


def _label(state) -> str:
    return getattr(state, 'value', str(state))


__all__ = ['TransitionValidator']
