"""
Canonical workflow types (``fulfillment_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the per-document status state machines.  Every
document module declares its table as a module-level ``Workflow`` built
from these types, so Guard, Transition and Workflow are defined once.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Guard
evaluation lives in ``fulfillment_services.workflow_executor``.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* A (state, action) pair with several transitions must guard every one of
  them, otherwise the choice would be ambiguous.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; the executor maps ``name`` to an evaluator.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A legal status change for a document."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class TransitionResult:
    """Result of evaluating an action against a workflow."""

    success: bool
    new_state: str | None = None
    reason: str = ""
    guard: str | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        states = set(self.states)
        if self.initial_state not in states:
            raise ValueError(
                f"{self.name}: initial state '{self.initial_state}' not in states"
            )
        for t in self.transitions:
            if t.from_state not in states or t.to_state not in states:
                raise ValueError(
                    f"{self.name}: transition {t.action} "
                    f"{t.from_state}->{t.to_state} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state '{t.from_state}' has "
                    f"outgoing transition {t.action}"
                )
        seen: dict[tuple[str, str], list[Transition]] = {}
        for t in self.transitions:
            seen.setdefault((t.from_state, t.action), []).append(t)
        for (state, action), group in seen.items():
            if len(group) > 1 and any(t.guard is None for t in group):
                raise ValueError(
                    f"{self.name}: ambiguous unguarded action '{action}' "
                    f"from '{state}'"
                )

    @property
    def actions(self) -> tuple[str, ...]:
        """All action names in declaration order, without duplicates."""
        return tuple(dict.fromkeys(t.action for t in self.transitions))

    def candidates(self, state: str, action: str) -> tuple[Transition, ...]:
        return tuple(
            t for t in self.transitions
            if t.from_state == state and t.action == action
        )

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(dict.fromkeys(
            t.action for t in self.transitions if t.from_state == state
        ))

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
