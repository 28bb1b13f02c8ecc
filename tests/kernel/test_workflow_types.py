"""Tests for workflow value objects (fulfillment_kernel/domain/workflow.py)."""

import pytest

from fulfillment_kernel.domain.workflow import Guard, Transition, Workflow

READY = Guard("ready", "Document is ready")
BLOCKED = Guard("blocked", "Document is blocked")


def _workflow(**overrides):
    fields = dict(
        name="sample",
        description="Sample lifecycle",
        initial_state="open",
        states=("open", "working", "done"),
        transitions=(
            Transition("open", "working", action="start"),
            Transition("working", "done", action="finish", guard=READY),
            Transition("working", "working", action="finish", guard=BLOCKED),
        ),
        terminal_states=("done",),
    )
    fields.update(overrides)
    return Workflow(**fields)


class TestWorkflowValidation:

    def test_valid_workflow(self):
        wf = _workflow()
        assert wf.actions == ("start", "finish")

    def test_initial_state_must_exist(self):
        with pytest.raises(ValueError, match="initial state"):
            _workflow(initial_state="nowhere")

    def test_transition_states_must_exist(self):
        with pytest.raises(ValueError, match="unknown state"):
            _workflow(transitions=(Transition("open", "archived", action="archive"),))

    def test_terminal_state_has_no_outgoing(self):
        with pytest.raises(ValueError, match="terminal"):
            _workflow(transitions=(Transition("done", "open", action="reopen"),))

    def test_shared_action_must_be_guarded(self):
        with pytest.raises(ValueError, match="ambiguous"):
            _workflow(
                transitions=(
                    Transition("working", "done", action="finish"),
                    Transition("working", "working", action="finish", guard=BLOCKED),
                )
            )


class TestWorkflowQueries:

    def test_candidates_in_declaration_order(self):
        wf = _workflow()
        candidates = wf.candidates("working", "finish")
        assert [t.to_state for t in candidates] == ["done", "working"]

    def test_no_candidates(self):
        assert _workflow().candidates("done", "start") == ()

    def test_actions_from(self):
        wf = _workflow()
        assert wf.actions_from("open") == ("start",)
        assert wf.actions_from("working") == ("finish",)
        assert wf.actions_from("done") == ()

    def test_is_terminal(self):
        wf = _workflow()
        assert wf.is_terminal("done")
        assert not wf.is_terminal("open")
