"""Tests for the lifecycle state machine guards.

These tests verify that:
    1. The one-time and streaming job paths reach COMPLETED.
    2. Illegal transitions are blocked and terminal states allow nothing.
    3. The stream, listing, application and agent machines follow their tables.
    4. validate_transition and next_job_actions work.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from humanpages.domain.state_machine import (
    AgentStateMachine,
    ApplicationStateMachine,
    JobStateMachine,
    ListingStateMachine,
    StreamStateMachine,
    next_job_actions,
    validate_transition,
)


class TestOneTimePath:
    """PENDING -> ACCEPTED -> PAID -> COMPLETED."""

    def test_full_lifecycle(self) -> None:
        sm = JobStateMachine("PENDING")
        sm.accept()
        assert sm.status == "ACCEPTED"

        sm.mark_paid()
        assert sm.status == "PAID"

        sm.complete()
        assert sm.status == "COMPLETED"
        assert sm.current_state.final

    def test_reject(self) -> None:
        sm = JobStateMachine("PENDING")
        sm.reject()
        assert sm.status == "REJECTED"


class TestStreamingPath:
    """ACCEPTED -> STREAMING <-> PAUSED -> COMPLETED."""

    def test_pause_resume_stop(self) -> None:
        sm = JobStateMachine("ACCEPTED")
        sm.start_stream()
        assert sm.status == "STREAMING"

        sm.pause_stream()
        assert sm.status == "PAUSED"

        sm.resume_stream()
        assert sm.status == "STREAMING"

        sm.stop_stream()
        assert sm.status == "COMPLETED"

    def test_stop_while_paused(self) -> None:
        sm = JobStateMachine("PAUSED")
        sm.stop_stream()
        assert sm.status == "COMPLETED"


class TestExits:
    @pytest.mark.parametrize("status", ["PENDING", "ACCEPTED", "PAID", "STREAMING", "PAUSED"])
    def test_cancel_from_non_terminal(self, status: str) -> None:
        sm = JobStateMachine(status)
        sm.cancel()
        assert sm.status == "CANCELLED"

    @pytest.mark.parametrize("status", ["PAID", "STREAMING"])
    def test_dispute(self, status: str) -> None:
        sm = JobStateMachine(status)
        sm.dispute()
        assert sm.status == "DISPUTED"


class TestIllegalTransitions:
    """Verify that illegal transitions raise TransitionNotAllowed."""

    def test_pending_cannot_be_paid(self) -> None:
        sm = JobStateMachine("PENDING")
        with pytest.raises(TransitionNotAllowed):
            sm.mark_paid()

    def test_paid_job_cannot_start_stream(self) -> None:
        sm = JobStateMachine("PAID")
        with pytest.raises(TransitionNotAllowed):
            sm.start_stream()

    def test_review_is_not_a_transition(self) -> None:
        assert not hasattr(JobStateMachine("COMPLETED"), "leave_review")

    @pytest.mark.parametrize("status", ["COMPLETED", "REJECTED", "CANCELLED", "DISPUTED"])
    def test_terminal_states_allow_nothing(self, status: str) -> None:
        assert JobStateMachine(status).get_allowed_events() == []


class TestStreamMachine:
    def test_lifecycle(self) -> None:
        sm = StreamStateMachine("AWAITING_START")
        sm.start()
        sm.record_tick()
        assert sm.status == "ACTIVE"
        sm.pause()
        assert sm.status == "PAUSED"
        sm.resume()
        sm.stop()
        assert sm.status == "STOPPED"

    def test_tick_requires_active(self) -> None:
        sm = StreamStateMachine("PAUSED")
        with pytest.raises(TransitionNotAllowed):
            sm.record_tick()

    def test_cannot_stop_before_start(self) -> None:
        sm = StreamStateMachine("AWAITING_START")
        with pytest.raises(TransitionNotAllowed):
            sm.stop()


class TestListingAndApplicationMachines:
    @pytest.mark.parametrize(("event", "expected"), [("close", "CLOSED"), ("cancel", "CANCELLED"), ("expire", "EXPIRED")])
    def test_every_exit_from_open(self, event: str, expected: str) -> None:
        sm = ListingStateMachine("OPEN")
        getattr(sm, event)()
        assert sm.status == expected
        assert sm.get_allowed_events() == []

    def test_closed_listing_cannot_be_cancelled(self) -> None:
        sm = ListingStateMachine("CLOSED")
        with pytest.raises(TransitionNotAllowed):
            sm.cancel()

    def test_offered_application_is_final(self) -> None:
        sm = ApplicationStateMachine("PENDING")
        sm.offer()
        with pytest.raises(TransitionNotAllowed):
            sm.reject()


class TestAgentMachine:
    def test_activate_and_lapse(self) -> None:
        sm = AgentStateMachine("PENDING")
        sm.activate()
        assert sm.status == "ACTIVE"
        sm.activate()
        assert sm.status == "ACTIVE"
        sm.lapse()
        assert sm.status == "PENDING"

    def test_pending_cannot_lapse(self) -> None:
        sm = AgentStateMachine("PENDING")
        with pytest.raises(TransitionNotAllowed):
            sm.lapse()


class TestValidateTransitionFunction:
    """Test the convenience function."""

    def test_valid_transition(self) -> None:
        assert validate_transition(JobStateMachine, "PENDING", "accept") == "ACCEPTED"

    def test_invalid_event_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown event"):
            validate_transition(JobStateMachine, "PENDING", "nonexistent_event")

    def test_invalid_status(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            JobStateMachine("INVALID_STATUS")


class TestNextJobActions:
    def test_accepted_one_time_job(self) -> None:
        assert next_job_actions("ACCEPTED", "ONE_TIME") == ["mark_paid"]

    def test_accepted_stream_job(self) -> None:
        assert next_job_actions("ACCEPTED", "STREAM") == ["start_stream"]

    def test_streaming_job(self) -> None:
        assert set(next_job_actions("STREAMING", "STREAM")) == {"pause_stream", "stop_stream"}

    def test_human_side_events_are_hidden(self) -> None:
        assert next_job_actions("PENDING") == []
        assert next_job_actions("PAID") == []

    def test_completed_job_can_be_reviewed(self) -> None:
        assert next_job_actions("COMPLETED") == ["leave_review"]


class TestDefinitions:
    @pytest.mark.parametrize(
        "machine_cls", [JobStateMachine, StreamStateMachine, ListingStateMachine, ApplicationStateMachine]
    )
    def test_every_state_can_reach_a_final_state(self, machine_cls) -> None:
        for start in machine_cls.states:
            seen, frontier = set(), [start]
            while frontier:
                state = frontier.pop()
                if state.id not in seen:
                    seen.add(state.id)
                    frontier.extend(t.target for t in state.transitions)
            assert any(s.final for s in machine_cls.states if s.id in seen), start.id
