"""Lifecycle State Machine Guards.

Uses python-statemachine to enforce legal status transitions for every
stateful entity of the protocol. The reference backend fires transitions
through these machines before it writes a status, and the client reads
`get_allowed_events()` to derive next-step guidance for a job.

Job transition table:
    PENDING    -> ACCEPTED    (accept)           human side
    PENDING    -> REJECTED    (reject)           human side
    ACCEPTED   -> PAID        (mark_paid)        ONE_TIME only
    PAID       -> COMPLETED   (complete)         human side
    ACCEPTED   -> STREAMING   (start_stream)     STREAM only
    STREAMING  -> PAUSED      (pause_stream)
    PAUSED     -> STREAMING   (resume_stream)
    STREAMING  -> COMPLETED   (stop_stream)
    PAUSED     -> COMPLETED   (stop_stream)
    <non-terminal> -> CANCELLED (cancel)
    PAID|STREAMING -> DISPUTED (dispute)

COMPLETED is final. Its one review is not a transition; the caller guards it
and next_job_actions offers leave_review for COMPLETED jobs.

Stream sub-status table (nested in Job STREAMING/PAUSED):
    AWAITING_START -> ACTIVE  (start)
    ACTIVE         -> ACTIVE  (record_tick)
    ACTIVE         -> PAUSED  (pause)
    PAUSED         -> ACTIVE  (resume)
    ACTIVE|PAUSED  -> STOPPED (stop)
"""

from __future__ import annotations

from statemachine import State, StateMachine

from humanpages.domain.enums import JobStatus, PaymentMode, StreamStatus


class _StatusMixin:
    """Start a machine at an arbitrary persisted status string."""

    def __init__(self, current_status: str) -> None:
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(f"Unknown status '{current_status}'. Valid states: {valid}")
        # start_value expects the string value, not the State object
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [event.name for event in self.allowed_events]


class JobStateMachine(_StatusMixin, StateMachine):
    """Guards Job.status.

    Usage:
        sm = JobStateMachine(current_status="ACCEPTED")
        sm.mark_paid()   # transitions to PAID
        sm.status        # "PAID"
    """

    # --- States ---
    PENDING = State("PENDING", initial=True)
    ACCEPTED = State("ACCEPTED")
    REJECTED = State("REJECTED", final=True)
    PAID = State("PAID")
    STREAMING = State("STREAMING")
    PAUSED = State("PAUSED")
    COMPLETED = State("COMPLETED", final=True)
    CANCELLED = State("CANCELLED", final=True)
    # Dispute resolution belongs to the backend operators; nothing leaves it here.
    DISPUTED = State("DISPUTED", final=True)

    # --- Events / Transitions ---

    # Human response
    accept = PENDING.to(ACCEPTED)
    reject = PENDING.to(REJECTED)

    # One-time settlement
    mark_paid = ACCEPTED.to(PAID)
    complete = PAID.to(COMPLETED)

    # Streaming settlement
    start_stream = ACCEPTED.to(STREAMING)
    pause_stream = STREAMING.to(PAUSED)
    resume_stream = PAUSED.to(STREAMING)
    stop_stream = STREAMING.to(COMPLETED) | PAUSED.to(COMPLETED)

    # Exits
    cancel = (
        PENDING.to(CANCELLED)
        | ACCEPTED.to(CANCELLED)
        | PAID.to(CANCELLED)
        | STREAMING.to(CANCELLED)
        | PAUSED.to(CANCELLED)
    )
    dispute = PAID.to(DISPUTED) | STREAMING.to(DISPUTED)

    def __init__(self, current_status: str = JobStatus.PENDING) -> None:
        super().__init__(current_status=str(current_status))


class StreamStateMachine(_StatusMixin, StateMachine):
    """Guards the stream sub-status embedded in a STREAM job."""

    AWAITING_START = State("AWAITING_START", initial=True)
    ACTIVE = State("ACTIVE")
    PAUSED = State("PAUSED")
    STOPPED = State("STOPPED", final=True)

    start = AWAITING_START.to(ACTIVE)
    record_tick = ACTIVE.to.itself()
    pause = ACTIVE.to(PAUSED)
    resume = PAUSED.to(ACTIVE)
    stop = ACTIVE.to(STOPPED) | PAUSED.to(STOPPED)

    def __init__(self, current_status: str = StreamStatus.AWAITING_START) -> None:
        super().__init__(current_status=str(current_status))


class ListingStateMachine(_StatusMixin, StateMachine):
    """Guards Listing.status. Every exit from OPEN is terminal."""

    OPEN = State("OPEN", initial=True)
    CLOSED = State("CLOSED", final=True)
    CANCELLED = State("CANCELLED", final=True)
    EXPIRED = State("EXPIRED", final=True)

    close = OPEN.to(CLOSED)
    cancel = OPEN.to(CANCELLED)
    expire = OPEN.to(EXPIRED)

    def __init__(self, current_status: str = "OPEN") -> None:
        super().__init__(current_status=str(current_status))


class ApplicationStateMachine(_StatusMixin, StateMachine):
    """Guards Application.status."""

    PENDING = State("PENDING", initial=True)
    OFFERED = State("OFFERED", final=True)
    REJECTED = State("REJECTED", final=True)

    offer = PENDING.to(OFFERED)
    reject = PENDING.to(REJECTED)

    def __init__(self, current_status: str = "PENDING") -> None:
        super().__init__(current_status=str(current_status))


class AgentStateMachine(_StatusMixin, StateMachine):
    """Guards Agent.status.

    Re-activation from ACTIVE refreshes the tier and its expiry; an expired
    tier lapses the agent back to PENDING.
    """

    PENDING = State("PENDING", initial=True)
    ACTIVE = State("ACTIVE")

    activate = PENDING.to(ACTIVE) | ACTIVE.to.itself()
    lapse = ACTIVE.to(PENDING)

    def __init__(self, current_status: str = "PENDING") -> None:
        super().__init__(current_status=str(current_status))


def validate_transition(
    machine_cls: type[StateMachine], current_status: str, event_name: str
) -> str:
    """Validate a state transition and return the new status.

    Creates a temporary machine of `machine_cls` at `current_status`, fires
    the named event, and returns the resulting status string.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = machine_cls(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status


def next_job_actions(status: str, payment_mode: str = PaymentMode.ONE_TIME) -> list[str]:
    """Events the agent side may drive next for a job in `status`.

    Human-side events (accept, reject, complete) and operator-owned ones
    (cancel, dispute) are filtered out. The stream events only apply to
    STREAM jobs and mark_paid only to ONE_TIME jobs.
    """
    if status == JobStatus.COMPLETED:
        return ["leave_review"]
    events = JobStateMachine(current_status=status).get_allowed_events()
    agent_events = {"mark_paid", "start_stream", "pause_stream", "resume_stream", "stop_stream"}
    actions = [e for e in events if e in agent_events]
    if payment_mode == PaymentMode.STREAM:
        return [e for e in actions if e != "mark_paid"]
    return [e for e in actions if not e.endswith("_stream")]
