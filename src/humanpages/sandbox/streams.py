"""Stream desk — the STREAM payment sub-protocol of a job.

SUPERFLUID streams are settled continuously: the backend only checks that
the agent's flow exists at the agreed rate (start, resume) or is gone
(pause), and infers paid amount and tick count from active flow time.

MICRO_TRANSFER streams are settled tick by tick: start opens tick #1, each
verified transfer closes the pending tick and opens the next until max
ticks is reached, at which point the stream stops and the job completes.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from humanpages.domain.enums import (
    ErrorCode,
    JobStatus,
    PaymentMode,
    StreamMethod,
    StreamStatus,
    TickStatus,
)
from humanpages.domain.exceptions import MarketplaceError
from humanpages.domain.state_machine import JobStateMachine, StreamStateMachine
from humanpages.logging_config import get_logger
from humanpages.sandbox.payments import flow_rate_matches, per_second
from humanpages.sandbox.store import JobRecord, SandboxStore, StreamRecord, TickRecord, fire_transition
from humanpages.schemas.entities import HumanProfile, JobUpdate, StreamSummary, StreamTick, TickReceipt
from humanpages.schemas.wire import StartStreamBody

if TYPE_CHECKING:
    from humanpages.sandbox.jobs import JobDesk

logger = get_logger(__name__)


def _seconds(delta: timedelta) -> Decimal:
    return Decimal(str(delta.total_seconds()))


# ---------------------------------------------------------------------------
# Bookkeeping (pure functions over records)
# ---------------------------------------------------------------------------


def active_seconds(stream: StreamRecord, now: datetime) -> Decimal:
    """Total seconds a Superfluid flow has been running, including the open segment."""
    total = stream.settled_seconds
    if stream.segment_started_at is not None:
        total += _seconds(now - stream.segment_started_at)
    return total


def total_paid(stream: StreamRecord, now: datetime) -> Decimal:
    if stream.method == StreamMethod.MICRO_TRANSFER:
        return sum((t.amount or Decimal("0") for t in stream.verified_ticks), Decimal("0"))
    rate = per_second(stream.rate_usdc, stream.interval)
    open_seconds = active_seconds(stream, now) - stream.settled_seconds
    return (stream.settled_amount + rate * open_seconds).quantize(Decimal("0.000001"))


def tick_count(stream: StreamRecord, now: datetime) -> int:
    if stream.method == StreamMethod.MICRO_TRANSFER:
        return len(stream.verified_ticks)
    return int(active_seconds(stream, now) // stream.interval.seconds)


def settle_segment(stream: StreamRecord, now: datetime) -> None:
    """Close the open Superfluid segment, moving its accrual into the settled totals."""
    if stream.segment_started_at is None:
        return
    seconds = _seconds(now - stream.segment_started_at)
    stream.settled_amount += per_second(stream.rate_usdc, stream.interval) * seconds
    stream.settled_seconds += seconds
    stream.segment_started_at = None


def superfluid_cap_reached_at(stream: StreamRecord, now: datetime) -> datetime | None:
    """When an active Superfluid stream hit its max ticks, or None if it has not."""
    if (
        stream.method != StreamMethod.SUPERFLUID
        or stream.max_ticks is None
        or stream.segment_started_at is None
    ):
        return None
    cap = Decimal(stream.max_ticks * stream.interval.seconds)
    if active_seconds(stream, now) < cap:
        return None
    remaining = cap - stream.settled_seconds
    return stream.segment_started_at + timedelta(seconds=float(remaining))


def to_tick(tick: TickRecord) -> StreamTick:
    return StreamTick(
        tick_number=tick.tick_number,
        status=tick.status,
        amount=tick.amount,
        tx_hash=tick.tx_hash,
        expected_at=tick.expected_at,
        verified_at=tick.verified_at,
    )


def stream_summary(stream: StreamRecord, now: datetime) -> StreamSummary:
    return StreamSummary(
        method=stream.method,
        interval=stream.interval,
        rate_usdc=stream.rate_usdc,
        status=stream.status,
        total_paid=total_paid(stream, now),
        tick_count=tick_count(stream, now),
        max_ticks=stream.max_ticks,
        network=stream.network,
        token=stream.token,
        sender_address=stream.sender_address,
        receiver_wallet=stream.receiver_wallet,
        started_at=stream.started_at,
        paused_at=stream.paused_at,
    )


def receiver_wallet(human: HumanProfile, network: str) -> str | None:
    """The human's wallet on `network`, falling back to their preferred wallet."""
    for wallet in human.wallets:
        if wallet.network.lower() == network.lower():
            return wallet.address
    preferred = human.preferred_wallet
    return preferred.address if preferred else None


# ---------------------------------------------------------------------------
# Desk
# ---------------------------------------------------------------------------


class StreamDesk:
    def __init__(self, store: SandboxStore, jobs: JobDesk) -> None:
        self.store = store
        self.jobs = jobs

    def _stream_job(self, api_key: str | None, job_id: str) -> tuple[JobRecord, StreamRecord]:
        job = self.jobs.owned_job(api_key, job_id)
        if job.payment_mode != PaymentMode.STREAM or job.stream is None:
            raise MarketplaceError(
                ErrorCode.INVALID_STATE,
                "This is a ONE_TIME job. Use mark_job_paid instead of the stream tools.",
                status_code=409,
            )
        self.refresh(job)
        return job, job.stream

    def refresh(self, job: JobRecord) -> None:
        """Stop a Superfluid stream whose max ticks have elapsed since the last look."""
        if job.stream is None or job.stream.status != StreamStatus.ACTIVE:
            return
        reached = superfluid_cap_reached_at(job.stream, self.store.now())
        if reached is not None:
            settle_segment(job.stream, reached)
            self._finish(job, job.stream, reached)
            logger.info("sandbox.stream_cap_reached", job_id=job.id)

    def _verify_flow(self, stream: StreamRecord, sender: str, receiver: str, network: str, token: str) -> None:
        check = self.store.chain.check_flow(sender, receiver, network, token)
        expected = per_second(stream.rate_usdc, stream.interval)
        if not check.exists:
            raise MarketplaceError(
                ErrorCode.FLOW_NOT_FOUND,
                "No active flow found",
                details={
                    "hint": (
                        f"Create a {token} flow from {sender} to {receiver} on {network} "
                        f"at {expected:.12f} per second, then retry."
                    )
                },
            )
        if not flow_rate_matches(check.rate_per_second, stream.rate_usdc, stream.interval):
            raise MarketplaceError(
                ErrorCode.FLOW_RATE_MISMATCH,
                "Flow rate does not match the agreed rate",
                details={
                    "hint": (
                        f"Flow streams {check.rate_per_second} per second; "
                        f"{stream.rate_usdc} per {stream.interval.lower()} needs {expected:.12f} per second."
                    )
                },
            )

    def _finish(self, job: JobRecord, stream: StreamRecord, at: datetime) -> None:
        stream.status = StreamStatus(fire_transition(StreamStateMachine, stream.status, "stop"))
        pending = stream.pending_tick
        if pending is not None:
            pending.status = TickStatus.SKIPPED
        self.jobs.finish(job, "stop_stream", at)

    def _update(self, job: JobRecord, message: str) -> JobUpdate:
        summary = stream_summary(job.stream, self.store.now())
        return JobUpdate(
            id=job.id,
            status=job.status,
            message=message,
            total_paid=summary.total_paid,
            stream=summary,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(self, api_key: str | None, job_id: str, body: StartStreamBody) -> JobUpdate:
        job, stream = self._stream_job(api_key, job_id)
        job_status = fire_transition(JobStateMachine, job.status, "start_stream")
        stream_status = fire_transition(StreamStateMachine, stream.status, "start")

        human = self.store.get_human_or_raise(job.human_id)
        receiver = receiver_wallet(human, body.network)
        if receiver is None:
            raise MarketplaceError(ErrorCode.VALIDATION_ERROR, f"{human.name} has no wallet to receive payments")
        if stream.method == StreamMethod.SUPERFLUID:
            self._verify_flow(stream, body.sender_address, receiver, body.network, body.token)

        now = self.store.now()
        stream.status = StreamStatus(stream_status)
        stream.network = body.network
        stream.token = body.token
        stream.sender_address = body.sender_address
        stream.receiver_wallet = receiver
        stream.started_at = now
        if stream.method == StreamMethod.SUPERFLUID:
            stream.segment_started_at = now
            message = "Flow verified. Payment is streaming to the human's wallet."
        else:
            stream.ticks.append(TickRecord(tick_number=1, expected_at=now))
            message = (
                f"Stream started. Send {stream.rate_usdc} {body.token} to {receiver} on {body.network}, "
                "then call record_stream_tick with the transaction hash."
            )
        job.status = JobStatus(job_status)
        self.jobs.notify(job)
        logger.info("sandbox.stream_started", job_id=job.id, method=str(stream.method))
        return self._update(job, message)

    def tick(self, api_key: str | None, job_id: str, tx_hash: str) -> TickReceipt:
        job, stream = self._stream_job(api_key, job_id)
        if stream.method != StreamMethod.MICRO_TRANSFER:
            raise MarketplaceError(
                ErrorCode.STREAM_METHOD_MISMATCH,
                "Superfluid streams settle continuously; ticks are not submitted",
            )
        tick = stream.pending_tick
        if job.status != JobStatus.STREAMING or tick is None:
            raise MarketplaceError(ErrorCode.NO_PENDING_TICK, "No tick is waiting for payment", status_code=409)
        fire_transition(StreamStateMachine, stream.status, "record_tick")

        check = self.store.chain.check_transfer(tx_hash, stream.network or "")
        if not check.found:
            problem = f"Transaction {tx_hash} not found on {stream.network}"
        elif check.consumed:
            problem = f"Transaction {tx_hash} was already used"
        elif (check.receiver or "").lower() != (stream.receiver_wallet or "").lower():
            problem = f"Transfer was not sent to {stream.receiver_wallet}"
        elif check.amount != stream.rate_usdc:
            problem = f"Transfer of {check.amount} does not match the agreed rate of {stream.rate_usdc}"
        else:
            problem = None
        if problem:
            raise MarketplaceError(
                ErrorCode.TICK_VERIFICATION_FAILED,
                problem,
                details={"tickNumber": tick.tick_number},
            )

        now = self.store.now()
        self.store.chain.consume_transfer(tx_hash, stream.network or "")
        tick.status = TickStatus.VERIFIED
        tick.amount = check.amount
        tick.tx_hash = tx_hash
        tick.verified_at = now

        next_tick = None
        if stream.max_ticks is not None and len(stream.verified_ticks) >= stream.max_ticks:
            self._finish(job, stream, now)
        else:
            interval = timedelta(seconds=stream.interval.seconds)
            next_tick = TickRecord(tick_number=len(stream.ticks) + 1, expected_at=(tick.expected_at or now) + interval)
            stream.ticks.append(next_tick)

        logger.info("sandbox.tick_verified", job_id=job.id, tick=tick.tick_number, amount=str(check.amount))
        return TickReceipt(
            id=job.id,
            status=job.status,
            tick=to_tick(tick),
            total_paid=total_paid(stream, now),
            next_tick=to_tick(next_tick) if next_tick else None,
        )

    def pause(self, api_key: str | None, job_id: str) -> JobUpdate:
        job, stream = self._stream_job(api_key, job_id)
        job_status = fire_transition(JobStateMachine, job.status, "pause_stream")
        stream_status = fire_transition(StreamStateMachine, stream.status, "pause")

        now = self.store.now()
        if stream.method == StreamMethod.SUPERFLUID:
            check = self.store.chain.check_flow(
                stream.sender_address or "", stream.receiver_wallet or "", stream.network or "", stream.token or ""
            )
            if check.exists:
                raise MarketplaceError(
                    ErrorCode.FLOW_STILL_ACTIVE,
                    "The on-chain flow is still running",
                    status_code=409,
                    details={"hint": "Delete the flow on-chain first, then call pause_stream again."},
                )
            settle_segment(stream, now)
        else:
            pending = stream.pending_tick
            if pending is not None:
                pending.status = TickStatus.SKIPPED

        stream.status = StreamStatus(stream_status)
        stream.paused_at = now
        job.status = JobStatus(job_status)
        self.jobs.notify(job)
        logger.info("sandbox.stream_paused", job_id=job.id)
        return self._update(job, "Stream paused.")

    def resume(self, api_key: str | None, job_id: str, sender_address: str | None = None) -> JobUpdate:
        job, stream = self._stream_job(api_key, job_id)
        job_status = fire_transition(JobStateMachine, job.status, "resume_stream")
        stream_status = fire_transition(StreamStateMachine, stream.status, "resume")

        sender = sender_address or stream.sender_address or ""
        if stream.method == StreamMethod.SUPERFLUID:
            # A flow seen before the pause is never trusted; check again every time
            self._verify_flow(stream, sender, stream.receiver_wallet or "", stream.network or "", stream.token or "")

        now = self.store.now()
        stream.sender_address = sender
        if stream.method == StreamMethod.SUPERFLUID:
            stream.segment_started_at = now
        else:
            stream.ticks.append(TickRecord(tick_number=len(stream.ticks) + 1, expected_at=now))
        stream.status = StreamStatus(stream_status)
        stream.paused_at = None
        job.status = JobStatus(job_status)
        self.jobs.notify(job)
        logger.info("sandbox.stream_resumed", job_id=job.id)
        return self._update(job, "Stream resumed.")

    def stop(self, api_key: str | None, job_id: str) -> JobUpdate:
        job, stream = self._stream_job(api_key, job_id)
        if stream.status == StreamStatus.STOPPED:
            raise MarketplaceError(ErrorCode.ALREADY_STOPPED, "Stream already stopped", status_code=409)
        fire_transition(JobStateMachine, job.status, "stop_stream")

        now = self.store.now()
        settle_segment(stream, now)
        self._finish(job, stream, now)
        logger.info("sandbox.stream_stopped", job_id=job.id, total_paid=str(total_paid(stream, now)))
        return self._update(job, "Stream stopped. The job is complete.")
