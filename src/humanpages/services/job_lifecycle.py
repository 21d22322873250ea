"""Job Lifecycle Controller — discovery, offers, one-time payment, review, messaging.

Owns every job transition up to ACCEPTED and the one-time settlement path:

    create_job_offer -> PENDING
    (human) accept    -> ACCEPTED     (contact + wallets unlocked)
    mark_job_paid     -> PAID         (ONE_TIME only, amount >= price)
    (human) complete  -> COMPLETED
    leave_review      -> COMPLETED    (one-shot)

STREAM jobs hand over to StreamPaymentController after ACCEPTED.

No precondition is checked locally: the backend is authoritative and any
concurrent change means the caller must see the backend's error, not a
stale local verdict. Next-step guidance is derived from the job state
machine's allowed events.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from humanpages.domain.enums import JobStatus, PaymentMode, StreamMethod
from humanpages.domain.state_machine import next_job_actions
from humanpages.logging_config import get_logger
from humanpages.schemas.entities import (
    Human,
    HumanProfile,
    Job,
    JobMessage,
    JobUpdate,
    ReviewReceipt,
)
from humanpages.schemas.wire import MessageBody
from humanpages.services.trust_tier import activation_guidance, segment

if TYPE_CHECKING:
    from humanpages.client.http import BackendClient
    from humanpages.schemas.operations import (
        AuthenticatedJobArgs,
        CreateJobOfferArgs,
        GetHumanArgs,
        HumanIdArgs,
        HumanProfileArgs,
        JobIdArgs,
        LeaveReviewArgs,
        MarkJobPaidArgs,
        SearchHumansArgs,
        SendMessageArgs,
    )

logger = get_logger(__name__)


@dataclass(frozen=True)
class JobStatusView:
    """A job plus what the agent can do next."""

    job: Job
    next_actions: list[str]
    next_step: str


def describe_next_step(job: Job) -> str:
    """Plain-language guidance for the agent, keyed on status and payment mode."""
    status = job.status
    is_stream = job.payment_mode == PaymentMode.STREAM
    summary = job.stream_summary
    total_paid = summary.total_paid if summary else 0

    if status == JobStatus.PENDING:
        return "Waiting for the human to accept or reject."
    if status == JobStatus.ACCEPTED:
        if is_stream:
            if job.stream_method == StreamMethod.SUPERFLUID:
                return (
                    "Human accepted! Create a Superfluid flow to their wallet, then use "
                    "`start_stream` with your sender address to verify."
                )
            return "Human accepted! Use `start_stream` to lock the network/token and start sending payments."
        webhook = " Contact info was sent to your webhook." if job.callback_url else ""
        return (
            f"Human accepted!{webhook} Send ${job.price_usdc} USDC to their wallet, then use "
            "`mark_job_paid` with the transaction hash."
        )
    if status == JobStatus.REJECTED:
        return "The human rejected this offer. Consider adjusting your offer or finding another human."
    if status == JobStatus.PAID:
        return "Payment recorded. Work is in progress. The human will mark it complete when done."
    if status == JobStatus.STREAMING:
        if summary is not None and summary.method == StreamMethod.SUPERFLUID:
            return (
                f"Stream active via Superfluid. Total streamed: ${total_paid} USDC. "
                "Use `pause_stream` or `stop_stream` to manage."
            )
        return (
            f"Stream active via micro-transfer. Total paid: ${total_paid} USDC. "
            "Use `record_stream_tick` to submit each payment."
        )
    if status == JobStatus.PAUSED:
        return "Stream is paused. Use `resume_stream` to continue or `stop_stream` to end permanently."
    if status == JobStatus.COMPLETED:
        if job.review is not None:
            return f"Review submitted: {job.review.rating}/5 stars"
        return "Job complete! You can now use `leave_review` to rate the human."
    if status == JobStatus.CANCELLED:
        return "This job was cancelled. No further actions are possible."
    return "This job is under dispute. Resolution is handled by Human Pages support; check back with `get_job_status`."


class JobLifecycleController:
    """Human discovery and the one-time job path."""

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def search_humans(self, args: SearchHumansArgs) -> list[Human]:
        return await self._client.get("/api/humans/search", params=args.to_query(), model=list[Human])

    async def get_human(self, args: GetHumanArgs) -> Human:
        return await self._client.get(f"/api/humans/{segment(args.id)}", model=Human)

    async def check_humanity(self, args: HumanIdArgs) -> Human:
        return await self._client.get(f"/api/humans/{segment(args.human_id)}", model=Human)

    async def get_human_profile(self, args: HumanProfileArgs) -> HumanProfile:
        """Gated full profile: an ACTIVE agent key or a per-call payment proof."""
        credential = args.credential().require("agent_key is required. Register and activate first.")
        with activation_guidance("viewing full profiles"):
            return await self._client.get(
                f"/api/humans/{segment(args.human_id)}/profile",
                credential=credential,
                model=HumanProfile,
            )

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------

    async def create_job_offer(self, args: CreateJobOfferArgs) -> Job:
        """Create a direct offer. The job starts PENDING."""
        credential = args.credential().require(
            "agent_key is required. Register first with register_agent to get an API key."
        )
        with activation_guidance("creating jobs"):
            job = await self._client.post(
                "/api/jobs",
                credential=credential,
                json=args.to_body(),
                model=Job,
            )
        logger.info(
            "jobs.offer_created",
            job_id=job.id,
            human_id=job.human_id,
            payment_mode=job.payment_mode,
        )
        return job

    async def get_job_status(self, args: JobIdArgs) -> JobStatusView:
        job = await self._client.get(f"/api/jobs/{segment(args.job_id)}", model=Job)
        actions = next_job_actions(job.status, job.payment_mode)
        if job.review is not None:
            actions = [a for a in actions if a != "leave_review"]
        return JobStatusView(job=job, next_actions=actions, next_step=describe_next_step(job))

    # ------------------------------------------------------------------
    # Settlement & review
    # ------------------------------------------------------------------

    async def mark_job_paid(self, args: MarkJobPaidArgs) -> JobUpdate:
        """Record a one-time payment for an ACCEPTED job."""
        result = await self._client.patch(
            f"/api/jobs/{segment(args.job_id)}/paid",
            credential=args.credential(),
            json=args.to_body(),
            model=JobUpdate,
        )
        logger.info("jobs.marked_paid", job_id=args.job_id, network=args.payment_network)
        return result

    async def leave_review(self, args: LeaveReviewArgs) -> ReviewReceipt:
        result = await self._client.post(
            f"/api/jobs/{segment(args.job_id)}/review",
            credential=args.credential(),
            json=args.to_body(),
            model=ReviewReceipt,
        )
        logger.info("jobs.reviewed", job_id=args.job_id, rating=args.rating)
        return result

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    async def send_message(self, args: SendMessageArgs) -> JobMessage:
        credential = args.credential().require_agent_key()
        return await self._client.post(
            f"/api/jobs/{segment(args.job_id)}/messages",
            credential=credential,
            json=MessageBody(content=args.content),
            model=JobMessage,
        )

    async def get_messages(self, args: AuthenticatedJobArgs) -> list[JobMessage]:
        credential = args.credential().require_agent_key()
        return await self._client.get(
            f"/api/jobs/{segment(args.job_id)}/messages",
            credential=credential,
            model=list[JobMessage],
        )
