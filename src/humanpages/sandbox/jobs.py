"""Job desk — human discovery, offers, one-time settlement, review and messaging.

Both the direct-offer route and the listing desk open jobs through
`open_job`, so the spam filters and the initial PENDING status are the same
for every job. Every status write goes through the job state machine first.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from humanpages.domain.enums import (
    MESSAGEABLE_JOB_STATUSES,
    ErrorCode,
    JobStatus,
    PaymentMode,
    QuotaKind,
    SenderType,
    WorkMode,
)
from humanpages.domain.exceptions import MarketplaceError
from humanpages.domain.state_machine import JobStateMachine
from humanpages.logging_config import get_logger
from humanpages.sandbox.geo import distance_km
from humanpages.sandbox.store import (
    JobRecord,
    MessageRecord,
    ReviewRecord,
    SandboxStore,
    StreamRecord,
    fire_transition,
    new_id,
)
from humanpages.sandbox.streams import StreamDesk, stream_summary
from humanpages.sandbox.trust import Permit, TrustGate
from humanpages.schemas.entities import (
    Human,
    HumanProfile,
    Job,
    JobMessage,
    JobParty,
    JobUpdate,
    Review,
    ReviewReceipt,
)
from humanpages.schemas.wire import CreateJobBody, MarkPaidBody, ReviewBody
from humanpages.services.webhooks import build_payload

logger = get_logger(__name__)

MESSAGE_MAX_LENGTH = 2000
_PUBLIC_FIELDS = set(Human.model_fields)


def public_human(human: HumanProfile) -> Human:
    """Strip contact, wallet and social fields."""
    return Human.model_validate(human.model_dump(include=_PUBLIC_FIELDS))


class JobDesk:
    def __init__(self, store: SandboxStore, gate: TrustGate) -> None:
        self.store = store
        self.gate = gate
        self.streams = StreamDesk(store, self)

    # ------------------------------------------------------------------
    # Humans
    # ------------------------------------------------------------------

    def search_humans(
        self,
        skill: str | None = None,
        equipment: str | None = None,
        language: str | None = None,
        location: str | None = None,
        lat: float | None = None,
        lng: float | None = None,
        radius: float | None = None,
        max_rate: float | None = None,
        available: bool = False,
        work_mode: WorkMode | None = None,
        verified: str | None = None,
    ) -> list[Human]:
        def has(values: list[str], wanted: str | None) -> bool:
            return wanted is None or wanted.lower() in (v.lower() for v in values)

        results = []
        for human in self.store.humans.values():
            if not (has(human.skills, skill) and has(human.equipment, equipment) and has(human.languages, language)):
                continue
            if location is not None:
                where = f"{human.location or ''} {human.neighborhood or ''}".lower()
                if location.lower() not in where:
                    continue
            if lat is not None and lng is not None and radius is not None:
                if human.location_lat is None or human.location_lng is None:
                    continue
                if distance_km(lat, lng, human.location_lat, human.location_lng) > radius:
                    continue
            if max_rate is not None and human.min_rate_usdc is not None and human.min_rate_usdc > Decimal(str(max_rate)):
                continue
            if available and not human.is_available:
                continue
            if work_mode is not None and human.work_mode not in (work_mode, WorkMode.HYBRID, None):
                continue
            if verified == "humanity" and not human.humanity_verified:
                continue
            results.append(public_human(human))
        return results

    def get_human(self, human_id: str) -> Human:
        return public_human(self.store.get_human_or_raise(human_id))

    def human_profile(self, permit: Permit, human_id: str) -> HumanProfile:
        human = self.store.get_human_or_raise(human_id)
        permit.commit()
        return human

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_job(self, permit: Permit, body: CreateJobBody) -> Job:
        if permit.agent is not None and permit.agent.id != body.agent_id:
            raise MarketplaceError(ErrorCode.FORBIDDEN, "agent_id does not match the agent key", status_code=403)
        self.store.get_agent_or_raise(body.agent_id)
        human = self.store.get_human_or_raise(body.human_id)
        self.check_offer_filters(human, body.price_usdc, body.agent_lat, body.agent_lng)
        job = self.open_job(body)
        permit.commit()
        return self.to_job(job)

    def check_offer_filters(
        self,
        human: HumanProfile,
        price: Decimal,
        lat: float | None,
        lng: float | None,
    ) -> None:
        if human.min_offer_price is not None and price < human.min_offer_price:
            raise MarketplaceError(
                ErrorCode.BELOW_MIN_OFFER_PRICE,
                f"{human.name} does not accept offers below ${human.min_offer_price}",
                details={"minOfferPrice": float(human.min_offer_price)},
            )
        if human.max_offer_distance is None or human.location_lat is None or human.location_lng is None:
            return
        if lat is None or lng is None:
            raise MarketplaceError(
                ErrorCode.COORDINATES_REQUIRED,
                f"{human.name} only accepts offers within {human.max_offer_distance} km. "
                "Provide agent_lat and agent_lng.",
            )
        distance = distance_km(lat, lng, human.location_lat, human.location_lng)
        if distance > human.max_offer_distance:
            raise MarketplaceError(
                ErrorCode.OUT_OF_RANGE,
                f"Offer location is {distance:.1f} km away; {human.name} accepts offers within "
                f"{human.max_offer_distance} km",
                details={"distanceKm": round(distance, 1), "maxOfferDistance": human.max_offer_distance},
            )

    def open_job(self, body: CreateJobBody, listing_id: str | None = None) -> JobRecord:
        """Create a PENDING job record. Filters are the caller's concern."""
        stream = None
        if body.payment_mode == PaymentMode.STREAM:
            if body.stream_method is None or body.stream_interval is None or body.stream_rate_usdc is None:
                raise MarketplaceError(
                    ErrorCode.VALIDATION_ERROR,
                    "STREAM jobs need streamMethod, streamInterval and streamRateUsdc",
                )
            stream = StreamRecord(
                method=body.stream_method,
                interval=body.stream_interval,
                rate_usdc=body.stream_rate_usdc,
                max_ticks=body.stream_max_ticks,
            )
        elif body.stream_method is not None:
            raise MarketplaceError(ErrorCode.VALIDATION_ERROR, "Stream settings require paymentMode STREAM")
        if body.price_usdc <= 0:
            raise MarketplaceError(ErrorCode.VALIDATION_ERROR, "priceUsdc must be positive")

        job = JobRecord(
            id=new_id("job"),
            human_id=body.human_id,
            agent_id=body.agent_id,
            agent_name=body.agent_name,
            agent_lat=body.agent_lat,
            agent_lng=body.agent_lng,
            title=body.title,
            description=body.description,
            category=body.category,
            price_usdc=body.price_usdc,
            payment_mode=body.payment_mode,
            payment_timing=body.payment_timing,
            callback_url=body.callback_url,
            callback_secret=body.callback_secret,
            created_at=self.store.now(),
            listing_id=listing_id,
            stream=stream,
        )
        self.store.jobs[job.id] = job
        logger.info("sandbox.job_created", job_id=job.id, human_id=job.human_id, payment_mode=str(job.payment_mode))
        return job

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def to_job(self, job: JobRecord) -> Job:
        human = self.store.humans.get(job.human_id)
        stream = job.stream
        return Job(
            id=job.id,
            human_id=job.human_id,
            agent_id=job.agent_id,
            agent_name=job.agent_name,
            title=job.title,
            description=job.description,
            category=job.category,
            price_usdc=job.price_usdc,
            payment_mode=job.payment_mode,
            payment_timing=job.payment_timing,
            stream_method=stream.method if stream else None,
            stream_interval=stream.interval if stream else None,
            stream_rate_usdc=stream.rate_usdc if stream else None,
            stream_max_ticks=stream.max_ticks if stream else None,
            payment_tx_hash=job.payment_tx_hash,
            payment_network=job.payment_network,
            payment_amount=job.payment_amount,
            paid_at=job.paid_at,
            status=job.status,
            created_at=job.created_at,
            accepted_at=job.accepted_at,
            completed_at=job.completed_at,
            callback_url=job.callback_url,
            human=JobParty(id=human.id, name=human.name) if human else None,
            review=Review(id=job.review.id, rating=job.review.rating, comment=job.review.comment)
            if job.review
            else None,
            registered_agent=self.gate.brief(job.agent_id),
            stream_summary=stream_summary(stream, self.store.now()) if stream else None,
        )

    def get_job(self, job_id: str) -> Job:
        job = self.store.get_job_or_raise(job_id)
        self.streams.refresh(job)
        return self.to_job(job)

    def owned_job(self, api_key: str | None, job_id: str) -> JobRecord:
        """The job, if the key belongs to its ACTIVE hiring agent."""
        agent = self.gate.require_active(self.gate.authenticate(api_key))
        job = self.store.get_job_or_raise(job_id)
        if job.agent_id != agent.id:
            raise MarketplaceError(ErrorCode.FORBIDDEN, "This job belongs to another agent", status_code=403)
        return job

    def _job_for_optional_key(self, api_key: str | None, job_id: str) -> JobRecord:
        if api_key:
            return self.owned_job(api_key, job_id)
        return self.store.get_job_or_raise(job_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def notify(self, job: JobRecord, data: dict[str, Any] | None = None) -> None:
        payload_data = {"jobId": job.id, "title": job.title, "status": str(job.status)}
        if job.stream is not None:
            summary = stream_summary(job.stream, self.store.now())
            payload_data["stream"] = summary.to_wire()
        if data:
            payload_data.update(data)
        payload = build_payload("job", job.id, job.status, payload_data, timestamp=self.store.now())
        self.store.notify(job.callback_url, payload, job.callback_secret)

    def _contact_card(self, human: HumanProfile) -> dict[str, Any]:
        return {
            "human": {
                "id": human.id,
                "name": human.name,
                "contactEmail": human.contact_email,
                "telegram": human.telegram,
                "signal": human.signal,
                "wallets": [w.to_wire() for w in human.wallets],
                "fiatPaymentMethods": [f.to_wire() for f in human.fiat_payment_methods],
            }
        }

    def _human_job(self, human_id: str, job_id: str) -> JobRecord:
        job = self.store.get_job_or_raise(job_id)
        if job.human_id != human_id:
            raise MarketplaceError(ErrorCode.FORBIDDEN, "This job was offered to someone else", status_code=403)
        return job

    def accept(self, human_id: str, job_id: str) -> Job:
        job = self._human_job(human_id, job_id)
        job.status = JobStatus(fire_transition(JobStateMachine, job.status, "accept"))
        job.accepted_at = self.store.now()
        self.notify(job, self._contact_card(self.store.get_human_or_raise(job.human_id)))
        logger.info("sandbox.job_accepted", job_id=job.id)
        return self.to_job(job)

    def reject(self, human_id: str, job_id: str) -> Job:
        job = self._human_job(human_id, job_id)
        job.status = JobStatus(fire_transition(JobStateMachine, job.status, "reject"))
        self.notify(job)
        return self.to_job(job)

    def complete(self, human_id: str, job_id: str) -> Job:
        job = self._human_job(human_id, job_id)
        self.finish(job, "complete", self.store.now())
        return self.to_job(job)

    def finish(self, job: JobRecord, event: str, at: datetime) -> None:
        """Move a job into COMPLETED and credit the human."""
        job.status = JobStatus(fire_transition(JobStateMachine, job.status, event))
        job.completed_at = at
        human = self.store.humans.get(job.human_id)
        if human is not None:
            human.reputation.jobs_completed += 1
        self.notify(job)
        logger.info("sandbox.job_completed", job_id=job.id)

    def cancel(self, human_id: str, job_id: str) -> Job:
        job = self._human_job(human_id, job_id)
        job.status = JobStatus(fire_transition(JobStateMachine, job.status, "cancel"))
        job.cancelled_at = self.store.now()
        self.notify(job)
        return self.to_job(job)

    def dispute(self, human_id: str, job_id: str) -> Job:
        job = self._human_job(human_id, job_id)
        job.status = JobStatus(fire_transition(JobStateMachine, job.status, "dispute"))
        job.disputed_at = self.store.now()
        self.notify(job)
        return self.to_job(job)

    # ------------------------------------------------------------------
    # One-time settlement & review
    # ------------------------------------------------------------------

    def mark_paid(self, api_key: str | None, job_id: str, body: MarkPaidBody) -> JobUpdate:
        job = self._job_for_optional_key(api_key, job_id)
        if job.payment_mode == PaymentMode.STREAM:
            raise MarketplaceError(
                ErrorCode.INVALID_STATE,
                "STREAM jobs are paid through the stream tools, not mark_job_paid",
                status_code=409,
            )
        new_status = fire_transition(
            JobStateMachine,
            job.status,
            "mark_paid",
            message=f"Job must be ACCEPTED to record payment (current status: {job.status})",
        )
        if body.payment_amount < job.price_usdc:
            raise MarketplaceError(
                ErrorCode.INSUFFICIENT_PAYMENT,
                f"Payment of {body.payment_amount} USDC is below the agreed price of {job.price_usdc} USDC",
            )

        human = self.store.get_human_or_raise(job.human_id)
        wallets = {w.address.lower() for w in human.wallets}
        check = self.store.chain.check_transfer(body.payment_tx_hash, body.payment_network)
        if not check.found or check.consumed or (check.receiver or "").lower() not in wallets:
            raise MarketplaceError(
                ErrorCode.PAYMENT_NOT_FOUND,
                f"No unused transfer {body.payment_tx_hash} to {human.name}'s wallet on {body.payment_network}",
            )
        if check.amount < job.price_usdc:
            raise MarketplaceError(
                ErrorCode.INSUFFICIENT_PAYMENT,
                f"On-chain transfer of {check.amount} USDC is below the agreed price of {job.price_usdc} USDC",
            )

        self.store.chain.consume_transfer(body.payment_tx_hash, body.payment_network)
        job.status = JobStatus(new_status)
        job.payment_tx_hash = body.payment_tx_hash
        job.payment_network = body.payment_network
        job.payment_amount = check.amount
        job.paid_at = self.store.now()
        self.notify(job)
        logger.info("sandbox.job_paid", job_id=job.id, amount=str(check.amount))
        return JobUpdate(id=job.id, status=job.status, message="Payment verified and recorded.")

    def review(self, api_key: str | None, job_id: str, body: ReviewBody) -> ReviewReceipt:
        job = self._job_for_optional_key(api_key, job_id)
        if not 1 <= body.rating <= 5:
            raise MarketplaceError(ErrorCode.VALIDATION_ERROR, "rating must be between 1 and 5")
        if job.status != JobStatus.COMPLETED:
            raise MarketplaceError(
                ErrorCode.NOT_COMPLETED,
                f"Only COMPLETED jobs can be reviewed (current status: {job.status})",
                status_code=409,
            )
        if job.review is not None:
            raise MarketplaceError(ErrorCode.ALREADY_REVIEWED, "This job was already reviewed", status_code=409)

        job.review = ReviewRecord(id=new_id("rev"), rating=body.rating, comment=body.comment, created_at=self.store.now())
        human = self.store.humans.get(job.human_id)
        if human is not None:
            rep = human.reputation
            rep.avg_rating = round((rep.avg_rating * rep.review_count + body.rating) / (rep.review_count + 1), 2)
            rep.review_count += 1
        logger.info("sandbox.job_reviewed", job_id=job.id, rating=body.rating)
        return ReviewReceipt(id=job.review.id, rating=body.rating, message="Review submitted.")

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def _append_message(self, job: JobRecord, sender_type: SenderType, sender_name: str, content: str) -> JobMessage:
        if job.status not in MESSAGEABLE_JOB_STATUSES:
            raise MarketplaceError(
                ErrorCode.JOB_CLOSED,
                f"Messages are closed for {job.status} jobs",
                status_code=409,
            )
        if not content.strip() or len(content) > MESSAGE_MAX_LENGTH:
            raise MarketplaceError(
                ErrorCode.VALIDATION_ERROR,
                f"Message must be 1 to {MESSAGE_MAX_LENGTH} characters",
            )
        message = MessageRecord(
            id=new_id("msg"),
            job_id=job.id,
            sender_type=sender_type,
            sender_name=sender_name,
            content=content,
            created_at=self.store.now(),
        )
        job.messages.append(message)
        return self._to_message(message)

    @staticmethod
    def _to_message(message: MessageRecord) -> JobMessage:
        return JobMessage(
            id=message.id,
            sender_type=message.sender_type,
            sender_name=message.sender_name,
            content=message.content,
            created_at=message.created_at,
        )

    def send_message(self, api_key: str | None, job_id: str, content: str) -> JobMessage:
        job = self.owned_job(api_key, job_id)
        permit = self.gate.authorize(api_key, kind=QuotaKind.MESSAGE)
        message = self._append_message(job, SenderType.AGENT, permit.agent.name, content)
        permit.commit()
        return message

    def human_reply(self, human_id: str, job_id: str, content: str) -> JobMessage:
        job = self._human_job(human_id, job_id)
        human = self.store.get_human_or_raise(human_id)
        return self._append_message(job, SenderType.HUMAN, human.name, content)

    def messages(self, api_key: str | None, job_id: str) -> list[JobMessage]:
        job = self.owned_job(api_key, job_id)
        return [self._to_message(m) for m in sorted(job.messages, key=lambda m: m.created_at)]
