"""End-to-end scenarios: protocol client -> sandbox backend -> webhooks."""

from __future__ import annotations

import json
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import START, activate_basic, apply, human_action, pay, register, wallet_of
from humanpages.domain.enums import AgentStatus, AgentTier, ApplicationStatus, JobStatus, ListingStatus
from humanpages.domain.exceptions import ApiError
from humanpages.schemas.operations import (
    AgentKeyArgs,
    AuthenticatedListingArgs,
    CreateJobOfferArgs,
    CreateListingArgs,
    JobIdArgs,
    LeaveReviewArgs,
    ListingIdArgs,
    ListingOfferArgs,
    MarkJobPaidArgs,
    StartStreamArgs,
    StreamTickArgs,
)
from humanpages.services.webhooks import SIGNATURE_HEADER, verify_signature

HOOK_URL = "https://agent.example/hooks/humanpages"
HOOK_SECRET = "whsec_0123456789abcdef"
LISBON = {"agent_lat": 38.7223, "agent_lng": -9.1393}
ALFAMA = {"location": "Alfama, Lisbon", "location_lat": 38.7118, "location_lng": -9.1300}


def ana_offer(agent_id: str, api_key: str, price) -> CreateJobOfferArgs:
    return CreateJobOfferArgs(
        agent_key=api_key,
        agent_id=agent_id,
        human_id="hum_ana",
        title="Storefront photos",
        description="Three photos of the bakery on Rua Augusta",
        price_usdc=price,
        callback_url=HOOK_URL,
        callback_secret=HOOK_SECRET,
        **LISBON,
    )


def listing_args(api_key: str, **fields) -> CreateListingArgs:
    return CreateListingArgs(
        agent_key=api_key,
        title="Menu photos",
        description="Photograph a twelve-item menu",
        budget_usdc=40,
        expires_at=START + timedelta(days=5),
        callback_url=HOOK_URL,
        callback_secret=HOOK_SECRET,
        **{**ALFAMA, **fields},
    )


def delivered(inbox) -> list[dict]:
    """Decode every delivery after checking its signature."""
    bodies = []
    for request in inbox.requests:
        assert str(request.url) == HOOK_URL
        assert verify_signature(request.content, request.headers.get(SIGNATURE_HEADER), HOOK_SECRET)
        bodies.append(json.loads(request.content))
    return bodies


class TestOneTimeHire:
    @pytest.mark.asyncio
    async def test_pending_agent_activates_and_hires(self, hp, raw, store, inbox) -> None:
        agent_id, api_key = await register(hp)
        status = await hp.trust.get_activation_status(AgentKeyArgs(agent_key=api_key))
        assert status.status == AgentStatus.PENDING

        with pytest.raises(ApiError) as exc_info:
            await hp.jobs.create_job_offer(ana_offer(agent_id, api_key, 25))
        assert exc_info.value.code == "AGENT_PENDING"

        await activate_basic(hp, store, api_key)
        status = await hp.trust.get_activation_status(AgentKeyArgs(agent_key=api_key))
        assert (status.status, status.tier) == (AgentStatus.ACTIVE, AgentTier.BASIC)

        with pytest.raises(ApiError) as exc_info:
            await hp.jobs.create_job_offer(ana_offer(agent_id, api_key, 10))
        assert exc_info.value.code == "BELOW_MIN_OFFER_PRICE"

        job = await hp.jobs.create_job_offer(ana_offer(agent_id, api_key, 25))
        assert job.status == JobStatus.PENDING

        await human_action(raw, "hum_ana", job.id, "accept")
        tx_hash = pay(store, wallet_of(store, "hum_ana"), 25)
        await hp.jobs.mark_job_paid(
            MarkJobPaidArgs(
                agent_key=api_key,
                job_id=job.id,
                payment_tx_hash=tx_hash,
                payment_network="base",
                payment_amount=25,
            )
        )
        await human_action(raw, "hum_ana", job.id, "complete")
        await hp.jobs.leave_review(LeaveReviewArgs(agent_key=api_key, job_id=job.id, rating=5, comment="Sharp work"))

        view = await hp.jobs.get_job_status(JobIdArgs(job_id=job.id))
        assert view.job.status == JobStatus.COMPLETED
        assert view.next_actions == []

        bodies = delivered(inbox)
        assert [b["event"] for b in bodies] == ["job.accepted", "job.paid", "job.completed"]
        contact = bodies[0]["data"]["human"]
        assert contact["contactEmail"] == "ana@example.com"
        assert contact["telegram"] == "@anashoots"
        assert all(b["entityId"] == job.id for b in bodies)

    @pytest.mark.asyncio
    async def test_pending_agent_fails_before_argument_checks(self, hp, store) -> None:
        agent_id, api_key = await register(hp)
        # Far below the minimum and without coordinates; activation is reported first
        offer = CreateJobOfferArgs(
            agent_key=api_key,
            agent_id=agent_id,
            human_id="hum_ana",
            title="Photos",
            description="Anything",
            price_usdc=1,
        )
        with pytest.raises(ApiError) as exc_info:
            await hp.jobs.create_job_offer(offer)
        assert exc_info.value.code == "AGENT_PENDING"
        assert store.usage == {}


class TestMicroTransferStream:
    @pytest.mark.asyncio
    async def test_daily_ticks(self, hp, raw, store, pro_agent) -> None:
        agent_id, api_key = pro_agent
        job = await hp.jobs.create_job_offer(
            CreateJobOfferArgs(
                agent_key=api_key,
                agent_id=agent_id,
                human_id="hum_kofi",
                title="Daily market notes",
                description="One page of notes per day",
                price_usdc=10,
                payment_mode="STREAM",
                stream_method="MICRO_TRANSFER",
                stream_interval="DAILY",
                stream_rate_usdc=10,
            )
        )
        await human_action(raw, "hum_kofi", job.id, "accept")

        started = await hp.streams.start_stream(
            StartStreamArgs(agent_key=api_key, job_id=job.id, sender_address="0x" + "b" * 40, network="base")
        )
        assert started.status == JobStatus.STREAMING

        kofi = wallet_of(store, "hum_kofi")
        receipt = await hp.streams.record_tick(
            StreamTickArgs(agent_key=api_key, job_id=job.id, tx_hash=pay(store, kofi, 10))
        )
        assert receipt.tick.tick_number == 1
        assert receipt.total_paid == Decimal("10")
        assert receipt.next_tick.tick_number == 2

        with pytest.raises(ApiError) as exc_info:
            await hp.streams.record_tick(StreamTickArgs(agent_key=api_key, job_id=job.id, tx_hash=pay(store, kofi, 5)))
        assert exc_info.value.code == "TICK_VERIFICATION_FAILED"

        view = await hp.jobs.get_job_status(JobIdArgs(job_id=job.id))
        summary = view.job.stream_summary
        assert summary.tick_count == 1
        assert summary.total_paid == Decimal("10")
        assert set(view.next_actions) == {"pause_stream", "stop_stream"}


class TestListingPipeline:
    @pytest.mark.asyncio
    async def test_single_slot_listing(self, hp, raw, inbox, pro_agent) -> None:
        _, api_key = pro_agent
        listing = await hp.listings.create_listing(listing_args(api_key, max_applicants=1))

        first = await apply(raw, "hum_ana", listing.id)
        assert first.status_code == 201
        second = await apply(raw, "hum_kofi", listing.id)
        assert second.status_code == 409

        offer = await hp.listings.make_offer(
            ListingOfferArgs(agent_key=api_key, listing_id=listing.id, application_id=first.json()["id"])
        )
        assert offer.status == JobStatus.PENDING

        detail = await hp.listings.get_listing(ListingIdArgs(listing_id=listing.id))
        assert detail.status == ListingStatus.CLOSED

        bodies = delivered(inbox)
        assert [b["event"] for b in bodies] == ["listing.closed", "job.pending"]
        assert bodies[0]["data"]["jobId"] == offer.id

    @pytest.mark.asyncio
    async def test_cancel_closes_applications(self, hp, raw, store, inbox, pro_agent) -> None:
        _, api_key = pro_agent
        listing = await hp.listings.create_listing(listing_args(api_key))
        app_ids = [(await apply(raw, human, listing.id)).json()["id"] for human in ("hum_ana", "hum_kofi")]

        await hp.listings.cancel_listing(AuthenticatedListingArgs(agent_key=api_key, listing_id=listing.id))
        assert all(store.applications[a].status == ApplicationStatus.REJECTED for a in app_ids)

        late = await apply(raw, "hum_mei", listing.id)
        assert late.status_code == 409
        assert late.json()["code"] == "LISTING_NOT_OPEN"

        bodies = delivered(inbox)
        assert bodies[-1]["event"] == "listing.cancelled"
        assert bodies[-1]["data"]["rejectedApplications"] == 2
