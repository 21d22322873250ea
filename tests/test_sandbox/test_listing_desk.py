"""Tests for listings, applications and the offer conversion."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import START, apply, pay, register
from humanpages.domain.enums import AgentTier, ApplicationStatus, JobStatus, ListingStatus
from humanpages.domain.exceptions import ApiError
from humanpages.sandbox.store import PLATFORM_WALLET
from humanpages.schemas.operations import (
    AuthenticatedListingArgs,
    CreateJobOfferArgs,
    CreateListingArgs,
    GetListingsArgs,
    JobIdArgs,
    ListingIdArgs,
    ListingOfferArgs,
)

ALFAMA = {"location": "Alfama, Lisbon", "location_lat": 38.7118, "location_lng": -9.1300}
PORTO = {"location": "Ribeira, Porto", "location_lat": 41.1405, "location_lng": -8.6110}


async def post_listing(hp, agent, budget: float = 60, days: int = 7, **fields):
    args = CreateListingArgs(
        agent_key=agent[1] if agent else None,
        title=fields.pop("title", "Product photos"),
        description="Photograph twelve products on a white background",
        budget_usdc=budget,
        expires_at=START + timedelta(days=days),
        **fields,
    )
    return await hp.listings.create_listing(args)


async def applied(raw, human_id: str, listing_id: str) -> str:
    response = await apply(raw, human_id, listing_id)
    assert response.status_code == 201, response.text
    return response.json()["id"]


class TestCreate:
    @pytest.mark.asyncio
    async def test_basic_quota_is_reported(self, hp, basic_agent) -> None:
        receipt = await post_listing(hp, basic_agent)
        assert receipt.status == ListingStatus.OPEN
        assert receipt.rate_limit.remaining == 0
        assert receipt.rate_limit.tier == AgentTier.BASIC

        with pytest.raises(ApiError) as exc_info:
            await post_listing(hp, basic_agent)
        assert exc_info.value.code == "RATE_LIMITED"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("budget", "days", "code"),
        [(2, 7, "BUDGET_TOO_LOW"), (60, -1, "EXPIRY_IN_PAST"), (60, 91, "EXPIRY_TOO_FAR")],
    )
    async def test_rejected_listings_do_not_use_quota(self, hp, basic_agent, budget, days, code) -> None:
        with pytest.raises(ApiError) as exc_info:
            await post_listing(hp, basic_agent, budget=budget, days=days)
        assert exc_info.value.code == code

        receipt = await post_listing(hp, basic_agent)
        assert receipt.status == ListingStatus.OPEN

    @pytest.mark.asyncio
    async def test_pending_agent(self, hp) -> None:
        agent = await register(hp)
        with pytest.raises(ApiError) as exc_info:
            await post_listing(hp, agent)
        assert exc_info.value.code == "AGENT_PENDING"

    @pytest.mark.asyncio
    async def test_paid_listing(self, hp, store) -> None:
        agent = await register(hp)
        proof = pay(store, PLATFORM_WALLET, "0.50")
        receipt = await post_listing(hp, agent, payment_proof=proof)
        assert receipt.paid_via == "x402"
        assert receipt.rate_limit is None

    @pytest.mark.asyncio
    async def test_listing_needs_an_owner(self, hp, store) -> None:
        proof = pay(store, PLATFORM_WALLET, "0.50")
        with pytest.raises(ApiError) as exc_info:
            await post_listing(hp, None, payment_proof=proof)
        assert exc_info.value.code == "UNAUTHORIZED"
        assert not store.chain.check_transfer(proof, "base").consumed


class TestBrowse:
    @pytest.mark.asyncio
    async def test_pro_listings_first(self, hp, clock, basic_agent, pro_agent) -> None:
        await post_listing(hp, pro_agent, title="From PRO")
        clock.advance(minutes=1)
        await post_listing(hp, basic_agent, title="From BASIC")

        page = await hp.listings.get_listings(GetListingsArgs())
        assert [item.title for item in page.listings] == ["From PRO", "From BASIC"]
        assert page.listings[0].is_pro
        assert page.pagination.total == 2

    @pytest.mark.asyncio
    async def test_filters_and_pages(self, hp, pro_agent) -> None:
        await post_listing(hp, pro_agent, budget=20, required_skills=["photography"])
        await post_listing(hp, pro_agent, budget=200, required_skills=["research"])
        await post_listing(hp, pro_agent, budget=80, required_skills=["photography"])

        page = await hp.listings.get_listings(GetListingsArgs(skill="photography", min_budget=50))
        assert [item.budget_usdc for item in page.listings] == [80]

        page = await hp.listings.get_listings(GetListingsArgs(limit=2, page=2))
        assert len(page.listings) == 1
        assert page.pagination.total_pages == 2

    @pytest.mark.asyncio
    async def test_expired_listings_leave_the_board(self, hp, raw, clock, pro_agent) -> None:
        receipt = await post_listing(hp, pro_agent, days=1)
        clock.advance(days=1, seconds=1)

        page = await hp.listings.get_listings(GetListingsArgs())
        assert page.listings == []
        listing = await hp.listings.get_listing(ListingIdArgs(listing_id=receipt.id))
        assert listing.status == ListingStatus.EXPIRED

        response = await apply(raw, "hum_ana", receipt.id)
        assert response.status_code == 409
        assert response.json()["code"] == "LISTING_NOT_OPEN"


class TestApplications:
    @pytest.mark.asyncio
    async def test_apply_once(self, hp, raw, pro_agent) -> None:
        receipt = await post_listing(hp, pro_agent)
        await applied(raw, "hum_ana", receipt.id)
        response = await apply(raw, "hum_ana", receipt.id)
        assert response.json()["code"] == "ALREADY_APPLIED"

        listing = await hp.listings.get_listing(ListingIdArgs(listing_id=receipt.id))
        assert listing.counts.applications == 1

    @pytest.mark.asyncio
    async def test_max_applicants(self, hp, raw, pro_agent) -> None:
        receipt = await post_listing(hp, pro_agent, max_applicants=1)
        await applied(raw, "hum_ana", receipt.id)
        response = await apply(raw, "hum_kofi", receipt.id)
        assert response.status_code == 409
        assert response.json()["code"] == "LISTING_FULL"

        listing = await hp.listings.get_listing(ListingIdArgs(listing_id=receipt.id))
        assert listing.status == ListingStatus.OPEN

    @pytest.mark.asyncio
    async def test_blank_pitch(self, hp, raw, pro_agent) -> None:
        receipt = await post_listing(hp, pro_agent)
        response = await apply(raw, "hum_ana", receipt.id, pitch="   ")
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_only_owner_sees_applications(self, hp, raw, pro_agent, basic_agent) -> None:
        receipt = await post_listing(hp, pro_agent)
        await applied(raw, "hum_ana", receipt.id)

        apps = await hp.listings.get_applications(AuthenticatedListingArgs(agent_key=pro_agent[1], listing_id=receipt.id))
        assert [a.human.name for a in apps] == ["Ana Ribeiro"]

        with pytest.raises(ApiError) as exc_info:
            await hp.listings.get_applications(
                AuthenticatedListingArgs(agent_key=basic_agent[1], listing_id=receipt.id)
            )
        assert exc_info.value.code == "NOT_LISTING_OWNER"


class TestOffer:
    @pytest.mark.asyncio
    async def test_offer_creates_job_and_closes_listing(self, hp, raw, store, pro_agent) -> None:
        receipt = await post_listing(hp, pro_agent, budget=25, **ALFAMA)
        ana = await applied(raw, "hum_ana", receipt.id)
        kofi = await applied(raw, "hum_kofi", receipt.id)

        offer = await hp.listings.make_offer(
            ListingOfferArgs(agent_key=pro_agent[1], listing_id=receipt.id, application_id=ana)
        )
        assert offer.status == JobStatus.PENDING
        assert offer.warning == ""

        view = await hp.jobs.get_job_status(JobIdArgs(job_id=offer.id))
        assert view.job.human_id == "hum_ana"
        assert view.job.price_usdc == 25
        assert store.jobs[offer.id].listing_id == receipt.id

        listing = await hp.listings.get_listing(ListingIdArgs(listing_id=receipt.id))
        assert listing.status == ListingStatus.CLOSED
        assert store.applications[ana].status == ApplicationStatus.OFFERED
        assert store.applications[kofi].status == ApplicationStatus.PENDING

        with pytest.raises(ApiError) as exc_info:
            await hp.listings.make_offer(
                ListingOfferArgs(agent_key=pro_agent[1], listing_id=receipt.id, application_id=kofi)
            )
        assert exc_info.value.code == "LISTING_NOT_OPEN"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("budget", "site", "code"),
        [
            (10, ALFAMA, "BELOW_MIN_OFFER_PRICE"),
            (25, {}, "COORDINATES_REQUIRED"),
            (25, PORTO, "OUT_OF_RANGE"),
        ],
    )
    async def test_human_filters_apply(self, hp, raw, store, pro_agent, budget, site, code) -> None:
        receipt = await post_listing(hp, pro_agent, budget=budget, **site)
        ana = await applied(raw, "hum_ana", receipt.id)

        with pytest.raises(ApiError) as exc_info:
            await hp.listings.make_offer(
                ListingOfferArgs(agent_key=pro_agent[1], listing_id=receipt.id, application_id=ana)
            )
        assert exc_info.value.code == code

        assert store.jobs == {}
        assert store.applications[ana].status == ApplicationStatus.PENDING
        listing = await hp.listings.get_listing(ListingIdArgs(listing_id=receipt.id))
        assert listing.status == ListingStatus.OPEN

    @pytest.mark.asyncio
    async def test_offer_draws_on_job_offer_quota(self, hp, raw, store, clock, basic_agent) -> None:
        agent_id, api_key = basic_agent
        receipt = await post_listing(hp, basic_agent, budget=25, **ALFAMA)
        kofi = await applied(raw, "hum_kofi", receipt.id)

        await hp.jobs.create_job_offer(
            CreateJobOfferArgs(
                agent_key=api_key,
                agent_id=agent_id,
                human_id="hum_kofi",
                title="Market notes",
                description="One page of notes",
                price_usdc=15,
            )
        )

        with pytest.raises(ApiError) as exc_info:
            await hp.listings.make_offer(
                ListingOfferArgs(agent_key=api_key, listing_id=receipt.id, application_id=kofi)
            )
        assert exc_info.value.code == "RATE_LIMITED"
        assert store.applications[kofi].status == ApplicationStatus.PENDING

        clock.advance(days=2, seconds=1)
        offer = await hp.listings.make_offer(
            ListingOfferArgs(agent_key=api_key, listing_id=receipt.id, application_id=kofi)
        )
        assert offer.status == JobStatus.PENDING

    @pytest.mark.asyncio
    async def test_rejected_offer_does_not_use_quota(self, hp, raw, store, basic_agent) -> None:
        receipt = await post_listing(hp, basic_agent, budget=10, **ALFAMA)
        ana = await applied(raw, "hum_ana", receipt.id)
        kofi = await applied(raw, "hum_kofi", receipt.id)

        with pytest.raises(ApiError) as exc_info:
            await hp.listings.make_offer(
                ListingOfferArgs(agent_key=basic_agent[1], listing_id=receipt.id, application_id=ana)
            )
        assert exc_info.value.code == "BELOW_MIN_OFFER_PRICE"

        offer = await hp.listings.make_offer(
            ListingOfferArgs(agent_key=basic_agent[1], listing_id=receipt.id, application_id=kofi)
        )
        assert store.jobs[offer.id].human_id == "hum_kofi"

    @pytest.mark.asyncio
    async def test_application_from_another_listing(self, hp, raw, pro_agent) -> None:
        first = await post_listing(hp, pro_agent)
        second = await post_listing(hp, pro_agent)
        app_id = await applied(raw, "hum_ana", first.id)
        with pytest.raises(ApiError) as exc_info:
            await hp.listings.make_offer(
                ListingOfferArgs(agent_key=pro_agent[1], listing_id=second.id, application_id=app_id)
            )
        assert exc_info.value.code == "NOT_FOUND"


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_rejects_pending_applications(self, hp, raw, store, pro_agent) -> None:
        receipt = await post_listing(hp, pro_agent)
        ana = await applied(raw, "hum_ana", receipt.id)
        kofi = await applied(raw, "hum_kofi", receipt.id)

        result = await hp.listings.cancel_listing(
            AuthenticatedListingArgs(agent_key=pro_agent[1], listing_id=receipt.id)
        )
        assert result.status == ListingStatus.CANCELLED
        assert "2 pending application(s) rejected" in result.message
        assert {store.applications[a].status for a in (ana, kofi)} == {ApplicationStatus.REJECTED}

        with pytest.raises(ApiError) as exc_info:
            await hp.listings.cancel_listing(AuthenticatedListingArgs(agent_key=pro_agent[1], listing_id=receipt.id))
        assert exc_info.value.code == "ALREADY_CLOSED"
