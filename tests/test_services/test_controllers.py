"""Unit tests for the protocol controllers, with the backend mocked by respx."""

from __future__ import annotations

import httpx
import pytest
import respx

from humanpages.domain.enums import JobStatus, PaymentMode, StreamMethod
from humanpages.domain.exceptions import ApiError, MissingCredentialError
from humanpages.schemas.entities import Job, Review, StreamSummary
from humanpages.schemas.operations import (
    AgentKeyArgs,
    CreateJobOfferArgs,
    CreateListingArgs,
    HumanProfileArgs,
    JobIdArgs,
    SendMessageArgs,
)
from humanpages.services.facade import HumanPagesClient
from humanpages.services.job_lifecycle import describe_next_step

BASE = "http://backend.test"

JOB_JSON = {
    "id": "job_1",
    "humanId": "hum_1",
    "agentId": "agt_1",
    "title": "Photograph storefront",
    "description": "Three photos of the shop front",
    "priceUsdc": 40,
    "status": "ACCEPTED",
    "createdAt": "2026-03-02T09:00:00Z",
}

PENDING_BODY = {"error": "Agent is not yet activated", "code": "AGENT_PENDING"}


def _offer(**overrides) -> CreateJobOfferArgs:
    fields = {
        "agent_key": "hp_key",
        "human_id": "hum_1",
        "agent_id": "agt_1",
        "title": "Photograph storefront",
        "description": "Three photos of the shop front",
        "price_usdc": 40,
    }
    fields.update(overrides)
    return CreateJobOfferArgs(**fields)


def _job(**overrides) -> Job:
    return Job.model_validate({**JOB_JSON, **overrides})


class TestActivationGuidance:
    @pytest.mark.asyncio
    @respx.mock
    async def test_pending_agent_gets_activation_steps(self) -> None:
        respx.post(f"{BASE}/api/jobs").mock(return_value=httpx.Response(403, json=PENDING_BODY))
        async with HumanPagesClient(base_url=BASE) as hp:
            with pytest.raises(ApiError) as exc_info:
                await hp.jobs.create_job_offer(_offer())
        err = exc_info.value
        assert err.code == "AGENT_PENDING"
        assert "before creating jobs" in err.message
        assert "request_activation_code" in err.message
        assert "get_payment_activation" in err.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_other_codes_are_untouched(self) -> None:
        respx.get(f"{BASE}/api/humans/hum_1/profile").mock(
            return_value=httpx.Response(429, json={"error": "Rate limit exceeded", "code": "RATE_LIMITED"})
        )
        async with HumanPagesClient(base_url=BASE) as hp:
            with pytest.raises(ApiError) as exc_info:
                await hp.jobs.get_human_profile(HumanProfileArgs(human_id="hum_1", agent_key="hp_key"))
        assert exc_info.value.message == "Rate limit exceeded"

    @pytest.mark.asyncio
    @respx.mock
    async def test_listing_guidance(self) -> None:
        respx.post(f"{BASE}/api/listings").mock(return_value=httpx.Response(403, json=PENDING_BODY))
        args = CreateListingArgs(
            agent_key="hp_key",
            title="Event photographer",
            description="Two hours",
            budget_usdc=80,
            expires_at="2026-03-10T00:00:00Z",
        )
        async with HumanPagesClient(base_url=BASE) as hp:
            with pytest.raises(ApiError, match="before creating listings"):
                await hp.listings.create_listing(args)


class TestCredentialChecks:
    @pytest.mark.asyncio
    @respx.mock
    async def test_offer_without_credential_never_reaches_backend(self) -> None:
        async with HumanPagesClient(base_url=BASE) as hp:
            with pytest.raises(MissingCredentialError, match="register_agent"):
                await hp.jobs.create_job_offer(_offer(agent_key=None))
        assert not respx.calls

    @pytest.mark.asyncio
    async def test_messages_require_agent_key(self) -> None:
        async with HumanPagesClient(base_url=BASE) as hp:
            with pytest.raises(MissingCredentialError):
                await hp.jobs.send_message(SendMessageArgs(job_id="job_1", content="hi"))

    @pytest.mark.asyncio
    async def test_promo_upgrade_requires_key(self) -> None:
        async with HumanPagesClient(base_url=BASE) as hp:
            with pytest.raises(MissingCredentialError, match="BASIC tier"):
                await hp.trust.claim_promo_upgrade(AgentKeyArgs())

    @pytest.mark.asyncio
    @respx.mock
    async def test_payment_proof_alone_is_sent(self) -> None:
        route = respx.post(f"{BASE}/api/jobs").mock(
            return_value=httpx.Response(201, json={**JOB_JSON, "status": "PENDING"})
        )
        async with HumanPagesClient(base_url=BASE) as hp:
            job = await hp.jobs.create_job_offer(_offer(agent_key=None, payment_proof="0xproof"))
        assert job.status == JobStatus.PENDING
        request = route.calls.last.request
        assert request.headers["X-Payment"] == "0xproof"
        assert "X-Agent-Key" not in request.headers


class TestJobStatus:
    @pytest.mark.asyncio
    @respx.mock
    async def test_view_includes_next_actions(self) -> None:
        respx.get(f"{BASE}/api/jobs/job_1").mock(return_value=httpx.Response(200, json=JOB_JSON))
        async with HumanPagesClient(base_url=BASE) as hp:
            view = await hp.jobs.get_job_status(JobIdArgs(job_id="job_1"))
        assert view.next_actions == ["mark_paid"]
        assert "mark_job_paid" in view.next_step

    @pytest.mark.asyncio
    @respx.mock
    async def test_reviewed_job_has_no_actions(self) -> None:
        respx.get(f"{BASE}/api/jobs/job_1").mock(
            return_value=httpx.Response(
                200, json={**JOB_JSON, "status": "COMPLETED", "review": {"id": "rev_1", "rating": 5}}
            )
        )
        async with HumanPagesClient(base_url=BASE) as hp:
            view = await hp.jobs.get_job_status(JobIdArgs(job_id="job_1"))
        assert view.next_actions == []
        assert view.next_step == "Review submitted: 5/5 stars"


class TestDescribeNextStep:
    def test_pending(self) -> None:
        assert "accept or reject" in describe_next_step(_job(status="PENDING"))

    def test_accepted_with_webhook_mentions_contact(self) -> None:
        step = describe_next_step(_job(callback_url="https://agent.example/hook"))
        assert "Contact info was sent to your webhook" in step

    def test_accepted_superfluid(self) -> None:
        job = _job(payment_mode=PaymentMode.STREAM, stream_method=StreamMethod.SUPERFLUID)
        assert "Create a Superfluid flow" in describe_next_step(job)

    def test_streaming_micro_transfer(self) -> None:
        job = _job(
            status="STREAMING",
            payment_mode=PaymentMode.STREAM,
            stream_summary=StreamSummary(method="MICRO_TRANSFER", interval="DAILY", rate_usdc=10, total_paid=20),
        )
        step = describe_next_step(job)
        assert "record_stream_tick" in step
        assert "$20" in step

    def test_completed_awaiting_review(self) -> None:
        assert "leave_review" in describe_next_step(_job(status="COMPLETED"))

    def test_completed_reviewed(self) -> None:
        job = _job(status="COMPLETED", review=Review(id="rev_1", rating=4))
        assert describe_next_step(job) == "Review submitted: 4/5 stars"

    def test_disputed(self) -> None:
        assert "dispute" in describe_next_step(_job(status="DISPUTED"))
