"""Tests for agent registration, activation and the tier envelope."""

from __future__ import annotations

import pytest

from conftest import activate_basic, activate_pro, pay, register
from humanpages.domain.enums import AgentStatus, AgentTier
from humanpages.domain.exceptions import ApiError
from humanpages.sandbox.store import PLATFORM_WALLET
from humanpages.schemas.operations import (
    AgentIdArgs,
    AgentKeyArgs,
    CreateJobOfferArgs,
    HumanProfileArgs,
    RegisterAgentArgs,
    VerifyDomainArgs,
    VerifyPaymentArgs,
    VerifySocialArgs,
)


def _offer(agent_id: str, agent_key: str | None = None, **fields) -> CreateJobOfferArgs:
    fields = {
        "human_id": "hum_kofi",
        "title": "Transcribe interview",
        "description": "30 minutes of audio",
        "price_usdc": 15,
        **fields,
    }
    return CreateJobOfferArgs(agent_key=agent_key, agent_id=agent_id, **fields)


class TestRegistration:
    @pytest.mark.asyncio
    async def test_new_agent_is_pending(self, hp) -> None:
        agent_id, api_key = await register(hp, "FreshBot", description="Helps with research")
        assert api_key.startswith("hp_")

        status = await hp.trust.get_activation_status(AgentKeyArgs(agent_key=api_key))
        assert status.status == AgentStatus.PENDING
        assert status.tier == AgentTier.NONE
        assert status.limits is None

        profile = await hp.trust.get_agent_profile(AgentIdArgs(agent_id=agent_id))
        assert profile.name == "FreshBot"

    @pytest.mark.asyncio
    async def test_unknown_key_is_unauthorized(self, hp) -> None:
        with pytest.raises(ApiError) as exc_info:
            await hp.trust.get_activation_status(AgentKeyArgs(agent_key="hp_nope"))
        assert exc_info.value.code == "UNAUTHORIZED"
        assert exc_info.value.status_code == 401


class TestPendingAgents:
    @pytest.mark.asyncio
    async def test_pending_agent_cannot_offer_or_view_profiles(self, hp, store) -> None:
        agent_id, api_key = await register(hp)

        with pytest.raises(ApiError) as exc_info:
            await hp.jobs.create_job_offer(_offer(agent_id, api_key))
        assert exc_info.value.code == "AGENT_PENDING"

        with pytest.raises(ApiError) as exc_info:
            await hp.jobs.get_human_profile(HumanProfileArgs(human_id="hum_ana", agent_key=api_key))
        assert exc_info.value.code == "AGENT_PENDING"

        assert store.jobs == {}
        assert store.usage == {}


class TestSocialActivation:
    @pytest.mark.asyncio
    async def test_code_must_appear_in_post(self, hp, store) -> None:
        _, api_key = await register(hp)
        code = await hp.trust.request_activation_code(AgentKeyArgs(agent_key=api_key))
        assert code.code.startswith("HP-")
        assert code.suggested_posts

        store.publish_post("https://social.example/p/1", "hello world")
        with pytest.raises(ApiError) as exc_info:
            await hp.trust.verify_social_activation(
                VerifySocialArgs(agent_key=api_key, post_url="https://social.example/p/1")
            )
        assert exc_info.value.code == "CODE_NOT_FOUND_IN_POST"

    @pytest.mark.asyncio
    async def test_expired_code(self, hp, store, clock) -> None:
        _, api_key = await register(hp)
        code = await hp.trust.request_activation_code(AgentKeyArgs(agent_key=api_key))
        store.publish_post("https://social.example/p/2", code.code)
        clock.advance(hours=25)
        with pytest.raises(ApiError) as exc_info:
            await hp.trust.verify_social_activation(
                VerifySocialArgs(agent_key=api_key, post_url="https://social.example/p/2")
            )
        assert exc_info.value.code == "CODE_EXPIRED"

    @pytest.mark.asyncio
    async def test_basic_tier_and_limits(self, hp, store) -> None:
        _, api_key = await register(hp)
        await activate_basic(hp, store, api_key)
        status = await hp.trust.get_activation_status(AgentKeyArgs(agent_key=api_key))
        assert status.status == AgentStatus.ACTIVE
        assert status.tier == AgentTier.BASIC
        assert status.limits.job_offers_per_two_days == 1
        assert status.limits.listings_per_week == 1
        assert status.limits.duration_days == 30


class TestPaymentActivation:
    @pytest.mark.asyncio
    async def test_pro_tier(self, hp, store) -> None:
        _, api_key = await register(hp)
        await activate_pro(hp, store, api_key)
        status = await hp.trust.get_activation_status(AgentKeyArgs(agent_key=api_key))
        assert status.tier == AgentTier.PRO
        assert status.limits.job_offers_per_day == 15

    @pytest.mark.asyncio
    async def test_underpayment_is_rejected(self, hp, store) -> None:
        _, api_key = await register(hp)
        intent = await hp.trust.get_payment_activation(AgentKeyArgs(agent_key=api_key))
        tx_hash = pay(store, intent.deposit_address, "1")
        with pytest.raises(ApiError) as exc_info:
            await hp.trust.verify_payment_activation(
                VerifyPaymentArgs(agent_key=api_key, tx_hash=tx_hash, network="base")
            )
        assert exc_info.value.code == "PAYMENT_INSUFFICIENT"

    @pytest.mark.asyncio
    async def test_transfer_cannot_activate_twice(self, hp, store) -> None:
        _, first_key = await register(hp, "First")
        _, second_key = await register(hp, "Second")
        intent = await hp.trust.get_payment_activation(AgentKeyArgs(agent_key=first_key))
        await hp.trust.get_payment_activation(AgentKeyArgs(agent_key=second_key))
        tx_hash = pay(store, intent.deposit_address, intent.amount)

        await hp.trust.verify_payment_activation(VerifyPaymentArgs(agent_key=first_key, tx_hash=tx_hash, network="base"))
        with pytest.raises(ApiError) as exc_info:
            await hp.trust.verify_payment_activation(
                VerifyPaymentArgs(agent_key=second_key, tx_hash=tx_hash, network="base")
            )
        assert exc_info.value.code == "PAYMENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_intent_expires(self, hp, store, clock) -> None:
        _, api_key = await register(hp)
        intent = await hp.trust.get_payment_activation(AgentKeyArgs(agent_key=api_key))
        tx_hash = pay(store, intent.deposit_address, intent.amount)
        clock.advance(hours=2)
        with pytest.raises(ApiError) as exc_info:
            await hp.trust.verify_payment_activation(VerifyPaymentArgs(agent_key=api_key, tx_hash=tx_hash, network="base"))
        assert exc_info.value.code == "PAYMENT_EXPIRED"


class TestPromo:
    @pytest.mark.asyncio
    async def test_basic_agent_claims_once(self, hp, basic_agent) -> None:
        _, api_key = basic_agent
        before = await hp.trust.get_promo_status()

        upgrade = await hp.trust.claim_promo_upgrade(AgentKeyArgs(agent_key=api_key))
        assert upgrade.tier == AgentTier.PRO

        after = await hp.trust.get_promo_status()
        assert after.claimed == before.claimed + 1

        with pytest.raises(ApiError) as exc_info:
            await hp.trust.claim_promo_upgrade(AgentKeyArgs(agent_key=api_key))
        assert exc_info.value.code == "PROMO_ALREADY_CLAIMED"

    @pytest.mark.asyncio
    async def test_pending_agent_is_ineligible(self, hp) -> None:
        _, api_key = await register(hp)
        with pytest.raises(ApiError) as exc_info:
            await hp.trust.claim_promo_upgrade(AgentKeyArgs(agent_key=api_key))
        assert exc_info.value.code == "TIER_INELIGIBLE"


class TestQuotas:
    @pytest.mark.asyncio
    async def test_basic_offer_window(self, hp, store, clock, basic_agent) -> None:
        agent_id, api_key = basic_agent
        await hp.jobs.create_job_offer(_offer(agent_id, api_key))

        with pytest.raises(ApiError) as exc_info:
            await hp.jobs.create_job_offer(_offer(agent_id, api_key))
        err = exc_info.value
        assert err.code == "RATE_LIMITED"
        assert err.status_code == 429
        assert err.details["remaining"] == 0
        assert err.details["tier"] == "BASIC"
        assert len(store.jobs) == 1

        clock.advance(days=2, seconds=1)
        await hp.jobs.create_job_offer(_offer(agent_id, api_key))
        assert len(store.jobs) == 2

    @pytest.mark.asyncio
    async def test_rejected_offer_does_not_use_quota(self, hp, store, basic_agent) -> None:
        agent_id, api_key = basic_agent
        with pytest.raises(ApiError) as exc_info:
            await hp.jobs.create_job_offer(_offer(agent_id, api_key, human_id="hum_nobody"))
        assert exc_info.value.code == "NOT_FOUND"

        await hp.jobs.create_job_offer(_offer(agent_id, api_key))

    @pytest.mark.asyncio
    async def test_activation_lapses(self, hp, clock, basic_agent) -> None:
        agent_id, api_key = basic_agent
        clock.advance(days=31)
        with pytest.raises(ApiError) as exc_info:
            await hp.jobs.create_job_offer(_offer(agent_id, api_key))
        assert exc_info.value.code == "AGENT_PENDING"
        status = await hp.trust.get_activation_status(AgentKeyArgs(agent_key=api_key))
        assert status.status == AgentStatus.PENDING


class TestPaymentProof:
    @pytest.mark.asyncio
    async def test_proof_replaces_tier(self, hp, store) -> None:
        agent_id, api_key = await register(hp)
        proof = pay(store, PLATFORM_WALLET, "0.25")

        job = await hp.jobs.create_job_offer(_offer(agent_id, api_key, payment_proof=proof))
        assert job.status == "PENDING"

        with pytest.raises(ApiError) as exc_info:
            await hp.jobs.create_job_offer(_offer(agent_id, api_key, payment_proof=proof))
        assert exc_info.value.code == "PAYMENT_PROOF_INVALID"
        assert exc_info.value.status_code == 402

    @pytest.mark.asyncio
    async def test_proof_must_cover_price(self, hp, store) -> None:
        proof = pay(store, PLATFORM_WALLET, "0.01")
        with pytest.raises(ApiError) as exc_info:
            await hp.jobs.get_human_profile(HumanProfileArgs(human_id="hum_ana", payment_proof=proof))
        assert exc_info.value.code == "PAYMENT_PROOF_INVALID"

    @pytest.mark.asyncio
    async def test_proof_unlocks_profile_without_key(self, hp, store) -> None:
        proof = pay(store, PLATFORM_WALLET, "0.05")
        profile = await hp.jobs.get_human_profile(HumanProfileArgs(human_id="hum_ana", payment_proof=proof))
        assert profile.contact_email == "ana@example.com"
        assert profile.wallets


class TestDomainVerification:
    @pytest.mark.asyncio
    async def test_well_known(self, hp, store) -> None:
        result = await hp.trust.register_agent(RegisterAgentArgs(name="SiteBot", website_url="https://bot.example"))
        store.publish_well_known("bot.example", result.verification_token)
        verified = await hp.trust.verify_domain(
            VerifyDomainArgs(agent_key=result.api_key, agent_id=result.agent.id, method="well-known")
        )
        assert verified.domain_verified
        assert verified.domain == "bot.example"

    @pytest.mark.asyncio
    async def test_missing_token(self, hp) -> None:
        agent_id, api_key = await register(hp, "SiteBot", website_url="https://bot.example")
        with pytest.raises(ApiError) as exc_info:
            await hp.trust.verify_domain(VerifyDomainArgs(agent_key=api_key, agent_id=agent_id, method="dns"))
        assert exc_info.value.code == "DOMAIN_VERIFICATION_FAILED"
