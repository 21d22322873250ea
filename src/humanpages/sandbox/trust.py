"""Trust gate — agent identity, activation and the permission envelope.

Every mutating route asks the gate for a Permit before it touches any
other record. The order of checks is fixed:

    1. payment proof (X-Payment) present and priced for this operation
       -> verify it, skip status and quota entirely
    2. agent key -> agent, else UNAUTHORIZED
    3. expired tier lapses the agent back to PENDING
    4. PENDING -> AGENT_PENDING (nothing consumed)
    5. rolling-window quota for the tier -> RATE_LIMITED

A Permit only consumes quota (or the payment proof) when the route calls
`commit()` after the operation succeeded, so a rejected offer does not
burn the agent's allowance.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from urllib.parse import urlparse

from humanpages.domain.enums import (
    ActivationMethod,
    AgentStatus,
    AgentTier,
    DomainVerificationMethod,
    ErrorCode,
    JobStatus,
    PaymentMode,
    QuotaKind,
)
from humanpages.domain.exceptions import MarketplaceError
from humanpages.domain.state_machine import AgentStateMachine
from humanpages.domain.tiers import (
    ACTIVATION_CODE_PREFIX,
    ACTIVATION_CODE_TTL,
    ACTIVATION_TIERS,
    PAYMENT_ACTIVATION_CURRENCY,
    PAYMENT_ACTIVATION_NETWORK,
    PAYMENT_ACTIVATION_PRICE,
    PAYMENT_ACTIVATION_TTL,
    PER_CALL_PRICES,
    PROMO_TOTAL_SLOTS,
    TIER_POLICIES,
    policy_for,
)
from humanpages.logging_config import get_logger
from humanpages.sandbox.store import (
    ActivationCodeRecord,
    AgentRecord,
    PaymentIntentRecord,
    SandboxStore,
    fire_transition,
    hash_key,
    new_id,
)
from humanpages.schemas.entities import (
    Activation,
    ActivationCode,
    ActivationStatus,
    AgentBrief,
    AgentProfile,
    AgentReputation,
    DomainVerification,
    PayPerUse,
    PaymentActivation,
    PromoStatus,
    PromoUpgrade,
    RateLimitInfo,
    RegisteredAgent,
    TierLimits,
)
from humanpages.schemas.wire import RegisterAgentBody

logger = get_logger(__name__)

SOCIAL_PLATFORMS = ("X", "LinkedIn", "Bluesky")
DNS_RECORD_PREFIX = "humanpages-verify="
X402_PAID_VIA = "x402"


def format_duration(delta: timedelta) -> str:
    """Short human duration: `1d 4h`, `3h 12m`, `45m`, `30s`."""
    seconds = max(int(delta.total_seconds()), 0)
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m"
    return f"{seconds}s"


@dataclass
class Permit:
    """Permission to perform one metered operation.

    Attributes:
        agent: The calling agent, or None for a proof-only call.
        kind: Quota bucket the operation draws from.
        paid_via: "x402" when a payment proof replaced the tier allowance.
        proof_tx: The proof's transaction hash, consumed on commit.
    """

    gate: TrustGate
    agent: AgentRecord | None
    kind: QuotaKind | None = None
    paid_via: str | None = None
    proof_tx: str | None = None
    committed: bool = False

    def commit(self) -> None:
        if not self.committed:
            self.gate._commit(self)
            self.committed = True


class TrustGate:
    def __init__(self, store: SandboxStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def register(self, body: RegisterAgentBody) -> RegisteredAgent:
        now = self.store.now()
        api_key = f"hp_{secrets.token_hex(24)}"
        agent = AgentRecord(
            id=new_id("agt"),
            name=body.name,
            description=body.description,
            website_url=body.website_url,
            contact_email=body.contact_email,
            api_key_hash=hash_key(api_key),
            verification_token=secrets.token_hex(16),
            created_at=now,
        )
        self.store.agents[agent.id] = agent
        self.store.agent_ids_by_key[agent.api_key_hash] = agent.id
        logger.info("sandbox.agent_registered", agent_id=agent.id)
        return RegisteredAgent(
            agent=self.profile(agent.id),
            api_key=api_key,
            verification_token=agent.verification_token,
            message="Agent registered. Save your API key now; it cannot be retrieved later.",
        )

    def authenticate(self, api_key: str | None) -> AgentRecord:
        if not api_key:
            raise MarketplaceError(ErrorCode.UNAUTHORIZED, "Agent API key required", status_code=401)
        agent = self.store.agent_by_key(api_key)
        if agent is None:
            raise MarketplaceError(ErrorCode.UNAUTHORIZED, "Invalid agent API key", status_code=401)
        agent.last_active_at = self.store.now()
        self._lapse_if_expired(agent)
        return agent

    def optional_agent(self, api_key: str | None) -> AgentRecord | None:
        return self.authenticate(api_key) if api_key else None

    def require_active(self, agent: AgentRecord) -> AgentRecord:
        if agent.status != AgentStatus.ACTIVE:
            raise MarketplaceError(
                ErrorCode.AGENT_PENDING,
                "Agent is not yet activated",
                status_code=403,
            )
        return agent

    def _lapse_if_expired(self, agent: AgentRecord) -> None:
        expires = agent.activation_expires_at
        if agent.status == AgentStatus.ACTIVE and expires is not None and expires <= self.store.now():
            agent.status = AgentStatus(fire_transition(AgentStateMachine, agent.status, "lapse"))
            agent.tier = AgentTier.NONE
            logger.info("sandbox.agent_lapsed", agent_id=agent.id)

    # ------------------------------------------------------------------
    # Permission envelope
    # ------------------------------------------------------------------

    def authorize(
        self,
        api_key: str | None,
        payment_proof: str | None = None,
        kind: QuotaKind | None = None,
    ) -> Permit:
        """Check status and quota for one operation. See the module docstring for the order."""
        if payment_proof and kind in PER_CALL_PRICES:
            agent = self.optional_agent(api_key)
            self._check_proof(payment_proof, PER_CALL_PRICES[kind])
            return Permit(gate=self, agent=agent, kind=kind, paid_via=X402_PAID_VIA, proof_tx=payment_proof)

        agent = self.require_active(self.authenticate(api_key))
        if kind is not None:
            self._check_quota(agent, kind)
        return Permit(gate=self, agent=agent, kind=kind)

    def _check_proof(self, tx_hash: str, price: Decimal) -> None:
        check = self.store.chain.check_transfer(tx_hash, PAYMENT_ACTIVATION_NETWORK)
        if not check.found or check.consumed or (check.receiver or "").lower() != self.store.platform_wallet.lower():
            raise MarketplaceError(
                ErrorCode.PAYMENT_PROOF_INVALID,
                "Payment proof not found or already used",
                status_code=402,
            )
        if check.amount < price:
            raise MarketplaceError(
                ErrorCode.PAYMENT_PROOF_INVALID,
                f"Payment proof covers {check.amount} USDC; this call costs {price} USDC",
                status_code=402,
            )

    def _window_usage(self, agent: AgentRecord, kind: QuotaKind) -> list[datetime]:
        policy = policy_for(agent.tier) or TIER_POLICIES[AgentTier.BASIC]
        window = policy.window(kind)
        cutoff = self.store.now() - window.period
        usage = [t for t in self.store.usage.get((agent.id, kind), []) if t > cutoff]
        self.store.usage[(agent.id, kind)] = usage
        return usage

    def rate_limit_info(self, agent: AgentRecord, kind: QuotaKind) -> RateLimitInfo:
        policy = policy_for(agent.tier) or TIER_POLICIES[AgentTier.BASIC]
        window = policy.window(kind)
        usage = self._window_usage(agent, kind)
        reset = (usage[0] + window.period - self.store.now()) if usage else window.period
        return RateLimitInfo(
            remaining=max(window.limit - len(usage), 0),
            reset_in=format_duration(reset),
            tier=agent.tier,
        )

    def _check_quota(self, agent: AgentRecord, kind: QuotaKind) -> None:
        policy = policy_for(agent.tier) or TIER_POLICIES[AgentTier.BASIC]
        window = policy.window(kind)
        if len(self._window_usage(agent, kind)) < window.limit:
            return
        info = self.rate_limit_info(agent, kind)
        label = str(kind).replace("_", " ")
        raise MarketplaceError(
            ErrorCode.RATE_LIMITED,
            f"Rate limit exceeded: {agent.tier} tier allows {window.describe()} ({label}). Resets in {info.reset_in}.",
            status_code=429,
            details={"remaining": info.remaining, "resetIn": info.reset_in, "tier": str(agent.tier)},
        )

    def _commit(self, permit: Permit) -> None:
        if permit.proof_tx:
            self.store.chain.consume_transfer(permit.proof_tx, PAYMENT_ACTIVATION_NETWORK)
            logger.info("sandbox.x402_charged", kind=str(permit.kind), price=str(PER_CALL_PRICES[permit.kind]))
        elif permit.agent is not None and permit.kind is not None:
            self.store.usage.setdefault((permit.agent.id, permit.kind), []).append(self.store.now())

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def reputation(self, agent_id: str) -> AgentReputation:
        jobs = [j for j in self.store.jobs.values() if j.agent_id == agent_id]
        paid = [j for j in jobs if j.paid_at is not None or (j.stream is not None and j.stream.started_at)]
        speeds = [
            (j.paid_at - j.accepted_at).total_seconds() / 3600
            for j in jobs
            if j.payment_mode == PaymentMode.ONE_TIME and j.paid_at and j.accepted_at
        ]
        return AgentReputation(
            total_jobs=len(jobs),
            completed_jobs=sum(1 for j in jobs if j.status == JobStatus.COMPLETED),
            paid_jobs=len(paid),
            avg_payment_speed_hours=round(sum(speeds) / len(speeds), 1) if speeds else None,
        )

    def profile(self, agent_id: str) -> AgentProfile:
        agent = self.store.get_agent_or_raise(agent_id)
        self._lapse_if_expired(agent)
        return AgentProfile(
            id=agent.id,
            name=agent.name,
            description=agent.description,
            website_url=agent.website_url,
            contact_email=agent.contact_email,
            domain_verified=agent.domain_verified,
            verified_at=agent.verified_at,
            status=agent.status,
            tier=agent.tier,
            last_active_at=agent.last_active_at,
            created_at=agent.created_at,
            reputation=self.reputation(agent.id),
        )

    def brief(self, agent_id: str) -> AgentBrief | None:
        agent = self.store.agents.get(agent_id)
        if agent is None:
            return None
        return AgentBrief(
            id=agent.id,
            name=agent.name,
            description=agent.description,
            website_url=agent.website_url,
            domain_verified=agent.domain_verified,
        )

    def is_pro(self, agent_id: str) -> bool:
        agent = self.store.agents.get(agent_id)
        if agent is None:
            return False
        self._lapse_if_expired(agent)
        return agent.status == AgentStatus.ACTIVE and agent.tier == AgentTier.PRO

    def verify_domain(self, api_key: str | None, agent_id: str, method: DomainVerificationMethod) -> DomainVerification:
        agent = self.authenticate(api_key)
        if agent.id != agent_id:
            raise MarketplaceError(ErrorCode.FORBIDDEN, "Agent key does not match agent_id", status_code=403)
        if not agent.website_url:
            raise MarketplaceError(
                ErrorCode.WEBSITE_REQUIRED,
                "Set a website_url on your agent before verifying a domain",
            )
        domain = (urlparse(agent.website_url).hostname or "").lower()
        if method == DomainVerificationMethod.WELL_KNOWN:
            verified = self.store.well_known.get(domain) == agent.verification_token
            where = f"https://{domain}/.well-known/humanpages-verify.txt"
        else:
            verified = f"{DNS_RECORD_PREFIX}{agent.verification_token}" in self.store.dns_txt.get(domain, [])
            where = f"a TXT record on {domain}"
        if not verified:
            raise MarketplaceError(
                ErrorCode.DOMAIN_VERIFICATION_FAILED,
                f"Verification token not found at {where}",
            )
        agent.domain_verified = True
        agent.verified_at = self.store.now()
        logger.info("sandbox.domain_verified", agent_id=agent.id, domain=domain)
        return DomainVerification(domain_verified=True, domain=domain, message="Domain verified")

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def _activate(self, agent: AgentRecord, method: ActivationMethod) -> Activation:
        now = self.store.now()
        tier = ACTIVATION_TIERS[method]
        agent.status = AgentStatus(fire_transition(AgentStateMachine, agent.status, "activate"))
        agent.tier = tier
        agent.activation_method = method
        agent.activated_at = now
        agent.activation_expires_at = now + TIER_POLICIES[tier].duration
        logger.info("sandbox.agent_activated", agent_id=agent.id, method=str(method), tier=str(tier))
        return Activation(
            status=agent.status,
            tier=agent.tier,
            expires_at=agent.activation_expires_at,
            message=f"Agent activated with {tier} tier.",
        )

    def request_code(self, api_key: str | None) -> ActivationCode:
        agent = self.authenticate(api_key)
        code = f"{ACTIVATION_CODE_PREFIX}{secrets.token_hex(4).upper()}"
        record = ActivationCodeRecord(code=code, agent_id=agent.id, expires_at=self.store.now() + ACTIVATION_CODE_TTL)
        self.store.activation_codes[agent.id] = record
        post = f"I'm activating my AI agent {agent.name} on Human Pages to hire real people. Code: {code} #HumanPages"
        return ActivationCode(
            code=code,
            expires_at=record.expires_at,
            requirements="Post publicly on any supported platform. The post must contain the code exactly.",
            suggested_posts={platform: post for platform in SOCIAL_PLATFORMS},
            platforms=list(SOCIAL_PLATFORMS),
        )

    def verify_social(self, api_key: str | None, post_url: str) -> Activation:
        agent = self.authenticate(api_key)
        record = self.store.activation_codes.get(agent.id)
        if record is None or record.used or record.expires_at <= self.store.now():
            raise MarketplaceError(
                ErrorCode.CODE_EXPIRED,
                "Activation code expired or already used. Request a new one with request_activation_code.",
            )
        text = self.store.social_posts.get(post_url)
        if text is None or record.code not in text:
            raise MarketplaceError(
                ErrorCode.CODE_NOT_FOUND_IN_POST,
                f"Activation code {record.code} was not found in the post",
            )
        record.used = True
        return self._activate(agent, ActivationMethod.SOCIAL)

    def payment_intent(self, api_key: str | None) -> PaymentActivation:
        agent = self.authenticate(api_key)
        intent = PaymentIntentRecord(
            agent_id=agent.id,
            deposit_address=self.store.platform_wallet,
            amount=PAYMENT_ACTIVATION_PRICE,
            network=PAYMENT_ACTIVATION_NETWORK,
            currency=PAYMENT_ACTIVATION_CURRENCY,
            expires_at=self.store.now() + PAYMENT_ACTIVATION_TTL,
        )
        self.store.payment_intents[agent.id] = intent
        return PaymentActivation(
            deposit_address=intent.deposit_address,
            amount=intent.amount,
            currency=intent.currency,
            network=intent.network,
            expires_at=intent.expires_at,
            message="Send the exact amount, then call verify_payment_activation with the transaction hash.",
        )

    def verify_payment(self, api_key: str | None, tx_hash: str, network: str) -> Activation:
        agent = self.authenticate(api_key)
        intent = self.store.payment_intents.get(agent.id)
        if intent is None or intent.expires_at <= self.store.now():
            raise MarketplaceError(
                ErrorCode.PAYMENT_EXPIRED,
                "Payment window expired. Call get_payment_activation for a new deposit address.",
            )
        check = self.store.chain.check_transfer(tx_hash, network)
        if (
            not check.found
            or check.consumed
            or network.lower() != intent.network.lower()
            or (check.receiver or "").lower() != intent.deposit_address.lower()
        ):
            raise MarketplaceError(
                ErrorCode.PAYMENT_NOT_FOUND,
                f"No unused transfer {tx_hash} to {intent.deposit_address} on {intent.network}",
            )
        if check.amount < intent.amount:
            raise MarketplaceError(
                ErrorCode.PAYMENT_INSUFFICIENT,
                f"Received {check.amount} {intent.currency}; {intent.amount} required",
            )
        self.store.chain.consume_transfer(tx_hash, network)
        del self.store.payment_intents[agent.id]
        return self._activate(agent, ActivationMethod.PAYMENT)

    def activation_status(self, api_key: str | None) -> ActivationStatus:
        agent = self.authenticate(api_key)
        policy = policy_for(agent.tier)
        limits = None
        if policy is not None:
            offers = policy.window(QuotaKind.JOB_OFFER)
            listings = policy.window(QuotaKind.LISTING)
            limits = TierLimits(
                duration_days=policy.duration.days,
                profile_views_per_day=policy.window(QuotaKind.PROFILE_VIEW).limit,
                job_offers_per_day=offers.limit if offers.period.days == 1 else None,
                job_offers_per_two_days=offers.limit if offers.period.days == 2 else None,
                listings_per_day=listings.limit if listings.period.days == 1 else None,
                listings_per_week=listings.limit if listings.period.days == 7 else None,
            )
        return ActivationStatus(
            status=agent.status,
            tier=agent.tier,
            activated_at=agent.activated_at,
            activation_method=agent.activation_method,
            activation_expires_at=agent.activation_expires_at,
            limits=limits,
            x402=PayPerUse(
                enabled=True,
                prices={str(kind): f"${price}" for kind, price in PER_CALL_PRICES.items()},
            ),
        )

    # ------------------------------------------------------------------
    # Promo
    # ------------------------------------------------------------------

    def promo_status(self) -> PromoStatus:
        claimed = len(self.store.promo_claims)
        return PromoStatus(
            enabled=True,
            total=PROMO_TOTAL_SLOTS,
            claimed=claimed,
            remaining=max(PROMO_TOTAL_SLOTS - claimed, 0),
        )

    def claim_promo(self, api_key: str | None) -> PromoUpgrade:
        agent = self.authenticate(api_key)
        if agent.id in self.store.promo_claims:
            raise MarketplaceError(
                ErrorCode.PROMO_ALREADY_CLAIMED,
                "This agent already claimed the free PRO upgrade",
                status_code=409,
            )
        if agent.status != AgentStatus.ACTIVE or agent.tier != AgentTier.BASIC:
            raise MarketplaceError(
                ErrorCode.TIER_INELIGIBLE,
                "Only ACTIVE agents on the BASIC tier can claim the promo. Activate via social post first.",
                status_code=403,
            )
        if len(self.store.promo_claims) >= PROMO_TOTAL_SLOTS:
            raise MarketplaceError(ErrorCode.PROMO_EXHAUSTED, "All free PRO slots have been claimed", status_code=409)

        self.store.promo_claims.add(agent.id)
        self._activate(agent, ActivationMethod.PROMO)
        agent.promo_upgraded_at = agent.activated_at
        return PromoUpgrade(
            status=agent.status,
            tier=agent.tier,
            promo_upgraded_at=agent.promo_upgraded_at,
            activation_expires_at=agent.activation_expires_at,
            message="Upgraded to PRO at no cost.",
        )
