"""Trust Tier Manager — agent identity, activation and tier envelope.

Drives the agent activation lifecycle against the backend:
    register -> PENDING
    social code + post verification   -> ACTIVE / BASIC
    payment intent + tx verification  -> ACTIVE / PRO
    promo upgrade (ACTIVE BASIC only) -> ACTIVE / PRO

The backend owns the authoritative status and quota counters; this layer
only checks that a credential is present and surfaces the backend's
AGENT_PENDING / RATE_LIMITED answers verbatim.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING
from urllib.parse import quote

from humanpages.domain.enums import ErrorCode
from humanpages.domain.exceptions import ApiError
from humanpages.logging_config import get_logger
from humanpages.schemas.entities import (
    Activation,
    ActivationCode,
    ActivationStatus,
    AgentProfile,
    DomainVerification,
    PaymentActivation,
    PromoStatus,
    PromoUpgrade,
    RegisteredAgent,
)
from humanpages.schemas.wire import PaymentVerifyBody, SocialVerifyBody, VerifyDomainBody

if TYPE_CHECKING:
    from humanpages.client.http import BackendClient
    from humanpages.schemas.operations import (
        AgentIdArgs,
        AgentKeyArgs,
        RegisterAgentArgs,
        VerifyDomainArgs,
        VerifyPaymentArgs,
        VerifySocialArgs,
    )

logger = get_logger(__name__)

ACTIVATION_GUIDANCE = (
    "- Free (BASIC tier): Use `request_activation_code` → post on social media → `verify_social_activation`\n"
    "- Paid (PRO tier): Use `get_payment_activation` → send payment → `verify_payment_activation`\n"
    "Check your status with `get_activation_status`."
)


def segment(value: str) -> str:
    """Quote an identifier for use as a single URL path segment."""
    return quote(value, safe="")


@contextmanager
def activation_guidance(action: str) -> Iterator[None]:
    """Append activation steps to an AGENT_PENDING failure.

    The backend's code is kept; only the message is extended.
    """
    try:
        yield
    except ApiError as exc:
        if exc.code == ErrorCode.AGENT_PENDING:
            exc.message = f"Agent is not yet activated. You must activate before {action}.\n{ACTIVATION_GUIDANCE}"
            exc.args = (exc.message,)
        raise


class TrustTierManager:
    """Agent registration, activation and tier status."""

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def register_agent(self, args: RegisterAgentArgs) -> RegisteredAgent:
        """Register a new agent. The returned API key is shown exactly once."""
        result = await self._client.post(
            "/api/agents/register",
            json=args.to_body(),
            model=RegisteredAgent,
        )
        logger.info("agents.registered", agent_id=result.agent.id)
        return result

    async def get_agent_profile(self, args: AgentIdArgs) -> AgentProfile:
        return await self._client.get(f"/api/agents/{segment(args.agent_id)}", model=AgentProfile)

    async def verify_domain(self, args: VerifyDomainArgs) -> DomainVerification:
        credential = args.credential().require_agent_key()
        result = await self._client.post(
            f"/api/agents/{segment(args.agent_id)}/verify-domain",
            credential=credential,
            json=VerifyDomainBody(method=args.method),
            model=DomainVerification,
        )
        logger.info("agents.domain_verified", agent_id=args.agent_id, domain=result.domain)
        return result

    # ------------------------------------------------------------------
    # Social activation (BASIC)
    # ------------------------------------------------------------------

    async def request_activation_code(self, args: AgentKeyArgs) -> ActivationCode:
        credential = args.credential().require_agent_key()
        return await self._client.post(
            "/api/agents/activate/social",
            credential=credential,
            model=ActivationCode,
        )

    async def verify_social_activation(self, args: VerifySocialArgs) -> Activation:
        credential = args.credential().require_agent_key()
        result = await self._client.post(
            "/api/agents/activate/social/verify",
            credential=credential,
            json=SocialVerifyBody(post_url=args.post_url),
            model=Activation,
        )
        logger.info("agents.activated", method="social", tier=result.tier)
        return result

    # ------------------------------------------------------------------
    # Payment activation (PRO)
    # ------------------------------------------------------------------

    async def get_payment_activation(self, args: AgentKeyArgs) -> PaymentActivation:
        credential = args.credential().require_agent_key()
        return await self._client.post(
            "/api/agents/activate/payment",
            credential=credential,
            model=PaymentActivation,
        )

    async def verify_payment_activation(self, args: VerifyPaymentArgs) -> Activation:
        credential = args.credential().require_agent_key()
        result = await self._client.post(
            "/api/agents/activate/payment/verify",
            credential=credential,
            json=PaymentVerifyBody(tx_hash=args.tx_hash, network=args.network),
            model=Activation,
        )
        logger.info("agents.activated", method="payment", tier=result.tier)
        return result

    # ------------------------------------------------------------------
    # Status & promo
    # ------------------------------------------------------------------

    async def get_activation_status(self, args: AgentKeyArgs) -> ActivationStatus:
        credential = args.credential().require_agent_key()
        return await self._client.get(
            "/api/agents/activate/status",
            credential=credential,
            model=ActivationStatus,
        )

    async def get_promo_status(self) -> PromoStatus:
        return await self._client.get("/api/agents/activate/promo-status", model=PromoStatus)

    async def claim_promo_upgrade(self, args: AgentKeyArgs) -> PromoUpgrade:
        credential = args.credential().require_agent_key(
            "agent_key is required. Register and activate (BASIC tier) first."
        )
        result = await self._client.post(
            "/api/agents/activate/promo-upgrade",
            credential=credential,
            model=PromoUpgrade,
        )
        logger.info("agents.promo_upgraded", tier=result.tier)
        return result
