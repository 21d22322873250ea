"""Pydantic models for entities exchanged with the Human Pages backend.

Field names are snake_case in Python and camelCase on the wire. The client
validates backend responses against these models and the reference sandbox
serialises its records through them, so both sides share one contract.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from humanpages.domain.enums import (
    AgentStatus,
    AgentTier,
    ApplicationStatus,
    JobStatus,
    ListingStatus,
    PaymentMode,
    PaymentTiming,
    SenderType,
    StreamInterval,
    StreamMethod,
    StreamStatus,
    TickStatus,
    WorkMode,
)

#: USDC amounts are exact decimals in Python and JSON numbers on the wire.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump as a JSON-ready dict with camelCase keys, dropping unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Humans
# ---------------------------------------------------------------------------


class HumanReputation(CamelModel):
    jobs_completed: int = 0
    avg_rating: float = 0.0
    review_count: int = 0


class HumanService(CamelModel):
    title: str
    description: str = ""
    category: str = ""
    price_min: Money | None = None
    price_currency: str | None = None
    price_unit: str | None = None


class Wallet(CamelModel):
    network: str
    address: str
    chain: str | None = None
    label: str | None = None
    is_primary: bool = False


class FiatPaymentMethod(CamelModel):
    platform: str
    handle: str
    label: str | None = None
    is_primary: bool = False


class Human(CamelModel):
    """Public profile of a hireable person."""

    id: str
    name: str
    username: str | None = None
    bio: str | None = None
    location: str | None = None
    neighborhood: str | None = None
    location_granularity: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None
    skills: list[str] = Field(default_factory=list)
    equipment: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    is_available: bool = True
    work_mode: WorkMode | None = None
    min_rate_usdc: Money | None = None
    rate_currency: str | None = None
    min_rate_usd_estimate: Money | None = None
    rate_type: str | None = None
    # Spam filters applied to incoming offers
    min_offer_price: Money | None = None
    max_offer_distance: float | None = None
    humanity_verified: bool = False
    humanity_score: float | None = None
    humanity_provider: str | None = None
    humanity_verified_at: datetime | None = None
    last_active_at: datetime | None = None
    created_at: datetime | None = None
    reputation: HumanReputation = Field(default_factory=HumanReputation)
    services: list[HumanService] = Field(default_factory=list)

    @property
    def humanity_tier(self) -> str | None:
        """Gold >= 40, Silver >= 20, Bronze > 0, None when unscored."""
        if not self.humanity_score:
            return None
        if self.humanity_score >= 40:
            return "Gold"
        if self.humanity_score >= 20:
            return "Silver"
        return "Bronze"


class HumanProfile(Human):
    """Full profile: public fields plus the gated contact and payment fields."""

    contact_email: str | None = None
    telegram: str | None = None
    signal: str | None = None
    linkedin_url: str | None = None
    twitter_url: str | None = None
    github_url: str | None = None
    instagram_url: str | None = None
    youtube_url: str | None = None
    website_url: str | None = None
    wallets: list[Wallet] = Field(default_factory=list)
    fiat_payment_methods: list[FiatPaymentMethod] = Field(default_factory=list)

    @property
    def preferred_wallet(self) -> Wallet | None:
        for wallet in self.wallets:
            if wallet.is_primary:
                return wallet
        return self.wallets[0] if self.wallets else None


# ---------------------------------------------------------------------------
# Agents & activation
# ---------------------------------------------------------------------------


class AgentReputation(CamelModel):
    total_jobs: int = 0
    completed_jobs: int = 0
    paid_jobs: int = 0
    avg_payment_speed_hours: float | None = None
    avg_rating: float | None = None


class AgentProfile(CamelModel):
    id: str
    name: str
    description: str | None = None
    website_url: str | None = None
    contact_email: str | None = None
    domain_verified: bool = False
    verified_at: datetime | None = None
    status: AgentStatus | None = None
    tier: AgentTier | None = None
    last_active_at: datetime | None = None
    created_at: datetime | None = None
    reputation: AgentReputation | None = None


class AgentBrief(CamelModel):
    id: str
    name: str
    description: str | None = None
    website_url: str | None = None
    domain_verified: bool = False


class RegisteredAgent(CamelModel):
    """Registration result. `api_key` is shown exactly once."""

    agent: AgentProfile
    api_key: str
    verification_token: str
    message: str = ""


class DomainVerification(CamelModel):
    domain_verified: bool
    domain: str
    message: str = ""


class ActivationCode(CamelModel):
    code: str
    expires_at: datetime
    requirements: str | None = None
    suggested_posts: dict[str, str] = Field(default_factory=dict)
    platforms: list[str] = Field(default_factory=list)


class Activation(CamelModel):
    """Result of a successful social or payment activation."""

    status: AgentStatus
    tier: AgentTier
    expires_at: datetime | None = None
    message: str = ""


class TierLimits(CamelModel):
    duration_days: int | None = None
    profile_views_per_day: int | None = None
    job_offers_per_day: int | None = None
    job_offers_per_two_days: int | None = None
    listings_per_day: int | None = None
    listings_per_week: int | None = None


class PayPerUse(CamelModel):
    enabled: bool = False
    prices: dict[str, str] = Field(default_factory=dict)


class ActivationStatus(CamelModel):
    status: AgentStatus
    tier: AgentTier = AgentTier.NONE
    activated_at: datetime | None = None
    activation_method: str | None = None
    activation_expires_at: datetime | None = None
    limits: TierLimits | None = None
    x402: PayPerUse | None = None


class PaymentActivation(CamelModel):
    deposit_address: str
    amount: Money
    currency: str
    network: str
    expires_at: datetime
    message: str = ""


class PromoStatus(CamelModel):
    enabled: bool
    total: int
    claimed: int
    remaining: int


class PromoUpgrade(CamelModel):
    status: AgentStatus
    tier: AgentTier
    promo_upgraded_at: datetime
    activation_expires_at: datetime
    message: str = ""


# ---------------------------------------------------------------------------
# Jobs & streams
# ---------------------------------------------------------------------------


class JobParty(CamelModel):
    id: str
    name: str


class Review(CamelModel):
    id: str
    rating: int
    comment: str | None = None


class StreamSummary(CamelModel):
    method: StreamMethod
    interval: StreamInterval
    rate_usdc: Money
    status: StreamStatus = StreamStatus.AWAITING_START
    total_paid: Money = Decimal("0")
    tick_count: int = 0
    max_ticks: int | None = None
    network: str | None = None
    token: str | None = None
    sender_address: str | None = None
    receiver_wallet: str | None = None
    started_at: datetime | None = None
    paused_at: datetime | None = None


class Job(CamelModel):
    id: str
    human_id: str
    agent_id: str
    agent_name: str | None = None
    title: str
    description: str
    category: str | None = None
    price_usdc: Money
    payment_mode: PaymentMode = PaymentMode.ONE_TIME
    payment_timing: PaymentTiming | None = None
    stream_method: StreamMethod | None = None
    stream_interval: StreamInterval | None = None
    stream_rate_usdc: Money | None = None
    stream_max_ticks: int | None = None
    payment_tx_hash: str | None = None
    payment_network: str | None = None
    payment_amount: Money | None = None
    paid_at: datetime | None = None
    status: JobStatus
    created_at: datetime
    accepted_at: datetime | None = None
    completed_at: datetime | None = None
    callback_url: str | None = None
    human: JobParty | None = None
    review: Review | None = None
    registered_agent: AgentBrief | None = None
    stream_summary: StreamSummary | None = None


class JobUpdate(CamelModel):
    """Result of a job transition (mark paid, stream control)."""

    id: str
    status: JobStatus
    message: str = ""
    total_paid: Money | None = None
    stream: StreamSummary | None = None


class StreamTick(CamelModel):
    tick_number: int
    status: TickStatus
    amount: Money | None = None
    tx_hash: str | None = None
    expected_at: datetime | None = None
    verified_at: datetime | None = None


class TickReceipt(CamelModel):
    id: str
    status: JobStatus
    tick: StreamTick
    total_paid: Money
    next_tick: StreamTick | None = None


class ReviewReceipt(CamelModel):
    id: str
    rating: int
    message: str = ""


class JobMessage(CamelModel):
    id: str
    sender_type: SenderType
    sender_name: str
    content: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Listings & applications
# ---------------------------------------------------------------------------


class ListingCounts(CamelModel):
    applications: int = 0


class Listing(CamelModel):
    id: str
    agent_id: str
    title: str
    description: str
    category: str | None = None
    budget_usdc: Money
    required_skills: list[str] = Field(default_factory=list)
    required_equipment: list[str] = Field(default_factory=list)
    location: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None
    radius_km: float | None = None
    work_mode: WorkMode | None = None
    expires_at: datetime
    max_applicants: int | None = None
    status: ListingStatus
    created_at: datetime | None = None
    agent: AgentBrief | None = None
    agent_reputation: AgentReputation | None = None
    is_pro: bool = False
    counts: ListingCounts = Field(default_factory=ListingCounts, alias="_count")


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ListingPage(CamelModel):
    listings: list[Listing]
    pagination: Pagination


class RateLimitInfo(CamelModel):
    remaining: int
    reset_in: str
    tier: AgentTier


class ListingReceipt(CamelModel):
    id: str
    status: ListingStatus
    message: str = ""
    rate_limit: RateLimitInfo | None = None
    paid_via: str | None = None


class Application(CamelModel):
    id: str
    listing_id: str
    human_id: str
    pitch: str
    status: ApplicationStatus
    created_at: datetime
    human: Human | None = None


class OfferReceipt(CamelModel):
    id: str
    application_id: str
    status: JobStatus
    message: str = ""
    warning: str = ""


class ListingCancellation(CamelModel):
    id: str
    status: ListingStatus
    message: str = ""
