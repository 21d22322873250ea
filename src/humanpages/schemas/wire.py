"""Request bodies sent to the Human Pages backend.

Shared by the HTTP client (which builds them from validated tool
arguments) and the reference sandbox (which receives them). Keys are
camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from humanpages.domain.enums import (
    DomainVerificationMethod,
    PaymentMode,
    PaymentTiming,
    StreamInterval,
    StreamMethod,
    WorkMode,
)
from humanpages.schemas.entities import CamelModel, Money

DEFAULT_STREAM_TOKEN = "USDC"


class RegisterAgentBody(CamelModel):
    name: str
    description: str | None = None
    website_url: str | None = None
    contact_email: str | None = None


class VerifyDomainBody(CamelModel):
    method: DomainVerificationMethod


class SocialVerifyBody(CamelModel):
    post_url: str


class PaymentVerifyBody(CamelModel):
    tx_hash: str
    network: str


class CreateJobBody(CamelModel):
    human_id: str
    agent_id: str
    agent_name: str | None = None
    agent_lat: float | None = None
    agent_lng: float | None = None
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
    callback_url: str | None = None
    callback_secret: str | None = None


class MarkPaidBody(CamelModel):
    payment_tx_hash: str
    payment_network: str
    payment_amount: Money


class ReviewBody(CamelModel):
    rating: int
    comment: str | None = None


class StartStreamBody(CamelModel):
    sender_address: str
    network: str
    token: str = DEFAULT_STREAM_TOKEN


class StreamTickBody(CamelModel):
    tx_hash: str


class ResumeStreamBody(CamelModel):
    sender_address: str | None = None


class MessageBody(CamelModel):
    content: str


class CreateListingBody(CamelModel):
    title: str
    description: str
    budget_usdc: Money
    category: str | None = None
    required_skills: list[str] = Field(default_factory=list)
    required_equipment: list[str] = Field(default_factory=list)
    location: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None
    radius_km: float | None = None
    work_mode: WorkMode | None = None
    expires_at: datetime
    max_applicants: int | None = None
    callback_url: str | None = None
    callback_secret: str | None = None


class ListingOfferBody(CamelModel):
    confirm: bool = True


class ApplyBody(CamelModel):
    """Human side: apply to an open listing."""

    pitch: str
