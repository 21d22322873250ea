"""Typed argument models for every named operation.

Each operation of the tool surface has exactly one model here. Unknown keys
are rejected, so the recognised options of an operation are the fields of
its model. Structural problems (missing field, out-of-range rating,
malformed URL) are caught by these models before any network call.

Credential presence is NOT validated here: a missing agent key is reported
as MISSING_CREDENTIAL by the controllers, not as a validation error.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from humanpages.client.credentials import Credential
from humanpages.domain.enums import (
    DomainVerificationMethod,
    PaymentMode,
    PaymentTiming,
    StreamInterval,
    StreamMethod,
    WorkMode,
)
from humanpages.schemas import wire

CALLBACK_SECRET_MIN_LENGTH = 16
AGENT_DESCRIPTION_MAX_LENGTH = 500
MESSAGE_MAX_LENGTH = 2000
LISTINGS_PAGE_MAX = 50

Identifier = Annotated[str, Field(min_length=1)]
PositiveMoney = Annotated[Decimal, Field(gt=0)]


def _check_http_url(value: str | None) -> str | None:
    if value is None:
        return value
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("must be an http(s) URL")
    return value


class OperationArgs(BaseModel):
    """Base for operation arguments: closed key set, trimmed strings."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class AuthenticatedArgs(OperationArgs):
    agent_key: str | None = Field(
        default=None,
        description="Your registered agent API key (starts with hp_)",
    )

    def credential(self) -> Credential:
        return Credential(agent_key=self.agent_key)


class PayableArgs(AuthenticatedArgs):
    """Arguments of operations that accept a per-call payment proof instead of a tier allowance."""

    payment_proof: str | None = Field(
        default=None,
        description="x402 payment proof sent as the X-Payment header; bypasses tier limits",
    )

    def credential(self) -> Credential:
        return Credential(agent_key=self.agent_key, payment_proof=self.payment_proof)


class _CallbackMixin(BaseModel):
    callback_url: str | None = None
    callback_secret: str | None = None

    @field_validator("callback_url")
    @classmethod
    def _callback_is_http(cls, value: str | None) -> str | None:
        return _check_http_url(value)

    @field_validator("callback_secret")
    @classmethod
    def _secret_is_long_enough(cls, value: str | None) -> str | None:
        if value is not None and len(value) < CALLBACK_SECRET_MIN_LENGTH:
            raise ValueError(f"must be at least {CALLBACK_SECRET_MIN_LENGTH} characters")
        return value

    @model_validator(mode="after")
    def _secret_needs_url(self) -> Any:
        if self.callback_secret and not self.callback_url:
            raise ValueError("callback_secret requires callback_url")
        return self


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class SearchHumansArgs(OperationArgs):
    skill: str | None = None
    equipment: str | None = None
    language: str | None = None
    location: str | None = None
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    radius: float | None = Field(default=None, gt=0)
    max_rate: float | None = Field(default=None, gt=0)
    available_only: bool = True
    work_mode: WorkMode | None = None
    verified: Literal["humanity"] | None = None

    @model_validator(mode="after")
    def _radius_search_is_complete(self) -> SearchHumansArgs:
        given = [v is not None for v in (self.lat, self.lng, self.radius)]
        if any(given) and not all(given):
            raise ValueError("lat, lng and radius must be given together")
        return self

    def to_query(self) -> dict[str, str]:
        query = {
            "skill": self.skill,
            "equipment": self.equipment,
            "language": self.language,
            "location": self.location,
            "lat": self.lat,
            "lng": self.lng,
            "radius": self.radius,
            "maxRate": self.max_rate,
            "available": "true" if self.available_only else None,
            "workMode": self.work_mode,
            "verified": self.verified,
        }
        return {k: str(v) for k, v in query.items() if v is not None}


class GetHumanArgs(OperationArgs):
    id: Identifier


class HumanIdArgs(OperationArgs):
    human_id: Identifier


class HumanProfileArgs(PayableArgs):
    human_id: Identifier


# ---------------------------------------------------------------------------
# Agent identity & trust
# ---------------------------------------------------------------------------


class RegisterAgentArgs(OperationArgs):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=AGENT_DESCRIPTION_MAX_LENGTH)
    website_url: str | None = None
    contact_email: str | None = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    @field_validator("website_url")
    @classmethod
    def _website_is_http(cls, value: str | None) -> str | None:
        return _check_http_url(value)

    def to_body(self) -> wire.RegisterAgentBody:
        return wire.RegisterAgentBody(
            name=self.name,
            description=self.description,
            website_url=self.website_url,
            contact_email=self.contact_email,
        )


class AgentIdArgs(OperationArgs):
    agent_id: Identifier


class VerifyDomainArgs(AuthenticatedArgs):
    agent_id: Identifier
    method: DomainVerificationMethod


class AgentKeyArgs(AuthenticatedArgs):
    """Operations whose only argument is the credential."""


class VerifySocialArgs(AuthenticatedArgs):
    post_url: str

    @field_validator("post_url")
    @classmethod
    def _post_is_http(cls, value: str) -> str:
        return _check_http_url(value)


class VerifyPaymentArgs(AuthenticatedArgs):
    tx_hash: Identifier
    network: Identifier


class NoArgs(OperationArgs):
    pass


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class _StreamTerms(OperationArgs):
    stream_interval: StreamInterval
    stream_rate_usdc: PositiveMoney
    stream_max_ticks: int | None = Field(default=None, ge=1)


class SuperfluidStream(_StreamTerms):
    """Agent opens an on-chain flow that streams per second."""

    stream_method: Literal[StreamMethod.SUPERFLUID]


class MicroTransferStream(_StreamTerms):
    """Agent sends one discrete transfer per interval."""

    stream_method: Literal[StreamMethod.MICRO_TRANSFER]


StreamConfig = Annotated[
    SuperfluidStream | MicroTransferStream,
    Field(discriminator="stream_method"),
]

_STREAM_KEYS = ("stream_method", "stream_interval", "stream_rate_usdc", "stream_max_ticks")


class CreateJobOfferArgs(PayableArgs, _CallbackMixin):
    """Direct job offer to one human.

    The tool surface is flat (`stream_method`, `stream_interval`, ...); the
    stream keys are folded into the `stream` variant, which is only allowed
    with `payment_mode=STREAM` and required there.
    """

    human_id: Identifier
    agent_id: Identifier
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    category: str | None = None
    price_usdc: PositiveMoney
    agent_name: str | None = None
    agent_lat: float | None = Field(default=None, ge=-90, le=90)
    agent_lng: float | None = Field(default=None, ge=-180, le=180)
    payment_mode: PaymentMode = PaymentMode.ONE_TIME
    payment_timing: PaymentTiming | None = None
    stream: StreamConfig | None = None

    @model_validator(mode="before")
    @classmethod
    def _fold_stream_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        flat = {k: data[k] for k in _STREAM_KEYS if data.get(k) is not None}
        rest = {k: v for k, v in data.items() if k not in _STREAM_KEYS}
        if flat:
            if rest.get("stream") is not None:
                raise ValueError("give either stream or the flat stream_* keys, not both")
            rest["stream"] = flat
        return rest

    @model_validator(mode="after")
    def _mode_matches_terms(self) -> CreateJobOfferArgs:
        if self.payment_mode == PaymentMode.STREAM:
            if self.stream is None:
                raise ValueError("stream_method, stream_interval and stream_rate_usdc are required when payment_mode=STREAM")
            if self.payment_timing is not None:
                raise ValueError("payment_timing applies to ONE_TIME jobs only")
        elif self.stream is not None:
            raise ValueError("stream settings require payment_mode=STREAM")
        if (self.agent_lat is None) != (self.agent_lng is None):
            raise ValueError("agent_lat and agent_lng must be given together")
        return self

    def to_body(self) -> wire.CreateJobBody:
        body = wire.CreateJobBody(
            human_id=self.human_id,
            agent_id=self.agent_id,
            agent_name=self.agent_name,
            agent_lat=self.agent_lat,
            agent_lng=self.agent_lng,
            title=self.title,
            description=self.description,
            category=self.category,
            price_usdc=self.price_usdc,
            payment_mode=self.payment_mode,
            payment_timing=self.payment_timing,
            callback_url=self.callback_url,
            callback_secret=self.callback_secret,
        )
        if self.stream is not None:
            body.stream_method = self.stream.stream_method
            body.stream_interval = self.stream.stream_interval
            body.stream_rate_usdc = self.stream.stream_rate_usdc
            body.stream_max_ticks = self.stream.stream_max_ticks
        return body


class JobIdArgs(OperationArgs):
    job_id: Identifier


class AuthenticatedJobArgs(AuthenticatedArgs):
    job_id: Identifier


class MarkJobPaidArgs(AuthenticatedJobArgs):
    payment_tx_hash: Identifier
    payment_network: Identifier
    payment_amount: PositiveMoney

    def to_body(self) -> wire.MarkPaidBody:
        return wire.MarkPaidBody(
            payment_tx_hash=self.payment_tx_hash,
            payment_network=self.payment_network,
            payment_amount=self.payment_amount,
        )


class LeaveReviewArgs(AuthenticatedJobArgs):
    rating: int = Field(ge=1, le=5)
    comment: str | None = None

    def to_body(self) -> wire.ReviewBody:
        return wire.ReviewBody(rating=self.rating, comment=self.comment)


class SendMessageArgs(AuthenticatedJobArgs):
    content: str = Field(min_length=1, max_length=MESSAGE_MAX_LENGTH)


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


class StartStreamArgs(AuthenticatedJobArgs):
    sender_address: Identifier
    network: Identifier
    token: str = wire.DEFAULT_STREAM_TOKEN

    def to_body(self) -> wire.StartStreamBody:
        return wire.StartStreamBody(
            sender_address=self.sender_address,
            network=self.network,
            token=self.token,
        )


class StreamTickArgs(AuthenticatedJobArgs):
    tx_hash: Identifier


class ResumeStreamArgs(AuthenticatedJobArgs):
    sender_address: str | None = None


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class CreateListingArgs(PayableArgs, _CallbackMixin):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    budget_usdc: PositiveMoney
    category: str | None = None
    required_skills: list[str] = Field(default_factory=list)
    required_equipment: list[str] = Field(default_factory=list)
    location: str | None = None
    location_lat: float | None = Field(default=None, ge=-90, le=90)
    location_lng: float | None = Field(default=None, ge=-180, le=180)
    radius_km: float | None = Field(default=None, gt=0)
    work_mode: WorkMode | None = None
    expires_at: datetime
    max_applicants: int | None = Field(default=None, ge=1)

    @field_validator("expires_at")
    @classmethod
    def _expiry_is_aware(cls, value: datetime) -> datetime:
        # ISO strings without an offset are read as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def to_body(self) -> wire.CreateListingBody:
        return wire.CreateListingBody(
            title=self.title,
            description=self.description,
            budget_usdc=self.budget_usdc,
            category=self.category,
            required_skills=self.required_skills,
            required_equipment=self.required_equipment,
            location=self.location,
            location_lat=self.location_lat,
            location_lng=self.location_lng,
            radius_km=self.radius_km,
            work_mode=self.work_mode,
            expires_at=self.expires_at,
            max_applicants=self.max_applicants,
            callback_url=self.callback_url,
            callback_secret=self.callback_secret,
        )


class GetListingsArgs(OperationArgs):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=LISTINGS_PAGE_MAX)
    skill: str | None = None
    category: str | None = None
    work_mode: WorkMode | None = None
    min_budget: float | None = Field(default=None, ge=0)
    max_budget: float | None = Field(default=None, ge=0)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    radius: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _budget_range_is_ordered(self) -> GetListingsArgs:
        if self.min_budget is not None and self.max_budget is not None and self.min_budget > self.max_budget:
            raise ValueError("min_budget must not exceed max_budget")
        return self

    def to_query(self) -> dict[str, str]:
        query = {
            "page": self.page,
            "limit": self.limit,
            "skill": self.skill,
            "category": self.category,
            "workMode": self.work_mode,
            "minBudget": self.min_budget,
            "maxBudget": self.max_budget,
            "lat": self.lat,
            "lng": self.lng,
            "radius": self.radius,
        }
        return {k: str(v) for k, v in query.items() if v is not None}


class ListingIdArgs(OperationArgs):
    listing_id: Identifier


class AuthenticatedListingArgs(AuthenticatedArgs):
    listing_id: Identifier


class ListingOfferArgs(AuthenticatedListingArgs):
    application_id: Identifier
