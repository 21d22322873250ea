"""In-memory records for the sandbox backend.

Plain dataclasses held in dicts. Every desk works on one SandboxStore, and
every route handler runs its desk call without awaiting in between, so a
single event loop serialises conflicting transitions on the same record.
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from statemachine import StateMachine
from statemachine.exceptions import TransitionNotAllowed

from humanpages.domain.enums import (
    ActivationMethod,
    AgentStatus,
    AgentTier,
    ApplicationStatus,
    ErrorCode,
    JobStatus,
    ListingStatus,
    PaymentMode,
    PaymentTiming,
    QuotaKind,
    SenderType,
    StreamInterval,
    StreamMethod,
    StreamStatus,
    TickStatus,
    WorkMode,
)
from humanpages.domain.exceptions import MarketplaceError
from humanpages.sandbox.payments import SimulatedChain, new_address
from humanpages.schemas.entities import HumanProfile, Wallet

Clock = Callable[[], datetime]

PLATFORM_WALLET = "0x7a11e5C0ffee000000000000000000000000b45e"


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id(prefix: str) -> str:
    return f"{prefix}_{secrets.token_hex(8)}"


def hash_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def fire_transition(
    machine_cls: type[StateMachine],
    current_status: str,
    event_name: str,
    code: str = ErrorCode.INVALID_STATE,
    message: str | None = None,
) -> str:
    """Fire `event_name` on a machine started at `current_status` and return the new status.

    Raises:
        MarketplaceError: 409 with `code` if the transition is not in the table.
    """
    sm = machine_cls(current_status=str(current_status))
    try:
        getattr(sm, event_name)()
    except TransitionNotAllowed as err:
        raise MarketplaceError(
            code,
            message or f"Cannot {event_name.replace('_', ' ')} while status is {current_status}",
            status_code=409,
            details={"currentStatus": str(current_status)},
        ) from err
    return sm.status


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class AgentRecord:
    id: str
    name: str
    api_key_hash: str
    verification_token: str
    created_at: datetime
    description: str | None = None
    website_url: str | None = None
    contact_email: str | None = None
    status: AgentStatus = AgentStatus.PENDING
    tier: AgentTier = AgentTier.NONE
    activation_method: ActivationMethod | None = None
    activated_at: datetime | None = None
    activation_expires_at: datetime | None = None
    promo_upgraded_at: datetime | None = None
    domain_verified: bool = False
    verified_at: datetime | None = None
    last_active_at: datetime | None = None


@dataclass
class ActivationCodeRecord:
    code: str
    agent_id: str
    expires_at: datetime
    used: bool = False


@dataclass
class PaymentIntentRecord:
    agent_id: str
    deposit_address: str
    amount: Decimal
    network: str
    currency: str
    expires_at: datetime


@dataclass
class TickRecord:
    tick_number: int
    status: TickStatus = TickStatus.PENDING
    amount: Decimal | None = None
    tx_hash: str | None = None
    expected_at: datetime | None = None
    verified_at: datetime | None = None


@dataclass
class StreamRecord:
    method: StreamMethod
    interval: StreamInterval
    rate_usdc: Decimal
    max_ticks: int | None = None
    status: StreamStatus = StreamStatus.AWAITING_START
    network: str | None = None
    token: str | None = None
    sender_address: str | None = None
    receiver_wallet: str | None = None
    started_at: datetime | None = None
    paused_at: datetime | None = None
    ticks: list[TickRecord] = field(default_factory=list)
    # Superfluid bookkeeping: settled seconds/amount plus the open segment
    settled_seconds: Decimal = Decimal("0")
    settled_amount: Decimal = Decimal("0")
    segment_started_at: datetime | None = None

    @property
    def pending_tick(self) -> TickRecord | None:
        for tick in reversed(self.ticks):
            if tick.status == TickStatus.PENDING:
                return tick
        return None

    @property
    def verified_ticks(self) -> list[TickRecord]:
        return [t for t in self.ticks if t.status == TickStatus.VERIFIED]


@dataclass
class ReviewRecord:
    id: str
    rating: int
    comment: str | None
    created_at: datetime


@dataclass
class MessageRecord:
    id: str
    job_id: str
    sender_type: SenderType
    sender_name: str
    content: str
    created_at: datetime


@dataclass
class JobRecord:
    id: str
    human_id: str
    agent_id: str
    title: str
    description: str
    price_usdc: Decimal
    created_at: datetime
    agent_name: str | None = None
    category: str | None = None
    agent_lat: float | None = None
    agent_lng: float | None = None
    payment_mode: PaymentMode = PaymentMode.ONE_TIME
    payment_timing: PaymentTiming | None = None
    status: JobStatus = JobStatus.PENDING
    callback_url: str | None = None
    callback_secret: str | None = None
    payment_tx_hash: str | None = None
    payment_network: str | None = None
    payment_amount: Decimal | None = None
    paid_at: datetime | None = None
    accepted_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    disputed_at: datetime | None = None
    listing_id: str | None = None
    review: ReviewRecord | None = None
    stream: StreamRecord | None = None
    messages: list[MessageRecord] = field(default_factory=list)


@dataclass
class ListingRecord:
    id: str
    agent_id: str
    title: str
    description: str
    budget_usdc: Decimal
    expires_at: datetime
    created_at: datetime
    category: str | None = None
    required_skills: list[str] = field(default_factory=list)
    required_equipment: list[str] = field(default_factory=list)
    location: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None
    radius_km: float | None = None
    work_mode: WorkMode | None = None
    max_applicants: int | None = None
    status: ListingStatus = ListingStatus.OPEN
    callback_url: str | None = None
    callback_secret: str | None = None
    job_id: str | None = None


@dataclass
class ApplicationRecord:
    id: str
    listing_id: str
    human_id: str
    pitch: str
    created_at: datetime
    status: ApplicationStatus = ApplicationStatus.PENDING


@dataclass(frozen=True)
class Notification:
    """A webhook waiting to be delivered after the current request."""

    url: str
    payload: dict[str, Any]
    secret: str | None = None


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SandboxStore:
    """All sandbox state, one instance per app.

    Attributes:
        clock: Returns the current time. Tests inject a controllable clock.
        chain: Simulated chain used for every payment verification.
        social_posts: url -> post text, the "public internet" for social activation.
        well_known: domain -> token served at /.well-known/humanpages-verify.txt.
        dns_txt: domain -> TXT records.
        outbox: Notifications queued by the desks, drained by the HTTP layer.
    """

    def __init__(self, clock: Clock | None = None, chain: SimulatedChain | None = None) -> None:
        self.clock: Clock = clock or utcnow
        self.chain = chain or SimulatedChain()
        self.platform_wallet = PLATFORM_WALLET

        self.agents: dict[str, AgentRecord] = {}
        self.agent_ids_by_key: dict[str, str] = {}
        self.humans: dict[str, HumanProfile] = {}
        self.jobs: dict[str, JobRecord] = {}
        self.listings: dict[str, ListingRecord] = {}
        self.applications: dict[str, ApplicationRecord] = {}

        self.activation_codes: dict[str, ActivationCodeRecord] = {}
        self.payment_intents: dict[str, PaymentIntentRecord] = {}
        self.promo_claims: set[str] = set()
        self.usage: dict[tuple[str, QuotaKind], list[datetime]] = {}

        self.social_posts: dict[str, str] = {}
        self.well_known: dict[str, str] = {}
        self.dns_txt: dict[str, list[str]] = {}

        self.outbox: list[Notification] = []

    def now(self) -> datetime:
        return self.clock()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def agent_by_key(self, api_key: str) -> AgentRecord | None:
        agent_id = self.agent_ids_by_key.get(hash_key(api_key))
        return self.agents.get(agent_id) if agent_id else None

    def get_agent_or_raise(self, agent_id: str) -> AgentRecord:
        agent = self.agents.get(agent_id)
        if agent is None:
            raise MarketplaceError(ErrorCode.NOT_FOUND, "Agent not found", status_code=404)
        return agent

    def get_human_or_raise(self, human_id: str) -> HumanProfile:
        human = self.humans.get(human_id)
        if human is None:
            raise MarketplaceError(ErrorCode.NOT_FOUND, "Human not found", status_code=404)
        return human

    def get_job_or_raise(self, job_id: str) -> JobRecord:
        job = self.jobs.get(job_id)
        if job is None:
            raise MarketplaceError(ErrorCode.NOT_FOUND, "Job not found", status_code=404)
        return job

    def get_listing_or_raise(self, listing_id: str) -> ListingRecord:
        listing = self.listings.get(listing_id)
        if listing is None:
            raise MarketplaceError(ErrorCode.NOT_FOUND, "Listing not found", status_code=404)
        return listing

    def get_application_or_raise(self, application_id: str) -> ApplicationRecord:
        application = self.applications.get(application_id)
        if application is None:
            raise MarketplaceError(ErrorCode.NOT_FOUND, "Application not found", status_code=404)
        return application

    def applications_for(self, listing_id: str) -> list[ApplicationRecord]:
        apps = [a for a in self.applications.values() if a.listing_id == listing_id]
        return sorted(apps, key=lambda a: a.created_at)

    # ------------------------------------------------------------------
    # Seeding & the simulated outside world
    # ------------------------------------------------------------------

    def add_human(self, human: HumanProfile | None = None, **fields: Any) -> HumanProfile:
        """Add a hireable human. Gives them a wallet on `base` if they have none."""
        if human is None:
            fields.setdefault("id", new_id("hum"))
            fields.setdefault("created_at", self.now())
            human = HumanProfile.model_validate(fields)
        if not human.wallets:
            wallet = Wallet(network="base", chain="Base", address=new_address(), is_primary=True)
            human = human.model_copy(update={"wallets": [wallet]})
        self.humans[human.id] = human
        return human

    def publish_post(self, url: str, text: str) -> None:
        self.social_posts[url] = text

    def publish_well_known(self, domain: str, token: str) -> None:
        self.well_known[domain.lower()] = token

    def publish_dns_txt(self, domain: str, record: str) -> None:
        self.dns_txt.setdefault(domain.lower(), []).append(record)

    def notify(self, url: str | None, payload: dict[str, Any], secret: str | None = None) -> None:
        if url:
            self.outbox.append(Notification(url=url, payload=payload, secret=secret))

    def drain_outbox(self) -> list[Notification]:
        pending, self.outbox = self.outbox, []
        return pending


@dataclass
class FakeClock:
    """Manually advanced clock for tests and the simulation."""

    current: datetime = field(default_factory=utcnow)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        self.current += delta if delta is not None else timedelta(**kwargs)
        return self.current
