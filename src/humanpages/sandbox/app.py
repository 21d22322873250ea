"""Reference backend REST API.

Serves the contract the HTTP client consumes, backed by the in-memory desks.

Routes (agent side, ``X-Agent-Key`` / ``X-Payment`` headers):
    GET    /api/humans/search                          — Search humans
    GET    /api/humans/{id}                            — Public profile
    GET    /api/humans/{id}/profile                    — Full profile (metered)
    POST   /api/agents/register                        — Register an agent
    GET    /api/agents/{id}                            — Agent profile
    POST   /api/agents/{id}/verify-domain              — Verify website domain
    POST   /api/agents/activate/social[/verify]        — Social activation
    POST   /api/agents/activate/payment[/verify]       — Payment activation
    GET    /api/agents/activate/status                 — Tier, limits, prices
    GET    /api/agents/activate/promo-status           — Promo slots
    POST   /api/agents/activate/promo-upgrade          — Claim free PRO
    POST   /api/jobs                                   — Create job offer (metered)
    GET    /api/jobs/{id}                              — Job status
    PATCH  /api/jobs/{id}/paid                         — Record one-time payment
    POST   /api/jobs/{id}/review                       — Review a completed job
    GET    /api/jobs/{id}/messages                     — Read messages
    POST   /api/jobs/{id}/messages                     — Send a message
    PATCH  /api/jobs/{id}/{start,pause,resume,stop}-stream, stream-tick
    GET    /api/listings                               — Browse listings
    POST   /api/listings                               — Post a listing (metered)
    GET    /api/listings/{id}                          — Listing detail
    GET    /api/listings/{id}/applications             — Applications (owner)
    POST   /api/listings/{id}/applications/{app}/offer — Convert to a job (owner, metered)
    DELETE /api/listings/{id}                          — Cancel (owner)

Human side (``X-Human-Id`` header):
    PATCH  /api/human/jobs/{id}/{accept,reject,complete,cancel,dispute}
    POST   /api/human/jobs/{id}/messages
    POST   /api/human/listings/{id}/apply

Sandbox controls (the simulated outside world):
    POST   /api/sandbox/humans, /transfers, /flows, /flows/close,
           /social-posts, /domains
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from humanpages.api.middleware import setup_middleware
from humanpages.domain.enums import ErrorCode, QuotaKind, WorkMode
from humanpages.domain.exceptions import MarketplaceError
from humanpages.logging_config import get_logger
from humanpages.sandbox.jobs import JobDesk
from humanpages.sandbox.listings import ListingDesk
from humanpages.sandbox.store import SandboxStore
from humanpages.sandbox.trust import Permit, TrustGate
from humanpages.schemas.entities import CamelModel, HumanProfile, Money
from humanpages.schemas.wire import (
    ApplyBody,
    CreateJobBody,
    CreateListingBody,
    MarkPaidBody,
    MessageBody,
    PaymentVerifyBody,
    RegisterAgentBody,
    ResumeStreamBody,
    ReviewBody,
    SocialVerifyBody,
    StartStreamBody,
    StreamTickBody,
    VerifyDomainBody,
)
from humanpages.services.webhooks import WebhookNotifier

logger = get_logger(__name__)


class Sandbox:
    """The desks sharing one store."""

    def __init__(self, store: SandboxStore | None = None) -> None:
        self.store = store or SandboxStore()
        self.gate = TrustGate(self.store)
        self.jobs = JobDesk(self.store, self.gate)
        self.streams = self.jobs.streams
        self.listings = ListingDesk(self.store, self.gate, self.jobs)


# ---------------------------------------------------------------------------
# Sandbox control bodies
# ---------------------------------------------------------------------------


class TransferBody(CamelModel):
    network: str
    receiver: str
    amount: Money
    sender: str | None = None
    tx_hash: str | None = None


class TransferReceipt(CamelModel):
    tx_hash: str


class FlowBody(CamelModel):
    sender: str
    receiver: str
    network: str
    token: str = "USDC"
    rate_per_second: Decimal = Decimal("0")


class SocialPostBody(CamelModel):
    url: str
    text: str


class DomainBody(CamelModel):
    domain: str
    well_known_token: str | None = None
    txt_record: str | None = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

AgentKey = Annotated[str | None, Header(alias="X-Agent-Key")]
PaymentProof = Annotated[str | None, Header(alias="X-Payment")]
HumanId = Annotated[str, Header(alias="X-Human-Id")]


def get_sandbox(request: Request) -> Sandbox:
    return request.app.state.sandbox


SandboxDep = Annotated[Sandbox, Depends(get_sandbox)]


def _permit(kind: QuotaKind):
    def dependency(sandbox: SandboxDep, agent_key: AgentKey = None, payment: PaymentProof = None) -> Permit:
        return sandbox.gate.authorize(agent_key, payment, kind=kind)

    return dependency


def active_agent_key(sandbox: SandboxDep, agent_key: AgentKey = None) -> str:
    """Resolve before the body so a PENDING agent sees AGENT_PENDING, not a validation error."""
    sandbox.gate.require_active(sandbox.gate.authenticate(agent_key))
    return agent_key


ActiveKey = Annotated[str, Depends(active_agent_key)]


# ---------------------------------------------------------------------------
# Humans
# ---------------------------------------------------------------------------

humans = APIRouter(prefix="/api/humans", tags=["Humans"])


@humans.get("/search")
async def search_humans(
    sandbox: SandboxDep,
    skill: str | None = None,
    equipment: str | None = None,
    language: str | None = None,
    location: str | None = None,
    lat: float | None = None,
    lng: float | None = None,
    radius: float | None = None,
    max_rate: Annotated[float | None, Query(alias="maxRate")] = None,
    available: bool = False,
    work_mode: Annotated[WorkMode | None, Query(alias="workMode")] = None,
    verified: str | None = None,
) -> list[dict[str, Any]]:
    found = sandbox.jobs.search_humans(
        skill=skill,
        equipment=equipment,
        language=language,
        location=location,
        lat=lat,
        lng=lng,
        radius=radius,
        max_rate=max_rate,
        available=available,
        work_mode=work_mode,
        verified=verified,
    )
    return [h.to_wire() for h in found]


@humans.get("/{human_id}")
async def get_human(human_id: str, sandbox: SandboxDep) -> dict[str, Any]:
    return sandbox.jobs.get_human(human_id).to_wire()


@humans.get("/{human_id}/profile")
async def get_human_profile(
    human_id: str,
    sandbox: SandboxDep,
    permit: Annotated[Permit, Depends(_permit(QuotaKind.PROFILE_VIEW))],
) -> dict[str, Any]:
    return sandbox.jobs.human_profile(permit, human_id).to_wire()


# ---------------------------------------------------------------------------
# Agents & activation
# ---------------------------------------------------------------------------

agents = APIRouter(prefix="/api/agents", tags=["Agents"])


@agents.post("/register", status_code=201)
async def register_agent(body: RegisterAgentBody, sandbox: SandboxDep) -> dict[str, Any]:
    return sandbox.gate.register(body).to_wire()


@agents.post("/activate/social")
async def request_activation_code(sandbox: SandboxDep, agent_key: AgentKey = None) -> dict[str, Any]:
    return sandbox.gate.request_code(agent_key).to_wire()


@agents.post("/activate/social/verify")
async def verify_social_activation(
    body: SocialVerifyBody, sandbox: SandboxDep, agent_key: AgentKey = None
) -> dict[str, Any]:
    return sandbox.gate.verify_social(agent_key, body.post_url).to_wire()


@agents.post("/activate/payment")
async def get_payment_activation(sandbox: SandboxDep, agent_key: AgentKey = None) -> dict[str, Any]:
    return sandbox.gate.payment_intent(agent_key).to_wire()


@agents.post("/activate/payment/verify")
async def verify_payment_activation(
    body: PaymentVerifyBody, sandbox: SandboxDep, agent_key: AgentKey = None
) -> dict[str, Any]:
    return sandbox.gate.verify_payment(agent_key, body.tx_hash, body.network).to_wire()


@agents.get("/activate/status")
async def get_activation_status(sandbox: SandboxDep, agent_key: AgentKey = None) -> dict[str, Any]:
    return sandbox.gate.activation_status(agent_key).to_wire()


@agents.get("/activate/promo-status")
async def get_promo_status(sandbox: SandboxDep) -> dict[str, Any]:
    return sandbox.gate.promo_status().to_wire()


@agents.post("/activate/promo-upgrade")
async def claim_promo_upgrade(sandbox: SandboxDep, agent_key: AgentKey = None) -> dict[str, Any]:
    return sandbox.gate.claim_promo(agent_key).to_wire()


@agents.get("/{agent_id}")
async def get_agent_profile(agent_id: str, sandbox: SandboxDep) -> dict[str, Any]:
    return sandbox.gate.profile(agent_id).to_wire()


@agents.post("/{agent_id}/verify-domain")
async def verify_domain(
    agent_id: str, body: VerifyDomainBody, sandbox: SandboxDep, agent_key: AgentKey = None
) -> dict[str, Any]:
    return sandbox.gate.verify_domain(agent_key, agent_id, body.method).to_wire()


# ---------------------------------------------------------------------------
# Jobs & streams
# ---------------------------------------------------------------------------

jobs = APIRouter(prefix="/api/jobs", tags=["Jobs"])


@jobs.post("", status_code=201)
async def create_job(
    sandbox: SandboxDep,
    permit: Annotated[Permit, Depends(_permit(QuotaKind.JOB_OFFER))],
    body: CreateJobBody,
) -> dict[str, Any]:
    return sandbox.jobs.create_job(permit, body).to_wire()


@jobs.get("/{job_id}")
async def get_job(job_id: str, sandbox: SandboxDep) -> dict[str, Any]:
    return sandbox.jobs.get_job(job_id).to_wire()


@jobs.patch("/{job_id}/paid")
async def mark_job_paid(
    job_id: str, body: MarkPaidBody, sandbox: SandboxDep, agent_key: AgentKey = None
) -> dict[str, Any]:
    return sandbox.jobs.mark_paid(agent_key, job_id, body).to_wire()


@jobs.post("/{job_id}/review")
async def leave_review(
    job_id: str, body: ReviewBody, sandbox: SandboxDep, agent_key: AgentKey = None
) -> dict[str, Any]:
    return sandbox.jobs.review(agent_key, job_id, body).to_wire()


@jobs.get("/{job_id}/messages")
async def get_messages(job_id: str, sandbox: SandboxDep, agent_key: ActiveKey) -> list[dict[str, Any]]:
    return [m.to_wire() for m in sandbox.jobs.messages(agent_key, job_id)]


@jobs.post("/{job_id}/messages", status_code=201)
async def send_message(
    job_id: str, sandbox: SandboxDep, agent_key: ActiveKey, body: MessageBody
) -> dict[str, Any]:
    return sandbox.jobs.send_message(agent_key, job_id, body.content).to_wire()


@jobs.patch("/{job_id}/start-stream")
async def start_stream(
    job_id: str, sandbox: SandboxDep, agent_key: ActiveKey, body: StartStreamBody
) -> dict[str, Any]:
    return sandbox.streams.start(agent_key, job_id, body).to_wire()


@jobs.patch("/{job_id}/stream-tick")
async def record_stream_tick(
    job_id: str, sandbox: SandboxDep, agent_key: ActiveKey, body: StreamTickBody
) -> dict[str, Any]:
    return sandbox.streams.tick(agent_key, job_id, body.tx_hash).to_wire()


@jobs.patch("/{job_id}/pause-stream")
async def pause_stream(job_id: str, sandbox: SandboxDep, agent_key: ActiveKey) -> dict[str, Any]:
    return sandbox.streams.pause(agent_key, job_id).to_wire()


@jobs.patch("/{job_id}/resume-stream")
async def resume_stream(
    job_id: str, sandbox: SandboxDep, agent_key: ActiveKey, body: ResumeStreamBody | None = None
) -> dict[str, Any]:
    sender = body.sender_address if body else None
    return sandbox.streams.resume(agent_key, job_id, sender).to_wire()


@jobs.patch("/{job_id}/stop-stream")
async def stop_stream(job_id: str, sandbox: SandboxDep, agent_key: ActiveKey) -> dict[str, Any]:
    return sandbox.streams.stop(agent_key, job_id).to_wire()


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

listings = APIRouter(prefix="/api/listings", tags=["Listings"])


@listings.get("")
async def browse_listings(
    sandbox: SandboxDep,
    page: int = 1,
    limit: int = 20,
    skill: str | None = None,
    category: str | None = None,
    work_mode: Annotated[WorkMode | None, Query(alias="workMode")] = None,
    min_budget: Annotated[float | None, Query(alias="minBudget")] = None,
    max_budget: Annotated[float | None, Query(alias="maxBudget")] = None,
    lat: float | None = None,
    lng: float | None = None,
    radius: float | None = None,
) -> dict[str, Any]:
    result = sandbox.listings.browse(
        page=page,
        limit=limit,
        skill=skill,
        category=category,
        work_mode=work_mode,
        min_budget=min_budget,
        max_budget=max_budget,
        lat=lat,
        lng=lng,
        radius=radius,
    )
    return result.to_wire()


@listings.post("", status_code=201)
async def create_listing(
    sandbox: SandboxDep,
    permit: Annotated[Permit, Depends(_permit(QuotaKind.LISTING))],
    body: CreateListingBody,
) -> dict[str, Any]:
    return sandbox.listings.create(permit, body).to_wire()


@listings.get("/{listing_id}")
async def get_listing(listing_id: str, sandbox: SandboxDep) -> dict[str, Any]:
    return sandbox.listings.get(listing_id).to_wire()


@listings.get("/{listing_id}/applications")
async def get_applications(listing_id: str, sandbox: SandboxDep, agent_key: ActiveKey) -> list[dict[str, Any]]:
    return [a.to_wire() for a in sandbox.listings.applications(agent_key, listing_id)]


@listings.post("/{listing_id}/applications/{application_id}/offer", status_code=201)
async def make_listing_offer(
    listing_id: str,
    application_id: str,
    sandbox: SandboxDep,
    permit: Annotated[Permit, Depends(_permit(QuotaKind.JOB_OFFER))],
) -> dict[str, Any]:
    return sandbox.listings.make_offer(permit, listing_id, application_id).to_wire()


@listings.delete("/{listing_id}")
async def cancel_listing(listing_id: str, sandbox: SandboxDep, agent_key: ActiveKey) -> dict[str, Any]:
    return sandbox.listings.cancel(agent_key, listing_id).to_wire()


# ---------------------------------------------------------------------------
# Human side
# ---------------------------------------------------------------------------

human = APIRouter(prefix="/api/human", tags=["Human side"])

_HUMAN_JOB_ACTIONS = ("accept", "reject", "complete", "cancel", "dispute")


@human.patch("/jobs/{job_id}/{action}")
async def human_job_action(job_id: str, action: str, sandbox: SandboxDep, human_id: HumanId) -> dict[str, Any]:
    if action not in _HUMAN_JOB_ACTIONS:
        raise MarketplaceError(ErrorCode.NOT_FOUND, f"Unknown job action: {action}", status_code=404)
    return getattr(sandbox.jobs, action)(human_id, job_id).to_wire()


@human.post("/jobs/{job_id}/messages", status_code=201)
async def human_reply(job_id: str, body: MessageBody, sandbox: SandboxDep, human_id: HumanId) -> dict[str, Any]:
    return sandbox.jobs.human_reply(human_id, job_id, body.content).to_wire()


@human.post("/listings/{listing_id}/apply", status_code=201)
async def apply_to_listing(
    listing_id: str, body: ApplyBody, sandbox: SandboxDep, human_id: HumanId
) -> dict[str, Any]:
    return sandbox.listings.apply(human_id, listing_id, body.pitch).to_wire()


# ---------------------------------------------------------------------------
# Sandbox controls
# ---------------------------------------------------------------------------

controls = APIRouter(prefix="/api/sandbox", tags=["Sandbox"])


@controls.post("/humans", status_code=201)
async def add_human(body: HumanProfile, sandbox: SandboxDep) -> dict[str, Any]:
    return sandbox.store.add_human(body).to_wire()


@controls.post("/transfers", status_code=201)
async def record_transfer(body: TransferBody, sandbox: SandboxDep) -> dict[str, Any]:
    transfer = sandbox.store.chain.record_transfer(
        body.network, body.receiver, body.amount, sender=body.sender, tx_hash=body.tx_hash
    )
    return TransferReceipt(tx_hash=transfer.tx_hash).to_wire()


@controls.post("/flows", status_code=201)
async def open_flow(body: FlowBody, sandbox: SandboxDep) -> dict[str, Any]:
    sandbox.store.chain.open_flow(
        body.sender, body.receiver, body.network, body.token, body.rate_per_second, opened_at=sandbox.store.now()
    )
    return {"ok": True}


@controls.post("/flows/close")
async def close_flow(body: FlowBody, sandbox: SandboxDep) -> dict[str, Any]:
    return {"ok": sandbox.store.chain.close_flow(body.sender, body.receiver, body.network, body.token)}


@controls.post("/social-posts", status_code=201)
async def publish_post(body: SocialPostBody, sandbox: SandboxDep) -> dict[str, Any]:
    sandbox.store.publish_post(body.url, body.text)
    return {"ok": True}


@controls.post("/domains", status_code=201)
async def publish_domain(body: DomainBody, sandbox: SandboxDep) -> dict[str, Any]:
    if body.well_known_token:
        sandbox.store.publish_well_known(body.domain, body.well_known_token)
    if body.txt_record:
        sandbox.store.publish_dns_txt(body.domain, body.txt_record)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Webhook delivery
# ---------------------------------------------------------------------------


class WebhookDispatchMiddleware(BaseHTTPMiddleware):
    """Deliver notifications queued during a request before responding."""

    def __init__(self, app: Any, sandbox: Sandbox, notifier: WebhookNotifier) -> None:
        super().__init__(app)
        self.sandbox = sandbox
        self.notifier = notifier

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for notification in self.sandbox.store.drain_outbox():
            try:
                await self.notifier.deliver(notification.url, notification.payload, notification.secret)
            except Exception:
                # The transition is already stored; the response still reports it
                logger.exception(
                    "sandbox.webhook_dispatch_failed",
                    url=notification.url,
                    webhook_event=notification.payload.get("event"),
                )
        return response


def create_sandbox_app(
    store: SandboxStore | None = None,
    notifier: WebhookNotifier | None = None,
) -> FastAPI:
    """Application factory for the reference backend."""
    sandbox = Sandbox(store)
    app = FastAPI(
        title="Human Pages sandbox",
        description="In-memory reference backend with a simulated chain.",
        version="0.1.0",
    )
    app.state.sandbox = sandbox

    setup_middleware(app)
    app.add_middleware(WebhookDispatchMiddleware, sandbox=sandbox, notifier=notifier or WebhookNotifier())

    for router in (humans, agents, jobs, listings, human, controls):
        app.include_router(router)

    logger.info("sandbox.app_created")
    return app
