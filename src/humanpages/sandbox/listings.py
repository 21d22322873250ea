"""Listing desk — job-board postings, applications and the offer conversion."""

from __future__ import annotations

import math
from decimal import Decimal

from humanpages.domain.enums import (
    ApplicationStatus,
    ErrorCode,
    ListingStatus,
    PaymentMode,
    QuotaKind,
    WorkMode,
)
from humanpages.domain.exceptions import MarketplaceError
from humanpages.domain.state_machine import ApplicationStateMachine, ListingStateMachine
from humanpages.domain.tiers import LISTING_MAX_HORIZON, LISTING_MIN_BUDGET
from humanpages.logging_config import get_logger
from humanpages.sandbox.geo import distance_km
from humanpages.sandbox.jobs import JobDesk, public_human
from humanpages.sandbox.store import (
    AgentRecord,
    ApplicationRecord,
    ListingRecord,
    SandboxStore,
    fire_transition,
    new_id,
)
from humanpages.sandbox.trust import Permit, TrustGate
from humanpages.schemas.entities import (
    Application,
    Listing,
    ListingCancellation,
    ListingCounts,
    ListingPage,
    ListingReceipt,
    OfferReceipt,
    Pagination,
)
from humanpages.schemas.wire import CreateJobBody, CreateListingBody
from humanpages.services.webhooks import build_payload

logger = get_logger(__name__)

PAGE_LIMIT_MAX = 50


class ListingDesk:
    def __init__(self, store: SandboxStore, gate: TrustGate, jobs: JobDesk) -> None:
        self.store = store
        self.gate = gate
        self.jobs = jobs

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _notify(self, listing: ListingRecord, data: dict | None = None) -> None:
        payload_data = {"listingId": listing.id, "title": listing.title, "status": str(listing.status)}
        if data:
            payload_data.update(data)
        payload = build_payload("listing", listing.id, listing.status, payload_data, timestamp=self.store.now())
        self.store.notify(listing.callback_url, payload, listing.callback_secret)

    def _expire_if_due(self, listing: ListingRecord) -> None:
        if listing.status == ListingStatus.OPEN and listing.expires_at <= self.store.now():
            listing.status = ListingStatus(fire_transition(ListingStateMachine, listing.status, "expire"))
            self._notify(listing)
            logger.info("sandbox.listing_expired", listing_id=listing.id)

    def _listing(self, listing_id: str) -> ListingRecord:
        listing = self.store.get_listing_or_raise(listing_id)
        self._expire_if_due(listing)
        return listing

    def _owned_listing(self, api_key: str | None, listing_id: str) -> ListingRecord:
        return self._listing_owned_by(self.gate.require_active(self.gate.authenticate(api_key)), listing_id)

    def _listing_owned_by(self, agent: AgentRecord, listing_id: str) -> ListingRecord:
        listing = self._listing(listing_id)
        if listing.agent_id != agent.id:
            raise MarketplaceError(
                ErrorCode.NOT_LISTING_OWNER,
                "Only the agent that posted this listing can do that",
                status_code=403,
            )
        return listing

    def to_listing(self, listing: ListingRecord) -> Listing:
        return Listing(
            id=listing.id,
            agent_id=listing.agent_id,
            title=listing.title,
            description=listing.description,
            category=listing.category,
            budget_usdc=listing.budget_usdc,
            required_skills=listing.required_skills,
            required_equipment=listing.required_equipment,
            location=listing.location,
            location_lat=listing.location_lat,
            location_lng=listing.location_lng,
            radius_km=listing.radius_km,
            work_mode=listing.work_mode,
            expires_at=listing.expires_at,
            max_applicants=listing.max_applicants,
            status=listing.status,
            created_at=listing.created_at,
            agent=self.gate.brief(listing.agent_id),
            agent_reputation=self.gate.reputation(listing.agent_id),
            is_pro=self.gate.is_pro(listing.agent_id),
            counts=ListingCounts(applications=len(self.store.applications_for(listing.id))),
        )

    # ------------------------------------------------------------------
    # Agent side
    # ------------------------------------------------------------------

    def create(self, permit: Permit, body: CreateListingBody) -> ListingReceipt:
        if permit.agent is None:
            raise MarketplaceError(ErrorCode.UNAUTHORIZED, "Listings need an agent key to own them", status_code=401)
        now = self.store.now()
        if body.budget_usdc < LISTING_MIN_BUDGET:
            raise MarketplaceError(
                ErrorCode.BUDGET_TOO_LOW,
                f"Listing budget must be at least ${LISTING_MIN_BUDGET} USDC",
                details={"minBudget": float(LISTING_MIN_BUDGET)},
            )
        if body.expires_at <= now:
            raise MarketplaceError(ErrorCode.EXPIRY_IN_PAST, "expiresAt must be in the future")
        if body.expires_at > now + LISTING_MAX_HORIZON:
            raise MarketplaceError(
                ErrorCode.EXPIRY_TOO_FAR,
                f"expiresAt must be within {LISTING_MAX_HORIZON.days} days",
            )
        if body.max_applicants is not None and body.max_applicants < 1:
            raise MarketplaceError(ErrorCode.VALIDATION_ERROR, "maxApplicants must be at least 1")

        listing = ListingRecord(
            id=new_id("lst"),
            agent_id=permit.agent.id,
            title=body.title,
            description=body.description,
            category=body.category,
            budget_usdc=body.budget_usdc,
            required_skills=list(body.required_skills),
            required_equipment=list(body.required_equipment),
            location=body.location,
            location_lat=body.location_lat,
            location_lng=body.location_lng,
            radius_km=body.radius_km,
            work_mode=body.work_mode,
            expires_at=body.expires_at,
            max_applicants=body.max_applicants,
            callback_url=body.callback_url,
            callback_secret=body.callback_secret,
            created_at=now,
        )
        self.store.listings[listing.id] = listing
        permit.commit()
        logger.info("sandbox.listing_created", listing_id=listing.id, agent_id=listing.agent_id)

        rate_limit = None
        if permit.paid_via is None:
            rate_limit = self.gate.rate_limit_info(permit.agent, QuotaKind.LISTING)
        return ListingReceipt(
            id=listing.id,
            status=listing.status,
            message="Listing posted. Humans can now apply.",
            rate_limit=rate_limit,
            paid_via=permit.paid_via,
        )

    def browse(
        self,
        page: int = 1,
        limit: int = 20,
        skill: str | None = None,
        category: str | None = None,
        work_mode: WorkMode | None = None,
        min_budget: float | None = None,
        max_budget: float | None = None,
        lat: float | None = None,
        lng: float | None = None,
        radius: float | None = None,
    ) -> ListingPage:
        page = max(page, 1)
        limit = min(max(limit, 1), PAGE_LIMIT_MAX)
        matches = []
        for listing in self.store.listings.values():
            self._expire_if_due(listing)
            if listing.status != ListingStatus.OPEN:
                continue
            if skill and skill.lower() not in (s.lower() for s in listing.required_skills):
                continue
            if category and (listing.category or "").lower() != category.lower():
                continue
            if work_mode is not None and listing.work_mode != work_mode:
                continue
            if min_budget is not None and listing.budget_usdc < Decimal(str(min_budget)):
                continue
            if max_budget is not None and listing.budget_usdc > Decimal(str(max_budget)):
                continue
            if lat is not None and lng is not None and radius is not None:
                if listing.location_lat is None or listing.location_lng is None:
                    continue
                if distance_km(lat, lng, listing.location_lat, listing.location_lng) > radius:
                    continue
            matches.append(listing)

        # PRO agents first, newest first within each group
        matches.sort(key=lambda item: item.created_at, reverse=True)
        matches.sort(key=lambda item: not self.gate.is_pro(item.agent_id))
        total = len(matches)
        start = (page - 1) * limit
        return ListingPage(
            listings=[self.to_listing(item) for item in matches[start : start + limit]],
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=max(1, math.ceil(total / limit))),
        )

    def get(self, listing_id: str) -> Listing:
        return self.to_listing(self._listing(listing_id))

    def applications(self, api_key: str | None, listing_id: str) -> list[Application]:
        listing = self._owned_listing(api_key, listing_id)
        result = []
        for app in self.store.applications_for(listing.id):
            human = self.store.humans.get(app.human_id)
            result.append(
                Application(
                    id=app.id,
                    listing_id=app.listing_id,
                    human_id=app.human_id,
                    pitch=app.pitch,
                    status=app.status,
                    created_at=app.created_at,
                    human=public_human(human) if human else None,
                )
            )
        return result

    def make_offer(self, permit: Permit, listing_id: str, application_id: str) -> OfferReceipt:
        """Turn a pending application into a PENDING job and close the listing.

        The job goes through the same checks as a direct offer: the permit
        carries the JOB_OFFER allowance, and the human's minimum price and
        distance filters apply to the listing's budget and location.
        """
        if permit.agent is None:
            raise MarketplaceError(ErrorCode.UNAUTHORIZED, "Only the listing's agent can make offers", status_code=401)
        listing = self._listing_owned_by(permit.agent, listing_id)
        application = self.store.get_application_or_raise(application_id)
        if application.listing_id != listing.id:
            raise MarketplaceError(ErrorCode.NOT_FOUND, "Application not found on this listing", status_code=404)
        if application.status != ApplicationStatus.PENDING:
            raise MarketplaceError(
                ErrorCode.APPLICATION_NOT_PENDING,
                f"Application is {application.status}, not PENDING",
                status_code=409,
            )
        listing_status = fire_transition(
            ListingStateMachine,
            listing.status,
            "close",
            code=ErrorCode.LISTING_NOT_OPEN,
            message=f"Listing is {listing.status}; offers can only be made on OPEN listings",
        )
        app_status = fire_transition(ApplicationStateMachine, application.status, "offer")
        human = self.store.get_human_or_raise(application.human_id)
        self.jobs.check_offer_filters(human, listing.budget_usdc, listing.location_lat, listing.location_lng)

        agent = permit.agent
        job = self.jobs.open_job(
            CreateJobBody(
                human_id=human.id,
                agent_id=agent.id,
                agent_name=agent.name,
                agent_lat=listing.location_lat,
                agent_lng=listing.location_lng,
                title=listing.title,
                description=listing.description,
                category=listing.category,
                price_usdc=listing.budget_usdc,
                payment_mode=PaymentMode.ONE_TIME,
                callback_url=listing.callback_url,
                callback_secret=listing.callback_secret,
            ),
            listing_id=listing.id,
        )
        permit.commit()
        application.status = ApplicationStatus(app_status)
        listing.status = ListingStatus(listing_status)
        listing.job_id = job.id
        self._notify(listing, {"jobId": job.id, "applicationId": application.id})
        self.jobs.notify(job)
        logger.info("sandbox.listing_offer_made", listing_id=listing.id, job_id=job.id)
        return OfferReceipt(
            id=job.id,
            application_id=application.id,
            status=job.status,
            message=f"Offer sent to {human.name}. Listing is now closed.",
        )

    def cancel(self, api_key: str | None, listing_id: str) -> ListingCancellation:
        listing = self._owned_listing(api_key, listing_id)
        if listing.status != ListingStatus.OPEN:
            raise MarketplaceError(
                ErrorCode.ALREADY_CLOSED,
                f"Listing is already {listing.status}",
                status_code=409,
            )
        listing.status = ListingStatus(fire_transition(ListingStateMachine, listing.status, "cancel"))
        rejected = 0
        for app in self.store.applications_for(listing.id):
            if app.status == ApplicationStatus.PENDING:
                app.status = ApplicationStatus(fire_transition(ApplicationStateMachine, app.status, "reject"))
                rejected += 1
        self._notify(listing, {"rejectedApplications": rejected})
        logger.info("sandbox.listing_cancelled", listing_id=listing.id, rejected=rejected)
        return ListingCancellation(
            id=listing.id,
            status=listing.status,
            message=f"Listing cancelled. {rejected} pending application(s) rejected.",
        )

    # ------------------------------------------------------------------
    # Human side
    # ------------------------------------------------------------------

    def apply(self, human_id: str, listing_id: str, pitch: str) -> Application:
        human = self.store.get_human_or_raise(human_id)
        listing = self._listing(listing_id)
        if listing.status != ListingStatus.OPEN:
            raise MarketplaceError(
                ErrorCode.LISTING_NOT_OPEN,
                f"Listing is {listing.status}",
                status_code=409,
            )
        existing = self.store.applications_for(listing.id)
        if any(a.human_id == human.id for a in existing):
            raise MarketplaceError(ErrorCode.ALREADY_APPLIED, "You already applied to this listing", status_code=409)
        if listing.max_applicants is not None and len(existing) >= listing.max_applicants:
            raise MarketplaceError(
                ErrorCode.LISTING_FULL,
                f"Listing accepts at most {listing.max_applicants} applicant(s)",
                status_code=409,
            )
        if not pitch.strip():
            raise MarketplaceError(ErrorCode.VALIDATION_ERROR, "pitch is required")

        application = ApplicationRecord(
            id=new_id("app"),
            listing_id=listing.id,
            human_id=human.id,
            pitch=pitch,
            created_at=self.store.now(),
        )
        self.store.applications[application.id] = application
        logger.info("sandbox.application_received", listing_id=listing.id, application_id=application.id)
        return Application(
            id=application.id,
            listing_id=listing.id,
            human_id=human.id,
            pitch=pitch,
            status=application.status,
            created_at=application.created_at,
            human=public_human(human),
        )
