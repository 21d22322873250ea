"""Listing Board — public job-board postings and the application -> offer pipeline.

    create_listing       -> OPEN
    make_listing_offer   -> OPEN -> CLOSED, application PENDING -> OFFERED,
                            job created through the direct-offer path
    cancel_listing       -> OPEN -> CANCELLED, pending applications -> REJECTED
    (backend) expiry     -> OPEN -> EXPIRED
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from humanpages.logging_config import get_logger
from humanpages.schemas.entities import (
    Application,
    Listing,
    ListingCancellation,
    ListingPage,
    ListingReceipt,
    OfferReceipt,
)
from humanpages.schemas.wire import ListingOfferBody
from humanpages.services.trust_tier import activation_guidance, segment

if TYPE_CHECKING:
    from humanpages.client.http import BackendClient
    from humanpages.schemas.operations import (
        AuthenticatedListingArgs,
        CreateListingArgs,
        GetListingsArgs,
        ListingIdArgs,
        ListingOfferArgs,
    )

logger = get_logger(__name__)


class ListingBoard:
    def __init__(self, client: BackendClient) -> None:
        self._client = client

    async def create_listing(self, args: CreateListingArgs) -> ListingReceipt:
        credential = args.credential().require("agent_key is required.")
        with activation_guidance("creating listings"):
            result = await self._client.post(
                "/api/listings",
                credential=credential,
                json=args.to_body(),
                model=ListingReceipt,
            )
        logger.info("listings.created", listing_id=result.id, paid_via=result.paid_via)
        return result

    async def get_listings(self, args: GetListingsArgs) -> ListingPage:
        return await self._client.get("/api/listings", params=args.to_query(), model=ListingPage)

    async def get_listing(self, args: ListingIdArgs) -> Listing:
        return await self._client.get(f"/api/listings/{segment(args.listing_id)}", model=Listing)

    async def get_applications(self, args: AuthenticatedListingArgs) -> list[Application]:
        credential = args.credential().require_agent_key()
        return await self._client.get(
            f"/api/listings/{segment(args.listing_id)}/applications",
            credential=credential,
            model=list[Application],
        )

    async def make_offer(self, args: ListingOfferArgs) -> OfferReceipt:
        """Convert one pending application into a job. Binding for the agent."""
        credential = args.credential().require_agent_key()
        result = await self._client.post(
            f"/api/listings/{segment(args.listing_id)}/applications/{segment(args.application_id)}/offer",
            credential=credential,
            json=ListingOfferBody(confirm=True),
            model=OfferReceipt,
        )
        logger.info(
            "listings.offer_made",
            listing_id=args.listing_id,
            application_id=args.application_id,
            job_id=result.id,
        )
        return result

    async def cancel_listing(self, args: AuthenticatedListingArgs) -> ListingCancellation:
        credential = args.credential().require_agent_key()
        result = await self._client.delete(
            f"/api/listings/{segment(args.listing_id)}",
            credential=credential,
            model=ListingCancellation,
        )
        logger.info("listings.cancelled", listing_id=args.listing_id)
        return result
