"""One object bundling the controllers over a shared backend connection."""

from __future__ import annotations

import httpx

from humanpages.client.http import BackendClient
from humanpages.services.job_lifecycle import JobLifecycleController
from humanpages.services.listing_board import ListingBoard
from humanpages.services.stream_payments import StreamPaymentController
from humanpages.services.trust_tier import TrustTierManager


class HumanPagesClient:
    """Controllers for every operation of the protocol.

    Usage:
        async with HumanPagesClient() as hp:
            humans = await hp.jobs.search_humans(SearchHumansArgs(skill="photography"))
    """

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        backend: BackendClient | None = None,
    ) -> None:
        self.backend = backend or BackendClient(base_url=base_url, transport=transport)
        self.trust = TrustTierManager(self.backend)
        self.jobs = JobLifecycleController(self.backend)
        self.streams = StreamPaymentController(self.backend)
        self.listings = ListingBoard(self.backend)

    async def __aenter__(self) -> HumanPagesClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.backend.aclose()
