"""Application services: the protocol controllers."""

from humanpages.services.facade import HumanPagesClient
from humanpages.services.job_lifecycle import JobLifecycleController
from humanpages.services.listing_board import ListingBoard
from humanpages.services.stream_payments import StreamPaymentController
from humanpages.services.trust_tier import TrustTierManager

__all__ = [
    "HumanPagesClient",
    "JobLifecycleController",
    "ListingBoard",
    "StreamPaymentController",
    "TrustTierManager",
]
