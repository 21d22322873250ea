"""Domain enumerations for the Human Pages transaction protocol.

These enums define the canonical states and types shared by the client,
the MCP tool surface and the reference sandbox backend.
They are framework-agnostic (no httpx, no FastAPI imports).
"""

import enum


class JobStatus(enum.StrEnum):
    """Lifecycle states of a job.

    Transitions are enforced by JobStateMachine.
    See domain/state_machine.py for the transition table.
    """

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    PAID = "PAID"
    STREAMING = "STREAMING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


#: Statuses in which the agent and the human may exchange messages.
MESSAGEABLE_JOB_STATUSES = frozenset(
    {
        JobStatus.PENDING,
        JobStatus.ACCEPTED,
        JobStatus.PAID,
        JobStatus.STREAMING,
        JobStatus.PAUSED,
    }
)


class PaymentMode(enum.StrEnum):
    ONE_TIME = "ONE_TIME"
    STREAM = "STREAM"


class PaymentTiming(enum.StrEnum):
    """When a ONE_TIME job is expected to be paid. Informational only."""

    UPFRONT = "upfront"
    UPON_COMPLETION = "upon_completion"


class StreamMethod(enum.StrEnum):
    """How a STREAM job moves money.

    SUPERFLUID streams value per second through an on-chain flow that the
    agent creates; MICRO_TRANSFER pays one discrete transfer per interval.
    """

    SUPERFLUID = "SUPERFLUID"
    MICRO_TRANSFER = "MICRO_TRANSFER"


class StreamInterval(enum.StrEnum):
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"

    @property
    def seconds(self) -> int:
        return {
            StreamInterval.HOURLY: 3600,
            StreamInterval.DAILY: 86400,
            StreamInterval.WEEKLY: 604800,
        }[self]


class StreamStatus(enum.StrEnum):
    """Sub-status of a stream nested inside Job.status STREAMING/PAUSED."""

    AWAITING_START = "AWAITING_START"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    STOPPED = "STOPPED"


class TickStatus(enum.StrEnum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    SKIPPED = "SKIPPED"


class AgentStatus(enum.StrEnum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


class AgentTier(enum.StrEnum):
    NONE = "NONE"
    BASIC = "BASIC"
    PRO = "PRO"


class ActivationMethod(enum.StrEnum):
    SOCIAL = "SOCIAL"
    PAYMENT = "PAYMENT"
    PROMO = "PROMO"


class ListingStatus(enum.StrEnum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class ApplicationStatus(enum.StrEnum):
    PENDING = "PENDING"
    OFFERED = "OFFERED"
    REJECTED = "REJECTED"


class WorkMode(enum.StrEnum):
    REMOTE = "REMOTE"
    ONSITE = "ONSITE"
    HYBRID = "HYBRID"


class DomainVerificationMethod(enum.StrEnum):
    WELL_KNOWN = "well-known"
    DNS = "dns"


class SenderType(enum.StrEnum):
    AGENT = "agent"
    HUMAN = "human"


class QuotaKind(enum.StrEnum):
    """Operations metered against an agent's tier allowance."""

    JOB_OFFER = "job_offer"
    LISTING = "listing"
    PROFILE_VIEW = "profile_view"
    MESSAGE = "message"


class ErrorCode(enum.StrEnum):
    """Machine-readable failure codes.

    Codes produced by the backend are passed through verbatim; the local
    ones (VALIDATION_ERROR, MISSING_CREDENTIAL, TIMEOUT, ...) are raised
    before or around the network call.
    """

    # Local / transport
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_CREDENTIAL = "MISSING_CREDENTIAL"
    UNKNOWN_OPERATION = "UNKNOWN_OPERATION"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    API_ERROR = "API_ERROR"

    # Permission / trust
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    AGENT_PENDING = "AGENT_PENDING"
    RATE_LIMITED = "RATE_LIMITED"
    CODE_EXPIRED = "CODE_EXPIRED"
    CODE_NOT_FOUND_IN_POST = "CODE_NOT_FOUND_IN_POST"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    PAYMENT_INSUFFICIENT = "PAYMENT_INSUFFICIENT"
    PAYMENT_EXPIRED = "PAYMENT_EXPIRED"
    PAYMENT_PROOF_INVALID = "PAYMENT_PROOF_INVALID"
    PROMO_EXHAUSTED = "PROMO_EXHAUSTED"
    PROMO_ALREADY_CLAIMED = "PROMO_ALREADY_CLAIMED"
    TIER_INELIGIBLE = "TIER_INELIGIBLE"
    WEBSITE_REQUIRED = "WEBSITE_REQUIRED"
    DOMAIN_VERIFICATION_FAILED = "DOMAIN_VERIFICATION_FAILED"

    # State machine
    INVALID_STATE = "INVALID_STATE"
    NOT_COMPLETED = "NOT_COMPLETED"
    ALREADY_REVIEWED = "ALREADY_REVIEWED"
    JOB_CLOSED = "JOB_CLOSED"
    ALREADY_STOPPED = "ALREADY_STOPPED"
    STREAM_METHOD_MISMATCH = "STREAM_METHOD_MISMATCH"
    NO_PENDING_TICK = "NO_PENDING_TICK"
    APPLICATION_NOT_PENDING = "APPLICATION_NOT_PENDING"
    NOT_LISTING_OWNER = "NOT_LISTING_OWNER"
    ALREADY_CLOSED = "ALREADY_CLOSED"
    LISTING_NOT_OPEN = "LISTING_NOT_OPEN"
    LISTING_FULL = "LISTING_FULL"
    ALREADY_APPLIED = "ALREADY_APPLIED"

    # Economic / spam filters
    BELOW_MIN_OFFER_PRICE = "BELOW_MIN_OFFER_PRICE"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    COORDINATES_REQUIRED = "COORDINATES_REQUIRED"
    BUDGET_TOO_LOW = "BUDGET_TOO_LOW"
    EXPIRY_TOO_FAR = "EXPIRY_TOO_FAR"
    EXPIRY_IN_PAST = "EXPIRY_IN_PAST"

    # Payment / flow verification
    INSUFFICIENT_PAYMENT = "INSUFFICIENT_PAYMENT"
    FLOW_NOT_FOUND = "FLOW_NOT_FOUND"
    FLOW_RATE_MISMATCH = "FLOW_RATE_MISMATCH"
    FLOW_STILL_ACTIVE = "FLOW_STILL_ACTIVE"
    TICK_VERIFICATION_FAILED = "TICK_VERIFICATION_FAILED"
