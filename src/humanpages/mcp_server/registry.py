"""Closed registry of named operations.

Every tool the server exposes is one Operation: a typed argument model, the
controller method that performs it and the renderer that turns its result
into text. `OperationRegistry.dispatch` is the single boundary that turns
raw tool arguments into an OperationResult; nothing raises past it.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from humanpages.domain.enums import ErrorCode
from humanpages.domain.exceptions import ApiError, HumanPagesError, InputValidationError
from humanpages.domain.results import OperationResult
from humanpages.logging_config import get_logger
from humanpages.mcp_server import formatting as fmt
from humanpages.schemas.operations import (
    AgentIdArgs,
    AgentKeyArgs,
    AuthenticatedJobArgs,
    AuthenticatedListingArgs,
    CreateJobOfferArgs,
    CreateListingArgs,
    GetHumanArgs,
    GetListingsArgs,
    HumanIdArgs,
    HumanProfileArgs,
    JobIdArgs,
    LeaveReviewArgs,
    ListingIdArgs,
    ListingOfferArgs,
    MarkJobPaidArgs,
    NoArgs,
    OperationArgs,
    RegisterAgentArgs,
    ResumeStreamArgs,
    SearchHumansArgs,
    SendMessageArgs,
    StartStreamArgs,
    StreamTickArgs,
    VerifyDomainArgs,
    VerifyPaymentArgs,
    VerifySocialArgs,
)
from humanpages.services.facade import HumanPagesClient

logger = get_logger(__name__)

Handler = Callable[[HumanPagesClient, Any], Awaitable[Any]]
Renderer = Callable[[Any, Any], str]


@dataclass(frozen=True)
class Operation:
    name: str
    args_model: type[OperationArgs]
    handler: Handler
    render: Renderer


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten pydantic errors into `field: message; field: message`."""
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err["loc"] if not isinstance(p, int))
        message = err["msg"].removeprefix("Value error, ")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def _first_field(exc: ValidationError) -> str | None:
    for err in exc.errors():
        names = [str(p) for p in err["loc"] if not isinstance(p, int)]
        if names:
            return names[0]
    return None


def _error_details(exc: HumanPagesError) -> dict[str, Any]:
    if isinstance(exc, ApiError):
        details = dict(exc.details)
        if exc.status_code is not None:
            details["status_code"] = exc.status_code
        if exc.reason:
            details["reason"] = exc.reason
        if exc.hint:
            details["hint"] = exc.hint
        return details
    if isinstance(exc, InputValidationError) and exc.field:
        return {"field": exc.field}
    return {}


class OperationRegistry:
    """Name -> Operation lookup with a uniform dispatch boundary."""

    def __init__(self, operations: Iterable[Operation]) -> None:
        self._operations: dict[str, Operation] = {}
        for op in operations:
            if op.name in self._operations:
                raise ValueError(f"Duplicate operation: {op.name}")
            self._operations[op.name] = op

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __len__(self) -> int:
        return len(self._operations)

    @property
    def names(self) -> list[str]:
        return sorted(self._operations)

    def get(self, name: str) -> Operation | None:
        return self._operations.get(name)

    async def dispatch(
        self,
        client: HumanPagesClient,
        name: str,
        arguments: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        """Validate `arguments`, run the operation and render its result.

        Unknown names, malformed arguments, missing credentials, backend
        rejections and transport failures all come back as failures with a
        code. Anything else is logged and reported as INTERNAL_ERROR.
        """
        op = self._operations.get(name)
        if op is None:
            return OperationResult.failure(ErrorCode.UNKNOWN_OPERATION, f"Unknown tool: {name}")

        try:
            args = op.args_model.model_validate(dict(arguments or {}))
        except ValidationError as exc:
            invalid = InputValidationError(describe_validation_error(exc), field=_first_field(exc))
            return OperationResult.failure(invalid.code, invalid.message, _error_details(invalid))

        try:
            result = await op.handler(client, args)
        except HumanPagesError as exc:
            logger.info("mcp.operation_rejected", operation=name, code=str(exc.code))
            return OperationResult.failure(exc.code, exc.message, _error_details(exc))
        except Exception:
            logger.exception("mcp.operation_error", operation=name)
            return OperationResult.internal()

        logger.info("mcp.operation_completed", operation=name)
        return OperationResult.ok(op.render(result, args), data=result)


OPERATIONS: tuple[Operation, ...] = (
    # Discovery
    Operation("search_humans", SearchHumansArgs, lambda hp, a: hp.jobs.search_humans(a), fmt.render_human_list),
    Operation("get_human", GetHumanArgs, lambda hp, a: hp.jobs.get_human(a), fmt.render_human),
    Operation("check_humanity_status", HumanIdArgs, lambda hp, a: hp.jobs.check_humanity(a), fmt.render_humanity),
    Operation(
        "get_human_profile", HumanProfileArgs, lambda hp, a: hp.jobs.get_human_profile(a), fmt.render_human_profile
    ),
    # Agent identity & trust
    Operation("register_agent", RegisterAgentArgs, lambda hp, a: hp.trust.register_agent(a), fmt.render_registration),
    Operation("get_agent_profile", AgentIdArgs, lambda hp, a: hp.trust.get_agent_profile(a), fmt.render_agent_profile),
    Operation(
        "verify_agent_domain", VerifyDomainArgs, lambda hp, a: hp.trust.verify_domain(a), fmt.render_domain_verification
    ),
    Operation(
        "request_activation_code",
        AgentKeyArgs,
        lambda hp, a: hp.trust.request_activation_code(a),
        fmt.render_activation_code,
    ),
    Operation(
        "verify_social_activation",
        VerifySocialArgs,
        lambda hp, a: hp.trust.verify_social_activation(a),
        fmt.render_activation,
    ),
    Operation(
        "get_activation_status",
        AgentKeyArgs,
        lambda hp, a: hp.trust.get_activation_status(a),
        fmt.render_activation_status,
    ),
    Operation(
        "get_payment_activation",
        AgentKeyArgs,
        lambda hp, a: hp.trust.get_payment_activation(a),
        fmt.render_payment_activation,
    ),
    Operation(
        "verify_payment_activation",
        VerifyPaymentArgs,
        lambda hp, a: hp.trust.verify_payment_activation(a),
        fmt.render_activation,
    ),
    Operation("get_promo_status", NoArgs, lambda hp, a: hp.trust.get_promo_status(), fmt.render_promo_status),
    Operation(
        "claim_free_pro_upgrade", AgentKeyArgs, lambda hp, a: hp.trust.claim_promo_upgrade(a), fmt.render_promo_upgrade
    ),
    # Jobs
    Operation("create_job_offer", CreateJobOfferArgs, lambda hp, a: hp.jobs.create_job_offer(a), fmt.render_job_offer),
    Operation("get_job_status", JobIdArgs, lambda hp, a: hp.jobs.get_job_status(a), fmt.render_job_status),
    Operation("mark_job_paid", MarkJobPaidArgs, lambda hp, a: hp.jobs.mark_job_paid(a), fmt.render_mark_paid),
    Operation("leave_review", LeaveReviewArgs, lambda hp, a: hp.jobs.leave_review(a), fmt.render_review),
    Operation("send_job_message", SendMessageArgs, lambda hp, a: hp.jobs.send_message(a), fmt.render_message_sent),
    Operation("get_job_messages", AuthenticatedJobArgs, lambda hp, a: hp.jobs.get_messages(a), fmt.render_messages),
    # Streams
    Operation("start_stream", StartStreamArgs, lambda hp, a: hp.streams.start_stream(a), fmt.render_stream_started),
    Operation("record_stream_tick", StreamTickArgs, lambda hp, a: hp.streams.record_tick(a), fmt.render_tick),
    Operation(
        "pause_stream", AuthenticatedJobArgs, lambda hp, a: hp.streams.pause_stream(a), fmt.render_stream_paused
    ),
    Operation("resume_stream", ResumeStreamArgs, lambda hp, a: hp.streams.resume_stream(a), fmt.render_stream_resumed),
    Operation("stop_stream", AuthenticatedJobArgs, lambda hp, a: hp.streams.stop_stream(a), fmt.render_stream_stopped),
    # Listings
    Operation(
        "create_listing", CreateListingArgs, lambda hp, a: hp.listings.create_listing(a), fmt.render_listing_created
    ),
    Operation("get_listings", GetListingsArgs, lambda hp, a: hp.listings.get_listings(a), fmt.render_listing_page),
    Operation("get_listing", ListingIdArgs, lambda hp, a: hp.listings.get_listing(a), fmt.render_listing),
    Operation(
        "get_listing_applications",
        AuthenticatedListingArgs,
        lambda hp, a: hp.listings.get_applications(a),
        fmt.render_applications,
    ),
    Operation(
        "make_listing_offer", ListingOfferArgs, lambda hp, a: hp.listings.make_offer(a), fmt.render_listing_offer
    ),
    Operation(
        "cancel_listing",
        AuthenticatedListingArgs,
        lambda hp, a: hp.listings.cancel_listing(a),
        fmt.render_listing_cancelled,
    ),
)

registry = OperationRegistry(OPERATIONS)
