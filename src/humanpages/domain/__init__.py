"""Domain layer — pure protocol rules with zero framework dependencies."""

from humanpages.domain.enums import (
    ErrorCode,
    JobStatus,
    PaymentMode,
    StreamMethod,
    StreamStatus,
)
from humanpages.domain.exceptions import (
    ApiError,
    HumanPagesError,
    InputValidationError,
    MissingCredentialError,
    TransportError,
)
from humanpages.domain.results import OperationResult
from humanpages.domain.state_machine import (
    JobStateMachine,
    StreamStateMachine,
    validate_transition,
)

__all__ = [
    "ErrorCode",
    "JobStatus",
    "PaymentMode",
    "StreamMethod",
    "StreamStatus",
    "ApiError",
    "HumanPagesError",
    "InputValidationError",
    "MissingCredentialError",
    "TransportError",
    "OperationResult",
    "JobStateMachine",
    "StreamStateMachine",
    "validate_transition",
]
