"""Domain exceptions for the Human Pages transaction protocol.

Client-side errors fall into three families:
    - InputValidationError / MissingCredentialError: detected locally,
      before any network call is made.
    - ApiError: the backend rejected the call. Its machine-readable code
      and reason are carried through verbatim.
    - TransportError: the call never produced a usable answer (timeout,
      connection failure, malformed body).

MarketplaceError is raised by the reference sandbox backend and rendered
as a structured JSON error by its HTTP layer.

The MCP dispatch boundary converts every HumanPagesError into a failed
OperationResult; none of them is fatal to the process.
"""

from __future__ import annotations

from typing import Any

from humanpages.domain.enums import ErrorCode


class HumanPagesError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = ErrorCode.API_ERROR) -> None:
        self.message = message
        self.code = str(code)
        super().__init__(self.message)


# --- Local input errors ---


class InputValidationError(HumanPagesError):
    """Raised when tool arguments are malformed. No network call is made."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.VALIDATION_ERROR)
        self.field = field


class MissingCredentialError(HumanPagesError):
    """Raised when an authenticated operation is called without a credential."""

    def __init__(self, message: str = "agent_key is required.") -> None:
        super().__init__(message=message, code=ErrorCode.MISSING_CREDENTIAL)


# --- Collaborator errors ---


class ApiError(HumanPagesError):
    """Raised when the backend answers with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by the backend.
        reason: The backend's human-readable reason, if any.
        hint: The backend's corrective hint (stream and flow errors), if any.
        details: Any extra structured fields (e.g. rate-limit remaining/reset).
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int,
        reason: str | None = None,
        hint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code)
        self.status_code = status_code
        self.reason = reason
        self.hint = hint
        self.details = details or {}


class TransportError(HumanPagesError):
    """Raised when the backend could not be reached or answered garbage."""

    def __init__(self, message: str, code: str = ErrorCode.NETWORK_ERROR) -> None:
        super().__init__(message=message, code=code)


class InvalidSignatureError(HumanPagesError):
    """Raised when a webhook body does not match its HMAC signature."""

    def __init__(self) -> None:
        super().__init__(
            message="Webhook signature does not match payload",
            code=ErrorCode.INVALID_SIGNATURE,
        )


# --- Sandbox backend errors ---


class MarketplaceError(HumanPagesError):
    """A business-rule rejection raised by the reference sandbox backend.

    Rendered on the wire as ``{"error": message, "code": code, **details}``
    with ``status_code`` as the HTTP status.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code)
        self.status_code = status_code
        self.details = details or {}

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.details}
