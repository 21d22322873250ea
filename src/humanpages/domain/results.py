"""Explicit per-operation result.

Every named operation returns an OperationResult instead of letting an
exception escape. Callers branch on `is_error` without parsing text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from humanpages.domain.enums import ErrorCode


@dataclass(frozen=True)
class OperationError:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one operation.

    Attributes:
        text: Human-readable rendering (success body or failure message).
        data: Structured payload of a success, if any.
        error: Set when the operation failed.
    """

    text: str
    data: Any = None
    error: OperationError | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def code(self) -> str | None:
        return self.error.code if self.error else None

    @classmethod
    def ok(cls, text: str, data: Any = None) -> OperationResult:
        return cls(text=text, data=data)

    @classmethod
    def failure(
        cls,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> OperationResult:
        return cls(
            text=f"Error [{code}]: {message}",
            error=OperationError(code=str(code), message=message, details=details or {}),
        )

    @classmethod
    def internal(cls, message: str = "Unexpected internal error") -> OperationResult:
        return cls.failure(ErrorCode.INTERNAL_ERROR, message)
