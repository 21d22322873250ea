"""Per-call credentials.

A Credential is built from the arguments of a single operation and passed
down to the transport explicitly. Nothing here is cached: one process may
act for many agents at once.
"""

from __future__ import annotations

from dataclasses import dataclass

from humanpages.domain.exceptions import MissingCredentialError

AGENT_KEY_HEADER = "X-Agent-Key"
PAYMENT_HEADER = "X-Payment"


@dataclass(frozen=True)
class Credential:
    """Agent API key and/or per-call payment proof.

    Attributes:
        agent_key: Secret issued once at registration (starts with hp_).
        payment_proof: x402 micropayment proof that stands in for the tier
            allowance on a single payable call.
    """

    agent_key: str | None = None
    payment_proof: str | None = None

    def __repr__(self) -> str:
        # Never leak secrets into logs or tracebacks
        return (
            f"Credential(agent_key={'***' if self.agent_key else None}, "
            f"payment_proof={'***' if self.payment_proof else None})"
        )

    @property
    def is_empty(self) -> bool:
        return not self.agent_key and not self.payment_proof

    def headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.agent_key:
            headers[AGENT_KEY_HEADER] = self.agent_key
        if self.payment_proof:
            headers[PAYMENT_HEADER] = self.payment_proof
        return headers

    def require_agent_key(self, message: str = "agent_key is required.") -> Credential:
        """Raise MissingCredentialError unless an agent key is present."""
        if not self.agent_key:
            raise MissingCredentialError(message)
        return self

    def require(self, message: str = "agent_key or payment_proof is required.") -> Credential:
        """Raise MissingCredentialError unless a key or a payment proof is present."""
        if self.is_empty:
            raise MissingCredentialError(message)
        return self


ANONYMOUS = Credential()
