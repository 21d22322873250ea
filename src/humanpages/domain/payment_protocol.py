"""Payment Verifier Protocol.

Defines the interface the backend uses to confirm on-chain settlement:
one-off transfers (mark paid, micro-transfer ticks, payment activation,
per-call payment proofs) and continuous flows (Superfluid streams).

This is a Protocol (structural subtyping) so a concrete chain reader does
not need to inherit from a base class. The domain layer imports no chain
SDK; the reference backend ships an in-memory implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class TransferCheck:
    """Result of looking up a single transfer by transaction hash.

    Attributes:
        found: Whether a transfer with this hash exists on the network.
        amount: Token amount moved (0 when not found).
        sender: Sending address, if known.
        receiver: Receiving address, if known.
        consumed: True when the hash was already used to settle something.
    """

    found: bool
    amount: Decimal = Decimal("0")
    sender: str | None = None
    receiver: str | None = None
    consumed: bool = False


@dataclass(frozen=True)
class FlowCheck:
    """Result of looking up a continuous flow between two addresses.

    Attributes:
        exists: Whether an open flow currently exists.
        rate_per_second: Token units streamed per second (0 when absent).
    """

    exists: bool
    rate_per_second: Decimal = Decimal("0")


@runtime_checkable
class PaymentVerifier(Protocol):
    """Protocol that every chain reader must satisfy.

    Concrete implementations:
        - sandbox/payments.py (SimulatedChain, in-memory)
    """

    def check_transfer(self, tx_hash: str, network: str) -> TransferCheck:
        """Look up a transfer by hash on `network`."""
        ...

    def consume_transfer(self, tx_hash: str, network: str) -> None:
        """Mark a transfer as used so it cannot settle a second operation."""
        ...

    def check_flow(self, sender: str, receiver: str, network: str, token: str) -> FlowCheck:
        """Look up the open flow from `sender` to `receiver`."""
        ...
