"""Simulated chain for the sandbox backend.

Implements the PaymentVerifier protocol from an in-memory ledger of
transfers and open continuous flows. Tests and the sandbox control routes
put transfers and flows on the "chain"; the desks only ever read them
through check_transfer / check_flow and consume a hash once it has settled
something.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from humanpages.domain.enums import StreamInterval
from humanpages.domain.payment_protocol import FlowCheck, TransferCheck
from humanpages.logging_config import get_logger

logger = get_logger(__name__)

#: Acceptable relative drift between an on-chain flow rate and the agreed rate.
FLOW_RATE_TOLERANCE = Decimal("0.01")


def new_tx_hash() -> str:
    """Fake 66-char transaction hash."""
    return "0x" + uuid.uuid4().hex + uuid.uuid4().hex


def new_address() -> str:
    """Fake EVM address."""
    return "0x" + uuid.uuid4().hex + uuid.uuid4().hex[:8]


def per_second(rate: Decimal, interval: StreamInterval | str) -> Decimal:
    """Convert a per-interval amount into a per-second flow rate."""
    return rate / Decimal(StreamInterval(interval).seconds)


def flow_rate_matches(actual_per_second: Decimal, agreed_rate: Decimal, interval: StreamInterval | str) -> bool:
    expected = per_second(agreed_rate, interval)
    if expected == 0:
        return False
    return abs(actual_per_second - expected) / expected <= FLOW_RATE_TOLERANCE


@dataclass
class Transfer:
    tx_hash: str
    network: str
    receiver: str
    amount: Decimal
    sender: str | None = None
    consumed: bool = False


@dataclass
class Flow:
    sender: str
    receiver: str
    network: str
    token: str
    rate_per_second: Decimal
    opened_at: datetime | None = None


def _key(*parts: str) -> tuple[str, ...]:
    return tuple(p.lower() for p in parts)


class SimulatedChain:
    """In-memory PaymentVerifier.

    Addresses, hashes and network names compare case-insensitively.
    """

    def __init__(self) -> None:
        self._transfers: dict[tuple[str, ...], Transfer] = {}
        self._flows: dict[tuple[str, ...], Flow] = {}

    # ------------------------------------------------------------------
    # Writing to the chain (tests, sandbox control routes)
    # ------------------------------------------------------------------

    def record_transfer(
        self,
        network: str,
        receiver: str,
        amount: Decimal,
        sender: str | None = None,
        tx_hash: str | None = None,
    ) -> Transfer:
        transfer = Transfer(
            tx_hash=tx_hash or new_tx_hash(),
            network=network,
            receiver=receiver,
            amount=Decimal(amount),
            sender=sender,
        )
        self._transfers[_key(network, transfer.tx_hash)] = transfer
        logger.debug("chain.transfer_recorded", tx_hash=transfer.tx_hash, network=network, amount=str(amount))
        return transfer

    def open_flow(
        self,
        sender: str,
        receiver: str,
        network: str,
        token: str,
        rate_per_second: Decimal,
        opened_at: datetime | None = None,
    ) -> Flow:
        flow = Flow(
            sender=sender,
            receiver=receiver,
            network=network,
            token=token,
            rate_per_second=Decimal(rate_per_second),
            opened_at=opened_at,
        )
        self._flows[_key(sender, receiver, network, token)] = flow
        logger.debug("chain.flow_opened", sender=sender, receiver=receiver, rate=str(rate_per_second))
        return flow

    def close_flow(self, sender: str, receiver: str, network: str, token: str) -> bool:
        return self._flows.pop(_key(sender, receiver, network, token), None) is not None

    # ------------------------------------------------------------------
    # PaymentVerifier
    # ------------------------------------------------------------------

    def check_transfer(self, tx_hash: str, network: str) -> TransferCheck:
        transfer = self._transfers.get(_key(network, tx_hash))
        if transfer is None:
            return TransferCheck(found=False)
        return TransferCheck(
            found=True,
            amount=transfer.amount,
            sender=transfer.sender,
            receiver=transfer.receiver,
            consumed=transfer.consumed,
        )

    def consume_transfer(self, tx_hash: str, network: str) -> None:
        transfer = self._transfers.get(_key(network, tx_hash))
        if transfer is not None:
            transfer.consumed = True

    def check_flow(self, sender: str, receiver: str, network: str, token: str) -> FlowCheck:
        flow = self._flows.get(_key(sender, receiver, network, token))
        if flow is None:
            return FlowCheck(exists=False)
        return FlowCheck(exists=True, rate_per_second=flow.rate_per_second)
