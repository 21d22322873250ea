"""Shared test fixtures for the Human Pages test suite.

Provides:
    - A controllable clock and an in-memory sandbox seeded with demo humans
    - An HTTP client wired to the sandbox in-process (httpx.ASGITransport)
    - Captured webhook deliveries (httpx.MockTransport)
    - Helpers that act as the outside world: humans, the chain, social posts
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import httpx
import pytest
import pytest_asyncio

from humanpages.sandbox import FakeClock, SandboxStore, create_sandbox_app
from humanpages.sandbox.demo import seed_demo
from humanpages.schemas.operations import (
    AgentKeyArgs,
    RegisterAgentArgs,
    VerifyPaymentArgs,
    VerifySocialArgs,
)
from humanpages.services.facade import HumanPagesClient
from humanpages.services.webhooks import WebhookNotifier

BASE_URL = "http://sandbox.test"
START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Sandbox
# ---------------------------------------------------------------------------


@dataclass
class WebhookInbox:
    """Records every webhook POST the sandbox makes."""

    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200, json={"ok": True})

    @property
    def events(self) -> list[str]:
        return [json.loads(r.content)["event"] for r in self.requests]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def store(clock: FakeClock) -> SandboxStore:
    store = SandboxStore(clock=clock)
    seed_demo(store)
    return store


@pytest.fixture
def inbox() -> WebhookInbox:
    return WebhookInbox()


@pytest.fixture
def sandbox_app(store: SandboxStore, inbox: WebhookInbox):
    notifier = WebhookNotifier(timeout=1.0, transport=httpx.MockTransport(inbox.handler))
    return create_sandbox_app(store, notifier=notifier)


@pytest_asyncio.fixture
async def hp(sandbox_app) -> AsyncIterator[HumanPagesClient]:
    """Protocol client talking to the in-process sandbox."""
    client = HumanPagesClient(base_url=BASE_URL, transport=httpx.ASGITransport(app=sandbox_app))
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def raw(sandbox_app) -> AsyncIterator[httpx.AsyncClient]:
    """Plain HTTP client for the human-side and sandbox control routes."""
    async with httpx.AsyncClient(base_url=BASE_URL, transport=httpx.ASGITransport(app=sandbox_app)) as client:
        yield client


# ---------------------------------------------------------------------------
# Outside-world helpers
# ---------------------------------------------------------------------------


async def human_action(raw: httpx.AsyncClient, human_id: str, job_id: str, action: str) -> dict[str, Any]:
    response = await raw.patch(f"/api/human/jobs/{job_id}/{action}", headers={"X-Human-Id": human_id})
    assert response.status_code == 200, response.text
    return response.json()


async def apply(raw: httpx.AsyncClient, human_id: str, listing_id: str, pitch: str = "I can do this") -> httpx.Response:
    return await raw.post(
        f"/api/human/listings/{listing_id}/apply",
        headers={"X-Human-Id": human_id},
        json={"pitch": pitch},
    )


def wallet_of(store: SandboxStore, human_id: str) -> str:
    return store.humans[human_id].wallets[0].address


def pay(store: SandboxStore, receiver: str, amount: str | Decimal, network: str = "base") -> str:
    """Put a transfer on the simulated chain and return its hash."""
    return store.chain.record_transfer(network, receiver, Decimal(str(amount))).tx_hash


async def register(hp: HumanPagesClient, name: str = "ResearchBot", **fields: Any) -> tuple[str, str]:
    """Register an agent; returns (agent_id, api_key)."""
    result = await hp.trust.register_agent(RegisterAgentArgs(name=name, **fields))
    return result.agent.id, result.api_key


async def activate_basic(hp: HumanPagesClient, store: SandboxStore, api_key: str) -> None:
    code = await hp.trust.request_activation_code(AgentKeyArgs(agent_key=api_key))
    url = f"https://social.example/posts/{code.code}"
    store.publish_post(url, f"Activating my agent on Human Pages {code.code}")
    await hp.trust.verify_social_activation(VerifySocialArgs(agent_key=api_key, post_url=url))


async def activate_pro(hp: HumanPagesClient, store: SandboxStore, api_key: str) -> None:
    intent = await hp.trust.get_payment_activation(AgentKeyArgs(agent_key=api_key))
    tx_hash = pay(store, intent.deposit_address, intent.amount, intent.network)
    await hp.trust.verify_payment_activation(
        VerifyPaymentArgs(agent_key=api_key, tx_hash=tx_hash, network=intent.network)
    )


@pytest_asyncio.fixture
async def basic_agent(hp: HumanPagesClient, store: SandboxStore) -> tuple[str, str]:
    agent_id, api_key = await register(hp, "BasicBot")
    await activate_basic(hp, store, api_key)
    return agent_id, api_key


@pytest_asyncio.fixture
async def pro_agent(hp: HumanPagesClient, store: SandboxStore) -> tuple[str, str]:
    agent_id, api_key = await register(hp, "ProBot")
    await activate_pro(hp, store, api_key)
    return agent_id, api_key
