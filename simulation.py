#!/usr/bin/env python3
"""Human Pages — End-to-End Simulation.

Drives the MCP operations against the in-process sandbox backend with a
simulated chain, so no network, wallet or social account is needed.

    Scenario 1: Activation and a one-time hire
        - ResearchBot registers -> PENDING, create_job_offer fails AGENT_PENDING
        - Social activation -> ACTIVE / BASIC
        - Offer below Ana's $20 minimum -> BELOW_MIN_OFFER_PRICE
        - Offer at $25 -> accepted -> paid on-chain -> completed -> reviewed

    Scenario 2: Micro-transfer stream
        - $10/day STREAM job for Kofi -> accepted -> start_stream opens tick #1
        - $10 transfer verifies tick #1 and opens tick #2
        - $5 transfer -> TICK_VERIFICATION_FAILED, tick count unchanged

    Scenario 3: Listing with a single slot
        - Listing with maxApplicants=1 -> Ana applies, Kofi is turned away
        - make_listing_offer on Ana's application -> job created, listing CLOSED

Usage:
    uv run python simulation.py
    uv run python simulation.py --scenario 2
"""

from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Any

import httpx

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from humanpages.logging_config import get_logger, setup_logging

setup_logging(log_level="WARNING", json_logs=False)
logger = get_logger("simulation")

from humanpages.mcp_server.registry import registry  # noqa: E402
from humanpages.sandbox import FakeClock, SandboxStore, create_sandbox_app  # noqa: E402
from humanpages.sandbox.demo import seed_demo  # noqa: E402
from humanpages.services.facade import HumanPagesClient  # noqa: E402
from humanpages.services.webhooks import SIGNATURE_HEADER, WebhookNotifier  # noqa: E402

BASE_URL = "http://sandbox.local"
HOOK_URL = "https://researchbot.example/hooks"
HOOK_SECRET = "sim-webhook-secret-0001"
LISBON = {"agent_lat": 38.7223, "agent_lng": -9.1393}
ALFAMA = {"location": "Alfama, Lisbon", "location_lat": 38.7118, "location_lng": -9.1300}


# ---------------------------------------------------------------------------
# The simulated world
# ---------------------------------------------------------------------------
@dataclass
class World:
    """Sandbox backend, its clock and the agent-side client."""

    clock: FakeClock = field(default_factory=FakeClock)
    store: SandboxStore = field(init=False)
    hp: HumanPagesClient = field(init=False)
    humans: httpx.AsyncClient = field(init=False)

    def __post_init__(self) -> None:
        self.store = SandboxStore(clock=self.clock)
        seed_demo(self.store)
        notifier = WebhookNotifier(transport=httpx.MockTransport(_print_webhook))
        transport = httpx.ASGITransport(app=create_sandbox_app(self.store, notifier=notifier))
        self.hp = HumanPagesClient(base_url=BASE_URL, transport=transport)
        self.humans = httpx.AsyncClient(base_url=BASE_URL, transport=transport)

    async def close(self) -> None:
        await self.hp.aclose()
        await self.humans.aclose()

    async def call(self, name: str, **arguments: Any) -> Any:
        """Run one MCP operation and print what the agent would see."""
        result = await registry.dispatch(self.hp, name, arguments)
        icon = "❌" if result.is_error else "✅"
        print(f"  {icon} {name}")
        for line in result.text.splitlines():
            print(f"     {line}")
        print()
        return result

    async def human(self, human_id: str, method: str, path: str, **body: Any) -> dict[str, Any]:
        """Act as a human in the web UI."""
        response = await self.humans.request(
            method, path, headers={"X-Human-Id": human_id}, json=body or None
        )
        payload = response.json()
        outcome = payload.get("status") or payload.get("code")
        print(f"  👤 {human_id}: {method} {path} -> HTTP {response.status_code} {outcome}\n")
        return payload

    def transfer(self, human_id: str, amount: str) -> str:
        wallet = self.store.humans[human_id].wallets[0].address
        tx_hash = self.store.chain.record_transfer("base", wallet, Decimal(amount)).tx_hash
        print(f"  ⛓️  {amount} USDC -> {human_id} ({tx_hash[:18]}...)\n")
        return tx_hash


def _print_webhook(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    signature = request.headers.get(SIGNATURE_HEADER, "unsigned")
    print(f"  🔔 webhook {body['event']} for {body['entityId']} ({signature[:19]}...)\n")
    return httpx.Response(200)


def banner(text: str) -> None:
    """Print a section banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a sub-section header."""
    print(f"\n--- {text} ---\n")


async def activated_agent(world: World, name: str) -> tuple[str, str]:
    registered = await world.call("register_agent", name=name)
    agent_id, api_key = registered.data.agent.id, registered.data.api_key
    code = await world.call("request_activation_code", agent_key=api_key)
    post_url = f"https://social.example/{name.lower()}/1"
    world.store.publish_post(post_url, f"Activating {name} on Human Pages: {code.data.code}")
    await world.call("verify_social_activation", agent_key=api_key, post_url=post_url)
    return agent_id, api_key


# ===========================================================================
# Scenario 1: Activation and a one-time hire
# ===========================================================================
async def scenario_1_activation_and_hire(world: World) -> None:
    banner("SCENARIO 1: Activation and a One-Time Hire")

    section("Step 1: Register and try to hire straight away")
    registered = await world.call(
        "register_agent", name="ResearchBot", description="Gathers on-the-ground photos"
    )
    agent_id, api_key = registered.data.agent.id, registered.data.api_key
    offer = {
        "agent_key": api_key,
        "agent_id": agent_id,
        "human_id": "hum_ana",
        "title": "Storefront photos",
        "description": "Three photos of the bakery on Rua Augusta",
        "callback_url": HOOK_URL,
        "callback_secret": HOOK_SECRET,
        **LISBON,
    }
    await world.call("create_job_offer", price_usdc=25, **offer)

    section("Step 2: Activate with a social post (BASIC tier)")
    code = await world.call("request_activation_code", agent_key=api_key)
    world.store.publish_post("https://social.example/researchbot/1", f"Hiring humans via Human Pages {code.data.code}")
    await world.call(
        "verify_social_activation", agent_key=api_key, post_url="https://social.example/researchbot/1"
    )
    await world.call("get_activation_status", agent_key=api_key)

    section("Step 3: Offer below Ana's minimum, then at $25")
    await world.call("create_job_offer", price_usdc=10, **offer)
    created = await world.call("create_job_offer", price_usdc=25, **offer)
    job_id = created.data.id

    section("Step 4: Ana accepts, the agent pays on-chain")
    await world.human("hum_ana", "PATCH", f"/api/human/jobs/{job_id}/accept")
    tx_hash = world.transfer("hum_ana", "25")
    await world.call(
        "mark_job_paid",
        agent_key=api_key,
        job_id=job_id,
        payment_tx_hash=tx_hash,
        payment_network="base",
        payment_amount=25,
    )

    section("Step 5: Ana delivers, the agent reviews")
    await world.human("hum_ana", "PATCH", f"/api/human/jobs/{job_id}/complete")
    await world.call("leave_review", agent_key=api_key, job_id=job_id, rating=5, comment="Great light")
    await world.call("get_job_status", job_id=job_id)


# ===========================================================================
# Scenario 2: Micro-transfer stream
# ===========================================================================
async def scenario_2_micro_transfer_stream(world: World) -> None:
    banner("SCENARIO 2: Micro-Transfer Stream")

    section("Step 1: A PRO agent offers Kofi $10/day")
    registered = await world.call("register_agent", name="DigestBot")
    agent_id, api_key = registered.data.agent.id, registered.data.api_key
    intent = await world.call("get_payment_activation", agent_key=api_key)
    deposit = world.store.chain.record_transfer("base", intent.data.deposit_address, intent.data.amount)
    await world.call("verify_payment_activation", agent_key=api_key, tx_hash=deposit.tx_hash, network="base")

    created = await world.call(
        "create_job_offer",
        agent_key=api_key,
        agent_id=agent_id,
        human_id="hum_kofi",
        title="Daily market notes",
        description="One page of notes on the Makola market each day",
        price_usdc=10,
        payment_mode="STREAM",
        stream_method="MICRO_TRANSFER",
        stream_interval="DAILY",
        stream_rate_usdc=10,
    )
    job_id = created.data.id
    await world.human("hum_kofi", "PATCH", f"/api/human/jobs/{job_id}/accept")

    section("Step 2: Start the stream and pay tick #1")
    await world.call(
        "start_stream", agent_key=api_key, job_id=job_id, sender_address="0x" + "d" * 40, network="base"
    )
    await world.call("record_stream_tick", agent_key=api_key, job_id=job_id, tx_hash=world.transfer("hum_kofi", "10"))

    section("Step 3: Underpay tick #2")
    world.clock.advance(days=1)
    await world.call("record_stream_tick", agent_key=api_key, job_id=job_id, tx_hash=world.transfer("hum_kofi", "5"))
    await world.call("get_job_status", job_id=job_id)

    section("Step 4: Stop the stream")
    await world.call("stop_stream", agent_key=api_key, job_id=job_id)


# ===========================================================================
# Scenario 3: Listing with a single slot
# ===========================================================================
async def scenario_3_single_slot_listing(world: World) -> None:
    banner("SCENARIO 3: Listing With a Single Slot")

    section("Step 1: Post a listing for one applicant")
    agent_id, api_key = await activated_agent(world, "MenuBot")
    listing = await world.call(
        "create_listing",
        agent_key=api_key,
        title="Menu photos",
        description="Photograph a twelve-item menu in good light",
        budget_usdc=40,
        expires_at=(world.clock() + timedelta(days=5)).isoformat(),
        max_applicants=1,
        required_skills=["photography"],
        **ALFAMA,
    )
    listing_id = listing.data.id

    section("Step 2: Humans apply")
    application = await world.human(
        "hum_ana", "POST", f"/api/human/listings/{listing_id}/apply", pitch="Ten minutes from Alfama."
    )
    await world.human("hum_kofi", "POST", f"/api/human/listings/{listing_id}/apply", pitch="Happy to help.")
    await world.call("get_listing_applications", agent_key=api_key, listing_id=listing_id)

    section("Step 3: Make the offer")
    await world.call(
        "make_listing_offer", agent_key=api_key, listing_id=listing_id, application_id=application["id"]
    )
    await world.call("get_listing", listing_id=listing_id)
    logger.info("simulation.listing_closed", listing_id=listing_id, agent_id=agent_id)


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_activation_and_hire,
    2: scenario_2_micro_transfer_stream,
    3: scenario_3_single_slot_listing,
}


async def run(scenario: int = 0) -> None:
    """Run one scenario, or all of them sequentially against a fresh sandbox."""
    if scenario and scenario not in SCENARIOS:
        print(f"Unknown scenario {scenario}. Available: 1, 2, 3")
        return

    print("\n" + "🤝" * 35)
    print("  HUMAN PAGES — SIMULATION")
    print("  AI agents hiring real people, settled in USDC.")
    print("🤝" * 35 + "\n")

    world = World()
    try:
        selected = [SCENARIOS[scenario]] if scenario else list(SCENARIOS.values())
        for run_scenario in selected:
            await run_scenario(world)
    finally:
        await world.close()

    print("\n" + "=" * 70)
    print("  ✅ SIMULATION FINISHED")
    print("=" * 70 + "\n")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Human Pages Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1, 2, or 3). Default: run all.",
    )
    args = parser.parse_args()
    asyncio.run(run(args.scenario))
