"""MCP tool definitions for Human Pages.

These tools let an AI agent find people, hire them, pay them and review the
work through the Model Context Protocol.

Tools:
    - Discovery: search_humans, get_human, check_humanity_status, get_human_profile
    - Agent trust: register_agent, get_agent_profile, verify_agent_domain,
      request_activation_code, verify_social_activation, get_activation_status,
      get_payment_activation, verify_payment_activation, get_promo_status,
      claim_free_pro_upgrade
    - Jobs: create_job_offer, get_job_status, mark_job_paid, leave_review,
      send_job_message, get_job_messages
    - Streams: start_stream, record_stream_tick, pause_stream, resume_stream, stop_stream
    - Listings: create_listing, get_listings, get_listing, get_listing_applications,
      make_listing_offer, cancel_listing

Each tool forwards its arguments to the operation registry. The agent key is
an argument of every authenticated tool and is never stored by the server.
A failed operation is raised as ToolError so the MCP response carries
isError=true.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from humanpages.logging_config import get_logger
from humanpages.mcp_server.registry import registry
from humanpages.services.facade import HumanPagesClient

logger = get_logger(__name__)

mcp = FastMCP(
    "Human Pages",
    json_response=True,
)

# Replaced in tests to point the tools at an in-process backend
client_factory: Callable[[], HumanPagesClient] = HumanPagesClient


async def _run(operation: str, /, **arguments: Any) -> str:
    present = {k: v for k, v in arguments.items() if v is not None}
    async with client_factory() as hp:
        result = await registry.dispatch(hp, operation, present)
    if result.is_error:
        logger.warning("mcp.tool_failed", tool=operation, code=result.code)
        raise ToolError(result.text)
    return result.text


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


@mcp.tool()
async def search_humans(
    skill: str | None = None,
    equipment: str | None = None,
    language: str | None = None,
    location: str | None = None,
    lat: float | None = None,
    lng: float | None = None,
    radius: float | None = None,
    max_rate: float | None = None,
    available_only: bool = True,
    work_mode: str | None = None,
    verified: str | None = None,
) -> str:
    """Search for humans available for hire.

    Returns profiles with id (use as human_id in other tools), name, skills,
    location, reputation and rate. Contact info and wallets are not included;
    use get_human_profile with an ACTIVE agent key for those.

    Args:
        skill: Filter by skill tag (e.g. "photography", "driving").
        equipment: Filter by equipment (e.g. "car", "drone").
        language: Filter by ISO 639-1 language code (e.g. "en", "es").
        location: Filter by city or area name.
        lat: Latitude for radius search (requires lng and radius).
        lng: Longitude for radius search (requires lat and radius).
        radius: Search radius in kilometres.
        max_rate: Maximum hourly rate in USD.
        available_only: Only return available humans (default True).
        work_mode: REMOTE, ONSITE or HYBRID.
        verified: Set to "humanity" to only return identity-verified humans.
    """
    return await _run(
        "search_humans",
        skill=skill,
        equipment=equipment,
        language=language,
        location=location,
        lat=lat,
        lng=lng,
        radius=radius,
        max_rate=max_rate,
        available_only=available_only,
        work_mode=work_mode,
        verified=verified,
    )


@mcp.tool()
async def get_human(id: str) -> str:
    """Get a human's public profile: bio, skills, services, rates and reputation.

    Contact info, wallets and social links require get_human_profile.

    Args:
        id: The human's ID.
    """
    return await _run("get_human", id=id)


@mcp.tool()
async def check_humanity_status(human_id: str) -> str:
    """Check whether a human has verified their identity (Gitcoin Passport).

    Args:
        human_id: The human's ID.
    """
    return await _run("check_humanity_status", human_id=human_id)


@mcp.tool()
async def get_human_profile(
    human_id: str,
    agent_key: str | None = None,
    payment_proof: str | None = None,
) -> str:
    """Get a human's full profile: contact info, wallets, fiat methods and socials.

    Requires an ACTIVE agent key, or a per-call payment proof.

    Args:
        human_id: The human's ID.
        agent_key: Your registered agent API key (starts with hp_).
        payment_proof: x402 payment proof; pays for this single view.
    """
    return await _run("get_human_profile", human_id=human_id, agent_key=agent_key, payment_proof=payment_proof)


# ---------------------------------------------------------------------------
# Agent identity & trust
# ---------------------------------------------------------------------------


@mcp.tool()
async def register_agent(
    name: str,
    description: str | None = None,
    website_url: str | None = None,
    contact_email: str | None = None,
) -> str:
    """Register a new agent. Returns the API key exactly once; save it.

    The agent starts PENDING and must be activated (social post or payment)
    before it can create jobs or view full profiles.

    Args:
        name: Display name of your agent.
        description: Short description (max 500 characters).
        website_url: Your agent's website, needed for domain verification.
        contact_email: Contact email shown on your profile.
    """
    return await _run(
        "register_agent",
        name=name,
        description=description,
        website_url=website_url,
        contact_email=contact_email,
    )


@mcp.tool()
async def get_agent_profile(agent_id: str) -> str:
    """Get an agent's public profile and payment reputation.

    Args:
        agent_id: The agent's ID.
    """
    return await _run("get_agent_profile", agent_id=agent_id)


@mcp.tool()
async def verify_agent_domain(agent_id: str, method: str, agent_key: str | None = None) -> str:
    """Verify ownership of your agent's website domain to earn a verified badge.

    Publish your verification token at /.well-known/humanpages-verify.txt
    (method "well-known") or as a DNS TXT record (method "dns") first.

    Args:
        agent_id: Your agent's ID.
        method: "well-known" or "dns".
        agent_key: Your registered agent API key.
    """
    return await _run("verify_agent_domain", agent_id=agent_id, method=method, agent_key=agent_key)


@mcp.tool()
async def request_activation_code(agent_key: str | None = None) -> str:
    """Get a code to post on social media for free BASIC activation.

    Args:
        agent_key: Your registered agent API key.
    """
    return await _run("request_activation_code", agent_key=agent_key)


@mcp.tool()
async def verify_social_activation(post_url: str, agent_key: str | None = None) -> str:
    """Activate your agent (BASIC tier) with the URL of a post containing your activation code.

    Args:
        post_url: Public URL of the post.
        agent_key: Your registered agent API key.
    """
    return await _run("verify_social_activation", post_url=post_url, agent_key=agent_key)


@mcp.tool()
async def get_activation_status(agent_key: str | None = None) -> str:
    """Check your agent's activation status, tier, expiry and limits.

    Args:
        agent_key: Your registered agent API key.
    """
    return await _run("get_activation_status", agent_key=agent_key)


@mcp.tool()
async def get_payment_activation(agent_key: str | None = None) -> str:
    """Get deposit instructions for paid PRO activation.

    Args:
        agent_key: Your registered agent API key.
    """
    return await _run("get_payment_activation", agent_key=agent_key)


@mcp.tool()
async def verify_payment_activation(tx_hash: str, network: str, agent_key: str | None = None) -> str:
    """Activate your agent (PRO tier) by submitting the deposit transaction.

    Args:
        tx_hash: On-chain transaction hash of the deposit.
        network: Network the deposit was sent on (e.g. "base").
        agent_key: Your registered agent API key.
    """
    return await _run("verify_payment_activation", tx_hash=tx_hash, network=network, agent_key=agent_key)


@mcp.tool()
async def get_promo_status() -> str:
    """Check how many free PRO upgrade slots are left in the launch promo."""
    return await _run("get_promo_status")


@mcp.tool()
async def claim_free_pro_upgrade(agent_key: str | None = None) -> str:
    """Upgrade a socially-activated BASIC agent to PRO for free while promo slots last.

    Args:
        agent_key: Your registered agent API key.
    """
    return await _run("claim_free_pro_upgrade", agent_key=agent_key)


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


@mcp.tool()
async def create_job_offer(
    human_id: str,
    agent_id: str,
    title: str,
    description: str,
    price_usdc: float,
    agent_key: str | None = None,
    payment_proof: str | None = None,
    category: str | None = None,
    agent_name: str | None = None,
    agent_lat: float | None = None,
    agent_lng: float | None = None,
    payment_mode: str | None = None,
    payment_timing: str | None = None,
    stream_method: str | None = None,
    stream_interval: str | None = None,
    stream_rate_usdc: float | None = None,
    stream_max_ticks: int | None = None,
    callback_url: str | None = None,
    callback_secret: str | None = None,
) -> str:
    """Send a job offer to a human. Requires an ACTIVE agent or a payment proof.

    For STREAM jobs give stream_method (SUPERFLUID or MICRO_TRANSFER),
    stream_interval (HOURLY, DAILY, WEEKLY) and stream_rate_usdc. Give a
    callback_url (and optionally a callback_secret of 16+ characters) to be
    notified when the job changes status.

    Args:
        human_id: The human to hire.
        agent_id: Your agent's ID.
        title: Short title of the task.
        description: What the human should do.
        price_usdc: Agreed price in USDC.
        agent_key: Your registered agent API key.
        payment_proof: x402 payment proof; pays for this single offer.
        category: Optional category tag.
        agent_name: Name shown to the human.
        agent_lat: Task latitude, for humans with a maximum offer distance.
        agent_lng: Task longitude, for humans with a maximum offer distance.
        payment_mode: ONE_TIME (default) or STREAM.
        payment_timing: upfront or upon_completion (ONE_TIME only).
        stream_method: SUPERFLUID or MICRO_TRANSFER.
        stream_interval: HOURLY, DAILY or WEEKLY.
        stream_rate_usdc: Amount paid per interval.
        stream_max_ticks: Stop automatically after this many payments.
        callback_url: Webhook URL for status notifications.
        callback_secret: Secret used to sign webhook bodies.
    """
    return await _run(
        "create_job_offer",
        human_id=human_id,
        agent_id=agent_id,
        title=title,
        description=description,
        price_usdc=price_usdc,
        agent_key=agent_key,
        payment_proof=payment_proof,
        category=category,
        agent_name=agent_name,
        agent_lat=agent_lat,
        agent_lng=agent_lng,
        payment_mode=payment_mode,
        payment_timing=payment_timing,
        stream_method=stream_method,
        stream_interval=stream_interval,
        stream_rate_usdc=stream_rate_usdc,
        stream_max_ticks=stream_max_ticks,
        callback_url=callback_url,
        callback_secret=callback_secret,
    )


@mcp.tool()
async def get_job_status(job_id: str) -> str:
    """Check a job's status and what you can do next.

    Args:
        job_id: The job ID returned by create_job_offer.
    """
    return await _run("get_job_status", job_id=job_id)


@mcp.tool()
async def mark_job_paid(
    job_id: str,
    payment_tx_hash: str,
    payment_network: str,
    payment_amount: float,
    agent_key: str | None = None,
) -> str:
    """Record payment for an ACCEPTED one-time job. The payment is verified on-chain.

    Args:
        job_id: The job ID.
        payment_tx_hash: Transaction hash of your payment to the human's wallet.
        payment_network: Network used (e.g. "base", "ethereum").
        payment_amount: Amount sent in USDC; must cover the agreed price.
        agent_key: Your agent API key, checked against the job's owner when given.
    """
    return await _run(
        "mark_job_paid",
        job_id=job_id,
        payment_tx_hash=payment_tx_hash,
        payment_network=payment_network,
        payment_amount=payment_amount,
        agent_key=agent_key,
    )


@mcp.tool()
async def leave_review(
    job_id: str,
    rating: int,
    comment: str | None = None,
    agent_key: str | None = None,
) -> str:
    """Review a COMPLETED job. One review per job.

    Args:
        job_id: The job ID.
        rating: 1 to 5 stars.
        comment: Optional written feedback.
        agent_key: Your agent API key, checked against the job's owner when given.
    """
    return await _run("leave_review", job_id=job_id, rating=rating, comment=comment, agent_key=agent_key)


@mcp.tool()
async def send_job_message(job_id: str, content: str, agent_key: str | None = None) -> str:
    """Send a message to the human on an open job (max 2000 characters).

    Args:
        job_id: The job ID.
        content: Message text.
        agent_key: Your registered agent API key.
    """
    return await _run("send_job_message", job_id=job_id, content=content, agent_key=agent_key)


@mcp.tool()
async def get_job_messages(job_id: str, agent_key: str | None = None) -> str:
    """Read all messages on a job, oldest first.

    Args:
        job_id: The job ID.
        agent_key: Your registered agent API key.
    """
    return await _run("get_job_messages", job_id=job_id, agent_key=agent_key)


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


@mcp.tool()
async def start_stream(
    job_id: str,
    sender_address: str,
    network: str,
    token: str | None = None,
    agent_key: str | None = None,
) -> str:
    """Start paying an ACCEPTED STREAM job.

    For SUPERFLUID, open the flow to the human's wallet first; it is verified
    on-chain. For MICRO_TRANSFER, the first payment is due right away.

    Args:
        job_id: The job ID.
        sender_address: Your wallet address.
        network: Network used for the stream (e.g. "base").
        token: Token symbol (default USDC).
        agent_key: Your registered agent API key.
    """
    return await _run(
        "start_stream",
        job_id=job_id,
        sender_address=sender_address,
        network=network,
        token=token,
        agent_key=agent_key,
    )


@mcp.tool()
async def record_stream_tick(job_id: str, tx_hash: str, agent_key: str | None = None) -> str:
    """Submit the transaction of the next MICRO_TRANSFER payment.

    Args:
        job_id: The job ID.
        tx_hash: Transaction hash of this interval's payment.
        agent_key: Your registered agent API key.
    """
    return await _run("record_stream_tick", job_id=job_id, tx_hash=tx_hash, agent_key=agent_key)


@mcp.tool()
async def pause_stream(job_id: str, agent_key: str | None = None) -> str:
    """Pause an active stream. Superfluid flows must be closed on-chain first.

    Args:
        job_id: The job ID.
        agent_key: Your registered agent API key.
    """
    return await _run("pause_stream", job_id=job_id, agent_key=agent_key)


@mcp.tool()
async def resume_stream(job_id: str, sender_address: str | None = None, agent_key: str | None = None) -> str:
    """Resume a paused stream. Superfluid flows must be reopened on-chain first.

    Args:
        job_id: The job ID.
        sender_address: New sender wallet, if it changed.
        agent_key: Your registered agent API key.
    """
    return await _run("resume_stream", job_id=job_id, sender_address=sender_address, agent_key=agent_key)


@mcp.tool()
async def stop_stream(job_id: str, agent_key: str | None = None) -> str:
    """Stop a stream for good. The job is marked COMPLETED.

    Args:
        job_id: The job ID.
        agent_key: Your registered agent API key.
    """
    return await _run("stop_stream", job_id=job_id, agent_key=agent_key)


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@mcp.tool()
async def create_listing(
    title: str,
    description: str,
    budget_usdc: float,
    expires_at: str,
    agent_key: str | None = None,
    payment_proof: str | None = None,
    category: str | None = None,
    required_skills: list[str] | None = None,
    required_equipment: list[str] | None = None,
    location: str | None = None,
    location_lat: float | None = None,
    location_lng: float | None = None,
    radius_km: float | None = None,
    work_mode: str | None = None,
    max_applicants: int | None = None,
    callback_url: str | None = None,
    callback_secret: str | None = None,
) -> str:
    """Post a job listing that humans can browse and apply to.

    Requires an ACTIVE agent or a payment proof. Budget must be at least $5
    and expiry within 90 days.

    Args:
        title: Listing title.
        description: What the work involves.
        budget_usdc: Budget in USDC.
        expires_at: ISO 8601 expiry time.
        agent_key: Your registered agent API key.
        payment_proof: x402 payment proof; pays for this single listing.
        category: Optional category tag.
        required_skills: Skills applicants should have.
        required_equipment: Equipment applicants should have.
        location: City or area.
        location_lat: Latitude of the work location.
        location_lng: Longitude of the work location.
        radius_km: How far from the location applicants may be.
        work_mode: REMOTE, ONSITE or HYBRID.
        max_applicants: Stop accepting applications after this many.
        callback_url: Webhook URL for application notifications.
        callback_secret: Secret used to sign webhook bodies.
    """
    return await _run(
        "create_listing",
        title=title,
        description=description,
        budget_usdc=budget_usdc,
        expires_at=expires_at,
        agent_key=agent_key,
        payment_proof=payment_proof,
        category=category,
        required_skills=required_skills,
        required_equipment=required_equipment,
        location=location,
        location_lat=location_lat,
        location_lng=location_lng,
        radius_km=radius_km,
        work_mode=work_mode,
        max_applicants=max_applicants,
        callback_url=callback_url,
        callback_secret=callback_secret,
    )


@mcp.tool()
async def get_listings(
    page: int = 1,
    limit: int = 20,
    skill: str | None = None,
    category: str | None = None,
    work_mode: str | None = None,
    min_budget: float | None = None,
    max_budget: float | None = None,
    lat: float | None = None,
    lng: float | None = None,
    radius: float | None = None,
) -> str:
    """Browse open listings, PRO agents first, then newest.

    Args:
        page: Page number, starting at 1.
        limit: Results per page (max 50).
        skill: Filter by required skill.
        category: Filter by category.
        work_mode: REMOTE, ONSITE or HYBRID.
        min_budget: Minimum budget in USDC.
        max_budget: Maximum budget in USDC.
        lat: Latitude for radius search.
        lng: Longitude for radius search.
        radius: Radius in kilometres.
    """
    return await _run(
        "get_listings",
        page=page,
        limit=limit,
        skill=skill,
        category=category,
        work_mode=work_mode,
        min_budget=min_budget,
        max_budget=max_budget,
        lat=lat,
        lng=lng,
        radius=radius,
    )


@mcp.tool()
async def get_listing(listing_id: str) -> str:
    """Get one listing with its requirements and the posting agent's reputation.

    Args:
        listing_id: The listing ID.
    """
    return await _run("get_listing", listing_id=listing_id)


@mcp.tool()
async def get_listing_applications(listing_id: str, agent_key: str | None = None) -> str:
    """List the applications to one of your listings.

    Args:
        listing_id: The listing ID.
        agent_key: Your registered agent API key.
    """
    return await _run("get_listing_applications", listing_id=listing_id, agent_key=agent_key)


@mcp.tool()
async def make_listing_offer(listing_id: str, application_id: str, agent_key: str | None = None) -> str:
    """Hire an applicant. Creates a job for them; the human still has to accept.

    Args:
        listing_id: The listing ID.
        application_id: The application to accept.
        agent_key: Your registered agent API key.
    """
    return await _run(
        "make_listing_offer",
        listing_id=listing_id,
        application_id=application_id,
        agent_key=agent_key,
    )


@mcp.tool()
async def cancel_listing(listing_id: str, agent_key: str | None = None) -> str:
    """Cancel one of your open listings. Pending applications are rejected.

    Args:
        listing_id: The listing ID.
        agent_key: Your registered agent API key.
    """
    return await _run("cancel_listing", listing_id=listing_id, agent_key=agent_key)
