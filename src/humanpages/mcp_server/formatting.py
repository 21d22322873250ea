"""Markdown renderers for operation results.

One function per operation family. Each takes the typed result (and, where
the backend echo is thin, the validated arguments) and returns the text an
agent reads.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from humanpages.domain.enums import JobStatus, PaymentMode
from humanpages.schemas.entities import (
    Activation,
    ActivationCode,
    ActivationStatus,
    AgentProfile,
    Application,
    DomainVerification,
    Human,
    HumanProfile,
    Job,
    JobMessage,
    JobUpdate,
    Listing,
    ListingCancellation,
    ListingPage,
    ListingReceipt,
    OfferReceipt,
    PaymentActivation,
    PromoStatus,
    PromoUpgrade,
    RegisteredAgent,
    ReviewReceipt,
    TickReceipt,
)
from humanpages.services.job_lifecycle import JobStatusView

STATUS_EMOJI = {
    JobStatus.PENDING: "⏳",
    JobStatus.ACCEPTED: "✅",
    JobStatus.REJECTED: "❌",
    JobStatus.PAID: "💰",
    JobStatus.STREAMING: "🔄",
    JobStatus.PAUSED: "⏸️",
    JobStatus.COMPLETED: "🎉",
    JobStatus.CANCELLED: "🚫",
    JobStatus.DISPUTED: "⚠️",
}


def _money(value: Decimal | None) -> str:
    if value is None:
        return "?"
    return f"{value.normalize():f}"


def _listed(values: list[str], empty: str = "None listed") -> str:
    return ", ".join(values) or empty


def _display_location(human: Human) -> str | None:
    if human.location_granularity == "neighborhood" and human.neighborhood and human.location:
        return f"{human.neighborhood}, {human.location}"
    return human.location


def _rate(human: Human) -> str:
    if human.min_rate_usdc is None:
        return "Rate negotiable"
    if human.rate_currency and human.rate_currency != "USD":
        return f"{human.rate_currency} {_money(human.min_rate_usdc)}+ (~${_money(human.min_rate_usd_estimate)} USD)"
    return f"${_money(human.min_rate_usdc)}+"


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def render_human_list(humans: list[Human], _args: Any = None) -> str:
    if not humans:
        return "No humans found matching the criteria."

    entries = []
    for h in humans:
        rep = h.reputation
        rating = f"{rep.avg_rating}★ ({rep.review_count} reviews)" if rep.avg_rating > 0 else "No reviews"
        if h.humanity_verified:
            humanity = f"🛡️ Verified Human (score: {h.humanity_score})"
        elif h.humanity_score:
            humanity = f"🛡️ Partially verified (score: {h.humanity_score})"
        else:
            humanity = "🛡️ Not verified"
        handle = f" (@{h.username})" if h.username else ""
        entries.append(
            f"- **{h.name}**{handle} [{_display_location(h) or 'Location not specified'}]\n"
            f"  {'✅ Available' if h.is_available else '❌ Busy'} | {_rate(h)} | {rating}\n"
            f"  {humanity}\n"
            f"  Skills: {_listed(h.skills)}\n"
            f"  Equipment: {_listed(h.equipment)}\n"
            f"  Languages: {_listed(h.languages, 'Not specified')}\n"
            f"  Jobs completed: {rep.jobs_completed}\n"
            f"  ID: {h.id}"
        )
    return (
        f"Found {len(humans)} human(s):\n\n" + "\n\n".join(entries) + "\n\n"
        "_Contact info and wallets require an ACTIVE agent. Use get_human_profile after activating._"
    )


def render_human(human: Human, _args: Any = None) -> str:
    rep = human.reputation
    rating = f"{rep.avg_rating}★ ({rep.review_count} reviews)" if rep.avg_rating > 0 else "No reviews yet"
    services = []
    for s in human.services:
        if s.price_min is None or s.price_unit == "NEGOTIABLE":
            price = "Negotiable"
        else:
            symbol = "$" if (s.price_currency or "USD") == "USD" else f"{s.price_currency} "
            suffix = {"HOURLY": "/hr", "FLAT_TASK": "/task"}.get(s.price_unit or "", "")
            price = f"{symbol}{_money(s.price_min)}{suffix}"
        services.append(f"- **{s.title}** [{s.category}]\n  {s.description}\n  Price: {price}")

    handle = f" (@{human.username})" if human.username else ""
    return f"""# {human.name}{handle}
{'✅ Available' if human.is_available else '❌ Not Available'}

## Humanity Verification
- **Status:** {'🛡️ Verified' if human.humanity_verified else '❌ Not Verified'}
- **Score:** {human.humanity_score if human.humanity_score is not None else 'N/A'}
- **Tier:** {human.humanity_tier or 'Not verified'}

## Reputation
- Jobs completed: {rep.jobs_completed}
- Rating: {rating}

## Bio
{human.bio or 'No bio provided'}

## Location
{_display_location(human) or 'Not specified'}

## Capabilities
- **Skills:** {_listed(human.skills)}
- **Equipment:** {_listed(human.equipment)}
- **Languages:** {_listed(human.languages, 'Not specified')}

## Economics
- **Minimum Rate:** {_rate(human)}
- **Rate Type:** {human.rate_type or 'NEGOTIABLE'}
- **Minimum Offer:** {f'${_money(human.min_offer_price)}' if human.min_offer_price is not None else 'None'}
- **Max Offer Distance:** {f'{human.max_offer_distance} km' if human.max_offer_distance is not None else 'None'}

## Contact & Payment
_Available via get_human_profile (requires ACTIVE agent)._

## Services Offered
{chr(10).join(services) or 'No services listed'}"""


def render_humanity(human: Human, _args: Any = None) -> str:
    if human.humanity_verified:
        note = "This human has verified their identity through Gitcoin Passport."
    elif human.humanity_score:
        note = "This human has checked their score but does not meet the verification threshold (20+)."
    else:
        note = "This human has not yet verified their identity."
    verified_at = human.humanity_verified_at.isoformat() if human.humanity_verified_at else "Never"
    return f"""**Humanity Verification Status**

**Human:** {human.name}
**Verified:** {'✅ Yes' if human.humanity_verified else '❌ No'}
**Score:** {human.humanity_score if human.humanity_score is not None else 'Not checked'}
**Tier:** {human.humanity_tier or 'None'}
**Provider:** {human.humanity_provider or 'N/A'}
**Last Verified:** {verified_at}

{note}"""


def render_human_profile(profile: HumanProfile, _args: Any = None) -> str:
    wallets = "\n".join(
        f"- {w.chain or w.network}{f' ({w.label})' if w.label else ''}{' ⭐' if w.is_primary else ''}: {w.address}"
        for w in profile.wallets
    )
    preferred = profile.preferred_wallet
    fiat = "\n".join(
        f"- {f.platform}{f' ({f.label})' if f.label else ''}{' ⭐' if f.is_primary else ''}: {f.handle}"
        for f in profile.fiat_payment_methods
    )
    socials = "\n".join(
        f"- {label}: {url}"
        for label, url in (
            ("LinkedIn", profile.linkedin_url),
            ("Twitter", profile.twitter_url),
            ("GitHub", profile.github_url),
            ("Instagram", profile.instagram_url),
            ("YouTube", profile.youtube_url),
            ("Website", profile.website_url),
        )
        if url
    )
    preferred_line = f"\n**Preferred wallet:** {preferred.chain or preferred.network} - {preferred.address}" if preferred else ""
    return f"""# {profile.name} (Full Profile)

## Contact
- Email: {profile.contact_email or 'Not provided'}
- Telegram: {profile.telegram or 'Not provided'}
- Signal: {profile.signal or 'Not provided'}

## Payment Wallets
{wallets or 'No wallets added'}{preferred_line}

## Fiat Payment Methods
{fiat or 'No fiat payment methods added'}

## Social Profiles
{socials or 'No social profiles added'}"""


# ---------------------------------------------------------------------------
# Agents & activation
# ---------------------------------------------------------------------------


def render_registration(result: RegisteredAgent, _args: Any = None) -> str:
    return f"""**Agent Registered!**

**Agent ID:** {result.agent.id}
**Name:** {result.agent.name}
**API Key:** `{result.api_key}`
**Status:** PENDING

**IMPORTANT:** Save your API key now. It cannot be retrieved later.
Pass it as `agent_key` when using `create_job_offer`.

**Activation Required:** Your agent starts as PENDING. You must activate before creating jobs or viewing full profiles.
- **Free (BASIC tier):** Use `request_activation_code` to get a code, post it on social media, then `verify_social_activation`.
- **Paid (PRO tier):** Use `get_payment_activation` for a deposit address, then `verify_payment_activation`.

**Domain Verification Token:** `{result.verification_token}`
To get a verified badge, set up domain verification using `verify_agent_domain`."""


def render_agent_profile(agent: AgentProfile, _args: Any = None) -> str:
    rep = agent.reputation
    speed = f"{rep.avg_payment_speed_hours} hours" if rep and rep.avg_payment_speed_hours is not None else "N/A"
    verified = f"Yes ({agent.verified_at.isoformat()})" if agent.domain_verified and agent.verified_at else (
        "Yes" if agent.domain_verified else "No"
    )
    return f"""# {agent.name}{' ✅ Verified' if agent.domain_verified else ''}

## Profile
- **Description:** {agent.description or 'No description'}
- **Website:** {agent.website_url or 'Not set'}
- **Contact:** {agent.contact_email or 'Not provided'}
- **Domain Verified:** {verified}
- **Status:** {agent.status or 'Unknown'}{f' ({agent.tier})' if agent.tier else ''}

## Reputation
- **Total Jobs:** {rep.total_jobs if rep else 0}
- **Completed Jobs:** {rep.completed_jobs if rep else 0}
- **Paid Jobs:** {rep.paid_jobs if rep else 0}
- **Avg Payment Speed:** {speed}"""


def render_domain_verification(result: DomainVerification, _args: Any = None) -> str:
    return f"""**Domain Verified!**

**Domain:** {result.domain}
**Status:** {'Verified' if result.domain_verified else 'Not verified'}

Your agent profile now shows a verified badge. Humans will see this when reviewing your job offers."""


def render_activation_code(result: ActivationCode, _args: Any = None) -> str:
    text = f"**Activation Code Generated!**\n\n**Code:** `{result.code}`\n**Expires:** {result.expires_at.isoformat()}"
    if result.requirements:
        text += f"\n\n**Requirements:** {result.requirements}"
    if result.platforms:
        text += "\n\n**Copy-paste for each platform:**"
        for platform in result.platforms:
            text += f"\n\n**{platform}:**\n> {result.suggested_posts.get(platform, result.code)}"
    return text + "\n\nAfter posting, use `verify_social_activation` with the URL of your post."


def render_activation(result: Activation, _args: Any = None) -> str:
    expires = f"\n**Expires:** {result.expires_at.isoformat()}" if result.expires_at else ""
    return f"""**Agent Activated!**

**Status:** {result.status}
**Tier:** {result.tier}{expires}

You can now create job offers and view full human profiles using `get_human_profile`."""


def render_activation_status(result: ActivationStatus, _args: Any = None) -> str:
    limits = result.limits
    if limits and limits.job_offers_per_day:
        job_limit = f"{limits.job_offers_per_day}/day"
    elif limits and limits.job_offers_per_two_days:
        job_limit = f"{limits.job_offers_per_two_days}/2 days"
    else:
        job_limit = "N/A"
    if limits and limits.listings_per_day:
        listing_limit = f"{limits.listings_per_day}/day"
    elif limits and limits.listings_per_week:
        listing_limit = f"{limits.listings_per_week}/week"
    else:
        listing_limit = "N/A"
    profile_views = limits.profile_views_per_day if limits and limits.profile_views_per_day else "N/A"

    text = f"""**Activation Status**

**Status:** {result.status}
**Tier:** {result.tier}
**Activated:** {result.activated_at.isoformat() if result.activated_at else 'Not yet'}
**Expires:** {result.activation_expires_at.isoformat() if result.activation_expires_at else 'N/A'}
**Profile views:** {profile_views}/day
**Job offers:** {job_limit}
**Listings:** {listing_limit}"""
    if result.x402 and result.x402.enabled:
        prices = ", ".join(f"{k.replace('_', ' ')} {v}" for k, v in result.x402.prices.items())
        text += f"\n**x402 pay-per-use:** {prices}"
    return text


def render_payment_activation(result: PaymentActivation, _args: Any = None) -> str:
    return f"""**PRO Tier Payment Instructions**

**Deposit Address:** `{result.deposit_address}`
**Amount:** {_money(result.amount)} {result.currency}
**Network:** {result.network}
**Expires:** {result.expires_at.isoformat()}

**Next Steps:**
1. Send exactly {_money(result.amount)} {result.currency} to the address above on {result.network}
2. Use `verify_payment_activation` with the transaction hash and network
3. Once verified, your agent will be activated with PRO tier (15 jobs/day, 50 profile views/day)"""


def render_promo_status(result: PromoStatus, _args: Any = None) -> str:
    note = (
        "Free PRO slots are available! Activate via social post, then use `claim_free_pro_upgrade` to upgrade."
        if result.remaining > 0
        else "All free PRO slots have been claimed."
    )
    return (
        f"**Launch Promo Status**\n\n**Enabled:** {'Yes' if result.enabled else 'No'}\n"
        f"**Total Slots:** {result.total}\n**Claimed:** {result.claimed}\n"
        f"**Remaining:** {result.remaining}\n\n{note}"
    )


def render_promo_upgrade(result: PromoUpgrade, _args: Any = None) -> str:
    return (
        f"**PRO Tier Unlocked for Free!**\n\n**Status:** {result.status}\n**Tier:** {result.tier}\n"
        f"**Upgraded At:** {result.promo_upgraded_at.isoformat()}\n"
        f"**Expires:** {result.activation_expires_at.isoformat()}\n\n{result.message}\n\n"
        "You now have PRO limits: 15 job offers/day, 50 profile views/day, 60-day duration."
    )


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


def render_job_offer(job: Job, _args: Any = None) -> str:
    human_name = job.human.name if job.human else job.human_id
    if job.callback_url:
        follow_up = (
            "🔔 **Webhook configured.** Status updates will be sent to your callback URL. "
            "On acceptance, the human's contact info will be included in the webhook payload."
        )
    else:
        follow_up = f'Use `get_job_status` with job_id "{job.id}" to check if they\'ve accepted.'
    if job.payment_mode == PaymentMode.STREAM:
        settle = "Once accepted, use `start_stream` to begin paying."
    else:
        settle = "Once accepted, you can send payment to their wallet and use `mark_job_paid` to record the transaction."
    return f"""**Job Offer Created!**

**Job ID:** {job.id}
**Status:** {job.status}
**Human:** {human_name}
**Price:** ${_money(job.price_usdc)} USDC
**Payment Mode:** {job.payment_mode}

⏳ **Next Step:** Wait for {human_name} to accept the offer.

{follow_up}

{settle}"""


def render_job_status(view: JobStatusView, _args: Any = None) -> str:
    job = view.job
    lines = [
        "**Job Status**",
        "",
        f"**Job ID:** {job.id}",
        f"**Status:** {STATUS_EMOJI.get(job.status, '')} {job.status}",
        f"**Title:** {job.title}",
        f"**Price:** ${_money(job.price_usdc)} USDC",
    ]
    if job.human:
        lines.append(f"**Human:** {job.human.name}")
    if job.registered_agent:
        verified = " ✅ Verified" if job.registered_agent.domain_verified else ""
        lines.append(f"**Agent:** {job.registered_agent.name}{verified}")
    elif job.agent_name:
        lines.append(f"**Agent:** {job.agent_name}")

    summary = job.stream_summary
    if job.payment_mode == PaymentMode.STREAM and summary is not None:
        ticks = f"{summary.tick_count}/{summary.max_ticks}" if summary.max_ticks else str(summary.tick_count)
        lines += [
            f"**Payment Mode:** STREAM ({summary.method})",
            f"**Rate:** ${_money(summary.rate_usdc)}/{summary.interval.lower()}",
            f"**Total Paid:** ${_money(summary.total_paid)} USDC",
            f"**Ticks:** {ticks}",
            f"**Network:** {summary.network or 'Not set'}",
        ]
    if job.payment_tx_hash:
        lines.append(f"**Payment:** {job.payment_tx_hash} ({job.payment_network})")

    lines += ["", f"**Next Step:** {view.next_step}"]
    if view.next_actions:
        lines.append(f"**Available actions:** {', '.join(f'`{a}`' for a in view.next_actions)}")
    return "\n".join(lines)


def render_mark_paid(result: JobUpdate, args: Any) -> str:
    return f"""**Payment Recorded!**

**Job ID:** {result.id}
**Status:** {result.status}
**Transaction:** {args.payment_tx_hash}
**Network:** {args.payment_network}
**Amount:** ${_money(args.payment_amount)} USDC

The human can now begin work. They will mark the job as complete when finished.
After completion, you can leave a review using `leave_review`."""


def render_review(result: ReviewReceipt, args: Any) -> str:
    comment = f"\n**Comment:** {args.comment}" if args.comment else ""
    return (
        f"**Review Submitted!**\n\n**Rating:** {'⭐' * result.rating}{comment}\n\n"
        "Thank you for your feedback. This helps build the human's reputation."
    )


def render_message_sent(message: JobMessage, _args: Any = None) -> str:
    return (
        f"**Message Sent!**\n\n**Message ID:** {message.id}\n"
        f"**From:** {message.sender_name} ({message.sender_type})\n"
        f"**Content:** {message.content}\n**Sent:** {message.created_at.isoformat()}\n\n"
        "The human will be notified. Use `get_job_messages` to check for replies."
    )


def render_messages(messages: list[JobMessage], _args: Any = None) -> str:
    if not messages:
        return "No messages yet on this job."
    formatted = "\n\n---\n\n".join(
        f"**{m.sender_name}** ({m.sender_type}) at {m.created_at.isoformat()}\n{m.content}" for m in messages
    )
    return f"**Job Messages** ({len(messages)} total)\n\n{formatted}"


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


def render_stream_started(result: JobUpdate, _args: Any = None) -> str:
    stream = result.stream
    text = f"**Stream Started!**\n\n**Job ID:** {result.id}\n**Status:** {result.status}"
    if stream is not None:
        text += f"\n**Method:** {stream.method}\n**Network:** {stream.network}"
    if result.message:
        text += f"\n\n{result.message}"
    if stream is not None and stream.receiver_wallet:
        text += f"\n\n**Send payments to:** {stream.receiver_wallet}"
    return text


def render_tick(result: TickReceipt, _args: Any = None) -> str:
    text = (
        f"**Tick Verified!**\n\n**Job ID:** {result.id}\n**Status:** {result.status}\n"
        f"**Tick:** #{result.tick.tick_number}\n**Amount:** ${_money(result.tick.amount)} USDC\n"
        f"**Total Paid:** ${_money(result.total_paid)} USDC"
    )
    if result.next_tick is not None and result.next_tick.expected_at is not None:
        text += f"\n\n**Next payment due:** {result.next_tick.expected_at.isoformat()}"
    elif result.status == JobStatus.COMPLETED:
        text += "\n\nMaximum ticks reached. The stream has ended. You can now use `leave_review`."
    return text


def render_stream_paused(result: JobUpdate, _args: Any = None) -> str:
    return (
        f"**Stream Paused**\n\n**Job ID:** {result.id}\n**Status:** {result.status}\n\n"
        "Use `resume_stream` to continue or `stop_stream` to end permanently."
    )


def render_stream_resumed(result: JobUpdate, _args: Any = None) -> str:
    return f"**Stream Resumed!**\n\n**Job ID:** {result.id}\n**Status:** {result.status}\n\nStream is active again."


def render_stream_stopped(result: JobUpdate, _args: Any = None) -> str:
    return (
        f"**Stream Stopped**\n\n**Job ID:** {result.id}\n**Status:** {result.status}\n"
        f"**Total Paid:** ${_money(result.total_paid or Decimal('0'))} USDC\n\n"
        "The stream has ended. You can now use `leave_review` to rate the human."
    )


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


def render_listing_created(result: ListingReceipt, _args: Any = None) -> str:
    if result.paid_via:
        rate_info = f"\n**Paid via:** {result.paid_via}"
    elif result.rate_limit:
        rl = result.rate_limit
        rate_info = f"\n**Rate Limit:** {rl.remaining} listings remaining ({rl.tier} tier, resets in {rl.reset_in})"
    else:
        rate_info = ""
    return (
        f"**Listing Created!**\n\n**Listing ID:** {result.id}\n**Status:** {result.status}{rate_info}\n\n"
        "Your listing is now live on the job board. Humans can browse and apply.\n\n"
        f'Use `get_listing_applications` with listing_id "{result.id}" to review applicants.\n'
        "Use `make_listing_offer` to hire an applicant."
    )


def _agent_rating(listing: Listing) -> str:
    rep = listing.agent_reputation
    return f"{rep.avg_rating:.1f}★" if rep and rep.avg_rating else "No ratings"


def render_listing_page(page: ListingPage, _args: Any = None) -> str:
    if not page.listings:
        return "No open listings found matching the criteria."
    entries = []
    for listing in page.listings:
        agent = listing.agent
        agent_info = f"{agent.name}{' ✅' if agent.domain_verified else ''}" if agent else "Unknown"
        rep = listing.agent_reputation
        if rep and rep.completed_jobs > 0:
            agent_info += f" | {rep.completed_jobs} jobs, {_agent_rating(listing)}"
        lines = [
            f"- **{listing.title}** [${_money(listing.budget_usdc)} USDC]{' 🏆 PRO' if listing.is_pro else ''}",
            f"  Agent: {agent_info}",
            f"  {f'Category: {listing.category} | ' if listing.category else ''}{listing.work_mode or 'Any'}"
            f" | {listing.counts.applications} applicant(s)",
        ]
        if listing.required_skills:
            lines.append(f"  Skills: {', '.join(listing.required_skills)}")
        if listing.location:
            lines.append(f"  Location: {listing.location}")
        lines += [f"  Expires: {listing.expires_at.isoformat()}", f"  ID: {listing.id}"]
        entries.append("\n".join(lines))
    p = page.pagination
    return f"**Open Listings** (page {p.page}/{p.total_pages}, {p.total} total)\n\n" + "\n\n".join(entries)


def render_listing(listing: Listing, _args: Any = None) -> str:
    agent = listing.agent
    rep = listing.agent_reputation
    cap = f"/{listing.max_applicants}" if listing.max_applicants else ""
    location = f"\n- **Location:** {listing.location}" if listing.location else ""
    website = f"\n- **Website:** {agent.website_url}" if agent and agent.website_url else ""
    speed = f"{rep.avg_payment_speed_hours} hours" if rep and rep.avg_payment_speed_hours is not None else "N/A"
    return f"""# {listing.title}{' 🏆 PRO' if listing.is_pro else ''}

**Listing ID:** {listing.id}
**Status:** {listing.status}
**Budget:** ${_money(listing.budget_usdc)} USDC
**Category:** {listing.category or 'Not specified'}
**Work Mode:** {listing.work_mode or 'Any'}
**Expires:** {listing.expires_at.isoformat()}
**Applications:** {listing.counts.applications}{cap}

## Description
{listing.description}

## Requirements
- **Skills:** {_listed(listing.required_skills, 'None specified')}
- **Equipment:** {_listed(listing.required_equipment, 'None specified')}{location}

## Posted By
- **Agent:** {agent.name if agent else 'Unknown'}{' ✅ Verified' if agent and agent.domain_verified else ''}
- **Description:** {(agent.description if agent else None) or 'N/A'}{website}
- **Jobs Completed:** {rep.completed_jobs if rep else 0}
- **Rating:** {_agent_rating(listing)}
- **Avg Payment Speed:** {speed}"""


def render_applications(applications: list[Application], _args: Any = None) -> str:
    if not applications:
        return "No applications yet for this listing."
    entries = []
    for app in applications:
        h = app.human
        rep = h.reputation if h else None
        rating = f"{rep.avg_rating:.1f}★" if rep and rep.avg_rating else "No ratings"
        entries.append(
            f"- **{h.name if h else 'Unknown'}** [{app.status}]\n"
            f"  Application ID: {app.id}\n"
            f"  Skills: {_listed(h.skills if h else [])}\n"
            f"  Equipment: {_listed(h.equipment if h else [])}\n"
            f"  Location: {(h.location if h else None) or 'Not specified'}\n"
            f"  Jobs Completed: {rep.jobs_completed if rep else 0} | Rating: {rating}\n"
            f'  **Pitch:** "{app.pitch}"\n'
            f"  Applied: {app.created_at.isoformat()}"
        )
    return (
        f"**Applications** ({len(applications)} total)\n\n" + "\n\n".join(entries) + "\n\n"
        "To hire an applicant, use `make_listing_offer` with the listing_id and application_id."
    )


def render_listing_offer(result: OfferReceipt, _args: Any = None) -> str:
    warning = f"\n\n⚠️ {result.warning}" if result.warning else ""
    return (
        f"**Offer Made!**\n\n**Job ID:** {result.id}\n**Status:** {result.status}{warning}\n\n"
        f'The human has been notified. Use `get_job_status` with job_id "{result.id}" to check if they accept.\n'
        "Once accepted, send payment and use `mark_job_paid` to record it."
    )


def render_listing_cancelled(result: ListingCancellation, _args: Any = None) -> str:
    return f"**Listing Cancelled**\n\n**Listing ID:** {result.id}\n**Status:** {result.status}\n\n{result.message}"
