"""Tests for webhook signing, verification and delivery."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import httpx
import pytest
from structlog.testing import capture_logs

from conftest import BASE_URL, activate_pro, human_action, register
from humanpages.domain.enums import JobStatus
from humanpages.domain.exceptions import InvalidSignatureError
from humanpages.sandbox import create_sandbox_app
from humanpages.schemas.operations import CreateJobOfferArgs
from humanpages.services.facade import HumanPagesClient
from humanpages.services.webhooks import (
    SIGNATURE_HEADER,
    WebhookNotifier,
    build_payload,
    encode_payload,
    parse_notification,
    sign_payload,
    verify_signature,
)

SECRET = "a-very-long-callback-secret"


class TestSignature:
    def test_sign_and_verify(self) -> None:
        body = encode_payload({"event": "job.accepted"})
        signature = sign_payload(body, SECRET)
        assert signature.startswith("sha256=")
        assert verify_signature(body, signature, SECRET)

    def test_bare_hex_digest_is_accepted(self) -> None:
        body = b'{"event":"job.paid"}'
        digest = sign_payload(body, SECRET).removeprefix("sha256=")
        assert verify_signature(body, digest, SECRET)

    def test_tampered_body_fails(self) -> None:
        signature = sign_payload(b'{"amount":10}', SECRET)
        assert not verify_signature(b'{"amount":99}', signature, SECRET)

    def test_wrong_secret_fails(self) -> None:
        body = b"{}"
        assert not verify_signature(body, sign_payload(body, SECRET), "another-secret-value")

    def test_missing_signature_fails(self) -> None:
        assert not verify_signature(b"{}", None, SECRET)


class TestPayload:
    def test_event_name_from_entity_and_status(self) -> None:
        payload = build_payload(
            "job", "job_1", "ACCEPTED", {"contact": {"email": "a@b.c"}},
            timestamp=datetime(2026, 3, 2, tzinfo=UTC),
        )
        assert payload["event"] == "job.accepted"
        assert payload["entityType"] == "job"
        assert payload["entityId"] == "job_1"
        assert payload["timestamp"] == "2026-03-02T00:00:00+00:00"
        assert payload["data"] == {"contact": {"email": "a@b.c"}}

    def test_parse_notification(self) -> None:
        body = encode_payload(build_payload("listing", "lst_1", "CLOSED"))
        parsed = parse_notification(body, sign_payload(body, SECRET), SECRET)
        assert parsed["event"] == "listing.closed"

    def test_parse_rejects_bad_signature(self) -> None:
        body = encode_payload(build_payload("job", "job_1", "PAID"))
        with pytest.raises(InvalidSignatureError):
            parse_notification(body, "sha256=deadbeef", SECRET)


class TestWebhookNotifier:
    @pytest.mark.asyncio
    async def test_signed_delivery(self) -> None:
        received: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(204)

        notifier = WebhookNotifier(timeout=1.0, transport=httpx.MockTransport(handler))
        payload = build_payload("job", "job_1", "COMPLETED")

        assert await notifier.deliver("https://agent.example/hook", payload, SECRET)

        request = received[0]
        assert json.loads(request.content)["event"] == "job.completed"
        assert verify_signature(request.content, request.headers[SIGNATURE_HEADER], SECRET)

    @pytest.mark.asyncio
    async def test_unsigned_without_secret(self) -> None:
        received: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(200)

        notifier = WebhookNotifier(timeout=1.0, transport=httpx.MockTransport(handler))
        await notifier.deliver("https://agent.example/hook", build_payload("job", "job_1", "PAID"))
        assert SIGNATURE_HEADER not in received[0].headers

    @pytest.mark.asyncio
    async def test_rejection_is_reported_not_raised(self) -> None:
        notifier = WebhookNotifier(timeout=1.0, transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        assert not await notifier.deliver("https://agent.example/hook", build_payload("job", "job_1", "PAID"))

    @pytest.mark.asyncio
    async def test_unreachable_is_reported_not_raised(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        notifier = WebhookNotifier(timeout=1.0, transport=httpx.MockTransport(handler))
        assert not await notifier.deliver("https://agent.example/hook", build_payload("job", "job_1", "PAID"))

    @pytest.mark.asyncio
    async def test_each_outcome_is_logged_with_its_event(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/down":
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(500 if request.url.path == "/broken" else 200)

        notifier = WebhookNotifier(timeout=1.0, transport=httpx.MockTransport(handler))
        payload = build_payload("job", "job_1", "ACCEPTED")

        with capture_logs() as logs:
            outcomes = [
                await notifier.deliver(f"https://agent.example/{path}", payload, SECRET)
                for path in ("ok", "broken", "down")
            ]

        assert outcomes == [True, False, False]
        assert [entry["event"] for entry in logs] == [
            "webhooks.delivered",
            "webhooks.delivery_rejected",
            "webhooks.delivery_failed",
        ]
        assert all(entry["webhook_event"] == "job.accepted" for entry in logs)


class TestDispatchMiddleware:
    @pytest.mark.asyncio
    async def test_notifier_fault_does_not_fail_the_request(self, store) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("notifier crashed")

        app = create_sandbox_app(store, notifier=WebhookNotifier(timeout=1.0, transport=httpx.MockTransport(handler)))
        async with HumanPagesClient(base_url=BASE_URL, transport=httpx.ASGITransport(app=app)) as hp:
            agent_id, api_key = await register(hp)
            await activate_pro(hp, store, api_key)
            job = await hp.jobs.create_job_offer(
                CreateJobOfferArgs(
                    agent_key=api_key,
                    agent_id=agent_id,
                    human_id="hum_kofi",
                    title="Market notes",
                    description="One page of notes",
                    price_usdc=15,
                    callback_url="https://agent.example/hook",
                    callback_secret=SECRET,
                )
            )

        async with httpx.AsyncClient(base_url=BASE_URL, transport=httpx.ASGITransport(app=app)) as raw:
            with capture_logs() as logs:
                accepted = await human_action(raw, "hum_kofi", job.id, "accept")

        assert accepted["status"] == "ACCEPTED"
        assert store.jobs[job.id].status == JobStatus.ACCEPTED
        failure = next(e for e in logs if e["event"] == "sandbox.webhook_dispatch_failed")
        assert failure["webhook_event"] == "job.accepted"
        assert failure["log_level"] == "error"
