"""Unit tests for the HTTP transport, with the backend mocked by respx."""

from __future__ import annotations

import httpx
import pytest
import respx

from humanpages.client.credentials import AGENT_KEY_HEADER, PAYMENT_HEADER, Credential
from humanpages.client.http import BackendClient, error_from_response
from humanpages.domain.exceptions import ApiError, MissingCredentialError, TransportError
from humanpages.schemas.entities import Human

BASE = "http://backend.test"


def _client() -> BackendClient:
    return BackendClient(base_url=BASE, timeout=1.0, retry_attempts=3, retry_max_wait=0)


class TestCredential:
    def test_headers(self) -> None:
        headers = Credential(agent_key="hp_abc", payment_proof="0xproof").headers()
        assert headers == {AGENT_KEY_HEADER: "hp_abc", PAYMENT_HEADER: "0xproof"}

    def test_repr_hides_secrets(self) -> None:
        text = repr(Credential(agent_key="hp_secret"))
        assert "hp_secret" not in text
        assert "***" in text

    def test_require_agent_key(self) -> None:
        with pytest.raises(MissingCredentialError):
            Credential(payment_proof="0xproof").require_agent_key()

    def test_require_accepts_payment_proof(self) -> None:
        cred = Credential(payment_proof="0xproof")
        assert cred.require() is cred


class TestErrorFromResponse:
    def test_backend_code_passes_through(self) -> None:
        response = httpx.Response(
            403, json={"error": "Agent is not yet activated", "code": "AGENT_PENDING"}
        )
        err = error_from_response(response)
        assert err.code == "AGENT_PENDING"
        assert err.message == "Agent is not yet activated"
        assert err.status_code == 403

    def test_hint_wins_over_error(self) -> None:
        response = httpx.Response(
            400,
            json={"error": "No active flow found", "code": "FLOW_NOT_FOUND", "hint": "Create a flow first"},
        )
        err = error_from_response(response)
        assert err.message == "Create a flow first"
        assert err.reason == "No active flow found"

    def test_extra_fields_become_details(self) -> None:
        response = httpx.Response(
            429, json={"error": "Rate limit exceeded", "code": "RATE_LIMITED", "remaining": 0, "resetIn": "1d 2h"}
        )
        err = error_from_response(response)
        assert err.details == {"remaining": 0, "resetIn": "1d 2h"}

    def test_status_fallback_without_body(self) -> None:
        err = error_from_response(httpx.Response(404, text="not json"))
        assert err.code == "NOT_FOUND"
        assert err.message == "API error: 404"


class TestBackendClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_get_validates_model(self) -> None:
        respx.get(f"{BASE}/api/humans/hum_1").mock(
            return_value=httpx.Response(200, json={"id": "hum_1", "name": "Ana", "minRateUsdc": 25})
        )
        async with _client() as client:
            human = await client.get("/api/humans/hum_1", model=Human)
        assert isinstance(human, Human)
        assert human.min_rate_usdc == 25

    @pytest.mark.asyncio
    @respx.mock
    async def test_credential_headers_are_sent(self) -> None:
        route = respx.post(f"{BASE}/api/jobs").mock(return_value=httpx.Response(201, json={}))
        async with _client() as client:
            await client.post("/api/jobs", credential=Credential(agent_key="hp_key"), json={"a": 1})
        assert route.calls.last.request.headers[AGENT_KEY_HEADER] == "hp_key"

    @pytest.mark.asyncio
    @respx.mock
    async def test_api_error_raised(self) -> None:
        respx.post(f"{BASE}/api/jobs").mock(
            return_value=httpx.Response(400, json={"error": "Too cheap", "code": "BELOW_MIN_OFFER_PRICE"})
        )
        async with _client() as client:
            with pytest.raises(ApiError) as exc_info:
                await client.post("/api/jobs", json={})
        assert exc_info.value.code == "BELOW_MIN_OFFER_PRICE"

    @pytest.mark.asyncio
    @respx.mock
    async def test_reads_are_retried_on_transport_failure(self) -> None:
        route = respx.get(f"{BASE}/api/jobs/job_1").mock(
            side_effect=[httpx.ConnectError("boom"), httpx.Response(200, json={"ok": True})]
        )
        async with _client() as client:
            body = await client.get("/api/jobs/job_1")
        assert body == {"ok": True}
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_writes_are_not_retried(self) -> None:
        route = respx.post(f"{BASE}/api/agents/register").mock(side_effect=httpx.ConnectError("boom"))
        async with _client() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.post("/api/agents/register", json={"name": "x"})
        assert exc_info.value.code == "NETWORK_ERROR"
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_typed(self) -> None:
        respx.patch(f"{BASE}/api/jobs/job_1/paid").mock(side_effect=httpx.ReadTimeout("slow"))
        async with _client() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.patch("/api/jobs/job_1/paid", json={})
        assert exc_info.value.code == "TIMEOUT"

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_body(self) -> None:
        respx.delete(f"{BASE}/api/listings/lst_1").mock(return_value=httpx.Response(200, text="<html>"))
        async with _client() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.delete("/api/listings/lst_1")
        assert exc_info.value.code == "INVALID_RESPONSE"

    @pytest.mark.asyncio
    @respx.mock
    async def test_unexpected_shape(self) -> None:
        respx.get(f"{BASE}/api/humans/hum_1").mock(return_value=httpx.Response(200, json={"name": "no id"}))
        async with _client() as client:
            with pytest.raises(TransportError) as exc_info:
                await client.get("/api/humans/hum_1", model=Human)
        assert exc_info.value.code == "INVALID_RESPONSE"
