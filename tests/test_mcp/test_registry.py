"""Tests for the operation registry dispatch boundary."""

from __future__ import annotations

import pytest

from conftest import register
from humanpages.domain.exceptions import ApiError
from humanpages.mcp_server.registry import Operation, OperationRegistry, registry
from humanpages.schemas.operations import NoArgs


class TestRegistryShape:
    def test_all_operations_registered(self) -> None:
        assert len(registry) == 31
        assert "create_job_offer" in registry
        assert "make_listing_offer" in registry
        assert registry.names == sorted(registry.names)

    def test_duplicate_names_rejected(self) -> None:
        op = registry.get("get_promo_status")
        with pytest.raises(ValueError, match="Duplicate operation"):
            OperationRegistry([op, op])


class TestDispatch:
    @pytest.mark.asyncio
    async def test_success_is_rendered(self, hp) -> None:
        result = await registry.dispatch(hp, "get_human", {"id": "hum_ana"})
        assert not result.is_error
        assert "Ana Ribeiro" in result.text
        assert result.data.id == "hum_ana"

    @pytest.mark.asyncio
    async def test_unknown_operation(self, hp) -> None:
        result = await registry.dispatch(hp, "delete_everything", {})
        assert result.code == "UNKNOWN_OPERATION"
        assert result.text == "Error [UNKNOWN_OPERATION]: Unknown tool: delete_everything"

    @pytest.mark.asyncio
    async def test_missing_argument_names_field(self, hp) -> None:
        result = await registry.dispatch(hp, "register_agent", {})
        assert result.code == "VALIDATION_ERROR"
        assert result.error.details == {"field": "name"}
        assert result.text.startswith("Error [VALIDATION_ERROR]: name:")

    @pytest.mark.asyncio
    async def test_unexpected_argument(self, hp) -> None:
        result = await registry.dispatch(hp, "register_agent", {"name": "Bot", "owner": "me"})
        assert result.code == "VALIDATION_ERROR"
        assert result.error.details["field"] == "owner"

    @pytest.mark.asyncio
    async def test_missing_credential(self, hp) -> None:
        result = await registry.dispatch(hp, "get_activation_status", {})
        assert result.code == "MISSING_CREDENTIAL"

    @pytest.mark.asyncio
    async def test_backend_rejection_keeps_code_and_status(self, hp) -> None:
        agent_id, api_key = await register(hp)
        result = await registry.dispatch(
            hp,
            "create_job_offer",
            {
                "agent_key": api_key,
                "agent_id": agent_id,
                "human_id": "hum_kofi",
                "title": "Transcribe",
                "description": "Audio",
                "price_usdc": 15,
            },
        )
        assert result.code == "AGENT_PENDING"
        assert result.error.details["status_code"] == 403
        assert "request_activation_code" in result.text

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_internal(self, hp) -> None:
        async def explode(_hp, _args):
            raise RuntimeError("boom")

        local = OperationRegistry([Operation("explode", NoArgs, explode, lambda r, a: "")])
        result = await local.dispatch(hp, "explode")
        assert result.code == "INTERNAL_ERROR"
        assert "boom" not in result.text

    @pytest.mark.asyncio
    async def test_domain_error_from_handler(self, hp) -> None:
        async def reject(_hp, _args):
            raise ApiError("Listing is CLOSED", code="LISTING_NOT_OPEN", status_code=409, reason="closed")

        local = OperationRegistry([Operation("reject", NoArgs, reject, lambda r, a: "")])
        result = await local.dispatch(hp, "reject", {})
        assert result.code == "LISTING_NOT_OPEN"
        assert result.error.details == {"status_code": 409, "reason": "closed"}
