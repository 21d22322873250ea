"""Signed webhook notifications.

When a job or listing changes state and the agent supplied a callback URL,
the backend POSTs a JSON notification to it. The raw body is signed with
HMAC-SHA256 using the agent's callback secret:

    X-HumanPages-Signature: sha256=<hex digest of the raw body>

Delivery is best-effort and at-least-once with no ordering guarantee.
Receivers should treat a notification as a prompt to call get_job_status,
which stays the source of truth.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from datetime import UTC, datetime
from typing import Any

import httpx

from humanpages.config import get_settings
from humanpages.domain.exceptions import InvalidSignatureError
from humanpages.logging_config import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-HumanPages-Signature"
SIGNATURE_PREFIX = "sha256="


def encode_payload(payload: dict[str, Any]) -> bytes:
    """Serialise a payload to the exact bytes that get signed and sent."""
    return json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str).encode("utf-8")


def sign_payload(body: bytes, secret: str) -> str:
    """Return the signature header value for `body`."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Constant-time check of a received signature. A bare hex digest is accepted too."""
    if not signature:
        return False
    received = signature.strip()
    if received.startswith(SIGNATURE_PREFIX):
        received = received[len(SIGNATURE_PREFIX) :]
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, received.lower())


def build_payload(
    entity_type: str,
    entity_id: str,
    status: str,
    data: dict[str, Any] | None = None,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Notification body: `{"event": "job.accepted", "entityType": "job", ...}`."""
    return {
        "event": f"{entity_type}.{str(status).lower()}",
        "entityType": entity_type,
        "entityId": entity_id,
        "status": str(status),
        "timestamp": (timestamp or datetime.now(UTC)).isoformat(),
        "data": data or {},
    }


def parse_notification(body: bytes, signature: str | None, secret: str) -> dict[str, Any]:
    """Verify and decode a received notification.

    Raises:
        InvalidSignatureError: If the signature does not match the raw body.
    """
    if not verify_signature(body, signature, secret):
        raise InvalidSignatureError()
    return json.loads(body)


class WebhookNotifier:
    """Delivers notifications with a single bounded attempt.

    Failures are logged and reported as False; they never propagate into
    the operation that triggered the notification.
    """

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout if timeout is not None else get_settings().webhook_timeout_seconds
        self._transport = transport

    async def deliver(self, url: str, payload: dict[str, Any], secret: str | None = None) -> bool:
        body = encode_payload(payload)
        headers = {"Content-Type": "application/json"}
        if secret:
            headers[SIGNATURE_HEADER] = sign_payload(body, secret)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("webhooks.delivery_failed", url=url, webhook_event=payload.get("event"), error=str(exc))
            return False

        if response.is_error:
            logger.warning(
                "webhooks.delivery_rejected",
                url=url,
                webhook_event=payload.get("event"),
                status=response.status_code,
            )
            return False

        logger.info("webhooks.delivered", url=url, webhook_event=payload.get("event"))
        return True
