"""Stream Payment Controller — the STREAM sub-protocol of a job.

    AWAITING_START --start--> ACTIVE (job STREAMING) --pause--> PAUSED
    PAUSED --resume--> ACTIVE
    ACTIVE|PAUSED --stop--> STOPPED (job COMPLETED)

SUPERFLUID: the agent creates / deletes the on-chain flow itself; start,
pause and resume only ask the backend to verify what is on chain. Ticks are
inferred from elapsed flow time and never submitted.

MICRO_TRANSFER: start opens tick #1; each record_stream_tick settles the
pending tick and opens the next one until max ticks is reached.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from humanpages.logging_config import get_logger
from humanpages.schemas.entities import JobUpdate, TickReceipt
from humanpages.schemas.wire import ResumeStreamBody, StreamTickBody
from humanpages.services.trust_tier import segment

if TYPE_CHECKING:
    from humanpages.client.http import BackendClient
    from humanpages.schemas.operations import (
        AuthenticatedJobArgs,
        ResumeStreamArgs,
        StartStreamArgs,
        StreamTickArgs,
    )

logger = get_logger(__name__)


class StreamPaymentController:
    """Start, tick, pause, resume and stop streaming payments."""

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    def _path(self, job_id: str, action: str) -> str:
        return f"/api/jobs/{segment(job_id)}/{action}"

    async def start_stream(self, args: StartStreamArgs) -> JobUpdate:
        credential = args.credential().require_agent_key()
        result = await self._client.patch(
            self._path(args.job_id, "start-stream"),
            credential=credential,
            json=args.to_body(),
            model=JobUpdate,
        )
        logger.info("streams.started", job_id=args.job_id, network=args.network, token=args.token)
        return result

    async def record_tick(self, args: StreamTickArgs) -> TickReceipt:
        credential = args.credential().require_agent_key()
        result = await self._client.patch(
            self._path(args.job_id, "stream-tick"),
            credential=credential,
            json=StreamTickBody(tx_hash=args.tx_hash),
            model=TickReceipt,
        )
        logger.info(
            "streams.tick_recorded",
            job_id=args.job_id,
            tick=result.tick.tick_number,
            total_paid=str(result.total_paid),
        )
        return result

    async def pause_stream(self, args: AuthenticatedJobArgs) -> JobUpdate:
        credential = args.credential().require_agent_key()
        result = await self._client.patch(
            self._path(args.job_id, "pause-stream"),
            credential=credential,
            model=JobUpdate,
        )
        logger.info("streams.paused", job_id=args.job_id)
        return result

    async def resume_stream(self, args: ResumeStreamArgs) -> JobUpdate:
        credential = args.credential().require_agent_key()
        result = await self._client.patch(
            self._path(args.job_id, "resume-stream"),
            credential=credential,
            json=ResumeStreamBody(sender_address=args.sender_address),
            model=JobUpdate,
        )
        logger.info("streams.resumed", job_id=args.job_id)
        return result

    async def stop_stream(self, args: AuthenticatedJobArgs) -> JobUpdate:
        credential = args.credential().require_agent_key()
        result = await self._client.patch(
            self._path(args.job_id, "stop-stream"),
            credential=credential,
            model=JobUpdate,
        )
        logger.info("streams.stopped", job_id=args.job_id, total_paid=str(result.total_paid))
        return result
