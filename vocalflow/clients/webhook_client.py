"""
Webhook Client - Result Delivery

POSTs the finished interview results to the flow's destination URL.
One attempt, no retry. The POST runs as its own task that is shielded
from the caller, so tearing the caller down does not abort a request
that is already on its way.
"""

import asyncio
from typing import Optional, Set

import aiohttp
from loguru import logger

from config import config
from vocalflow.schema import SubmissionPayload
from vocalflow.utils.error_handlers import SubmissionError


class WebhookClient:

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else config.webhook.timeout
        self.session: Optional[aiohttp.ClientSession] = None
        self._inflight: Set[asyncio.Task] = set()

        # Statistics
        self.total_requests = 0

    async def _ensure_session(self):
        """Make sure an HTTP session exists"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))

    async def submit(self, url: str, payload: SubmissionPayload) -> int:
        """
        Send the payload. Returns the HTTP status on 2xx.

        Raises:
            SubmissionError: non-2xx status, network error or timeout
        """
        await self._ensure_session()
        self.total_requests += 1

        task = asyncio.create_task(self._post(url, payload.to_json_dict()))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return await asyncio.shield(task)

    async def _post(self, url: str, body: dict) -> int:
        logger.info(f"Submitting results to webhook: {url}")
        try:
            async with self.session.post(url, json=body, headers={"Content-Type": "application/json"}) as response:
                if not 200 <= response.status < 300:
                    error_text = await response.text()
                    raise SubmissionError(
                        f"Webhook responded with status: {response.status} {error_text[:200]}".strip(),
                        status=response.status,
                    )
                logger.success("Webhook submission successful")
                return response.status
        except aiohttp.ClientError as e:
            raise SubmissionError(f"Webhook request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise SubmissionError(f"Webhook request timed out ({self.timeout}s)") from e

    async def close(self):
        """Wait for in-flight submissions, then close the HTTP session."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        if self.session and not self.session.closed:
            await self.session.close()
