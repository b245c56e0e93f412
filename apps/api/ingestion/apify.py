"""
Apify actor-run client used for Instagram and TikTok scraping.

An actor run is a long-running remote job: start it, poll its status at a
fixed interval for a bounded number of attempts, then read the dataset items.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx


PENDING_RUN_STATUSES = ("READY", "RUNNING")
SUCCEEDED_RUN_STATUS = "SUCCEEDED"


class ApifyError(RuntimeError):
    """Raised when an actor run cannot produce results."""


class ApifyRateLimitError(ApifyError):
    """Raised when Apify answers with HTTP 429."""


class ApifyRunTimeoutError(ApifyError):
    """Raised when an actor run is still pending after the last poll."""


class ApifyClient:
    """Minimal async client for the Apify v2 actor-run API."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://api.apify.com",
        poll_interval_seconds: float = 2.0,
        max_poll_attempts: int = 30,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            token: Apify API token
            base_url: API root, overridable for tests
            poll_interval_seconds: fixed delay between status polls
            max_poll_attempts: polls before the run counts as timed out
            timeout_seconds: per-request HTTP timeout
            transport: optional httpx transport (tests use httpx.MockTransport)
            sleep: awaitable used between polls
        """
        if not token:
            raise ValueError("Apify token must be provided")
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.poll_interval_seconds = max(float(poll_interval_seconds), 0.0)
        self.max_poll_attempts = max(int(max_poll_attempts), 1)
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._sleep = sleep

    async def run_actor(self, actor_id: str, run_input: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Start an actor run, wait for it to succeed and return its dataset items."""
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            transport=self._transport,
            params={"token": self.token},
        ) as client:
            run = await self._start_run(client, actor_id, run_input)
            run_id = str(run.get("id") or "")
            if not run_id:
                raise ApifyError("Apify did not return a run id")

            status = await self._wait_for_run(client, run_id, str(run.get("status") or "READY"))
            if status != SUCCEEDED_RUN_STATUS:
                raise ApifyError(f"Actor run failed with status: {status}")

            response = await client.get(f"/v2/actor-runs/{run_id}/dataset/items")
            items = self._json(response, "Failed to fetch actor results")
            if not isinstance(items, list):
                raise ApifyError("Malformed actor results payload")
            return [item for item in items if isinstance(item, dict)]

    async def _start_run(
        self,
        client: httpx.AsyncClient,
        actor_id: str,
        run_input: Dict[str, Any],
    ) -> Dict[str, Any]:
        response = await client.post(f"/v2/acts/{actor_id}/runs", json=run_input)
        payload = self._json(response, "Apify API error")
        run = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(run, dict):
            raise ApifyError("Malformed actor run payload")
        return run

    async def _wait_for_run(self, client: httpx.AsyncClient, run_id: str, status: str) -> str:
        attempts = 0
        while status in PENDING_RUN_STATUSES:
            if attempts >= self.max_poll_attempts:
                raise ApifyRunTimeoutError(
                    f"Actor run {run_id} still {status} after {self.max_poll_attempts} status checks"
                )
            await self._sleep(self.poll_interval_seconds)
            response = await client.get(f"/v2/actor-runs/{run_id}")
            payload = self._json(response, "Failed to check actor run status")
            data = payload.get("data") if isinstance(payload, dict) else None
            status = str((data or {}).get("status") or "")
            attempts += 1
        return status

    @staticmethod
    def _json(response: httpx.Response, message: str) -> Any:
        if response.status_code == 429:
            raise ApifyRateLimitError("Apify rate limit exceeded")
        if response.status_code >= 400:
            raise ApifyError(f"{message}: {response.status_code} - {response.text[:200]}")
        try:
            return response.json()
        except ValueError as exc:
            raise ApifyError(f"{message}: invalid JSON") from exc
