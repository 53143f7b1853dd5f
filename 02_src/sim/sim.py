"""SIM implementation - scripted two-party scenario against the HTTP API."""

import asyncio
import random
from typing import Any, Protocol

import httpx

from duet.logging_config import get_logger
from duet.tracker import ITracker

logger = get_logger(__name__)

# 1x1 transparent PNG, enough to exercise the drawing upload path
_DOT_PNG = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class ISim(Protocol):
    """Generate test traffic for two virtual participants."""

    async def start(self) -> None:
        """Start the scripted scenario."""
        ...

    async def stop(self) -> None:
        """Stop the scenario."""
        ...


class Sim:
    """SIM with a scripted conversation between two participants."""

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        tracker: ITracker | None = None,
        min_delay: float = 1.0,
        max_delay: float = 3.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_url = api_url
        self._tracker = tracker
        self._min_delay = min_delay
        self._max_delay = max_delay
        self._running = False
        self._task: asyncio.Task | None = None
        self._client = client
        self._owns_client = client is None

        self.users = [
            {"identity": "sim_alice", "email": "alice@example.com", "display_name": "Alice"},
            {"identity": "sim_bob", "email": "bob@example.com", "display_name": "Bob"},
        ]

    def set_tracker(self, tracker: ITracker) -> None:
        """Inject tracker for SIM trace events."""
        self._tracker = tracker

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scripted scenario in the background."""
        if self._running:
            return

        self._running = True
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._api_url, timeout=10.0)

        self._task = asyncio.create_task(self._run_scenario())

    async def stop(self) -> None:
        """Stop scenario."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def wait(self) -> None:
        """Wait for the scenario to finish."""
        if self._task:
            await self._task

    async def _run_scenario(self) -> None:
        """Alice and Bob chat, like, draw and keep a checklist."""
        alice, bob = (user["identity"] for user in self.users)
        completed = False

        try:
            await self._track("sim_started", {"users": [alice, bob]})

            for user in self.users:
                await self._call(user["identity"], "POST", "/api/sessions", json=user)

            hi = await self._send(alice, "hi")
            await self._pause()
            hello = await self._send(bob, "hello", reply_to=hi)
            await self._pause()

            await self._call(alice, "POST", f"/api/messages/{hello}/like")
            await self._call(
                bob,
                "POST",
                "/api/messages/drawings",
                json={"data_url": _DOT_PNG, "width": 1, "height": 1, "reply_to": hi},
            )
            await self._pause()

            created = await self._call(
                alice,
                "POST",
                "/api/lists",
                json={"name": "Groceries", "visibility": "private", "kind": "checklist"},
            )
            list_id = created["id"] if created else None
            if list_id and hello:
                await self._call(
                    alice, "POST", f"/api/lists/{list_id}/items", json={"message_id": hello}
                )
                items = await self._call(alice, "GET", f"/api/lists/{list_id}/items") or []
                for item in items:
                    await self._call(alice, "POST", f"/api/list-items/{item['id']}/toggle")
            completed = True

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("SIM scenario error: %s", e)
        finally:
            self._running = False
            await self._track("sim_completed", {"users": [alice, bob], "completed": completed})

    async def _send(self, identity: str, text: str, reply_to: str | None = None) -> str | None:
        data = await self._call(
            identity, "POST", "/api/messages", json={"text": text, "reply_to": reply_to}
        )
        message = (data or {}).get("message")
        if message:
            logger.info("SIM: %s -> %s", identity, text)
            return message["id"]
        return None

    async def _call(self, identity: str, method: str, path: str, **kwargs) -> Any:
        """Call the API as ``identity``; returns decoded JSON or None on failure."""
        if not self._client:
            return None

        try:
            response = await self._client.request(
                method, path, headers={"X-Identity": identity}, **kwargs
            )
        except httpx.HTTPError as e:
            logger.error("SIM: %s %s failed: %s", method, path, e)
            return None

        if response.status_code != 200:
            logger.error("SIM: %s %s -> %s", method, path, response.status_code)
            return None
        return response.json()

    async def _pause(self) -> None:
        if self._max_delay > 0:
            await asyncio.sleep(random.uniform(self._min_delay, self._max_delay))

    async def _track(self, event_type: str, data: dict) -> None:
        if self._tracker:
            await self._tracker.track(event_type, "sim", data)
