from __future__ import annotations
import asyncio
from typing import Any, Dict, List, Optional
import httpx
from loguru import logger

from .config import client_settings


class ApiError(Exception):
    kind = "api"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(ApiError):
    """The request never produced a response (timeout, refused, dropped)."""
    kind = "network"

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original


class HttpError(ApiError):
    kind = "http"

    def __init__(self, status: int, message: str, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body


def _error_message(status: int, body: Any) -> str:
    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, dict):
            detail = detail.get("error")
        msg = body.get("error") or body.get("message") or detail
        if msg:
            return str(msg)
    return f"HTTP {status}"


class ApiClient:
    """
    Async HTTP client for the HabitSync API.

    Auth is the raw Telegram initData string, sent on every request.
    Transport failures are retried `retries` extra times; HTTP error
    responses are never retried.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        init_data: str = "",
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or client_settings.API_BASE_URL).rstrip("/")
        self.init_data = init_data
        self.retries = client_settings.NETWORK_RETRY if retries is None else retries
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or client_settings.API_TIMEOUT_SECONDS,
            transport=transport,
        )

    def set_init_data(self, raw: Optional[str]) -> None:
        self.init_data = raw or ""

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "X-TG-INIT-DATA": self.init_data,
            "Authorization": self.init_data,
            "Cache-Control": "no-store",
        }

    async def request(self, method: str, path: str, json: Any = None, params: Optional[dict] = None) -> Any:
        attempt = 0
        while True:
            try:
                resp = await self._client.request(method, path, json=json, params=params, headers=self.headers)
                break
            except httpx.TransportError as e:
                if attempt < self.retries:
                    attempt += 1
                    logger.warning("{} {} failed ({}), retry {}/{}", method, path, e, attempt, self.retries)
                    continue
                raise NetworkError(str(e) or "Network error", original=e) from e

        if resp.is_error:
            try:
                body = resp.json()
            except ValueError:
                body = None
            raise HttpError(resp.status_code, _error_message(resp.status_code, body), body)

        content_type = resp.headers.get("content-type", "")
        if "application/json" in content_type:
            return resp.json()
        return resp.text

    async def aclose(self) -> None:
        await self._client.aclose()

    # ---------- domain endpoints ----------

    async def load_bootstrap(self) -> Any:
        return await self.request("GET", "/bootstrap")

    async def send_checkin(self, habit_id: int, status: str) -> Any:
        return await self.request("POST", "/check-in", json={"habitId": habit_id, "status": status})

    async def send_undo(self, habit_id: int) -> Any:
        return await self.request("POST", "/check-in/undo", json={"habitId": habit_id})

    async def send_habit_intent(self, habit_id: int, intent: str) -> Any:
        if intent == "undo":
            return await self.send_undo(habit_id)
        return await self.send_checkin(habit_id, intent)

    async def create_habit(self, data: dict) -> Any:
        return await self.request("POST", "/habits", json=data)

    async def update_habit(self, habit_id: int, data: dict) -> Any:
        return await self.request("PUT", f"/habits/{habit_id}", json=data)

    async def delete_habit(self, habit_id: int) -> Any:
        return await self.request("DELETE", f"/habits/{habit_id}")

    async def reorder_habits(self, order: List[dict]) -> bool:
        try:
            await self.request("POST", "/habits/reorder", json={"order": order})
            return True
        except HttpError as e:
            if e.status != 404:
                raise

        # Older servers: one update per habit, individual failures tolerated
        logger.info("/habits/reorder not found, updating habits one by one")
        results = await asyncio.gather(
            *(self.update_habit(item["id"], {"sort_order": item["sort_order"]}) for item in order),
            return_exceptions=True,
        )
        for item, result in zip(order, results):
            if isinstance(result, ApiError):
                logger.warning("Reorder fallback failed for habit {}: {}", item["id"], result)
            elif isinstance(result, BaseException):
                raise result
        return True

    async def load_stats(self, range_days: int = 7) -> Any:
        return await self.request("GET", "/stats", params={"range": range_days})

    async def load_heatmap(self, days: int = 90) -> Any:
        return await self.request("GET", "/stats/heatmap", params={"days": days})

    async def load_weekly_summary(self) -> Any:
        return await self.request("GET", "/stats/weekly-summary")

    async def save_settings(self, data: dict) -> Any:
        return await self.request("POST", "/settings", json=data)
