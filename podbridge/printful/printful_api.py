# podbridge/printful/printful_api.py
# =============================
# Printful REST Helpers (ASYNC)
# Bearer token + X-PF-Store-Id on every call.
# =============================

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List

import httpx

from podbridge.config import Settings
from podbridge.errors import UpstreamFailure
from podbridge.utils.http_utils import send

logger = logging.getLogger(__name__)


def printful_headers(settings: Settings) -> Dict[str, str]:
    headers = {
        "Authorization": f"Bearer {settings.printful_api_token}",
        "Content-Type": "application/json",
    }
    if settings.printful_store_id:
        headers["X-PF-Store-Id"] = str(settings.printful_store_id)
    return headers


@asynccontextmanager
async def get_client(settings: Settings, timeout: float = 30.0):
    async with httpx.AsyncClient(
        base_url=settings.printful_base_url,
        headers=printful_headers(settings),
        timeout=timeout,
    ) as client:
        yield client


def _result(body: Any) -> Any:
    return body.get("result") if isinstance(body, dict) else None


# ------------------------
# Files
# ------------------------
async def register_file(client: httpx.AsyncClient, url: str) -> Any:
    """Hand Printful a public URL; returns the new file id."""
    body = await send(client, "POST", "/files", "Printful file registration", json={"url": url})
    file_id = (_result(body) or {}).get("id")
    if file_id is None:
        raise UpstreamFailure("Printful file registration returned no id", payload=body)
    logger.info("[printful] Registered file %s -> %s", url, file_id)
    return file_id


# ------------------------
# Orders
# ------------------------
async def create_order(client: httpx.AsyncClient, order: Dict[str, Any], confirm: bool = False) -> Dict[str, Any]:
    params = {"confirm": "true"} if confirm else None
    body = await send(client, "POST", "/orders", "Printful order create", json=order, params=params)
    return _result(body) or {}


async def confirm_order(client: httpx.AsyncClient, order_id) -> Dict[str, Any]:
    body = await send(client, "POST", f"/orders/{order_id}/confirm", "Printful order confirm")
    return _result(body) or {}


# ------------------------
# Webhooks
# ------------------------
async def register_webhook(client: httpx.AsyncClient, url: str, types: List[str]) -> Any:
    payload = {"url": url, "types": list(types)}
    body = await send(client, "POST", "/webhooks", "Printful webhook registration", json=payload)
    return _result(body)
