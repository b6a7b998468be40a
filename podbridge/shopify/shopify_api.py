# podbridge/shopify/shopify_api.py
# =============================
# Shopify Admin REST Helpers (ASYNC)
# =============================

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import httpx

from podbridge.config import Settings
from podbridge.utils.http_utils import send

logger = logging.getLogger(__name__)

DEFAULT_CARRIER = "Carrier"


@asynccontextmanager
async def get_client(settings: Settings, timeout: float = 20.0):
    async with httpx.AsyncClient(
        base_url=settings.shopify_admin_url,
        headers={
            "X-Shopify-Access-Token": settings.shopify_admin_token,
            "Content-Type": "application/json",
        },
        timeout=timeout,
    ) as client:
        yield client


# ------------------------
# Products
# ------------------------
async def get_product_handle(client: httpx.AsyncClient, product_id) -> str:
    body = await send(client, "GET", f"/products/{product_id}.json", f"Shopify get product {product_id}")
    return ((body or {}).get("product") or {}).get("handle") or ""


# ------------------------
# Orders
# ------------------------
async def get_order(client: httpx.AsyncClient, order_id) -> Dict[str, Any]:
    body = await send(client, "GET", f"/orders/{order_id}.json", f"Shopify get order {order_id}")
    return (body or {}).get("order") or {}


async def find_order_id_by_name(client: httpx.AsyncClient, name: str) -> Optional[int]:
    """Look an order up by its display name (e.g. "#1234"); None if nothing matches."""
    if not name:
        return None
    body = await send(
        client,
        "GET",
        "/orders.json",
        "Shopify order lookup by name",
        params={"status": "any", "name": name},
    )
    orders = (body or {}).get("orders") or []
    return orders[0].get("id") if orders else None


async def create_fulfillment(
    client: httpx.AsyncClient,
    order_id,
    line_item_ids: List[int],
    tracking: Dict[str, str],
    location_id: Optional[int] = None,
) -> Dict[str, Any]:
    fulfillment: Dict[str, Any] = {
        "tracking_company": tracking.get("company") or DEFAULT_CARRIER,
        "tracking_number": tracking.get("number") or "",
        "notify_customer": True,
        "line_items": [{"id": i} for i in line_item_ids],
    }
    if tracking.get("url"):
        fulfillment["tracking_urls"] = [tracking["url"]]
    if location_id is not None:
        fulfillment["location_id"] = location_id

    body = await send(
        client,
        "POST",
        f"/orders/{order_id}/fulfillments.json",
        f"Shopify fulfillment for order {order_id}",
        json={"fulfillment": fulfillment},
    )
    return (body or {}).get("fulfillment") or body or {}


async def mark_order_status(client: httpx.AsyncClient, order_id, status: str) -> Dict[str, Any]:
    body = await send(
        client,
        "PUT",
        f"/orders/{order_id}.json",
        f"Shopify mark {status} for order {order_id}",
        json={"order": {"id": order_id, "fulfillment_status": status}},
    )
    logger.info("[shopify] Order %s marked %s", order_id, status)
    return (body or {}).get("order") or {}
