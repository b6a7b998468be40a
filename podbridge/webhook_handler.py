# podbridge/webhook_handler.py
# ────────────────────────────────────────────
# Inbound webhooks: raw body -> signature -> JSON -> pipeline
# ────────────────────────────────────────────

import json
import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException

from podbridge.context import BridgeContext
from podbridge.fulfillment.shipment_events import handle_shipment_event
from podbridge.orders.order_pipeline import preview_order, process_order
from podbridge.security.signatures import verify_request

logger = logging.getLogger("uvicorn.error")


def authenticate(
    ctx: BridgeContext,
    scheme: str,
    body: bytes,
    headers: Mapping[str, str],
    query_token: Optional[str],
):
    settings = ctx.settings
    secret = settings.shopify_webhook_secret if scheme == "shopify" else settings.printful_webhook_secret
    check = verify_request(
        scheme,
        body,
        headers,
        secret,
        query_token=query_token,
        debug_token=settings.debug_token,
        bypass_allowed=settings.bypass_allowed,
    )
    if not check.ok:
        logger.error("[%s-webhook] invalid signature: %s %s", scheme, check.reason, check.meta)
        raise HTTPException(status_code=401, detail={"ok": False, "reason": "Invalid signature", "meta": check.meta})
    return check


def parse_body(body: bytes) -> Dict[str, Any]:
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        logger.error("[webhook] Invalid JSON: %s", e)
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON")
    return data


async def handle_order_webhook(ctx, body: bytes, headers, query_token=None) -> dict:
    authenticate(ctx, "shopify", body, headers, query_token)
    order = parse_body(body)
    logger.info("[shopify-webhook] order %s (%s line items)", order.get("id"), len(order.get("line_items") or []))
    return await process_order(ctx, order)


async def handle_shipment_webhook(ctx, body: bytes, headers, query_token=None) -> dict:
    authenticate(ctx, "printful", body, headers, query_token)
    return await handle_shipment_event(ctx, parse_body(body))


async def handle_preview(ctx, body: bytes, headers, query_token=None) -> dict:
    authenticate(ctx, "shopify", body, headers, query_token)
    return preview_order(ctx, parse_body(body))
