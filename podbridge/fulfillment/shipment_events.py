# podbridge/fulfillment/shipment_events.py
# =============================
# Printful shipment/status webhooks -> Shopify fulfillments
#   order_in_process / order_packaged  -> in_progress
#   package_shipped / order_fulfilled  -> fulfillments + fulfilled
#   anything else                      -> acknowledged, ignored
# =============================

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from podbridge.context import BridgeContext
from podbridge.errors import UpstreamFailure
from podbridge.shopify.shopify_api import (
    DEFAULT_CARRIER,
    create_fulfillment,
    find_order_id_by_name,
    get_order,
    mark_order_status,
)

logger = logging.getLogger("uvicorn.error")


class EventKind(enum.Enum):
    IN_PROGRESS = "in_progress"
    FULFILLED = "fulfilled"
    UNKNOWN = "unknown"


_EVENT_PATTERNS = (
    (EventKind.FULFILLED, re.compile(r"package_shipped|order_fulfilled", re.IGNORECASE)),
    (EventKind.IN_PROGRESS, re.compile(r"order_in_process|order_packaged", re.IGNORECASE)),
)


def classify_event(event_type: str) -> EventKind:
    for kind, pattern in _EVENT_PATTERNS:
        if pattern.search(event_type or ""):
            return kind
    return EventKind.UNKNOWN


@dataclass
class Shipment:
    tracking_number: str = ""
    tracking_url: str = ""
    carrier: str = DEFAULT_CARRIER

    def tracking(self) -> Dict[str, str]:
        return {"number": self.tracking_number, "url": self.tracking_url, "company": self.carrier}


@dataclass
class ShipmentEvent:
    event_type: str
    kind: EventKind
    external_id: str
    shipments: List[Shipment] = field(default_factory=list)


def _first_of(value) -> str:
    if isinstance(value, (list, tuple)):
        return str(value[0]) if value else ""
    return str(value or "")


def _parse_shipment(raw: Dict[str, Any]) -> Shipment:
    return Shipment(
        tracking_number=str(raw.get("tracking_number") or _first_of(raw.get("tracking_numbers"))),
        tracking_url=str(raw.get("tracking_url") or _first_of(raw.get("tracking_urls"))),
        carrier=str(raw.get("carrier") or raw.get("carrier_code") or raw.get("service") or DEFAULT_CARRIER),
    )


def parse_shipment_event(body: Dict[str, Any]) -> ShipmentEvent:
    """Decode the webhook body once; everything downstream works on ShipmentEvent."""
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    event_type = str(body.get("event") or body.get("type") or "unknown")

    data_order = data.get("order") if isinstance(data.get("order"), dict) else {}
    body_order = body.get("order") if isinstance(body.get("order"), dict) else {}
    external_id = (
        data_order.get("external_id")
        or body_order.get("external_id")
        or data.get("external_id")
        or body.get("external_id")
        or ""
    )

    raw_shipments = data.get("shipments") or body.get("shipments") or []
    single = data.get("shipment") or body.get("shipment")
    if not raw_shipments and isinstance(single, dict):
        raw_shipments = [single]

    return ShipmentEvent(
        event_type=event_type,
        kind=classify_event(event_type),
        external_id=str(external_id).strip(),
        shipments=[_parse_shipment(s) for s in raw_shipments if isinstance(s, dict)],
    )


# ======================================
# ✅ Order identity
# ======================================
async def resolve_order_id(ctx: BridgeContext, external_id: str) -> Optional[str]:
    """
    {prefix}{digits} -> digits, or the order named #{digits} when external ids
    are built from order numbers. Otherwise treat the token as an order name,
    then try the alternate prefix (NBHL1234 -> #1234).
    """
    settings = ctx.settings
    if not external_id:
        return None

    m = re.match(rf"^{re.escape(settings.external_id_prefix)}(\d+)$", external_id, re.IGNORECASE)
    if m and settings.external_id_source != "order_number":
        return m.group(1)
    if m:
        by_number = await find_order_id_by_name(ctx.shopify, f"#{m.group(1)}")
        if by_number:
            return str(by_number)

    by_name = await find_order_id_by_name(ctx.shopify, external_id)
    if by_name:
        return str(by_name)

    if settings.alt_order_prefix:
        m2 = re.match(rf"^{re.escape(settings.alt_order_prefix)}(\d+)$", external_id, re.IGNORECASE)
        if m2:
            by_alt = await find_order_id_by_name(ctx.shopify, f"#{m2.group(1)}")
            if by_alt:
                return str(by_alt)
    return None


def fulfillable_line_item_ids(order: Dict[str, Any]) -> List[int]:
    return [
        li["id"]
        for li in order.get("line_items") or []
        if (li.get("fulfillable_quantity") or 0) > 0 and li.get("id") is not None
    ]


# ======================================
# ✅ Handler
# ======================================
async def handle_shipment_event(ctx: BridgeContext, body: Dict[str, Any]) -> Dict[str, Any]:
    event = parse_shipment_event(body)

    if event.kind is EventKind.UNKNOWN:
        logger.info("[printful-webhook] ignoring event %s", event.event_type)
        return {"ok": True, "ignored": event.event_type}

    try:
        order_id = await resolve_order_id(ctx, event.external_id)
    except UpstreamFailure as e:
        logger.error("[printful-webhook] order lookup for %r failed: %s", event.external_id, e)
        return {**e.to_dict(), "ok": False, "reason": "order_lookup_failed"}

    logger.info("[printful-webhook] event=%s externalId=%s shopifyOrderId=%s", event.event_type, event.external_id, order_id)
    if not order_id:
        return {"ok": True, "ignored": "no_external_id", "external_id": event.external_id}

    if event.kind is EventKind.IN_PROGRESS:
        return await _set_status(ctx, order_id, "in_progress", {"status": "in_progress"})

    try:
        order = await get_order(ctx.shopify, order_id)
    except UpstreamFailure as e:
        logger.error("[printful-webhook] fetch shopify order %s failed: %s", order_id, e)
        return {**e.to_dict(), "ok": False, "reason": "shopify_fetch_failed"}

    line_item_ids = fulfillable_line_item_ids(order)
    if not line_item_ids:
        logger.info("[printful-webhook] order %s has nothing fulfillable", order_id)
        return await _set_status(ctx, order_id, "fulfilled", {"already_fulfilled": True})

    fulfillments = []
    try:
        for shipment in event.shipments:
            fulfillments.append(await create_fulfillment(
                ctx.shopify,
                order_id,
                line_item_ids,
                shipment.tracking(),
                ctx.settings.shopify_location_id,
            ))
    except UpstreamFailure as e:
        logger.error("[printful-webhook] fulfillment create failed for %s: %s", order_id, e)
        return {**e.to_dict(), "ok": False, "reason": "fulfillment_failed", "fulfillments": fulfillments}

    return await _set_status(ctx, order_id, "fulfilled", {"status": "fulfilled", "fulfillments": fulfillments})


async def _set_status(ctx: BridgeContext, order_id, status: str, result: Dict[str, Any]) -> Dict[str, Any]:
    try:
        await mark_order_status(ctx.shopify, order_id, status)
    except UpstreamFailure as e:
        logger.error("[printful-webhook] marking order %s %s failed: %s", order_id, status, e)
        return {**result, **e.to_dict(), "ok": False, "reason": "status_update_failed", "order_id": order_id}
    return {"ok": True, "order_id": order_id, **result}
