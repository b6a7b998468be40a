# podbridge/orders/order_submit.py
# =============================
# Printful order submission
#   two_phase : create draft, then confirm it
#   immediate : single create with confirm=true
#   draft     : create draft only (manual review in the dashboard)
# A duplicate external id means the order already exists: success, not failure.
# =============================

import logging
from typing import Any, Dict

import httpx

from podbridge.errors import UpstreamFailure
from podbridge.printful.printful_api import confirm_order, create_order

logger = logging.getLogger("uvicorn.error")

DUPLICATE_STATUS_CODES = {409}
DUPLICATE_REASON_CODES = {"orderexternalidexists", "duplicateexternalid"}


def _error_texts(payload: Any) -> list:
    if not isinstance(payload, dict):
        return [str(payload or "")]
    texts = [str(payload.get("result") or ""), str(payload.get("message") or "")]
    err = payload.get("error")
    if isinstance(err, dict):
        texts += [str(err.get("reason") or ""), str(err.get("message") or "")]
    elif err:
        texts.append(str(err))
    return texts


def is_duplicate_external_id(exc: UpstreamFailure) -> bool:
    if exc.status_code in DUPLICATE_STATUS_CODES:
        return True
    for text in _error_texts(exc.payload):
        low = text.lower()
        if low.replace(" ", "") in DUPLICATE_REASON_CODES:
            return True
        if "already exists" in low and "external" in low:
            return True
    return False


def _failure(reason: str, exc: UpstreamFailure, **extra) -> Dict[str, Any]:
    return {
        "ok": False,
        "reason": reason,
        "printful_status": exc.status_code,
        "error": exc.payload if exc.payload is not None else str(exc),
        **extra,
    }


async def submit_order(client: httpx.AsyncClient, order: Dict[str, Any], mode: str = "two_phase") -> Dict[str, Any]:
    """
    Never raises for provider failures; returns {"ok": False, ...} so the
    webhook can still answer 200 and the caller decides about redelivery.
    """
    external_id = order.get("external_id")
    confirm_now = mode == "immediate"
    payload = {**order, "confirm": confirm_now}

    try:
        created = await create_order(client, payload, confirm=confirm_now)
    except UpstreamFailure as e:
        if is_duplicate_external_id(e):
            logger.info("[printful] Order %s already exists, treating as success", external_id)
            return {"ok": True, "already_exists": True, "external_id": external_id}
        logger.error("[printful] Order create failed for %s: %s %s", external_id, e.status_code, e.payload)
        return _failure("create_failed", e, external_id=external_id)

    printful_id = created.get("id")
    logger.info("[printful] Order %s created as %s (%s)", printful_id, external_id, created.get("status"))

    if mode != "two_phase":
        return {"ok": True, "external_id": external_id, "printful": created, "confirmed": confirm_now}

    if printful_id is None:
        return {"ok": False, "reason": "draft_without_id", "draft": created, "external_id": external_id}

    try:
        confirmed = await confirm_order(client, printful_id)
    except UpstreamFailure as e:
        logger.error("[printful] Confirm failed for %s: %s %s", printful_id, e.status_code, e.payload)
        return _failure("confirm_failed", e, draft=created, external_id=external_id)

    logger.info("[printful] Order %s confirmed", printful_id)
    return {"ok": True, "external_id": external_id, "draft": created, "printful": confirmed, "confirmed": True}
