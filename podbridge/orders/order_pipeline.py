# podbridge/orders/order_pipeline.py
# =============================
# Shopify order -> Printful order
#   per line item: SKU decode -> variant -> artwork -> file upload (cached)
#   then one submission for every item that resolved
# =============================

import logging
from typing import Any, Dict, List

from podbridge.artwork.resolver import ArtworkAsset, resolve_line_item_artwork
from podbridge.catalog.sku import decode_sku
from podbridge.context import BridgeContext
from podbridge.errors import BridgeError, UpstreamFailure
from podbridge.orders.order_builder import (
    build_external_id,
    build_item,
    build_printful_order,
    build_recipient,
    parse_quantity,
)
from podbridge.orders.order_submit import submit_order
from podbridge.printful.printful_api import register_file
from podbridge.shopify.shopify_api import get_product_handle

logger = logging.getLogger("uvicorn.error")


def _sku_label(li: Dict[str, Any]) -> str:
    return li.get("sku") or f"(no sku: {li.get('title') or li.get('id')})"


async def _upload(ctx: BridgeContext, asset: ArtworkAsset):
    async def uploader(url: str):
        return await register_file(ctx.printful, url)

    asset.remote_file_id = await ctx.upload_cache.get_or_upload(asset.source_url, uploader)


async def resolve_line_item(ctx: BridgeContext, li: Dict[str, Any]) -> Dict[str, Any]:
    """One Printful item for a Shopify line item; raises BridgeError when it cannot be built."""
    settings = ctx.settings
    sku = decode_sku(li.get("sku"))
    variant_id = ctx.catalog.resolve(sku)
    quantity = parse_quantity(li.get("quantity"))

    handle = await get_product_handle(ctx.shopify, li.get("product_id"))
    artwork = await resolve_line_item_artwork(
        http=ctx.http,
        art_base=settings.art_base_url,
        handle=handle,
        template_ref=sku.template_ref,
        placements=settings.placements,
        properties=li.get("properties"),
        number_property_names=settings.number_property_names,
        uploader=ctx.uploader,
        composite_enabled=settings.composite_enabled,
        composite_prefix=settings.composite_s3_prefix,
    )

    await _upload(ctx, artwork.default)
    uploaded = []
    for asset in artwork.placements:
        try:
            await _upload(ctx, asset)
        except UpstreamFailure as e:
            logger.warning("[shopify-webhook] placement %s skipped for %s: %s", asset.placement, li.get("sku"), e)
            continue
        uploaded.append(asset)
    artwork.placements = uploaded

    logger.info(
        "[shopify-webhook] sku=%s variantKey=%s template=%s file=%s (%s) placements=%s",
        li.get("sku"), sku.variant_key, sku.template_ref,
        artwork.default.source_url, artwork.default.kind,
        [a.placement for a in artwork.placements],
    )
    return build_item(variant_id, quantity, artwork)


# -----------------------------------------------------
# Public entry points
# -----------------------------------------------------
async def process_order(ctx: BridgeContext, order: Dict[str, Any]) -> Dict[str, Any]:
    settings = ctx.settings
    if not settings.printful_store_id:
        logger.error("[printful] Missing PRINTFUL_STORE_ID env")
        return {"ok": False, "reason": "missing_store_id_env"}

    items: List[Dict[str, Any]] = []
    missing: List[str] = []
    missing_details: List[Dict[str, Any]] = []

    for li in order.get("line_items") or []:
        try:
            items.append(await resolve_line_item(ctx, li))
        except BridgeError as e:
            logger.error("[shopify-webhook] line item %s excluded: %s", _sku_label(li), e)
            missing.append(_sku_label(li))
            missing_details.append({"sku": _sku_label(li), **e.to_dict()})

    if not items:
        logger.error("[shopify-webhook] No valid items for order %s. Missing SKUs: %s", order.get("id"), missing)
        return {"ok": False, "reason": "no_valid_items", "missing": missing, "missing_details": missing_details}

    try:
        external_id = build_external_id(order, settings.external_id_prefix, settings.external_id_source)
    except ValueError as e:
        return {"ok": False, "reason": "missing_order_id", "error": str(e), "missing": missing}

    printful_order = build_printful_order(
        recipient=build_recipient(order),
        items=items,
        external_id=external_id,
        shipping=settings.shipping_method,
    )

    result = await submit_order(ctx.printful, printful_order, settings.submit_mode)
    result["missing"] = missing
    if missing_details:
        result["missing_details"] = missing_details
    return result


def preview_order(ctx: BridgeContext, order: Dict[str, Any]) -> Dict[str, Any]:
    """Dry run: SKU decode + variant lookup only. Nothing is uploaded or sent to Printful."""
    settings = ctx.settings
    mapped, missing = [], []
    for li in order.get("line_items") or []:
        try:
            sku = decode_sku(li.get("sku"))
            variant_id = ctx.catalog.resolve(sku)
            quantity = parse_quantity(li.get("quantity"))
        except BridgeError as e:
            missing.append(_sku_label(li))
            logger.info("[preview] %s not mapped: %s", _sku_label(li), e)
            continue
        mapped.append({
            "variant_id": variant_id,
            "quantity": quantity,
            "_sku": li.get("sku"),
            "_variant_key": sku.variant_key,
            "_template_ref": sku.template_ref,
        })

    try:
        external_id = build_external_id(order, settings.external_id_prefix, settings.external_id_source)
    except ValueError:
        external_id = None

    payload = build_printful_order(
        recipient=build_recipient(order),
        items=[{k: v for k, v in m.items() if not k.startswith("_")} for m in mapped],
        external_id=external_id,
        shipping=settings.shipping_method,
    )
    return {
        "ok": True,
        "note": "Dry-run preview. Nothing was sent to Printful.",
        "mapped_items": mapped,
        "missing_skus": missing,
        "printful_payload": payload,
        "env": {
            "has_token": bool(settings.printful_api_token),
            "store_id": settings.printful_store_id or None,
            "submit_mode": settings.submit_mode,
        },
    }
