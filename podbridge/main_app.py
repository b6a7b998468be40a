# =============================
# ✅ App wiring (.env is read by podbridge.config)
# =============================
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request

from podbridge.catalog.variant_catalog import VariantCatalog, load_variant_catalog
from podbridge.config import get_settings
from podbridge.context import BridgeContext, open_context
from podbridge.errors import UpstreamFailure
from podbridge.mapping.upload_cache import UploadCache
from podbridge.printful.printful_api import register_webhook
from podbridge.security.signatures import bypass_token_matches
from podbridge.webhook_handler import (
    handle_order_webhook,
    handle_preview,
    handle_shipment_webhook,
)

logger = logging.getLogger("uvicorn.error")

PRINTFUL_WEBHOOK_TYPES = [
    "package_shipped",
    "order_fulfilled",
    "order_in_process",
    "order_packaged",
    "order_updated",
]


# =============================
# ✅ Shared, read-only for the life of the process
# =============================
@lru_cache(maxsize=1)
def get_catalog() -> VariantCatalog:
    return load_variant_catalog(get_settings().variant_map_file)


@lru_cache(maxsize=1)
def get_upload_cache() -> UploadCache:
    return UploadCache(get_settings().upload_cache_file)


async def get_context():
    async with open_context(get_settings(), get_catalog(), get_upload_cache()) as ctx:
        yield ctx


# =============================
# ✅ FastAPI App Initialization
# =============================
app = FastAPI(title="Shopify → Printful bridge")


@app.get("/")
def root():
    return {"ok": True, "msg": "Shopify ↔ Printful bridge running"}


@app.get("/ping")
def ping():
    return {"ok": True, "pong": True}


# ======================================
# ✅ Webhooks (public endpoints)
# ======================================
@app.post("/webhooks/shopify")
async def shopify_webhook(request: Request, token: Optional[str] = None, ctx: BridgeContext = Depends(get_context)):
    body = await request.body()
    return await handle_order_webhook(ctx, body, request.headers, token)


@app.post("/webhooks/printful")
async def printful_webhook(request: Request, token: Optional[str] = None, ctx: BridgeContext = Depends(get_context)):
    body = await request.body()
    return await handle_shipment_webhook(ctx, body, request.headers, token)


# ======================================
# ✅ Operator endpoints
# ======================================
@app.post("/debug/preview")
async def debug_preview(request: Request, token: Optional[str] = None, ctx: BridgeContext = Depends(get_context)):
    body = await request.body()
    return await handle_preview(ctx, body, request.headers, token)


@app.post("/admin/printful/register-webhook")
async def register_printful_webhook(token: Optional[str] = None, ctx: BridgeContext = Depends(get_context)):
    settings = ctx.settings
    if not bypass_token_matches(token, settings.debug_token, bool(settings.debug_token)):
        raise HTTPException(status_code=401, detail="Invalid token")
    if not settings.app_base_url:
        raise HTTPException(status_code=400, detail="APP_BASE_URL is not configured")

    url = f"{settings.app_base_url}/webhooks/printful"
    try:
        data = await register_webhook(ctx.printful, url, PRINTFUL_WEBHOOK_TYPES)
    except UpstreamFailure as e:
        logger.error("[printful] webhook registration failed: %s", e)
        raise HTTPException(status_code=e.status_code or 502, detail=e.to_dict())
    return {"ok": True, "url": url, "data": data}
