# podbridge/context.py
# Everything one webhook request needs, opened per request.

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from podbridge.artwork.storage import build_uploader
from podbridge.catalog.variant_catalog import VariantCatalog
from podbridge.config import Settings
from podbridge.mapping.upload_cache import UploadCache
from podbridge.printful import printful_api
from podbridge.shopify import shopify_api


@dataclass
class BridgeContext:
    settings: Settings
    catalog: VariantCatalog
    upload_cache: UploadCache
    shopify: httpx.AsyncClient
    printful: httpx.AsyncClient
    http: httpx.AsyncClient  # artwork CDN checks / downloads
    uploader: Optional[Any] = None


@asynccontextmanager
async def open_context(settings: Settings, catalog: VariantCatalog, upload_cache: UploadCache):
    async with shopify_api.get_client(settings) as shopify, printful_api.get_client(settings) as printful, \
            httpx.AsyncClient(timeout=60.0) as http:
        yield BridgeContext(
            settings=settings,
            catalog=catalog,
            upload_cache=upload_cache,
            shopify=shopify,
            printful=printful,
            http=http,
            uploader=build_uploader(settings),
        )
