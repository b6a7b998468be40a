import asyncio
from typing import Optional

import httpx
import pytest

from podbridge.catalog.variant_catalog import VariantCatalog
from podbridge.config import Settings
from podbridge.context import BridgeContext
from podbridge.mapping.upload_cache import UploadCache
from podbridge.tests.fakes import ART_BASE, SHOP_DOMAIN, Router


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        shopify_store_domain=SHOP_DOMAIN,
        shopify_admin_token="shpat_test",
        shopify_webhook_secret="shh",
        shopify_location_id=777,
        printful_api_token="pf_test",
        printful_store_id="123",
        printful_webhook_secret="pf-secret",
        art_base_url=ART_BASE,
        upload_cache_file=tmp_path / "upload_cache.json",
        environment="test",
    )


@pytest.fixture
def catalog() -> VariantCatalog:
    return VariantCatalog({
        "BC3001_WHITE_M": 24353,
        "BC3001_LIGHT_BLUE_L": 24999,
        "G18500_BLACK_XL": 5533,
    })


@pytest.fixture
def routers():
    return {"shopify": Router(), "printful": Router(), "cdn": Router()}


@pytest.fixture
def make_ctx(settings, catalog, routers):
    clients = []

    def _make(settings_override: Optional[Settings] = None, uploader=None) -> BridgeContext:
        s = settings_override or settings
        shopify = httpx.AsyncClient(base_url=s.shopify_admin_url, transport=httpx.MockTransport(routers["shopify"]))
        printful = httpx.AsyncClient(base_url=s.printful_base_url, transport=httpx.MockTransport(routers["printful"]))
        http = httpx.AsyncClient(transport=httpx.MockTransport(routers["cdn"]))
        clients.extend([shopify, printful, http])
        return BridgeContext(
            settings=s,
            catalog=catalog,
            upload_cache=UploadCache(s.upload_cache_file),
            shopify=shopify,
            printful=printful,
            http=http,
            uploader=uploader,
        )

    yield _make

    async def _close():
        for c in clients:
            await c.aclose()

    asyncio.run(_close())
