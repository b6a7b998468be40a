# =============================
# Global Config
# =============================

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

VARIANT_MAP_FILE = BASE_DIR / "catalog" / "variant_map.json"
UPLOAD_CACHE_FILE = BASE_DIR / "mapping" / "upload_cache.json"

# Ordered: the provider receives placement files in this order
PLACEMENTS = ("front", "back", "front_large", "back_large", "left_sleeve", "right_sleeve")

DEFAULT_NUMBER_PROPERTIES = ("Number", "Jersey Number", "Player Number")
SUBMIT_MODES = ("two_phase", "immediate", "draft")


def _strip_domain(raw: Optional[str]) -> str:
    value = (raw or "").strip()
    for proto in ("https://", "http://"):
        if value.lower().startswith(proto):
            value = value[len(proto):]
    return value.rstrip("/")


def _flag(raw: Optional[str], default: bool) -> bool:
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _csv(raw: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if not raw:
        return default
    return tuple(p.strip() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class Settings:
    # ----- Shopify (order source) -----
    shopify_store_domain: str = ""
    shopify_admin_token: str = ""
    shopify_api_version: str = "2025-01"
    shopify_webhook_secret: str = ""
    shopify_location_id: Optional[int] = None

    # ----- Printful (fulfillment provider) -----
    printful_api_token: str = ""
    printful_store_id: str = ""
    printful_webhook_secret: str = ""
    printful_base_url: str = "https://api.printful.com"
    shipping_method: str = "STANDARD"
    submit_mode: str = "two_phase"

    # ----- Order identity -----
    external_id_prefix: str = "shopify-"
    external_id_source: str = "id"
    alt_order_prefix: str = "NBHL"

    # ----- Artwork -----
    art_base_url: str = ""
    placements: Tuple[str, ...] = PLACEMENTS
    composite_enabled: bool = True
    number_property_names: Tuple[str, ...] = DEFAULT_NUMBER_PROPERTIES
    composite_s3_bucket: str = ""
    composite_s3_region: str = ""
    composite_s3_endpoint: str = ""
    composite_s3_prefix: str = ""
    composite_public_base_url: str = ""
    upload_proxy_url: str = ""
    upload_proxy_token: str = ""

    # ----- Storage / misc -----
    upload_cache_file: Path = field(default=UPLOAD_CACHE_FILE)
    variant_map_file: Path = field(default=VARIANT_MAP_FILE)
    debug_token: str = ""
    environment: str = "production"
    app_base_url: str = ""

    @property
    def shopify_admin_url(self) -> str:
        return f"https://{self.shopify_store_domain}/admin/api/{self.shopify_api_version}"

    @property
    def bypass_allowed(self) -> bool:
        """The diagnostic token only works outside production and only when set."""
        return bool(self.debug_token) and self.environment.lower() != "production"

    @classmethod
    def from_env(cls) -> "Settings":
        location = os.getenv("SHOPIFY_LOCATION_ID")
        submit_mode = (os.getenv("PRINTFUL_SUBMIT_MODE") or "two_phase").strip().lower()
        if submit_mode not in SUBMIT_MODES:
            raise RuntimeError(
                f"PRINTFUL_SUBMIT_MODE must be one of {', '.join(SUBMIT_MODES)} (got {submit_mode!r})"
            )
        id_source = (os.getenv("EXTERNAL_ID_SOURCE") or "id").strip().lower()
        if id_source not in ("id", "order_number"):
            raise RuntimeError("EXTERNAL_ID_SOURCE must be 'id' or 'order_number'")

        return cls(
            shopify_store_domain=_strip_domain(os.getenv("SHOPIFY_STORE_DOMAIN")),
            shopify_admin_token=os.getenv("SHOPIFY_ADMIN_TOKEN", ""),
            shopify_api_version=os.getenv("SHOPIFY_API_VERSION") or "2025-01",
            shopify_webhook_secret=os.getenv("SHOPIFY_WEBHOOK_SECRET", ""),
            shopify_location_id=int(location) if location else None,
            printful_api_token=os.getenv("PRINTFUL_API_TOKEN") or os.getenv("PRINTFUL_API_KEY", ""),
            printful_store_id=os.getenv("PRINTFUL_STORE_ID", ""),
            printful_webhook_secret=os.getenv("PRINTFUL_WEBHOOK_SECRET", ""),
            printful_base_url=(os.getenv("PRINTFUL_BASE_URL") or "https://api.printful.com").rstrip("/"),
            shipping_method=os.getenv("PRINTFUL_SHIPPING") or "STANDARD",
            submit_mode=submit_mode,
            external_id_prefix=os.getenv("EXTERNAL_ID_PREFIX") or "shopify-",
            external_id_source=id_source,
            alt_order_prefix=os.getenv("ALT_ORDER_PREFIX") or "NBHL",
            art_base_url=(os.getenv("ART_BASE_URL") or "").rstrip("/"),
            composite_enabled=_flag(os.getenv("COMPOSITE_ENABLED"), True),
            number_property_names=_csv(os.getenv("NUMBER_PROPERTY_NAMES"), DEFAULT_NUMBER_PROPERTIES),
            composite_s3_bucket=os.getenv("COMPOSITE_S3_BUCKET", ""),
            composite_s3_region=os.getenv("COMPOSITE_S3_REGION", ""),
            composite_s3_endpoint=os.getenv("COMPOSITE_S3_ENDPOINT", ""),
            composite_s3_prefix=(os.getenv("COMPOSITE_S3_PREFIX") or "").strip("/"),
            composite_public_base_url=(os.getenv("COMPOSITE_PUBLIC_BASE_URL") or "").rstrip("/"),
            upload_proxy_url=os.getenv("UPLOAD_PROXY_URL", ""),
            upload_proxy_token=os.getenv("UPLOAD_PROXY_TOKEN", ""),
            upload_cache_file=Path(os.getenv("UPLOAD_CACHE_FILE") or UPLOAD_CACHE_FILE),
            variant_map_file=Path(os.getenv("VARIANT_MAP_FILE") or VARIANT_MAP_FILE),
            debug_token=os.getenv("DEBUG_TOKEN", ""),
            environment=os.getenv("BRIDGE_ENV") or "production",
            app_base_url=(os.getenv("APP_BASE_URL") or "").rstrip("/"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
