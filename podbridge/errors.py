# podbridge/errors.py
# ────────────────────────────────────────────
# Failure taxonomy shared by the order and shipment flows
# ────────────────────────────────────────────

from typing import Any, Optional


class BridgeError(Exception):
    """Base class for every failure raised inside the bridge."""

    reason = "bridge_error"

    def to_dict(self) -> dict:
        return {"reason": self.reason, "error": str(self)}


class AuthenticationFailure(BridgeError):
    reason = "invalid_signature"


class ValidationFailure(BridgeError):
    reason = "invalid_payload"


class SkuDecodeError(ValidationFailure):
    reason = "bad_sku"

    def __init__(self, sku: str, detail: str):
        self.sku = sku
        super().__init__(f"Cannot decode SKU {sku!r}: {detail}")


class ResolutionFailure(BridgeError):
    reason = "unresolved"


class VariantNotMapped(ResolutionFailure):
    reason = "no_variant_mapping"

    def __init__(self, variant_key: str):
        self.variant_key = variant_key
        super().__init__(f"No catalog variant for {variant_key}")


class ArtworkError(ResolutionFailure):
    reason = "artwork_failed"


class CacheFailure(BridgeError):
    """The upload cache file could not be read or written."""

    reason = "upload_cache_failed"


class UpstreamFailure(BridgeError):
    """Order source or provider answered with a non-success status (or not at all)."""

    reason = "upstream_failed"

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "reason": self.reason,
            "error": str(self),
            "status_code": self.status_code,
            "body": self.payload,
        }
