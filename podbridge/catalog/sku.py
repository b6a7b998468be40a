# podbridge/catalog/sku.py
# Structured SKUs: TEMPLATE_PRODUCT_COLOR..._SIZE

import re
from dataclasses import dataclass

from podbridge.errors import SkuDecodeError

SKU_DELIMITER = "_"
_NON_KEY_CHARS = re.compile(r"[^A-Z0-9]")


def normalize(segment: str) -> str:
    """Upper-case and drop anything outside A-Z / 0-9. Idempotent."""
    return _NON_KEY_CHARS.sub("", str(segment).upper())


@dataclass(frozen=True)
class StructuredSku:
    template_ref: str
    product_code: str
    color: str
    size: str

    @property
    def variant_key(self) -> str:
        return SKU_DELIMITER.join(normalize(s) for s in (self.product_code, self.color, self.size))


def decode_sku(raw_sku) -> StructuredSku:
    """
    Split on "_" into at least four segments:
      first  -> template reference (kept verbatim, it names artwork files)
      second -> product code
      last   -> size
      middle -> color, re-joined so LIGHT_BLUE survives
    """
    sku = str(raw_sku or "").strip()
    parts = sku.split(SKU_DELIMITER)
    if len(parts) < 4:
        raise SkuDecodeError(sku, f"expected at least 4 '{SKU_DELIMITER}'-separated segments, got {len(parts)}")

    template_ref = parts[0].strip()
    if not template_ref:
        raise SkuDecodeError(sku, "empty template reference")

    product_code, size = parts[1], parts[-1]
    color = SKU_DELIMITER.join(parts[2:-1])
    for name, value in (("product code", product_code), ("color", color), ("size", size)):
        if not normalize(value):
            raise SkuDecodeError(sku, f"empty {name}")

    return StructuredSku(template_ref=template_ref, product_code=product_code, color=color, size=size)
