# podbridge/catalog/variant_catalog.py
# =============================
# PRODUCTCODE_COLOR_SIZE -> Printful catalog variant_id
# Loaded once at startup, read-only afterwards.
# =============================

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Union

from podbridge.catalog.sku import StructuredSku, normalize
from podbridge.errors import VariantNotMapped

logger = logging.getLogger(__name__)


def _normalize_key(key: str) -> str:
    # Same middle-join rule as SKUs: BC3001_LIGHT_BLUE_M -> BC3001_LIGHTBLUE_M
    parts = str(key).split("_")
    if len(parts) < 3:
        raise ValueError(f"Catalog key {key!r} is not PRODUCTCODE_COLOR_SIZE")
    return "_".join(normalize(p) for p in (parts[0], "".join(parts[1:-1]), parts[-1]))


class VariantCatalog:
    def __init__(self, entries: Mapping[str, int]):
        table: Dict[str, int] = {}
        for key, variant_id in entries.items():
            if isinstance(variant_id, bool) or not isinstance(variant_id, int) or variant_id <= 0:
                raise ValueError(f"Variant id for {key} must be a positive integer, got {variant_id!r}")
            norm_key = _normalize_key(key)
            if norm_key in table and table[norm_key] != variant_id:
                raise ValueError(f"Conflicting variant ids for {norm_key}")
            table[norm_key] = variant_id
        self._table = MappingProxyType(table)

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, key: str) -> bool:
        return key in self._table

    @property
    def entries(self) -> Mapping[str, int]:
        return self._table

    def resolve(self, sku: StructuredSku) -> int:
        key = sku.variant_key
        variant_id = self._table.get(key)
        if variant_id is None:
            raise VariantNotMapped(key)
        return variant_id


def load_variant_catalog(path: Union[str, Path]) -> VariantCatalog:
    """
    JSON file: {"variants": {"BC3001_WHITE_M": 24353, ...}}; a flat object works too.
    Keys starting with "_" are treated as comments.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    rows = raw.get("variants", raw) if isinstance(raw, dict) else {}
    catalog = VariantCatalog({k: v for k, v in rows.items() if not k.startswith("_")})
    logger.info("[map] Loaded %d catalog variants from %s", len(catalog), path)
    return catalog
