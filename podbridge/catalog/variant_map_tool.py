# podbridge/catalog/variant_map_tool.py
# =============================
# Build variant_map.json rows from the Printful catalog.
#   podbridge-variant-map --product-id 71 --product-code BC3001 [--color White] [--write]
# =============================

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from dotenv import load_dotenv

from podbridge.catalog.sku import normalize
from podbridge.catalog.variant_catalog import VariantCatalog
from podbridge.config import VARIANT_MAP_FILE
from podbridge.errors import UpstreamFailure
from podbridge.utils.http_utils import check_response

KNOWN_COLOR_CODES = {
    "WHITE": "WHT",
    "BLACK": "BLK",
    "RED": "RED",
    "BLUE": "BLU",
    "NAVY": "NVY",
    "PINK": "PNK",
    "GREEN": "GRN",
    "YELLOW": "YLW",
    "ORANGE": "ORG",
    "PURPLE": "PRP",
    "BROWN": "BRN",
    "GREY": "GRY",
    "GRAY": "GRY",
    "BEIGE": "BEI",
    "MAROON": "MAR",
}


def color_code(color: str, abbreviate: bool = False) -> str:
    """
    Full style: "Heather Grey" -> "HEATHERGREY" (what a SKU color normalizes to).
    Abbreviated: known three-letter codes, else initials of up to three words.
    """
    upper = str(color or "").upper().strip()
    if not upper:
        return "UNK"
    if not abbreviate:
        return normalize(upper) or "UNK"
    if upper in KNOWN_COLOR_CODES:
        return KNOWN_COLOR_CODES[upper]
    words = [w for w in (normalize(p) for p in upper.split()) if w]
    if not words:
        return "UNK"
    if len(words) == 1:
        return words[0][:3].ljust(3, "X")
    return "".join(w[0] for w in words[:3])


def variant_rows(
    variants: List[Dict[str, Any]],
    product_code: str,
    color: Optional[str] = None,
    abbreviate: bool = False,
) -> Dict[str, int]:
    wanted = (color or "").strip().lower()
    rows: Dict[str, int] = {}
    for v in variants:
        if wanted and str(v.get("color") or "").strip().lower() != wanted:
            continue
        key = f"{normalize(product_code)}_{color_code(v.get('color'), abbreviate)}_{normalize(v.get('size') or '')}"
        rows[key] = int(v["id"])
    return rows


def fetch_catalog_product(token: str, product_id: int, base_url: str = "https://api.printful.com") -> Dict[str, Any]:
    with httpx.Client(base_url=base_url, headers={"Authorization": f"Bearer {token}"}, timeout=30.0) as client:
        body = check_response(client.get(f"/products/{product_id}"), f"Printful catalog product {product_id}")
    return (body or {}).get("result") or {}


def merge_into_file(path: Path, rows: Dict[str, int]) -> int:
    """Add rows to the map file; refuses to overwrite a different id. Returns the number added."""
    data = json.loads(path.read_text(encoding="utf-8")) if path.exists() else {"schema_version": 1, "variants": {}}
    variants = data.setdefault("variants", {})
    added = 0
    for key, variant_id in rows.items():
        if key in variants and variants[key] != variant_id:
            raise ValueError(f"{key} already maps to {variants[key]}, not {variant_id}")
        if key not in variants:
            variants[key] = variant_id
            added += 1
    # same validation the app applies at startup
    VariantCatalog({k: v for k, v in variants.items() if not k.startswith("_")})
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return added


def main(args: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="podbridge-variant-map",
        description="Print PRODUCTCODE_COLOR_SIZE -> Printful variant_id rows for one catalog product",
    )
    parser.add_argument("--product-id", type=int, required=True, help="Printful catalog product id")
    parser.add_argument("--product-code", required=True, help="Left-side key prefix, e.g. BC3001")
    parser.add_argument("--color", help="Only this color (case-insensitive), e.g. White")
    parser.add_argument("--abbreviate", action="store_true", help="Three-letter color codes (WHT, BLK, ...)")
    parser.add_argument("--write", action="store_true", help=f"Merge the rows into {VARIANT_MAP_FILE.name}")
    parser.add_argument("--map-file", type=Path, default=VARIANT_MAP_FILE)
    opts = parser.parse_args(args)

    load_dotenv()
    token = os.getenv("PRINTFUL_API_TOKEN", "")
    if not token:
        print("Missing PRINTFUL_API_TOKEN.", file=sys.stderr)
        return 2
    if opts.product_id <= 0:
        print("--product-id must be positive.", file=sys.stderr)
        return 2

    try:
        product = fetch_catalog_product(token, opts.product_id, os.getenv("PRINTFUL_BASE_URL") or "https://api.printful.com")
    except (httpx.RequestError, UpstreamFailure) as e:
        print(str(e), file=sys.stderr)
        return 1

    rows = variant_rows(product.get("variants") or [], opts.product_code, opts.color, opts.abbreviate)
    if not rows:
        print("No variants found for given filters.")
        return 0

    title = " ".join(str(product.get(k) or "") for k in ("brand", "model", "type")).strip()
    print(f"# {title}" if title else f"# product {opts.product_id}")
    print(json.dumps(rows, indent=2))

    if opts.write:
        try:
            added = merge_into_file(opts.map_file, rows)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 1
        print(f"Added {added} rows to {opts.map_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
