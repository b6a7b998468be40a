# =============================
# Shopify order -> Printful order payload
# Recipient, items, external id.
# =============================

from typing import Any, Dict, List, Optional

from podbridge.artwork.resolver import LineItemArtwork
from podbridge.errors import ValidationFailure

PLACEHOLDER = "N/A"
PLACEHOLDER_NAME = "Customer"
DEFAULT_COUNTRY = "US"


def _first(*values) -> Optional[str]:
    for v in values:
        if v is not None and str(v).strip():
            return str(v).strip()
    return None


# ======================================
# ✅ Recipient
# ======================================
def build_recipient(order: Dict[str, Any]) -> Dict[str, str]:
    """
    shipping_address, then customer.default_address, then customer name/phone.
    Required fields fall back to placeholders, never blanks.
    """
    customer = order.get("customer") or {}
    sa = order.get("shipping_address") or customer.get("default_address") or {}

    full_name = " ".join(p for p in (_first(sa.get("first_name")), _first(sa.get("last_name"))) if p)
    customer_name = " ".join(
        p for p in (_first(customer.get("first_name")), _first(customer.get("last_name"))) if p
    )
    recipient = {
        "name": _first(full_name, sa.get("name"), customer_name) or PLACEHOLDER_NAME,
        "address1": _first(sa.get("address1")) or PLACEHOLDER,
        "city": _first(sa.get("city")) or PLACEHOLDER,
        "country_code": _first(sa.get("country_code"), sa.get("country")) or DEFAULT_COUNTRY,
    }

    # Optional fields are left out rather than sent empty
    optional = {
        "zip": _first(sa.get("zip")),
        "address2": _first(sa.get("address2")),
        "company": _first(sa.get("company")),
        "state_code": _first(sa.get("province_code"), sa.get("province")),
        "email": _first(order.get("email"), customer.get("email")),
        "phone": _first(sa.get("phone"), customer.get("phone"), order.get("phone")),
    }
    recipient.update({k: v for k, v in optional.items() if v})
    return recipient


# ======================================
# ✅ External id
# ======================================
def build_external_id(order: Dict[str, Any], prefix: str, source: str = "id") -> str:
    """prefix + Shopify order id (or order_number); stable across redeliveries."""
    value = order.get("order_number") if source == "order_number" else order.get("id")
    if value is None or str(value).strip() == "":
        raise ValueError(f"Order has no {source} to build an external id from")
    return f"{prefix}{value}"


# ======================================
# ✅ Items
# ======================================
def parse_quantity(value) -> int:
    """Missing means 1; anything else must be a whole number of at least 1."""
    if value is None or str(value).strip() == "":
        return 1
    try:
        quantity = int(str(value).strip())
    except ValueError:
        raise ValidationFailure(f"Quantity {value!r} is not a whole number")
    if quantity < 1:
        raise ValidationFailure(f"Quantity must be at least 1, got {quantity}")
    return quantity


def build_item(variant_id: int, quantity, artwork: LineItemArtwork) -> Dict[str, Any]:
    files = [{"type": "default", "id": artwork.default.remote_file_id}]
    files.extend({"type": a.placement, "id": a.remote_file_id} for a in artwork.placements)
    return {
        "variant_id": variant_id,
        "quantity": parse_quantity(quantity),
        "files": files,
    }


def build_printful_order(
    recipient: Dict[str, str],
    items: List[Dict[str, Any]],
    external_id: str,
    shipping: str,
    confirm: bool = False,
) -> Dict[str, Any]:
    return {
        "external_id": external_id,
        "shipping": shipping,
        "recipient": recipient,
        "items": items,
        "confirm": confirm,
    }
