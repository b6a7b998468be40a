import asyncio
from dataclasses import replace

import pytest

from podbridge.errors import ValidationFailure
from podbridge.orders.order_builder import build_external_id, build_recipient, parse_quantity
from podbridge.orders.order_pipeline import preview_order, process_order
from podbridge.tests.fakes import file_registrar, request_json


def _order(*line_items, **extra):
    order = {
        "id": 4021,
        "order_number": 1021,
        "name": "#1021",
        "email": "ada@example.com",
        "shipping_address": {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "address1": "1 Analytical Way",
            "city": "London",
            "province_code": "LND",
            "country_code": "GB",
            "zip": "N1 9GU",
        },
        "line_items": list(line_items),
    }
    order.update(extra)
    return order


def _happy_routes(routers):
    routers["shopify"].add("GET", "/products/8001.json", json_body={"product": {"id": 8001, "handle": "caribou-cup"}})
    file_registrar(routers["printful"])
    routers["printful"].add("POST", "/orders", json_body={"code": 200, "result": {"id": 77, "status": "draft"}})
    routers["printful"].add("POST", "/orders/77/confirm", json_body={"code": 200, "result": {"id": 77, "status": "pending"}})


# ── Recipient / external id ───────────────────────────────────────


def test_recipient_from_shipping_address():
    r = build_recipient(_order())
    assert r["name"] == "Ada Lovelace"
    assert r["state_code"] == "LND"
    assert r["zip"] == "N1 9GU"
    assert r["email"] == "ada@example.com"


def test_recipient_falls_back_to_default_address_then_placeholders():
    r = build_recipient({"customer": {"first_name": "Bo", "phone": "+1555", "default_address": {"country": "CA"}}})
    assert r["name"] == "Bo"
    assert r["address1"] == "N/A"
    assert r["city"] == "N/A"
    assert r["country_code"] == "CA"
    assert r["phone"] == "+1555"
    assert "" not in r.values()


def test_recipient_with_nothing_at_all():
    r = build_recipient({})
    assert r == {"name": "Customer", "address1": "N/A", "city": "N/A", "country_code": "US"}


def test_external_id_is_stable():
    order = _order()
    assert build_external_id(order, "shopify-") == build_external_id(dict(order), "shopify-") == "shopify-4021"
    assert build_external_id(order, "NBHL", "order_number") == "NBHL1021"


# ── Full pipeline ─────────────────────────────────────────────────


def test_mapped_and_unmapped_line_items(make_ctx, routers):
    _happy_routes(routers)
    ctx = make_ctx()
    order = _order(
        {"id": 1, "sku": "71_BC3001_WHITE_M", "product_id": 8001, "quantity": 2},
        {"id": 2, "sku": "99_UNKNOWN_RED_L", "product_id": 8002, "quantity": 1},
    )

    result = asyncio.run(process_order(ctx, order))

    assert result["ok"] is True
    assert result["missing"] == ["99_UNKNOWN_RED_L"]
    assert result["missing_details"][0]["reason"] == "no_variant_mapping"

    create = request_json(routers["printful"].called("POST", "/orders")[0])
    assert create["external_id"] == "shopify-4021"
    assert create["confirm"] is False
    assert create["shipping"] == "STANDARD"
    assert create["items"] == [
        {"variant_id": 24353, "quantity": 2, "files": [{"type": "default", "id": 1000}]}
    ]
    assert request_json(routers["printful"].called("POST", "/files")[0])["url"] == "https://cdn.test/art/caribou-cup.png"
    # unmapped SKU never reaches the product lookup
    assert routers["shopify"].called("GET", "/products/8002.json") == []


def test_placements_are_attached_in_order(make_ctx, routers):
    _happy_routes(routers)
    routers["cdn"].add("HEAD", "/art/71_back.png").add("HEAD", "/art/71_front.png")
    ctx = make_ctx()

    asyncio.run(process_order(ctx, _order({"sku": "71_BC3001_WHITE_M", "product_id": 8001, "quantity": 1})))

    item = request_json(routers["printful"].called("POST", "/orders")[0])["items"][0]
    assert [f["type"] for f in item["files"]] == ["default", "front", "back"]


def test_artwork_uploads_are_cached_across_orders(make_ctx, routers):
    _happy_routes(routers)
    ctx = make_ctx()
    li = {"sku": "71_BC3001_WHITE_M", "product_id": 8001, "quantity": 1}

    asyncio.run(process_order(ctx, _order(li)))
    asyncio.run(process_order(ctx, _order(li, id=4022)))

    assert len(routers["printful"].called("POST", "/files")) == 1
    second = request_json(routers["printful"].called("POST", "/orders")[1])
    assert second["items"][0]["files"][0]["id"] == 1000


def test_no_resolvable_items_submits_nothing(make_ctx, routers):
    ctx = make_ctx()
    order = _order({"sku": "99_UNKNOWN_RED_L", "product_id": 1}, {"sku": "bad", "title": "Mug"}, {"title": "Sticker"})

    result = asyncio.run(process_order(ctx, order))

    assert result["ok"] is False
    assert result["reason"] == "no_valid_items"
    assert result["missing"] == ["99_UNKNOWN_RED_L", "bad", "(no sku: Sticker)"]
    assert routers["printful"].calls == []


def test_handle_lookup_failure_marks_item_missing(make_ctx, routers):
    routers["shopify"].add("GET", "/products/8001.json", status=404, json_body={"errors": "Not Found"})
    ctx = make_ctx()

    result = asyncio.run(process_order(ctx, _order({"sku": "71_BC3001_WHITE_M", "product_id": 8001})))

    assert result["ok"] is False
    assert result["missing_details"][0]["status_code"] == 404


def test_file_registration_failure_is_not_cached(make_ctx, routers):
    routers["shopify"].add("GET", "/products/8001.json", json_body={"product": {"handle": "caribou-cup"}})
    routers["printful"].add("POST", "/files", status=500, json_body={"error": "down"})
    ctx = make_ctx()

    result = asyncio.run(process_order(ctx, _order({"sku": "71_BC3001_WHITE_M", "product_id": 8001})))

    assert result["ok"] is False
    assert ctx.upload_cache.get("https://cdn.test/art/caribou-cup.png") is None


def test_duplicate_order_is_idempotent(make_ctx, routers):
    routers["shopify"].add("GET", "/products/8001.json", json_body={"product": {"handle": "caribou-cup"}})
    file_registrar(routers["printful"])
    routers["printful"].add("POST", "/orders", status=400, json_body={
        "code": 400, "result": "Order with this External ID already exists",
    })
    ctx = make_ctx()

    result = asyncio.run(process_order(ctx, _order({"sku": "71_BC3001_WHITE_M", "product_id": 8001})))

    assert result["ok"] is True
    assert result["already_exists"] is True
    assert result["missing"] == []


def test_missing_store_id(make_ctx, settings):
    ctx = make_ctx(replace(settings, printful_store_id=""))
    result = asyncio.run(process_order(ctx, _order({"sku": "71_BC3001_WHITE_M", "product_id": 8001})))
    assert result == {"ok": False, "reason": "missing_store_id_env"}


def test_preview_sends_nothing(make_ctx, routers):
    ctx = make_ctx()
    result = preview_order(ctx, _order(
        {"sku": "71_BC3001_WHITE_M", "quantity": 3},
        {"sku": "99_UNKNOWN_RED_L"},
    ))

    assert result["missing_skus"] == ["99_UNKNOWN_RED_L"]
    assert result["mapped_items"][0]["_variant_key"] == "BC3001_WHITE_M"
    assert result["printful_payload"]["items"] == [{"variant_id": 24353, "quantity": 3}]
    assert all(not r.calls for r in routers.values())


@pytest.mark.parametrize("value, expected", [(None, 1), ("", 1), (3, 3), ("2", 2)])
def test_parse_quantity(value, expected):
    assert parse_quantity(value) == expected


@pytest.mark.parametrize("value", [0, -1, "two", 1.5])
def test_bad_quantity_is_rejected(value):
    with pytest.raises(ValidationFailure):
        parse_quantity(value)


def test_bad_quantity_excludes_only_that_item(make_ctx, routers):
    _happy_routes(routers)
    ctx = make_ctx()
    order = _order(
        {"sku": "71_BC3001_WHITE_M", "product_id": 8001, "quantity": 1},
        {"sku": "71_G18500_BLACK_XL", "product_id": 8001, "quantity": "lots"},
        {"sku": "71_BC3001_LIGHT_BLUE_L", "product_id": 8001, "quantity": 0},
    )

    result = asyncio.run(process_order(ctx, order))

    assert result["ok"] is True
    assert result["missing"] == ["71_G18500_BLACK_XL", "71_BC3001_LIGHT_BLUE_L"]
    assert {d["reason"] for d in result["missing_details"]} == {"invalid_payload"}
    assert len(request_json(routers["printful"].called("POST", "/orders")[0])["items"]) == 1


def test_unreadable_upload_cache_is_a_missing_item(make_ctx, routers, settings):
    _happy_routes(routers)
    settings.upload_cache_file.write_text("not json at all")
    ctx = make_ctx()

    result = asyncio.run(process_order(ctx, _order({"sku": "71_BC3001_WHITE_M", "product_id": 8001})))

    assert result["ok"] is False
    assert result["reason"] == "no_valid_items"
    assert result["missing_details"][0]["reason"] == "upload_cache_failed"
    assert routers["printful"].called("POST", "/files") == []
