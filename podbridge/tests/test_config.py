import pytest

from podbridge.config import PLACEMENTS, Settings


def test_from_env_defaults_and_cleanup(monkeypatch):
    for name in ("PRINTFUL_SUBMIT_MODE", "EXTERNAL_ID_SOURCE", "NUMBER_PROPERTY_NAMES", "BRIDGE_ENV", "SHOPIFY_LOCATION_ID"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SHOPIFY_STORE_DOMAIN", "https://my-shop.myshopify.com/")
    monkeypatch.setenv("ART_BASE_URL", "https://cdn.test/art/")
    monkeypatch.setenv("COMPOSITE_ENABLED", "off")

    s = Settings.from_env()

    assert s.shopify_admin_url == "https://my-shop.myshopify.com/admin/api/2025-01"
    assert s.art_base_url == "https://cdn.test/art"
    assert s.submit_mode == "two_phase"
    assert s.composite_enabled is False
    assert s.placements == PLACEMENTS
    assert s.environment == "production"
    assert s.shopify_location_id is None


def test_number_property_names_list(monkeypatch):
    monkeypatch.setenv("NUMBER_PROPERTY_NAMES", " Shirt Number, ,Back #")
    assert Settings.from_env().number_property_names == ("Shirt Number", "Back #")


@pytest.mark.parametrize("name, value", [
    ("PRINTFUL_SUBMIT_MODE", "yolo"),
    ("EXTERNAL_ID_SOURCE", "name"),
])
def test_invalid_choices_fail_fast(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError):
        Settings.from_env()


def test_bypass_needs_token_and_non_production():
    assert not Settings(debug_token="").bypass_allowed
    assert not Settings(debug_token="x").bypass_allowed
    assert Settings(debug_token="x", environment="staging").bypass_allowed
