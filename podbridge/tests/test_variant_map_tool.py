import json

import pytest

from podbridge.catalog.variant_catalog import load_variant_catalog
from podbridge.catalog.variant_map_tool import color_code, main, merge_into_file, variant_rows

VARIANTS = [
    {"id": 4011, "color": "White", "size": "S", "name": "Unisex Staple T-Shirt (White / S)"},
    {"id": 4012, "color": "White", "size": "M"},
    {"id": 8460, "color": "Heather Dust", "size": "2XL"},
]


@pytest.mark.parametrize("color, abbreviate, expected", [
    ("White", False, "WHITE"),
    ("Light Blue", False, "LIGHTBLUE"),
    ("White", True, "WHT"),
    ("Gray", True, "GRY"),
    ("Teal", True, "TEA"),
    ("Ox", True, "OXX"),
    ("Heather Dust Storm", True, "HDS"),
    ("", True, "UNK"),
])
def test_color_code(color, abbreviate, expected):
    assert color_code(color, abbreviate) == expected


def test_variant_rows_with_color_filter():
    assert variant_rows(VARIANTS, "bc3001", color="white") == {"BC3001_WHITE_S": 4011, "BC3001_WHITE_M": 4012}
    assert variant_rows(VARIANTS, "BC3001", abbreviate=True)["BC3001_HD_2XL"] == 8460


def test_merge_adds_and_keeps_existing(tmp_path):
    path = tmp_path / "variant_map.json"
    path.write_text(json.dumps({"variants": {"_comment": "x", "BC3001_WHITE_S": 4011}}))

    added = merge_into_file(path, variant_rows(VARIANTS, "BC3001", color="White"))

    assert added == 1
    catalog = load_variant_catalog(path)
    assert catalog.entries == {"BC3001_WHITE_S": 4011, "BC3001_WHITE_M": 4012}


def test_merge_refuses_conflicts(tmp_path):
    path = tmp_path / "variant_map.json"
    path.write_text(json.dumps({"variants": {"BC3001_WHITE_S": 1}}))
    with pytest.raises(ValueError):
        merge_into_file(path, {"BC3001_WHITE_S": 4011})
    assert json.loads(path.read_text())["variants"]["BC3001_WHITE_S"] == 1


def test_cli_requires_token(monkeypatch, capsys, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PRINTFUL_API_TOKEN", "")
    assert main(["--product-id", "71", "--product-code", "BC3001"]) == 2
    assert "PRINTFUL_API_TOKEN" in capsys.readouterr().err


def test_cli_prints_rows(monkeypatch, capsys, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PRINTFUL_API_TOKEN", "pf")
    monkeypatch.setattr(
        "podbridge.catalog.variant_map_tool.fetch_catalog_product",
        lambda token, pid, base: {"brand": "Bella + Canvas", "model": "3001", "variants": VARIANTS},
    )
    out_file = tmp_path / "map.json"

    assert main(["--product-id", "71", "--product-code", "BC3001", "--color", "White",
                 "--write", "--map-file", str(out_file)]) == 0

    out = capsys.readouterr().out
    assert out.startswith("# Bella + Canvas 3001")
    assert '"BC3001_WHITE_M": 4012' in out
    assert len(load_variant_catalog(out_file)) == 2
