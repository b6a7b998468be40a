# podbridge/artwork/resolver.py
# =============================
# Per line item artwork:
#   default file  -> {ART_BASE}/{handle}.png, or a personalized composite
#   placements    -> {ART_BASE}/{templateRef}_{placement}.png when present
# =============================

import logging
import posixpath
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

import httpx

from podbridge.artwork.compositor import composite_filename, overlay_png
from podbridge.errors import ArtworkError

logger = logging.getLogger("uvicorn.error")

# Customer typed something that means "no number"
ABSENT_VALUES = {"", "none", "n/a", "na", "no", "-", "null", "no number"}
_NUMBER_NAME_RE = re.compile(r"(number|\bnum\b|\bno\.?$|#)", re.IGNORECASE)


@dataclass
class ArtworkAsset:
    source_url: str
    kind: str  # "base" | "placement" | "composite"
    placement: str = "default"
    remote_file_id: Optional[Any] = None
    base_url: Optional[str] = None
    overlay_url: Optional[str] = None
    generated_at: Optional[str] = None


@dataclass
class LineItemArtwork:
    default: ArtworkAsset
    placements: List[ArtworkAsset] = field(default_factory=list)

    @property
    def assets(self) -> List[ArtworkAsset]:
        return [self.default, *self.placements]


# -----------------------------
# URL derivation
# -----------------------------
def base_art_url(art_base: str, handle: str) -> str:
    return f"{art_base.rstrip('/')}/{handle}.png"


def placement_art_url(art_base: str, template_ref: str, placement: str) -> str:
    return f"{art_base.rstrip('/')}/{template_ref}_{placement}.png"


def number_art_url(art_base: str, template_ref: str, number: str) -> str:
    return f"{art_base.rstrip('/')}/{template_ref}_{number}.png"


def composite_key(base_url: str, handle: str, template_ref: str, number: str, prefix: str = "") -> str:
    """Object key next to the base artwork: <base dir>/<handle>__<template>__num-<n>.png"""
    base_dir = posixpath.dirname(urlparse(base_url).path).strip("/")
    parts = [p for p in (prefix.strip("/"), base_dir, composite_filename(handle, template_ref, number)) if p]
    return "/".join(parts)


# -----------------------------
# Personalization property
# -----------------------------
def _iter_properties(properties) -> List[tuple]:
    if isinstance(properties, Mapping):
        return [(str(k), v) for k, v in properties.items()]
    pairs = []
    for p in properties or []:
        if isinstance(p, Mapping):
            pairs.append((str(p.get("name") or ""), p.get("value")))
    return pairs


def extract_number(properties, configured_names: Sequence[str]) -> Optional[str]:
    """
    The personalization number from line item properties, or None.
    Exact configured names win; otherwise any property whose name looks like a number field.
    Placeholder values ("none", "n/a", ...) count as no number.
    """
    pairs = _iter_properties(properties)
    wanted = {n.strip().lower() for n in configured_names}
    matches = [v for name, v in pairs if name.strip().lower() in wanted]
    if not matches:
        matches = [v for name, v in pairs if not name.startswith("_") and _NUMBER_NAME_RE.search(name)]

    for value in matches:
        text = str(value if value is not None else "").strip()
        if text.lower() in ABSENT_VALUES:
            continue
        if text.isdigit():
            return text
        logger.warning("[artwork] Ignoring non-numeric number property %r", text)
    return None


# -----------------------------
# Remote existence checks
# -----------------------------
async def asset_exists(client: httpx.AsyncClient, url: str) -> bool:
    """HEAD check; some CDNs refuse HEAD, so 405/501 falls back to a one-byte GET."""
    resp = await client.head(url, follow_redirects=True)
    if resp.status_code in (405, 501):
        resp = await client.get(url, headers={"Range": "bytes=0-0"}, follow_redirects=True)
    return resp.status_code < 400


async def _download(client: httpx.AsyncClient, url: str) -> bytes:
    resp = await client.get(url, follow_redirects=True)
    if resp.status_code >= 400:
        raise ArtworkError(f"Fetching {url} failed: {resp.status_code}")
    return resp.content


# -----------------------------
# ✅ Resolve artwork for one line item
# -----------------------------
async def resolve_line_item_artwork(
    *,
    http: httpx.AsyncClient,
    art_base: str,
    handle: str,
    template_ref: str,
    placements: Sequence[str],
    properties=None,
    number_property_names: Sequence[str] = (),
    uploader=None,
    composite_enabled: bool = True,
    composite_prefix: str = "",
) -> LineItemArtwork:
    if not art_base:
        raise ArtworkError("ART_BASE_URL is not configured")
    if not handle:
        raise ArtworkError("Product has no handle")

    base_url = base_art_url(art_base, handle)
    default = ArtworkAsset(source_url=base_url, kind="base")

    number = extract_number(properties, number_property_names) if composite_enabled else None
    if number:
        default = await _personalize(
            http=http,
            art_base=art_base,
            base_url=base_url,
            handle=handle,
            template_ref=template_ref,
            number=number,
            uploader=uploader,
            prefix=composite_prefix,
        ) or default

    found: List[ArtworkAsset] = []
    for placement in placements:
        url = placement_art_url(art_base, template_ref, placement)
        try:
            exists = await asset_exists(http, url)
        except httpx.RequestError as e:
            logger.info("[artwork] placement check failed %s: %s", url, e)
            continue
        if exists:
            found.append(ArtworkAsset(source_url=url, kind="placement", placement=placement))
        else:
            logger.debug("[artwork] no %s placement at %s", placement, url)

    return LineItemArtwork(default=default, placements=found)


async def _personalize(*, http, art_base, base_url, handle, template_ref, number, uploader, prefix) -> Optional[ArtworkAsset]:
    overlay_url = number_art_url(art_base, template_ref, number)
    try:
        if not await asset_exists(http, overlay_url):
            logger.info("[artwork] no number art at %s, using base art", overlay_url)
            return None
        if uploader is None:
            raise ArtworkError("No composite storage configured (COMPOSITE_S3_BUCKET / UPLOAD_PROXY_URL)")

        base_bytes = await _download(http, base_url)
        overlay_bytes = await _download(http, overlay_url)
    except httpx.RequestError as e:
        raise ArtworkError(f"Fetching artwork for number {number} failed: {e}") from e

    png = overlay_png(base_bytes, overlay_bytes)
    key = composite_key(base_url, handle, template_ref, number, prefix)
    public_url = await uploader.upload(key, png, "image/png")
    logger.info("[artwork] composite %s + %s -> %s", base_url, overlay_url, public_url)

    return ArtworkAsset(
        source_url=public_url,
        kind="composite",
        base_url=base_url,
        overlay_url=overlay_url,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )
