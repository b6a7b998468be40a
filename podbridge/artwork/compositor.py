# podbridge/artwork/compositor.py
# Number overlay: paste the number PNG over the base art, top-left aligned, no scaling.

import io
import re

from PIL import Image, UnidentifiedImageError

from podbridge.errors import ArtworkError

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def slugify(value: str) -> str:
    return _UNSAFE.sub("-", str(value)).strip("-.")


def composite_filename(handle: str, template_ref: str, number: str) -> str:
    return f"{slugify(handle)}__{slugify(template_ref)}__num-{slugify(number)}.png"


def overlay_png(base_bytes: bytes, overlay_bytes: bytes) -> bytes:
    try:
        with Image.open(io.BytesIO(base_bytes)) as base, Image.open(io.BytesIO(overlay_bytes)) as overlay:
            canvas = base.convert("RGBA")
            canvas.alpha_composite(overlay.convert("RGBA"), dest=(0, 0))
    except (UnidentifiedImageError, OSError) as e:
        raise ArtworkError(f"Cannot composite artwork: {e}") from e

    out = io.BytesIO()
    canvas.save(out, format="PNG")
    return out.getvalue()
