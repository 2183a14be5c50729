"""Image inspection and WebP re-encoding with Pillow."""

from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

WEBP_CONTENT_TYPE = "image/webp"


def detect_format(data: bytes) -> str | None:
    """Return the lower-cased Pillow format name, or None if unrecognised."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        return None
    return str(fmt).lower() if fmt else None


def _has_alpha(img: Image.Image) -> bool:
    if img.mode in ("RGBA", "LA", "PA"):
        return True
    return img.mode == "P" and "transparency" in img.info


def encode_webp(data: bytes, *, quality: int = 85, method: int = 6) -> bytes:
    """Re-encode any Pillow-readable image to lossy WebP.

    Only the first frame of animated sources is kept.
    """
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if _has_alpha(img) else "RGB")
        out = io.BytesIO()
        img.save(out, format="WEBP", quality=int(quality), method=int(method))
    return out.getvalue()
