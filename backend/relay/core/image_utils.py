"""Image normalisation before upload.

Moments are stored as WebP (the object name and upload content type say
so), so every photo is decoded, rotated upright and re-encoded here.
"""

from __future__ import annotations

import io
import os

from PIL import Image, ImageOps, UnidentifiedImageError

from relay.core.errors import InvalidMediaError
from relay.core.logging import log


def to_webp(source: str | bytes, quality: int = 90) -> bytes:
    """Re-encode an image as WebP.

    Args:
        source: Path to an image file, or raw image bytes
        quality: WebP quality (1-100)

    Returns:
        WebP encoded bytes

    Raises:
        InvalidMediaError: If the input is not a decodable image
    """
    if isinstance(source, str) and not os.path.exists(source):
        raise InvalidMediaError(f"Image not found: {os.path.basename(source)}")

    fp = source if isinstance(source, str) else io.BytesIO(source)

    try:
        with Image.open(fp) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if "A" in img.getbands() else "RGB")

            out = io.BytesIO()
            img.save(out, format="WEBP", quality=quality)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InvalidMediaError("Uploaded file is not a valid image") from e

    data = out.getvalue()
    log.info(f"IMAGE_NORMALISED size={img.width}x{img.height} bytes={len(data)}")
    return data
