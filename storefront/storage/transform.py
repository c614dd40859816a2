"""
Image normalisation before upload.
"""

from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError, features


@dataclass(frozen=True)
class PreparedImage:
    data: bytes
    content_type: str
    extension: str
    width: int
    height: int


def preferred_format() -> tuple[str, str, str]:
    """(Pillow format, content type, extension) for stored images."""
    if features.check("webp"):
        return "WEBP", "image/webp", "webp"
    return "JPEG", "image/jpeg", "jpg"


def fill_image(data: bytes, width: int, height: int, quality: int = 85) -> PreparedImage:
    """
    Decode an upload and crop-fill it to exactly ``width`` x ``height``.

    Raises:
        ValueError: the bytes are not a decodable image
    """
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            fmt, content_type, extension = preferred_format()

            # JPEG has no alpha channel; WEBP keeps it
            keep_alpha = fmt == "WEBP" and img.mode in ("RGBA", "LA", "P")
            img = img.convert("RGBA" if keep_alpha else "RGB")

            fitted = ImageOps.fit(img, (width, height), method=Image.Resampling.LANCZOS)
            out = BytesIO()
            fitted.save(out, format=fmt, quality=quality)
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"Could not decode image: {e}") from e

    return PreparedImage(
        data=out.getvalue(),
        content_type=content_type,
        extension=extension,
        width=width,
        height=height,
    )
