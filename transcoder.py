"""Decode, resize and re-encode images with Pillow."""
import io
from enum import Enum
from pathlib import Path

from PIL import Image as PILImage, ImageOps

from errors import ImageProcessingError, NotFoundError, UnsupportedFormatError
from log_utils import get_logger, log_slow_operation

logger = get_logger(__name__)


class ImageFormat(Enum):
    """Formats a resized image can be written back as."""

    PNG = ("PNG", "image/png")
    JPEG = ("JPEG", "image/jpeg")
    GIF = ("GIF", "image/gif")
    WEBP = ("WEBP", "image/webp")

    def __init__(self, pil_format: str, media_type: str):
        self.pil_format = pil_format
        self.media_type = media_type

    @classmethod
    def from_extension(cls, extension: str) -> "ImageFormat":
        ext = extension.lower().lstrip(".")
        fmt = _EXTENSIONS.get(ext)
        if fmt is None:
            raise UnsupportedFormatError(ext)
        return fmt


_EXTENSIONS = {
    "png": ImageFormat.PNG,
    "jpg": ImageFormat.JPEG,
    "jpeg": ImageFormat.JPEG,
    "gif": ImageFormat.GIF,
    "webp": ImageFormat.WEBP,
}

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
)


def sniff_media_type(data: bytes) -> str:
    """Media type from the leading bytes of an encoded image."""
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    for signature, media_type in _SIGNATURES:
        if data.startswith(signature):
            return media_type
    return "application/octet-stream"


def fit_within(src_w: int, src_h: int, width: int, height: int) -> tuple[int, int]:
    """Largest size with the source aspect ratio that fits in width x height."""
    ratio = min(width / src_w, height / src_h)
    return max(1, round(src_w * ratio)), max(1, round(src_h * ratio))


def read_original(path: str | Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except FileNotFoundError:
        raise NotFoundError.resource("File on disk")
    except OSError as exc:
        raise ImageProcessingError(f"Cannot read {path}: {exc}") from exc


def transcode(path: str | Path, width: int, height: int, fmt: ImageFormat) -> bytes:
    """Resize the image at path to fit width x height (Lanczos) and encode as fmt."""
    try:
        with PILImage.open(path) as im:
            im = ImageOps.exif_transpose(im)
            if im.mode == "P":
                im = im.convert("RGBA")
            im = im.resize(
                fit_within(im.width, im.height, width, height),
                PILImage.Resampling.LANCZOS,
            )
            if fmt is ImageFormat.JPEG and im.mode not in ("RGB", "L"):
                im = im.convert("RGB")
            buf = io.BytesIO()
            with log_slow_operation(logger, f"encode_{fmt.name.lower()}", 500):
                im.save(buf, format=fmt.pil_format)
    except FileNotFoundError:
        raise NotFoundError.resource("File on disk")
    except (OSError, ValueError, PILImage.DecompressionBombError) as exc:
        raise ImageProcessingError(f"{path}: {exc}") from exc
    return buf.getvalue()
