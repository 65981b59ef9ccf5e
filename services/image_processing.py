# services/image_processing.py
import base64
import binascii
import io
import logging
import re
from pathlib import Path
from typing import Optional, Union

from PIL import Image

from errors import EncodingError, InvalidImageError
from schemas import UploadedImage, ValidationIssue, ValidationResult

logger = logging.getLogger(__name__)

ALLOWED_FORMATS = ["jpeg", "jpg", "png", "webp"]
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB


def _extension(filename: Optional[str]) -> str:
    return Path(filename or "").suffix.lstrip(".").lower()


def _too_large() -> ValidationIssue:
    return ValidationIssue("FILE_TOO_LARGE", f"File too large. Maximum size is {MAX_FILE_SIZE // 1024 // 1024}MB")


def max_base64_length() -> int:
    """Length of the base64 text for an image of exactly MAX_FILE_SIZE bytes."""
    return 4 * ((MAX_FILE_SIZE + 2) // 3)


def identify_format(data: Optional[bytes]) -> Optional[str]:
    """Lowercased format name Pillow decodes from `data`, None if it is not a readable image."""
    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
        # verify() skips JPEG pixel data and leaves the image unusable
        with Image.open(io.BytesIO(data)) as img:
            img.load()
    except Exception as e:
        logger.debug("image data could not be decoded: %s", e)
        return None
    return fmt.lower() if fmt else None


def check_image(image: Optional[UploadedImage]) -> ValidationResult:
    """
    Check an upload against the size / format / MIME rules, then make sure the
    bytes really decode as an image.
    Never raises: every violation is collected into the result so the caller
    can report them together. The content check only runs once the declared
    size, name and type pass.
    """
    if image is None:
        return ValidationResult(valid=False, issues=[ValidationIssue("MISSING_IMAGE", "No image file provided")])

    issues = []
    if image.size_bytes > MAX_FILE_SIZE:
        issues.append(_too_large())

    ext = _extension(image.filename)
    if ext not in ALLOWED_FORMATS:
        issues.append(ValidationIssue(
            "INVALID_FORMAT", f"Invalid file format. Allowed formats: {', '.join(ALLOWED_FORMATS)}"))

    mime = (image.mime_type or "").lower()
    if not mime.startswith("image/"):
        issues.append(ValidationIssue("NOT_AN_IMAGE", "File must be an image"))

    if not issues and not (image.format or identify_format(image.data)):
        issues.append(ValidationIssue("INVALID_IMAGE_DATA", "Invalid image file"))

    return ValidationResult(
        valid=not issues,
        issues=issues,
        format=ext or None,
        size=image.size_bytes,
        mime_type=image.mime_type,
    )


def validate_image(image: Optional[UploadedImage]) -> ValidationResult:
    """Like check_image, but raises InvalidImageError when anything is wrong."""
    result = check_image(image)
    if not result.valid:
        raise InvalidImageError(result.issues)
    return result


def to_data_url(data: Union[bytes, str, None], mime_type: str = "image/jpeg") -> str:
    """
    Return `data:{mime};base64,{payload}`.
    A string that already is a data URL passes through untouched; any other
    string is taken to be base64 already.
    """
    if not data:
        raise EncodingError("No image data provided")
    if isinstance(data, str):
        if data.startswith("data:"):
            return data
        return f"data:{mime_type};base64,{data.strip()}"
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def extract_base64(data_url: Optional[str]) -> str:
    """Strip a data URL prefix, leaving the bare base64 payload."""
    if not data_url:
        raise EncodingError("No image data provided", code="MISSING_IMAGE_DATA")
    if data_url.startswith("data:"):
        idx = data_url.find("base64,")
        if idx == -1:
            raise EncodingError("Invalid data URL format", code="INVALID_IMAGE_DATA")
        return data_url[idx + len("base64,"):]
    return data_url


def decode_image_data(image_data: Optional[str]) -> UploadedImage:
    """Turn a data URL or raw base64 string into an UploadedImage Pillow can read."""
    payload = re.sub(r"\s+", "", extract_base64(image_data))
    if len(payload) > max_base64_length():
        raise InvalidImageError([_too_large()])
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise EncodingError("Invalid image data format", code="INVALID_IMAGE_DATA")
    if not raw:
        raise EncodingError("No image data provided", code="MISSING_IMAGE_DATA")

    fmt = identify_format(raw)
    if fmt is None:
        raise EncodingError("Invalid image file", code="INVALID_IMAGE_DATA")
    logger.debug("decoded base64 image: %d bytes, format=%s", len(raw), fmt)
    return UploadedImage(
        data=raw,
        size_bytes=len(raw),
        mime_type=f"image/{fmt}",
        filename=f"upload.{fmt}",
        format=fmt,
    )


def sanitize_filename(filename: Optional[str]) -> str:
    if not filename:
        return "image.jpg"
    name = re.sub(r"[^a-z0-9.-]", "_", filename.lower())
    return re.sub(r"_+", "_", name)[:255]
