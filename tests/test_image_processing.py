import base64

import pytest

from errors import EncodingError, InvalidImageError
from schemas import UploadedImage
from services.image_processing import (
    MAX_FILE_SIZE,
    check_image,
    decode_image_data,
    extract_base64,
    identify_format,
    max_base64_length,
    sanitize_filename,
    to_data_url,
    validate_image,
)
from tests.conftest import FAKE_JPEG_BYTES, JPEG_BYTES, PNG_BYTES, image_bytes


def upload(size=1024, mime="image/jpeg", filename="me.jpg", data=JPEG_BYTES):
    return UploadedImage(data=data, size_bytes=size, mime_type=mime, filename=filename)


def codes(result):
    return [i.code for i in result.issues]


def test_exactly_max_size_is_accepted():
    result = validate_image(upload(size=MAX_FILE_SIZE))
    assert result.valid
    assert result.format == "jpg"
    assert result.size == MAX_FILE_SIZE


def test_one_byte_over_max_size_is_rejected():
    result = check_image(upload(size=MAX_FILE_SIZE + 1))
    assert not result.valid
    assert codes(result) == ["FILE_TOO_LARGE"]


def test_text_file_reports_format_and_mime_together():
    result = check_image(upload(mime="text/plain", filename="notes.txt"))
    assert codes(result) == ["INVALID_FORMAT", "NOT_AN_IMAGE"]

    with pytest.raises(InvalidImageError) as exc:
        validate_image(upload(mime="text/plain", filename="notes.txt"))
    assert exc.value.status_code == 400
    assert exc.value.code == "INVALID_FORMAT"
    assert "Invalid file format" in exc.value.message
    assert "File must be an image" in exc.value.message


def test_all_violations_are_collected():
    result = check_image(upload(size=MAX_FILE_SIZE + 10, mime="application/pdf", filename="scan.pdf"))
    assert codes(result) == ["FILE_TOO_LARGE", "INVALID_FORMAT", "NOT_AN_IMAGE"]


def test_missing_image():
    result = check_image(None)
    assert codes(result) == ["MISSING_IMAGE"]
    with pytest.raises(InvalidImageError) as exc:
        validate_image(None)
    assert exc.value.code == "MISSING_IMAGE"


@pytest.mark.parametrize("filename", ["PHOTO.JPG", "a.jpeg", "b.png", "c.webp"])
def test_allowed_extensions(filename):
    assert check_image(upload(filename=filename)).valid


def test_to_data_url_encodes_bytes():
    url = to_data_url(b"hello", "image/png")
    assert url == "data:image/png;base64," + base64.b64encode(b"hello").decode()


def test_to_data_url_passes_data_urls_through():
    url = "data:image/webp;base64,AAAA"
    assert to_data_url(url, "image/jpeg") == url


def test_to_data_url_prefixes_raw_base64():
    assert to_data_url("QUJD", "image/jpeg") == "data:image/jpeg;base64,QUJD"


@pytest.mark.parametrize("empty", [b"", None, ""])
def test_to_data_url_rejects_empty(empty):
    with pytest.raises(EncodingError):
        to_data_url(empty, "image/jpeg")


def test_extract_base64():
    assert extract_base64("data:image/png;base64,QUJD") == "QUJD"
    assert extract_base64("QUJD") == "QUJD"
    with pytest.raises(EncodingError) as exc:
        extract_base64("data:image/png,QUJD")
    assert exc.value.code == "INVALID_IMAGE_DATA"


def test_identify_format():
    assert identify_format(JPEG_BYTES) == "jpeg"
    assert identify_format(PNG_BYTES) == "png"
    assert identify_format(image_bytes("GIF")) == "gif"


@pytest.mark.parametrize("data", [
    FAKE_JPEG_BYTES,
    b"plain text, not an image",
    PNG_BYTES[: len(PNG_BYTES) // 2],
    b"",
    None,
])
def test_identify_format_rejects_undecodable_data(data):
    assert identify_format(data) is None


def test_content_is_checked_after_declared_metadata():
    result = check_image(upload(data=FAKE_JPEG_BYTES))
    assert codes(result) == ["INVALID_IMAGE_DATA"]

    with pytest.raises(InvalidImageError) as exc:
        validate_image(upload(data=FAKE_JPEG_BYTES))
    assert exc.value.message == "Invalid image file"


def test_decode_image_data_from_data_url():
    encoded = base64.b64encode(PNG_BYTES).decode()
    image = decode_image_data(f"data:image/png;base64,{encoded}")
    assert image.data == PNG_BYTES
    assert image.mime_type == "image/png"
    assert image.filename == "upload.png"
    assert image.format == "png"
    assert validate_image(image).valid


def test_decode_image_data_accepts_wrapped_base64():
    encoded = base64.b64encode(JPEG_BYTES).decode()
    wrapped = "\n".join(encoded[i:i + 76] for i in range(0, len(encoded), 76))
    image = decode_image_data(wrapped)
    assert image.data == JPEG_BYTES
    assert "\n" not in to_data_url(image.data, image.mime_type)


@pytest.mark.parametrize("data", [FAKE_JPEG_BYTES, b"plain text, not an image"])
def test_decode_image_data_rejects_non_images(data):
    with pytest.raises(EncodingError) as exc:
        decode_image_data(base64.b64encode(data).decode())
    assert exc.value.code == "INVALID_IMAGE_DATA"
    assert exc.value.status_code == 400


def test_decode_image_data_unsupported_format_fails_validation():
    image = decode_image_data(base64.b64encode(image_bytes("GIF")).decode())
    assert image.mime_type == "image/gif"
    assert codes(check_image(image)) == ["INVALID_FORMAT"]


def test_decode_image_data_caps_payload_length(monkeypatch):
    monkeypatch.setattr("services.image_processing.MAX_FILE_SIZE", 30)
    assert max_base64_length() == len(base64.b64encode(b"x" * 30))

    with pytest.raises(InvalidImageError) as exc:
        decode_image_data("A" * (max_base64_length() + 4))
    assert exc.value.code == "FILE_TOO_LARGE"


def test_decode_image_data_rejects_garbage():
    with pytest.raises(EncodingError) as exc:
        decode_image_data("not base64 at all!!")
    assert exc.value.code == "INVALID_IMAGE_DATA"


def test_sanitize_filename():
    assert sanitize_filename("My Photo (1).JPG") == "my_photo_1_.jpg"
    assert sanitize_filename(None) == "image.jpg"
