import io
import os

import pytest
from PIL import Image

from errors import UploadError
from helpers import png_bytes
from s3_helpers import ImageStorage, build_image_key, get_s3_public_url, key_from_url
from uploads import MAX_IMAGE_BYTES, validate_image


def jpeg_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (10, 10, 10)).save(buf, format="JPEG")
    return buf.getvalue()


def test_accepts_png_and_jpeg():
    checked = validate_image(png_bytes(), "shirt.PNG", "image/png")
    assert checked.extension == "png"
    assert checked.detected_format == "PNG"

    checked = validate_image(jpeg_bytes(), "shoe.jpg", "image/jpg")
    assert checked.content_type == "image/jpeg"
    assert checked.detected_format == "JPEG"


@pytest.mark.parametrize("data,filename,content_type,code", [
    (None, None, None, "NO_FILE_UPLOADED"),
    (b"", "empty.png", "image/png", "EMPTY_FILE_BUFFER"),
    (b"\x89PNG" + b"0" * MAX_IMAGE_BYTES, "big.png", "image/png", "FILE_TOO_LARGE"),
    (b"GIF89a....", "anim.gif", "image/gif", "INVALID_FILE_TYPE"),
    (b"hello world", "fake.png", "image/png", "INVALID_FILE_SIGNATURE"),
])
def test_rejects_bad_uploads(data, filename, content_type, code):
    with pytest.raises(UploadError) as exc:
        validate_image(data, filename, content_type)
    assert exc.value.code == code
    assert exc.value.status_code == 400


def test_truncated_png_fails_verification():
    data = png_bytes()[:20]
    with pytest.raises(UploadError) as exc:
        validate_image(data, "broken.png", "image/png")
    assert exc.value.code == "INVALID_FILE_SIGNATURE"


def test_image_key_layout():
    key = build_image_key("user-1", "Tops", ".PNG")
    prefix, user, category, name = key.split("/")
    assert (prefix, user, category) == ("wardrobe", "user-1", "Tops")
    assert name.endswith(".png")
    url = get_s3_public_url("bucket", key, "us-east-1")
    assert url.startswith("https://bucket.s3.us-east-1.amazonaws.com/wardrobe/")
    assert key_from_url(url) == key


def test_local_storage_save_and_delete(tmp_path):
    storage = ImageStorage(False, None, "us-east-1", str(tmp_path))
    path = storage.save(png_bytes(), "user-1", "Tops", "png", "image/png")
    assert os.path.isfile(path)
    storage.delete(path)
    assert not os.path.exists(path)


def test_delete_outside_storage_dir_is_ignored(tmp_path):
    outside = tmp_path / "keep.txt"
    outside.write_text("keep")
    storage = ImageStorage(False, None, "us-east-1", str(tmp_path / "storage"))
    storage.delete(str(outside))
    assert outside.exists()
