from io import BytesIO

import pytest
from PIL import Image

from image_optimizer.utils.mime import default_extension, sniff_image_mime_type


def test_default_extension_prefers_common_suffixes():
    assert default_extension("image/jpeg") == ".jpg"
    assert default_extension("IMAGE/PNG") == ".png"
    assert default_extension("application/x-unknown-thing") == ".bin"


def test_sniff_image_mime_type():
    buf = BytesIO()
    Image.new("RGB", (4, 4), "blue").save(buf, format="JPEG")
    assert sniff_image_mime_type(buf.getvalue()) == "image/jpeg"


def test_sniff_rejects_garbage():
    with pytest.raises(ValueError):
        sniff_image_mime_type(b"not an image")
