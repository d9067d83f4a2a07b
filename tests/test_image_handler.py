import asyncio
import sys
import time

import pytest
from PIL import PngImagePlugin

from favicon_studio.core import image_handler
from favicon_studio.core.errors import (
    DecodeFailureError,
    DecodeTimeoutError,
    EmptyFileError,
    FileTooLargeError,
    InvalidDimensionsError,
    UnsupportedTypeError,
    ValidationError,
)
from favicon_studio.core.image_handler import decode_raster, load_source_image, svg_intrinsic_size
from favicon_studio.utils.validators import MAX_FILE_BYTES, mime_type_from_name

from conftest import make_blank_png, make_png


def load(data, name="logo.png", mime=None, timeout=30.0):
    return asyncio.run(load_source_image(data, name, mime, timeout=timeout))


def test_loads_png_with_natural_size(logo_png):
    src = load(logo_png)
    assert (src.width, src.height) == (512, 512)
    assert src.image.mode == "RGBA"
    assert src.byte_size == len(logo_png)
    assert src.mime_type == "image/png"
    assert not src.is_vector


def test_rejects_image_below_minimum_dimension():
    with pytest.raises(InvalidDimensionsError):
        load(make_png(16, 16))


def test_rejects_image_above_maximum_dimension():
    with pytest.raises(InvalidDimensionsError):
        load(make_png(8193, 40))


def test_oversized_raster_is_rejected_before_pixels_are_decoded(monkeypatch):
    loads = []
    monkeypatch.setattr(PngImagePlugin.PngImageFile, "load", lambda self: loads.append(self.size))
    with pytest.raises(InvalidDimensionsError):
        load(make_blank_png(8200, 8200), "big.png")
    assert loads == []


def test_raster_past_bomb_guard_is_invalid_dimensions():
    data = make_blank_png(16384, 16384)
    assert len(data) < 200_000
    with pytest.raises(InvalidDimensionsError):
        load(data, "huge.png")


def test_accepts_dimension_bounds():
    src = load(make_png(32, 8192))
    assert (src.width, src.height) == (32, 8192)


def test_rejects_unsupported_mime_type(logo_png):
    with pytest.raises(UnsupportedTypeError):
        load(logo_png, "logo.gif", "image/gif")


def test_rejects_unknown_extension_without_mime(logo_png):
    with pytest.raises(UnsupportedTypeError):
        load(logo_png, "logo.bmp")


def test_rejects_oversized_file_before_decoding():
    data = b"\x00" * (MAX_FILE_BYTES + 1)
    with pytest.raises(FileTooLargeError):
        load(data, "huge.png")


def test_rejects_empty_file():
    with pytest.raises(EmptyFileError):
        load(b"", "empty.png")


def test_validation_errors_share_base_class():
    with pytest.raises(ValidationError):
        load(make_png(10, 10))


def test_corrupt_data_is_decode_failure():
    with pytest.raises(DecodeFailureError):
        load(b"\x89PNG\r\n\x1a\n" + b"garbage" * 40)


def test_slow_decode_times_out(monkeypatch, logo_png):
    real_decode = image_handler._decode_bytes

    def slow_decode(data, mime):
        time.sleep(0.3)
        return real_decode(data, mime)

    monkeypatch.setattr(image_handler, "_decode_bytes", slow_decode)
    with pytest.raises(DecodeTimeoutError):
        load(logo_png, timeout=0.05)


def test_jpg_alias_is_normalized(logo_png):
    src = load(logo_png, "logo.png", "image/jpg")
    assert src.mime_type == "image/jpeg"


def test_mime_type_from_name():
    assert mime_type_from_name("a.PNG") == "image/png"
    assert mime_type_from_name("a.jpeg") == "image/jpeg"
    assert mime_type_from_name("vector.svg") == "image/svg+xml"
    assert mime_type_from_name("noext") is None


def test_svg_intrinsic_size():
    sized = b'<svg xmlns="http://www.w3.org/2000/svg" width="64px" height="48"></svg>'
    unsized = b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10"></svg>'
    relative = b'<svg xmlns="http://www.w3.org/2000/svg" width="100%" height="100%"></svg>'
    assert svg_intrinsic_size(sized) == (64, 48)
    assert svg_intrinsic_size(unsized) is None
    assert svg_intrinsic_size(relative) is None


def test_malformed_svg_is_decode_failure():
    with pytest.raises(DecodeFailureError):
        svg_intrinsic_size(b"<svg")


def _cairosvg_available():
    try:
        import cairosvg  # noqa: F401
    except (ImportError, OSError):
        return False
    return True


@pytest.mark.skipif(not _cairosvg_available(), reason="cairosvg / Cairo not installed")
def test_unsized_svg_is_exempt_from_dimension_check():
    svg = (
        b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10">'
        b'<rect width="10" height="10" fill="#ff0000"/></svg>'
    )
    src = load(svg, "mark.svg")
    assert src.is_vector
    assert src.image.size == (1024, 1024)


def test_sized_svg_below_floor_is_rejected():
    svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="16" height="16"><rect width="16" height="16"/></svg>'
    with pytest.raises(InvalidDimensionsError):
        load(svg, "tiny.svg")


def test_huge_sized_svg_is_rejected_without_rasterizing(monkeypatch):
    monkeypatch.setitem(sys.modules, "cairosvg", None)
    svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="20000" height="20000"><rect width="10" height="10"/></svg>'
    with pytest.raises(InvalidDimensionsError):
        load(svg, "huge.svg")


def test_decode_raster_roundtrip(logo_png):
    assert decode_raster(logo_png).size == (512, 512)
    with pytest.raises(DecodeFailureError):
        decode_raster(b"not an image")
