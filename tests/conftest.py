import asyncio
import struct
import zlib
from io import BytesIO

import pytest
from PIL import Image

from favicon_studio.core.icon_generator import synthesize
from favicon_studio.core.image_handler import load_source_image
from favicon_studio.core.models import BrandAnalysis, StyleOptions


def make_png(width: int, height: int, color=(200, 30, 30, 255)) -> bytes:
    buf = BytesIO()
    Image.new("RGBA", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def make_blank_png(width: int, height: int) -> bytes:
    """1-bit all-black PNG built chunk by chunk, so huge sizes stay small in memory."""

    def chunk(kind: bytes, body: bytes) -> bytes:
        return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", zlib.crc32(kind + body))

    row = b"\x00" * (1 + (width + 7) // 8)
    compressor = zlib.compressobj(9)
    idat = b"".join(compressor.compress(row) for _ in range(height)) + compressor.flush()
    header = struct.pack(">IIBBBBB", width, height, 1, 0, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", header) + chunk(b"IDAT", idat) + chunk(b"IEND", b"")


def open_png(raster: bytes) -> Image.Image:
    return Image.open(BytesIO(raster)).convert("RGBA")


@pytest.fixture
def logo_png() -> bytes:
    return make_png(512, 512)


@pytest.fixture
def wide_png() -> bytes:
    return make_png(200, 100, (20, 40, 220, 255))


@pytest.fixture
def source(logo_png):
    return asyncio.run(load_source_image(logo_png, "logo.png"))


@pytest.fixture
def wide_source(wide_png):
    return asyncio.run(load_source_image(wide_png, "wide.png"))


@pytest.fixture
def fallback() -> BrandAnalysis:
    return BrandAnalysis.fallback()


@pytest.fixture
def favicon_set(source, fallback):
    return asyncio.run(synthesize(source, fallback, StyleOptions(), set_id="set-1", created_at=0, group_delay=0))
