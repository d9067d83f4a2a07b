import base64
import re

from PIL import Image, ImageColor

HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def get_resample_by_name(name: str):
    lname = (name or "").lower()
    if lname == "nearest":
        return Image.Resampling.NEAREST
    elif lname == "bilinear":
        return Image.Resampling.BILINEAR
    elif lname == "bicubic":
        return Image.Resampling.BICUBIC
    else:
        return Image.Resampling.LANCZOS


def clamp_float(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(v)))


def parse_hex_color(value: str) -> tuple[int, int, int, int]:
    if not value or not HEX_COLOR_RE.match(value):
        raise ValueError(f"Invalid hex color: {value!r}")
    r, g, b = ImageColor.getrgb(value)[:3]
    return r, g, b, 255


def human_readable_size(bytes_count: int) -> str:
    units = ["B", "KB", "MB", "GB"]
    i = 0
    v = float(bytes_count)
    while v >= 1024 and i < len(units) - 1:
        v /= 1024.0
        i += 1
    return f"{v:.2f} {units[i]}"


def sanitize_file_name(file_name: str) -> str:
    """
    Keep only [A-Za-z0-9._-], collapse runs of dots and strip leading dots.
    """
    if not file_name:
        return "unnamed"
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "_", file_name)
    cleaned = re.sub(r"\.+", ".", cleaned)
    cleaned = cleaned.lstrip(".")[:255]
    return cleaned or "unnamed"


def file_stem(file_name: str) -> str:
    return file_name.split(".")[0] or "icons"


def to_data_url(raster: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(raster).decode('ascii')}"


def from_data_url(data_url: str) -> bytes:
    if not data_url.startswith("data:") or "," not in data_url:
        raise ValueError("Not a base64 data URL")
    _, payload = data_url.split(",", 1)
    return base64.b64decode(payload)
