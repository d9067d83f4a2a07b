import json

import pytest

from favicon_studio.core.errors import InvalidDimensionsError, user_message
from favicon_studio.core.models import BorderType
from favicon_studio.utils.config import AppConfig
from favicon_studio.utils.helpers import (
    from_data_url,
    human_readable_size,
    parse_hex_color,
    sanitize_file_name,
    to_data_url,
)


@pytest.mark.parametrize("raw, expected", [
    ("logo.png", "logo.png"),
    ("my logo (final).png", "my_logo__final_.png"),
    ("...hidden..png", "hidden.png"),
    ("", "unnamed"),
    ("...", "unnamed"),
])
def test_sanitize_file_name(raw, expected):
    assert sanitize_file_name(raw) == expected


def test_sanitize_file_name_truncates():
    assert len(sanitize_file_name("a" * 400 + ".png")) == 255


def test_parse_hex_color():
    assert parse_hex_color("#fff") == (255, 255, 255, 255)
    assert parse_hex_color("#6366F1") == (99, 102, 241, 255)
    with pytest.raises(ValueError):
        parse_hex_color("white")


def test_data_url_round_trip():
    url = to_data_url(b"\x89PNG")
    assert url.startswith("data:image/png;base64,")
    assert from_data_url(url) == b"\x89PNG"
    with pytest.raises(ValueError):
        from_data_url("no-comma")


def test_human_readable_size():
    assert human_readable_size(10 * 1024 * 1024) == "10.00 MB"


def test_user_message():
    assert user_message(InvalidDimensionsError("Too small")) == "Too small"
    assert user_message(RuntimeError("read timeout")) == "Request timed out. Please try again."
    assert user_message(RuntimeError("x" * 200)) == "An unexpected error occurred. Please try again."


def test_config_defaults_and_save(tmp_path):
    path = tmp_path / "config.json"
    config = AppConfig(path)
    assert config.border_type == "rounded"
    for i in range(7):
        config.add_recent_file(f"/logos/{i}.png")
    config.border_type = "square"
    config.save()

    reloaded = AppConfig(path)
    assert reloaded.recent_files[0] == "/logos/6.png"
    assert len(reloaded.recent_files) == 5
    assert reloaded.style_options(outline_enabled=True).border_type is BorderType.SQUARE


def test_config_ignores_corrupt_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"border_type": "hexagon"}), encoding="utf-8")
    assert AppConfig(path).border_type == "rounded"
