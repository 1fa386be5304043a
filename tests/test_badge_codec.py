import io
import json

import pytest
from PIL import Image

from barbaros.core.badge_codec import (
    DATA_URL_PREFIX, build_payload, data_url_to_bytes, decode_badge, encode_badge,
)


def test_payload_has_id_type_and_timestamp():
    data = json.loads(build_payload("C12345678", issued_at=1700000000000))

    assert data == {"id": "C12345678", "type": "barbaros-client", "timestamp": 1700000000000}


def test_payload_defaults_timestamp_to_now_in_ms():
    data = json.loads(build_payload("C12345678"))

    assert isinstance(data["timestamp"], int)
    assert data["timestamp"] > 1_600_000_000_000


@pytest.mark.parametrize("subject_id", ["", None, 42])
def test_payload_rejects_bad_subject(subject_id):
    with pytest.raises(ValueError):
        build_payload(subject_id)


def test_decode_badge_reads_payload():
    badge = decode_badge('{"id":"60d5ec49f1b2c8b1f8e4e1a1","type":"barbaros-client","timestamp":1}')

    assert badge.subject_id == "60d5ec49f1b2c8b1f8e4e1a1"
    assert badge.kind == "barbaros-client"
    assert badge.issued_at == 1


def test_decode_badge_ignores_extra_keys_and_bad_timestamp():
    badge = decode_badge('{"id":"C12345678","type":"barbaros-client","timestamp":"soon","extra":true}')

    assert badge.subject_id == "C12345678"
    assert badge.issued_at is None


@pytest.mark.parametrize("raw_text", [
    "C12345678",
    "not json at all",
    "[1, 2, 3]",
    '{"id":"C12345678","type":"other-client"}',
    '{"id":"C12345678"}',
    '{"id":"","type":"barbaros-client"}',
    '{"id":0,"type":"barbaros-client"}',
    '{"id":true,"type":"barbaros-client"}',
    '{"id":12.5,"type":"barbaros-client"}',
    "",
    None,
])
def test_decode_badge_returns_none_for_non_badges(raw_text):
    assert decode_badge(raw_text) is None


def test_decode_badge_survives_deeply_nested_json():
    assert decode_badge("[" * 100000 + "]" * 100000) is None


def test_decode_badge_accepts_integer_id():
    badge = decode_badge('{"id":12345,"type":"barbaros-client","timestamp":1}')

    assert badge.subject_id == "12345"
    assert badge.issued_at == 1


@pytest.mark.parametrize("subject_id", [
    "C12345678",
    "60d5ec49f1b2c8b1f8e4e1a1",
    "Zoë Ångström",
    'he said "hi"',
    "back\\slash",
    "   ",
    '{"id":"x","type":"barbaros-client"}',
    "tab\tnew\nline",
    "🙂",
])
def test_decode_badge_reads_back_built_payload(subject_id):
    assert decode_badge(build_payload(subject_id)).subject_id == subject_id


def test_render_png_is_square_at_requested_width(codec):
    png = codec.render_png("C12345678", width=300)
    image = Image.open(io.BytesIO(png))

    assert image.format == "PNG"
    assert image.size == (300, 300)


def test_render_png_uses_given_colours(codec):
    png = codec.render_png("C12345678", width=200, dark="#112233", light="#ffeedd")
    image = Image.open(io.BytesIO(png)).convert("RGB")

    assert image.getpixel((0, 0)) == (0xff, 0xee, 0xdd)
    assert (0x11, 0x22, 0x33) in {color for _, color in image.getcolors(maxcolors=16)}


def test_render_png_rejects_empty_subject(codec):
    with pytest.raises(ValueError):
        codec.render_png("")


def test_encode_returns_png_data_url(codec):
    data_url = codec.encode("C12345678")

    assert data_url.startswith(DATA_URL_PREFIX)
    assert data_url_to_bytes(data_url).startswith(b"\x89PNG")


def test_data_url_to_bytes_rejects_other_urls():
    with pytest.raises(ValueError):
        data_url_to_bytes("data:text/plain;base64,aGVsbG8=")


def test_save_and_delete_badge(codec):
    path = codec.save("C12345678")

    assert path == codec.badges_dir / "C12345678.png"
    assert codec.badge_exists("C12345678")
    assert codec.delete_badge("C12345678") is True
    assert not codec.badge_exists("C12345678")
    assert codec.delete_badge("C12345678") is False


def test_module_level_encode_badge():
    assert encode_badge("C12345678", width=120).startswith(DATA_URL_PREFIX)
