"""
Tests for raw secret key import.

Covers security/secret_formats.py:
  - the four encodings of one key rebuild the same keypair
  - detection order (hex text is also base64 text)
  - a shape match with the wrong decoded length falls through
  - garbage and out-of-range JSON arrays are rejected
"""

from __future__ import annotations

import base64
import json

import base58
import pytest
from solders.keypair import Keypair

from walletkeeper.app.core.errors import ErrorKind, UnrecognizedFormatError
from walletkeeper.app.security.secret_formats import (
    FORMATS,
    SECRET_KEY_LENGTH,
    decode_secret_key,
    detect_format,
    keypair_from_secret,
)


@pytest.fixture
def keypair():
    return Keypair()


@pytest.fixture
def encodings(keypair):
    raw = bytes(keypair)
    return {
        "base58": base58.b58encode(raw).decode("ascii"),
        "base64": base64.b64encode(raw).decode("ascii"),
        "json-array": json.dumps(list(raw)),
        "hex": raw.hex(),
    }


class TestFormatEquivalence:

    def test_all_encodings_give_same_keypair(self, keypair, encodings):
        for name, text in encodings.items():
            rebuilt = keypair_from_secret(text)
            assert rebuilt.pubkey() == keypair.pubkey(), name

    def test_each_encoding_detected_by_name(self, encodings):
        for name, text in encodings.items():
            assert detect_format(text) == name

    def test_decoded_bytes_match(self, keypair, encodings):
        for text in encodings.values():
            _, secret = decode_secret_key(text)
            assert secret == bytes(keypair)
            assert len(secret) == SECRET_KEY_LENGTH

    def test_surrounding_whitespace_ignored(self, keypair, encodings):
        rebuilt = keypair_from_secret("  " + encodings["base58"] + "\n")
        assert rebuilt.pubkey() == keypair.pubkey()

    def test_uppercase_hex_accepted(self, keypair, encodings):
        assert keypair_from_secret(encodings["hex"].upper()).pubkey() == keypair.pubkey()


class TestDetectionOrder:

    def test_order_is_fixed(self):
        assert [fmt.name for fmt in FORMATS] == ["base58", "base64", "json-array", "hex"]

    def test_hex_falls_through_base64(self, encodings):
        # 128 hex chars are valid base64 but decode to 96 bytes
        text = encodings["hex"]
        assert len(base64.b64decode(text)) != SECRET_KEY_LENGTH
        assert detect_format(text) == "hex"

    def test_base64_inside_base58_window_falls_through(self, encodings):
        text = encodings["base64"]
        assert 86 <= len(text) <= 90
        assert detect_format(text) == "base64"


class TestRejection:

    def test_base58_shaped_but_63_bytes(self):
        text = base58.b58encode(b"\xff" * 63).decode("ascii")
        assert 86 <= len(text) <= 90
        with pytest.raises(UnrecognizedFormatError):
            decode_secret_key(text)

    def test_base58_shaped_but_too_long(self):
        with pytest.raises(UnrecognizedFormatError):
            decode_secret_key("z" * 90)

    def test_base64_of_32_bytes(self):
        with pytest.raises(UnrecognizedFormatError):
            decode_secret_key(base64.b64encode(b"\x01" * 32).decode("ascii"))

    def test_json_array_wrong_length(self):
        with pytest.raises(UnrecognizedFormatError):
            decode_secret_key(json.dumps([1] * 63))

    def test_json_array_out_of_range(self):
        with pytest.raises(UnrecognizedFormatError):
            decode_secret_key(json.dumps([256] + [0] * 63))

    def test_json_array_of_booleans(self):
        with pytest.raises(UnrecognizedFormatError):
            decode_secret_key(json.dumps([True] * 64))

    def test_json_object_rejected(self):
        with pytest.raises(UnrecognizedFormatError):
            decode_secret_key('{"key": [1, 2, 3]}')

    def test_hex_with_non_hex_character(self):
        with pytest.raises(UnrecognizedFormatError):
            decode_secret_key("g" * 128)

    def test_deeply_nested_json_array(self):
        text = "[" * 200000 + "]" * 200000
        with pytest.raises(UnrecognizedFormatError):
            decode_secret_key(text)
        assert detect_format(text) is None

    @pytest.mark.parametrize("value", ["", "   ", "not a key", None])
    def test_garbage(self, value):
        with pytest.raises(UnrecognizedFormatError) as excinfo:
            keypair_from_secret(value)
        assert excinfo.value.kind is ErrorKind.UNRECOGNIZED_FORMAT

    def test_detect_format_returns_none(self):
        assert detect_format("not a key") is None
