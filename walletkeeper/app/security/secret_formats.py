# walletkeeper/app/security/secret_formats.py
"""
Detect the textual encoding of a raw secret key and rebuild its keypair.

Encodings overlap in shape (a hex string is also valid base64 text), so the
variants are tried in a fixed order and the first one whose shape matches
AND whose decoded output is exactly SECRET_KEY_LENGTH bytes wins. Do not
reorder FORMATS.
"""
import base64
import binascii
import json
import logging
import string
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import base58
from solders.keypair import Keypair

from walletkeeper.app.core.errors import UnrecognizedFormatError

logger = logging.getLogger(__name__)

# ed25519 secret key as Solana stores it: 32-byte seed + 32-byte public key
SECRET_KEY_LENGTH = 64

BASE58_MIN_LENGTH = 86
BASE58_MAX_LENGTH = 90
HEX_LENGTH = SECRET_KEY_LENGTH * 2


@dataclass(frozen=True)
class SecretFormat:
    """One candidate encoding: a cheap shape check and a decoder."""
    name: str
    matches: Callable[[str], bool]
    decode: Callable[[str], bytes]


def _is_base58_shaped(text: str) -> bool:
    return BASE58_MIN_LENGTH <= len(text) <= BASE58_MAX_LENGTH


def _decode_base58(text: str) -> bytes:
    return base58.b58decode(text)


def _decode_base64(text: str) -> bytes:
    return base64.b64decode(text, validate=True)


def _is_json_array_shaped(text: str) -> bool:
    return text.startswith("[") and text.endswith("]")


def _decode_json_array(text: str) -> bytes:
    values = json.loads(text)
    if not isinstance(values, list):
        raise ValueError("not a JSON array")
    for value in values:
        # bool is an int subclass; true/false are not bytes
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 255:
            raise ValueError("array element outside byte range")
    return bytes(values)


def _is_hex_shaped(text: str) -> bool:
    return len(text) == HEX_LENGTH and all(c in string.hexdigits for c in text)


def _decode_hex(text: str) -> bytes:
    return bytes.fromhex(text)


FORMATS: Tuple[SecretFormat, ...] = (
    SecretFormat("base58", _is_base58_shaped, _decode_base58),
    SecretFormat("base64", lambda text: bool(text), _decode_base64),
    SecretFormat("json-array", _is_json_array_shaped, _decode_json_array),
    SecretFormat("hex", _is_hex_shaped, _decode_hex),
)


def decode_secret_key(raw: str) -> Tuple[str, bytes]:
    """
    Return (format name, 64 secret key bytes) for the first matching format.

    Raises:
        UnrecognizedFormatError: no format both matched and decoded to
            exactly SECRET_KEY_LENGTH bytes
    """
    if not raw or not isinstance(raw, str):
        raise UnrecognizedFormatError()

    text = raw.strip()
    for fmt in FORMATS:
        if not fmt.matches(text):
            continue
        try:
            secret = fmt.decode(text)
        except (ValueError, binascii.Error, RecursionError):
            # Shape matched but content did not decode; try the next format
            continue
        if len(secret) == SECRET_KEY_LENGTH:
            return fmt.name, secret
        logger.debug("%s candidate decoded to %d bytes, falling through", fmt.name, len(secret))

    raise UnrecognizedFormatError()


def detect_format(raw: str) -> Optional[str]:
    """Name of the format decode_secret_key would commit to, or None."""
    try:
        name, _ = decode_secret_key(raw)
    except UnrecognizedFormatError:
        return None
    return name


def keypair_from_secret(raw: str) -> Keypair:
    """
    Rebuild the keypair for a raw secret key in any supported encoding.

    Bytes of the right length that do not form a valid ed25519 keypair
    (e.g. a public half that does not match the seed) are rejected as
    UnrecognizedFormatError as well.
    """
    _, secret = decode_secret_key(raw)
    try:
        return Keypair.from_bytes(secret)
    except ValueError as exc:
        raise UnrecognizedFormatError() from exc
