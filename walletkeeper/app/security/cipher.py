# walletkeeper/app/security/cipher.py
"""
PIN-derived credential cipher.

Two independent primitives that must never be swapped:

- Sealing: Argon2id (raw) derives an AES-256 key from the PIN and a fresh
  salt; AES-256-GCM with a fresh nonce encrypts and authenticates. A wrong
  PIN fails the tag check instead of returning garbage.
- PIN hash: Argon2id PHC string from argon2.PasswordHasher, with its own
  salt and parameters. It verifies a PIN and nothing else.

Both are CPU/memory hard on purpose; async callers go through
core.workers.run_blocking.
"""
import json
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from walletkeeper.app.core.config import settings
from walletkeeper.app.core.errors import DecryptionFailedError, WeakCredentialError

logger = logging.getLogger(__name__)


# ============================================
# Constants
# ============================================

ENVELOPE_VERSION = 1
KDF_NAME = "argon2id"
KEY_SIZE = 32     # AES-256
SALT_SIZE = 16
NONCE_SIZE = 12   # 96 bits, recommended for GCM
TAG_SIZE = 16

# Digit runs that show up in every leaked-PIN list
OBVIOUS_PATTERNS = (
    "1234", "4321", "0123", "3210",
    "1122", "2211", "6969", "1337",
)


# ============================================
# Sealing
# ============================================

def _derive_key(pin: str, salt: bytes, time_cost: int, memory_cost: int, parallelism: int) -> bytes:
    return hash_secret_raw(
        secret=pin.encode("utf-8"),
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=KEY_SIZE,
        type=Type.ID,
    )


def seal_with_pin(plaintext: str, pin: str) -> str:
    """
    Encrypt plaintext under a key derived from pin.

    Returns a JSON envelope. KDF parameters travel with the ciphertext, so
    changing the configured costs never strands existing wallets.
    """
    if not isinstance(plaintext, str) or not plaintext:
        raise ValueError("Nothing to seal")
    if not isinstance(pin, str) or not pin:
        raise ValueError("PIN required for sealing")

    salt = secrets.token_bytes(SALT_SIZE)
    nonce = secrets.token_bytes(NONCE_SIZE)
    time_cost = settings.SEAL_TIME_COST
    memory_cost = settings.SEAL_MEMORY_COST
    parallelism = settings.SEAL_PARALLELISM

    key = _derive_key(pin, salt, time_cost, memory_cost, parallelism)
    ciphertext_and_tag = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)

    envelope = {
        "v": ENVELOPE_VERSION,
        "kdf": {
            "algorithm": KDF_NAME,
            "salt": salt.hex(),
            "time_cost": time_cost,
            "memory_cost": memory_cost,
            "parallelism": parallelism,
        },
        "iv": nonce.hex(),
        "ct": ciphertext_and_tag[:-TAG_SIZE].hex(),
        "tag": ciphertext_and_tag[-TAG_SIZE:].hex(),
    }
    return json.dumps(envelope, separators=(",", ":"))


def open_with_pin(sealed: str, pin: str) -> str:
    """
    Decrypt an envelope produced by seal_with_pin.

    Raises:
        DecryptionFailedError: wrong PIN, tampered ciphertext or a malformed
            envelope. The cases are deliberately not distinguished.
    """
    try:
        envelope = json.loads(sealed)
        if envelope.get("v") != ENVELOPE_VERSION:
            raise ValueError("unsupported envelope version")
        kdf = envelope["kdf"]
        if kdf.get("algorithm") != KDF_NAME:
            raise ValueError("unsupported kdf")

        key = _derive_key(
            pin,
            bytes.fromhex(kdf["salt"]),
            int(kdf["time_cost"]),
            int(kdf["memory_cost"]),
            int(kdf["parallelism"]),
        )
        nonce = bytes.fromhex(envelope["iv"])
        ciphertext_and_tag = bytes.fromhex(envelope["ct"]) + bytes.fromhex(envelope["tag"])
        plaintext = AESGCM(key).decrypt(nonce, ciphertext_and_tag, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, ValueError, KeyError, TypeError, AttributeError) as exc:
        raise DecryptionFailedError() from exc


# ============================================
# PIN verification hash
# ============================================

def _pin_hasher() -> PasswordHasher:
    return PasswordHasher(
        time_cost=settings.PIN_HASH_TIME_COST,
        memory_cost=settings.PIN_HASH_MEMORY_COST,
        parallelism=settings.PIN_HASH_PARALLELISM,
    )


def hash_pin(pin: str) -> str:
    """Salted Argon2id hash of the PIN (PHC string, safe to store)."""
    return _pin_hasher().hash(pin)


def verify_pin(pin: str, pin_hash: Optional[str]) -> bool:
    """Constant-time verification; malformed hashes simply do not verify."""
    if not pin or not pin_hash:
        return False
    try:
        return _pin_hasher().verify(pin_hash, pin)
    except (VerifyMismatchError, UnicodeEncodeError):
        # A PIN that is not valid UTF-8 text can never match a stored hash
        return False
    except (VerificationError, InvalidHashError):
        logger.warning("Stored PIN hash could not be parsed")
        return False


# ============================================
# Strength policy
# ============================================

@dataclass(frozen=True)
class PinStrength:
    strong: bool
    reason: str


def _is_sequential(pin: str) -> bool:
    """True for strictly ascending or descending digit runs (1234, 9876)."""
    if not pin.isdigit() or len(pin) < 2:
        return False
    steps = {int(b) - int(a) for a, b in zip(pin, pin[1:])}
    return steps == {1} or steps == {-1}


def check_pin_strength(pin: str) -> PinStrength:
    """Reject trivially guessable PINs before any key material is derived."""
    if not isinstance(pin, str) or not pin.strip():
        return PinStrength(False, "PIN is required")

    try:
        pin.encode("utf-8")
    except UnicodeEncodeError:
        return PinStrength(False, "PIN contains characters that cannot be stored")

    if len(pin) < settings.PIN_MIN_LENGTH:
        return PinStrength(False, f"PIN must have at least {settings.PIN_MIN_LENGTH} characters")
    if len(pin) > settings.PIN_MAX_LENGTH:
        return PinStrength(False, f"PIN must have at most {settings.PIN_MAX_LENGTH} characters")

    if len(set(pin)) == 1:
        return PinStrength(False, "PIN cannot repeat a single character")

    if _is_sequential(pin):
        return PinStrength(False, "Avoid simple sequences such as 1234 or 4321")

    if any(pattern in pin for pattern in OBVIOUS_PATTERNS):
        return PinStrength(False, "PIN is too obvious. Use a less predictable combination.")

    return PinStrength(True, "PIN is strong")


def ensure_strong_pin(pin: str) -> None:
    strength = check_pin_strength(pin)
    if not strength.strong:
        raise WeakCredentialError(strength.reason)


def self_test() -> bool:
    """Round-trip a probe value; used at startup as a sanity check."""
    probe = "walletkeeper-probe"
    pin = "cipher-self-test"
    try:
        return open_with_pin(seal_with_pin(probe, pin), pin) == probe
    except DecryptionFailedError:
        return False
