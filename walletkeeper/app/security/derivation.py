# walletkeeper/app/security/derivation.py
"""
Recovery phrase handling and deterministic key derivation.

    phrase --BIP-39--> 64-byte seed --SLIP-10 ed25519 (path)--> 32-byte
    private seed --> solders Keypair

The same (phrase, path) pair always yields the same keypair.
"""
from bip_utils import Bip32Slip10Ed25519
from mnemonic import Mnemonic
from solders.keypair import Keypair

from walletkeeper.app.core.config import settings
from walletkeeper.app.core.errors import InvalidPhraseError

# 128 bits of entropy -> 12 words
PHRASE_STRENGTH = 128

SOLANA_DERIVATION_PATH = settings.DERIVATION_PATH

_mnemo = Mnemonic("english")


def normalize_phrase(text: str) -> str:
    """Lowercase and collapse runs of whitespace to single spaces."""
    return " ".join(text.strip().lower().split())


def generate_phrase() -> str:
    """Generate a fresh checksummed 12-word phrase from os.urandom entropy."""
    return _mnemo.generate(strength=PHRASE_STRENGTH)


def validate_phrase(text: str) -> bool:
    """Wordlist and checksum validation after normalization."""
    if not text or not isinstance(text, str):
        return False
    try:
        return _mnemo.check(normalize_phrase(text))
    except (ValueError, LookupError):
        return False


def derive_keypair(phrase: str, path: str = SOLANA_DERIVATION_PATH) -> Keypair:
    """
    Derive the keypair for phrase along path.

    Raises InvalidPhraseError before any derivation work if the checksum
    does not hold.
    """
    if not validate_phrase(phrase):
        raise InvalidPhraseError()

    seed = Mnemonic.to_seed(normalize_phrase(phrase), passphrase="")
    node = Bip32Slip10Ed25519.FromSeedAndPath(seed, path)
    private_seed = node.PrivateKey().Raw().ToBytes()
    return Keypair.from_seed(private_seed)
