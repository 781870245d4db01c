# walletkeeper/app/core/errors.py
"""
Error kinds and the tagged result returned by every wallet operation.

Errors are raised as WalletError subclasses where the condition is detected
and converted to an OperationResult at the operation boundary. Callers only
ever see the kind and a short, generic message.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

# AuthError and DecryptionFailed must not be told apart by callers
INCORRECT_PIN_MESSAGE = "Incorrect PIN"


class ErrorKind(str, Enum):
    WEAK_CREDENTIAL = "WeakCredential"
    INVALID_PHRASE = "InvalidPhrase"
    UNRECOGNIZED_FORMAT = "UnrecognizedFormat"
    CONFLICT = "Conflict"
    DUPLICATE_KEY = "DuplicateKey"
    AUTH_ERROR = "AuthError"
    NOT_FOUND = "NotFound"
    DECRYPTION_FAILED = "DecryptionFailed"
    NO_PHRASE_AVAILABLE = "NoPhraseAvailable"
    STORAGE_ERROR = "StorageError"
    LOCKED = "Locked"


class WalletError(Exception):
    """Base class for expected, caller-facing failures."""

    kind: ErrorKind
    default_message: str = "Wallet operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class WeakCredentialError(WalletError):
    kind = ErrorKind.WEAK_CREDENTIAL
    default_message = "PIN is too weak"


class InvalidPhraseError(WalletError):
    kind = ErrorKind.INVALID_PHRASE
    default_message = "Invalid recovery phrase"


class UnrecognizedFormatError(WalletError):
    kind = ErrorKind.UNRECOGNIZED_FORMAT
    default_message = (
        "Unrecognized secret key. Accepted formats: base58, base64, "
        "JSON byte array or hex."
    )


class ConflictError(WalletError):
    kind = ErrorKind.CONFLICT
    default_message = "An active wallet already exists. Deactivate it first."


class DuplicateKeyError(WalletError):
    kind = ErrorKind.DUPLICATE_KEY
    default_message = "This wallet is already registered by another user"


class AuthError(WalletError):
    kind = ErrorKind.AUTH_ERROR
    default_message = INCORRECT_PIN_MESSAGE


class NotFoundError(WalletError):
    kind = ErrorKind.NOT_FOUND
    default_message = "No active wallet found"


class DecryptionFailedError(WalletError):
    kind = ErrorKind.DECRYPTION_FAILED
    default_message = INCORRECT_PIN_MESSAGE


class NoPhraseAvailableError(WalletError):
    kind = ErrorKind.NO_PHRASE_AVAILABLE
    default_message = "This wallet was imported from a secret key and has no recovery phrase"


class StorageError(WalletError):
    kind = ErrorKind.STORAGE_ERROR
    default_message = "Storage is temporarily unavailable"


class PinLockedError(WalletError):
    kind = ErrorKind.LOCKED
    default_message = "Too many incorrect PIN attempts. Try again later."


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Success carries a value; failure carries an ErrorKind and a message."""

    success: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, value: Any = None) -> "OperationResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: WalletError) -> "OperationResult":
        return cls(success=False, error=error.kind, message=error.message)
