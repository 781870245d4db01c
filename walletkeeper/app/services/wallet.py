# walletkeeper/app/services/wallet.py
"""
Wallet lifecycle: create, import, PIN change, deactivate, delete.

Every public coroutine returns an OperationResult. Expected failures are
raised as WalletError subclasses inside the operation and converted at the
boundary by @wallet_operation; database faults become StorageError.

Slow work (Argon2, key derivation) never runs inside an open transaction.
Operations read and check in one short transaction, do the crypto on the
worker pool, then write in a second transaction. The unique indexes on
wallets and key_claims catch anything that slipped in between.
"""
import asyncio
import base64
import functools
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from solders.keypair import Keypair
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from walletkeeper.app.core.errors import (
    AuthError,
    ConflictError,
    DecryptionFailedError,
    DuplicateKeyError,
    InvalidPhraseError,
    NoPhraseAvailableError,
    NotFoundError,
    OperationResult,
    PinLockedError,
    StorageError,
    WalletError,
)
from walletkeeper.app.core.workers import run_blocking
from walletkeeper.app.db.session import AsyncSessionLocal
from walletkeeper.app.models import (
    IMPORTED_FROM_KEY,
    NO_SEED_PHRASE,
    OWNER_SCOPED_MODELS,
    KeyClaim,
    Wallet,
)
from walletkeeper.app.schemas.wallet import (
    WalletCreated,
    WalletDeleted,
    WalletImported,
    WalletSummary,
)
from walletkeeper.app.security import cipher, lockout
from walletkeeper.app.security.derivation import (
    SOLANA_DERIVATION_PATH,
    derive_keypair,
    generate_phrase,
    normalize_phrase,
    validate_phrase,
)
from walletkeeper.app.security.secret_formats import keypair_from_secret
from walletkeeper.app.services import backup
from walletkeeper.app.services import progress as progress_service
from walletkeeper.app.services.progress import FollowUpRegistry

logger = logging.getLogger(__name__)


def wallet_operation(func):
    """Convert raised WalletErrors and storage faults into OperationResults."""

    @functools.wraps(func)
    async def wrapper(self, owner_id, *args, **kwargs) -> OperationResult:
        try:
            value = await func(self, owner_id, *args, **kwargs)
        except WalletError as exc:
            logger.info("%s refused for owner %s: %s", func.__name__, owner_id, exc.kind.value)
            return OperationResult.fail(exc)
        except SQLAlchemyError:
            logger.exception("%s hit a storage failure for owner %s", func.__name__, owner_id)
            return OperationResult.fail(StorageError())
        return OperationResult.ok(value)

    return wrapper


def _encode_secret_key(keypair: Keypair) -> str:
    return base64.b64encode(bytes(keypair)).decode("ascii")


def _decode_secret_key(encoded: str) -> bytes:
    return base64.b64decode(encoded)


class WalletService:
    """
    Lifecycle manager for owner wallets.

    Usage:
        service = WalletService()
        result = await service.create_wallet("12345", "Tg7!qX2z")
        if result.success:
            phrase = result.value.seed_phrase  # shown once
    """

    def __init__(self,
                 session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
                 follow_ups: Optional[FollowUpRegistry] = None):
        self._sessions = session_factory or AsyncSessionLocal
        self._follow_ups = follow_ups

    # ============================================
    # Internal helpers
    # ============================================

    @staticmethod
    async def _load_active(session: AsyncSession, owner_id: str) -> Optional[Wallet]:
        result = await session.execute(
            select(Wallet)
            .where(Wallet.owner_id == owner_id, Wallet.is_active.is_(True))
            .order_by(Wallet.created_at.desc(), Wallet.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def _check_key_available(session: AsyncSession, owner_id: str, public_key: str) -> None:
        claim = await session.get(KeyClaim, public_key)
        if claim is not None and claim.owner_id != owner_id:
            raise DuplicateKeyError()

    async def _claim_key(self, session: AsyncSession, owner_id: str, public_key: str) -> None:
        """Claim public_key for owner_id; the primary key settles races."""
        claim = await session.get(KeyClaim, public_key)
        if claim is not None:
            if claim.owner_id != owner_id:
                raise DuplicateKeyError()
            return

        session.add(KeyClaim(public_key=public_key, owner_id=owner_id))
        try:
            await session.flush()
        except IntegrityError as exc:
            raise DuplicateKeyError() from exc

    async def _ensure_no_active(self, session: AsyncSession, owner_id: str) -> None:
        async with session.begin():
            if await self._load_active(session, owner_id) is not None:
                raise ConflictError()

    async def _authenticate(self, owner_id: str, pin: str) -> Wallet:
        """
        PIN gate shared by every secret read and mutation.

        Failures are committed in their own transaction before AuthError is
        raised, so the lockout counter survives the caller's rollback.
        """
        async with self._sessions() as session:
            async with session.begin():
                wallet = await self._load_active(session, owner_id)
                if wallet is None:
                    raise NotFoundError()
                if lockout.is_locked(wallet.failed_pin_attempts, wallet.last_failed_pin_at):
                    minutes = lockout.lockout_remaining_minutes(wallet.last_failed_pin_at)
                    raise PinLockedError(
                        f"Too many incorrect PIN attempts. Try again in {max(minutes, 1)} minutes."
                    )

            valid = await run_blocking(cipher.verify_pin, pin, wallet.pin_hash)

            async with session.begin():
                if valid:
                    if wallet.failed_pin_attempts:
                        await session.execute(
                            update(Wallet)
                            .where(Wallet.id == wallet.id)
                            .values(failed_pin_attempts=0, last_failed_pin_at=None)
                            .execution_options(synchronize_session=False)
                        )
                else:
                    await session.execute(
                        update(Wallet)
                        .where(Wallet.id == wallet.id)
                        .values(
                            failed_pin_attempts=Wallet.failed_pin_attempts + 1,
                            last_failed_pin_at=datetime.now(timezone.utc),
                        )
                        .execution_options(synchronize_session=False)
                    )

        if not valid:
            logger.warning("Incorrect PIN for owner %s", owner_id)
            raise AuthError()
        return wallet

    @staticmethod
    async def _seal_secrets(keypair: Keypair, pin: str,
                            phrase: Optional[str]) -> Tuple[str, str, str]:
        """Return (encrypted_seed, encrypted_secret_key, pin_hash)."""
        jobs = [
            run_blocking(cipher.seal_with_pin, _encode_secret_key(keypair), pin),
            run_blocking(cipher.hash_pin, pin),
        ]
        if phrase is not None:
            jobs.append(run_blocking(cipher.seal_with_pin, phrase, pin))

        sealed_secret, pin_hash, *sealed_phrase = await asyncio.gather(*jobs)
        encrypted_seed = sealed_phrase[0] if sealed_phrase else NO_SEED_PHRASE
        return encrypted_seed, sealed_secret, pin_hash

    async def _store(self, session: AsyncSession, owner_id: str, keypair: Keypair,
                     pin: str, wallet_name: str, phrase: Optional[str],
                     replay_backup: bool) -> Tuple[Wallet, bool]:
        public_key = str(keypair.pubkey())
        encrypted_seed, encrypted_secret_key, pin_hash = await self._seal_secrets(
            keypair, pin, phrase
        )

        async with session.begin():
            await self._claim_key(session, owner_id, public_key)

            wallet = Wallet(
                owner_id=owner_id,
                public_key=public_key,
                encrypted_seed=encrypted_seed,
                encrypted_secret_key=encrypted_secret_key,
                pin_hash=pin_hash,
                derivation_path=SOLANA_DERIVATION_PATH if phrase is not None else IMPORTED_FROM_KEY,
                wallet_name=wallet_name,
                is_active=True,
                failed_pin_attempts=0,
            )
            session.add(wallet)
            try:
                await session.flush()
            except IntegrityError as exc:
                # uq_wallets_active_owner: another active wallet won the race
                raise ConflictError() from exc

            restored = False
            if replay_backup:
                restored = await backup.restore(session, owner_id, public_key)

        return wallet, restored

    # ============================================
    # Creation and import
    # ============================================

    @wallet_operation
    async def create_wallet(self, owner_id: str, pin: str,
                            wallet_name: str = "Main") -> WalletCreated:
        async with self._sessions() as session:
            await self._ensure_no_active(session, owner_id)
            cipher.ensure_strong_pin(pin)

            phrase = generate_phrase()
            keypair = await run_blocking(derive_keypair, phrase)
            wallet, _ = await self._store(
                session, owner_id, keypair, pin, wallet_name, phrase, replay_backup=False
            )

        logger.info("Wallet %s created for owner %s", wallet.public_key, owner_id)
        return WalletCreated(
            wallet_id=wallet.id,
            public_key=wallet.public_key,
            wallet_name=wallet.wallet_name,
            seed_phrase=phrase,
        )

    @wallet_operation
    async def import_from_phrase(self, owner_id: str, seed_phrase: str, pin: str,
                                 wallet_name: str = "Imported") -> WalletImported:
        async with self._sessions() as session:
            await self._ensure_no_active(session, owner_id)
            if not validate_phrase(seed_phrase):
                raise InvalidPhraseError()
            cipher.ensure_strong_pin(pin)

            phrase = normalize_phrase(seed_phrase)
            keypair = await run_blocking(derive_keypair, phrase)
            async with session.begin():
                await self._check_key_available(session, owner_id, str(keypair.pubkey()))

            wallet, restored = await self._store(
                session, owner_id, keypair, pin, wallet_name, phrase, replay_backup=True
            )

        logger.info("Wallet %s imported from phrase for owner %s (restored=%s)",
                    wallet.public_key, owner_id, restored)
        return WalletImported(
            wallet_id=wallet.id,
            public_key=wallet.public_key,
            wallet_name=wallet.wallet_name,
            restored_progress=restored,
        )

    @wallet_operation
    async def import_from_secret_key(self, owner_id: str, raw_secret: str, pin: str,
                                     wallet_name: str = "Imported") -> WalletImported:
        async with self._sessions() as session:
            await self._ensure_no_active(session, owner_id)
            cipher.ensure_strong_pin(pin)

            keypair = keypair_from_secret(raw_secret)
            async with session.begin():
                await self._check_key_available(session, owner_id, str(keypair.pubkey()))

            wallet, restored = await self._store(
                session, owner_id, keypair, pin, wallet_name, None, replay_backup=True
            )

        logger.info("Wallet %s imported from secret key for owner %s (restored=%s)",
                    wallet.public_key, owner_id, restored)
        return WalletImported(
            wallet_id=wallet.id,
            public_key=wallet.public_key,
            wallet_name=wallet.wallet_name,
            restored_progress=restored,
        )

    # ============================================
    # Destructive operations
    # ============================================

    @wallet_operation
    async def delete_wallet(self, owner_id: str, pin: str) -> WalletDeleted:
        """
        Back up progress, then remove every owner-scoped row and reset progress.

        The backup commits first. If the removal fails it rolls back as a
        whole and the backup stays behind; it is only ever replayed for a
        wallet importing the same public key.
        """
        wallet = await self._authenticate(owner_id, pin)

        async with self._sessions() as session:
            async with session.begin():
                current = await progress_service.list_progress(session, owner_id)
                saved = await backup.snapshot(session, owner_id, wallet.public_key, current)

            # Task rows loaded for the snapshot must not shadow the fresh defaults
            session.expunge_all()

            async with session.begin():
                for model in OWNER_SCOPED_MODELS:
                    await session.execute(delete(model).where(model.owner_id == owner_id))
                await progress_service.initialize_default_progress(session, owner_id)

        if self._follow_ups is not None:
            self._follow_ups.cancel_owner(owner_id)

        logger.info("Wallet %s deleted for owner %s (backup %s)",
                    wallet.public_key, owner_id, saved.id)
        return WalletDeleted(public_key=wallet.public_key, backup_id=saved.id)

    @wallet_operation
    async def deactivate_wallet(self, owner_id: str, pin: str) -> WalletSummary:
        wallet = await self._authenticate(owner_id, pin)

        async with self._sessions() as session:
            async with session.begin():
                result = await session.execute(
                    update(Wallet)
                    .where(Wallet.id == wallet.id, Wallet.is_active.is_(True))
                    .values(is_active=False)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise NotFoundError()
                wallet = await session.get(Wallet, wallet.id, populate_existing=True)

        logger.info("Wallet %s deactivated for owner %s", wallet.public_key, owner_id)
        return WalletSummary.model_validate(wallet)

    @wallet_operation
    async def change_pin(self, owner_id: str, old_pin: str, new_pin: str) -> WalletSummary:
        """
        Re-seal phrase and secret key under new_pin.

        Both ciphertexts and the PIN hash are written by one UPDATE, so no
        reader ever sees the secrets under different PINs.
        """
        wallet = await self._authenticate(owner_id, old_pin)
        cipher.ensure_strong_pin(new_pin)

        phrase = None
        if wallet.has_seed_phrase:
            phrase = await run_blocking(cipher.open_with_pin, wallet.encrypted_seed, old_pin)
        secret_text = await run_blocking(
            cipher.open_with_pin, wallet.encrypted_secret_key, old_pin
        )

        jobs = [
            run_blocking(cipher.seal_with_pin, secret_text, new_pin),
            run_blocking(cipher.hash_pin, new_pin),
        ]
        if phrase is not None:
            jobs.append(run_blocking(cipher.seal_with_pin, phrase, new_pin))
        new_secret, new_hash, *new_seed = await asyncio.gather(*jobs)

        async with self._sessions() as session:
            async with session.begin():
                result = await session.execute(
                    update(Wallet)
                    .where(
                        Wallet.id == wallet.id,
                        Wallet.is_active.is_(True),
                        # Unchanged since the PIN check; a concurrent change wins
                        Wallet.pin_hash == wallet.pin_hash,
                    )
                    .values(
                        encrypted_seed=new_seed[0] if new_seed else NO_SEED_PHRASE,
                        encrypted_secret_key=new_secret,
                        pin_hash=new_hash,
                        failed_pin_attempts=0,
                        last_failed_pin_at=None,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise AuthError()
                wallet = await session.get(Wallet, wallet.id, populate_existing=True)

        logger.info("PIN changed for wallet %s", wallet.public_key)
        return WalletSummary.model_validate(wallet)

    # ============================================
    # PIN-gated reads
    # ============================================

    @wallet_operation
    async def get_keypair(self, owner_id: str, pin: str) -> Keypair:
        wallet = await self._authenticate(owner_id, pin)
        secret_text = await run_blocking(cipher.open_with_pin, wallet.encrypted_secret_key, pin)
        try:
            keypair = Keypair.from_bytes(_decode_secret_key(secret_text))
        except ValueError as exc:
            raise DecryptionFailedError() from exc
        if str(keypair.pubkey()) != wallet.public_key:
            raise DecryptionFailedError()
        return keypair

    @wallet_operation
    async def get_phrase(self, owner_id: str, pin: str) -> str:
        wallet = await self._authenticate(owner_id, pin)
        if not wallet.has_seed_phrase:
            raise NoPhraseAvailableError()
        return await run_blocking(cipher.open_with_pin, wallet.encrypted_seed, pin)

    @wallet_operation
    async def verify_pin(self, owner_id: str, pin: str) -> bool:
        await self._authenticate(owner_id, pin)
        return True

    # ============================================
    # Status (no secrets)
    # ============================================

    @wallet_operation
    async def get_active_wallet(self, owner_id: str) -> WalletSummary:
        async with self._sessions() as session:
            async with session.begin():
                wallet = await self._load_active(session, owner_id)
        if wallet is None:
            raise NotFoundError()
        return WalletSummary.model_validate(wallet)

    @wallet_operation
    async def has_wallet(self, owner_id: str) -> bool:
        async with self._sessions() as session:
            async with session.begin():
                return await self._load_active(session, owner_id) is not None

    @wallet_operation
    async def list_wallets(self, owner_id: str) -> List[WalletSummary]:
        async with self._sessions() as session:
            async with session.begin():
                result = await session.execute(
                    select(Wallet)
                    .where(Wallet.owner_id == owner_id)
                    .order_by(Wallet.created_at.desc(), Wallet.id.desc())
                )
                wallets = result.scalars().all()
        return [WalletSummary.model_validate(wallet) for wallet in wallets]
