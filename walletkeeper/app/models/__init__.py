from walletkeeper.app.models.key_claim import KeyClaim
from walletkeeper.app.models.task import Monitor, Notification, Task, TaskStatus
from walletkeeper.app.models.wallet import IMPORTED_FROM_KEY, NO_SEED_PHRASE, Wallet
from walletkeeper.app.models.wallet_backup import WalletBackup

# Rows removed together with an owner's wallets
OWNER_SCOPED_MODELS = (Wallet, KeyClaim, Task, Notification, Monitor)

__all__ = [
    "IMPORTED_FROM_KEY",
    "KeyClaim",
    "Monitor",
    "NO_SEED_PHRASE",
    "Notification",
    "OWNER_SCOPED_MODELS",
    "Task",
    "TaskStatus",
    "Wallet",
    "WalletBackup",
]
