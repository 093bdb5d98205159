"""
Wallet Registry

Wallets live in the ``wallets`` list field of the user document, not in a
collection of their own.

DESIGN DECISION: Wallet writes are plain single-document mutations
(list append, read-then-replace for update and delete). They are not part
of the ledger's atomic unit and only ever write the ``wallets`` field, so
they cannot disturb the aggregate totals.

KNOWN GAP: A wallet edit and a transaction insert that references the same
wallet are not ordered relative to each other, and deleting a wallet
leaves its transactions pointing at a missing id. Readers resolve such ids
with ``wallet_label`` instead of failing.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from finance_tracker.audit import AuditLogger
from finance_tracker.models.ledger import DELETED_WALLET_LABEL, Wallet, WalletInput
from finance_tracker.services.storage import DocumentStore, NotFoundError
from finance_tracker.services.storage.paths import user_path

WALLETS_FIELD = "wallets"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def wallet_label(wallets: list[Wallet], wallet_id: Optional[str]) -> Optional[str]:
    """
    Display name for a transaction's wallet reference.

    Returns None when the transaction has no wallet, and a fallback label
    when the wallet has since been deleted.
    """
    if wallet_id is None:
        return None
    for wallet in wallets:
        if wallet.id == wallet_id:
            return wallet.name
    return DELETED_WALLET_LABEL


class WalletRegistry:
    """CRUD over a user's embedded wallet list."""

    def __init__(
        self,
        store: DocumentStore,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._clock = clock

    async def _load(self, user_id: str) -> list[Wallet]:
        data = await self._store.get(user_path(user_id))
        if data is None:
            raise NotFoundError(f"User not found: {user_id}")
        return [Wallet.from_document(w) for w in data.get(WALLETS_FIELD) or []]

    def _new_wallet_id(self, taken: set[str]) -> str:
        """Time-based id, ``wallet_<epoch millis>``, bumped past collisions."""
        millis = int(self._clock().timestamp() * 1000)
        while f"wallet_{millis}" in taken:
            millis += 1
        return f"wallet_{millis}"

    async def list_wallets(self, user_id: str) -> list[Wallet]:
        """The user's wallets in stored order; empty if the user is unknown."""
        try:
            return await self._load(user_id)
        except NotFoundError:
            return []

    async def get_wallet(self, user_id: str, wallet_id: str) -> Optional[Wallet]:
        for wallet in await self.list_wallets(user_id):
            if wallet.id == wallet_id:
                return wallet
        return None

    async def add_wallet(self, user_id: str, wallet_input: WalletInput) -> Wallet:
        """
        Append a wallet to the user's list.

        Raises:
            NotFoundError: If the user document does not exist
        """
        existing = await self._load(user_id)
        wallet = Wallet(
            id=self._new_wallet_id({w.id for w in existing}),
            name=wallet_input.name,
            icon=wallet_input.icon,
            balance=wallet_input.balance,
            created_at=self._clock(),
        )
        await self._store.append_to_list_field(
            user_path(user_id),
            WALLETS_FIELD,
            wallet.to_document(),
        )

        if self._audit_logger:
            await self._audit_logger.log_wallet_added(user_id, wallet.id, wallet.name)
        return wallet

    async def update_wallet(
        self,
        user_id: str,
        wallet_id: str,
        wallet_input: WalletInput,
    ) -> Wallet:
        """
        Replace a wallet's name, icon and declared balance in place.

        Raises:
            NotFoundError: If the user or the wallet does not exist
        """
        wallets = await self._load(user_id)

        updated = None
        replaced = []
        for wallet in wallets:
            if wallet.id == wallet_id:
                updated = wallet.model_copy(update={
                    "name": wallet_input.name,
                    "icon": wallet_input.icon,
                    "balance": wallet_input.balance,
                })
                replaced.append(updated)
            else:
                replaced.append(wallet)

        if updated is None:
            raise NotFoundError(f"Wallet not found: {wallet_id}")

        await self._store.update_fields(
            user_path(user_id),
            {WALLETS_FIELD: [w.to_document() for w in replaced]},
        )

        if self._audit_logger:
            await self._audit_logger.log_wallet_updated(user_id, wallet_id, updated.name)
        return updated

    async def delete_wallet(self, user_id: str, wallet_id: str) -> bool:
        """
        Remove a wallet from the list.

        Transactions referencing it are left untouched.

        Returns:
            True if a wallet was removed, False if no wallet had that id
        """
        wallets = await self._load(user_id)
        remaining = [w for w in wallets if w.id != wallet_id]
        if len(remaining) == len(wallets):
            return False

        await self._store.update_fields(
            user_path(user_id),
            {WALLETS_FIELD: [w.to_document() for w in remaining]},
        )

        if self._audit_logger:
            await self._audit_logger.log_wallet_deleted(user_id, wallet_id)
        return True
