"""Profile field updates on the user document."""

from typing import Optional

from finance_tracker.audit import AuditLogger
from finance_tracker.models.ledger import ProfileUpdate
from finance_tracker.services.storage import SERVER_TIMESTAMP, DocumentStore
from finance_tracker.services.storage.paths import user_path


class ProfileRegistry:
    """Writes name, phone and photo fields; never the aggregate totals."""

    def __init__(
        self,
        store: DocumentStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def update_profile(self, user_id: str, update: ProfileUpdate) -> list[str]:
        """
        Merge the given profile fields and stamp ``updatedAt``.

        Returns:
            The document fields that were written

        Raises:
            NotFoundError: If the user document does not exist
        """
        fields = update.to_fields()
        fields["updatedAt"] = SERVER_TIMESTAMP
        await self._store.update_fields(user_path(user_id), fields)

        written = sorted(fields)
        if self._audit_logger:
            await self._audit_logger.log_profile_updated(user_id, written)
        return written
