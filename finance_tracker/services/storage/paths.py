"""Document paths used by the ledger and registries."""

USERS_COLLECTION = "users"
TRANSACTIONS_COLLECTION = "transactions"
BILLS_COLLECTION = "bills"
AUDIT_LOG_COLLECTION = "auditLog"


def user_path(user_id: str) -> str:
    if not user_id or "/" in user_id:
        raise ValueError(f"Invalid user id: {user_id!r}")
    return f"{USERS_COLLECTION}/{user_id}"


def transactions_path(user_id: str) -> str:
    return f"{user_path(user_id)}/{TRANSACTIONS_COLLECTION}"


def transaction_path(user_id: str, transaction_id: str) -> str:
    return f"{transactions_path(user_id)}/{transaction_id}"


def bills_path(user_id: str) -> str:
    return f"{user_path(user_id)}/{BILLS_COLLECTION}"


def parent_collection(path: str) -> str:
    """``users/u1/transactions/t1`` -> ``users/u1/transactions``."""
    return path.rsplit("/", 1)[0]
