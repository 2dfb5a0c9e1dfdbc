"""
Persisted key layout.

The names are fixed: existing wallet data written under them must
load unchanged.
"""

USERS_KEY = "DEMO_USERS_V1"
CURRENT_USER_KEY = "DEMO_CURRENT_USER_ID"
TX_KEY_PREFIX = "DEMO_TXS_USER_"
SECRET_KEY_PREFIX = "USER_SECRET_"


def transactions_key(user_id: str) -> str:
    return f"{TX_KEY_PREFIX}{user_id}"


def secret_key(user_id: str) -> str:
    return f"{SECRET_KEY_PREFIX}{user_id}"
