"""
Account store — access token lookup for tenant accounts.

Credential storage is owned elsewhere; this only reads the token the
platform client needs for a tenant.
"""

import logging
from typing import Optional

from catalog_sync.db.base_store import BaseStore

logger = logging.getLogger("account_store")

TABLE = "accounts"


class AccountStore(BaseStore):
    """Read-only access to the accounts table."""

    def get_access_token(self, tenant_key: str) -> Optional[str]:
        rows = self._select(TABLE, {"account_id": tenant_key}, columns="access_token", limit=1)
        if not rows:
            logger.warning("no account row tenant=%s", tenant_key)
            return None
        return rows[0].get("access_token")
