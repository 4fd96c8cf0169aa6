from typing import Optional

from fastapi import Header

from inventory_ledger.core.security import authenticate_request
from inventory_ledger.database.session import get_db


def require_auth(
    api_key: Optional[str] = Header(None, alias="X-API-Key"),
    api_key_alt: Optional[str] = Header(None, alias="api-key"),
):
    api_key_value = api_key or api_key_alt
    return authenticate_request(
        api_key=api_key_value,
        require_auth=True,
    )


__all__ = ["get_db", "require_auth"]
