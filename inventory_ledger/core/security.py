from __future__ import annotations

import hmac
from typing import Optional

from fastapi import HTTPException, status

from inventory_ledger.config import get_settings


def _load_api_keys() -> set[str]:
    settings = get_settings()
    keys = set()
    if settings.ADMIN_API_KEY:
        keys.add(settings.ADMIN_API_KEY.strip())
    if settings.API_KEYS:
        for value in settings.API_KEYS.split(","):
            value = value.strip()
            if value:
                keys.add(value)
    return keys


def _key_matches(candidate: str, keys: set[str]) -> bool:
    return any(hmac.compare_digest(candidate, key) for key in keys)


def authenticate_request(
    api_key: Optional[str],
    *,
    require_auth: bool = False,
) -> Optional[dict]:
    keys = _load_api_keys()

    if api_key and keys and _key_matches(api_key.strip(), keys):
        return {"auth_type": "api_key"}

    # No keys configured means a local install; writes stay open.
    if require_auth and keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return None
