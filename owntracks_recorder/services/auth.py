# owntracks_recorder/services/auth.py
import secrets
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .. import config

REALM = "Secure Area"

security = HTTPBasic(realm=REALM, auto_error=False)


def _matches(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


async def require_basic_auth(credentials: Optional[HTTPBasicCredentials] = Depends(security)):
    """Enforce HTTP Basic auth when BASIC_AUTH_USER and BASIC_AUTH_PASS are set."""
    if not (config.BASIC_AUTH_USER and config.BASIC_AUTH_PASS):
        return None
    if credentials is None or not (
        _matches(credentials.username, config.BASIC_AUTH_USER)
        & _matches(credentials.password, config.BASIC_AUTH_PASS)
    ):
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": f'Basic realm="{REALM}"'},
        )
    return credentials.username
