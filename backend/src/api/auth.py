"""Administrator check applied to every MySQL service route."""

from __future__ import annotations

import logging
import os
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from mysql_db.errors import AuthorizationError

logger = logging.getLogger(__name__)

ADMIN_TOKEN_ENV = "MYSQL_SERVICE_ADMIN_TOKEN"


def check_administrator(authorization: Optional[str]) -> None:
    """Raise :class:`AuthorizationError` unless *authorization* carries the admin token."""

    expected = os.getenv(ADMIN_TOKEN_ENV, "")
    if not expected:
        raise AuthorizationError("No administrator token is configured")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token.strip().encode("utf-8"), expected.encode("utf-8")):
        raise AuthorizationError("Administrator privileges required")


def require_administrator(authorization: Optional[str] = Header(default=None)) -> None:
    try:
        check_administrator(authorization)
    except AuthorizationError as exc:
        logger.warning("Rejected request: %s", exc)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
