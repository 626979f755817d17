"""Identity for API callers.

``get_current_user`` resolves the caller to a ``models.User`` row, whose id is
the opaque owner id used by the resume store and the ranking pipeline.

* Local mode (``AUTH_ENABLED`` unset/false): every request acts as a single
  local user that is created on first use.
* Enabled mode: ``Authorization: Bearer <jwt>`` signed with
  ``AUTH_JWT_SECRET`` is required. The ``sub`` and ``email`` claims upsert the
  user row.
"""
from __future__ import annotations

from typing import Annotated, Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

import crud
import models
import schemas
from database import get_db
from settings import get_settings

logger = structlog.get_logger(__name__)

LOCAL_USER_EMAIL = "local@example.com"
LOCAL_USER_SUBJECT = "local-dev"


class TokenPayload(BaseModel):
    sub: str
    email: Optional[str] = None
    name: Optional[str] = None
    exp: Optional[int] = None


def verify_token(token: str) -> TokenPayload:
    """Verify a bearer JWT and return its payload.

    Raises HTTPException(401) on failure.
    """
    settings = get_settings()
    if not settings.auth_jwt_secret:
        logger.error("AUTH_ENABLED is set but AUTH_JWT_SECRET is missing")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication is misconfigured",
        )

    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            options={"verify_aud": False},
        )
        return TokenPayload.model_validate(payload)
    except (JWTError, ValidationError) as exc:
        logger.warning("JWT verification failed", exc=str(exc))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


# Helper to extract Authorization header (works with FastAPI DI)
def _get_authorization_header(request: Request) -> Optional[str]:
    return request.headers.get("Authorization")


def _get_or_create_user(db: Session, email: str, subject: str, name: Optional[str] = None) -> models.User:
    user = crud.get_user_by_email(db, email)
    if not user:
        user = crud.create_user(db, schemas.UserCreate(email=email, subject=subject, name=name))
        db.commit()
        logger.info("Created user", user_id=user.id)
    return user


# --- FastAPI dependency ---
async def get_current_user(
    authorization: Annotated[Optional[str], Depends(_get_authorization_header)],
    db: Session = Depends(get_db),
) -> models.User:
    if not get_settings().auth_enabled:
        return _get_or_create_user(db, LOCAL_USER_EMAIL, LOCAL_USER_SUBJECT)

    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    token = authorization.split(" ", 1)[1]
    payload = verify_token(token)
    return _get_or_create_user(db, payload.email or payload.sub, payload.sub, payload.name)
