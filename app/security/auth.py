from __future__ import annotations

from datetime import datetime
import logging

from fastapi import HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.security import User, UserSession
from app.security.config import SecurityConfig
from app.security.context import Identity

logger = logging.getLogger(__name__)


def extract_session_token(request: Request, config: SecurityConfig) -> str | None:
    """
    Pull the opaque session token from the request.

    - `Authorization: Bearer <token>` wins when present (API clients).
    - Otherwise the session cookie (browsers).
    - A malformed Authorization header is a client error, not "anonymous".
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if raw:
        prefix = f"{bearer_prefix} "
        if not raw.startswith(prefix):
            logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.",
            )

        token = raw[len(prefix) :].strip()
        if not token:
            logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid {header_name}. Missing token after '{bearer_prefix}'.",
            )
        return token

    token = request.cookies.get(config.auth.session_cookie)
    return token.strip() if token and token.strip() else None


def resolve_session(db: Session, token: str | None, now: datetime | None = None) -> Identity | None:
    """
    Map a session token to the identity behind it.

    Unknown, expired or inactive-user sessions resolve to None (anonymous);
    the caller decides whether anonymity is acceptable for the route.
    """

    if not token:
        return None

    now = now or datetime.utcnow()
    user = db.execute(
        select(User)
        .join(UserSession, UserSession.user_id == User.id)
        .where(
            UserSession.session_token == token,
            UserSession.expires_at > now,
            User.is_active.is_(True),
        )
    ).scalar_one_or_none()

    if user is None:
        logger.info("Session token did not resolve to an active user")
        return None

    return Identity(
        user_id=user.id,
        email=user.email,
        name=user.name,
        email_verified=bool(user.email_verified),
    )
