from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.permissions import PermissionEngine
from app.security.auth import extract_session_token, resolve_session
from app.security.config import SecurityConfig
from app.security.context import Identity
from app.security.rate_limit import RateLimiter, client_address
from app.settings import get_settings

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_permission_engine(request: Request) -> PermissionEngine:
    engine = getattr(request.app.state, "permission_engine", None)
    if engine is None:
        raise RuntimeError("Permission engine not loaded. Did app startup run?")
    return engine


def get_rate_limiter(request: Request) -> RateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("Rate limiter not configured. Did app startup run?")
    return limiter


def get_identity(request: Request) -> Identity | None:
    """Viewer identity for this request; None for anonymous visitors."""
    return getattr(request.state, "identity", None)


def get_current_identity(request: Request) -> Identity:
    identity = get_identity(request)
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return identity


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency (configuration-driven).

    For every routed request:
    1. resolve the session token to an identity (anonymous is fine unless the
       route requires authentication),
    2. reject unauthenticated calls to auth-required routes with 401,
    3. apply the route's rate limit, if any, with 429 + Retry-After.

    Runs after routing, so decorator metadata on the endpoint is honoured too.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    endpoint = request.scope.get("endpoint")
    decorator_auth = bool(getattr(endpoint, "__security_auth_required__", False)) if endpoint else False

    identity = resolve_session(db, extract_session_token(request, config))
    request.state.identity = identity

    if (rule.auth_required or decorator_auth) and identity is None:
        logger.info("Authentication required path=%s method=%s", path, method)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    if rule.rate_limit is None:
        return

    limiter = get_rate_limiter(request)
    key = f"{client_address(request, get_settings().trusted_proxies)}:{method}:{path}"
    result = limiter.hit(key, rule.rate_limit.limit, rule.rate_limit.window_seconds)
    if not result.allowed:
        logger.warning("Rate limit exceeded path=%s method=%s", path, method)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": str(result.retry_after)},
        )
