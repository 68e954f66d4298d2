"""
Record-store lookups shared by the evaluator and the request manager.

Thin SQLAlchemy queries only; no decisions are made here.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.memorial import AccessRequest, Memorial, MemorialCollaborator


def normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    cleaned = email.strip().lower()
    return cleaned or None


def requester_key(user_id: int | None, email: str | None) -> str:
    """User id wins over email; anonymous requesters are keyed by email."""
    if user_id is not None:
        return f"user:{user_id}"
    normalized = normalize_email(email)
    if normalized is None:
        raise ValueError("requester_key needs a user id or an email")
    return f"email:{normalized}"


def find_memorial(db: Session, memorial_id: int) -> Memorial | None:
    # Soft-deleted rows are filtered out by app.db.filters.
    return db.scalars(select(Memorial).where(Memorial.id == memorial_id)).first()


def find_memorial_by_slug(db: Session, slug: str) -> Memorial | None:
    return db.scalars(select(Memorial).where(Memorial.slug == slug)).first()


def find_collaborator_role(db: Session, memorial_id: int, user_id: int | None) -> str | None:
    if user_id is None:
        return None
    return db.scalars(
        select(MemorialCollaborator.role).where(
            MemorialCollaborator.memorial_id == memorial_id,
            MemorialCollaborator.user_id == user_id,
        )
    ).first()


def find_latest_request(
    db: Session,
    memorial_id: int,
    *,
    user_id: int | None = None,
    email: str | None = None,
    anonymous_only: bool = False,
) -> AccessRequest | None:
    """
    Most recent request for one requester identity.

    Matches on user id when given, otherwise on (normalised) email. With
    `anonymous_only`, email matches are limited to rows without a user id.
    """

    stmt = select(AccessRequest).where(AccessRequest.memorial_id == memorial_id)
    if user_id is not None:
        stmt = stmt.where(AccessRequest.requester_user_id == user_id)
    else:
        normalized = normalize_email(email)
        if normalized is None:
            return None
        stmt = stmt.where(AccessRequest.requester_email == normalized)
        if anonymous_only:
            stmt = stmt.where(AccessRequest.requester_user_id.is_(None))

    stmt = stmt.order_by(AccessRequest.created_at.desc(), AccessRequest.id.desc()).limit(1)
    return db.scalars(stmt).first()


def list_requests(db: Session, memorial_id: int) -> list[AccessRequest]:
    stmt = (
        select(AccessRequest)
        .where(AccessRequest.memorial_id == memorial_id)
        .order_by(AccessRequest.created_at.desc(), AccessRequest.id.desc())
    )
    return list(db.scalars(stmt).all())
