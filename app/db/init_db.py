from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models.memorial import AccessRequest, CollaboratorRole, Memorial, MemorialCollaborator  # noqa: F401
from app.models.security import User, UserSession

# Fixed demo session tokens: send as `Authorization: Bearer <token>` or the mp_session cookie.
DEMO_TOKENS = {
    "olivia.owner@example.com": "demo-owner-token",
    "colin.collab@example.com": "demo-collaborator-token",
    "vera.visitor@example.com": "demo-visitor-token",
}


def init_db(seed: bool = True) -> None:
    """
    Create tables and (optionally) seed demo data.

    The seed is small and deterministic so the access flow can be tried
    without additional setup.
    """

    Base.metadata.create_all(bind=engine)

    if not seed:
        return

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        _seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(User.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    # Users
    owner = User(email="olivia.owner@example.com", name="Olivia Owner", email_verified=True)
    collaborator = User(email="colin.collab@example.com", name="Colin Collab", email_verified=True)
    visitor = User(email="vera.visitor@example.com", name="Vera Visitor", email_verified=True)
    db.add_all([owner, collaborator, visitor])
    db.flush()

    # Long-lived demo sessions
    expires = datetime.utcnow() + timedelta(days=365)
    for user in (owner, collaborator, visitor):
        db.add(UserSession(user_id=user.id, session_token=DEMO_TOKENS[user.email], expires_at=expires))

    # Memorials
    public = Memorial(
        slug="ada-lovelace",
        title="In loving memory of Ada",
        full_name="Ada Lovelace",
        biography="Mathematician and writer.",
        created_by=owner.id,
        is_public=True,
    )
    private = Memorial(
        slug="grace-hopper",
        title="Remembering Grace",
        full_name="Grace Hopper",
        biography="Computer scientist and rear admiral.",
        created_by=owner.id,
        is_public=False,
    )
    db.add_all([public, private])
    db.flush()

    db.add(MemorialCollaborator(memorial_id=private.id, user_id=collaborator.id, role=CollaboratorRole.MODERATOR.value))

    db.commit()
