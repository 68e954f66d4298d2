from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class MemorialStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    ARCHIVED = "archived"
    DELETED = "deleted"


class CollaboratorRole(str, Enum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    CONTRIBUTOR = "contributor"


class AccessRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class Memorial(Base):
    __tablename__ = "memorials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    biography: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Owner. Not stored as a collaborator row.
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=MemorialStatus.ACTIVE.value, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    collaborators: Mapped[list["MemorialCollaborator"]] = relationship(
        back_populates="memorial", cascade="all, delete-orphan"
    )
    access_requests: Mapped[list["AccessRequest"]] = relationship(
        back_populates="memorial", cascade="all, delete-orphan"
    )


class MemorialCollaborator(Base):
    __tablename__ = "memorial_collaborators"
    __table_args__ = (UniqueConstraint("memorial_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    memorial_id: Mapped[int] = mapped_column(ForeignKey("memorials.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), default=CollaboratorRole.CONTRIBUTOR.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    memorial: Mapped[Memorial] = relationship(back_populates="collaborators")


class AccessRequest(Base):
    __tablename__ = "memorial_access_requests"
    __table_args__ = (
        # One row per requester per memorial; declined rows are resurrected in place.
        UniqueConstraint("memorial_id", "requester_key", name="uq_access_request_requester"),
        Index("ix_access_request_memorial_created", "memorial_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    memorial_id: Mapped[int] = mapped_column(ForeignKey("memorials.id", ondelete="CASCADE"), nullable=False)

    # "user:<id>" when a user id is known, else "email:<lowercased email>".
    requester_key: Mapped[str] = mapped_column(String(340), nullable=False)
    requester_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    requester_email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    requester_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(16), default=AccessRequestStatus.PENDING.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    decided_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    memorial: Mapped[Memorial] = relationship(back_populates="access_requests")
