"""
Access request manager.

Owns the lifecycle of memorial access requests:

    create (new)               -> pending
    create (existing declined) -> pending
    pending  --approve(owner)--> approved   (terminal)
    pending  --decline(owner)--> declined
    declined --create(same requester)--> pending

Requesters only ever reach `create_access_request`; only the memorial owner
reaches `set_access_request_status`. Nothing else writes the table.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.access import store
from app.access.errors import InvalidTransition, NotFound, PermissionDenied, ValidationError
from app.models.memorial import AccessRequest, AccessRequestStatus, Memorial

logger = logging.getLogger(__name__)

PENDING = AccessRequestStatus.PENDING.value
APPROVED = AccessRequestStatus.APPROVED.value
DECLINED = AccessRequestStatus.DECLINED.value

# Owner decisions allowed from each current status.
_DECISIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({APPROVED, DECLINED}),
    APPROVED: frozenset(),
    DECLINED: frozenset(),
}


@dataclass(frozen=True)
class AccessRequestResult:
    """Outcome of a submission. `already` is True when no new row was inserted."""

    status: str
    request_id: int | None = None
    already: bool = False
    can_view: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status,
            "request_id": self.request_id,
            "already": self.already,
            "can_view": self.can_view,
        }


@dataclass(frozen=True)
class RequestDecision:
    request_id: int
    status: str


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _utcnow() -> datetime:
    return datetime.utcnow()


# ---- Ownership ------------------------------------------------------------------------


def require_memorial_owner(db: Session, memorial_id: int, user_id: int | None) -> Memorial:
    """
    Return the memorial if `user_id` is its owner.

    Collaborators, whatever their role, are denied: deciding access is an
    owner-only right.
    """

    memorial = store.find_memorial(db, memorial_id)
    if memorial is None:
        raise NotFound("Memorial not found")
    if user_id is None or memorial.created_by != user_id:
        logger.info("Ownership check failed memorial=%s user=%s", memorial_id, user_id)
        raise PermissionDenied("Memorial ownership required")
    return memorial


# ---- Requester side -------------------------------------------------------------------


def _find_existing(
    db: Session,
    memorial_id: int,
    user_id: int | None,
    email: str | None,
    verified_email: str | None = None,
) -> AccessRequest | None:
    """
    Latest row for this requester.

    Anonymous requesters are keyed by the email they submit. An authenticated
    requester is keyed by user id; without a row of their own they take over
    an anonymous row only when it carries their verified account email. The
    submitted email is contact data and never selects someone else's row.
    """

    if user_id is None:
        return store.find_latest_request(db, memorial_id, email=email)

    existing = store.find_latest_request(db, memorial_id, user_id=user_id)
    if existing is not None or verified_email is None:
        return existing

    anonymous = store.find_latest_request(db, memorial_id, email=verified_email, anonymous_only=True)
    if anonymous is not None:
        logger.info("Linking anonymous access request id=%s to user=%s", anonymous.id, user_id)
        anonymous.requester_user_id = user_id
        anonymous.requester_key = store.requester_key(user_id, verified_email)
    return anonymous


def _resubmit(
    existing: AccessRequest,
    *,
    user_id: int | None,
    email: str | None,
    name: str | None,
    message: str | None,
) -> AccessRequestResult:
    status = existing.status

    if status == APPROVED:
        # Only a signed-in requester who owns the row actually gets to view.
        can_view = user_id is not None and existing.requester_user_id == user_id
        return AccessRequestResult(status=APPROVED, request_id=existing.id, already=True, can_view=can_view)

    if status == PENDING:
        return AccessRequestResult(status=PENDING, request_id=existing.id, already=True)

    # Declined: the same row goes back to pending with the new details.
    existing.status = PENDING
    existing.message = message or existing.message
    existing.requester_name = name or existing.requester_name
    existing.requester_email = email or existing.requester_email
    existing.updated_at = _utcnow()
    logger.info("Access request id=%s resubmitted after decline", existing.id)
    return AccessRequestResult(status=PENDING, request_id=existing.id, already=True)


def create_access_request(
    db: Session,
    memorial_id: int,
    *,
    requester_user_id: int | None = None,
    requester_email: str | None = None,
    requester_name: str | None = None,
    message: str | None = None,
    verified_email: str | None = None,
) -> AccessRequestResult:
    """
    Submit (or resubmit) a request to view a private memorial.

    `verified_email` is the requester's own verified account email, if any;
    it is the only address that links anonymous history to a signed-in user.

    Public memorials, owners and collaborators short-circuit without writing.
    Repeated submissions are idempotent while a request is pending or
    approved. The insert is guarded by the (memorial, requester) unique
    constraint: when a concurrent submission wins the race the existing row
    is re-read and handled like any other duplicate.
    """

    memorial = store.find_memorial(db, memorial_id)
    if memorial is None:
        raise NotFound("Memorial not found")

    if memorial.is_public:
        return AccessRequestResult(status="public", can_view=True)

    if requester_user_id is not None and memorial.created_by == requester_user_id:
        return AccessRequestResult(status="owner", can_view=True)

    email = store.normalize_email(requester_email)
    name = _clean(requester_name)
    message = _clean(message)
    claim_email = store.normalize_email(verified_email) if requester_user_id is not None else None

    if requester_user_id is None and email is None:
        raise ValidationError("An email address is required to request access")

    if store.find_collaborator_role(db, memorial.id, requester_user_id) is not None:
        return AccessRequestResult(status="collaborator", can_view=True)

    existing = _find_existing(db, memorial.id, requester_user_id, email, claim_email)
    if existing is not None:
        result = _resubmit(existing, user_id=requester_user_id, email=email, name=name, message=message)
        db.commit()
        return result

    now = _utcnow()
    row = AccessRequest(
        memorial_id=memorial.id,
        requester_key=store.requester_key(requester_user_id, email),
        requester_user_id=requester_user_id,
        requester_email=email,
        requester_name=name,
        message=message,
        status=PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Concurrent access request for memorial=%s; reusing existing row", memorial.id)
        existing = _find_existing(db, memorial.id, requester_user_id, email, claim_email)
        if existing is None:
            raise
        result = _resubmit(existing, user_id=requester_user_id, email=email, name=name, message=message)
        db.commit()
        return result

    logger.info("Access request id=%s created for memorial=%s", row.id, memorial.id)
    return AccessRequestResult(status=PENDING, request_id=row.id, already=False)


# ---- Owner side -----------------------------------------------------------------------


def get_access_requests_for_owner(db: Session, memorial_id: int, owner_id: int | None) -> list[AccessRequest]:
    """All requests for the memorial, newest first, whatever their status."""
    require_memorial_owner(db, memorial_id, owner_id)
    return store.list_requests(db, memorial_id)


def set_access_request_status(
    db: Session,
    memorial_id: int,
    owner_id: int | None,
    request_id: int,
    status: str,
) -> RequestDecision:
    """
    Approve or decline a request.

    Re-applying the current status is a no-op. Anything outside
    pending -> approved/declined raises InvalidTransition; a declined request
    must be resubmitted by its requester before it can be approved.
    """

    require_memorial_owner(db, memorial_id, owner_id)

    if status not in (APPROVED, DECLINED):
        raise ValidationError("status must be 'approved' or 'declined'")

    row = db.scalars(
        select(AccessRequest).where(AccessRequest.id == request_id, AccessRequest.memorial_id == memorial_id)
    ).first()
    if row is None:
        raise NotFound("Access request not found")

    current = row.status
    if current == status:
        return RequestDecision(request_id=row.id, status=current)

    if status not in _DECISIONS.get(current, frozenset()):
        raise InvalidTransition(f"Cannot change access request from {current} to {status}")

    now = _utcnow()
    result = db.execute(
        update(AccessRequest)
        .where(AccessRequest.id == row.id, AccessRequest.status == current)
        .values(status=status, decided_by=owner_id, decided_at=now, updated_at=now)
    )
    if result.rowcount == 0:
        db.rollback()
        raise InvalidTransition("Access request changed concurrently; reload and try again")

    db.commit()
    logger.info("Access request id=%s %s by owner=%s", row.id, status, owner_id)
    return RequestDecision(request_id=row.id, status=status)
