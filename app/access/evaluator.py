"""
Access evaluator: decide whether a viewer may see a memorial right now.

Pure read over current state. Every call re-reads the memorial, the
collaborator row and the viewer's latest access request, so decisions always
reflect the latest committed data and are never cached across requests.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.orm import Session

from app.access import store
from app.access.errors import NotFound
from app.models.memorial import AccessRequestStatus, Memorial
from app.security.context import Identity

logger = logging.getLogger(__name__)

# Values of AccessDecision.access_status
OWNER = "owner"
COLLABORATOR = "collaborator"
PUBLIC = "public"
NONE = "none"
UNAUTHENTICATED = "unauthenticated"

_REQUEST_STATUSES = frozenset(s.value for s in AccessRequestStatus)


@dataclass(frozen=True)
class AccessDecision:
    memorial_id: int
    memorial_slug: str | None
    is_public: bool
    is_owner: bool
    is_collaborator: bool
    request_status: str | None
    can_view: bool
    access_status: str

    # Collaborator role, used by mutation endpoints for permission checks.
    collaborator_role: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "memorial_id": self.memorial_id,
            "memorial_slug": self.memorial_slug,
            "is_public": self.is_public,
            "is_owner": self.is_owner,
            "is_collaborator": self.is_collaborator,
            "request_status": self.request_status,
            "can_view": self.can_view,
            "access_status": self.access_status,
        }


def build_decision(
    *,
    memorial_id: int,
    memorial_slug: str | None,
    is_public: bool,
    authenticated: bool,
    is_owner: bool,
    collaborator_role: str | None,
    request_status: str | None,
) -> AccessDecision:
    """
    Combine the raw facts into a decision.

    access_status priority: owner > collaborator > public > request status >
    none/unauthenticated. An owner holding a stale request row is still
    reported as "owner".
    """

    is_collaborator = collaborator_role is not None
    can_view = is_public or is_owner or is_collaborator or request_status == AccessRequestStatus.APPROVED.value

    if is_owner:
        access_status = OWNER
    elif is_collaborator:
        access_status = COLLABORATOR
    elif is_public:
        access_status = PUBLIC
    elif request_status:
        access_status = request_status
    else:
        access_status = NONE if authenticated else UNAUTHENTICATED

    return AccessDecision(
        memorial_id=memorial_id,
        memorial_slug=memorial_slug,
        is_public=is_public,
        is_owner=is_owner,
        is_collaborator=is_collaborator,
        request_status=request_status,
        can_view=can_view,
        access_status=access_status,
        collaborator_role=collaborator_role,
    )


def _viewer_request_status(db: Session, memorial_id: int, viewer: Identity | None) -> str | None:
    if viewer is None:
        return None

    latest = store.find_latest_request(db, memorial_id, user_id=viewer.user_id)
    if latest is None and viewer.email and viewer.email_verified:
        # Requests made anonymously with the account's verified email count for this viewer.
        latest = store.find_latest_request(db, memorial_id, email=viewer.email, anonymous_only=True)
    if latest is None:
        return None

    status = latest.status
    return status if status in _REQUEST_STATUSES else None


def _evaluate(db: Session, memorial: Memorial, viewer: Identity | None) -> AccessDecision:
    user_id = viewer.user_id if viewer is not None else None

    decision = build_decision(
        memorial_id=memorial.id,
        memorial_slug=memorial.slug,
        is_public=bool(memorial.is_public),
        authenticated=viewer is not None,
        is_owner=user_id is not None and memorial.created_by == user_id,
        collaborator_role=store.find_collaborator_role(db, memorial.id, user_id),
        request_status=_viewer_request_status(db, memorial.id, viewer),
    )
    logger.debug(
        "Access decision memorial=%s user=%s status=%s can_view=%s",
        memorial.id,
        user_id,
        decision.access_status,
        decision.can_view,
    )
    return decision


def evaluate_access(db: Session, memorial_id: int, viewer: Identity | None = None) -> AccessDecision:
    """Decision for (memorial, viewer); raises NotFound for missing/deleted memorials."""
    memorial = store.find_memorial(db, memorial_id)
    if memorial is None:
        raise NotFound("Memorial not found")
    return _evaluate(db, memorial, viewer)


def evaluate_access_by_slug(db: Session, slug: str, viewer: Identity | None = None) -> AccessDecision:
    """Same as evaluate_access after resolving the slug."""
    memorial = store.find_memorial_by_slug(db, slug)
    if memorial is None:
        raise NotFound("Memorial not found")
    return _evaluate(db, memorial, viewer)
