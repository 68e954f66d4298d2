from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.access.requests import (
    AccessRequestResult,
    RequestDecision,
    create_access_request,
    get_access_requests_for_owner,
    set_access_request_status,
)
from app.db.session import get_db
from app.models.memorial import AccessRequest
from app.schemas.access import (
    AccessRequestDecisionIn,
    AccessRequestDecisionOut,
    AccessRequestIn,
    AccessRequestOut,
    AccessRequestResultOut,
)
from app.security.context import Identity
from app.security.dependencies import get_current_identity, get_identity

router = APIRouter(prefix="/memorials/{memorial_id}/access-requests", tags=["access_requests"])


@router.get("", response_model=list[AccessRequestOut])
def list_access_requests(
    memorial_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> list[AccessRequest]:
    return get_access_requests_for_owner(db, memorial_id, identity.user_id)


@router.post("", response_model=AccessRequestResultOut, status_code=status.HTTP_200_OK)
def submit_access_request(
    memorial_id: int,
    payload: AccessRequestIn | None = None,
    db: Session = Depends(get_db),
    identity: Identity | None = Depends(get_identity),
) -> AccessRequestResult:
    payload = payload or AccessRequestIn()

    # Signed-in visitors may omit email/name; their account values are used.
    email = payload.email or (identity.email if identity else None)
    name = payload.name or (identity.name if identity else None)

    return create_access_request(
        db,
        memorial_id,
        requester_user_id=identity.user_id if identity else None,
        requester_email=email,
        requester_name=name,
        message=payload.message,
        verified_email=identity.email if identity and identity.email_verified else None,
    )


@router.patch("", response_model=AccessRequestDecisionOut)
def decide_access_request(
    memorial_id: int,
    payload: AccessRequestDecisionIn,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> RequestDecision:
    return set_access_request_status(db, memorial_id, identity.user_id, payload.request_id, payload.status)
