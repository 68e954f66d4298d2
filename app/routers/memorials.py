from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.access import store
from app.access.errors import AccessRequired, NotFound, PermissionDenied, ValidationError
from app.access.evaluator import AccessDecision, evaluate_access, evaluate_access_by_slug
from app.db.session import get_db
from app.models.memorial import Memorial
from app.permissions import PermissionEngine, UserPermissions
from app.schemas.access import AccessDecisionOut
from app.schemas.memorial import AvailableActionsOut, MemorialOut, MemorialUpdate
from app.security.context import Identity
from app.security.dependencies import get_current_identity, get_identity, get_permission_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/memorials", tags=["memorials"])

# Memorial fields as the permission table names them.
_FIELD_NAMES = {"is_public": "privacy"}
_REQUIRED_FIELDS = ("title", "full_name", "is_public")


def _user_permissions(decision: AccessDecision) -> UserPermissions:
    return UserPermissions(role=decision.collaborator_role, is_owner=decision.is_owner)


@router.get("/by-slug/{slug}/access", response_model=AccessDecisionOut)
def get_access_by_slug(
    slug: str,
    db: Session = Depends(get_db),
    identity: Identity | None = Depends(get_identity),
) -> AccessDecision:
    return evaluate_access_by_slug(db, slug, identity)


@router.get("/{memorial_id}/access", response_model=AccessDecisionOut)
def get_access(
    memorial_id: int,
    db: Session = Depends(get_db),
    identity: Identity | None = Depends(get_identity),
) -> AccessDecision:
    return evaluate_access(db, memorial_id, identity)


@router.get("/{memorial_id}", response_model=MemorialOut)
def get_memorial(
    memorial_id: int,
    db: Session = Depends(get_db),
    identity: Identity | None = Depends(get_identity),
) -> Memorial:
    decision = evaluate_access(db, memorial_id, identity)
    if not decision.can_view:
        raise AccessRequired(decision.request_status)

    memorial = store.find_memorial(db, memorial_id)
    if memorial is None:
        raise NotFound("Memorial not found")
    return memorial


@router.patch("/{memorial_id}", response_model=MemorialOut)
def update_memorial(
    memorial_id: int,
    payload: MemorialUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    engine: PermissionEngine = Depends(get_permission_engine),
) -> Memorial:
    decision = evaluate_access(db, memorial_id, identity)
    if not decision.can_view:
        raise AccessRequired(decision.request_status)
    if not decision.is_owner and not decision.is_collaborator:
        raise PermissionDenied("Only the owner or collaborators can edit this memorial")

    changes = payload.model_dump(exclude_unset=True)
    for name in _REQUIRED_FIELDS:
        if name in changes and changes[name] is None:
            raise ValidationError(f"{name} cannot be empty")

    permissions = _user_permissions(decision)
    for name in changes:
        field = _FIELD_NAMES.get(name, name)
        context = {"field": field, "is_owner": decision.is_owner, "role": decision.collaborator_role}
        if not engine.has_permission(permissions, "update", "memorial", context):
            raise PermissionDenied(f"Your role cannot change {field}")

    memorial = store.find_memorial(db, memorial_id)
    if memorial is None:
        raise NotFound("Memorial not found")
    for name, value in changes.items():
        setattr(memorial, name, value)
    db.commit()
    db.refresh(memorial)

    logger.info("Memorial id=%s updated by user=%s fields=%s", memorial_id, identity.user_id, sorted(changes))
    return memorial


@router.get("/{memorial_id}/permissions", response_model=AvailableActionsOut)
def get_available_actions(
    memorial_id: int,
    resource: str = Query(..., min_length=1, max_length=64),
    db: Session = Depends(get_db),
    identity: Identity | None = Depends(get_identity),
    engine: PermissionEngine = Depends(get_permission_engine),
) -> AvailableActionsOut:
    decision = evaluate_access(db, memorial_id, identity)
    if not decision.can_view:
        raise AccessRequired(decision.request_status)

    permissions = _user_permissions(decision)
    actions = engine.available_actions(permissions, resource) if (decision.is_owner or decision.is_collaborator) else []
    return AvailableActionsOut(
        resource=resource,
        role=decision.collaborator_role,
        is_owner=decision.is_owner,
        actions=actions,
    )
