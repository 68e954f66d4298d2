from __future__ import annotations

from fastapi import APIRouter, Depends

from app.schemas.security import IdentityOut
from app.security.context import Identity
from app.security.decorators import require_authentication
from app.security.dependencies import get_current_identity

router = APIRouter(tags=["account"])


@router.get("/me", response_model=IdentityOut)
@require_authentication()
def me(identity: Identity = Depends(get_current_identity)) -> Identity:
    return identity
