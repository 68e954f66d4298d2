from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria


@event.listens_for(Session, "do_orm_execute")
def _hide_deleted_memorials(execute_state) -> None:
    """
    Transparent soft-delete scoping.

    Memorials with status "deleted" never come back from an ORM select, so
    every lookup (by id, by slug, joined loads) treats them as missing.
    Pass `execution_options(include_deleted=True)` to see them anyway.
    """

    if not execute_state.is_select:
        return
    if execute_state.execution_options.get("include_deleted", False):
        return

    # Local import to avoid cycles.
    from app.models.memorial import Memorial, MemorialStatus  # noqa: WPS433 (local import)

    deleted = MemorialStatus.DELETED.value
    execute_state.statement = execute_state.statement.options(
        with_loader_criteria(Memorial, lambda cls: cls.status != deleted, include_aliases=True)
    )
