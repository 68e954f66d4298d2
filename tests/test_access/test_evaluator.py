"""
Tests for the access evaluator (view decisions).

Uses db_session fixture: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

import pytest

from app.access.errors import NotFound
from app.access.evaluator import build_decision, evaluate_access, evaluate_access_by_slug
from app.access.requests import create_access_request, set_access_request_status
from app.models.memorial import AccessRequest
from app.security.context import Identity


def _identity(user) -> Identity:
    return Identity(user_id=user.id, email=user.email, name=user.name, email_verified=user.email_verified)


def test_public_memorial_is_viewable_anonymously(db_session, public_memorial):
    decision = evaluate_access(db_session, public_memorial.id)

    assert decision.can_view is True
    assert decision.is_public is True
    assert decision.access_status == "public"
    assert decision.request_status is None


def test_public_memorial_viewable_despite_declined_request(db_session, public_memorial, visitor):
    db_session.add(
        AccessRequest(
            memorial_id=public_memorial.id,
            requester_key=f"user:{visitor.id}",
            requester_user_id=visitor.id,
            requester_email=visitor.email,
            status="declined",
        )
    )
    db_session.commit()

    decision = evaluate_access(db_session, public_memorial.id, _identity(visitor))

    assert decision.can_view is True
    assert decision.access_status == "public"
    assert decision.request_status == "declined"


def test_private_memorial_anonymous_viewer(db_session, private_memorial):
    decision = evaluate_access(db_session, private_memorial.id, None)

    assert decision.can_view is False
    assert decision.access_status == "unauthenticated"
    assert decision.is_owner is False
    assert decision.is_collaborator is False


def test_private_memorial_authenticated_stranger(db_session, private_memorial, visitor):
    decision = evaluate_access(db_session, private_memorial.id, _identity(visitor))

    assert decision.can_view is False
    assert decision.access_status == "none"


def test_owner_wins_over_stale_request_row(db_session, private_memorial, owner):
    db_session.add(
        AccessRequest(
            memorial_id=private_memorial.id,
            requester_key=f"user:{owner.id}",
            requester_user_id=owner.id,
            requester_email=owner.email,
            status="pending",
        )
    )
    db_session.commit()

    decision = evaluate_access(db_session, private_memorial.id, _identity(owner))

    assert decision.is_owner is True
    assert decision.can_view is True
    assert decision.access_status == "owner"
    assert decision.request_status == "pending"


def test_collaborator_can_view_regardless_of_role(db_session, private_memorial, make_user, add_collaborator):
    helper = make_user("helper@example.com")
    add_collaborator(private_memorial, helper, role="contributor")

    decision = evaluate_access(db_session, private_memorial.id, _identity(helper))

    assert decision.is_collaborator is True
    assert decision.collaborator_role == "contributor"
    assert decision.can_view is True
    assert decision.access_status == "collaborator"


def test_pending_request_is_reported_but_not_viewable(db_session, private_memorial, visitor):
    create_access_request(db_session, private_memorial.id, requester_user_id=visitor.id, requester_email=visitor.email)

    decision = evaluate_access(db_session, private_memorial.id, _identity(visitor))

    assert decision.can_view is False
    assert decision.access_status == "pending"
    assert decision.request_status == "pending"


def test_approval_grants_view(db_session, private_memorial, owner, visitor):
    result = create_access_request(
        db_session, private_memorial.id, requester_user_id=visitor.id, requester_email=visitor.email
    )
    set_access_request_status(db_session, private_memorial.id, owner.id, result.request_id, "approved")

    decision = evaluate_access(db_session, private_memorial.id, _identity(visitor))

    assert decision.can_view is True
    assert decision.access_status == "approved"


def test_anonymous_approval_applies_after_login_with_same_email(db_session, private_memorial, owner, make_user):
    result = create_access_request(db_session, private_memorial.id, requester_email="A@X.com", requester_name="A")
    set_access_request_status(db_session, private_memorial.id, owner.id, result.request_id, "approved")

    # Anonymous viewers carry no identity, so nothing matches yet.
    assert evaluate_access(db_session, private_memorial.id, None).can_view is False

    later = make_user("a@x.com", "A", email_verified=True)
    decision = evaluate_access(db_session, private_memorial.id, _identity(later))

    assert decision.can_view is True
    assert decision.access_status == "approved"


def test_anonymous_approval_ignored_for_unverified_account_email(db_session, private_memorial, owner, make_user):
    result = create_access_request(db_session, private_memorial.id, requester_email="a@x.com")
    set_access_request_status(db_session, private_memorial.id, owner.id, result.request_id, "approved")

    unverified = make_user("a@x.com", "Not A")
    decision = evaluate_access(db_session, private_memorial.id, _identity(unverified))

    assert decision.can_view is False
    assert decision.request_status is None
    assert decision.access_status == "none"


def test_missing_memorial_raises_not_found(db_session):
    with pytest.raises(NotFound, match="Memorial not found"):
        evaluate_access(db_session, 424242)


def test_soft_deleted_memorial_raises_not_found(db_session, make_memorial, owner):
    memorial = make_memorial(owner, is_public=True, status="deleted")

    with pytest.raises(NotFound):
        evaluate_access(db_session, memorial.id, Identity(user_id=owner.id, email=owner.email))


def test_slug_variant_matches_id_variant(db_session, make_memorial, owner, visitor):
    memorial = make_memorial(owner, is_public=False, slug="in-memory-of-jane")
    viewer = _identity(visitor)

    by_id = evaluate_access(db_session, memorial.id, viewer)
    by_slug = evaluate_access_by_slug(db_session, "in-memory-of-jane", viewer)

    assert by_slug == by_id


def test_slug_variant_unknown_slug(db_session):
    with pytest.raises(NotFound):
        evaluate_access_by_slug(db_session, "nobody")


@pytest.mark.parametrize(
    ("facts", "expected"),
    [
        ({"is_owner": True, "collaborator_role": "admin", "is_public": True, "request_status": "declined"}, "owner"),
        ({"collaborator_role": "moderator", "is_public": True, "request_status": "pending"}, "collaborator"),
        ({"is_public": True, "request_status": "pending"}, "public"),
        ({"request_status": "declined"}, "declined"),
        ({}, "none"),
    ],
)
def test_access_status_priority(facts, expected):
    params = {
        "memorial_id": 1,
        "memorial_slug": "m",
        "is_public": False,
        "authenticated": True,
        "is_owner": False,
        "collaborator_role": None,
        "request_status": None,
    }
    params.update(facts)

    assert build_decision(**params).access_status == expected


def test_decision_to_dict_omits_internal_role(db_session, private_memorial, owner):
    payload = evaluate_access(db_session, private_memorial.id, _identity(owner)).to_dict()

    assert set(payload) == {
        "memorial_id",
        "memorial_slug",
        "is_public",
        "is_owner",
        "is_collaborator",
        "request_status",
        "can_view",
        "access_status",
    }
