"""Tests for the user approval workflow."""

import pytest

from prodcat.approvals import UserApprovalService
from prodcat.exceptions import NotFoundError


@pytest.fixture
def service(user_repository):
    return UserApprovalService(user_repository)


def test_list_only_regular_users(service):
    assert sorted(u.id for u in service.list()) == ["user-1", "user-2", "user-3"]


@pytest.mark.parametrize(
    "status,expected",
    [("pending", ["user-1"]), ("approved", ["user-2"]), ("rejected", ["user-3"])],
)
def test_list_by_status(service, status, expected):
    assert [u.id for u in service.list(status)] == expected


def test_list_search_matches_email_or_name(service):
    assert [u.id for u in service.list(search="PAT")] == ["user-1"]
    assert [u.id for u in service.list(search="ok@")] == ["user-2"]
    assert service.list("approved", search="pat") == []


def test_approve(service, user_repository):
    user = service.approve("user-1", approved_by="owner@example.com")

    assert user.approved is True
    assert user.approval_state == "approved"
    assert user.approved_by == "owner@example.com"
    assert user.approved_at is not None
    assert user_repository.get_user("user-1").status == "approved"


def test_revoke(service):
    user = service.revoke("user-2")

    assert user.approved is False
    assert user.approval_state == "rejected"
    assert user.disapproved_at is not None


def test_unknown_user(service):
    with pytest.raises(NotFoundError):
        service.approve("ghost", approved_by="owner@example.com")
    with pytest.raises(NotFoundError):
        service.revoke("ghost")


def test_stats(service):
    service.approve("user-1", approved_by="owner-1")
    stats = service.stats()
    assert (stats.total, stats.pending, stats.approved, stats.rejected) == (3, 0, 2, 1)
