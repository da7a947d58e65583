"""User approval workflow for store accounts."""

from __future__ import annotations

import logging
from typing import Literal, Optional

from pydantic import BaseModel

from prodcat.exceptions import NotFoundError
from prodcat.models import UserProfile, utc_now_iso
from prodcat.repositories.base import UserRepository

logger = logging.getLogger(__name__)

ApprovalFilter = Literal["all", "pending", "approved", "rejected"]


class ApprovalStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int


class UserApprovalService:
    """List, approve and revoke regular user accounts."""

    def __init__(self, repository: UserRepository, *, role: str = "user") -> None:
        self.repository = repository
        self.role = role

    def list(self, status: ApprovalFilter = "all", search: Optional[str] = None) -> list[UserProfile]:
        users = self.repository.list_users(role=self.role)
        if status != "all":
            users = [u for u in users if u.approval_state == status]
        if search:
            needle = search.lower()
            users = [
                u
                for u in users
                if needle in (u.email or "").lower() or needle in (u.name or "").lower()
            ]
        return users

    def approve(self, user_id: str, approved_by: str) -> UserProfile:
        self._require(user_id)
        user = self.repository.update_user(
            user_id,
            {
                "approved": True,
                "status": "approved",
                "approvedAt": utc_now_iso(),
                "approvedBy": approved_by,
            },
        )
        logger.info("User %s approved by %s", user_id, approved_by)
        return user

    def revoke(self, user_id: str) -> UserProfile:
        self._require(user_id)
        user = self.repository.update_user(
            user_id,
            {
                "approved": False,
                "status": "rejected",
                "disapprovedAt": utc_now_iso(),
            },
        )
        logger.info("User %s approval revoked", user_id)
        return user

    def stats(self) -> ApprovalStats:
        users = self.repository.list_users(role=self.role)
        states = [u.approval_state for u in users]
        return ApprovalStats(
            total=len(users),
            pending=states.count("pending"),
            approved=states.count("approved"),
            rejected=states.count("rejected"),
        )

    def _require(self, user_id: str) -> UserProfile:
        user = self.repository.get_user(user_id)
        if user is None:
            raise NotFoundError(f"Unknown user id: {user_id}")
        return user
