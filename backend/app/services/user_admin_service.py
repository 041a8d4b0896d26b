"""
User Admin Service
Admin view of every business account: plan changes and trial extensions
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.constants import DEFAULT_PLAN, PAID_PLANS
from app.core.errors import InvalidRequestError, ResourceNotFoundError
from app.domain.profile import (
    TRIAL_EXTENSION_DAYS,
    compute_subscription_status,
    extended_trial_end,
    one_month_from,
)
from app.repositories import ProfileRepository

logger = logging.getLogger(__name__)

SUBSCRIPTION_STATES = ("trial", "active", "expired", "cancelled")


class UserAdminService:

    def __init__(self):
        self.profile_repo = ProfileRepository()

    def list_users(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Profiles with their role and derived subscription flags"""
        roles = {member.user_id: member.role for member in self.profile_repo.list_staff()}

        users = []
        for profile in self.profile_repo.list_all():
            data = profile.public_dict()
            data["role"] = roles.get(profile.user_id, "user")
            data["subscription"] = compute_subscription_status(profile, now).model_dump()
            users.append(data)
        return users

    def set_subscription(self, admin_id: str, user_id: str, plan: str, status: str) -> Dict[str, Any]:
        """
        Set plan and status by hand

        An active paid plan runs for one month from now; a trial runs
        for the standard extension period from now.
        """
        if plan != DEFAULT_PLAN and plan not in PAID_PLANS:
            raise InvalidRequestError(f"Unknown plan: {plan}")
        if status not in SUBSCRIPTION_STATES:
            raise InvalidRequestError(f"Unknown subscription status: {status}")

        profile = self.profile_repo.get_by_user_id(user_id)
        if not profile:
            raise ResourceNotFoundError("Profile", user_id)

        subscription_ends_at = None
        trial_ends_at = None
        if status == "active" and plan != DEFAULT_PLAN:
            subscription_ends_at = one_month_from()
        elif status == "trial":
            trial_ends_at = extended_trial_end(None)

        self.profile_repo.set_subscription(
            user_id,
            plan,
            status,
            subscription_ends_at=subscription_ends_at,
            trial_ends_at=trial_ends_at,
        )
        logger.info(f"Admin {admin_id} set subscription of {user_id} to {plan}/{status}")

        return self.profile_repo.get_by_user_id(user_id).public_dict()

    def extend_trial(self, admin_id: str, user_id: str, days: int = TRIAL_EXTENSION_DAYS) -> Dict[str, Any]:
        profile = self.profile_repo.get_by_user_id(user_id)
        if not profile:
            raise ResourceNotFoundError("Profile", user_id)

        trial_ends_at = extended_trial_end(profile.trial_ends_at, days)
        self.profile_repo.set_subscription(user_id, None, "trial", trial_ends_at=trial_ends_at)
        logger.info(f"Admin {admin_id} extended trial of {user_id} by {days} days to {trial_ends_at.isoformat()}")

        return {"user_id": user_id, "trial_ends_at": trial_ends_at, "subscription_status": "trial"}
