"""
Unit tests for the admin panel services: gateway settings, app settings,
staff roles, plan changes and account administration
"""
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app.core.errors import InvalidRequestError, ResourceNotFoundError
from app.domain.catalog import PaymentGatewaySettings
from app.domain.profile import BusinessProfile
from app.services.admin_settings_service import AdminSettingsService, is_reserved_setting
from app.services.subscription_service import SubscriptionService, render_upgrade_email
from app.services.user_admin_service import UserAdminService

ADMIN_ID = "99999999-9999-9999-9999-999999999999"


@pytest.fixture
def profile(sample_profile_data):
    return BusinessProfile(**sample_profile_data)


class TestAdminSettingsService:
    """Test AdminSettingsService"""

    @pytest.fixture
    def service(self):
        service = AdminSettingsService()
        service.catalog_repo = MagicMock()
        service.profile_repo = MagicMock()
        return service

    def test_masked_secret_keeps_stored_value(self, service):
        stored = PaymentGatewaySettings(
            gateway="mpesa",
            enabled=True,
            settings={"consumer_secret": "real-secret-9876", "shortcode": "174379"},
        )
        service.catalog_repo.get_setting.return_value = stored.model_dump_json()

        result = service.update_payment_settings(ADMIN_ID, PaymentGatewaySettings(
            gateway="mpesa",
            enabled=True,
            settings={"consumer_secret": "****9876", "shortcode": "600000"},
        ))

        key, value = service.catalog_repo.set_setting.call_args[0]
        assert key == "payment_gateway:mpesa"
        saved = json.loads(value)["settings"]
        assert saved == {"consumer_secret": "real-secret-9876", "shortcode": "600000"}
        assert result.settings["consumer_secret"] == "****9876"

    def test_new_gateway_saved_as_given(self, service):
        service.catalog_repo.get_setting.return_value = None

        service.update_payment_settings(ADMIN_ID, PaymentGatewaySettings(
            gateway="paystack", settings={"secret_key": "sk_live_1234"},
        ))

        saved = json.loads(service.catalog_repo.set_setting.call_args[0][1])
        assert saved["settings"]["secret_key"] == "sk_live_1234"

    def test_reserved_keys(self):
        assert is_reserved_setting("payment_gateway:stripe")
        assert is_reserved_setting("notifications:u1:read")
        assert not is_reserved_setting("support_email")

    def test_reserved_setting_rejected(self, service):
        with pytest.raises(InvalidRequestError):
            service.update_setting(ADMIN_ID, "payment_gateway:mpesa", "{}")
        service.catalog_repo.set_setting.assert_not_called()

    def test_admin_cannot_demote_self(self, service):
        with pytest.raises(InvalidRequestError):
            service.assign_role(ADMIN_ID, ADMIN_ID, "user")
        with pytest.raises(InvalidRequestError):
            service.remove_role(ADMIN_ID, ADMIN_ID)

    def test_assign_role(self, service, user_id):
        service.assign_role(ADMIN_ID, user_id, "moderator")

        service.profile_repo.set_role.assert_called_once_with(user_id, "moderator")

    def test_remove_missing_role(self, service, user_id):
        service.profile_repo.remove_role.return_value = False

        with pytest.raises(ResourceNotFoundError):
            service.remove_role(ADMIN_ID, user_id)

    def test_page_content_map_decodes_json(self, service):
        service.catalog_repo.list_page_content.return_value = [
            MagicMock(section_key="hero_title", content_type="text", content_value="Tax made simple"),
            MagicMock(section_key="stats", content_type="json", content_value='{"users": 1200}'),
        ]

        assert service.page_content_map("home") == {"hero_title": "Tax made simple", "stats": {"users": 1200}}


class TestSubscriptionService:
    """Test SubscriptionService.change_plan"""

    @pytest.fixture
    def service(self, profile):
        service = SubscriptionService()
        service.profile_repo = MagicMock()
        service.catalog_repo = MagicMock()
        service.profile_repo.get_by_user_id.return_value = profile
        service.profile_repo.activate_subscription.return_value = True
        return service

    def test_unknown_plan(self, service, user_id):
        service.catalog_repo.get_plan_by_key.return_value = None

        with pytest.raises(InvalidRequestError):
            service.change_plan(user_id, "platinum")
        service.profile_repo.activate_subscription.assert_not_called()

    def test_annual_plan_runs_a_year(self, service, user_id):
        service.change_plan(user_id, "pro", "annual")

        args = service.profile_repo.activate_subscription.call_args[0]
        assert args[:2] == (user_id, "pro")
        days = (args[2] - datetime.now(timezone.utc)).days
        assert 363 <= days <= 365

    def test_catalog_plan_accepted(self, service, user_id):
        service.catalog_repo.get_plan_by_key.return_value = MagicMock(plan_key="enterprise")

        service.change_plan(user_id, "enterprise")

        assert service.profile_repo.activate_subscription.call_args[0][1] == "enterprise"

    def test_upgrade_email_escapes_names(self):
        body = render_upgrade_email("Pro", "Duka <Njeri>", "annual", 25000, ["eTIMS"], year=2025)

        assert "Duka &lt;Njeri&gt;" in body
        assert "Annual" in body
        assert "&copy; 2025 KRA Assist" in body


class TestUserAdminService:
    """Test UserAdminService"""

    @pytest.fixture
    def service(self, profile):
        service = UserAdminService()
        service.profile_repo = MagicMock()
        service.profile_repo.get_by_user_id.return_value = profile
        return service

    def test_set_active_paid_plan(self, service, user_id):
        service.set_subscription(ADMIN_ID, user_id, "business", "active")

        args, kwargs = service.profile_repo.set_subscription.call_args
        assert args == (user_id, "business", "active")
        assert kwargs["subscription_ends_at"] > datetime.now(timezone.utc)
        assert kwargs["trial_ends_at"] is None

    @pytest.mark.parametrize("plan,status", [("gold", "active"), ("pro", "paused")])
    def test_rejects_unknown_values(self, service, user_id, plan, status):
        with pytest.raises(InvalidRequestError):
            service.set_subscription(ADMIN_ID, user_id, plan, status)

    def test_extend_trial(self, service, user_id):
        result = service.extend_trial(ADMIN_ID, user_id, days=7)

        args, kwargs = service.profile_repo.set_subscription.call_args
        assert args == (user_id, None, "trial")
        assert kwargs["trial_ends_at"] == result["trial_ends_at"]
        assert result["trial_ends_at"] > datetime.now(timezone.utc)

    def test_list_users_includes_role(self, service, profile):
        service.profile_repo.list_staff.return_value = [MagicMock(user_id=profile.user_id, role="admin")]
        service.profile_repo.list_all.return_value = [profile]

        users = service.list_users()

        assert users[0]["role"] == "admin"
        assert "mpesa_consumer_secret" not in users[0]
