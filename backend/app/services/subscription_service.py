"""
Subscription Service
Plan status, plan changes and the upgrade confirmation email
"""
import html
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.connectors.errors import ConnectorError
from app.connectors.resend_connector import ResendConnector
from app.core.config import settings
from app.core.constants import PAID_PLANS, PLAN_BENEFITS
from app.core.database import get_supabase
from app.core.errors import APIError, InvalidRequestError, ResourceNotFoundError
from app.domain.formatting import format_kes
from app.domain.profile import billing_period_end, compute_subscription_status
from app.repositories import CatalogRepository, ProfileRepository

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Valued Customer"

UPGRADE_EMAIL_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin: 0; padding: 0; font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; background-color: #f9fafb;">
  <div style="max-width: 600px; margin: 0 auto; padding: 40px 20px;">
    <div style="text-align: center; margin-bottom: 40px;">
      <h1 style="color: #059669; font-size: 28px; margin: 0;">Welcome to {plan_name}!</h1>
    </div>
    <div style="background: white; border-radius: 16px; overflow: hidden;">
      <div style="background: #059669; padding: 30px; text-align: center;">
        <h2 style="color: white; margin: 0; font-size: 24px;">Your upgrade is complete!</h2>
        <p style="color: #ecfdf5; margin: 10px 0 0 0;">Thank you for choosing KRA Assist</p>
      </div>
      <div style="padding: 30px;">
        <p style="color: #374151; font-size: 16px; line-height: 1.6;">Hi <strong>{business_name}</strong>,</p>
        <p style="color: #374151; font-size: 16px; line-height: 1.6;">
          Congratulations on upgrading to the <strong style="color: #059669;">{plan_name}</strong> plan!
          Your subscription is now active and you have access to all the premium features.
        </p>
        <div style="background: #f9fafb; border-radius: 12px; padding: 20px; margin: 25px 0;">
          <h3 style="color: #111827; margin: 0 0 15px 0; font-size: 18px;">Subscription Details</h3>
          <table style="width: 100%; border-collapse: collapse;">
            <tr>
              <td style="padding: 8px 0; color: #6b7280;">Plan</td>
              <td style="padding: 8px 0; text-align: right; font-weight: 600; color: #111827;">{plan_name}</td>
            </tr>
            <tr>
              <td style="padding: 8px 0; color: #6b7280;">Billing</td>
              <td style="padding: 8px 0; text-align: right; font-weight: 600; color: #111827;">{billing_label}</td>
            </tr>
            <tr>
              <td style="padding: 8px 0; color: #6b7280;">Amount</td>
              <td style="padding: 8px 0; text-align: right; font-weight: 600; color: #059669;">{price}</td>
            </tr>
          </table>
        </div>
        <div style="margin: 25px 0;">
          <h3 style="color: #111827; margin: 0 0 15px 0; font-size: 18px;">Your Plan Benefits</h3>
          <ul style="list-style: none; padding: 0; margin: 0;">
            {features_html}
          </ul>
        </div>
        <div style="text-align: center; margin: 30px 0;">
          <a href="{dashboard_url}"
             style="display: inline-block; background: #059669; color: white; text-decoration: none; padding: 14px 32px; border-radius: 8px; font-weight: 600; font-size: 16px;">
            Go to Dashboard
          </a>
        </div>
        <p style="color: #6b7280; font-size: 14px; line-height: 1.6; margin-top: 25px;">
          If you have any questions about your subscription or need help getting started,
          our support team is here to help. Just reply to this email!
        </p>
      </div>
      <div style="background: #f9fafb; padding: 20px 30px; text-align: center; border-top: 1px solid #e5e7eb;">
        <p style="color: #9ca3af; font-size: 12px; margin: 0;">
          &copy; {year} KRA Assist. All rights reserved.<br>
          Kenya Revenue Authority Compliance Made Simple
        </p>
      </div>
    </div>
  </div>
</body>
</html>
"""


def render_upgrade_email(
    plan_name: str,
    business_name: str,
    billing_period: str,
    price: Any,
    features: List[str],
    year: Optional[int] = None,
) -> str:
    features_html = "".join(
        f'<li style="padding: 8px 0; border-bottom: 1px solid #f0f0f0;">{html.escape(feature)}</li>'
        for feature in features
    )
    return UPGRADE_EMAIL_TEMPLATE.format(
        plan_name=html.escape(plan_name),
        business_name=html.escape(business_name),
        billing_label="Annual" if billing_period == "annual" else "Monthly",
        price=format_kes(price),
        features_html=features_html,
        dashboard_url=f"{settings.APP_PUBLIC_URL.rstrip('/')}/dashboard",
        year=year or datetime.now(timezone.utc).year,
    )


class SubscriptionService:

    def __init__(self):
        self.profile_repo = ProfileRepository()
        self.catalog_repo = CatalogRepository()

    def get_status(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        profile = self.profile_repo.get_by_user_id(user_id)
        if not profile:
            raise ResourceNotFoundError("Profile", user_id)

        status = compute_subscription_status(profile, now)
        return {
            **status.model_dump(),
            "subscription_status": profile.subscription_status,
            "trial_ends_at": profile.trial_ends_at,
            "subscription_ends_at": profile.subscription_ends_at,
        }

    def change_plan(self, user_id: str, plan_key: str, billing_period: str = "monthly") -> Dict[str, Any]:
        """Switch to a paid plan: active for 30 days (monthly) or 365 days (annual)"""
        if plan_key not in PAID_PLANS and not self.catalog_repo.get_plan_by_key(plan_key):
            raise InvalidRequestError(f"Unknown plan: {plan_key}")

        ends_at = billing_period_end(billing_period)
        if not self.profile_repo.activate_subscription(user_id, plan_key, ends_at):
            raise ResourceNotFoundError("Profile", user_id)

        logger.info(f"User {user_id} changed plan to {plan_key} ({billing_period}) until {ends_at.isoformat()}")
        return self.get_status(user_id)

    def _recipient(self, user_id: str):
        """(email, business name) from the profile, else the auth user"""
        profile = self.profile_repo.get_by_user_id(user_id)
        if profile and profile.email:
            return profile.email, profile.business_name or DEFAULT_CUSTOMER_NAME

        response = get_supabase().auth.admin.get_user_by_id(user_id)
        auth_user = getattr(response, "user", None)
        if not auth_user or not auth_user.email:
            logger.error(f"Could not find email for user {user_id}")
            raise ResourceNotFoundError("User email")

        metadata = auth_user.user_metadata or {}
        return auth_user.email, metadata.get("business_name") or DEFAULT_CUSTOMER_NAME

    async def send_upgrade_email(
        self,
        user_id: str,
        plan_name: str,
        plan_key: str,
        billing_period: str,
        price: Any,
        features: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        if not settings.RESEND_API_KEY:
            logger.error("RESEND_API_KEY not configured")
            raise APIError("Email service not configured")

        logger.info(f"Sending subscription email for user: {user_id} plan: {plan_name}")

        email, business_name = self._recipient(user_id)
        plan_features = features or PLAN_BENEFITS.get(plan_key) or PLAN_BENEFITS["starter"]

        body = render_upgrade_email(plan_name, business_name, billing_period, price, plan_features)

        try:
            email_id = await ResendConnector(settings.RESEND_API_KEY).send_email(
                sender=settings.EMAIL_FROM,
                to=email,
                subject=f"Welcome to {plan_name} - Your Upgrade is Complete!",
                html=body,
            )
        except ConnectorError as e:
            raise APIError("Failed to send email", details=e.details)

        return {"success": True, "email_id": email_id}
