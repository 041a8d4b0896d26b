"""
Business Profile Domain Model

One profile row per auth user. Holds the business identity shown on
invoices and receipts, the subscription state, and the per-business
vendor credentials (Daraja, Paystack, Stripe, KRA) used by the payment
and tax connectors.
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import DEFAULT_PLAN, PAID_PLANS

SubscriptionState = Literal["trial", "active", "expired", "cancelled"]
BillingPeriod = Literal["monthly", "annual"]

TRIAL_EXTENSION_DAYS = 14
BILLING_PERIOD_DAYS = {"monthly": 30, "annual": 365}
BusinessType = Literal["retail", "service", "wholesale", "online"]

# Columns that must never leave the backend
SECRET_FIELDS = (
    "stripe_secret_key",
    "mpesa_consumer_key",
    "mpesa_consumer_secret",
    "mpesa_passkey",
    "paystack_secret_key",
    "kra_api_key",
    "kra_api_secret",
)


class BusinessProfile(BaseModel):
    """Business profile row (profiles table)"""

    user_id: str
    business_name: str = "My Business"
    kra_pin: Optional[str] = None
    is_vat_registered: bool = False
    business_type: BusinessType = "retail"
    mpesa_paybill: Optional[str] = None
    mpesa_till_number: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    logo_url: Optional[str] = None

    # Built-in plans are in PAID_PLANS; admins may add more through pricing_plans
    subscription_plan: str = DEFAULT_PLAN
    subscription_status: SubscriptionState = "trial"
    trial_ends_at: Optional[datetime] = None
    subscription_ends_at: Optional[datetime] = None

    # Vendor credentials
    stripe_publishable_key: Optional[str] = None
    stripe_secret_key: Optional[str] = None
    mpesa_consumer_key: Optional[str] = None
    mpesa_consumer_secret: Optional[str] = None
    mpesa_shortcode: Optional[str] = None
    mpesa_passkey: Optional[str] = None
    paystack_public_key: Optional[str] = None
    paystack_secret_key: Optional[str] = None
    kra_api_key: Optional[str] = None
    kra_api_secret: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def has_mpesa_credentials(self) -> bool:
        return all([
            self.mpesa_consumer_key,
            self.mpesa_consumer_secret,
            self.mpesa_shortcode,
            self.mpesa_passkey,
        ])

    @property
    def has_kra_credentials(self) -> bool:
        return bool(self.kra_api_key and self.kra_api_secret)

    def public_dict(self) -> dict:
        """
        Profile as returned to the client

        Secrets are replaced by booleans telling the settings screen which
        integrations are configured.
        """
        data = self.model_dump(exclude=set(SECRET_FIELDS))
        data["has_mpesa_credentials"] = self.has_mpesa_credentials
        data["has_paystack_credentials"] = bool(self.paystack_secret_key)
        data["has_stripe_credentials"] = bool(self.stripe_secret_key)
        data["has_kra_credentials"] = self.has_kra_credentials
        return data


class ProfileUpdate(BaseModel):
    """Partial profile update from the settings screen"""
    business_name: Optional[str] = Field(None, min_length=1)
    kra_pin: Optional[str] = None
    is_vat_registered: Optional[bool] = None
    business_type: Optional[BusinessType] = None
    mpesa_paybill: Optional[str] = None
    mpesa_till_number: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    logo_url: Optional[str] = None
    stripe_publishable_key: Optional[str] = None
    stripe_secret_key: Optional[str] = None
    mpesa_consumer_key: Optional[str] = None
    mpesa_consumer_secret: Optional[str] = None
    mpesa_shortcode: Optional[str] = None
    mpesa_passkey: Optional[str] = None
    paystack_public_key: Optional[str] = None
    paystack_secret_key: Optional[str] = None
    kra_api_key: Optional[str] = None
    kra_api_secret: Optional[str] = None


class SubscriptionStatus(BaseModel):
    """Derived access flags used to gate premium features"""
    is_active: bool
    is_premium: bool
    is_trial_active: bool
    can_use_ai_features: bool
    days_remaining: Optional[int] = None
    plan: str = DEFAULT_PLAN


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _days_between(later: datetime, now: datetime) -> int:
    return math.ceil((later - now).total_seconds() / 86400)


def compute_subscription_status(
    profile: BusinessProfile,
    now: Optional[datetime] = None,
) -> SubscriptionStatus:
    """
    Derive subscription flags from the stored end dates.

    Access is granted while the trial runs, or while a paid plan's
    subscription end date is in the future. Days remaining counts the
    trial first and is rounded up to whole days.
    """
    now = _as_aware(now) or datetime.now(timezone.utc)

    trial_ends_at = _as_aware(profile.trial_ends_at)
    subscription_ends_at = _as_aware(profile.subscription_ends_at)

    is_trial_active = bool(trial_ends_at and trial_ends_at > now)
    is_subscription_active = bool(subscription_ends_at and subscription_ends_at > now)
    is_premium = profile.subscription_plan in PAID_PLANS
    is_active = is_trial_active or (is_premium and is_subscription_active)

    days_remaining: Optional[int] = None
    if is_trial_active:
        days_remaining = _days_between(trial_ends_at, now)
    elif is_subscription_active:
        days_remaining = _days_between(subscription_ends_at, now)

    return SubscriptionStatus(
        is_active=is_active,
        is_premium=is_premium,
        is_trial_active=is_trial_active,
        can_use_ai_features=is_active,
        days_remaining=days_remaining,
        plan=profile.subscription_plan or DEFAULT_PLAN,
    )


def one_month_from(start: Optional[datetime] = None) -> datetime:
    """End of a one-month paid period (same day next month, clamped)"""
    start = _as_aware(start) or datetime.now(timezone.utc)
    return start + relativedelta(months=1)


def billing_period_end(billing_period: str, start: Optional[datetime] = None) -> datetime:
    """Plan change from the pricing page: 30 days monthly, 365 days annual"""
    start = _as_aware(start) or datetime.now(timezone.utc)
    return start + timedelta(days=BILLING_PERIOD_DAYS.get(billing_period, BILLING_PERIOD_DAYS["monthly"]))


def extended_trial_end(
    current_trial_end: Optional[datetime],
    days: int = TRIAL_EXTENSION_DAYS,
    now: Optional[datetime] = None,
) -> datetime:
    """
    New trial end after an admin extension

    Extends from the current trial end while it is still running,
    otherwise from now.
    """
    now = _as_aware(now) or datetime.now(timezone.utc)
    current = _as_aware(current_trial_end)
    base = current if current and current > now else now
    return base + timedelta(days=days)
