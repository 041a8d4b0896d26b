"""
Loyalty programme models and point arithmetic

1 point per KES 100 spent; every 100 points redeem for KES 100 off.
"""
import math
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import DISCOUNT_VALUE, POINTS_FOR_DISCOUNT, POINTS_PER_100

LoyaltyTransactionType = Literal["earn", "redeem"]

Amount = Union[int, float, Decimal]


class LoyaltyCustomer(BaseModel):
    id: str
    user_id: str
    phone: str
    name: Optional[str] = None
    points_balance: int = 0
    total_points_earned: int = 0
    total_points_redeemed: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoyaltyCustomerCreate(BaseModel):
    phone: str = Field(..., min_length=9)
    name: Optional[str] = None


class LoyaltyTransaction(BaseModel):
    id: str
    user_id: str
    customer_id: str
    type: LoyaltyTransactionType
    points: int
    sale_amount: Optional[Decimal] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


def points_to_earn(amount: Amount) -> int:
    return math.floor(Decimal(str(amount)) / 100) * POINTS_PER_100


def discount_for_points(points: int) -> int:
    """KES discount for a number of points, in whole redemption blocks"""
    return (points // POINTS_FOR_DISCOUNT) * DISCOUNT_VALUE


def max_redeemable_points(balance: int, cart_total: Amount) -> int:
    """A redemption may not exceed the balance nor the cart value"""
    cart_cap = math.floor(Decimal(str(cart_total)) / DISCOUNT_VALUE) * POINTS_FOR_DISCOUNT
    return max(0, min(balance, cart_cap))
