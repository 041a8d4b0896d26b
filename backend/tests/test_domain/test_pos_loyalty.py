"""
Unit tests for POS cart arithmetic and loyalty points

Pure functions, no database.
"""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.domain.loyalty import discount_for_points, max_redeemable_points, points_to_earn
from app.domain.pos import CheckoutRequest, ReceiptLine, calculate_pos_totals, pos_sale_description


def _line(product_id: str, quantity: int, unit_price: str) -> ReceiptLine:
    price = Decimal(unit_price)
    return ReceiptLine(
        product_id=product_id,
        description=product_id,
        quantity=quantity,
        unit_price=price,
        total=price * quantity,
    )


class TestLoyaltyPoints:
    """Test point earning and redemption rules"""

    def test_one_point_per_hundred_shillings(self):
        assert points_to_earn(250) == 2
        assert points_to_earn(Decimal("1099.99")) == 10

    def test_no_points_below_one_hundred(self):
        assert points_to_earn(99.99) == 0

    def test_discount_in_whole_blocks(self):
        """Test 100 points buy KES 100 off; leftovers are not redeemable"""
        assert discount_for_points(100) == 100
        assert discount_for_points(250) == 200
        assert discount_for_points(99) == 0

    def test_redemption_capped_by_cart_value(self):
        assert max_redeemable_points(balance=350, cart_total=275) == 200

    def test_redemption_capped_by_balance(self):
        assert max_redeemable_points(balance=50, cart_total=1000) == 50

    def test_redemption_never_negative(self):
        assert max_redeemable_points(balance=0, cart_total=0) == 0


class TestCalculatePosTotals:
    """Test calculate_pos_totals"""

    def test_discount_applied_before_vat(self):
        """Test VAT and earned points are based on the discounted amount"""
        lines = [_line("unga", 2, "250"), _line("sukari", 1, "700")]

        totals = calculate_pos_totals(lines, points_to_redeem=100, vat_registered=True, earns_points=True)

        assert totals.subtotal == Decimal("1200.00")
        assert totals.loyalty_discount == Decimal("100.00")
        assert totals.vat_amount == Decimal("176.00")
        assert totals.total == Decimal("1276.00")
        assert totals.points_earned == 11

    def test_not_vat_registered_and_no_loyalty_customer(self):
        lines = [_line("unga", 2, "250"), _line("sukari", 1, "700")]

        totals = calculate_pos_totals(lines, points_to_redeem=0, vat_registered=False, earns_points=False)

        assert totals.vat_amount == Decimal("0")
        assert totals.total == Decimal("1200.00")
        assert totals.points_earned == 0

    def test_discount_larger_than_cart_floors_at_zero(self):
        lines = [_line("sweets", 1, "50")]

        totals = calculate_pos_totals(lines, points_to_redeem=100, vat_registered=True, earns_points=True)

        assert totals.loyalty_discount == Decimal("50.00")
        assert totals.total == Decimal("0.00")
        assert totals.points_earned == 0


class TestCheckoutRequest:
    """Test checkout request validation"""

    def test_redeeming_requires_loyalty_customer(self):
        with pytest.raises(ValidationError):
            CheckoutRequest(items=[{"product_id": "p1", "quantity": 1}], points_to_redeem=100)

    def test_empty_cart_rejected(self):
        with pytest.raises(ValidationError):
            CheckoutRequest(items=[])

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError):
            CheckoutRequest(items=[{"product_id": "p1", "quantity": 0}])

    def test_defaults_to_cash(self):
        request = CheckoutRequest(items=[{"product_id": "p1", "quantity": 3}])
        assert request.payment_method == "cash"
        assert request.points_to_redeem == 0


def test_pos_sale_description():
    assert pos_sale_description(3) == "POS Sale - 3 item(s)"
