"""
Unit tests for PosService

Repositories are replaced with mocks; checkout bookkeeping is checked
through the calls made on them.
"""
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from app.core.errors import InvalidRequestError, ResourceNotFoundError
from app.domain.loyalty import LoyaltyCustomer
from app.domain.pos import CheckoutRequest
from app.domain.product import Product
from app.domain.profile import BusinessProfile
from app.repositories.product_repository import InsufficientStockError
from app.services.pos_service import PosService

TODAY = date(2025, 2, 10)


@pytest.fixture
def products(sample_product_data):
    return {
        "prod-1": Product(**sample_product_data),
        "prod-2": Product(**{**sample_product_data, "id": "prod-2", "name": "Sukari 2kg", "unit_price": Decimal("700"), "quantity": 10}),
    }


@pytest.fixture
def customer(user_id):
    return LoyaltyCustomer(id="cust-1", user_id=user_id, phone="0712345678", name="Wanjiku", points_balance=150)


@pytest.fixture
def service(products, customer, sample_profile_data):
    service = PosService()
    service.product_repo = MagicMock()
    service.loyalty_repo = MagicMock()
    service.profile_repo = MagicMock()
    service.transaction_repo = MagicMock()

    service.product_repo.find_by_id.side_effect = lambda user_id, product_id: products.get(product_id)
    service.product_repo.decrement_stock_many.return_value = {"prod-1": 38, "prod-2": 9}
    service.loyalty_repo.find_by_id.return_value = customer
    service.loyalty_repo.apply_sale.return_value = customer.model_copy(update={"points_balance": 61})
    service.profile_repo.get_by_user_id.return_value = BusinessProfile(**sample_profile_data)
    service.transaction_repo.create.return_value = MagicMock(id="tx-9")
    return service


class TestCheckout:
    """Test PosService.checkout"""

    def test_sale_with_loyalty_redemption(self, service, user_id):
        request = CheckoutRequest(
            items=[{"product_id": "prod-1", "quantity": 2}, {"product_id": "prod-2", "quantity": 1}],
            payment_method="mpesa",
            loyalty_customer_id="cust-1",
            points_to_redeem=100,
            payment_reference="QKJ3ABC123",
        )

        receipt = service.checkout(user_id, request, today=TODAY)

        assert receipt.transaction_id == "tx-9"
        assert receipt.subtotal == Decimal("1200.00")
        assert receipt.loyalty_discount == Decimal("100.00")
        assert receipt.vat_amount == Decimal("176.00")
        assert receipt.total == Decimal("1276.00")
        assert receipt.loyalty_points_earned == 11
        assert receipt.loyalty_points_redeemed == 100
        assert receipt.loyalty_balance == 61
        assert receipt.mpesa_receipt_number == "QKJ3ABC123"
        assert receipt.customer_phone == "0712345678"

        service.product_repo.decrement_stock_many.assert_called_once_with(user_id, [("prod-1", 2), ("prod-2", 1)])
        service.loyalty_repo.apply_sale.assert_called_once_with(user_id, "cust-1", earned=11, redeemed=100)

        earn, redeem = service.loyalty_repo.add_transaction.call_args_list
        assert earn.args[2:4] == ("earn", 11)
        assert earn.kwargs["description"] == "POS Sale - 3 item(s)"
        assert redeem.args[2:4] == ("redeem", 100)
        assert redeem.kwargs["description"] == "Redeemed for KES 100 discount"

        recorded = service.transaction_repo.create.call_args[0][1]
        assert recorded.type == "sale"
        assert recorded.amount == Decimal("1276.00")
        assert recorded.vat_amount == Decimal("176.00")
        assert recorded.is_vat_applicable is True
        assert recorded.description == "POS Sale - 3 item(s)"
        assert recorded.category == "product"
        assert recorded.date == TODAY
        assert recorded.customer == "Wanjiku"

    def test_cash_sale_without_customer(self, service, user_id, sample_profile_data):
        service.profile_repo.get_by_user_id.return_value = BusinessProfile(
            **{**sample_profile_data, "is_vat_registered": False}
        )
        request = CheckoutRequest(items=[{"product_id": "prod-1", "quantity": 1}], customer_phone="0799000000")

        receipt = service.checkout(user_id, request, today=TODAY)

        assert receipt.total == Decimal("250.00")
        assert receipt.vat_amount == Decimal("0")
        assert receipt.loyalty_points_earned == 0
        assert receipt.mpesa_receipt_number is None
        assert receipt.customer_phone == "0799000000"
        service.loyalty_repo.apply_sale.assert_not_called()
        assert service.transaction_repo.create.call_args[0][1].is_vat_applicable is False

    def test_unknown_product(self, service, user_id):
        request = CheckoutRequest(items=[{"product_id": "ghost", "quantity": 1}])

        with pytest.raises(ResourceNotFoundError):
            service.checkout(user_id, request)

        service.product_repo.decrement_stock_many.assert_not_called()

    def test_cart_over_stock_rejected_before_any_write(self, service, user_id):
        request = CheckoutRequest(items=[{"product_id": "prod-1", "quantity": 41}])

        with pytest.raises(InvalidRequestError) as exc_info:
            service.checkout(user_id, request)

        assert exc_info.value.details["available"] == 40
        service.product_repo.decrement_stock_many.assert_not_called()
        service.transaction_repo.create.assert_not_called()

    def test_stock_sold_elsewhere_meanwhile(self, service, user_id):
        service.product_repo.decrement_stock_many.side_effect = InsufficientStockError("prod-1", 2)
        request = CheckoutRequest(items=[{"product_id": "prod-1", "quantity": 2}])

        with pytest.raises(InvalidRequestError):
            service.checkout(user_id, request)

        service.transaction_repo.create.assert_not_called()

    def test_repeated_lines_are_merged(self, service, user_id):
        """Test the same product scanned twice is priced and decremented as one line"""
        request = CheckoutRequest(items=[
            {"product_id": "prod-1", "quantity": 2},
            {"product_id": "prod-2", "quantity": 1},
            {"product_id": "prod-1", "quantity": 3},
        ])

        receipt = service.checkout(user_id, request, today=TODAY)

        assert [(line.product_id, line.quantity) for line in receipt.items] == [("prod-1", 5), ("prod-2", 1)]
        assert receipt.subtotal == Decimal("1950.00")
        service.product_repo.decrement_stock_many.assert_called_once_with(user_id, [("prod-1", 5), ("prod-2", 1)])

    def test_repeated_lines_checked_against_stock_together(self, service, user_id, products):
        """Test two lines that fit stock separately but not together are refused before any write"""
        products["prod-1"] = products["prod-1"].model_copy(update={"quantity": 3})
        request = CheckoutRequest(items=[
            {"product_id": "prod-1", "quantity": 2},
            {"product_id": "prod-1", "quantity": 2},
        ])

        with pytest.raises(InvalidRequestError) as exc_info:
            service.checkout(user_id, request)

        assert exc_info.value.details == {"product_id": "prod-1", "available": 3, "requested": 4}
        service.product_repo.decrement_stock_many.assert_not_called()
        service.transaction_repo.create.assert_not_called()

    def test_redeeming_more_than_balance(self, service, user_id, customer):
        service.loyalty_repo.find_by_id.return_value = customer.model_copy(update={"points_balance": 50})
        request = CheckoutRequest(
            items=[{"product_id": "prod-2", "quantity": 1}],
            loyalty_customer_id="cust-1",
            points_to_redeem=100,
        )

        with pytest.raises(InvalidRequestError) as exc_info:
            service.checkout(user_id, request)

        assert exc_info.value.details["max_redeemable"] == 50

    def test_unknown_loyalty_customer(self, service, user_id):
        service.loyalty_repo.find_by_id.return_value = None
        request = CheckoutRequest(items=[{"product_id": "prod-1", "quantity": 1}], loyalty_customer_id="nobody")

        with pytest.raises(ResourceNotFoundError):
            service.checkout(user_id, request)


class TestLoyaltyCustomers:
    """Test loyalty customer lookup and registration"""

    def test_lookup_missing(self, service, user_id):
        service.loyalty_repo.find_by_phone.return_value = None

        with pytest.raises(ResourceNotFoundError):
            service.lookup_loyalty_customer(user_id, "0700000000")

    def test_register_duplicate_phone(self, service, user_id, customer):
        service.loyalty_repo.find_by_phone.return_value = customer

        with pytest.raises(InvalidRequestError):
            service.register_loyalty_customer(user_id, " 0712345678 ")

        service.loyalty_repo.find_by_phone.assert_called_once_with(user_id, "0712345678")
        service.loyalty_repo.create_customer.assert_not_called()

    def test_register(self, service, user_id, customer):
        service.loyalty_repo.find_by_phone.return_value = None
        service.loyalty_repo.create_customer.return_value = customer

        assert service.register_loyalty_customer(user_id, "0712345678", "Wanjiku") is customer
        service.loyalty_repo.create_customer.assert_called_once_with(user_id, "0712345678", "Wanjiku")
