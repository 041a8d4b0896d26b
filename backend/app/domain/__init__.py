"""
Domain Layer - Business Entities

Pydantic models for the KRA Assist tables plus the pure derivations built
on them (subscription status, invoice totals, loyalty points, eTIMS
payloads, notifications).
"""
from app.domain.profile import BusinessProfile, SubscriptionStatus, compute_subscription_status
from app.domain.transaction import Transaction
from app.domain.invoice import Invoice, InvoiceItem, calculate_invoice_totals, format_invoice_number
from app.domain.product import Product, ProductImage
from app.domain.deadline import Deadline
from app.domain.loyalty import LoyaltyCustomer, LoyaltyTransaction
from app.domain.payment import PaymentTransaction, parse_subscription_reference
from app.domain.etims import EtimsSubmission, build_etims_payload
from app.domain.notification import Notification, build_notifications

__all__ = [
    'BusinessProfile', 'SubscriptionStatus', 'compute_subscription_status',
    'Transaction',
    'Invoice', 'InvoiceItem', 'calculate_invoice_totals', 'format_invoice_number',
    'Product', 'ProductImage',
    'Deadline',
    'LoyaltyCustomer', 'LoyaltyTransaction',
    'PaymentTransaction', 'parse_subscription_reference',
    'EtimsSubmission', 'build_etims_payload',
    'Notification', 'build_notifications',
]
