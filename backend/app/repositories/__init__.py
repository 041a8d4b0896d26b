"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.
"""
from app.repositories.profile_repository import ProfileRepository
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.invoice_repository import InvoiceRepository
from app.repositories.product_repository import ProductRepository
from app.repositories.deadline_repository import DeadlineRepository
from app.repositories.loyalty_repository import LoyaltyRepository
from app.repositories.payment_repository import PaymentRepository
from app.repositories.etims_repository import EtimsRepository
from app.repositories.catalog_repository import CatalogRepository

__all__ = [
    'ProfileRepository',
    'TransactionRepository',
    'InvoiceRepository',
    'ProductRepository',
    'DeadlineRepository',
    'LoyaltyRepository',
    'PaymentRepository',
    'EtimsRepository',
    'CatalogRepository',
]
