"""
Business constants shared across the backend
"""
from decimal import Decimal

# Kenya standard VAT rate
VAT_RATE = Decimal("0.16")
VAT_PERCENT = 16

EXPENSE_CATEGORIES = [
    {"value": "rent", "label": "Rent"},
    {"value": "stock", "label": "Stock/Inventory"},
    {"value": "transport", "label": "Transport"},
    {"value": "utilities", "label": "Utilities"},
    {"value": "salaries", "label": "Salaries"},
    {"value": "marketing", "label": "Marketing"},
    {"value": "equipment", "label": "Equipment"},
    {"value": "other", "label": "Other"},
]

SALE_CATEGORIES = [
    {"value": "product", "label": "Product Sale"},
    {"value": "service", "label": "Service"},
]

BUSINESS_TYPES = [
    {"value": "retail", "label": "Retail Shop (Duka)"},
    {"value": "wholesale", "label": "Wholesale"},
    {"value": "service", "label": "Service Provider"},
    {"value": "online", "label": "Online/Digital Business"},
]

# Subscription plans
PAID_PLANS = ("starter", "business", "pro")
DEFAULT_PLAN = "free_trial"
DEFAULT_PAID_PLAN = "business"

PLAN_BENEFITS = {
    "starter": [
        "Basic tax filing assistance",
        "Up to 100 invoices per month",
        "Mobile-friendly dashboard",
        "Email support",
    ],
    "business": [
        "Advanced tax filing with eTIMS integration",
        "Unlimited invoices",
        "Full POS system access",
        "Up to 5 staff accounts",
        "Comprehensive reporting",
        "Priority email & chat support",
    ],
    "pro": [
        "Everything in Business, plus:",
        "Unlimited staff accounts",
        "API access for integrations",
        "Advanced analytics & insights",
        "Dedicated account manager",
        "24/7 priority phone support",
        "Early access to new features",
    ],
}

# Loyalty program: 1 point per KES 100 spent, 100 points = KES 100 off
POINTS_PER_100 = 1
POINTS_FOR_DISCOUNT = 100
DISCOUNT_VALUE = 100

# Staff roles
PREDEFINED_ROLES = ("admin", "cashier", "manager", "accountant", "user")

# Notifications look this many days ahead for deadlines
DEADLINE_WARNING_DAYS = 7
DEADLINE_URGENT_DAYS = 2
