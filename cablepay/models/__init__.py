from .admin import Admin
from .customer import Customer, STATUS_ACTIVE, STATUS_INACTIVE, CUSTOMER_STATUSES
from .transaction import Transaction, PAYMENT_STATUS_SUCCESS
from .app_settings import AppSettings
from .payment_event import PaymentEventLog

__all__ = [
    "Admin",
    "Customer",
    "Transaction",
    "AppSettings",
    "PaymentEventLog",
    "STATUS_ACTIVE",
    "STATUS_INACTIVE",
    "CUSTOMER_STATUSES",
    "PAYMENT_STATUS_SUCCESS",
]
