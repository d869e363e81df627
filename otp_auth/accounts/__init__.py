"""
Accounts
========
Account records and read-side queries.
"""

from .models import Account, AccountPage
from .service import AccountService, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

__all__ = [
    # Models
    "Account",
    "AccountPage",
    # Service
    "AccountService",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
]
