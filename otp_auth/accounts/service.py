"""
Account Queries
===============
Read-side account operations for the user management surface.
"""

import uuid
from typing import TYPE_CHECKING, Optional, Union
import structlog

from ..errors import AccountNotFound, ServiceError, StoreError
from .models import Account, AccountPage

if TYPE_CHECKING:
    from ..stores.base import IdentityStore

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class AccountService:
    """Account lookup and paginated listing."""

    def __init__(self, identities: "IdentityStore"):
        self.identities = identities

    async def get_account(self, account_id: Union[str, uuid.UUID]) -> Account:
        """
        Fetch an account by id.

        Raises:
            AccountNotFound: Unknown or malformed id
            ServiceError: Backend failure
        """
        if not isinstance(account_id, uuid.UUID):
            try:
                account_id = uuid.UUID(str(account_id))
            except ValueError as e:
                raise AccountNotFound(str(account_id)) from e

        try:
            return await self.identities.get_by_id(account_id)
        except StoreError as e:
            logger.error("Failed to retrieve account", account_id=str(account_id), error=str(e))
            raise ServiceError() from e

    async def list_accounts(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
    ) -> AccountPage:
        """
        List accounts newest first.

        Args:
            page: 1-based page number
            limit: Page size (1..MAX_PAGE_SIZE)
            search: Substring of the phone number to filter on

        Raises:
            ValueError: Page or limit out of range
            ServiceError: Backend failure
        """
        if page < 1:
            raise ValueError("Invalid page number")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValueError("Invalid limit per page")

        offset = (page - 1) * limit
        try:
            accounts, total = await self.identities.list(limit, offset, search or None)
        except StoreError as e:
            logger.error("Failed to list accounts", error=str(e))
            raise ServiceError() from e

        return AccountPage(accounts=accounts, total=total, page=page, limit=limit)
