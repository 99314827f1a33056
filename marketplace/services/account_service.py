"""
Read-mostly access to the user directory.

Accounts are created by the identity service; the order workflow only needs to
resolve them and check their role. Creation and the approve/reject steps of the
verification workflow are kept here so operators and tests can seed data.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.enums import Role, VerificationStatus
from marketplace.core.exceptions import AccountNotFoundError, ValidationError
from marketplace.models.account import ACCOUNT_CLASSES, Account, Customer
from marketplace.schemas.account import AccountCreate

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_account(self, account_id: int) -> Optional[Account]:
        """Return the account with its concrete role class, or None."""
        result = await self.db.execute(select(Account).where(Account.id == account_id))
        return result.scalar_one_or_none()

    async def get_customer(self, customer_id: int) -> Customer:
        account = await self.resolve_account(customer_id)
        if account is None:
            raise AccountNotFoundError(customer_id, Role.CUSTOMER.value)
        if account.role_enum != Role.CUSTOMER:
            raise ValidationError(
                f"Account {customer_id} is a {account.role}, not a Customer",
                {"account_id": customer_id, "role": account.role},
            )
        return account

    async def create_account(self, data: AccountCreate) -> Account:
        """Create an account; the role class decides the initial verification state."""
        model_cls = ACCOUNT_CLASSES[data.role]
        address = data.address
        account = model_cls(
            name=data.name,
            e_mail=data.e_mail,
            phone_no=data.phone_no,
            gender=data.gender,
            date_of_birth=data.date_of_birth,
            address_first_line=address.first_line,
            address_second_line=address.second_line,
            city=address.city,
            state=address.state,
            pin_code=address.pin_code,
            region=data.region,
        )
        self.db.add(account)
        await self.db.commit()
        logger.info("Created %s account %s (%s)", data.role.value, account.id, account.verification_status.value)
        return account

    async def set_verification(self, account_id: int, approved: bool) -> Account:
        account = await self.resolve_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        account.verification_status = VerificationStatus.APPROVED if approved else VerificationStatus.REJECTED
        account.is_verified = approved
        await self.db.commit()
        logger.info("Account %s verification set to %s", account_id, account.verification_status.value)
        return account
