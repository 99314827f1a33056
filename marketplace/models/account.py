"""
Account records for every role in the marketplace.

All roles live in one ``users`` table discriminated on ``role``
(single-table inheritance), so a query against ``Seller`` only ever sees
seller rows while ``Account`` sees everyone.
"""

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import validates

from marketplace.core.enums import Gender, Region, Role, VerificationStatus
from marketplace.core.utils import utc_now
from marketplace.database import Base
from marketplace.models._types import enum_column_type


class Account(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    role = Column(String(20), nullable=False, index=True)
    name = Column(String, nullable=False)
    e_mail = Column(String, unique=True, nullable=False)
    phone_no = Column(String(15), nullable=True)
    gender = Column(enum_column_type(Gender), nullable=True)
    date_of_birth = Column(Date, nullable=True)

    # Postal address
    address_first_line = Column(String, nullable=True)
    address_second_line = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    pin_code = Column(String(6), nullable=True, index=True)

    region = Column(enum_column_type(Region), nullable=False)

    verification_status = Column(enum_column_type(VerificationStatus), nullable=False, index=True)
    is_verified = Column(Boolean, nullable=False, default=False)

    __mapper_args__ = {"polymorphic_on": role}

    # Whether new accounts of this role skip the approval workflow
    starts_verified = True

    def __init__(self, **kwargs):
        kwargs.setdefault(
            "verification_status",
            VerificationStatus.APPROVED if self.starts_verified else VerificationStatus.PENDING,
        )
        kwargs.setdefault("is_verified", self.starts_verified)
        super().__init__(**kwargs)

    @validates("pin_code")
    def _normalise_pin_code(self, key, value):
        return str(value).strip() if value is not None else None

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    @property
    def address(self) -> dict:
        return {
            "first_line": self.address_first_line,
            "second_line": self.address_second_line,
            "city": self.city,
            "state": self.state,
            "pin_code": self.pin_code,
        }

    def has_complete_address(self, pin_length: int = 6) -> bool:
        if not all([self.address_first_line, self.city, self.state, self.pin_code]):
            return False
        return len(self.pin_code) == pin_length and self.pin_code.isdigit()

    @property
    def is_eligible_seller(self) -> bool:
        return self.verification_status == VerificationStatus.APPROVED and bool(self.is_verified)

    def __repr__(self) -> str:
        return f"<{self.role} id={self.id} pin={self.pin_code} status={self.verification_status}>"


class Customer(Account):
    __mapper_args__ = {"polymorphic_identity": Role.CUSTOMER.value}


class Seller(Account):
    description = Column(Text, nullable=True, default="")

    __mapper_args__ = {"polymorphic_identity": Role.SELLER.value}

    starts_verified = False


class RegionalAdmin(Account):
    __mapper_args__ = {"polymorphic_identity": Role.REGIONAL_ADMIN.value}

    starts_verified = False


class SuperAdmin(Account):
    access_level = Column(String(10), nullable=True, default="full")

    __mapper_args__ = {"polymorphic_identity": Role.SUPER_ADMIN.value}


ACCOUNT_CLASSES = {
    Role.CUSTOMER: Customer,
    Role.SELLER: Seller,
    Role.REGIONAL_ADMIN: RegionalAdmin,
    Role.SUPER_ADMIN: SuperAdmin,
}
