from datetime import date
from typing import Optional

from pydantic import EmailStr, Field

from marketplace.core.enums import Gender, Region, Role
from .base import BaseSchema


class AddressSchema(BaseSchema):
    first_line: str
    second_line: Optional[str] = None
    city: str
    state: str
    pin_code: str = Field(..., pattern=r"^\d{6}$", description="6-digit postal code")


class AccountCreate(BaseSchema):
    name: str = Field(..., min_length=1)
    e_mail: EmailStr
    phone_no: Optional[str] = Field(None, pattern=r"^\d{10}$")
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    address: AddressSchema
    region: Region
    role: Role

