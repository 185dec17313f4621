"""
Pydantic schemas for API requests

Field names on the wire are camelCase.
"""

from decimal import Decimal
from datetime import date
from pydantic import BaseModel, ConfigDict, Field

from ..models import MAX_AMOUNT


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Person schemas
class CreatePersonRequest(CamelModel):
    name: str = Field(..., min_length=1)
    document: str = Field(..., min_length=1, description="Identity document number")
    birth_date: date = Field(..., alias="birthDate")


# Account schemas
class CreateAccountRequest(CamelModel):
    person_id: int = Field(..., alias="personId")
    daily_withdrawal_limit: Decimal = Field(..., alias="dailyWithdrawalLimit", ge=0, le=MAX_AMOUNT)
    account_type: int = Field(..., alias="accountType")


class AccountValueRequest(CamelModel):
    """Deposit or withdrawal of a positive value"""
    account_id: int = Field(..., alias="accountId")
    value: Decimal = Field(..., gt=0, le=MAX_AMOUNT)


class BlockAccountRequest(CamelModel):
    account_id: int = Field(..., alias="accountId")
