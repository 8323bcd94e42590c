"""
Pydantic schemas for Account endpoints.

IBANs are normalized (whitespace removed, uppercased) before they are
validated, so "fr76 3000 6000 0112 3456 7890 189" is accepted and stored
as "FR7630006000011234567890189".
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from app.schemas.bank import BankSummary
from app.validators import Amount, iban_errors, normalize_iban


class AccountWriteRequest(BaseModel):
    """Request body for PUT /accounts/{id}. Every field is replaced, so the type is required."""
    name: str = Field(min_length=2, max_length=100)
    account_type: Literal["current", "savings"] = Field(description="Type of bank account")
    iban: str | None = Field(default=None, description="Optional IBAN, spaces allowed")
    bank_id: uuid.UUID

    model_config = {"str_strip_whitespace": True}

    @field_validator("iban", mode="before")
    @classmethod
    def normalize(cls, value):
        if isinstance(value, str):
            return normalize_iban(value)
        return value

    @field_validator("iban")
    @classmethod
    def check_iban(cls, value: str | None) -> str | None:
        if value is not None:
            errors = iban_errors(value)
            if errors:
                raise ValueError("; ".join(errors))
        return value


class AccountCreateRequest(AccountWriteRequest):
    """Request body for POST /accounts."""
    account_type: Literal["current", "savings"] = Field(
        default="current",
        description="Type of bank account",
    )
    initial_balance: Amount | None = Field(
        default=None,
        description="If set, an opening balance dated today is recorded",
    )


class AccountStatistics(BaseModel):
    """Evolution figures derived from an account's balance history."""
    initial_balance: Decimal
    current_balance: Decimal
    evolution_percentage: float
    balance_count: int


class AccountResponse(BaseModel):
    """Public representation of an account with its bank."""
    id: uuid.UUID
    user_id: uuid.UUID
    bank_id: uuid.UUID
    name: str
    account_type: str
    iban: str | None
    created_at: datetime
    updated_at: datetime
    bank: BankSummary

    model_config = {"from_attributes": True}


class AccountWithStatisticsResponse(AccountResponse):
    """List entry for GET /accounts."""
    statistics: AccountStatistics


class AccountSummary(BaseModel):
    """Account fields nested inside balance responses."""
    id: uuid.UUID
    name: str
    account_type: str
    iban: str | None
    bank: BankSummary

    model_config = {"from_attributes": True}
