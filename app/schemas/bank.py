"""Pydantic schemas for Bank endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class BankWriteRequest(BaseModel):
    """Request body for POST /banks and PUT /banks/{id}."""
    name: str = Field(min_length=2, max_length=100)
    code: str | None = Field(default=None, min_length=2, max_length=20)

    model_config = {"str_strip_whitespace": True}

    @field_validator("code", mode="before")
    @classmethod
    def blank_code_is_none(cls, value):
        """An empty code means "no code", not a 0-character code."""
        if isinstance(value, str) and not value.strip():
            return None
        return value


class BankSummary(BaseModel):
    """Bank fields nested inside account and balance responses."""
    id: uuid.UUID
    name: str
    code: str | None

    model_config = {"from_attributes": True}


class BankResponse(BankSummary):
    """Public representation of a bank."""
    created_at: datetime
    updated_at: datetime
