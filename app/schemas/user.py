"""
Pydantic schemas for User-related responses.

hashed_password is NEVER included in any response schema.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel


class UserResponse(BaseModel):
    """Public representation of a User (never includes password hash)."""
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
