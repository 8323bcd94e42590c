"""
Pydantic schemas for authentication endpoints (register and login).

Pydantic validates incoming data automatically — if a required field is
missing or the wrong type, FastAPI returns a 422 error before our code
even runs.
"""

import uuid

from pydantic import BaseModel, EmailStr, Field


class UserRegisterRequest(BaseModel):
    """Request body for POST /auth/register."""
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)

    model_config = {"str_strip_whitespace": True}


class UserLoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    """Response body for successful login — contains the JWT."""
    token: str
    token_type: str = "bearer"


class RegisterResponse(BaseModel):
    """Response body for successful registration — user info + JWT."""
    user_id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    token: str
    token_type: str = "bearer"
