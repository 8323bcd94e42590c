"""
Authentication router — register, login and profile endpoints.

Register and login are the only public (unauthenticated) endpoints in the
API. Everything else requires a valid JWT token.

Endpoints:
  POST /auth/register  — Create a user and get a token
  POST /auth/login     — Authenticate and get a token
  GET  /auth/me        — Profile of the authenticated user

Security notes:
  - Plaintext passwords exist only in memory during request processing;
    they are hashed before any database operation and never logged.
  - JWT tokens appear only in response bodies, which are not logged.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.auth import (
    UserRegisterRequest,
    UserLoginRequest,
    TokenResponse,
    RegisterResponse,
)
from app.schemas.user import UserResponse
from app.services import auth_service

router = APIRouter()


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(
    request: UserRegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new user and log them in.

    - **first_name** / **last_name**: 2-50 characters
    - **email**: Must be a valid email and not already registered
    - **password**: Minimum 6 characters
    """
    user, token = await auth_service.register(
        db=db,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        password=request.password,
    )

    return RegisterResponse(
        user_id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        token=token,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with email and password.

    Returns a JWT bearer token that must be included in the Authorization
    header for all subsequent requests:

        Authorization: Bearer <token>
    """
    user, token = await auth_service.login(
        db=db,
        email=request.email,
        password=request.password,
    )

    return TokenResponse(token=token)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get the authenticated user's profile",
)
async def me(user: User = Depends(get_current_user)):
    return user
