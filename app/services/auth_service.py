"""
Authentication service — register, login and token resolution.

This module contains the core auth logic, separated from HTTP concerns.
The router calls these functions and translates the results into HTTP
responses, so the logic can be tested without spinning up a web server.

Register flow:
  1. Normalize the email (lowercase) and check it is not taken
  2. Hash the password with Argon2id
  3. Create the User
  4. Return a JWT token so the user is immediately logged in

Login flow:
  1. Look up user by email
  2. Verify password against stored hash
  3. Return a JWT token

Token resolution:
  authenticate_token() turns a bearer token back into the acting User.
  Every other service receives that user's id as a mandatory argument.

Security notes:
  - Login returns the same error for "wrong password" and "email not found"
    to prevent user enumeration attacks
  - Passwords and tokens are never logged
"""

import uuid

import structlog
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DuplicateEmailError, InvalidCredentialsError, InvalidTokenError
from app.models.user import User
from app.security import hash_password, verify_password, create_access_token, decode_access_token

logger = structlog.get_logger(__name__)


async def register(
    db: AsyncSession,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Register a new user.

    Args:
        db: Database session.
        first_name: User's first name.
        last_name: User's last name.
        email: User's email (must be unique, compared case-insensitively).
        password: Plaintext password (will be hashed before storage).

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    email = email.strip().lower()

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise DuplicateEmailError(email)

    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        hashed_password=hash_password(password),
    )
    db.add(user)
    # Flush to get user.id assigned for the token subject
    await db.flush()

    logger.info("user_registered", user_id=str(user.id))

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        InvalidCredentialsError: If email doesn't exist, password is wrong,
                                 or the user is deactivated.
    """
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()

    # Same error for every case — prevents user enumeration
    if user is None or not verify_password(password, user.hashed_password) or not user.is_active:
        logger.info("login_failed")
        raise InvalidCredentialsError()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def authenticate_token(db: AsyncSession, token: str) -> User:
    """
    Resolve a bearer token to the active User it was issued for.

    Raises:
        InvalidTokenError: If the token is invalid/expired, has no subject,
                           or names a missing or inactive user.
    """
    try:
        payload = decode_access_token(token)
        user_id_str: str | None = payload.get("sub")
        if user_id_str is None:
            raise InvalidTokenError()
        user_id = uuid.UUID(user_id_str)
    except (JWTError, ValueError):
        raise InvalidTokenError()

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise InvalidTokenError()

    return user
