"""
FastAPI dependencies for authentication.

Every banks/accounts/balances route declares `get_current_user`. FastAPI
resolves the bearer token to the acting User before the route handler
runs; a missing, expired or tampered token is rejected with 401.

Route handlers then pass `user.id` explicitly into each service call.
The services filter every Account/Balance query on that id, so scoping
does not depend on anything the middleware did.
"""

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.exceptions import InvalidTokenError
from app.models.user import User
from app.services import auth_service


# OAuth2PasswordBearer tells FastAPI where to look for the token:
# the "Authorization: Bearer <token>" header. auto_error=False lets a
# missing header fall through to our own InvalidTokenError response.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to the authenticated User.

    Raises:
        InvalidTokenError (401): If the token is missing or invalid, or the
                                 user doesn't exist or is deactivated.
    """
    if not token:
        raise InvalidTokenError()
    return await auth_service.authenticate_token(db, token)
