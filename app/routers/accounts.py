"""
Accounts router — the authenticated user's bank accounts.

All endpoints require a JWT and only ever touch the caller's accounts.
Another user's account is reported as 404, never 403, so account IDs
can't be probed.

Endpoints:
  GET    /accounts                — List own accounts with statistics
  POST   /accounts                — Create an account (optional opening balance)
  GET    /accounts/{account_id}   — Get own account
  PUT    /accounts/{account_id}   — Update own account
  DELETE /accounts/{account_id}   — Delete own account and its balances
"""

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.account import (
    AccountCreateRequest,
    AccountResponse,
    AccountWithStatisticsResponse,
    AccountWriteRequest,
)
from app.services import account_service

router = APIRouter()


@router.get(
    "",
    response_model=list[AccountWithStatisticsResponse],
    summary="List your accounts",
)
async def list_accounts(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List the authenticated user's accounts, newest first.

    Each entry embeds its bank and the statistics derived from its balance
    history: initial and current balance, evolution percentage and number
    of snapshots.
    """
    rows = await account_service.list_accounts_with_statistics(db, user.id)
    return [
        AccountWithStatisticsResponse(
            **AccountResponse.model_validate(account).model_dump(),
            statistics=statistics,
        )
        for account, statistics in rows
    ]


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
async def create_account(
    request: AccountCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a current or savings account at an existing bank.

    - **iban**: Optional; spaces are removed and letters uppercased
    - **initial_balance**: Optional; records an opening balance dated today
      in the same transaction as the account
    """
    return await account_service.create_account(
        db=db,
        user_id=user.id,
        name=request.name,
        bank_id=request.bank_id,
        account_type=request.account_type,
        iban=request.iban,
        initial_balance=request.initial_balance,
    )


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get account details",
)
async def get_account(
    account_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.get_account(db, account_id, user.id)


@router.put(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Update an account",
)
async def update_account(
    account_id: uuid.UUID,
    request: AccountWriteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.update_account(
        db=db,
        account_id=account_id,
        user_id=user.id,
        name=request.name,
        bank_id=request.bank_id,
        account_type=request.account_type,
        iban=request.iban,
    )


@router.delete(
    "/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an account",
)
async def delete_account(
    account_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete the account together with all of its balance snapshots."""
    await account_service.delete_account(db, account_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
