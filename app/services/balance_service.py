"""
Balance service — the ledger of dated balance snapshots.

This module handles:
  - Recording, correcting and deleting balance snapshots
  - Filtered, paginated listing (most recent first)

Ownership enforcement:
  Balances carry no user_id of their own. Ownership is enforced through
  the owning account: every query joins Balance -> Account and filters on
  Account.user_id == user_id. A snapshot on someone else's account is
  NotFoundError; pointing a snapshot at someone else's account (or a
  missing one) is InvalidReferenceError.
"""

import math
import uuid
from datetime import date
from decimal import Decimal

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import InvalidReferenceError, NotFoundError, ValidationFailedError
from app.models.account import Account
from app.models.balance import Balance
from app.money import to_cents
from app.validators import check_amount

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


async def _owned_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Account:
    result = await db.execute(
        select(Account).where(Account.id == account_id, Account.user_id == user_id)
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise InvalidReferenceError("account_id", account_id)
    return account


def _with_details(query):
    """Eager-load the account and its bank for the nested response."""
    return query.options(selectinload(Balance.account).selectinload(Account.bank))


async def get_balance(
    db: AsyncSession,
    balance_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Balance:
    """
    Get a single balance on one of the acting user's accounts.

    Raises:
        NotFoundError: If the balance doesn't exist or is on another user's account.
    """
    result = await db.execute(
        _with_details(
            select(Balance)
            .join(Account, Balance.account_id == Account.id)
            .where(Balance.id == balance_id, Account.user_id == user_id)
        ).execution_options(populate_existing=True)
    )
    balance = result.scalar_one_or_none()

    if balance is None:
        raise NotFoundError("Balance", balance_id)

    return balance


async def list_balances(
    db: AsyncSession,
    user_id: uuid.UUID,
    account_id: uuid.UUID | None = None,
    bank_id: uuid.UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    """
    List the acting user's balances, most recent first.

    Filters combine with AND; the date range is inclusive on both ends.
    Ordering is date descending, then creation time descending.

    Returns:
        Dict with "balances" (the requested page) and "pagination"
        ({page, limit, total, pages}) computed over the whole filter set.
    """
    errors = []
    if page < 1:
        errors.append({"field": "page", "message": "Page must be at least 1"})
    if not 1 <= limit <= MAX_PAGE_SIZE:
        errors.append({"field": "limit", "message": f"Limit must be between 1 and {MAX_PAGE_SIZE}"})
    if errors:
        raise ValidationFailedError(errors)

    filtered = (
        select(Balance)
        .join(Account, Balance.account_id == Account.id)
        .where(Account.user_id == user_id)
    )
    if account_id is not None:
        filtered = filtered.where(Account.id == account_id)
    if bank_id is not None:
        filtered = filtered.where(Account.bank_id == bank_id)
    if start_date is not None:
        filtered = filtered.where(Balance.date >= start_date)
    if end_date is not None:
        filtered = filtered.where(Balance.date <= end_date)

    total = await db.scalar(
        select(func.count()).select_from(filtered.subquery())
    )

    result = await db.execute(
        _with_details(filtered)
        .order_by(Balance.date.desc(), Balance.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )

    return {
        "balances": list(result.scalars().all()),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


async def create_balance(
    db: AsyncSession,
    user_id: uuid.UUID,
    account_id: uuid.UUID,
    amount: Decimal,
    balance_date: date,
) -> Balance:
    """
    Record a balance snapshot on one of the acting user's accounts.

    Raises:
        ValidationFailedError: If the amount is out of range or too precise.
        InvalidReferenceError: If the account doesn't exist or isn't the user's.
    """
    check_amount(amount)
    await _owned_account(db, account_id, user_id)

    balance = Balance(
        account_id=account_id,
        amount_cents=to_cents(amount),
        date=balance_date,
    )
    db.add(balance)
    await db.flush()

    logger.info("balance_created", balance_id=str(balance.id), account_id=str(account_id))
    return await get_balance(db, balance.id, user_id)


async def update_balance(
    db: AsyncSession,
    balance_id: uuid.UUID,
    user_id: uuid.UUID,
    amount: Decimal,
    balance_date: date,
    account_id: uuid.UUID | None = None,
) -> Balance:
    """
    Correct a snapshot's amount and date, optionally moving it to another
    of the acting user's accounts.

    Raises:
        NotFoundError: If the balance doesn't exist or isn't the user's.
        ValidationFailedError: If the amount is out of range or too precise.
        InvalidReferenceError: If the target account isn't the user's.
    """
    balance = await get_balance(db, balance_id, user_id)
    check_amount(amount)
    if account_id is not None and account_id != balance.account_id:
        await _owned_account(db, account_id, user_id)
        balance.account_id = account_id

    balance.amount_cents = to_cents(amount)
    balance.date = balance_date
    await db.flush()

    return await get_balance(db, balance.id, user_id)


async def delete_balance(
    db: AsyncSession,
    balance_id: uuid.UUID,
    user_id: uuid.UUID,
) -> None:
    """
    Delete a snapshot on one of the acting user's accounts.

    Raises:
        NotFoundError: If the balance doesn't exist or isn't the user's.
    """
    balance = await get_balance(db, balance_id, user_id)
    await db.delete(balance)
    await db.flush()

    logger.info("balance_deleted", balance_id=str(balance_id))
