"""
Account service — business logic for a user's bank accounts.

This module handles:
  - Account creation (optionally with an opening balance, atomically)
  - Account retrieval (single or list, always scoped to the acting user)
  - Account update and deletion

Ownership enforcement:
  Every function takes a `user_id` parameter. It is always the
  authenticated user's ID, set by the dependency layer, and every query
  filters on it. An account that belongs to someone else is reported as
  NotFoundError, exactly like an account that doesn't exist, so nobody
  can probe for other users' account IDs.

IBAN handling:
  IBANs are normalized (whitespace stripped, uppercased) before they are
  validated and before the uniqueness check, so "fr76 3000 ..." and
  "FR763000..." are the same IBAN.

Deletion:
  Accounts are removed with a single DELETE statement; the database's
  ON DELETE CASCADE rule on balances.account_id removes the history.
"""

import uuid
from datetime import date
from decimal import Decimal

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import (
    DuplicateConstraintError,
    InvalidReferenceError,
    NotFoundError,
    ValidationFailedError,
)
from app.models.account import Account
from app.models.balance import Balance
from app.models.bank import Bank
from app.money import to_cents
from app.services import statistics_service
from app.validators import ACCOUNT_TYPES, check_amount, iban_errors, normalize_iban

logger = structlog.get_logger(__name__)


def _validate_fields(name: str, account_type: str, iban: str | None) -> None:
    """Collect every field violation and raise them together."""
    errors = []
    if not 2 <= len(name.strip()) <= 100:
        errors.append({"field": "name", "message": "Name must be between 2 and 100 characters"})
    if account_type not in ACCOUNT_TYPES:
        errors.append({
            "field": "account_type",
            "message": f"Account type must be one of: {', '.join(ACCOUNT_TYPES)}",
        })
    if iban is not None:
        errors.extend({"field": "iban", "message": message} for message in iban_errors(iban))
    if errors:
        raise ValidationFailedError(errors)


async def _ensure_bank_exists(db: AsyncSession, bank_id: uuid.UUID) -> None:
    if await db.get(Bank, bank_id) is None:
        raise InvalidReferenceError("bank_id", bank_id)


async def _ensure_iban_free(
    db: AsyncSession,
    iban: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    # IBANs are unique across all users, not just the acting one
    query = select(Account.id).where(Account.iban == iban)
    if exclude_id is not None:
        query = query.where(Account.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise DuplicateConstraintError("account", "iban", iban)


async def _flush_or_duplicate(db: AsyncSession, iban: str | None) -> None:
    # Only the unique IBAN index maps to a duplicate; FK failures propagate
    try:
        await db.flush()
    except IntegrityError as e:
        if iban is not None and "iban" in str(e.orig).lower():
            raise DuplicateConstraintError("account", "iban", iban) from e
        raise


async def create_account(
    db: AsyncSession,
    user_id: uuid.UUID,
    name: str,
    bank_id: uuid.UUID,
    account_type: str = "current",
    iban: str | None = None,
    initial_balance: Decimal | None = None,
) -> Account:
    """
    Create a new account for the acting user.

    If initial_balance is given, a Balance dated today is inserted in the
    same database transaction — both rows are committed together or not
    at all.

    Raises:
        ValidationFailedError: If name, type, IBAN or initial balance is invalid.
        InvalidReferenceError: If bank_id doesn't exist.
        DuplicateConstraintError: If the IBAN is already registered.
    """
    iban = normalize_iban(iban)
    _validate_fields(name, account_type, iban)
    if initial_balance is not None:
        check_amount(initial_balance, "initial_balance")

    await _ensure_bank_exists(db, bank_id)
    if iban is not None:
        await _ensure_iban_free(db, iban)

    account = Account(
        user_id=user_id,
        bank_id=bank_id,
        name=name.strip(),
        account_type=account_type,
        iban=iban,
    )
    db.add(account)
    await _flush_or_duplicate(db, iban)

    if initial_balance is not None:
        db.add(Balance(
            account_id=account.id,
            amount_cents=to_cents(initial_balance),
            date=date.today(),
        ))
        await db.flush()

    logger.info(
        "account_created",
        account_id=str(account.id),
        user_id=str(user_id),
        with_initial_balance=initial_balance is not None,
    )
    return await get_account(db, account.id, user_id)


async def list_accounts(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> list[Account]:
    """List the acting user's accounts, newest first, with their banks loaded."""
    result = await db.execute(
        select(Account)
        .options(selectinload(Account.bank))
        .where(Account.user_id == user_id)
        .order_by(Account.created_at.desc())
    )
    return list(result.scalars().all())


async def list_accounts_with_statistics(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> list[tuple[Account, dict]]:
    """
    List the acting user's accounts, each paired with its statistics.

    Returns:
        List of (Account, statistics dict) tuples; see
        statistics_service.summarize_balances for the dict keys.
    """
    accounts = await list_accounts(db, user_id)
    statistics = await statistics_service.statistics_by_account(db, user_id)
    return [
        (account, statistics.get(account.id, statistics_service.summarize_balances([])))
        for account in accounts
    ]


async def get_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Account:
    """
    Get a single account owned by the acting user.

    Raises:
        NotFoundError: If the account doesn't exist or belongs to someone else.
    """
    result = await db.execute(
        select(Account)
        .options(selectinload(Account.bank))
        .where(Account.id == account_id, Account.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()

    if account is None:
        raise NotFoundError("Account", account_id)

    return account


async def update_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
    name: str,
    bank_id: uuid.UUID,
    account_type: str,
    iban: str | None = None,
) -> Account:
    """
    Update an account owned by the acting user.

    The IBAN uniqueness check ignores the account's own current IBAN, so
    saving an unchanged IBAN is always allowed.

    Raises:
        NotFoundError: If the account doesn't exist or belongs to someone else.
        ValidationFailedError: If name, type or IBAN is invalid.
        InvalidReferenceError: If bank_id doesn't exist.
        DuplicateConstraintError: If another account already has the IBAN.
    """
    account = await get_account(db, account_id, user_id)

    iban = normalize_iban(iban)
    _validate_fields(name, account_type, iban)
    await _ensure_bank_exists(db, bank_id)
    if iban is not None:
        await _ensure_iban_free(db, iban, exclude_id=account.id)

    account.name = name.strip()
    account.account_type = account_type
    account.iban = iban
    account.bank_id = bank_id
    await _flush_or_duplicate(db, iban)

    return await get_account(db, account.id, user_id)


async def delete_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
) -> None:
    """
    Delete an account owned by the acting user, and all its balances.

    Raises:
        NotFoundError: If the account doesn't exist or belongs to someone else.
    """
    result = await db.execute(
        delete(Account).where(Account.id == account_id, Account.user_id == user_id)
    )
    if result.rowcount == 0:
        raise NotFoundError("Account", account_id)

    logger.info("account_deleted", account_id=str(account_id), user_id=str(user_id))
