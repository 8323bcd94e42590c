"""
Bank service — the shared registry of financial institutions.

Banks are not owned by any user: every authenticated user sees the same
list and may add or edit entries. Names are unique, and so are codes
when present.

Deletion is refused while any account (of any user) still references the
bank. The caller has to delete or move those accounts first.
"""

import uuid

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DuplicateConstraintError, NotFoundError, ReferentialConflictError
from app.models.account import Account
from app.models.bank import Bank

logger = structlog.get_logger(__name__)


async def list_banks(db: AsyncSession) -> list[Bank]:
    """List all banks ordered by name."""
    result = await db.execute(select(Bank).order_by(Bank.name.asc()))
    return list(result.scalars().all())


async def get_bank(db: AsyncSession, bank_id: uuid.UUID) -> Bank:
    """
    Get a single bank.

    Raises:
        NotFoundError: If the bank doesn't exist.
    """
    bank = await db.get(Bank, bank_id)
    if bank is None:
        raise NotFoundError("Bank", bank_id)
    return bank


async def _ensure_unique(
    db: AsyncSession,
    name: str,
    code: str | None,
    exclude_id: uuid.UUID | None = None,
) -> None:
    """Raise DuplicateConstraintError if another bank uses this name or code."""
    name_query = select(Bank.id).where(Bank.name == name)
    if exclude_id is not None:
        name_query = name_query.where(Bank.id != exclude_id)
    if (await db.execute(name_query)).first() is not None:
        raise DuplicateConstraintError("bank", "name", name)

    if code is not None:
        code_query = select(Bank.id).where(Bank.code == code)
        if exclude_id is not None:
            code_query = code_query.where(Bank.id != exclude_id)
        if (await db.execute(code_query)).first() is not None:
            raise DuplicateConstraintError("bank", "code", code)


async def _flush_or_duplicate(db: AsyncSession, name: str, code: str | None) -> None:
    # A concurrent insert can still win the race between check and flush.
    # The failing unique column is read off the driver message.
    try:
        await db.flush()
    except IntegrityError as e:
        message = str(e.orig).lower()
        if code is not None and "code" in message:
            raise DuplicateConstraintError("bank", "code", code) from e
        if "name" in message:
            raise DuplicateConstraintError("bank", "name", name) from e
        raise


async def create_bank(
    db: AsyncSession,
    name: str,
    code: str | None = None,
) -> Bank:
    """
    Create a new bank.

    Raises:
        DuplicateConstraintError: If the name or code is already used.
    """
    await _ensure_unique(db, name, code)

    bank = Bank(name=name, code=code)
    db.add(bank)
    await _flush_or_duplicate(db, name, code)

    logger.info("bank_created", bank_id=str(bank.id))
    return bank


async def update_bank(
    db: AsyncSession,
    bank_id: uuid.UUID,
    name: str,
    code: str | None = None,
) -> Bank:
    """
    Rename a bank or change its code.

    Raises:
        NotFoundError: If the bank doesn't exist.
        DuplicateConstraintError: If another bank uses the name or code.
    """
    bank = await get_bank(db, bank_id)
    await _ensure_unique(db, name, code, exclude_id=bank.id)

    bank.name = name
    bank.code = code
    await _flush_or_duplicate(db, name, code)
    return bank


async def delete_bank(db: AsyncSession, bank_id: uuid.UUID) -> None:
    """
    Delete a bank that no account references.

    Raises:
        NotFoundError: If the bank doesn't exist.
        ReferentialConflictError: If one or more accounts still use it.
    """
    bank = await get_bank(db, bank_id)

    dependents = await db.scalar(
        select(func.count()).select_from(Account).where(Account.bank_id == bank.id)
    )
    if dependents:
        raise ReferentialConflictError(
            f"Bank '{bank.name}' cannot be deleted: {dependents} account(s) still reference it"
        )

    await db.delete(bank)
    await db.flush()

    logger.info("bank_deleted", bank_id=str(bank_id))
