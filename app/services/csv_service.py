"""
CSV service — export and import of balance snapshots.

File layout (one snapshot per row):

    date,bank,account,type,iban,amount
    2024-01-15,BNP Paribas,Main account,current,FR7630002005500000157845063,1500.50

Headers are matched case-insensitively; the French headers used by
earlier exports (Date, Banque, Compte, Type, IBAN, Montant) are accepted
too. Only date, bank, account and amount are required on import; type is
informational and iban, when present, identifies the account.

Import never creates banks or accounts. Each row must name an existing
bank and one of the acting user's accounts at that bank. A non-empty iban
picks the account directly; otherwise the account name must be unique at
that bank. Rows that don't resolve, or whose date/amount can't be parsed,
are reported back with their line number and skipped. Valid rows are
inserted.
"""

import csv
import io
import uuid
from collections import defaultdict
from datetime import date
from decimal import Decimal, InvalidOperation

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ValidationFailedError
from app.models.account import Account
from app.models.balance import Balance
from app.models.bank import Bank
from app.money import AMOUNT_LIMIT, from_cents, to_cents
from app.validators import normalize_iban

logger = structlog.get_logger(__name__)

EXPORT_HEADER = ["date", "bank", "account", "type", "iban", "amount"]

_HEADER_ALIASES = {
    "date": "date",
    "bank": "bank",
    "banque": "bank",
    "account": "account",
    "compte": "account",
    "type": "type",
    "iban": "iban",
    "amount": "amount",
    "montant": "amount",
}

REQUIRED_COLUMNS = {"date", "bank", "account", "amount"}


async def export_balances(db: AsyncSession, user_id: uuid.UUID) -> str:
    """Render all of the acting user's balances as CSV text, oldest first."""
    result = await db.execute(
        select(Balance.date, Bank.name, Account.name, Account.account_type, Account.iban, Balance.amount_cents)
        .join(Account, Balance.account_id == Account.id)
        .join(Bank, Account.bank_id == Bank.id)
        .where(Account.user_id == user_id)
        .order_by(Balance.date.asc(), Balance.created_at.asc())
    )

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for balance_date, bank_name, account_name, account_type, iban, amount_cents in result.all():
        writer.writerow([
            balance_date.isoformat(),
            bank_name,
            account_name,
            account_type,
            iban or "",
            str(from_cents(amount_cents)),
        ])
    return buffer.getvalue()


def _parse_amount(raw: str) -> Decimal:
    # Accept "1500,50" as written by French spreadsheets
    try:
        amount = Decimal(raw.replace(" ", "").replace(",", "."))
    except InvalidOperation:
        raise ValueError(f"Invalid amount '{raw}'")
    if not amount.is_finite() or amount.as_tuple().exponent < -2:
        raise ValueError(f"Invalid amount '{raw}': at most 2 decimals allowed")
    if abs(amount) > AMOUNT_LIMIT:
        raise ValueError(f"Amount '{raw}' is out of range")
    return amount


def _parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValueError(f"Invalid date '{raw}', expected YYYY-MM-DD")


def _resolve_account(
    by_iban: dict[str, tuple[uuid.UUID, str]],
    by_name: dict[tuple[str, str], list[uuid.UUID]],
    bank_name: str,
    account_name: str,
    raw_iban: str,
) -> uuid.UUID:
    """
    Pick the account a row belongs to.

    A non-empty IBAN decides on its own (and must sit at the named bank).
    Without one, the (bank, account name) pair must match exactly one
    account.
    """
    iban = normalize_iban(raw_iban)
    if iban is not None:
        if iban not in by_iban:
            raise ValueError(f"Unknown IBAN '{iban}'")
        account_id, iban_bank = by_iban[iban]
        if iban_bank != bank_name:
            raise ValueError(
                f"IBAN '{iban}' belongs to an account at bank '{iban_bank}', not '{bank_name}'"
            )
        return account_id

    matches = by_name.get((bank_name, account_name), [])
    if not matches:
        raise ValueError(f"Unknown account '{account_name}' at bank '{bank_name}'")
    if len(matches) > 1:
        raise ValueError(
            f"Account name '{account_name}' is ambiguous at bank '{bank_name}'; "
            "add the IBAN column to pick one"
        )
    return matches[0]


async def import_balances(db: AsyncSession, user_id: uuid.UUID, csv_data: str) -> dict:
    """
    Import balance snapshots from CSV text.

    Returns:
        Dict with "imported" (rows inserted) and "errors" (one
        {"row", "message"} per rejected row; row 1 is the header).

    Raises:
        ValidationFailedError: If the text has no header or lacks a
                               required column.
    """
    reader = csv.DictReader(io.StringIO(csv_data.strip().lstrip("\ufeff")))
    if not reader.fieldnames:
        raise ValidationFailedError([{"field": "csv_data", "message": "CSV data has no header row"}])

    columns = {
        name: _HEADER_ALIASES[name.strip().lower()]
        for name in reader.fieldnames
        if name and name.strip().lower() in _HEADER_ALIASES
    }
    missing = REQUIRED_COLUMNS - set(columns.values())
    if missing:
        raise ValidationFailedError([{
            "field": "csv_data",
            "message": f"CSV data is missing required columns: {', '.join(sorted(missing))}",
        }])

    # Resolve once: IBAN -> (account id, bank name), and
    # (bank name, account name) -> account ids (names may repeat)
    result = await db.execute(
        select(Account.id, Account.name, Account.iban, Bank.name)
        .join(Bank, Account.bank_id == Bank.id)
        .where(Account.user_id == user_id)
    )
    by_iban: dict[str, tuple[uuid.UUID, str]] = {}
    by_name: dict[tuple[str, str], list[uuid.UUID]] = defaultdict(list)
    for account_id, account_name, iban, bank_name in result.all():
        if iban:
            by_iban[iban] = (account_id, bank_name)
        by_name[(bank_name, account_name)].append(account_id)
    bank_names = set((await db.execute(select(Bank.name))).scalars().all())

    imported = 0
    errors = []
    for row_num, raw_row in enumerate(reader, start=2):  # header is row 1
        row = {
            columns[key]: (value or "").strip()
            for key, value in raw_row.items()
            if key in columns
        }
        if not any(row.values()):
            continue

        try:
            balance_date = _parse_date(row["date"])
            amount = _parse_amount(row["amount"])
        except ValueError as e:
            errors.append({"row": row_num, "message": str(e)})
            continue

        bank_name, account_name = row["bank"], row["account"]
        if bank_name not in bank_names:
            errors.append({"row": row_num, "message": f"Unknown bank '{bank_name}'"})
            continue
        try:
            account_id = _resolve_account(by_iban, by_name, bank_name, account_name, row.get("iban", ""))
        except ValueError as e:
            errors.append({"row": row_num, "message": str(e)})
            continue

        db.add(Balance(
            account_id=account_id,
            amount_cents=to_cents(amount),
            date=balance_date,
        ))
        imported += 1

    await db.flush()

    logger.info(
        "balances_imported",
        user_id=str(user_id),
        imported=imported,
        rejected=len(errors),
    )
    return {"imported": imported, "errors": errors}
