"""
Statistics service — evolution figures and chart series.

Per-account statistics are derived from the account's balance snapshots
taken in ascending date order (created_at breaks ties):

  - initial_balance:      amount of the earliest snapshot (0 if none)
  - current_balance:      amount of the latest snapshot (0 if none)
  - evolution_percentage: (current - initial) / |initial| * 100, rounded
                          half-up to 2 places; 0 when there are fewer than
                          two snapshots or the initial balance is 0
  - balance_count:        number of snapshots

Global statistics sum initial and current balances over all of the
user's accounts and apply the same evolution formula to the sums (0 when
the summed initial balance is 0). Accounts with offsetting signs can make
the global figure look surprising; the formula is kept as-is.

Chart data groups the user's snapshots by account, one series per
account that has at least one snapshot inside the requested period.
Periods are resolved against today's date:

    1d  -> today - 1 day        6m  -> today - 6 calendar months
    7d  -> today - 7 days       1y  -> today - 1 calendar year
    30d -> today - 30 days      all -> no lower bound

The upper bound is always today (inclusive).
"""

import uuid
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ValidationFailedError
from app.models.account import Account
from app.models.balance import Balance
from app.models.bank import Bank
from app.money import ZERO, from_cents

PERIODS = ("1d", "7d", "30d", "6m", "1y", "all")

_PERIOD_OFFSETS = {
    "1d": timedelta(days=1),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "6m": relativedelta(months=6),
    "1y": relativedelta(years=1),
}


# ---------------------------------------------------------------------------
# Pure computations
# ---------------------------------------------------------------------------

def evolution_percentage(initial: Decimal, current: Decimal) -> float:
    """Relative change from initial to current, in percent (0 if initial is 0)."""
    if initial == 0:
        return 0.0
    change = (current - initial) / abs(initial) * 100
    return float(change.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def summarize_balances(amounts: list[Decimal]) -> dict:
    """
    Compute the statistics of one account.

    Args:
        amounts: The account's balance amounts in ascending date order.

    Returns:
        Dict with initial_balance, current_balance, evolution_percentage
        and balance_count.
    """
    if not amounts:
        return {
            "initial_balance": ZERO,
            "current_balance": ZERO,
            "evolution_percentage": 0.0,
            "balance_count": 0,
        }

    initial = amounts[0]
    current = amounts[-1]
    return {
        "initial_balance": initial,
        "current_balance": current,
        "evolution_percentage": (
            evolution_percentage(initial, current) if len(amounts) >= 2 else 0.0
        ),
        "balance_count": len(amounts),
    }


def summarize_totals(account_statistics: list[dict]) -> dict:
    """Aggregate per-account statistics into the user's global statistics."""
    total_initial = sum((s["initial_balance"] for s in account_statistics), ZERO)
    total_current = sum((s["current_balance"] for s in account_statistics), ZERO)
    return {
        "total_initial_balance": total_initial,
        "total_current_balance": total_current,
        "evolution_percentage": evolution_percentage(total_initial, total_current),
        "account_count": len(account_statistics),
    }


def resolve_period_start(period: str, today: date) -> date | None:
    """
    Translate a period token into the first date it covers.

    Returns None for "all" (no lower bound).

    Raises:
        ValidationFailedError: If the token is not one of PERIODS.
    """
    if period not in PERIODS:
        raise ValidationFailedError([{
            "field": "period",
            "message": f"Period must be one of: {', '.join(PERIODS)}",
        }])
    if period == "all":
        return None
    return today - _PERIOD_OFFSETS[period]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def statistics_by_account(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> dict[uuid.UUID, dict]:
    """
    Compute statistics for every account of the acting user that has balances.

    Accounts without balances are absent from the result; callers fall
    back to summarize_balances([]).
    """
    result = await db.execute(
        select(Balance.account_id, Balance.amount_cents)
        .join(Account, Balance.account_id == Account.id)
        .where(Account.user_id == user_id)
        .order_by(Balance.account_id, Balance.date.asc(), Balance.created_at.asc())
    )

    amounts: dict[uuid.UUID, list[Decimal]] = defaultdict(list)
    for account_id, amount_cents in result.all():
        amounts[account_id].append(from_cents(amount_cents))

    return {account_id: summarize_balances(values) for account_id, values in amounts.items()}


async def get_statistics(db: AsyncSession, user_id: uuid.UUID) -> dict:
    """
    Per-account and global statistics for the acting user.

    Every account is listed, including those without balances (which
    contribute 0 to both totals).
    """
    result = await db.execute(
        select(Account.id, Account.name, Bank.name)
        .join(Bank, Account.bank_id == Bank.id)
        .where(Account.user_id == user_id)
        .order_by(Account.name.asc())
    )
    accounts = result.all()
    by_account = await statistics_by_account(db, user_id)

    entries = []
    for account_id, account_name, bank_name in accounts:
        stats = by_account.get(account_id, summarize_balances([]))
        entries.append({
            "account_id": account_id,
            "account_name": account_name,
            "bank_name": bank_name,
            **stats,
        })

    return {
        "accounts": entries,
        "global_statistics": summarize_totals(entries),
    }


async def get_chart_data(
    db: AsyncSession,
    user_id: uuid.UUID,
    account_ids: list[uuid.UUID] | None = None,
    bank_id: uuid.UUID | None = None,
    period: str = "all",
    today: date | None = None,
) -> dict:
    """
    Build chart series for the acting user's balances.

    Args:
        db: Database session.
        user_id: The acting user; only their accounts are considered.
        account_ids: Restrict to these accounts (None or empty: all).
        bank_id: Restrict to accounts held at this bank.
        period: One of PERIODS.
        today: Reference date, defaults to date.today().

    Returns:
        Dict matching ChartDataResponse: period, start_date, end_date and
        chart_data (one series per account with matching balances).
    """
    today = today or date.today()
    start_date = resolve_period_start(period, today)

    query = (
        select(Balance.account_id, Balance.date, Balance.amount_cents, Account.name, Bank.name)
        .join(Account, Balance.account_id == Account.id)
        .join(Bank, Account.bank_id == Bank.id)
        .where(Account.user_id == user_id)
        .where(Balance.date <= today)
    )
    if start_date is not None:
        query = query.where(Balance.date >= start_date)
    if account_ids:
        query = query.where(Account.id.in_(account_ids))
    if bank_id is not None:
        query = query.where(Account.bank_id == bank_id)

    result = await db.execute(
        query.order_by(Balance.date.asc(), Balance.created_at.asc())
    )

    # dict keeps first-seen order, so series follow their earliest point
    series: dict[uuid.UUID, dict] = {}
    for account_id, balance_date, amount_cents, account_name, bank_name in result.all():
        if account_id not in series:
            series[account_id] = {
                "account_id": account_id,
                "account_name": f"{account_name} ({bank_name})",
                "data": [],
            }
        series[account_id]["data"].append({
            "date": balance_date,
            "amount": from_cents(amount_cents),
        })

    return {
        "period": period,
        "start_date": start_date,
        "end_date": today,
        "chart_data": list(series.values()),
    }
