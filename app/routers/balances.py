"""
Balances router — balance snapshots, statistics, charts and CSV.

All endpoints require a JWT and only see balances on the caller's own
accounts.

Endpoints:
  GET    /balances                 — Filtered, paginated list (most recent first)
  POST   /balances                 — Record a snapshot
  GET    /balances/statistics      — Per-account and global evolution figures
  GET    /balances/chart/data      — Chart series grouped by account
  GET    /balances/export/csv      — Download every snapshot as CSV
  POST   /balances/import/csv      — Import snapshots from CSV text
  GET    /balances/{balance_id}    — Get a snapshot
  PUT    /balances/{balance_id}    — Correct a snapshot
  DELETE /balances/{balance_id}    — Delete a snapshot

The fixed paths are declared before /{balance_id} so they are matched
first.
"""

import uuid
from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.exceptions import ValidationFailedError
from app.models.user import User
from app.schemas.balance import (
    BalanceCreateRequest,
    BalanceListResponse,
    BalanceResponse,
    BalanceUpdateRequest,
    ChartDataResponse,
    CsvImportRequest,
    CsvImportResponse,
    StatisticsResponse,
)
from app.services import balance_service, csv_service, statistics_service

router = APIRouter()


def _parse_account_ids(raw: str | None) -> list[uuid.UUID] | None:
    """Parse a comma-separated list of account UUIDs."""
    if not raw:
        return None
    ids = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(uuid.UUID(part))
        except ValueError:
            raise ValidationFailedError(
                [{"field": "account_ids", "message": f"'{part}' is not a valid account ID"}]
            )
    return ids or None


@router.get(
    "",
    response_model=BalanceListResponse,
    summary="List balances",
)
async def list_balances(
    account_id: uuid.UUID | None = Query(None, description="Only this account"),
    bank_id: uuid.UUID | None = Query(None, description="Only accounts at this bank"),
    start_date: date | None = Query(None, description="Inclusive lower date bound"),
    end_date: date | None = Query(None, description="Inclusive upper date bound"),
    page: int = Query(1, ge=1),
    limit: int = Query(balance_service.DEFAULT_PAGE_SIZE, ge=1, le=balance_service.MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List the authenticated user's balances, newest date first.

    The `pagination` block reports the total number of matching snapshots
    and the number of pages for the given limit.
    """
    return await balance_service.list_balances(
        db=db,
        user_id=user.id,
        account_id=account_id,
        bank_id=bank_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.post(
    "",
    response_model=BalanceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a balance",
)
async def create_balance(
    request: BalanceCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await balance_service.create_balance(
        db=db,
        user_id=user.id,
        account_id=request.account_id,
        amount=request.amount,
        balance_date=request.date,
    )


@router.get(
    "/statistics",
    response_model=StatisticsResponse,
    summary="Evolution statistics",
)
async def get_statistics(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Per-account statistics plus global totals.

    The global evolution percentage is computed from the summed initial
    and current balances of all accounts.
    """
    return await statistics_service.get_statistics(db, user.id)


@router.get(
    "/chart/data",
    response_model=ChartDataResponse,
    summary="Chart series",
)
async def get_chart_data(
    account_ids: str | None = Query(None, description="Comma-separated account IDs"),
    bank_id: uuid.UUID | None = Query(None),
    period: Literal["1d", "7d", "30d", "6m", "1y", "all"] = Query("all"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    One series per account, named "{account} ({bank})", with the account's
    snapshots inside the period in ascending date order. Accounts without
    snapshots in the period are left out.
    """
    return await statistics_service.get_chart_data(
        db=db,
        user_id=user.id,
        account_ids=_parse_account_ids(account_ids),
        bank_id=bank_id,
        period=period,
    )


@router.get(
    "/export/csv",
    summary="Export balances as CSV",
    response_class=Response,
)
async def export_csv(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    content = await csv_service.export_balances(db, user.id)
    filename = f"banking-data-{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/import/csv",
    response_model=CsvImportResponse,
    summary="Import balances from CSV",
)
async def import_csv(
    request: CsvImportRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Import snapshots from CSV text with the header
    `date,bank,account,type,iban,amount`.

    Banks and accounts are matched by name and never created; rows that
    don't match are listed in `errors` and skipped.
    """
    return await csv_service.import_balances(db, user.id, request.csv_data)


@router.get(
    "/{balance_id}",
    response_model=BalanceResponse,
    summary="Get a balance",
)
async def get_balance(
    balance_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await balance_service.get_balance(db, balance_id, user.id)


@router.put(
    "/{balance_id}",
    response_model=BalanceResponse,
    summary="Update a balance",
)
async def update_balance(
    balance_id: uuid.UUID,
    request: BalanceUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await balance_service.update_balance(
        db=db,
        balance_id=balance_id,
        user_id=user.id,
        amount=request.amount,
        balance_date=request.date,
        account_id=request.account_id,
    )


@router.delete(
    "/{balance_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a balance",
)
async def delete_balance(
    balance_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await balance_service.delete_balance(db, balance_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
