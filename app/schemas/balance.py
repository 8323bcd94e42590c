"""
Pydantic schemas for Balance, statistics, chart and CSV endpoints.

Amounts are Decimals with two fractional digits. They serialize to JSON
as strings ("1500.50") so no precision is lost on the way out.
"""

import datetime as dt
import uuid
from decimal import Decimal

from pydantic import BaseModel, Field

from app.schemas.account import AccountSummary
from app.validators import Amount


# ---------------------------------------------------------------------------
# Balance CRUD
# ---------------------------------------------------------------------------

class BalanceCreateRequest(BaseModel):
    """Request body for POST /balances."""
    amount: Amount
    date: dt.date
    account_id: uuid.UUID


class BalanceUpdateRequest(BaseModel):
    """Request body for PUT /balances/{id}. account_id moves the snapshot."""
    amount: Amount
    date: dt.date
    account_id: uuid.UUID | None = None


class BalanceResponse(BaseModel):
    """Public representation of a balance snapshot with its account."""
    id: uuid.UUID
    account_id: uuid.UUID
    amount: Decimal
    date: dt.date
    created_at: dt.datetime
    updated_at: dt.datetime
    account: AccountSummary

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class BalanceListResponse(BaseModel):
    """Response body for GET /balances."""
    balances: list[BalanceResponse]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

class AccountStatisticsEntry(BaseModel):
    account_id: uuid.UUID
    account_name: str
    bank_name: str
    initial_balance: Decimal
    current_balance: Decimal
    evolution_percentage: float
    balance_count: int


class GlobalStatistics(BaseModel):
    """Totals across all of the user's accounts."""
    total_initial_balance: Decimal
    total_current_balance: Decimal
    evolution_percentage: float
    account_count: int


class StatisticsResponse(BaseModel):
    """Response body for GET /balances/statistics."""
    accounts: list[AccountStatisticsEntry]
    global_statistics: GlobalStatistics


# ---------------------------------------------------------------------------
# Chart
# ---------------------------------------------------------------------------

class ChartPoint(BaseModel):
    date: dt.date
    amount: Decimal


class ChartSeries(BaseModel):
    """One line on the chart: "{account name} ({bank name})"."""
    account_id: uuid.UUID
    account_name: str
    data: list[ChartPoint]


class ChartDataResponse(BaseModel):
    """Response body for GET /balances/chart/data."""
    period: str
    start_date: dt.date | None
    end_date: dt.date
    chart_data: list[ChartSeries]


# ---------------------------------------------------------------------------
# CSV import
# ---------------------------------------------------------------------------

class CsvImportRequest(BaseModel):
    """Request body for POST /balances/import/csv."""
    csv_data: str = Field(min_length=1, description="CSV text including the header row")


class CsvImportError(BaseModel):
    row: int
    message: str


class CsvImportResponse(BaseModel):
    imported: int
    errors: list[CsvImportError]
