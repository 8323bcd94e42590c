"""
Balance model — a dated snapshot of an account's balance.

A balance is not a transaction: it records "on this date, the account
held this amount". The evolution of an account is read from the
sequence of its snapshots ordered by date.

Amounts are signed (overdrafts are allowed) and stored as integer cents,
bounded to ±999,999,999,999.99. The `amount` property exposes the value
as a 2-decimal Decimal for the API layer.

Several snapshots may share the same account and date; when ordering,
`created_at` breaks the tie.
"""

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import BigInteger, Date, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.money import from_cents


class Balance(Base):
    __tablename__ = "balances"

    __table_args__ = (
        CheckConstraint(
            "amount_cents BETWEEN -99999999999999 AND 99999999999999",
            name="ck_balances_amount_range",
        ),
        # Per-account history lookups (statistics, charts)
        Index("ix_balances_account_id_date", "account_id", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # Calendar date of the snapshot (no time component)
    date: Mapped[dt.date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: dt.datetime.now(dt.timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: dt.datetime.now(dt.timezone.utc),
        onupdate=lambda: dt.datetime.now(dt.timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    account: Mapped["Account"] = relationship(
        back_populates="balances",
    )

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)
