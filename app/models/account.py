"""
Account model — a user's account at one bank.

Each account has:
  - A display name (2-100 characters)
  - A type: "current" or "savings"
  - An optional IBAN, unique across all accounts, stored without spaces
    and uppercased
  - Exactly one owner (users.id, ON DELETE CASCADE)
  - Exactly one bank (banks.id, ON DELETE RESTRICT)

Balances hang off the account with ON DELETE CASCADE, so removing an
account removes its whole balance history in the same statement.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Owner of this account
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Institution holding this account — cannot be deleted while referenced
    bank_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("banks.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # "current" or "savings"
    account_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="current",
    )

    iban: Mapped[str | None] = mapped_column(
        String(34),
        unique=True,
        nullable=True,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    user: Mapped["User"] = relationship(
        back_populates="accounts",
    )

    bank: Mapped["Bank"] = relationship(
        back_populates="accounts",
    )

    balances: Mapped[list["Balance"]] = relationship(
        back_populates="account",
        passive_deletes=True,
    )
