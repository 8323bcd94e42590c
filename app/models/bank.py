"""
Bank model — a financial institution shared by all users.

Banks are a global registry: every user picks from the same list when
creating an account. Both the name and the optional short code are
unique.

Accounts reference banks with `ON DELETE RESTRICT`, so the database
refuses to delete a bank while any account still points at it. The
service layer checks first and reports a friendly conflict; the
constraint is the final safety net.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Bank(Base):
    __tablename__ = "banks"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )

    # Optional short code (e.g. "BNP"); NULLs don't collide with each other
    code: Mapped[str | None] = mapped_column(
        String(20),
        unique=True,
        nullable=True,
    )

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
    accounts: Mapped[list["Account"]] = relationship(
        back_populates="bank",
        passive_deletes="all",
    )
