"""
User model — the authentication identity and owner of accounts.

Each User is a login credential (email + hashed password) together with
the person's name. A user owns zero or more Accounts; deleting a user
removes its accounts through the `ON DELETE CASCADE` rule on
accounts.user_id.

The password is stored as an Argon2id hash — never in plaintext.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class User(Base):
    __tablename__ = "users"

    # UUID primary key: globally unique IDs without sequential guessing
    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    first_name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    last_name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Login identifier, stored lowercase
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    # Argon2id hash of the password (never store plaintext!)
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Deactivated users can't log in but their data is preserved
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
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
    # passive_deletes: the database cascade removes accounts, not the ORM
    accounts: Mapped[list["Account"]] = relationship(
        back_populates="user",
        passive_deletes=True,
    )
