"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. String-based relationship targets ("Account", "Bank", ...) resolve
"""

from app.models.user import User  # noqa: F401
from app.models.bank import Bank  # noqa: F401
from app.models.account import Account  # noqa: F401
from app.models.balance import Balance  # noqa: F401
