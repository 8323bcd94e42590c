"""
Shared field rules used by both the schemas and the services.

IBANs are checked against a simplified structural pattern (country code,
two check digits, alphanumeric BBAN). The mod-97 checksum is not verified.
"""

import re
from decimal import Decimal
from typing import Annotated

from pydantic import Field

from app.exceptions import ValidationFailedError
from app.money import AMOUNT_LIMIT

IBAN_MIN_LENGTH = 15
IBAN_MAX_LENGTH = 34
IBAN_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]+$")

ACCOUNT_TYPES = ("current", "savings")

# Signed amount with two fractional digits, bounded to ±999,999,999,999.99
Amount = Annotated[
    Decimal,
    Field(
        ge=-AMOUNT_LIMIT,
        le=AMOUNT_LIMIT,
        max_digits=14,
        decimal_places=2,
    ),
]


def normalize_iban(value: str | None) -> str | None:
    """Strip all whitespace and uppercase; blank input means no IBAN."""
    if value is None:
        return None
    compact = re.sub(r"\s+", "", value).upper()
    return compact or None


def iban_errors(iban: str) -> list[str]:
    """Return the reasons a normalized IBAN is invalid (empty list if valid)."""
    errors = []
    if not IBAN_MIN_LENGTH <= len(iban) <= IBAN_MAX_LENGTH:
        errors.append(
            f"IBAN must be between {IBAN_MIN_LENGTH} and {IBAN_MAX_LENGTH} characters"
        )
    if not IBAN_PATTERN.match(iban):
        errors.append(
            "IBAN must start with a 2-letter country code and 2 check digits, "
            "followed by letters and digits"
        )
    return errors


def check_amount(amount: Decimal, field: str = "amount") -> None:
    """
    Enforce the amount rules for callers that bypass the request schemas.

    Raises:
        ValidationFailedError: If the amount has more than 2 decimals or
                               lies outside ±AMOUNT_LIMIT.
    """
    if not amount.is_finite() or abs(amount) > AMOUNT_LIMIT or amount.as_tuple().exponent < -2:
        raise ValidationFailedError([{
            "field": field,
            "message": f"Amount must have at most 2 decimals and lie within ±{AMOUNT_LIMIT}",
        }])
