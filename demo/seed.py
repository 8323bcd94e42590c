#!/usr/bin/env python3
"""
Demo seed script — populates the database with sample data for demos.

!! NOT FOR PRODUCTION !!
This script creates test users with known passwords and a year of fake
monthly balance snapshots. It is intended ONLY for local demos and
frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding:
    ┌──────────────────────────────┬───────────────────┐
    │ Email                        │ Password          │
    ├──────────────────────────────┼───────────────────┤
    │ alice.martin@example.com     │ AliceDemo123!     │
    │ bruno.dubois@example.com     │ BrunoDemo123!     │
    └──────────────────────────────┴───────────────────┘
"""

import argparse
import asyncio
import os
import random
import sys
from datetime import date
from decimal import Decimal

import httpx
from dateutil.relativedelta import relativedelta

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo data
# ---------------------------------------------------------------------------

BANKS = [
    {"name": "BNP Paribas", "code": "BNP"},
    {"name": "Crédit Agricole", "code": "CA"},
    {"name": "Société Générale", "code": "SG"},
    {"name": "Boursorama", "code": None},
]

USERS = [
    {
        "email": "alice.martin@example.com",
        "password": "AliceDemo123!",
        "first_name": "Alice",
        "last_name": "Martin",
        "accounts": [
            {"name": "Compte courant", "bank": "BNP Paribas", "type": "current",
             "iban": "FR76 3000 4000 0312 3456 7890 143", "start": Decimal("1850.00")},
            {"name": "Livret A", "bank": "BNP Paribas", "type": "savings",
             "iban": None, "start": Decimal("8000.00")},
            {"name": "Compte joint", "bank": "Boursorama", "type": "current",
             "iban": None, "start": Decimal("420.00")},
        ],
    },
    {
        "email": "bruno.dubois@example.com",
        "password": "BrunoDemo123!",
        "first_name": "Bruno",
        "last_name": "Dubois",
        "accounts": [
            {"name": "Compte principal", "bank": "Crédit Agricole", "type": "current",
             "iban": "FR14 2004 1010 0505 0001 3M02 606", "start": Decimal("-120.00")},
            {"name": "LDDS", "bank": "Société Générale", "type": "savings",
             "iban": None, "start": Decimal("3500.00")},
        ],
    },
]

MONTHS_OF_HISTORY = 12


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register(client: httpx.AsyncClient, user: dict) -> str:
    """Register a user (or log in if already registered), return JWT token."""
    resp = await client.post(f"{BASE_URL}/auth/register", json={
        "email": user["email"],
        "password": user["password"],
        "first_name": user["first_name"],
        "last_name": user["last_name"],
    })
    if resp.status_code == 409:
        resp = await client.post(f"{BASE_URL}/auth/login", json={
            "email": user["email"],
            "password": user["password"],
        })
    resp.raise_for_status()
    return resp.json()["token"]


async def ensure_banks(client: httpx.AsyncClient, token: str) -> dict[str, str]:
    """Create the demo banks that don't exist yet; return name -> id."""
    resp = await client.get(f"{BASE_URL}/banks", headers=auth_header(token))
    resp.raise_for_status()
    existing = {bank["name"]: bank["id"] for bank in resp.json()}

    for bank in BANKS:
        if bank["name"] in existing:
            continue
        resp = await client.post(f"{BASE_URL}/banks", json=bank, headers=auth_header(token))
        resp.raise_for_status()
        existing[bank["name"]] = resp.json()["id"]
        log(f"Bank: {bank['name']}")
    return existing


async def create_account(client: httpx.AsyncClient, token: str, bank_id: str, info: dict) -> str:
    resp = await client.post(
        f"{BASE_URL}/accounts",
        json={
            "name": info["name"],
            "bank_id": bank_id,
            "account_type": info["type"],
            "iban": info["iban"],
        },
        headers=auth_header(token),
    )
    resp.raise_for_status()
    return resp.json()["id"]


async def record_balance(client: httpx.AsyncClient, token: str, account_id: str,
                         amount: Decimal, on: date) -> None:
    resp = await client.post(
        f"{BASE_URL}/balances",
        json={"account_id": account_id, "amount": str(amount), "date": on.isoformat()},
        headers=auth_header(token),
    )
    resp.raise_for_status()


def monthly_history(start: Decimal, account_type: str, months: int) -> list[tuple[date, Decimal]]:
    """
    Generate one snapshot per month, oldest first, ending this month.

    Savings grow steadily; current accounts wander around their start.
    """
    today = date.today()
    amount = start
    history = []
    for offset in range(months - 1, -1, -1):
        on = today - relativedelta(months=offset)
        history.append((on, amount))
        if account_type == "savings":
            amount += Decimal(random.randint(50_00, 400_00)) / 100
        else:
            amount += Decimal(random.randint(-600_00, 700_00)) / 100
    return history


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn app.main:app --reload\n")
            sys.exit(1)

        bank_ids: dict[str, str] = {}
        for user in USERS:
            name = f"{user['first_name']} {user['last_name']}"
            print(f"\nCreating {name}...")
            token = await register(client, user)
            log(f"Login: {user['email']} / {user['password']}")

            if not bank_ids:
                bank_ids = await ensure_banks(client, token)

            for info in user["accounts"]:
                account_id = await create_account(client, token, bank_ids[info["bank"]], info)
                history = monthly_history(info["start"], info["type"], MONTHS_OF_HISTORY)
                for on, amount in history:
                    await record_balance(client, token, account_id, amount, on)
                log(f"  {info['name']} ({info['bank']}): {len(history)} snapshots, "
                    f"now {history[-1][1]:,.2f} EUR")

            stats = await client.get(f"{BASE_URL}/balances/statistics", headers=auth_header(token))
            stats.raise_for_status()
            totals = stats.json()["global_statistics"]
            log(f"  Total: {totals['total_current_balance']} EUR "
                f"({totals['evolution_percentage']:+.2f}% over the year)")

    # --- Summary ---
    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Email':<30s} {'Password'}")
    print(f"  {'─' * 30} {'─' * 20}")
    for u in USERS:
        print(f"  {u['email']:<30s} {u['password']}")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "balances.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample users, banks, accounts and a year of balances.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
