"""
Tests for account endpoints.

These tests verify:
  - Accounts are created at an existing bank, with normalized IBANs
  - An opening balance is recorded together with the account
  - Field rules (name, type, IBAN) are enforced with 422
  - Unknown banks are rejected with 400, duplicate IBANs with 409
  - Users never see, change or delete each other's accounts (404)
  - Deleting an account removes its balance history
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.exceptions import DuplicateConstraintError, ValidationFailedError
from app.models.account import Account
from app.models.balance import Balance
from app.models.bank import Bank
from app.models.user import User
from app.security import hash_password
from app.services import account_service


VALID_IBAN = "FR7630006000011234567890189"


class TestCreateAccount:
    """Tests for POST /accounts."""

    async def test_create_account(self, authenticated_client, create_bank):
        bank = await create_bank()
        response = await authenticated_client.post(
            "/accounts",
            json={"name": "Main account", "bank_id": bank["id"], "account_type": "savings"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Main account"
        assert data["account_type"] == "savings"
        assert data["iban"] is None
        assert data["bank"]["name"] == "BNP Paribas"

    async def test_default_type_is_current(self, create_bank, create_account):
        bank = await create_bank()
        account = await create_account(bank["id"])
        assert account["account_type"] == "current"

    async def test_iban_is_normalized(self, create_bank, create_account):
        bank = await create_bank()
        account = await create_account(
            bank["id"],
            iban="fr76 3000 6000 0112 3456 7890 189",
        )
        assert account["iban"] == VALID_IBAN

    async def test_initial_balance_recorded_today(self, authenticated_client, create_bank):
        bank = await create_bank()
        response = await authenticated_client.post(
            "/accounts",
            json={"name": "Main account", "bank_id": bank["id"], "initial_balance": "500.00"},
        )
        assert response.status_code == 201
        account_id = response.json()["id"]

        balances = await authenticated_client.get("/balances", params={"account_id": account_id})
        rows = balances.json()["balances"]
        assert len(rows) == 1
        assert rows[0]["amount"] == "500.00"
        assert rows[0]["date"] == date.today().isoformat()

    async def test_no_initial_balance_no_history(self, authenticated_client, create_bank, create_account):
        bank = await create_bank()
        account = await create_account(bank["id"])
        balances = await authenticated_client.get("/balances", params={"account_id": account["id"]})
        assert balances.json()["pagination"]["total"] == 0


class TestAccountValidation:
    """Field, reference and uniqueness rules."""

    async def test_invalid_iban(self, authenticated_client, create_bank):
        bank = await create_bank()
        response = await authenticated_client.post(
            "/accounts",
            json={"name": "Main account", "bank_id": bank["id"], "iban": "12AB"},
        )
        assert response.status_code == 422
        assert response.json()["error_type"] == "validation_error"

    async def test_invalid_type(self, authenticated_client, create_bank):
        bank = await create_bank()
        response = await authenticated_client.post(
            "/accounts",
            json={"name": "Main account", "bank_id": bank["id"], "account_type": "checking"},
        )
        assert response.status_code == 422

    async def test_name_too_short(self, authenticated_client, create_bank):
        bank = await create_bank()
        response = await authenticated_client.post(
            "/accounts",
            json={"name": "A", "bank_id": bank["id"]},
        )
        assert response.status_code == 422

    async def test_initial_balance_too_precise(self, authenticated_client, create_bank):
        bank = await create_bank()
        response = await authenticated_client.post(
            "/accounts",
            json={"name": "Main account", "bank_id": bank["id"], "initial_balance": "10.005"},
        )
        assert response.status_code == 422

    async def test_unknown_bank(self, authenticated_client):
        response = await authenticated_client.post(
            "/accounts",
            json={"name": "Main account", "bank_id": str(uuid.uuid4()), "account_type": "current"},
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_reference"

    async def test_failed_create_leaves_nothing_behind(self, authenticated_client):
        """An account with an opening balance is created entirely or not at all."""
        await authenticated_client.post(
            "/accounts",
            json={"name": "Main account", "bank_id": str(uuid.uuid4()), "initial_balance": "100.00"},
        )
        assert (await authenticated_client.get("/accounts")).json() == []
        assert (await authenticated_client.get("/balances")).json()["pagination"]["total"] == 0

    async def test_duplicate_iban(self, authenticated_client, create_bank, create_account):
        bank = await create_bank()
        await create_account(bank["id"], iban=VALID_IBAN)

        response = await authenticated_client.post(
            "/accounts",
            json={"name": "Other account", "bank_id": bank["id"], "iban": "FR76 3000 6000 0112 3456 7890 189"},
        )
        assert response.status_code == 409
        assert response.json()["field"] == "iban"

    async def test_duplicate_iban_across_users(
        self, client, create_bank, create_account, other_auth_headers
    ):
        bank = await create_bank()
        await create_account(bank["id"], iban=VALID_IBAN)

        response = await client.post(
            "/accounts",
            json={"name": "Other account", "bank_id": bank["id"], "iban": VALID_IBAN},
            headers=other_auth_headers,
        )
        assert response.status_code == 409


class TestReadAndUpdate:
    """Tests for GET/PUT /accounts."""

    async def test_list_includes_statistics(
        self, authenticated_client, create_bank, create_account, create_balance
    ):
        bank = await create_bank()
        account = await create_account(bank["id"])
        await create_balance(account["id"], "100.00", "2024-01-01")
        await create_balance(account["id"], "150.00", "2024-02-01")

        response = await authenticated_client.get("/accounts")
        assert response.status_code == 200
        accounts = response.json()
        assert len(accounts) == 1
        stats = accounts[0]["statistics"]
        assert stats["initial_balance"] == "100.00"
        assert stats["current_balance"] == "150.00"
        assert stats["evolution_percentage"] == 50.0
        assert stats["balance_count"] == 2

    async def test_list_newest_first(self, authenticated_client, create_bank, create_account):
        bank = await create_bank()
        await create_account(bank["id"], name="First")
        await create_account(bank["id"], name="Second")

        response = await authenticated_client.get("/accounts")
        assert [a["name"] for a in response.json()] == ["Second", "First"]

    async def test_account_without_balances_has_zero_statistics(
        self, authenticated_client, create_bank, create_account
    ):
        bank = await create_bank()
        await create_account(bank["id"])

        stats = (await authenticated_client.get("/accounts")).json()[0]["statistics"]
        assert stats["current_balance"] == "0.00"
        assert stats["balance_count"] == 0
        assert stats["evolution_percentage"] == 0.0

    async def test_get_account(self, authenticated_client, create_bank, create_account):
        bank = await create_bank()
        account = await create_account(bank["id"])
        response = await authenticated_client.get(f"/accounts/{account['id']}")
        assert response.status_code == 200
        assert response.json()["bank"]["id"] == bank["id"]

    async def test_update_account(self, authenticated_client, create_bank, create_account):
        bank = await create_bank()
        other_bank = await create_bank("LCL")
        account = await create_account(bank["id"])

        response = await authenticated_client.put(
            f"/accounts/{account['id']}",
            json={
                "name": "Livret A",
                "bank_id": other_bank["id"],
                "account_type": "savings",
                "iban": VALID_IBAN,
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Livret A"
        assert data["bank"]["name"] == "LCL"
        assert data["account_type"] == "savings"
        assert data["iban"] == VALID_IBAN

    async def test_update_keeping_own_iban(self, authenticated_client, create_bank, create_account):
        bank = await create_bank()
        account = await create_account(bank["id"], iban=VALID_IBAN)

        response = await authenticated_client.put(
            f"/accounts/{account['id']}",
            json={"name": "Renamed", "bank_id": bank["id"], "account_type": "current", "iban": VALID_IBAN},
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"

    async def test_update_requires_type(self, authenticated_client, create_bank, create_account):
        """A PUT without account_type is rejected instead of resetting the type."""
        bank = await create_bank()
        account = await create_account(bank["id"], account_type="savings")

        response = await authenticated_client.put(
            f"/accounts/{account['id']}",
            json={"name": "Renamed", "bank_id": bank["id"]},
        )
        assert response.status_code == 422
        assert "account_type" in {error["loc"][-1] for error in response.json()["errors"]}

        response = await authenticated_client.get(f"/accounts/{account['id']}")
        assert response.json()["account_type"] == "savings"
        assert response.json()["name"] == "Main account"

    async def test_update_onto_taken_iban(self, authenticated_client, create_bank, create_account):
        bank = await create_bank()
        await create_account(bank["id"], iban=VALID_IBAN)
        other = await create_account(bank["id"], name="Second")

        response = await authenticated_client.put(
            f"/accounts/{other['id']}",
            json={"name": "Second", "bank_id": bank["id"], "account_type": "current", "iban": VALID_IBAN},
        )
        assert response.status_code == 409

    async def test_update_unknown_bank(self, authenticated_client, create_bank, create_account):
        bank = await create_bank()
        account = await create_account(bank["id"])
        response = await authenticated_client.put(
            f"/accounts/{account['id']}",
            json={"name": "Main account", "bank_id": str(uuid.uuid4()), "account_type": "current"},
        )
        assert response.status_code == 400


class TestAccountIsolation:
    """Another user's account behaves exactly like a missing one."""

    async def test_other_user_cannot_see_account(
        self, client, create_bank, create_account, other_auth_headers
    ):
        bank = await create_bank()
        account = await create_account(bank["id"])

        response = await client.get(f"/accounts/{account['id']}", headers=other_auth_headers)
        assert response.status_code == 404

        response = await client.get("/accounts", headers=other_auth_headers)
        assert response.json() == []

    async def test_other_user_cannot_update_or_delete(
        self, client, auth_headers, create_bank, create_account, other_auth_headers
    ):
        bank = await create_bank()
        account = await create_account(bank["id"])

        response = await client.put(
            f"/accounts/{account['id']}",
            json={"name": "Hijacked", "bank_id": bank["id"], "account_type": "current"},
            headers=other_auth_headers,
        )
        assert response.status_code == 404

        response = await client.delete(f"/accounts/{account['id']}", headers=other_auth_headers)
        assert response.status_code == 404

        # Still intact for the owner
        response = await client.get(f"/accounts/{account['id']}", headers=auth_headers)
        assert response.json()["name"] == "Main account"


class TestDeleteAccount:
    """Tests for DELETE /accounts/{id}."""

    async def test_delete_cascades_to_balances(
        self, authenticated_client, db_session, create_bank, create_account, create_balance
    ):
        bank = await create_bank()
        account = await create_account(bank["id"])
        await create_balance(account["id"], "100.00", "2024-01-01")
        await create_balance(account["id"], "200.00", "2024-02-01")

        response = await authenticated_client.delete(f"/accounts/{account['id']}")
        assert response.status_code == 204

        response = await authenticated_client.get(f"/accounts/{account['id']}")
        assert response.status_code == 404

        remaining = await db_session.scalar(
            select(func.count()).select_from(Balance).where(
                Balance.account_id == uuid.UUID(account["id"])
            )
        )
        assert remaining == 0

    async def test_delete_unknown_account(self, authenticated_client):
        response = await authenticated_client.delete(f"/accounts/{uuid.uuid4()}")
        assert response.status_code == 404


class TestAccountServiceRules:
    """account_service called directly, without the request schemas in front."""

    async def _seed(self, db_session):
        user = User(
            first_name="Alice",
            last_name="Tester",
            email="alice@example.com",
            hashed_password=hash_password("SecurePass123!"),
        )
        bank = Bank(name="BNP Paribas")
        db_session.add_all([user, bank])
        await db_session.flush()
        return user, bank

    async def test_initial_balance_precision_enforced(self, db_session):
        user, bank = await self._seed(db_session)

        with pytest.raises(ValidationFailedError) as exc_info:
            await account_service.create_account(
                db_session, user.id, "Main account", bank.id,
                initial_balance=Decimal("10.005"),
            )
        assert exc_info.value.errors[0]["field"] == "initial_balance"

    async def test_initial_balance_range_enforced(self, db_session):
        user, bank = await self._seed(db_session)

        with pytest.raises(ValidationFailedError):
            await account_service.create_account(
                db_session, user.id, "Main account", bank.id,
                initial_balance=Decimal("1000000000000.00"),
            )

    async def test_duplicate_iban_on_flush(self, db_session):
        user, bank = await self._seed(db_session)
        db_session.add(Account(user_id=user.id, bank_id=bank.id, name="First", iban=VALID_IBAN))
        await db_session.flush()

        db_session.add(Account(user_id=user.id, bank_id=bank.id, name="Second", iban=VALID_IBAN))
        with pytest.raises(DuplicateConstraintError) as exc_info:
            await account_service._flush_or_duplicate(db_session, VALID_IBAN)
        assert exc_info.value.field == "iban"

    async def test_foreign_key_failure_is_not_a_duplicate(self, db_session):
        """A missing bank at flush time surfaces as the IntegrityError it is."""
        user, _ = await self._seed(db_session)
        db_session.add(Account(user_id=user.id, bank_id=uuid.uuid4(), name="Orphan", iban=VALID_IBAN))

        with pytest.raises(IntegrityError):
            await account_service._flush_or_duplicate(db_session, VALID_IBAN)
