"""
Tests for the bank registry endpoints.

These tests verify:
  - Banks can be created, listed (by name), read, updated and deleted
  - Name and code are unique (409), but a bank may keep its own name
  - Field lengths are validated (422)
  - A bank referenced by an account cannot be deleted (409) until the
    account is gone
"""

import uuid

import pytest

from app.exceptions import DuplicateConstraintError
from app.models.bank import Bank
from app.services import bank_service


class TestBankCrud:
    """Tests for POST/GET/PUT /banks."""

    async def test_create_bank(self, authenticated_client):
        response = await authenticated_client.post(
            "/banks",
            json={"name": "BNP Paribas", "code": "BNP"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "BNP Paribas"
        assert data["code"] == "BNP"
        assert "id" in data

    async def test_create_bank_without_code(self, authenticated_client):
        response = await authenticated_client.post("/banks", json={"name": "La Poste", "code": ""})
        assert response.status_code == 201
        assert response.json()["code"] is None

    async def test_list_banks_ordered_by_name(self, authenticated_client, create_bank):
        await create_bank("Société Générale")
        await create_bank("Crédit Agricole")
        await create_bank("BNP Paribas")

        response = await authenticated_client.get("/banks")
        assert response.status_code == 200
        names = [bank["name"] for bank in response.json()]
        assert names == ["BNP Paribas", "Crédit Agricole", "Société Générale"]

    async def test_get_bank(self, authenticated_client, create_bank):
        bank = await create_bank()
        response = await authenticated_client.get(f"/banks/{bank['id']}")
        assert response.status_code == 200
        assert response.json()["name"] == "BNP Paribas"

    async def test_get_unknown_bank(self, authenticated_client):
        response = await authenticated_client.get(f"/banks/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["error_type"] == "not_found"

    async def test_update_bank(self, authenticated_client, create_bank):
        bank = await create_bank("BNP", code="BNP")
        response = await authenticated_client.put(
            f"/banks/{bank['id']}",
            json={"name": "BNP Paribas", "code": "BNPP"},
        )
        assert response.status_code == 200
        assert response.json()["name"] == "BNP Paribas"
        assert response.json()["code"] == "BNPP"

    async def test_update_bank_keeping_own_name(self, authenticated_client, create_bank):
        bank = await create_bank("BNP Paribas", code="BNP")
        response = await authenticated_client.put(
            f"/banks/{bank['id']}",
            json={"name": "BNP Paribas", "code": "BNP"},
        )
        assert response.status_code == 200

    async def test_banks_are_shared_between_users(
        self, client, create_bank, other_auth_headers
    ):
        await create_bank("BNP Paribas")
        response = await client.get("/banks", headers=other_auth_headers)
        assert [bank["name"] for bank in response.json()] == ["BNP Paribas"]


class TestBankValidation:
    """Uniqueness and length rules."""

    async def test_duplicate_name(self, authenticated_client, create_bank):
        await create_bank("BNP Paribas")
        response = await authenticated_client.post("/banks", json={"name": "BNP Paribas"})
        assert response.status_code == 409
        assert response.json()["error_type"] == "duplicate"
        assert response.json()["field"] == "name"

    async def test_duplicate_code(self, authenticated_client, create_bank):
        await create_bank("BNP Paribas", code="BNP")
        response = await authenticated_client.post(
            "/banks",
            json={"name": "Another Bank", "code": "BNP"},
        )
        assert response.status_code == 409
        assert response.json()["field"] == "code"

    async def test_rename_onto_existing_name(self, authenticated_client, create_bank):
        await create_bank("BNP Paribas")
        other = await create_bank("LCL")
        response = await authenticated_client.put(
            f"/banks/{other['id']}",
            json={"name": "BNP Paribas"},
        )
        assert response.status_code == 409

    async def test_name_too_short(self, authenticated_client):
        response = await authenticated_client.post("/banks", json={"name": "B"})
        assert response.status_code == 422

    async def test_code_too_long(self, authenticated_client):
        response = await authenticated_client.post(
            "/banks",
            json={"name": "BNP Paribas", "code": "X" * 21},
        )
        assert response.status_code == 422


class TestBankDeletion:
    """DELETE /banks/{id} and the RESTRICT rule."""

    async def test_delete_unused_bank(self, authenticated_client, create_bank):
        bank = await create_bank()
        response = await authenticated_client.delete(f"/banks/{bank['id']}")
        assert response.status_code == 204

        response = await authenticated_client.get(f"/banks/{bank['id']}")
        assert response.status_code == 404

    async def test_delete_bank_with_accounts_is_blocked(
        self, authenticated_client, create_bank, create_account
    ):
        bank = await create_bank()
        account = await create_account(bank["id"])

        response = await authenticated_client.delete(f"/banks/{bank['id']}")
        assert response.status_code == 409
        assert response.json()["error_type"] == "referential_conflict"

        # Bank still there
        assert (await authenticated_client.get(f"/banks/{bank['id']}")).status_code == 200

        # Remove the dependent account, then the delete succeeds
        await authenticated_client.delete(f"/accounts/{account['id']}")
        response = await authenticated_client.delete(f"/banks/{bank['id']}")
        assert response.status_code == 204

    async def test_delete_bank_blocked_by_other_users_account(
        self, authenticated_client, create_bank, create_account, other_auth_headers
    ):
        """The restriction counts every user's accounts, not just the caller's."""
        bank = await create_bank()
        await create_account(bank["id"], headers=other_auth_headers)

        response = await authenticated_client.delete(f"/banks/{bank['id']}")
        assert response.status_code == 409

    async def test_delete_unknown_bank(self, authenticated_client):
        response = await authenticated_client.delete(f"/banks/{uuid.uuid4()}")
        assert response.status_code == 404


class TestBankFlushConflicts:
    """A unique collision caught only at flush names the column that collided."""

    async def test_code_collision_reports_code(self, db_session):
        db_session.add(Bank(name="BNP Paribas", code="BNP"))
        await db_session.flush()

        db_session.add(Bank(name="Another Bank", code="BNP"))
        with pytest.raises(DuplicateConstraintError) as exc_info:
            await bank_service._flush_or_duplicate(db_session, "Another Bank", "BNP")
        assert exc_info.value.field == "code"
        assert exc_info.value.value == "BNP"

    async def test_name_collision_reports_name(self, db_session):
        db_session.add(Bank(name="BNP Paribas", code="BNP"))
        await db_session.flush()

        db_session.add(Bank(name="BNP Paribas", code="BNPP"))
        with pytest.raises(DuplicateConstraintError) as exc_info:
            await bank_service._flush_or_duplicate(db_session, "BNP Paribas", "BNPP")
        assert exc_info.value.field == "name"
