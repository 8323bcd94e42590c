"""
Tests for authentication endpoints (register, login, me).

These tests verify:
  - Successful registration creates a user and returns a JWT
  - Duplicate email registration is rejected (409), case-insensitively
  - Successful login returns a valid JWT
  - Wrong password and unknown email get the same 401 (anti-enumeration)
  - Invalid input is rejected with every violation listed (422)
  - Protected endpoints reject missing and tampered tokens
  - The password hash never appears in responses
"""

from app.security import hash_password, verify_password


REGISTER_DATA = {
    "first_name": "Jane",
    "last_name": "Doe",
    "email": "jane@example.com",
    "password": "StrongPass99!",
}


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------

class TestRegister:
    """Tests for POST /auth/register."""

    async def test_register_success(self, client):
        response = await client.post("/auth/register", json=REGISTER_DATA)
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "jane@example.com"
        assert data["first_name"] == "Jane"
        assert data["token_type"] == "bearer"
        assert "token" in data
        assert "user_id" in data
        assert "password" not in data
        assert "hashed_password" not in data

    async def test_register_duplicate_email(self, client):
        """Registering an already-registered email returns 409."""
        first = await client.post("/auth/register", json=REGISTER_DATA)
        assert first.status_code == 201

        second = await client.post("/auth/register", json=REGISTER_DATA)
        assert second.status_code == 409
        assert second.json()["error_type"] == "duplicate_email"
        assert "already registered" in second.json()["detail"]

    async def test_register_duplicate_email_other_case(self, client):
        """Emails are compared case-insensitively."""
        await client.post("/auth/register", json=REGISTER_DATA)
        response = await client.post(
            "/auth/register",
            json={**REGISTER_DATA, "email": "JANE@Example.com"},
        )
        assert response.status_code == 409

    async def test_register_collects_all_violations(self, client):
        """Every invalid field is reported, not just the first one."""
        response = await client.post(
            "/auth/register",
            json={"first_name": "J", "last_name": "D", "email": "nope", "password": "abc"},
        )
        assert response.status_code == 422
        data = response.json()
        assert data["error_type"] == "validation_error"
        fields = {error["loc"][-1] for error in data["errors"]}
        assert fields == {"first_name", "last_name", "email", "password"}

    async def test_register_missing_fields(self, client):
        response = await client.post("/auth/register", json={})
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for POST /auth/login."""

    async def test_login_success(self, client):
        await client.post("/auth/register", json=REGISTER_DATA)

        response = await client.post(
            "/auth/login",
            json={"email": "jane@example.com", "password": "StrongPass99!"},
        )
        assert response.status_code == 200
        assert response.json()["token"]

    async def test_login_email_is_case_insensitive(self, client):
        await client.post("/auth/register", json=REGISTER_DATA)

        response = await client.post(
            "/auth/login",
            json={"email": "Jane@EXAMPLE.com", "password": "StrongPass99!"},
        )
        assert response.status_code == 200

    async def test_login_wrong_password(self, client):
        await client.post("/auth/register", json=REGISTER_DATA)

        response = await client.post(
            "/auth/login",
            json={"email": "jane@example.com", "password": "WrongPass99!"},
        )
        assert response.status_code == 401
        assert response.json()["error_type"] == "invalid_credentials"

    async def test_login_unknown_email_same_error(self, client):
        """Unknown email and wrong password are indistinguishable."""
        await client.post("/auth/register", json=REGISTER_DATA)

        wrong_password = await client.post(
            "/auth/login",
            json={"email": "jane@example.com", "password": "WrongPass99!"},
        )
        unknown_email = await client.post(
            "/auth/login",
            json={"email": "nobody@example.com", "password": "WrongPass99!"},
        )
        assert unknown_email.status_code == wrong_password.status_code == 401
        assert unknown_email.json() == wrong_password.json()

    async def test_login_token_works(self, client):
        await client.post("/auth/register", json=REGISTER_DATA)
        login = await client.post(
            "/auth/login",
            json={"email": "jane@example.com", "password": "StrongPass99!"},
        )
        token = login.json()["token"]

        response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["email"] == "jane@example.com"


# ---------------------------------------------------------------------------
# Token handling
# ---------------------------------------------------------------------------

class TestTokens:
    """Tests for bearer token resolution on protected endpoints."""

    async def test_me_returns_profile(self, authenticated_client):
        response = await authenticated_client.get("/auth/me")
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "testuser@example.com"
        assert data["first_name"] == "Alice"
        assert "hashed_password" not in data

    async def test_missing_token_rejected(self, client):
        response = await client.get("/accounts")
        assert response.status_code == 401
        assert response.json()["error_type"] == "invalid_token"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_tampered_token_rejected(self, client):
        response = await client.get(
            "/banks",
            headers={"Authorization": "Bearer not.a.valid.token"},
        )
        assert response.status_code == 401


class TestPasswordHashing:
    """The stored credential is a one-way salted hash."""

    def test_hash_is_not_plaintext_and_is_salted(self):
        first = hash_password("StrongPass99!")
        second = hash_password("StrongPass99!")
        assert "StrongPass99!" not in first
        assert first.startswith("$argon2")
        assert first != second

    def test_verify_password(self):
        hashed = hash_password("StrongPass99!")
        assert verify_password("StrongPass99!", hashed)
        assert not verify_password("WrongPass99!", hashed)
