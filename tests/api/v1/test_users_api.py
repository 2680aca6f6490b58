"""
Integration tests for User API endpoints.
Enrollment and lookups go through real bearer token verification.
"""
import pytest

from cipherpost.core.security import create_access_token


def _identity_headers(**overrides):
    claims = {
        "sub": "sub-erin",
        "email": "erin@example.com",
        "phone_number": "+15550000099",
        "given_name": "Erin",
        "family_name": "Evans",
    }
    claims.update(overrides)
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


@pytest.mark.asyncio
class TestEnrollment:
    """Test cases for enrolling identities."""

    async def test_enroll_success(self, unauth_client):
        """Test a verified identity enrolls once with its public key."""
        headers = _identity_headers()

        response = await unauth_client.post(
            "/api/v1/users",
            headers=headers,
            json={"public_key": "pk-erin", "display_name": "Erin E."}
        )

        assert response.status_code == 201
        data = response.json()
        assert isinstance(data["id"], str)
        assert data["sub"] == "sub-erin"
        assert data["name"] == "Erin E."
        assert data["public_key"] == "pk-erin"
        assert data["created_at"].endswith("Z")

        me = await unauth_client.get("/api/v1/users/me", headers=headers)
        assert me.status_code == 200
        assert me.json()["id"] == data["id"]

    async def test_enroll_twice_conflicts(self, unauth_client):
        """Test the same identity cannot enroll a second time."""
        headers = _identity_headers()
        await unauth_client.post("/api/v1/users", headers=headers, json={"public_key": "pk-1"})

        response = await unauth_client.post(
            "/api/v1/users", headers=headers, json={"public_key": "pk-2"}
        )

        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    async def test_enroll_missing_claims(self, unauth_client):
        """Test a token without the profile claims cannot enroll."""
        headers = {"Authorization": f"Bearer {create_access_token({'sub': 'sub-bare'})}"}

        response = await unauth_client.post(
            "/api/v1/users", headers=headers, json={"public_key": "pk"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"

    async def test_enroll_blank_key_rejected(self, unauth_client):
        response = await unauth_client.post(
            "/api/v1/users", headers=_identity_headers(), json={"public_key": "   "}
        )

        assert response.status_code == 422

    async def test_enroll_without_token(self, unauth_client):
        response = await unauth_client.post("/api/v1/users", json={"public_key": "pk"})

        assert response.status_code == 401

    async def test_unenrolled_identity_is_unauthorized(self, unauth_client):
        """Test a valid token for an unknown identity cannot use the API."""
        response = await unauth_client.get(
            "/api/v1/users/me", headers=_identity_headers(sub="sub-nobody")
        )

        assert response.status_code == 401

    async def test_fixture_user_authenticates(self, unauth_client, alice, auth_as):
        response = await unauth_client.get("/api/v1/users/me", headers=auth_as(alice))

        assert response.status_code == 200
        assert response.json()["email"] == "alice@example.com"


@pytest.mark.asyncio
class TestProfile:
    """Test cases for the current user's profile and lookups."""

    async def test_update_display_name(self, client):
        response = await client.patch("/api/v1/users/me", json={"display_name": "Ali"})

        assert response.status_code == 200
        assert response.json()["name"] == "Ali"

    async def test_rotate_public_key(self, client, alice):
        response = await client.put("/api/v1/users/me/public-key", json={"public_key": "pk-new"})

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(alice.id)
        assert data["public_key"] == "pk-new"

    async def test_lookup_by_email_and_phone(self, client, bob):
        by_email = await client.get("/api/v1/users/lookup", params={"handle": "bob@example.com"})
        by_phone = await client.get("/api/v1/users/lookup", params={"handle": bob.phone_number})

        assert by_email.status_code == 200
        assert by_email.json()["id"] == str(bob.id)
        assert by_phone.json()["id"] == str(bob.id)
        assert "email" not in by_email.json()

    async def test_lookup_unknown(self, client):
        response = await client.get("/api/v1/users/lookup", params={"handle": "ghost@example.com"})

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    async def test_get_user_by_id(self, client, bob):
        response = await client.get(f"/api/v1/users/{bob.id}")

        assert response.status_code == 200
        assert response.json()["public_key"] == "pk-bob"
