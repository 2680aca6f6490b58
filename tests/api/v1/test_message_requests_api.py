"""
Integration tests for Message Request API endpoints.
"""
import pytest


@pytest.mark.asyncio
class TestMessageRequestAPI:
    """Test cases for proposing and approving contact."""

    async def test_create_by_handle(self, client, alice, bob):
        """Test a request can address the destination by email."""
        response = await client.post(
            "/api/v1/message-requests", json={"handle": "bob@example.com"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["source_id"] == str(alice.id)
        assert data["destination_id"] == str(bob.id)
        assert data["status"] == "pending"
        assert data["approved_at"] is None
        assert data["destination"]["name"] == "Bob Brown"

    async def test_create_by_id(self, client, bob):
        response = await client.post(
            "/api/v1/message-requests", json={"destination_id": str(bob.id)}
        )

        assert response.status_code == 201

    async def test_create_requires_exactly_one_destination(self, client, bob):
        response = await client.post(
            "/api/v1/message-requests",
            json={"destination_id": str(bob.id), "handle": "bob@example.com"}
        )

        assert response.status_code == 422

    async def test_create_self_addressed(self, client, alice):
        response = await client.post(
            "/api/v1/message-requests", json={"destination_id": str(alice.id)}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"

    async def test_duplicate_pending(self, client, bob):
        """Test a second pending request for the same pair is a conflict."""
        await client.post("/api/v1/message-requests", json={"destination_id": str(bob.id)})

        response = await client.post(
            "/api/v1/message-requests", json={"destination_id": str(bob.id)}
        )

        assert response.status_code == 409
        assert response.json()["code"] == "duplicate_pending"

    async def test_approve_flow(self, client, acting_user, alice, bob):
        """Test only the destination approves, and only once."""
        created = await client.post(
            "/api/v1/message-requests", json={"destination_id": str(bob.id)}
        )
        request_id = created.json()["id"]

        # The source cannot approve its own request
        response = await client.post(f"/api/v1/message-requests/{request_id}/approve")
        assert response.status_code == 403

        acting_user["user"] = bob
        pending = await client.get("/api/v1/message-requests/pending")
        assert [r["id"] for r in pending.json()] == [request_id]

        response = await client.post(f"/api/v1/message-requests/{request_id}/approve")
        assert response.status_code == 200
        data = response.json()
        assert data["request"]["status"] == "approved"
        assert data["request"]["approved_at"] is not None
        assert data["group"]["message_request_id"] == request_id
        assert data["group"]["name"] == "Alice Anders, Bob Brown"
        assert {(m["user_id"], m["is_admin"]) for m in data["group"]["members"]} == {
            (str(alice.id), True),
            (str(bob.id), True),
        }

        again = await client.post(f"/api/v1/message-requests/{request_id}/approve")
        assert again.status_code == 409
        assert again.json()["code"] == "already_approved"

        pending = await client.get("/api/v1/message-requests/pending")
        assert pending.json() == []

    async def test_get_hidden_from_outsiders(self, client, acting_user, bob, carol):
        created = await client.post(
            "/api/v1/message-requests", json={"destination_id": str(bob.id)}
        )
        request_id = created.json()["id"]

        assert (await client.get(f"/api/v1/message-requests/{request_id}")).status_code == 200

        acting_user["user"] = carol
        response = await client.get(f"/api/v1/message-requests/{request_id}")
        assert response.status_code == 404

    async def test_list_sent(self, client, bob, carol):
        first = await client.post("/api/v1/message-requests", json={"destination_id": str(bob.id)})
        second = await client.post("/api/v1/message-requests", json={"destination_id": str(carol.id)})

        response = await client.get("/api/v1/message-requests/sent")

        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == [second.json()["id"], first.json()["id"]]
