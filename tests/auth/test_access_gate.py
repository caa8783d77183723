"""Access gate: authentication, admin role and membership checks."""

from datetime import timedelta

from httpx import AsyncClient

from tests.conftest import expired_window, grant_membership, make_technique
from whbjj.auth.jwt import create_access_token


class TestAuthenticate:
    async def test_no_token(self, client: AsyncClient):
        response = await client.get("/api/techniques")
        assert response.status_code == 401
        assert response.json() == {"message": "No token provided"}

    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/techniques", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    async def test_expired_token(self, client: AsyncClient, member):
        token = create_access_token(member["id"], "member", False, expires_delta=timedelta(seconds=-5))
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Token has expired"

    async def test_token_for_missing_user(self, client: AsyncClient):
        token = create_access_token(99999, "member", True)
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestMembershipGate:
    async def test_member_without_membership_rejected(self, client: AsyncClient, member):
        response = await client.get("/api/techniques", headers=member["headers"])
        assert response.status_code == 403
        data = response.json()
        assert data["requiresMembership"] is True
        assert data["message"] == "Active membership required to access this content"

    async def test_stale_token_accepted_after_activation(self, client: AsyncClient, member, admin):
        # Same token before and after the admin activates the membership.
        before = await client.get("/api/techniques", headers=member["headers"])
        assert before.status_code == 403

        activate = await client.put(
            f"/api/admin/users/{member['id']}/membership",
            headers=admin["headers"],
            json={"status": "active", "membership_type": "monthly"},
        )
        assert activate.status_code == 200

        after = await client.get("/api/techniques", headers=member["headers"])
        assert after.status_code == 200

    async def test_expired_membership_rejected(self, client: AsyncClient, database, member):
        await grant_membership(database, member["id"], **expired_window())
        response = await client.get("/api/techniques", headers=member["headers"])
        assert response.status_code == 403
        assert response.json()["requiresMembership"] is True

    async def test_cancelled_membership_rejected(self, client: AsyncClient, database, member):
        await grant_membership(database, member["id"], status="cancelled")
        response = await client.get("/api/techniques", headers=member["headers"])
        assert response.status_code == 403

    async def test_admin_bypasses_membership(self, client: AsyncClient, admin):
        response = await client.get("/api/techniques", headers=admin["headers"])
        assert response.status_code == 200

    async def test_paid_member_allowed(self, client: AsyncClient, paid_member):
        response = await client.get("/api/techniques", headers=paid_member["headers"])
        assert response.status_code == 200

    async def test_favorite_needs_only_authentication(self, client: AsyncClient, database, member):
        technique_id = await make_technique(database)
        response = await client.post(f"/api/techniques/{technique_id}/favorite", headers=member["headers"])
        assert response.status_code == 200


class TestAdminGate:
    async def test_member_forbidden(self, client: AsyncClient, paid_member):
        response = await client.get("/api/admin/dashboard", headers=paid_member["headers"])
        assert response.status_code == 403
        assert response.json() == {"message": "Requires admin privileges"}

    async def test_role_comes_from_stored_user(self, client: AsyncClient, member):
        # A token claiming admin does not grant admin to a member account.
        token = create_access_token(member["id"], "admin", False)
        response = await client.get("/api/admin/dashboard", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403

    async def test_admin_allowed(self, client: AsyncClient, admin):
        response = await client.get("/api/admin/dashboard", headers=admin["headers"])
        assert response.status_code == 200

    async def test_admin_requires_token(self, client: AsyncClient):
        response = await client.get("/api/admin/users")
        assert response.status_code == 401
