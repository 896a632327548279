"""
Onboarding, org context and roster management tests.
"""

from sqlalchemy import select

from volunteer_hub.models import MemberStatus, OrgMember, OrgRole


class TestOnboarding:
    async def test_new_user_needs_setup(self, client, auth_headers):
        response = await client.get("/onboarding/setup-org", headers=auth_headers("new@example.com"))

        assert response.status_code == 200
        assert response.json() == {"needs_setup": True, "organizations": []}

    async def test_setup_creates_owner_membership(self, client, db_session, auth_headers):
        headers = auth_headers("new@example.com")

        response = await client.post(
            "/onboarding/setup-org",
            json={"name": "  Grace Church  ", "description": "Sundays"},
            headers=headers,
        )

        assert response.status_code == 201
        org = response.json()["organization"]
        assert org["name"] == "Grace Church"
        assert org["slug"] == "grace-church"
        assert len(org["public_id"]) == 12

        result = await db_session.execute(select(OrgMember).where(OrgMember.user_email == "new@example.com"))
        member = result.scalar_one()
        assert member.role == OrgRole.owner
        assert member.status == MemberStatus.active

        status_response = await client.get("/onboarding/setup-org", headers=headers)
        assert status_response.json()["needs_setup"] is False

    async def test_second_org_is_409(self, client, factory, auth_headers):
        await factory.org(owner_email="owner@example.com")

        response = await client.post(
            "/onboarding/setup-org", json={"name": "Another"}, headers=auth_headers("owner@example.com")
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "ORG_EXISTS"

    async def test_slug_collision_gets_suffix(self, client, auth_headers):
        first = await client.post(
            "/onboarding/setup-org", json={"name": "Grace Church"}, headers=auth_headers("a@example.com")
        )
        second = await client.post(
            "/onboarding/setup-org", json={"name": "Grace Church!"}, headers=auth_headers("b@example.com")
        )

        assert first.json()["organization"]["slug"] == "grace-church"
        assert second.json()["organization"]["slug"] == "grace-church-1"


class TestContext:
    async def test_context_for_header_org(self, client, factory, auth_headers):
        await factory.org(owner_email="vol@example.com", name="First")
        second = await factory.org(owner_email="owner2@example.com", name="Second")
        await factory.member(second, "vol@example.com", role=OrgRole.admin)

        response = await client.get("/org/context", headers=auth_headers("vol@example.com", second.public_id))

        assert response.status_code == 200
        body = response.json()
        assert body["organization_name"] == "Second"
        assert body["user_role"] == "admin"

    async def test_no_membership_is_404(self, client, auth_headers):
        response = await client.get("/org/context", headers=auth_headers("nobody@example.com"))

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NO_ORGANIZATION"

    async def test_pending_invite_is_not_membership(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "pending@example.com", status=MemberStatus.pending)

        response = await client.get("/org/context", headers=auth_headers("pending@example.com"))

        assert response.status_code == 404


class TestMembers:
    async def test_any_member_can_list(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "vol@example.com")
        await factory.member(org, "pending@example.com", status=MemberStatus.pending)

        response = await client.get("/admin/members", headers=auth_headers("vol@example.com", org.public_id))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        statuses = {m["user_email"]: m["status"] for m in body["members"]}
        assert statuses == {
            "owner@example.com": "active",
            "vol@example.com": "active",
            "pending@example.com": "pending",
        }

    async def test_admin_changes_role(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "vol@example.com")

        response = await client.patch(
            "/admin/members",
            json={"email": "vol@example.com", "role": "admin"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        assert response.json()["member"]["role"] == "admin"

    async def test_owner_role_cannot_change(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "admin@example.com", role=OrgRole.admin)

        response = await client.patch(
            "/admin/members",
            json={"email": "owner@example.com", "role": "member"},
            headers=auth_headers("admin@example.com", org.public_id),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "CANNOT_CHANGE_OWNER"

    async def test_cannot_assign_owner(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "vol@example.com")

        response = await client.patch(
            "/admin/members",
            json={"email": "vol@example.com", "role": "owner"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_INPUT"

    async def test_member_cannot_change_roles(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "vol@example.com")
        await factory.member(org, "other@example.com")

        response = await client.patch(
            "/admin/members",
            json={"email": "other@example.com", "role": "admin"},
            headers=auth_headers("vol@example.com", org.public_id),
        )

        assert response.status_code == 403

    async def test_remove_member(self, client, db_session, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "vol@example.com")

        response = await client.request(
            "DELETE",
            "/admin/members",
            json={"email": "vol@example.com"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        assert response.json()["member"]["user_email"] == "vol@example.com"
        result = await db_session.execute(select(OrgMember.user_email).where(OrgMember.organization_id == org.id))
        assert result.scalars().all() == ["owner@example.com"]

    async def test_remove_pending_invite(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "pending@example.com", status=MemberStatus.pending)

        response = await client.request(
            "DELETE",
            "/admin/members",
            json={"email": "pending@example.com"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        assert response.json()["member"]["status"] == "pending"

    async def test_cannot_remove_self(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "admin@example.com", role=OrgRole.admin)

        response = await client.request(
            "DELETE",
            "/admin/members",
            json={"email": "admin@example.com"},
            headers=auth_headers("admin@example.com", org.public_id),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "CANNOT_REMOVE_SELF"

    async def test_cannot_remove_owner(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "admin@example.com", role=OrgRole.admin)

        response = await client.request(
            "DELETE",
            "/admin/members",
            json={"email": "owner@example.com"},
            headers=auth_headers("admin@example.com", org.public_id),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "CANNOT_REMOVE_OWNER"

    async def test_remove_unknown_is_404(self, client, factory, auth_headers):
        org = await factory.org()

        response = await client.request(
            "DELETE",
            "/admin/members",
            json={"email": "ghost@example.com"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "MEMBER_NOT_FOUND"
