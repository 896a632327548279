"""
Invite endpoint tests: send, view, accept and decline.
"""

from sqlalchemy import select

from volunteer_hub.core.config import settings
from volunteer_hub.models import MemberStatus, OrgMember, OrgRole


async def _send(client, auth_headers, org, email="new@example.com", role="member", sender="owner@example.com"):
    return await client.post(
        "/invites/send",
        json={"email": email, "role": role},
        headers=auth_headers(sender, org.public_id),
    )


def _token(response) -> str:
    return response.json()["invite"]["sign_in_url"].rsplit("/", 1)[-1]


class TestSend:
    async def test_send_creates_invite_and_queues_email(self, client, factory, auth_headers, email_tasks):
        org = await factory.org(name="Grace Church")

        response = await _send(client, auth_headers, org, email="New@Example.com", role="admin")

        assert response.status_code == 201
        invite = response.json()["invite"]
        assert invite["email"] == "new@example.com"
        assert invite["role"] == "admin"
        assert invite["sign_in_url"].startswith(f"{settings.APP_URL}/invite/")
        email_tasks["invitation"].assert_called_once()
        kwargs = email_tasks["invitation"].call_args.kwargs
        assert kwargs["to_email"] == "new@example.com"
        assert kwargs["org_name"] == "Grace Church"
        assert kwargs["invite_url"] == invite["sign_in_url"]

    async def test_member_cannot_invite(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "vol@example.com")

        response = await _send(client, auth_headers, org, sender="vol@example.com")

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "INSUFFICIENT_ROLE"

    async def test_existing_member_is_409(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "vol@example.com")

        response = await _send(client, auth_headers, org, email="vol@example.com")

        assert response.status_code == 409

    async def test_owner_role_is_400(self, client, factory, auth_headers):
        org = await factory.org()

        response = await _send(client, auth_headers, org, role="owner")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_ROLE"


class TestView:
    async def test_view_is_public(self, client, factory, auth_headers):
        org = await factory.org(name="Grace Church")
        token = _token(await _send(client, auth_headers, org))

        response = await client.get(f"/invites/{token}")

        assert response.status_code == 200
        body = response.json()
        assert body["organization"] == {"name": "Grace Church", "description": "Sunday volunteers"}
        assert body["email"] == "new@example.com"
        assert body["invited_by"] == "owner@example.com"

    async def test_unknown_token_is_404(self, client):
        response = await client.get(f"/invites/{'0' * 64}")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "INVITE_NOT_FOUND"


class TestRespond:
    async def test_accept_joins_org(self, client, db_session, factory, auth_headers):
        org = await factory.org()
        token = _token(await _send(client, auth_headers, org, role="admin"))

        response = await client.post(
            f"/invites/{token}", json={"action": "accept"}, headers=auth_headers("new@example.com")
        )

        assert response.status_code == 200
        assert response.json()["organization_id"] == str(org.id)
        result = await db_session.execute(
            select(OrgMember)
            .where(OrgMember.user_email == "new@example.com")
            .execution_options(populate_existing=True)
        )
        member = result.scalar_one()
        assert member.status == MemberStatus.active
        assert member.role == OrgRole.admin

    async def test_accept_twice_is_404(self, client, factory, auth_headers):
        org = await factory.org()
        token = _token(await _send(client, auth_headers, org))
        headers = auth_headers("new@example.com")

        await client.post(f"/invites/{token}", json={"action": "accept"}, headers=headers)
        response = await client.post(f"/invites/{token}", json={"action": "accept"}, headers=headers)

        assert response.status_code == 404

    async def test_accept_requires_sign_in(self, client, factory, auth_headers):
        org = await factory.org()
        token = _token(await _send(client, auth_headers, org))

        response = await client.post(f"/invites/{token}", json={"action": "accept"})

        assert response.status_code == 401

    async def test_decline_deletes_invite(self, client, factory, auth_headers):
        org = await factory.org()
        token = _token(await _send(client, auth_headers, org))

        response = await client.post(
            f"/invites/{token}", json={"action": "decline"}, headers=auth_headers("new@example.com")
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Invite declined"
        assert (await client.get(f"/invites/{token}")).status_code == 404

    async def test_stranger_cannot_decline_bound_invite(self, client, factory, auth_headers, monkeypatch):
        monkeypatch.setattr(settings, "INVITE_LINK_GRANTS_ANY_IDENTITY", False)
        org = await factory.org()
        token = _token(await _send(client, auth_headers, org, email="invited@example.com"))

        response = await client.post(
            f"/invites/{token}", json={"action": "decline"}, headers=auth_headers("intruder@example.com")
        )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "EMAIL_MISMATCH"
        assert (await client.get(f"/invites/{token}")).status_code == 200

    async def test_unknown_action_is_400(self, client, factory, auth_headers):
        org = await factory.org()
        token = _token(await _send(client, auth_headers, org))

        response = await client.post(
            f"/invites/{token}", json={"action": "maybe"}, headers=auth_headers("new@example.com")
        )

        assert response.status_code == 400
