"""
Admin event-management tests.

Verifies that:
- Only owners and admins reach the admin routes
- Events and lists can be created, listed, updated and deleted
- The list roster reports each signup's reminder status
- Duplicating an event copies its lists but not its signups
- Reorders touch nothing when any id is foreign or repeated
- lock-all flips every list of one event
"""

from datetime import timedelta
from uuid import UUID, uuid4

from sqlalchemy import func, select

from volunteer_hub.core.security import utcnow
from volunteer_hub.models import (
    OrgRole,
    SmsMessage,
    SmsMessageType,
    SmsStatus,
    VolunteerEvent,
    VolunteerList,
    VolunteerSignup,
)


async def _sort_orders(db, org_id) -> dict[str, int | None]:
    result = await db.execute(
        select(VolunteerEvent.slug, VolunteerEvent.sort_order)
        .where(VolunteerEvent.organization_id == org_id)
        .execution_options(populate_existing=True)
    )
    return dict(result.all())


async def _positions(db, event_id) -> dict[str, int]:
    result = await db.execute(
        select(VolunteerList.title, VolunteerList.position).where(VolunteerList.event_id == event_id)
    )
    return dict(result.all())


class TestAccess:
    async def test_member_cannot_reorder(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "vol@example.com", role=OrgRole.member)

        response = await client.post(
            "/admin/events/reorder",
            json={"eventIds": []},
            headers=auth_headers("vol@example.com", org.public_id),
        )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "INSUFFICIENT_ROLE"

    async def test_non_member_has_no_org(self, client, factory, auth_headers):
        org = await factory.org()

        response = await client.post(
            "/admin/events/reorder",
            json={"eventIds": []},
            headers=auth_headers("stranger@example.com", org.public_id),
        )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "NO_ORGANIZATION"

    async def test_admin_is_allowed(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "admin@example.com", role=OrgRole.admin)

        response = await client.post(
            "/admin/events/reorder",
            json={"eventIds": []},
            headers=auth_headers("admin@example.com", org.public_id),
        )

        assert response.status_code == 200
        assert response.json()["updated"] == 0


class TestDuplicate:
    async def test_duplicate_copies_lists_not_signups(self, client, db_session, factory, auth_headers, tomorrow):
        org = await factory.org()
        event = await factory.event(org, slug="easter", title="Easter", event_date=tomorrow)
        greeters = await factory.volunteer_list(event, title="Greeters", position=0, max_slots=4)
        await factory.volunteer_list(event, title="Parking", position=1, is_locked=True)
        await factory.signup(greeters)

        response = await client.post(
            "/admin/duplicate-event",
            json={"eventId": str(event.id)},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["lists_copied"] == 2
        assert body["event"]["title"] == "Easter (Copy)"
        assert body["event"]["slug"].startswith("easter-copy-")
        assert body["event"]["event_date"] == tomorrow.isoformat()

        copy_id = UUID(body["event"]["id"])
        lists = (
            await db_session.execute(
                select(VolunteerList).where(VolunteerList.event_id == copy_id).order_by(VolunteerList.position)
            )
        ).scalars().all()
        assert [(vl.title, vl.max_slots, vl.is_locked) for vl in lists] == [
            ("Greeters", 4, False),
            ("Parking", None, True),
        ]
        copied_signups = await db_session.execute(
            select(VolunteerSignup.id).where(VolunteerSignup.list_id.in_([vl.id for vl in lists]))
        )
        assert copied_signups.all() == []

    async def test_duplicate_foreign_event_is_404(self, client, factory, auth_headers):
        org = await factory.org()
        other = await factory.org(owner_email="other@example.com", name="Other")
        event = await factory.event(other)

        response = await client.post(
            "/admin/duplicate-event",
            json={"eventId": str(event.id)},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "EVENT_NOT_FOUND"


class TestReorder:
    async def test_reorder_events(self, client, db_session, factory, auth_headers):
        org = await factory.org()
        a = await factory.event(org, slug="a")
        b = await factory.event(org, slug="b")
        c = await factory.event(org, slug="c")

        response = await client.post(
            "/admin/events/reorder",
            json={"eventIds": [str(c.id), str(a.id), str(b.id)]},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        assert response.json()["updated"] == 3
        assert await _sort_orders(db_session, org.id) == {"c": 0, "a": 1, "b": 2}

    async def test_foreign_event_changes_nothing(self, client, db_session, factory, auth_headers):
        org = await factory.org()
        other = await factory.org(owner_email="other@example.com", name="Other")
        a = await factory.event(org, slug="a", sort_order=5)
        b = await factory.event(org, slug="b", sort_order=6)
        foreign = await factory.event(other, slug="x", sort_order=9)

        response = await client.post(
            "/admin/events/reorder",
            json={"eventIds": [str(b.id), str(a.id), str(foreign.id)]},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 404
        assert await _sort_orders(db_session, org.id) == {"a": 5, "b": 6}
        assert await _sort_orders(db_session, other.id) == {"x": 9}

    async def test_repeated_id_is_400(self, client, factory, auth_headers):
        org = await factory.org()
        a = await factory.event(org, slug="a")

        response = await client.post(
            "/admin/events/reorder",
            json={"eventIds": [str(a.id), str(a.id)]},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "DUPLICATE_IDS"

    async def test_reorder_lists(self, client, db_session, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)
        first = await factory.volunteer_list(event, title="First", position=0)
        second = await factory.volunteer_list(event, title="Second", position=1)

        response = await client.post(
            "/admin/lists/reorder",
            json={"listIds": [str(second.id), str(first.id)]},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        assert await _positions(db_session, event.id) == {"Second": 0, "First": 1}

    async def test_unknown_list_changes_nothing(self, client, db_session, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)
        first = await factory.volunteer_list(event, title="First", position=0)
        second = await factory.volunteer_list(event, title="Second", position=1)

        response = await client.post(
            "/admin/lists/reorder",
            json={"listIds": [str(second.id), str(first.id), str(uuid4())]},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "LIST_NOT_FOUND"
        assert await _positions(db_session, event.id) == {"First": 0, "Second": 1}


class TestLockAll:
    async def test_lock_and_unlock(self, client, db_session, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)
        other_event = await factory.event(org, slug="other")
        await factory.volunteer_list(event, title="A")
        await factory.volunteer_list(event, title="B", position=1)
        untouched = await factory.volunteer_list(other_event, title="C")
        headers = auth_headers("owner@example.com", org.public_id)

        locked = await client.post(
            "/admin/lists/lock-all", json={"eventId": str(event.id), "locked": True}, headers=headers
        )

        assert locked.status_code == 200
        assert locked.json() == {"message": "All lists locked successfully", "updated": 2}
        result = await db_session.execute(
            select(VolunteerList.title, VolunteerList.is_locked).execution_options(populate_existing=True)
        )
        assert dict(result.all()) == {"A": True, "B": True, "C": False}

        unlocked = await client.post(
            "/admin/lists/lock-all", json={"eventId": str(event.id), "locked": False}, headers=headers
        )
        assert unlocked.json()["message"] == "All lists unlocked successfully"
        assert untouched.is_locked is False


class TestEvents:
    async def test_create_event(self, client, factory, auth_headers, tomorrow):
        org = await factory.org()

        response = await client.post(
            "/admin/events",
            json={"slug": " Easter-Brunch ", "title": "Easter Brunch", "eventDate": tomorrow.isoformat()},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["slug"] == "easter-brunch"
        assert body["organization_id"] == str(org.id)
        assert body["event_date"] == tomorrow.isoformat()
        assert body["is_active"] is True

    async def test_duplicate_slug_is_409(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.event(org, slug="easter")

        response = await client.post(
            "/admin/events",
            json={"slug": "easter", "title": "Easter again"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "EVENT_SLUG_TAKEN"

    async def test_same_slug_in_other_org_is_allowed(self, client, factory, auth_headers):
        org = await factory.org()
        other = await factory.org(owner_email="other@example.com", name="Other")
        await factory.event(other, slug="easter")

        response = await client.post(
            "/admin/events",
            json={"slug": "easter", "title": "Easter"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 201

    async def test_invalid_slug_is_400(self, client, factory, auth_headers):
        org = await factory.org()

        response = await client.post(
            "/admin/events",
            json={"slug": "easter brunch!", "title": "Easter"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_INPUT"

    async def test_list_events_order_and_window(self, client, factory, auth_headers, tomorrow):
        org = await factory.org()
        yesterday = utcnow().date() - timedelta(days=1)
        await factory.event(org, slug="past", event_date=yesterday)
        await factory.event(org, slug="dated", event_date=tomorrow)
        await factory.event(org, slug="undated")
        await factory.event(org, slug="pinned", event_date=tomorrow + timedelta(days=7), sort_order=0)

        response = await client.get("/admin/events", headers=auth_headers("owner@example.com", org.public_id))

        assert response.status_code == 200
        assert [e["slug"] for e in response.json()] == ["pinned", "undated", "dated"]

    async def test_member_cannot_create(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.member(org, "vol@example.com")

        response = await client.post(
            "/admin/events",
            json={"slug": "easter", "title": "Easter"},
            headers=auth_headers("vol@example.com", org.public_id),
        )

        assert response.status_code == 403

    async def test_update_only_sent_fields(self, client, factory, auth_headers, tomorrow):
        org = await factory.org()
        event = await factory.event(org, slug="easter", title="Easter", event_date=tomorrow)

        response = await client.patch(
            "/admin/events",
            json={"id": str(event.id), "title": "Easter Sunday", "eventDate": None},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Easter Sunday"
        assert body["event_date"] is None
        assert body["slug"] == "easter"
        assert body["is_active"] is True

    async def test_update_to_taken_slug_is_409(self, client, factory, auth_headers):
        org = await factory.org()
        await factory.event(org, slug="easter")
        event = await factory.event(org, slug="christmas")

        response = await client.patch(
            "/admin/events",
            json={"id": str(event.id), "slug": "easter"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 409

    async def test_update_foreign_event_is_404(self, client, factory, auth_headers):
        org = await factory.org()
        other = await factory.org(owner_email="other@example.com", name="Other")
        event = await factory.event(other, title="Theirs")

        response = await client.patch(
            "/admin/events",
            json={"id": str(event.id), "title": "Mine"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 404
        assert event.title == "Theirs"

    async def test_delete_event_removes_lists_and_signups(self, client, db_session, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)
        volunteer_list = await factory.volunteer_list(event)
        await factory.signup(volunteer_list)

        response = await client.request(
            "DELETE",
            "/admin/events",
            json={"id": str(event.id)},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        assert await db_session.scalar(select(func.count(VolunteerEvent.id))) == 0
        assert await db_session.scalar(select(func.count(VolunteerList.id))) == 0
        assert await db_session.scalar(select(func.count(VolunteerSignup.id))) == 0

    async def test_delete_unknown_event_is_404(self, client, factory, auth_headers):
        org = await factory.org()

        response = await client.request(
            "DELETE",
            "/admin/events",
            json={"id": str(uuid4())},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 404


class TestLists:
    async def test_create_list_takes_next_position(self, client, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)
        await factory.volunteer_list(event, title="Greeters", position=3)

        response = await client.post(
            "/admin/lists",
            json={"eventId": str(event.id), "title": "Parking", "maxSlots": 2},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["position"] == 4
        assert body["max_slots"] == 2
        assert body["is_locked"] is False
        assert body["signup_count"] == 0

    async def test_first_list_starts_at_zero(self, client, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)

        response = await client.post(
            "/admin/lists",
            json={"eventId": str(event.id), "title": "Greeters"},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.json()["position"] == 0

    async def test_zero_slots_is_400(self, client, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)

        response = await client.post(
            "/admin/lists",
            json={"eventId": str(event.id), "title": "Greeters", "maxSlots": 0},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 400

    async def test_list_lists_counts_active_signups(self, client, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)
        greeters = await factory.volunteer_list(event, title="Greeters", position=0)
        await factory.volunteer_list(event, title="Parking", position=1)
        await factory.signup(greeters, name="Ada")
        await factory.signup(greeters, name="Bo", position=1, cancelled_at=utcnow())

        response = await client.get(
            "/admin/lists",
            params={"event_id": str(event.id)},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        assert [(vl["title"], vl["signup_count"]) for vl in response.json()] == [
            ("Greeters", 1),
            ("Parking", 0),
        ]

    async def test_list_lists_requires_event(self, client, factory, auth_headers):
        org = await factory.org()

        response = await client.get("/admin/lists", headers=auth_headers("owner@example.com", org.public_id))

        assert response.status_code == 400

    async def test_update_list(self, client, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)
        volunteer_list = await factory.volunteer_list(event, title="Greeters", max_slots=4)

        response = await client.patch(
            "/admin/lists",
            json={"id": str(volunteer_list.id), "maxSlots": None, "isLocked": True},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Greeters"
        assert body["max_slots"] is None
        assert body["is_locked"] is True

    async def test_delete_list(self, client, db_session, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)
        keep = await factory.volunteer_list(event, title="Keep")
        drop = await factory.volunteer_list(event, title="Drop", position=1)
        await factory.signup(drop)

        response = await client.request(
            "DELETE",
            "/admin/lists",
            json={"id": str(drop.id)},
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        remaining = (await db_session.execute(select(VolunteerList.id))).scalars().all()
        assert remaining == [keep.id]
        assert await db_session.scalar(select(func.count(VolunteerSignup.id))) == 0


class TestListSignups:
    async def test_roster_reports_reminder_status(self, client, db_session, factory, auth_headers):
        org = await factory.org()
        event = await factory.event(org)
        volunteer_list = await factory.volunteer_list(event)
        now = utcnow()

        async def add(name: str, minutes_ago: int, **kwargs) -> VolunteerSignup:
            return await factory.signup(
                volunteer_list, name=name, created_at=now - timedelta(minutes=minutes_ago), **kwargs
            )

        await add("NoPhone", 6)
        await add("OptedOut", 5, phone="+15552340001", sms_consent=True, sms_opted_out=True)
        await add("NoConsent", 4, phone="+15552340002")
        sent = await add("Sent", 3, phone="+15552340003", sms_consent=True, reminder_count=1)
        failed = await add("Failed", 2, phone="+15552340004", sms_consent=True)
        await add("Pending", 1, phone="+15552340005", sms_consent=True)
        for signup, sms_status, error in ((sent, SmsStatus.sent, None), (failed, SmsStatus.failed, "Out of quota")):
            db_session.add(
                SmsMessage(
                    to_phone=signup.phone,
                    message="Reminder",
                    status=sms_status,
                    message_type=SmsMessageType.reminder,
                    signup_id=signup.id,
                    event_id=event.id,
                    error_message=error,
                    created_at=now,
                )
            )
        await db_session.flush()

        response = await client.get(
            f"/admin/lists/{volunteer_list.id}/signups",
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 200
        signups = response.json()["signups"]
        assert [(s["name"], s["reminder_status"]) for s in signups] == [
            ("Pending", "pending"),
            ("Failed", "failed"),
            ("Sent", "sent"),
            ("NoConsent", "no_consent"),
            ("OptedOut", "opted_out"),
            ("NoPhone", "no_phone"),
        ]
        assert signups[1]["reminder_error"] == "Out of quota"
        assert signups[2]["reminder_count"] == 1

    async def test_foreign_list_is_404(self, client, factory, auth_headers):
        org = await factory.org()
        other = await factory.org(owner_email="other@example.com", name="Other")
        volunteer_list = await factory.volunteer_list(await factory.event(other))

        response = await client.get(
            f"/admin/lists/{volunteer_list.id}/signups",
            headers=auth_headers("owner@example.com", org.public_id),
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "LIST_NOT_FOUND"
