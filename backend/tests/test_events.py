"""Tests for event lifecycle endpoints.

Covers:
- Event create / get / list, derived state in responses
- Transition guard: publish only from DRAFT, cancel only before COMPLETED
- Authorization hook — organizer-only
- Cancellation fan-out and invite-link deactivation
- Significant edits (start time, location) and reconfirmation
"""
from datetime import datetime, timezone, timedelta

from gathering.models.event import Event
from gathering.models.notification import Notification, NotificationType
from gathering.models.rsvp import RSVP
from tests.conftest import create_test_user, create_test_event, rsvp, error_code


def _setup(client):
    organizer = create_test_user(client, name="Organizer")
    other = create_test_user(client, name="Other User")
    return organizer, other


class TestEventCreate:

    def test_create_draft_event(self, client):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"], title="Dinner", publish=False)
        assert event["title"] == "Dinner"
        assert event["state"] == "DRAFT"
        assert event["effective_state"] == "DRAFT"
        assert event["state_label"] == "Draft"

    def test_create_published_event(self, client):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"], capacity=10, waitlist_enabled=True)
        assert event["state"] == "PUBLISHED"
        assert event["capacity"] == 10
        assert event["waitlist_enabled"] is True

    def test_create_rejects_end_before_start(self, client):
        organizer, _ = _setup(client)
        start = datetime.now(timezone.utc) + timedelta(days=2)
        resp = client.post("/api/events/", json={
            "creator_id": organizer["user_id"],
            "title": "Backwards",
            "start_time": start.isoformat(),
            "end_time": (start - timedelta(hours=1)).isoformat(),
        })
        assert resp.status_code == 400
        assert error_code(resp) == "INVALID_END_TIME"

    def test_create_rejects_deadline_after_start(self, client):
        organizer, _ = _setup(client)
        start = datetime.now(timezone.utc) + timedelta(days=2)
        resp = client.post("/api/events/", json={
            "creator_id": organizer["user_id"],
            "title": "Late deadline",
            "start_time": start.isoformat(),
            "rsvp_deadline": (start + timedelta(hours=1)).isoformat(),
        })
        assert resp.status_code == 400
        assert error_code(resp) == "INVALID_RSVP_DEADLINE"

    def test_create_rejects_zero_capacity(self, client):
        organizer, _ = _setup(client)
        resp = client.post("/api/events/", json={
            "creator_id": organizer["user_id"],
            "title": "Nobody",
            "start_time": (datetime.now(timezone.utc) + timedelta(days=2)).isoformat(),
            "capacity": 0,
        })
        assert resp.status_code == 422

    def test_create_unknown_creator(self, client):
        resp = client.post("/api/events/", json={
            "creator_id": "nobody",
            "title": "Ghost",
            "start_time": (datetime.now(timezone.utc) + timedelta(days=2)).isoformat(),
        })
        assert resp.status_code == 404
        assert error_code(resp) == "USER_NOT_FOUND"

    def test_get_event_not_found(self, client):
        resp = client.get("/api/events/does-not-exist")
        assert resp.status_code == 404
        assert error_code(resp) == "EVENT_NOT_FOUND"


class TestDerivedStateEndpoint:

    def test_state_follows_the_clock(self, client, clock):
        organizer, _ = _setup(client)
        start = clock.now + timedelta(hours=3)
        event = create_test_event(
            client, organizer["user_id"], start=start,
            rsvp_deadline=start - timedelta(hours=1),
        )

        resp = client.get(f"/api/events/{event['event_id']}/state")
        assert resp.json()["effective_state"] == "PUBLISHED"
        assert resp.json()["accepting_rsvps"] is True

        clock.now = start - timedelta(minutes=30)
        data = client.get(f"/api/events/{event['event_id']}/state").json()
        assert data["effective_state"] == "CLOSED"
        assert data["state_label"] == "RSVPs Closed"
        assert data["stored_state"] == "PUBLISHED"
        assert data["accepting_rsvps"] is False

        clock.now = start + timedelta(days=1)
        data = client.get(f"/api/events/{event['event_id']}/state").json()
        assert data["effective_state"] == "COMPLETED"
        assert data["can_cancel"] is False
        # Derived states are never written back
        assert client.get(f"/api/events/{event['event_id']}").json()["state"] == "PUBLISHED"


class TestPublish:

    def test_publish_draft(self, client):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"], publish=False)
        resp = client.post(f"/api/events/{event['event_id']}/publish", json={
            "actor_user_id": organizer["user_id"],
        })
        assert resp.status_code == 200
        assert resp.json()["state"] == "PUBLISHED"

    def test_publish_twice_rejected(self, client):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"])
        resp = client.post(f"/api/events/{event['event_id']}/publish", json={
            "actor_user_id": organizer["user_id"],
        })
        assert resp.status_code == 409
        assert error_code(resp) == "INVALID_STATE_TRANSITION"

    def test_publish_non_organizer_forbidden(self, client):
        organizer, other = _setup(client)
        event = create_test_event(client, organizer["user_id"], publish=False)
        resp = client.post(f"/api/events/{event['event_id']}/publish", json={
            "actor_user_id": other["user_id"],
        })
        assert resp.status_code == 403
        assert error_code(resp) == "NOT_EVENT_ORGANIZER"


class TestCancel:

    def test_cancel_notifies_every_respondent(self, client, db):
        organizer, other = _setup(client)
        third = create_test_user(client, name="Third")
        fourth = create_test_user(client, name="Fourth")
        event = create_test_event(client, organizer["user_id"], title="Picnic")
        rsvp(client, event["event_id"], other["user_id"], "YES")
        rsvp(client, event["event_id"], third["user_id"], "NO")
        rsvp(client, event["event_id"], fourth["user_id"], "MAYBE")

        resp = client.post(f"/api/events/{event['event_id']}/cancel", json={
            "actor_user_id": organizer["user_id"],
            "message": "Rain expected.",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["event"]["state"] == "CANCELLED"
        assert data["notified_count"] == 3

        notes = db.query(Notification).filter(
            Notification.event_id == event["event_id"],
            Notification.type == NotificationType.event_cancelled,
        ).all()
        assert sorted(n.user_id for n in notes) == sorted(
            [other["user_id"], third["user_id"], fourth["user_id"]]
        )
        assert all(n.message == '"Picnic" has been cancelled. Rain expected.' for n in notes)

    def test_cancel_without_rsvps_sends_nothing(self, client, db):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"])
        resp = client.post(f"/api/events/{event['event_id']}/cancel", json={
            "actor_user_id": organizer["user_id"],
        })
        assert resp.json()["notified_count"] == 0
        assert db.query(Notification).count() == 0

    def test_cancel_is_terminal(self, client):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"], publish=False)
        client.post(f"/api/events/{event['event_id']}/cancel", json={"actor_user_id": organizer["user_id"]})

        again = client.post(f"/api/events/{event['event_id']}/cancel", json={"actor_user_id": organizer["user_id"]})
        assert again.status_code == 409
        assert error_code(again) == "INVALID_STATE_TRANSITION"

        publish = client.post(f"/api/events/{event['event_id']}/publish", json={"actor_user_id": organizer["user_id"]})
        assert publish.status_code == 409
        assert error_code(publish) == "INVALID_STATE_TRANSITION"

    def test_cannot_cancel_completed_event(self, client, clock):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"], start=clock.now + timedelta(hours=1))
        clock.advance(days=1)
        resp = client.post(f"/api/events/{event['event_id']}/cancel", json={"actor_user_id": organizer["user_id"]})
        assert resp.status_code == 409
        assert error_code(resp) == "INVALID_STATE_TRANSITION"
        assert "Completed" in resp.json()["detail"]["message"]

    def test_can_cancel_ongoing_event(self, client, clock):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"], start=clock.now + timedelta(hours=1))
        clock.advance(hours=2)
        resp = client.post(f"/api/events/{event['event_id']}/cancel", json={"actor_user_id": organizer["user_id"]})
        assert resp.status_code == 200

    def test_cancel_non_organizer_forbidden(self, client):
        organizer, other = _setup(client)
        event = create_test_event(client, organizer["user_id"])
        resp = client.post(f"/api/events/{event['event_id']}/cancel", json={"actor_user_id": other["user_id"]})
        assert resp.status_code == 403

    def test_cancel_deactivates_invite_links(self, client):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"])
        link = client.post(f"/api/events/{event['event_id']}/invite-links", json={
            "actor_user_id": organizer["user_id"],
        })
        assert link.status_code == 201
        token = link.json()["token"]
        assert client.get(f"/api/invitations/{token}").status_code == 200

        client.post(f"/api/events/{event['event_id']}/cancel", json={"actor_user_id": organizer["user_id"]})

        resp = client.get(f"/api/invitations/{token}")
        assert resp.status_code == 409
        assert error_code(resp) == "INVITE_LINK_INACTIVE"

    def test_cancelled_events_hidden_from_default_listing(self, client):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"], title="Will Cancel")
        client.post(f"/api/events/{event['event_id']}/cancel", json={"actor_user_id": organizer["user_id"]})

        titles = [e["title"] for e in client.get("/api/events/").json()]
        assert "Will Cancel" not in titles
        titles = [e["title"] for e in client.get("/api/events/?include_cancelled=true").json()]
        assert "Will Cancel" in titles


class TestSignificantEdits:

    def _event_with_three_rsvps(self, client):
        organizer, other = _setup(client)
        third = create_test_user(client, name="Third")
        fourth = create_test_user(client, name="Fourth")
        start = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=7)
        event = create_test_event(client, organizer["user_id"], start=start, location="Town hall")
        rsvp(client, event["event_id"], other["user_id"], "YES")
        rsvp(client, event["event_id"], third["user_id"], "NO")
        rsvp(client, event["event_id"], fourth["user_id"], "MAYBE")
        return organizer, event, start

    def test_start_time_change_asks_for_reconfirmation(self, client, db):
        organizer, event, start = self._event_with_three_rsvps(client)
        new_start = start + timedelta(hours=2)

        resp = client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
            json={"start_time": new_start.isoformat()},
        )
        assert resp.status_code == 200
        assert resp.json()["notified_count"] == 3

        notes = db.query(Notification).filter(Notification.type == NotificationType.event_updated).all()
        assert len(notes) == 3
        assert len({n.user_id for n in notes}) == 3
        assert "date/time" in notes[0].message

        rsvps = db.query(RSVP).filter(RSVP.event_id == event["event_id"]).all()
        assert len(rsvps) == 3
        assert all(r.needs_reconfirmation for r in rsvps)

    def test_location_change_is_significant(self, client, db):
        organizer, event, start = self._event_with_three_rsvps(client)
        resp = client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
            json={"location": "Park pavilion"},
        )
        assert resp.json()["notified_count"] == 3
        note = db.query(Notification).first()
        assert "location" in note.message
        assert "date/time" not in note.message

    def test_notes_change_is_not_significant(self, client, db):
        organizer, event, start = self._event_with_three_rsvps(client)
        resp = client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
            json={"notes": "Bring a jacket", "title": "Renamed"},
        )
        assert resp.status_code == 200
        assert resp.json()["notified_count"] == 0
        assert resp.json()["event"]["notes"] == "Bring a jacket"
        assert db.query(Notification).count() == 0
        assert not any(r.needs_reconfirmation for r in db.query(RSVP).all())

    def test_same_location_is_not_a_change(self, client, db):
        organizer, event, start = self._event_with_three_rsvps(client)
        resp = client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
            json={"location": "Town hall", "start_time": start.isoformat()},
        )
        assert resp.json()["notified_count"] == 0
        assert db.query(Notification).count() == 0

    def test_draft_edits_never_notify(self, client, db):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"], publish=False, location="A")
        resp = client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
            json={"location": "B"},
        )
        assert resp.json()["notified_count"] == 0
        assert resp.json()["event"]["location"] == "B"
        assert db.query(Notification).count() == 0

    def test_reconfirming_clears_flag(self, client, db):
        organizer, other = _setup(client)
        event = create_test_event(client, organizer["user_id"], location="A")
        rsvp(client, event["event_id"], other["user_id"], "YES")
        client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
            json={"location": "B"},
        )
        resp = rsvp(client, event["event_id"], other["user_id"], "YES")
        assert resp.status_code == 200
        assert resp.json()["needs_reconfirmation"] is False

    def test_edit_non_organizer_forbidden(self, client):
        organizer, other = _setup(client)
        event = create_test_event(client, organizer["user_id"])
        resp = client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={other['user_id']}",
            json={"title": "Hijacked"},
        )
        assert resp.status_code == 403

    def test_edit_cancelled_event_rejected(self, client):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"])
        client.post(f"/api/events/{event['event_id']}/cancel", json={"actor_user_id": organizer["user_id"]})
        resp = client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
            json={"title": "Back from the dead"},
        )
        assert resp.status_code == 409
        assert error_code(resp) == "INVALID_STATE_TRANSITION"

    def test_empty_edit_rejected(self, client):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"])
        resp = client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
            json={},
        )
        assert resp.status_code == 400
        assert error_code(resp) == "NO_FIELDS_TO_UPDATE"

    def test_clearing_required_fields_rejected(self, client):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"], waitlist_enabled=True)
        for field in ("title", "waitlist_enabled"):
            resp = client.patch(
                f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
                json={field: None},
            )
            assert resp.status_code == 400
            assert error_code(resp) == "INVALID_FIELD_VALUE"
        fetched = client.get(f"/api/events/{event['event_id']}").json()
        assert fetched["title"] == "Test Event"
        assert fetched["waitlist_enabled"] is True

    def test_edit_stamps_request_time(self, client, db, clock):
        organizer, _ = _setup(client)
        event = create_test_event(client, organizer["user_id"])
        clock.advance(hours=5)
        client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
            json={"notes": "Parking behind the hall"},
        )
        assert db.get(Event, event["event_id"]).updated_at == clock.now

    def test_edit_event_completed_by_time_rejected(self, client, db, clock):
        organizer, other = _setup(client)
        event = create_test_event(client, organizer["user_id"], start=clock.now + timedelta(hours=1))
        rsvp(client, event["event_id"], other["user_id"])
        clock.advance(days=1)
        resp = client.patch(
            f"/api/events/{event['event_id']}?actor_user_id={organizer['user_id']}",
            json={"start_time": (clock.now + timedelta(days=3)).isoformat()},
        )
        assert resp.status_code == 409
        assert error_code(resp) == "INVALID_STATE_TRANSITION"
        assert db.query(Notification).count() == 0
