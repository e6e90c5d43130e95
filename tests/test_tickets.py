"""Ticket purchase, QR issuance, listing and gate validation."""

import base64
from datetime import datetime, timedelta, timezone

import pytest

from event.cache import EventCache
from tickets.cache import TicketCache
from tickets.qr import QRCodeEncoder
from conftest import bearer, drain, register

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def live_event(create_event):
    return create_event(name="Live", end_offset=timedelta(hours=1))


@pytest.fixture
def purchase(client, attendee):
    def _purchase(event_id, headers=None):
        return client.post(
            "/api/ticket", json={"eventId": event_id}, headers=headers or attendee["headers"]
        )

    return _purchase


class TestPurchase:
    def test_purchase_returns_ticket_with_qrcode(self, purchase, live_event, attendee):
        resp = purchase(live_event["id"])
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Ticket created successfully"
        ticket = body["data"]
        assert ticket["eventId"] == live_event["id"]
        assert ticket["userId"] == attendee["id"]
        assert ticket["entered"] is False
        assert ticket["event"]["name"] == "Live"
        assert base64.b64decode(ticket["qrcode"]).startswith(PNG_SIGNATURE)

    def test_qrcode_encodes_ticket_and_owner(self, purchase, live_event, attendee, settings):
        ticket = purchase(live_event["id"]).json()["data"]
        expected = QRCodeEncoder(settings.qr_level, settings.qr_size).encode(ticket["id"], attendee["id"])
        assert base64.b64decode(ticket["qrcode"]) == expected

    def test_purchase_for_ended_event_rejected(self, purchase, create_event):
        ended = create_event(start_offset=timedelta(days=-2), end_offset=timedelta(minutes=-1))
        resp = purchase(ended["id"])
        assert resp.status_code == 400
        assert resp.json() == {"status": "fail", "message": "event has ended"}

    def test_purchase_for_missing_event(self, purchase):
        resp = purchase(9999)
        assert resp.status_code == 400
        assert resp.json()["status"] == "fail"

    @pytest.mark.parametrize("body", [{}, {"eventId": "abc"}, {"eventId": 0}])
    def test_purchase_invalid_body(self, client, attendee, body):
        resp = client.post("/api/ticket", json=body, headers=attendee["headers"])
        assert resp.status_code == 422

    def test_purchase_populates_caches(self, purchase, live_event, attendee, app, redis_client):
        ticket = purchase(live_event["id"]).json()["data"]
        drain(app)

        cache = TicketCache(redis_client)
        qr_ttl = redis_client.ttl(cache.qrcode_key(ticket["id"], attendee["id"]))
        ticket_ttl = redis_client.ttl(cache.ticket_key(ticket["id"], attendee["id"]))
        assert 0 < qr_ttl <= 3600
        assert 0 < ticket_ttl <= 3600
        assert cache.get_qrcode(ticket["id"], attendee["id"]) == ticket["qrcode"]

    def test_purchase_invalidates_ticket_list_and_event(self, client, purchase, live_event, attendee, app, redis_client):
        client.get("/api/ticket", headers=attendee["headers"])
        client.get(f"/api/event/{live_event['id']}", headers=attendee["headers"])
        drain(app)
        cache = TicketCache(redis_client)
        assert redis_client.get(cache.list_key(attendee["id"])) is not None

        purchase(live_event["id"])
        drain(app)
        assert redis_client.get(cache.list_key(attendee["id"])) is None
        assert redis_client.get(EventCache.key(live_event["id"])) is None

        event = client.get(f"/api/event/{live_event['id']}", headers=attendee["headers"]).json()["data"]
        assert event["totalTicketsPurchased"] == 1


class TestGetOne:
    def test_get_ticket_with_qrcode(self, client, purchase, live_event, attendee, app):
        issued = purchase(live_event["id"]).json()["data"]
        drain(app)

        resp = client.get(f"/api/ticket/{issued['id']}", headers=attendee["headers"])
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["ticket"]["id"] == issued["id"]
        assert data["qrcode"] == issued["qrcode"]

    def test_expired_qrcode_reported_not_regenerated(self, client, purchase, live_event, attendee, app, redis_client):
        issued = purchase(live_event["id"]).json()["data"]
        drain(app)
        cache = TicketCache(redis_client)
        redis_client.delete(cache.qrcode_key(issued["id"], attendee["id"]))

        resp = client.get(f"/api/ticket/{issued['id']}", headers=attendee["headers"])
        assert resp.status_code == 400
        body = resp.json()
        assert body["status"] == "fail"
        assert body["message"] == "QR code expired"
        assert body["data"]["ticket"]["id"] == issued["id"]
        assert body["data"]["message"] == "the QR code for this ticket is no longer available"

        drain(app)
        assert redis_client.get(cache.qrcode_key(issued["id"], attendee["id"])) is None

    def test_ticket_survives_cache_loss(self, client, purchase, live_event, attendee, app, redis_client):
        issued = purchase(live_event["id"]).json()["data"]
        drain(app)
        cache = TicketCache(redis_client)
        redis_client.delete(cache.ticket_key(issued["id"], attendee["id"]))

        resp = client.get(f"/api/ticket/{issued['id']}", headers=attendee["headers"])
        assert resp.status_code == 200
        assert resp.json()["data"]["ticket"]["entered"] is False

        drain(app)
        assert redis_client.get(cache.ticket_key(issued["id"], attendee["id"])) is not None

    def test_other_users_ticket_not_found(self, client, purchase, live_event, app):
        issued = purchase(live_event["id"]).json()["data"]
        drain(app)
        other = register(client, "other@example.com")

        resp = client.get(f"/api/ticket/{issued['id']}", headers=bearer(other["token"]))
        assert resp.status_code == 400

    def test_read_right_after_purchase(self, client, purchase, live_event, attendee):
        issued = purchase(live_event["id"]).json()["data"]
        resp = client.get(f"/api/ticket/{issued['id']}", headers=attendee["headers"])
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["ticket"]["id"] == issued["id"]
        assert data["qrcode"] == issued["qrcode"]

    def test_qrcode_kept_when_cache_tasks_are_dropped(self, client, purchase, live_event, attendee, app):
        app.state.cache_queue.shutdown()

        issued = purchase(live_event["id"]).json()["data"]
        resp = client.get(f"/api/ticket/{issued['id']}", headers=attendee["headers"])
        assert resp.status_code == 200
        assert resp.json()["data"]["qrcode"] == issued["qrcode"]

    def test_ended_event_reported(self, client, purchase, live_event, attendee, app):
        issued = purchase(live_event["id"]).json()["data"]
        past = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()
        client.put(f"/api/event/{live_event['id']}", json={"endDate": past}, headers=attendee["headers"])
        drain(app)

        resp = client.get(f"/api/ticket/{issued['id']}", headers=attendee["headers"])
        assert resp.status_code == 400
        assert resp.json()["message"] == "QR code expired"
        assert resp.json()["data"]["message"] == "event has ended"


class TestGetMany:
    def test_lists_own_tickets(self, client, purchase, live_event, attendee):
        first = purchase(live_event["id"]).json()["data"]
        second = purchase(live_event["id"]).json()["data"]
        other = register(client, "other@example.com")
        purchase(live_event["id"], headers=bearer(other["token"]))

        resp = client.get("/api/ticket", headers=attendee["headers"])
        assert resp.status_code == 200
        ids = {t["id"] for t in resp.json()["data"]}
        assert ids == {first["id"], second["id"]}

    def test_list_cached_with_fixed_ttl(self, client, purchase, live_event, attendee, app, redis_client, settings):
        purchase(live_event["id"])
        drain(app)
        client.get("/api/ticket", headers=attendee["headers"])
        drain(app)

        key = TicketCache.list_key(attendee["id"])
        ttl = redis_client.ttl(key)
        assert settings.ticket_list_cache_seconds - 5 < ttl <= settings.ticket_list_cache_seconds

    def test_list_served_from_cache(self, client, attendee, app, redis_client):
        client.get("/api/ticket", headers=attendee["headers"])
        drain(app)
        assert redis_client.get(TicketCache.list_key(attendee["id"])) == "[]"
        assert client.get("/api/ticket", headers=attendee["headers"]).json()["data"] == []


class TestValidate:
    def test_validate_marks_entered(self, client, purchase, live_event, attendee):
        issued = purchase(live_event["id"]).json()["data"]
        resp = client.post(
            "/api/ticket/validate",
            json={"ticketId": issued["id"], "ownerId": attendee["id"]},
            headers=attendee["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Welcome to the show"
        assert resp.json()["data"]["entered"] is True

    def test_validate_twice_is_safe(self, client, purchase, live_event, attendee):
        issued = purchase(live_event["id"]).json()["data"]
        body = {"ticketId": issued["id"], "ownerId": attendee["id"]}
        first = client.post("/api/ticket/validate", json=body, headers=attendee["headers"])
        second = client.post("/api/ticket/validate", json=body, headers=attendee["headers"])
        assert first.status_code == second.status_code == 200
        assert second.json()["data"]["entered"] is True

    def test_validate_by_gate_staff(self, client, purchase, live_event, attendee, manager):
        issued = purchase(live_event["id"]).json()["data"]
        resp = client.post(
            "/api/ticket/validate",
            json={"ticketId": issued["id"], "ownerId": attendee["id"]},
            headers=manager["headers"],
        )
        assert resp.status_code == 200

    def test_validate_wrong_owner(self, client, purchase, live_event, attendee):
        issued = purchase(live_event["id"]).json()["data"]
        resp = client.post(
            "/api/ticket/validate",
            json={"ticketId": issued["id"], "ownerId": attendee["id"] + 100},
            headers=attendee["headers"],
        )
        assert resp.status_code == 400

    def test_validate_invalid_body(self, client, attendee):
        resp = client.post("/api/ticket/validate", json={"ticketId": 1}, headers=attendee["headers"])
        assert resp.status_code == 422

    def test_validate_invalidates_caches(self, client, purchase, live_event, attendee, app, redis_client):
        issued = purchase(live_event["id"]).json()["data"]
        client.get("/api/ticket", headers=attendee["headers"])
        client.get(f"/api/event/{live_event['id']}", headers=attendee["headers"])
        drain(app)
        cache = TicketCache(redis_client)
        assert redis_client.get(cache.ticket_key(issued["id"], attendee["id"])) is not None

        client.post(
            "/api/ticket/validate",
            json={"ticketId": issued["id"], "ownerId": attendee["id"]},
            headers=attendee["headers"],
        )
        drain(app)
        assert redis_client.get(cache.ticket_key(issued["id"], attendee["id"])) is None
        assert redis_client.get(cache.list_key(attendee["id"])) is None
        assert redis_client.get(EventCache.key(live_event["id"])) is None
        # The QR code is left alone.
        assert redis_client.get(cache.qrcode_key(issued["id"], attendee["id"])) is not None

        fresh = client.get(f"/api/ticket/{issued['id']}", headers=attendee["headers"]).json()["data"]
        assert fresh["ticket"]["entered"] is True
        event = client.get(f"/api/event/{live_event['id']}", headers=attendee["headers"]).json()["data"]
        assert event["totalTicketsEntered"] == 1


class TestEventChanges:
    def test_earlier_end_shortens_qrcode_ttl(self, client, purchase, create_event, attendee, app, redis_client):
        event = create_event(end_offset=timedelta(hours=2))
        issued = purchase(event["id"]).json()["data"]
        client.get("/api/ticket", headers=attendee["headers"])
        drain(app)
        cache = TicketCache(redis_client)
        qr_key = cache.qrcode_key(issued["id"], attendee["id"])
        assert redis_client.ttl(qr_key) > 3600

        new_end = (datetime.now(timezone.utc) + timedelta(seconds=60)).isoformat()
        resp = client.put(f"/api/event/{event['id']}", json={"endDate": new_end}, headers=attendee["headers"])
        assert resp.status_code == 200
        drain(app)

        assert 0 < redis_client.ttl(qr_key) <= 60
        assert redis_client.get(cache.ticket_key(issued["id"], attendee["id"])) is None
        assert redis_client.get(cache.list_key(attendee["id"])) is None

        fresh = client.get(f"/api/ticket/{issued['id']}", headers=attendee["headers"]).json()["data"]
        assert parse_iso(fresh["ticket"]["event"]["endDate"]) == parse_iso(new_end)

    def test_deleting_event_drops_ticket_entries(self, client, purchase, live_event, attendee, app, redis_client):
        issued = purchase(live_event["id"]).json()["data"]
        drain(app)
        cache = TicketCache(redis_client)
        assert redis_client.get(cache.qrcode_key(issued["id"], attendee["id"])) is not None

        assert client.delete(f"/api/event/{live_event['id']}", headers=attendee["headers"]).status_code == 204
        drain(app)

        assert redis_client.get(cache.qrcode_key(issued["id"], attendee["id"])) is None
        assert redis_client.get(cache.ticket_key(issued["id"], attendee["id"])) is None
        assert client.get("/api/ticket", headers=attendee["headers"]).json()["data"] == []


def parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
