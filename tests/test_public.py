"""
Public booking site: listing, quotes and online bookings without a login
"""
from datetime import timedelta

import pytest

from utils.timezone import get_hotel_today


@pytest.fixture
def today():
    return get_hotel_today()


@pytest.fixture
def stay(today):
    return today + timedelta(days=1), today + timedelta(days=3)


def book(client, unit_id, check_in, check_out, **fields):
    body = {
        "unit_id": unit_id,
        "check_in": check_in.isoformat(),
        "check_out": check_out.isoformat(),
        "guest_name": "Lina Saeed",
        "guest_email": "lina@example.com",
    }
    body.update(fields)
    return client.post("/public/book", json=body)


class TestListing:

    def test_lists_units_without_login(self, client, unit):
        response = client.get("/public/units")
        assert response.status_code == 200
        units = response.json()
        assert len(units) == 1
        assert units[0]["id"] == unit["id"]
        assert units[0]["hotel_name"] == "Palm Residence"
        assert units[0]["city"] == "Riyadh"
        assert units[0]["price_per_night"] == 100.0
        assert units[0]["total"] is None

    def test_units_under_maintenance_are_hidden(self, client, auth_headers, unit):
        client.patch(f"/units/{unit['id']}/status", json={"status": "maintenance"}, headers=auth_headers)
        assert client.get("/public/units").json() == []
        assert client.get(f"/public/units/{unit['id']}").status_code == 404

    def test_search_by_dates(self, client, unit, make_reservation, stay, today):
        check_in, check_out = stay
        free = client.get(
            "/public/units", params={"check_in": check_in.isoformat(), "check_out": check_out.isoformat()}
        ).json()
        assert [(u["nights"], u["total"]) for u in free] == [(2, 200.0)]

        make_reservation(check_in, check_out)
        taken = client.get(
            "/public/units", params={"check_in": check_in.isoformat(), "check_out": check_out.isoformat()}
        ).json()
        assert taken == []

    def test_search_needs_both_dates(self, client, unit, today):
        response = client.get("/public/units", params={"check_in": today.isoformat()})
        assert response.status_code == 400

    def test_filter_by_city(self, client, unit):
        assert len(client.get("/public/units", params={"city": "riyadh"}).json()) == 1
        assert client.get("/public/units", params={"city": "Jeddah"}).json() == []


class TestQuote:

    def test_quote_uses_nightly_rates(self, client, auth_headers, unit, stay):
        check_in, check_out = stay
        client.put(f"/availability/{unit['id']}/{check_in.isoformat()}", json={"price": 160}, headers=auth_headers)

        quote = client.get(
            f"/public/units/{unit['id']}/quote",
            params={"check_in": check_in.isoformat(), "check_out": check_out.isoformat()},
        ).json()
        assert quote["nights"] == 2
        assert quote["total"] == 260.0
        assert quote["available"] is True
        assert [n["price"] for n in quote["nightly"]] == [160.0, 100.0]

    def test_closed_date_is_not_available(self, client, auth_headers, unit, stay):
        check_in, check_out = stay
        client.put(f"/availability/{unit['id']}/{check_in.isoformat()}", json={"available": False}, headers=auth_headers)

        quote = client.get(
            f"/public/units/{unit['id']}/quote",
            params={"check_in": check_in.isoformat(), "check_out": check_out.isoformat()},
        ).json()
        assert quote["available"] is False
        assert quote["closed_dates"] == [check_in.isoformat()]

    def test_past_dates_rejected(self, client, unit, today):
        response = client.get(
            f"/public/units/{unit['id']}/quote",
            params={"check_in": (today - timedelta(days=1)).isoformat(), "check_out": today.isoformat()},
        )
        assert response.status_code == 400


class TestOnlineBooking:

    def test_creates_pending_website_booking(self, client, auth_headers, unit, stay):
        check_in, check_out = stay
        response = book(client, unit["id"], check_in, check_out)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["reference"] == f"RES-{data['reservation_id']:05d}"
        assert data["hotel_name"] == "Palm Residence"
        assert data["nights"] == 2
        assert data["total_amount"] == 200.0

        stored = client.get(f"/reservations/{data['reservation_id']}", headers=auth_headers).json()
        assert stored["source"] == "website"
        assert stored["guest_name"] == "Lina Saeed"
        assert stored["notes"] == "Online booking for Lina Saeed"

        notifications = client.get("/notifications", headers=auth_headers).json()
        assert [n["title"] for n in notifications] == ["New booking"]

    def test_returning_guest_is_matched_by_email(self, client, auth_headers, unit, today):
        first = book(client, unit["id"], today + timedelta(days=1), today + timedelta(days=2)).json()
        second = book(
            client, unit["id"], today + timedelta(days=5), today + timedelta(days=6), guest_email="LINA@example.com"
        ).json()

        guest_ids = {
            client.get(f"/reservations/{r['reservation_id']}", headers=auth_headers).json()["guest_id"]
            for r in (first, second)
        }
        assert len(guest_ids) == 1
        assert len(client.get("/guests", headers=auth_headers).json()) == 1

    def test_total_follows_nightly_rates(self, client, auth_headers, unit, stay):
        check_in, check_out = stay
        client.put(f"/availability/{unit['id']}/{check_in.isoformat()}", json={"price": 150}, headers=auth_headers)
        assert book(client, unit["id"], check_in, check_out).json()["total_amount"] == 250.0

    def test_taken_dates_conflict(self, client, unit, make_reservation, stay):
        check_in, check_out = stay
        make_reservation(check_in, check_out)
        assert book(client, unit["id"], check_in, check_out).status_code == 409

    def test_closed_dates_conflict(self, client, auth_headers, unit, stay):
        check_in, check_out = stay
        client.put(f"/availability/{unit['id']}/{check_in.isoformat()}", json={"price": 0}, headers=auth_headers)
        response = book(client, unit["id"], check_in, check_out)
        assert response.status_code == 409
        assert check_in.isoformat() in response.json()["detail"]

    def test_bad_requests(self, client, unit, stay, today):
        check_in, check_out = stay
        assert book(client, unit["id"], check_in, check_out, guest_email="not-an-email").status_code == 422
        assert book(client, unit["id"], check_out, check_in).status_code == 422
        assert book(client, unit["id"], today - timedelta(days=2), today).status_code == 400
        assert book(client, 9999, check_in, check_out).status_code == 404
