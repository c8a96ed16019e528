"""
Nightly rates and the availability grid through the API
"""
from datetime import timedelta

import pytest

from utils.timezone import get_hotel_today


@pytest.fixture
def today():
    return get_hotel_today()


def grid(client, headers, start, end, **params):
    response = client.get(
        "/availability",
        params={"from": start.isoformat(), "to": end.isoformat(), **params},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


def set_rate(client, headers, unit_id, day, **body):
    return client.put(f"/availability/{unit_id}/{day.isoformat()}", json=body, headers=headers)


class TestGrid:

    def test_two_weeks_at_base_price_by_default(self, client, auth_headers, unit, today):
        data = client.get("/availability", headers=auth_headers).json()
        assert data["date_from"] == today.isoformat()
        assert data["date_to"] == (today + timedelta(days=13)).isoformat()

        row = data["units"][0]
        assert row["unit_id"] == unit["id"]
        assert row["base_price"] == 100.0
        assert len(row["days"]) == 14
        assert all(d["available"] and d["price"] == 100.0 and d["price_source"] == "base" for d in row["days"])

    def test_booked_nights_are_taken(self, client, auth_headers, unit, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        days = grid(client, auth_headers, today, today + timedelta(days=3))["units"][0]["days"]

        assert [d["reservation_id"] for d in days] == [None, booking["id"], booking["id"], None]
        assert [d["available"] for d in days] == [True, False, False, True]

    def test_unit_out_of_service(self, client, auth_headers, unit, today):
        client.patch(f"/units/{unit['id']}/status", json={"status": "maintenance"}, headers=auth_headers)
        days = grid(client, auth_headers, today, today + timedelta(days=1))["units"][0]["days"]
        assert [d["available"] for d in days] == [False, False]

    def test_range_limits(self, client, auth_headers, unit, today):
        too_long = client.get(
            "/availability",
            params={"from": today.isoformat(), "to": (today + timedelta(days=100)).isoformat()},
            headers=auth_headers,
        )
        assert too_long.status_code == 400

        backwards = client.get(
            "/availability",
            params={"from": today.isoformat(), "to": (today - timedelta(days=1)).isoformat()},
            headers=auth_headers,
        )
        assert backwards.status_code == 400

    def test_other_owner_sees_nothing(self, client, auth_headers, other_headers, unit):
        assert client.get("/availability", headers=other_headers).json()["units"] == []


class TestRates:

    def test_price_override(self, client, auth_headers, unit, today):
        day = today + timedelta(days=5)
        response = set_rate(client, auth_headers, unit["id"], day, price=150)
        assert response.status_code == 200
        assert response.json() == {
            "date": day.isoformat(),
            "price": 150.0,
            "price_source": "override",
            "closed": False,
            "reservation_id": None,
            "available": True,
        }

    def test_zero_price_closes_the_date(self, client, auth_headers, unit, today):
        day = today + timedelta(days=2)
        closed = set_rate(client, auth_headers, unit["id"], day, price=0).json()
        assert closed["closed"] is True
        assert closed["available"] is False

        reopened = set_rate(client, auth_headers, unit["id"], day, available=True).json()
        assert reopened["closed"] is False
        assert reopened["price"] == 0.0

    def test_closing_keeps_the_price(self, client, auth_headers, unit, today):
        closed = set_rate(client, auth_headers, unit["id"], today + timedelta(days=2), available=False).json()
        assert closed["price"] == 100.0
        assert closed["closed"] is True

    def test_empty_body_rejected(self, client, auth_headers, unit, today):
        assert set_rate(client, auth_headers, unit["id"], today).status_code == 422
        assert set_rate(client, auth_headers, unit["id"], today, price=-1).status_code == 422

    def test_range_update(self, client, auth_headers, unit, today):
        response = client.put(
            f"/availability/{unit['id']}",
            json={
                "from_date": (today + timedelta(days=1)).isoformat(),
                "to_date": (today + timedelta(days=3)).isoformat(),
                "price": 120,
            },
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert [(d["price"], d["available"]) for d in response.json()] == [(120.0, True)] * 3

        days = grid(client, auth_headers, today, today + timedelta(days=4))["units"][0]["days"]
        assert [d["price"] for d in days] == [100.0, 120.0, 120.0, 120.0, 100.0]

    def test_reset_reverts_to_base_price(self, client, auth_headers, unit, today):
        day = today + timedelta(days=1)
        set_rate(client, auth_headers, unit["id"], day, price=150)

        path = f"/availability/{unit['id']}/{day.isoformat()}"
        assert client.delete(path, headers=auth_headers).status_code == 204
        assert grid(client, auth_headers, day, day)["units"][0]["days"][0]["price"] == 100.0
        assert client.delete(path, headers=auth_headers).status_code == 404

    def test_staff_booking_sums_nightly_rates(self, client, auth_headers, unit, make_reservation, today):
        set_rate(client, auth_headers, unit["id"], today + timedelta(days=1), price=150)
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        assert booking["total_amount"] == 250.0
        assert booking["price_per_night"] == 125.0

    def test_explicit_price_wins_over_rates(self, client, auth_headers, unit, make_reservation, today):
        set_rate(client, auth_headers, unit["id"], today + timedelta(days=1), price=150)
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3), price_per_night=90)
        assert booking["total_amount"] == 180.0

    def test_other_owner_gets_404(self, client, auth_headers, other_headers, unit, today):
        assert set_rate(client, other_headers, unit["id"], today, price=10).status_code == 404
