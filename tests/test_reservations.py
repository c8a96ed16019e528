"""
Booking lifecycle through the API: availability, check-in/out, payments, calendar and access
"""
from datetime import timedelta

import pytest

from utils.timezone import get_hotel_today


@pytest.fixture
def today():
    return get_hotel_today()


class TestCreateReservation:

    def test_defaults_from_unit_price(self, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=4))
        assert booking["status"] == "confirmed"
        assert booking["source"] == "direct"
        assert booking["nights"] == 3
        assert booking["price_per_night"] == 100.0
        assert booking["total_amount"] == 300.0
        assert booking["balance"] == 300.0
        assert booking["guest_name"] == "Sara Ali"
        assert booking["dashboard_status"] == "active"

    def test_overlap_is_rejected(self, client, auth_headers, unit, make_reservation, today):
        make_reservation(today + timedelta(days=1), today + timedelta(days=4))
        response = client.post(
            "/reservations",
            json={
                "unit_id": unit["id"],
                "check_in": (today + timedelta(days=3)).isoformat(),
                "check_out": (today + timedelta(days=6)).isoformat(),
            },
            headers=auth_headers,
        )
        assert response.status_code == 409

    def test_back_to_back_is_allowed(self, make_reservation, today):
        make_reservation(today + timedelta(days=1), today + timedelta(days=4))
        second = make_reservation(today + timedelta(days=4), today + timedelta(days=6))
        assert second["nights"] == 2

    def test_cancelled_booking_frees_dates(self, client, auth_headers, make_reservation, today):
        first = make_reservation(today + timedelta(days=1), today + timedelta(days=4))
        client.post(f"/reservations/{first['id']}/cancel", json={"reason": "Plans changed"}, headers=auth_headers)
        make_reservation(today + timedelta(days=1), today + timedelta(days=4))

    def test_check_out_must_follow_check_in(self, client, auth_headers, unit, today):
        response = client.post(
            "/reservations",
            json={"unit_id": unit["id"], "check_in": today.isoformat(), "check_out": today.isoformat()},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_out_of_service_unit(self, client, auth_headers, unit, today):
        client.patch(f"/units/{unit['id']}/status", json={"status": "out_of_service"}, headers=auth_headers)
        response = client.post(
            "/reservations",
            json={
                "unit_id": unit["id"],
                "check_in": today.isoformat(),
                "check_out": (today + timedelta(days=1)).isoformat(),
            },
            headers=auth_headers,
        )
        assert response.status_code == 409

    def test_created_notification(self, client, auth_headers, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=2))
        notifications = client.get("/notifications", headers=auth_headers).json()
        assert notifications[0]["title"] == "New booking"
        assert notifications[0]["data"] == {"booking_id": booking["id"], "event": "created"}
        assert notifications[0]["action_url"] == f"/dashboard/reservations/{booking['id']}"

    def test_other_owner_cannot_read(self, client, other_headers, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=2))
        assert client.get(f"/reservations/{booking['id']}", headers=other_headers).status_code == 404


class TestUpdateReservation:

    def test_new_dates_reprice(self, client, auth_headers, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        response = client.put(
            f"/reservations/{booking['id']}",
            json={"check_out": (today + timedelta(days=5)).isoformat()},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["total_amount"] == 400.0

    def test_move_into_taken_dates(self, client, auth_headers, make_reservation, today):
        make_reservation(today + timedelta(days=5), today + timedelta(days=8))
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        response = client.put(
            f"/reservations/{booking['id']}",
            json={"check_out": (today + timedelta(days=6)).isoformat()},
            headers=auth_headers,
        )
        assert response.status_code == 409

    def test_terminal_booking_cannot_be_edited(self, client, auth_headers, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        client.post(f"/reservations/{booking['id']}/cancel", headers=auth_headers)
        response = client.put(f"/reservations/{booking['id']}", json={"notes": "late"}, headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.parametrize("field", ["check_in", "check_out", "unit_id", "price_per_night", "status"])
    def test_null_for_required_field(self, client, auth_headers, make_reservation, today, field):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        response = client.put(f"/reservations/{booking['id']}", json={field: None}, headers=auth_headers)
        assert response.status_code == 422

        unchanged = client.get(f"/reservations/{booking['id']}", headers=auth_headers).json()
        assert unchanged["check_in"] == booking["check_in"]
        assert unchanged["total_amount"] == 200.0

    def test_null_clears_notes(self, client, auth_headers, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3), notes="Late arrival")
        response = client.put(f"/reservations/{booking['id']}", json={"notes": None}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["notes"] is None


class TestLifecycle:

    def test_check_in_and_out(self, client, auth_headers, unit, make_reservation, today):
        booking = make_reservation(today, today + timedelta(days=2))

        response = client.post(f"/reservations/{booking['id']}/check-in", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "checked_in"
        assert response.json()["checked_in_at"] is not None

        tasks = client.get("/tasks", params={"reservation_id": booking["id"]}, headers=auth_headers).json()
        assert [(t["origin"], t["priority"]) for t in tasks] == [("checkin_prep", "medium")]

        response = client.post(f"/reservations/{booking['id']}/check-out", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "checked_out"
        assert response.json()["dashboard_status"] == "completed"

        unit_after = client.get(f"/units/{unit['id']}", headers=auth_headers).json()
        assert unit_after["status"] == "available"

        tasks = client.get("/tasks", params={"reservation_id": booking["id"]}, headers=auth_headers).json()
        origins = sorted(t["origin"] for t in tasks)
        assert origins == ["checkin_prep", "checkout_cleaning"]

    def test_check_out_requires_check_in(self, client, auth_headers, make_reservation, today):
        booking = make_reservation(today, today + timedelta(days=2))
        assert client.post(f"/reservations/{booking['id']}/check-out", headers=auth_headers).status_code == 400

    def test_cancel_in_house_frees_unit(self, client, auth_headers, unit, make_reservation, today):
        booking = make_reservation(today, today + timedelta(days=2))
        client.post(f"/reservations/{booking['id']}/check-in", headers=auth_headers)

        response = client.post(f"/reservations/{booking['id']}/cancel", json={"reason": "Emergency"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["cancel_reason"] == "Emergency"
        assert client.get(f"/units/{unit['id']}", headers=auth_headers).json()["status"] == "available"

        assert client.post(f"/reservations/{booking['id']}/cancel", headers=auth_headers).status_code == 400

    def test_cancel_same_day_booking_frees_unit(self, client, auth_headers, unit, make_reservation, today):
        booking = make_reservation(today, today + timedelta(days=2))
        assert client.get(f"/units/{unit['id']}", headers=auth_headers).json()["status"] == "occupied"

        client.post(f"/reservations/{booking['id']}/cancel", headers=auth_headers)

        assert client.get(f"/units/{unit['id']}", headers=auth_headers).json()["status"] == "available"
        dashboard = client.get("/reports/dashboard", headers=auth_headers).json()
        assert dashboard["occupied_units"] == 0

    def test_cancel_future_booking_keeps_guest_in_house(self, client, auth_headers, unit, make_reservation, today):
        in_house = make_reservation(today, today + timedelta(days=2))
        client.post(f"/reservations/{in_house['id']}/check-in", headers=auth_headers)
        later = make_reservation(today + timedelta(days=5), today + timedelta(days=6))

        client.post(f"/reservations/{later['id']}/cancel", headers=auth_headers)

        assert client.get(f"/units/{unit['id']}", headers=auth_headers).json()["status"] == "occupied"

    def test_delete_pending_same_day_booking_frees_unit(self, client, auth_headers, unit, make_reservation, today):
        booking = make_reservation(today, today + timedelta(days=1), status="pending")
        assert client.delete(f"/reservations/{booking['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/units/{unit['id']}", headers=auth_headers).json()["status"] == "available"

    def test_moving_same_day_booking_frees_unit(self, client, auth_headers, unit, make_reservation, today):
        booking = make_reservation(today, today + timedelta(days=1))
        response = client.put(
            f"/reservations/{booking['id']}",
            json={
                "check_in": (today + timedelta(days=3)).isoformat(),
                "check_out": (today + timedelta(days=4)).isoformat(),
            },
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert client.get(f"/units/{unit['id']}", headers=auth_headers).json()["status"] == "available"

    def test_no_show_needs_arrival_date(self, client, auth_headers, make_reservation, today):
        future = make_reservation(today + timedelta(days=3), today + timedelta(days=4))
        assert client.post(f"/reservations/{future['id']}/no-show", headers=auth_headers).status_code == 400

        due = make_reservation(today, today + timedelta(days=1))
        response = client.post(f"/reservations/{due['id']}/no-show", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "no_show"

    def test_delete_rules(self, client, auth_headers, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=2))
        assert client.delete(f"/reservations/{booking['id']}", headers=auth_headers).status_code == 409

        client.post(f"/reservations/{booking['id']}/cancel", headers=auth_headers)
        assert client.delete(f"/reservations/{booking['id']}", headers=auth_headers).status_code == 204


class TestPayments:

    def test_payment_reduces_balance(self, client, auth_headers, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3))

        response = client.post(
            f"/reservations/{booking['id']}/payments",
            json={"amount": 150, "method": "card"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        assert response.json()["type"] == "income"
        assert response.json()["reservation_number"] == f"RES-{booking['id']:05d}"
        assert response.json()["user"] == "owner"

        updated = client.get(f"/reservations/{booking['id']}", headers=auth_headers).json()
        assert updated["paid_amount"] == 150.0
        assert updated["balance"] == 50.0

        client.post(f"/reservations/{booking['id']}/payments", json={"amount": 50}, headers=auth_headers)
        updated = client.get(f"/reservations/{booking['id']}", headers=auth_headers).json()
        assert updated["dashboard_status"] == "paid"

        payments = client.get(f"/reservations/{booking['id']}/payments", headers=auth_headers).json()
        assert [p["amount"] for p in payments] == [150.0, 50.0]

    def test_no_payment_on_cancelled_booking(self, client, auth_headers, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        client.post(f"/reservations/{booking['id']}/cancel", headers=auth_headers)
        response = client.post(f"/reservations/{booking['id']}/payments", json={"amount": 10}, headers=auth_headers)
        assert response.status_code == 400


class TestCalendar:

    def test_block_and_read(self, client, auth_headers, unit, make_reservation, today):
        make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        block = client.post(
            "/calendar/block",
            json={
                "unit_id": unit["id"],
                "from_date": (today + timedelta(days=10)).isoformat(),
                "to_date": (today + timedelta(days=12)).isoformat(),
            },
            headers=auth_headers,
        )
        assert block.status_code == 201
        assert block.json()["source"] == "block"
        assert block.json()["total_amount"] == 0.0
        assert block.json()["notes"] == "Blocked"

        calendar = client.get("/calendar", headers=auth_headers).json()
        assert [u["id"] for u in calendar["units"]] == [unit["id"]]
        assert len(calendar["reservations"]) == 2

    def test_block_respects_bookings(self, client, auth_headers, unit, make_reservation, today):
        make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        response = client.post(
            "/calendar/block",
            json={
                "unit_id": unit["id"],
                "from_date": today.isoformat(),
                "to_date": (today + timedelta(days=2)).isoformat(),
                "reason": "Painting",
            },
            headers=auth_headers,
        )
        assert response.status_code == 409

    def test_departure_day_on_grid_but_not_in_list(self, client, auth_headers, make_reservation, today):
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        departure = (today + timedelta(days=3)).isoformat()
        window = {"from": departure, "to": (today + timedelta(days=5)).isoformat()}

        calendar = client.get("/calendar", params=window, headers=auth_headers).json()
        assert [r["id"] for r in calendar["reservations"]] == [booking["id"]]

        listed = client.get("/reservations", params=window, headers=auth_headers).json()
        assert listed == []


class TestGenerateAccess:

    def test_requires_a_lock(self, client, auth_headers, make_reservation, today):
        booking = make_reservation(today, today + timedelta(days=2))
        response = client.post(f"/reservations/{booking['id']}/generate-access", headers=auth_headers)
        assert response.status_code == 404

    def test_generate_and_revoke_on_checkout(self, client, auth_headers, unit, make_reservation, today):
        client.post("/smart-locks", json={"unit_id": unit["id"], "provider": "ttlock"}, headers=auth_headers)
        booking = make_reservation(today, today + timedelta(days=2))

        response = client.post(f"/reservations/{booking['id']}/generate-access", headers=auth_headers)
        assert response.status_code == 201
        key = response.json()
        assert key["status"] == "active"
        assert len(key["code"]) == 6
        assert key["guest_name"] == "Sara Ali"
        assert key["provider_response"]["status"] == "simulated"

        client.post(f"/reservations/{booking['id']}/check-in", headers=auth_headers)
        client.post(f"/reservations/{booking['id']}/check-out", headers=auth_headers)

        keys = client.get(f"/reservations/{booking['id']}/access-keys", headers=auth_headers).json()
        assert [k["status"] for k in keys] == ["revoked"]
