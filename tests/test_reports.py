"""
Reporting endpoints over a small booked hotel
"""
from datetime import timedelta

import pytest

from utils.timezone import get_hotel_today


@pytest.fixture
def in_house(client, auth_headers, make_reservation):
    """Two nights at 100, checked in today"""
    today = get_hotel_today()
    booking = make_reservation(today, today + timedelta(days=2), source="airbnb")
    response = client.post(f"/reservations/{booking['id']}/check-in", headers=auth_headers)
    assert response.status_code == 200, response.text
    return response.json()


class TestDashboard:

    def test_empty_account(self, client, auth_headers):
        data = client.get("/reports/dashboard", headers=auth_headers).json()
        assert data["total_reservations"] == 0
        assert data["revenue"] == 0.0
        assert data["units"] == []

    def test_kpis_and_recent(self, client, auth_headers, in_house, make_reservation):
        today = get_hotel_today()
        cancelled = make_reservation(today + timedelta(days=5), today + timedelta(days=6))
        client.post(f"/reservations/{cancelled['id']}/cancel", headers=auth_headers)

        data = client.get("/reports/dashboard", headers=auth_headers).json()
        assert data["total_reservations"] == 2
        assert data["occupied_units"] == 1
        assert data["vacant_units"] == 0
        assert data["revenue"] == 200.0
        assert [r["id"] for r in data["recent_reservations"]] == [cancelled["id"], in_house["id"]]
        assert data["units"][0]["display_status"] == "occupied"


class TestPeriodReport:

    def test_metrics_for_range(self, client, auth_headers, in_house):
        today = get_hotel_today()
        response = client.get(
            "/reports/generate",
            params={"from": today.isoformat(), "to": (today + timedelta(days=2)).isoformat()},
            headers=auth_headers,
        )
        assert response.status_code == 200
        report = response.json()
        assert report["period"]["days"] == 2
        assert report["metrics"]["completed_bookings"] == 1
        assert report["metrics"]["total_revenue"] == 200.0
        assert report["metrics"]["occupancy_rate"] == 100
        assert report["metrics"]["adr"] == 100.0
        assert report["metrics"]["revpar"] == 100.0
        assert report["breakdown"]["by_source"] == {"airbnb": 1}

    def test_default_range_is_last_30_days(self, client, auth_headers, hotel):
        report = client.get("/reports/generate", headers=auth_headers).json()
        assert report["period"]["days"] == 30
        assert report["period"]["to"] == get_hotel_today().isoformat()

    def test_inverted_range(self, client, auth_headers, hotel):
        response = client.get("/reports/generate", params={"from": "2024-06-10", "to": "2024-06-01"}, headers=auth_headers)
        assert response.status_code == 400


class TestOverview:

    def test_series_and_stats(self, client, auth_headers, in_house):
        client.post(f"/reservations/{in_house['id']}/payments", json={"amount": 50}, headers=auth_headers)
        client.post("/receipts", json={"type": "expense", "amount": 20}, headers=auth_headers)

        data = client.get("/reports/overview", headers=auth_headers).json()

        assert len(data["revenue_vs_expenses"]) == 7
        assert data["revenue_vs_expenses"][-1] == {
            "date": get_hotel_today().isoformat(),
            "revenue": 50.0,
            "expenses": 20.0,
        }
        assert data["channel_distribution"] == [{"source": "airbnb", "bookings": 1, "percentage": 100}]
        assert len(data["occupancy_trend"]) == 6
        assert data["stats"]["total_bookings"] == 1
        assert data["stats"]["occupancy_rate"] == 100
        assert data["stats"]["adr"] == 100.0
