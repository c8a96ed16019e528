"""
Hotels, units and guests through the API, including ownership checks
"""
from datetime import timedelta

from utils.timezone import get_hotel_today


class TestHotels:

    def test_create_and_list(self, client, auth_headers, hotel):
        response = client.get("/hotels", headers=auth_headers)
        assert response.status_code == 200
        hotels = response.json()
        assert [h["name"] for h in hotels] == ["Palm Residence"]
        assert hotels[0]["units_count"] == 0

    def test_other_owner_cannot_see_hotel(self, client, other_headers, hotel):
        assert client.get(f"/hotels/{hotel['id']}", headers=other_headers).status_code == 404
        assert client.get("/hotels", headers=other_headers).json() == []

    def test_update(self, client, auth_headers, hotel):
        response = client.put(f"/hotels/{hotel['id']}", json={"city": "Jeddah"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["city"] == "Jeddah"

    def test_null_name_rejected_and_city_cleared(self, client, auth_headers, hotel):
        assert client.put(f"/hotels/{hotel['id']}", json={"name": None}, headers=auth_headers).status_code == 422

        response = client.put(f"/hotels/{hotel['id']}", json={"city": None}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["city"] is None
        assert response.json()["name"] == "Palm Residence"

    def test_delete_refused_while_units_exist(self, client, auth_headers, hotel, unit):
        assert client.delete(f"/hotels/{hotel['id']}", headers=auth_headers).status_code == 409

    def test_delete_empty_hotel(self, client, auth_headers, hotel):
        assert client.delete(f"/hotels/{hotel['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/hotels/{hotel['id']}", headers=auth_headers).status_code == 404


class TestUnits:

    def test_unit_needs_a_hotel(self, client, auth_headers):
        response = client.post("/units", json={"number": "1", "name": "One"}, headers=auth_headers)
        assert response.status_code == 400

    def test_defaults_to_first_hotel(self, client, auth_headers, hotel):
        response = client.post("/units", json={"number": "7", "name": "Seven"}, headers=auth_headers)
        assert response.status_code == 201
        assert response.json()["hotel_id"] == hotel["id"]
        assert response.json()["display_status"] == "vacant"

    def test_duplicate_number(self, client, auth_headers, hotel, unit):
        response = client.post(
            "/units", json={"hotel_id": hotel["id"], "number": "101", "name": "Again"}, headers=auth_headers
        )
        assert response.status_code == 409

    def test_foreign_hotel_rejected(self, client, other_headers, hotel):
        response = client.post(
            "/units", json={"hotel_id": hotel["id"], "number": "9", "name": "Nine"}, headers=other_headers
        )
        assert response.status_code == 404

    def test_set_status_and_filter(self, client, auth_headers, unit):
        response = client.patch(f"/units/{unit['id']}/status", json={"status": "maintenance"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["display_status"] == "out-of-service"

        listed = client.get("/units", params={"status": "maintenance"}, headers=auth_headers).json()
        assert [u["id"] for u in listed] == [unit["id"]]
        assert client.get("/units", params={"status": "available"}, headers=auth_headers).json() == []

    def test_future_booking_keeps_unit_vacant(self, client, auth_headers, unit, make_reservation):
        today = get_hotel_today()
        make_reservation(today + timedelta(days=1), today + timedelta(days=3))
        assert client.get(f"/units/{unit['id']}", headers=auth_headers).json()["display_status"] == "vacant"

    def test_arrival_today_display_status(self, client, auth_headers, unit, make_reservation):
        today = get_hotel_today()
        make_reservation(today, today + timedelta(days=2))
        data = client.get(f"/units/{unit['id']}", headers=auth_headers).json()
        assert data["status"] == "occupied"
        assert data["display_status"] == "arrival-today"

    def test_delete_refused_with_live_booking(self, client, auth_headers, unit, make_reservation):
        today = get_hotel_today()
        make_reservation(today + timedelta(days=5), today + timedelta(days=7))
        assert client.delete(f"/units/{unit['id']}", headers=auth_headers).status_code == 409

    def test_delete_refused_with_past_stays(self, client, auth_headers, unit, make_reservation):
        today = get_hotel_today()
        booking = make_reservation(today + timedelta(days=5), today + timedelta(days=7))
        client.post(f"/reservations/{booking['id']}/cancel", headers=auth_headers)

        response = client.delete(f"/units/{unit['id']}", headers=auth_headers)
        assert response.status_code == 409
        assert "past reservation" in response.json()["detail"]

    def test_update_rejects_null_name(self, client, auth_headers, unit):
        response = client.put(f"/units/{unit['id']}", json={"name": None}, headers=auth_headers)
        assert response.status_code == 422
        assert client.get(f"/units/{unit['id']}", headers=auth_headers).json()["name"] == "Room 101"

        cleared = client.put(f"/units/{unit['id']}", json={"floor": None}, headers=auth_headers)
        assert cleared.status_code == 200
        assert cleared.json()["floor"] is None

    def test_delete(self, client, auth_headers, unit):
        assert client.delete(f"/units/{unit['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/units/{unit['id']}", headers=auth_headers).status_code == 404


class TestGuests:

    def test_create_search_and_display_name(self, client, auth_headers, hotel):
        client.post("/guests", json={"first_name": "Noura", "last_name": "Saleh", "phone": "+966500000001"}, headers=auth_headers)
        client.post("/guests", json={"email": "anon@example.com"}, headers=auth_headers)

        found = client.get("/guests", params={"q": "nour"}, headers=auth_headers).json()
        assert [g["full_name"] for g in found] == ["Noura Saleh"]

        by_email = client.get("/guests", params={"q": "anon@"}, headers=auth_headers).json()
        assert by_email[0]["full_name"] == "Guest"

    def test_delete_refused_with_bookings(self, client, auth_headers, make_reservation):
        today = get_hotel_today()
        booking = make_reservation(today + timedelta(days=1), today + timedelta(days=2))
        response = client.delete(f"/guests/{booking['guest_id']}", headers=auth_headers)
        assert response.status_code == 409

    def test_other_owner_gets_404(self, client, auth_headers, other_headers, hotel):
        guest = client.post("/guests", json={"first_name": "Noura"}, headers=auth_headers).json()
        assert client.get(f"/guests/{guest['id']}", headers=other_headers).status_code == 404
