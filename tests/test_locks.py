"""
Smart locks and access keys through the API
"""
from datetime import datetime, timedelta

import pytest


@pytest.fixture
def lock(client, auth_headers, unit):
    response = client.post("/smart-locks", json={"unit_id": unit["id"]}, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def issue_key(client, auth_headers, lock):
    """Creates a key on the lock for a window given in hours from now"""
    def _issue(start_hours, end_hours, **fields):
        now = datetime.utcnow()
        body = {
            "valid_from": (now + timedelta(hours=start_hours)).isoformat(),
            "valid_to": (now + timedelta(hours=end_hours)).isoformat(),
        }
        body.update(fields)
        response = client.post(f"/smart-locks/{lock['id']}/access-keys", json=body, headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _issue


class TestSmartLocks:

    def test_create_defaults(self, lock, unit):
        assert lock["name"] == "Lock 101"
        assert lock["provider"] == "generic"
        assert lock["status"] == "offline"
        assert lock["unit_id"] == unit["id"]

    def test_one_lock_per_unit(self, client, auth_headers, unit, lock):
        response = client.post("/smart-locks", json={"unit_id": unit["id"]}, headers=auth_headers)
        assert response.status_code == 409

    def test_sync_reports_battery(self, client, auth_headers, lock):
        response = client.post(f"/smart-locks/{lock['id']}/sync", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "online"
        assert data["battery_level"] == 85
        assert data["last_sync"] is not None

    def test_update_and_delete(self, client, auth_headers, lock, issue_key):
        issue_key(0, 5)
        updated = client.put(f"/smart-locks/{lock['id']}", json={"name": "Front door", "provider": "nuki"}, headers=auth_headers)
        assert updated.json()["name"] == "Front door"
        assert updated.json()["provider"] == "nuki"

        assert client.delete(f"/smart-locks/{lock['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/smart-locks/{lock['id']}", headers=auth_headers).status_code == 404
        assert client.get("/smart-locks/access-keys", headers=auth_headers).json() == []

    def test_other_owner_gets_404(self, client, other_headers, lock):
        assert client.get(f"/smart-locks/{lock['id']}", headers=other_headers).status_code == 404
        assert client.get("/smart-locks", headers=other_headers).json() == []


class TestAccessKeys:

    def test_issue_key(self, issue_key, lock):
        key = issue_key(0, 24, guest_name="Walk-in guest")
        assert key["status"] == "active"
        assert key["lock_id"] == lock["id"]
        assert key["guest_name"] == "Walk-in guest"
        assert key["usage_count"] == 0
        assert len(key["code"]) == 6

    def test_window_must_be_ordered(self, client, auth_headers, lock):
        now = datetime.utcnow()
        response = client.post(
            f"/smart-locks/{lock['id']}/access-keys",
            json={"valid_from": now.isoformat(), "valid_to": (now - timedelta(hours=1)).isoformat()},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_reservation_for_another_unit(self, client, auth_headers, hotel, lock, make_reservation):
        other_unit = client.post(
            "/units", json={"hotel_id": hotel["id"], "number": "102", "name": "Room 102"}, headers=auth_headers
        ).json()
        booking = make_reservation(
            datetime.utcnow().date() + timedelta(days=2),
            datetime.utcnow().date() + timedelta(days=3),
            unit_id=other_unit["id"],
        )
        now = datetime.utcnow()
        response = client.post(
            f"/smart-locks/{lock['id']}/access-keys",
            json={
                "reservation_id": booking["id"],
                "valid_from": now.isoformat(),
                "valid_to": (now + timedelta(hours=2)).isoformat(),
            },
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_revoke_is_idempotent(self, client, auth_headers, issue_key):
        key = issue_key(0, 24)

        first = client.post(f"/smart-locks/access-keys/{key['id']}/revoke", headers=auth_headers)
        assert first.status_code == 200
        assert first.json()["status"] == "revoked"
        revoked_at = first.json()["revoked_at"]
        assert revoked_at is not None

        second = client.post(f"/smart-locks/access-keys/{key['id']}/revoke", headers=auth_headers)
        assert second.status_code == 200
        assert second.json()["revoked_at"] == revoked_at

    def test_stale_keys_expire_on_read(self, client, auth_headers, lock, issue_key):
        stale = issue_key(-48, -1)
        fresh = issue_key(0, 24)

        keys = client.get(f"/smart-locks/{lock['id']}/access-keys", headers=auth_headers).json()
        statuses = {key["id"]: key["status"] for key in keys}
        assert statuses == {stale["id"]: "expired", fresh["id"]: "active"}

        active = client.get("/smart-locks/access-keys", params={"status": "active"}, headers=auth_headers).json()
        assert [key["id"] for key in active] == [fresh["id"]]


class TestVerify:

    def verify(self, client, auth_headers, lock, code):
        response = client.post(f"/smart-locks/{lock['id']}/verify", json={"code": code}, headers=auth_headers)
        assert response.status_code == 200
        return response.json()

    def test_valid_code_counts_usage(self, client, auth_headers, lock, issue_key):
        key = issue_key(-1, 24)

        result = self.verify(client, auth_headers, lock, key["code"])
        assert result == {"valid": True, "reason": "ok", "access_key_id": key["id"], "usage_count": 1}
        assert self.verify(client, auth_headers, lock, key["code"])["usage_count"] == 2

    def test_unknown_code(self, client, auth_headers, lock):
        result = self.verify(client, auth_headers, lock, "0000000")
        assert result["valid"] is False
        assert result["reason"] == "not_found"
        assert result["access_key_id"] is None

    def test_expired_code(self, client, auth_headers, lock, issue_key):
        key = issue_key(-48, -1)
        assert self.verify(client, auth_headers, lock, key["code"])["reason"] == "expired"

    def test_code_not_yet_valid(self, client, auth_headers, lock, issue_key):
        key = issue_key(24, 48)
        result = self.verify(client, auth_headers, lock, key["code"])
        assert result["reason"] == "not_yet_valid"
        assert result["usage_count"] == 0

    def test_revoked_code(self, client, auth_headers, lock, issue_key):
        key = issue_key(-1, 24)
        client.post(f"/smart-locks/access-keys/{key['id']}/revoke", headers=auth_headers)
        assert self.verify(client, auth_headers, lock, key["code"])["reason"] == "revoked"
