"""
Tests for the smart lock adapter: code generation, collision checks and the ESP32 bridge
"""
from datetime import datetime, timedelta
from unittest.mock import Mock, patch

import pytest
import requests

from utils import lock_adapter


def make_lock(provider="generic", credentials=None):
    return Mock(id=1, provider=provider, device_id="dev-1", credentials=credentials)


WINDOW = (datetime(2024, 6, 1, 12, 0), datetime(2024, 6, 3, 9, 0))


class TestCodes:

    def test_code_lengths(self):
        assert lock_adapter.code_length("esp32") == 4
        assert lock_adapter.code_length("ttlock") == 6
        assert lock_adapter.code_length("generic") == 6

    def test_random_code_keeps_leading_zeros(self):
        with patch("utils.lock_adapter.secrets.randbelow", return_value=42):
            assert lock_adapter.random_code(6) == "000042"

    def test_unique_code_skips_taken_codes(self):
        with patch("utils.lock_adapter.secrets.randbelow", side_effect=[1234, 1234, 5678]):
            assert lock_adapter.unique_code(4, existing_codes=["1234"]) == "5678"

    def test_unique_code_gives_up(self):
        with patch("utils.lock_adapter.secrets.randbelow", return_value=1):
            with pytest.raises(lock_adapter.AccessCodeExhaustedError):
                lock_adapter.unique_code(4, existing_codes=["0001"], max_attempts=3)


class TestGenerateAccessCode:

    def test_generic_provider_is_active(self):
        result = lock_adapter.generate_access_code(make_lock("generic"), *WINDOW)
        assert len(result.code) == 6
        assert result.code.isdigit()
        assert result.provider_response["status"] == "active"
        assert result.provider_response["provider"] == "generic"

    def test_cloud_provider_is_simulated(self):
        result = lock_adapter.generate_access_code(make_lock("ttlock"), *WINDOW)
        assert result.provider_response["status"] == "simulated"
        assert result.provider_response["device_id"] == "dev-1"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            lock_adapter.generate_access_code(make_lock("acme"), *WINDOW)

    def test_empty_window(self):
        start = datetime(2024, 6, 1, 12, 0)
        with pytest.raises(ValueError):
            lock_adapter.generate_access_code(make_lock(), start, start)

    def test_esp32_without_endpoint_does_not_call_out(self):
        with patch("utils.lock_adapter.requests.post") as post:
            result = lock_adapter.generate_access_code(make_lock("esp32"), *WINDOW)
        post.assert_not_called()
        assert len(result.code) == 4

    def test_esp32_bridge_receives_code(self):
        response = Mock()
        response.json.return_value = {"ok": True}
        lock = make_lock("esp32", {"endpoint": "http://10.0.0.5/"})

        with patch("utils.lock_adapter.requests.post", return_value=response) as post:
            result = lock_adapter.generate_access_code(lock, *WINDOW)

        url = post.call_args[0][0]
        body = post.call_args[1]["json"]
        assert url == "http://10.0.0.5/codes"
        assert body["code"] == result.code
        assert body["device_id"] == "dev-1"
        assert result.provider_response["status"] == "active"
        assert result.provider_response["bridge"] == {"ok": True}

    def test_esp32_bridge_failure(self):
        lock = make_lock("esp32", {"endpoint": "http://10.0.0.5"})
        with patch("utils.lock_adapter.requests.post", side_effect=requests.ConnectionError("down")):
            with pytest.raises(lock_adapter.LockAdapterError):
                lock_adapter.generate_access_code(lock, *WINDOW)


class TestDeviceStatus:

    def test_low_battery(self):
        assert lock_adapter.status_from_battery(19) == "low-battery"
        assert lock_adapter.status_from_battery(20) == "online"
        assert lock_adapter.status_from_battery(None) == "online"

    def test_sync(self):
        state = lock_adapter.sync_device_status(make_lock())
        assert state["status"] == "online"
        assert state["battery_level"] == 85
        assert datetime.utcnow() - state["last_sync"] < timedelta(minutes=1)

    def test_revoke(self):
        assert lock_adapter.revoke_access_code(make_lock("nuki"), "123456")["success"] is True
