"""Tests for settings loading and error responses."""

from unittest.mock import patch

from waterbill.config import Settings, get_settings, reset_settings
from waterbill.services.errors import PendingReadingsError, TokenError, TokenErrorReason, error_response


class TestSettings:
    def teardown_method(self):
        reset_settings()

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.magic_link_ttl_hours == 24
        assert settings.session_ttl_days == 7
        assert settings.locale == "id_ID"

    def test_origin_strips_trailing_slash(self):
        settings = Settings(_env_file=None, app_origin="https://air.example.com/")

        assert settings.origin == "https://air.example.com"

    def test_environment_overrides(self):
        env = {"NOTIFICATION_GATEWAY_URL": "https://gw.example.com", "SESSION_TTL_DAYS": "3"}
        with patch.dict("os.environ", env):
            reset_settings()
            settings = get_settings()

        assert settings.notification_gateway_url == "https://gw.example.com"
        assert settings.session_ttl_days == 3

    def test_get_settings_is_cached(self):
        reset_settings()
        assert get_settings() is get_settings()


class TestErrorResponse:
    def test_pending_readings_payload(self):
        error = PendingReadingsError("2025-06", {"total": 3, "selesai": 2, "pending": 1, "percent": 67})

        body = error_response(error)

        assert body["ok"] is False
        assert body["error"]["code"] == "pending_readings"
        assert body["progress"]["pending"] == 1
        assert body["period"] == "2025-06"
        assert error.http_status == 400

    def test_token_error_reason(self):
        error = TokenError(TokenErrorReason.TOKEN_USED)

        assert error.reason.value == "used"
        assert error_response(error)["reason"] == "used"
