"""Unit tests for API key authentication module."""

from unittest.mock import patch

import pytest

from app.core.auth import parse_api_keys, validate_api_key, verify_api_key
from app.core.config import settings
from app.core.errors import AuthenticationAppError


class TestParseAPIKeys:
    """Test API key parsing utility function."""

    def test_parse_single_key(self) -> None:
        assert parse_api_keys("my-secret-key") == {"my-secret-key"}

    def test_parse_keys_with_whitespace(self) -> None:
        """Test that whitespace is trimmed from keys."""
        assert parse_api_keys("key1 , key2  ,  key3") == {"key1", "key2", "key3"}

    def test_parse_none_returns_empty_set(self) -> None:
        assert parse_api_keys(None) == set()

    def test_parse_whitespace_only_returns_empty_set(self) -> None:
        assert parse_api_keys("   ,  ,  ") == set()

    def test_parse_removes_duplicate_keys(self) -> None:
        assert parse_api_keys("key1,key2,key1,key3,key2") == {"key1", "key2", "key3"}


class TestValidateAPIKey:
    """Test core API key validation logic."""

    @patch("app.core.auth.settings")
    def test_validate_bypassed_when_auth_disabled(self, mock_settings) -> None:
        """Validation is skipped when APP_API_KEY_REQUIRED=false (the default)."""
        mock_settings.app.api_key_required = False

        validate_api_key("any-random-key")
        validate_api_key(None)

    @patch("app.core.auth.settings")
    def test_validate_raises_when_no_keys_configured(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = None

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("some-key")

        assert exc_info.value.code == "api_keys_not_configured"
        assert "no valid keys are configured" in exc_info.value.message

    @patch("app.core.auth.settings")
    def test_validate_accepts_valid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1,valid-key-2"

        validate_api_key("valid-key-1")
        validate_api_key("valid-key-2")

    @patch("app.core.auth.settings")
    def test_validate_rejects_invalid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1,valid-key-2"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("invalid-key")

        assert exc_info.value.code == "invalid_api_key"

    @pytest.mark.parametrize("provided", [None, ""])
    @patch("app.core.auth.settings")
    def test_validate_rejects_missing_key(self, mock_settings, provided) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key(provided)

        assert exc_info.value.code == "missing_api_key"

    @patch("app.core.auth.settings")
    def test_validate_does_not_trim_provided_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = " key1 , key2 "

        validate_api_key("key1")
        with pytest.raises(AuthenticationAppError):
            validate_api_key(" key1 ")


class TestVerifyAPIKeyDependency:
    """Test the FastAPI dependency end to end."""

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_verify_raises_domain_error(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"

        with pytest.raises(AuthenticationAppError):
            await verify_api_key(x_api_key="wrong-key")

    def test_routes_return_403_without_key(self, client, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "api_key_required", True)
        monkeypatch.setattr(settings.app, "api_keys", "secret-1")

        resp = client.get("/v1/injections")

        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "missing_api_key"

    def test_routes_accept_valid_key(self, client, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "api_key_required", True)
        monkeypatch.setattr(settings.app, "api_keys", "secret-1")

        resp = client.get("/v1/injections", headers={"X-API-Key": "secret-1"})

        assert resp.status_code == 200

    def test_health_is_never_protected(self, client, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "api_key_required", True)
        monkeypatch.setattr(settings.app, "api_keys", "secret-1")

        assert client.get("/health").status_code == 200
