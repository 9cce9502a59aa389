"""Unit tests for the admin API key guard."""

from unittest.mock import patch

import pytest

from authguard.core.auth import parse_api_keys, validate_api_key, verify_api_key
from authguard.core.errors import AuthenticationAppError


class TestParseAPIKeys:
    """Test API key parsing utility function."""

    def test_parse_multiple_keys(self) -> None:
        assert parse_api_keys("key1,key2,key3") == {"key1", "key2", "key3"}

    def test_parse_keys_with_whitespace(self) -> None:
        assert parse_api_keys("key1 , key2  ,  key3") == {"key1", "key2", "key3"}

    @pytest.mark.parametrize("raw", [None, "", "   ,  ,  "])
    def test_parse_empty_inputs(self, raw) -> None:
        assert parse_api_keys(raw) == set()

    def test_parse_removes_duplicate_keys(self) -> None:
        assert parse_api_keys("key1,key2,key1") == {"key1", "key2"}


class TestValidateAPIKey:
    """Test core API key validation logic."""

    @patch("authguard.core.auth.settings")
    def test_validate_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        validate_api_key("any-random-key")
        validate_api_key(None)

    @patch("authguard.core.auth.settings")
    def test_validate_raises_when_no_keys_configured(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = None

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("some-key")

        assert exc_info.value.code == "api_keys_not_configured"

    @patch("authguard.core.auth.settings")
    def test_validate_accepts_valid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1,valid-key-2"

        validate_api_key("valid-key-1")
        validate_api_key("valid-key-2")

    @patch("authguard.core.auth.settings")
    def test_validate_rejects_invalid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1,valid-key-2"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("invalid-key")

        assert exc_info.value.code == "invalid_api_key"

    @patch("authguard.core.auth.settings")
    def test_validate_rejects_missing_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("")

        assert exc_info.value.code == "missing_api_key"

    @patch("authguard.core.auth.settings")
    def test_configured_keys_are_trimmed(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = " key1 , key2 "

        validate_api_key("key1")
        with pytest.raises(AuthenticationAppError):
            validate_api_key(" key1 ")


class TestVerifyAPIKeyDependency:
    """Test FastAPI dependency for API key verification."""

    @pytest.mark.asyncio
    @patch("authguard.core.auth.settings")
    async def test_verify_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        await verify_api_key(x_api_key=None)

    @pytest.mark.asyncio
    @patch("authguard.core.auth.settings")
    async def test_verify_raises_when_header_missing(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"

        with pytest.raises(AuthenticationAppError) as exc_info:
            await verify_api_key(x_api_key=None)

        assert "Missing API key" in exc_info.value.message

    @pytest.mark.asyncio
    @patch("authguard.core.auth.settings")
    async def test_verify_accepts_valid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "my-valid-key,another-key"

        await verify_api_key(x_api_key="my-valid-key")
