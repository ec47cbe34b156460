"""Unit tests for access token acquisition."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import httpx
import pytest

from vaultsync.auth import AccessToken, TokenManager
from vaultsync.exceptions import TokenError

URL = "https://auth.example.test/refresh"


def token_response(value="access-1", expiry=None):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {"access_token": value, "expiry_date": expiry}
    return response


class TestAccessToken:
    """Tests for AccessToken."""

    def test_expiry_from_epoch_millis(self):
        token = AccessToken.from_response({"access_token": "a", "expiry_date": 1706090400000})
        assert token.expires_at == datetime(2024, 1, 24, 10, 0, tzinfo=timezone.utc)

    def test_expiry_from_iso_string(self):
        token = AccessToken.from_response(
            {"access_token": "a", "expiry_date": "2024-01-24T10:00:00.000Z"}
        )
        assert token.expires_at == datetime(2024, 1, 24, 10, 0, tzinfo=timezone.utc)

    def test_missing_access_token(self):
        with pytest.raises(TokenError):
            AccessToken.from_response({})

    def test_is_expired_uses_margin(self):
        now = datetime(2024, 1, 24, 10, 0, tzinfo=timezone.utc)
        assert AccessToken("a", now + timedelta(seconds=30)).is_expired(now)
        assert not AccessToken("a", now + timedelta(minutes=10)).is_expired(now)
        assert not AccessToken("a").is_expired(now)


class TestTokenManager:
    """Tests for TokenManager."""

    def test_requires_refresh_token(self):
        with pytest.raises(TokenError, match="No refresh token"):
            TokenManager(None, URL)

    def test_requires_refresh_url(self):
        with pytest.raises(TokenError, match="No token endpoint"):
            TokenManager("refresh", None)

    @patch("vaultsync.auth.httpx.post")
    def test_get_token_caches(self, mock_post):
        mock_post.return_value = token_response()
        manager = TokenManager("refresh", URL)

        assert manager.get_token() == "access-1"
        assert manager.get_token() == "access-1"

        mock_post.assert_called_once()
        assert mock_post.call_args.kwargs["json"] == {"refreshToken": "refresh"}

    @patch("vaultsync.auth.httpx.post")
    def test_expired_token_is_refreshed(self, mock_post):
        mock_post.side_effect = [
            token_response("old", "2000-01-01T00:00:00.000Z"),
            token_response("new"),
        ]
        manager = TokenManager("refresh", URL)

        assert manager.get_token() == "old"
        assert manager.get_token() == "new"

    @patch("vaultsync.auth.httpx.post")
    def test_initial_acquisition_retries(self, mock_post):
        mock_post.side_effect = [
            httpx.ConnectError("refused"),
            httpx.ConnectError("refused"),
            token_response(),
        ]
        sleep = Mock()
        manager = TokenManager("refresh", URL, max_retries=3, retry_delay=1.0, sleep=sleep)

        assert manager.get_token() == "access-1"
        assert sleep.call_count == 2

    @patch("vaultsync.auth.httpx.post")
    def test_gives_up_after_max_retries(self, mock_post):
        mock_post.side_effect = httpx.ConnectError("refused")
        sleep = Mock()
        manager = TokenManager("refresh", URL, max_retries=2, sleep=sleep)

        with pytest.raises(TokenError, match="after 3 attempts"):
            manager.get_token()

        assert mock_post.call_count == 3
        assert sleep.call_count == 2

    @patch("vaultsync.auth.httpx.post")
    def test_http_error_status(self, mock_post):
        response = Mock()
        error_response = Mock(status_code=401)
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "unauthorized", request=Mock(), response=error_response
        )
        mock_post.return_value = response
        manager = TokenManager("refresh", URL, max_retries=0)

        with pytest.raises(TokenError) as exc_info:
            manager.get_token()

        assert "status 401" in str(exc_info.value.__cause__)

    def test_retry_delay_grows(self):
        manager = TokenManager("refresh", URL, retry_delay=1.0)
        with patch("vaultsync.auth.random.random", return_value=0.5):
            assert manager._calculate_retry_delay(0) == 1.0
            assert manager._calculate_retry_delay(3) == 8.0
