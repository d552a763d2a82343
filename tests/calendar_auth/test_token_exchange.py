"""Tests for authorization code exchange."""

from unittest import mock

import pytest
import requests

from src.calendar_auth.coordinator import AuthorizationRequest
from src.calendar_auth.exceptions import TokenExchangeError
from src.calendar_auth.token_exchange import TokenExchanger

TOKEN_URL = "https://oauth2.googleapis.com/token"


@pytest.fixture
def auth_request():
    """Create an in-flight authorization request."""
    return AuthorizationRequest(
        client_id="test_client_id",
        client_secret="test_client_secret",
        redirect_uri="http://localhost:9876/google-auth",
        scopes=("https://www.googleapis.com/auth/calendar",),
        continuation=mock.Mock(),
    )


def make_response(status_code, payload=None, text=""):
    response = mock.Mock()
    response.status_code = status_code
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


class TestTokenExchanger:
    """Tests for TokenExchanger class."""

    @mock.patch("requests.post")
    def test_exchange_success(self, mock_post, auth_request):
        """exchange() posts the code and returns the token bundle."""
        mock_post.return_value = make_response(
            200,
            {
                "access_token": "tok1",
                "refresh_token": "ref1",
                "token_type": "Bearer",
                "expires_in": 3599,
                "scope": "https://www.googleapis.com/auth/calendar",
            },
        )

        token = TokenExchanger(TOKEN_URL).exchange("ABC123", auth_request)

        mock_post.assert_called_once()
        call_args = mock_post.call_args
        assert call_args[0][0] == TOKEN_URL
        assert call_args[1]["data"] == {
            "grant_type": "authorization_code",
            "code": "ABC123",
            "client_id": "test_client_id",
            "client_secret": "test_client_secret",
            "redirect_uri": "http://localhost:9876/google-auth",
        }
        assert call_args[1]["timeout"] == 30

        assert token.access_token == "tok1"
        assert token.refresh_token == "ref1"
        assert token.expires_in == 3599
        assert token.issued_at is not None

    @mock.patch("requests.post")
    def test_exchange_without_refresh_token(self, mock_post, auth_request):
        """A response without refresh_token or scope still yields a credential."""
        mock_post.return_value = make_response(
            200, {"access_token": "tok1", "expires_in": 3599}
        )

        token = TokenExchanger(TOKEN_URL).exchange("code", auth_request)

        assert token.refresh_token is None
        assert token.token_type == "Bearer"
        assert token.scope == "https://www.googleapis.com/auth/calendar"

    @mock.patch("requests.post")
    def test_exchange_handles_400_error(self, mock_post, auth_request):
        """Provider rejection raises TokenExchangeError with details."""
        mock_post.return_value = make_response(
            400,
            {"error": "invalid_grant", "error_description": "Bad Request"},
            text='{"error": "invalid_grant"}',
        )

        with pytest.raises(TokenExchangeError, match="status 400") as exc_info:
            TokenExchanger(TOKEN_URL).exchange("bad_code", auth_request)

        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "invalid_grant"

    @mock.patch("requests.post")
    def test_exchange_handles_non_json_error(self, mock_post, auth_request):
        """An error body that is not JSON still reports the status."""
        mock_post.return_value = make_response(
            502, ValueError("not json"), text="Bad Gateway"
        )

        with pytest.raises(TokenExchangeError) as exc_info:
            TokenExchanger(TOKEN_URL).exchange("code", auth_request)

        assert exc_info.value.status_code == 502
        assert exc_info.value.error_code is None

    @mock.patch("requests.post")
    def test_exchange_handles_network_error(self, mock_post, auth_request):
        """Network failure raises TokenExchangeError."""
        mock_post.side_effect = requests.ConnectionError("Network error")

        with pytest.raises(TokenExchangeError, match="Network error"):
            TokenExchanger(TOKEN_URL).exchange("code", auth_request)

    @mock.patch("requests.post")
    def test_exchange_is_not_retried(self, mock_post, auth_request):
        """A failed exchange makes exactly one request."""
        mock_post.side_effect = requests.Timeout("timed out")

        with pytest.raises(TokenExchangeError):
            TokenExchanger(TOKEN_URL).exchange("code", auth_request)

        assert mock_post.call_count == 1

    @mock.patch("requests.post")
    def test_exchange_handles_missing_access_token(self, mock_post, auth_request):
        """A 200 without access_token is a malformed response."""
        mock_post.return_value = make_response(200, {"token_type": "Bearer"})

        with pytest.raises(TokenExchangeError, match="Invalid response"):
            TokenExchanger(TOKEN_URL).exchange("code", auth_request)

    @pytest.mark.parametrize(
        "payload",
        [
            {"access_token": 12345, "expires_in": 3599},
            {"access_token": "tok1", "refresh_token": 42},
            {"access_token": "tok1", "expires_in": "soon"},
            {"access_token": "tok1", "expires_in": 3599.5},
            {"access_token": "tok1", "scope": ["calendar"]},
            ["access_token", "tok1"],
        ],
    )
    @mock.patch("requests.post")
    def test_exchange_rejects_wrongly_typed_fields(self, mock_post, payload, auth_request):
        """A 200 whose fields could not be stored and reloaded is a malformed response."""
        mock_post.return_value = make_response(200, payload)

        with pytest.raises(TokenExchangeError, match="Invalid response") as exc_info:
            TokenExchanger(TOKEN_URL).exchange("code", auth_request)

        assert exc_info.value.status_code == 200

    @mock.patch("requests.post")
    def test_exchange_accepts_numeric_string_lifetime(self, mock_post, auth_request):
        mock_post.return_value = make_response(
            200, {"access_token": "tok1", "expires_in": "3599"}
        )

        token = TokenExchanger(TOKEN_URL).exchange("code", auth_request)

        assert token.expires_in == 3599

    @mock.patch("requests.post")
    def test_exchange_handles_invalid_json(self, mock_post, auth_request):
        """A 200 with a non-JSON body is a malformed response."""
        mock_post.return_value = make_response(200, ValueError("Expecting value"))

        with pytest.raises(TokenExchangeError, match="Invalid response"):
            TokenExchanger(TOKEN_URL).exchange("code", auth_request)
