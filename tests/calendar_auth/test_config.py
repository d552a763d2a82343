"""Tests for OAuth configuration module."""

import os
from unittest import mock

import pytest

from src.calendar_auth.config import GoogleOAuthConfig, parse_scopes
from src.calendar_auth.exceptions import ConfigurationError


class TestGoogleOAuthConfig:
    """Tests for GoogleOAuthConfig class."""

    def test_config_with_required_params(self):
        """Config can be created with just required parameters."""
        config = GoogleOAuthConfig(
            client_id="test_client_id", client_secret="test_client_secret"
        )

        assert config.client_id == "test_client_id"
        assert config.client_secret == "test_client_secret"
        assert config.redirect_uri == "http://localhost:9876/google-auth"
        assert config.scopes == ("https://www.googleapis.com/auth/calendar",)
        assert config.token_file == "TOKEN.json"
        assert config.callback_timeout == 300

    def test_callback_parts_from_redirect_uri(self):
        """Host, port and path are derived from the redirect URI."""
        config = GoogleOAuthConfig(
            client_id="id",
            client_secret="secret",
            redirect_uri="http://127.0.0.1:8080/oauth/callback",
        )

        assert config.callback_host == "127.0.0.1"
        assert config.callback_port == 8080
        assert config.callback_path == "/oauth/callback"

    def test_scopes_list_is_normalized_to_tuple(self):
        """Scopes given as a list are stored as a tuple."""
        config = GoogleOAuthConfig(
            client_id="id", client_secret="secret", scopes=["a", "b"]
        )

        assert config.scopes == ("a", "b")

    def test_config_validates_empty_client_id(self):
        """Config raises error for empty client_id."""
        with pytest.raises(ConfigurationError, match="client_id cannot be empty"):
            GoogleOAuthConfig(client_id="", client_secret="secret")

    def test_config_validates_empty_client_secret(self):
        """Config raises error for empty client_secret."""
        with pytest.raises(ConfigurationError, match="client_secret cannot be empty"):
            GoogleOAuthConfig(client_id="id", client_secret="")

    def test_config_validates_empty_scopes(self):
        """Config requires at least one scope."""
        with pytest.raises(ConfigurationError, match="at least one scope"):
            GoogleOAuthConfig(client_id="id", client_secret="secret", scopes=())

    @pytest.mark.parametrize(
        "redirect_uri",
        [
            "https://localhost:9876/google-auth",
            "localhost:9876",
            "http:///google-auth",
        ],
    )
    def test_config_validates_redirect_scheme(self, redirect_uri):
        """Config only accepts local http redirect URIs."""
        with pytest.raises(ConfigurationError, match="redirect_uri"):
            GoogleOAuthConfig(
                client_id="id", client_secret="secret", redirect_uri=redirect_uri
            )

    @pytest.mark.parametrize(
        "redirect_uri",
        [
            "http://localhost/google-auth",
            "http://localhost:0/google-auth",
            "http://localhost:70000/google-auth",
        ],
    )
    def test_config_validates_redirect_port(self, redirect_uri):
        """Config requires an explicit, valid port in the redirect URI."""
        with pytest.raises(ConfigurationError, match="explicit port"):
            GoogleOAuthConfig(
                client_id="id", client_secret="secret", redirect_uri=redirect_uri
            )

    def test_config_validates_negative_timeout(self):
        """Config rejects a negative callback timeout."""
        with pytest.raises(ConfigurationError, match="callback_timeout cannot be negative"):
            GoogleOAuthConfig(client_id="id", client_secret="secret", callback_timeout=-1)

    def test_config_allows_disabled_timeout(self):
        """callback_timeout=None disables the timeout."""
        config = GoogleOAuthConfig(
            client_id="id", client_secret="secret", callback_timeout=None
        )

        assert config.callback_timeout is None

    @mock.patch.dict(
        os.environ,
        {
            "GOOGLE_API_CLIENT_ID": "env_client_id",
            "GOOGLE_API_CLIENT_SECRET": "env_client_secret",
        },
        clear=True,
    )
    def test_from_env_with_minimal_config(self):
        """from_env loads configuration from environment variables."""
        config = GoogleOAuthConfig.from_env()

        assert config.client_id == "env_client_id"
        assert config.client_secret == "env_client_secret"
        assert config.redirect_uri == "http://localhost:9876/google-auth"
        assert config.token_file == "TOKEN.json"
        assert config.callback_timeout == 300

    @mock.patch.dict(
        os.environ,
        {
            "GOOGLE_API_CLIENT_ID": "env_id",
            "GOOGLE_API_CLIENT_SECRET": "env_secret",
            "GOOGLE_REDIRECT_URI": "http://localhost:9999/cb",
            "GOOGLE_SCOPES": "scope.a, scope.b scope.c",
            "GOOGLE_TOKEN_FILE": "/custom/tokens.json",
            "GOOGLE_CALLBACK_TIMEOUT": "60",
        },
        clear=True,
    )
    def test_from_env_with_full_config(self):
        """from_env respects optional environment variables."""
        config = GoogleOAuthConfig.from_env()

        assert config.redirect_uri == "http://localhost:9999/cb"
        assert config.callback_port == 9999
        assert config.scopes == ("scope.a", "scope.b", "scope.c")
        assert config.token_file == "/custom/tokens.json"
        assert config.callback_timeout == 60.0

    @mock.patch.dict(
        os.environ,
        {
            "GOOGLE_API_CLIENT_ID": "id",
            "GOOGLE_API_CLIENT_SECRET": "secret",
            "GOOGLE_CALLBACK_TIMEOUT": "0",
        },
        clear=True,
    )
    def test_from_env_zero_timeout_disables_timeout(self):
        """GOOGLE_CALLBACK_TIMEOUT=0 means wait forever."""
        assert GoogleOAuthConfig.from_env().callback_timeout is None

    @mock.patch.dict(
        os.environ,
        {
            "GOOGLE_API_CLIENT_ID": "id",
            "GOOGLE_API_CLIENT_SECRET": "secret",
            "GOOGLE_CALLBACK_TIMEOUT": "soon",
        },
        clear=True,
    )
    def test_from_env_rejects_bad_timeout(self):
        """A non-numeric timeout is a configuration error."""
        with pytest.raises(ConfigurationError, match="GOOGLE_CALLBACK_TIMEOUT"):
            GoogleOAuthConfig.from_env()

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_from_env_missing_client_id(self):
        """from_env raises error when CLIENT_ID missing."""
        with pytest.raises(ConfigurationError, match="Missing Google OAuth credentials"):
            GoogleOAuthConfig.from_env()

    @mock.patch.dict(os.environ, {"GOOGLE_API_CLIENT_ID": "id"}, clear=True)
    def test_from_env_missing_client_secret(self):
        """from_env raises error when CLIENT_SECRET missing."""
        with pytest.raises(ConfigurationError, match="Missing Google OAuth credentials"):
            GoogleOAuthConfig.from_env()

    def test_configuration_error_message_helpful(self):
        """ConfigurationError from from_env names the variables to set."""
        with mock.patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                GoogleOAuthConfig.from_env()

        message = str(exc_info.value)
        assert "GOOGLE_API_CLIENT_ID" in message
        assert "GOOGLE_API_CLIENT_SECRET" in message


class TestParseScopes:
    """Tests for parse_scopes helper."""

    def test_comma_and_space_separated(self):
        assert parse_scopes("a,b c , d") == ("a", "b", "c", "d")

    def test_empty_string(self):
        assert parse_scopes("") == ()
