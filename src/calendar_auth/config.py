"""
OAuth configuration for the Google Calendar integration.

Configuration can be loaded from environment variables or provided
programmatically. The redirect URI is registered with Google and cannot
change at runtime, so the callback listener always binds the host and port
embedded in it.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlparse

from .exceptions import ConfigurationError

DEFAULT_REDIRECT_URI = "http://localhost:9876/google-auth"
DEFAULT_SCOPES = ("https://www.googleapis.com/auth/calendar",)
DEFAULT_TOKEN_FILE = "TOKEN.json"
DEFAULT_CALLBACK_TIMEOUT = 300.0


def parse_scopes(value: str) -> Tuple[str, ...]:
    """Split a comma- or space-separated scope list."""
    return tuple(s for s in value.replace(",", " ").split() if s)


@dataclass
class GoogleOAuthConfig:
    """
    Configuration for Google OAuth 2.0 (installed application flow).

    Attributes:
        client_id: OAuth client ID from the Google Cloud console
        client_secret: OAuth client secret from the Google Cloud console
        redirect_uri: Loopback redirect URI registered for the client
        scopes: Requested OAuth scopes
        authorization_url: Google consent endpoint
        token_url: Google token endpoint
        token_file: Path of the persisted token file
        callback_timeout: Seconds to wait for the redirect (None waits forever)
    """

    # Required - from Google Cloud console
    client_id: str
    client_secret: str

    redirect_uri: str = DEFAULT_REDIRECT_URI
    scopes: Tuple[str, ...] = DEFAULT_SCOPES

    # Google OAuth endpoints
    authorization_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url: str = "https://oauth2.googleapis.com/token"

    token_file: str = DEFAULT_TOKEN_FILE

    callback_timeout: Optional[float] = DEFAULT_CALLBACK_TIMEOUT

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.client_id:
            raise ConfigurationError("client_id cannot be empty")

        if not self.client_secret:
            raise ConfigurationError("client_secret cannot be empty")

        self.scopes = tuple(self.scopes)
        if not self.scopes:
            raise ConfigurationError("at least one scope is required")

        parsed = urlparse(self.redirect_uri)
        if parsed.scheme != "http" or not parsed.hostname:
            raise ConfigurationError(
                f"redirect_uri must be a local http URL, got {self.redirect_uri!r}"
            )

        try:
            port = parsed.port
        except ValueError:
            port = None
        if port is None or not (1 <= port <= 65535):
            raise ConfigurationError(
                "redirect_uri must carry an explicit port between 1 and 65535, "
                f"got {self.redirect_uri!r}"
            )

        if self.callback_timeout is not None and self.callback_timeout < 0:
            raise ConfigurationError("callback_timeout cannot be negative")

    @property
    def callback_host(self) -> str:
        """Host the callback listener binds (taken from redirect_uri)."""
        return urlparse(self.redirect_uri).hostname

    @property
    def callback_port(self) -> int:
        """Port the callback listener binds (taken from redirect_uri)."""
        return urlparse(self.redirect_uri).port

    @property
    def callback_path(self) -> str:
        """Path component of redirect_uri."""
        return urlparse(self.redirect_uri).path or "/"

    @classmethod
    def from_env(cls) -> "GoogleOAuthConfig":
        """
        Load configuration from environment variables.

        Required environment variables:
            GOOGLE_API_CLIENT_ID: OAuth client ID
            GOOGLE_API_CLIENT_SECRET: OAuth client secret

        Optional environment variables:
            GOOGLE_REDIRECT_URI: Redirect URI (default: http://localhost:9876/google-auth)
            GOOGLE_SCOPES: Comma or space separated scopes (default: calendar)
            GOOGLE_TOKEN_FILE: Token file path (default: TOKEN.json)
            GOOGLE_CALLBACK_TIMEOUT: Seconds to wait for the redirect, 0 disables (default: 300)

        Returns:
            GoogleOAuthConfig instance

        Raises:
            ConfigurationError: If required environment variables are missing
                or an optional one is malformed
        """
        client_id = os.environ.get("GOOGLE_API_CLIENT_ID")
        client_secret = os.environ.get("GOOGLE_API_CLIENT_SECRET")

        if not client_id or not client_secret:
            raise ConfigurationError(
                "Missing Google OAuth credentials. Set environment variables:\n"
                "  GOOGLE_API_CLIENT_ID=your_client_id\n"
                "  GOOGLE_API_CLIENT_SECRET=your_client_secret\n"
                "\n"
                "Create a desktop OAuth client at: https://console.cloud.google.com/apis/credentials"
            )

        raw_timeout = os.environ.get("GOOGLE_CALLBACK_TIMEOUT")
        timeout: Optional[float] = DEFAULT_CALLBACK_TIMEOUT
        if raw_timeout is not None:
            try:
                timeout = float(raw_timeout)
            except ValueError as e:
                raise ConfigurationError(
                    f"GOOGLE_CALLBACK_TIMEOUT must be a number, got {raw_timeout!r}"
                ) from e
            if timeout == 0:
                timeout = None

        raw_scopes = os.environ.get("GOOGLE_SCOPES")

        return cls(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=os.environ.get("GOOGLE_REDIRECT_URI", DEFAULT_REDIRECT_URI),
            scopes=parse_scopes(raw_scopes) if raw_scopes else DEFAULT_SCOPES,
            token_file=os.environ.get("GOOGLE_TOKEN_FILE", DEFAULT_TOKEN_FILE),
            callback_timeout=timeout,
        )
