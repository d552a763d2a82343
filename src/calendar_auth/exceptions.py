"""
Exception classes for the Google Calendar OAuth handshake.

Every failure of an authorization attempt maps to one of these classes so
callers can tell a declined consent from a busy callback port or a rejected
code exchange.
"""

from typing import Optional


class CalendarAuthError(Exception):
    """Base exception for all calendar authorization errors."""

    pass


class ConfigurationError(CalendarAuthError):
    """OAuth configuration error (missing or invalid configuration)."""

    pass


class AuthorizationError(CalendarAuthError):
    """The authorization attempt did not produce a code."""

    pass


class AuthorizationTimeoutError(AuthorizationError):
    """No redirect reached the callback listener in time."""

    pass


class AuthorizationCancelledError(AuthorizationError):
    """The attempt was cancelled before the redirect arrived."""

    pass


class AuthorizationInProgressError(AuthorizationError):
    """Another authorization attempt already owns the callback port."""

    pass


class CallbackBindError(CalendarAuthError):
    """The callback listener could not bind its fixed port."""

    pass


class TokenExchangeError(CalendarAuthError):
    """Failed to exchange authorization code for tokens."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class TokenStorageError(CalendarAuthError):
    """Token storage operation failed (file I/O error)."""

    pass


class CalendarAPIError(CalendarAuthError):
    """Calendar API call made with the authorized client failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
