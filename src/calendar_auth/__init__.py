"""
Google Calendar OAuth 2.0 handshake for the desktop tutoring app.

Turns a stored-or-absent credential into an authorized client: when no token
file exists it binds a one-shot loopback listener, opens the consent page in
the user's browser, exchanges the returned code, persists the tokens and then
hands the client to the caller's continuation.

Public API:
    GoogleOAuthConfig: OAuth configuration management
    TokenData: Token data structure
    TokenStorage: File-based token persistence
    TokenExchanger: Authorization code exchange
    BrowserLauncher: Opens the consent page
    CallbackListener: One-shot redirect listener
    OAuthCoordinator: High-level OAuth interface
    AuthorizedClient: Client handed to the continuation

Exceptions:
    CalendarAuthError: Base exception
    ConfigurationError: Configuration error
    AuthorizationError: Redirect carried an error (and timeout/cancel/busy subclasses)
    CallbackBindError: Callback port unavailable
    TokenExchangeError: Token exchange failed
    TokenStorageError: Storage operation failed
    CalendarAPIError: Calendar call with the authorized client failed
"""

from .browser import BrowserLauncher
from .callback_listener import CallbackListener, CallbackResult
from .client import AuthorizedClient
from .config import GoogleOAuthConfig
from .coordinator import (
    AuthorizationAttempt,
    AuthorizationRequest,
    FlowState,
    OAuthCoordinator,
)
from .exceptions import (
    AuthorizationCancelledError,
    AuthorizationError,
    AuthorizationInProgressError,
    AuthorizationTimeoutError,
    CalendarAPIError,
    CalendarAuthError,
    CallbackBindError,
    ConfigurationError,
    TokenExchangeError,
    TokenStorageError,
)
from .token_exchange import TokenExchanger
from .token_storage import TokenData, TokenStorage

__all__ = [
    # Configuration
    "GoogleOAuthConfig",
    # Token Storage
    "TokenData",
    "TokenStorage",
    # Exchange
    "TokenExchanger",
    # Browser / Callback
    "BrowserLauncher",
    "CallbackListener",
    "CallbackResult",
    # Coordinator
    "AuthorizationAttempt",
    "AuthorizationRequest",
    "FlowState",
    "OAuthCoordinator",
    # Client
    "AuthorizedClient",
    # Exceptions
    "CalendarAuthError",
    "ConfigurationError",
    "AuthorizationError",
    "AuthorizationTimeoutError",
    "AuthorizationCancelledError",
    "AuthorizationInProgressError",
    "CallbackBindError",
    "TokenExchangeError",
    "TokenStorageError",
    "CalendarAPIError",
]
