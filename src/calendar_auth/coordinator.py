"""
OAuth coordinator for the Google Calendar integration.

This module is the main interface the application uses to obtain an
authorized client. A call to OAuthCoordinator.authorize() starts one
AuthorizationAttempt, a small state machine:

    IDLE -> CHECKING_STORE -> AUTHORIZED
                           -> NEEDS_CONSENT -> AWAITING_CALLBACK
                              -> EXCHANGING -> PERSISTED -> DONE

with ERRORED reachable from any non-terminal state. The caller's
continuation runs at most once, only from AUTHORIZED or DONE, and only after
the credential is on disk.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Tuple
from urllib.parse import urlencode

from .browser import BrowserLauncher
from .callback_listener import CallbackListener, CallbackResult
from .client import AuthorizedClient
from .config import GoogleOAuthConfig
from .exceptions import (
    AuthorizationCancelledError,
    AuthorizationError,
    AuthorizationInProgressError,
    AuthorizationTimeoutError,
    CalendarAuthError,
    CallbackBindError,
    TokenExchangeError,
    TokenStorageError,
)
from .token_exchange import TokenExchanger
from .token_storage import TokenData, TokenStorage

logger = logging.getLogger(__name__)

Continuation = Callable[[Any], None]


@dataclass
class AuthorizationRequest:
    """
    In-flight state for one handshake attempt.

    Attributes:
        client_id: OAuth client ID
        client_secret: OAuth client secret
        redirect_uri: Redirect URI, identical in consent URL and exchange
        scopes: Requested scopes
        continuation: Receives the authorized client on success
    """

    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    scopes: Tuple[str, ...]
    continuation: Continuation = field(repr=False)

    @classmethod
    def from_config(
        cls, config: GoogleOAuthConfig, continuation: Continuation
    ) -> "AuthorizationRequest":
        return cls(
            client_id=config.client_id,
            client_secret=config.client_secret,
            redirect_uri=config.redirect_uri,
            scopes=tuple(config.scopes),
            continuation=continuation,
        )

    def consent_url(self, authorization_url: str) -> str:
        """
        Generate the provider consent URL.

        offline access is requested so that Google issues a refresh token.
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",
        }
        return f"{authorization_url}?{urlencode(params)}"


class FlowState(str, Enum):
    IDLE = "idle"
    CHECKING_STORE = "checking_store"
    AUTHORIZED = "authorized"
    NEEDS_CONSENT = "needs_consent"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    PERSISTED = "persisted"
    DONE = "done"
    ERRORED = "errored"


TERMINAL_STATES = frozenset({FlowState.AUTHORIZED, FlowState.DONE, FlowState.ERRORED})


class AuthorizationAttempt:
    """
    One run of the authorization state machine.

    Callbacks from the listener thread, the timeout timer and cancel() may
    race; every transition goes through _advance()/_fail() under one lock so
    exactly one of them wins.
    """

    def __init__(
        self,
        request: AuthorizationRequest,
        authorization_url: str,
        storage: TokenStorage,
        exchanger: TokenExchanger,
        browser: BrowserLauncher,
        listener_factory: Callable[[], CallbackListener],
        client_factory: Callable[[TokenData], Any] = AuthorizedClient,
        timeout: Optional[float] = None,
    ):
        self.request = request
        self.authorization_url = authorization_url
        self.storage = storage
        self.exchanger = exchanger
        self.browser = browser
        self.listener_factory = listener_factory
        self.listener: Optional[CallbackListener] = None
        self.client_factory = client_factory
        self.timeout = timeout

        self.state = FlowState.IDLE
        self.error: Optional[CalendarAuthError] = None
        self.client: Optional[Any] = None

        self._lock = threading.Lock()
        self._done = threading.Event()
        self._timer: Optional[threading.Timer] = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the attempt reaches a terminal state; False on timeout."""
        return self._done.wait(timeout=timeout)

    def _advance(self, expected: FlowState, new: FlowState) -> bool:
        with self._lock:
            if self.state is not expected:
                logger.debug(f"Skipping {expected.value} -> {new.value}, attempt is {self.state.value}")
                return False
            self.state = new
        logger.debug(f"Authorization attempt: {expected.value} -> {new.value}")
        return True

    def _fail(self, error: CalendarAuthError, only_from: Optional[FlowState] = None) -> bool:
        with self._lock:
            if self.state in TERMINAL_STATES:
                return False
            if only_from is not None and self.state is not only_from:
                return False
            previous = self.state
            self.state = FlowState.ERRORED
            self.error = error

        logger.error(f"Authorization failed while {previous.value}: {error}")
        self._cancel_timer()
        if self.listener is not None:
            self.listener.stop()
        self._done.set()
        return True

    def start(self) -> "AuthorizationAttempt":
        """Run the attempt until it is authorized, errored or awaiting the redirect."""
        if not self._advance(FlowState.IDLE, FlowState.CHECKING_STORE):
            raise RuntimeError("AuthorizationAttempt can only be started once")
        try:
            credential = self.storage.load()
        except Exception as e:
            logger.exception("Unexpected error reading stored tokens")
            self._fail(AuthorizationError(f"Could not read stored tokens: {e}"))
            return self

        if credential is not None:
            self._advance(FlowState.CHECKING_STORE, FlowState.AUTHORIZED)
            logger.info("Using stored credentials")
            self._deliver(credential)
            return self

        logger.info("No valid tokens found, starting authorization flow")
        self._advance(FlowState.CHECKING_STORE, FlowState.NEEDS_CONSENT)
        url = self.request.consent_url(self.authorization_url)

        # The listener must be bound before the browser can redirect to it.
        try:
            self.listener = self.listener_factory()
            self._advance(FlowState.NEEDS_CONSENT, FlowState.AWAITING_CALLBACK)
            self.listener.start(self._on_callback)
        except CallbackBindError as e:
            self._fail(e)
            return self
        except Exception as e:
            logger.exception("Unexpected error starting the callback listener")
            self._fail(AuthorizationError(f"Could not start the callback listener: {e}"))
            return self

        self._start_timer()
        try:
            self.browser.open(url)
        except Exception:
            # The redirect can still arrive if the user opens the URL by hand.
            logger.exception(f"Could not open the browser, visit this URL to authorize: {url}")
        return self

    def _on_callback(self, result: CallbackResult) -> None:
        if not result.success:
            self._fail(
                AuthorizationError(
                    f"Authorization was not granted: {result.error} - {result.error_description}"
                ),
                only_from=FlowState.AWAITING_CALLBACK,
            )
            return

        if not self._advance(FlowState.AWAITING_CALLBACK, FlowState.EXCHANGING):
            logger.warning("Callback arrived after the attempt ended, ignoring it")
            return
        self._cancel_timer()

        try:
            credential = self.exchanger.exchange(result.authorization_code, self.request)
        except TokenExchangeError as e:
            self._fail(e)
            return
        except Exception as e:
            logger.exception("Unexpected error during the token exchange")
            self._fail(TokenExchangeError(f"Unexpected error during token exchange: {e}"))
            return

        if not self._advance(FlowState.EXCHANGING, FlowState.PERSISTED):
            logger.warning("Attempt ended during the token exchange, discarding tokens")
            return

        try:
            self.storage.save(credential)
        except TokenStorageError as e:
            self._fail(e)
            return
        except Exception as e:
            logger.exception("Unexpected error saving tokens")
            self._fail(TokenStorageError(f"Failed to save tokens: {e}"))
            return

        self.listener.stop()
        if self._advance(FlowState.PERSISTED, FlowState.DONE):
            logger.info("Authorization complete, tokens saved")
            self._deliver(credential)

    def _deliver(self, credential: TokenData) -> None:
        try:
            self.client = self.client_factory(credential)
            self.request.continuation(self.client)
        finally:
            self._done.set()

    def _start_timer(self) -> None:
        if self.timeout is None:
            return
        self._timer = threading.Timer(self.timeout, self._on_timeout)
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _on_timeout(self) -> None:
        self._fail(
            AuthorizationTimeoutError(
                f"No callback received within {self.timeout} seconds. "
                "Please ensure you completed the authorization in your browser."
            ),
            only_from=FlowState.AWAITING_CALLBACK,
        )

    def cancel(self) -> bool:
        """Abandon the attempt and release the callback port."""
        return self._fail(AuthorizationCancelledError("Authorization attempt cancelled"))


class OAuthCoordinator:
    """
    High-level coordinator for OAuth operations.

    Example:
        coordinator = OAuthCoordinator()
        attempt = coordinator.authorize(lambda client: print(client.get_calendar_list()))
        attempt.wait()
    """

    def __init__(
        self,
        config: Optional[GoogleOAuthConfig] = None,
        storage: Optional[TokenStorage] = None,
        exchanger: Optional[TokenExchanger] = None,
        browser: Optional[BrowserLauncher] = None,
        listener_factory: Optional[Callable[[], CallbackListener]] = None,
        client_factory: Callable[[TokenData], Any] = AuthorizedClient,
    ):
        """
        Initialize OAuth coordinator.

        Args:
            config: OAuth configuration (loads from environment if not provided)
            storage: Token storage (defaults to config.token_file)
            exchanger: Code exchanger (defaults to config.token_url)
            browser: Browser launcher
            listener_factory: Creates a fresh callback listener per attempt
            client_factory: Builds the authorized client from a credential
        """
        self.config = config or GoogleOAuthConfig.from_env()
        self.storage = storage or TokenStorage(self.config.token_file)
        self.exchanger = exchanger or TokenExchanger(self.config.token_url)
        self.browser = browser or BrowserLauncher()
        self.listener_factory = listener_factory or self._default_listener
        self.client_factory = client_factory

        self._lock = threading.Lock()
        self._active: Optional[AuthorizationAttempt] = None

    def _default_listener(self) -> CallbackListener:
        return CallbackListener(self.config.callback_host, self.config.callback_port)

    @property
    def active_attempt(self) -> Optional[AuthorizationAttempt]:
        return self._active

    def authorize(self, continuation: Continuation) -> AuthorizationAttempt:
        """
        Get an authorized client, running the consent flow if needed.

        Args:
            continuation: Called once with the authorized client; never
                called if the attempt fails

        Returns:
            The attempt handle; inspect state/error or wait() on it

        Raises:
            AuthorizationInProgressError: If a previous attempt is still
                waiting for its callback
        """
        with self._lock:
            if self._active is not None and not self._active.done:
                raise AuthorizationInProgressError(
                    "An authorization attempt is already in progress"
                )
            attempt = AuthorizationAttempt(
                request=AuthorizationRequest.from_config(self.config, continuation),
                authorization_url=self.config.authorization_url,
                storage=self.storage,
                exchanger=self.exchanger,
                browser=self.browser,
                listener_factory=self.listener_factory,
                client_factory=self.client_factory,
                timeout=self.config.callback_timeout,
            )
            self._active = attempt

        return attempt.start()

    def shutdown(self) -> None:
        """Cancel any pending attempt (e.g. on application exit)."""
        attempt = self._active
        if attempt is not None and not attempt.done:
            attempt.cancel()

    def is_authorized(self) -> bool:
        return self.storage.load() is not None

    def get_status(self) -> dict:
        """
        Get current authorization status for diagnostics.

        Returns:
            Dictionary with status information including:
            - authorized: bool
            - expired: bool (if authorized)
            - expires_at: ISO timestamp or None (if authorized)
            - has_refresh_token: bool (if authorized)
            - scope: str (if authorized)
            - message: str (if not authorized)
        """
        token = self.storage.load()
        if token is None:
            return {"authorized": False, "message": "No tokens stored"}

        expires_at = token.expires_at
        return {
            "authorized": True,
            "expired": token.is_expired,
            "expires_at": expires_at.isoformat() if expires_at else None,
            "has_refresh_token": token.refresh_token is not None,
            "scope": token.scope,
        }

    def revoke(self) -> None:
        """
        Revoke current authorization.

        This deletes the locally stored tokens only; Google still considers
        the grant valid until the user removes it from their account.
        """
        self.storage.delete()
        logger.info("Authorization revoked locally. Re-authorization required.")
