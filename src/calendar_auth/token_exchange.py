"""
Authorization code exchange against Google's token endpoint.

One POST per call, no retries and no persistence: a failed exchange aborts
the attempt and the user has to trigger authorization again.
"""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import requests

from .exceptions import TokenExchangeError
from .token_storage import TokenData

if TYPE_CHECKING:
    from .coordinator import AuthorizationRequest

logger = logging.getLogger(__name__)


class TokenExchanger:
    """Exchanges an authorization code for a token bundle."""

    def __init__(self, token_url: str, timeout: float = 30):
        """
        Args:
            token_url: Provider token endpoint
            timeout: Request timeout in seconds
        """
        self.token_url = token_url
        self.timeout = timeout

    def exchange(self, code: str, request: "AuthorizationRequest") -> TokenData:
        """
        Exchange authorization code for access and refresh tokens.

        The redirect_uri sent here must be byte-identical to the one embedded
        in the consent URL, or Google rejects the code.

        Args:
            code: Code received by the callback listener
            request: The in-flight authorization request

        Returns:
            TokenData with the provider's token response

        Raises:
            TokenExchangeError: On network error, provider rejection or a
                malformed response
        """
        logger.info("Exchanging authorization code for tokens")

        try:
            response = requests.post(
                self.token_url,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "client_id": request.client_id,
                    "client_secret": request.client_secret,
                    "redirect_uri": request.redirect_uri,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Network error during token exchange: {e}")
            raise TokenExchangeError(f"Network error during token exchange: {e}") from e

        if response.status_code != 200:
            error_code = _error_code(response)
            logger.error(
                f"Token exchange failed: {response.status_code} - {error_code or response.text}"
            )
            raise TokenExchangeError(
                f"Token exchange failed with status {response.status_code}"
                + (f" ({error_code})" if error_code else ""),
                status_code=response.status_code,
                error_code=error_code,
            )

        try:
            data = response.json()
            expires_in = data.get("expires_in")
            token_data = TokenData.from_dict(
                {
                    "access_token": data["access_token"],
                    "refresh_token": data.get("refresh_token"),
                    "token_type": data.get("token_type", "Bearer"),
                    # some providers send the lifetime as a numeric string
                    "expires_in": int(expires_in) if isinstance(expires_in, str) else expires_in,
                    "scope": data.get("scope", " ".join(request.scopes)),
                    "issued_at": datetime.now(timezone.utc).isoformat(),
                }
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid response from token endpoint: {e}")
            raise TokenExchangeError(
                f"Invalid response from token endpoint: {e}",
                status_code=response.status_code,
            ) from e

        if token_data.refresh_token is None:
            logger.warning("Token response carried no refresh token")

        logger.info("Successfully obtained tokens")
        return token_data


def _error_code(response: requests.Response):
    """Pull the OAuth error field out of an error response, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error")
    return None
