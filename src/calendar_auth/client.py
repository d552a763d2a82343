"""
Authorized Google Calendar client.

The continuation of a successful authorization receives one of these. It
carries the access token on a requests.Session; the only call made here is
the calendar list lookup that proves the grant works.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .exceptions import CalendarAPIError
from .token_storage import TokenData

logger = logging.getLogger(__name__)


class AuthorizedClient:
    """HTTP client bound to one OAuth credential."""

    BASE_URL = "https://www.googleapis.com/calendar/v3"

    def __init__(
        self,
        credential: TokenData,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        self.credential = credential
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {"Authorization": f"{credential.token_type} {credential.access_token}"}
        )

    def get_calendar_list(self) -> Dict[str, Any]:
        """
        Fetch the user's calendar list.

        Returns:
            Decoded calendarList resource

        Raises:
            CalendarAPIError: On network errors or non-2xx responses
        """
        url = f"{self.BASE_URL}/users/me/calendarList"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Calendar API request failed: {e}")
            raise CalendarAPIError(f"Calendar API request failed: {e}") from e

        if not response.ok:
            logger.error(f"The API returned an error: {response.status_code} - {response.text}")
            raise CalendarAPIError(
                f"Calendar API returned status {response.status_code}",
                status_code=response.status_code,
            )

        return response.json()
