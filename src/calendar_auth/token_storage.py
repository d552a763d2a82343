"""
Token storage for the Google Calendar OAuth integration.

This module provides file-based token persistence. The token file is a
single JSON object replaced atomically on every save, so a crash mid-write
never leaves a half-written file that a later load would accept.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from .exceptions import TokenStorageError

logger = logging.getLogger(__name__)


@dataclass
class TokenData:
    """
    Stored OAuth token data, mirroring Google's token response.

    Attributes:
        access_token: Access token for API calls
        refresh_token: Long-lived token (only issued with offline access)
        token_type: Token type (typically "Bearer")
        expires_in: Token lifetime in seconds from issue time
        scope: Granted OAuth scopes (space separated)
        issued_at: ISO timestamp of when tokens were issued
    """

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    scope: str = ""
    issued_at: Optional[str] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        """
        Calculate expiration datetime.

        Returns:
            Datetime when access token expires (timezone-aware UTC), or None
            when the provider did not report a lifetime
        """
        if self.expires_in is None or self.issued_at is None:
            return None
        issued = datetime.fromisoformat(self.issued_at)
        if issued.tzinfo is None:
            issued = issued.replace(tzinfo=timezone.utc)
        return issued + timedelta(seconds=self.expires_in)

    @property
    def is_expired(self) -> bool:
        """True if the access token has a known expiry that has passed."""
        expires_at = self.expires_at
        return expires_at is not None and datetime.now(timezone.utc) >= expires_at

    def expires_within(self, seconds: int) -> bool:
        """
        Check if token expires within given seconds.

        Args:
            seconds: Number of seconds to check

        Returns:
            True if token will expire within the specified time, False otherwise
        """
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return datetime.now(timezone.utc) + timedelta(seconds=seconds) >= expires_at

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TokenData":
        """
        Create TokenData from dictionary.

        Raises:
            TypeError: If fields are missing, unknown or of the wrong type
            ValueError: If the access token is empty or issued_at is not
                an ISO timestamp
        """
        if not isinstance(data, dict):
            raise TypeError(f"token data must be an object, got {type(data).__name__}")
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise TypeError(f"unknown token fields: {sorted(unknown)}")
        token = cls(**data)

        if not isinstance(token.access_token, str) or not token.access_token:
            raise ValueError("access_token must be a non-empty string")
        if token.refresh_token is not None and not isinstance(token.refresh_token, str):
            raise TypeError("refresh_token must be a string")
        if not isinstance(token.token_type, str):
            raise TypeError("token_type must be a string")
        if not isinstance(token.scope, str):
            raise TypeError("scope must be a string")
        # bool is an int subclass but never a lifetime
        if token.expires_in is not None and (
            isinstance(token.expires_in, bool) or not isinstance(token.expires_in, int)
        ):
            raise TypeError("expires_in must be an integer")
        if token.issued_at is not None:
            if not isinstance(token.issued_at, str):
                raise TypeError("issued_at must be an ISO timestamp string")
            datetime.fromisoformat(token.issued_at)
        return token


class TokenStorage:
    """
    File-based token storage (plaintext JSON, user-only permissions).

    There is one writer per process; writes are still serialized behind a
    lock and go through a temp file plus os.replace.
    """

    def __init__(self, token_file: str):
        """
        Initialize token storage.

        Args:
            token_file: Path to token storage file (e.g. TOKEN.json)
        """
        self.token_file = Path(token_file)
        self._lock = threading.Lock()
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Create parent directory if needed."""
        self.token_file.parent.mkdir(parents=True, exist_ok=True)

    def save(self, token_data: TokenData) -> None:
        """
        Save tokens to file atomically.

        Args:
            token_data: Token data to save

        Raises:
            TokenStorageError: If save operation fails; the previous file,
                if any, is left untouched
        """
        with self._lock:
            tmp_path = None
            try:
                fd, tmp_path = tempfile.mkstemp(
                    prefix=f".{self.token_file.name}.",
                    suffix=".tmp",
                    dir=str(self.token_file.parent),
                )
                with os.fdopen(fd, "w") as f:
                    json.dump(token_data.to_dict(), f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self.token_file)
                tmp_path = None
                logger.info(f"Tokens saved to {self.token_file}")
            except (IOError, OSError, TypeError, ValueError) as e:
                logger.error(f"Failed to save tokens: {e}")
                raise TokenStorageError(f"Failed to save tokens: {e}") from e
            finally:
                if tmp_path is not None:
                    Path(tmp_path).unlink(missing_ok=True)

    def load(self) -> Optional[TokenData]:
        """
        Load tokens from file.

        Returns:
            TokenData if file exists and is valid, None otherwise

        Notes:
            - Returns None if file doesn't exist (normal on first run)
            - Returns None if file is corrupted (logs warning); the caller
              re-runs the consent flow
        """
        if not self.token_file.exists():
            logger.debug(f"No token file found at {self.token_file}")
            return None

        try:
            with open(self.token_file, "r") as f:
                data = json.load(f)

            token_data = TokenData.from_dict(data)
            logger.debug(f"Tokens loaded from {self.token_file}")
            return token_data

        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                f"Invalid token file at {self.token_file}, "
                f"will need re-authorization: {e}"
            )
            return None
        except (IOError, OSError) as e:
            logger.warning(f"Could not read token file: {e}")
            return None

    def delete(self) -> bool:
        """
        Delete token file.

        Returns:
            True if file was deleted, False if file didn't exist

        Raises:
            TokenStorageError: If the file exists but cannot be removed
        """
        with self._lock:
            if self.token_file.exists():
                try:
                    self.token_file.unlink()
                    logger.info(f"Token file deleted: {self.token_file}")
                    return True
                except (OSError, PermissionError) as e:
                    logger.error(f"Failed to delete token file: {e}")
                    raise TokenStorageError(f"Failed to delete token file: {e}") from e

        logger.debug(f"Token file does not exist: {self.token_file}")
        return False

    def exists(self) -> bool:
        return self.token_file.exists()
