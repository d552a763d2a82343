#!/usr/bin/env python3
"""
Google Calendar OAuth Authorization Script

Runs the same handshake the desktop app triggers from its calendar view:
if TOKEN.json is missing, a local listener is started on the redirect port,
the consent page opens in your browser, and the resulting tokens are saved.
The script then lists your calendars to prove the grant works.

Usage:
    python scripts/authorize_google.py

    # Show the stored token status
    python scripts/authorize_google.py --status

    # Delete the stored tokens
    python scripts/authorize_google.py --revoke

Prerequisites:
    export GOOGLE_API_CLIENT_ID="your_client_id"
    export GOOGLE_API_CLIENT_SECRET="your_client_secret"
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.calendar_auth.client import AuthorizedClient
from src.calendar_auth.coordinator import FlowState, OAuthCoordinator
from src.calendar_auth.exceptions import (
    AuthorizationInProgressError,
    CalendarAPIError,
    ConfigurationError,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def print_calendars(client: AuthorizedClient) -> None:
    """Continuation: list the user's calendars."""
    try:
        calendars = client.get_calendar_list()
    except CalendarAPIError as e:
        logger.error(f"Authorized, but the calendar list call failed: {e}")
        return

    items = calendars.get("items", [])
    logger.info(f"Found {len(items)} calendar(s):")
    for item in items:
        logger.info(f"  - {item.get('summary', item.get('id'))}")


def authorize() -> int:
    """
    Run the authorization flow and wait for it to finish.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        coordinator = OAuthCoordinator()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        attempt = coordinator.authorize(print_calendars)
    except AuthorizationInProgressError as e:
        logger.error(str(e))
        return 1

    if attempt.state is FlowState.AWAITING_CALLBACK:
        logger.info(f"Waiting for the redirect to {coordinator.config.redirect_uri}")
        logger.info("Complete the authorization in your browser (Ctrl+C to abort)")

    try:
        attempt.wait()
    except KeyboardInterrupt:
        coordinator.shutdown()
        logger.info("Authorization aborted")
        return 1

    if attempt.state is FlowState.ERRORED:
        logger.error(f"Authorization failed: {attempt.error}")
        return 1

    logger.info(f"Authorized. Tokens stored in {coordinator.config.token_file}")
    return 0


def status() -> int:
    """
    Print the stored token status.

    Returns:
        Exit code (0 if authorized, 1 if not authorized, 2 on error)
    """
    try:
        coordinator = OAuthCoordinator()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    info = coordinator.get_status()
    if not info["authorized"]:
        print(f"NOT AUTHORIZED: {info['message']}")
        return 1

    print("AUTHORIZED")
    print(f"  Expires at:     {info['expires_at'] or 'unknown'}")
    print(f"  Expired:        {'yes' if info['expired'] else 'no'}")
    print(f"  Refresh token:  {'yes' if info['has_refresh_token'] else 'no'}")
    print(f"  Scope:          {info['scope'] or 'N/A'}")
    return 0


def revoke() -> int:
    """
    Delete the stored tokens.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        coordinator = OAuthCoordinator()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if not coordinator.storage.exists():
        logger.info("No authorization found to revoke")
        return 0

    coordinator.revoke()
    logger.info(f"Token file deleted: {coordinator.config.token_file}")
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Authorize the tutoring app against Google Calendar",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--status",
        action="store_true",
        help="Show the stored token status and exit",
    )
    group.add_argument(
        "--revoke",
        action="store_true",
        help="Delete the stored tokens",
    )

    args = parser.parse_args()

    if args.status:
        return status()
    if args.revoke:
        return revoke()
    return authorize()


if __name__ == "__main__":
    sys.exit(main())
