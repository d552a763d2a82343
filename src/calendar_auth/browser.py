"""Opens the consent page in the user's default external browser."""

import logging
import webbrowser

logger = logging.getLogger(__name__)


class BrowserLauncher:
    """
    Fire-and-forget browser launcher.

    The flow never learns whether a browser actually appeared; its only
    feedback channel is the callback listener receiving a request.
    """

    def open(self, url: str) -> None:
        logger.info("Opening consent page in the default browser")
        try:
            opened = webbrowser.open(url)
        except Exception as e:
            logger.warning(f"Could not open browser automatically: {e}")
            return
        if not opened:
            logger.warning(f"No browser available, open this URL manually: {url}")
