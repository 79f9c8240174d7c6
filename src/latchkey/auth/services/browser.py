"""Browser launching capability used by the authorization flow."""

from __future__ import annotations

import logging
import threading
import webbrowser
from typing import Protocol

logger = logging.getLogger(__name__)


class BrowserLauncher(Protocol):
    """Opens the authorization URL for the user.

    Fire-and-forget: implementations must return promptly and report
    nothing back. The flow learns the result only from the redirect that
    reaches the loopback listener.
    """

    def open(self, url: str) -> None:
        ...


class SystemBrowserLauncher:
    """Opens the user's default browser.

    ``webbrowser.open`` can block while it spawns the browser process, so it
    runs on a daemon thread.
    """

    def open(self, url: str) -> None:
        def open_browser() -> None:
            try:
                if not webbrowser.open(url):
                    logger.warning(
                        "No browser could be opened. Open this URL manually: "
                        f"{url}"
                    )
            except Exception as e:
                logger.warning(f"Failed to open browser: {e}. Open the URL manually.")

        browser_thread = threading.Thread(target=open_browser, daemon=True)
        browser_thread.start()
