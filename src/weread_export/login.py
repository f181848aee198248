"""Login page redirect for expired or missing WeRead sessions."""

import logging
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, TypeAlias

from weread_export.constants import WEREAD_BASE_URL, WEREAD_LOGIN_PATH

logger = logging.getLogger(__name__)

Opener: TypeAlias = Callable[[str], Any]


@dataclass(frozen=True)
class LoginRedirectResult:
    used: Literal["browser", "none", "skipped"]
    url: str


def resolve_login_url(status: str | None) -> str:
    """A timed-out session goes back to the home page; anything else to the login form."""
    if status == "timeout":
        return WEREAD_BASE_URL
    return f"{WEREAD_BASE_URL}{WEREAD_LOGIN_PATH}"


def open_login_page(status: str | None, opener: Opener | None = webbrowser.open) -> LoginRedirectResult:
    url = resolve_login_url(status)
    if opener is None or opener(url) is False:
        logger.warning(f"Could not open a browser; log in at {url}")
        return LoginRedirectResult(used="none", url=url)
    logger.info(f"Opened login page {url}")
    return LoginRedirectResult(used="browser", url=url)


class LoginRedirect:
    """
    One-shot login redirect.

    The first ``trigger`` opens the login page; later calls only report
    ``used="skipped"``. Callers hold the instance for as long as the latch
    should apply.
    """

    def __init__(self, opener: Opener | None = webbrowser.open):
        self.opener = opener
        self.redirected = False

    def trigger(self, status: str | None = None) -> LoginRedirectResult:
        if self.redirected:
            return LoginRedirectResult(used="skipped", url=resolve_login_url(status))
        self.redirected = True
        return open_login_page(status, self.opener)
