from __future__ import annotations


class FanqiePublisherError(RuntimeError):
    """Base class for errors raised by this package."""


class BrowserLaunchError(FanqiePublisherError):
    """
    Raised when no browser could be started (neither the configured channel nor the bundled Chromium).
    """


class SessionStoreError(FanqiePublisherError, OSError):
    """Raised when the cookie file cannot be written."""


class PageObserverError(FanqiePublisherError):
    """
    Raised by a page observer when the underlying page can no longer be queried (crashed, closed, torn down).
    """


class NotAuthenticatedError(FanqiePublisherError):
    """Raised when an action sequence is requested without an authenticated session."""
