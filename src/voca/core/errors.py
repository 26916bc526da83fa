from __future__ import annotations
from typing import Optional


class ProviderError(Exception):
    """Base class for provider-level failures."""

    def __init__(self, message: str = "", *, status_code: Optional[int] = None, status: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = status


class ProviderClientError(ProviderError):
    """
    Caller/config issue (4xx invalid request, auth, unknown model,
    unsupported parameter, etc.). The fix is change input/config.
    """


class ProviderTransientError(ProviderError):
    """
    Rate limits, quota, timeouts, network hiccups, 5xx, etc.
    """


class NoCredentialError(ProviderClientError):
    """No API key could be resolved for the provider. Checked before any call is made."""


class StaleConversationError(ProviderClientError):
    """A conversation handle was used after a newer conversation replaced it."""


class ChatStreamError(ProviderError):
    """
    A tutor chat stream ended early. Carries the classification of the
    underlying failure (None when the provider was never contacted).
    """

    def __init__(self, message: str, classification=None):
        super().__init__(
            message,
            status_code=getattr(classification, "status_code", None),
            status=getattr(classification, "provider_status", None),
        )
        self.classification = classification


class MalformedReplyError(ProviderTransientError):
    """The provider answered, but the reply could not be parsed. Retried like any transient error."""
