from __future__ import annotations
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"


@dataclass(frozen=True)
class ErrorClassification:
    """
    What kind of failure a provider call hit. Created fresh per failure.
    - is_quota_exhausted: account-level usage limit; stop retrying and enter cooldown.
    - is_rate_limit_retryable: transient 429; retry with backoff.
    Anything else is a generic retryable error.
    """
    is_quota_exhausted: bool
    is_rate_limit_retryable: bool
    status_code: Optional[int]
    provider_status: Optional[str]
    display_message: str

    @property
    def kind(self) -> str:
        if self.is_quota_exhausted:
            return "quota_exhausted"
        if self.is_rate_limit_retryable:
            return "rate_limited"
        return "transient"


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _int_or_none(value: Any) -> Optional[int]:
    # bool is an int subclass; never a status code
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _provider_error_record(raw: Any) -> Optional[Any]:
    # google-genai keeps the response JSON on `.details`, openai on `.body`
    for holder in (raw, _field(raw, "details"), _field(raw, "body"), _field(raw, "response_json")):
        if holder is None:
            continue
        err = _field(holder, "error")
        if err is not None and isinstance(_field(err, "message"), str):
            return err
    return None


def _extract(raw: Any):
    """Returns (message, status_code, provider_status)."""
    err = _provider_error_record(raw)
    if err is not None:
        message = _field(err, "message")
        code = _int_or_none(_field(err, "code"))
        status = _field(err, "status")
        return message, code, (status.upper() if isinstance(status, str) else None)

    message = _field(raw, "message")
    if isinstance(message, str) and message:
        status = _field(raw, "status")
        code = (
            _int_or_none(status)
            or _int_or_none(_field(raw, "status_code"))
            or _int_or_none(_field(raw, "code"))
        )
        tag = status.upper() if isinstance(status, str) else None
        return message, code, tag

    return str(raw), _int_or_none(getattr(raw, "status_code", None)), None


def classify_error(raw: Any) -> ErrorClassification:
    """
    Turn an opaque failure into an ErrorClassification. Never raises.
    """
    try:
        message, code, tag = _extract(raw)
    except Exception:
        logger.debug("Could not inspect error of type %s", type(raw).__name__, exc_info=True)
        try:
            message = str(raw)
        except Exception:
            message = "unknown error"
        return ErrorClassification(False, False, None, None, message)

    lower = message.lower()
    quota = (
        (code == 429 and ("quota" in lower or tag == RESOURCE_EXHAUSTED))
        or tag == RESOURCE_EXHAUSTED
        or (code is None and "quota" in lower and ("exceeded" in lower or "exhausted" in lower))
    )
    return ErrorClassification(
        is_quota_exhausted=quota,
        is_rate_limit_retryable=(code == 429 and not quota),
        status_code=code,
        provider_status=tag,
        display_message=message,
    )
