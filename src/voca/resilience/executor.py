from __future__ import annotations
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

from voca.core.errors import MalformedReplyError
from voca.core.ports import Notify
from .classifier import ErrorClassification, classify_error
from .cooldown import QuotaCooldownManager
from .extract import extract_json, image_payload, missing_fields, response_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    max_retries: retries after the first attempt (total attempts = max_retries + 1).
    initial_delay_ms: wait before the first retry.
    backoff_multiplier: each later wait is the previous one times this.
    """
    max_retries: int
    initial_delay_ms: int
    backoff_multiplier: float = 2.0

    def delay_ms(self, attempt: int) -> float:
        """Wait before 0-indexed attempt k (k >= 1)."""
        return self.initial_delay_ms * self.backoff_multiplier ** (attempt - 1)


TEXT_POLICY = RetryPolicy(max_retries=2, initial_delay_ms=7000)
IMAGE_POLICY = RetryPolicy(max_retries=1, initial_delay_ms=8000)


class FailureKind(enum.Enum):
    COOLDOWN_ACTIVE = "cooldown_active"
    QUOTA_EXHAUSTED = "quota_exhausted"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    INCOMPLETE = "incomplete"
    NO_CREDENTIAL = "no_credential"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class Success:
    value: Any
    # True when the fallback record stands in for an incomplete reply
    degraded: bool = False


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str = ""
    classification: Optional[ErrorClassification] = field(default=None, compare=False)


Outcome = Union[Success, Failure]


def decode_json_text(raw: Any) -> Optional[Any]:
    return extract_json(response_text(raw))


def decode_image(raw: Any) -> dict:
    return {"image_bytes": image_payload(raw)}


class RetryingExecutor:
    """
    Runs one provider call with retry and exponential backoff.

    - Skips the call entirely while the quota cooldown is active (checked once, up front).
    - Quota exhaustion stops retrying and activates the cooldown.
    - Rate limits and transient errors are retried, as are unparseable and incomplete replies.
    - Attempts are strictly sequential. Every failure becomes a Failure plus one notification.
    """

    def __init__(self, cooldown: QuotaCooldownManager, sleep: Callable[[float], None] = time.sleep):
        self.cooldown = cooldown
        self.sleep = sleep

    def _backoff(self, delay_ms: float, policy: RetryPolicy) -> float:
        self.sleep(delay_ms / 1000.0)
        return delay_ms * policy.backoff_multiplier

    def execute(
        self,
        operation: Callable[[], Any],
        policy: RetryPolicy,
        feature: str,
        notify: Notify,
        *,
        required_fields: Iterable[str] = (),
        decode: Callable[[Any], Optional[Any]] = decode_json_text,
        fallback: Any = None,
        success_message: Optional[str] = None,
    ) -> Outcome:
        if self.cooldown.is_active():
            logger.info("Cooldown active; skipping %s", feature)
            notify(
                f"AI calls are paused because the provider quota was exhausted. Skipping {feature}.",
                "warning",
            )
            return Failure(FailureKind.COOLDOWN_ACTIVE, "quota cooldown active")

        required = list(required_fields)
        total = policy.max_retries + 1
        delay_ms = float(policy.initial_delay_ms)

        for attempt in range(total):
            label = f"{attempt + 1}/{total}"
            logger.info("Request for %s, attempt %s", feature, label)
            try:
                raw = operation()
                record = decode(raw)
                if record is None:
                    logger.debug("Undecodable reply for %s: %.200r", feature, response_text(raw))
                    raise MalformedReplyError("the AI reply could not be read as structured data")
            except KeyboardInterrupt:
                raise
            except Exception as e:
                info = classify_error(e)

                if info.is_quota_exhausted:
                    logger.warning(
                        "Call for %s failed on attempt %s due to quota exhaustion (code=%s, status=%s): %s. "
                        "No further retries.",
                        feature, label, info.status_code, info.provider_status, info.display_message,
                    )
                    if not self.cooldown.activate(notify, feature):
                        notify(f"{feature} failed: the AI provider quota is exhausted.", "error")
                    return Failure(FailureKind.QUOTA_EXHAUSTED, info.display_message, info)

                logger.error(
                    "Error during %s (attempt %s), code=%s, status=%s: %s",
                    feature, label, info.status_code, info.provider_status, info.display_message,
                )
                if attempt < policy.max_retries:
                    seconds = delay_ms / 1000.0
                    if info.is_rate_limit_retryable:
                        notify(f"Too many requests while fetching {feature}. Retrying in {seconds:g}s...", "warning")
                    else:
                        notify(
                            f"Error while fetching {feature}. Retrying in {seconds:g}s... "
                            f"(error: {info.display_message})",
                            "warning",
                        )
                    delay_ms = self._backoff(delay_ms, policy)
                    continue

                if info.is_rate_limit_retryable:
                    notify(f"Too many requests to the AI provider ({feature}). Please try again later.", "error")
                    return Failure(FailureKind.RATE_LIMITED, info.display_message, info)
                notify(f"Failed to get {feature} from the AI. (error: {info.display_message})", "error")
                return Failure(FailureKind.TRANSIENT, info.display_message, info)

            missing = missing_fields(record, required)
            if not missing:
                if success_message:
                    notify(success_message, "success")
                return Success(record)

            logger.warning("Reply for %s missing %s (attempt %s)", feature, missing, label)
            if attempt < policy.max_retries:
                notify(
                    f"The AI returned incomplete {feature} (missing: {', '.join(missing)}). "
                    f"Retrying... ({label})",
                    "warning",
                )
                delay_ms = self._backoff(delay_ms, policy)
                continue

            notify(
                f"The AI did not provide enough information for {feature} "
                f"(missing: {', '.join(missing)}). All attempts failed.",
                "error",
            )
            if fallback is not None:
                return Success(fallback, degraded=True)
            return Failure(FailureKind.INCOMPLETE, f"missing fields: {', '.join(missing)}")

        logger.warning("%s failed after all retries or due to unexpected flow", feature)
        notify(f"Failed to get {feature} from the AI.", "error")
        return Failure(FailureKind.UNEXPECTED, "retry loop exited without a result")
