from __future__ import annotations
import logging
import threading
import time
from typing import Callable, Optional

from voca.core.ports import Notify

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_MS = 15 * 60 * 1000


class QuotaCooldownManager:
    """
    Tracks whether the provider recently reported its usage quota exhausted.

    Inactive -> Active on the first activate(); Active -> Inactive only when the
    one-shot timer fires. While active every call site short-circuits without
    contacting the provider. There is no deactivate-on-demand.
    """

    def __init__(
        self,
        duration_ms: int = DEFAULT_COOLDOWN_MS,
        *,
        timer_factory: Callable[[float, Callable[[], None]], object] = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.duration_ms = int(duration_ms)
        self.activated_at: Optional[float] = None
        self._timer_factory = timer_factory
        self._clock = clock
        self._active = False
        self._timer = None
        self._lock = threading.Lock()

    def is_active(self) -> bool:
        with self._lock:
            return self._active

    def remaining_seconds(self) -> float:
        with self._lock:
            if not self._active or self.activated_at is None:
                return 0.0
            elapsed = self._clock() - self.activated_at
            return max(0.0, self.duration_ms / 1000.0 - elapsed)

    def activate(self, notify: Notify, feature: Optional[str] = None) -> bool:
        """
        Enter cooldown. Returns False (and does nothing) when already active.
        """
        minutes = self.duration_ms / 60000
        with self._lock:
            if self._active:
                logger.debug("Cooldown already active; ignoring activation for %s", feature or "a provider call")
                return False
            self._active = True
            self.activated_at = self._clock()
            timer = self._timer_factory(self.duration_ms / 1000.0, lambda: self._expire(notify, feature))
            timer.daemon = True
            self._timer = timer
        # timer runs even if notify raises
        timer.start()

        logger.warning(
            "Quota exhaustion detected for '%s'. Activating %g-minute cooldown.",
            feature or "a provider call", minutes,
        )
        if feature:
            base = f"The AI provider's usage quota was exceeded, so '{feature}' has been suspended."
        else:
            base = "The AI provider's usage quota was exceeded."
        notify(
            f"{base} Check your quota and billing details with the provider. "
            f"Further AI calls are paused for {minutes:g} minutes.",
            "error",
        )
        return True

    def _expire(self, notify: Notify, feature: Optional[str]) -> None:
        with self._lock:
            self._active = False
            self.activated_at = None
            self._timer = None
        logger.info("Quota cooldown finished. Provider calls may resume.")
        again = f" You can try '{feature}' again." if feature else " AI calls may resume."
        notify(f"The AI cooldown period has ended.{again}", "info")

    def shutdown(self) -> None:
        # Process teardown only: stops the pending timer without ending the cooldown.
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()


_default: Optional[QuotaCooldownManager] = None
_default_lock = threading.Lock()


def default_cooldown(duration_ms: int = DEFAULT_COOLDOWN_MS) -> QuotaCooldownManager:
    """
    Process-wide instance. The duration only applies on first call.
    """
    global _default
    with _default_lock:
        if _default is None:
            _default = QuotaCooldownManager(duration_ms)
        return _default
