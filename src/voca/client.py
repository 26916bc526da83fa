from __future__ import annotations
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from string import Template
from typing import Callable, Dict, List, Optional, Sequence

from .core.chat_session import ChatSession
from .core.ports import Notify, Provider
from .resilience.cooldown import QuotaCooldownManager
from .resilience.executor import (
    IMAGE_POLICY,
    TEXT_POLICY,
    Failure,
    RetryingExecutor,
    RetryPolicy,
    decode_image,
)
from .resilience.extract import missing_fields

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"

WORD_FIELDS = ("partOfSpeech", "meaning", "exampleSentence")
NO_CREDENTIAL_MESSAGE = "An API key is required to use AI features. Check your environment or keyring."


@dataclass
class BulkResult:
    details: Dict[str, dict] = field(default_factory=dict)
    complete: List[str] = field(default_factory=list)
    incomplete: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class VocaClient:
    """
    Call sites for the vocabulary app. Each one configures the retrying executor
    with its own model, retry policy and required fields.
    `provider` is None when no credential could be resolved.
    """

    def __init__(
        self,
        provider: Optional[Provider],
        executor: RetryingExecutor,
        *,
        models: Dict[str, str],
        text_policy: RetryPolicy = TEXT_POLICY,
        image_policy: RetryPolicy = IMAGE_POLICY,
        batch_size: int = 5,
        batch_delay_ms: int = 1000,
        prompts_dir: Path = PROMPTS_DIR,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.executor = executor
        self.models = models
        self.text_policy = text_policy
        self.image_policy = image_policy
        self.batch_size = batch_size
        self.batch_delay_ms = batch_delay_ms
        self.prompts_dir = prompts_dir
        self.sleep = sleep

    @property
    def cooldown(self) -> QuotaCooldownManager:
        return self.executor.cooldown

    def _prompt(self, name: str, **values: str) -> str:
        text = (self.prompts_dir / name).read_text(encoding="utf-8")
        return Template(text).safe_substitute(**values)

    def _has_credential(self, notify: Notify) -> bool:
        if self.provider is None:
            notify(NO_CREDENTIAL_MESSAGE, "warning")
            return False
        return True

    def word_details(self, term: str, notify: Notify) -> Optional[dict]:
        """
        Look up part of speech, meaning and an example sentence for `term`.
        Returns {"term": term} when the AI keeps leaving fields out, None on failure.
        """
        if not self._has_credential(notify):
            return None
        prompt = self._prompt("word_details.txt", term=term)
        outcome = self.executor.execute(
            lambda: self.provider.generate_text(
                prompt,
                model=self.models["text"],
                temperature=0.5,
                response_mime_type="application/json",
            ),
            self.text_policy,
            f"word details for '{term}'",
            notify,
            required_fields=WORD_FIELDS,
            fallback={"term": term},
        )
        if isinstance(outcome, Failure):
            return None
        return outcome.value

    def word_image(self, term: str, notify: Notify) -> Optional[bytes]:
        if not self._has_credential(notify):
            return None
        feature = f"image for '{term}'"
        prompt = self._prompt("word_image.txt", term=term)
        outcome = self.executor.execute(
            lambda: self.provider.generate_image(
                prompt,
                model=self.models["image"],
                number_of_images=1,
                output_mime_type="image/jpeg",
            ),
            self.image_policy,
            feature,
            notify,
            required_fields=("image_bytes",),
            decode=decode_image,
            success_message=f"The {feature} is ready.",
        )
        if isinstance(outcome, Failure):
            return None
        return outcome.value["image_bytes"]

    def tutor_session(self, notify: Notify) -> Optional[ChatSession]:
        if not self._has_credential(notify):
            return None
        session = ChatSession(self.provider, notify, cooldown=self.cooldown, model=self.models.get("chat"))
        session.start(self.tutor_prompt())
        return session

    def tutor_prompt(self) -> str:
        return self._prompt("tutor_system.txt")

    def bulk_word_details(
        self,
        terms: Sequence[str],
        notify: Notify,
        *,
        batch_size: Optional[int] = None,
        batch_delay_ms: Optional[int] = None,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> BulkResult:
        """
        AI-assisted import. Batches run one after another with a fixed pause between
        them; lookups inside a batch run concurrently and share the cooldown.
        """
        size = max(1, batch_size or self.batch_size)
        delay_ms = self.batch_delay_ms if batch_delay_ms is None else batch_delay_ms
        # one lookup per distinct word, in first-seen order
        terms = list(dict.fromkeys(terms))
        result = BulkResult()
        if not terms:
            notify("There are no words to add.", "warning")
            return result

        batches = [list(terms[i:i + size]) for i in range(0, len(terms), size)]
        with ThreadPoolExecutor(max_workers=size, thread_name_prefix="voca-bulk") as pool:
            for i, batch in enumerate(batches):
                futures = [(term, pool.submit(self.word_details, term, notify)) for term in batch]
                for term, fut in futures:
                    try:
                        details = fut.result()
                    except Exception:
                        logger.exception("Lookup for '%s' raised", term)
                        details = None
                    if details is None:
                        result.failed.append(term)
                        continue
                    result.details[term] = details
                    if missing_fields(details, WORD_FIELDS):
                        result.incomplete.append(term)
                    else:
                        result.complete.append(term)

                done = min((i + 1) * size, len(terms))
                logger.info("Bulk lookup progress %d/%d", done, len(terms))
                if on_progress:
                    on_progress(done, len(terms))
                if i < len(batches) - 1 and delay_ms > 0:
                    self.sleep(delay_ms / 1000.0)

        message = f"{len(result.complete)} words added, {len(result.failed)} failed"
        if result.incomplete:
            message += f", {len(result.incomplete)} incomplete"
        notify(message, "success" if result.complete else "error")
        return result
