from __future__ import annotations
import datetime as dt
import itertools
import logging
from typing import Iterator, Optional

from .errors import ChatStreamError, ProviderClientError, StaleConversationError
from .ports import Conversation, Notify, Provider
from voca.resilience.classifier import classify_error

logger = logging.getLogger(__name__)

_counter = itertools.count(1)

CHAT_FEATURE = "tutor chat"


class ConversationHandle:
    """
    Provider-side conversation owned by one ChatSession. Invalid once replaced.
    """

    def __init__(self, conversation: Conversation):
        ts = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%d-%H%M%S")
        self.id = f"{ts}-{next(_counter)}"
        self._conversation: Optional[Conversation] = conversation

    @property
    def is_valid(self) -> bool:
        return self._conversation is not None

    def invalidate(self) -> None:
        self._conversation = None

    def send_stream(self, text: str):
        if self._conversation is None:
            raise StaleConversationError(f"Conversation {self.id} was replaced and can no longer be used")
        return self._conversation.send_stream(text)


class ChatSession:
    """
    Streaming multi-turn chat. No retries: a failed stream ends that message.
    The session keeps no reply buffer; callers accumulate fragments themselves.
    """

    def __init__(self, provider: Provider, notify: Notify, cooldown=None, model: Optional[str] = None):
        self.provider = provider
        self.notify = notify
        self.cooldown = cooldown
        self.model = model
        self._handle: Optional[ConversationHandle] = None

    @property
    def handle(self) -> Optional[ConversationHandle]:
        return self._handle

    def start(self, system_prompt: str) -> ConversationHandle:
        # the current handle stays usable if the provider refuses a new conversation
        conversation = self.provider.start_chat(system_prompt, model=self.model)
        if self._handle is not None:
            self._handle.invalidate()
        self._handle = ConversationHandle(conversation)
        logger.info("Started conversation %s", self._handle.id)
        return self._handle

    def send(self, text: str) -> Iterator[str]:
        """
        Lazy, forward-only stream of reply fragments for one message.
        The provider is contacted on the first next().
        """
        handle = self._handle
        if handle is None:
            raise ProviderClientError("No conversation started; call start() first")

        def gen():
            if self.cooldown is not None and self.cooldown.is_active():
                self.notify(
                    "AI calls are paused because the provider quota was exhausted. Try the tutor again later.",
                    "warning",
                )
                raise ChatStreamError("quota cooldown active")
            try:
                for piece in handle.send_stream(text):
                    if piece:
                        yield piece
            except (KeyboardInterrupt, StaleConversationError):
                raise
            except Exception as e:
                info = classify_error(e)
                logger.error(
                    "Chat stream failed on conversation %s (code=%s, status=%s): %s",
                    handle.id, info.status_code, info.provider_status, info.display_message,
                )
                activated = False
                if info.is_quota_exhausted and self.cooldown is not None:
                    activated = self.cooldown.activate(self.notify, CHAT_FEATURE)
                if not activated:
                    self.notify(
                        f"An error occurred while talking to the AI tutor: {info.display_message}",
                        "error",
                    )
                raise ChatStreamError(info.display_message, info) from e

        return gen()
