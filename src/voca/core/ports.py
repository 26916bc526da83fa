from __future__ import annotations
from typing import Any, Callable, Iterable, Literal, Optional, Protocol

Severity = Literal["success", "error", "warning", "info"]

# (message, severity) -> None. Supplied by the UI layer.
Notify = Callable[[str, Severity], None]


class Conversation(Protocol):
    """
    Provider-side multi-turn chat. History lives with the conversation.
    """

    def send_stream(self, text: str) -> Iterable[str]:
        """
        Send one user message. Yields text fragments of the reply as they arrive.
        """
        ...


class Provider(Protocol):
    """
    Interface the client uses to talk to any generative-AI backend.
    Results are returned raw; the resilience layer reads `.text` / image bytes from them.
    """

    def generate_text(
        self,
        prompt: str,
        *,
        model: str,
        temperature: Optional[float] = None,
        response_mime_type: Optional[str] = None,
    ) -> Any:
        ...

    def generate_image(
        self,
        prompt: str,
        *,
        model: str,
        number_of_images: int = 1,
        output_mime_type: str = "image/jpeg",
    ) -> Any:
        ...

    def start_chat(self, system_prompt: str, *, model: Optional[str] = None) -> Conversation:
        ...
