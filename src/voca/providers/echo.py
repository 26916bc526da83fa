from __future__ import annotations
import json
import time
from typing import Any, Dict, Iterable, List, Optional

from voca.providers.registry import ProviderRegistry

_TUTOR_REPLY = (
    "Hi! I'm VocaTutor. Ask me anything about English words, grammar or example sentences "
    "and I'll explain it simply with examples"
).split()

_WORD = {
    "term": "person",
    "pronunciation": "/ˈpɜːrsən/",
    "partOfSpeech": "noun",
    "meaning": "a human being",
    "exampleSentence": "This is a person.",
    "exampleSentenceMeaning": "This is a human being.",
}

# JPEG SOI marker + tag; enough for callers that only check presence
_IMAGE = b"\xff\xd8\xff\xe0echo"


class _EchoConversation:
    def __init__(self, words: List[str], token_delay: float):
        self.words = words
        self.token_delay = token_delay

    def send_stream(self, text: str) -> Iterable[str]:
        last_idx = len(self.words) - 1
        for i, w in enumerate(self.words):
            yield w + ("" if i == last_idx else " ")
            if self.token_delay > 0:
                time.sleep(self.token_delay)


@ProviderRegistry.register("echo")
class EchoProvider:
    """
    Offline stub. Returns a fixed word record, a tiny image payload,
    and streams a canned tutor reply one word at a time.
    """

    def __init__(self, token_delay: float = 0.05, words: Optional[List[str]] = None,
                 record: Optional[Dict[str, Any]] = None):
        self.token_delay = float(token_delay)
        self.words = list(words) if words is not None else list(_TUTOR_REPLY)
        self.record = dict(record) if record is not None else dict(_WORD)

    @classmethod
    def create(cls, *, provider_cfg: Dict[str, Any], secrets) -> "EchoProvider":
        cfg = provider_cfg or {}
        return cls(token_delay=cfg.get("token_delay", 0.05))

    def generate_text(self, prompt: str, *, model: str, temperature: Optional[float] = None,
                      response_mime_type: Optional[str] = None) -> Dict[str, str]:
        return {"text": "```json\n" + json.dumps(self.record, ensure_ascii=False) + "\n```"}

    def generate_image(self, prompt: str, *, model: str, number_of_images: int = 1,
                       output_mime_type: str = "image/jpeg") -> Dict[str, bytes]:
        return {"image_bytes": _IMAGE}

    def start_chat(self, system_prompt: str, *, model: Optional[str] = None) -> _EchoConversation:
        return _EchoConversation(self.words, self.token_delay)
