# src/voca/providers/gemini_adapter.py
from __future__ import annotations
from typing import Any, Dict, Iterable, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from voca.providers.registry import ProviderRegistry
from voca.core.errors import (
    ProviderClientError,
    ProviderError,
    ProviderTransientError,
)

DEFAULT_CHAT_MODEL = "gemini-2.5-flash"


def _to_provider_error(exc: Exception) -> ProviderError:
    """
    Convert google-genai exceptions into neutral provider errors,
    keeping the HTTP code and the status tag (e.g. RESOURCE_EXHAUSTED).
    """
    if isinstance(exc, ProviderError):
        return exc

    if isinstance(exc, genai_errors.APIError):
        code = exc.code if isinstance(exc.code, int) else None
        status = exc.status if isinstance(exc.status, str) else None
        msg = exc.message or str(exc)
    else:
        code, status, msg = None, None, str(exc)

    if code is None or code == 429 or code >= 500:
        return ProviderTransientError(msg, status_code=code, status=status)
    return ProviderClientError(msg, status_code=code, status=status)


class _GeminiConversation:
    def __init__(self, chat):
        self._chat = chat

    def send_stream(self, text: str) -> Iterable[str]:
        try:
            for chunk in self._chat.send_message_stream(text):
                piece = getattr(chunk, "text", None)
                if piece:
                    yield piece
        except Exception as e:
            raise _to_provider_error(e) from e


@ProviderRegistry.register("gemini")
class GeminiAdapter:
    """
    Thin adapter over google-genai:
    - returns SDK responses untouched (callers read .text / generated_images)
    - maps SDK errors to neutral ProviderClientError / ProviderTransientError
    """

    def __init__(self, api_key: str, *, chat_model: str = DEFAULT_CHAT_MODEL, client: Any = None):
        self.client = client if client is not None else genai.Client(api_key=api_key)
        self.chat_model = chat_model

    @classmethod
    def create(cls, *, provider_cfg: Dict[str, Any], secrets) -> "GeminiAdapter":
        # falls back to a GOOGLE_API_KEY entry; raises NoCredentialError when neither resolves
        api_key = secrets.require("gemini")
        chat_model = (provider_cfg or {}).get("chat_model") or DEFAULT_CHAT_MODEL
        return cls(api_key=api_key, chat_model=chat_model)

    def generate_text(
        self,
        prompt: str,
        *,
        model: str,
        temperature: Optional[float] = None,
        response_mime_type: Optional[str] = None,
    ):
        config = types.GenerateContentConfig(
            temperature=temperature,
            response_mime_type=response_mime_type,
        )
        try:
            return self.client.models.generate_content(model=model, contents=prompt, config=config)
        except Exception as e:
            raise _to_provider_error(e) from e

    def generate_image(
        self,
        prompt: str,
        *,
        model: str,
        number_of_images: int = 1,
        output_mime_type: str = "image/jpeg",
    ):
        config = types.GenerateImagesConfig(
            number_of_images=number_of_images,
            output_mime_type=output_mime_type,
        )
        try:
            return self.client.models.generate_images(model=model, prompt=prompt, config=config)
        except Exception as e:
            raise _to_provider_error(e) from e

    def start_chat(self, system_prompt: str, *, model: Optional[str] = None) -> _GeminiConversation:
        try:
            chat = self.client.chats.create(
                model=model or self.chat_model,
                config=types.GenerateContentConfig(system_instruction=system_prompt),
            )
        except Exception as e:
            raise _to_provider_error(e) from e
        return _GeminiConversation(chat)
