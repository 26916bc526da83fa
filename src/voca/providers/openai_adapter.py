# src/voca/providers/openai_adapter.py
from __future__ import annotations
import base64
from typing import Any, Dict, Iterable, List, Optional

from openai import OpenAI

from voca.providers.registry import ProviderRegistry
from voca.core.errors import ProviderClientError, ProviderError, ProviderTransientError

DEFAULT_CHAT_MODEL = "gpt-4o-mini"


def _classify_openai_exception(exc: Exception) -> ProviderError:
    """
    Convert OpenAI/client exceptions into neutral provider errors.
    Avoid hard dependency on specific SDK exception classes by inspecting attributes/message.
    """
    if isinstance(exc, ProviderError):
        return exc

    status = getattr(exc, "status_code", None) or getattr(exc, "http_status", None)
    msg = getattr(exc, "message", None) or str(exc)
    body = getattr(exc, "body", None)
    tag = body.get("code") if isinstance(body, dict) else None
    tag = str(tag).upper() if tag else None

    if status is not None:
        s = int(status)
        if s == 429 or 500 <= s <= 599:
            return ProviderTransientError(msg, status_code=s, status=tag)
        return ProviderClientError(msg, status_code=s, status=tag)

    lower = msg.lower()
    if any(k in lower for k in ("invalid_request_error", "unsupported", "parameter", "authentication")):
        return ProviderClientError(msg, status=tag)
    return ProviderTransientError(msg, status=tag)


class _OpenAIConversation:
    """Chat history kept client side; a turn is recorded only when its reply completes."""

    def __init__(self, client, model: str, system_prompt: str):
        self.client = client
        self.model = model
        self.messages: List[Dict[str, str]] = [{"role": "system", "content": system_prompt}]

    def send_stream(self, text: str) -> Iterable[str]:
        outgoing = self.messages + [{"role": "user", "content": text}]
        try:
            stream = self.client.chat.completions.create(model=self.model, messages=outgoing, stream=True)
            partial: list[str] = []
            for chunk in stream:
                piece = None
                try:
                    piece = chunk.choices[0].delta.content
                except Exception:
                    piece = None
                if piece:
                    partial.append(piece)
                    yield piece
        except Exception as e:
            raise _classify_openai_exception(e) from e
        self.messages = outgoing + [{"role": "assistant", "content": "".join(partial)}]


@ProviderRegistry.register("openai")
class OpenAIAdapter:
    """
    Thin adapter:
    - JSON replies via response_format, images via b64_json
    - maps SDK errors to neutral ProviderClientError / ProviderTransientError
    """

    def __init__(
        self,
        api_key: str,
        *,
        chat_model: str = DEFAULT_CHAT_MODEL,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None,
        organization: Optional[str] = None,
    ):
        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        if organization:
            client_kwargs["organization"] = organization
        self.client = OpenAI(**client_kwargs)
        self.chat_model = chat_model
        self.timeout = timeout

    @classmethod
    def create(cls, *, provider_cfg: Dict[str, Any], secrets) -> "OpenAIAdapter":
        api_key = secrets.require("openai")

        cfg = provider_cfg or {}
        return cls(
            api_key=api_key,
            chat_model=cfg.get("chat_model") or DEFAULT_CHAT_MODEL,
            timeout=cfg.get("timeout"),
            base_url=cfg.get("base_url"),
            organization=cfg.get("organization"),
        )

    def _extra(self) -> Dict[str, Any]:
        return {"timeout": self.timeout} if self.timeout is not None else {}

    def generate_text(
        self,
        prompt: str,
        *,
        model: str,
        temperature: Optional[float] = None,
        response_mime_type: Optional[str] = None,
    ) -> Dict[str, str]:
        args: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            **self._extra(),
        }
        if temperature is not None:
            args["temperature"] = temperature
        if response_mime_type == "application/json":
            args["response_format"] = {"type": "json_object"}
        try:
            resp = self.client.chat.completions.create(**args)
            return {"text": resp.choices[0].message.content or ""}
        except Exception as e:
            raise _classify_openai_exception(e) from e

    def generate_image(
        self,
        prompt: str,
        *,
        model: str,
        number_of_images: int = 1,
        output_mime_type: str = "image/jpeg",
    ) -> Dict[str, Optional[bytes]]:
        try:
            resp = self.client.images.generate(
                model=model,
                prompt=prompt,
                n=number_of_images,
                response_format="b64_json",
                **self._extra(),
            )
        except Exception as e:
            raise _classify_openai_exception(e) from e
        data = getattr(resp, "data", None) or []
        b64 = getattr(data[0], "b64_json", None) if data else None
        return {"image_bytes": base64.b64decode(b64) if b64 else None}

    def start_chat(self, system_prompt: str, *, model: Optional[str] = None) -> _OpenAIConversation:
        return _OpenAIConversation(self.client, model or self.chat_model, system_prompt)
