from __future__ import annotations
import json
import re
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

# ```json\n{...}\n```  (language tag optional, newlines optional)
_FENCE_RE = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


def strip_fence(text: str) -> str:
    """
    Return the inner body of a fenced block, or the stripped text unchanged.
    """
    text = (text or "").strip()
    match = _FENCE_RE.match(text)
    if match and match.group(2):
        return match.group(2).strip()
    return text


def extract_json(raw_text: Optional[str]) -> Optional[Any]:
    """
    Decode a model's JSON reply. None when it does not decode.
    Required fields are not checked here.
    """
    body = strip_fence(raw_text or "")
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


def missing_fields(record: Any, required: Iterable[str]) -> List[str]:
    """Fields that are absent, null or empty. A non-mapping record misses everything."""
    required = list(required)
    if not isinstance(record, Mapping):
        return required
    return [f for f in required if not record.get(f)]


def response_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, Mapping):
        text = raw.get("text", raw.get("content"))
    else:
        try:
            text = getattr(raw, "text", None)
        except Exception:
            # google-genai raises on .text for some blocked/multi-candidate responses
            text = None
    return text or ""


def image_payload(raw: Any) -> Optional[bytes]:
    """
    First generated image's bytes from an image result:
    `generated_images[0].image.image_bytes` (google-genai) or an `image_bytes` key.
    """
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return raw.get("image_bytes") or None
    images = getattr(raw, "generated_images", None) or []
    if not images:
        return None
    image = getattr(images[0], "image", None)
    return getattr(image, "image_bytes", None) or None
