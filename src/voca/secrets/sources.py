# src/voca/secrets/sources.py

from __future__ import annotations
from typing import Callable, Dict, Iterable, List, Optional, Union
import logging
import os

import keyring as _keyring
from keyring.errors import KeyringError

from voca.core.errors import NoCredentialError

logger = logging.getLogger(__name__)

# keyring entries live under one service: `keyring set voca gemini`
KEYRING_SERVICE = "voca"

# other names a provider's key is commonly stored under
ALIASES: Dict[str, tuple] = {
    "gemini": ("gemini", "google"),
}


def _from_env(name: str) -> Optional[str]:
    # `name` may be an exact variable (GEMINI_API_KEY) or a short name (gemini)
    for var in (name, f"{name.upper()}_API_KEY"):
        val = os.getenv(var)
        if val and val.strip():
            return val.strip()
    return None


def _from_keyring(name: str) -> Optional[str]:
    try:
        val = _keyring.get_password(KEYRING_SERVICE, name)
    except KeyringError as e:
        logger.debug("Keyring lookup for %s failed: %s", name, e)
        return None
    return val.strip() if val and val.strip() else None


LOOKUPS: Dict[str, Callable[[str], Optional[str]]] = {
    "env": _from_env,
    "keyring": _from_keyring,
}


class SecretsResolver:
    """
    Read-only API key lookup over env vars and the system keyring, in the
    configured order. Nothing is ever written.
    mapping: { "gemini": { "api_key": "GEMINI_API_KEY" } } names the preferred
    entry; the provider's aliases are tried after it.
    """

    def __init__(self, method: Union[str, Iterable[str]] = "env", mapping: Optional[Dict[str, Dict[str, str]]] = None):
        methods = [method] if isinstance(method, str) else list(method)
        self.methods: List[str] = []
        for m in methods:
            key = str(m).strip().lower()
            if key not in LOOKUPS:
                raise ValueError(f"Unknown secrets method '{m}'. Allowed: {sorted(LOOKUPS)}")
            if key not in self.methods:
                self.methods.append(key)
        self.mapping = mapping or {}

    def names_for(self, provider: str) -> List[str]:
        names: List[str] = []
        mapped = (self.mapping.get(provider) or {}).get("api_key")
        for name in ([mapped] if mapped else []) + list(ALIASES.get(provider, (provider,))):
            if name not in names:
                names.append(name)
        return names

    def secret(self, provider: str) -> Optional[str]:
        for method in self.methods:
            for name in self.names_for(provider):
                val = LOOKUPS[method](name)
                if val:
                    logger.debug("API key for %s found via %s (%s)", provider, method, name)
                    return val
        return None

    def require(self, provider: str) -> str:
        val = self.secret(provider)
        if not val:
            raise NoCredentialError(
                f"No API key for '{provider}' (looked in {', '.join(self.methods)} "
                f"for {', '.join(self.names_for(provider))})"
            )
        return val
