from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from .client import VocaClient
from .config_loader import load_config
from .core.errors import NoCredentialError
from .providers.registry import ProviderRegistry
from .resilience.cooldown import DEFAULT_COOLDOWN_MS, QuotaCooldownManager, default_cooldown
from .resilience.executor import IMAGE_POLICY, TEXT_POLICY, RetryingExecutor, RetryPolicy
from .secrets.sources import SecretsResolver

logger = logging.getLogger(__name__)


def _policy(section: Optional[Dict[str, Any]], default: RetryPolicy) -> RetryPolicy:
    section = section or {}
    return RetryPolicy(
        max_retries=int(section.get("max_retries", default.max_retries)),
        initial_delay_ms=int(section.get("initial_delay_ms", default.initial_delay_ms)),
        backoff_multiplier=float(section.get("backoff_multiplier", default.backoff_multiplier)),
    )


def build_provider(cfg: Dict[str, Any]):
    """
    Returns (provider or None, warnings). A missing API key disables AI features
    instead of failing startup.
    """
    ProviderRegistry.ensure_imports()  # make sure built-ins register

    provider_name = cfg["model"]["provider"]
    provider_cfg = (cfg.get("providers") or {}).get(provider_name, {}) or {}

    secrets_cfg = cfg.get("secrets") or {}
    resolver = SecretsResolver(method=secrets_cfg.get("method", "env"), mapping=secrets_cfg.get("mapping", {}))

    warnings = []
    Adapter = ProviderRegistry.get(provider_name)
    try:
        provider = Adapter.create(provider_cfg=provider_cfg, secrets=resolver)
    except NoCredentialError as e:
        logger.warning("AI features disabled: %s", e)
        warnings.append({"type": "no_credential", "provider": provider_name, "message": str(e)})
        provider = None
    return provider, warnings


def build_app(
    config_path: Path,
    *,
    cooldown: Optional[QuotaCooldownManager] = None,
    sleep=None,
) -> Dict[str, Any]:
    """
    Composition root: load .env and YAML, build the provider, the shared cooldown,
    the retrying executor and the client.
    Returns: dict with cfg, provider, cooldown, executor, client, warnings.
    """
    load_dotenv()
    cfg = load_config(config_path)

    provider, warnings = build_provider(cfg)

    duration_ms = int((cfg.get("cooldown") or {}).get("duration_ms", DEFAULT_COOLDOWN_MS))
    cooldown = cooldown or default_cooldown(duration_ms)

    extra = {"sleep": sleep} if sleep is not None else {}
    executor = RetryingExecutor(cooldown, **extra)

    retry = cfg.get("retry") or {}
    bulk = cfg.get("bulk") or {}
    client = VocaClient(
        provider,
        executor,
        models=dict(cfg["models"]),
        text_policy=_policy(retry.get("text"), TEXT_POLICY),
        image_policy=_policy(retry.get("image"), IMAGE_POLICY),
        batch_size=int(bulk.get("batch_size", 5)),
        batch_delay_ms=int(bulk.get("batch_delay_ms", 1000)),
        **extra,
    )

    return {
        "cfg": cfg,
        "provider": provider,
        "cooldown": cooldown,
        "executor": executor,
        "client": client,
        "warnings": warnings,
    }
