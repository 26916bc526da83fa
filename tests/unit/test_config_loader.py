# tests/unit/test_config_loader.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest
from textwrap import dedent

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from voca.config_loader import load_config, ConfigError  # type: ignore



def write_yaml(p: Path, text: str) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dedent(text).lstrip("\n").rstrip() + "\n", encoding="utf-8")
    return p


def test_load_config_ok(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        """
        model: { provider: GEMINI }
        models: { text: gemini-2.5-flash, image: imagen-3.0-generate-002, chat: gemini-2.5-flash }
        retry:
          text: { max_retries: 2, initial_delay_ms: 7000, backoff_multiplier: 2 }
        logging: { level: debug }
        """,
    )
    data = load_config(cfg)
    assert data["model"]["provider"] == "gemini"   # normalised
    assert data["logging"]["level"] == "DEBUG"     # normalised
    assert data["retry"]["text"]["initial_delay_ms"] == 7000


def test_load_config_missing_key(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        """
        model: { provider: gemini }
        models: { text: gemini-2.5-flash, chat: gemini-2.5-flash }   # missing image
        """,
    )
    with pytest.raises(ConfigError):
        load_config(cfg)


def test_load_config_unknown_provider(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        """
        model: { provider: anthropic }
        models: { text: a, image: b, chat: c }
        """,
    )
    with pytest.raises(ConfigError):
        load_config(cfg)


@pytest.mark.parametrize(
    "section",
    [
        "retry: { text: { max_retries: -1 } }",
        "retry: { image: { initial_delay_ms: soon } }",
        "cooldown: { duration_ms: 1.5 }",
        "bulk: { batch_size: 0 }",
        "logging: { level: loud }",
    ],
)
def test_load_config_type_error(tmp_path: Path, section: str):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        "model: { provider: echo }\nmodels: { text: a, image: b, chat: c }\n" + section,
    )
    with pytest.raises(ConfigError):
        load_config(cfg)


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
