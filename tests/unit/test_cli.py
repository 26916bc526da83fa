# tests/unit/test_cli.py

from __future__ import annotations
import sys
from pathlib import Path
from textwrap import dedent
from typer.testing import CliRunner

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from voca.cli import app  # Typer app


def echo_config(tmp_path: Path) -> Path:
    cfg_dir = tmp_path / "config"
    cfg_dir.mkdir(parents=True)
    cfg = cfg_dir / "default.yaml"
    cfg.write_text(
        dedent(
            """
            model:
              provider: echo
            models:
              text: echo-text
              image: echo-image
              chat: echo-chat
            providers:
              echo:
                token_delay: 0.0
            secrets:
              method: env
              mapping: {}
            bulk:
              batch_size: 2
              batch_delay_ms: 0
            """
        ),
        encoding="utf-8",
    )
    return cfg


def test_cli_word_lookup(tmp_path: Path):
    cfg = echo_config(tmp_path)
    result = CliRunner().invoke(app, ["--config", str(cfg), "word", "person"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "a human being" in result.output


def test_cli_image_writes_file(tmp_path: Path):
    cfg = echo_config(tmp_path)
    out = tmp_path / "person.jpg"
    result = CliRunner().invoke(app, ["--config", str(cfg), "image", "person", "--out", str(out)],
                                catch_exceptions=False)
    assert result.exit_code == 0
    assert out.read_bytes().startswith(b"\xff\xd8")


def test_cli_bulk(tmp_path: Path):
    cfg = echo_config(tmp_path)
    words = tmp_path / "words.txt"
    words.write_text("person\n\nhuman\nbeing\n", encoding="utf-8")
    result = CliRunner().invoke(app, ["--config", str(cfg), "bulk", str(words)], catch_exceptions=False)
    assert result.exit_code == 0
    assert "[3/3]" in result.output
    assert "failed:" not in result.output


def test_cli_chat_roundtrip(tmp_path: Path):
    cfg = echo_config(tmp_path)
    # Provide a minimal dialogue: one message, then exit
    result = CliRunner().invoke(app, ["--config", str(cfg), "chat"], input="hello\n/exit\n", catch_exceptions=False)

    assert result.exit_code == 0
    # Echo provider streams a fixed tutor greeting
    assert "Hi! I'm VocaTutor." in result.output
    assert "Bye." in result.output


def test_cli_bad_config_exits_2(tmp_path: Path):
    result = CliRunner().invoke(app, ["--config", str(tmp_path / "missing.yaml"), "word", "x"])
    assert result.exit_code == 2


def test_cli_chat_new_conversation_failure_keeps_loop(tmp_path: Path, monkeypatch):
    from voca.core.errors import ProviderTransientError
    from voca.providers.echo import EchoProvider

    cfg = echo_config(tmp_path)
    original = EchoProvider.start_chat
    calls = []

    def start_once(self, system_prompt, *, model=None):
        calls.append(system_prompt)
        if len(calls) > 1:
            raise ProviderTransientError("service unavailable", status_code=503)
        return original(self, system_prompt, model=model)

    monkeypatch.setattr(EchoProvider, "start_chat", start_once)
    result = CliRunner().invoke(app, ["--config", str(cfg), "chat"], input="/new\nhello\n/exit\n",
                                catch_exceptions=False)

    assert result.exit_code == 0
    assert len(calls) == 2
    # the original conversation still answers
    assert "Hi! I'm VocaTutor." in result.output
    assert "Bye." in result.output
