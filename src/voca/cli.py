from __future__ import annotations
from pathlib import Path
from typing import Optional
import typer
from rich.console import Console
from rich.table import Table

from .bootstrap import build_app
from .config_loader import ConfigError
from .core.errors import ChatStreamError, ProviderError
from .ui.notify import configure_logging, console_notifier

app = typer.Typer(add_completion=False, help="Vocabulary helper backed by a generative-AI provider.")
console = Console()


def _ctx(typer_ctx: typer.Context):
    return typer_ctx.obj


@app.callback()
def main(ctx: typer.Context, config: Path = Path("config/default.yaml")):
    try:
        app_ctx = build_app(config)
    except (FileNotFoundError, ConfigError) as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(code=2)
    level = (app_ctx["cfg"].get("logging") or {}).get("level", "WARNING")
    configure_logging(level)
    app_ctx["notify"] = console_notifier()
    ctx.obj = app_ctx


@app.command()
def word(ctx: typer.Context, term: str):
    """Look up part of speech, meaning and an example sentence."""
    c = _ctx(ctx)
    details = c["client"].word_details(term.strip(), c["notify"])
    if details is None:
        raise typer.Exit(code=1)
    table = Table(show_header=False)
    for key in ("term", "pronunciation", "partOfSpeech", "meaning", "exampleSentence", "exampleSentenceMeaning"):
        if details.get(key):
            table.add_row(key, str(details[key]))
    console.print(table)


@app.command()
def image(ctx: typer.Context, term: str, out: Optional[Path] = None):
    """Generate an illustration for a word and save it as JPEG."""
    c = _ctx(ctx)
    data = c["client"].word_image(term.strip(), c["notify"])
    if data is None:
        raise typer.Exit(code=1)
    target = out or Path(f"{term.strip()}.jpg")
    target.write_bytes(data)
    console.print(str(target))


@app.command()
def bulk(ctx: typer.Context, words_file: Path):
    """Look up every word in a file (one per line)."""
    c = _ctx(ctx)
    terms = [line.strip() for line in words_file.read_text(encoding="utf-8").splitlines() if line.strip()]
    result = c["client"].bulk_word_details(
        terms,
        c["notify"],
        on_progress=lambda done, total: console.print(f"[{done}/{total}]"),
    )
    table = Table("term", "partOfSpeech", "meaning")
    for term, details in result.details.items():
        table.add_row(term, details.get("partOfSpeech") or "", details.get("meaning") or "")
    console.print(table)
    if result.failed:
        console.print("failed: " + ", ".join(result.failed))


@app.command()
def chat(ctx: typer.Context):
    """Talk to the AI tutor. Replies stream as they arrive."""
    c = _ctx(ctx)
    notify = c["notify"]
    try:
        session = c["client"].tutor_session(notify)
    except ProviderError as e:
        notify(f"Could not start the tutor chat: {e}", "error")
        raise typer.Exit(code=1)
    if session is None:
        raise typer.Exit(code=1)

    print("VocaTutor chat. Type /help for commands. Ctrl+C to quit.")
    while True:
        try:
            user_input = input("You> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye.")
            return

        if not user_input:
            continue

        if user_input in ("/exit", "/quit"):
            print("Bye.")
            return

        if user_input == "/help":
            print("Commands: /help, /new, /id, /exit, /quit")
            continue

        if user_input == "/id":
            print(session.handle.id)
            continue

        if user_input == "/new":
            try:
                session.start(c["client"].tutor_prompt())
            except ProviderError as e:
                notify(f"Could not start a new conversation: {e}", "error")
                continue
            notify("Started a new conversation.", "info")
            continue

        gen = session.send(user_input)
        try:
            for piece in gen:
                print(piece, end="", flush=True)
            print("")
        except ChatStreamError:
            # partial reply is discarded; the notification already explains why
            print("")
        except KeyboardInterrupt:
            gen.close()
            print("\n[stream interrupted]")
