from __future__ import annotations
import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from voca.core.ports import Notify, Severity

_STYLES = {
    "success": ("✔", "bold green"),
    "error": ("✖", "bold red"),
    "warning": ("!", "yellow"),
    "info": ("i", "cyan"),
}


def console_notifier(console: Optional[Console] = None) -> Notify:
    """Render notifications as one styled line each."""
    out = console or Console(stderr=True)

    def notify(message: str, severity: Severity) -> None:
        icon, style = _STYLES.get(severity, ("?", ""))
        out.print(f"[{style}]{icon} {message}[/]" if style else f"{icon} {message}", highlight=False)

    return notify


def configure_logging(level: str = "WARNING", console: Optional[Console] = None) -> None:
    handler = RichHandler(console=console or Console(stderr=True), show_path=False, markup=False)
    root = logging.getLogger("voca")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False
