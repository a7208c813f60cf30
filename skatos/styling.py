"""
Styled output for skatos messages.

``OutputStyle`` is the capability set the CLI formats messages with.
``PlainStyle`` returns text unchanged; ``RichStyle`` renders it through
``rich`` styles. Terminal and color detection is left to ``rich.Console``.
"""

import abc
import logging
from typing import IO, Optional

from rich.color import ColorSystem
from rich.console import Console
from rich.style import Style


class OutputStyle(abc.ABC):
    """Formats user-facing message fragments."""

    @abc.abstractmethod
    def _style(self, text: str, style: str) -> str:
        raise NotImplementedError

    def success(self, msg: str) -> str:
        return self._style(msg, "bold green")

    def error(self, msg: str) -> str:
        return self._style(msg, "bold red")

    def info(self, msg: str) -> str:
        return self._style(msg, "cyan")

    def warning(self, msg: str) -> str:
        return self._style(msg, "bold yellow")

    def header(self, text: str) -> str:
        return self._style(text, "bold bright_cyan")

    def key(self, key: str) -> str:
        return self._style(key, "bold bright_blue")

    def value(self, value: str) -> str:
        return self._style(value, "green")

    def path(self, path: str) -> str:
        return self._style(str(path), "yellow")

    def database(self, db: str) -> str:
        return self._style(db, "bold magenta")

    def count(self, count: int) -> str:
        return self._style(str(count), "bold cyan")


class PlainStyle(OutputStyle):
    """No styling at all."""

    def _style(self, text: str, style: str) -> str:
        return text


class RichStyle(OutputStyle):
    """Terminal styling rendered by rich."""

    def _style(self, text: str, style: str) -> str:
        if not text:
            return text
        # Style.render leaves tabs and newlines in text untouched
        return Style.parse(style).render(text, color_system=ColorSystem.STANDARD)


def get_style(stream: Optional[IO[str]] = None, color: str = "auto") -> OutputStyle:
    """
    Pick a style for stream.

    ``never`` is always plain and ``always`` forces styling. With ``auto``
    rich decides: only a color-capable terminal without NO_COLOR is styled.
    """
    if color == "never":
        return PlainStyle()
    console = Console(file=stream, force_terminal=True if color == "always" else None)
    if console.no_color or not console.is_terminal or console.color_system is None:
        return PlainStyle()
    return RichStyle()


class StyledFormatter(logging.Formatter):
    """Logging formatter that routes warnings and errors through an OutputStyle."""

    def __init__(self, style: OutputStyle, fmt: str = "%(message)s") -> None:
        super().__init__(fmt)
        self.output_style = style

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if record.levelno >= logging.ERROR:
            # error records already name their kind ("<Type> Error: ...")
            return self.output_style.error(text)
        if record.levelno >= logging.WARNING:
            return self.output_style.warning(f"Warning: {text}")
        return text
