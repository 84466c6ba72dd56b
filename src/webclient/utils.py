import logging
import time

from rich.console import Console
from rich.markup import escape
from typing_extensions import override

# legacy_windows=False keeps UTF-8 output working on modern Windows consoles
console = Console(legacy_windows=False)

PREFIX_WIDTH = 12


def format_elapsed_ms(start_time_perf: float) -> str:
    """Elapsed time since a perf_counter() reading, e.g. "840ms" or "31s 207ms"."""
    elapsed_ms = int((time.perf_counter() - start_time_perf) * 1000)
    seconds, ms = divmod(elapsed_ms, 1000)
    return f"{seconds}s {ms}ms" if seconds else f"{ms}ms"


class PrefixedLogHandler(logging.Handler):
    """Writes records to the rich console as `time | [component] | message`.

    Warnings and errors recolor the prefix; multi-line messages (yarn install
    output) repeat the prefix on every line.
    """

    def __init__(self, prefix: str, color: str, width: int = PREFIX_WIDTH):
        super().__init__()
        self.prefix: str = prefix
        self.color: str = color
        self.width: int = width

    def _color_for(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            return "red"
        if record.levelno >= logging.WARNING:
            return "yellow"
        return self.color

    @override
    def emit(self, record: logging.LogRecord) -> None:
        try:
            stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.created))
            stamp = f"{stamp}.{int(record.msecs):03d}"
            prefix = f"[{self._color_for(record)}]{escape(self.prefix.ljust(self.width))}[/]"
            for line in self.format(record).split("\n"):
                console.print(f"{stamp} | {prefix} | {escape(line)}")
        except Exception:
            self.handleError(record)
