# ui/stream_display.py
"""Terminal listener that renders generation events with rich."""

from __future__ import annotations

import time

from rich.console import Console
from rich.text import Text

from orchestration.models import OUTLINE_PROGRESS_EVENT


class StreamConsoleListener:
    """Write streamed text to the terminal as it arrives.

    Deltas go to stdout unstyled so the output can be piped; progress notes
    go to stderr so they never mix into the generated text.
    """

    def __init__(
        self,
        console: Console | None = None,
        status_console: Console | None = None,
    ) -> None:
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.status_console = status_console or Console(stderr=True)
        self.delta_count = 0
        self.char_count = 0
        self.progress_notes: list[str] = []
        self.started_at = time.time()

    def __call__(self, event: str, payload: str) -> None:
        if event == OUTLINE_PROGRESS_EVENT:
            self.progress_notes.append(payload)
            self.status_console.print()
            self.status_console.print(Text(payload, style="bold yellow"))
            return
        self.delta_count += 1
        self.char_count += len(payload)
        self.console.print(payload, end="", markup=False)

    def summary(self) -> str:
        elapsed = time.time() - self.started_at
        return (
            f"{self.char_count:,} chars in {self.delta_count:,} deltas, "
            f"{len(self.progress_notes)} continuation rounds, "
            f"{time.strftime('%H:%M:%S', time.gmtime(elapsed))} elapsed"
        )

    def print_summary(self, title: str = "Done") -> None:
        self.status_console.print()
        self.status_console.rule(f"{title}: {self.summary()}")
