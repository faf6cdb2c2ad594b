"""status output for long-running npm operations."""

from contextlib import contextmanager
from typing import Optional
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn


class ProgressManager:
    """shows a spinner on the status console while npm works."""

    def __init__(self, console: Optional[Console] = None):
        """
        initialize progress manager.

        args:
            console: optional rich console for status output. defaults to stderr
                so results written to stdout stay pipeable.
        """
        self.console = console or Console(stderr=True)
        self._enabled = self._should_show_progress()

    def _should_show_progress(self) -> bool:
        """spinners only make sense on an interactive terminal."""
        return self.console.is_terminal

    def print(self, *args, **kwargs):
        self.console.print(*args, **kwargs)

    @contextmanager
    def spinner(self, description: str, transient: bool = True):
        """
        show an indeterminate spinner for the duration of the block.

        args:
            description: text to display next to spinner
            transient: if true, spinner disappears when done

        yields:
            task id of the spinner, or None when output is not interactive
        """
        if not self._enabled:
            yield None
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
            transient=transient,
        ) as progress:
            yield progress.add_task(description, total=None)
