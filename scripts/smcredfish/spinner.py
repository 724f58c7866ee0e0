"""Cosmetic status-line spinner for long waits."""

import threading
import time

import click

FRAMES = {
    "dots": ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"],
    "line": ["-", "\\", "|", "/"],
}


class Spinner:
    """Repaints one line on stderr from a daemon thread.

    Holds nothing but the message being displayed. Use as a context
    manager, or pair start() with stop() in a finally block.
    """

    def __init__(self, message="Working", style="dots", color="cyan", interval=0.08):
        self.message = message
        self.frames = FRAMES.get(style, FRAMES["dots"])
        self.color = color
        self.interval = interval
        self._running = threading.Event()
        self._lock = threading.Lock()
        self._thread = None
        self._frame = 0
        self._start_time = None
        self._max_width = 0

    @property
    def running(self):
        return self._running.is_set()

    def start(self):
        if self.running:
            return self
        self._start_time = time.monotonic()
        self._frame = 0
        self._running.set()
        self._thread = threading.Thread(target=self._spin, daemon=True)
        self._thread.start()
        return self

    def update(self, message):
        with self._lock:
            self.message = message
        if self.running:
            self._render()

    def stop(self, final_message=None, success=True):
        if not self.running:
            return
        self._running.clear()
        if self._thread:
            self._thread.join()
        click.echo("\r\033[2K", nl=False, err=True)
        if final_message:
            icon = click.style("✓", fg="green") if success else click.style("✗", fg="red")
            elapsed = time.monotonic() - self._start_time
            time_str = f" ({elapsed:.1f}s)" if elapsed > 1 else ""
            click.echo(f"{icon} {final_message}{time_str}", err=True)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.stop()
        else:
            self.stop(f"{self.message} - Failed", success=False)
        return False

    def _spin(self):
        while self.running:
            self._render()
            time.sleep(self.interval)
            self._frame = (self._frame + 1) % len(self.frames)

    def _render(self):
        with self._lock:
            frame = self.frames[self._frame]
            elapsed = time.monotonic() - self._start_time
            time_str = f" ({round(elapsed)}s)" if elapsed > 2 else ""
            text = f"{frame} {self.message}{time_str}"
            # Pad so a shorter message fully covers the previous one
            self._max_width = max(self._max_width, len(text))
            padding = " " * (self._max_width - len(text))
            click.echo(
                f"\r{click.style(frame, fg=self.color)} {self.message}{time_str}{padding}",
                nl=False,
                err=True,
            )
