"""Plain text rendering of BuildKit progress, in the style of ``--progress=plain``."""

import asyncio
import base64
import binascii
from typing import Any, Literal

from rich.console import Console

from ecrbuild.models import ProgressEvent

DisplayMode = Literal["plain", "quiet"]


def _decode(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    try:
        return base64.b64decode(value, validate=True).decode(errors="replace")
    except binascii.Error:
        return value


class ProgressDisplay:
    """Consumes progress events from a queue and renders them to a console.

    Each vertex gets a step number the first time it is seen; later updates
    for the same vertex reuse that number. ``quiet`` mode consumes the stream
    without printing, still collecting warnings.
    """

    def __init__(self, console: Console | None = None, mode: DisplayMode = "plain"):
        self.console = console or Console(highlight=False)
        self.mode = mode
        self._steps: dict[str, int] = {}
        self._done: set[str] = set()

    def _step(self, digest: str) -> int:
        if digest not in self._steps:
            self._steps[digest] = len(self._steps) + 1
        return self._steps[digest]

    def _print(self, text: str, style: str | None = None) -> None:
        self.console.print(text, style=style, markup=False, highlight=False)

    def render(self, event: ProgressEvent) -> None:
        for vertex in event.vertexes:
            digest = vertex.get("digest", "")
            seen = digest in self._steps
            step = self._step(digest)
            if not seen:
                self._print(f"#{step} {vertex.get('name', '')}")

            if digest in self._done:
                continue
            if vertex.get("error"):
                self._done.add(digest)
                self._print(f"#{step} ERROR: {vertex['error']}", style="red")
            elif vertex.get("cached"):
                self._done.add(digest)
                self._print(f"#{step} CACHED")
            elif vertex.get("completed"):
                self._done.add(digest)
                self._print(f"#{step} DONE")

        for status in event.statuses:
            if not status.get("completed"):
                continue
            step = self._step(status.get("vertex", ""))
            self._print(f"#{step} {status.get('id', '')} done")

        for log in event.logs:
            step = self._step(log.get("vertex", ""))
            for line in _decode(log.get("msg")).splitlines():
                self._print(f"#{step} {line}")

        for warning in event.warnings:
            self._print(f"WARNING: {_decode(warning.get('short'))}", style="yellow")

    async def update_from(
        self, status_queue: asyncio.Queue[ProgressEvent | None]
    ) -> list[dict[str, Any]]:
        """Render events until the queue is closed with ``None``.

        Returns:
            Warnings reported during the build
        """
        warnings: list[dict[str, Any]] = []
        while True:
            event = await status_queue.get()
            if event is None:
                return warnings

            warnings.extend(event.warnings)
            if self.mode != "quiet":
                self.render(event)
