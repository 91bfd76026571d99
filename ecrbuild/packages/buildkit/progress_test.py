import asyncio
import io

from rich.console import Console

from ecrbuild.models import ProgressEvent
from ecrbuild.packages.buildkit import ProgressDisplay


def _console() -> tuple[Console, io.StringIO]:
    output = io.StringIO()
    return Console(file=output, width=200, highlight=False), output


def _events() -> list[ProgressEvent]:
    return [
        ProgressEvent(vertexes=[{"digest": "sha256:a", "name": "[internal] load build definition"}]),
        ProgressEvent(vertexes=[{"digest": "sha256:b", "name": "[1/2] FROM alpine"}]),
        ProgressEvent(logs=[{"vertex": "sha256:b", "msg": "bGluZSBvbmUKbGluZSB0d28K"}]),
        ProgressEvent(
            vertexes=[
                {"digest": "sha256:a", "name": "[internal] load build definition", "completed": "t"},
                {"digest": "sha256:b", "name": "[1/2] FROM alpine", "cached": True},
            ]
        ),
        ProgressEvent(warnings=[{"vertex": "sha256:a", "short": "dXNlIGEgdGFn"}]),
    ]


class TestProgressDisplay:
    async def test_renders_in_order(self):
        console, output = _console()
        display = ProgressDisplay(console=console)
        queue: asyncio.Queue = asyncio.Queue()
        for event in _events():
            queue.put_nowait(event)
        queue.put_nowait(None)

        warnings = await display.update_from(queue)

        lines = output.getvalue().splitlines()
        assert lines == [
            "#1 [internal] load build definition",
            "#2 [1/2] FROM alpine",
            "#2 line one",
            "#2 line two",
            "#1 DONE",
            "#2 CACHED",
            "WARNING: use a tag",
        ]
        assert warnings == [{"vertex": "sha256:a", "short": "dXNlIGEgdGFn"}]

    async def test_error_vertex(self):
        console, output = _console()
        display = ProgressDisplay(console=console)

        display.render(
            ProgressEvent(
                vertexes=[{"digest": "sha256:c", "name": "RUN false", "error": "exit code: 1"}]
            )
        )

        assert "#1 ERROR: exit code: 1" in output.getvalue()

    async def test_quiet_mode_prints_nothing(self):
        console, output = _console()
        display = ProgressDisplay(console=console, mode="quiet")
        queue: asyncio.Queue = asyncio.Queue()
        for event in _events():
            queue.put_nowait(event)
        queue.put_nowait(None)

        warnings = await display.update_from(queue)

        assert output.getvalue() == ""
        assert len(warnings) == 1

    async def test_waits_for_close(self):
        display = ProgressDisplay(console=_console()[0])
        queue: asyncio.Queue = asyncio.Queue()

        task = asyncio.create_task(display.update_from(queue))
        await asyncio.sleep(0.05)
        assert not task.done()

        queue.put_nowait(None)
        assert await asyncio.wait_for(task, 1) == []
