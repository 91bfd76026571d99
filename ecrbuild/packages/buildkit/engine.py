"""BuildKit engine adapter.

The build engine is driven through ``buildctl``, the BuildKit reference
client. Each solve runs one ``buildctl build`` process: progress arrives as
raw JSON SolveStatus lines on stderr and the exporter response is read back
from the metadata file once the process exits.
"""

import asyncio
import base64
import contextlib
import json
import os
import tempfile
from collections import deque
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import ValidationError

from ecrbuild.errors import BuildEngineError
from ecrbuild.models import ProgressEvent

from .types import CredentialsRequest, ExportEntry, SolveOptions, SolveResponse

logger = structlog.stdlib.get_logger(__name__)

StatusQueue = asyncio.Queue[ProgressEvent | None]

# rawjson lines can carry large log chunks
_STREAM_LIMIT = 16 * 1024 * 1024
_ERROR_TAIL_LINES = 20


class BuildEngine(Protocol):
    async def ping(self) -> None:
        """Return once the engine accepts requests, raise BuildEngineError otherwise."""
        ...

    async def solve(
        self, options: SolveOptions, status_queue: StatusQueue
    ) -> SolveResponse:
        """Run one build.

        Progress events are put on ``status_queue`` in emission order. The queue
        is always closed with ``None`` when the solve returns, fails or is
        cancelled.
        """
        ...


def reference_host(name: str) -> str:
    """Registry host of an image reference ("docker.io" when none is given)."""
    first, sep, _ = name.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        return first
    return "docker.io"


def format_export(export: ExportEntry) -> str:
    """Format an export entry as a buildctl ``--output`` CSV value."""
    fields = [f"type={export.type}"]
    fields.extend(f"{key}={value}" for key, value in export.attrs.items())
    return ",".join(
        '"' + field.replace('"', '""') + '"' if "," in field or '"' in field else field
        for field in fields
    )


class BuildctlEngine:
    """Build engine backed by a buildkitd reachable through ``buildctl``.

    Args:
        address: buildkitd address, e.g. "tcp://10.0.0.5:1234",
            "ssh://user@host" or "unix:///run/buildkit/buildkitd.sock"
        buildctl_path: buildctl executable
    """

    def __init__(self, address: str, buildctl_path: str = "buildctl"):
        self.address = address
        self.buildctl_path = buildctl_path

    def _base_command(self) -> list[str]:
        return [self.buildctl_path, "--addr", self.address]

    def build_command(self, options: SolveOptions, metadata_file: Path) -> list[str]:
        cmd = self._base_command() + ["build", "--frontend", options.frontend]

        for key, value in options.frontend_attrs.items():
            cmd.extend(["--opt", f"{key}={value}"])

        for name, directory in options.local_dirs.items():
            cmd.extend(["--local", f"{name}={directory}"])

        for export in options.exports:
            cmd.extend(["--output", format_export(export)])

        cmd.extend(["--progress", "rawjson", "--metadata-file", str(metadata_file)])
        return cmd

    async def ping(self) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *self._base_command(),
                "debug",
                "workers",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BuildEngineError(f"failed to run {self.buildctl_path}: {e}") from e

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            await _terminate(process)
            raise

        if process.returncode != 0:
            raise BuildEngineError(
                f"failed to connect to buildkit at {self.address}: "
                f"{stderr.decode(errors='replace').strip()}"
            )

    def _write_docker_config(self, options: SolveOptions, config_dir: Path) -> None:
        """Write a docker config holding credentials for the export registries.

        buildctl serves registry auth to buildkitd from this file. Each export's
        registry host is offered to the attached auth providers and only hosts
        they answer for end up in the file.
        """
        auths: dict[str, dict[str, str]] = {}
        hosts = {
            reference_host(export.attrs["name"])
            for export in options.exports
            if export.attrs.get("name")
        }

        for host in sorted(hosts):
            for provider in options.session:
                response = provider.credentials(CredentialsRequest(host=host))
                if response.username or response.secret:
                    token = f"{response.username}:{response.secret}".encode()
                    auths[host] = {"auth": base64.b64encode(token).decode()}
                    break

        config_file = config_dir / "config.json"
        config_file.write_text(json.dumps({"auths": auths}))
        config_file.chmod(0o600)

    async def solve(
        self, options: SolveOptions, status_queue: StatusQueue
    ) -> SolveResponse:
        try:
            with tempfile.TemporaryDirectory(prefix="ecrbuild-") as tmp:
                config_dir = Path(tmp)
                self._write_docker_config(options, config_dir)
                metadata_file = config_dir / "metadata.json"

                cmd = self.build_command(options, metadata_file)
                logger.info(
                    "Starting solve",
                    address=self.address,
                    frontend=options.frontend,
                    exports=[export.type for export in options.exports],
                )

                try:
                    process = await asyncio.create_subprocess_exec(
                        *cmd,
                        stdout=asyncio.subprocess.DEVNULL,
                        stderr=asyncio.subprocess.PIPE,
                        env={**os.environ, "DOCKER_CONFIG": str(config_dir)},
                        limit=_STREAM_LIMIT,
                    )
                except OSError as e:
                    raise BuildEngineError(
                        f"failed to run {self.buildctl_path}: {e}"
                    ) from e

                try:
                    error_tail = await _read_progress(process.stderr, status_queue)
                    returncode = await process.wait()
                except asyncio.CancelledError:
                    await _terminate(process)
                    raise

                if returncode != 0:
                    detail = "\n".join(error_tail) or "no output"
                    raise BuildEngineError(
                        f"buildctl exited with code {returncode}: {detail}"
                    )

                return SolveResponse(exporter_response=_read_metadata(metadata_file))
        finally:
            status_queue.put_nowait(None)


async def _read_progress(
    stream: asyncio.StreamReader | None, status_queue: StatusQueue
) -> list[str]:
    """Forward SolveStatus lines to the queue, returning trailing non-JSON output."""
    tail: deque[str] = deque(maxlen=_ERROR_TAIL_LINES)
    if stream is None:
        return []

    async for raw_line in stream:
        line = raw_line.decode(errors="replace").strip()
        if not line:
            continue

        try:
            data = json.loads(line)
            event = ProgressEvent.model_validate(
                {key.lower(): value for key, value in data.items()}
            )
        except (json.JSONDecodeError, AttributeError, ValidationError):
            tail.append(line)
            continue

        status_queue.put_nowait(event)

    return list(tail)


def _read_metadata(metadata_file: Path) -> dict[str, str]:
    """Read the exporter response written by ``buildctl --metadata-file``.

    buildctl decodes base64 JSON values before writing the file; they are
    encoded again so callers see the exporter's wire form.
    """
    if not metadata_file.exists():
        return {}

    try:
        metadata = json.loads(metadata_file.read_text())
    except json.JSONDecodeError as e:
        raise BuildEngineError(f"invalid buildctl metadata file: {e}") from e

    response: dict[str, str] = {}
    for key, value in metadata.items():
        if isinstance(value, str):
            response[key] = value
        else:
            encoded = json.dumps(value, separators=(",", ":")).encode()
            response[key] = base64.b64encode(encoded).decode()
    return response


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
    await process.wait()
