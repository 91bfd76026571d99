"""
Service for running one image build against a BuildKit engine.

The solve call and the progress display run as two concurrent tasks joined
on the first failure: if either fails, the other is cancelled and a single
BuildFailureError is raised. On success the exporter response is decoded
into the pushed image's descriptor.
"""

import asyncio
import base64
import binascii
import json

import structlog
from pydantic import ValidationError

from ecrbuild.errors import BuildFailureError
from ecrbuild.models import BuildSpec, Frontend, ImageDescriptor
from ecrbuild.packages.buildkit import (
    AuthProvider,
    BuildEngine,
    ExportEntry,
    ProgressDisplay,
    SolveOptions,
    SolveResponse,
    StatusQueue,
)
from ecrbuild.settings import settings

logger = structlog.stdlib.get_logger(__name__)

DOCKERFILE_FRONTEND = "dockerfile.v0"
GATEWAY_FRONTEND = "gateway.v0"

EXPORTER_DIGEST_KEY = "containerimage.digest"
EXPORTER_DESCRIPTOR_KEY = "containerimage.descriptor"


def build_solve_options(spec: BuildSpec, auth_session: AuthProvider) -> SolveOptions:
    """Solve options for building ``spec`` and pushing it to its registry."""
    source_dir = str(spec.source_dir)
    options = SolveOptions(
        frontend=DOCKERFILE_FRONTEND,
        frontend_attrs={
            "filename": spec.dockerfile_path,
            "platform": f"linux/{spec.arch}",
        },
        local_dirs={
            "dockerfile": source_dir,
            "context": source_dir,
        },
        exports=[
            ExportEntry(
                type="image",
                attrs={
                    "name": spec.tag,
                    "oci-mediatypes": "true",
                    "push": "true",
                },
            )
        ],
        session=[auth_session],
        # Recording build steps and traces in buildkitd is very slow
        internal=True,
    )

    # Same override buildx uses to run a custom frontend image
    if spec.frontend == Frontend.RAILPACK:
        options.frontend = GATEWAY_FRONTEND
        options.frontend_attrs["source"] = settings.RAILPACK_FRONTEND
        options.frontend_attrs["cmdline"] = settings.RAILPACK_FRONTEND

    return options


def decode_descriptor(response: SolveResponse) -> ImageDescriptor:
    """Decode the base64 JSON descriptor from the exporter response.

    Raises:
        BuildFailureError: With ``pushed=True`` when the descriptor is missing
            or invalid, since the export itself already succeeded
    """
    digest = response.exporter_response.get(EXPORTER_DIGEST_KEY)
    encoded = response.exporter_response.get(EXPORTER_DESCRIPTOR_KEY)
    if not encoded:
        raise BuildFailureError(
            "build response has no image descriptor; the image may already be pushed",
            pushed=True,
            digest=digest,
        )

    try:
        decoded = base64.b64decode(encoded, validate=True)
        return ImageDescriptor.model_validate(json.loads(decoded))
    except (binascii.Error, json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        raise BuildFailureError(
            f"failed to decode image descriptor ({e}); the image may already be pushed",
            pushed=True,
            digest=digest,
        ) from e


async def build_image(
    engine: BuildEngine,
    spec: BuildSpec,
    auth_session: AuthProvider,
    display: ProgressDisplay | None = None,
) -> ImageDescriptor:
    """Build ``spec`` on ``engine`` and push it, streaming progress to ``display``.

    Cancelling the caller's task cancels both the solve and the display.

    Returns:
        Descriptor of the pushed image

    Raises:
        BuildFailureError: If the solve or the display fails, or the descriptor
            cannot be decoded
    """
    display = display or ProgressDisplay()
    options = build_solve_options(spec, auth_session)
    status_queue: StatusQueue = asyncio.Queue()

    logger.info(
        "Building image",
        tag=spec.tag,
        frontend=options.frontend,
        platform=options.frontend_attrs["platform"],
    )

    solve_task = asyncio.create_task(engine.solve(options, status_queue), name="solve")
    progress_task = asyncio.create_task(display.update_from(status_queue), name="progress")
    tasks = (solve_task, progress_task)

    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    for task in tasks:
        if task in done and task.exception() is not None:
            error = task.exception()
            logger.error("Build failed", tag=spec.tag, branch=task.get_name(), error=str(error))
            raise BuildFailureError(f"Build error: {error}") from error

    descriptor = decode_descriptor(solve_task.result())
    logger.info(
        "Image build complete",
        tag=spec.tag,
        digest=solve_task.result().exporter_response.get(EXPORTER_DIGEST_KEY),
    )
    return descriptor
