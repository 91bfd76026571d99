"""
End-to-end build workflow: clone, build, push.

One workflow run resolves the registry, clones the repository into a fresh
directory, picks a frontend, brokers ECR credentials, acquires a builder and
runs the build. The builder is released with the terminal error and the clone
is removed on every path, success or failure.
"""

import asyncio
import contextlib
import shutil
from dataclasses import dataclass
from pathlib import Path

import structlog

from ecrbuild.errors import BuildFailureError, BuildRecordError
from ecrbuild.models import BuildSpec, ImageDescriptor
from ecrbuild.packages.buildkit import ProgressDisplay, RegistryAuthSession
from ecrbuild.packages.registry import image_tag, resolve_registry
from ecrbuild.services.build_service import build_image
from ecrbuild.services.builder_service import AcquiredBuilder, acquire_builder
from ecrbuild.services.credential_service import get_registry_credentials
from ecrbuild.services.frontend_service import select_frontend
from ecrbuild.settings import settings
from ecrbuild.utils.git import clone_repository
from ecrbuild.utils.prompts import BuildInputs
from ecrbuild.utils.uuid_utils import generate_workflow_id

logger = structlog.stdlib.get_logger(__name__)


@dataclass
class WorkflowResult:
    workflow_id: str
    tag: str
    descriptor: ImageDescriptor


async def _release_builder(
    builder: AcquiredBuilder, build_error: BaseException | None
) -> None:
    try:
        await builder.release(build_error)
    except BuildRecordError as e:
        logger.warning("Could not release builder", error=str(e))


async def run_workflow(
    inputs: BuildInputs, display: ProgressDisplay | None = None
) -> WorkflowResult:
    """Clone ``inputs.repo``, build it and push the image to ``inputs.registry_url``.

    Raises:
        BuildToolError: Any resolution, credential, clone, frontend or build failure
    """
    registry = resolve_registry(inputs.registry_url)

    workflow_id = generate_workflow_id()
    structlog.contextvars.bind_contextvars(workflow_id=workflow_id)
    logger.info("Starting workflow", registry=registry.host, region=inputs.region)

    clone_dir = Path(settings.WORK_DIR).resolve() / workflow_id
    tag = image_tag(registry, workflow_id)

    try:
        logger.info("Cloning repository", repo=inputs.repo)
        await clone_repository(inputs.repo, clone_dir)

        frontend = await select_frontend(clone_dir, inputs.dockerfile_path)

        spec = BuildSpec(
            registry=registry,
            region=inputs.region,
            source_dir=clone_dir,
            dockerfile_path=inputs.dockerfile_path,
            arch=inputs.arch,
            tag=tag,
            frontend=frontend,
        )

        # boto3 blocks; keep the event loop free
        credentials = await asyncio.to_thread(
            get_registry_credentials, registry, inputs.region
        )
        auth_session = RegistryAuthSession(credentials, registry)

        builder = await acquire_builder(tag, inputs.remote_builder_address or None)

        build_error: BaseException | None = None
        try:
            timeout = settings.BUILD_TIMEOUT_SECONDS
            try:
                async with asyncio.timeout(timeout):
                    descriptor = await build_image(
                        builder.engine, spec, auth_session, display
                    )
            except TimeoutError as e:
                raise BuildFailureError(
                    f"build did not finish within {timeout:g} seconds"
                ) from e
        except BaseException as e:
            build_error = e
            raise
        finally:
            await _release_builder(builder, build_error)
    finally:
        logger.info("Removing clone directory", path=str(clone_dir))
        with contextlib.suppress(FileNotFoundError):
            await asyncio.to_thread(shutil.rmtree, clone_dir)
        structlog.contextvars.unbind_contextvars("workflow_id")

    logger.info("Image pushed", tag=tag, digest=descriptor.digest)
    return WorkflowResult(workflow_id=workflow_id, tag=tag, descriptor=descriptor)
