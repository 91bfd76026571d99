"""Acquires the build engine a build runs on.

Either a user supplied buildkitd address is used directly, or the build is
registered with the scheduling service and run on the configured buildkitd.
The returned release callback must be called exactly once with the build's
terminal error (None on success). A build record that cannot be finished is
logged and never replaces the build result.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

import structlog

from ecrbuild.errors import BuildEngineError, BuildRecordError
from ecrbuild.packages.buildkit import BuildctlEngine, BuildEngine
from ecrbuild.services.build_record_service import BuildRecord, BuildRecordClient
from ecrbuild.settings import settings

logger = structlog.stdlib.get_logger(__name__)

ReleaseCallback = Callable[[BaseException | None], Awaitable[None]]


@dataclass
class AcquiredBuilder:
    engine: BuildEngine
    release: ReleaseCallback


async def _no_release(error: BaseException | None) -> None:
    return None


async def _finish_record(
    record_client: BuildRecordClient, record: BuildRecord, error: BaseException | None
) -> None:
    # The build result stands even when the record cannot be finished
    try:
        await record_client.finish_build(record, error)
    except BuildRecordError as e:
        logger.warning(
            "Could not finish build record", build_id=record.build_id, error=str(e)
        )


async def wait_until_ready(engine: BuildEngine, timeout: float) -> None:
    """Ping the engine, bounded by ``timeout`` seconds."""
    try:
        async with asyncio.timeout(timeout):
            await engine.ping()
    except TimeoutError as e:
        raise BuildEngineError(
            f"build engine was not reachable within {timeout:g} seconds"
        ) from e


async def acquire_builder(
    tag: str,
    remote_address: str | None = None,
    record_client: BuildRecordClient | None = None,
) -> AcquiredBuilder:
    """Connect to a build engine for one build.

    Args:
        tag: Destination image tag, registered with the build record
        remote_address: Optional buildkitd address ("tcp://" or "ssh://")
        record_client: Scheduling service client (default: from settings)

    Raises:
        BuildEngineError: If the engine is not reachable in time
        BuildRecordError: If the build cannot be registered
    """
    timeout = settings.BUILDER_CONNECT_TIMEOUT_SECONDS

    if remote_address:
        logger.info("Connecting to custom builder", address=remote_address)
        engine = BuildctlEngine(remote_address, buildctl_path=settings.BUILDCTL_PATH)
        await wait_until_ready(engine, timeout)
        return AcquiredBuilder(engine=engine, release=_no_release)

    record_client = record_client or BuildRecordClient()
    record = await record_client.create_build([tag])

    logger.info(
        "Waiting for builder to accept connections",
        build_id=record.build_id,
        address=settings.BUILDKIT_HOST,
    )
    engine = BuildctlEngine(settings.BUILDKIT_HOST, buildctl_path=settings.BUILDCTL_PATH)
    try:
        await wait_until_ready(engine, timeout)
    except BaseException as e:
        await _finish_record(record_client, record, e)
        raise

    async def release(error: BaseException | None) -> None:
        await _finish_record(record_client, record, error)

    return AcquiredBuilder(engine=engine, release=release)
