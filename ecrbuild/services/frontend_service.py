"""Chooses the BuildKit frontend for a cloned repository.

Repositories with a Dockerfile build with the Dockerfile frontend. Anything
else falls back to Railpack, whose gateway frontend needs a build plan that
``railpack prepare`` writes into the source tree beforehand.
"""

import asyncio
import shutil
from pathlib import Path

import structlog

from ecrbuild.errors import FrontendPrepareError
from ecrbuild.models import Frontend
from ecrbuild.settings import settings

logger = structlog.stdlib.get_logger(__name__)

RAILPACK_PLAN_FILE = "railpack-plan.json"
RAILPACK_INFO_FILE = "railpack-info.json"


async def prepare_railpack_plan(source_dir: Path) -> Path:
    """Run ``railpack prepare`` and return the written plan file.

    Raises:
        FrontendPrepareError: If railpack is not installed, fails, or writes no plan
    """
    railpack = shutil.which(settings.RAILPACK_PATH)
    if railpack is None:
        raise FrontendPrepareError(f"railpack is not installed ({settings.RAILPACK_PATH!r} not found)")

    plan_file = source_dir / RAILPACK_PLAN_FILE
    info_file = source_dir / RAILPACK_INFO_FILE

    logger.info("Preparing Railpack plan", source_dir=str(source_dir))
    process = await asyncio.create_subprocess_exec(
        railpack,
        "prepare",
        str(source_dir),
        "--plan-out",
        str(plan_file),
        "--info-out",
        str(info_file),
    )
    returncode = await process.wait()
    if returncode != 0:
        raise FrontendPrepareError(f"failed to prepare Railpack plan: exit code {returncode}")

    if not plan_file.is_file():
        raise FrontendPrepareError(f"{RAILPACK_PLAN_FILE} was not created")

    return plan_file


async def select_frontend(source_dir: Path, dockerfile_path: str) -> Frontend:
    """Pick the frontend for ``source_dir``, preparing Railpack when needed."""
    if (source_dir / dockerfile_path).exists():
        return Frontend.DOCKERFILE

    logger.info(
        "Dockerfile not found, falling back to Railpack",
        dockerfile_path=dockerfile_path,
        railpack_version=settings.RAILPACK_VERSION,
    )
    await prepare_railpack_plan(source_dir)
    return Frontend.RAILPACK
