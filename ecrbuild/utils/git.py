import asyncio
from pathlib import Path

import structlog

from ecrbuild.errors import CloneError

logger = structlog.stdlib.get_logger(__name__)


async def clone_repository(repo_url: str, destination: Path) -> Path:
    """Clone ``repo_url`` into ``destination`` with the git CLI.

    Progress goes straight to the terminal. Raises CloneError on failure.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)

    try:
        process = await asyncio.create_subprocess_exec(
            "git", "clone", "--progress", repo_url, str(destination)
        )
    except OSError as e:
        raise CloneError(f"failed to run git: {e}") from e

    returncode = await process.wait()
    if returncode != 0:
        logger.error("Clone failed", repo=repo_url, returncode=returncode)
        raise CloneError(f"git clone of {repo_url} failed with exit code {returncode}")

    return destination
