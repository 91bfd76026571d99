"""Client for the remote build scheduling service (Depot API).

Every build that runs on a scheduled builder is registered first and finished
with its terminal result afterwards, so the service can account for it.
"""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from ecrbuild.errors import BuildRecordError
from ecrbuild.settings import settings

logger = structlog.stdlib.get_logger(__name__)

BUILD_SERVICE_PATH = "/depot.cli.v1.BuildService"


@dataclass
class BuildRecord:
    build_id: str
    build_token: str


class BuildRecordClient:
    """Registers and finishes builds with the scheduling service."""

    def __init__(
        self,
        token: str | None = None,
        project_id: str | None = None,
        api_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            token: API token (default: DEPOT_TOKEN setting)
            project_id: Project the builds belong to (default: DEPOT_PROJECT_ID setting)
            api_url: Service base URL (default: DEPOT_API_URL setting)
            transport: Optional httpx transport, used by tests
        """
        self.token = token if token is not None else settings.DEPOT_TOKEN
        self.project_id = project_id if project_id is not None else settings.DEPOT_PROJECT_ID
        self.api_url = (api_url or settings.DEPOT_API_URL).rstrip("/")
        self.transport = transport

    async def _call(self, method: str, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.api_url}{BUILD_SERVICE_PATH}/{method}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Connect-Protocol-Version": "1",
        }

        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=httpx.Timeout(30.0)
            ) as client:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Build service returned an error",
                method=method,
                status_code=e.response.status_code,
                body=e.response.text,
            )
            raise BuildRecordError(
                f"{method} failed with status {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("Build service request failed", method=method, error=str(e))
            raise BuildRecordError(f"{method} failed: {e}") from e

    async def create_build(self, tags: list[str]) -> BuildRecord:
        """Register a new build.

        Raises:
            BuildRecordError: If the token or project id is missing, or the call fails
        """
        if not self.token:
            raise BuildRecordError("DEPOT_TOKEN is not set")
        if not self.project_id:
            raise BuildRecordError("DEPOT_PROJECT_ID is not set")

        data = await self._call(
            "CreateBuild",
            self.token,
            {
                "projectId": self.project_id,
                "options": [{"command": "COMMAND_BUILD", "tags": tags}],
            },
        )

        try:
            record = BuildRecord(build_id=data["buildId"], build_token=data["buildToken"])
        except KeyError as e:
            raise BuildRecordError(f"CreateBuild response is missing {e}") from e

        logger.info("Registered build", build_id=record.build_id, tags=tags)
        return record

    async def finish_build(self, record: BuildRecord, error: BaseException | None) -> None:
        """Report the terminal result of a build."""
        result: dict[str, Any]
        if error is None:
            result = {"success": {}}
        else:
            result = {"error": {"error": str(error) or type(error).__name__}}

        await self._call(
            "FinishBuild",
            record.build_token,
            {"buildId": record.build_id, "result": result},
        )
        logger.info("Finished build", build_id=record.build_id, success=error is None)
