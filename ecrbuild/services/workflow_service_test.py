from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from ecrbuild.errors import (
    BuildFailureError,
    BuildRecordError,
    CloneError,
    UnsupportedRegistryError,
)
from ecrbuild.models import BuildSpec, Credentials, Frontend, ImageDescriptor
from ecrbuild.services import workflow_service
from ecrbuild.services.builder_service import AcquiredBuilder
from ecrbuild.services.workflow_service import run_workflow
from ecrbuild.settings import settings
from ecrbuild.utils.prompts import BuildInputs

DESCRIPTOR = ImageDescriptor(
    mediaType="application/vnd.oci.image.index.v1+json", digest="sha256:abc", size=856
)


@pytest.fixture
def inputs() -> BuildInputs:
    return BuildInputs(
        repo="https://github.com/example/app",
        registry_url="public.ecr.aws/r123/app",
        region="us-east-1",
        arch="arm64",
    )


@pytest.fixture
def work_dir(tmp_path: Path):
    with patch.object(settings, "WORK_DIR", str(tmp_path / "work")):
        yield tmp_path / "work"


async def _fake_clone(repo_url: str, destination: Path) -> Path:
    destination.mkdir(parents=True)
    (destination / "Dockerfile").write_text("FROM scratch\n")
    return destination


class WorkflowPatches:
    """Replaces everything past resolution with in-process fakes."""

    def __init__(self, build_result=DESCRIPTOR):
        self.release = AsyncMock()
        self.build_image = AsyncMock()
        if isinstance(build_result, BaseException):
            self.build_image.side_effect = build_result
        else:
            self.build_image.return_value = build_result
        self.acquire_builder = AsyncMock(
            return_value=AcquiredBuilder(engine=object(), release=self.release)
        )

    def __enter__(self):
        self._patches = [
            patch.object(workflow_service, "clone_repository", _fake_clone),
            patch.object(
                workflow_service,
                "get_registry_credentials",
                return_value=Credentials(username="AWS", secret="token"),
            ),
            patch.object(workflow_service, "acquire_builder", self.acquire_builder),
            patch.object(workflow_service, "build_image", self.build_image),
        ]
        for p in self._patches:
            p.start()
        return self

    def __exit__(self, *exc):
        for p in reversed(self._patches):
            p.stop()


async def test_successful_workflow(inputs: BuildInputs, work_dir: Path):
    with WorkflowPatches() as patches:
        result = await run_workflow(inputs)

    assert result.descriptor == DESCRIPTOR
    assert result.tag == f"public.ecr.aws/r123/app:{result.workflow_id}"
    assert result.workflow_id == result.workflow_id.lower()

    spec: BuildSpec = patches.build_image.await_args.args[1]
    assert spec.arch == "arm64"
    assert spec.frontend == Frontend.DOCKERFILE
    assert spec.tag == result.tag

    patches.acquire_builder.assert_awaited_once_with(result.tag, None)
    patches.release.assert_awaited_once_with(None)
    assert not (work_dir / result.workflow_id).exists()


async def test_build_failure_releases_builder_with_error(
    inputs: BuildInputs, work_dir: Path
):
    error = BuildFailureError("failed to solve")

    with WorkflowPatches(build_result=error) as patches, pytest.raises(BuildFailureError):
        await run_workflow(inputs)

    patches.release.assert_awaited_once_with(error)
    assert list(work_dir.iterdir()) == []


async def test_remote_builder_address_is_passed(inputs: BuildInputs, work_dir: Path):
    inputs = inputs.model_copy(update={"remote_builder_address": "tcp://10.0.0.1:1234"})

    with WorkflowPatches() as patches:
        result = await run_workflow(inputs)

    patches.acquire_builder.assert_awaited_once_with(result.tag, "tcp://10.0.0.1:1234")


async def test_unsupported_registry_fails_before_clone(work_dir: Path):
    inputs = BuildInputs(
        repo="https://github.com/example/app",
        registry_url="https://example.com/foo/bar",
        region="us-east-1",
        arch="amd64",
    )

    with WorkflowPatches() as patches, pytest.raises(UnsupportedRegistryError):
        await run_workflow(inputs)

    patches.acquire_builder.assert_not_called()
    assert not work_dir.exists()


async def test_clone_failure_skips_builder(inputs: BuildInputs, work_dir: Path):
    with (
        WorkflowPatches() as patches,
        patch.object(
            workflow_service, "clone_repository", AsyncMock(side_effect=CloneError("nope"))
        ),
        pytest.raises(CloneError),
    ):
        await run_workflow(inputs)

    patches.acquire_builder.assert_not_called()


async def test_release_failure_keeps_build_error(inputs: BuildInputs, work_dir: Path):
    error = BuildFailureError("bad descriptor", pushed=True, digest="sha256:abc")

    with WorkflowPatches(build_result=error) as patches:
        patches.release.side_effect = BuildRecordError("FinishBuild failed with status 503")

        with pytest.raises(BuildFailureError) as exc_info:
            await run_workflow(inputs)

    assert exc_info.value is error
    assert exc_info.value.pushed
    patches.release.assert_awaited_once_with(error)


async def test_release_failure_keeps_successful_push(inputs: BuildInputs, work_dir: Path):
    with WorkflowPatches() as patches:
        patches.release.side_effect = BuildRecordError("FinishBuild failed with status 503")

        result = await run_workflow(inputs)

    assert result.descriptor == DESCRIPTOR
    assert not (work_dir / result.workflow_id).exists()
