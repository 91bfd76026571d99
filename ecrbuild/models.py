from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class RegistryIdentity(BaseModel):
    """Resolved and validated container registry address."""

    model_config = ConfigDict(frozen=True)

    endpoint: str
    host: str
    path: str


class Credentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    secret: str = Field(repr=False)


class Frontend(str, Enum):
    DOCKERFILE = "dockerfile"
    RAILPACK = "railpack"


Architecture = Literal["amd64", "arm64"]


class BuildSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    registry: RegistryIdentity
    region: str
    source_dir: Path
    dockerfile_path: str = "Dockerfile"
    arch: Architecture = "amd64"
    tag: str
    frontend: Frontend = Frontend.DOCKERFILE


class DescriptorAnnotations(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    raw_manifest: str | None = Field(
        default=None, alias="depot.containerimage.manifest"
    )


class ImageDescriptor(BaseModel):
    """OCI descriptor of the pushed image, decoded from the exporter response."""

    model_config = ConfigDict(populate_by_name=True)

    media_type: str = Field(default="", alias="mediaType")
    digest: str = ""
    size: int = 0
    annotations: DescriptorAnnotations = Field(default_factory=DescriptorAnnotations)


class ProgressEvent(BaseModel):
    """One BuildKit SolveStatus update.

    Vertexes, statuses, logs and warnings are kept as the raw JSON objects the
    engine emits; only the display looks inside them.
    """

    model_config = ConfigDict(extra="allow")

    vertexes: list[dict[str, Any]] = Field(default_factory=list)
    statuses: list[dict[str, Any]] = Field(default_factory=list)
    logs: list[dict[str, Any]] = Field(default_factory=list)
    warnings: list[dict[str, Any]] = Field(default_factory=list)
