"""Interactive collection of build inputs."""

import platform
from typing import Callable

import questionary
from pydantic import BaseModel, Field, field_validator

from ecrbuild.models import Architecture
from ecrbuild.settings import settings

REMOTE_BUILDER_PROTOCOLS = ["ssh://", "tcp://"]


def detect_arch() -> Architecture:
    machine = platform.machine().lower()
    if machine in ("arm64", "aarch64") or machine.startswith("arm"):
        return "arm64"
    return "amd64"


class BuildInputs(BaseModel):
    repo: str
    registry_url: str
    region: str
    arch: Architecture = Field(default_factory=detect_arch)
    dockerfile_path: str = "Dockerfile"
    remote_builder_address: str = ""

    @field_validator("remote_builder_address")
    @classmethod
    def check_remote_builder_protocol(cls, value: str) -> str:
        result = validate_protocol(
            "remote builder address", REMOTE_BUILDER_PROTOCOLS, optional=True
        )(value)
        if result is not True:
            raise ValueError(result)
        return value


class PromptCancelled(Exception):
    pass


def validate_required(name: str) -> Callable[[str], bool | str]:
    def validate(value: str) -> bool | str:
        if not value.strip():
            return f"{name} is required"
        return True

    return validate


def validate_protocol(
    name: str, protocols: list[str], optional: bool
) -> Callable[[str], bool | str]:
    def validate(value: str) -> bool | str:
        if not value and optional:
            return True
        if any(value.startswith(protocol) for protocol in protocols):
            return True
        return f"unsupported {name}: {value}. Only {', '.join(protocols)} are supported"

    return validate


def _ask(question: questionary.Question) -> str:
    # ask() returns None when the user hits Ctrl-C
    answer = question.ask()
    if answer is None:
        raise PromptCancelled()
    return answer


def ask_inputs(**given: str | None) -> BuildInputs:
    """Prompt for every input not already given on the command line."""
    values: dict[str, str] = {key: value for key, value in given.items() if value}

    if "repo" not in values:
        values["repo"] = _ask(
            questionary.text(
                "Enter the repository to clone",
                instruction="(https://github.com/username/repo)",
                validate=validate_required("git repository"),
            )
        )

    if "registry_url" not in values:
        values["registry_url"] = _ask(
            questionary.text(
                "Enter the registry to push the image to",
                instruction="(public.ecr.aws/repositoryid/repo)",
                validate=validate_required("registry url"),
            )
        )

    if "region" not in values:
        values["region"] = _ask(
            questionary.text(
                "Enter the region of the ECR registry",
                default=settings.AWS_REGION,
                validate=validate_required("region"),
            )
        )

    if "arch" not in values:
        values["arch"] = _ask(
            questionary.select(
                "Choose the architecture of the image",
                choices=["amd64", "arm64"],
                default=detect_arch(),
            )
        )

    if "dockerfile_path" not in values:
        values["dockerfile_path"] = _ask(
            questionary.text(
                "Enter the Dockerfile path in the repository",
                default="Dockerfile",
                validate=validate_required("Dockerfile path"),
            )
        )

    if "remote_builder_address" not in values:
        values["remote_builder_address"] = _ask(
            questionary.text(
                "Enter the remote builder address where buildkitd is running (optional)",
                instruction="(tcp://1.2.3.4:1234 or ssh://user@host)",
                validate=validate_protocol(
                    "remote builder address", REMOTE_BUILDER_PROTOCOLS, optional=True
                ),
            )
        )

    return BuildInputs(**values)
