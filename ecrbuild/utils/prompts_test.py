from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from ecrbuild.utils import prompts
from ecrbuild.utils.prompts import (
    BuildInputs,
    PromptCancelled,
    ask_inputs,
    detect_arch,
    validate_protocol,
    validate_required,
)


def test_validate_required():
    validate = validate_required("region")

    assert validate("us-east-1") is True
    assert validate("   ") == "region is required"


def test_validate_protocol():
    validate = validate_protocol("remote builder address", ["ssh://", "tcp://"], optional=True)

    assert validate("") is True
    assert validate("tcp://1.2.3.4:1234") is True
    assert validate("ssh://user@host") is True
    assert "unsupported remote builder address" in validate("http://host")


def test_validate_protocol_required():
    validate = validate_protocol("builder", ["tcp://"], optional=False)

    assert validate("") == "unsupported builder: . Only tcp:// are supported"


@pytest.mark.parametrize(
    "machine,arch",
    [("x86_64", "amd64"), ("AMD64", "amd64"), ("aarch64", "arm64"), ("arm64", "arm64")],
)
def test_detect_arch(machine: str, arch: str):
    with patch("platform.machine", return_value=machine):
        assert detect_arch() == arch


class TestBuildInputs:
    def test_defaults(self):
        inputs = BuildInputs(
            repo="https://github.com/example/app",
            registry_url="public.ecr.aws/r123/app",
            region="us-east-1",
            arch="amd64",
        )

        assert inputs.dockerfile_path == "Dockerfile"
        assert inputs.arch == detect_arch()
        assert inputs.remote_builder_address == ""

    def test_rejects_unknown_protocol(self):
        with pytest.raises(ValidationError, match="unsupported remote builder address"):
            BuildInputs(
                repo="r",
                registry_url="public.ecr.aws/r123/app",
                region="us-east-1",
                arch="amd64",
                remote_builder_address="http://1.2.3.4",
            )

    def test_rejects_unknown_arch(self):
        with pytest.raises(ValidationError):
            BuildInputs(
                repo="r", registry_url="public.ecr.aws/r123/app", region="us-east-1", arch="386"
            )


class TestAskInputs:
    def test_only_missing_values_are_asked(self):
        question = MagicMock()
        question.ask.return_value = ""

        with (
            patch.object(prompts.questionary, "text", return_value=question) as text,
            patch.object(prompts.questionary, "select") as select,
        ):
            inputs = ask_inputs(
                repo="https://github.com/example/app",
                registry_url="public.ecr.aws/r123/app",
                region="eu-west-1",
                arch="arm64",
                dockerfile_path="Dockerfile",
                remote_builder_address=None,
            )

        select.assert_not_called()
        text.assert_called_once()
        assert inputs.region == "eu-west-1"
        assert inputs.remote_builder_address == ""

    def test_cancel(self):
        question = MagicMock()
        question.ask.return_value = None

        with (
            patch.object(prompts.questionary, "text", return_value=question),
            pytest.raises(PromptCancelled),
        ):
            ask_inputs()
