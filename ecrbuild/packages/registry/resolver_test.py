import pytest
from pydantic import ValidationError

from ecrbuild.errors import InvalidAddressError, UnsupportedRegistryError
from ecrbuild.packages.registry import (
    ECR_PUBLIC_ENDPOINT,
    ECR_PUBLIC_HOST,
    image_tag,
    resolve_registry,
)

PRIVATE_HOST = "123456789012.dkr.ecr.us-east-1.amazonaws.com"


class TestPrivateRegistry:
    def test_resolve_without_scheme(self):
        identity = resolve_registry(f"{PRIVATE_HOST}/myrepo/app")

        assert identity.endpoint == f"https://{PRIVATE_HOST}"
        assert identity.host == PRIVATE_HOST
        assert identity.path == "myrepo/app"

    def test_resolve_with_scheme(self):
        identity = resolve_registry(f"https://{PRIVATE_HOST}/myrepo/app/")

        assert identity.host == PRIVATE_HOST
        assert identity.path == "myrepo/app"

    def test_resolve_with_other_scheme(self):
        identity = resolve_registry(f"oci://{PRIVATE_HOST}/myrepo/app")

        assert identity.host == PRIVATE_HOST

    def test_port_is_not_part_of_host(self):
        identity = resolve_registry(f"{PRIVATE_HOST}:443/myrepo/app")

        assert identity.host == PRIVATE_HOST
        assert identity.endpoint == f"https://{PRIVATE_HOST}"

    @pytest.mark.parametrize(
        "host",
        [
            "123456789012.dkr.ecr.eu-west-1.amazonaws.com",
            "123456789012.dkr.ecr-fips.us-gov-west-1.amazonaws.com",
            "123456789012.dkr.ecr.cn-north-1.amazonaws.com.cn",
            "123456789012.dkr.ecr.us-iso-east-1.c2s.ic.gov",
            "123456789012.dkr.ecr.us-isob-east-1.sc2s.sgov.gov",
            "123456789012.dkr.ecr.eu-isoe-west-1.cloud.adc-e.uk",
            "123456789012.dkr.ecr.us-isof-south-1.csp.hci.ic.gov",
        ],
    )
    def test_supported_partitions(self, host: str):
        identity = resolve_registry(f"{host}/team/service")

        assert identity.host == host
        assert identity.endpoint == f"https://{host}"
        assert len(identity.path.split("/")) >= 2

    def test_identity_is_immutable(self):
        identity = resolve_registry(f"{PRIVATE_HOST}/myrepo/app")

        with pytest.raises(ValidationError):
            identity.host = "evil.example.com"  # type: ignore[misc]


class TestPublicRegistry:
    def test_resolve_public(self):
        identity = resolve_registry("public.ecr.aws/r123/app")

        assert identity.host == ECR_PUBLIC_HOST
        assert identity.endpoint == ECR_PUBLIC_ENDPOINT
        assert identity.path == "r123/app"

    def test_deep_path_keeps_fixed_endpoint(self):
        identity = resolve_registry("https://public.ecr.aws/r123/team/nested/app")

        assert identity.endpoint == "https://public.ecr.aws"
        assert identity.path == "r123/team/nested/app"


class TestInvalidAddresses:
    @pytest.mark.parametrize(
        "address",
        [
            f"{PRIVATE_HOST}/onlypart",
            f"{PRIVATE_HOST}",
            f"{PRIVATE_HOST}/",
            "public.ecr.aws/app",
            "https://example.com/onlypart",
            "",
        ],
    )
    def test_too_few_segments_is_invalid_address(self, address: str):
        with pytest.raises(InvalidAddressError):
            resolve_registry(address)

    @pytest.mark.parametrize(
        "address",
        [
            "https://example.com/team/app",
            "ghcr.io/owner/app",
            "12345678901.dkr.ecr.us-east-1.amazonaws.com/team/app",
            "123456789012.dkr.ecr.us-east-1.example.com/team/app",
            "123456789012.dkr.ecr.-bad.amazonaws.com/team/app",
            "dkr.ecr.us-east-1.amazonaws.com/team/app",
            "123456789012.dkr.ecr..amazonaws.com/team/app",
        ],
    )
    def test_unknown_host_is_unsupported(self, address: str):
        with pytest.raises(UnsupportedRegistryError) as exc_info:
            resolve_registry(address)

        assert "ecrbuild" in str(exc_info.value)


class TestImageTag:
    def test_image_tag(self):
        identity = resolve_registry(f"{PRIVATE_HOST}/myrepo/app")

        assert (
            image_tag(identity, "abcd1234")
            == "123456789012.dkr.ecr.us-east-1.amazonaws.com/myrepo/app:abcd1234"
        )
