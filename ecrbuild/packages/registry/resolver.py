"""Registry address resolution for Amazon ECR.

Accepts the address a user types ("123456789012.dkr.ecr.us-east-1.amazonaws.com/team/app",
with or without a scheme) and turns it into a validated RegistryIdentity. Only
ECR Public and private ECR hosts are accepted.
"""

import re
from urllib.parse import urlsplit

import structlog

from ecrbuild.errors import InvalidAddressError, UnsupportedRegistryError
from ecrbuild.models import RegistryIdentity

logger = structlog.stdlib.get_logger(__name__)

PROGRAM_NAME = "ecrbuild"

ENDPOINT_SCHEME = "https://"
ECR_PUBLIC_HOST = "public.ecr.aws"
ECR_PUBLIC_ENDPOINT = ENDPOINT_SCHEME + ECR_PUBLIC_HOST

# Same host grammar as amazon-ecr-credential-helper
ECR_HOST_PATTERN = re.compile(
    r"^(\d{12})\.dkr\.ecr(-fips)?\.([a-zA-Z0-9][a-zA-Z0-9_-]*)\."
    r"(amazonaws\.com(\.cn)?|sc2s\.sgov\.gov|c2s\.ic\.gov|cloud\.adc-e\.uk|csp\.hci\.ic\.gov)$"
)

_SCHEME_PREFIX = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def _hostname(netloc: str) -> str:
    """Strip userinfo and port from a netloc, keeping the host's original case."""
    host = netloc.rpartition("@")[2]
    if host.startswith("["):
        return host[1:].partition("]")[0]
    return host.partition(":")[0]


def resolve_registry(address: str) -> RegistryIdentity:
    """Resolve a registry address into a RegistryIdentity.

    Args:
        address: Registry address, e.g. "public.ecr.aws/r123/app" or
            "https://123456789012.dkr.ecr.us-east-1.amazonaws.com/team/app"

    Returns:
        The resolved registry identity

    Raises:
        InvalidAddressError: If the path has fewer than two segments
        UnsupportedRegistryError: If the host is not an ECR registry
    """
    stripped = _SCHEME_PREFIX.sub("", address.strip(), count=1)

    try:
        parsed = urlsplit(ENDPOINT_SCHEME + stripped)
    except ValueError as e:
        raise InvalidAddressError(f"{address!r} is not a valid registry URL: {e}") from e

    path = parsed.path.strip("/")
    segments = [segment for segment in path.split("/") if segment]
    if len(segments) < 2:
        raise InvalidAddressError(
            f"invalid registry URL {address!r}: expected <registry>/<namespace>/<repository>"
        )

    host = _hostname(parsed.netloc)

    if host == ECR_PUBLIC_HOST:
        return RegistryIdentity(
            endpoint=ECR_PUBLIC_ENDPOINT,
            host=ECR_PUBLIC_HOST,
            path=path,
        )

    match = ECR_HOST_PATTERN.match(host)
    if match is None:
        logger.debug("Registry host rejected", host=host)
        raise UnsupportedRegistryError(
            f"{PROGRAM_NAME} can only be used with Amazon Elastic Container Registry"
        )

    return RegistryIdentity(
        endpoint=ENDPOINT_SCHEME + match.group(0),
        host=host,
        path=path,
    )


def image_tag(registry: RegistryIdentity, label: str) -> str:
    """Destination image reference, e.g. "<host>/<path>:<label>"."""
    return f"{registry.host}/{registry.path}:{label}"
