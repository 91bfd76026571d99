"""Registry auth session attached to a BuildKit solve.

buildkitd asks the client session for registry credentials whenever it needs
to push or pull. The session only ever answers for the resolved registry
host, so a frontend querying some other host gets nothing back.
"""

from dataclasses import dataclass

import structlog

from ecrbuild.errors import TokenAuthUnavailableError
from ecrbuild.models import Credentials, RegistryIdentity

from .types import (
    CredentialsRequest,
    CredentialsResponse,
    FetchTokenRequest,
    FetchTokenResponse,
    GetTokenAuthorityRequest,
    GetTokenAuthorityResponse,
    VerifyTokenAuthorityRequest,
    VerifyTokenAuthorityResponse,
)

logger = structlog.stdlib.get_logger(__name__)


@dataclass(frozen=True)
class RegistryAuthConfig:
    username: str
    password: str
    server_address: str


def registry_auth_configs(
    registry: RegistryIdentity, credentials: Credentials
) -> dict[str, RegistryAuthConfig]:
    """Auth configs keyed by registry host, the form docker config files use."""
    return {
        registry.host: RegistryAuthConfig(
            username=credentials.username,
            password=credentials.secret,
            server_address=registry.endpoint,
        )
    }


class RegistryAuthSession:
    """Answers BuildKit auth requests with brokered ECR credentials.

    Holds no mutable state, so concurrent and repeated queries during one
    build are safe. Token based auth is never served.
    """

    def __init__(self, credentials: Credentials, registry: RegistryIdentity):
        self._registry = registry
        self._auth_configs = registry_auth_configs(registry, credentials)

    @property
    def registry(self) -> RegistryIdentity:
        return self._registry

    def credentials(self, request: CredentialsRequest) -> CredentialsResponse:
        auth = self._auth_configs.get(request.host)
        if auth is None:
            logger.debug("No credentials for requested host", host=request.host)
            return CredentialsResponse()

        return CredentialsResponse(username=auth.username, secret=auth.password)

    def fetch_token(self, request: FetchTokenRequest) -> FetchTokenResponse:
        raise TokenAuthUnavailableError()

    def get_token_authority(
        self, request: GetTokenAuthorityRequest
    ) -> GetTokenAuthorityResponse:
        raise TokenAuthUnavailableError()

    def verify_token_authority(
        self, request: VerifyTokenAuthorityRequest
    ) -> VerifyTokenAuthorityResponse:
        raise TokenAuthUnavailableError()
