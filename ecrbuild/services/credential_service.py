"""ECR credential service.

Exchanges the ambient AWS identity for a short-lived registry username and
password. ECR Public and private ECR use different token endpoints; both
return a base64-encoded "username:password" string.

Tokens are fetched once per build and never cached or persisted.
"""

import base64
import binascii
from typing import Any, Callable

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ecrbuild.errors import CredentialExchangeError
from ecrbuild.models import Credentials, RegistryIdentity
from ecrbuild.packages.registry import ECR_PUBLIC_HOST
from ecrbuild.settings import settings

logger = structlog.stdlib.get_logger(__name__)


def create_aws_session(region: str) -> boto3.session.Session:
    """Create a boto3 session scoped to ``region``.

    Explicit keys from settings win; otherwise the default credential chain
    (environment, shared config, instance role) applies.
    """
    kwargs: dict[str, Any] = {"region_name": region}
    if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
        kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
    return boto3.session.Session(**kwargs)


def _get_authorization_token(session: boto3.session.Session, registry: RegistryIdentity) -> str:
    if registry.host == ECR_PUBLIC_HOST:
        response = session.client("ecr-public").get_authorization_token()
        return response["authorizationData"]["authorizationToken"]

    response = session.client("ecr").get_authorization_token()
    auth_data = response.get("authorizationData")
    if not auth_data:
        raise CredentialExchangeError("No authorization data in ECR response")
    return auth_data[0]["authorizationToken"]


def decode_authorization_token(token: str) -> Credentials:
    """Decode a base64 "username:password" token.

    Only the first colon separates the two; the password may contain colons.
    """
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise CredentialExchangeError(f"Failed to decode token: {e}") from e

    username, sep, secret = decoded.partition(":")
    if not sep:
        raise CredentialExchangeError("Authorization token is not of the form user:password")

    return Credentials(username=username, secret=secret)


def get_registry_credentials(
    registry: RegistryIdentity,
    region: str,
    session_factory: Callable[[str], boto3.session.Session] = create_aws_session,
) -> Credentials:
    """Fetch registry credentials for one build.

    Args:
        registry: Resolved registry identity; ECR Public is detected by host
        region: AWS region the session is scoped to
        session_factory: Builds the boto3 session for ``region``

    Returns:
        Username and password for the registry

    Raises:
        CredentialExchangeError: If the AWS call fails or the token is unusable
    """
    try:
        session = session_factory(region)
        token = _get_authorization_token(session, registry)
    except ClientError as e:
        error_code = e.response["Error"]["Code"]
        logger.error(
            "Failed to get ECR authorization token",
            host=registry.host,
            region=region,
            error_code=error_code,
        )
        raise CredentialExchangeError(
            f"Failed to get authorization token for {registry.host} in {region}: {e}"
        ) from e
    except BotoCoreError as e:
        logger.error(
            "Could not call ECR, are AWS credentials configured?",
            host=registry.host,
            region=region,
            error=str(e),
        )
        raise CredentialExchangeError(
            f"Couldn't load AWS configuration. Have you set up your AWS account? {e}"
        ) from e
    except (KeyError, IndexError, TypeError) as e:
        raise CredentialExchangeError(f"Unexpected ECR token response: {e!r}") from e

    credentials = decode_authorization_token(token)
    logger.info(
        "Retrieved ECR authorization token",
        host=registry.host,
        region=region,
        username=credentials.username,
    )
    return credentials
