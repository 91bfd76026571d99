"""Exception hierarchy for registry resolution, credential exchange and builds.

Library code raises these; only the CLI turns them into an exit status.
"""

import grpc


class BuildToolError(Exception):
    """Base exception for every failure this tool reports."""

    pass


class InvalidAddressError(BuildToolError):
    """Raised when a registry address is malformed or names too few path segments."""

    pass


class UnsupportedRegistryError(BuildToolError):
    """Raised when a registry host is neither ECR Public nor a private ECR host."""

    pass


class CredentialExchangeError(BuildToolError):
    """Raised when the AWS token call fails or returns an unusable token."""

    pass


class BuildEngineError(BuildToolError):
    """Raised when the build engine cannot be reached or its solve call fails."""

    pass


class BuildFailureError(BuildToolError):
    """Raised when a build does not produce a usable image descriptor.

    ``pushed`` is True when the engine reported a successful export, meaning the
    image may already be live in the registry even though the build failed.
    """

    def __init__(self, message: str, pushed: bool = False, digest: str | None = None):
        super().__init__(message)
        self.pushed = pushed
        self.digest = digest


class BuildRecordError(BuildToolError):
    """Raised when the build cannot be registered with the scheduling service."""

    pass


class CloneError(BuildToolError):
    """Raised when the source repository cannot be cloned."""

    pass


class FrontendPrepareError(BuildToolError):
    """Raised when the Railpack frontend plan cannot be prepared."""

    pass


class TokenAuthUnavailableError(BuildToolError):
    """Raised for token-based registry auth requests, which this session never serves."""

    code = grpc.StatusCode.UNAVAILABLE

    def __init__(self, message: str = "client side tokens disabled"):
        super().__init__(message)
