"""BuildKit client package.

This package provides the build engine protocol with its buildctl backed
implementation, the registry auth session attached to each solve, and the
progress display that renders solve status updates.
"""

from .auth_session import RegistryAuthSession, registry_auth_configs
from .engine import BuildctlEngine, BuildEngine, StatusQueue
from .progress import ProgressDisplay
from .types import (
    AuthProvider,
    CredentialsRequest,
    CredentialsResponse,
    ExportEntry,
    FetchTokenRequest,
    GetTokenAuthorityRequest,
    SolveOptions,
    SolveResponse,
    VerifyTokenAuthorityRequest,
)

__all__ = [
    # Protocols
    "AuthProvider",
    "BuildEngine",
    # Implementations
    "BuildctlEngine",
    "ProgressDisplay",
    "RegistryAuthSession",
    # Types
    "CredentialsRequest",
    "CredentialsResponse",
    "ExportEntry",
    "FetchTokenRequest",
    "GetTokenAuthorityRequest",
    "SolveOptions",
    "SolveResponse",
    "StatusQueue",
    "VerifyTokenAuthorityRequest",
    # Utilities
    "registry_auth_configs",
]
