"""BuildKit solve and session types.

These mirror the shapes BuildKit clients exchange with buildkitd: solve
options, the exporter response, and the auth session request/response pairs.
No dependencies on ecrbuild.services to keep the package independent.
"""

from dataclasses import dataclass, field
from typing import Protocol

from pydantic import BaseModel


@dataclass
class ExportEntry:
    """One exporter, e.g. ``type="image"`` with ``name``/``push`` attrs."""

    type: str
    attrs: dict[str, str] = field(default_factory=dict)


@dataclass
class SolveOptions:
    """Parameters for a single solve call.

    Attributes:
        frontend: Frontend identifier ("dockerfile.v0" or "gateway.v0")
        frontend_attrs: Per-frontend options (filename, platform, source, cmdline)
        local_dirs: Named local directories shared with the engine
        exports: Exporters to run once the build finishes
        session: Auth providers attached to the build session
        internal: Skip recording build history and traces in the engine
    """

    frontend: str
    frontend_attrs: dict[str, str] = field(default_factory=dict)
    local_dirs: dict[str, str] = field(default_factory=dict)
    exports: list[ExportEntry] = field(default_factory=list)
    session: list["AuthProvider"] = field(default_factory=list)
    internal: bool = False


@dataclass
class SolveResponse:
    exporter_response: dict[str, str] = field(default_factory=dict)


class CredentialsRequest(BaseModel):
    host: str


class CredentialsResponse(BaseModel):
    username: str = ""
    secret: str = ""


class FetchTokenRequest(BaseModel):
    client_id: str = ""
    host: str
    realm: str = ""
    service: str = ""
    scopes: list[str] = []


class FetchTokenResponse(BaseModel):
    token: str
    expires_in: int = 0
    issued_at: int = 0


class GetTokenAuthorityRequest(BaseModel):
    host: str
    salt: bytes = b""


class GetTokenAuthorityResponse(BaseModel):
    public_key: bytes


class VerifyTokenAuthorityRequest(BaseModel):
    host: str
    payload: bytes = b""
    salt: bytes = b""


class VerifyTokenAuthorityResponse(BaseModel):
    signed: bytes


class AuthProvider(Protocol):
    """Server side of BuildKit's session auth service."""

    def credentials(self, request: CredentialsRequest) -> CredentialsResponse: ...

    def fetch_token(self, request: FetchTokenRequest) -> FetchTokenResponse: ...

    def get_token_authority(
        self, request: GetTokenAuthorityRequest
    ) -> GetTokenAuthorityResponse: ...

    def verify_token_authority(
        self, request: VerifyTokenAuthorityRequest
    ) -> VerifyTokenAuthorityResponse: ...
