from pydantic import computed_field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from ecrbuild.utils.settings_utils import DockerSecretsSettingsSource


class GeneralConfig(BaseSettings):
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = ""


class AwsConfig(BaseSettings):
    # Empty keys fall back to the default boto3 credential chain
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"


class BuilderConfig(BaseSettings):
    BUILDKIT_HOST: str = "unix:///run/buildkit/buildkitd.sock"
    BUILDCTL_PATH: str = "buildctl"

    BUILDER_CONNECT_TIMEOUT_SECONDS: float = 300
    """buildkitd can take minutes to accept connections while it loads a
    large boltdb, so the readiness check gets a generous bound."""

    BUILD_TIMEOUT_SECONDS: float | None = None

    RAILPACK_VERSION: str = "v0.17.1"
    RAILPACK_PATH: str = "railpack"

    WORK_DIR: str = "tmp"

    @computed_field
    @property
    def RAILPACK_FRONTEND(self) -> str:
        return f"ghcr.io/railwayapp/railpack-frontend:{self.RAILPACK_VERSION}"


class DepotConfig(BaseSettings):
    DEPOT_TOKEN: str = ""
    DEPOT_PROJECT_ID: str = ""
    DEPOT_API_URL: str = "https://api.depot.dev"


class Settings(
    GeneralConfig,
    AwsConfig,
    BuilderConfig,
    DepotConfig,
    BaseSettings,
):
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.test"),
        extra="allow",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Define the priority order for settings sources.

        Priority (highest to lowest):
        1. Explicit keyword arguments
        2. Secrets from files (reads *_FILE env vars, e.g. DEPOT_TOKEN_FILE)
        3. Environment variables
        4. .env files
        5. Default values
        """
        return (
            init_settings,
            DockerSecretsSettingsSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


settings = Settings()
