"""
Configuration Management

Two layers of configuration:
- Settings: process-wide options loaded from environment variables
  (Pydantic Settings, with .env support)
- CloudKitConfig / ContainerConfig: per-container credentials, loaded from a
  JSON or YAML container file

A container authenticates with exactly one of:
1. an API token (``apiTokenAuth.apiToken``)
2. a server-to-server key (``serverToServerKeyAuth``: keyID + PEM private key file)
"""
import logging
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from opencloudkit.core.errors import ConfigError
from opencloudkit.core.models import Environment

logger = logging.getLogger(__name__)


DEFAULT_SERVER_URL = "https://api.apple-cloudkit.com"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================================
    # Service Configuration
    # ============================================================
    cloudkit_config_file: Optional[str] = Field(
        None,
        description="Path to the container configuration file (JSON or YAML)"
    )
    cloudkit_server_url: str = Field(DEFAULT_SERVER_URL, description="Web service base URL")
    cloudkit_api_version: str = Field("1", description="Web service API version")
    request_timeout: float = Field(60.0, description="HTTP request timeout in seconds")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings.log_format)


class ServerToServerKeyAuth(BaseModel):
    """
    Server-to-server key credentials.

    Attributes:
        key_id: Key identifier issued by the dashboard
        private_key_file: Path to the PEM encoded private key
        private_key_passphrase: Passphrase for an encrypted key
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key_id: str = Field(..., alias="keyID", min_length=1)
    private_key_file: str = Field(..., alias="privateKeyFile", min_length=1)
    private_key_passphrase: Optional[str] = Field(None, alias="privateKeyPassPhrase")

    def resolved(self, working_directory: Union[str, Path, None]) -> "ServerToServerKeyAuth":
        """Return a copy whose relative key path is anchored at working_directory."""
        key_path = Path(self.private_key_file).expanduser()
        if working_directory is None or key_path.is_absolute():
            return self.model_copy(update={"private_key_file": str(key_path)})
        return self.model_copy(update={"private_key_file": str(Path(working_directory) / key_path)})


class ContainerConfig(BaseModel):
    """Configuration of a single container."""
    model_config = ConfigDict(populate_by_name=True)

    container_identifier: str = Field(..., alias="containerIdentifier", min_length=1)
    environment: Environment
    apns_environment: Optional[Environment] = Field(None, alias="apnsEnvironment")
    api_token: Optional[str] = Field(None, alias="apiToken")
    server_to_server_key_auth: Optional[ServerToServerKeyAuth] = Field(
        None, alias="serverToServerKeyAuth"
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_document(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        # {"apiTokenAuth": {"apiToken": "..."}} -> {"apiToken": "..."}
        if "apiTokenAuth" in data:
            token_auth = data.pop("apiTokenAuth")
            data["apiToken"] = token_auth.get("apiToken") if isinstance(token_auth, dict) else token_auth

        # Unknown APNs environments fall back to the container environment
        apns = data.get("apnsEnvironment")
        if apns is not None:
            try:
                Environment(apns)
            except ValueError:
                logger.debug(f"Ignoring unknown apnsEnvironment: {apns!r}")
                data.pop("apnsEnvironment")
        return data

    @model_validator(mode="after")
    def _check_auth(self) -> "ContainerConfig":
        if self.apns_environment is None:
            self.apns_environment = self.environment
        if (self.api_token is None) == (self.server_to_server_key_auth is None):
            raise ValueError(
                "Exactly one of apiTokenAuth or serverToServerKeyAuth must be configured"
            )
        return self

    @property
    def uses_server_key(self) -> bool:
        return self.server_to_server_key_auth is not None


class CloudKitConfig(BaseModel):
    """Set of configured containers."""
    containers: List[ContainerConfig] = Field(..., min_length=1)

    def container(self, identifier: Optional[str] = None) -> ContainerConfig:
        """
        Look up a container by identifier.

        Args:
            identifier: Container identifier (default: first configured container)

        Raises:
            ConfigError: If no container matches
        """
        if identifier is None:
            return self.containers[0]
        for container in self.containers:
            if container.container_identifier == identifier:
                return container
        raise ConfigError(f"Container not configured: {identifier}")

    @classmethod
    def from_document(
        cls,
        document: Any,
        working_directory: Union[str, Path, None] = None,
    ) -> "CloudKitConfig":
        """
        Build a config from a parsed document.

        Invalid container entries are skipped with a warning; at least one
        valid container is required.

        Raises:
            ConfigError: If the document has no usable containers
        """
        if not isinstance(document, dict) or not isinstance(document.get("containers"), list):
            raise ConfigError("Config document must contain a 'containers' list")

        containers = []
        for index, entry in enumerate(document["containers"]):
            try:
                container = ContainerConfig.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping invalid container config #{index}: {e.error_count()} error(s)")
                continue
            if container.server_to_server_key_auth is not None:
                container.server_to_server_key_auth = container.server_to_server_key_auth.resolved(
                    working_directory
                )
            containers.append(container)

        if not containers:
            raise ConfigError("No valid containers in config")
        return cls(containers=containers)


def load_config(path: Union[str, Path]) -> CloudKitConfig:
    """
    Load container configuration from a JSON or YAML file.

    Relative private key paths are resolved against the file's directory.

    Args:
        path: Path to the config file

    Returns:
        CloudKitConfig

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e

    try:
        # YAML is a superset of JSON, so one parser handles both
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    config = CloudKitConfig.from_document(document, working_directory=path.parent)
    logger.info(f"Loaded {len(config.containers)} container(s) from {path}")
    return config
