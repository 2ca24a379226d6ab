"""
Containers and Databases

A Container binds a container configuration to a WebTransport and an
OperationQueue; each of its Databases (public, private, shared) runs
operations against its own URL scope.
"""
import logging
from typing import Dict, Optional

import httpx

from opencloudkit.core.config import ContainerConfig, Settings, get_settings, load_config
from opencloudkit.core.errors import ConfigError, OperationStateError
from opencloudkit.core.models import DatabaseScope
from opencloudkit.core.operations.base import DatabaseOperation, OperationQueue, OperationState
from opencloudkit.core.signing.signer import Clock
from opencloudkit.core.transport import WebTransport

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, container: "Container", scope: DatabaseScope):
        self.container = container
        self.scope = DatabaseScope(scope)

    def __repr__(self) -> str:
        return f"Database({self.container.identifier}, {self.scope.value})"

    @property
    def transport(self) -> WebTransport:
        return self.container.transport

    @property
    def operation_url(self) -> str:
        return self.transport.database_url(self.scope)

    def add(self, operation: DatabaseOperation):
        """
        Run an operation against this database.

        Returns:
            Future resolving to the operation once it has finished

        Raises:
            OperationStateError: If the operation was already started
        """
        if operation.state is not OperationState.READY:
            raise OperationStateError(f"{operation!r} cannot be started again")
        operation.database = self
        return self.container.queue.add(operation)


class Container:
    """
    Entry point for one configured container.

    Example:
        >>> container = Container.from_settings("iCloud.com.example.app")
        >>> container.public_database.add(operation)
    """

    def __init__(
        self,
        config: ContainerConfig,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
    ):
        settings = settings or get_settings()
        self.config = config
        self.transport = WebTransport(
            config,
            server_url=settings.cloudkit_server_url,
            api_version=settings.cloudkit_api_version,
            timeout=settings.request_timeout,
            client=client,
            clock=clock,
        )
        self.queue = OperationQueue(config.container_identifier)
        self._databases: Dict[DatabaseScope, Database] = {}

        auth_mode = "server key" if config.uses_server_key else "API token"
        logger.info(
            f"Container {self.identifier} ({config.environment.value}) using {auth_mode} auth"
        )

    @property
    def identifier(self) -> str:
        return self.config.container_identifier

    def database(self, scope: DatabaseScope) -> Database:
        scope = DatabaseScope(scope)
        if scope not in self._databases:
            self._databases[scope] = Database(self, scope)
        return self._databases[scope]

    @property
    def public_database(self) -> Database:
        return self.database(DatabaseScope.PUBLIC)

    @property
    def private_database(self) -> Database:
        return self.database(DatabaseScope.PRIVATE)

    @property
    def shared_database(self) -> Database:
        return self.database(DatabaseScope.SHARED)

    @classmethod
    def from_settings(
        cls,
        identifier: Optional[str] = None,
        settings: Optional[Settings] = None,
        **kwargs,
    ) -> "Container":
        """
        Create a container from the config file named in the settings.

        Raises:
            ConfigError: If no config file is configured or the container is unknown
        """
        settings = settings or get_settings()
        if not settings.cloudkit_config_file:
            raise ConfigError("CLOUDKIT_CONFIG_FILE is not set")
        config = load_config(settings.cloudkit_config_file)
        return cls(config.container(identifier), settings=settings, **kwargs)
