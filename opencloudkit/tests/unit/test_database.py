"""
Unit tests for containers and databases.
"""
import json

import httpx
import pytest

from opencloudkit.core.config import Settings
from opencloudkit.core.database import Container
from opencloudkit.core.errors import ConfigError, OperationStateError
from opencloudkit.core.models import AssetReferenceInfo, DatabaseScope, RecordID
from opencloudkit.core.operations.rereference_assets import AssetReferenceOperation


class TestContainer:
    def test_database_urls(self, container_config, test_settings):
        container = Container(container_config, settings=test_settings)

        assert container.identifier == "iCloud.com.example.tests"
        assert container.public_database.operation_url == (
            "https://cloudkit.test/database/1/iCloud.com.example.tests/development/public"
        )
        assert container.shared_database.scope is DatabaseScope.SHARED

    def test_databases_are_cached(self, container_config, test_settings):
        container = Container(container_config, settings=test_settings)

        assert container.private_database is container.database("private")

    def test_from_settings(self, tmp_path, rsa_key_path):
        config_path = tmp_path / "cloudkit.json"
        config_path.write_text(json.dumps({
            "containers": [{
                "containerIdentifier": "iCloud.com.example.tests",
                "environment": "development",
                "serverToServerKeyAuth": {
                    "keyID": "abc",
                    "privateKeyFile": str(rsa_key_path.relative_to(tmp_path)),
                },
            }],
        }))
        settings = Settings(cloudkit_config_file=str(config_path), _env_file=None)

        container = Container.from_settings("iCloud.com.example.tests", settings=settings)

        assert container.config.uses_server_key
        assert container.config.server_to_server_key_auth.private_key_file == str(rsa_key_path)

    def test_from_settings_without_config_file(self):
        settings = Settings(cloudkit_config_file=None, _env_file=None)

        with pytest.raises(ConfigError):
            Container.from_settings(settings=settings)

    def test_from_settings_unknown_container(self, tmp_path):
        config_path = tmp_path / "cloudkit.yaml"
        config_path.write_text(
            "containers:\n"
            "  - containerIdentifier: iCloud.com.example.web\n"
            "    environment: production\n"
            "    apiTokenAuth:\n"
            "      apiToken: abc\n"
        )
        settings = Settings(cloudkit_config_file=str(config_path), _env_file=None)

        with pytest.raises(ConfigError):
            Container.from_settings("iCloud.com.example.other", settings=settings)


class TestDatabaseAdd:
    """Test binding operations to databases."""

    @pytest.mark.asyncio
    async def test_started_operation_keeps_its_database(self, make_container):
        """Adding a running operation elsewhere fails and does not rebind it."""
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"assets": []})

        container = make_container(handler)
        operation = AssetReferenceOperation([AssetReferenceInfo(RecordID("photo-1"), "image")])

        done = container.public_database.add(operation)
        with pytest.raises(OperationStateError):
            container.private_database.add(operation)
        await done

        assert operation.database is container.public_database
        assert paths == [
            "/database/1/iCloud.com.example.tests/development/public/assets/rereference"
        ]


_created_clients = []


class TestMockedContainerClients:
    """The make_container fixture closes the clients it creates."""

    @pytest.mark.asyncio
    async def test_client_is_open_during_test(self, make_container):
        container = make_container(lambda request: httpx.Response(200, json={}))
        _created_clients.append(container.transport.client)

        assert not container.transport.client.is_closed

    def test_client_is_closed_after_test(self):
        assert _created_clients
        assert all(client.is_closed for client in _created_clients)
