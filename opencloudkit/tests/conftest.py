"""
Shared fixtures: signing keys, container configs and mocked HTTP containers.
"""
from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio

from opencloudkit.core.config import ContainerConfig, ServerToServerKeyAuth, Settings
from opencloudkit.core.database import Container
from opencloudkit.core.models import Environment
from opencloudkit.core.signing.keys import generate_private_key, save_private_key


CONTAINER_ID = "iCloud.com.example.tests"
KEY_ID = "2745a6f4b9c1e0d3"
FIXED_NOW = datetime(2016, 7, 11, 9, 5, 3, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def rsa_private_key():
    """One RSA key for the whole session (generation is slow)."""
    return generate_private_key("rsa")


@pytest.fixture
def rsa_key_path(tmp_path, rsa_private_key):
    return save_private_key(rsa_private_key, tmp_path / "keys" / "server.pem")


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def server_key_auth(rsa_key_path):
    return ServerToServerKeyAuth(key_id=KEY_ID, private_key_file=str(rsa_key_path))


@pytest.fixture
def container_config(server_key_auth):
    return ContainerConfig(
        container_identifier=CONTAINER_ID,
        environment=Environment.DEVELOPMENT,
        server_to_server_key_auth=server_key_auth,
    )


@pytest.fixture
def token_container_config():
    return ContainerConfig(
        container_identifier=CONTAINER_ID,
        environment=Environment.PRODUCTION,
        api_token="token-123",
    )


@pytest.fixture
def test_settings():
    return Settings(
        cloudkit_server_url="https://cloudkit.test",
        request_timeout=5.0,
        _env_file=None,
    )


@pytest_asyncio.fixture
async def make_container(container_config, test_settings, fixed_clock):
    """
    Factory for containers whose HTTP calls go to a handler.

    The handler receives the httpx.Request and returns an httpx.Response
    (sync or async). Clients are closed after the test.
    """
    clients = []

    def _make(handler, config=None):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return Container(
            config or container_config,
            settings=test_settings,
            client=client,
            clock=fixed_clock,
        )
    yield _make

    for client in clients:
        await client.aclose()
