"""
Web Transport

Issues JSON requests against the CloudKit web service and decodes the
responses into generic documents.

Authentication (from the container config):
1. API token: appended as the ``ckAPIToken`` query parameter
2. Server-to-server key: request signed via ``attach_auth``

URL layout:
    {server_url}/database/{api_version}/{container}/{environment}/{scope}/{endpoint}
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from opencloudkit.core.config import ContainerConfig, get_settings
from opencloudkit.core.errors import MalformedResponseError, TransportError
from opencloudkit.core.models import DatabaseScope, Environment, JSONDocument
from opencloudkit.core.signing.request_auth import attach_auth
from opencloudkit.core.signing.signer import Clock

logger = logging.getLogger(__name__)


API_TOKEN_PARAM = "ckAPIToken"


@dataclass(frozen=True)
class ContainerInfo:
    container_id: str
    environment: Environment

    def database_path(self, scope: DatabaseScope, api_version: str = "1") -> str:
        """URL path of a database, e.g. /database/1/iCloud.com.example/development/public"""
        environment = Environment(self.environment).value
        return f"/database/{api_version}/{self.container_id}/{environment}/{DatabaseScope(scope).value}"

    @classmethod
    def from_config(cls, config: ContainerConfig) -> "ContainerInfo":
        return cls(container_id=config.container_identifier, environment=config.environment)


def encode_body(document: JSONDocument) -> bytes:
    """Serialize a request document to the exact bytes that are sent and signed."""
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _error_fields(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class WebTransport:
    """
    HTTP transport for one container.

    Each call sends exactly one request. Pass ``client`` to reuse a
    connection pool (or to inject a mock transport); otherwise a client is
    created per call.
    """

    def __init__(
        self,
        container_config: ContainerConfig,
        server_url: str = None,
        api_version: str = None,
        timeout: float = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
    ):
        settings = get_settings()
        self.container_config = container_config
        self.container_info = ContainerInfo.from_config(container_config)
        self.server_url = (server_url or settings.cloudkit_server_url).rstrip("/")
        self.api_version = api_version or settings.cloudkit_api_version
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.client = client
        self.clock = clock

    def database_url(self, scope: DatabaseScope) -> str:
        return self.server_url + self.container_info.database_path(scope, self.api_version)

    def build_request(self, url: str, document: JSONDocument) -> httpx.Request:
        """
        Build an authenticated POST request.

        Raises:
            KeyNotFoundError: If the server key file doesn't exist
            SigningError: If the request can't be signed
        """
        params = None
        if self.container_config.api_token is not None:
            params = {API_TOKEN_PARAM: self.container_config.api_token}

        request = httpx.Request(
            "POST",
            url,
            params=params,
            content=encode_body(document),
            headers={"Content-Type": "application/json"},
            extensions={"timeout": httpx.Timeout(self.timeout).as_dict()},
        )

        auth = self.container_config.server_to_server_key_auth
        if auth is not None:
            attach_auth(request, auth, clock=self.clock)
        return request

    async def send(self, request: httpx.Request) -> JSONDocument:
        """
        Send a request and decode the JSON response.

        Raises:
            TransportError: On connection errors, timeouts and non-2xx statuses
            MalformedResponseError: If the body is not a JSON object
        """
        try:
            if self.client is not None:
                response = await self.client.send(request)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.send(request)
        except httpx.RequestError as e:
            logger.error(f"Request error: {request.url.path}: {e}")
            raise TransportError(f"Request failed: {e}", details=str(e)) from e

        if not response.is_success:
            fields = _error_fields(response)
            server_error_code = fields.get("serverErrorCode")
            reason = fields.get("reason")
            logger.error(
                f"API error {response.status_code} for {request.url.path}: "
                f"{server_error_code or ''} {reason or response.text[:200]}"
            )
            raise TransportError(
                f"API error: {response.status_code}",
                status_code=response.status_code,
                server_error_code=server_error_code,
                reason=reason,
                details=response.text,
            )

        try:
            document: Any = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise MalformedResponseError(
                f"Expected a JSON object, got {type(document).__name__}"
            )
        return document

    async def request(self, url: str, document: JSONDocument) -> JSONDocument:
        """Build, sign and send a request in one call."""
        return await self.send(self.build_request(url, document))
