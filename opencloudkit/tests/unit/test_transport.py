"""
Unit tests for the web transport.

HTTP calls are served by httpx.MockTransport handlers.
"""
import json

import httpx
import pytest

from opencloudkit.core.errors import MalformedResponseError, TransportError
from opencloudkit.core.models import DatabaseScope, Environment
from opencloudkit.core.signing.request_auth import (
    KEY_ID_HEADER,
    REQUEST_DATE_HEADER,
    SIGNATURE_HEADER,
)
from opencloudkit.core.signing.verify import verify_signature
from opencloudkit.core.transport import ContainerInfo, WebTransport, encode_body


URL = "https://cloudkit.test/database/1/iCloud.com.example.tests/development/public/records/query"


def _transport(config, handler=None, clock=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler)) if handler else None
    return WebTransport(config, server_url="https://cloudkit.test", client=client, clock=clock)


class TestContainerInfo:
    def test_database_path(self):
        info = ContainerInfo("iCloud.com.example.tests", Environment.PRODUCTION)

        assert info.database_path(DatabaseScope.PRIVATE) == (
            "/database/1/iCloud.com.example.tests/production/private"
        )

    def test_database_url(self, container_config):
        transport = _transport(container_config)

        assert transport.database_url(DatabaseScope.PUBLIC) == (
            "https://cloudkit.test/database/1/iCloud.com.example.tests/development/public"
        )


class TestBuildRequest:
    """Test request construction and authentication."""

    def test_server_key_request_is_signed(self, container_config, fixed_clock, rsa_private_key):
        transport = _transport(container_config, clock=fixed_clock)
        document = {"query": {"recordType": "Items"}}

        request = transport.build_request(URL, document)

        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/json"
        assert request.content == encode_body(document)
        assert request.headers[KEY_ID_HEADER] == container_config.server_to_server_key_auth.key_id
        assert verify_signature(
            rsa_private_key.public_key(),
            request.headers[SIGNATURE_HEADER],
            request.headers[REQUEST_DATE_HEADER],
            request.content,
            "/database/1/iCloud.com.example.tests/development/public/records/query",
        )

    def test_api_token_request(self, token_container_config):
        transport = _transport(token_container_config)

        request = transport.build_request(URL, {"a": 1})

        assert request.url.params["ckAPIToken"] == "token-123"
        assert SIGNATURE_HEADER not in request.headers

    def test_body_is_compact_utf8_json(self):
        assert encode_body({"name": "Café", "n": [1, 2]}) == '{"name":"Café","n":[1,2]}'.encode("utf-8")


class TestSend:
    """Test response handling."""

    @pytest.mark.asyncio
    async def test_success_returns_document(self, token_container_config):
        transport = _transport(
            token_container_config,
            lambda request: httpx.Response(200, json={"records": []}),
        )

        assert await transport.request(URL, {}) == {"records": []}

    @pytest.mark.asyncio
    async def test_error_status_raises_transport_error(self, token_container_config):
        body = {"uuid": "u-1", "serverErrorCode": "AUTHENTICATION_FAILED", "reason": "bad token"}
        transport = _transport(
            token_container_config,
            lambda request: httpx.Response(401, json=body),
        )

        with pytest.raises(TransportError) as exc_info:
            await transport.request(URL, {})

        error = exc_info.value
        assert error.status_code == 401
        assert error.server_error_code == "AUTHENTICATION_FAILED"
        assert error.reason == "bad token"

    @pytest.mark.asyncio
    async def test_error_status_without_json(self, token_container_config):
        transport = _transport(
            token_container_config,
            lambda request: httpx.Response(503, text="Service Unavailable"),
        )

        with pytest.raises(TransportError) as exc_info:
            await transport.request(URL, {})
        assert exc_info.value.status_code == 503
        assert exc_info.value.server_error_code is None

    @pytest.mark.asyncio
    async def test_redirect_status_raises_transport_error(self, token_container_config):
        """Any non-2xx status is an HTTP failure, even without a JSON body."""
        transport = _transport(
            token_container_config,
            lambda request: httpx.Response(
                302, headers={"Location": "https://elsewhere.test"}, text="Moved"
            ),
        )

        with pytest.raises(TransportError) as exc_info:
            await transport.request(URL, {})
        assert exc_info.value.status_code == 302

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self, token_container_config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = _transport(token_container_config, handler)

        with pytest.raises(TransportError) as exc_info:
            await transport.request(URL, {})
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self, token_container_config):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError):
            await _transport(token_container_config, handler).request(URL, {})

    @pytest.mark.asyncio
    async def test_non_object_response_is_malformed(self, token_container_config):
        transport = _transport(
            token_container_config,
            lambda request: httpx.Response(200, json=[1, 2, 3]),
        )

        with pytest.raises(MalformedResponseError):
            await transport.request(URL, {})

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed(self, token_container_config):
        transport = _transport(
            token_container_config,
            lambda request: httpx.Response(200, content=b"<html>"),
        )

        with pytest.raises(MalformedResponseError):
            await transport.request(URL, {})

    @pytest.mark.asyncio
    async def test_sends_exact_signed_body(self, container_config, fixed_clock):
        seen = {}

        def handler(request):
            seen["body"] = request.content
            seen["date"] = request.headers[REQUEST_DATE_HEADER]
            return httpx.Response(200, json={})

        transport = _transport(container_config, handler, clock=fixed_clock)
        await transport.request(URL, {"zoneID": {"zoneName": "_defaultZone"}})

        assert json.loads(seen["body"]) == {"zoneID": {"zoneName": "_defaultZone"}}
        assert seen["date"] == "2016-07-11T09:05:03Z"
