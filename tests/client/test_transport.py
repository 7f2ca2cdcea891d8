"""
Tests for the aiohttp transport against a local test server.
"""

import asyncio

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from oobwatch.client.builder import ClientBuilder
from oobwatch.client.transport import AiohttpTransport, TransportRequest
from oobwatch.core.exceptions import TransportError


def _app(seen: list) -> web.Application:
    async def register(request: web.Request) -> web.Response:
        body = await request.json()
        seen.append(("register", body, dict(request.headers)))
        return web.json_response({"message": "registration successful"})

    async def poll(request: web.Request) -> web.Response:
        seen.append(("poll", dict(request.query), dict(request.headers)))
        return web.json_response({"data": [], "aes_key": ""})

    async def deregister(request: web.Request) -> web.Response:
        seen.append(("deregister", await request.json(), dict(request.headers)))
        return web.json_response({"message": "deregistration successful"})

    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(2)
        return web.Response(text="late")

    app = web.Application()
    app.router.add_post("/register", register)
    app.router.add_get("/poll", poll)
    app.router.add_post("/deregister", deregister)
    app.router.add_get("/slow", slow)
    return app


class TestAiohttpTransport:
    @pytest.mark.asyncio
    async def test_send_returns_status_and_body(self):
        seen: list = []
        async with test_utils.TestServer(_app(seen)) as server:
            async with AiohttpTransport() as transport:
                response = await transport.send(
                    TransportRequest(method="GET", url=str(server.make_url("/poll")), params={"id": "abc"})
                )
                missing = await transport.send(
                    TransportRequest(method="GET", url=str(server.make_url("/nope")))
                )

        assert response.ok
        assert response.status == 200
        assert '"data"' in response.body
        assert seen[0][1] == {"id": "abc"}
        assert seen[0][2]["User-Agent"].startswith("oobwatch/")
        assert missing.status == 404
        assert not missing.ok

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        async with test_utils.TestServer(_app([])) as server:
            async with AiohttpTransport(timeout=0.2) as transport:
                with pytest.raises(TransportError, match="timed out"):
                    await transport.send(
                        TransportRequest(method="GET", url=str(server.make_url("/slow")))
                    )

    @pytest.mark.asyncio
    async def test_connection_refused_is_transport_error(self):
        async with AiohttpTransport(timeout=2.0) as transport:
            with pytest.raises(TransportError):
                await transport.send(TransportRequest(method="GET", url="http://127.0.0.1:9/poll"))

    @pytest.mark.asyncio
    async def test_dns_override(self):
        seen: list = []
        async with test_utils.TestServer(_app(seen)) as server:
            transport = AiohttpTransport(dns_override={"oast.invalid": "127.0.0.1"})
            async with transport:
                response = await transport.send(
                    TransportRequest(method="GET", url=f"http://oast.invalid:{server.port}/poll")
                )
        assert response.ok
        assert seen[0][2]["Host"].startswith("oast.invalid")

    @pytest.mark.asyncio
    async def test_caller_session_is_not_closed(self):
        async with aiohttp.ClientSession() as session:
            transport = AiohttpTransport(session=session)
            await transport.close()
            assert not session.closed


class TestFullExchange:
    @pytest.mark.asyncio
    async def test_register_poll_deregister(self):
        seen: list = []
        async with test_utils.TestServer(_app(seen)) as server:
            client = (
                ClientBuilder()
                .with_server(f"http://127.0.0.1:{server.port}")
                .with_rsa_key_size(1024)
                .with_auth_token("abc")
                .build()
            )
            try:
                registered = await client.register()
                result = await registered.poll()
                await registered.deregister()
            finally:
                await client.config.transport.close()

        assert result.is_empty
        assert [entry[0] for entry in seen] == ["register", "poll", "deregister"]
        register_body = seen[0][1]
        assert register_body["correlation-id"] == registered.correlation_id
        assert seen[1][1]["id"] == registered.correlation_id
        assert seen[1][1]["secret"] == register_body["secret-key"]
        assert seen[2][1]["secret-key"] == register_body["secret-key"]
        assert all(entry[2]["Authorization"] == "abc" for entry in seen)
