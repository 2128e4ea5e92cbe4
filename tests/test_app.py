"""Tests for the relay endpoint through the ASGI app."""

from __future__ import annotations

import pytest
from starlette.testclient import TestClient, WebSocketDenialResponse
from starlette.websockets import WebSocketDisconnect

from tests.conftest import SpyOpener
from wsrelay import __version__
from wsrelay.relay.app import create_app


def _ws_headers(
    token: str | None, target: str | None = "db:5432", upgrade: str | None = "websocket"
):
    headers = {}
    if token is not None:
        headers["authorization"] = token
    if upgrade is not None:
        headers["upgrade"] = upgrade
    if target is not None:
        headers["x-proxy-target"] = target
    return headers


@pytest.fixture
def opener():
    return SpyOpener()


@pytest.fixture
def client(relay_token, opener):
    return TestClient(create_app(opener=opener))


class TestHandshakeRejections:
    """Failures before the upgrade are reported with status codes."""

    @pytest.mark.parametrize("token", [None, "", "wrong", "Bearer x"])
    def test_bad_credential_is_401_without_connect(self, client, opener, token):
        with pytest.raises(WebSocketDenialResponse) as exc_info:
            with client.websocket_connect("/", headers=_ws_headers(token)):
                pass

        assert exc_info.value.status_code == 401
        assert opener.calls == []

    @pytest.mark.parametrize("upgrade", [None, "h2c", "WebSocket"])
    def test_wrong_upgrade_is_426(self, client, opener, relay_token, upgrade):
        with pytest.raises(WebSocketDenialResponse) as exc_info:
            with client.websocket_connect(
                "/", headers=_ws_headers(relay_token, upgrade=upgrade)
            ):
                pass

        assert exc_info.value.status_code == 426
        assert opener.calls == []

    @pytest.mark.parametrize(
        "target", [None, "db", "db:", ":5432", "db:0", "db:70000", "a:b:1", "db:http"]
    )
    def test_bad_target_is_400_without_connect(self, client, opener, relay_token, target):
        with pytest.raises(WebSocketDenialResponse) as exc_info:
            with client.websocket_connect(
                "/", headers=_ws_headers(relay_token, target=target)
            ):
                pass

        assert exc_info.value.status_code == 400
        assert opener.calls == []

    def test_connect_failure_is_500_with_detail(self, relay_token):
        opener = SpyOpener(error=ConnectionRefusedError(111, "Connection refused"))
        client = TestClient(create_app(opener=opener))

        with pytest.raises(WebSocketDenialResponse) as exc_info:
            with client.websocket_connect("/", headers=_ws_headers(relay_token)):
                pass

        assert exc_info.value.status_code == 500
        assert "Connection refused" in exc_info.value.text
        assert opener.calls == [("db", 5432)]

    def test_invalid_hostname_is_500(self, relay_token):
        client = TestClient(create_app())

        with pytest.raises(WebSocketDenialResponse) as exc_info:
            with client.websocket_connect(
                "/", headers=_ws_headers(relay_token, target="a..b:80")
            ):
                pass

        assert exc_info.value.status_code == 500


class TestPlainHttp:
    """Requests that never upgrade."""

    def test_without_credential_is_401(self, client):
        response = client.get("/")
        assert response.status_code == 401

    def test_with_credential_is_426(self, client, relay_token):
        response = client.get("/", headers={"Authorization": relay_token})
        assert response.status_code == 426
        assert response.text == "Expected Upgrade: websocket"

    def test_health_needs_no_token(self, client, relay_token):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}
        assert relay_token not in response.text


class TestTunnelSession:
    """Successful upgrades."""

    def test_front_messages_reach_back_in_order(self, relay_token):
        opener = SpyOpener(loopback=True)
        client = TestClient(create_app(opener=opener))

        with client.websocket_connect("/", headers=_ws_headers(relay_token)) as ws:
            ws.send_bytes(b"A")
            ws.send_text("BC")
            ws.send_bytes(b"")
            ws.send_bytes(b"Z")

            echoed = b""
            while echoed != b"ABCZ":
                echoed += ws.receive_bytes()

        assert opener.calls == [("db", 5432)]
        assert opener.writers[0].writes[:4] == [b"A", b"BC", b"", b"Z"]

    def test_back_eof_closes_front(self, relay_token):
        opener = SpyOpener(preload=b"hello", eof=True)
        client = TestClient(create_app(opener=opener))

        with client.websocket_connect("/", headers=_ws_headers(relay_token)) as ws:
            assert ws.receive_bytes() == b"hello"
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_bytes()

        assert exc_info.value.code == 1000
        assert opener.writers[0].closed is True

    def test_each_request_gets_its_own_connection(self, relay_token):
        opener = SpyOpener(loopback=True)
        client = TestClient(create_app(opener=opener))

        with client.websocket_connect(
            "/", headers=_ws_headers(relay_token, target="a:1")
        ) as ws_a, client.websocket_connect(
            "/", headers=_ws_headers(relay_token, target="b:2")
        ) as ws_b:
            ws_a.send_bytes(b"to-a")
            ws_b.send_bytes(b"to-b")
            assert ws_a.receive_bytes() == b"to-a"
            assert ws_b.receive_bytes() == b"to-b"

        assert sorted(opener.calls) == [("a", 1), ("b", 2)]
        assert len(opener.writers) == 2
