"""
Relay integration tests: a real relay on an ephemeral port, a fake chat
server behind it, and the websockets client in front of it.

Run with: python -m pytest NakenBridge/test/test_relay.py -v
"""

import asyncio
import json

import pytest
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed

from NakenBridge.config import config
from NakenBridge.core.message.protocol import SetTarget
from NakenBridge.core.relay import LinkState, RelayServer
from NakenBridge.test.conftest import recv_until, unused_port, wait_until


async def _open_session(relay_url, chat_server):
    ws = await connect(relay_url)
    assert await ws.recv() == config.GREETING
    await ws.send(SetTarget(chat_server.host, chat_server.port).serialize())
    assert await ws.recv() == config.CONNECTED_NOTICE
    return ws


class TestRelayHandshake:
    """Greeting and target negotiation."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_greeting_sent_on_accept(self, relay_url):
        async with connect(relay_url) as ws:
            assert await ws.recv() == "Welcome to Naken Chat Client!\n"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_set_target_connects_and_confirms(self, relay, relay_url, chat_server):
        ws = await _open_session(relay_url, chat_server)
        try:
            await chat_server.wait_connected()
            session = next(iter(relay.sessions.values()))
            assert session.link.state is LinkState.OPEN
            assert relay.registry.is_confirmed(session.session_id)
            assert str(session.target) == f"{chat_server.host}:{chat_server.port}"
        finally:
            await ws.close()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_second_set_target_is_ignored(self, relay, relay_url, chat_server):
        ws = await _open_session(relay_url, chat_server)
        try:
            session = next(iter(relay.sessions.values()))
            link = session.link

            await ws.send(SetTarget("127.0.0.1", unused_port()).serialize())
            await ws.send("still here")

            assert await chat_server.next_line() == "still here\n"
            assert session.link is link
            assert chat_server.connections == 1
        finally:
            await ws.close()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_message_before_target_gets_notice_and_stays_open(self, relay_url, chat_server):
        async with connect(relay_url) as ws:
            await ws.recv()
            await ws.send(".n alice")
            assert await ws.recv() == config.NO_TARGET_NOTICE

            # the session is still usable
            await ws.send(SetTarget(chat_server.host, chat_server.port).serialize())
            assert await ws.recv() == config.CONNECTED_NOTICE

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_malformed_set_target_gets_notice(self, relay_url):
        async with connect(relay_url) as ws:
            await ws.recv()
            await ws.send(json.dumps({"type": "setTarget", "host": "localhost"}))
            assert await ws.recv() == config.NO_TARGET_NOTICE

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_connect_failure_sends_error_envelope(self, relay, relay_url, chat_server):
        async with connect(relay_url) as ws:
            await ws.recv()
            await ws.send(SetTarget("127.0.0.1", unused_port()).serialize())

            envelope = json.loads(await ws.recv())
            assert envelope == {"type": "error", "message": config.CONNECT_FAILED_MESSAGE}
            assert len(relay.registry) == 0

            # a new setTarget after a failure is a retry
            await ws.send(SetTarget(chat_server.host, chat_server.port).serialize())
            assert await ws.recv() == config.CONNECTED_NOTICE


class TestRelayPassthrough:
    """Byte forwarding in both directions."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_client_text_gets_exactly_one_newline(self, relay_url, chat_server):
        ws = await _open_session(relay_url, chat_server)
        try:
            await ws.send(".n alice")
            await ws.send("hello\n")
            await ws.send("crlf\r\n")
            assert await chat_server.next_line() == ".n alice\n"
            assert await chat_server.next_line() == "hello\n"
            assert await chat_server.next_line() == "crlf\n"
        finally:
            await ws.close()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_messages_forwarded_in_order(self, relay_url, chat_server):
        ws = await _open_session(relay_url, chat_server)
        try:
            for i in range(20):
                await ws.send(f"line {i}")
            received = [await chat_server.next_line() for _ in range(20)]
            assert received == [f"line {i}\n" for i in range(20)]
        finally:
            await ws.close()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_server_text_reaches_client(self, relay_url, chat_server):
        ws = await _open_session(relay_url, chat_server)
        try:
            await chat_server.wait_connected()
            await chat_server.send("<1>bob (private): hi\n")
            received = await recv_until(ws, "hi\n")
            assert received == "<1>bob (private): hi\n"
        finally:
            await ws.close()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_reads(self, relay_url, chat_server):
        ws = await _open_session(relay_url, chat_server)
        try:
            await chat_server.wait_connected()
            encoded = "café\n".encode("utf-8")
            await chat_server.send(encoded[:4])
            await asyncio.sleep(0.05)
            await chat_server.send(encoded[4:])
            received = await recv_until(ws, "\n")
            assert received == "café\n"
        finally:
            await ws.close()


class TestRelayTeardown:
    """Either side closing."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_upstream_eof_notifies_and_keeps_client_open(self, relay, relay_url, chat_server):
        ws = await _open_session(relay_url, chat_server)
        try:
            await chat_server.wait_connected()
            await chat_server.close_clients()

            assert await recv_until(ws, config.UPSTREAM_CLOSED_NOTICE) == config.UPSTREAM_CLOSED_NOTICE
            session = next(iter(relay.sessions.values()))
            assert session.link is None

            # nothing to relay to, but the WebSocket is still open
            await ws.send("anyone?")
            await ws.ping()
        finally:
            await ws.close()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_client_close_tears_down_session(self, relay, relay_url, chat_server):
        ws = await _open_session(relay_url, chat_server)
        await chat_server.wait_connected()
        session = next(iter(relay.sessions.values()))
        link = session.link

        await ws.close()
        await wait_until(lambda: not relay.sessions)

        assert session.is_closed
        assert link.state is LinkState.CLOSED
        assert len(relay.registry) == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stop_closes_open_sessions(self, test_config, chat_server):
        server = RelayServer(connect_timeout=test_config.connect_timeout)
        await server.start(test_config.host, 0)
        ws = await _open_session(f"ws://{test_config.host}:{server.port}", chat_server)

        await server.stop()

        with pytest.raises(ConnectionClosed):
            await asyncio.wait_for(ws.recv(), test_config.timeout)
        assert not server.sessions
        assert not server.is_running

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_upstream_reset_sends_error_envelope(self, relay, relay_url, chat_server):
        ws = await _open_session(relay_url, chat_server)
        try:
            await chat_server.wait_connected()
            session = next(iter(relay.sessions.values()))
            link = session.link

            await chat_server.abort_clients()

            envelope = json.loads(await asyncio.wait_for(ws.recv(), 5))
            assert envelope["type"] == "error"
            assert envelope["message"].startswith("Connection to chat server lost:")
            assert link.state is LinkState.FAILED
            assert session.link is None

            # the WebSocket stays open and accepts a new target
            await ws.ping()
            await ws.send(SetTarget(chat_server.host, chat_server.port).serialize())
            assert await ws.recv() == config.CONNECTED_NOTICE
            await wait_until(lambda: chat_server.connections == 2)
        finally:
            await ws.close()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_connect_timeout_sends_error_envelope(self, test_config, monkeypatch):
        async def never_accepts(host, port):
            await asyncio.Event().wait()

        monkeypatch.setattr(asyncio, "open_connection", never_accepts)
        server = RelayServer(connect_timeout=0.2)
        async with server.run(test_config.host, 0):
            async with connect(f"ws://{test_config.host}:{server.port}") as ws:
                await ws.recv()
                await ws.send(SetTarget("chat.example.org", 6666).serialize())

                envelope = json.loads(await asyncio.wait_for(ws.recv(), test_config.timeout))
                assert envelope == {"type": "error", "message": config.CONNECT_FAILED_MESSAGE}
                assert len(server.registry) == 0
                await ws.ping()


class TestRelayModes:
    """Fixed target and capacity."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_fixed_mode_connects_without_set_target(self, fixed_relay, test_config, chat_server):
        async with connect(f"ws://{test_config.host}:{fixed_relay.port}") as ws:
            assert await ws.recv() == config.GREETING
            assert await ws.recv() == config.CONNECTED_NOTICE

            await ws.send(SetTarget("127.0.0.1", unused_port()).serialize())
            await ws.send(".w")
            assert await chat_server.next_line() == ".w\n"
            assert chat_server.connections == 1

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_full_relay_refuses_connection(self, test_config):
        server = RelayServer(max_sessions=1)
        async with server.run(test_config.host, 0):
            url = f"ws://{test_config.host}:{server.port}"
            async with connect(url) as first:
                assert await first.recv() == config.GREETING
                async with connect(url) as second:
                    with pytest.raises(ConnectionClosed) as info:
                        await asyncio.wait_for(second.recv(), test_config.timeout)
                    assert info.value.rcvd.code == 1013

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            RelayServer(mode="broadcast")
