import asyncio

import pytest
import websockets
from websockets.exceptions import ConnectionClosedOK
from websockets.protocol import State

from wabridge.core.errors import ConnectionError, TransportError
from wabridge.defaults.config import WA_ORIGIN, WA_WS_URL
from wabridge.infra.websocket import WebSocketChannel


class _LegacyWs:
    def __init__(self, closed: bool) -> None:
        self.closed = closed
        self.sent: list[bytes] = []

    async def send(self, data: bytes) -> None:
        self.sent.append(data)


class _StateWs:
    def __init__(self, state: State, incoming=()) -> None:
        self.state = state
        self.sent: list[bytes] = []
        self.incoming = list(incoming)
        self.close_calls = 0

    async def send(self, data: bytes) -> None:
        self.sent.append(data)

    async def recv(self):
        if self.incoming:
            return self.incoming.pop(0)
        raise ConnectionClosedOK(None, None)

    async def close(self) -> None:
        self.close_calls += 1
        self.state = State.CLOSED


def _run(coro):
    return asyncio.run(coro)


def test_send_with_legacy_open_socket() -> None:
    channel = WebSocketChannel()
    ws = _LegacyWs(closed=False)
    channel._ws = ws

    _run(channel.send(b"abc"))

    assert ws.sent == [b"abc"]


def test_send_with_state_based_open_socket() -> None:
    channel = WebSocketChannel()
    ws = _StateWs(state=State.OPEN)
    channel._ws = ws

    _run(channel.send(b"xyz"))

    assert ws.sent == [b"xyz"]


def test_send_raises_when_state_based_socket_closed() -> None:
    channel = WebSocketChannel()
    channel._ws = _StateWs(state=State.CLOSED)

    with pytest.raises(TransportError):
        _run(channel.send(b"x"))


def test_send_raises_when_never_connected() -> None:
    with pytest.raises(ConnectionError):
        _run(WebSocketChannel().send(b"x"))


def test_defaults_target_whatsapp_web() -> None:
    channel = WebSocketChannel()
    assert channel.url == WA_WS_URL
    assert channel.origin == WA_ORIGIN


def test_connect_signals_open_then_relays_messages_then_close(monkeypatch) -> None:
    async def _case() -> None:
        ws = _StateWs(State.OPEN, incoming=[b"R1", "R2"])
        seen_kwargs = {}

        async def fake_connect(url, **kwargs):
            seen_kwargs.update(kwargs, url=url)
            return ws

        monkeypatch.setattr(websockets, "connect", fake_connect)
        channel = WebSocketChannel(url="wss://example.test/ws", origin="https://example.test")
        events = []
        closed = asyncio.Event()
        channel.on_open = lambda: events.append("open")
        channel.on_message = lambda data: events.append(data)

        def on_close(reason):
            events.append(("close", type(reason).__name__))
            closed.set()

        channel.on_close = on_close

        await channel.connect()
        await asyncio.wait_for(closed.wait(), timeout=1.0)

        assert seen_kwargs["url"] == "wss://example.test/ws"
        assert seen_kwargs["origin"] == "https://example.test"
        assert events == ["open", b"R1", b"R2", ("close", "ConnectionClosedOK")]
        assert not channel.is_open

    _run(_case())


def test_connect_failure_raises_transport_error(monkeypatch) -> None:
    async def _case() -> None:
        async def fake_connect(url, **kwargs):
            raise OSError("connection refused")

        monkeypatch.setattr(websockets, "connect", fake_connect)
        channel = WebSocketChannel()
        opened = []
        channel.on_open = lambda: opened.append(True)

        with pytest.raises(TransportError, match="connection refused"):
            await channel.connect()
        assert opened == []

    _run(_case())


def test_disconnect_closes_socket_without_close_callback(monkeypatch) -> None:
    async def _case() -> None:
        never = asyncio.Event()

        class _IdleWs(_StateWs):
            async def recv(self):
                await never.wait()

        ws = _IdleWs(State.OPEN)

        async def fake_connect(url, **kwargs):
            return ws

        monkeypatch.setattr(websockets, "connect", fake_connect)
        channel = WebSocketChannel()
        closes = []
        channel.on_close = closes.append

        await channel.connect()
        assert channel.is_open
        await channel.disconnect()
        await asyncio.sleep(0)

        assert ws.close_calls == 1
        assert closes == []
        assert not channel.is_open

    _run(_case())
