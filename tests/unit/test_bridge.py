import asyncio
import json
import threading

import httpx
import pytest

from wabridge.bridge.bridge import Bridge
from wabridge.bridge.connection import ConnectionState
from wabridge.core.errors import EngineError, EngineReportedError, InvalidJidError
from wabridge.core.events import EventTag, PairingQrCode
from wabridge.infra.http import HttpExecutor, HttpRequest


def _run(coro):
    return asyncio.run(coro)


async def _until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class _FakeChannel:
    def __init__(self, auto_open=True):
        self.auto_open = auto_open
        self.sent = []
        self.connects = 0
        self.disconnects = 0
        self.on_open = None
        self.on_message = None
        self.on_close = None
        self.on_error = None

    async def connect(self):
        self.connects += 1
        if self.auto_open:
            self.on_open()

    async def disconnect(self):
        self.disconnects += 1

    async def send(self, data):
        self.sent.append(data)

    # remote side

    def open_now(self):
        self.on_open()

    def deliver(self, data):
        self.on_message(data)

    def drop(self, reason=None):
        self.on_close(reason)


class _ScriptedEngine:
    def __init__(self, db_path, on_event, on_frame, *, execute_http=None):
        self.db_path = db_path
        self.on_event = on_event
        self.on_frame = on_frame
        self.execute_http = execute_http
        self.calls = []
        self.sent = []
        self.finished = asyncio.Event()
        self.start_error = None

    async def start(self):
        if self.start_error is not None:
            raise self.start_error
        await self.finished.wait()

    async def send_message(self, jid, text):
        self.sent.append((jid, text))
        return "3EB0TEST"

    def receive_frame(self, frame):
        self.calls.append(("frame", frame))

    def notify_connected(self):
        self.calls.append("connected")

    def notify_disconnected(self):
        self.calls.append("disconnected")


def _bridge(channel=None, **config):
    holder = {}

    def factory(db_path, on_event, on_frame, *, execute_http=None):
        holder["engine"] = _ScriptedEngine(db_path, on_event, on_frame, execute_http=execute_http)
        return holder["engine"]

    channel = channel or _FakeChannel()
    bridge = Bridge(factory, ":memory:", channel=channel, **config)
    return bridge, holder["engine"], channel


def _from_thread(func, *args):
    t = threading.Thread(target=func, args=args)
    t.start()
    t.join()


def test_frames_from_engine_thread_queue_until_open_then_flow_directly() -> None:
    async def _case() -> None:
        bridge, engine, channel = _bridge(_FakeChannel(auto_open=False))
        _from_thread(lambda: [engine.on_frame(None, f) for f in (b"F1", b"F2")])

        task = asyncio.create_task(bridge.run())
        await _until(lambda: channel.connects == 1 and bridge.queued_frames == 2)
        assert channel.sent == []
        assert bridge.state is ConnectionState.CONNECTING

        channel.open_now()
        await _until(lambda: engine.calls == ["connected"])
        assert channel.sent == [b"F1", b"F2"]
        assert bridge.queued_frames == 0

        _from_thread(engine.on_frame, None, bytearray(b"F3"))
        await _until(lambda: len(channel.sent) == 3)
        assert channel.sent[2] == b"F3"

        engine.finished.set()
        await task
        assert engine.calls == ["connected", "disconnected"]
        assert channel.disconnects == 1
        assert bridge.state is ConnectionState.CLOSED

    _run(_case())


def test_inbound_channel_data_reaches_engine_in_order() -> None:
    async def _case() -> None:
        bridge, engine, channel = _bridge()
        task = asyncio.create_task(bridge.run())
        await _until(lambda: engine.calls == ["connected"])

        for data in (b"R1", b"R2", b"R3"):
            channel.deliver(data)
        await _until(lambda: len(engine.calls) == 4)

        assert engine.calls[1:] == [("frame", b"R1"), ("frame", b"R2"), ("frame", b"R3")]
        engine.finished.set()
        await task

    _run(_case())


def test_remote_close_notifies_engine_once_and_queues_again() -> None:
    async def _case() -> None:
        bridge, engine, channel = _bridge()
        task = asyncio.create_task(bridge.run())
        await _until(lambda: engine.calls == ["connected"])

        channel.drop(OSError("reset by peer"))
        channel.drop(None)
        engine.on_frame(None, b"while-closed")
        await _until(lambda: bridge.queued_frames == 1)

        assert engine.calls == ["connected", "disconnected"]
        assert bridge.state is ConnectionState.CLOSED
        engine.finished.set()
        await task
        assert engine.calls == ["connected", "disconnected"]

    _run(_case())


def test_engine_events_are_dispatched_from_any_thread() -> None:
    async def _case() -> None:
        bridge, engine, _ = _bridge()
        seen = []
        bridge.on(EventTag.PAIRING_QR_CODE, seen.append)
        task = asyncio.create_task(bridge.run())

        payload = json.dumps({"type": "PairingQrCode", "data": {"code": "ABC123", "timeout": 60}})
        _from_thread(engine.on_event, None, payload)
        await _until(lambda: len(seen) == 1)

        assert seen == [PairingQrCode(code="ABC123", timeout=60)]
        engine.finished.set()
        await task

    _run(_case())


def test_engine_error_indicators_reach_error_subscribers() -> None:
    async def _case() -> None:
        bridge, engine, _ = _bridge()
        errors = []
        bridge.on("error", errors.append)
        task = asyncio.create_task(bridge.run())

        engine.on_event(RuntimeError("event side"), None)
        engine.on_frame(RuntimeError("frame side"), None)
        engine.on_frame(None, None)
        await _until(lambda: len(errors) == 3)

        assert [e.source for e in errors[:2]] == ["event", "frame"]
        assert all(isinstance(e, EngineReportedError) for e in errors[:2])
        assert isinstance(errors[2], EngineError)
        engine.finished.set()
        await task

    _run(_case())


def test_send_message_goes_through_engine_and_rejects_bad_jid() -> None:
    async def _case() -> None:
        bridge, engine, _ = _bridge()

        assert await bridge.send_message("123@s.whatsapp.net", "hello") == "3EB0TEST"
        with pytest.raises(InvalidJidError):
            await bridge.send_message("123", "hello")

        assert engine.sent == [("123@s.whatsapp.net", "hello")]

    _run(_case())


def test_engine_start_failure_propagates_after_shutdown() -> None:
    async def _case() -> None:
        bridge, engine, channel = _bridge()
        engine.start_error = RuntimeError("session refused")

        with pytest.raises(RuntimeError, match="session refused"):
            await bridge.run()

        assert channel.disconnects == 1
        with pytest.raises(RuntimeError):
            await bridge.run()

    _run(_case())


def test_engine_construction_failure_propagates() -> None:
    def factory(db_path, on_event, on_frame, *, execute_http=None):
        raise EngineError(f"cannot open {db_path}")

    with pytest.raises(EngineError):
        Bridge(factory, "/no/such/dir/x.db", channel=_FakeChannel())


def test_execute_http_requires_running_bridge() -> None:
    bridge, engine, _ = _bridge()
    fut = engine.execute_http(HttpRequest(url="https://example.test/"))
    with pytest.raises(EngineError):
        fut.result(timeout=1)


def test_execute_http_runs_on_bridge_loop_for_engine_thread() -> None:
    async def _case() -> None:
        bridge, engine, _ = _bridge()
        task = asyncio.create_task(bridge.run())
        await _until(lambda: bridge._http is not None)

        def handler(request):
            return httpx.Response(204, content=b"")

        await bridge._http.aclose()
        bridge._http = HttpExecutor(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        results = []
        _from_thread(lambda: results.append(engine.execute_http(HttpRequest(url="https://example.test/v"))))
        response = await asyncio.wrap_future(results[0])

        assert response.status_code == 204
        engine.finished.set()
        await task
        assert bridge._http is None

    _run(_case())


class _GatedChannel(_FakeChannel):
    """Holds the first send until ``gate`` is set."""

    def __init__(self, timeline):
        super().__init__(auto_open=False)
        self.timeline = timeline
        self.gate = asyncio.Event()
        self.blocked = False

    async def send(self, data):
        if not self.gate.is_set():
            self.blocked = True
            await self.gate.wait()
        self.sent.append(data)
        self.timeline.append(("sent", data))


def test_frames_produced_during_flush_follow_queued_frames() -> None:
    async def _case() -> None:
        timeline = []
        channel = _GatedChannel(timeline)
        bridge, engine, _ = _bridge(channel)
        engine.calls = timeline
        _from_thread(lambda: [engine.on_frame(None, f) for f in (b"F1", b"F2")])

        task = asyncio.create_task(bridge.run())
        await _until(lambda: bridge.queued_frames == 2 and channel.connects == 1)
        channel.open_now()
        await _until(lambda: channel.blocked)

        _from_thread(engine.on_frame, None, b"F3")
        await asyncio.sleep(0.05)
        assert channel.sent == []

        channel.gate.set()
        await _until(lambda: len(channel.sent) == 3)

        assert channel.sent == [b"F1", b"F2", b"F3"]
        assert timeline == [("sent", b"F1"), ("sent", b"F2"), "connected", ("sent", b"F3")]
        engine.finished.set()
        await task

    _run(_case())
