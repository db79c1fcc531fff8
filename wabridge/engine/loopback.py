"""In-process engine for local runs and tests.

:class:`LoopbackEngine` honours the :class:`~wabridge.engine.base.Engine`
contract without speaking the real WhatsApp protocol. It runs its own asyncio
loop on a worker thread, so every callback it makes reaches the bridge from
a foreign thread exactly like a native engine would.

Behaviour:

* ``start()`` opens the SQLite database at ``db_path``, sends one hello frame,
  emits ``PairingQrCode`` until the first successful connection has been
  recorded, then waits until :meth:`stop` is called.
* ``notify_connected()`` emits ``Connected`` and records the pairing.
* inbound frames holding a JSON object with a ``type`` key are re-emitted as
  events, which lets a scripted peer drive the bot; other frames are kept in
  :attr:`received`.
* ``send_message()`` validates the JID, stores the message and emits it as a
  JSON frame, returning the new message id.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import os
import threading
import time
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Coroutine

import aiosqlite

from wabridge.core.errors import EngineError
from wabridge.core.jid import parse_jid
from wabridge.engine.base import EventCallback, FrameCallback, HttpCallback
from wabridge.infra.http import HttpRequest

logger = logging.getLogger(__name__)

HELLO_FRAME = b"WA\x06\x03"


def generate_message_id(prefix: str = "3EB0") -> str:
    token = os.urandom(8).hex().upper()
    return f"{prefix}{token}" if prefix else token


class LoopbackEngine:
    def __init__(
        self,
        db_path: str,
        on_event: EventCallback,
        on_frame: FrameCallback,
        *,
        execute_http: HttpCallback | None = None,
        qr_timeout: int = 60,
    ) -> None:
        if db_path != ":memory:":
            parent = Path(db_path).expanduser().resolve().parent
            if not parent.is_dir():
                raise EngineError(f"database directory does not exist: {parent}")
        self.db_path = db_path
        self.qr_timeout = qr_timeout
        self._on_event = on_event
        self._on_frame = on_frame
        self._execute_http = execute_http

        self.received: list[bytes] = []
        self.connected = False
        self._db: aiosqlite.Connection | None = None
        self._stop_event: asyncio.Event | None = None
        self._stop_requested = False

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="loopback-engine", daemon=True)
        self._thread.start()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    # Engine contract

    async def start(self) -> None:
        await asyncio.wrap_future(self._submit(self._session()))

    async def send_message(self, jid: str, text: str) -> str:
        return await asyncio.wrap_future(self._submit(self._send(jid, text)))

    def receive_frame(self, frame: bytes) -> None:
        self._loop.call_soon_threadsafe(self._handle_frame, bytes(frame))

    def notify_connected(self) -> None:
        self._loop.call_soon_threadsafe(self._handle_connected)

    def notify_disconnected(self) -> None:
        self._loop.call_soon_threadsafe(self._disconnected)

    # host-side controls

    def stop(self) -> None:
        """Ends the session; ``start()`` returns once the database is closed."""
        self._loop.call_soon_threadsafe(self._request_stop)

    def close(self) -> None:
        """Stops the worker thread. The engine cannot be used afterwards."""
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        self._loop.close()

    async def fetch(self, url: str) -> int:
        """Performs a GET through the host's HTTP executor and returns the status code."""
        if self._execute_http is None:
            raise EngineError("no HTTP executor was provided")
        response = await asyncio.wrap_future(self._execute_http(HttpRequest(url=url)))
        return response.status_code

    # engine thread internals

    def _request_stop(self) -> None:
        self._stop_requested = True
        if self._stop_event is not None:
            self._stop_event.set()

    async def _session(self) -> None:
        self._stop_event = asyncio.Event()
        if self._stop_requested:
            self._stop_event.set()
        try:
            self._db = await aiosqlite.connect(self.db_path)
        except Exception as exc:
            raise EngineError(f"cannot open database {self.db_path}: {exc}") from exc
        try:
            await self._init_db()
            self._on_frame(None, HELLO_FRAME)
            if not await self._is_paired():
                self._emit({"type": "PairingQrCode", "data": {"code": self._pairing_code(), "timeout": self.qr_timeout}})
            await self._stop_event.wait()
        finally:
            db, self._db = self._db, None
            await db.close()

    async def _init_db(self) -> None:
        await self._db.execute('''
            CREATE TABLE IF NOT EXISTS session (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        ''')
        await self._db.execute('''
            CREATE TABLE IF NOT EXISTS sent_messages (
                id TEXT PRIMARY KEY,
                jid TEXT,
                text TEXT,
                ts INTEGER
            )
        ''')
        await self._db.commit()

    async def _is_paired(self) -> bool:
        async with self._db.execute('SELECT value FROM session WHERE key=?', ("paired",)) as cursor:
            row = await cursor.fetchone()
            return row is not None

    def _pairing_code(self) -> str:
        ref = base64.b64encode(os.urandom(16)).decode()
        return f"2@{ref},{base64.b64encode(os.urandom(32)).decode()}"

    def _handle_connected(self) -> None:
        self.connected = True
        self._emit({"type": "Connected"})
        self._loop.create_task(self._record_pairing())

    async def _record_pairing(self) -> None:
        if self._db is not None:
            await self._db.execute(
                'INSERT OR REPLACE INTO session (key, value) VALUES (?, ?)',
                ("paired", str(int(time.time()))),
            )
            await self._db.commit()

    def _disconnected(self) -> None:
        self.connected = False

    def _handle_frame(self, frame: bytes) -> None:
        try:
            obj = json.loads(frame)
        except (ValueError, UnicodeDecodeError):
            obj = None
        if isinstance(obj, dict) and isinstance(obj.get("type"), str):
            self._emit(obj)
        else:
            self.received.append(frame)

    async def _send(self, jid: str, text: str) -> str:
        target = parse_jid(jid)
        if self._db is None:
            raise EngineError("Bot not available")
        msg_id = generate_message_id()
        await self._db.execute(
            'INSERT INTO sent_messages (id, jid, text, ts) VALUES (?, ?, ?, ?)',
            (msg_id, str(target), text, int(time.time())),
        )
        await self._db.commit()
        self._on_frame(None, json.dumps({"id": msg_id, "to": str(target), "text": text}).encode())
        return msg_id

    def _emit(self, event: dict[str, Any]) -> None:
        try:
            payload = json.dumps(event)
        except (TypeError, ValueError) as exc:
            logger.debug("event %s is not serializable: %s", event.get("type"), exc)
            payload = json.dumps({"type": "SerializationError", "error": str(exc)})
        self._on_event(None, payload)
