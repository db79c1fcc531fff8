"""Transport bridge between a protocol engine and its duplex channel."""

from .bridge import Bridge
from .connection import ConnectionManager, ConnectionState
from .dispatcher import EventDispatcher
from .frame_queue import FrameQueue
from .inbox import Inbox, InboxClosed
from .relay import InboundRelay, LifecycleNotifier

__all__ = [
    "Bridge",
    "ConnectionManager",
    "ConnectionState",
    "EventDispatcher",
    "FrameQueue",
    "Inbox",
    "InboxClosed",
    "InboundRelay",
    "LifecycleNotifier",
]
