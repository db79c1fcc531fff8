"""Protocol engine contract and the bundled loopback engine."""

from .base import Engine, EngineFactory, EventCallback, FrameCallback, HttpCallback
from .loopback import LoopbackEngine

__all__ = ["Engine", "EngineFactory", "EventCallback", "FrameCallback", "HttpCallback", "LoopbackEngine"]
