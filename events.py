# events.py
"""
Small publish/subscribe bus.

Components hold a bus (or are handed one) instead of inheriting emitter
behaviour. Each subscriber receives the payload object as-is; a subscriber
that raises is logged and skipped so one faulty consumer cannot stop the
listener or polling thread that emitted the event.
"""

import threading
from typing import Any, Callable, Dict, List

from loghandler import get_logger

Handler = Callable[[Any], None]


class EventBus:
    def __init__(self, name: str = "bus"):
        self.name = name
        self._listeners: Dict[str, List[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_name: str, callback: Handler) -> Handler:
        """Register a callback; returns it so callers can keep it for unsubscribe()."""
        with self._lock:
            self._listeners.setdefault(event_name, []).append(callback)
        return callback

    def unsubscribe(self, event_name: str, callback: Handler) -> None:
        with self._lock:
            listeners = self._listeners.get(event_name)
            if not listeners:
                return
            try:
                listeners.remove(callback)
            except ValueError:
                return
            if not listeners:
                del self._listeners[event_name]

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def listener_count(self, event_name: str) -> int:
        with self._lock:
            return len(self._listeners.get(event_name, []))

    def emit(self, event_name: str, payload: Any = None) -> None:
        """Deliver payload to every subscriber of event_name, in subscription order."""
        with self._lock:
            listeners = list(self._listeners.get(event_name, []))

        for callback in listeners:
            try:
                callback(payload)
            except Exception as e:
                get_logger().error(f"[{self.name}] '{event_name}' subscriber failed: {e}")
