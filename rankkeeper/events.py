"""
rankkeeper/events.py
Change notifications broadcast by the rating store. Listeners receive only the
event kind; they are expected to re-read the store.
"""

import threading
from enum import Enum
from typing import Callable, Dict, List
from rankkeeper.logger import create_logger

logger = create_logger()


class StoreEvent(Enum):
    """Enumeration class for store notifications"""

    CLEARED = "ratings-cleared"
    UPDATED = "store-updated"
    LOADED_FROM_REMOTE = "store-loaded-from-remote"


Listener = Callable[[StoreEvent], None]


class StoreEvents:
    def __init__(self):
        self._listeners: Dict[StoreEvent, List[Listener]] = {event: [] for event in StoreEvent}
        self._lock = threading.Lock()

    def subscribe(self, event: StoreEvent, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again"""
        with self._lock:
            self._listeners[event].append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners[event]:
                    self._listeners[event].remove(listener)

        return unsubscribe

    def subscribe_all(self, listener: Listener) -> Callable[[], None]:
        removers = [self.subscribe(event, listener) for event in StoreEvent]

        def unsubscribe():
            for remove in removers:
                remove()

        return unsubscribe

    def emit(self, event: StoreEvent) -> None:
        with self._lock:
            listeners = list(self._listeners[event])
        for listener in listeners:
            try:
                listener(event)
            except Exception as error:
                logger.error(f"Listener for {event.value} failed: {error}")
