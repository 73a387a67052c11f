from unittest.mock import MagicMock
from rankkeeper.events import StoreEvent, StoreEvents


def test_listeners_receive_their_event_only():
    events = StoreEvents()
    updated = MagicMock()
    cleared = MagicMock()
    events.subscribe(StoreEvent.UPDATED, updated)
    events.subscribe(StoreEvent.CLEARED, cleared)

    events.emit(StoreEvent.UPDATED)

    updated.assert_called_once_with(StoreEvent.UPDATED)
    cleared.assert_not_called()


def test_unsubscribe_stops_delivery():
    events = StoreEvents()
    listener = MagicMock()
    unsubscribe = events.subscribe_all(listener)

    events.emit(StoreEvent.LOADED_FROM_REMOTE)
    unsubscribe()
    events.emit(StoreEvent.CLEARED)

    listener.assert_called_once_with(StoreEvent.LOADED_FROM_REMOTE)


def test_failing_listener_does_not_block_others():
    events = StoreEvents()
    broken = MagicMock(side_effect=RuntimeError("boom"))
    healthy = MagicMock()
    events.subscribe(StoreEvent.UPDATED, broken)
    events.subscribe(StoreEvent.UPDATED, healthy)

    events.emit(StoreEvent.UPDATED)

    healthy.assert_called_once()


def test_event_names():
    assert StoreEvent.CLEARED.value == "ratings-cleared"
    assert StoreEvent.UPDATED.value == "store-updated"
    assert StoreEvent.LOADED_FROM_REMOTE.value == "store-loaded-from-remote"
