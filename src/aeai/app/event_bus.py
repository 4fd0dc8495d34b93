import logging
from typing import Callable, Dict, List

from PySide6.QtCore import QObject, Signal

from src.aeai.models.events import Event

logger = logging.getLogger(__name__)


class EventBusSignaller(QObject):
    """
    A QObject to emit signals on the main (UI) thread.
    """
    signal = Signal(Event)


class EventBus:
    """
    A simple event bus for decoupled communication between components.
    Dispatches from worker threads are delivered on the main UI thread.
    """
    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}
        self._signaller = EventBusSignaller()
        self._signaller.signal.connect(self._handle_event_on_main_thread)

    def subscribe(self, event_type: str, callback: Callable):
        """
        Subscribe a callback function to a specific event type.

        Args:
            event_type: The type of event to subscribe to.
            callback: The function to call when the event is dispatched.
        """
        self._subscribers.setdefault(event_type, []).append(callback)
        logger.debug("Subscribed %s to event '%s'", getattr(callback, "__name__", callback), event_type)

    def dispatch(self, event: Event):
        """
        Dispatch an event to all subscribed callbacks by emitting a signal,
        so callbacks run on the main thread.
        """
        logger.debug("Dispatching event '%s' with payload: %s", event.event_type, event.payload)
        self._signaller.signal.emit(event)

    def _handle_event_on_main_thread(self, event: Event):
        event_type = event.event_type
        for callback in self._subscribers.get(event_type, []):
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    "Error in callback %s for event '%s': %s",
                    getattr(callback, "__name__", callback),
                    event_type,
                    e,
                    exc_info=True,
                )
