"""Session event system for broadcasting session state changes.

Provides event types, event data structures, and event emitter for decoupled
communication between the SessionController and UI/telemetry collaborators.

Usage:
    emitter = SessionEventEmitter()
    emitter.subscribe(SessionEventType.PHASE_CHANGED, lambda evt: print(evt.data["phase"].name))
    emitter.emit(SessionEvent(SessionEventType.SESSION_START, data={"session_id": "morning_drift"}))
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Any, Optional
import logging
import time


class SessionEventType(Enum):
    """Types of events that can occur during session execution."""

    # Session lifecycle
    SESSION_START = auto()      # Session started
    SESSION_COMPLETED = auto()  # Session ran to its full duration
    SESSION_STOP = auto()       # Session stopped before completion

    # Timeline
    PHASE_CHANGED = auto()      # Phase index increased (data: phase, index)
    PROGRESS = auto()           # Once per tick (data: elapsed, remaining, percent)

    # Feature telemetry
    FEATURE_ACTIVATED = auto()  # Delayed feature enabled (data: effect, target_minute, actual_minute)
    FEATURE_SKIPPED = auto()    # Feature resource unavailable (data: effect, reason)
    BURST_START = auto()        # Burst window opened (data: effect, magnitude, duration_minutes)
    BURST_END = auto()          # Burst window closed (data: effect)


@dataclass
class SessionEvent:
    """Represents a session event with optional payload data.

    Attributes:
        event_type: Type of event that occurred
        data: Optional dictionary with event-specific data
        timestamp: Optional timestamp (can be set by emitter)
    """
    event_type: SessionEventType
    data: Optional[dict[str, Any]] = None
    timestamp: Optional[float] = None

    def __str__(self) -> str:
        """Human-readable event representation."""
        if self.data:
            data_str = ", ".join(f"{k}={v}" for k, v in self.data.items())
            return f"SessionEvent({self.event_type.name}, {data_str})"
        return f"SessionEvent({self.event_type.name})"


class SessionEventEmitter:
    """Event bus for session state changes.

    Allows components to subscribe to specific event types and receive
    notifications when those events occur. Supports multiple subscribers
    per event type, plus catch-all subscribers that receive every event.

    Subscriber exceptions are logged and never propagate into the emitter's
    caller, so a faulty UI handler cannot break a tick.
    """

    def __init__(self):
        """Initialize event emitter with empty subscriber lists."""
        self._subscribers: dict[SessionEventType, list[Callable[[SessionEvent], None]]] = {}
        self._catch_all: list[Callable[[SessionEvent], None]] = []
        self.logger = logging.getLogger(__name__)

    def subscribe(
        self,
        event_type: SessionEventType,
        callback: Callable[[SessionEvent], None]
    ) -> None:
        """Subscribe to a specific event type.

        Args:
            event_type: Type of event to listen for
            callback: Function to call when event occurs (receives SessionEvent)
        """
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []

        if callback not in self._subscribers[event_type]:
            self._subscribers[event_type].append(callback)
            self.logger.debug(f"[events] Subscribed to {event_type.name} (total={len(self._subscribers[event_type])})")

    def subscribe_all(self, callback: Callable[[SessionEvent], None]) -> None:
        """Subscribe to every event type (recorders, telemetry)."""
        if callback not in self._catch_all:
            self._catch_all.append(callback)

    def unsubscribe(
        self,
        event_type: SessionEventType,
        callback: Callable[[SessionEvent], None]
    ) -> None:
        """Unsubscribe from a specific event type.

        Args:
            event_type: Type of event to stop listening for
            callback: The callback function to remove
        """
        if event_type in self._subscribers:
            if callback in self._subscribers[event_type]:
                self._subscribers[event_type].remove(callback)
                self.logger.debug(f"[events] Unsubscribed from {event_type.name} (total={len(self._subscribers[event_type])})")

    def emit(self, event: SessionEvent) -> None:
        """Emit an event to all subscribed callbacks.

        Args:
            event: The event to emit
        """
        if event.timestamp is None:
            event.timestamp = time.time()

        if event.event_type is SessionEventType.PROGRESS:
            self.logger.debug(f"[tick] [events] Emitting: {event}")
        else:
            self.logger.debug(f"[events] Emitting: {event}")

        # Copy so callbacks may (un)subscribe while we iterate
        callbacks = list(self._subscribers.get(event.event_type, ())) + list(self._catch_all)
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                self.logger.error(f"[events] Callback error for {event.event_type.name}: {e}", exc_info=True)

    def clear_all(self) -> None:
        """Remove all event subscribers (useful for testing/cleanup)."""
        self._subscribers.clear()
        self._catch_all.clear()
