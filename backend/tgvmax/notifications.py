# ------------------------------ IMPORTS ------------------------------
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

# ------------------------------ EVENTS ------------------------------
class EventType(Enum):
    STARTUP = "startup"
    AUTH_REQUIRED = "auth_required"
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILURE = "auth_failure"
    RESERVATIONS_FOUND = "reservations_found"
    CONFIRMATION_SUCCESS = "confirmation_success"
    CONFIRMATION_FAILURE = "confirmation_failure"
    RUN_COMPLETE = "run_complete"

@dataclass(frozen=True)
class NotificationEvent:
    """A structured event handed to the human-facing delivery channel."""
    type: EventType
    account_name: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    screenshot_path: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

# ------------------------------ SINKS ------------------------------
class NotificationSink(Protocol):
    async def notify(self, event: NotificationEvent) -> None: ...

class LoggingNotificationSink:
    """Default sink: records every event in the application log."""

    async def notify(self, event: NotificationEvent) -> None:
        prefix = f"[{event.account_name}] " if event.account_name else ""
        level = logging.WARNING if event.type in (EventType.AUTH_FAILURE, EventType.CONFIRMATION_FAILURE) else logging.INFO
        details = ", ".join(f"{key}={value}" for key, value in event.payload.items())
        if event.screenshot_path:
            details = f"{details}, screenshot={event.screenshot_path}" if details else f"screenshot={event.screenshot_path}"
        logger.log(level, f"{prefix}event {event.type.value}" + (f": {details}" if details else ""))

async def emit(
    sink: NotificationSink,
    event_type: EventType,
    account_name: Optional[str] = None,
    screenshot_path: Optional[str] = None,
    **payload: Any,
) -> None:
    """Deliver an event without letting a broken sink break the run."""
    event = NotificationEvent(type=event_type, account_name=account_name, payload=payload, screenshot_path=screenshot_path)
    try:
        await sink.notify(event)
    except Exception as e:
        logger.error(f"Failed to deliver {event_type.value} notification: {e}")

# ------------------------------ END OF FILE ------------------------------
