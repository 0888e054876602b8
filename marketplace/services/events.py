"""
Domain events published by the workflow engine once a transition has committed.
Realtime layers (chat sockets, notifications) subscribe here.
"""
import logging
import threading
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from marketplace.models.schemas import utcnow

logger = logging.getLogger(__name__)


class DomainEvent(BaseModel):
    occurred_at: datetime = Field(default_factory=utcnow)

class BidPlaced(DomainEvent):
    project_id: str
    application_id: str
    freelancer_id: str
    bid_amount: int

class ApplicationApproved(DomainEvent):
    project_id: str
    application_id: str
    freelancer_id: str
    rejected_application_ids: List[str] = []

class ApplicationRejected(DomainEvent):
    project_id: str
    application_id: str

class ProjectSubmitted(DomainEvent):
    project_id: str
    freelancer_id: Optional[str] = None

class SubmissionRejected(DomainEvent):
    project_id: str
    freelancer_id: Optional[str] = None

class ProjectCompleted(DomainEvent):
    project_id: str
    freelancer_id: str
    amount_credited: int


EventHandler = Callable[[DomainEvent], None]


class EventBus:
    """Synchronous in-process publish/subscribe."""

    def __init__(self):
        self._handlers: Dict[type, List[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: type, handler: EventHandler) -> Callable[[], None]:
        """Register handler for event_type and its subclasses. Returns an unsubscribe callable."""
        with self._lock:
            self._handlers[event_type].append(handler)

        def unsubscribe():
            with self._lock:
                if handler in self._handlers[event_type]:
                    self._handlers[event_type].remove(handler)

        return unsubscribe

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            handlers = [
                handler
                for event_type in type(event).__mro__
                for handler in self._handlers.get(event_type, [])
            ]
        for handler in handlers:
            # The transition has already committed; subscriber failures are only logged.
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %r failed for %s", handler, type(event).__name__)
