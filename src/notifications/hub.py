"""
Claim status notifications.

Topic-based fan-out of claim events to connected observers:
- "coordinators" receives every new claim
- a claim's tracking token receives that claim's status changes
- "all" receives approval broadcasts

Publishing is best effort. A failed delivery is logged and dropped; it
never reaches back into the repository change that triggered it.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Set

from pydantic import BaseModel, Field

from ..claims.schema import Claim, ClaimStatus, ProgressStatus, utc_now

logger = logging.getLogger(__name__)

COORDINATORS_TOPIC = "coordinators"
BROADCAST_TOPIC = "all"


class EventType(str, Enum):
    NEW_CLAIM = "NewClaimSubmitted"
    STATUS_UPDATED = "StatusUpdated"
    CLAIM_APPROVED = "ClaimApproved"


class NotificationEvent(BaseModel):
    """Payload pushed to subscribers."""
    event_type: EventType
    claim_id: int
    tracking_token: str
    lecturer_name: str
    amount: float
    status: ClaimStatus
    progress: ProgressStatus
    message: str = ""
    reviewed_by: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_claim(cls, event_type: EventType, claim: Claim, message: str = "") -> "NotificationEvent":
        return cls(
            event_type=event_type,
            claim_id=claim.id,
            tracking_token=claim.tracking_token,
            lecturer_name=claim.lecturer_name,
            amount=claim.total_amount,
            status=claim.status,
            progress=claim.progress,
            message=message,
            reviewed_by=claim.reviewed_by,
        )


class NotificationSink(ABC):
    """Anything that can take an event for a topic."""

    @abstractmethod
    def publish(self, topic: str, event: NotificationEvent) -> int:
        """
        Deliver an event to every subscriber of a topic.

        Returns:
            Number of subscribers the event was handed to
        """
        pass


class Subscription:
    """
    One observer, typically a WebSocket connection.

    Events are queued on the subscriber's own event loop, so they can be
    published from any thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, max_queue: int = 100):
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self.topics: Set[str] = set()

    def deliver(self, event: NotificationEvent) -> None:
        self.loop.call_soon_threadsafe(self._put, event)

    def _put(self, event: NotificationEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Subscriber queue full, dropping {event.event_type.value} for claim {event.claim_id}")

    async def get(self) -> NotificationEvent:
        return await self.queue.get()


class NotificationHub(NotificationSink):
    """In-process topic registry and publisher."""

    def __init__(self, max_queue: int = 100):
        self.max_queue = max_queue
        self._lock = threading.Lock()
        self._topics: Dict[str, Set[Subscription]] = {}

    def subscribe(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Subscription:
        """Create a subscription bound to ``loop`` (the running loop by default)."""
        return Subscription(loop or asyncio.get_running_loop(), max_queue=self.max_queue)

    def join(self, subscription: Subscription, topic: str) -> None:
        with self._lock:
            self._topics.setdefault(topic, set()).add(subscription)
            subscription.topics.add(topic)
        logger.debug(f"Subscriber joined '{topic}'")

    def leave(self, subscription: Subscription, topic: str) -> None:
        with self._lock:
            members = self._topics.get(topic)
            if members is not None:
                members.discard(subscription)
                if not members:
                    del self._topics[topic]
            subscription.topics.discard(topic)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Leave every topic."""
        for topic in list(subscription.topics):
            self.leave(subscription, topic)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._topics.get(topic, ()))

    def publish(self, topic: str, event: NotificationEvent) -> int:
        with self._lock:
            members = list(self._topics.get(topic, ()))

        delivered = 0
        for subscription in members:
            try:
                subscription.deliver(event)
                delivered += 1
            except RuntimeError as e:
                # Loop already closed: the connection is gone
                logger.warning(f"Dropping subscriber on '{topic}': {e}")
                self.unsubscribe(subscription)

        logger.debug(f"Published {event.event_type.value} for claim {event.claim_id} to '{topic}' ({delivered} subscribers)")
        return delivered


# =============================================================================
# Convenience Functions
# =============================================================================


def notify_new_claim(sink: NotificationSink, claim: Claim) -> None:
    """Tell coordinators about a new claim. Never raises."""
    event = NotificationEvent.from_claim(
        EventType.NEW_CLAIM,
        claim,
        message=f"New claim from {claim.lecturer_name} for R{claim.total_amount:.2f}",
    )
    try:
        sink.publish(COORDINATORS_TOPIC, event)
    except Exception as e:
        logger.error(f"Failed to publish new-claim notification for claim {claim.id}: {e}")


def notify_status_change(sink: NotificationSink, claim: Claim, message: str = "") -> None:
    """Tell the claim's watchers about a status change. Never raises."""
    message = message or f"Claim {claim.id} is now {claim.progress.value}"
    try:
        sink.publish(claim.tracking_token, NotificationEvent.from_claim(EventType.STATUS_UPDATED, claim, message))
    except Exception as e:
        logger.error(f"Failed to publish status notification for claim {claim.id}: {e}")

    if claim.status is not ClaimStatus.APPROVED:
        return
    try:
        sink.publish(BROADCAST_TOPIC, NotificationEvent.from_claim(EventType.CLAIM_APPROVED, claim, message))
    except Exception as e:
        logger.error(f"Failed to broadcast approval of claim {claim.id}: {e}")
