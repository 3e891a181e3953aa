"""Near-real-time claim notifications."""

from .hub import (
    BROADCAST_TOPIC,
    COORDINATORS_TOPIC,
    EventType,
    NotificationEvent,
    NotificationHub,
    NotificationSink,
    Subscription,
    notify_new_claim,
    notify_status_change,
)

__all__ = [
    "NotificationHub",
    "NotificationSink",
    "NotificationEvent",
    "Subscription",
    "EventType",
    "COORDINATORS_TOPIC",
    "BROADCAST_TOPIC",
    "notify_new_claim",
    "notify_status_change",
]
