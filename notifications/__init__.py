#Marks notifications as a package.
#Live ETA push: transports, the room fan-out publisher and the refresh scheduler.

from .publisher import LiveUpdatePublisher, PublishEvent, rooms_for
from .refresh import RefreshScheduler
from .transport import LoggingTransport, Transport, WebhookTransport, build_transport

__all__ = [
    "LiveUpdatePublisher",
    "PublishEvent",
    "rooms_for",
    "RefreshScheduler",
    "LoggingTransport",
    "Transport",
    "WebhookTransport",
    "build_transport",
]
