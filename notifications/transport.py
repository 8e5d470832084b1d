#Purpose: Outbound real-time transports for live ETA updates.
#A transport delivers one (room, event, payload) message; fan-out across rooms
#and failure isolation belong to notifications.publisher.
#LoggingTransport is the default and only writes to the log;
#WebhookTransport POSTs to a push gateway (socket server, FCM bridge, ...).

from dotenv import load_dotenv
import logging
import os
from typing import Any, Dict, Optional, Protocol

import requests

load_dotenv()
ETA_PUSH_WEBHOOK_URL = os.getenv("ETA_PUSH_WEBHOOK_URL")

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def emit(self, room: str, event: str, payload: Dict[str, Any]) -> None: ...


class LoggingTransport:
    """
    Logs the outbound message instead of sending it. Used in development and
    whenever no push gateway is configured.
    """
    def emit(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        logger.info("PUSH -> %s | %s | payload=%s", room, event, payload)


class WebhookTransport:
    """
    Hands each message to an HTTP push gateway, which owns the sockets.
    Errors propagate; the publisher decides what a failure means.
    """
    def __init__(self, url: Optional[str] = None, timeout: float = 5):
        self.url = url or ETA_PUSH_WEBHOOK_URL
        self.timeout = timeout

        if not self.url:
            raise ValueError("Push gateway URL not set. Please set ETA_PUSH_WEBHOOK_URL in the .env file.")

    def emit(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        response = requests.post(
            self.url,
            json={"room": room, "event": event, "payload": payload},
            timeout=self.timeout,
        )
        response.raise_for_status()


def build_transport(url: Optional[str] = None) -> Transport:
    """
    WebhookTransport when a gateway URL is configured, LoggingTransport otherwise.
    """
    if url or ETA_PUSH_WEBHOOK_URL:
        return WebhookTransport(url)
    return LoggingTransport()
