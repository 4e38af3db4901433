"""
Push gateway clients.

The gateway accepts batches of push messages and answers with one delivery
ticket per message. Two implementations share one interface:
- ExpoPushGateway: talks to the Expo push service through exponent_server_sdk
- MockPushGateway: logs every send and records it for test assertions, and
  can simulate unregistered devices or a full outage

Design decisions:
- Callers always go through `send`, which splits messages into chunks under
  the gateway batch limit (the Expo SDK does its own chunking)
- A ticket-level error (e.g. DeviceNotRegistered) is a normal result, not an
  exception; only transport failures raise GatewayError
- Token format checking is a plain predicate, so it can run before anything
  is stored
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Optional

import requests
from exponent_server_sdk import (
    DeviceNotRegisteredError,
    PushClient,
    PushServerError,
    PushTicketError,
)
from exponent_server_sdk import PushMessage as ExpoPushMessage
from exponent_server_sdk import PushTicket as ExpoPushTicket

from shared.errors import GatewayError

logger = logging.getLogger("push_gateway")


# Expo rejects requests with more than 100 messages
PUSH_BATCH_LIMIT = 100


def is_push_token(token: Optional[str]) -> bool:
    """Check that a token has a format the gateway accepts."""
    if not isinstance(token, str) or not token:
        return False
    return PushClient.is_exponent_push_token(token) and token.endswith("]")


def mask_token(token: str) -> str:
    """Shorten a token for logs and status responses."""
    if len(token) <= 15:
        return token
    return f"{token[:10]}...{token[-5:]}"


@dataclass
class PushMessage:
    """One push message addressed to one device token."""
    to: str
    body: str
    title: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)
    sound: Optional[str] = "default"


@dataclass
class PushTicket:
    """
    Delivery ticket for a single message.

    `status` is "ok" or "error"; on error `message` and `details` say why.
    """
    status: str
    to: str
    id: Optional[str] = None
    message: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def __str__(self) -> str:
        status = "✓" if self.ok else "✗"
        if self.ok:
            return f"{status} PUSH to {mask_token(self.to)}"
        return f"{status} PUSH to {mask_token(self.to)}: {self.message}"


class PushGateway:
    """Interface shared by every gateway implementation."""

    batch_limit: int = PUSH_BATCH_LIMIT

    def is_push_token(self, token: Optional[str]) -> bool:
        return is_push_token(token)

    def chunk_messages(self, messages: list[PushMessage]) -> Iterator[list[PushMessage]]:
        """Split messages into batches under the gateway limit."""
        for start in range(0, len(messages), self.batch_limit):
            yield messages[start:start + self.batch_limit]

    def send_chunk(self, chunk: list[PushMessage]) -> list[PushTicket]:
        raise NotImplementedError

    def send(self, messages: list[PushMessage]) -> list[PushTicket]:
        """
        Send messages in batches.

        Returns:
            One ticket per message, in order

        Raises:
            GatewayError: If the gateway cannot be reached
        """
        tickets: list[PushTicket] = []
        for chunk in self.chunk_messages(messages):
            tickets.extend(self.send_chunk(chunk))
        return tickets


class ExpoPushGateway(PushGateway):
    """
    Push gateway backed by the Expo server SDK.

    The SDK posts to the Expo push service, splits requests at its own
    message limit and decodes the tickets; this class maps its types to ours.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        client: Optional[PushClient] = None,
    ):
        if client is None:
            session = session or requests.Session()
            session.headers.update({
                "accept": "application/json",
                "accept-encoding": "gzip, deflate",
                "content-type": "application/json",
            })
            if access_token:
                session.headers["Authorization"] = f"Bearer {access_token}"
            client = PushClient(session=session)
        self.client = client

    def send(self, messages: list[PushMessage]) -> list[PushTicket]:
        if not messages:
            return []
        try:
            expo_tickets = self.client.publish_multiple([_to_expo_message(m) for m in messages])
        except (PushServerError, requests.RequestException, ValueError) as e:
            logger.error(f"[PUSH FAILED] {len(messages)} messages: {e}")
            raise GatewayError(f"Push gateway request failed: {e}", service="expo") from e

        tickets = [_from_expo_ticket(t) for t in expo_tickets]
        for ticket in tickets:
            if ticket.ok:
                logger.info(f"[PUSH] {ticket}")
            else:
                logger.warning(f"[PUSH] {ticket}")
        return tickets

def _to_expo_message(message: PushMessage) -> ExpoPushMessage:
    return ExpoPushMessage(
        to=message.to,
        title=message.title,
        body=message.body,
        data=message.data,
        sound=message.sound,
    )


def _from_expo_ticket(expo_ticket: ExpoPushTicket) -> PushTicket:
    ticket = PushTicket(
        status="ok" if expo_ticket.is_success() else "error",
        to=expo_ticket.push_message.to,
        id=expo_ticket.id or None,
        message=expo_ticket.message or None,
        details=dict(expo_ticket.details or {}),
    )
    try:
        expo_ticket.validate_response()
    except DeviceNotRegisteredError:
        ticket.details["error"] = "DeviceNotRegistered"
    except PushTicketError as e:
        logger.debug(f"Expo ticket error for {mask_token(ticket.to)}: {e}")
    return ticket


class MockPushGateway(PushGateway):
    """
    Mock push gateway.

    Logs sends and tracks them for test assertions. Tokens listed in
    `unregistered_tokens` get an error ticket; `outage=True` makes every
    batch raise GatewayError.
    """

    def __init__(
        self,
        unregistered_tokens: Optional[set[str]] = None,
        outage: bool = False,
        batch_limit: int = PUSH_BATCH_LIMIT,
    ):
        self.unregistered_tokens: set[str] = set(unregistered_tokens or ())
        self.outage = outage
        self.batch_limit = batch_limit
        self.sent_messages: list[PushMessage] = []
        self.tickets: list[PushTicket] = []
        self.batches_sent = 0

    def send_chunk(self, chunk: list[PushMessage]) -> list[PushTicket]:
        if self.outage:
            logger.error(f"[PUSH FAILED] Batch of {len(chunk)}: simulated outage")
            raise GatewayError("Simulated push gateway outage", service="mock")

        self.batches_sent += 1
        tickets = []
        for message in chunk:
            if message.to in self.unregistered_tokens:
                ticket = PushTicket(
                    status="error",
                    to=message.to,
                    message=f'"{message.to}" is not a registered push notification recipient',
                    details={"error": "DeviceNotRegistered"},
                )
                logger.warning(f"[PUSH] {ticket}")
            else:
                ticket = PushTicket(status="ok", to=message.to, id=f"ticket-{len(self.tickets) + 1}")
                logger.info(f"[PUSH] {ticket} | {message.title or ''} {message.body}")
            self.sent_messages.append(message)
            self.tickets.append(ticket)
            tickets.append(ticket)
        return tickets

    def get_sent_count(self) -> int:
        """Get the number of messages sent (for testing)."""
        return len(self.sent_messages)

    def find_messages_to(self, token: str) -> list[PushMessage]:
        """Find all messages sent to a specific token."""
        return [m for m in self.sent_messages if m.to == token]

    def clear_history(self):
        """Clear sent message history (useful between tests)."""
        self.sent_messages.clear()
        self.tickets.clear()
        self.batches_sent = 0


def create_push_gateway(kind: str = "mock", access_token: Optional[str] = None) -> PushGateway:
    """Build the configured gateway implementation."""
    if kind == "expo":
        return ExpoPushGateway(access_token=access_token)
    if kind == "mock":
        return MockPushGateway()
    raise ValueError(f"Unknown push gateway: {kind}")
