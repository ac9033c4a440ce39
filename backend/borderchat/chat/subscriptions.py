"""Subscription directory and room fan-out.

Every live WebSocket is wrapped in a ``Subscriber`` that moves through
``CONNECTED -> SUBSCRIBED -> DISCONNECTED``. A subscriber watches at most one
room; subscribing again replaces the previous room. Disconnect is terminal.

Fan-out takes a snapshot of a room's subscribers and sends to all of them
concurrently with asyncio.gather(). Delivery is best effort: a subscriber
whose send fails is dropped and its socket closed. Nothing is retried.

Thread Safety:
    Designed for a single event loop. Not safe for use from multiple threads.
"""
import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle of a realtime connection."""
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    DISCONNECTED = "disconnected"


class InvalidTransitionError(Exception):
    """Raised when a subscriber is asked to leave the DISCONNECTED state."""


class Subscriber:
    """A live connection plus the room it currently watches."""

    def __init__(self, websocket: WebSocket) -> None:
        self.id = str(uuid.uuid4())
        self.websocket = websocket
        self.state = ConnectionState.CONNECTED
        self.room_name: Optional[str] = None

    def subscribe(self, room_name: str) -> None:
        if self.state is ConnectionState.DISCONNECTED:
            raise InvalidTransitionError(f"Subscriber {self.id} is disconnected")
        self.room_name = room_name
        self.state = ConnectionState.SUBSCRIBED

    def unsubscribe(self) -> None:
        if self.state is ConnectionState.DISCONNECTED:
            return
        self.room_name = None
        self.state = ConnectionState.CONNECTED

    def disconnect(self) -> None:
        self.room_name = None
        self.state = ConnectionState.DISCONNECTED

    async def send(self, payload: Dict[str, Any]) -> None:
        await self.websocket.send_json(payload)


class SubscriptionDirectory:
    """Tracks which room each connection watches and publishes room updates."""

    def __init__(self) -> None:
        # subscriber id -> Subscriber (every connection not yet disconnected)
        self._connections: Dict[str, Subscriber] = {}
        # room_name -> subscriber ids currently watching it
        self._rooms: Dict[str, Set[str]] = {}

    def register(self, websocket: WebSocket) -> Subscriber:
        """Track a freshly accepted connection in the CONNECTED state."""
        subscriber = Subscriber(websocket)
        self._connections[subscriber.id] = subscriber
        return subscriber

    def subscribe(self, subscriber: Subscriber, room_name: str) -> None:
        """Point ``subscriber`` at ``room_name``, replacing any previous room."""
        previous = subscriber.room_name
        subscriber.subscribe(room_name)
        if previous is not None and previous != room_name:
            self._discard(previous, subscriber.id)
        self._connections[subscriber.id] = subscriber
        self._rooms.setdefault(room_name, set()).add(subscriber.id)
        logger.debug("Subscriber %s now watching room %s", subscriber.id, room_name)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Stop watching the current room; the connection stays registered."""
        if subscriber.room_name is not None:
            self._discard(subscriber.room_name, subscriber.id)
        subscriber.unsubscribe()

    def disconnect(self, subscriber: Subscriber) -> None:
        """Forget the connection entirely."""
        if subscriber.room_name is not None:
            self._discard(subscriber.room_name, subscriber.id)
        self._connections.pop(subscriber.id, None)
        subscriber.disconnect()

    def subscribers(self, room_name: str) -> List[Subscriber]:
        """Snapshot of the subscribers currently watching ``room_name``."""
        ids = self._rooms.get(room_name, set())
        return [self._connections[sid] for sid in ids if sid in self._connections]

    def subscriber_count(self, room_name: str) -> int:
        return len(self._rooms.get(room_name, ()))

    def connection_count(self) -> int:
        return len(self._connections)

    async def publish(self, room_name: str, payload: Dict[str, Any]) -> int:
        """Send ``payload`` to every subscriber of ``room_name``.

        Returns:
            Number of subscribers the payload was delivered to.
        """
        targets = self.subscribers(room_name)
        if not targets:
            return 0

        results = await asyncio.gather(
            *[self._safe_send(sub, payload) for sub in targets],
            return_exceptions=True,
        )

        delivered = 0
        for sub, ok in zip(targets, results):
            if ok is True:
                delivered += 1
            else:
                logger.debug("Dropping dead subscriber %s from room %s", sub.id, room_name)
                self.disconnect(sub)
                await self._safe_close(sub)
        return delivered

    async def _safe_send(self, subscriber: Subscriber, payload: Dict[str, Any]) -> bool:
        try:
            await subscriber.send(payload)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to subscriber {subscriber.id}: {e}")
            return False

    async def _safe_close(self, subscriber: Subscriber) -> None:
        try:
            await subscriber.websocket.close(code=1011)  # 1011 = Internal Error
        except Exception as e:
            logger.debug(f"Failed to close subscriber {subscriber.id}: {e}")

    def _discard(self, room_name: str, subscriber_id: str) -> None:
        members = self._rooms.get(room_name)
        if members is None:
            return
        members.discard(subscriber_id)
        if not members:
            del self._rooms[room_name]
