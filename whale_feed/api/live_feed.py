"""WebSocket client for the live transaction feed."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

import websockets
from websockets.asyncio.client import ClientConnection

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], Awaitable[None]]


class Subscription:
    """Handle returned by LiveFeedClient.subscribe; cancel() detaches the listener."""

    def __init__(self, client: "LiveFeedClient", event: str, callback: EventCallback):
        self._client = client
        self.event = event
        self.callback = callback
        self.active = True

    def cancel(self):
        if self.active:
            self._client.unsubscribe(self.event, self.callback)
            self.active = False


class LiveFeedClient:
    """
    Owned connection to the live transaction feed.

    One instance is created by the application and shared with every feed
    session that needs it. Sessions attach with subscribe() when they start
    and cancel their Subscription when they stop.
    """

    PING_INTERVAL = 25  # seconds
    RECONNECT_DELAY = 5  # seconds

    def __init__(
        self,
        url: str,
        ping_interval: float | None = None,
        reconnect_delay: float | None = None,
        on_connect: Callable[[], Awaitable[None]] | None = None,
        on_disconnect: Callable[[], Awaitable[None]] | None = None,
    ):
        self.url = url
        self.ping_interval = ping_interval or self.PING_INTERVAL
        self.reconnect_delay = reconnect_delay or self.RECONNECT_DELAY
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect
        self._listeners: dict[str, list[EventCallback]] = {}
        self._ws: ClientConnection | None = None
        self._running = False
        self._ping_task: asyncio.Task | None = None

    def subscribe(self, event: str, callback: EventCallback) -> Subscription:
        """Register a callback for a named event."""
        self._listeners.setdefault(event, []).append(callback)
        logger.debug(f"Subscribed to {event}")
        return Subscription(self, event, callback)

    def unsubscribe(self, event: str, callback: EventCallback):
        """Remove a callback previously registered for a named event."""
        callbacks = self._listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)
            logger.debug(f"Unsubscribed from {event}")
        if not callbacks:
            self._listeners.pop(event, None)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    async def connect(self):
        """Connect to the feed and dispatch events until disconnect() is called."""
        self._running = True

        while self._running:
            try:
                logger.info(f"Connecting to {self.url}...")

                async with websockets.connect(
                    self.url,
                    ping_interval=None,  # Pings are sent by _ping_loop
                ) as ws:
                    self._ws = ws
                    logger.info("Connected to live transaction feed")

                    if self.on_connect:
                        await self.on_connect()

                    self._ping_task = asyncio.create_task(self._ping_loop())

                    await self._listen()

            except websockets.ConnectionClosed as e:
                logger.warning(f"WebSocket connection closed: {e}")
            except Exception as e:
                logger.error(f"WebSocket error: {e}")
            finally:
                if self._ping_task:
                    self._ping_task.cancel()
                    try:
                        await self._ping_task
                    except asyncio.CancelledError:
                        pass
                    self._ping_task = None

                if self.on_disconnect:
                    await self.on_disconnect()

                self._ws = None

            if self._running:
                logger.info(f"Reconnecting in {self.reconnect_delay} seconds...")
                await asyncio.sleep(self.reconnect_delay)

    async def disconnect(self):
        """Stop the connection loop and close the socket."""
        self._running = False
        if self._ws:
            await self._ws.close()

    async def _ping_loop(self):
        """Send periodic pings to keep connection alive."""
        while self._running and self._ws:
            try:
                await asyncio.sleep(self.ping_interval)
                if self._ws:
                    await self._ws.ping()
            except (websockets.ConnectionClosed, RuntimeError) as e:
                logger.debug(f"Ping error: {e}")
                break

    async def _listen(self):
        """Listen for incoming messages."""
        if not self._ws:
            return

        async for message in self._ws:
            await self._handle_message(message)

    async def _handle_message(self, raw_message: str | bytes):
        """Decode a frame into (event, payload) and dispatch it."""
        if isinstance(raw_message, bytes):
            raw_message = raw_message.decode("utf-8", errors="replace")

        decoded = _decode_frame(raw_message)
        if decoded is None:
            logger.debug(f"Ignoring frame: {raw_message[:100]}")
            return

        event, payload = decoded
        await self.dispatch(event, payload)

    async def dispatch(self, event: str, payload: Any):
        """Deliver a payload to every listener of an event, in registration order."""
        for callback in list(self._listeners.get(event, [])):
            try:
                await callback(payload)
            except Exception as e:
                logger.error(f"Error in {event} listener: {e}", exc_info=True)


def _decode_frame(raw_message: str) -> tuple[str, Any] | None:
    """
    Decode a text frame.

    Accepts ``{"event": name, "data": payload}`` or a Socket.IO style event
    array ``[name, payload]`` with an optional ``42`` packet prefix.
    """
    text = raw_message.strip()
    if text.startswith("42"):
        text = text[2:]

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None

    if isinstance(data, dict) and isinstance(data.get("event"), str):
        return data["event"], data.get("data")

    if isinstance(data, list) and data and isinstance(data[0], str):
        return data[0], data[1] if len(data) > 1 else None

    return None
