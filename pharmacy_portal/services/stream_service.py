import asyncio
import json
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from pharmacy_portal.logs.server_log import api_logger

KEEP_ALIVE_FRAME = ": keep-alive\n\n"


class StreamClosed(Exception):
    """Raised by a transport that has been closed"""


class StreamTransport(Protocol):
    async def send(self, message: str) -> None:
        ...

    async def close(self) -> None:
        ...


class QueueTransport:
    """
    Transport backing a server-sent events response.

    send() never blocks: a subscriber whose queue is full is too slow to
    keep up and the failure unsubscribes it.
    """

    def __init__(self, maxsize: int = 32):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def send(self, message: str) -> None:
        if self._closed.is_set():
            raise StreamClosed("Stream already closed")
        self._queue.put_nowait(message)

    async def close(self) -> None:
        self._closed.set()

    async def receive(self, timeout: Optional[float]) -> Optional[str]:
        """Next queued message, None when timeout elapses first"""
        if not self._queue.empty():
            return self._queue.get_nowait()
        if self._closed.is_set():
            raise StreamClosed("Stream closed")

        get_task = asyncio.ensure_future(self._queue.get())
        closed_task = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait(
                {get_task, closed_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (get_task, closed_task):
                if not task.done():
                    task.cancel()

        if get_task in done:
            return get_task.result()
        if closed_task in done:
            raise StreamClosed("Stream closed")
        return None


class WebSocketTransport:
    """Transport over an accepted WebSocket connection"""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send(self, message: str) -> None:
        await self.websocket.send_text(message)

    async def close(self) -> None:
        try:
            await self.websocket.close()
        except RuntimeError as e:
            # Already closed by the client side
            api_logger.info(f"Stream: WebSocket already closed: {e}")


class Subscription:
    """One open live channel registered with a broadcaster"""

    def __init__(self, transport: StreamTransport, idle_timeout: Optional[float], now: float):
        self.id = uuid.uuid4().hex
        self.transport = transport
        self.idle_timeout = idle_timeout
        self.created_at = now
        self.last_activity = now
        self.closed = False

    def touch(self, now: float) -> None:
        self.last_activity = now

    def is_idle(self, now: float) -> bool:
        return self.idle_timeout is not None and now - self.last_activity >= self.idle_timeout

    def mark_closed(self) -> bool:
        """Flip to closed; True only for the first caller"""
        if self.closed:
            return False
        self.closed = True
        return True


class ProductivityBroadcaster:
    """Fan-out of productivity snapshots to every open subscription on one channel"""

    def __init__(
        self,
        name: str,
        snapshot_provider: Callable[[], Awaitable[Any]],
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._snapshot_provider = snapshot_provider
        # {subscription_id: subscription}
        self._subscriptions: Dict[str, Subscription] = {}
        # Serializes read-then-send so the last delivered snapshot is the newest
        self._publish_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, subscription: Subscription) -> bool:
        return subscription.id in self._subscriptions

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions.values())

    @staticmethod
    def serialize(payload: Any) -> str:
        return json.dumps(jsonable_encoder(payload, by_alias=True))

    async def subscribe(self, transport: StreamTransport) -> Subscription:
        """Send the current snapshot to a new subscriber, then register it"""
        subscription = Subscription(transport, self.idle_timeout, self.clock())

        try:
            payload = await self._snapshot_provider()
            await transport.send(self.serialize(payload))
        except Exception as e:
            api_logger.error(f"Stream[{self.name}]: Error setting up subscription {subscription.id}: {str(e)}")
            await self._close(subscription, "initial send failed")
            return subscription

        subscription.touch(self.clock())
        self._subscriptions[subscription.id] = subscription
        api_logger.info(
            f"Stream[{self.name}]: Subscription {subscription.id} opened, {len(self._subscriptions)} active"
        )
        return subscription

    async def unsubscribe(self, subscription: Subscription, reason: str = "closed") -> bool:
        """Remove and close a subscription; safe to call repeatedly"""
        self._subscriptions.pop(subscription.id, None)
        return await self._close(subscription, reason)

    async def _close(self, subscription: Subscription, reason: str) -> bool:
        if not subscription.mark_closed():
            return False
        try:
            await subscription.transport.close()
        except Exception as e:
            api_logger.warning(f"Stream[{self.name}]: Error closing subscription {subscription.id}: {str(e)}")
        api_logger.info(f"Stream[{self.name}]: Subscription {subscription.id} removed ({reason})")
        return True

    async def broadcast(self, payload: Any) -> int:
        """Send one payload to all subscribers; returns how many received it"""
        subscribers = list(self._subscriptions.values())
        if not subscribers:
            return 0

        try:
            message = self.serialize(payload)
        except (TypeError, ValueError) as e:
            api_logger.error(f"Stream[{self.name}]: Failed to serialize productivity data: {str(e)}")
            return 0

        api_logger.info(f"Stream[{self.name}]: Broadcasting update to {len(subscribers)} subscribers")
        results = await asyncio.gather(*(self._deliver(s, message) for s in subscribers))
        return sum(1 for delivered in results if delivered)

    async def _deliver(self, subscription: Subscription, message: str) -> bool:
        try:
            await subscription.transport.send(message)
        except Exception as e:
            api_logger.error(
                f"Stream[{self.name}]: Failed to send update to subscription {subscription.id}: {type(e).__name__} {str(e)}"
            )
            await self.unsubscribe(subscription, "send failed")
            return False
        subscription.touch(self.clock())
        return True

    async def publish(self) -> int:
        """Fetch a fresh snapshot and broadcast it"""
        async with self._publish_lock:
            if not self._subscriptions:
                return 0
            payload = await self._snapshot_provider()
            return await self.broadcast(payload)

    async def expire_idle(self) -> int:
        now = self.clock()
        expired = [s for s in self._subscriptions.values() if s.is_idle(now)]
        for subscription in expired:
            await self.unsubscribe(subscription, "timeout")
        return len(expired)

    async def close_all(self) -> None:
        for subscription in list(self._subscriptions.values()):
            await self.unsubscribe(subscription, "shutdown")


def format_sse(message: str) -> str:
    return "".join(f"data: {line}\n" for line in message.splitlines()) + "\n"


async def sse_event_stream(
    broadcaster: ProductivityBroadcaster,
    subscription: Subscription,
    transport: QueueTransport,
    heartbeat_seconds: float,
):
    """
    Drain a subscription's queue as SSE frames.

    Emits a keep-alive comment whenever heartbeat_seconds pass without
    data, and ends once the subscription is closed or idle past its
    timeout. The subscription is always removed when the generator ends,
    including when the client disconnects.
    """
    try:
        while True:
            try:
                message = await transport.receive(timeout=heartbeat_seconds)
            except StreamClosed:
                break

            if message is None:
                if subscription.is_idle(broadcaster.clock()):
                    await broadcaster.unsubscribe(subscription, "timeout")
                    break
                yield KEEP_ALIVE_FRAME
                continue

            yield format_sse(message)
    finally:
        await broadcaster.unsubscribe(subscription, "stream ended")
