import asyncio
from typing import Callable, List, Optional, Set

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..models.models import Order
from .broadcaster import EVENT_NEW_ORDER, EventBroadcaster

log = structlog.get_logger(__name__)


class OrderChangeFeed:
    """Watches the order table and re-announces inserted orders.

    Runs beside the request handlers for the life of the process. A handler
    that creates an order has usually already published ``newOrder``, so
    clients see the event twice and dedupe by (order id, event).

    Order numbers are minted before the insert commits, so a lower number can
    become visible after a higher one. Each poll re-reads the last ``lookback``
    numbers below the head and emits any it has not seen yet.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        broadcaster: EventBroadcaster,
        interval: float = 2.0,
        lookback: int = 100,
    ):
        self.session_factory = session_factory
        self.broadcaster = broadcaster
        self.interval = interval
        self.lookback = lookback
        self.last_seen: Optional[int] = None
        self._seen: Set[int] = set()
        self._task: Optional[asyncio.Task] = None

    def _window(self, db: Session) -> List[Order]:
        floor = max(0, (self.last_seen or 0) - self.lookback)
        return (
            db.query(Order)
            .filter(Order.order_number > floor)
            .order_by(Order.order_number.asc())
            .all()
        )

    def _poll(self) -> List[dict]:
        db = self.session_factory()
        try:
            if self.last_seen is None:
                # Start from the current head; existing orders are not replayed
                self.last_seen = db.query(func.coalesce(func.max(Order.order_number), 0)).scalar() or 0
                self._seen = {o.order_number for o in self._window(db)}
                return []
            fresh = [o for o in self._window(db) if o.order_number not in self._seen]
            for o in fresh:
                self._seen.add(o.order_number)
                self.last_seen = max(self.last_seen, o.order_number)
            floor = self.last_seen - self.lookback
            self._seen = {n for n in self._seen if n > floor}
            return [
                {"id": str(o.id), "order_code": o.order_code, "customer_name": o.customer_name}
                for o in fresh
            ]
        finally:
            db.close()

    async def tick(self) -> int:
        payloads = await run_in_threadpool(self._poll)
        for payload in payloads:
            await self.broadcaster.broadcast(EVENT_NEW_ORDER, payload)
        return len(payloads)

    async def run(self) -> None:
        log.info("change_feed_started", interval=self.interval)
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error("change_feed_error", error=str(e))
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("change_feed_stopped")
