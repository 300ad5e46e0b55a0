from __future__ import annotations

import logging
from threading import Lock
from typing import Optional, Protocol

from aligner.errors import OrderNotOpenError, VenueError
from aligner.market import Market
from aligner.types import BalanceMap, Order, SubmitOrderPlan, Ticker


logger = logging.getLogger(__name__)


class VenueSession(Protocol):
    """A connected trading account on one exchange."""

    name: str

    async def refresh_account(self) -> None:
        """Reload balances from the venue. Raises on failure."""
        ...

    def balances(self) -> BalanceMap:
        """Balances as of the last refresh."""
        ...

    def market(self, symbol: str) -> Optional[Market]:
        """Trading rules for ``symbol``, or None when the venue does not list it."""
        ...

    async def query_ticker(self, symbol: str) -> Ticker:
        """Fetch the current best bid/ask for ``symbol``."""
        ...

    async def submit_order(self, plan: SubmitOrderPlan) -> Order:
        """Submit a limit order. Raises on failure."""
        ...

    async def cancel_order(self, order: Order) -> None:
        """Cancel an open order.

        Raises OrderNotOpenError when the venue no longer has the order open,
        VenueError (or any exception) on other failures.
        """
        ...


class OrderTracker:
    """Open orders placed by this strategy on a single venue.

    Mutated only by the run loop; reads are guarded so a host can inspect
    the tracker from another thread.
    """

    def __init__(self, venue: str) -> None:
        self.venue = venue
        self._orders: dict[str, Order] = {}
        self._lock = Lock()

    def record_open(self, order: Order) -> None:
        with self._lock:
            self._orders[order.id] = order

    def open_orders(self) -> list[Order]:
        with self._lock:
            return list(self._orders.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)

    async def cancel_all_open(self, session: VenueSession) -> None:
        """Cancel every tracked order on ``session``.

        Successfully cancelled orders are dropped, as are orders the venue
        reports as no longer open. Orders whose cancel call failed stay
        tracked and a single VenueError is raised at the end.
        """
        failed: list[str] = []
        for order in self.open_orders():
            try:
                await session.cancel_order(order)
            except OrderNotOpenError:
                logger.info(f"Order {order.id} on {self.venue} is no longer open, dropping it")
            except Exception as exc:
                logger.warning(f"Cancel failed for order {order.id} on {self.venue}: {exc}")
                failed.append(order.id)
                continue
            with self._lock:
                self._orders.pop(order.id, None)

        if failed:
            raise VenueError(
                f"Could not cancel {len(failed)} order(s) on {self.venue}: {', '.join(failed)}",
                venue=self.venue,
            )
