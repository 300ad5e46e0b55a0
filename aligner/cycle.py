"""One alignment pass.

1. Cancel orders left open by the previous cycle (best effort per venue)
2. Aggregate balances across venues
3. For each target currency (sorted), compute the corrective quantity
4. Select a venue/price and submit, or only log in dry-run mode

Aggregation failure ends the cycle without orders. A submission failure
or any unexpected error for one currency is logged and the remaining
currencies are still processed. Dry-run logs every planned order and
submits none.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from aligner.aggregator import AggregatedBalances, BalanceAggregator
from aligner.config import AlignConfig
from aligner.errors import AggregationError, ConfigError
from aligner.refill import calculate_refill_quantity
from aligner.selector import VenuePriceSelector
from aligner.types import Order, SubmitOrderPlan
from aligner.venue import OrderTracker, VenueSession


logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Outcome of one alignment cycle."""

    quantities: dict[str, Decimal] = field(default_factory=dict)
    planned: list[SubmitOrderPlan] = field(default_factory=list)
    submitted: list[Order] = field(default_factory=list)
    cancel_failures: dict[str, str] = field(default_factory=dict)
    submit_failures: dict[str, str] = field(default_factory=dict)
    # Unexpected errors, per currency
    currency_errors: dict[str, str] = field(default_factory=dict)
    aggregation_error: Optional[str] = None
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.aggregation_error is None and not self.submit_failures and not self.currency_errors


class AlignmentCycle:
    """Runs alignment passes over a fixed set of venues.

    Order trackers are created once, one per venue, and owned by this
    instance for the lifetime of the run.
    """

    def __init__(
        self,
        *,
        config: AlignConfig,
        sessions: Sequence[VenueSession],
        aggregator: Optional[BalanceAggregator] = None,
        selector: Optional[VenuePriceSelector] = None,
    ) -> None:
        config.validate()
        self.config = config
        self.sessions = list(sessions)
        self._by_name = {session.name: session for session in self.sessions}
        if len(self._by_name) != len(self.sessions):
            raise ConfigError("Duplicate venue names")

        self.aggregator = aggregator or BalanceAggregator()
        assert config.quote_currencies is not None
        self.selector = selector or VenuePriceSelector(
            sessions=self.sessions,
            quote_currencies=config.quote_currencies,
            use_taker_order=config.use_taker_order,
        )
        self.trackers: dict[str, OrderTracker] = {s.name: OrderTracker(s.name) for s in self.sessions}

    async def cancel_open_orders(self, report: CycleReport) -> None:
        for session in self.sessions:
            try:
                await self.trackers[session.name].cancel_all_open(session)
            except Exception as exc:
                logger.error(f"Can not cancel orders on {session.name}: {exc}")
                report.cancel_failures[session.name] = str(exc)

    async def run(self) -> CycleReport:
        report = CycleReport(dry_run=self.config.dry_run)

        await self.cancel_open_orders(report)

        try:
            aggregated = await self.aggregator.aggregate(self.sessions)
        except AggregationError as exc:
            logger.error(f"Balance aggregation failed, skipping cycle: {exc}")
            report.aggregation_error = str(exc)
            return report

        for currency in self.config.currencies:
            try:
                await self._align_currency(currency, aggregated, report)
            except Exception as exc:
                logger.exception(f"Alignment failed for {currency}")
                report.currency_errors[currency] = repr(exc)

        return report

    async def _align_currency(self, currency: str, aggregated: AggregatedBalances, report: CycleReport) -> None:
        expected = self.config.expected_balances[currency]
        quantity = calculate_refill_quantity(aggregated.total, currency, expected)
        report.quantities[currency] = quantity
        if quantity == 0:
            logger.debug(f"{currency} is aligned at {expected}")
            return

        plan = await self.selector.select(currency, quantity, aggregated.per_venue)
        if plan is None:
            logger.info(f"No feasible order for {currency} (quantity {quantity})")
            return

        report.planned.append(plan)
        logger.info(
            f"Placing order on {plan.venue}: {plan.side} {plan.quantity} {plan.symbol} @ {plan.price} "
            f"({plan.order_type} {plan.time_in_force})"
        )

        if self.config.dry_run:
            logger.info(f"DRY RUN: not submitting {plan.side} {plan.quantity} {plan.symbol}")
            return

        session = self._by_name[plan.venue]
        try:
            order = await session.submit_order(plan)
        except Exception as exc:
            logger.error(f"Can not place order for {currency} on {plan.venue}: {exc}")
            report.submit_failures[currency] = str(exc)
            return

        report.submitted.append(order)
        self.trackers[plan.venue].record_open(order)
