"""Cross-venue balance aggregation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from aligner.errors import AggregationError
from aligner.types import BalanceMap, add_balance_maps
from aligner.venue import VenueSession


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregatedBalances:
    """Summed balances plus the per-venue snapshots they came from."""

    total: BalanceMap = field(default_factory=dict)
    per_venue: dict[str, BalanceMap] = field(default_factory=dict)


class BalanceAggregator:
    """Refreshes every venue and sums balances per currency.

    A refresh failure on any venue fails the whole aggregation with
    AggregationError; a partial total is never returned.
    """

    async def aggregate(self, sessions: Sequence[VenueSession]) -> AggregatedBalances:
        total: BalanceMap = {}
        per_venue: dict[str, BalanceMap] = {}

        for session in sessions:
            try:
                await session.refresh_account()
            except Exception as exc:
                logger.error(f"Can not update account on {session.name}: {exc}")
                raise AggregationError(
                    f"Account refresh failed on {session.name}: {exc}",
                    venue=session.name,
                ) from exc

            balances = dict(session.balances())
            per_venue[session.name] = balances
            total = add_balance_maps(total, balances)

        return AggregatedBalances(total=total, per_venue=per_venue)
