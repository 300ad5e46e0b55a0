from __future__ import annotations

from decimal import Decimal
from typing import Mapping

from aligner.types import Balance


def calculate_refill_quantity(
    total: Mapping[str, Balance],
    currency: str,
    expected: Decimal,
) -> Decimal:
    """Signed quantity needed to bring ``currency`` to ``expected``.

    Positive means buy, negative means sell. A currency missing from
    ``total`` counts as a zero balance. No rounding happens here.
    """
    balance = total.get(currency)
    if balance is None:
        return expected
    return expected - balance.net
