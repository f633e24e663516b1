from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from rsm.domain.models import Channel
from rsm.domain.stock import (
    GroupStock,
    StockLevel,
    StoreStock,
    UniqueStock,
    bucket_quantities,
    with_bucket_quantities,
)

log = logging.getLogger("rsm.stock")


@dataclass(frozen=True)
class DepletionResult:
    level: StockLevel
    remaining: int

    @property
    def fully_depleted(self) -> bool:
        return self.remaining == 0


def _target_index(level: StockLevel, store_id: Optional[int]) -> Optional[int]:
    if isinstance(level, UniqueStock):
        return 0
    if isinstance(level, StoreStock):
        return next((i for i, b in enumerate(level.buckets) if b.store_id == store_id), None)
    if isinstance(level, GroupStock):
        return next((i for i, g in enumerate(level.groups) if store_id in g.store_ids), None)
    raise TypeError(f"Unknown stock representation: {type(level).__name__}")


def deplete_targeted(level: StockLevel, quantity: int, store_id: Optional[int]) -> DepletionResult:
    """Subtract from the single bucket serving ``store_id``.

    The subtraction is not guarded: stock was checked when the line entered the
    cart, and a concurrent sale in between can push the bucket below zero.
    """
    quantity = int(quantity)
    idx = _target_index(level, store_id)
    if idx is None:
        log.warning("targeted_bucket_missing mode=%s store_id=%s qty=%s", level.mode.value, store_id, quantity)
        return DepletionResult(level=level, remaining=quantity)

    quantities = bucket_quantities(level)
    if quantities[idx] < quantity:
        log.warning(
            "oversold mode=%s store_id=%s available=%s qty=%s",
            level.mode.value, store_id, quantities[idx], quantity,
        )
    quantities[idx] -= quantity
    return DepletionResult(level=with_bucket_quantities(level, quantities), remaining=0)


def deplete_proportional(level: StockLevel, quantity: int) -> DepletionResult:
    """Greedy spread over buckets in stored order; never goes below zero.

    Asking for more than the buckets hold is not an error: the unmet part is
    returned in ``remaining``.
    """
    remaining = int(quantity)
    quantities = bucket_quantities(level)
    for i, available in enumerate(quantities):
        if remaining <= 0:
            break
        to_reduce = min(max(0, available), remaining)
        quantities[i] = available - to_reduce
        remaining -= to_reduce

    if remaining > 0:
        log.warning("under_depleted mode=%s requested=%s remaining=%s", level.mode.value, quantity, remaining)
    return DepletionResult(level=with_bucket_quantities(level, quantities), remaining=remaining)


def deplete(level: StockLevel, quantity: int, channel: Channel, store_id: Optional[int] = None) -> DepletionResult:
    if quantity <= 0:
        return DepletionResult(level=level, remaining=0)
    if channel == Channel.PHYSICAL:
        return deplete_targeted(level, quantity, store_id)
    if channel == Channel.ONLINE:
        return deplete_proportional(level, quantity)
    raise ValueError(f"Unknown channel: {channel!r}")
