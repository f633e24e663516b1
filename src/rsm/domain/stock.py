from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class StockMode(str, Enum):
    UNIQUE = "unique"
    BY_STORE = "by_store"
    BY_GROUP = "by_group"


@dataclass(frozen=True)
class StoreBucket:
    store_id: int
    stock: int


@dataclass(frozen=True)
class StoreGroup:
    name: str
    store_ids: frozenset[int]
    stock: int


@dataclass(frozen=True)
class UniqueStock:
    stock: int = 0

    @property
    def mode(self) -> StockMode:
        return StockMode.UNIQUE

    @property
    def total(self) -> int:
        return int(self.stock)


@dataclass(frozen=True)
class StoreStock:
    buckets: tuple[StoreBucket, ...] = field(default_factory=tuple)

    @property
    def mode(self) -> StockMode:
        return StockMode.BY_STORE

    @property
    def total(self) -> int:
        return sum(int(b.stock) for b in self.buckets)


@dataclass(frozen=True)
class GroupStock:
    groups: tuple[StoreGroup, ...] = field(default_factory=tuple)

    @property
    def mode(self) -> StockMode:
        return StockMode.BY_GROUP

    @property
    def total(self) -> int:
        return sum(int(g.stock) for g in self.groups)


StockLevel = Union[UniqueStock, StoreStock, GroupStock]


def _level_of(entity) -> StockLevel:
    # Products and variants carry their shape in ``stock_level``; bare shapes pass through.
    return getattr(entity, "stock_level", entity)


def resolve_for_store(entity, store_id: int | None) -> int:
    """Quantity sellable at one store (physical channel)."""
    level = _level_of(entity)
    if isinstance(level, UniqueStock):
        qty = level.stock
    elif isinstance(level, StoreStock):
        qty = next((b.stock for b in level.buckets if b.store_id == store_id), 0)
    elif isinstance(level, GroupStock):
        qty = next((g.stock for g in level.groups if store_id in g.store_ids), 0)
    else:
        raise TypeError(f"Unknown stock representation: {type(level).__name__}")
    return max(0, int(qty))


def resolve_total(entity) -> int:
    """Quantity sellable across every bucket (online channel).

    Oversold buckets count against the total, so it always matches the
    aggregate ``stock`` of the same shape (floored at 0).
    """
    level = _level_of(entity)
    if isinstance(level, UniqueStock):
        qty = level.stock
    elif isinstance(level, StoreStock):
        qty = sum(int(b.stock) for b in level.buckets)
    elif isinstance(level, GroupStock):
        qty = sum(int(g.stock) for g in level.groups)
    else:
        raise TypeError(f"Unknown stock representation: {type(level).__name__}")
    return max(0, int(qty))


def bucket_quantities(level: StockLevel) -> list[int]:
    if isinstance(level, UniqueStock):
        return [int(level.stock)]
    if isinstance(level, StoreStock):
        return [int(b.stock) for b in level.buckets]
    if isinstance(level, GroupStock):
        return [int(g.stock) for g in level.groups]
    raise TypeError(f"Unknown stock representation: {type(level).__name__}")


def with_bucket_quantities(level: StockLevel, quantities: list[int]) -> StockLevel:
    """Same shape and bucket order, new quantities."""
    if len(quantities) != len(bucket_quantities(level)):
        raise ValueError("Bucket count mismatch.")
    if isinstance(level, UniqueStock):
        return UniqueStock(stock=int(quantities[0]))
    if isinstance(level, StoreStock):
        return StoreStock(
            buckets=tuple(StoreBucket(store_id=b.store_id, stock=int(q)) for b, q in zip(level.buckets, quantities))
        )
    if isinstance(level, GroupStock):
        return GroupStock(
            groups=tuple(
                StoreGroup(name=g.name, store_ids=g.store_ids, stock=int(q)) for g, q in zip(level.groups, quantities)
            )
        )
    raise TypeError(f"Unknown stock representation: {type(level).__name__}")
