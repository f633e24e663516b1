import pytest

from rsm.domain.depletion import deplete, deplete_proportional, deplete_targeted
from rsm.domain.models import Channel
from rsm.domain.stock import GroupStock, StoreBucket, StoreGroup, StoreStock, UniqueStock, bucket_quantities


def _two_stores(a: int = 5, b: int = 3) -> StoreStock:
    return StoreStock(buckets=(StoreBucket(1, a), StoreBucket(2, b)))


def test_proportional_drains_buckets_in_stored_order():
    result = deplete_proportional(_two_stores(), 6)
    assert bucket_quantities(result.level) == [0, 2]
    assert result.remaining == 0
    assert result.fully_depleted


def test_proportional_reports_unmet_quantity_without_going_negative():
    result = deplete_proportional(_two_stores(), 10)
    assert bucket_quantities(result.level) == [0, 0]
    assert result.remaining == 2


SHAPES = {
    "unique": UniqueStock(stock=8),
    "by_store": StoreStock(buckets=(StoreBucket(1, 5), StoreBucket(2, 3))),
    "by_group": GroupStock(groups=(StoreGroup("North", frozenset({1, 4}), 5), StoreGroup("South", frozenset({2}), 3))),
}


@pytest.mark.parametrize("shape", sorted(SHAPES))
@pytest.mark.parametrize("qty", [0, 1, 4, 8, 12])
def test_proportional_removes_exactly_what_it_reports(shape, qty):
    before = SHAPES[shape]
    result = deplete_proportional(before, qty)
    removed = before.total - result.level.total
    assert removed + result.remaining == qty
    assert all(q >= 0 for q in bucket_quantities(result.level))


@pytest.mark.parametrize("shape", sorted(SHAPES))
@pytest.mark.parametrize("qty", [1, 3, 5])
def test_targeted_removes_the_whole_quantity_from_the_store_bucket(shape, qty):
    before = SHAPES[shape]
    result = deplete_targeted(before, qty, store_id=1)
    assert result.remaining == 0
    assert before.total - result.level.total == qty
    assert len(bucket_quantities(result.level)) == len(bucket_quantities(before))


def test_proportional_skips_negative_buckets():
    level = StoreStock(buckets=(StoreBucket(1, -1), StoreBucket(2, 4)))
    result = deplete_proportional(level, 3)
    assert bucket_quantities(result.level) == [-1, 1]
    assert result.remaining == 0


def test_proportional_on_unique_stock_stops_at_zero():
    result = deplete_proportional(UniqueStock(stock=2), 5)
    assert result.level == UniqueStock(stock=0)
    assert result.remaining == 3


def test_targeted_hits_only_the_store_bucket():
    result = deplete_targeted(_two_stores(), 2, store_id=2)
    assert bucket_quantities(result.level) == [5, 1]
    assert result.remaining == 0


def test_targeted_can_oversell():
    result = deplete_targeted(_two_stores(b=1), 3, store_id=2)
    assert bucket_quantities(result.level) == [5, -2]
    assert result.remaining == 0


def test_targeted_group_keeps_names_and_members():
    level = GroupStock(groups=(StoreGroup("North", frozenset({1, 2}), 7), StoreGroup("South", frozenset({3}), 4)))
    result = deplete_targeted(level, 3, store_id=1)
    assert result.level.groups[0] == StoreGroup("North", frozenset({1, 2}), 4)
    assert result.level.groups[1] == level.groups[1]


def test_targeted_without_matching_bucket_leaves_stock_untouched():
    level = _two_stores()
    result = deplete_targeted(level, 2, store_id=42)
    assert result.level == level
    assert result.remaining == 2


def test_deplete_dispatches_by_channel():
    physical = deplete(_two_stores(), 2, Channel.PHYSICAL, store_id=2)
    online = deplete(_two_stores(), 2, Channel.ONLINE, store_id=2)
    assert bucket_quantities(physical.level) == [5, 1]
    assert bucket_quantities(online.level) == [3, 3]


def test_deplete_ignores_non_positive_quantity():
    level = _two_stores()
    assert deplete(level, 0, Channel.ONLINE).level == level
