import pytest

from lane_race.core.errors import InvalidScoreTupleError, TableFormatError
from lane_race.simulation.indexer import iter_sorted_tuples, rank, tuple_count
from lane_race.simulation.table import (
    DEFAULT_MAX_SHARD_BYTES,
    ProbabilityTable,
    TableRouter,
    pack_entry,
    sort_with_permutation,
    unpack_entry,
)


def synthetic_rows(lane_count: int) -> list[tuple[int, ...]]:
    """Distinct, recognisable values: entry i position p holds 10*i + p."""
    return [
        tuple(10 * i + p for p in range(lane_count))
        for i in range(tuple_count(lane_count))
    ]


@pytest.fixture
def table() -> ProbabilityTable:
    return ProbabilityTable.from_rows(synthetic_rows(4), 4)


def test_pack_entry_is_big_endian():
    assert pack_entry([1, 10_000]) == b"\x00\x01\x27\x10"
    assert unpack_entry(b"\xff\x00\x01\x27\x10", 1, 2) == (1, 10_000)


@pytest.mark.parametrize("value", [-1, 10_001])
def test_pack_entry_rejects_out_of_range(value):
    with pytest.raises(TableFormatError):
        pack_entry([value])


def test_table_size_must_match_tuple_count():
    with pytest.raises(TableFormatError):
        ProbabilityTable(b"\x00" * 8, 4)


def test_table_entries(table):
    assert len(table) == 715
    assert table.entry(0) == (0, 1, 2, 3)
    assert table.entry(714) == (7140, 7141, 7142, 7143)
    assert table.get_sorted((2, 3, 4, 5)) == (2740, 2741, 2742, 2743)


@pytest.mark.parametrize("index", [-1, 715])
def test_entry_out_of_range(table, index):
    with pytest.raises(IndexError):
        table.entry(index)


def test_get_sorted_rejects_unsorted(table):
    with pytest.raises(InvalidScoreTupleError):
        table.get_sorted((5, 3, 2, 1))


def test_sort_with_permutation_keeps_lane_order_on_ties():
    assert sort_with_permutation([5, 1, 5, 3]) == ((1, 3, 5, 5), [1, 3, 0, 2])


def test_lookup_unsorted_lineup(table):
    base = 10 * rank((1, 3, 5, 5), 4)
    # positions: lane 1 -> 0, lane 3 -> 1, lane 0 -> 2, lane 2 -> 3
    assert table.lookup([5, 1, 5, 3]) == (base + 2, base, base + 3, base + 1)


def test_lookup_sorted_lineup_is_identity(table):
    assert table.lookup([1, 2, 3, 4]) == table.get_sorted((1, 2, 3, 4))


def test_default_capacity():
    assert ProbabilityTable.from_rows(synthetic_rows(4), 4).shard_capacity(
        DEFAULT_MAX_SHARD_BYTES,
    ) == 850
    six = ProbabilityTable.from_rows([(1,) * 6] * tuple_count(6), 6)
    assert six.shard_capacity(DEFAULT_MAX_SHARD_BYTES) == 566
    assert len(six.split()) == 9


def test_capacity_must_hold_one_entry(table):
    with pytest.raises(ValueError):
        table.shard_capacity(7)


def test_split_layout(table):
    shards = table.split(800)

    assert [s.start for s in shards] == list(range(0, 715, 100))
    assert [len(s) for s in shards] == [100] * 7 + [15]
    assert shards[-1].end == 715


@pytest.mark.parametrize("max_shard_bytes", [8, 800, 5_000, DEFAULT_MAX_SHARD_BYTES])
def test_router_matches_table(table, max_shard_bytes):
    router = TableRouter.from_table(table, max_shard_bytes)

    for index in range(len(table)):
        assert router.entry(index) == table.entry(index)
    for scores in iter_sorted_tuples(4):
        assert router.get_sorted(scores) == table.get_sorted(scores)
    assert router.lookup([9, 2, 2, 7]) == table.lookup([9, 2, 2, 7])


def test_router_locate(table):
    router = TableRouter.from_table(table, 800)

    assert router.locate(0) == (0, 0)
    assert router.locate(99) == (0, 99)
    assert router.locate(100) == (1, 0)
    assert router.locate(714) == (7, 14)
    with pytest.raises(IndexError):
        router.locate(715)


def test_router_rejects_missing_shard(table):
    shards = table.split(800)

    with pytest.raises(TableFormatError):
        TableRouter(shards[:-1], 100, 4)


def test_router_rejects_out_of_order_shards(table):
    shards = table.split(800)
    shards[1], shards[2] = shards[2], shards[1]

    with pytest.raises(TableFormatError):
        TableRouter(shards, 100, 4)


def test_router_rejects_wrong_capacity(table):
    with pytest.raises(TableFormatError):
        TableRouter(table.split(800), 50, 4)
