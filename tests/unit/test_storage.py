"""Tests for the measurement store backends and aggregation math."""

from __future__ import annotations

import threading

import pytest

from burnwatch.errors import StorageError
from burnwatch.storage import (
    AggregationType,
    DataPoint,
    InMemoryMeasurementStore,
    QueryFilter,
    SQLiteMeasurementStore,
    percentile,
)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryMeasurementStore()
    else:
        s = SQLiteMeasurementStore(tmp_path / "sli.db")
        yield s
        s.close()


def _point(value, ts, sli_id="sli-1", **tags):
    return DataPoint(sli_id=sli_id, value=value, timestamp=ts, tags=tags)


# ========== Percentile ==========


class TestPercentile:
    def test_median_interpolates(self):
        assert percentile([1, 2, 3, 4], 0.5) == 2.5

    def test_max_rank(self):
        assert percentile([4, 1, 3, 2], 1.0) == 4

    def test_min_rank(self):
        assert percentile([4, 1, 3, 2], 0.0) == 1

    def test_p90(self):
        # index 0.9 * 9 = 8.1 between 9 and 10
        assert percentile(list(range(1, 11)), 0.9) == pytest.approx(9.1)

    def test_single_value(self):
        assert percentile([7.0], 0.99) == 7.0

    def test_empty(self):
        assert percentile([], 0.5) == 0.0


# ========== Query ==========


class TestQuery:
    def test_ordered_by_timestamp(self, store):
        for ts in (30.0, 10.0, 20.0):
            store.store(_point(ts, ts))
        result = store.query(QueryFilter())
        assert [p.timestamp for p in result] == [10.0, 20.0, 30.0]

    def test_equal_timestamps_keep_insertion_order(self, store):
        store.store(_point(1.0, 5.0))
        store.store(_point(2.0, 5.0))
        assert [p.value for p in store.query(QueryFilter())] == [1.0, 2.0]

    def test_filter_by_sli_ids(self, store):
        store.store(_point(1.0, 1.0, sli_id="a"))
        store.store(_point(2.0, 2.0, sli_id="b"))
        store.store(_point(3.0, 3.0, sli_id="c"))
        result = store.query(QueryFilter(sli_ids=["a", "c"]))
        assert [p.sli_id for p in result] == ["a", "c"]

    def test_time_range_is_inclusive(self, store):
        for ts in (1.0, 2.0, 3.0, 4.0):
            store.store(_point(ts, ts))
        result = store.query(QueryFilter(start_time=2.0, end_time=3.0))
        assert [p.timestamp for p in result] == [2.0, 3.0]

    def test_tags_must_all_match(self, store):
        store.store(_point(1.0, 1.0, env="prod", region="eu"))
        store.store(_point(2.0, 2.0, env="prod", region="us"))
        store.store(_point(3.0, 3.0, env="dev", region="eu"))
        result = store.query(QueryFilter(tags={"env": "prod", "region": "eu"}))
        assert [p.value for p in result] == [1.0]

    def test_limit_applies_after_sorting(self, store):
        for ts in (5.0, 1.0, 3.0, 2.0):
            store.store(_point(ts, ts))
        result = store.query(QueryFilter(limit=2))
        assert [p.timestamp for p in result] == [1.0, 2.0]

    def test_limit_with_tag_filter(self, store):
        for ts in (1.0, 2.0, 3.0, 4.0):
            store.store(_point(ts, ts, env="prod" if ts % 2 == 0 else "dev"))
        result = store.query(QueryFilter(tags={"env": "prod"}, limit=1))
        assert [p.timestamp for p in result] == [2.0]

    def test_tags_and_metadata_round_trip(self, store):
        store.store(DataPoint(
            sli_id="sli-1",
            value=99.5,
            timestamp=10.0,
            tags={"service": "api"},
            metadata={"sli_name": "api", "nested": {"codes": [200, 503]}},
        ))
        (p,) = store.query(QueryFilter())
        assert p.tags == {"service": "api"}
        assert p.metadata == {"sli_name": "api", "nested": {"codes": [200, 503]}}

    @pytest.mark.parametrize("metadata", [
        {"codes": (200, 503)},
        {1: "one"},
        {"nested": {"seen": {"a"}}},
        {"obj": object()},
    ])
    def test_non_json_metadata_rejected(self, store, metadata):
        with pytest.raises(StorageError):
            store.store(DataPoint(sli_id="sli-1", value=1.0, timestamp=1.0, metadata=metadata))
        assert store.query(QueryFilter()) == []


class TestInMemoryIsolation:
    def test_caller_mutation_does_not_change_history(self):
        store = InMemoryMeasurementStore()
        tags = {"env": "prod"}
        metadata = {"labels": ["a"]}
        store.store(DataPoint(sli_id="x", value=1.0, timestamp=1.0, tags=tags, metadata=metadata))
        tags["env"] = "dev"
        metadata["labels"].append("b")
        (p,) = store.query(QueryFilter())
        assert p.tags == {"env": "prod"}
        assert p.metadata == {"labels": ["a"]}

    def test_query_results_are_copies(self):
        store = InMemoryMeasurementStore()
        store.store(DataPoint(sli_id="x", value=1.0, timestamp=1.0, tags={"env": "prod"}))
        store.query(QueryFilter())[0].tags["env"] = "dev"
        assert store.query(QueryFilter())[0].tags == {"env": "prod"}

    def test_concurrent_writers(self):
        store = InMemoryMeasurementStore()

        def write(n):
            for i in range(100):
                store.store(_point(float(i), float(i), sli_id=f"s{n}"))

        threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store) == 800


# ========== Aggregate ==========


class TestAggregate:
    @pytest.mark.parametrize("kind", list(AggregationType))
    def test_empty_set_is_zero(self, store, kind):
        agg = store.aggregate(QueryFilter(sli_ids=["missing"]), kind)
        assert agg.value == 0
        assert agg.count == 0

    @pytest.mark.parametrize(
        "kind,expected",
        [
            (AggregationType.AVERAGE, 2.5),
            (AggregationType.SUM, 10.0),
            (AggregationType.MIN, 1.0),
            (AggregationType.MAX, 4.0),
            (AggregationType.P50, 2.5),
            (AggregationType.COUNT, 4.0),
        ],
    )
    def test_kinds(self, store, kind, expected):
        for i, v in enumerate([3.0, 1.0, 4.0, 2.0]):
            store.store(_point(v, float(i)))
        agg = store.aggregate(QueryFilter(), kind)
        assert agg.value == pytest.approx(expected)
        assert agg.count == 4

    def test_accepts_string_kind(self, store):
        store.store(_point(5.0, 1.0))
        assert store.aggregate(QueryFilter(), "max").value == 5.0

    def test_time_range_defaults_to_observed(self, store):
        for ts in (10.0, 20.0, 30.0):
            store.store(_point(1.0, ts))
        agg = store.aggregate(QueryFilter(), AggregationType.AVERAGE)
        assert (agg.start_time, agg.end_time) == (10.0, 30.0)

    def test_time_range_uses_filter_bounds(self, store):
        for ts in (10.0, 20.0, 30.0):
            store.store(_point(1.0, ts))
        agg = store.aggregate(QueryFilter(start_time=5.0), AggregationType.AVERAGE)
        assert (agg.start_time, agg.end_time) == (5.0, 30.0)

    def test_group_by_breakdown(self, store):
        store.store(_point(100.0, 1.0, region="eu"))
        store.store(_point(0.0, 2.0, region="eu"))
        store.store(_point(100.0, 3.0, region="us"))
        store.store(_point(50.0, 4.0))
        agg = store.aggregate(QueryFilter(), AggregationType.AVERAGE, group_by="region")
        assert agg.count == 4
        assert agg.value == pytest.approx(62.5)
        assert set(agg.breakdown) == {"eu", "us"}
        assert agg.breakdown["eu"].value == 50.0
        assert agg.breakdown["eu"].count == 2
        assert agg.breakdown["us"].value == 100.0
        assert "breakdown" in agg.to_dict()

    def test_prune(self, store):
        for ts in (1.0, 2.0, 3.0):
            store.store(_point(ts, ts))
        assert store.prune(older_than=2.5) == 2
        assert [p.timestamp for p in store.query(QueryFilter())] == [3.0]


class TestBackendParity:
    @pytest.mark.parametrize("kind", list(AggregationType))
    def test_identical_aggregations(self, tmp_path, kind):
        memory = InMemoryMeasurementStore()
        sqlite = SQLiteMeasurementStore(tmp_path / "parity.db")
        values = [99.0, 100.0, 0.0, 100.0, 87.5, 100.0, 42.25, 100.0, 99.9, 0.1]
        for i, v in enumerate(values):
            for s in (memory, sqlite):
                s.store(_point(v, 1000.0 + i, sli_id="a" if i % 3 else "b", env="prod"))

        for f in (
            QueryFilter(),
            QueryFilter(sli_ids=["a"]),
            QueryFilter(start_time=1002.0, end_time=1007.0),
            QueryFilter(tags={"env": "prod"}, limit=5),
        ):
            assert memory.aggregate(f, kind).to_dict() == sqlite.aggregate(f, kind).to_dict()
        sqlite.close()

    def test_query_results_match(self, tmp_path):
        points = [
            DataPoint(
                sli_id="sli-1",
                value=float(i),
                timestamp=float(i),
                tags={"env": "prod"},
                metadata={"attempt": i, "ok": i % 2 == 0, "codes": [200, None], "extra": {"x": 1.5}},
            )
            for i in range(3)
        ]
        memory = InMemoryMeasurementStore()
        with SQLiteMeasurementStore(tmp_path / "parity.db") as durable:
            for p in points:
                memory.store(p)
                durable.store(p)
            assert durable.query(QueryFilter()) == memory.query(QueryFilter()) == points


class TestSQLiteStore:
    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "durable.db"
        with SQLiteMeasurementStore(path) as s:
            s.store(_point(1.0, 1.0, env="prod"))
        with SQLiteMeasurementStore(path) as s:
            (p,) = s.query(QueryFilter())
            assert p.tags == {"env": "prod"}

    def test_unserialisable_metadata(self):
        with SQLiteMeasurementStore() as s:
            with pytest.raises(StorageError):
                s.store(DataPoint(sli_id="x", value=1.0, timestamp=1.0, metadata={"obj": object()}))

    def test_use_after_close(self):
        s = SQLiteMeasurementStore()
        s.close()
        with pytest.raises(StorageError):
            s.query(QueryFilter())

    def test_concurrent_writers(self):
        with SQLiteMeasurementStore() as s:

            def write(n):
                for i in range(25):
                    s.store(_point(float(i), float(i), sli_id=f"s{n}"))

            threads = [threading.Thread(target=write, args=(n,)) for n in range(4)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
            assert s.aggregate(QueryFilter(), AggregationType.COUNT).value == 100
