import pytest

from httpstats.capture.record import FIELD_NAMES, RecordAggregate, classify_status


def _agg(**kwargs) -> RecordAggregate:
    return RecordAggregate.create("/api/orders", "GET", **kwargs)


class TestClassifyStatus:
    @pytest.mark.parametrize(
        "status,expected",
        [
            (100, "status1xx"),
            (199, "status1xx"),
            (200, "status2xx"),
            (302, "status3xx"),
            (404, "status4xx"),
            (599, "status5xx"),
            (99, None),
            (600, None),
        ],
    )
    def test_boundaries(self, status, expected):
        assert classify_status(status) == expected


class TestRecordAggregate:
    def test_counts_every_update(self):
        agg = _agg()
        for status in (101, 200, 302, 404, 503, 99, 600):
            agg.set(status, 0.1, 0, 0)
        assert agg.count == 7
        assert agg.status_total() == 5
        assert (agg.status1xx, agg.status2xx, agg.status3xx, agg.status4xx, agg.status5xx) == (1, 1, 1, 1, 1)

    def test_forwards_each_value_to_its_own_series(self):
        agg = _agg()
        agg.set(200, 0.5, 10, 20)
        agg.set(200, 1.5, 30, 40)
        assert agg.response_time.sum == pytest.approx(2.0)
        assert agg.request_body_size.sum == pytest.approx(40)
        assert agg.response_body_size.sum == pytest.approx(60)
        assert agg.get("MaxResponseBodySize") == 40
        assert agg.get("MinRequestBodySize") == 10

    def test_derived_getters(self):
        agg = _agg()
        for v in (1.0, 2.0, 3.0, 4.0):
            agg.set(200, v, 0, 0)
        assert agg.get("Count") == 4
        assert agg.get("Uri") == "/api/orders"
        assert agg.get("Method") == "GET"
        assert agg.get("AvgResponseTime") == pytest.approx(2.5)
        assert agg.get("P50ResponseTime") == 2.0
        assert agg.get("SumResponseTime") == pytest.approx(10.0)

    def test_body_percentiles_disabled_by_default(self):
        agg = _agg()
        agg.set(200, 0.1, 10, 20)
        assert agg.get("P99ResponseBodySize") == 0.0
        assert agg.get("StddevRequestBodySize") == 0.0

    def test_getters_do_not_mutate(self):
        agg = _agg()
        agg.set(200, 0.1, 1, 2)
        for name in FIELD_NAMES:
            agg.get(name)
        assert agg.count == 1
        assert agg.response_time.samples == [0.1]

    def test_field_identifiers(self):
        assert len(FIELD_NAMES) == 30
        assert "StddevResponseBodySize" in FIELD_NAMES
