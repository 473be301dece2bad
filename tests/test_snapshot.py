import io

import pytest

from httpstats.capture.aggregator import HTTPStats
from httpstats.capture.metrics import PercentileMode
from httpstats.capture.record import FIELD_NAMES
from httpstats.errors import SnapshotError
from httpstats.storage.snapshot import dump_stats, load_stats


def _populated() -> HTTPStats:
    stats = HTTPStats(
        request_body_size_percentile=True,
        response_body_size_percentile=True,
        percentile_mode=PercentileMode.SORTED,
    )
    samples = [
        ("/a", "GET", 200, 0.3, 0, 120),
        ("/a", "GET", 500, 0.0, 0, 80),
        ("/a", "GET", 404, 1.2, 10, 0),
        ("/b", "POST", 201, 0.5, 512, 64),
        ("/b", "POST", 700, 0.7, 256, 32),
    ]
    for uri, method, status, rt, req, res in samples:
        stats.set(uri, method, status, rt, req, res)
    return stats


class TestDumpLoad:
    def test_round_trip_preserves_derived_values(self):
        original = _populated().stats
        buf = io.StringIO()
        dump_stats(original, buf)
        buf.seek(0)
        restored = load_stats(buf)

        assert len(restored) == len(original)
        for before, after in zip(original, restored):
            for name in FIELD_NAMES:
                assert after.get(name) == pytest.approx(before.get(name)), name
            assert after.status_total() == before.status_total()
            assert after.response_time.mode is PercentileMode.SORTED

    def test_dump_keeps_raw_counters(self):
        buf = io.StringIO()
        dump_stats(_populated().stats, buf)
        text = buf.getvalue()
        assert "status5xx" in text
        assert "samples" in text
        assert "has_value" in text

    def test_empty_document(self):
        assert load_stats(io.StringIO("")) == []

    def test_invalid_yaml(self):
        with pytest.raises(SnapshotError):
            load_stats(io.StringIO("- [unclosed"))

    def test_not_a_list(self):
        with pytest.raises(SnapshotError):
            load_stats(io.StringIO("uri: /a\n"))

    def test_missing_fields(self):
        with pytest.raises(SnapshotError):
            load_stats(io.StringIO("- uri: /a\n  method: GET\n"))
