from datetime import datetime, timezone

import pytest

from httpstats.capture.filter import Filter, parse_duration, parse_timestamp
from httpstats.errors import ConfigError

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestParseTimestamp:
    def test_iso(self):
        assert parse_timestamp("2026-01-01T12:00:00Z") == NOW

    def test_common_log_format(self):
        assert parse_timestamp("01/Jan/2026:21:00:00 +0900") == NOW

    def test_naive_is_utc(self):
        assert parse_timestamp("2026-01-01 12:00:00") == NOW

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestParseDuration:
    def test_compound(self):
        assert parse_duration("1h30m").total_seconds() == 5400

    def test_fractional(self):
        assert parse_duration("1.5s").total_seconds() == 1.5

    @pytest.mark.parametrize("value", ["", "5", "5x", "m5"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestStatusRules:
    def test_exclude_status(self):
        f = Filter(exclude_statuses=["404"])
        assert not f.admit("/a", 404, None)
        assert f.admit("/a", 200, None)

    def test_no_rules_admit_everything(self):
        assert Filter().admit("/a", 404, None)

    def test_include_status(self):
        f = Filter(include_statuses=["200", "201"])
        assert f.admit("/a", 201, None)
        assert not f.admit("/a", 500, None)

    def test_include_and_exclude_compose(self):
        f = Filter(include_statuses=["200", "404"], exclude_statuses=["404"])
        assert f.admit("/a", 200, None)
        assert not f.admit("/a", 404, None)


class TestUriRules:
    def test_include_pattern(self):
        f = Filter(includes=[r"^/api/"])
        assert f.admit("/api/users", 200, None)
        assert not f.admit("/health", 200, None)

    def test_exclude_exact(self):
        f = Filter(excludes=["/health"])
        assert not f.admit("/health", 200, None)
        assert f.admit("/api", 200, None)

    def test_matches_raw_uri_including_query(self):
        f = Filter(excludes=[r"debug=1"])
        assert not f.admit("/api?debug=1", 200, None)

    def test_invalid_pattern(self):
        with pytest.raises(ConfigError):
            Filter(includes=["("])

    def test_uri_and_status_compose(self):
        f = Filter(includes=["/api"], exclude_statuses=["500"])
        assert not f.admit("/api", 500, None)
        assert not f.admit("/other", 200, None)
        assert f.admit("/api", 200, None)


class TestTimeWindow:
    def test_rejects_before_start(self):
        f = Filter(start_time="2026-01-01T12:00:00Z")
        assert not f.admit("/a", 200, "2026-01-01T11:59:59Z")
        assert f.admit("/a", 200, "2026-01-01T12:00:00Z")

    def test_rejects_after_end(self):
        f = Filter(end_time="2026-01-01T12:00:00Z")
        assert not f.admit("/a", 200, "2026-01-01T12:00:01Z")
        assert f.admit("/a", 200, "2026-01-01T12:00:00Z")

    def test_before_start_wins_over_other_rules(self):
        f = Filter(start_time="2026-01-01T12:00:00Z", include_statuses=["200"], includes=["/a"])
        assert not f.admit("/a", 200, "2025-12-31T00:00:00Z")

    def test_relative_durations(self):
        f = Filter(start_time_duration="10m", end_time_duration="5m", now=NOW)
        assert not f.admit("/a", 200, "2026-01-01T11:49:00Z")
        assert f.admit("/a", 200, "2026-01-01T11:52:00Z")
        assert not f.admit("/a", 200, "2026-01-01T11:56:00Z")

    def test_absolute_bound_takes_precedence(self):
        f = Filter(start_time="2026-01-01T00:00:00Z", start_time_duration="1m", now=NOW)
        assert f.start == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_unparseable_timestamp_is_skipped(self):
        f = Filter(start_time="2026-01-01T00:00:00Z")
        assert not f.admit("/a", 200, "not-a-time")
        assert not f.admit("/a", 200, "")

    def test_timestamp_ignored_without_window(self):
        assert Filter().admit("/a", 200, "not-a-time")

    def test_invalid_bound(self):
        with pytest.raises(ConfigError):
            Filter(start_time="tomorrow")
        with pytest.raises(ConfigError):
            Filter(end_time_duration="soon")

    def test_inverted_window(self):
        with pytest.raises(ConfigError):
            Filter(start_time="2026-01-02T00:00:00Z", end_time="2026-01-01T00:00:00Z")
