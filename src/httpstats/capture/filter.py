import logging
import re
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from httpstats.errors import ConfigError

logger = logging.getLogger(__name__)

# Apache/nginx $time_local, e.g. "08/Mar/2017:14:12:40 +0900"
_CLF_TIME_FORMAT = "%d/%b/%Y:%H:%M:%S %z"

# Go-style durations: "90s", "5m", "1h30m", "1.5h"
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601/RFC3339 or common-log-format timestamp into an aware datetime.

    Naive timestamps are taken to be UTC.
    """
    value = value.strip()
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        parsed = datetime.strptime(value, _CLF_TIME_FORMAT)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_duration(value: str) -> timedelta:
    value = value.strip()
    if not value or _DURATION_PART.sub("", value):
        raise ValueError(f"invalid duration {value!r}")
    total = timedelta()
    for amount, unit in _DURATION_PART.findall(value):
        total += float(amount) * _DURATION_UNITS[unit]
    return total


def resolve_time_bound(
    absolute: str | None,
    duration: str | None,
    now: datetime,
    name: str,
) -> datetime | None:
    """Resolve one end of the time window; an absolute bound wins over a relative one."""
    if absolute:
        try:
            return parse_timestamp(absolute)
        except ValueError as e:
            raise ConfigError(f"invalid {name} {absolute!r}: {e}") from e
    if duration:
        try:
            return now - parse_duration(duration)
        except ValueError as e:
            raise ConfigError(f"invalid {name}_duration {duration!r}: {e}") from e
    return None


class _UriMatcher:
    """Matches a raw URI against entries that are either exact strings or regular expressions."""

    def __init__(self, entries: Iterable[str], name: str) -> None:
        self.entries = list(entries)
        self._patterns: list[re.Pattern[str]] = []
        for entry in self.entries:
            try:
                self._patterns.append(re.compile(entry))
            except re.error as e:
                raise ConfigError(f"invalid {name} pattern {entry!r}: {e}") from e

    def __bool__(self) -> bool:
        return bool(self.entries)

    def matches(self, uri: str) -> bool:
        return any(
            uri == entry or pattern.search(uri)
            for entry, pattern in zip(self.entries, self._patterns)
        )


class Filter:
    """Admission predicate evaluated on every record before aggregation."""

    def __init__(
        self,
        *,
        includes: Iterable[str] = (),
        excludes: Iterable[str] = (),
        include_statuses: Iterable[str | int] = (),
        exclude_statuses: Iterable[str | int] = (),
        start_time: str | None = None,
        end_time: str | None = None,
        start_time_duration: str | None = None,
        end_time_duration: str | None = None,
        now: datetime | None = None,
    ) -> None:
        now = now or datetime.now(timezone.utc)
        self.start = resolve_time_bound(start_time, start_time_duration, now, "start_time")
        self.end = resolve_time_bound(end_time, end_time_duration, now, "end_time")
        if self.start and self.end and self.start > self.end:
            raise ConfigError(f"start_time {self.start.isoformat()} is after end_time {self.end.isoformat()}")

        self.include_statuses = frozenset(str(s).strip() for s in include_statuses)
        self.exclude_statuses = frozenset(str(s).strip() for s in exclude_statuses)
        self._includes = _UriMatcher(includes, "include")
        self._excludes = _UriMatcher(excludes, "exclude")

    @classmethod
    def from_options(cls, options, now: datetime | None = None) -> "Filter":
        return cls(
            includes=options.includes,
            excludes=options.excludes,
            include_statuses=options.include_statuses,
            exclude_statuses=options.exclude_statuses,
            start_time=options.start_time,
            end_time=options.end_time,
            start_time_duration=options.start_time_duration,
            end_time_duration=options.end_time_duration,
            now=now,
        )

    @property
    def has_time_window(self) -> bool:
        return self.start is not None or self.end is not None

    def admit(self, uri: str, status: int | str, timestamp: str | None) -> bool:
        if self.has_time_window and not self._admit_time(timestamp):
            return False

        status_str = str(status)
        if self.include_statuses and status_str not in self.include_statuses:
            return False
        if self.exclude_statuses and status_str in self.exclude_statuses:
            return False

        if self._includes and not self._includes.matches(uri):
            return False
        if self._excludes and self._excludes.matches(uri):
            return False

        return True

    def _admit_time(self, timestamp: str | None) -> bool:
        if not timestamp:
            logger.debug("skipping record without timestamp")
            return False
        try:
            ts = parse_timestamp(timestamp)
        except ValueError:
            logger.debug("skipping record with unparseable timestamp %r", timestamp)
            return False

        if self.start is not None and ts < self.start:
            return False
        if self.end is not None and ts > self.end:
            return False
        return True
