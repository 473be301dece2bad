from collections.abc import Callable
from dataclasses import dataclass, field

from httpstats.capture.metrics import MetricAccumulator, PercentileMode

# Inclusive status ranges, one counter per class
STATUS_CLASSES: tuple[tuple[str, int, int], ...] = (
    ("status1xx", 100, 199),
    ("status2xx", 200, 299),
    ("status3xx", 300, 399),
    ("status4xx", 400, 499),
    ("status5xx", 500, 599),
)

# Output field identifiers: series name -> accumulator attribute
SERIES = {
    "ResponseTime": "response_time",
    "RequestBodySize": "request_body_size",
    "ResponseBodySize": "response_body_size",
}

STATS = ("Max", "Min", "Sum", "Avg", "P1", "P50", "P90", "P99", "Stddev")

_PERCENTILES = {"P1": 1, "P50": 50, "P90": 90, "P99": 99}


def classify_status(status: int) -> str | None:
    """Return the status-class counter name for ``status``, or None when it fits no class."""
    for name, low, high in STATUS_CLASSES:
        if low <= status <= high:
            return name
    return None


@dataclass
class RecordAggregate:
    """Accumulated statistics for one (method, normalized URI) key."""

    uri: str
    method: str
    count: int = 0
    status1xx: int = 0
    status2xx: int = 0
    status3xx: int = 0
    status4xx: int = 0
    status5xx: int = 0
    response_time: MetricAccumulator = field(default_factory=MetricAccumulator)
    request_body_size: MetricAccumulator = field(default_factory=MetricAccumulator)
    response_body_size: MetricAccumulator = field(default_factory=MetricAccumulator)

    @classmethod
    def create(
        cls,
        uri: str,
        method: str,
        *,
        response_time_percentile: bool = True,
        request_body_size_percentile: bool = False,
        response_body_size_percentile: bool = False,
        mode: PercentileMode = PercentileMode.ARRIVAL,
    ) -> "RecordAggregate":
        return cls(
            uri=uri,
            method=method,
            response_time=MetricAccumulator(retain_samples=response_time_percentile, mode=mode),
            request_body_size=MetricAccumulator(retain_samples=request_body_size_percentile, mode=mode),
            response_body_size=MetricAccumulator(retain_samples=response_body_size_percentile, mode=mode),
        )

    def set(
        self,
        status: int,
        response_time: float,
        request_body_size: float,
        response_body_size: float,
    ) -> None:
        self.count += 1
        bucket = classify_status(status)
        if bucket is not None:
            setattr(self, bucket, getattr(self, bucket) + 1)
        self.response_time.set(response_time)
        self.request_body_size.set(request_body_size)
        self.response_body_size.set(response_body_size)

    def status_total(self) -> int:
        return sum(getattr(self, name) for name, _, _ in STATUS_CLASSES)

    def metric(self, stat: str, series: str) -> float:
        """Derived value such as ``metric("P90", "ResponseTime")``."""
        acc: MetricAccumulator = getattr(self, SERIES[series])
        if stat == "Max":
            return acc.max
        if stat == "Min":
            return acc.min
        if stat == "Sum":
            return acc.sum
        if stat == "Avg":
            return acc.avg(self.count)
        if stat == "Stddev":
            return acc.stddev(self.count)
        return acc.percentile(_PERCENTILES[stat], self.count)

    def get(self, field_name: str) -> int | float | str:
        """Look up a projection by its output identifier, e.g. ``"AvgResponseTime"``."""
        return FIELD_GETTERS[field_name](self)


def _metric_getter(stat: str, series: str) -> Callable[[RecordAggregate], float]:
    return lambda agg: agg.metric(stat, series)


FIELD_GETTERS: dict[str, Callable[[RecordAggregate], int | float | str]] = {
    "Count": lambda agg: agg.count,
    "Uri": lambda agg: agg.uri,
    "Method": lambda agg: agg.method,
}
for _series in SERIES:
    for _stat in STATS:
        FIELD_GETTERS[f"{_stat}{_series}"] = _metric_getter(_stat, _series)

FIELD_NAMES: tuple[str, ...] = tuple(FIELD_GETTERS)
