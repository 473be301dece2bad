from httpstats.capture.record import FIELD_GETTERS, RecordAggregate
from httpstats.errors import UnknownSortFieldError

# Short names accepted on the command line and in config files
SORT_ALIASES = {
    "count": "Count",
    "cnt": "Count",
    "uri": "Uri",
    "method": "Method",
    "max": "MaxResponseTime",
    "min": "MinResponseTime",
    "sum": "SumResponseTime",
    "avg": "AvgResponseTime",
    "p1": "P1ResponseTime",
    "p50": "P50ResponseTime",
    "p90": "P90ResponseTime",
    "p99": "P99ResponseTime",
    "stddev": "StddevResponseTime",
    "max_body": "MaxResponseBodySize",
    "min_body": "MinResponseBodySize",
    "sum_body": "SumResponseBodySize",
    "avg_body": "AvgResponseBodySize",
}


def resolve_sort_field(name: str) -> str:
    """Map a field identifier or short alias to its canonical identifier."""
    if name in FIELD_GETTERS:
        return name
    canonical = SORT_ALIASES.get(name.lower())
    if canonical is None:
        raise UnknownSortFieldError(name)
    return canonical


def sort_stats(stats: list[RecordAggregate], field_name: str, reverse: bool = False) -> None:
    """Order ``stats`` in place by one of the named projections."""
    getter = FIELD_GETTERS[resolve_sort_field(field_name)]
    stats.sort(key=getter, reverse=reverse)
