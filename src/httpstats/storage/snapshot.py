import logging
from typing import Any, TextIO

import yaml

from httpstats.capture.metrics import MetricAccumulator, PercentileMode
from httpstats.capture.record import SERIES, STATUS_CLASSES, RecordAggregate
from httpstats.errors import ConfigError, SnapshotError

logger = logging.getLogger(__name__)

_STATUS_KEYS = tuple(name for name, _, _ in STATUS_CLASSES)


def _accumulator_to_dict(acc: MetricAccumulator) -> dict[str, Any]:
    return {
        "max": acc.max,
        "min": acc.min,
        "sum": acc.sum,
        "has_value": acc.has_value,
        "retain_samples": acc.retain_samples,
        "mode": acc.mode.value,
        "samples": list(acc.samples),
    }


def _accumulator_from_dict(data: dict[str, Any]) -> MetricAccumulator:
    return MetricAccumulator(
        retain_samples=bool(data.get("retain_samples", False)),
        mode=PercentileMode.parse(data.get("mode", PercentileMode.ARRIVAL.value)),
        max=float(data["max"]),
        min=float(data["min"]),
        sum=float(data["sum"]),
        has_value=bool(data.get("has_value", True)),
        samples=[float(v) for v in data.get("samples") or []],
    )


def aggregate_to_dict(agg: RecordAggregate) -> dict[str, Any]:
    """Serialize every raw counter of an aggregate, not just its derived values."""
    item: dict[str, Any] = {"uri": agg.uri, "method": agg.method, "count": agg.count}
    for key in _STATUS_KEYS:
        item[key] = getattr(agg, key)
    for attr in SERIES.values():
        item[attr] = _accumulator_to_dict(getattr(agg, attr))
    return item


def aggregate_from_dict(item: dict[str, Any]) -> RecordAggregate:
    return RecordAggregate(
        uri=str(item["uri"]),
        method=str(item["method"]),
        count=int(item["count"]),
        **{key: int(item.get(key, 0)) for key in _STATUS_KEYS},
        **{attr: _accumulator_from_dict(item[attr]) for attr in SERIES.values()},
    )


def dump_stats(stats: list[RecordAggregate], stream: TextIO) -> None:
    yaml.safe_dump(
        [aggregate_to_dict(agg) for agg in stats],
        stream,
        allow_unicode=True,
        sort_keys=False,
    )
    logger.info("dumped %d aggregate(s)", len(stats))


def load_stats(stream: TextIO) -> list[RecordAggregate]:
    """Restore aggregates written by ``dump_stats``."""
    try:
        raw = yaml.safe_load(stream)
    except yaml.YAMLError as e:
        raise SnapshotError(f"invalid YAML in snapshot: {e}") from e

    if raw is None:
        return []
    if not isinstance(raw, list):
        raise SnapshotError("snapshot must contain a list of aggregates")

    stats: list[RecordAggregate] = []
    for position, item in enumerate(raw):
        if not isinstance(item, dict):
            raise SnapshotError(f"snapshot entry {position} is not a mapping")
        try:
            stats.append(aggregate_from_dict(item))
        except (KeyError, TypeError, ValueError, ConfigError) as e:
            raise SnapshotError(f"invalid snapshot entry {position}: {e}") from e

    logger.info("loaded %d aggregate(s)", len(stats))
    return stats
