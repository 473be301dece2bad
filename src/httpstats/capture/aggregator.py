import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from httpstats.capture.filter import Filter
from httpstats.capture.index import KeyIndex
from httpstats.capture.metrics import PercentileMode
from httpstats.capture.normalizer import UriNormalizer
from httpstats.capture.record import RecordAggregate
from httpstats.capture.sorter import sort_stats
from httpstats.errors import RecordParseError, SkipRecord, SnapshotError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Labels:
    """Field labels used to pick semantic values out of a parsed record."""

    uri: str = "uri"
    method: str = "method"
    time: str = "time"
    apptime: str = "apptime"
    reqtime: str = "reqtime"
    size: str = "size"
    reqsize: str = "reqsize"
    status: str = "status"


@dataclass(frozen=True)
class AccessRecord:
    uri: str
    method: str
    timestamp: str
    status: int
    response_time: float
    request_body_size: float
    response_body_size: float


@dataclass
class IngestResult:
    admitted: int = 0
    skipped: int = 0


def _to_float(value: str | None, label: str) -> float:
    if value is None:
        raise RecordParseError(f"missing field {label!r}")
    try:
        return float(value)
    except ValueError as e:
        raise RecordParseError(f"invalid number in {label!r}: {value!r}") from e


def extract_record(line: Mapping[str, str], labels: Labels = Labels()) -> AccessRecord:
    """Pull typed values out of one label->string mapping.

    Response time comes from the application time label and falls back to the
    request time label. A missing request body size counts as 0.
    """
    try:
        response_time = _to_float(line.get(labels.apptime), labels.apptime)
    except RecordParseError:
        response_time = _to_float(line.get(labels.reqtime), labels.reqtime)

    response_body_size = _to_float(line.get(labels.size), labels.size)

    raw_reqsize = line.get(labels.reqsize)
    request_body_size = 0.0 if raw_reqsize in (None, "", "-") else _to_float(raw_reqsize, labels.reqsize)

    raw_status = line.get(labels.status)
    try:
        status = int(raw_status)
    except (TypeError, ValueError) as e:
        raise RecordParseError(f"invalid status in {labels.status!r}: {raw_status!r}") from e

    return AccessRecord(
        uri=line.get(labels.uri, ""),
        method=line.get(labels.method, ""),
        timestamp=line.get(labels.time, ""),
        status=status,
        response_time=response_time,
        request_body_size=request_body_size,
        response_body_size=response_body_size,
    )


class HTTPStats:
    """Collection of per-endpoint aggregates, keyed by (method, normalized URI)."""

    def __init__(
        self,
        *,
        response_time_percentile: bool = True,
        request_body_size_percentile: bool = False,
        response_body_size_percentile: bool = False,
        percentile_mode: PercentileMode = PercentileMode.ARRIVAL,
        normalizer: UriNormalizer | None = None,
        record_filter: Filter | None = None,
    ) -> None:
        self.response_time_percentile = response_time_percentile
        self.request_body_size_percentile = request_body_size_percentile
        self.response_body_size_percentile = response_body_size_percentile
        self.percentile_mode = percentile_mode
        self.normalizer = normalizer or UriNormalizer()
        self.filter = record_filter or Filter()
        self._index = KeyIndex()
        self._stats: list[RecordAggregate] = []

    @property
    def stats(self) -> list[RecordAggregate]:
        return self._stats

    def count_uris(self) -> int:
        return len(self._index)

    def set(
        self,
        uri: str,
        method: str,
        status: int,
        response_time: float,
        request_body_size: float,
        response_body_size: float,
    ) -> RecordAggregate:
        """Fold one admitted request into the aggregate for its key."""
        normalized = self.normalizer(uri)

        def create(slot: int) -> None:
            self._stats.append(
                RecordAggregate.create(
                    normalized,
                    method,
                    response_time_percentile=self.response_time_percentile,
                    request_body_size_percentile=self.request_body_size_percentile,
                    response_body_size_percentile=self.response_body_size_percentile,
                    mode=self.percentile_mode,
                )
            )

        slot = self._index.resolve((method, normalized), on_create=create)
        agg = self._stats[slot]
        agg.set(status, response_time, request_body_size, response_body_size)
        return agg

    def ingest(self, lines: Iterable[Mapping[str, str]], labels: Labels = Labels()) -> IngestResult:
        """Filter, normalize and aggregate every record; malformed or rejected records are skipped."""
        result = IngestResult()
        for line in lines:
            try:
                record = extract_record(line, labels)
                if not self.filter.admit(record.uri, record.status, record.timestamp):
                    result.skipped += 1
                    continue
                self.set(
                    record.uri,
                    record.method,
                    record.status,
                    record.response_time,
                    record.request_body_size,
                    record.response_body_size,
                )
            except SkipRecord as e:
                logger.debug("skipping record: %s", e)
                result.skipped += 1
                continue
            result.admitted += 1

        logger.info(
            "ingested %d record(s), skipped %d, %d endpoint(s)",
            result.admitted, result.skipped, self.count_uris(),
        )
        return result

    def sort(self, field_name: str, reverse: bool = False) -> None:
        sort_stats(self._stats, field_name, reverse)

    def load(self, stats: Iterable[RecordAggregate]) -> None:
        """Replace the collection with restored aggregates, rebuilding the key index.

        Raises SnapshotError if two aggregates share a (method, uri) key.
        """
        self._index = KeyIndex()
        self._stats = []
        for agg in stats:
            if (agg.method, agg.uri) in self._index:
                raise SnapshotError(f"duplicate aggregate for {agg.method} {agg.uri}")
            self._index.resolve((agg.method, agg.uri), on_create=lambda slot, agg=agg: self._stats.append(agg))
