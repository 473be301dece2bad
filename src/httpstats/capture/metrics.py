import math
from dataclasses import dataclass, field
from enum import Enum

from httpstats.errors import ConfigError


class PercentileMode(str, Enum):
    """How a percentile position is read from the retained samples.

    ``ARRIVAL`` indexes the samples in the order they were observed, which is
    what earlier releases reported. ``SORTED`` indexes them by magnitude and
    yields true order statistics.
    """

    ARRIVAL = "arrival"
    SORTED = "sorted"

    @classmethod
    def parse(cls, value: "str | PercentileMode") -> "PercentileMode":
        try:
            return cls(value)
        except ValueError as e:
            choices = ", ".join(m.value for m in cls)
            raise ConfigError(f"invalid percentile mode {value!r} (expected one of: {choices})") from e


def percent_rank(count: int, p: float) -> int:
    """Sample position for the ``p``-th percentile of ``count`` observations."""
    return max(0, math.floor(count * p / 100) - 1)


@dataclass
class MetricAccumulator:
    """Online aggregator for one numeric series.

    ``count`` is owned by the parent aggregate and passed in to the derived
    getters rather than tracked here.
    """

    retain_samples: bool = False
    mode: PercentileMode = PercentileMode.ARRIVAL
    max: float = 0.0
    min: float = 0.0
    sum: float = 0.0
    has_value: bool = False
    samples: list[float] = field(default_factory=list)
    _sorted: list[float] | None = field(default=None, init=False, repr=False, compare=False)

    def set(self, value: float) -> None:
        if not self.has_value or value > self.max:
            self.max = value
        if not self.has_value or value <= self.min:
            self.min = value
        self.has_value = True
        self.sum += value

        if self.retain_samples:
            self.samples.append(value)
            self._sorted = None

    def avg(self, count: int) -> float:
        if count <= 0:
            return 0.0
        return self.sum / count

    def sorted_samples(self) -> list[float]:
        """Samples in ascending order, cached until the next update."""
        if self._sorted is None or len(self._sorted) != len(self.samples):
            self._sorted = sorted(self.samples)
        return self._sorted

    def percentile(self, p: float, count: int) -> float:
        if not self.retain_samples or not self.samples:
            return 0.0

        idx = min(percent_rank(count, p), len(self.samples) - 1)
        if self.mode is PercentileMode.SORTED:
            return self.sorted_samples()[idx]
        return self.samples[idx]

    def stddev(self, count: int) -> float:
        if not self.retain_samples or count <= 0:
            return 0.0

        avg = self.avg(count)
        variance = sum((v - avg) * (v - avg) for v in self.samples) / count
        return math.sqrt(variance)
