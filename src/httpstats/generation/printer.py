from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, TextIO

from rich.box import ASCII
from rich.console import Console
from rich.table import Table

from httpstats.capture.record import RecordAggregate
from httpstats.errors import ConfigError


def _fmt(value: float) -> str:
    return f"{value:.3f}"


def _metric(stat: str, series: str) -> Callable[[RecordAggregate], str]:
    return lambda agg: _fmt(agg.metric(stat, series))


def _status(name: str) -> Callable[[RecordAggregate], str]:
    return lambda agg: str(getattr(agg, name))


# column key -> (header title, cell formatter)
COLUMNS: dict[str, tuple[str, Callable[[RecordAggregate], str]]] = {
    "count": ("Count", lambda agg: str(agg.count)),
    "method": ("Method", lambda agg: agg.method),
    "uri": ("Uri", lambda agg: agg.uri),
    "status_1xx": ("1xx", _status("status1xx")),
    "status_2xx": ("2xx", _status("status2xx")),
    "status_3xx": ("3xx", _status("status3xx")),
    "status_4xx": ("4xx", _status("status4xx")),
    "status_5xx": ("5xx", _status("status5xx")),
    "min": ("Min", _metric("Min", "ResponseTime")),
    "max": ("Max", _metric("Max", "ResponseTime")),
    "sum": ("Sum", _metric("Sum", "ResponseTime")),
    "avg": ("Avg", _metric("Avg", "ResponseTime")),
    "p1": ("P1", _metric("P1", "ResponseTime")),
    "p50": ("P50", _metric("P50", "ResponseTime")),
    "p90": ("P90", _metric("P90", "ResponseTime")),
    "p99": ("P99", _metric("P99", "ResponseTime")),
    "stddev": ("Stddev", _metric("Stddev", "ResponseTime")),
    "min_body": ("Min(Body)", _metric("Min", "ResponseBodySize")),
    "max_body": ("Max(Body)", _metric("Max", "ResponseBodySize")),
    "sum_body": ("Sum(Body)", _metric("Sum", "ResponseBodySize")),
    "avg_body": ("Avg(Body)", _metric("Avg", "ResponseBodySize")),
    "min_reqbody": ("Min(ReqBody)", _metric("Min", "RequestBodySize")),
    "max_reqbody": ("Max(ReqBody)", _metric("Max", "RequestBodySize")),
    "sum_reqbody": ("Sum(ReqBody)", _metric("Sum", "RequestBodySize")),
    "avg_reqbody": ("Avg(ReqBody)", _metric("Avg", "RequestBodySize")),
}

DEFAULT_COLUMNS = (
    "count", "method", "uri",
    "status_1xx", "status_2xx", "status_3xx", "status_4xx", "status_5xx",
    "min", "max", "sum", "avg",
    "p1", "p50", "p99", "stddev",
    "min_body", "max_body", "sum_body", "avg_body",
)

FORMATS = ("table", "tsv")


@dataclass
class PrintOptions:
    format: str = "table"
    no_headers: bool = False
    columns: Sequence[str] = field(default_factory=lambda: list(DEFAULT_COLUMNS))
    limit: int = 0

    def __post_init__(self) -> None:
        if self.format not in FORMATS:
            raise ConfigError(f"unsupported output format {self.format!r} (expected one of: {', '.join(FORMATS)})")
        unknown = [c for c in self.columns if c not in COLUMNS]
        if unknown:
            raise ConfigError(f"unknown output column(s): {', '.join(unknown)}")
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 0:
            raise ConfigError(f"limit must be a non-negative integer, got {self.limit!r}")


class Renderer(Protocol):
    def render_header(self, headers: Sequence[str]) -> None: ...

    def render_row(self, values: Sequence[str]) -> None: ...

    def finish(self) -> None: ...


class TSVRenderer:
    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def render_header(self, headers: Sequence[str]) -> None:
        self._stream.write("\t".join(headers) + "\n")

    def render_row(self, values: Sequence[str]) -> None:
        self._stream.write("\t".join(values) + "\n")

    def finish(self) -> None:
        self._stream.flush()


class TableRenderer:
    """Buffers rows into a rich table and prints it once all rows are known."""

    def __init__(self, stream: TextIO, show_header: bool = True) -> None:
        isatty = getattr(stream, "isatty", lambda: False)()
        # Non-terminal output is never squeezed to 80 columns
        self._console = Console(file=stream, width=None if isatty else 4096, highlight=False)
        self._show_header = show_header
        self._table: Table | None = None

    def render_header(self, headers: Sequence[str]) -> None:
        self._table = Table(box=ASCII, show_header=self._show_header)
        for title in headers:
            self._table.add_column(title, no_wrap=True, justify="left" if title in ("Method", "Uri") else "right")

    def render_row(self, values: Sequence[str]) -> None:
        if self._table is None:
            raise RuntimeError("render_header must be called before render_row")
        self._table.add_row(*values)

    def finish(self) -> None:
        if self._table is not None:
            self._console.print(self._table)


def make_renderer(options: PrintOptions, stream: TextIO) -> Renderer:
    if options.format == "tsv":
        return TSVRenderer(stream)
    return TableRenderer(stream, show_header=not options.no_headers)


def print_stats(stats: Sequence[RecordAggregate], options: PrintOptions, stream: TextIO) -> int:
    """Render up to ``options.limit`` aggregates (all when 0) and return the number of rows written."""
    renderer = make_renderer(options, stream)
    columns = [COLUMNS[key] for key in options.columns]

    # The table renderer needs its columns even when the header row is hidden
    if not (options.no_headers and options.format == "tsv"):
        renderer.render_header([title for title, _ in columns])

    rows = stats[: options.limit] if options.limit > 0 else stats
    for agg in rows:
        renderer.render_row([cell(agg) for _, cell in columns])
    renderer.finish()
    return len(rows)
