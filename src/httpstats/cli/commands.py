import logging
import sys
from pathlib import Path

import click

from httpstats.capture.aggregator import HTTPStats
from httpstats.capture.sorter import resolve_sort_field
from httpstats.cli.options import Options, default_options, load_options, merge_options, split_csv
from httpstats.errors import ConfigError, SnapshotError
from httpstats.generation.printer import FORMATS, PrintOptions, print_stats
from httpstats.parsers.registry import make_parser
from httpstats.storage.snapshot import dump_stats, load_stats

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def common_options(fn):
    """Options shared by every log-format subcommand."""
    decorators = [
        click.option("-c", "--config", type=click.Path(dir_okay=False, path_type=Path), help="YAML config file"),
        click.option("-f", "--file", help="Access log file (default: stdin)"),
        click.option("--sort", help="Sort field, e.g. max, count, P90ResponseTime"),
        click.option("-r", "--reverse", is_flag=True, default=None, help="Sort in descending order"),
        click.option("-q", "--query-string", is_flag=True, default=None, help="Group URIs by masked query string"),
        click.option("--format", "output_format", type=click.Choice(FORMATS), help="Output format"),
        click.option("--noheaders", "no_headers", is_flag=True, default=None, help="Omit the header row"),
        click.option("--limit", type=click.IntRange(min=0), help="Maximum number of rows to print (0 = all)"),
        click.option("--uri-label"),
        click.option("--method-label"),
        click.option("--time-label"),
        click.option("--apptime-label"),
        click.option("--reqtime-label"),
        click.option("--size-label"),
        click.option("--reqsize-label"),
        click.option("--status-label"),
        click.option("--includes", help="Comma-separated URIs or patterns to include"),
        click.option("--excludes", help="Comma-separated URIs or patterns to exclude"),
        click.option("--include-statuses", help="Comma-separated status codes to include"),
        click.option("--exclude-statuses", help="Comma-separated status codes to exclude"),
        click.option("--aggregates", help="Comma-separated URI patterns to collapse into one row"),
        click.option("--start-time", help="Ignore records before this time"),
        click.option("--end-time", help="Ignore records after this time"),
        click.option("--start-time-duration", help="Ignore records older than now minus this duration, e.g. 5m"),
        click.option("--end-time-duration", help="Ignore records newer than now minus this duration"),
        click.option("--percentile-mode", type=click.Choice(["arrival", "sorted"]), help="How percentiles are read from samples"),
        click.option("--body-percentiles", is_flag=True, default=None, help="Also keep body-size samples"),
        click.option("--dump", type=click.Path(dir_okay=False, path_type=Path), help="Write the aggregated stats as YAML"),
        click.option("--load", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Read stats from a YAML dump instead of a log"),
        click.option("-v", "--verbose", is_flag=True, help="Log skipped records and progress to stderr"),
    ]
    for decorator in reversed(decorators):
        fn = decorator(fn)
    return fn


@click.group()
@click.version_option(package_name="httpstats")
def cli():
    """Per-endpoint traffic, latency and body-size statistics from access logs."""
    pass


@cli.command()
@common_options
def ltsv(**kwargs):
    """Profile an LTSV access log."""
    run("ltsv", **kwargs)


@cli.command("json")
@common_options
def json_cmd(**kwargs):
    """Profile a JSON-lines access log."""
    run("json", **kwargs)


def _cli_options(kwargs: dict) -> Options:
    return Options(
        file=kwargs["file"],
        sort=kwargs["sort"],
        reverse=kwargs["reverse"],
        query_string=kwargs["query_string"],
        format=kwargs["output_format"],
        no_headers=kwargs["no_headers"],
        uri_label=kwargs["uri_label"],
        method_label=kwargs["method_label"],
        time_label=kwargs["time_label"],
        apptime_label=kwargs["apptime_label"],
        reqtime_label=kwargs["reqtime_label"],
        size_label=kwargs["size_label"],
        reqsize_label=kwargs["reqsize_label"],
        status_label=kwargs["status_label"],
        limit=kwargs["limit"],
        includes=split_csv(kwargs["includes"]),
        excludes=split_csv(kwargs["excludes"]),
        include_statuses=split_csv(kwargs["include_statuses"]),
        exclude_statuses=split_csv(kwargs["exclude_statuses"]),
        aggregates=split_csv(kwargs["aggregates"]),
        start_time=kwargs["start_time"],
        end_time=kwargs["end_time"],
        start_time_duration=kwargs["start_time_duration"],
        end_time_duration=kwargs["end_time_duration"],
        percentile_mode=kwargs["percentile_mode"],
        body_percentiles=kwargs["body_percentiles"],
    )


def run(parser_name: str, **kwargs) -> None:
    setup_logging(kwargs["verbose"])

    try:
        file_options = load_options(kwargs["config"]) if kwargs["config"] else Options()
        options = merge_options(_cli_options(kwargs), file_options, default_options())
        sort_field = resolve_sort_field(options.sort)
        print_options = PrintOptions(format=options.format, no_headers=bool(options.no_headers), limit=options.limit)

        stats = HTTPStats(
            request_body_size_percentile=bool(options.body_percentiles),
            response_body_size_percentile=bool(options.body_percentiles),
            percentile_mode=options.mode(),
            normalizer=options.normalizer(),
            record_filter=options.record_filter(),
        )

        if kwargs["load"]:
            with kwargs["load"].open(encoding="utf-8") as f:
                stats.load(load_stats(f))
        elif options.file:
            with open(options.file, encoding="utf-8") as f:
                stats.ingest(make_parser(parser_name, f), options.labels())
        else:
            stats.ingest(make_parser(parser_name, sys.stdin), options.labels())
    except (ConfigError, SnapshotError) as e:
        raise click.ClickException(str(e)) from e
    except OSError as e:
        raise click.FileError(e.filename or "", hint=e.strerror or str(e)) from e

    stats.sort(sort_field, bool(options.reverse))

    if kwargs["dump"]:
        try:
            with kwargs["dump"].open("w", encoding="utf-8") as f:
                dump_stats(stats.stats, f)
        except OSError as e:
            raise click.FileError(str(kwargs["dump"]), hint=e.strerror or str(e)) from e

    print_stats(stats.stats, print_options, sys.stdout)
