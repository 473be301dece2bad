"""Options shared by the CLI and YAML config files.

Precedence is command line > config file > defaults. A field left as ``None``
(or an empty list) means "not given" and falls through to the next layer.
"""

import logging
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from httpstats.capture.aggregator import Labels
from httpstats.capture.filter import Filter
from httpstats.capture.metrics import PercentileMode
from httpstats.capture.normalizer import UriNormalizer
from httpstats.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class Options:
    file: str | None = None
    sort: str | None = None
    reverse: bool | None = None
    query_string: bool | None = None
    format: str | None = None
    no_headers: bool | None = None
    uri_label: str | None = None
    method_label: str | None = None
    time_label: str | None = None
    apptime_label: str | None = None
    reqtime_label: str | None = None
    size_label: str | None = None
    reqsize_label: str | None = None
    status_label: str | None = None
    limit: int | None = None
    includes: list[str] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)
    include_statuses: list[str] = field(default_factory=list)
    exclude_statuses: list[str] = field(default_factory=list)
    aggregates: list[str] = field(default_factory=list)
    start_time: str | None = None
    end_time: str | None = None
    start_time_duration: str | None = None
    end_time_duration: str | None = None
    percentile_mode: str | None = None
    body_percentiles: bool | None = None

    def labels(self) -> Labels:
        return Labels(
            uri=self.uri_label or Labels.uri,
            method=self.method_label or Labels.method,
            time=self.time_label or Labels.time,
            apptime=self.apptime_label or Labels.apptime,
            reqtime=self.reqtime_label or Labels.reqtime,
            size=self.size_label or Labels.size,
            reqsize=self.reqsize_label or Labels.reqsize,
            status=self.status_label or Labels.status,
        )

    def normalizer(self) -> UriNormalizer:
        return UriNormalizer(query_string=bool(self.query_string), patterns=self.aggregates)

    def record_filter(self) -> Filter:
        return Filter.from_options(self)

    def mode(self) -> PercentileMode:
        return PercentileMode.parse(self.percentile_mode or PercentileMode.ARRIVAL.value)


def default_options() -> Options:
    return Options(
        sort="max",
        reverse=False,
        query_string=False,
        format="table",
        no_headers=False,
        limit=5000,
        percentile_mode=PercentileMode.ARRIVAL.value,
        body_percentiles=False,
    )


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated CLI value, trimming blanks; empty input gives an empty list."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _is_set(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, list):
        return len(value) > 0
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        # limit 0 means "all rows", so any given integer counts
        return True
    return value != ""


def merge_options(*layers: Options) -> Options:
    """Merge option layers, highest precedence first."""
    merged = Options()
    for f in fields(Options):
        for layer in layers:
            value = getattr(layer, f.name)
            if _is_set(value):
                setattr(merged, f.name, value)
                break
        else:
            # Explicit False in the lowest layer still wins over None
            setattr(merged, f.name, getattr(layers[-1], f.name))
    return merged


_LIST_FIELDS = ("includes", "excludes", "include_statuses", "exclude_statuses", "aggregates")
_TEXT_FIELDS = (
    "file", "sort", "format",
    "uri_label", "method_label", "time_label", "apptime_label",
    "reqtime_label", "size_label", "reqsize_label", "status_label",
    "start_time", "end_time", "start_time_duration", "end_time_duration",
    "percentile_mode",
)


class ConfigFile(BaseModel):
    """Schema of a YAML config file. Every key is optional."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    file: str | None = None
    sort: str | None = None
    reverse: bool | None = None
    query_string: bool | None = None
    format: str | None = None
    no_headers: bool | None = None
    uri_label: str | None = None
    method_label: str | None = None
    time_label: str | None = None
    apptime_label: str | None = None
    reqtime_label: str | None = None
    size_label: str | None = None
    reqsize_label: str | None = None
    status_label: str | None = None
    limit: Annotated[int, Field(ge=0, strict=True)] | None = None
    includes: list[str] = Field(default_factory=list)
    excludes: list[str] = Field(default_factory=list)
    include_statuses: list[str] = Field(default_factory=list)
    exclude_statuses: list[str] = Field(default_factory=list)
    aggregates: list[str] = Field(default_factory=list)
    start_time: str | None = None
    end_time: str | None = None
    start_time_duration: str | None = None
    end_time_duration: str | None = None
    percentile_mode: str | None = None
    body_percentiles: bool | None = None

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def _dates_as_text(cls, value: Any) -> Any:
        # YAML reads an unquoted 2017-03-08T14:12:43+09:00 as a datetime
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return value

    @field_validator(*_LIST_FIELDS, mode="before")
    @classmethod
    def _split_lists(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return split_csv(value)
        if isinstance(value, list):
            return [str(v) for v in value]
        return value


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def load_options(path: Path) -> Options:
    """Read options from a YAML config file."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in config file: {path}") from e

    if raw is None:
        return Options()
    if not isinstance(raw, dict):
        raise ConfigError(f"config file must contain a mapping: {path}")

    for key in raw:
        if key not in ConfigFile.model_fields:
            logger.warning("ignoring unknown config option %r in %s", key, path)

    try:
        config = ConfigFile.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid config file {path}: {_describe(e)}") from e
    return Options(**config.model_dump())
