"""Exceptions shared across the aggregation engine and its collaborators."""


class SkipRecord(Exception):
    """Raised when a single record must be excluded from aggregation."""


class RecordParseError(SkipRecord):
    """Raised when a record line or one of its fields cannot be parsed."""


class UriParseError(SkipRecord):
    """Raised when a raw URI cannot be parsed into a grouping key."""


class ConfigError(Exception):
    """Raised at setup time for invalid patterns, time bounds or options."""


class UnknownSortFieldError(ConfigError, ValueError):
    def __init__(self, field_name: str) -> None:
        super().__init__(f"unknown sort field: {field_name!r}")
        self.field_name = field_name


class SnapshotError(Exception):
    """Raised when a dumped snapshot cannot be restored."""
