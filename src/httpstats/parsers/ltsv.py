import logging
from collections.abc import Iterator
from typing import TextIO

from httpstats.errors import RecordParseError

logger = logging.getLogger(__name__)


def parse_ltsv_line(line: str) -> dict[str, str]:
    """Split one Labeled Tab-Separated Values line into a label->value mapping."""
    record: dict[str, str] = {}
    for field in line.rstrip("\r\n").split("\t"):
        if not field:
            continue
        label, sep, value = field.partition(":")
        if not sep or not label:
            raise RecordParseError(f"malformed LTSV field {field!r}")
        record[label] = value
    return record


class LTSVParser:
    """Lazily reads LTSV access-log records from a text stream, skipping malformed lines."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self.skipped = 0

    def __iter__(self) -> Iterator[dict[str, str]]:
        for lineno, line in enumerate(self._stream, start=1):
            if not line.strip():
                continue
            try:
                yield parse_ltsv_line(line)
            except RecordParseError as e:
                self.skipped += 1
                logger.debug("skipping line %d: %s", lineno, e)
