import json
import logging
from collections.abc import Iterator
from typing import TextIO

from httpstats.errors import RecordParseError

logger = logging.getLogger(__name__)


def parse_json_line(line: str) -> dict[str, str]:
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise RecordParseError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise RecordParseError("JSON record must be an object")
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


class JSONParser:
    """Lazily reads JSON-lines access-log records, one object per line."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self.skipped = 0

    def __iter__(self) -> Iterator[dict[str, str]]:
        for lineno, line in enumerate(self._stream, start=1):
            if not line.strip():
                continue
            try:
                yield parse_json_line(line)
            except RecordParseError as e:
                self.skipped += 1
                logger.debug("skipping line %d: %s", lineno, e)
