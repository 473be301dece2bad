import re
from collections.abc import Iterable, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit

from httpstats.errors import ConfigError, UriParseError

# Placeholder substituted for every query value when masking is enabled
QUERY_VALUE_MASK = "xxx"


def compile_patterns(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    """Compile URI collapsing patterns, failing fast on invalid expressions."""
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ConfigError(f"invalid URI pattern {pattern!r}: {e}") from e
    return compiled


def mask_query(query_string: str) -> str:
    """Replace every query value with the placeholder, keeping one entry per key in sorted order."""
    keys = dict.fromkeys(key for key, _ in parse_qsl(query_string, keep_blank_values=True))
    return urlencode([(key, QUERY_VALUE_MASK) for key in sorted(keys)])


def normalize(
    raw_uri: str,
    query_string: bool = False,
    patterns: Sequence[re.Pattern[str]] = (),
) -> str:
    """Canonicalize a raw URI into the grouping key used for aggregation.

    The first pattern that matches anywhere in ``raw_uri`` wins and its source
    text becomes the key, so many concrete paths collapse into one endpoint.
    """
    for pattern in patterns:
        if pattern.search(raw_uri):
            return pattern.pattern

    try:
        parts = urlsplit(raw_uri)
    except ValueError as e:
        raise UriParseError(f"malformed URI {raw_uri!r}: {e}") from e

    if not query_string:
        return parts.path

    masked = mask_query(parts.query)
    if not masked:
        return parts.path
    return f"{parts.path}?{masked}"


class UriNormalizer:
    """Normalization settings resolved once before ingestion starts."""

    def __init__(self, query_string: bool = False, patterns: Iterable[str] = ()) -> None:
        self.query_string = query_string
        self.patterns = compile_patterns(patterns)

    def __call__(self, raw_uri: str) -> str:
        return normalize(raw_uri, self.query_string, self.patterns)
