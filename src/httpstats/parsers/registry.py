from typing import TextIO

from httpstats.errors import ConfigError
from httpstats.parsers.jsonl import JSONParser
from httpstats.parsers.ltsv import LTSVParser

PARSERS = {
    "ltsv": LTSVParser,
    "json": JSONParser,
}


def make_parser(name: str, stream: TextIO) -> LTSVParser | JSONParser:
    try:
        parser_cls = PARSERS[name]
    except KeyError:
        raise ConfigError(f"parser not supported: {name}") from None
    return parser_cls(stream)
