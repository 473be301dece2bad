import io

import pytest

from httpstats.errors import ConfigError, RecordParseError
from httpstats.parsers.jsonl import JSONParser
from httpstats.parsers.ltsv import LTSVParser, parse_ltsv_line
from httpstats.parsers.registry import make_parser


class TestParseLTSVLine:
    def test_fields(self):
        assert parse_ltsv_line("uri:/a\tstatus:200\n") == {"uri": "/a", "status": "200"}

    def test_value_may_contain_colons(self):
        assert parse_ltsv_line("time:2026-01-01T00:00:00+09:00") == {"time": "2026-01-01T00:00:00+09:00"}

    def test_empty_value(self):
        assert parse_ltsv_line("uri:\tsize:1") == {"uri": "", "size": "1"}

    def test_field_without_separator(self):
        with pytest.raises(RecordParseError):
            parse_ltsv_line("uri:/a\tgarbage")


class TestLTSVParser:
    def test_skips_blank_and_malformed_lines(self):
        parser = LTSVParser(io.StringIO("uri:/a\n\nnot ltsv\nuri:/b\n"))
        assert [r["uri"] for r in parser] == ["/a", "/b"]
        assert parser.skipped == 1


class TestJSONParser:
    def test_stringifies_values(self):
        parser = JSONParser(io.StringIO('{"uri": "/a", "status": 200, "size": null}\n[1]\n{bad\n'))
        records = list(parser)
        assert records == [{"uri": "/a", "status": "200", "size": ""}]
        assert parser.skipped == 2


class TestMakeParser:
    def test_known(self):
        assert isinstance(make_parser("ltsv", io.StringIO()), LTSVParser)

    def test_unknown(self):
        with pytest.raises(ConfigError):
            make_parser("csv", io.StringIO())
