#!/usr/bin/env python3
"""
Unit tests for header sets, header line parsing and header composition.

Run with:
    python -m pytest testing/unit/test_headers.py -v
"""

import unittest

from seqhttp.exceptions import ConfigurationError, HeaderParseError
from seqhttp.headers import (
    HeaderSet,
    canonical_name,
    compose,
    parse_header_line,
    parse_header_lines,
)


class TestHeaderSet(unittest.TestCase):
    """Test the HeaderSet mapping."""

    def test_lookup_is_case_insensitive(self):
        headers = HeaderSet({"Content-Type": ["text/plain"]})
        self.assertEqual(headers["content-type"], ("text/plain",))
        self.assertIn("CONTENT-TYPE", headers)

    def test_string_value_becomes_single_value(self):
        headers = HeaderSet({"X-A": "1"})
        self.assertEqual(headers["X-A"], ("1",))

    def test_pairs_accumulate_in_order(self):
        headers = HeaderSet([("X-A", "1"), ("X-B", "2"), ("x-a", "3")])
        self.assertEqual(list(headers), ["X-A", "X-B"])
        self.assertEqual(headers["X-A"], ("1", "3"))
        self.assertEqual(list(headers.pairs()), [("X-A", "1"), ("X-A", "3"), ("X-B", "2")])

    def test_equality_ignores_key_case(self):
        self.assertEqual(HeaderSet({"x-a": ["1"]}), HeaderSet({"X-A": ["1"]}))
        self.assertEqual(HeaderSet({"X-A": ["1"]}), {"x-a": ["1"]})

    def test_equality_respects_value_order(self):
        self.assertNotEqual(HeaderSet({"X-A": ["1", "2"]}), HeaderSet({"X-A": ["2", "1"]}))

    def test_equal_sets_hash_equal(self):
        self.assertEqual(hash(HeaderSet({"x-a": "1"})), hash(HeaderSet({"X-A": "1"})))

    def test_first(self):
        headers = HeaderSet({"X-A": ["1", "2"]})
        self.assertEqual(headers.first("x-a"), "1")
        self.assertIsNone(headers.first("X-Missing"))
        self.assertEqual(headers.first("X-Missing", "default"), "default")

    def test_empty(self):
        self.assertEqual(len(HeaderSet()), 0)
        self.assertEqual(HeaderSet(), {})


class TestHeaderLineParsing(unittest.TestCase):
    """Test parse_header_line and parse_header_lines."""

    def test_canonical_name(self):
        self.assertEqual(canonical_name("content-type"), "Content-Type")
        self.assertEqual(canonical_name("X-REQUEST-ID"), "X-Request-Id")
        self.assertEqual(canonical_name("etag"), "Etag")

    def test_value_is_trimmed(self):
        self.assertEqual(parse_header_line("x-test:   value \t"), ("X-Test", "value"))

    def test_value_may_contain_colons(self):
        self.assertEqual(parse_header_line("Location: http://example.com:8080/"), ("Location", "http://example.com:8080/"))

    def test_empty_value_is_allowed(self):
        self.assertEqual(parse_header_line("X-Empty:"), ("X-Empty", ""))

    def test_repeated_names_accumulate(self):
        headers = parse_header_lines([
            "header1: value1",
            "header2: value2-1",
            "header2: value2-2",
        ])
        self.assertEqual(headers, {"Header1": ["value1"], "Header2": ["value2-1", "value2-2"]})

    def test_no_lines(self):
        self.assertEqual(parse_header_lines([]), HeaderSet())

    def test_empty_lines_are_skipped(self):
        self.assertEqual(parse_header_lines([""]), HeaderSet())
        self.assertEqual(parse_header_lines(["", "X-A: 1", ""]), {"X-A": ["1"]})

    def test_missing_colon(self):
        with self.assertRaises(HeaderParseError) as ctx:
            parse_header_line("invalid header")
        self.assertIn("missing ':'", str(ctx.exception))

    def test_empty_name(self):
        with self.assertRaises(HeaderParseError):
            parse_header_line(": value")

    def test_space_in_name(self):
        with self.assertRaises(HeaderParseError) as ctx:
            parse_header_line("bad name: value")
        self.assertIn("invalid character", str(ctx.exception))

    def test_line_break_in_value(self):
        with self.assertRaises(HeaderParseError):
            parse_header_line("X-Injected: a\r\nX-Other: b")

    def test_parse_error_is_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            parse_header_lines(["ok: 1", "broken"])


class TestCompose(unittest.TestCase):
    """Test the header composition rule."""

    def test_override_replaces_same_named_base_header(self):
        base = HeaderSet({"X-A": ["1"], "X-B": ["2"]})
        override = HeaderSet({"X-B": ["3"]})
        self.assertEqual(compose(base, override), {"X-A": ["1"], "X-B": ["3"]})

    def test_override_replaces_all_values(self):
        base = HeaderSet({"X-Multi": ["a", "b", "c"]})
        resolved = compose(base, HeaderSet({"x-multi": ["z"]}))
        self.assertEqual(resolved["X-Multi"], ("z",))

    def test_override_only_keys_are_added(self):
        resolved = compose(HeaderSet({"X-A": ["1"]}), HeaderSet({"X-C": ["c1", "c2"]}))
        self.assertEqual(resolved, {"X-A": ["1"], "X-C": ["c1", "c2"]})
        self.assertEqual(list(resolved), ["X-A", "X-C"])

    def test_base_order_is_kept(self):
        base = HeaderSet({"X-A": ["1"], "X-B": ["2"], "X-C": ["3"]})
        resolved = compose(base, HeaderSet({"x-b": ["20"]}))
        self.assertEqual([name.lower() for name in resolved], ["x-a", "x-b", "x-c"])

    def test_inputs_are_not_modified(self):
        base = HeaderSet({"X-A": ["1"]})
        override = HeaderSet({"X-A": ["2"], "X-B": ["3"]})
        compose(base, override)
        self.assertEqual(base, {"X-A": ["1"]})
        self.assertEqual(override, {"X-A": ["2"], "X-B": ["3"]})

    def test_empty_sides(self):
        headers = HeaderSet({"X-A": ["1"]})
        self.assertEqual(compose(HeaderSet(), headers), headers)
        self.assertEqual(compose(headers, HeaderSet()), headers)
        self.assertEqual(compose(HeaderSet(), HeaderSet()), HeaderSet())

    def test_plain_mappings_are_accepted(self):
        self.assertEqual(compose({"X-A": "1"}, {"X-A": ["2"]}), {"X-A": ["2"]})


if __name__ == "__main__":
    unittest.main()
