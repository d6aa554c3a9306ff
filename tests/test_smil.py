"""Tests for the SMIL alignment parser.

WHY: Every timing downstream comes from this parser. A silently
truncated or reordered alignment would highlight the wrong words for
the rest of the book, so malformed input must be rejected loudly.

HOW: Parse the shared sample and small hand-written documents, checking
entries, diagnostics and the MalformedAlignment cases.
"""

from __future__ import annotations

import pytest

from readalong_studio.core.ir import TimeInterval
from readalong_studio.core.smil import load_smil, parse_clock_value, parse_smil
from readalong_studio.errors import MalformedAlignment


def _smil(pars: str, namespace: bool = True) -> str:
    xmlns = ' xmlns="http://www.w3.org/ns/SMIL"' if namespace else ""
    return "<smil{}><body>{}</body></smil>".format(xmlns, pars)


def _par(word_id: str, begin: str, end: str) -> str:
    return '<par><text src="doc.xml#{}"/><audio clipBegin="{}" clipEnd="{}"/></par>'.format(
        word_id, begin, end
    )


class TestParseClockValue:

    def test_plain_seconds(self):
        assert parse_clock_value("1.5") == 1500.0

    def test_seconds_suffix(self):
        assert parse_clock_value("1.5s") == 1500.0

    def test_whitespace_is_ignored(self):
        assert parse_clock_value("  2 ") == 2000.0

    def test_rounds_to_three_decimals(self):
        assert parse_clock_value("0.0012344") == 1.234

    def test_invalid_value_raises(self):
        with pytest.raises(MalformedAlignment):
            parse_clock_value("soon")

    def test_negative_value_raises(self):
        with pytest.raises(MalformedAlignment):
            parse_clock_value("-1")


class TestParseSmil:

    def test_sample_entries_in_document_order(self, sample_smil):
        result = parse_smil(sample_smil)
        assert result.entries == [
            ("w1", TimeInterval(0.0, 1000.0)),
            ("w2", TimeInterval(1000.0, 500.0)),
            ("w3", TimeInterval(1500.0, 2000.0)),
        ]

    def test_namespaced_document_has_no_diagnostics(self, sample_smil):
        assert parse_smil(sample_smil).diagnostics == []

    def test_missing_namespace_is_only_a_diagnostic(self):
        result = parse_smil(_smil(_par("w1", "0", "1"), namespace=False))
        assert [word_id for word_id, _ in result.entries] == ["w1"]
        assert len(result.diagnostics) == 1
        assert "namespace" in result.diagnostics[0]

    def test_accepts_bytes(self, sample_smil):
        result = parse_smil(sample_smil.encode("utf-8"))
        assert len(result.entries) == 3

    def test_as_dict(self, sample_smil):
        assert parse_smil(sample_smil).as_dict() == {
            "w1": [0.0, 1000.0],
            "w2": [1000.0, 500.0],
            "w3": [1500.0, 2000.0],
        }

    def test_pars_nested_in_seq(self):
        doc = _smil("<seq>{}{}</seq>".format(_par("a", "0", "1"), _par("b", "1", "2")))
        assert [word_id for word_id, _ in parse_smil(doc).entries] == ["a", "b"]

    def test_src_without_fragment_uses_whole_src(self):
        doc = _smil('<par><text src="w7"/><audio clipBegin="0" clipEnd="1"/></par>')
        assert parse_smil(doc).entries[0][0] == "w7"

    def test_missing_clip_end_is_count_mismatch(self):
        doc = _smil(
            _par("w1", "0", "1")
            + '<par><text src="doc.xml#w2"/><audio clipBegin="1"/></par>'
        )
        with pytest.raises(MalformedAlignment, match="Mismatched"):
            parse_smil(doc)

    def test_missing_text_is_count_mismatch(self):
        doc = _smil(_par("w1", "0", "1") + '<par><audio clipBegin="1" clipEnd="2"/></par>')
        with pytest.raises(MalformedAlignment, match="Mismatched"):
            parse_smil(doc)

    def test_empty_body_raises(self):
        with pytest.raises(MalformedAlignment, match="no aligned units"):
            parse_smil(_smil(""))

    def test_duplicate_word_id_raises(self):
        with pytest.raises(MalformedAlignment, match="Duplicate"):
            parse_smil(_smil(_par("w1", "0", "1") + _par("w1", "1", "2")))

    def test_clip_ending_before_begin_raises(self):
        with pytest.raises(MalformedAlignment):
            parse_smil(_smil(_par("w1", "2", "1")))

    def test_wrong_root_raises(self):
        with pytest.raises(MalformedAlignment, match="expected <smil>"):
            parse_smil("<html><body/></html>")

    def test_not_xml_raises(self):
        with pytest.raises(MalformedAlignment, match="well-formed"):
            parse_smil("<smil><body>")


class TestLoadSmil:

    def test_reads_file(self, tmp_path, sample_smil):
        path = tmp_path / "story.smil"
        path.write_text(sample_smil, encoding="utf-8")
        assert len(load_smil(path).entries) == 3
