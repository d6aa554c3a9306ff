"""Tests for the command-line interface.

WHY: The CLI is how build scripts fix anchors in bulk. Exit codes and
file naming are its contract: errors must exit 1 with a message on
stderr, results go to stdout, and outputs never overwrite earlier ones.

HOW: Writes the shared sample documents to tmp_path and calls main()
with explicit argv, capturing stdout/stderr with capsys.
"""

from __future__ import annotations

import json

import pytest

from readalong_studio.cli import _resolve_output_path, build_parser, main


@pytest.fixture
def files(tmp_path, sample_tei, sample_smil):
    text = tmp_path / "story.xml"
    text.write_text(sample_tei, encoding="utf-8")
    alignment = tmp_path / "story.smil"
    alignment.write_text(sample_smil, encoding="utf-8")
    return ["--text", str(text), "--alignment", str(alignment)]


class TestParser:

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_locate_requires_times(self, files):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["locate"] + files)


class TestLocate:

    def test_prints_word_per_time(self, files, capsys):
        assert main(["locate"] + files + ["1.2", "0", "100"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines == [
            "1.200\tw2\tthere",
            "0.000\tw1\tHello",
            "100.000\tw3\tfriend",
        ]

    def test_missing_file_exits_1(self, tmp_path, capsys):
        code = main([
            "locate", "--text", str(tmp_path / "nope.xml"),
            "--alignment", str(tmp_path / "nope.smil"), "1",
        ])
        assert code == 1
        assert "Error: Text file not found" in capsys.readouterr().err

    def test_malformed_alignment_exits_1(self, tmp_path, sample_tei, capsys):
        text = tmp_path / "story.xml"
        text.write_text(sample_tei, encoding="utf-8")
        alignment = tmp_path / "story.smil"
        alignment.write_text("<smil><body/></smil>", encoding="utf-8")
        code = main(["locate", "--text", str(text), "--alignment", str(alignment), "1"])
        assert code == 1
        assert "no aligned units" in capsys.readouterr().err


class TestAnchors:

    def test_add_writes_anchored_copy(self, files, tmp_path):
        assert main(["anchors", "add"] + files + ["w2", "--time", "0.9"]) == 0
        output = (tmp_path / "story-anchored.xml").read_text(encoding="utf-8")
        assert '<anchor id="w2-anc" time="0.90s" /><w id="w2">there</w>' in output

    def test_add_to_explicit_output(self, files, tmp_path):
        target = tmp_path / "out.xml"
        assert main(["anchors", "add"] + files + ["w3", "--output", str(target)]) == 0
        assert 'time="1.50s"' in target.read_text(encoding="utf-8")

    def test_add_unknown_word_exits_1(self, files, capsys):
        assert main(["anchors", "add"] + files + ["w9"]) == 1
        assert "Error: Unknown word: w9" in capsys.readouterr().err

    def test_remove_and_validate(self, files, tmp_path, capsys):
        anchored = tmp_path / "anchored.xml"
        main(["anchors", "add"] + files + ["w2", "--time", "0.9", "--output", str(anchored)])
        anchored_files = ["--text", str(anchored), "--alignment", files[3]]

        assert main(["anchors", "validate"] + anchored_files) == 0
        assert capsys.readouterr().out.splitlines() == ["w2\t0.90\tthere"]

        cleaned = tmp_path / "cleaned.xml"
        assert main(["anchors", "remove"] + anchored_files + ["w2", "--output", str(cleaned)]) == 0
        assert "anchor" not in cleaned.read_text(encoding="utf-8")

    def test_validate_without_anchors_exits_1(self, files, capsys):
        assert main(["anchors", "validate"] + files) == 1
        assert "There is no anchor setup currently." in capsys.readouterr().err

    def test_remove_missing_anchor_exits_1(self, files):
        assert main(["anchors", "remove"] + files + ["w1"]) == 1


class TestExport:

    def test_selected_formats(self, files, tmp_path):
        out_dir = tmp_path / "out"
        out_dir.mkdir()
        code = main(
            ["export"] + files
            + ["--duration", "3.5", "--formats", "plain_text,alignment_json", "--output-dir", str(out_dir)]
        )
        assert code == 0
        assert (out_dir / "story-text.txt").read_text(encoding="utf-8").startswith("[page p1]")
        data = json.loads((out_dir / "story-alignment.json").read_text(encoding="utf-8"))
        assert data["duration_ms"] == 3500.0

    def test_tei_export_needs_anchors(self, files, capsys):
        assert main(["export"] + files + ["--formats", "tei"]) == 1
        assert "There is no anchor setup currently." in capsys.readouterr().err

    def test_skip_validation(self, files, tmp_path):
        assert main(["export"] + files + ["--formats", "tei", "--skip-validation"]) == 0
        exported = (tmp_path / "story-readalong.xml").read_text(encoding="utf-8")
        assert "Hello there, friend." in exported

    def test_unknown_format_exits_1(self, files, capsys):
        assert main(["export"] + files + ["--formats", "srt"]) == 1
        assert "Unknown format 'srt'" in capsys.readouterr().err

    def test_missing_output_dir_exits_1(self, files, tmp_path):
        code = main(["export"] + files + ["--output-dir", str(tmp_path / "missing")])
        assert code == 1

    def test_second_export_does_not_overwrite(self, files, tmp_path):
        main(["export"] + files + ["--formats", "plain_text"])
        main(["export"] + files + ["--formats", "plain_text"])
        assert (tmp_path / "story-text.txt").exists()
        assert (tmp_path / "story-text-2.txt").exists()


class TestResolveOutputPath:

    def test_free_name(self, tmp_path):
        assert _resolve_output_path("story", "-text.txt", tmp_path) == tmp_path / "story-text.txt"

    def test_counter_before_extension(self, tmp_path):
        (tmp_path / "story-text.txt").write_text("x")
        (tmp_path / "story-text-2.txt").write_text("x")
        assert _resolve_output_path("story", "-text.txt", tmp_path) == tmp_path / "story-text-3.txt"
