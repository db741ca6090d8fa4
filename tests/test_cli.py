"""
Tests for the wordcleanse and diagnose command-line entry points.
"""

import sys

import pytest

import diagnose
import wordcleanse


def run_main(module, monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", [module.__name__, *map(str, args)])
    with pytest.raises(SystemExit) as info:
        module.main()
    return info.value.code


class TestWordcleanseCli:
    """The wordcleanse command."""

    def test_cleans_file(self, tmp_path, monkeypatch, word_document):
        source = tmp_path / "in.html"
        target = tmp_path / "out" / "clean.html"
        source.write_text(word_document, encoding="utf-8")

        assert run_main(wordcleanse, monkeypatch, source, target, "-q") == 0
        cleaned = target.read_text(encoding="utf-8")
        assert "Mso" not in cleaned
        assert '<table border="1"' in cleaned

    def test_report_printed(self, tmp_path, monkeypatch, capsys, word_document):
        source = tmp_path / "in.html"
        source.write_text(word_document, encoding="utf-8")

        assert run_main(wordcleanse, monkeypatch, source, "--dry-run", "--stats") == 0
        out = capsys.readouterr().out
        assert "DRY RUN: CLEAN" in out
        assert "WordCleanse Processing Report" in out
        assert "Tree Processing:" in out
        assert "Cache:" in out
        assert not (tmp_path / "(dry-run)").exists()

    def test_clean_input_reported(self, tmp_path, monkeypatch, capsys):
        source = tmp_path / "in.html"
        source.write_text("<p>Plain</p>", encoding="utf-8")

        assert run_main(wordcleanse, monkeypatch, source, "-d") == 0
        assert "No Word markup detected" in capsys.readouterr().out

    def test_no_tree_and_type(self, tmp_path, monkeypatch):
        source = tmp_path / "in.html"
        target = tmp_path / "out.html"
        source.write_text('<p class="MsoNormal">Hello <b>world</b></p>', encoding="utf-8")

        assert run_main(wordcleanse, monkeypatch, source, target, "--no-tree", "-t", "excerpt", "-q") == 0
        assert target.read_text(encoding="utf-8") == "Hello world"

    def test_missing_input(self, tmp_path, monkeypatch, capsys):
        assert run_main(wordcleanse, monkeypatch, tmp_path / "nope.html", tmp_path / "out.html") == 1
        assert "Input file not found" in capsys.readouterr().err

    def test_output_required(self, tmp_path, monkeypatch):
        source = tmp_path / "in.html"
        source.write_text("<p>x</p>", encoding="utf-8")
        assert run_main(wordcleanse, monkeypatch, source) == 1

    def test_missing_explicit_config(self, tmp_path, monkeypatch, capsys):
        source = tmp_path / "in.html"
        source.write_text("<p>x</p>", encoding="utf-8")
        code = run_main(wordcleanse, monkeypatch, source, "-d", "-c", tmp_path / "none.yaml")
        assert code == 1
        assert "Config file not found" in capsys.readouterr().err

    def test_config_overrides_applied(self, tmp_path, monkeypatch):
        config = tmp_path / "config.yaml"
        config.write_text("content_types:\n  post:\n    mso_classes: false\n", encoding="utf-8")
        source = tmp_path / "in.html"
        target = tmp_path / "out.html"
        source.write_text('<p class="MsoNormal">x<o:p></o:p></p>', encoding="utf-8")

        assert run_main(wordcleanse, monkeypatch, source, target, "-c", config, "-q") == 0
        assert target.read_text(encoding="utf-8") == '<p class="MsoNormal">x</p>'

    def test_version(self, monkeypatch, capsys):
        assert run_main(wordcleanse, monkeypatch, "--version") == 0
        assert wordcleanse.VERSION in capsys.readouterr().out


class TestDiagnoseCli:
    """The diagnose command."""

    def test_analysis_output(self, tmp_path, monkeypatch, capsys, word_document):
        source = tmp_path / "in.html"
        source.write_text(word_document, encoding="utf-8")

        diagnose.analyze_document(source, "post", show_all=True)
        out = capsys.readouterr().out
        assert "Word markup: YES" in out
        assert "Tables:       1" in out
        assert "Pseudo-lists: 1" in out
        assert "TABLE_MARKER_0 [table]" in out
        assert "MSOLIST_MARKER_0 [pseudo-list]" in out
        assert "Tree parse: OK" in out

    def test_missing_file(self, tmp_path, monkeypatch):
        assert run_main(diagnose, monkeypatch, tmp_path / "none.html") == 1
