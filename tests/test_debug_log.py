"""
Tests for debug sinks and the detailed change report.
"""

import io

from debug_log import ConsoleSink, MemorySink, NullSink, log_detailed_changes, log_line_differences


class TestSinks:

    def test_console_sink_prefix(self):
        stream = io.StringIO()
        ConsoleSink(stream).log("hello")
        assert stream.getvalue() == "  [DEBUG] hello\n"

    def test_memory_sink(self):
        sink = MemorySink()
        sink.log("Cache hit: abc")
        assert "Cache hit" in sink
        assert "miss" not in sink

    def test_null_sink(self):
        NullSink().log("ignored")


class TestDetailedChanges:
    """Report logged in debug mode."""

    def test_report_sections(self):
        sink = MemorySink()
        log_detailed_changes(sink, '<p class="MsoNormal">x</p>', "<p>x</p>", "post")
        assert "=== DETAILED CHANGES FOR post ===" in sink
        assert "ORIGINAL LENGTH: 26 chars" in sink
        assert "CLEANED LENGTH: 8 chars" in sink
        assert "FOUND 1 class-mso-attributes:" in sink
        assert "CHANGED LINE #0:" in sink
        assert "=== END DETAILED CHANGES ===" in sink

    def test_large_content_logs_samples(self):
        sink = MemorySink()
        original = "<p>" + "x" * 20000 + "</p>"
        log_detailed_changes(sink, original, original, "page")
        assert "BEFORE SAMPLE (truncated):" in sink
        assert not any(m.startswith("CHANGED LINE") for m in sink.messages)

    def test_line_differences_count(self):
        sink = MemorySink()
        assert log_line_differences(sink, "a\nb\nc", "a\nB\nC") == 2
        assert "CHANGED LINES: 2 of 3 lines examined" in sink
