"""
WordCleanse Debug Logging

Debug output goes through a sink object. The console sink prints the same
``  [DEBUG]`` lines the CLI prints in verbose mode; the null sink discards
everything, so an absent sink never changes cleaning results.
"""

import sys
from typing import Protocol, TextIO

from detection import analyze_markup

SAMPLE_LENGTH = 2000
LINE_DIFF_LIMIT = 10000
MAX_LINES_CHECKED = 100
MAX_LINE_EXAMPLES = 5
LINE_PREVIEW = 200


class DebugSink(Protocol):
    def log(self, message: str) -> None:
        ...


class NullSink:
    """Discards messages."""

    def log(self, message: str) -> None:
        pass


class ConsoleSink:
    """Prints messages to stderr (or ``stream``)."""

    def __init__(self, stream: TextIO = None, prefix: str = "  [DEBUG] "):
        self.stream = stream
        self.prefix = prefix

    def log(self, message: str) -> None:
        print(f"{self.prefix}{message}", file=self.stream or sys.stderr)


class MemorySink:
    """Keeps messages in a list."""

    def __init__(self):
        self.messages: list[str] = []

    def log(self, message: str) -> None:
        self.messages.append(message)

    def __contains__(self, text: str) -> bool:
        return any(text in m for m in self.messages)


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def log_detailed_changes(sink: DebugSink, original: str, cleaned: str, context: str = "content"):
    """Report what a clean operation changed: sizes, patterns found, changed lines."""
    sink.log(f"=== DETAILED CHANGES FOR {context} ===")

    orig_length = len(original)
    clean_length = len(cleaned)
    removed = orig_length - clean_length
    percent = round(removed / orig_length * 100, 2) if orig_length else 0

    sink.log(f"ORIGINAL LENGTH: {orig_length} chars")
    sink.log(f"CLEANED LENGTH: {clean_length} chars")
    sink.log(f"REMOVED: {removed} chars ({percent}% reduction)")

    log_pattern_analysis(sink, original)

    if orig_length < LINE_DIFF_LIMIT and clean_length < LINE_DIFF_LIMIT:
        log_line_differences(sink, original, cleaned)
    else:
        sink.log("BEFORE SAMPLE (truncated):")
        sink.log(_truncate(original, SAMPLE_LENGTH))
        sink.log("AFTER SAMPLE (truncated):")
        sink.log(_truncate(cleaned, SAMPLE_LENGTH))

    sink.log("=== END DETAILED CHANGES ===")


def log_pattern_analysis(sink: DebugSink, content: str) -> int:
    report = analyze_markup(content)
    for match in report.matches.values():
        sink.log(f"FOUND {match.count} {match.name}:")
        for i, example in enumerate(match.examples, 1):
            sink.log(f"  Example {i}: {example.strip()}")
    sink.log(f"TOTAL WORD MARKUP PATTERNS FOUND: {report.total_matches}")
    return report.total_matches


def log_line_differences(sink: DebugSink, original: str, cleaned: str) -> int:
    orig_lines = original.split("\n")
    clean_lines = cleaned.split("\n")
    checked = min(MAX_LINES_CHECKED, len(orig_lines))

    different = 0
    shown = 0
    for i in range(checked):
        if i >= len(clean_lines) or orig_lines[i] == clean_lines[i]:
            continue
        different += 1
        if shown < MAX_LINE_EXAMPLES and orig_lines[i]:
            shown += 1
            sink.log(f"CHANGED LINE #{i}:")
            sink.log(f"  BEFORE: {_truncate(orig_lines[i], LINE_PREVIEW)}")
            sink.log(f"  AFTER:  {_truncate(clean_lines[i], LINE_PREVIEW)}")

    sink.log(f"CHANGED LINES: {different} of {len(orig_lines)} lines examined")
    return different
