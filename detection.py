"""
WordCleanse Detection Module

Cheap checks that decide whether a fragment needs cleaning at all, plus a
pattern analysis used for debug reports and the diagnose tool.

The detector is a heuristic gate: a false negative means the fragment is left
unchanged, never that content is lost.
"""

import re
from dataclasses import dataclass, field

# Literal markers, checked with plain substring search
WORD_MARKERS = (
    "mso-",
    'class="Mso',
    "<o:p>",
    "<!--[if",
    "w:WordDocument",
    "panose-1:",
    "urn:schemas-microsoft-com:",
    'style="mso-',
    "<m:",
    "<v:",
    'font-family:"Cambria Math"',
)

# Serialized nodes lose the original quoting of class attributes
NODE_MARKERS = WORD_MARKERS + ("Mso",)

COMPLEX_TAGS = ("<table", "<div", "<ul", "<ol", "<h1", "<h2", "<h3")
MAX_SIMPLE_TAGS = 10
TAG = re.compile(r"<[^>]+>")

ANALYSIS_PATTERNS = {
    "mso-style-attributes": r"mso-[^:;\"']+:[^;\"']+",
    "class-mso-attributes": r"class\s*=\s*[\"']?Mso[^\"'\s>]*",
    "word-xml-tags": r"</?[a-z][a-z0-9]*:[a-z][a-z0-9]*[^>]*>",
    "word-conditionals": r"<!(?:--)?\[if[^\]]*\]>",
    "style-attributes": r"style\s*=\s*[\"'][^\"']*[\"']",
    "font-attributes": r"font-(?:family|size|weight|style)\s*:[^;\"']+",
}


def contains_word_markup(text, markers=WORD_MARKERS) -> bool:
    """True if any Word marker appears in ``text``."""
    if not isinstance(text, str) or not text:
        return False
    return any(marker in text for marker in markers)


def has_complex_html(content: str) -> bool:
    """True for fragments with block structure or more than a handful of tags."""
    lowered = content.lower()
    if any(tag in lowered for tag in COMPLEX_TAGS):
        return True
    return len(TAG.findall(content)) > MAX_SIMPLE_TAGS


@dataclass
class PatternMatch:
    """Occurrences of one analysis pattern."""
    name: str
    count: int = 0
    examples: list[str] = field(default_factory=list)

    def __repr__(self):
        return f"PatternMatch({self.name}, count={self.count})"


@dataclass
class MarkupReport:
    """What Word markup a fragment carries."""
    length: int
    has_word_markup: bool
    complex_html: bool
    matches: dict[str, PatternMatch] = field(default_factory=dict)

    @property
    def total_matches(self) -> int:
        return sum(m.count for m in self.matches.values())


def analyze_markup(content: str, max_examples: int = 3) -> MarkupReport:
    """
    Count Word-specific patterns in ``content``.

    Args:
        content: HTML fragment
        max_examples: How many matched snippets to keep per pattern

    Returns:
        MarkupReport with per-pattern counts and examples
    """
    report = MarkupReport(
        length=len(content),
        has_word_markup=contains_word_markup(content),
        complex_html=has_complex_html(content),
    )
    for name, pattern in ANALYSIS_PATTERNS.items():
        found = re.findall(pattern, content, re.IGNORECASE | re.DOTALL)
        if found:
            report.matches[name] = PatternMatch(
                name=name,
                count=len(found),
                examples=found[:max_examples],
            )
    return report
