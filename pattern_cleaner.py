"""
WordCleanse Pattern Cleaner

Fallback path: cleans the fragment as a string with the ordered rule tables
from ``patterns``. Also used for short text fields, and for fragments the
tree processor could not parse.

Large fragments of splittable types are cut at safe closing tags and each
chunk is cleaned on its own as ``<type>_chunk``.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from debug_log import DebugSink, NullSink
from detection import has_complex_html
from html_tree import DEFAULT_ERROR_TOLERANCE
from patterns import (
    MAIN_RULES,
    SIMPLE_TEXT_RULES,
    STRUCTURE_RULES,
    apply_rules,
    balance_tags,
    has_escaped_quotes,
    strip_slashes,
)
from policy import SIMPLE_TEXT_TYPES, chunk_type_for, is_chunkable
from protection import ProtectedRegions, extract_protected_regions, find_blocks
from reconstruction import ListStrategy, Reconstructor

DEFAULT_CHUNK_SIZE = 40000

SAFE_BREAKS = ("</p>", "</div>", "</h1>", "</h2>", "</h3>", "</h4>", "</h5>", "</h6>",
               "</table>", "</ul>", "</ol>")
SAFE_BREAK = re.compile("|".join(re.escape(b) for b in SAFE_BREAKS), re.IGNORECASE)

# Blocks a chunk boundary never falls inside
UNSPLITTABLE_BLOCKS = ("table", "ul", "ol")

ChunkCleaner = Callable[[str, str, object], str]


@dataclass
class PatternStatistics:
    """Substitution counts per rule for one pattern-cleaner run."""
    rule_counts: dict = field(default_factory=dict)
    chunks: int = 0
    protected_regions: int = 0

    @property
    def total_substitutions(self) -> int:
        return sum(self.rule_counts.values())

    def merge(self, other: "PatternStatistics"):
        """Add the counts of a chunk run to this run."""
        for name, n in other.rule_counts.items():
            self.rule_counts[name] = self.rule_counts.get(name, 0) + n
        self.protected_regions += other.protected_regions


def split_into_chunks(content: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """
    Split ``content`` into pieces of roughly ``chunk_size`` characters.

    Each piece ends right after the nearest safe closing tag at or after its
    nominal boundary. A safe tag inside a table or list does not count: the
    piece then ends after that whole block. When no safe tag follows, the rest
    of the content forms the last piece.
    """
    blocks = find_blocks(content, UNSPLITTABLE_BLOCKS)
    chunks = []
    pos = 0
    length = len(content)
    while pos < length:
        boundary = pos + chunk_size
        if boundary >= length:
            chunks.append(content[pos:])
            break
        match = SAFE_BREAK.search(content, boundary)
        if match is None:
            chunks.append(content[pos:])
            break
        end = match.end()
        for start, stop in blocks:
            if start < match.start() and end < stop:
                end = stop
                break
        chunks.append(content[pos:end])
        pos = end
    return chunks


class PatternCleaner:
    """
    String-based cleaner.

    Pipeline for one fragment:
    1. Unescape backslash-escaped quotes (never re-escaped)
    2. Extract tables and lists, unless regions were handed in
    3. Main rule pass
    4. Rebuild and substitute protected regions
    5. Structural repair and tag balancing
    """

    def __init__(self, sink: DebugSink = None, chunk_size: int = DEFAULT_CHUNK_SIZE,
                 tolerance: int = DEFAULT_ERROR_TOLERANCE,
                 chunk_cleaner: Optional[ChunkCleaner] = None):
        self.sink = sink or NullSink()
        self.chunk_size = chunk_size
        self.tolerance = tolerance
        self.chunk_cleaner = chunk_cleaner
        self.statistics = PatternStatistics()

    def clean(self, content: str, content_type: str, policy,
              regions: Optional[ProtectedRegions] = None,
              reconstructor: Optional[Reconstructor] = None) -> str:
        """
        Clean ``content`` with the rule tables.

        Args:
            content: HTML fragment
            content_type: Content type name; drives chunking and the simple text path
            policy: Resolved CleaningPolicy
            regions: Regions already extracted by an outer layer; ``content``
                then holds their placeholders and extraction is skipped
            reconstructor: Shared reconstructor for the current operation

        Returns:
            Cleaned fragment
        """
        self.statistics = PatternStatistics()

        if content_type in SIMPLE_TEXT_TYPES and regions is None and not has_complex_html(content):
            return self.clean_simple_text(content, policy)

        if has_escaped_quotes(content):
            content = strip_slashes(content)

        if regions is None and is_chunkable(content_type) and len(content) > self.chunk_size:
            return self.clean_in_chunks(content, content_type, policy)

        reconstructor = reconstructor or Reconstructor(self.sink, self.tolerance)
        if regions is None:
            content, regions = extract_protected_regions(content, policy)
        self.statistics.protected_regions = len(regions)

        content = apply_rules(content, MAIN_RULES, policy, self.statistics.rule_counts, log=self.sink.log)
        content = reconstructor.restore(content, regions, policy, strategy=ListStrategy.PATTERN)
        content = self.repair_structure(content)

        self.sink.log(
            f"Pattern pass: {self.statistics.total_substitutions} substitutions, "
            f"{len(regions)} protected regions"
        )
        return content

    def clean_simple_text(self, content: str, policy) -> str:
        """Reduced rule set for short text fields."""
        return apply_rules(content, SIMPLE_TEXT_RULES, policy, self.statistics.rule_counts,
                           log=self.sink.log)

    def clean_in_chunks(self, content: str, content_type: str, policy) -> str:
        """
        Clean each chunk as ``<type>_chunk``.

        Chunk runs may come back through ``clean`` on this instance, which
        resets ``statistics``; their counts are folded into this run's.
        """
        chunks = split_into_chunks(content, self.chunk_size)
        totals = self.statistics
        totals.chunks = len(chunks)
        self.sink.log(f"Splitting {len(content)} chars into {len(chunks)} chunks")

        chunk_type = chunk_type_for(content_type)
        clean_chunk = self.chunk_cleaner or self.clean
        cleaned = []
        for chunk in chunks:
            cleaned.append(clean_chunk(chunk, chunk_type, policy))
            if self.statistics is not totals:
                totals.merge(self.statistics)
                self.statistics = totals
        return "".join(cleaned)

    def repair_structure(self, content: str) -> str:
        """Fix side effects of the main pass, then balance tags."""
        content = apply_rules(content, STRUCTURE_RULES, None, self.statistics.rule_counts,
                              log=self.sink.log)
        return balance_tags(content)
