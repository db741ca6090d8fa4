"""
WordCleanse Protected-Region Extractor

Swaps tables and lists out of a fragment for placeholder tokens, so the
generic cleaning pass cannot mangle their structure. Tables are extracted
first; a list inside a table therefore stays inside the table's region.
"""

import re
from dataclasses import dataclass, field

TABLE_MARKER = "TABLE_MARKER_{}"
LIST_MARKER = "LIST_MARKER_{}"
MSOLIST_MARKER = "MSOLIST_MARKER_{}"

# TABLE_MARKER_1 never matches inside TABLE_MARKER_10, LIST_MARKER_2 never
# matches inside MSOLIST_MARKER_2. A digit may precede: markers can be adjacent.
PLACEHOLDER = re.compile(r"(?<![A-Za-z_])(?:TABLE|MSOLIST|LIST)_MARKER_\d+(?![0-9])")

MSO_LIST_PARAGRAPH = (
    r"<p\b[^>]*class\s*=\s*[\"']?MsoListParagraph[^>]*>.*?</p>"
)
MSO_LIST_RUN = re.compile(
    MSO_LIST_PARAGRAPH + r"(?:\s*" + MSO_LIST_PARAGRAPH + r")*",
    re.IGNORECASE | re.DOTALL,
)


@dataclass
class ProtectedRegions:
    """Placeholder token to original fragment, for one clean operation."""
    tables: dict[str, str] = field(default_factory=dict)
    lists: dict[str, str] = field(default_factory=dict)

    def __len__(self):
        return len(self.tables) + len(self.lists)

    @property
    def pseudo_lists(self) -> dict[str, str]:
        return {k: v for k, v in self.lists.items() if is_pseudo_list(k)}


def is_pseudo_list(marker: str) -> bool:
    return marker.startswith("MSOLIST_")


def find_blocks(content: str, tags: tuple[str, ...]) -> list[tuple[int, int]]:
    """
    Spans of top-level ``<tag>...</tag>`` blocks, first to last.

    Open and close tags are counted, so nested blocks stay inside their outer
    block. A block that is never closed is not returned.
    """
    token = re.compile(r"<(/?)(%s)\b[^>]*>" % "|".join(tags), re.IGNORECASE)
    spans = []
    depth = 0
    start = 0
    for match in token.finditer(content):
        if match.group(1):
            if depth == 0:
                continue
            depth -= 1
            if depth == 0:
                spans.append((start, match.end()))
        else:
            if depth == 0:
                start = match.start()
            depth += 1
    return spans


def _replace_spans(content: str, spans, marker: str, store: dict, offset: int = 0) -> str:
    parts = []
    pos = 0
    for i, (start, end) in enumerate(spans):
        token = marker.format(i + offset)
        store[token] = content[start:end]
        parts.append(content[pos:start])
        parts.append(token)
        pos = end
    parts.append(content[pos:])
    return "".join(parts)


def extract_protected_regions(content: str, policy) -> tuple[str, ProtectedRegions]:
    """
    Replace tables and lists with placeholders.

    Returns:
        (fragment with placeholders, ProtectedRegions)
    """
    regions = ProtectedRegions()
    lowered = content.lower()

    if policy.protect_tables and "<table" in lowered:
        content = _replace_spans(content, find_blocks(content, ("table",)), TABLE_MARKER, regions.tables)

    if policy.protect_lists:
        lowered = content.lower()
        if "<ul" in lowered or "<ol" in lowered:
            content = _replace_spans(content, find_blocks(content, ("ul", "ol")), LIST_MARKER, regions.lists)

        if "MsoListParagraph" in content:
            spans = [m.span() for m in MSO_LIST_RUN.finditer(content)]
            content = _replace_spans(content, spans, MSOLIST_MARKER, regions.lists, offset=len(regions.lists))

    return content, regions


def substitute_placeholders(content: str, replacements: dict) -> str:
    """Put fragments back in place of their tokens. Unknown tokens are left alone."""
    if not replacements:
        return content
    return PLACEHOLDER.sub(lambda m: replacements.get(m.group(0), m.group(0)), content)
