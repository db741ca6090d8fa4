"""
WordCleanse Table/List Reconstructor

Rebuilds clean tables and lists from protected regions.

Word pseudo-lists (runs of ``MsoListParagraph`` paragraphs) are rebuilt with
one of two strategies:

- ``PATTERN``: split on paragraph boundaries and always emit ``<ul>``.
- ``TREE``: read each item's marker text through lxml and emit ``<ol>`` when
  every marker is a numeral (``1.``, ``a)``, ``iv.``), ``<ul>`` otherwise.

The pattern cleaner uses the first, the tree cleaner the second.
"""

import hashlib
import re
from enum import Enum
from typing import Optional

from debug_log import DebugSink, NullSink
from html_tree import DEFAULT_ERROR_TOLERANCE, ParseFailure, is_parseable, parse_fragment
from patterns import (
    MAIN_RULES,
    NESTED_PARAGRAPH_OPEN,
    DOUBLE_PARAGRAPH_CLOSE,
    PARAGRAPH_SPAN,
    apply_rules,
    balance_tags,
)
from protection import ProtectedRegions, find_blocks, is_pseudo_list, substitute_placeholders

FLAGS = re.IGNORECASE | re.DOTALL

TABLE_OPEN = re.compile(r"<table\b([^>]*)>", FLAGS)
TABLE_CLOSE = re.compile(r"</table\s*>", FLAGS)
ROW = re.compile(r"<tr\b[^>]*>(.*?)</tr>", FLAGS)
CELL = re.compile(r"<(td|th)\b([^>]*)>(.*?)</\1\s*>", FLAGS)

BORDER = re.compile(r"\bborder\s*=\s*[\"']?(\d+)", FLAGS)
CELLSPACING = re.compile(r"\bcellspacing\s*=\s*[\"']?(\d+)", FLAGS)
CELLPADDING = re.compile(r"\bcellpadding\s*=\s*[\"']?(\d+)", FLAGS)
WIDTH = re.compile(r"(?<![\w-])width\s*=\s*[\"']?(\d+%?)", FLAGS)
VALIGN = re.compile(r"\bvalign\s*=\s*[\"']?(\w+)", FLAGS)
QUOTED_STYLE_OR_CLASS = re.compile(r"\s(?:style|class)\s*=\s*(?:\"[^\"]*\"|'[^']*')", FLAGS)

CELL_PARAGRAPH = re.compile(r"<p\b[^>]*>", FLAGS)
CELL_SPAN = re.compile(r"<span\b[^>]*>", FLAGS)
CELL_PARAGRAPH_SPAN = re.compile(PARAGRAPH_SPAN, FLAGS)
CELL_NESTED_PARAGRAPH = re.compile(NESTED_PARAGRAPH_OPEN, FLAGS)
CELL_DOUBLE_CLOSE = re.compile(DOUBLE_PARAGRAPH_CLOSE, FLAGS)

NESTED_TABLE = "\x00NESTED_TABLE_{}\x00"
NESTED_TABLE_TOKEN = re.compile(r"\x00NESTED_TABLE_(\d+)\x00")

LIST_TAG = re.compile(r"<(ul|ol|li)\b[^>]*>", FLAGS)
LIST_ITEM_TRAILING = re.compile(r"<li>\s*>", FLAGS)
LIST_MARKER_BLOCK = re.compile(
    r"<!--\[if !supportLists\]-->(.*?)<!--\[endif\]-->|<!\[if !supportLists\]>(.*?)<!\[endif\]>",
    FLAGS,
)
PSEUDO_LIST_SPLIT = re.compile(
    r"</p>\s*<p\b[^>]*class\s*=\s*[\"']?MsoListParagraph[^>]*>", FLAGS
)
PSEUDO_LIST_OPEN = re.compile(r"^\s*<p\b[^>]*class\s*=\s*[\"']?MsoListParagraph[^>]*>", FLAGS)
PSEUDO_LIST_CLOSE = re.compile(r"</p>\s*$", FLAGS)
PSEUDO_LIST_ITEM = re.compile(r"<p\b[^>]*>(.*?)</p>", FLAGS)
ORDERED_MARKER = re.compile(r"^\(?(?:\d+|[a-zA-Z]|[ivxlcdm]+|[IVXLCDM]+)[.)]$")


class ListStrategy(Enum):
    """How pseudo-lists are rebuilt."""
    PATTERN = "pattern"
    TREE = "tree"


def _digest(*parts: str) -> str:
    h = hashlib.md5(usedforsecurity=False)
    for part in parts:
        h.update(part.encode("utf-8"))
        h.update(b"\x00")
    return h.hexdigest()


def _first(pattern: re.Pattern, text: str, default: str) -> str:
    match = pattern.search(text)
    return match.group(1) if match else default


def _normalize_paragraphs(content: str) -> str:
    content = CELL_PARAGRAPH_SPAN.sub(r"<p>\1</p>", content)
    content = CELL_NESTED_PARAGRAPH.sub(r"<p\1>", content)
    return CELL_DOUBLE_CLOSE.sub("</p>", content)


class Reconstructor:
    """
    Cleans protected regions and substitutes them back.

    One instance serves one clean operation; its memo is keyed by region
    content and policy.
    """

    def __init__(self, sink: DebugSink = None, tolerance: int = DEFAULT_ERROR_TOLERANCE):
        self.sink = sink or NullSink()
        self.tolerance = tolerance
        self._memo: dict[str, str] = {}
        self.memo_hits = 0

    def _memoized(self, key: str, build) -> str:
        if key in self._memo:
            self.memo_hits += 1
            return self._memo[key]
        result = build()
        self._memo[key] = result
        return result

    # =========================================================================
    # TABLES
    # =========================================================================

    def clean_table(self, table: str, policy) -> str:
        """Rebuild a table as a canonical skeleton, keeping its rows and cells."""
        key = _digest("table", table, policy.digest())
        return self._memoized(key, lambda: self._rebuild_table(table, policy))

    def _rebuild_table(self, table: str, policy) -> str:
        open_match = TABLE_OPEN.match(table.lstrip())
        closes = list(TABLE_CLOSE.finditer(table))
        if open_match is None or not closes:
            return table

        start = len(table) - len(table.lstrip()) + open_match.end()
        inner = table[start:closes[-1].start()]
        attrs = QUOTED_STYLE_OR_CLASS.sub("", open_match.group(1))

        # Nested tables are rebuilt on their own
        nested = []
        parts = []
        pos = 0
        for s, e in find_blocks(inner, ("table",)):
            parts.append(inner[pos:s])
            parts.append(NESTED_TABLE.format(len(nested)))
            nested.append(inner[s:e])
            pos = e
        parts.append(inner[pos:])
        inner = "".join(parts)

        rows = ROW.findall(inner)
        if not rows and re.search(r"<tr\b", inner, FLAGS):
            return table

        border = _first(BORDER, attrs, "1")
        cellspacing = _first(CELLSPACING, attrs, "0")
        cellpadding = _first(CELLPADDING, attrs, "0")

        out = [f'<table border="{border}" cellspacing="{cellspacing}" cellpadding="{cellpadding}">\n']
        for row in rows:
            out.append("<tr>\n")
            for tag, cell_attrs, content in CELL.findall(row):
                out.append(self._rebuild_cell(tag.lower(), cell_attrs, content, policy))
            out.append("</tr>\n")
        out.append("</table>")
        rebuilt = "".join(out)

        return NESTED_TABLE_TOKEN.sub(
            lambda m: self.clean_table(nested[int(m.group(1))], policy), rebuilt
        )

    def _rebuild_cell(self, tag: str, attrs: str, content: str, policy) -> str:
        attrs = QUOTED_STYLE_OR_CLASS.sub("", attrs)
        kept = ""
        width = _first(WIDTH, attrs, "")
        if width:
            kept += f' width="{width}"'
        valign = _first(VALIGN, attrs, "")
        if valign:
            kept += f' valign="{valign}"'

        content = apply_rules(content, MAIN_RULES, policy, log=self.sink.log)
        content = CELL_PARAGRAPH.sub("<p>", content)
        content = CELL_SPAN.sub("<span>", content)
        content = balance_tags(_normalize_paragraphs(content))
        return f"  <{tag}{kept}>\n  {content.strip()}\n  </{tag}>\n"

    # =========================================================================
    # LISTS
    # =========================================================================

    def clean_list(self, fragment: str, marker: str, policy,
                   strategy: ListStrategy = ListStrategy.PATTERN) -> str:
        """Clean a ``<ul>``/``<ol>`` region, or rebuild a Word pseudo-list."""
        if not is_pseudo_list(marker):
            key = _digest("list", fragment, policy.digest())
            return self._memoized(key, lambda: self._clean_regular_list(fragment, policy))

        key = _digest("pseudo", strategy.value, fragment, policy.digest())
        if strategy is ListStrategy.TREE:
            return self._memoized(key, lambda: self._rebuild_pseudo_list_tree(fragment, policy))
        return self._memoized(key, lambda: self._rebuild_pseudo_list(fragment, policy))

    def _clean_regular_list(self, fragment: str, policy) -> str:
        content = LIST_MARKER_BLOCK.sub("", fragment)
        content = apply_rules(content, MAIN_RULES, policy, log=self.sink.log)
        content = LIST_TAG.sub(lambda m: f"<{m.group(1).lower()}>", content)
        return LIST_ITEM_TRAILING.sub("<li>", content)

    def _clean_item(self, item: str, policy) -> str:
        item = apply_rules(item, MAIN_RULES, policy, log=self.sink.log)
        return balance_tags(item.strip())

    def _rebuild_pseudo_list(self, fragment: str, policy) -> str:
        items = []
        for item in PSEUDO_LIST_SPLIT.split(fragment):
            item = LIST_MARKER_BLOCK.sub("", item)
            item = PSEUDO_LIST_OPEN.sub("", item)
            item = PSEUDO_LIST_CLOSE.sub("", item)
            item = self._clean_item(item, policy)
            if item:
                items.append(item)
        return self._emit_list("ul", items)

    def _rebuild_pseudo_list_tree(self, fragment: str, policy) -> str:
        items = []
        ordered = []
        for match in PSEUDO_LIST_ITEM.finditer(fragment):
            body = match.group(1)
            marker_text = ""
            marker = LIST_MARKER_BLOCK.search(body)
            if marker:
                marker_text = self._marker_text(marker.group(1) or marker.group(2) or "")
                body = body[:marker.start()] + body[marker.end():]
            item = self._clean_item(body, policy)
            if item:
                items.append(item)
                ordered.append(bool(ORDERED_MARKER.match(marker_text)))

        tag = "ol" if items and all(ordered) else "ul"
        self.sink.log(f"Pseudo-list rebuilt as <{tag}> with {len(items)} items")
        return self._emit_list(tag, items)

    def _marker_text(self, marker_html: str) -> str:
        try:
            body = parse_fragment(marker_html, self.tolerance)
        except ParseFailure:
            return re.sub(r"<[^>]*>", "", marker_html).replace("&nbsp;", " ").strip()
        return body.text_content().strip()

    @staticmethod
    def _emit_list(tag: str, items: list[str]) -> str:
        lines = [f"<{tag}>"]
        lines.extend(f"  <li>{item}</li>" for item in items)
        lines.append(f"</{tag}>")
        return "\n".join(lines)

    # =========================================================================
    # SUBSTITUTION
    # =========================================================================

    def _verified(self, cleaned: str, original: str, label: str) -> str:
        """Keep ``cleaned`` only if it survives a re-parse."""
        if is_parseable(cleaned, self.tolerance):
            return cleaned
        self.sink.log(f"{label} failed round-trip check, original kept")
        return original

    def restore(self, content: str, regions: ProtectedRegions, policy,
                strategy: ListStrategy = ListStrategy.PATTERN,
                stats: Optional[dict] = None) -> str:
        """
        Substitute cleaned regions back into ``content``.

        Lists are substituted before tables, because a table token can sit
        inside a list region but not the other way round.
        """
        lists = {}
        for marker, fragment in regions.lists.items():
            if policy.protect_lists:
                cleaned = self.clean_list(fragment, marker, policy, strategy)
                fragment = self._verified(cleaned, fragment, marker)
            lists[marker] = fragment

        tables = {}
        for marker, fragment in regions.tables.items():
            if policy.protect_tables:
                cleaned = self.clean_table(fragment, policy)
                fragment = self._verified(cleaned, fragment, marker)
            tables[marker] = fragment

        if stats is not None:
            stats["tables"] = len(tables)
            stats["lists"] = len(lists)

        content = substitute_placeholders(content, lists)
        return substitute_placeholders(content, tables)
