"""
WordCleanse Tree Processor

Primary cleaning path. Parses the fragment with lxml, walks the tree and
rewrites attributes on the elements that carry Word markup.

Strategy:
1. Extract tables and lists into placeholders
2. Remove conditional comments and namespaced tags from the text
3. Parse into a tree (ParseFailure means: use the pattern cleaner)
4. Walk depth-first, cleaning elements whose serialized HTML has Word markers
5. Serialize and substitute the rebuilt tables and lists
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from lxml import etree

from debug_log import DebugSink, NullSink
from detection import NODE_MARKERS, contains_word_markup
from html_tree import DEFAULT_ERROR_TOLERANCE, ParseFailure, element_html, parse_fragment, serialize_children
from patterns import (
    FONT_DECLARATION,
    MSO_DECLARATION,
    TEXT_NODE_RULES,
    apply_rules,
    has_escaped_quotes,
    strip_declarations,
    strip_mso_class_tokens,
    strip_slashes,
)
from protection import extract_protected_regions
from reconstruction import ListStrategy, Reconstructor

PATTERN_KEYS = (
    "mso_classes",
    "mso_styles",
    "xml_namespaces",
    "conditional_comments",
    "font_attributes",
    "style_attributes",
    "lang_attributes",
    "empty_elements",
)

# Rule names counted under each statistics key
RULE_STAT_KEYS = {
    "o_tags": "xml_namespaces",
    "xml_namespace_tags": "xml_namespaces",
    "conditional_comments": "conditional_comments",
    "conditional_tags": "conditional_comments",
    "conditional_list_markers": "conditional_comments",
}


@dataclass
class ProcessingStatistics:
    """Counters for one tree-cleaner run."""
    elements_processed: int = 0
    elements_cleaned: int = 0
    elements_skipped: int = 0
    text_nodes_cleaned: int = 0
    pattern_statistics: dict = field(default_factory=lambda: dict.fromkeys(PATTERN_KEYS, 0))
    processing_time: float = 0.0

    @property
    def efficiency(self) -> float:
        """Percentage of elements skipped as clean."""
        if not self.elements_processed:
            return 0.0
        return round(self.elements_skipped / self.elements_processed * 100, 2)

    def count(self, key: str, n: int = 1):
        self.pattern_statistics[key] = self.pattern_statistics.get(key, 0) + n

    def to_dict(self) -> dict:
        return {
            "elements_processed": self.elements_processed,
            "elements_cleaned": self.elements_cleaned,
            "elements_skipped": self.elements_skipped,
            "text_nodes_cleaned": self.text_nodes_cleaned,
            "efficiency": self.efficiency,
            "pattern_statistics": dict(self.pattern_statistics),
            "processing_time": self.processing_time,
        }


class TreeProcessor:
    """
    Cleans fragments through an lxml tree.

    Elements whose serialized HTML has no Word markers are left alone, but
    their children are still visited.
    """

    def __init__(self, sink: DebugSink = None, tolerance: int = DEFAULT_ERROR_TOLERANCE):
        self.sink = sink or NullSink()
        self.tolerance = tolerance
        self.statistics = ProcessingStatistics()

    def process(self, content: str, policy, reconstructor: Optional[Reconstructor] = None) -> str:
        """
        Clean ``content`` according to ``policy``.

        Raises:
            ParseFailure: the fragment could not be parsed; the exception
                carries the extracted fragment and its protected regions.
        """
        self.statistics = ProcessingStatistics()
        started = time.perf_counter()
        reconstructor = reconstructor or Reconstructor(self.sink, self.tolerance)

        if has_escaped_quotes(content):
            content = strip_slashes(content)

        extracted, regions = extract_protected_regions(content, policy)
        try:
            cleaned = self._clean_tree(extracted, policy)
        except ParseFailure as e:
            raise ParseFailure(str(e), content=extracted, regions=regions) from e

        restored = reconstructor.restore(cleaned, regions, policy, strategy=ListStrategy.TREE)
        self.statistics.processing_time = time.perf_counter() - started
        self.sink.log(
            f"Tree pass: {self.statistics.elements_processed} elements, "
            f"{self.statistics.elements_cleaned} cleaned, "
            f"{self.statistics.elements_skipped} skipped, "
            f"{len(regions)} protected regions"
        )
        return restored

    def _clean_tree(self, content: str, policy) -> str:
        counts = {}
        content = apply_rules(content, TEXT_NODE_RULES, policy, counts, log=self.sink.log)
        for name, n in counts.items():
            self.statistics.count(RULE_STAT_KEYS.get(name, name), n)

        body = parse_fragment(content, self.tolerance)
        body.text = self._clean_text(body.text, policy)
        for child in list(body):
            self._walk(child, policy)
        return serialize_children(body)

    # =========================================================================
    # TRAVERSAL
    # =========================================================================

    def _walk(self, element, policy):
        if not isinstance(element.tag, str):
            # Comments and processing instructions; their tail is still text
            element.tail = self._clean_text(element.tail, policy)
            if policy.conditional_comments and self._is_conditional_comment(element):
                self.statistics.count("conditional_comments")
                self._drop_comment(element)
            return

        self.statistics.elements_processed += 1
        if contains_word_markup(element_html(element), NODE_MARKERS):
            self.statistics.elements_cleaned += 1
            self._clean_element(element, policy)
        else:
            self.statistics.elements_skipped += 1
            if policy.strip_all_styles and "style" in element.attrib:
                del element.attrib["style"]
                self.statistics.count("style_attributes")

        element.text = self._clean_text(element.text, policy)
        for child in list(element):
            self._walk(child, policy)

        if policy.empty_elements and self._is_empty_span(element):
            self.statistics.count("empty_elements")
            self._unwrap(element, policy)
            return
        if policy.xml_namespaces and ":" in element.tag:
            self.statistics.count("xml_namespaces")
            self._unwrap(element, policy)
            return
        element.tail = self._clean_text(element.tail, policy)

    def _clean_text(self, text: Optional[str], policy) -> Optional[str]:
        if not text or not contains_word_markup(text):
            return text
        counts = {}
        cleaned = apply_rules(text, TEXT_NODE_RULES, policy, counts, log=self.sink.log)
        if counts:
            self.statistics.text_nodes_cleaned += 1
            for name, n in counts.items():
                self.statistics.count(RULE_STAT_KEYS.get(name, name), n)
        return cleaned

    def _clean_element(self, element, policy):
        attrib = element.attrib

        if policy.mso_classes and "class" in attrib:
            kept, removed = strip_mso_class_tokens(attrib["class"])
            if removed:
                self.statistics.count("mso_classes", removed)
                if kept:
                    attrib["class"] = kept
                else:
                    del attrib["class"]

        if "style" in attrib:
            style = attrib["style"]
            if policy.style_attributes:
                if policy.mso_styles:
                    style, n = strip_declarations(style, MSO_DECLARATION)
                    self.statistics.count("mso_styles", n)
                if policy.font_attributes:
                    style, n = strip_declarations(style, FONT_DECLARATION)
                    self.statistics.count("font_attributes", n)
            if policy.strip_all_styles:
                style = ""
            style = style.strip()
            if style != attrib["style"]:
                self.statistics.count("style_attributes")
            if style:
                attrib["style"] = style
            else:
                del attrib["style"]

        if policy.lang_attributes and "lang" in attrib:
            del attrib["lang"]
            self.statistics.count("lang_attributes")

        if policy.mso_styles:
            for name in [n for n in attrib if n.lower().startswith("mso-")]:
                del attrib[name]
                self.statistics.count("mso_styles")

    # =========================================================================
    # STRUCTURAL EDITS
    # =========================================================================

    @staticmethod
    def _is_empty_span(element) -> bool:
        return (
            element.tag == "span"
            and not element.attrib
            and len(element) == 0
            and not (element.text or "").strip()
        )

    def _unwrap(self, element, policy):
        """Replace ``element`` by its content, keeping text in place."""
        element.tail = self._clean_text(element.tail, policy)
        element.drop_tag()

    @staticmethod
    def _is_conditional_comment(node) -> bool:
        text = (node.text or "").lstrip()
        return node.tag is etree.Comment and (text.startswith("[if") or text.startswith("[endif"))

    @staticmethod
    def _drop_comment(comment):
        parent = comment.getparent()
        if parent is None:
            return
        if comment.tail:
            prev = comment.getprevious()
            if prev is not None:
                prev.tail = (prev.tail or "") + comment.tail
            else:
                parent.text = (parent.text or "") + comment.tail
        parent.remove(comment)
