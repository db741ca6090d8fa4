"""
WordCleanse HTML Tree Helpers

Parses HTML fragments with lxml's recovering HTML parser and serializes them
back. A fragment counts as unparseable when lxml raises, or when the parser
logs more errors than the tolerance allows (unknown tags such as ``o:p`` are
not counted).
"""

import re
from html import escape

import lxml.html
from lxml import etree

DEFAULT_ERROR_TOLERANCE = 10
IGNORED_ERROR_TYPES = frozenset(("HTML_UNKNOWN_TAG",))
ERROR_LEVELS = frozenset(("ERROR", "FATAL"))

TAG = re.compile(r"<[^>]*>")
SCRIPT_OR_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)


class ParseFailure(Exception):
    """
    A fragment could not be turned into a usable tree.

    ``content`` and ``regions`` carry the already-extracted fragment so the
    caller can fall back to the pattern cleaner without extracting again.
    """

    def __init__(self, message: str, content: str = None, regions=None):
        super().__init__(message)
        self.content = content
        self.regions = regions


def _counted_errors(parser) -> list:
    return [
        entry for entry in parser.error_log
        if entry.level_name in ERROR_LEVELS and entry.type_name not in IGNORED_ERROR_TYPES
    ]


def parse_fragment(content: str, tolerance: int = DEFAULT_ERROR_TOLERANCE):
    """
    Parse ``content`` inside a ``<body>`` wrapper.

    Returns:
        The body element; its text and children are the fragment.

    Raises:
        ParseFailure: lxml failed or logged more than ``tolerance`` errors.
    """
    parser = lxml.html.HTMLParser(recover=True)
    try:
        doc = lxml.html.document_fromstring(f"<html><body>{content}</body></html>", parser=parser)
    except (etree.ParserError, etree.XMLSyntaxError, ValueError) as e:
        raise ParseFailure(f"Parser error: {e}") from e

    errors = _counted_errors(parser)
    if len(errors) > tolerance:
        raise ParseFailure(f"{len(errors)} parse errors, first: {errors[0].message}")

    body = doc.find("body")
    if body is None:
        raise ParseFailure("Parsed document has no body")
    return body


def element_html(element) -> str:
    """Serialized HTML of ``element`` without its tail text."""
    return lxml.html.tostring(element, encoding="unicode", method="html", with_tail=False)


def serialize_children(body) -> str:
    """Serialize the inside of the wrapper element."""
    parts = [escape(body.text, quote=False)] if body.text else []
    for child in body:
        parts.append(lxml.html.tostring(child, encoding="unicode", method="html"))
    return "".join(parts).replace("\xa0", "&nbsp;")


def is_parseable(content: str, tolerance: int = DEFAULT_ERROR_TOLERANCE) -> bool:
    """Round-trip check: does ``content`` parse within the error tolerance."""
    try:
        parse_fragment(content, tolerance)
    except ParseFailure:
        return False
    return True


def strip_all_tags(content: str) -> str:
    """
    Plain text of a fragment, with script and style bodies dropped.

    The text stays HTML-escaped: ``&lt;b&gt;`` is kept as an entity and never
    comes back as a tag.
    """
    try:
        body = parse_fragment(content)
    except ParseFailure:
        return TAG.sub("", SCRIPT_OR_STYLE.sub("", content)).strip()
    for element in list(body.iter("script", "style")):
        element.drop_tree()
    text = body.text_content().strip()
    return escape(text, quote=False).replace("\xa0", "&nbsp;")
