"""
WordCleanse Pattern Library

Catalog of the patterns that identify Word-specific markup, and the ordered
rule tables the pattern cleaner applies. Rules are data: each one names the
policy flag that gates it, so rules can be tested one at a time and the pass
order is visible in one place.

Attribute rules operate on whole opening tags (``<p ...>``) so they never
touch text content.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

FLAGS = re.IGNORECASE | re.DOTALL

# Attribute value in any of the three HTML forms: "x", 'x', x
ATTR_VALUE = r"""(?:"[^"]*"|'[^']*'|[^\s"'>]+)"""

OPEN_TAG = r"<[a-zA-Z][^<>]*>"

# Tags and comments
O_TAGS = r"</?o:p>"
XML_NAMESPACE_TAGS = r"</?[a-z][a-z0-9]*:[a-z][a-z0-9]*(?:\s[^>]*)?/?>"
CONDITIONAL_COMMENTS = r"<!--\[if[^\]]*\]>.*?<!\[endif\]-->"
CONDITIONAL_TAGS = r"<!\[if[^\]]*\]>.*?<!\[endif\]>"
CONDITIONAL_LIST_MARKERS = r"<!--\[if[^\]]*\]-->.*?<!--\[endif\]-->"

# Attributes, matched inside a single opening tag
CLASS_ATTR = re.compile(r"""(\s)class\s*=\s*("([^"]*)"|'([^']*)'|([^\s"'>]+))""", re.IGNORECASE)
STYLE_ATTR = re.compile(r"""(\s)style\s*=\s*("([^"]*)"|'([^']*)'|([^\s"'>]+))""", re.IGNORECASE)
LANG_ATTR = re.compile(r"\slang\s*=\s*" + ATTR_VALUE, re.IGNORECASE)
MSO_ATTR = re.compile(r"\smso-[\w-]*\s*=\s*" + ATTR_VALUE, re.IGNORECASE)
EMPTY_STYLE = re.compile(r"""\sstyle\s*=\s*(?:""|'')""", re.IGNORECASE)
EMPTY_CLASS_OR_STYLE = re.compile(r"""\s(?:class|style)\s*=\s*(?:""|'')""", re.IGNORECASE)

MSO_CLASS_TOKEN = re.compile(r"^(Mso|mso)[A-Za-z0-9]+$")

# Declarations, matched inside a style value
# Values may hold entities such as &quot; whose ";" does not end the declaration
DECLARATION_VALUE = r"(?:&#?\w+;|[^;])*;?\s*"
MSO_DECLARATION = re.compile(r"(?<![\w-])mso-[\w-]+\s*:" + DECLARATION_VALUE, re.IGNORECASE)
FONT_DECLARATION = re.compile(
    r"(?<![\w-])(?:font-family|font-size|font-weight|font-style|line-height)\s*:" + DECLARATION_VALUE,
    re.IGNORECASE,
)

# Font declarations left loose in a tag after broken style quoting
LOOSE_FONT_DECLARATION = (
    r"(<[a-zA-Z][^<>]*?)\s+(?:font-family|font-size|font-weight|font-style|line-height)"
    r"\s*:\s*[^;<>\s\"']+;?"
)

EMPTY_SPAN = r"<span\b[^>]*>(\s*)</span>"

# Structural repair
TABLE_IN_PARAGRAPH_OPEN = r"<p>\s*(<(?:table|ul|ol)\b[^>]*>)"
TABLE_IN_PARAGRAPH_CLOSE = r"(</(?:table|ul|ol)>)\s*</p>"
PARAGRAPH_SPAN = r"<p>\s*<span>((?:(?!</?span\b).)*)</span>\s*</p>"
NESTED_PARAGRAPH_OPEN = r"<p(\s[^>]*)?>\s*<p(?:\s[^>]*)?>"
DOUBLE_PARAGRAPH_CLOSE = r"</p>\s*</p>"
LIST_ITEM_TRAILING = r"<li>\s*>"

# Escaped storage quotes
ESCAPED_CHAR = re.compile(r"\\(.)|\\\Z", re.DOTALL)

SAFE_SUB_ERRORS = (re.error, RecursionError, MemoryError, ValueError, TypeError, IndexError)

Replacement = Union[str, Callable[[re.Match], str]]


@dataclass
class Rule:
    """
    One flag-gated substitution in an ordered rule table.

    A ``repeat`` rule is applied again until it stops matching, for markup
    that only becomes matchable once its inner part is removed.
    """
    name: str
    pattern: str
    replacement: Replacement
    flag: Optional[str] = None
    flags: int = FLAGS
    repeat: bool = False
    _compiled: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)

    @property
    def regex(self) -> re.Pattern:
        """Lazily compile the pattern."""
        if self._compiled is None:
            self._compiled = re.compile(self.pattern, self.flags)
        return self._compiled

    def enabled_for(self, policy) -> bool:
        return self.flag is None or bool(getattr(policy, self.flag))


# =============================================================================
# ATTRIBUTE REWRITERS
# =============================================================================

def _attr_value(match: re.Match) -> str:
    for group in (3, 4, 5):
        if match.group(group) is not None:
            return match.group(group)
    return ""


def _quoted(name: str, value: str, lead: str) -> str:
    quote = "'" if '"' in value else '"'
    return f"{lead}{name}={quote}{value}{quote}"


def strip_mso_class_tokens(value: str) -> tuple[str, int]:
    """Drop Mso* class tokens, returning the remaining value and the count removed."""
    tokens = value.split()
    kept = [t for t in tokens if not MSO_CLASS_TOKEN.match(t)]
    return " ".join(kept), len(tokens) - len(kept)


def strip_declarations(value: str, declaration: re.Pattern) -> tuple[str, int]:
    """Remove matching CSS declarations from a style value."""
    cleaned, count = declaration.subn("", value)
    return cleaned.strip(), count


def rewrite_class(tag: str) -> str:
    def edit(match):
        value = _attr_value(match)
        kept, removed = strip_mso_class_tokens(value)
        if not removed:
            return match.group(0)
        if not kept:
            return ""
        return _quoted("class", kept, match.group(1))
    return CLASS_ATTR.sub(edit, tag)


def style_rewriter(declaration: re.Pattern) -> Callable[[str], str]:
    """Build a tag editor that strips ``declaration`` from the style attribute."""
    def rewrite(tag: str) -> str:
        def edit(match):
            value = _attr_value(match)
            cleaned, count = strip_declarations(value, declaration)
            if not count:
                return match.group(0)
            if not cleaned:
                return ""
            return _quoted("style", cleaned, match.group(1))
        return STYLE_ATTR.sub(edit, tag)
    return rewrite


def remover(attribute: re.Pattern) -> Callable[[str], str]:
    return lambda tag: attribute.sub("", tag)


def on_open_tags(edit: Callable[[str], str]) -> Callable[[re.Match], str]:
    """Adapt a tag editor into a replacement callable for ``OPEN_TAG``."""
    return lambda match: edit(match.group(0))


def _collapse_empty_span(match: re.Match) -> str:
    return " " if match.group(1) else ""


# =============================================================================
# RULE TABLES
# =============================================================================

# Fixed order: namespaces, conditionals, classes, mso styles, fonts, blanket
# style stripping, lang, mso attributes, empty cleanup.
MAIN_RULES = (
    Rule("o_tags", O_TAGS, "", "xml_namespaces"),
    Rule("xml_namespace_tags", XML_NAMESPACE_TAGS, "", "xml_namespaces"),
    Rule("conditional_comments", CONDITIONAL_COMMENTS, "", "conditional_comments"),
    Rule("conditional_tags", CONDITIONAL_TAGS, "", "conditional_comments"),
    Rule("conditional_list_markers", CONDITIONAL_LIST_MARKERS, "", "conditional_comments"),
    Rule("mso_classes", OPEN_TAG, on_open_tags(rewrite_class), "mso_classes"),
    Rule("mso_styles", OPEN_TAG, on_open_tags(style_rewriter(MSO_DECLARATION)), "mso_styles"),
    Rule("font_styles", OPEN_TAG, on_open_tags(style_rewriter(FONT_DECLARATION)), "font_attributes"),
    Rule("loose_font_declarations", LOOSE_FONT_DECLARATION, r"\1", "font_attributes"),
    Rule("all_styles", OPEN_TAG, on_open_tags(remover(STYLE_ATTR)), "strip_all_styles"),
    Rule("empty_styles", OPEN_TAG, on_open_tags(remover(EMPTY_STYLE)), "style_attributes"),
    Rule("lang_attributes", OPEN_TAG, on_open_tags(remover(LANG_ATTR)), "lang_attributes"),
    Rule("mso_attributes", OPEN_TAG, on_open_tags(remover(MSO_ATTR)), "mso_styles"),
    Rule("empty_spans", EMPTY_SPAN, _collapse_empty_span, "empty_elements", repeat=True),
    Rule("empty_class_or_style", OPEN_TAG, on_open_tags(remover(EMPTY_CLASS_OR_STYLE)), "empty_elements"),
)

SIMPLE_TEXT_FLAGS = ("xml_namespaces", "conditional_comments", "mso_classes", "mso_styles")
SIMPLE_TEXT_RULES = tuple(
    r for r in MAIN_RULES if r.flag in SIMPLE_TEXT_FLAGS and r.name != "mso_attributes"
)

# Text nodes carry no attributes
TEXT_NODE_RULES = tuple(r for r in MAIN_RULES if r.flag in ("xml_namespaces", "conditional_comments"))

STRUCTURE_RULES = (
    Rule("block_in_paragraph_open", TABLE_IN_PARAGRAPH_OPEN, r"\1"),
    Rule("block_in_paragraph_close", TABLE_IN_PARAGRAPH_CLOSE, r"\1"),
    Rule("paragraph_span", PARAGRAPH_SPAN, r"<p>\1</p>"),
    Rule("nested_paragraph_open", NESTED_PARAGRAPH_OPEN, r"<p\1>"),
    Rule("double_paragraph_close", DOUBLE_PARAGRAPH_CLOSE, "</p>"),
    Rule("list_item_trailing", LIST_ITEM_TRAILING, "<li>"),
)


# =============================================================================
# APPLICATION
# =============================================================================

def safe_sub(rule: Rule, text: str, log: Optional[Callable[[str], None]] = None) -> tuple[str, int]:
    """
    Apply one rule. On an internal failure the input is returned unchanged.

    Returns:
        (result, number of substitutions; for callable rules, matches that changed)
    """
    try:
        if callable(rule.replacement):
            changed = 0

            def replace(match):
                nonlocal changed
                out = rule.replacement(match)
                if out != match.group(0):
                    changed += 1
                return out

            return rule.regex.sub(replace, text), changed
        return rule.regex.subn(rule.replacement, text)
    except SAFE_SUB_ERRORS as e:
        if log is not None:
            log(f"Rule '{rule.name}' failed, input kept: {e}")
        return text, 0


def apply_rules(text: str, rules, policy, counts: Optional[dict] = None,
                log: Optional[Callable[[str], None]] = None) -> str:
    """Apply ``rules`` in order, skipping those whose flag is off in ``policy``."""
    for rule in rules:
        if not rule.enabled_for(policy):
            continue
        text, n = safe_sub(rule, text, log)
        total = n
        # Every match shortens the text
        while rule.repeat and n:
            text, n = safe_sub(rule, text, log)
            total += n
        if counts is not None and total:
            counts[rule.name] = counts.get(rule.name, 0) + total
    return text


# =============================================================================
# ESCAPED QUOTES
# =============================================================================

def has_escaped_quotes(content: str) -> bool:
    return '\\"' in content or "\\'" in content


def strip_slashes(content: str) -> str:
    """Undo backslash escaping: ``\\x`` becomes ``x``."""
    return ESCAPED_CHAR.sub(lambda m: m.group(1) or "", content)


def add_slashes(content: str) -> str:
    return (
        content.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace('"', '\\"')
        .replace("\0", "\\0")
    )


# =============================================================================
# TAG BALANCING
# =============================================================================

VOID_ELEMENTS = frozenset((
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
))

# Tags that may legally contain themselves
NESTABLE_ELEMENTS = frozenset((
    "article", "aside", "blockquote", "details", "div", "figure",
    "object", "q", "section", "span", "table", "ul", "ol",
))

TAG_TOKEN = re.compile(r"<!--.*?-->|<(/?)([a-zA-Z][a-zA-Z0-9:-]*)([^<>]*?)(/?)>", re.DOTALL)


def balance_tags(html: str) -> str:
    """
    Close unclosed tags and drop stray closing tags.

    Opening a non-nestable tag while the same tag is open closes the previous
    one first (``<p>a<p>b`` becomes ``<p>a</p><p>b</p>``).
    """
    out = []
    stack: list[str] = []
    pos = 0

    for match in TAG_TOKEN.finditer(html):
        out.append(html[pos:match.start()])
        pos = match.end()
        token = match.group(0)
        name = match.group(2)

        if name is None or match.group(4) or name.lower() in VOID_ELEMENTS:
            out.append(token)
            continue

        name = name.lower()
        if not match.group(1):
            if stack and stack[-1] == name and name not in NESTABLE_ELEMENTS:
                out.append(f"</{stack.pop()}>")
            stack.append(name)
            out.append(token)
            continue

        if name not in stack:
            continue
        while stack:
            top = stack.pop()
            if top == name:
                break
            out.append(f"</{top}>")
        out.append(token)

    out.append(html[pos:])
    while stack:
        out.append(f"</{stack.pop()}>")
    return "".join(out)
