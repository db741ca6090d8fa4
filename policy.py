"""
WordCleanse Policy Module

Resolves the cleaning policy for a content type: a built-in default per type,
overlaid key by key with stored overrides.
"""

import hashlib
import json
from dataclasses import asdict, dataclass, fields, replace
from typing import Mapping, Optional, Protocol

CHUNK_SUFFIX = "_chunk"

# Types that are safe to split into chunks
CHUNKABLE_TYPES = frozenset(("post", "page", "wp_content", "acf_wysiwyg", "default"))

# Short text fields, cleaned with the reduced rule set unless they carry block markup
SIMPLE_TEXT_TYPES = frozenset(("acf_text", "acf_textarea"))

TRUE_STRINGS = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class CleaningPolicy:
    """Boolean switches for one clean operation."""
    xml_namespaces: bool = True
    conditional_comments: bool = True
    mso_classes: bool = True
    mso_styles: bool = True
    font_attributes: bool = True
    style_attributes: bool = True
    lang_attributes: bool = True
    empty_elements: bool = True
    protect_tables: bool = True
    protect_lists: bool = True
    strip_all_styles: bool = False
    strip_all_html: bool = False
    use_tree_processing: bool = True

    @classmethod
    def flag_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def with_overrides(self, overrides: Optional[Mapping[str, object]]) -> "CleaningPolicy":
        """Overlay ``overrides`` on this policy. Unknown keys are ignored."""
        if not overrides:
            return self
        known = set(self.flag_names())
        changes = {k: _as_bool(v) for k, v in overrides.items() if k in known}
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)

    def digest(self) -> str:
        """Stable hash of the switch values."""
        payload = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.md5(payload.encode("utf-8"), usedforsecurity=False).hexdigest()


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


# Clean everything
DEFAULT_POLICY = CleaningPolicy()

TEXT_FIELD_POLICY = CleaningPolicy(
    font_attributes=False,
    style_attributes=False,
    lang_attributes=False,
    empty_elements=False,
    protect_tables=False,
    protect_lists=False,
)

EXCERPT_POLICY = CleaningPolicy(
    protect_tables=False,
    protect_lists=False,
    strip_all_html=True,
)

DEFAULT_POLICIES: dict[str, CleaningPolicy] = {
    "post": DEFAULT_POLICY,
    "page": DEFAULT_POLICY,
    "wp_content": DEFAULT_POLICY,
    "acf_wysiwyg": DEFAULT_POLICY,
    "acf_block_field": DEFAULT_POLICY,
    "acf_block_content": DEFAULT_POLICY,
    "acf_text": TEXT_FIELD_POLICY,
    "acf_textarea": TEXT_FIELD_POLICY,
    "excerpt": EXCERPT_POLICY,
}


def default_policy(content_type: str) -> CleaningPolicy:
    return DEFAULT_POLICIES.get(content_type, DEFAULT_POLICY)


def resolve_policy(content_type: str,
                   stored_overrides: Optional[Mapping[str, object]] = None) -> CleaningPolicy:
    """
    Resolve the policy for ``content_type``.

    The built-in default for the exact type (or the clean-everything default
    for unknown types) is overlaid with ``stored_overrides``; overrides win.
    """
    return default_policy(content_type).with_overrides(stored_overrides)


class PolicyStore(Protocol):
    """Persisted per-type overrides."""

    def get_overrides(self, content_type: str) -> Mapping[str, bool]:
        ...


class StaticPolicyStore:
    """Overrides held in a plain mapping of ``{content_type: {flag: bool}}``."""

    def __init__(self, overrides: Optional[Mapping[str, Mapping[str, object]]] = None):
        self._overrides = {k: dict(v or {}) for k, v in (overrides or {}).items()}

    def get_overrides(self, content_type: str) -> Mapping[str, bool]:
        return self._overrides.get(content_type, {})

    def set_override(self, content_type: str, flag: str, value: bool):
        self._overrides.setdefault(content_type, {})[flag] = value


# =============================================================================
# CONTENT TYPES
# =============================================================================

def is_chunk_type(content_type: str) -> bool:
    return CHUNK_SUFFIX in content_type


def chunk_type_for(content_type: str) -> str:
    return f"{content_type}{CHUNK_SUFFIX}"


def is_chunkable(content_type: str) -> bool:
    return content_type in CHUNKABLE_TYPES and not is_chunk_type(content_type)
