"""
WordCleanse Field Trees

Cleans nested custom-field values (repeaters, groups, flexible content).
Each field definition is classified once into a ``FieldKind``; text leaves
are cleaned with content type ``acf_<field type>``, containers are walked.

Field definitions are plain dicts::

    {"name": "body", "type": "wysiwyg"}
    {"name": "rows", "type": "repeater", "sub_fields": [...]}
    {"name": "blocks", "type": "flexible_content",
     "layouts": [{"name": "quote", "sub_fields": [...]}]}
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from debug_log import DebugSink, NullSink

DEFAULT_TEXT_FIELD_TYPES = ("text", "textarea", "wysiwyg", "url", "email")
DEFAULT_CONTAINER_FIELD_TYPES = ("repeater", "group", "flexible_content")

LAYOUT_KEY = "acf_fc_layout"
FALLBACK_CONTENT_TYPE = "default"

Cleaner = Callable[[str, str], str]


class FieldKind(Enum):
    TEXT = "text"
    CONTAINER = "container"
    OTHER = "other"


@dataclass
class FieldTypes:
    """Which field types hold text and which hold other fields."""
    text: tuple = DEFAULT_TEXT_FIELD_TYPES
    container: tuple = DEFAULT_CONTAINER_FIELD_TYPES

    def classify(self, field_def: dict) -> FieldKind:
        field_type = (field_def or {}).get("type", "")
        if field_type in self.text:
            return FieldKind.TEXT
        if field_type in self.container:
            return FieldKind.CONTAINER
        return FieldKind.OTHER


@dataclass
class FieldCleanResult:
    """Counters for one walk."""
    cleaned: int = 0
    changed: int = 0
    skipped: list[str] = field(default_factory=list)


def _by_name(sub_fields) -> dict:
    return {f["name"]: f for f in sub_fields or [] if "name" in f and "type" in f}


class FieldTreeCleaner:
    """
    Walks a field value alongside its definition and cleans every text leaf.

    ``clean`` is called once per leaf string with ``(content, content_type)``.
    """

    def __init__(self, clean: Cleaner, field_types: FieldTypes = None, sink: DebugSink = None):
        self.clean = clean
        self.field_types = field_types or FieldTypes()
        self.sink = sink or NullSink()
        self.result = FieldCleanResult()

    def clean_value(self, value, field_def: dict):
        """Return ``value`` with every text leaf cleaned."""
        self.result = FieldCleanResult()
        return self._process(value, field_def)

    def _clean_leaf(self, value: str, content_type: str, name: str) -> str:
        cleaned = self.clean(value, content_type)
        self.result.cleaned += 1
        if cleaned != value:
            self.result.changed += 1
            self.sink.log(f"Field {name}: {len(value)} -> {len(cleaned)} chars")
        return cleaned

    def _process(self, value, field_def: dict):
        name = field_def.get("name", "?")
        kind = self.field_types.classify(field_def)

        if kind is FieldKind.TEXT and isinstance(value, str):
            return self._clean_leaf(value, f"acf_{field_def['type']}", name)

        if kind is FieldKind.CONTAINER:
            field_type = field_def["type"]
            if field_type == "repeater" and isinstance(value, list):
                return [self._process_members(row, _by_name(field_def.get("sub_fields")), name)
                        for row in value]
            if field_type == "group" and isinstance(value, dict):
                return self._process_members(value, _by_name(field_def.get("sub_fields")), name)
            if field_type == "flexible_content" and isinstance(value, list):
                return self._process_flexible(value, field_def)

        self.result.skipped.append(name)
        return value

    def _process_members(self, members, sub_fields: dict, parent: str):
        if not isinstance(members, dict):
            return members

        cleaned = {}
        for key, sub_value in members.items():
            sub_field = sub_fields.get(key)
            if sub_field is not None:
                cleaned[key] = self._process(sub_value, sub_field)
            elif isinstance(sub_value, str) and key != LAYOUT_KEY:
                # No definition: clean plain strings anyway
                cleaned[key] = self._clean_leaf(sub_value, FALLBACK_CONTENT_TYPE, f"{parent}.{key}")
            else:
                cleaned[key] = sub_value
        return cleaned

    def _process_flexible(self, value: list, field_def: dict) -> list:
        layouts = {
            layout["name"]: _by_name(layout.get("sub_fields"))
            for layout in field_def.get("layouts") or []
            if "name" in layout
        }
        out = []
        for block in value:
            layout = block.get(LAYOUT_KEY) if isinstance(block, dict) else None
            if layout not in layouts:
                out.append(block)
                continue
            out.append(self._process_members(block, layouts[layout], f"{field_def.get('name', '?')}[{layout}]"))
        return out


def clean_field_value(value, field_def: dict, clean: Cleaner,
                      field_types: Optional[FieldTypes] = None):
    """Convenience wrapper around ``FieldTreeCleaner``."""
    return FieldTreeCleaner(clean, field_types).clean_value(value, field_def)
