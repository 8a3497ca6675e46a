#
#  Copyright 2025 The InfiniFlow Authors. All Rights Reserved.
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#
"""
Layout grammar model.

A Grammar is an immutable tree of record declarations ("lines") whose ordered
children are either fixed-width fields or nested records. The child variant is
decided once, when the layout is loaded, from an explicit discriminator; code
downstream of the loader only inspects the variant type.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

from common.constants import CHILD_KIND_ALIASES, SEQUENCE_FIELD_NAME, Alignment, ChildKind, LayoutType
from common.settings import ParserSettings, get_settings
from layoutparser.models import LayoutParserError


class GrammarLoadError(LayoutParserError, ValueError):
    """Raised when a layout mapping cannot be turned into a Grammar."""


@dataclass(frozen=True)
class FieldDecl:
    name: str
    length: int
    sequence: int = 0
    id: str = ""
    is_required: bool = False
    alignment: Alignment = Alignment.LEFT
    description: str = ""

    @property
    def is_sequence_marker(self) -> bool:
        """The Sequencia field belongs to the start of the next physical line."""
        return self.name.lower() == SEQUENCE_FIELD_NAME.lower()


@dataclass(frozen=True)
class FieldChild:
    field: FieldDecl


@dataclass(frozen=True)
class RecordChild:
    record: "RecordDecl"


Child = Union[FieldChild, RecordChild]


@dataclass(frozen=True)
class RecordDecl:
    name: str
    initial_value: str = ""
    sequence: int = 0
    id: str = ""
    min_occurs: int = 0
    max_occurs: int = 1
    children: Tuple[Child, ...] = field(default_factory=tuple)
    is_required: bool = False
    description: str = ""

    @property
    def fields(self) -> Tuple[FieldDecl, ...]:
        return tuple(c.field for c in self.children if isinstance(c, FieldChild))

    @property
    def records(self) -> Tuple["RecordDecl", ...]:
        return tuple(c.record for c in self.children if isinstance(c, RecordChild))

    @property
    def has_children(self) -> bool:
        return any(isinstance(c, RecordChild) for c in self.children)

    @property
    def short_name(self) -> str:
        """Name without hierarchy prefix (PARENT.CHILD -> CHILD)."""
        if self.name and "." in self.name:
            return self.name.split(".")[-1]
        return self.name

    def walk(self) -> Iterator["RecordDecl"]:
        """Depth-first pre-order over this record and every nested record."""
        yield self
        for record in self.records:
            yield from record.walk()


@dataclass(frozen=True)
class Grammar:
    id: str
    records: Tuple[RecordDecl, ...] = field(default_factory=tuple)
    line_width: int = 600
    name: str = ""
    layout_type: LayoutType = LayoutType.UNKNOWN
    description: str = ""

    def all_records(self) -> Iterator[RecordDecl]:
        for record in self.records:
            yield from record.walk()

    def find(self, name: str) -> Optional[RecordDecl]:
        for record in self.all_records():
            if record.name == name:
                return record
        return None


# =============================================================================
# Loading
# =============================================================================


def _to_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _to_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "1", "yes"):
            return True
        if normalized in ("false", "0", "no"):
            return False
    return default


def _get(mapping: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key; accepts both snake_case and the legacy PascalCase names."""
    for key in keys:
        if key in mapping and mapping[key] is not None:
            return mapping[key]
    return default


def _child_kind(child: Mapping[str, Any], path: str) -> ChildKind:
    raw = _get(child, "kind", "type", "Type")
    if raw is None:
        raise GrammarLoadError(f"Child at {path} has no 'kind' discriminator")
    kind = CHILD_KIND_ALIASES.get(str(raw).strip().lower())
    if kind is None:
        raise GrammarLoadError(f"Child at {path} has unknown kind '{raw}'")
    return kind


def _load_field(data: Mapping[str, Any], path: str) -> FieldDecl:
    name = _get(data, "name", "Name", default="")
    if not name:
        raise GrammarLoadError(f"Field at {path} has no name")
    return FieldDecl(
        name=str(name),
        length=_to_int(_get(data, "length", "LengthField")),
        sequence=_to_int(_get(data, "sequence", "Sequence")),
        id=str(_get(data, "id", "ElementGuid", default="")),
        is_required=_to_bool(_get(data, "is_required", "IsRequired")),
        alignment=Alignment.parse(_get(data, "alignment", "AlignmentType")),
        description=str(_get(data, "description", "Description", default="")),
    )


def _load_record(data: Mapping[str, Any], path: str) -> RecordDecl:
    if not isinstance(data, Mapping):
        raise GrammarLoadError(f"Record at {path} must be a mapping, got {type(data).__name__}")
    name = _get(data, "name", "Name", default="")
    if not name:
        raise GrammarLoadError(f"Record at {path} has no name")

    children = []
    for index, child in enumerate(_get(data, "children", "elements", "Elements", default=[]) or []):
        child_path = f"{path}.{name}[{index}]"
        if not isinstance(child, Mapping):
            raise GrammarLoadError(f"Child at {child_path} must be a mapping")
        if _child_kind(child, child_path) is ChildKind.FIELD:
            children.append(FieldChild(_load_field(child, child_path)))
        else:
            children.append(RecordChild(_load_record(child, child_path)))

    return RecordDecl(
        name=str(name),
        initial_value=str(_get(data, "initial_value", "InitialValue", default="")),
        sequence=_to_int(_get(data, "sequence", "Sequence")),
        id=str(_get(data, "id", "ElementGuid", default="")),
        min_occurs=_to_int(_get(data, "min_occurs", "MinimalOccurrence")),
        max_occurs=_to_int(_get(data, "max_occurs", "MaximumOccurrence"), default=1),
        children=tuple(children),
        is_required=_to_bool(_get(data, "is_required", "IsRequired")),
        description=str(_get(data, "description", "Description", default="")),
    )


def load_grammar(data: Mapping[str, Any], settings: Optional[ParserSettings] = None) -> Grammar:
    """
    Build a Grammar from a plain mapping.

    Every child entry must carry an explicit ``kind`` ("field" or "record"; the
    legacy ``FieldElementVO`` / ``LineElementVO`` type names are accepted too).

    Raises:
        GrammarLoadError: if the mapping does not describe a layout
    """
    if not isinstance(data, Mapping):
        raise GrammarLoadError(f"Layout must be a mapping, got {type(data).__name__}")
    settings = settings or get_settings()

    layout_id = str(_get(data, "id", "LayoutGuid", default=""))
    records = tuple(_load_record(r, "records") for r in (_get(data, "records", "elements", "Elements", default=[]) or []))

    explicit_width = _to_int(_get(data, "line_width", "LimitOfCaracters"), default=0)
    line_width = explicit_width if explicit_width > 0 else settings.line_width_for(layout_id)

    return Grammar(
        id=layout_id,
        records=records,
        line_width=line_width,
        name=str(_get(data, "name", "Name", default="")),
        layout_type=LayoutType.parse(_get(data, "layout_type", "LayoutType")),
        description=str(_get(data, "description", "Description", default="")),
    )


def load_grammar_json(source: Union[str, bytes, os.PathLike], settings: Optional[ParserSettings] = None) -> Grammar:
    """Load a Grammar from a JSON file path or a JSON string."""
    try:
        if isinstance(source, bytes):
            text = source.decode("utf-8-sig")
        elif isinstance(source, os.PathLike) or (isinstance(source, str) and not source.lstrip().startswith(("{", "["))):
            with open(source, "r", encoding="utf-8-sig") as f:
                text = f.read()
        else:
            text = source
    except UnicodeDecodeError as e:
        raise GrammarLoadError(f"Layout is not valid UTF-8: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GrammarLoadError(f"Layout is not valid JSON: {e}") from e
    return load_grammar(data, settings)


def grammar_to_dict(grammar: Grammar) -> Dict[str, Any]:
    """Inverse of load_grammar, used by the CLI and for caching keys."""

    def record_to_dict(record: RecordDecl) -> Dict[str, Any]:
        children = []
        for child in record.children:
            if isinstance(child, FieldChild):
                f = child.field
                children.append(
                    {
                        "kind": ChildKind.FIELD.value,
                        "name": f.name,
                        "length": f.length,
                        "sequence": f.sequence,
                        "id": f.id,
                        "is_required": f.is_required,
                        "alignment": f.alignment.value,
                    }
                )
            else:
                children.append({"kind": ChildKind.RECORD.value, **record_to_dict(child.record)})
        return {
            "name": record.name,
            "initial_value": record.initial_value,
            "sequence": record.sequence,
            "id": record.id,
            "min_occurs": record.min_occurs,
            "max_occurs": record.max_occurs,
            "is_required": record.is_required,
            "children": children,
        }

    return {
        "id": grammar.id,
        "name": grammar.name,
        "line_width": grammar.line_width,
        "layout_type": grammar.layout_type.value,
        "records": [record_to_dict(r) for r in grammar.records],
    }
