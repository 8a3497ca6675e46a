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
from dataclasses import dataclass, field
from typing import List, Optional

from common.constants import Alignment, DiagnosticCode, DiagnosticLevel, FieldStatus
from common.settings import ParserSettings, get_settings
from layoutparser.grammar import FieldDecl, RecordDecl
from layoutparser.models import Diagnostic, ParsedField


@dataclass
class ExtractionOutcome:
    fields: List[ParsedField] = field(default_factory=list)
    end_offset: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)


def apply_alignment(raw: str, alignment: Alignment) -> str:
    if alignment == Alignment.RIGHT:
        return raw.lstrip()
    if alignment == Alignment.CENTER:
        return raw.strip()
    return raw.rstrip()


def start_offset(decl: RecordDecl, settings: ParserSettings) -> int:
    """
    Column where the first field of a record starts.

    HEADER has no sequence marker, so its fields follow the literal directly.
    Every other record starts after the 6-byte marker and its discriminator.
    """
    initial = decl.initial_value or ""
    if decl.name == settings.header_token:
        return len(initial)
    return settings.marker_width + len(initial)


def _classify(decl: FieldDecl, raw: str, value: str):
    if decl.is_required and not value:
        return FieldStatus.ERROR, f"Required field {decl.name} is empty"
    if len(raw) < decl.length:
        return FieldStatus.WARNING, f"Field {decl.name} truncated: {len(raw)} of {decl.length} characters"
    return FieldStatus.OK, ""


def extract(
    decl: RecordDecl,
    line: str,
    occurrence_index: Optional[int] = None,
    accumulator: Optional[List[ParsedField]] = None,
    line_width: Optional[int] = None,
    line_index: int = 0,
    settings: Optional[ParserSettings] = None,
) -> ExtractionOutcome:
    """
    Slice a resolved line into ParsedField values.

    Fields are appended to ``accumulator`` when one is given; the declaration is
    never modified. A line that does not end exactly at ``line_width`` yields a
    GRAMMAR_DATA_MISMATCH warning, not an error.
    """
    settings = settings or get_settings()
    line_width = line_width or settings.line_width
    accumulator = accumulator if accumulator is not None else []
    line = line or ""

    line_name = decl.short_name
    if occurrence_index is None:
        occurrence_index = sum(1 for f in accumulator if f.line_name == line_name)
    occurrence = occurrence_index + 1
    marker = line[: settings.marker_width]

    # Nested lines are RecordChild entries and never reach this list as fields
    ordered = sorted(
        (f for f in decl.fields if not f.is_sequence_marker and f.name != settings.sentinel_marker),
        key=lambda f: f.sequence,
    )

    outcome = ExtractionOutcome()
    offset = start_offset(decl, settings)
    for decl_field in ordered:
        length = max(decl_field.length, 0)
        raw = line[offset : offset + length]
        value = apply_alignment(raw, decl_field.alignment)
        status, message = _classify(decl_field, raw, value)

        outcome.fields.append(
            ParsedField(
                line_name=line_name,
                field_name=decl_field.name,
                sequence=decl_field.sequence,
                start=offset + 1,
                length=decl_field.length,
                value=value,
                status=status,
                occurrence=occurrence,
                line_sequence=marker,
                is_required=decl_field.is_required,
                line_index=line_index,
                validation_message=message,
            )
        )
        offset += length

    outcome.end_offset = offset
    if offset != line_width:
        outcome.diagnostics.append(
            Diagnostic(
                level=DiagnosticLevel.WARNING,
                code=DiagnosticCode.GRAMMAR_DATA_MISMATCH,
                message=f"{line_name} fields end at column {offset}, expected {line_width}",
                line_index=line_index,
                line_name=line_name,
            )
        )

    accumulator.extend(outcome.fields)
    return outcome
