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
from datetime import datetime
from typing import Any, Dict, List, Optional

from common.constants import DiagnosticCode, DiagnosticLevel, FieldStatus, LayoutType


class LayoutParserError(Exception):
    """Base error for the layout parser."""


@dataclass
class Diagnostic:
    """A structured, non-fatal observation produced while validating or parsing."""

    level: DiagnosticLevel
    code: DiagnosticCode
    message: str
    line_index: Optional[int] = None
    line_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "code": self.code.value,
            "message": self.message,
            "line_index": self.line_index,
            "line_name": self.line_name,
        }


@dataclass
class ParsedField:
    line_name: str
    field_name: str
    sequence: int
    start: int
    length: int
    value: str
    status: FieldStatus
    occurrence: int
    line_sequence: str = ""
    is_required: bool = False
    line_index: int = 0
    validation_message: str = ""

    @property
    def full_path(self) -> str:
        return f"{self.line_name}.{self.field_name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_name": self.line_name,
            "field_name": self.field_name,
            "sequence": self.sequence,
            "start": self.start,
            "length": self.length,
            "value": self.value,
            "status": self.status.value,
            "occurrence": self.occurrence,
            "line_sequence": self.line_sequence,
            "is_required": self.is_required,
            "line_index": self.line_index,
            "validation_message": self.validation_message,
        }


@dataclass
class LineValidationResult:
    line_name: str
    initial_value: str
    total_length: int
    is_valid: bool
    has_children: bool
    field_count: int
    child_count: int
    expected_length: int = 600

    @property
    def difference(self) -> int:
        return self.expected_length - self.total_length

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_name": self.line_name,
            "initial_value": self.initial_value,
            "total_length": self.total_length,
            "expected_length": self.expected_length,
            "difference": self.difference,
            "is_valid": self.is_valid,
            "has_children": self.has_children,
            "field_count": self.field_count,
            "child_count": self.child_count,
        }


@dataclass
class LineValidationError:
    line_name: str
    expected_length: int
    actual_length: int
    difference: int
    message: str


@dataclass
class LayoutValidationReport:
    layout_id: str
    layout_name: str
    is_valid: bool
    validated_at: datetime
    errors: List[LineValidationError] = field(default_factory=list)
    total_lines: int = 0
    valid_lines: int = 0
    invalid_lines: int = 0


@dataclass
class DocumentLineError:
    block_index: int
    sequence_marker: str
    expected_length: int
    actual_length: int
    start_pos: int
    end_pos: int
    message: str
    expected_next_sequence: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "block_index": self.block_index,
            "sequence_marker": self.sequence_marker,
            "expected_length": self.expected_length,
            "actual_length": self.actual_length,
            "start_pos": self.start_pos,
            "end_pos": self.end_pos,
            "message": self.message,
            "expected_next_sequence": self.expected_next_sequence,
        }


@dataclass
class DocumentValidationResult:
    is_valid: bool
    errors: List[DocumentLineError] = field(default_factory=list)
    total_blocks: int = 0
    valid_blocks: int = 0
    invalid_blocks: int = 0
    processing_stopped: bool = False
    misaligned: bool = False
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "total_blocks": self.total_blocks,
            "valid_blocks": self.valid_blocks,
            "invalid_blocks": self.invalid_blocks,
            "processing_stopped": self.processing_stopped,
            "misaligned": self.misaligned,
            "message": self.message,
        }


@dataclass
class DocumentSummary:
    total_fields: int = 0
    valid_fields: int = 0
    warning_fields: int = 0
    error_fields: int = 0
    total_lines: int = 0
    total_blocks: int = 0
    expected_lines: int = 0
    present_lines: int = 0
    missing_lines: int = 0
    compliance_rate: float = 0.0
    structure_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class ParsingResult:
    success: bool
    layout_id: str = ""
    layout_type: LayoutType = LayoutType.UNKNOWN
    parsed_fields: List[ParsedField] = field(default_factory=list)
    summary: Optional[DocumentSummary] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)
    layout_validation: List[LineValidationResult] = field(default_factory=list)
    document_validation: Optional[DocumentValidationResult] = None
    error_message: Optional[str] = None
    processed_at: datetime = field(default_factory=datetime.now)

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.level == DiagnosticLevel.WARNING]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "layout_id": self.layout_id,
            "layout_type": self.layout_type.value,
            "error_message": self.error_message,
            "processed_at": self.processed_at.isoformat(),
            "summary": self.summary.to_dict() if self.summary else None,
            "document_validation": self.document_validation.to_dict() if self.document_validation else None,
            "layout_validation": [r.to_dict() for r in self.layout_validation],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "parsed_fields": [f.to_dict() for f in self.parsed_fields],
        }


@dataclass
class LineDetail:
    line_name: str
    occurrences: int = 0
    field_count: int = 0
    is_required: bool = False
    is_present: bool = False


@dataclass
class DocumentStructure:
    lines_present: List[str] = field(default_factory=list)
    lines_expected: List[str] = field(default_factory=list)
    missing_required_lines: List[str] = field(default_factory=list)
    line_details: Dict[str, LineDetail] = field(default_factory=dict)
    overall_status: str = "Valid"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lines_present": list(self.lines_present),
            "lines_expected": list(self.lines_expected),
            "missing_required_lines": list(self.missing_required_lines),
            "line_details": {k: dict(v.__dict__) for k, v in self.line_details.items()},
            "overall_status": self.overall_status,
        }
