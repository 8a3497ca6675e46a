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
import csv
import io
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from common.constants import FieldStatus
from layoutparser.grammar import Grammar
from layoutparser.models import DocumentStructure, DocumentSummary, LineDetail, LineValidationResult, ParsedField, ParsingResult

PARSED_FIELD_COLUMNS = [
    "line_name",
    "field_name",
    "sequence",
    "start",
    "length",
    "value",
    "status",
    "occurrence",
    "line_sequence",
    "is_required",
    "line_index",
    "validation_message",
]

LAYOUT_REPORT_COLUMNS = [
    "line_name",
    "initial_value",
    "total_length",
    "expected_length",
    "difference",
    "is_valid",
    "has_children",
    "field_count",
    "child_count",
]


def sanitize_csv_cell(value) -> str:
    """
    Sanitize CSV cell to prevent formula injection.
    Prefixes values starting with =, +, -, @, or tab with a single quote.
    """
    if value is None or value == "":
        return ""

    value = str(value)
    if value.startswith(("=", "+", "-", "@", "\t")):
        return f"'{value}"
    return value


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole > 0 else 0.0


def expected_line_names(grammar: Optional[Grammar]) -> List[str]:
    if grammar is None:
        return []
    return [r.short_name for r in grammar.records if r.name]


def build_summary(
    parsed_fields: Sequence[ParsedField],
    grammar: Optional[Grammar] = None,
    total_lines: int = 0,
    total_blocks: int = 0,
) -> DocumentSummary:
    """Counts by status plus line coverage against the grammar's root records."""
    expected = expected_line_names(grammar)
    present_names = {f.line_name for f in parsed_fields}
    present = [name for name in expected if name in present_names]

    valid = sum(1 for f in parsed_fields if f.status == FieldStatus.OK)
    return DocumentSummary(
        total_fields=len(parsed_fields),
        valid_fields=valid,
        warning_fields=sum(1 for f in parsed_fields if f.status == FieldStatus.WARNING),
        error_fields=sum(1 for f in parsed_fields if f.status == FieldStatus.ERROR),
        total_lines=total_lines,
        total_blocks=total_blocks,
        expected_lines=len(expected),
        present_lines=len(present),
        missing_lines=len(expected) - len(present),
        compliance_rate=_rate(valid, len(parsed_fields)),
        structure_rate=_rate(len(present), len(expected)),
    )


def build_document_structure(result: ParsingResult, grammar: Optional[Grammar] = None) -> DocumentStructure:
    fields = result.parsed_fields
    present = sorted({f.line_name for f in fields if f.line_name})
    expected = expected_line_names(grammar)

    details = {}
    missing_required = []
    for record in grammar.records if grammar is not None else ():
        name = record.short_name
        line_fields = [f for f in fields if f.line_name == name]
        is_required = record.min_occurs > 0 or record.is_required
        is_present = bool(line_fields)
        details[name] = LineDetail(
            line_name=name,
            occurrences=len({f.line_index for f in line_fields}),
            field_count=len(line_fields),
            is_required=is_required,
            is_present=is_present,
        )
        if is_required and not is_present:
            missing_required.append(name)

    has_errors = bool(missing_required) or any(f.status == FieldStatus.ERROR for f in fields)
    has_warnings = any(f.status == FieldStatus.WARNING for f in fields)
    if has_errors:
        status = "Error"
    elif has_warnings:
        status = "Warning"
    else:
        status = "Valid"

    return DocumentStructure(
        lines_present=present,
        lines_expected=expected,
        missing_required_lines=missing_required,
        line_details=details,
        overall_status=status,
    )


def parsed_fields_to_csv(fields: Iterable[ParsedField]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=PARSED_FIELD_COLUMNS)
    writer.writeheader()
    for f in fields:
        row = f.to_dict()
        # Values come straight from the document
        row["value"] = sanitize_csv_cell(row["value"])
        row["validation_message"] = sanitize_csv_cell(row["validation_message"])
        writer.writerow(row)
    return output.getvalue()


def parsed_fields_to_dataframe(fields: Iterable[ParsedField]) -> pd.DataFrame:
    return pd.DataFrame([f.to_dict() for f in fields], columns=PARSED_FIELD_COLUMNS)


def layout_report_to_dataframe(results: Iterable[LineValidationResult]) -> pd.DataFrame:
    return pd.DataFrame([r.to_dict() for r in results], columns=LAYOUT_REPORT_COLUMNS)
