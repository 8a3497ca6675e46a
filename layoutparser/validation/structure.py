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
Layout structural validation.

Checks that every record declaration of a layout accounts for exactly one
physical block: literal discriminator + declared field widths + the 6-byte
sequence marker must equal the layout's line width. Records that own nested
records are containers and only need to fit (<=).
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from common.settings import ParserSettings, get_settings
from layoutparser.grammar import FieldChild, Grammar, RecordChild, RecordDecl
from layoutparser.models import LayoutValidationReport, LineValidationError, LineValidationResult

DEFAULT_CACHE_TTL = 24 * 60 * 60


def _marker_len(record: RecordDecl, settings: ParserSettings) -> int:
    return 0 if record.name == settings.header_token else settings.marker_width


def validate_record(root: RecordDecl, line_width: int, settings: Optional[ParserSettings] = None) -> List[LineValidationResult]:
    """
    Validate a record and every nested record, depth-first pre-order.

    Never raises on malformed declarations; they show up as invalid results.
    """
    settings = settings or get_settings()
    results: List[LineValidationResult] = []
    _validate_into(root, line_width, settings, results)
    return results


def _validate_into(record: RecordDecl, line_width: int, settings: ParserSettings, out: List[LineValidationResult]) -> None:
    fields = [c.field for c in record.children if isinstance(c, FieldChild)]
    nested = [c.record for c in record.children if isinstance(c, RecordChild)]
    has_children = bool(nested)

    init_len = len(record.initial_value or "")
    fields_len = sum(f.length for f in fields if not f.is_sequence_marker)
    total = init_len + fields_len + _marker_len(record, settings)

    is_valid = total <= line_width if has_children else total == line_width

    out.append(
        LineValidationResult(
            line_name=record.name,
            initial_value=record.initial_value,
            total_length=total,
            is_valid=is_valid,
            has_children=has_children,
            field_count=len(fields),
            child_count=len(nested),
            expected_length=line_width,
        )
    )

    for child in nested:
        _validate_into(child, line_width, settings, out)


def validate_layout(grammar: Grammar, settings: Optional[ParserSettings] = None) -> List[LineValidationResult]:
    """Validate every root record of a grammar against its line width."""
    settings = settings or get_settings()
    results: List[LineValidationResult] = []
    for root in grammar.records:
        _validate_into(root, grammar.line_width, settings, results)
    return results


def _error_message(result: LineValidationResult) -> str:
    if result.has_children:
        return f"Record with children has {result.total_length} characters (maximum allowed: {result.expected_length})"
    diff = result.difference
    if diff > 0:
        return f"Record has {result.total_length} characters (expected: {result.expected_length}). Missing {diff} characters."
    return f"Record has {result.total_length} characters (expected: {result.expected_length}). Exceeds by {abs(diff)} characters."


def build_layout_report(
    grammar: Grammar,
    validated_at: Optional[datetime] = None,
    settings: Optional[ParserSettings] = None,
) -> LayoutValidationReport:
    results = validate_layout(grammar, settings)
    errors = [
        LineValidationError(
            line_name=r.line_name,
            expected_length=r.expected_length,
            actual_length=r.total_length,
            difference=r.difference,
            message=_error_message(r),
        )
        for r in results
        if not r.is_valid
    ]
    return LayoutValidationReport(
        layout_id=grammar.id,
        layout_name=grammar.name,
        is_valid=not errors,
        validated_at=validated_at or datetime.now(),
        errors=errors,
        total_lines=len(results),
        valid_lines=len(results) - len(errors),
        invalid_lines=len(errors),
    )


@dataclass
class LayoutValidationSummary:
    valid: List[LineValidationResult] = field(default_factory=list)
    with_children: List[LineValidationResult] = field(default_factory=list)
    invalid: List[LineValidationResult] = field(default_factory=list)
    variable_with_children: List[LineValidationResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.valid) + len(self.invalid)

    @property
    def all_valid(self) -> bool:
        return not self.invalid


def summarize(results: Iterable[LineValidationResult]) -> LayoutValidationSummary:
    """Bucket results for reporting. Returned as data; callers decide how to log it."""
    summary = LayoutValidationSummary()
    for r in results:
        if r.is_valid:
            summary.valid.append(r)
            if r.has_children:
                summary.with_children.append(r)
                if r.total_length != r.expected_length:
                    summary.variable_with_children.append(r)
        else:
            summary.invalid.append(r)
    return summary


class LayoutValidationCache:
    """
    In-memory cache of layout validation reports keyed by layout id.

    The clock is injected so expiry can be driven from tests.
    """

    def __init__(self, ttl: float = DEFAULT_CACHE_TTL, clock: Callable[[], float] = time.time, settings: Optional[ParserSettings] = None):
        self.ttl = ttl
        self._clock = clock
        self._settings = settings
        self._entries: Dict[str, tuple] = {}
        self._last_full_validation: Optional[float] = None
        self._lock = threading.Lock()

    def get(self, layout_id: str) -> Optional[LayoutValidationReport]:
        with self._lock:
            entry = self._entries.get(layout_id)
            if entry is None:
                return None
            stored_at, report = entry
            if self._clock() - stored_at >= self.ttl:
                del self._entries[layout_id]
                return None
            return report

    def put(self, report: LayoutValidationReport) -> None:
        with self._lock:
            self._entries[report.layout_id] = (self._clock(), report)

    def get_or_validate(self, grammar: Grammar, force: bool = False) -> LayoutValidationReport:
        if not force:
            cached = self.get(grammar.id)
            if cached is not None:
                return cached
        report = build_layout_report(
            grammar,
            validated_at=datetime.fromtimestamp(self._clock()),
            settings=self._settings,
        )
        self.put(report)
        return report

    def validate_all(self, grammars: Iterable[Grammar], force: bool = False) -> List[LayoutValidationReport]:
        reports = [self.get_or_validate(g, force=force) for g in grammars]
        with self._lock:
            self._last_full_validation = self._clock()
        return reports

    def needs_revalidation(self) -> bool:
        with self._lock:
            if self._last_full_validation is None:
                return True
            return self._clock() - self._last_full_validation >= self.ttl

    def invalidate(self, layout_id: str) -> None:
        with self._lock:
            self._entries.pop(layout_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._last_full_validation = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
