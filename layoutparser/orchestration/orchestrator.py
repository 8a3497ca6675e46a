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
Parsing orchestration.

Gate the raw document on block alignment, split it into physical lines,
resolve each line against the grammar and slice the resolved ones into fields.
Every expected failure mode ends up in the returned ParsingResult; callers do
not need to catch anything.
"""

import logging
import threading
from timeit import default_timer as timer
from typing import Dict, List, Optional, Sequence

from common.constants import DiagnosticCode, DiagnosticLevel, LayoutType
from common.settings import ParserSettings, get_settings
from layoutparser.grammar import Grammar, GrammarLoadError, load_grammar_json
from layoutparser.models import Diagnostic, DocumentValidationResult, LayoutParserError, ParsedField, ParsingResult
from layoutparser.orchestration.extractor import extract
from layoutparser.orchestration.feedback import FeedbackDispatcher, Listener
from layoutparser.orchestration.resolver import LineResolver
from layoutparser.orchestration.splitter import detect_layout_type, split_lines
from layoutparser.report import build_summary
from layoutparser.validation.document import validate_document
from layoutparser.validation.structure import validate_layout

logger = logging.getLogger(__name__)

__all__ = [
    "ParsingError",
    "LayoutParser",
    "parse",
    "parse_files",
    "read_document",
]


class ParsingError(LayoutParserError):
    """Raised on contract violations (missing grammar or text) and caught at the parse boundary."""

    def __init__(self, message, original_exception=None):
        super().__init__(message)
        self.original_exception = original_exception


_dispatcher: Optional[FeedbackDispatcher] = None
_dispatcher_lock = threading.Lock()


def _default_dispatcher(settings: ParserSettings) -> FeedbackDispatcher:
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            _dispatcher = FeedbackDispatcher(max_workers=settings.listener_workers)
        return _dispatcher


def _log_diagnostic(d: Diagnostic) -> None:
    if d.level == DiagnosticLevel.ERROR:
        logger.error(f"[Orchestrator] {d.code.value}: {d.message}")
    elif d.level == DiagnosticLevel.WARNING:
        logger.warning(f"[Orchestrator] {d.code.value}: {d.message}")
    else:
        logger.info(f"[Orchestrator] {d.code.value}: {d.message}")


class LayoutParser:
    def __init__(self, settings: Optional[ParserSettings] = None, dispatcher: Optional[FeedbackDispatcher] = None):
        self.settings = settings or get_settings()
        self.resolver = LineResolver(self.settings)
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> FeedbackDispatcher:
        return self._dispatcher or _default_dispatcher(self.settings)

    def _gate_blocks(self, layout_type: LayoutType, validate_blocks: bool) -> bool:
        if layout_type == LayoutType.MQSERIES:
            return True
        return validate_blocks and layout_type != LayoutType.IDOC

    def _parse(self, text: Optional[str], grammar: Optional[Grammar], validate_blocks: bool) -> ParsingResult:
        if grammar is None:
            raise ParsingError("A grammar is required to parse a document")
        if text is None:
            raise ParsingError("Document text is required")

        settings = self.settings
        line_width = grammar.line_width

        layout_validation = validate_layout(grammar, settings)
        invalid_records = [r.line_name for r in layout_validation if not r.is_valid]
        diagnostics: List[Diagnostic] = []
        if invalid_records:
            diagnostics.append(
                Diagnostic(
                    level=DiagnosticLevel.WARNING,
                    code=DiagnosticCode.STRUCTURAL_DEFINITION,
                    message=f"Layout {grammar.id} has records that do not add up to {line_width}: {', '.join(invalid_records)}",
                )
            )

        layout_type = grammar.layout_type
        if layout_type == LayoutType.UNKNOWN:
            layout_type = detect_layout_type(text, line_width)

        document_validation: Optional[DocumentValidationResult] = None
        if self._gate_blocks(layout_type, validate_blocks):
            document_validation = validate_document(text, line_width, settings)
            if not document_validation.is_valid:
                for err in document_validation.errors:
                    diagnostics.append(
                        Diagnostic(
                            level=DiagnosticLevel.ERROR,
                            code=DiagnosticCode.DOCUMENT_BLOCK,
                            message=f"Block {err.block_index} ({err.sequence_marker!r}): {err.message}",
                            line_index=err.block_index,
                        )
                    )
                return ParsingResult(
                    success=False,
                    layout_id=grammar.id,
                    layout_type=layout_type,
                    summary=build_summary([], grammar, 0, document_validation.total_blocks),
                    diagnostics=diagnostics,
                    layout_validation=layout_validation,
                    document_validation=document_validation,
                    error_message=f"Document failed block validation: {document_validation.message}",
                )
            # Block aligned, so split on the block grid even when the type was not detected
            layout_type = LayoutType.MQSERIES

        lines = split_lines(text, layout_type, line_width)
        parsed_fields: List[ParsedField] = []
        occurrences: Dict[str, int] = {}

        for index, raw_line in enumerate(lines):
            line = raw_line[:line_width].ljust(line_width)
            decl, trace = self.resolver.resolve_with_trace(line, grammar.records)

            if decl is None:
                preview = raw_line[: settings.preview_length]
                logger.debug(f"[Orchestrator] Line {index + 1} tested against: {[(t.record_name, t.strategy.value) for t in trace]}")
                diagnostics.append(
                    Diagnostic(
                        level=DiagnosticLevel.WARNING,
                        code=DiagnosticCode.UNIDENTIFIED_LINE,
                        message=f"Line {index + 1} not identified: '{preview}'",
                        line_index=index,
                    )
                )
                continue

            name = decl.short_name
            seen = occurrences.get(name, 0)
            if 0 < decl.max_occurs <= seen:
                diagnostics.append(
                    Diagnostic(
                        level=DiagnosticLevel.WARNING,
                        code=DiagnosticCode.OCCURRENCE_LIMIT_REACHED,
                        message=f"Limit of {decl.max_occurs} occurrences reached for {name}; line {index + 1} skipped",
                        line_index=index,
                        line_name=name,
                    )
                )
                continue
            occurrences[name] = seen + 1

            outcome = extract(decl, line, None, parsed_fields, line_width, index, settings)
            diagnostics.extend(outcome.diagnostics)

        for record in grammar.records:
            name = record.short_name
            observed = occurrences.get(name, 0)
            if observed < record.min_occurs:
                diagnostics.append(
                    Diagnostic(
                        level=DiagnosticLevel.WARNING,
                        code=DiagnosticCode.OCCURRENCE_UNDERSHOOT,
                        message=f"{name} occurs {observed} times (minimum: {record.min_occurs})",
                        line_name=name,
                    )
                )

        total_blocks = document_validation.total_blocks if document_validation else len(lines)
        return ParsingResult(
            success=True,
            layout_id=grammar.id,
            layout_type=layout_type,
            parsed_fields=parsed_fields,
            summary=build_summary(parsed_fields, grammar, len(lines), total_blocks),
            diagnostics=diagnostics,
            layout_validation=layout_validation,
            document_validation=document_validation,
        )

    def parse(
        self,
        text: Optional[str],
        grammar: Optional[Grammar],
        validate_blocks: bool = True,
        listeners: Optional[Sequence[Listener]] = None,
    ) -> ParsingResult:
        start = timer()
        try:
            result = self._parse(text, grammar, validate_blocks)
        except ParsingError as e:
            logger.error(f"[Orchestrator] Parsing aborted: {e}")
            result = ParsingResult(success=False, layout_id=getattr(grammar, "id", "") or "", error_message=str(e))

        for d in result.diagnostics:
            _log_diagnostic(d)
        logger.info(
            f"[Orchestrator] Layout {result.layout_id}: success={result.success}, "
            f"fields={len(result.parsed_fields)}, diagnostics={len(result.diagnostics)} in {timer() - start:.3f}s"
        )

        if listeners:
            self.dispatcher.dispatch(listeners, result, text or "", result.layout_id)
        return result


def parse(
    text: Optional[str],
    grammar: Optional[Grammar],
    settings: Optional[ParserSettings] = None,
    validate_blocks: bool = True,
    listeners: Optional[Sequence[Listener]] = None,
) -> ParsingResult:
    return LayoutParser(settings).parse(text, grammar, validate_blocks=validate_blocks, listeners=listeners)


def read_document(path) -> str:
    """Read a document as UTF-8, dropping a leading BOM."""
    with open(path, "r", encoding="utf-8-sig") as f:
        return f.read()


def parse_files(
    layout_path,
    document_path,
    settings: Optional[ParserSettings] = None,
    validate_blocks: bool = True,
    listeners: Optional[Sequence[Listener]] = None,
) -> ParsingResult:
    settings = settings or get_settings()
    try:
        grammar = load_grammar_json(layout_path, settings)
        text = read_document(document_path)
    except (OSError, UnicodeDecodeError, GrammarLoadError) as e:
        logger.error(f"[Orchestrator] Could not load inputs ({layout_path}, {document_path}): {e}")
        return ParsingResult(success=False, error_message=str(e))
    return LayoutParser(settings).parse(text, grammar, validate_blocks=validate_blocks, listeners=listeners)
