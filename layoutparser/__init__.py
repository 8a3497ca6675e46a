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
from layoutparser.grammar import FieldChild, FieldDecl, Grammar, GrammarLoadError, RecordChild, RecordDecl, load_grammar, load_grammar_json
from layoutparser.models import Diagnostic, DocumentValidationResult, LayoutParserError, LineValidationResult, ParsedField, ParsingResult
from layoutparser.orchestration.orchestrator import LayoutParser, ParsingError, parse, parse_files
from layoutparser.validation.document import validate_document
from layoutparser.validation.structure import LayoutValidationCache, validate_layout, validate_record

__all__ = [
    "FieldChild",
    "FieldDecl",
    "Grammar",
    "GrammarLoadError",
    "RecordChild",
    "RecordDecl",
    "load_grammar",
    "load_grammar_json",
    "Diagnostic",
    "DocumentValidationResult",
    "LayoutParserError",
    "LineValidationResult",
    "ParsedField",
    "ParsingResult",
    "LayoutParser",
    "ParsingError",
    "parse",
    "parse_files",
    "validate_document",
    "LayoutValidationCache",
    "validate_layout",
    "validate_record",
]
