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
Line resolution.

Finds the record declaration a physical line belongs to. Candidates are
searched depth-first with nested records tried before their parent, and each
declaration is tested against a fixed chain of match strategies:

1. sentinel by name     - declarations named like ``LINHA999999`` own the ``999999`` trailer
2. absolute header      - ``initial_value == "HEADER"`` matches at column 0
3. foreign segment      - ``EDI_`` / ``ZRSDM_`` discriminators, with a flexible segment fallback
4. offset prefix        - numeric marker then ``initial_value`` at column 6
5. structural fallback  - generic repeating records identified by their name number

The resolver never raises and never logs; ``resolve_with_trace`` exposes the
decisions for callers that want to log them.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from common.constants import MARKER_WIDTH, MatchStrategy
from common.settings import ParserSettings, get_settings
from layoutparser.grammar import RecordDecl

_ALPHA_PREFIX = re.compile(r"^[A-Za-z_]+")


def is_numeric_marker(s: Optional[str], width: int = MARKER_WIDTH) -> bool:
    """Exactly ``width`` ASCII digits."""
    return bool(s) and len(s) == width and s.isascii() and s.isdigit()


@dataclass(frozen=True)
class ResolverTrace:
    record_name: str
    strategy: MatchStrategy
    matched: bool


def _first_token(s: str) -> str:
    parts = s.split(None, 1)
    return parts[0] if parts else ""


class LineResolver:
    def __init__(self, settings: Optional[ParserSettings] = None):
        self.settings = settings or get_settings()

    def is_sentinel(self, decl: RecordDecl) -> bool:
        return bool(decl.name) and decl.name.endswith(self.settings.sentinel_marker)

    def _foreign_prefix(self, value: str) -> Optional[str]:
        upper = value.upper()
        for prefix in self.settings.foreign_prefixes:
            if upper.startswith(prefix.upper()):
                return prefix
        return None

    def _match_foreign(self, line: str, expected: str, prefix: str) -> bool:
        if line.upper().startswith(expected.upper()):
            return True
        if not line.upper().startswith(prefix.upper()):
            return False

        # Segment numbers are zero padded inconsistently (E1EDK01 vs E1EDK010)
        expected_token = _first_token(expected[len(prefix) :]).upper()
        actual_token = _first_token(line[len(prefix) :]).upper()
        expected_trimmed = expected_token.rstrip("0")
        if not expected_trimmed or not actual_token:
            return False
        return actual_token.rstrip("0") == expected_trimmed or actual_token.startswith(expected_trimmed)

    def _match_structural(self, line: str, decl: RecordDecl) -> bool:
        suffix = _ALPHA_PREFIX.sub("", decl.name or "")
        if not suffix or not suffix.isdigit():
            return False
        return line[9:12] == suffix.zfill(3)

    def match(self, line: str, decl: RecordDecl) -> Tuple[bool, MatchStrategy]:
        """Test a single declaration, without looking at its nested records."""
        settings = self.settings
        width = settings.marker_width
        initial = decl.initial_value or ""

        if self.is_sentinel(decl):
            return line[:width] == settings.sentinel_marker, MatchStrategy.SENTINEL

        if initial:
            if initial == settings.header_token:
                return line.startswith(settings.header_token), MatchStrategy.HEADER

            prefix = self._foreign_prefix(initial)
            if prefix is not None:
                if line.upper().startswith(initial.upper()):
                    return True, MatchStrategy.FOREIGN_ABSOLUTE
                return self._match_foreign(line, initial, prefix), MatchStrategy.FOREIGN_FLEXIBLE

            if is_numeric_marker(line[:width], width) and len(line) >= width + len(initial):
                return line[width : width + len(initial)] == initial, MatchStrategy.OFFSET_PREFIX
            return False, MatchStrategy.OFFSET_PREFIX

        if decl.max_occurs > 1 and is_numeric_marker(line[:width], width):
            return self._match_structural(line, decl), MatchStrategy.STRUCTURAL

        return False, MatchStrategy.NONE

    def _resolve(self, line: str, candidates: Iterable[RecordDecl], trace: Optional[List[ResolverTrace]]) -> Optional[RecordDecl]:
        for decl in candidates:
            nested = decl.records
            if nested:
                found = self._resolve(line, nested, trace)
                if found is not None:
                    return found

            matched, strategy = self.match(line, decl)
            if trace is not None:
                trace.append(ResolverTrace(decl.name, strategy, matched))
            if matched:
                return decl
        return None

    def resolve(self, line: Optional[str], candidates: Sequence[RecordDecl]) -> Optional[RecordDecl]:
        if not line or not candidates:
            return None
        return self._resolve(line, candidates, None)

    def resolve_with_trace(self, line: Optional[str], candidates: Sequence[RecordDecl]) -> Tuple[Optional[RecordDecl], List[ResolverTrace]]:
        trace: List[ResolverTrace] = []
        if not line or not candidates:
            return None, trace
        return self._resolve(line, candidates, trace), trace


def resolve(line: Optional[str], candidates: Sequence[RecordDecl], settings: Optional[ParserSettings] = None) -> Optional[RecordDecl]:
    return LineResolver(settings).resolve(line, candidates)


def resolve_with_trace(
    line: Optional[str], candidates: Sequence[RecordDecl], settings: Optional[ParserSettings] = None
) -> Tuple[Optional[RecordDecl], List[ResolverTrace]]:
    return LineResolver(settings).resolve_with_trace(line, candidates)
