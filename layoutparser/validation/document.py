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
Document block validation.

A document is a concatenation of fixed-width blocks, each opening with a
6-byte marker: the HEADER token (first block only) or six ASCII digits.
The walk reports where the stream stops lining up with the block grid; it
never rewrites the document.
"""

from typing import Optional

from common.settings import ParserSettings, get_settings
from layoutparser.models import DocumentLineError, DocumentValidationResult
from layoutparser.orchestration.resolver import is_numeric_marker


def _next_sequence(marker: str, width: int) -> str:
    return str(int(marker) + 1).zfill(width)


class _BlockWalk:
    def __init__(self, text: str, line_width: int, settings: ParserSettings):
        self.text = text
        self.line_width = line_width
        self.settings = settings
        self.result = DocumentValidationResult(is_valid=True)
        self.previous: Optional[str] = None

    def is_valid_marker(self, marker: str) -> bool:
        return marker == self.settings.header_token or is_numeric_marker(marker, self.settings.marker_width)

    def marker_at(self, pos: int) -> str:
        return self.text[pos : pos + self.settings.marker_width]

    def error(self, block_index: int, marker: str, start: int, actual: int, message: str, expected_next: Optional[str] = None) -> DocumentLineError:
        err = DocumentLineError(
            block_index=block_index,
            sequence_marker=marker,
            expected_length=self.line_width,
            actual_length=actual,
            start_pos=start,
            end_pos=start + actual - 1,
            message=message,
            expected_next_sequence=expected_next,
        )
        self.result.errors.append(err)
        return err

    def check_marker(self, block_index: int, marker: str, pos: int) -> bool:
        header = self.settings.header_token
        if marker == header:
            if block_index != 0:
                self.error(block_index, marker, pos, self.line_width, f"{header} found outside the first block")
                return False
            self.previous = marker
            return True

        if not is_numeric_marker(marker, self.settings.marker_width):
            self.error(
                block_index,
                marker,
                pos,
                self.line_width,
                f"Invalid block marker '{marker}' (must be {self.settings.marker_width} digits or '{header}')",
            )
            return False

        ok = True
        if self.settings.check_sequence_order and self.previous is not None:
            if self.previous == header:
                expected = "1".zfill(self.settings.marker_width)
            else:
                expected = _next_sequence(self.previous, self.settings.marker_width)
            if marker != expected:
                self.error(
                    block_index,
                    marker,
                    pos,
                    self.line_width,
                    f"Block marker out of order: expected '{expected}', found '{marker}'",
                    expected_next=expected,
                )
                ok = False
        self.previous = marker
        return ok

    def check_boundary(self, block_index: int, marker: str, pos: int) -> int:
        """Returns the position where the next block starts."""
        nominal = pos + self.line_width
        remaining = len(self.text) - nominal
        # A short tail is reported as a partial block by the next step
        if remaining < self.settings.marker_width or self.is_valid_marker(self.marker_at(nominal)):
            return nominal

        for k in range(1, self.settings.probe_tolerance + 1):
            if nominal + k + self.settings.marker_width > len(self.text):
                break
            if self.is_valid_marker(self.marker_at(nominal + k)):
                self.result.misaligned = True
                self.error(
                    block_index,
                    marker,
                    pos,
                    self.line_width + k,
                    f"Block has {self.line_width + k} characters, exceeding {self.line_width} by {k}. "
                    "The document is misaligned from this block on.",
                )
                return nominal + k

        self.error(
            block_index,
            marker,
            pos,
            self.line_width,
            f"Block has incorrect length: next marker not found at position {nominal} (expected width: {self.line_width})",
        )
        return nominal

    def run(self) -> DocumentValidationResult:
        pos = 0
        block_index = 0
        length = len(self.text)
        while pos < length:
            remaining = length - pos
            marker = self.marker_at(pos)
            self.result.total_blocks += 1

            if remaining < self.line_width:
                missing = self.line_width - remaining
                self.error(
                    block_index,
                    marker,
                    pos,
                    remaining,
                    f"Last block has {remaining} characters (expected: {self.line_width}). Missing {missing} characters.",
                )
                self.result.invalid_blocks += 1
                self.result.processing_stopped = True
                break

            errors_before = len(self.result.errors)
            self.check_marker(block_index, marker, pos)
            next_pos = self.check_boundary(block_index, marker, pos)

            if len(self.result.errors) > errors_before:
                self.result.invalid_blocks += 1
            else:
                self.result.valid_blocks += 1

            pos = next_pos
            block_index += 1

        self.result.is_valid = not self.result.errors
        if self.result.is_valid:
            self.result.message = f"{self.result.total_blocks} blocks validated"
        else:
            self.result.message = f"{len(self.result.errors)} errors in {self.result.invalid_blocks} of {self.result.total_blocks} blocks"
        return self.result


def validate_document(doc: Optional[str], line_width: Optional[int] = None, settings: Optional[ParserSettings] = None) -> DocumentValidationResult:
    """
    Walk the document over fixed-width blocks and collect every block error.

    Line breaks are removed before the walk; wrapped payloads are common.
    """
    settings = settings or get_settings()
    line_width = line_width or settings.line_width

    text = (doc or "").replace("\r", "").replace("\n", "")
    if not text:
        return DocumentValidationResult(is_valid=False, message="empty document")

    return _BlockWalk(text, line_width, settings).run()
