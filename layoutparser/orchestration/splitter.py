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
import re
from typing import List, Optional

from common.constants import HEADER_TOKEN, LayoutType
from common.settings import get_settings

_LINE_BREAKS = re.compile(r"[\r\n]+")
_LONG_CODE_TOKEN = re.compile(r"^[A-Z0-9]{8,}$")


def strip_line_breaks(text: str) -> str:
    return text.replace("\r", "").replace("\n", "")


def split_lines(text: Optional[str], layout_type: LayoutType = LayoutType.UNKNOWN, line_width: Optional[int] = None) -> List[str]:
    """
    Segment a document into physical lines.

    MQSeries payloads are a single stream of fixed-width blocks, possibly
    wrapped; the last block is right-padded. Everything else is line oriented.
    """
    if not text:
        return []
    line_width = line_width or get_settings().line_width

    if LayoutType.parse(layout_type) == LayoutType.MQSERIES:
        stream = strip_line_breaks(text)
        return [stream[i : i + line_width].ljust(line_width) for i in range(0, len(stream), line_width)]

    return [line for line in _LINE_BREAKS.split(text) if line]


def detect_layout_type(text: Optional[str], line_width: Optional[int] = None) -> LayoutType:
    if not text or not text.strip():
        return LayoutType.UNKNOWN
    line_width = line_width or get_settings().line_width

    first_line = _LINE_BREAKS.split(text.lstrip("\r\n"), 1)[0]
    stream = strip_line_breaks(text)

    if first_line.startswith(HEADER_TOKEN) and len(stream) % line_width == 0 and len(stream) // line_width > 1:
        return LayoutType.MQSERIES

    if first_line.startswith("EDI_") or "ZRSDM_" in first_line:
        return LayoutType.IDOC

    tokens = first_line.split()
    if len(tokens) > 5 and any(_LONG_CODE_TOKEN.match(t) for t in tokens):
        return LayoutType.IDOC

    return LayoutType.UNKNOWN
