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
from enum import Enum

DEFAULT_LINE_WIDTH = 600
MARKER_WIDTH = 6
HEADER_TOKEN = "HEADER"
SENTINEL_MARKER = "999999"
SEQUENCE_FIELD_NAME = "Sequencia"
DEFAULT_FOREIGN_PREFIXES = ("EDI_", "ZRSDM_")
DEFAULT_PROBE_TOLERANCE = 10


class FieldStatus(str, Enum):
    OK = "Ok"
    WARNING = "Warning"
    ERROR = "Error"


class Alignment(str, Enum):
    LEFT = "Left"
    RIGHT = "Right"
    CENTER = "Center"

    @classmethod
    def parse(cls, value) -> "Alignment":
        if isinstance(value, Alignment):
            return value
        normalized = (value or "").strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return cls.LEFT


class LayoutType(str, Enum):
    MQSERIES = "mqseries"
    IDOC = "idoc"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value) -> "LayoutType":
        if isinstance(value, LayoutType):
            return value
        normalized = (value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.UNKNOWN


class ChildKind(str, Enum):
    FIELD = "field"
    RECORD = "record"


# Explicit discriminators accepted by the layout loader
CHILD_KIND_ALIASES = {
    "field": ChildKind.FIELD,
    "fieldelementvo": ChildKind.FIELD,
    "record": ChildKind.RECORD,
    "line": ChildKind.RECORD,
    "lineelementvo": ChildKind.RECORD,
}


class DiagnosticLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class DiagnosticCode(str, Enum):
    UNIDENTIFIED_LINE = "UNIDENTIFIED_LINE"
    GRAMMAR_DATA_MISMATCH = "GRAMMAR_DATA_MISMATCH"
    OCCURRENCE_UNDERSHOOT = "OCCURRENCE_UNDERSHOOT"
    OCCURRENCE_LIMIT_REACHED = "OCCURRENCE_LIMIT_REACHED"
    STRUCTURAL_DEFINITION = "STRUCTURAL_DEFINITION"
    DOCUMENT_BLOCK = "DOCUMENT_BLOCK"


class MatchStrategy(str, Enum):
    SENTINEL = "sentinel"
    HEADER = "header"
    FOREIGN_ABSOLUTE = "foreign_absolute"
    FOREIGN_FLEXIBLE = "foreign_flexible"
    OFFSET_PREFIX = "offset_prefix"
    STRUCTURAL = "structural"
    NONE = "none"
