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
import logging
import threading
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from common.config_utils import env_overrides, read_config
from common.constants import DEFAULT_FOREIGN_PREFIXES, DEFAULT_LINE_WIDTH, DEFAULT_PROBE_TOLERANCE, HEADER_TOKEN, MARKER_WIDTH, SENTINEL_MARKER

CONFIG_SECTION = "layout_parser"

# Layouts known to use 2500-character blocks instead of the default 600
WIDE_LAYOUTS = {
    "LAY_c583d990-855e-42a3-8b2a-41d8fbdd48a9": 2500,
    "LAY_103024d0-ecdb-4834-ae54-690b5cd042fa": 2500,
    "LAY_8bf59c94-bb40-4bb4-b8a3-67f5971956f0": 2500,
    "LAY_ca0760b7-5de8-4026-84a7-c95dbdbadb25": 2500,
}


class ParserSettings(BaseModel):
    line_width: int = DEFAULT_LINE_WIDTH
    marker_width: int = MARKER_WIDTH
    header_token: str = HEADER_TOKEN
    sentinel_marker: str = SENTINEL_MARKER
    probe_tolerance: int = DEFAULT_PROBE_TOLERANCE
    foreign_prefixes: List[str] = Field(default_factory=lambda: list(DEFAULT_FOREIGN_PREFIXES))
    check_sequence_order: bool = False
    layout_line_widths: Dict[str, int] = Field(default_factory=lambda: dict(WIDE_LAYOUTS))
    listener_workers: int = 2
    preview_length: int = 20

    @field_validator("line_width", "marker_width", "listener_workers", "preview_length")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("probe_tolerance")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("foreign_prefixes", mode="before")
    @classmethod
    def _split_prefixes(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [p.strip() for p in value.split(",") if p.strip()]
        return value

    @field_validator("layout_line_widths")
    @classmethod
    def _positive_widths(cls, value: Dict[str, int]) -> Dict[str, int]:
        for layout_id, width in value.items():
            if width <= 0:
                raise ValueError(f"line width for {layout_id} must be positive")
        return value

    def line_width_for(self, layout_id: Optional[str]) -> int:
        """Configured block width for a layout id, accepting ids with or without the LAY_ prefix."""
        if not layout_id or not layout_id.strip():
            return self.line_width
        candidate = layout_id if layout_id.upper().startswith("LAY_") else f"LAY_{layout_id}"
        for known, width in self.layout_line_widths.items():
            if known.lower() == candidate.lower():
                return width
        return self.line_width


_settings: Optional[ParserSettings] = None
_lock = threading.Lock()


def load_settings(conf_path: Optional[str] = None, environ=None) -> ParserSettings:
    raw = read_config(conf_path)
    section = raw.get(CONFIG_SECTION, raw) if isinstance(raw, dict) else {}
    values = {k: v for k, v in (section or {}).items() if k in ParserSettings.model_fields}
    overrides = env_overrides([name for name in ParserSettings.model_fields if name != "layout_line_widths"], environ)
    if overrides:
        logging.info(f"Applying environment overrides for: {', '.join(sorted(overrides))}")
    values.update(overrides)
    return ParserSettings(**values)


def get_settings() -> ParserSettings:
    global _settings
    if _settings is None:
        with _lock:
            if _settings is None:
                _settings = load_settings()
    return _settings


def reset_settings() -> None:
    global _settings
    with _lock:
        _settings = None
