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
import os
from typing import Any, Dict, Optional

import yaml

CONFIG_ENV_VAR = "LAYOUT_PARSER_CONFIG"
ENV_PREFIX = "LAYOUT_PARSER_"


def read_config(conf_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read a YAML configuration file.

    Returns an empty dict when no path is given or the file does not exist, so
    callers can always fall back to model defaults.
    """
    conf_path = conf_path or os.environ.get(CONFIG_ENV_VAR)
    if not conf_path:
        return {}
    if not os.path.exists(conf_path):
        logging.warning(f"Config file not found: {conf_path}, using defaults")
        return {}

    with open(conf_path, "r", encoding="utf-8") as f:
        content = yaml.safe_load(f) or {}

    if not isinstance(content, dict):
        raise ValueError(f"Config file {conf_path} must contain a mapping, got {type(content).__name__}")
    return content


def env_overrides(fields, environ=None) -> Dict[str, str]:
    """Collect LAYOUT_PARSER_<FIELD> environment values for the given field names."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for name in fields:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in environ and environ[key] != "":
            overrides[name] = environ[key]
    return overrides
