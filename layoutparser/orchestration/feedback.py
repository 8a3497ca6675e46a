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
Best-effort side effects run after a parse.

Listeners receive the finished result, the raw text and the layout id. They
run on a small thread pool, never block the parse and never change its result;
their failures are logged here and dropped.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from common.constants import FieldStatus
from layoutparser.models import DocumentValidationResult, ParsingResult

logger = logging.getLogger(__name__)

Listener = Callable[[ParsingResult, str, str], None]


def _run_listener(listener: Listener, result: ParsingResult, text: str, layout_id: str) -> None:
    name = getattr(listener, "__name__", type(listener).__name__)
    try:
        listener(result, text, layout_id)
    except Exception as e:
        logger.warning(f"[Feedback] Listener {name} failed for layout {layout_id}: {e}")


class FeedbackDispatcher:
    def __init__(self, max_workers: int = 2):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="layout-feedback")

    def dispatch(self, listeners: Sequence[Listener], result: ParsingResult, text: str, layout_id: str) -> List[Future]:
        futures = []
        for listener in listeners or []:
            try:
                futures.append(self._executor.submit(_run_listener, listener, result, text, layout_id))
            except RuntimeError as e:
                # Executor already shut down
                logger.warning(f"[Feedback] Could not schedule listener: {e}")
        return futures

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


@dataclass
class FeedbackSample:
    layout_id: str
    success: bool
    document_validation: Optional[DocumentValidationResult]
    line_count: int
    field_count: int
    error_fields: int


class FeedbackCollector:
    """
    Listener that keeps what a pattern-learning job needs from each parse.

    Reads only; nothing is fed back into the parser.
    """

    def __init__(self, max_samples: int = 1000):
        self.max_samples = max_samples
        self._samples: List[FeedbackSample] = []
        self._lock = threading.Lock()

    def __call__(self, result: ParsingResult, text: str, layout_id: str) -> None:
        sample = FeedbackSample(
            layout_id=layout_id,
            success=result.success,
            document_validation=result.document_validation,
            line_count=len([line for line in text.splitlines() if line]),
            field_count=len(result.parsed_fields),
            error_fields=sum(1 for f in result.parsed_fields if f.status == FieldStatus.ERROR),
        )
        with self._lock:
            self._samples.append(sample)
            if len(self._samples) > self.max_samples:
                del self._samples[0]

    def samples(self, layout_id: Optional[str] = None) -> List[FeedbackSample]:
        with self._lock:
            if layout_id is None:
                return list(self._samples)
            return [s for s in self._samples if s.layout_id == layout_id]
