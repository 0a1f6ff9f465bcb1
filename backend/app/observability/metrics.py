"""
Pipeline Metrics — In-Process Outcome Counters

Counts terminal outcomes and tolerated degradations so operators can tell a
healthy pipeline from one silently dropping audio or quizzes:

  items_completed       item reached status=completed
  items_failed          item reached status=failed
  audio_failures        speech synthesis failed, item kept going
  quiz_parse_failures   quiz model output was malformed, empty quiz stored

Counters live for the life of the process and are exposed on /health.
"""

from __future__ import annotations

import threading
from collections import Counter

ITEMS_COMPLETED     = "items_completed"
ITEMS_FAILED        = "items_failed"
AUDIO_FAILURES      = "audio_failures"
QUIZ_PARSE_FAILURES = "quiz_parse_failures"

_KNOWN = (ITEMS_COMPLETED, ITEMS_FAILED, AUDIO_FAILURES, QUIZ_PARSE_FAILURES)


class PipelineMetrics:
    """Thread-safe named counters."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter({name: 0 for name in _KNOWN})
        self._lock = threading.Lock()

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counts[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)
