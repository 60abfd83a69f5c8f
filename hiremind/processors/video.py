from typing import Dict, List, Optional

import numpy as np
import structlog

from ..application.interview_session import BehavioralMetrics

logger = structlog.get_logger(__name__)

METRIC_NAMES = ("eye_contact", "smile", "stillness", "confidence")


class BehavioralMetricsTracker:
    """
    Collects face metrics reported by the browser during an interview and
    aggregates them into 0-100 sub-scores for the final result.

    Samples may be given as fractions (0-1) or percentages (0-100); values
    are normalised to percentages on the way in.
    """

    def __init__(self):
        self._samples: Dict[str, List[float]] = {name: [] for name in METRIC_NAMES}
        self.sample_count = 0

    def add_sample(self, **values: Optional[float]) -> None:
        recorded = False
        for name in METRIC_NAMES:
            value = values.get(name)
            if value is None:
                continue
            value = float(value)
            if not np.isfinite(value):
                continue
            if value <= 1.0:
                value *= 100.0
            self._samples[name].append(min(100.0, max(0.0, value)))
            recorded = True
        if recorded:
            self.sample_count += 1

    def reset(self) -> None:
        for samples in self._samples.values():
            samples.clear()
        self.sample_count = 0

    def summary(self) -> BehavioralMetrics:
        averages = {}
        for name, samples in self._samples.items():
            averages[name] = round(float(np.mean(samples)), 1) if samples else None
        logger.debug("behavioral_summary", samples=self.sample_count, **averages)
        return BehavioralMetrics(samples=self.sample_count, **averages)
