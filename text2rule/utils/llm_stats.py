"""
LLM Statistics Tracking.

Counts calls, failures and time spent per pipeline stage.
"""
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)


@dataclass
class LLMStatistics:
    """Statistics for LLM usage."""
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0

    # Timing
    total_time: float = 0.0

    # Per-stage tracking
    stage_stats: dict = field(default_factory=dict)

    def add_call(self, success: bool, stage: str = None, elapsed_time: float = 0.0):
        """Record an LLM call."""
        self.total_calls += 1
        if success:
            self.successful_calls += 1
        else:
            self.failed_calls += 1
        self.total_time += elapsed_time

        if stage:
            if stage not in self.stage_stats:
                self.stage_stats[stage] = {"calls": 0, "failures": 0, "time": 0.0}
            self.stage_stats[stage]["calls"] += 1
            self.stage_stats[stage]["time"] += elapsed_time
            if not success:
                self.stage_stats[stage]["failures"] += 1

    def to_dict(self) -> dict:
        return {
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "total_time_s": round(self.total_time, 2),
            "stages": self.stage_stats,
        }

    def log_summary(self):
        logger.info(
            f"LLM calls: {self.total_calls} ({self.failed_calls} failed), "
            f"time: {self.total_time:.1f}s"
        )
