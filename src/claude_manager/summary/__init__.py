"""Summary request queue."""

from claude_manager.summary.queue import (
    JobState,
    SummaryJob,
    SummaryOutcome,
    SummaryQueue,
)

__all__ = ["JobState", "SummaryJob", "SummaryOutcome", "SummaryQueue"]
