"""Common result type returned by job bodies"""

from dataclasses import dataclass
from typing import Optional, Sequence

from collector.models.sync_log import SyncStatus


@dataclass(slots=True)
class JobOutcome:
    """
    Terminal state a job body reports back to the orchestrator

    A run that failed every item and persisted nothing is a failed run, even
    when item isolation kept the body from raising.
    """

    status: SyncStatus = SyncStatus.SUCCESS
    records_processed: int = 0
    records_failed: int = 0
    error_message: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status == SyncStatus.SUCCESS and self.records_processed == 0 and self.records_failed > 0:
            self.status = SyncStatus.FAILED

    @classmethod
    def skipped(cls) -> "JobOutcome":
        return cls(status=SyncStatus.SKIPPED)

    @classmethod
    def from_counts(cls, processed: int, errors: Sequence[str]) -> "JobOutcome":
        """Outcome of an isolated batch; the first item error becomes the run's error"""
        return cls(
            records_processed=processed,
            records_failed=len(errors),
            error_message=errors[0] if errors else None,
        )
