"""Sync log model: the audit trail of job runs"""

from datetime import datetime
import enum
from typing import Optional

from sqlalchemy import Column, DateTime, Integer, String, Text

from collector.config.database import Base, BigIntId
from collector.utils.helpers import utc_now


class JobType(str, enum.Enum):
    """Job kinds recorded in sync_logs.sync_type"""
    DAILY = "daily"
    AI = "ai"
    WARM_CACHE = "warm-cache"


class SyncStatus(str, enum.Enum):
    """Job lifecycle states"""
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STATUSES = frozenset({SyncStatus.SUCCESS, SyncStatus.FAILED, SyncStatus.SKIPPED})


class SyncLog(Base):
    """One row per job invocation"""

    __tablename__ = "sync_logs"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    sync_type = Column(String(20), nullable=False, index=True)  # VARCHAR in DB, not enum
    status = Column(String(20), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    records_processed = Column(Integer, nullable=False, default=0)
    records_failed = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    def finish(
        self,
        status: SyncStatus,
        *,
        records_processed: int = 0,
        records_failed: int = 0,
        error_message: Optional[str] = None,
        completed_at: Optional[datetime] = None,
    ) -> None:
        """Move a running log to a terminal state; a log is finished exactly once."""
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"{status!r} is not a terminal status")
        if self.status != SyncStatus.RUNNING.value:
            raise ValueError(f"Sync log {self.id} already finished as {self.status}")

        self.status = status.value
        self.records_processed = records_processed
        self.records_failed = records_failed
        self.error_message = error_message
        self.completed_at = completed_at or utc_now()

    def __repr__(self):
        return f"<SyncLog {self.id} {self.sync_type}:{self.status}>"
