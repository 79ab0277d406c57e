"""Database models"""

from collector.models.ai_analysis import AiAnalysis
from collector.models.developer import Developer
from collector.models.developer_snapshot import DeveloperSnapshot
from collector.models.repository import Repository
from collector.models.repository_snapshot import RepositorySnapshot
from collector.models.sync_log import JobType, SyncLog, SyncStatus

__all__ = [
    "AiAnalysis",
    "Developer",
    "DeveloperSnapshot",
    "Repository",
    "RepositorySnapshot",
    "JobType",
    "SyncLog",
    "SyncStatus",
]
