"""Daily repository snapshot model"""

from sqlalchemy import CheckConstraint, Column, Date, Float, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from collector.config.database import Base, BigIntId


class RepositorySnapshot(Base):
    """Per-day metrics of a repository, one row per (repository, snapshot_date)."""

    __tablename__ = "repository_snapshots"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    repository_id = Column(BigIntId, ForeignKey("repositories.id"), nullable=False)
    snapshot_date = Column(Date, nullable=False, index=True)

    stars = Column(Integer, nullable=False, default=0)
    forks = Column(Integer, nullable=False, default=0)
    watchers = Column(Integer, nullable=False, default=0)
    open_issues = Column(Integer, nullable=False, default=0)
    stars_growth = Column(Integer, nullable=False, default=0)
    forks_growth = Column(Integer, nullable=False, default=0)
    score = Column(Float, nullable=False, default=0.0)
    rank = Column(Integer, nullable=False)

    repository = relationship("Repository", backref="snapshots")

    __table_args__ = (
        UniqueConstraint("repository_id", "snapshot_date", name="uk_repository_snapshot_day"),
        CheckConstraint("stars_growth >= 0 AND forks_growth >= 0", name="ck_repository_snapshot_growth"),
    )

    def __repr__(self):
        return f"<RepositorySnapshot {self.repository_id}:{self.snapshot_date} #{self.rank}>"
