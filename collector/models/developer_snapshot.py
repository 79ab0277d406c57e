"""Daily developer snapshot model"""

from sqlalchemy import Column, Date, Float, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from collector.config.database import Base, BigIntId


class DeveloperSnapshot(Base):
    """Per-day developer metrics, one row per (developer, snapshot_date)."""

    __tablename__ = "developer_snapshots"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    developer_id = Column(BigIntId, ForeignKey("developers.id"), nullable=False)
    snapshot_date = Column(Date, nullable=False, index=True)

    followers = Column(Integer, nullable=False, default=0)
    public_repos = Column(Integer, nullable=False, default=0)
    total_stars = Column(Integer, nullable=False, default=0)
    impact_score = Column(Float, nullable=False, default=0.0)

    developer = relationship("Developer", backref="snapshots")

    __table_args__ = (
        UniqueConstraint("developer_id", "snapshot_date", name="uk_developer_snapshot_day"),
    )

    def __repr__(self):
        return f"<DeveloperSnapshot {self.developer_id}:{self.snapshot_date}>"
