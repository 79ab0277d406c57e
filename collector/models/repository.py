"""Repository model for trending GitHub repositories"""

from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from collector.config.database import Base, BigIntId
from collector.utils.helpers import utc_now


class Repository(Base):
    """
    Current state of a repository seen on the trending feed

    ``full_name`` ("owner/name") is the natural key for upserts.
    """
    __tablename__ = "repositories"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    github_id = Column(BigInteger, nullable=True)
    full_name = Column(String(500), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)

    # Metadata
    description = Column(Text)
    language = Column(String(100), index=True)
    topics = Column(JSON, nullable=False, default=list)
    license = Column(String(100))
    homepage = Column(String(1000))
    has_readme = Column(Boolean, nullable=False, default=False)
    has_license = Column(Boolean, nullable=False, default=False)
    is_archived = Column(Boolean, nullable=False, default=False)
    is_fork = Column(Boolean, nullable=False, default=False)

    # Current counts
    stars = Column(Integer, nullable=False, default=0)
    forks = Column(Integer, nullable=False, default=0)
    watchers = Column(Integer, nullable=False, default=0)
    open_issues = Column(Integer, nullable=False, default=0)
    size = Column(Integer, nullable=False, default=0)

    # Trending metrics
    score = Column(Float, nullable=False, default=0.0, index=True)
    stars_growth_24h = Column(Integer, nullable=False, default=0)
    forks_growth_24h = Column(Integer, nullable=False, default=0)

    owner_id = Column(BigIntId, ForeignKey("developers.id"), nullable=True, index=True)
    owner = relationship("Developer", backref="repositories")

    # Timestamps
    pushed_at = Column(DateTime(timezone=True))
    repo_created_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Repository {self.full_name} ({self.stars} stars)>"
