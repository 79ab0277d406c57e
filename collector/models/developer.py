"""Developer model for repository owners"""

from sqlalchemy import BigInteger, Column, DateTime, Float, Integer, String, Text

from collector.config.database import Base, BigIntId
from collector.utils.helpers import utc_now


class Developer(Base):
    """
    GitHub user or organization that owns trending repositories

    Matched by ``login``; ``github_id`` is stored but never used as the upsert key.
    """
    __tablename__ = "developers"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    github_id = Column(BigInteger, nullable=True)
    login = Column(String(255), nullable=False, unique=True, index=True)

    # Profile
    name = Column(String(255))
    avatar_url = Column(String(1000))
    bio = Column(Text)
    company = Column(String(255))
    location = Column(String(255))
    blog = Column(String(1000))
    email = Column(String(255))
    twitter_username = Column(String(255))
    followers = Column(Integer, nullable=False, default=0)
    following = Column(Integer, nullable=False, default=0)
    public_repos = Column(Integer, nullable=False, default=0)
    public_gists = Column(Integer, nullable=False, default=0)
    dev_created_at = Column(DateTime(timezone=True))

    # Derived aggregates
    total_stars = Column(Integer, nullable=False, default=0)
    active_repos = Column(Integer, nullable=False, default=0)
    contributions = Column(Integer, nullable=False, default=0)
    impact_score = Column(Float, nullable=False, default=0.0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Developer {self.login} (impact {self.impact_score})>"
