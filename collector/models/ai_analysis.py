"""AI analysis model for trending repositories"""

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from collector.config.database import Base, BigIntId
from collector.utils.helpers import utc_now


class AiAnalysis(Base):
    """
    Model-generated analysis of a repository for one day

    The row's existence for (repository_id, analysis_date) is the idempotency
    guard: it is written once and never overwritten.
    """
    __tablename__ = "ai_analyses"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    repository_id = Column(BigIntId, ForeignKey("repositories.id"), nullable=False)
    analysis_date = Column(Date, nullable=False)

    summary = Column(Text, nullable=False, default="")
    highlights = Column(JSON, nullable=False, default=list)
    use_cases = Column(JSON, nullable=False, default=list)
    tech_stack = Column(JSON, nullable=True)  # free-form document
    code_quality = Column(JSON, nullable=True)  # free-form document
    similar_repos = Column(JSON, nullable=False, default=list)  # repository ids
    target_audience = Column(Text, nullable=True)

    model_version = Column(String(100), nullable=False)
    tokens_used = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    repository = relationship("Repository", backref="analyses")

    __table_args__ = (
        UniqueConstraint("repository_id", "analysis_date", name="uk_ai_analysis_day"),
    )

    def __repr__(self):
        return f"<AiAnalysis {self.repository_id}:{self.analysis_date}>"
