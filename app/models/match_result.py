# app/models/match_result.py
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Numeric, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, enum_values
import uuid
import enum

class ResolutionMethod(str, enum.Enum):
    """결과 확정 방식"""
    AUTOMATIC = "automatic"
    ADMIN_DECISION = "admin_decision"

class MatchResult(Base):
    """매치 결과 (매치당 1행, upsert)"""
    __tablename__ = "match_results"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    match_id = Column(String, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, unique=True)
    winning_team_id = Column(String, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)

    prize_awarded = Column(Boolean, nullable=False, default=False)
    prize_amount = Column(Numeric(12, 2), nullable=True)
    resolution_method = Column(SQLEnum(ResolutionMethod, values_callable=enum_values, name="resolution_method"), nullable=False)

    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # 관계
    match = relationship("Match", back_populates="result")
    winning_team = relationship("Team")

    def __repr__(self):
        return f"<MatchResult match={self.match_id} winner={self.winning_team_id} ({self.resolution_method.value})>"
