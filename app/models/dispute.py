# app/models/dispute.py
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, enum_values
import uuid
import enum

class DisputeStatus(str, enum.Enum):
    """분쟁 처리 상태"""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    REJECTED = "rejected"

OPEN_DISPUTE_STATUSES = (DisputeStatus.PENDING, DisputeStatus.UNDER_REVIEW)

class Dispute(Base):
    """매치 결과 분쟁"""
    __tablename__ = "disputes"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    match_id = Column(String, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    reported_by = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reported_team_id = Column(String, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)

    reason = Column(Text, nullable=False)
    evidence_ref = Column(String, nullable=True)

    status = Column(
        SQLEnum(DisputeStatus, values_callable=enum_values, name="dispute_status"),
        nullable=False,
        default=DisputeStatus.PENDING,
        index=True
    )
    admin_notes = Column(Text, nullable=True)
    resolved_by = Column(String, nullable=True)

    # 타임스탬프
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    # 관계
    match = relationship("Match", back_populates="disputes")
    reported_team = relationship("Team")

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_DISPUTE_STATUSES

    def __repr__(self):
        return f"<Dispute {self.id} match={self.match_id} {self.status.value}>"
