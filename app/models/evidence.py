# app/models/evidence.py
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, enum_values
import uuid
import enum

class VerificationStatus(str, enum.Enum):
    """결과 스크린샷 판정 상태"""
    PENDING = "pending"                # 판정 불가, 수동 검토 대기
    VERIFIED_WIN = "verified_win"
    VERIFIED_LOSS = "verified_loss"
    DISPUTED = "disputed"              # 양 팀 모두 승리 주장
    ADMIN_REVIEWED = "admin_reviewed"  # 관리자 판정 완료

class Evidence(Base):
    """팀별 결과 증빙 (매치당 팀마다 1건, 재제출 시 덮어씀)"""
    __tablename__ = "evidence"
    __table_args__ = (
        UniqueConstraint("match_id", "team_id", name="uq_evidence_match_team"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    match_id = Column(String, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(String, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    submitted_by = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    evidence_ref = Column(String, nullable=False)  # 이미지 경로 / URL
    verification_status = Column(
        SQLEnum(VerificationStatus, values_callable=enum_values, name="verification_status"),
        nullable=False,
        default=VerificationStatus.PENDING
    )
    raw_text = Column(Text, nullable=True)  # 분류기 원문 (감사용)
    admin_notes = Column(Text, nullable=True)

    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # 관계
    match = relationship("Match", back_populates="evidence")
    team = relationship("Team")

    def __repr__(self):
        return f"<Evidence team={self.team_id} {self.verification_status.value}>"
