# app/models/match.py
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Numeric, Enum as SQLEnum, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, enum_values
import uuid
import enum

class MatchType(str, enum.Enum):
    """매치 공개 여부"""
    PUBLIC = "public"
    PRIVATE = "private"

class MatchStatus(str, enum.Enum):
    """매치 상태 (app/services/match_state.py 만 변경)"""
    WAITING = "waiting"            # 팀 모집 / 참가비 수납 중
    TEAM_A_READY = "team_a_ready"  # A팀 전원 납부 완료
    TEAM_B_READY = "team_b_ready"  # B팀 전원 납부 완료
    CONFIRMED = "confirmed"        # 양 팀 납부 완료, 방 정보 대기
    IN_PROGRESS = "in_progress"    # 경기 중, 결과 제출 가능
    COMPLETED = "completed"        # 정산 완료
    CANCELLED = "cancelled"        # 취소 (환불 완료)

# 참가비 수납 단계
ESCROW_STATUSES = (MatchStatus.WAITING, MatchStatus.TEAM_A_READY, MatchStatus.TEAM_B_READY)
TERMINAL_STATUSES = (MatchStatus.COMPLETED, MatchStatus.CANCELLED)

class Match(Base):
    """팀 대 팀 매치"""
    __tablename__ = "matches"
    __table_args__ = (
        CheckConstraint("entry_fee > 0", name="ck_matches_entry_fee_positive"),
        CheckConstraint("prize_pool >= 0", name="ck_matches_prize_pool_non_negative"),
    )

    # 기본 필드
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    match_type = Column(SQLEnum(MatchType, values_callable=enum_values, name="match_type"), nullable=False)
    status = Column(
        SQLEnum(MatchStatus, values_callable=enum_values, name="match_status"),
        nullable=False,
        default=MatchStatus.WAITING,
        index=True
    )
    game_name = Column(String, nullable=False)

    # 금액 (생성 시 고정)
    entry_fee = Column(Numeric(12, 2), nullable=False)  # 1인당
    prize_pool = Column(Numeric(12, 2), nullable=False)
    team_size = Column(Integer, nullable=False)

    # 게임 방 정보 (confirmed 상태에서 1회만 설정)
    room_id = Column(String, nullable=True)
    room_credential = Column(String, nullable=True)

    # 결과
    winning_team_id = Column(String, nullable=True)

    created_by = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # 타임스탬프
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)

    # 관계
    creator = relationship("User", foreign_keys=[created_by])
    teams = relationship("Team", back_populates="match", order_by="Team.slot", cascade="all, delete-orphan")
    evidence = relationship("Evidence", back_populates="match", cascade="all, delete-orphan")
    disputes = relationship("Dispute", back_populates="match", cascade="all, delete-orphan")
    result = relationship("MatchResult", back_populates="match", uselist=False, cascade="all, delete-orphan")

    def team_for(self, slot):
        """슬롯(A/B)에 해당하는 팀"""
        for team in self.teams:
            if team.slot == slot:
                return team
        return None

    def team_by_id(self, team_id: str):
        for team in self.teams:
            if team.id == team_id:
                return team
        return None

    def other_team(self, team):
        for candidate in self.teams:
            if candidate.id != team.id:
                return candidate
        return None

    @property
    def members(self):
        """양 팀 전체 참가자"""
        return [member for team in self.teams for member in team.members]

    @property
    def participant_ids(self) -> list[str]:
        return [member.user_id for member in self.members]

    def membership_of(self, user_id: str):
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def __repr__(self):
        return f"<Match {self.id} {self.game_name} - {self.status.value}>"
