# app/models/team.py
from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, Numeric,
    Enum as SQLEnum, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, enum_values
from app.core.exceptions import Conflict
import uuid
import enum

class TeamSlot(str, enum.Enum):
    """매치 내 팀 자리"""
    A = "team_a"
    B = "team_b"

class SlotState(str, enum.Enum):
    """팀 자리 점유 상태"""
    OPEN = "open"        # 아직 팀 이름 없음
    CLAIMED = "claimed"  # 팀이 자리를 차지함

class PaymentStatus(str, enum.Enum):
    """참가비 납부 상태"""
    PENDING = "pending"
    COMPLETED = "completed"

class Team(Base):
    """매치의 한쪽 팀 (매치 생성 시 빈 자리로 2개 생성)"""
    __tablename__ = "teams"
    __table_args__ = (
        UniqueConstraint("match_id", "slot", name="uq_teams_match_slot"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    match_id = Column(String, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    slot = Column(SQLEnum(TeamSlot, values_callable=enum_values, name="team_slot"), nullable=False)

    # None = 빈 자리 (직접 보지 말고 slot_state 사용)
    display_name = Column(String, nullable=True)

    # 납부 정족수 충족 여부 (escrow_service 만 변경)
    is_ready = Column(Boolean, nullable=False, default=False)
    payment_completed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # 관계
    match = relationship("Match", back_populates="teams")
    members = relationship(
        "TeamMember",
        back_populates="team",
        order_by="TeamMember.joined_at",
        cascade="all, delete-orphan"
    )

    @property
    def slot_state(self) -> SlotState:
        return SlotState.CLAIMED if self.display_name else SlotState.OPEN

    @property
    def is_open(self) -> bool:
        return self.slot_state == SlotState.OPEN

    def claim(self, display_name: str) -> None:
        """빈 자리를 팀 이름으로 차지"""
        if self.slot_state == SlotState.CLAIMED:
            raise Conflict(f"{self.slot.value} is already taken by '{self.display_name}'")
        self.display_name = display_name

    @property
    def captain(self):
        for member in self.members:
            if member.is_captain:
                return member
        return None

    @property
    def paid_count(self) -> int:
        return sum(1 for m in self.members if m.payment_status == PaymentStatus.COMPLETED)

    def __repr__(self):
        return f"<Team {self.slot.value} '{self.display_name or '-'}'>"

class TeamMember(Base):
    """팀원 (참가비 금액은 가입 시점에 고정)"""
    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
        UniqueConstraint("match_id", "user_id", name="uq_team_members_match_user"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    team_id = Column(String, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    match_id = Column(String, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    is_captain = Column(Boolean, nullable=False, default=False)
    payment_amount = Column(Numeric(12, 2), nullable=False)
    payment_status = Column(
        SQLEnum(PaymentStatus, values_callable=enum_values, name="payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING
    )

    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    # 관계
    team = relationship("Team", back_populates="members")
    user = relationship("User")

    @property
    def has_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    def __repr__(self):
        return f"<TeamMember {self.user_id} ({self.payment_status.value})>"
