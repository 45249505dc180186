# app/models/user.py
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Numeric, CheckConstraint
from sqlalchemy.sql import func
from app.database import Base
import uuid

class User(Base):
    """유저 모델 (지갑 잔액 포함)"""
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("wallet >= 0", name="ck_users_wallet_non_negative"),
    )

    # 기본 필드
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String, unique=True, index=True, nullable=False)

    # 지갑 (원장 게이트웨이만 변경)
    wallet = Column(Numeric(12, 2), nullable=False, default=0)

    # 전적
    total_wins = Column(Integer, nullable=False, default=0)
    total_games_played = Column(Integer, nullable=False, default=0)

    # 계정 상태
    is_active = Column(Boolean, default=True)

    # 타임스탬프
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<User {self.username}>"
