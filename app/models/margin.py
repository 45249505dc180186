# app/models/margin.py
from sqlalchemy import Column, Integer, DateTime, Numeric, String
from sqlalchemy.sql import func
from app.database import Base

class PrizeMargin(Base):
    """플랫폼 수수료율 (추가만 함, 최신 행이 현재 값)"""
    __tablename__ = "prize_margins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    margin = Column(Numeric(5, 2), nullable=False)  # 퍼센트 (0 ~ 100)
    set_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<PrizeMargin {self.margin}%>"
