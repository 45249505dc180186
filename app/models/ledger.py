# app/models/ledger.py
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, enum_values
import uuid
import enum

class LedgerEntryType(str, enum.Enum):
    """원장 거래 종류"""
    ENTRY_FEE = "entry_fee"  # 참가비 차감
    REFUND = "refund"        # 취소 환불
    PRIZE = "prize"          # 상금 지급

class LedgerEntry(Base):
    """원장 기록 (성공한 차감/지급 1건당 1행)"""
    __tablename__ = "ledger_entries"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    match_id = Column(String, ForeignKey("matches.id", ondelete="SET NULL"), nullable=True, index=True)

    amount = Column(Numeric(12, 2), nullable=False)  # 음수 = 차감
    entry_type = Column(SQLEnum(LedgerEntryType, values_callable=enum_values, name="ledger_entry_type"), nullable=False)

    # 같은 키로 두 번 처리되지 않음
    idempotency_key = Column(String, unique=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User")

    def __repr__(self):
        return f"<LedgerEntry {self.entry_type.value} {self.amount} user={self.user_id}>"
