# app/schemas/user.py
from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.models.ledger import LedgerEntryType

class UserResponse(BaseModel):
    """유저 응답 (지갑, 전적 포함)"""
    id: str
    username: str
    wallet: Decimal
    total_wins: int
    total_games_played: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class LedgerEntryResponse(BaseModel):
    """거래 내역 항목"""
    id: str
    match_id: Optional[str] = None
    amount: Decimal
    entry_type: LedgerEntryType
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
