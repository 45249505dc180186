# app/schemas/dispute.py
from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.models.dispute import DisputeStatus
from app.schemas.match import SettlementResponse

class DisputeCreate(BaseModel):
    """분쟁 등록 요청"""
    reported_team_id: str
    reason: str = Field(..., min_length=1, max_length=1000)
    evidence_ref: Optional[str] = None

class DisputeResolve(BaseModel):
    """분쟁 판정 요청 (resolved 이면 winning_team_id 필수)"""
    outcome: DisputeStatus
    winning_team_id: Optional[str] = None
    admin_notes: Optional[str] = None

class DeclareWinnerRequest(BaseModel):
    """관리자 직접 승자 지정"""
    winning_team_id: str
    admin_notes: Optional[str] = None

class DisputeResponse(BaseModel):
    """분쟁 응답"""
    id: str
    match_id: str
    reported_by: str
    reported_team_id: str
    reason: str
    evidence_ref: Optional[str] = None
    status: DisputeStatus
    admin_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class DisputeResolution(BaseModel):
    dispute: DisputeResponse
    settlement: Optional[SettlementResponse] = None

class MarginUpdate(BaseModel):
    """수수료율 변경 (%)"""
    margin: Decimal = Field(..., ge=0, le=100)

class MarginResponse(BaseModel):
    margin: Decimal
