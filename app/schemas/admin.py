# app/schemas/admin.py
from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from app.models.dispute import DisputeStatus
from app.models.match import MatchStatus
from app.schemas.dispute import DisputeResponse
from app.schemas.match import MatchResponse, MatchSummary

class AdminMatchSummary(MatchSummary):
    """관리자 매치 목록 항목"""
    team_a_name: Optional[str] = None
    team_b_name: Optional[str] = None
    team_a_size: int = 0
    team_b_size: int = 0

class AdminMatchListResponse(BaseModel):
    matches: List[AdminMatchSummary]
    total: int
    page: int
    pages: int

class AdminMatchDetail(MatchResponse):
    """관리자 매치 상세 (방 정보, 분쟁 포함)"""
    disputes: List[DisputeResponse] = []

class DisputedMatchItem(BaseModel):
    """분쟁 + 매치 정보"""
    id: str
    match_id: str
    reported_by: str
    reported_team_id: str
    reported_team_name: Optional[str] = None
    reason: str
    evidence_ref: Optional[str] = None
    status: DisputeStatus
    created_at: Optional[datetime] = None
    game_name: str
    match_status: MatchStatus

class DisputedMatchListResponse(BaseModel):
    disputes: List[DisputedMatchItem]
    total: int
    page: int
    pages: int

class MatchStats(BaseModel):
    total: int
    active: int
    by_status: Dict[str, int]

class DisputeStats(BaseModel):
    total: int
    open: int
    by_status: Dict[str, int]

class AdminStatsResponse(BaseModel):
    """관리자 대시보드 통계"""
    match_stats: MatchStats
    dispute_stats: DisputeStats
    total_prize_paid: Decimal
    recent_matches: List[AdminMatchSummary]
