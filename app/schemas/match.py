# app/schemas/match.py
from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from app.models.match import MatchType, MatchStatus
from app.models.team import TeamSlot, SlotState, PaymentStatus
from app.models.evidence import VerificationStatus
from app.models.match_result import ResolutionMethod
from app.services.adjudication_service import DecisionKind

class MatchCreate(BaseModel):
    """매치 생성 요청 (team_name 이 있으면 A 자리를 바로 차지)"""
    match_type: MatchType = MatchType.PUBLIC
    game_name: str = Field(..., min_length=1, max_length=100)
    entry_fee: Decimal = Field(..., gt=0)
    team_size: int = Field(..., description="1, 4, 6, 또는 8")
    team_name: Optional[str] = Field(None, max_length=50)
    members: Optional[List[str]] = None
    captain_id: Optional[str] = None

class TeamJoinRequest(BaseModel):
    """팀 참가 요청 (slot 미지정 시 자동 배정)"""
    team_name: str = Field(..., min_length=1, max_length=50)
    members: List[str] = Field(..., min_length=1)
    captain_id: Optional[str] = None
    slot: Optional[TeamSlot] = None
    preferred_slot: Optional[TeamSlot] = None

class AddMemberRequest(BaseModel):
    """기존 팀에 팀원 추가"""
    user_id: str

class PaymentRequest(BaseModel):
    """참가비 납부 (user_id 생략 시 본인)"""
    team_id: str
    user_id: Optional[str] = None

class RoomDetailsRequest(BaseModel):
    """게임 방 정보"""
    room_id: str = Field(..., min_length=1)
    room_credential: str = Field(..., min_length=1)

class CancelRequest(BaseModel):
    reason: Optional[str] = None

class EvidenceSubmit(BaseModel):
    """결과 스크린샷 제출 (이미지 경로 / URL)"""
    team_id: str
    evidence_ref: str = Field(..., min_length=1)

class TeamMemberResponse(BaseModel):
    """팀원 응답"""
    id: str
    user_id: str
    is_captain: bool
    payment_amount: Decimal
    payment_status: PaymentStatus
    joined_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class TeamResponse(BaseModel):
    """팀 응답"""
    id: str
    slot: TeamSlot
    slot_state: SlotState
    display_name: Optional[str] = None
    is_ready: bool
    payment_completed: bool
    members: List[TeamMemberResponse] = []

    class Config:
        from_attributes = True

class EvidenceResponse(BaseModel):
    """증빙 응답"""
    id: str
    team_id: str
    submitted_by: str
    evidence_ref: str
    verification_status: VerificationStatus
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class MatchResultResponse(BaseModel):
    winning_team_id: Optional[str] = None
    prize_awarded: bool
    prize_amount: Optional[Decimal] = None
    resolution_method: ResolutionMethod
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class MatchSummary(BaseModel):
    """매치 목록 항목"""
    id: str
    match_type: MatchType
    status: MatchStatus
    game_name: str
    entry_fee: Decimal
    prize_pool: Decimal
    team_size: int
    created_by: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class MatchResponse(MatchSummary):
    """매치 상세 응답 (방 정보는 참가자에게만)"""
    room_id: Optional[str] = None
    room_credential: Optional[str] = None
    winning_team_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    teams: List[TeamResponse] = []
    evidence: List[EvidenceResponse] = []
    result: Optional[MatchResultResponse] = None

class MatchListResponse(BaseModel):
    matches: List[MatchSummary]
    total: int
    page: int
    pages: int

class ShareLinkResponse(BaseModel):
    match_id: str
    match_type: MatchType
    link: str

class PaymentResponse(BaseModel):
    """참가비 납부 결과"""
    match_id: str
    team_id: str
    user_id: str
    amount: Decimal
    team_paid: int
    team_ready: bool
    match_status: MatchStatus

class TeamReadiness(BaseModel):
    team_id: str
    slot: TeamSlot
    display_name: Optional[str] = None
    slot_state: SlotState
    players: int
    paid: int
    is_ready: bool

class ReadinessResponse(BaseModel):
    """팀별 준비 현황"""
    match_id: str
    status: MatchStatus
    team_size: int
    teams: List[TeamReadiness]
    total_players: int
    total_paid: int
    required_players: int
    can_be_confirmed: bool
    reason: str

class SettlementResponse(BaseModel):
    """정산 결과"""
    match_id: str
    winning_team_id: str
    prize_amount: Decimal
    method: ResolutionMethod
    already_settled: bool = False
    payouts: dict = {}

    class Config:
        from_attributes = True

class EvidenceResult(BaseModel):
    """결과 제출 응답"""
    evidence_id: str
    match_id: str
    team_id: str
    verification_status: VerificationStatus
    decision: DecisionKind
    match_status: MatchStatus
    settlement: Optional[SettlementResponse] = None

class CancelResponse(BaseModel):
    match_id: str
    status: MatchStatus
    refunds: dict

class UserMatchHistory(BaseModel):
    """유저 매치 기록 항목"""
    match_id: str
    game_name: str
    status: MatchStatus
    team_id: str
    team_name: Optional[str] = None
    is_captain: bool
    payment_status: PaymentStatus
    won: bool
    winnings: Decimal
    created_at: Optional[datetime] = None
