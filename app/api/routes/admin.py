# app/api/routes/admin.py
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.context import Actor
from app.api.deps import get_arbiter, get_engine_gateways
from app.models.dispute import DisputeStatus
from app.models.match import MatchStatus, MatchType
from app.schemas.admin import (
    AdminMatchListResponse,
    AdminMatchDetail,
    DisputedMatchListResponse,
    AdminStatsResponse
)
from app.schemas.dispute import (
    DisputeResponse,
    DisputeResolve,
    DisputeResolution,
    DeclareWinnerRequest,
    MarginUpdate,
    MarginResponse
)
from app.schemas.match import CancelRequest, CancelResponse, SettlementResponse
from app.services import dispute_service, match_state, margin_service, oversight_service
from app.services.gateways import Gateways

router = APIRouter(prefix="/api/v1/admin", tags=["관리자"])

@router.get("/matches", response_model=AdminMatchListResponse)
def list_matches(
    status: Optional[MatchStatus] = None,
    match_type: Optional[MatchType] = None,
    page: int = 1,
    limit: int = 20,
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db)
):
    """전체 매치 목록 (진행 단계 순)"""
    return oversight_service.list_matches(
        db, arbiter, status=status, match_type=match_type, page=page, limit=limit
    )

@router.get("/matches/{match_id}", response_model=AdminMatchDetail)
def get_match_details(
    match_id: str,
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db)
):
    """매치 상세 (방 정보, 증빙, 분쟁, 결과)"""
    return oversight_service.get_match_details(db, arbiter, match_id)

@router.get("/disputed-matches", response_model=DisputedMatchListResponse)
def list_disputed_matches(
    status: Optional[DisputeStatus] = None,
    page: int = 1,
    limit: int = 20,
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db)
):
    """분쟁 중인 매치 (기본: 열린 분쟁만)"""
    return oversight_service.list_disputed_matches(db, arbiter, status=status, page=page, limit=limit)

@router.get("/stats", response_model=AdminStatsResponse)
def get_stats(
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db)
):
    """관리자 대시보드 통계"""
    return oversight_service.statistics(db, arbiter)

@router.get("/disputes", response_model=List[DisputeResponse])
def list_disputes(
    status: Optional[DisputeStatus] = None,
    page: int = 1,
    limit: int = 20,
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db)
):
    """분쟁 목록"""
    return dispute_service.list_disputes(db, arbiter, status=status, page=page, limit=limit)

@router.post("/disputes/{dispute_id}/review", response_model=DisputeResponse)
def review_dispute(
    dispute_id: str,
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db)
):
    """분쟁 검토 시작"""
    return dispute_service.review_dispute(db, arbiter, dispute_id)

@router.post("/disputes/{dispute_id}/resolve", response_model=DisputeResolution)
def resolve_dispute(
    dispute_id: str,
    data: DisputeResolve,
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db),
    gw: Gateways = Depends(get_engine_gateways)
):
    """분쟁 판정 (resolved → 승리 팀 정산)"""
    return dispute_service.resolve_dispute(
        db, gw, arbiter, dispute_id,
        outcome=data.outcome,
        winning_team_id=data.winning_team_id,
        notes=data.admin_notes
    )

@router.post("/matches/{match_id}/winner", response_model=SettlementResponse)
def declare_winner(
    match_id: str,
    data: DeclareWinnerRequest,
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db),
    gw: Gateways = Depends(get_engine_gateways)
):
    """승자 직접 지정"""
    return dispute_service.declare_winner(
        db, gw, arbiter, match_id, data.winning_team_id, notes=data.admin_notes
    )

@router.post("/matches/{match_id}/cancel", response_model=CancelResponse)
def cancel_match(
    match_id: str,
    data: CancelRequest = None,
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db),
    gw: Gateways = Depends(get_engine_gateways)
):
    """관리자 매치 취소"""
    change = match_state.cancel_match(db, gw, arbiter, match_id, reason=data.reason if data else None)
    return {
        "match_id": change.match_id,
        "status": change.current,
        "refunds": change.refunds
    }

@router.get("/margin", response_model=MarginResponse)
def get_margin(
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db)
):
    """현재 수수료율"""
    margin = margin_service.get_current_margin(db)
    db.commit()
    return {"margin": margin}

@router.put("/margin", response_model=MarginResponse)
def update_margin(
    data: MarginUpdate,
    arbiter: Actor = Depends(get_arbiter),
    db: Session = Depends(get_db)
):
    """수수료율 변경 (이후 생성되는 매치부터 적용)"""
    row = margin_service.update_margin(db, arbiter, data.margin)
    return {"margin": row.margin}
