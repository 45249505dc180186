# app/api/routes/matches.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.context import Actor
from app.api.deps import get_current_actor, get_engine_gateways
from app.schemas.match import (
    MatchCreate,
    MatchResponse,
    MatchListResponse,
    ShareLinkResponse,
    TeamJoinRequest,
    TeamResponse,
    AddMemberRequest,
    TeamMemberResponse,
    PaymentRequest,
    PaymentResponse,
    ReadinessResponse,
    RoomDetailsRequest,
    CancelRequest,
    CancelResponse,
    EvidenceSubmit,
    EvidenceResult
)
from app.schemas.dispute import DisputeCreate, DisputeResponse
from app.services import (
    formation_service,
    escrow_service,
    match_state,
    adjudication_service,
    dispute_service
)
from app.services.gateways import Gateways

router = APIRouter(prefix="/api/v1/matches", tags=["매치"])

@router.post("", response_model=MatchResponse, status_code=status.HTTP_201_CREATED)
def create_match(
    data: MatchCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """매치 생성 (빈 팀 자리 2개)"""
    return formation_service.create_match(
        db,
        actor,
        match_type=data.match_type,
        game_name=data.game_name,
        entry_fee=data.entry_fee,
        team_size=data.team_size,
        team_name=data.team_name,
        members=data.members,
        captain_id=data.captain_id
    )

@router.get("/public", response_model=MatchListResponse)
def get_public_matches(
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db)
):
    """참가 가능한 공개 매치 목록 (인증 불필요)"""
    return formation_service.list_public_matches(db, page=page, limit=limit)

@router.get("/{match_id}", response_model=MatchResponse)
def get_match(
    match_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """매치 상세 (팀, 팀원, 증빙, 결과)"""
    match = match_state.get_match(db, match_id)
    response = MatchResponse.model_validate(match)

    # 방 정보는 참가자 / 관리자만
    if match.membership_of(actor.user_id) is None and not actor.is_admin:
        response.room_id = None
        response.room_credential = None

    return response

@router.get("/{match_id}/share", response_model=ShareLinkResponse)
def get_share_link(
    match_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """초대 링크"""
    return formation_service.share_link(db, actor, match_id)

@router.post("/{match_id}/teams", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
def join_team(
    match_id: str,
    data: TeamJoinRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    gw: Gateways = Depends(get_engine_gateways)
):
    """팀 단위 참가 (slot 미지정 시 자동 배정)"""
    return formation_service.join_team(
        db, gw, actor, match_id,
        display_name=data.team_name,
        members=data.members,
        captain_id=data.captain_id,
        slot=data.slot,
        preferred_slot=data.preferred_slot
    )

@router.post(
    "/{match_id}/teams/{team_id}/members",
    response_model=TeamMemberResponse,
    status_code=status.HTTP_201_CREATED
)
def add_team_member(
    match_id: str,
    team_id: str,
    data: AddMemberRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """기존 팀에 팀원 추가"""
    return formation_service.add_team_member(db, actor, match_id, team_id, data.user_id)

@router.post("/{match_id}/payments", response_model=PaymentResponse)
def pay_entry_fee(
    match_id: str,
    data: PaymentRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    gw: Gateways = Depends(get_engine_gateways)
):
    """참가비 납부"""
    return escrow_service.pay_entry_fee(
        db, gw, actor, match_id, data.team_id, data.user_id or actor.user_id
    )

@router.get("/{match_id}/readiness", response_model=ReadinessResponse)
def get_readiness(
    match_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """팀별 준비 현황"""
    return escrow_service.readiness(db, match_id)

@router.put("/{match_id}/room", response_model=MatchResponse)
def set_room_details(
    match_id: str,
    data: RoomDetailsRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    gw: Gateways = Depends(get_engine_gateways)
):
    """게임 방 정보 설정"""
    return match_state.set_room_details(db, gw, actor, match_id, data.room_id, data.room_credential)

@router.post("/{match_id}/start", response_model=MatchResponse)
def start_match(
    match_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    gw: Gateways = Depends(get_engine_gateways)
):
    """매치 시작 (생성 팀 주장)"""
    return match_state.start_match(db, gw, actor, match_id)

@router.post("/{match_id}/cancel", response_model=CancelResponse)
def cancel_match(
    match_id: str,
    data: CancelRequest = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    gw: Gateways = Depends(get_engine_gateways)
):
    """매치 취소 (납부 인원 전원 환불)"""
    change = match_state.cancel_match(db, gw, actor, match_id, reason=data.reason if data else None)
    return {
        "match_id": change.match_id,
        "status": change.current,
        "refunds": change.refunds
    }

@router.post("/{match_id}/evidence", response_model=EvidenceResult)
def submit_evidence(
    match_id: str,
    data: EvidenceSubmit,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    gw: Gateways = Depends(get_engine_gateways)
):
    """결과 스크린샷 제출 (주장)"""
    return adjudication_service.submit_evidence(db, gw, actor, match_id, data.team_id, data.evidence_ref)

@router.post("/{match_id}/disputes", response_model=DisputeResponse, status_code=status.HTTP_201_CREATED)
def file_dispute(
    match_id: str,
    data: DisputeCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    gw: Gateways = Depends(get_engine_gateways)
):
    """결과 분쟁 등록"""
    return dispute_service.file_dispute(
        db, gw, actor, match_id,
        reported_team_id=data.reported_team_id,
        reason=data.reason,
        evidence_ref=data.evidence_ref
    )
