# app/services/oversight_service.py
"""
관리자 조회 화면

전체 매치 목록 / 매치 상세 / 분쟁 중인 매치 / 대시보드 통계.
읽기 전용이며 상태를 바꾸지 않는다.
"""
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.core.context import Actor
from app.core.exceptions import NotAuthorized
from app.models.dispute import Dispute, DisputeStatus, OPEN_DISPUTE_STATUSES
from app.models.ledger import LedgerEntry, LedgerEntryType
from app.models.match import Match, MatchType, MatchStatus, TERMINAL_STATUSES
from app.models.team import TeamSlot
from app.services.ledger_service import to_money
from app.services.match_state import get_match

# 목록 정렬: 진행 단계 순, 종료된 매치는 마지막
LIFECYCLE_ORDER = (
    MatchStatus.WAITING,
    MatchStatus.TEAM_A_READY,
    MatchStatus.TEAM_B_READY,
    MatchStatus.CONFIRMED,
    MatchStatus.IN_PROGRESS,
    MatchStatus.COMPLETED,
)
RECENT_MATCH_COUNT = 5

def _require_arbiter(actor: Actor) -> None:
    if not actor.can_arbitrate:
        raise NotAuthorized("Admin access required")

def _page_bounds(page: int, limit: int):
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    return page, limit, (page - 1) * limit

def _summary(match: Match) -> dict:
    """매치 목록 항목 (양 팀 이름 / 인원 포함)"""
    team_a = match.team_for(TeamSlot.A)
    team_b = match.team_for(TeamSlot.B)
    return {
        "id": match.id,
        "match_type": match.match_type,
        "status": match.status,
        "game_name": match.game_name,
        "entry_fee": match.entry_fee,
        "prize_pool": match.prize_pool,
        "team_size": match.team_size,
        "created_by": match.created_by,
        "created_at": match.created_at,
        "team_a_name": team_a.display_name if team_a else None,
        "team_b_name": team_b.display_name if team_b else None,
        "team_a_size": len(team_a.members) if team_a else 0,
        "team_b_size": len(team_b.members) if team_b else 0,
    }

def list_matches(
    db: Session,
    actor: Actor,
    status: Optional[MatchStatus] = None,
    match_type: Optional[MatchType] = None,
    page: int = 1,
    limit: int = 20
) -> dict:
    """전체 매치 목록 (상태 / 공개 여부 필터)"""
    _require_arbiter(actor)
    page, limit, offset = _page_bounds(page, limit)

    query = db.query(Match)
    if status is not None:
        query = query.filter(Match.status == status)
    if match_type is not None:
        query = query.filter(Match.match_type == match_type)

    lifecycle = case(
        *[(Match.status == s, i) for i, s in enumerate(LIFECYCLE_ORDER)],
        else_=len(LIFECYCLE_ORDER)
    )
    total = query.count()
    matches = query.order_by(lifecycle, Match.created_at.desc())\
        .offset(offset)\
        .limit(limit)\
        .all()

    return {
        "matches": [_summary(m) for m in matches],
        "total": total,
        "page": page,
        "pages": (total + limit - 1) // limit
    }

def get_match_details(db: Session, actor: Actor, match_id: str) -> Match:
    """관리자 매치 상세 (방 정보, 증빙, 분쟁, 결과 전부)"""
    _require_arbiter(actor)
    return get_match(db, match_id)

def list_disputed_matches(
    db: Session,
    actor: Actor,
    status: Optional[DisputeStatus] = None,
    page: int = 1,
    limit: int = 20
) -> dict:
    """
    분쟁 목록 + 매치 정보
    status 미지정 시 열린 분쟁(pending / under_review)만
    """
    _require_arbiter(actor)
    page, limit, offset = _page_bounds(page, limit)

    query = db.query(Dispute, Match).join(Match, Dispute.match_id == Match.id)
    if status is None:
        query = query.filter(Dispute.status.in_(OPEN_DISPUTE_STATUSES))
    else:
        query = query.filter(Dispute.status == status)

    total = query.count()
    rows = query.order_by(Dispute.created_at.desc())\
        .offset(offset)\
        .limit(limit)\
        .all()

    disputes = []
    for dispute, match in rows:
        reported_team = match.team_by_id(dispute.reported_team_id)
        disputes.append({
            "id": dispute.id,
            "match_id": match.id,
            "reported_by": dispute.reported_by,
            "reported_team_id": dispute.reported_team_id,
            "reported_team_name": reported_team.display_name if reported_team else None,
            "reason": dispute.reason,
            "evidence_ref": dispute.evidence_ref,
            "status": dispute.status,
            "created_at": dispute.created_at,
            "game_name": match.game_name,
            "match_status": match.status,
        })

    return {
        "disputes": disputes,
        "total": total,
        "page": page,
        "pages": (total + limit - 1) // limit
    }

def statistics(db: Session, actor: Actor) -> dict:
    """관리자 대시보드 통계"""
    _require_arbiter(actor)

    match_counts = {s.value: 0 for s in MatchStatus}
    for status, count in db.query(Match.status, func.count(Match.id)).group_by(Match.status).all():
        match_counts[status.value] = count

    dispute_counts = {s.value: 0 for s in DisputeStatus}
    for status, count in db.query(Dispute.status, func.count(Dispute.id)).group_by(Dispute.status).all():
        dispute_counts[status.value] = count

    # 실제 지급된 상금 합계 (원장 기준)
    prize_paid = db.query(func.sum(LedgerEntry.amount))\
        .filter(LedgerEntry.entry_type == LedgerEntryType.PRIZE)\
        .scalar()

    recent = db.query(Match)\
        .order_by(Match.created_at.desc())\
        .limit(RECENT_MATCH_COUNT)\
        .all()

    return {
        "match_stats": {
            "total": sum(match_counts.values()),
            "active": sum(match_counts[s.value] for s in MatchStatus if s not in TERMINAL_STATUSES),
            "by_status": match_counts,
        },
        "dispute_stats": {
            "total": sum(dispute_counts.values()),
            "open": sum(dispute_counts[s.value] for s in OPEN_DISPUTE_STATUSES),
            "by_status": dispute_counts,
        },
        "total_prize_paid": to_money(prize_paid or 0),
        "recent_matches": [_summary(m) for m in recent],
    }
