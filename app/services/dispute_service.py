# app/services/dispute_service.py
"""
분쟁 처리

참가자 분쟁 등록, 관리자 검토 / 판정 / 직접 승자 지정.
관리자 판정은 settlement_service.settle_locked() 로 정산한다.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.context import Actor
from app.core.exceptions import NotAuthorized, NotFound, PreconditionFailed, ValidationError
from app.core.logger import logger
from app.database import transaction
from app.models.dispute import Dispute, DisputeStatus, OPEN_DISPUTE_STATUSES
from app.models.match import Match, MatchStatus
from app.models.match_result import ResolutionMethod
from app.services.adjudication_service import mark_admin_reviewed
from app.services.gateways import Gateways
from app.services.ledger_service import to_money
from app.services.match_state import get_match, get_match_for_update, now_utc
from app.services.notification_service import Notice, dispatch
from app.services.settlement_service import SettlementRequest, SettlementOutcome, settle_locked

RESOLVE_OUTCOMES = (DisputeStatus.RESOLVED, DisputeStatus.REJECTED)
SETTLEMENT_FINAL_NOTE = "Settlement is final: prize was already paid to the recorded winner."

def _require_arbiter(actor: Actor) -> None:
    if not actor.can_arbitrate:
        raise NotAuthorized("Admin access required")

def get_dispute(db: Session, dispute_id: str) -> Dispute:
    dispute = db.query(Dispute).filter(Dispute.id == dispute_id).first()
    if not dispute:
        raise NotFound(f"Dispute {dispute_id} not found")
    return dispute

def _final_settlement(match: Match) -> SettlementOutcome:
    """이미 정산된 매치의 기존 결과"""
    return SettlementOutcome(
        match_id=match.id,
        winning_team_id=match.winning_team_id,
        prize_amount=to_money(match.prize_pool),
        method=match.result.resolution_method if match.result else ResolutionMethod.AUTOMATIC,
        already_settled=True
    )

def _lock_dispute(db: Session, dispute_id: str) -> Dispute:
    dispute = db.query(Dispute)\
        .filter(Dispute.id == dispute_id)\
        .with_for_update()\
        .populate_existing()\
        .first()
    if not dispute:
        raise NotFound(f"Dispute {dispute_id} not found")
    return dispute

def file_dispute(
    db: Session,
    gw: Gateways,
    actor: Actor,
    match_id: str,
    reported_team_id: str,
    reason: str,
    evidence_ref: str = None
) -> Dispute:
    """
    참가자 분쟁 등록
    매치 상태는 바뀌지 않고, 신고자를 제외한 양 팀 주장에게 알림
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Dispute reason is required")

    with transaction(db):
        match = get_match(db, match_id)
        if match.status == MatchStatus.CANCELLED:
            raise PreconditionFailed("Cannot file a dispute for a cancelled match")
        if match.membership_of(actor.user_id) is None:
            raise NotAuthorized("Only match participants can file a dispute")

        reported_team = match.team_by_id(reported_team_id)
        if reported_team is None:
            raise NotFound(f"Team {reported_team_id} not found in match {match_id}")

        dispute = Dispute(
            match_id=match.id,
            reported_by=actor.user_id,
            reported_team_id=reported_team.id,
            reason=reason,
            evidence_ref=evidence_ref,
            status=DisputeStatus.PENDING
        )
        db.add(dispute)
        db.flush()

        notices = []
        for team in match.teams:
            captain = team.captain
            if captain is None or captain.user_id == actor.user_id:
                continue
            if team.id == reported_team.id:
                body = "A dispute has been filed against your team. Results will be reviewed by admins."
            else:
                body = f"A dispute has been filed against {reported_team.display_name}. Results will be reviewed by admins."
            notices.append(Notice(
                user_id=captain.user_id,
                title=f"Dispute Filed: {match.game_name}",
                body=body,
                payload={
                    "type": "match_dispute_filed",
                    "match_id": match.id,
                    "dispute_id": dispute.id,
                    "route": f"matches/{match.id}",
                }
            ))
        dispute_id = dispute.id

    logger.info(f"분쟁 등록: {dispute_id} match={match_id} by {actor.user_id} → team {reported_team_id}")
    dispatch(gw.notifier, notices)
    return get_dispute(db, dispute_id)

def review_dispute(db: Session, actor: Actor, dispute_id: str) -> Dispute:
    """pending → under_review"""
    _require_arbiter(actor)

    with transaction(db):
        dispute = _lock_dispute(db, dispute_id)
        if dispute.status != DisputeStatus.PENDING:
            raise PreconditionFailed(
                f"Only pending disputes can be taken under review (status: {dispute.status.value})"
            )
        dispute.status = DisputeStatus.UNDER_REVIEW

    logger.info(f"분쟁 검토 시작: {dispute_id} by {actor.user_id}")
    return get_dispute(db, dispute_id)

def resolve_dispute(
    db: Session,
    gw: Gateways,
    actor: Actor,
    dispute_id: str,
    outcome: DisputeStatus,
    winning_team_id: str = None,
    notes: str = None
) -> dict:
    """
    분쟁 판정
    - rejected: 분쟁만 종료
    - resolved: 증빙 admin_reviewed + 관리자 판정 정산 + 분쟁 종료 (한 트랜잭션)
    잠금 순서: 매치 → 분쟁
    """
    _require_arbiter(actor)
    outcome = DisputeStatus(outcome)
    if outcome not in RESOLVE_OUTCOMES:
        raise ValidationError("Outcome must be 'resolved' or 'rejected'")
    if outcome == DisputeStatus.RESOLVED and not winning_team_id:
        raise ValidationError("A winning team is required to resolve a dispute")

    match_id = get_dispute(db, dispute_id).match_id
    settlement = None
    notices = []

    with transaction(db):
        match = get_match_for_update(db, match_id)
        dispute = _lock_dispute(db, dispute_id)
        if not dispute.is_open:
            raise PreconditionFailed(f"Dispute is already closed ({dispute.status.value})")

        if outcome == DisputeStatus.RESOLVED:
            if match.team_by_id(winning_team_id) is None:
                raise ValidationError("Winning team must belong to the disputed match")

            if match.status == MatchStatus.COMPLETED and match.winning_team_id != winning_team_id:
                # 지급 완료된 상금은 회수하지 않음: 분쟁은 기각으로 종료
                outcome = DisputeStatus.REJECTED
                notes = f"{SETTLEMENT_FINAL_NOTE} {notes}" if notes else SETTLEMENT_FINAL_NOTE
                mark_admin_reviewed(db, match.id, notes)
                settlement = _final_settlement(match)
                notices = [Notice(
                    user_id=dispute.reported_by,
                    title=f"Dispute Closed: {match.game_name}",
                    body="The match had already been settled. Prize payouts are final.",
                    payload={
                        "type": "match_dispute_closed",
                        "match_id": match.id,
                        "dispute_id": dispute.id,
                        "route": f"matches/{match.id}",
                    }
                )]
                logger.warning(
                    f"정산 완료 매치의 승자 변경 요청 기각: match={match.id} "
                    f"기존 {match.winning_team_id}, 요청 {winning_team_id}"
                )
            else:
                mark_admin_reviewed(db, match.id, notes)
                settlement, notices = settle_locked(db, gw, match, SettlementRequest(
                    match_id=match.id,
                    winning_team_id=winning_team_id,
                    method=ResolutionMethod.ADMIN_DECISION,
                    requested_by=actor
                ))

        dispute.status = outcome
        dispute.admin_notes = notes
        dispute.resolved_by = actor.user_id
        dispute.resolved_at = now_utc()

    logger.info(
        f"분쟁 판정: {dispute_id} → {outcome.value} by {actor.user_id}"
        + (f", 승리 팀 {winning_team_id}" if winning_team_id else "")
    )
    dispatch(gw.notifier, notices)

    return {
        "dispute": get_dispute(db, dispute_id),
        "settlement": settlement,
    }

def list_disputes(db: Session, actor: Actor, status: Optional[DisputeStatus] = None,
                  page: int = 1, limit: int = 20) -> List[Dispute]:
    """관리자용 분쟁 목록 (최신순)"""
    _require_arbiter(actor)

    query = db.query(Dispute)
    if status is not None:
        query = query.filter(Dispute.status == status)

    return query.order_by(Dispute.created_at.desc())\
        .offset((max(page, 1) - 1) * limit)\
        .limit(limit)\
        .all()

def declare_winner(db: Session, gw: Gateways, actor: Actor, match_id: str,
                   winning_team_id: str, notes: str = None) -> SettlementOutcome:
    """관리자 직접 승자 지정 (열린 분쟁도 함께 종료)"""
    _require_arbiter(actor)

    with transaction(db):
        match = get_match_for_update(db, match_id)
        if match.team_by_id(winning_team_id) is None:
            raise ValidationError("Winning team must belong to the match")

        settlement, notices = settle_locked(db, gw, match, SettlementRequest(
            match_id=match.id,
            winning_team_id=winning_team_id,
            method=ResolutionMethod.ADMIN_DECISION,
            requested_by=actor
        ))
        if not settlement.already_settled:
            mark_admin_reviewed(db, match.id, notes)

        open_disputes = db.query(Dispute)\
            .filter(Dispute.match_id == match.id, Dispute.status.in_(OPEN_DISPUTE_STATUSES))\
            .all()
        for dispute in open_disputes:
            dispute.status = DisputeStatus.RESOLVED
            dispute.admin_notes = notes or "Closed by admin winner declaration"
            dispute.resolved_by = actor.user_id
            dispute.resolved_at = now_utc()

    logger.info(f"관리자 승자 지정: match={match_id} team={winning_team_id} by {actor.user_id}")
    dispatch(gw.notifier, notices)
    return settlement
