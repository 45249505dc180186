# app/services/adjudication_service.py
"""
결과 판정

1) 결과 스크린샷 분류 (트랜잭션 밖)
2) 팀별 증빙 upsert
3) 매치 행 잠금 후 decide() 결과에 따라 자동 정산 / 자동 분쟁 / 대기
"""
import enum
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.config import settings
from app.core.context import Actor
from app.core.exceptions import NotAuthorized, NotFound, PreconditionFailed, ValidationError
from app.core.file_security import validate_evidence_ref
from app.core.logger import logger
from app.database import transaction
from app.models.dispute import Dispute, DisputeStatus, OPEN_DISPUTE_STATUSES
from app.models.evidence import Evidence, VerificationStatus
from app.models.match import Match, MatchStatus
from app.models.match_result import ResolutionMethod
from app.models.team import TeamSlot
from app.services.classifier_service import classify_evidence
from app.services.gateways import Gateways
from app.services.match_state import get_match, get_match_for_update
from app.services.notification_service import Notice, notices_for, dispatch
from app.services.settlement_service import SettlementRequest, SettlementOutcome, settle_locked

AUTO_DISPUTE_REASON = "Automatic: conflicting victory evidence detected"

class DecisionKind(str, enum.Enum):
    SETTLE = "settle"
    DISPUTE = "dispute"
    WAIT = "wait"

@dataclass(frozen=True)
class Decision:
    kind: DecisionKind
    winner: Optional[TeamSlot] = None

def decide(status_a: Optional[VerificationStatus], status_b: Optional[VerificationStatus]) -> Decision:
    """
    양 팀 증빙 상태로 판정 (None = 미제출)
    - 승 vs 패 / 승 vs 미제출 → 승리 팀 정산
    - 승 vs 승 → 분쟁
    - 나머지 → 대기
    """
    win = VerificationStatus.VERIFIED_WIN
    a_won = status_a == win
    b_won = status_b == win

    if a_won and b_won:
        return Decision(DecisionKind.DISPUTE)
    if a_won and status_b in (VerificationStatus.VERIFIED_LOSS, None):
        return Decision(DecisionKind.SETTLE, TeamSlot.A)
    if b_won and status_a in (VerificationStatus.VERIFIED_LOSS, None):
        return Decision(DecisionKind.SETTLE, TeamSlot.B)
    return Decision(DecisionKind.WAIT)

def has_open_dispute(db: Session, match_id: str) -> bool:
    return db.query(Dispute)\
        .filter(Dispute.match_id == match_id, Dispute.status.in_(OPEN_DISPUTE_STATUSES))\
        .first() is not None

def _evidence_by_team(db: Session, match_id: str) -> dict:
    rows = db.query(Evidence).filter(Evidence.match_id == match_id).all()
    return {row.team_id: row for row in rows}

def _captain_ids(match: Match) -> List[str]:
    return [team.captain.user_id for team in match.teams if team.captain is not None]

def _resolve_locked(db: Session, gw: Gateways, match: Match) -> Tuple[Decision, Optional[SettlementOutcome], List[Notice]]:
    """매치 행 잠금 상태에서 판정 (in_progress 이고 열린 분쟁이 없을 때만)"""
    if match.status != MatchStatus.IN_PROGRESS or has_open_dispute(db, match.id):
        return Decision(DecisionKind.WAIT), None, []

    team_a = match.team_for(TeamSlot.A)
    team_b = match.team_for(TeamSlot.B)
    evidence = _evidence_by_team(db, match.id)
    row_a = evidence.get(team_a.id)
    row_b = evidence.get(team_b.id)

    decision = decide(
        row_a.verification_status if row_a else None,
        row_b.verification_status if row_b else None
    )

    if decision.kind == DecisionKind.SETTLE:
        winner = match.team_for(decision.winner)
        outcome, notices = settle_locked(db, gw, match, SettlementRequest(
            match_id=match.id,
            winning_team_id=winner.id,
            method=ResolutionMethod.AUTOMATIC,
            requested_by=Actor.system()
        ))
        return decision, outcome, notices

    if decision.kind == DecisionKind.DISPUTE:
        row_a.verification_status = VerificationStatus.DISPUTED
        row_b.verification_status = VerificationStatus.DISPUTED
        dispute = Dispute(
            match_id=match.id,
            reported_by=match.created_by,
            reported_team_id=team_a.id,
            reason=AUTO_DISPUTE_REASON,
            status=DisputeStatus.PENDING
        )
        db.add(dispute)
        db.flush()

        logger.warning(f"양 팀 승리 주장, 자동 분쟁 등록: match={match.id} dispute={dispute.id}")
        notices = notices_for(
            _captain_ids(match),
            f"Dispute Filed: {match.game_name}",
            "Both teams submitted a victory screenshot. Results will be reviewed by admins.",
            {"type": "match_dispute_filed", "match_id": match.id, "route": f"matches/{match.id}"}
        )
        return decision, None, notices

    return decision, None, []

def submit_evidence(db: Session, gw: Gateways, actor: Actor, match_id: str, team_id: str, evidence_ref: str) -> dict:
    """
    팀 결과 스크린샷 제출 (주장 / 관리자)
    같은 팀의 재제출은 기존 증빙을 덮어쓴다.
    """
    if not evidence_ref or not evidence_ref.strip():
        raise ValidationError("Evidence reference is required")
    validate_evidence_ref(evidence_ref, settings.evidence_dir)

    match = get_match(db, match_id)
    if match.status != MatchStatus.IN_PROGRESS:
        raise PreconditionFailed(
            f"Results can only be submitted for matches in progress (status: {match.status.value})"
        )
    team = match.team_by_id(team_id)
    if team is None:
        raise NotFound(f"Team {team_id} not found in match {match_id}")
    captain = team.captain
    if not actor.is_admin and (captain is None or captain.user_id != actor.user_id):
        raise NotAuthorized("Only the team captain can submit results")

    # 분류기 호출 전에 읽기 트랜잭션 종료
    db.rollback()
    raw_text, verdict = classify_evidence(gw.classifier, gw.verdicts, evidence_ref)

    with transaction(db):
        match = get_match_for_update(db, match_id)
        if match.status != MatchStatus.IN_PROGRESS:
            raise PreconditionFailed(
                f"Results can only be submitted for matches in progress (status: {match.status.value})"
            )

        evidence = db.query(Evidence)\
            .filter(Evidence.match_id == match.id, Evidence.team_id == team_id)\
            .first()
        if evidence is None:
            evidence = Evidence(match_id=match.id, team_id=team_id)
            db.add(evidence)
        evidence.submitted_by = actor.user_id
        evidence.evidence_ref = evidence_ref
        evidence.raw_text = raw_text
        evidence.verification_status = verdict
        db.flush()
        evidence_id = evidence.id

        decision, outcome, notices = _resolve_locked(db, gw, match)
        match_status = match.status
        final_status = evidence.verification_status

    logger.info(
        f"결과 제출: match={match_id} team={team_id} by {actor.user_id} → "
        f"{verdict.value}, 판정 {decision.kind.value}"
    )
    dispatch(gw.notifier, notices)

    return {
        "evidence_id": evidence_id,
        "match_id": match_id,
        "team_id": team_id,
        "verification_status": final_status,
        "decision": decision.kind,
        "match_status": match_status,
        "settlement": outcome,
    }

def attempt_resolution(db: Session, gw: Gateways, match_id: str) -> Decision:
    """현재 증빙으로 판정 재시도 (중복 호출해도 안전)"""
    with transaction(db):
        match = get_match_for_update(db, match_id)
        decision, _, notices = _resolve_locked(db, gw, match)

    dispatch(gw.notifier, notices)
    return decision

def mark_admin_reviewed(db: Session, match_id: str, notes: str = None) -> int:
    """관리자 판정 시 매치의 모든 증빙을 admin_reviewed 로 변경"""
    rows = db.query(Evidence).filter(Evidence.match_id == match_id).all()
    for row in rows:
        row.verification_status = VerificationStatus.ADMIN_REVIEWED
        if notes:
            row.admin_notes = notes
    db.flush()
    return len(rows)
