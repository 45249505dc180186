# app/services/settlement_service.py
"""
상금 정산

자동 판정과 관리자 판정이 같은 settle() 경로를 쓴다.
이미 completed 인 매치는 다시 지급하지 않는다.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.context import Actor
from app.core.exceptions import Conflict, NotAuthorized, NotFound, PreconditionFailed
from app.core.logger import logger
from app.database import transaction
from app.models.ledger import LedgerEntryType
from app.models.match import Match, MatchStatus
from app.models.match_result import MatchResult, ResolutionMethod
from app.models.team import TeamMember
from app.services.gateways import Gateways
from app.services.ledger_service import CENT, to_money
from app.services.match_state import get_match_for_update, transition, now_utc
from app.services.notification_service import Notice, notices_for, dispatch

@dataclass
class SettlementRequest:
    match_id: str
    winning_team_id: str
    method: ResolutionMethod = ResolutionMethod.AUTOMATIC
    requested_by: Actor = field(default_factory=Actor.system)

@dataclass
class SettlementOutcome:
    match_id: str
    winning_team_id: str
    prize_amount: Decimal
    method: ResolutionMethod
    already_settled: bool = False
    payouts: Dict[str, Decimal] = field(default_factory=dict)

def split_prize(prize_pool, members: List[TeamMember]) -> Dict[str, Decimal]:
    """
    상금 분배
    - 1인 몫 = 상금 / 인원 (0.01 단위 내림)
    - 나머지는 주장에게 (주장이 없으면 첫 번째 팀원)
    """
    if not members:
        return {}

    pool = to_money(prize_pool)
    share = (pool / len(members)).quantize(CENT, rounding=ROUND_DOWN)
    remainder = pool - share * len(members)

    payouts = {member.user_id: share for member in members}
    captain = next((m for m in members if m.is_captain), members[0])
    payouts[captain.user_id] += remainder
    return payouts

def _upsert_result(db: Session, match: Match,
                   method: ResolutionMethod = ResolutionMethod.AUTOMATIC) -> MatchResult:
    result = db.query(MatchResult).filter(MatchResult.match_id == match.id).first()
    if result is None:
        result = MatchResult(
            match_id=match.id,
            winning_team_id=match.winning_team_id,
            prize_awarded=match.status == MatchStatus.COMPLETED,
            prize_amount=match.prize_pool,
            resolution_method=method,
            resolved_at=match.end_time
        )
        db.add(result)
    return result

def settle_locked(db: Session, gw: Gateways, match: Match,
                  request: SettlementRequest) -> Tuple[SettlementOutcome, List[Notice]]:
    """
    매치 행 잠금 상태에서 정산 (호출자 트랜잭션 안에서 실행)
    알림 목록은 commit 이후 호출자가 보낸다.
    """
    if match.status == MatchStatus.COMPLETED:
        if match.winning_team_id != request.winning_team_id:
            raise Conflict("Match has already been settled with a different winner")

        # 지급 없이 판정 방식만 갱신 (자동 재시도는 관리자 판정을 덮어쓰지 않음)
        result = _upsert_result(db, match)
        if request.method == ResolutionMethod.ADMIN_DECISION:
            result.resolution_method = ResolutionMethod.ADMIN_DECISION
            result.resolved_at = now_utc()
        db.flush()

        logger.info(f"이미 정산된 매치: {match.id}, 지급 생략 ({result.resolution_method.value})")
        outcome = SettlementOutcome(
            match_id=match.id,
            winning_team_id=match.winning_team_id,
            prize_amount=to_money(match.prize_pool),
            method=result.resolution_method,
            already_settled=True
        )
        return outcome, []

    if match.status != MatchStatus.IN_PROGRESS:
        raise PreconditionFailed(
            f"Only matches in progress can be settled (status: {match.status.value})"
        )

    winner = match.team_by_id(request.winning_team_id)
    if winner is None:
        raise NotFound(f"Team {request.winning_team_id} not found in match {match.id}")

    change = transition(match, MatchStatus.COMPLETED, actor_id=request.requested_by.user_id)
    match.winning_team_id = winner.id
    match.end_time = now_utc()

    result = _upsert_result(db, match, request.method)
    result.winning_team_id = winner.id
    result.prize_awarded = True
    result.prize_amount = match.prize_pool
    result.resolution_method = request.method
    result.resolved_at = match.end_time

    payouts = split_prize(match.prize_pool, winner.members)
    for member in winner.members:
        gw.ledger.credit(
            db,
            member.user_id,
            payouts[member.user_id],
            key=f"prize:{match.id}:{member.user_id}",
            entry_type=LedgerEntryType.PRIZE,
            match_id=match.id
        )
        member.user.total_wins = (member.user.total_wins or 0) + 1
    db.flush()

    logger.info(
        f"정산 완료: match={match.id} winner={winner.id} '{winner.display_name}' "
        f"상금 {match.prize_pool} ({request.method.value}, {len(payouts)}명)"
    )

    if request.method == ResolutionMethod.ADMIN_DECISION:
        title = f"Match Result Decided: {match.game_name}"
        body = (
            f"Team \"{winner.display_name}\" has been declared the winner by admin decision "
            f"and received {match.prize_pool} prize money."
        )
    else:
        title = f"Match Results: {match.game_name}"
        body = f"Team \"{winner.display_name}\" has won the match and received {match.prize_pool} prize money!"

    notices = notices_for(
        change.participant_ids,
        title,
        body,
        {
            "type": "match_completed",
            "match_id": match.id,
            "route": f"matches/{match.id}",
            "winner_team_id": winner.id,
        }
    )
    outcome = SettlementOutcome(
        match_id=match.id,
        winning_team_id=winner.id,
        prize_amount=to_money(match.prize_pool),
        method=request.method,
        payouts=payouts
    )
    return outcome, notices

def settle(db: Session, gw: Gateways, request: SettlementRequest) -> SettlementOutcome:
    """정산 단일 진입점"""
    if not request.requested_by.can_arbitrate:
        raise NotAuthorized("Only admins can settle a match")

    with transaction(db):
        match = get_match_for_update(db, request.match_id)
        outcome, notices = settle_locked(db, gw, match, request)

    dispatch(gw.notifier, notices)
    return outcome

def get_result(db: Session, match_id: str) -> Optional[MatchResult]:
    return db.query(MatchResult).filter(MatchResult.match_id == match_id).first()
