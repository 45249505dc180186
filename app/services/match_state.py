# app/services/match_state.py
"""
매치 상태 머신

Match.status 를 바꾸는 유일한 모듈.

    waiting → team_a_ready | team_b_ready → confirmed → in_progress → completed
    waiting / team_a_ready / team_b_ready → cancelled

상태 변경은 호출자의 트랜잭션 안에서 일어나고, 알림은 commit 이후
announce()로 보낸다.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.context import Actor
from app.core.exceptions import NotAuthorized, NotFound, PreconditionFailed, ValidationError, Conflict
from app.core.logger import logger
from app.database import transaction
from app.models.ledger import LedgerEntryType
from app.models.match import Match, MatchStatus, ESCROW_STATUSES, TERMINAL_STATUSES
from app.models.team import Team, TeamMember, TeamSlot, PaymentStatus
from app.services.gateways import Gateways
from app.services.notification_service import Notice, notices_for, dispatch

TRANSITIONS = {
    MatchStatus.WAITING: {
        MatchStatus.TEAM_A_READY,
        MatchStatus.TEAM_B_READY,
        MatchStatus.CONFIRMED,
        MatchStatus.CANCELLED,
    },
    MatchStatus.TEAM_A_READY: {MatchStatus.CONFIRMED, MatchStatus.CANCELLED},
    MatchStatus.TEAM_B_READY: {MatchStatus.CONFIRMED, MatchStatus.CANCELLED},
    MatchStatus.CONFIRMED: {MatchStatus.IN_PROGRESS},
    MatchStatus.IN_PROGRESS: {MatchStatus.COMPLETED},
    MatchStatus.COMPLETED: set(),
    MatchStatus.CANCELLED: set(),
}

SLOT_READY_STATUS = {
    TeamSlot.A: MatchStatus.TEAM_A_READY,
    TeamSlot.B: MatchStatus.TEAM_B_READY,
}

@dataclass
class Transition:
    """커밋된 상태 변경 1건 (알림용 스냅샷)"""
    match_id: str
    game_name: str
    previous: MatchStatus
    current: MatchStatus
    participant_ids: List[str]
    actor_id: Optional[str] = None
    team_name: Optional[str] = None
    refunds: Dict[str, str] = field(default_factory=dict)  # user_id → 환불 금액

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def get_match(db: Session, match_id: str) -> Match:
    """매치 조회 (없으면 NotFound)"""
    match = db.query(Match).filter(Match.id == match_id).first()
    if not match:
        raise NotFound(f"Match {match_id} not found")
    return match

def get_match_for_update(db: Session, match_id: str) -> Match:
    """매치 행 잠금 후 최신 값으로 조회"""
    match = db.query(Match)\
        .filter(Match.id == match_id)\
        .with_for_update()\
        .populate_existing()\
        .first()
    if not match:
        raise NotFound(f"Match {match_id} not found")
    return match

def can_transition(current: MatchStatus, target: MatchStatus) -> bool:
    return target in TRANSITIONS.get(current, set())

def transition(match: Match, target: MatchStatus, actor_id: str = None) -> Transition:
    """상태 변경 (허용되지 않은 전이는 PreconditionFailed)"""
    previous = match.status
    if not can_transition(previous, target):
        raise PreconditionFailed(
            f"Match cannot move from {previous.value} to {target.value}"
        )

    match.status = target
    logger.info(f"매치 상태 변경: {match.id} {previous.value} → {target.value}")

    return Transition(
        match_id=match.id,
        game_name=match.game_name,
        previous=previous,
        current=target,
        participant_ids=match.participant_ids,
        actor_id=actor_id
    )

def paid_member_count(db: Session, match_id: str) -> int:
    """매치 전체 납부 완료 인원"""
    return db.query(func.count(TeamMember.id))\
        .filter(
            TeamMember.match_id == match_id,
            TeamMember.payment_status == PaymentStatus.COMPLETED
        )\
        .scalar()

def on_team_ready(db: Session, match: Match, team: Team) -> Optional[Transition]:
    """
    한 팀이 납부 정족수를 채웠을 때 호출 (매치 행 잠금 상태)
    - 상대 팀도 준비 완료 + 전체 납부 인원 == 팀 인원 × 2 → confirmed
    - 아니면 방금 준비된 팀의 *_ready 상태
    """
    other = match.other_team(team)
    total_paid = paid_member_count(db, match.id)

    if other is not None and other.is_ready and total_paid == match.team_size * 2:
        target = MatchStatus.CONFIRMED
    else:
        target = SLOT_READY_STATUS[team.slot]

    if match.status == target:
        return None

    result = transition(match, target)
    result.team_name = team.display_name
    return result

def set_room_details(db: Session, gw: Gateways, actor: Actor, match_id: str,
                     room_id: str, room_credential: str) -> Match:
    """게임 방 정보 설정 (생성자 / 관리자, confirmed 상태에서 1회)"""
    if not room_id or not room_id.strip() or not room_credential or not room_credential.strip():
        raise ValidationError("Room ID and credential are required")

    with transaction(db):
        match = get_match_for_update(db, match_id)

        if match.created_by != actor.user_id and not actor.is_admin:
            raise NotAuthorized("Only the match creator can set room details")
        if match.status != MatchStatus.CONFIRMED:
            raise PreconditionFailed("Room details can only be set for confirmed matches")
        if match.room_id or match.room_credential:
            raise Conflict("Room details have already been set for this match")

        match.room_id = room_id.strip()
        match.room_credential = room_credential.strip()
        participants = match.participant_ids
        game_name = match.game_name

    logger.info(f"방 정보 설정: match={match_id} by {actor.user_id}")
    dispatch(gw.notifier, notices_for(
        participants,
        f"Room Details Available: {game_name}",
        "Room ID and password are now available for your match. Check match details to join.",
        {"type": "match_room_details", "match_id": match_id, "route": f"matches/{match_id}"}
    ))
    return match

def start_match(db: Session, gw: Gateways, actor: Actor, match_id: str) -> Match:
    """confirmed → in_progress (생성 팀 주장만, 방 정보 필수)"""
    with transaction(db):
        match = get_match_for_update(db, match_id)

        if match.status != MatchStatus.CONFIRMED:
            raise PreconditionFailed(
                f"Match is not in confirmed status (current: {match.status.value})"
            )

        creating_team = match.team_for(TeamSlot.A)
        captain = creating_team.captain if creating_team else None
        if captain is None or captain.user_id != actor.user_id:
            raise NotAuthorized("Only the captain of the creating team can start the match")

        if not match.room_id or not match.room_credential:
            raise PreconditionFailed("Room details must be set before starting the match")

        match.start_time = now_utc()
        change = transition(match, MatchStatus.IN_PROGRESS, actor_id=actor.user_id)

    announce(gw, change)
    return match

def cancel_match(db: Session, gw: Gateways, actor: Actor, match_id: str, reason: str = None) -> Transition:
    """
    매치 취소 (생성자 / 관리자)
    납부 완료 인원 전원 환불과 상태 변경을 하나의 트랜잭션으로 처리
    """
    with transaction(db):
        match = get_match_for_update(db, match_id)

        if match.created_by != actor.user_id and not actor.can_arbitrate:
            raise NotAuthorized("Only the match creator or an admin can cancel the match")
        if match.status in TERMINAL_STATUSES:
            raise PreconditionFailed(f"Match is already {match.status.value}")
        if match.status not in ESCROW_STATUSES:
            raise PreconditionFailed(
                f"Match cannot be cancelled in its current status ({match.status.value})"
            )

        refunds = {}
        for member in match.members:
            if not member.has_paid:
                continue
            gw.ledger.credit(
                db,
                member.user_id,
                member.payment_amount,
                key=f"refund:{member.id}",
                entry_type=LedgerEntryType.REFUND,
                match_id=match.id
            )
            member.user.total_games_played = max((member.user.total_games_played or 0) - 1, 0)
            refunds[member.user_id] = str(member.payment_amount)

        change = transition(match, MatchStatus.CANCELLED, actor_id=actor.user_id)
        change.refunds = refunds

    logger.info(
        f"매치 취소: {match_id} by {actor.user_id}, 환불 {len(refunds)}명"
        + (f", 사유: {reason}" if reason else "")
    )
    announce(gw, change)
    return change

def build_notices(change: Transition) -> List[Notice]:
    """상태 변경별 알림 문구"""
    payload = {
        "type": f"match_{change.current.value}",
        "match_id": change.match_id,
        "route": f"matches/{change.match_id}",
    }
    game = change.game_name

    if change.current == MatchStatus.CANCELLED:
        notices = []
        for user_id in change.participant_ids:
            amount = change.refunds.get(user_id)
            body = (
                f"The match has been cancelled. {amount} has been refunded to your wallet."
                if amount else "The match has been cancelled."
            )
            notices.append(Notice(
                user_id=user_id,
                title=f"Match Cancelled: {game}",
                body=body,
                payload={**payload, "refunded": str(bool(amount)).lower()}
            ))
        return notices

    if change.current in (MatchStatus.TEAM_A_READY, MatchStatus.TEAM_B_READY):
        title = f"Team Ready: {game}"
        body = f"Team \"{change.team_name or 'A team'}\" has completed payment. Waiting for the other team."
    elif change.current == MatchStatus.CONFIRMED:
        title = f"Match Confirmed: {game}"
        body = "Both teams have paid. Room details will be shared soon."
    elif change.current == MatchStatus.IN_PROGRESS:
        title = f"Match Started: {game}"
        body = "Your match has started. Join the game room now!"
    else:
        title = f"Match Update: {game}"
        body = f"Match status changed to {change.current.value}."

    exclude = [change.actor_id] if change.actor_id else []
    return notices_for(change.participant_ids, title, body, payload, exclude=exclude)

def announce(gw: Gateways, change: Optional[Transition]) -> int:
    """커밋된 상태 변경을 참가자 전원에게 알림"""
    if change is None:
        return 0
    return dispatch(gw.notifier, build_notices(change))
