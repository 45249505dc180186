# app/services/escrow_service.py
"""
참가비 수납

차감과 납부 상태 변경은 한 트랜잭션에서 함께 커밋된다.
잠금 순서: 매치 → 팀 → 유저(원장)
"""
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.context import Actor
from app.core.exceptions import (
    NotAuthorized, NotFound, NotATeamMember, AlreadyPaid, PreconditionFailed
)
from app.core.logger import logger
from app.database import transaction
from app.models.ledger import LedgerEntryType
from app.models.match import ESCROW_STATUSES
from app.models.team import Team, TeamMember, PaymentStatus, SlotState
from app.services.gateways import Gateways
from app.services.match_state import get_match, get_match_for_update, on_team_ready, announce, paid_member_count

def pay_entry_fee(db: Session, gw: Gateways, actor: Actor, match_id: str, team_id: str, user_id: str) -> dict:
    """
    팀원 1명의 참가비 납부
    팀 전원이 납부하면 팀 준비 완료 → 상태 머신에 알림
    """
    if actor.user_id != user_id and not actor.is_admin:
        raise NotAuthorized("You can only pay your own entry fee")

    with transaction(db):
        match = get_match_for_update(db, match_id)

        team = db.query(Team)\
            .filter(Team.id == team_id, Team.match_id == match.id)\
            .with_for_update()\
            .populate_existing()\
            .first()
        if not team:
            raise NotFound(f"Team {team_id} not found in match {match_id}")

        member = next((m for m in team.members if m.user_id == user_id), None)
        if member is None:
            raise NotATeamMember("You are not a member of this team")
        if member.payment_status == PaymentStatus.COMPLETED:
            raise AlreadyPaid("Entry fee already paid")
        if match.status not in ESCROW_STATUSES:
            raise PreconditionFailed(
                f"Match is not collecting entry fees (status: {match.status.value})"
            )

        gw.ledger.debit(
            db,
            user_id,
            member.payment_amount,
            key=f"entry_fee:{member.id}",
            entry_type=LedgerEntryType.ENTRY_FEE,
            match_id=match.id
        )
        member.payment_status = PaymentStatus.COMPLETED
        member.user.total_games_played = (member.user.total_games_played or 0) + 1
        db.flush()

        paid = db.query(func.count(TeamMember.id))\
            .filter(TeamMember.team_id == team.id, TeamMember.payment_status == PaymentStatus.COMPLETED)\
            .scalar()
        change = None
        if paid == match.team_size and not team.is_ready:
            team.is_ready = True
            team.payment_completed = True
            db.flush()
            change = on_team_ready(db, match, team)

        result = {
            "match_id": match.id,
            "team_id": team.id,
            "user_id": user_id,
            "amount": member.payment_amount,
            "team_paid": paid,
            "team_ready": team.is_ready,
            "match_status": match.status,
        }

    logger.info(
        f"참가비 납부: match={match_id} team={team_id} user={user_id} "
        f"(팀 납부 {result['team_paid']}명, 상태 {result['match_status'].value})"
    )
    announce(gw, change)
    return result

def readiness(db: Session, match_id: str) -> dict:
    """팀별 인원 / 납부 현황과 확정 가능 여부"""
    match = get_match(db, match_id)

    teams = []
    for team in match.teams:
        teams.append({
            "team_id": team.id,
            "slot": team.slot,
            "display_name": team.display_name,
            "slot_state": team.slot_state,
            "players": len(team.members),
            "paid": team.paid_count,
            "is_ready": bool(team.is_ready),
        })

    required = match.team_size * 2
    total_players = sum(t["players"] for t in teams)
    total_paid = paid_member_count(db, match.id)
    both_ready = len(teams) == 2 and all(t["is_ready"] for t in teams)

    if any(t["slot_state"] == SlotState.OPEN for t in teams):
        reason = "Waiting for both team slots to be claimed"
    elif total_players < required:
        reason = f"Waiting for players ({total_players}/{required})"
    elif total_paid < required:
        reason = f"Waiting for payments ({total_paid}/{required})"
    else:
        reason = "All players have paid"

    return {
        "match_id": match.id,
        "status": match.status,
        "team_size": match.team_size,
        "teams": teams,
        "total_players": total_players,
        "total_paid": total_paid,
        "required_players": required,
        "can_be_confirmed": both_ready and total_paid == required,
        "reason": reason,
    }
