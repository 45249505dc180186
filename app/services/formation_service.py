# app/services/formation_service.py
"""
팀 구성

매치 생성(빈 팀 자리 2개), 팀 자리 차지, 팀원 추가, 조회용 헬퍼.
"""
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.core.context import Actor
from app.core.exceptions import (
    ValidationError, NotFound, NotAuthorized, PreconditionFailed, Conflict, NoSlotAvailable
)
from app.core.logger import logger
from app.database import transaction
from app.models.match import Match, MatchType, MatchStatus, ESCROW_STATUSES
from app.models.match_result import MatchResult
from app.models.team import Team, TeamMember, TeamSlot, PaymentStatus
from app.models.user import User
from app.services.gateways import Gateways
from app.services.ledger_service import to_money
from app.services.margin_service import get_current_margin, compute_prize_pool
from app.services.match_state import get_match, get_match_for_update
from app.services.notification_service import notices_for, dispatch
from app.services.settlement_service import split_prize

SLOT_ORDER = (TeamSlot.A, TeamSlot.B)

def _validate_members(match: Match, members: List[str]) -> List[str]:
    if not members:
        raise ValidationError("A team needs at least one member")
    if len(set(members)) != len(members):
        raise ValidationError("Duplicate members in team")
    if len(members) > match.team_size:
        raise ValidationError(
            f"Team can have at most {match.team_size} members"
        )
    return list(members)

def _ensure_users_exist(db: Session, user_ids: List[str]) -> None:
    found = {
        row.id for row in db.query(User.id).filter(User.id.in_(user_ids)).all()
    }
    missing = [user_id for user_id in user_ids if user_id not in found]
    if missing:
        raise NotFound(f"Users not found: {', '.join(missing)}")

def _ensure_not_in_match(db: Session, match_id: str, user_ids: List[str]) -> None:
    existing = db.query(TeamMember.user_id)\
        .filter(TeamMember.match_id == match_id, TeamMember.user_id.in_(user_ids))\
        .all()
    if existing:
        taken = ", ".join(row.user_id for row in existing)
        raise Conflict(f"Users already joined this match: {taken}")

def _lock_team(db: Session, team_id: str) -> Optional[Team]:
    return db.query(Team)\
        .filter(Team.id == team_id)\
        .with_for_update()\
        .populate_existing()\
        .first()

def _pick_slot(match: Match, slot: TeamSlot = None, preferred_slot: TeamSlot = None) -> Team:
    """
    자리 선택
    - slot 지정: 그 자리만 (차지됨 → Conflict)
    - 자동: preferred_slot 이 비었으면 그 자리, 아니면 A → B 순서
    """
    if slot is not None:
        team = match.team_for(slot)
        if team is None:
            raise NotFound(f"Slot {slot.value} not found")
        if not team.is_open:
            raise Conflict(f"{slot.value} is already taken by '{team.display_name}'")
        return team

    if preferred_slot is not None:
        team = match.team_for(preferred_slot)
        if team is not None and team.is_open:
            return team

    for candidate in SLOT_ORDER:
        team = match.team_for(candidate)
        if team is not None and team.is_open:
            return team

    raise NoSlotAvailable("Both team slots are already taken")

def _claim_slot(
    db: Session,
    match: Match,
    display_name: str,
    members: List[str],
    captain_id: str = None,
    slot: TeamSlot = None,
    preferred_slot: TeamSlot = None
) -> Team:
    """매치 행 잠금 상태에서 자리 차지 + 팀원 추가"""
    display_name = (display_name or "").strip()
    if not display_name:
        raise ValidationError("Team name is required")

    members = _validate_members(match, members)
    _ensure_users_exist(db, members)
    _ensure_not_in_match(db, match.id, members)

    team = _pick_slot(match, slot, preferred_slot)
    team = _lock_team(db, team.id)
    team.claim(display_name)

    captain = captain_id if captain_id in members else members[0]
    for user_id in members:
        team.members.append(TeamMember(
            match_id=match.id,
            user_id=user_id,
            is_captain=user_id == captain,
            payment_amount=match.entry_fee,
            payment_status=PaymentStatus.PENDING
        ))
    db.flush()

    logger.info(
        f"팀 자리 차지: match={match.id} {team.slot.value} '{display_name}' "
        f"({len(members)}명, 주장 {captain})"
    )
    return team

def create_match(
    db: Session,
    actor: Actor,
    match_type: MatchType,
    game_name: str,
    entry_fee,
    team_size: int,
    team_name: str = None,
    members: List[str] = None,
    captain_id: str = None
) -> Match:
    """
    매치 생성
    - 빈 팀 자리 A, B 를 같은 트랜잭션에서 생성
    - 상금은 생성 시점 수수료율로 계산 후 고정
    - team_name 이 있으면 생성자 팀이 A 자리를 차지
    """
    game_name = (game_name or "").strip()
    if not game_name:
        raise ValidationError("Game name is required")
    if team_size not in settings.allowed_team_sizes:
        raise ValidationError(
            f"Team size must be one of {', '.join(str(s) for s in settings.allowed_team_sizes)}"
        )
    entry_fee = to_money(entry_fee)
    if entry_fee <= 0:
        raise ValidationError("Entry fee must be greater than 0")
    if (members or captain_id) and not team_name:
        raise ValidationError("team_name is required when members or a captain are given")

    with transaction(db):
        creator = db.query(User).filter(User.id == actor.user_id).first()
        if not creator:
            raise NotFound(f"User {actor.user_id} not found")

        margin = get_current_margin(db)
        match = Match(
            match_type=match_type,
            status=MatchStatus.WAITING,
            game_name=game_name,
            entry_fee=entry_fee,
            prize_pool=compute_prize_pool(entry_fee, team_size, margin),
            team_size=team_size,
            created_by=creator.id
        )
        match.teams = [Team(slot=slot) for slot in SLOT_ORDER]
        db.add(match)
        db.flush()

        if team_name:
            _claim_slot(
                db, match, team_name,
                members or [creator.id],
                captain_id=captain_id or creator.id,
                slot=TeamSlot.A
            )

    db.refresh(match)
    logger.info(
        f"매치 생성: {match.id} {match.game_name} ({match.match_type.value}, "
        f"{team_size}vs{team_size}, 참가비 {entry_fee}, 상금 {match.prize_pool}, 수수료 {margin}%)"
    )
    return match

def join_team(
    db: Session,
    gw: Gateways,
    actor: Actor,
    match_id: str,
    display_name: str,
    members: List[str],
    captain_id: str = None,
    slot: TeamSlot = None,
    preferred_slot: TeamSlot = None
) -> Team:
    """
    팀 단위 참가
    요청자는 팀원 중 한 명이거나 관리자여야 한다.
    """
    if actor.user_id not in (members or []) and not actor.is_admin:
        raise NotAuthorized("You must be one of the team members to join")

    with transaction(db):
        match = get_match_for_update(db, match_id)
        if match.status not in ESCROW_STATUSES:
            raise PreconditionFailed(
                f"Match is no longer accepting teams (status: {match.status.value})"
            )

        team = _claim_slot(db, match, display_name, members, captain_id, slot, preferred_slot)
        team_id = team.id
        team_name = team.display_name
        joined = [m.user_id for m in team.members]
        others = [user_id for user_id in match.participant_ids if user_id not in joined]
        game_name = match.game_name

    dispatch(gw.notifier, notices_for(
        others,
        f"Team Joined: {game_name}",
        f"Team \"{team_name}\" has joined your match.",
        {"type": "match_team_joined", "match_id": match_id, "route": f"matches/{match_id}"}
    ))
    return db.query(Team).filter(Team.id == team_id).first()

def add_team_member(db: Session, actor: Actor, match_id: str, team_id: str, user_id: str) -> TeamMember:
    """
    이미 차지된 팀에 팀원 1명 추가 (주장 아님)
    본인 또는 해당 팀 주장 / 관리자만 가능
    """
    with transaction(db):
        match = get_match_for_update(db, match_id)
        if match.status not in ESCROW_STATUSES:
            raise PreconditionFailed(
                f"Match is no longer accepting players (status: {match.status.value})"
            )

        team = match.team_by_id(team_id)
        if team is None:
            raise NotFound(f"Team {team_id} not found in match {match_id}")
        if team.is_open:
            raise PreconditionFailed("Team slot has not been claimed yet")

        captain = team.captain
        if actor.user_id != user_id and not actor.is_admin and \
                (captain is None or captain.user_id != actor.user_id):
            raise NotAuthorized("Only the player or the team captain can add a member")

        _ensure_users_exist(db, [user_id])
        _ensure_not_in_match(db, match.id, [user_id])

        team = _lock_team(db, team.id)
        if len(team.members) >= match.team_size:
            raise ValidationError(f"Team is already full ({match.team_size} players)")

        member = TeamMember(
            match_id=match.id,
            user_id=user_id,
            is_captain=False,
            payment_amount=match.entry_fee,
            payment_status=PaymentStatus.PENDING
        )
        team.members.append(member)
        db.flush()
        member_id = member.id

    logger.info(f"팀원 추가: match={match_id} team={team_id} user={user_id}")
    return db.query(TeamMember).filter(TeamMember.id == member_id).first()

def list_public_matches(db: Session, page: int = 1, limit: int = 20) -> dict:
    """참가 가능한 공개 매치 목록"""
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    offset = (page - 1) * limit

    query = db.query(Match)\
        .filter(Match.match_type == MatchType.PUBLIC, Match.status == MatchStatus.WAITING)

    total = query.count()
    matches = query.order_by(Match.created_at.desc())\
        .offset(offset)\
        .limit(limit)\
        .all()

    return {
        "matches": matches,
        "total": total,
        "page": page,
        "pages": (total + limit - 1) // limit
    }

def get_user_matches(db: Session, user_id: str) -> List[dict]:
    """유저 매치 기록 (승리 여부, 획득 상금 포함)"""
    memberships = db.query(TeamMember)\
        .filter(TeamMember.user_id == user_id)\
        .order_by(TeamMember.joined_at.desc())\
        .all()

    history = []
    for member in memberships:
        match = db.query(Match).filter(Match.id == member.match_id).first()
        result = db.query(MatchResult).filter(MatchResult.match_id == match.id).first()

        won = bool(match.winning_team_id) and match.winning_team_id == member.team_id
        winnings = Decimal("0.00")
        if won and result and result.prize_awarded:
            winnings = _share_of(match, member)

        history.append({
            "match_id": match.id,
            "game_name": match.game_name,
            "status": match.status,
            "team_id": member.team_id,
            "team_name": member.team.display_name,
            "is_captain": member.is_captain,
            "payment_status": member.payment_status,
            "won": won,
            "winnings": winnings,
            "created_at": match.created_at
        })
    return history

def _share_of(match: Match, member: TeamMember) -> Decimal:
    shares = split_prize(match.prize_pool, member.team.members)
    return shares.get(member.user_id, Decimal("0.00"))

def share_link(db: Session, actor: Actor, match_id: str) -> dict:
    """비공개 매치 초대 링크 (참가자 / 관리자)"""
    match = get_match(db, match_id)
    if match.membership_of(actor.user_id) is None and \
            match.created_by != actor.user_id and not actor.is_admin:
        raise NotAuthorized("Only match participants can share the invite link")

    return {
        "match_id": match.id,
        "match_type": match.match_type,
        "link": f"{settings.frontend_url.rstrip('/')}/matches/join/{match.id}"
    }
