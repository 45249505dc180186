"""Team formation: match creation, slot claiming, membership rules."""
from decimal import Decimal

import pytest

from app.config import settings
from app.core.context import Actor
from app.core.exceptions import (
    ValidationError, Conflict, NoSlotAvailable, PreconditionFailed, NotAuthorized, NotFound
)
from app.models import Match, MatchType, MatchStatus, TeamSlot, SlotState, PaymentStatus
from app.services import formation_service, margin_service, match_state


def test_create_match_claims_slot_a_and_leaves_slot_b_open(arena):
    match, players = arena.create(team_size=4, entry_fee="50.00")

    assert match.status == MatchStatus.WAITING
    assert [team.slot for team in match.teams] == [TeamSlot.A, TeamSlot.B]

    team_a = match.team_for(TeamSlot.A)
    team_b = match.team_for(TeamSlot.B)
    assert team_a.slot_state == SlotState.CLAIMED
    assert team_a.display_name == "Squad Alpha"
    assert team_b.slot_state == SlotState.OPEN

    assert len(team_a.members) == 4
    assert team_a.captain.user_id == players[0].id
    assert all(m.payment_status == PaymentStatus.PENDING for m in team_a.members)
    assert all(m.payment_amount == Decimal("50.00") for m in team_a.members)


def test_create_match_without_team_leaves_both_slots_open(db_session, make_user):
    creator = make_user()
    match = formation_service.create_match(
        db_session, Actor(user_id=creator.id),
        match_type=MatchType.PRIVATE, game_name="Valor Clash", entry_fee="25", team_size=1
    )

    assert all(team.is_open for team in match.teams)
    assert match.members == []
    assert match.prize_pool == Decimal("50")


def test_create_match_requires_team_name_for_members_or_captain(db_session, make_user):
    creator, teammate = make_user(), make_user()
    actor = Actor(user_id=creator.id)

    with pytest.raises(ValidationError, match="team_name"):
        formation_service.create_match(
            db_session, actor, MatchType.PUBLIC, "Valor Clash", "10", 1, members=[creator.id]
        )
    with pytest.raises(ValidationError, match="team_name"):
        formation_service.create_match(
            db_session, actor, MatchType.PUBLIC, "Valor Clash", "10", 4, captain_id=teammate.id
        )
    assert db_session.query(Match).count() == 0


def test_prize_pool_uses_margin_at_creation_time(arena, db_session):
    margin_service.update_margin(db_session, Actor.system(), 10)
    match, _ = arena.create(team_size=4, entry_fee="50.00")
    assert match.prize_pool == Decimal("360")

    # 이후 수수료 변경은 기존 매치에 영향 없음
    margin_service.update_margin(db_session, Actor.system(), 20)
    assert match_state.get_match(db_session, match.id).prize_pool == Decimal("360")


@pytest.mark.parametrize("team_size", [0, 2, 5, 10])
def test_create_match_rejects_unsupported_team_size(db_session, make_user, team_size):
    creator = make_user()
    assert team_size not in settings.allowed_team_sizes
    with pytest.raises(ValidationError):
        formation_service.create_match(
            db_session, Actor(user_id=creator.id),
            match_type=MatchType.PUBLIC, game_name="Valor Clash", entry_fee="10", team_size=team_size
        )


def test_create_match_rejects_non_positive_fee_and_blank_game(db_session, make_user):
    creator = make_user()
    actor = Actor(user_id=creator.id)
    with pytest.raises(ValidationError):
        formation_service.create_match(db_session, actor, MatchType.PUBLIC, "Valor Clash", "0", 4)
    with pytest.raises(ValidationError):
        formation_service.create_match(db_session, actor, MatchType.PUBLIC, "   ", "10", 4)


def test_join_auto_assigns_open_slot_then_rejects_third_team(arena):
    match, _ = arena.create()
    team_b, _ = arena.join(match)
    assert team_b.slot == TeamSlot.B
    assert team_b.slot_state == SlotState.CLAIMED

    with pytest.raises(NoSlotAvailable):
        arena.join(match, team_name="Squad Charlie")


def test_join_named_slot_already_claimed_is_conflict(arena):
    match, _ = arena.create()
    with pytest.raises(Conflict):
        arena.join(match, slot=TeamSlot.A)


def test_join_prefers_requested_slot_when_open(arena, db_session, make_user):
    creator = make_user()
    match = formation_service.create_match(
        db_session, Actor(user_id=creator.id), MatchType.PUBLIC, "Valor Clash", "10", 1
    )
    team, _ = arena.join(match, preferred_slot=TeamSlot.B)
    assert team.slot == TeamSlot.B

    # B 가 찼으면 A 로
    team, _ = arena.join(match, team_name="Late Team", preferred_slot=TeamSlot.B)
    assert team.slot == TeamSlot.A


def test_join_rejects_player_already_in_match(arena, db_session):
    match, team_a_players = arena.create(team_size=4)
    newcomers = arena.players(3)
    members = [u.id for u in newcomers] + [team_a_players[1].id]

    with pytest.raises(Conflict):
        formation_service.join_team(
            db_session, arena.gw, Actor(user_id=newcomers[0].id), match.id, "Squad Bravo", members
        )

    # 실패한 요청은 자리를 차지하지 않음
    assert match_state.get_match(db_session, match.id).team_for(TeamSlot.B).is_open


def test_join_validates_member_list(arena, db_session):
    match, _ = arena.create(team_size=4)
    players = arena.players(5)
    actor = Actor(user_id=players[0].id)

    with pytest.raises(ValidationError):
        formation_service.join_team(db_session, arena.gw, actor, match.id, "Too Many", [u.id for u in players])
    with pytest.raises(ValidationError):
        formation_service.join_team(
            db_session, arena.gw, actor, match.id, "Twins", [players[0].id, players[0].id]
        )
    with pytest.raises(NotFound):
        formation_service.join_team(
            db_session, arena.gw, actor, match.id, "Ghosts", [players[0].id, "missing-user"]
        )


def test_join_requires_caller_to_be_a_member(arena, db_session, admin):
    match, _ = arena.create(team_size=1)
    outsider, player = arena.players(2)

    with pytest.raises(NotAuthorized):
        formation_service.join_team(
            db_session, arena.gw, Actor(user_id=outsider.id), match.id, "Solo", [player.id]
        )

    team = formation_service.join_team(db_session, arena.gw, admin, match.id, "Solo", [player.id])
    assert team.captain.user_id == player.id


def test_captain_defaults_to_first_member_or_named_captain(arena):
    match, _ = arena.create(team_size=4)
    players = arena.players(4)
    team = formation_service.join_team(
        arena.db, arena.gw, Actor(user_id=players[0].id), match.id,
        "Squad Bravo", [u.id for u in players], captain_id=players[2].id
    )

    captains = [m for m in team.members if m.is_captain]
    assert len(captains) == 1
    assert captains[0].user_id == players[2].id


def test_join_notifies_existing_participants(arena, sink):
    match, team_a_players = arena.create(team_size=1)
    arena.join(match)

    assert [n["user_id"] for n in sink.sent] == [team_a_players[0].id]
    assert sink.sent[0]["title"] == "Team Joined: Valor Clash"


def test_joining_allowed_while_other_team_is_ready(arena, db_session):
    match, team_a_players = arena.create(team_size=1)
    team_a = match.team_for(TeamSlot.A)
    arena.pay_all(match, team_a, team_a_players)
    assert match_state.get_match(db_session, match.id).status == MatchStatus.TEAM_A_READY

    team_b, team_b_players = arena.join(match)
    arena.pay_all(match, team_b, team_b_players)
    assert match_state.get_match(db_session, match.id).status == MatchStatus.CONFIRMED


def test_join_rejected_once_match_confirmed(arena):
    match, _, _ = arena.in_progress(team_size=1)
    with pytest.raises(PreconditionFailed):
        arena.join(match, team_name="Late")


def test_add_team_member_fills_team_up_to_size(arena, db_session):
    match, players = arena.create(team_size=4)
    team_b, _ = arena.join(match, team_size=3)
    newcomer, extra = arena.players(2)

    member = formation_service.add_team_member(
        db_session, Actor(user_id=newcomer.id), match.id, team_b.id, newcomer.id
    )
    assert member.is_captain is False
    assert member.payment_amount == Decimal("50.00")

    with pytest.raises(ValidationError):
        formation_service.add_team_member(db_session, Actor(user_id=extra.id), match.id, team_b.id, extra.id)

    with pytest.raises(Conflict):
        formation_service.add_team_member(
            db_session, Actor(user_id=players[1].id), match.id, team_b.id, players[1].id
        )


def test_add_team_member_to_open_slot_rejected(db_session, make_user, arena):
    creator = make_user()
    match = formation_service.create_match(
        db_session, Actor(user_id=creator.id), MatchType.PUBLIC, "Valor Clash", "10", 4
    )
    team_b = match.team_for(TeamSlot.B)
    with pytest.raises(PreconditionFailed):
        formation_service.add_team_member(db_session, Actor(user_id=creator.id), match.id, team_b.id, creator.id)


def test_list_public_matches_only_returns_waiting_public(arena, db_session):
    public_match, _ = arena.create(team_size=1)
    arena.create(team_size=1, match_type=MatchType.PRIVATE)

    result = formation_service.list_public_matches(db_session)
    assert result["total"] == 1
    assert [m.id for m in result["matches"]] == [public_match.id]
    assert result["pages"] == 1


def test_share_link_for_participants_only(arena, db_session):
    match, players = arena.create(team_size=1, match_type=MatchType.PRIVATE)
    link = formation_service.share_link(db_session, Actor(user_id=players[0].id), match.id)
    assert link["link"].endswith(f"/matches/join/{match.id}")
    assert link["link"].startswith(settings.frontend_url.rstrip("/"))

    stranger = arena.players(1)[0]
    with pytest.raises(NotAuthorized):
        formation_service.share_link(db_session, Actor(user_id=stranger.id), match.id)
