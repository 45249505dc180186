"""HTTP surface: routing, auth, error rendering, end-to-end match flow."""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.core.security import create_access_token, ADMIN_ROLE
from app.database import get_db
from app.api.deps import get_engine_gateways


@pytest.fixture
def client(db_session, gateways):
    from main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_engine_gateways] = lambda: gateways

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def auth(user_id: str, admin: bool = False) -> dict:
    claims = {"sub": user_id}
    if admin:
        claims["role"] = ADMIN_ROLE
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


def test_requests_without_valid_token_are_rejected(client):
    assert client.get("/api/v1/users/me").status_code in (401, 403)
    response = client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_create_match_and_join(client, make_user):
    creator, mate, rival = make_user(), make_user(), make_user()

    response = client.post(
        "/api/v1/matches",
        json={
            "match_type": "public",
            "game_name": "Valor Clash",
            "entry_fee": "25.00",
            "team_size": 1,
            "team_name": "Squad Alpha",
        },
        headers=auth(creator.id)
    )
    assert response.status_code == 201
    body = response.json()
    match_id = body["id"]
    assert body["status"] == "waiting"
    assert Decimal(body["prize_pool"]) == Decimal("50")
    assert [t["slot_state"] for t in body["teams"]] == ["claimed", "open"]

    listed = client.get("/api/v1/matches/public").json()
    assert [m["id"] for m in listed["matches"]] == [match_id]

    response = client.post(
        f"/api/v1/matches/{match_id}/teams",
        json={"team_name": "Squad Bravo", "members": [rival.id]},
        headers=auth(rival.id)
    )
    assert response.status_code == 201
    assert response.json()["slot"] == "team_b"

    response = client.post(
        f"/api/v1/matches/{match_id}/teams",
        json={"team_name": "Squad Charlie", "members": [mate.id]},
        headers=auth(mate.id)
    )
    assert response.status_code == 409
    assert response.json()["code"] == "no_slot_available"


def test_validation_errors_render_code(client, make_user):
    creator = make_user()
    response = client.post(
        "/api/v1/matches",
        json={"game_name": "Valor Clash", "entry_fee": "10", "team_size": 3},
        headers=auth(creator.id)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"

    response = client.get("/api/v1/matches/missing", headers=auth(creator.id))
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_insufficient_funds_is_payment_required(client, arena):
    match, players = arena.create(team_size=1, entry_fee="50.00", wallet="40.00")
    team_id = match.team_for("team_a").id

    response = client.post(
        f"/api/v1/matches/{match.id}/payments",
        json={"team_id": team_id},
        headers=auth(players[0].id)
    )
    assert response.status_code == 402
    assert response.json()["code"] == "insufficient_funds"


def test_full_match_flow_over_http(client, make_user, sink):
    alice, bob = make_user(wallet="100"), make_user(wallet="100")

    match_id = client.post(
        "/api/v1/matches",
        json={"game_name": "Valor Clash", "entry_fee": "50", "team_size": 1, "team_name": "Alpha"},
        headers=auth(alice.id)
    ).json()["id"]
    team_b_id = client.post(
        f"/api/v1/matches/{match_id}/teams",
        json={"team_name": "Bravo", "members": [bob.id]},
        headers=auth(bob.id)
    ).json()["id"]
    match = client.get(f"/api/v1/matches/{match_id}", headers=auth(alice.id)).json()
    team_a_id = next(t["id"] for t in match["teams"] if t["slot"] == "team_a")

    paid = client.post(f"/api/v1/matches/{match_id}/payments", json={"team_id": team_a_id}, headers=auth(alice.id))
    assert paid.status_code == 200
    assert paid.json()["match_status"] == "team_a_ready"

    again = client.post(f"/api/v1/matches/{match_id}/payments", json={"team_id": team_a_id}, headers=auth(alice.id))
    assert again.status_code == 409
    assert again.json()["code"] == "already_paid"

    paid = client.post(f"/api/v1/matches/{match_id}/payments", json={"team_id": team_b_id}, headers=auth(bob.id))
    assert paid.json()["match_status"] == "confirmed"

    readiness = client.get(f"/api/v1/matches/{match_id}/readiness", headers=auth(alice.id)).json()
    assert readiness["can_be_confirmed"] is True

    room = client.put(
        f"/api/v1/matches/{match_id}/room",
        json={"room_id": "ROOM-7", "room_credential": "pw"},
        headers=auth(alice.id)
    )
    assert room.status_code == 200
    assert room.json()["room_id"] == "ROOM-7"

    started = client.post(f"/api/v1/matches/{match_id}/start", headers=auth(alice.id))
    assert started.json()["status"] == "in_progress"

    loss = client.post(
        f"/api/v1/matches/{match_id}/evidence",
        json={"team_id": team_b_id, "evidence_ref": "loss.png"},
        headers=auth(bob.id)
    ).json()
    assert loss["decision"] == "wait"

    win = client.post(
        f"/api/v1/matches/{match_id}/evidence",
        json={"team_id": team_a_id, "evidence_ref": "win.png"},
        headers=auth(alice.id)
    ).json()
    assert win["decision"] == "settle"
    assert win["match_status"] == "completed"
    assert win["settlement"]["method"] == "automatic"

    me = client.get("/api/v1/users/me", headers=auth(alice.id)).json()
    assert Decimal(me["wallet"]) == Decimal("150")
    assert me["total_wins"] == 1

    history = client.get("/api/v1/users/me/matches", headers=auth(alice.id)).json()
    assert history[0]["won"] is True
    assert Decimal(history[0]["winnings"]) == Decimal("100")

    ledger = client.get("/api/v1/users/me/ledger", headers=auth(alice.id)).json()
    assert sorted(entry["entry_type"] for entry in ledger) == ["entry_fee", "prize"]


def test_room_details_hidden_from_outsiders(client, arena, make_user):
    match, _, _ = arena.in_progress(team_size=1)
    outsider = make_user()

    hidden = client.get(f"/api/v1/matches/{match.id}", headers=auth(outsider.id)).json()
    assert hidden["room_id"] is None
    assert hidden["room_credential"] is None

    shown = client.get(f"/api/v1/matches/{match.id}", headers=auth(match.created_by)).json()
    assert shown["room_credential"] == "hunter2"


def test_admin_routes_require_admin_role(client, make_user):
    user = make_user()
    assert client.get("/api/v1/admin/disputes", headers=auth(user.id)).status_code == 403

    response = client.put("/api/v1/admin/margin", json={"margin": "15"}, headers=auth(user.id, admin=True))
    assert response.status_code == 200
    assert Decimal(response.json()["margin"]) == Decimal("15")

    current = client.get("/api/v1/admin/margin", headers=auth(user.id, admin=True)).json()
    assert Decimal(current["margin"]) == Decimal("15")


def test_admin_dispute_resolution_over_http(client, arena, make_user):
    match, team_a_players, team_b_players = arena.in_progress(team_size=1)
    team_b_id = match.team_for("team_b").id
    admin = make_user()

    filed = client.post(
        f"/api/v1/matches/{match.id}/disputes",
        json={"reported_team_id": match.team_for("team_a").id, "reason": "Stream sniping"},
        headers=auth(team_b_players[0].id)
    )
    assert filed.status_code == 201
    dispute_id = filed.json()["id"]

    listed = client.get("/api/v1/admin/disputes?status=pending", headers=auth(admin.id, admin=True)).json()
    assert [d["id"] for d in listed] == [dispute_id]

    resolved = client.post(
        f"/api/v1/admin/disputes/{dispute_id}/resolve",
        json={"outcome": "resolved", "winning_team_id": team_b_id, "admin_notes": "Verified by replay"},
        headers=auth(admin.id, admin=True)
    )
    assert resolved.status_code == 200
    body = resolved.json()
    assert body["dispute"]["status"] == "resolved"
    assert body["settlement"]["method"] == "admin_decision"
    assert body["settlement"]["winning_team_id"] == team_b_id


def test_cancel_over_http_reports_refunds(client, arena):
    match, players = arena.create(team_size=1)
    arena.pay_all(match, match.team_for("team_a"), players)

    response = client.post(f"/api/v1/matches/{match.id}/cancel", json={"reason": "rain"}, headers=auth(players[0].id))
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cancelled"
    assert list(body["refunds"]) == [players[0].id]


def test_admin_oversight_views_over_http(client, arena, make_user):
    match, team_a_players, team_b_players = arena.in_progress(team_size=1)
    waiting, _ = arena.create(team_size=1)
    admin = make_user()
    headers = auth(admin.id, admin=True)

    filed = client.post(
        f"/api/v1/matches/{match.id}/disputes",
        json={"reported_team_id": match.team_for("team_a").id, "reason": "Stream sniping"},
        headers=auth(team_b_players[0].id)
    )
    dispute_id = filed.json()["id"]

    listed = client.get("/api/v1/admin/matches?status=in_progress&limit=5", headers=headers)
    assert listed.status_code == 200
    body = listed.json()
    assert body["total"] == 1
    assert body["matches"][0]["id"] == match.id
    assert body["matches"][0]["team_b_name"] == "Squad Bravo"

    everything = client.get("/api/v1/admin/matches?match_type=public", headers=headers).json()
    assert [m["id"] for m in everything["matches"]] == [waiting.id, match.id]

    detail = client.get(f"/api/v1/admin/matches/{match.id}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["room_credential"] == "hunter2"
    assert [d["id"] for d in detail.json()["disputes"]] == [dispute_id]
    assert client.get("/api/v1/admin/matches/missing", headers=headers).status_code == 404

    disputed = client.get("/api/v1/admin/disputed-matches", headers=headers).json()
    assert disputed["total"] == 1
    assert disputed["disputes"][0]["game_name"] == "Valor Clash"
    assert disputed["disputes"][0]["match_status"] == "in_progress"

    stats = client.get("/api/v1/admin/stats", headers=headers).json()
    assert stats["match_stats"]["by_status"]["waiting"] == 1
    assert stats["match_stats"]["active"] == 2
    assert stats["dispute_stats"]["open"] == 1
    assert Decimal(stats["total_prize_paid"]) == Decimal("0")
    assert len(stats["recent_matches"]) == 2


@pytest.mark.parametrize("path", [
    "/api/v1/admin/matches",
    "/api/v1/admin/matches/some-id",
    "/api/v1/admin/disputed-matches",
    "/api/v1/admin/stats",
])
def test_oversight_routes_forbidden_for_players(client, make_user, path):
    player = make_user()
    assert client.get(path, headers=auth(player.id)).status_code == 403
