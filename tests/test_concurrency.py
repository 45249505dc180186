"""Parallel payments and settlements against a shared file-backed database."""
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event, func
from sqlalchemy.orm import sessionmaker

from app.core.context import Actor
from app.core.exceptions import AlreadyPaid, Conflict
from app.database import Base
from app.models import (
    LedgerEntry, LedgerEntryType, Match, MatchResult, MatchStatus, MatchType, TeamSlot, User
)
from app.services import dispute_service, escrow_service, formation_service, match_state, settlement_service
from app.services.classifier_service import EvidenceClassifier, KeywordVerdictStrategy
from app.services.gateways import Gateways
from app.services.ledger_service import WalletLedger
from app.services.notification_service import NotificationSink
from app.services.settlement_service import SettlementRequest

ATTEMPTS_PER_PLAYER = 3


class LockedSink(NotificationSink):
    """Thread-safe notification recorder."""

    def __init__(self):
        self.sent = []
        self._lock = threading.Lock()

    def notify(self, user_id, title, body, payload=None):
        with self._lock:
            self.sent.append((user_id, title))


@pytest.fixture
def session_factory(tmp_path):
    """Each worker thread opens its own session on one SQLite file."""
    import app.models  # noqa: F401  모든 모델 등록

    engine = create_engine(
        f"sqlite:///{tmp_path / 'arena.db'}",
        connect_args={"check_same_thread": False, "timeout": 30}
    )

    # pysqlite 의 암묵적 BEGIN 대신 쓰기 잠금을 트랜잭션 시작 시 획득
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    yield factory

    engine.dispose()


@pytest.fixture
def engine_gateways():
    return Gateways(
        ledger=WalletLedger(),
        notifier=LockedSink(),
        classifier=EvidenceClassifier(),
        verdicts=KeywordVerdictStrategy()
    )


def _run_in_parallel(session_factory, jobs, allowed=(Conflict,)):
    """Run each job(db) in its own thread and session; return results and expected failures."""
    def run(job):
        db = session_factory()
        try:
            return job(db), None
        except allowed as e:
            return None, e
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        return list(pool.map(run, jobs))


def _setup_match(session_factory, gw, team_size=4):
    db = session_factory()
    try:
        players = [User(username=f"player_{i}", wallet=Decimal("100.00")) for i in range(team_size * 2)]
        admin = User(username="arena_admin", wallet=Decimal("0"))
        db.add_all(players + [admin])
        db.commit()

        team_a = [p.id for p in players[:team_size]]
        team_b = [p.id for p in players[team_size:]]
        match = formation_service.create_match(
            db, Actor(user_id=team_a[0]),
            match_type=MatchType.PUBLIC,
            game_name="Valor Clash",
            entry_fee="50.00",
            team_size=team_size,
            team_name="Squad Alpha",
            members=team_a,
            captain_id=team_a[0]
        )
        formation_service.join_team(
            db, gw, Actor(user_id=team_b[0]), match.id,
            display_name="Squad Bravo",
            members=team_b
        )
        match = match_state.get_match(db, match.id)
        return {
            "match_id": match.id,
            "team_ids": {
                TeamSlot.A: match.team_for(TeamSlot.A).id,
                TeamSlot.B: match.team_for(TeamSlot.B).id,
            },
            "team_a": team_a,
            "team_b": team_b,
            "admin_id": admin.id,
        }
    finally:
        db.close()


def _pay_job(gw, match_id, team_id, user_id):
    def job(db):
        return escrow_service.pay_entry_fee(db, gw, Actor(user_id=user_id), match_id, team_id, user_id)
    return job


def test_parallel_payments_and_settlements_move_money_once(session_factory, engine_gateways):
    gw = engine_gateways
    arena = _setup_match(session_factory, gw)
    match_id = arena["match_id"]

    jobs = []
    for _ in range(ATTEMPTS_PER_PLAYER):
        for slot, user_ids in ((TeamSlot.A, arena["team_a"]), (TeamSlot.B, arena["team_b"])):
            for user_id in user_ids:
                jobs.append(_pay_job(gw, match_id, arena["team_ids"][slot], user_id))

    outcomes = _run_in_parallel(session_factory, jobs, allowed=(AlreadyPaid, Conflict))
    players = arena["team_a"] + arena["team_b"]
    assert sum(1 for result, _ in outcomes if result is not None) == len(players)

    db = session_factory()
    try:
        for user_id in players:
            fees = db.query(LedgerEntry)\
                .filter(LedgerEntry.user_id == user_id, LedgerEntry.entry_type == LedgerEntryType.ENTRY_FEE)\
                .count()
            assert fees == 1
            assert db.get(User, user_id).wallet == Decimal("50.00")
        assert db.get(Match, match_id).status == MatchStatus.CONFIRMED

        match_state.set_room_details(db, gw, Actor(user_id=arena["team_a"][0]), match_id, "ROOM-42", "hunter2")
        match_state.start_match(db, gw, Actor(user_id=arena["team_a"][0]), match_id)
    finally:
        db.close()

    winner_id = arena["team_ids"][TeamSlot.A]
    admin = Actor(user_id=arena["admin_id"], is_admin=True)

    def settle_job(db):
        return settlement_service.settle(db, gw, SettlementRequest(match_id=match_id, winning_team_id=winner_id))

    def declare_job(db):
        return dispute_service.declare_winner(db, gw, admin, match_id, winner_id, notes="Verified by replay")

    outcomes = _run_in_parallel(session_factory, [settle_job, declare_job] * ATTEMPTS_PER_PLAYER)
    settled = [result for result, _ in outcomes if result is not None]
    assert sum(1 for outcome in settled if not outcome.already_settled) == 1

    db = session_factory()
    try:
        for user_id in arena["team_a"]:
            prizes = db.query(LedgerEntry)\
                .filter(LedgerEntry.user_id == user_id, LedgerEntry.entry_type == LedgerEntryType.PRIZE)\
                .count()
            assert prizes == 1
            assert db.get(User, user_id).wallet == Decimal("150.00")
            assert db.get(User, user_id).total_wins == 1
        for user_id in arena["team_b"]:
            assert db.get(User, user_id).wallet == Decimal("50.00")

        total_prizes = db.query(func.count(LedgerEntry.id))\
            .filter(LedgerEntry.entry_type == LedgerEntryType.PRIZE)\
            .scalar()
        assert total_prizes == len(arena["team_a"])
        assert db.query(MatchResult).filter(MatchResult.match_id == match_id).count() == 1

        match = db.get(Match, match_id)
        assert match.status == MatchStatus.COMPLETED
        assert match.winning_team_id == winner_id
    finally:
        db.close()
