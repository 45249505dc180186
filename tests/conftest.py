"""Shared pytest fixtures for the match engine tests."""
import os
import uuid
from decimal import Decimal
from typing import Generator

# Settings 는 import 시점에 읽히므로 먼저 설정
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-0123456789")
os.environ.setdefault("LOG_DIR", "/tmp/match-arena-test-logs")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.core.context import Actor
from app.core.exceptions import ExternalServiceError
from app.database import Base
from app.models import User, MatchType
from app.models.team import TeamSlot
from app.services import formation_service, escrow_service, match_state, margin_service
from app.services.classifier_service import EvidenceClassifier, KeywordVerdictStrategy
from app.services.gateways import Gateways
from app.services.ledger_service import WalletLedger
from app.services.notification_service import NotificationSink


class RecordingSink(NotificationSink):
    """Collects notifications instead of sending them."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def notify(self, user_id, title, body, payload=None):
        if self.fail:
            raise RuntimeError("push gateway down")
        self.sent.append({"user_id": user_id, "title": title, "body": body, "payload": payload or {}})

    def titles(self):
        return [n["title"] for n in self.sent]

    def clear(self):
        self.sent.clear()


class ScriptedClassifier(EvidenceClassifier):
    """Returns canned text per evidence reference; unknown refs fail."""

    def __init__(self, script: dict = None):
        self.script = dict(script or {})
        self.calls = []

    def classify(self, evidence_ref):
        self.calls.append(evidence_ref)
        if evidence_ref not in self.script:
            raise ExternalServiceError(f"no scripted response for {evidence_ref}")
        return self.script[evidence_ref]


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Fresh in-memory database per test."""
    import app.models  # noqa: F401  모든 모델 등록

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def classifier() -> ScriptedClassifier:
    return ScriptedClassifier({
        "win.png": "VICTORY! Squad Alpha takes 1st place",
        "loss.png": "DEFEAT - better luck next time",
        "blurry.png": "loading...",
    })


@pytest.fixture
def gateways(sink, classifier) -> Gateways:
    return Gateways(
        ledger=WalletLedger(),
        notifier=sink,
        classifier=classifier,
        verdicts=KeywordVerdictStrategy(
            win_keywords=["victory", "winner", "1st place"],
            loss_keywords=["defeat", "you lose"]
        )
    )


@pytest.fixture
def make_user(db_session):
    def _make(username: str = None, wallet="100.00") -> User:
        user = User(
            username=username or f"player_{uuid.uuid4().hex[:8]}",
            wallet=Decimal(str(wallet))
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def admin(make_user) -> Actor:
    user = make_user("arena_admin", wallet="0")
    return Actor(user_id=user.id, is_admin=True)


class Arena:
    """Drives a match through its lifecycle for scenario tests."""

    def __init__(self, db, gw, make_user):
        self.db = db
        self.gw = gw
        self.make_user = make_user

    def players(self, count, wallet="100.00"):
        return [self.make_user(wallet=wallet) for _ in range(count)]

    def create(self, team_size=4, entry_fee="50.00", match_type=MatchType.PUBLIC,
               wallet="100.00", team_name="Squad Alpha"):
        """Match with team A claimed by the creator and team_size - 1 teammates."""
        team_a = self.players(team_size, wallet=wallet)
        creator = team_a[0]
        match = formation_service.create_match(
            self.db,
            Actor(user_id=creator.id),
            match_type=match_type,
            game_name="Valor Clash",
            entry_fee=entry_fee,
            team_size=team_size,
            team_name=team_name,
            members=[u.id for u in team_a],
            captain_id=creator.id
        )
        return match, team_a

    def join(self, match, team_size=None, wallet="100.00", team_name="Squad Bravo", **kwargs):
        players = self.players(team_size or match.team_size, wallet=wallet)
        team = formation_service.join_team(
            self.db, self.gw, Actor(user_id=players[0].id), match.id,
            display_name=team_name,
            members=[u.id for u in players],
            **kwargs
        )
        return team, players

    def pay_all(self, match, team, users):
        for user in users:
            escrow_service.pay_entry_fee(self.db, self.gw, Actor(user_id=user.id), match.id, team.id, user.id)

    def start(self, match, captain):
        match_state.set_room_details(self.db, self.gw, Actor(user_id=match.created_by), match.id, "ROOM-42", "hunter2")
        return match_state.start_match(self.db, self.gw, Actor(user_id=captain.id), match.id)

    def in_progress(self, team_size=4, entry_fee="50.00", margin=None):
        """Both teams joined and paid, room set, match started."""
        if margin is not None:
            margin_service.update_margin(self.db, Actor.system(), margin)

        match, team_a_players = self.create(team_size=team_size, entry_fee=entry_fee)
        team_b, team_b_players = self.join(match)
        team_a = match_state.get_match(self.db, match.id).team_for(TeamSlot.A)

        self.pay_all(match, team_a, team_a_players)
        self.pay_all(match, team_b, team_b_players)
        self.start(match, team_a_players[0])

        match = match_state.get_match(self.db, match.id)
        return match, team_a_players, team_b_players


@pytest.fixture
def arena(db_session, gateways, make_user) -> Arena:
    return Arena(db_session, gateways, make_user)
