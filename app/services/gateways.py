# app/services/gateways.py
from dataclasses import dataclass
from functools import lru_cache

from app.services.classifier_service import (
    EvidenceClassifier, OpenAIVisionClassifier, VerdictStrategy, KeywordVerdictStrategy
)
from app.services.ledger_service import LedgerGateway, WalletLedger
from app.services.notification_service import NotificationSink, build_default_sink

@dataclass
class Gateways:
    """매치 엔진이 쓰는 외부 협력자 묶음"""
    ledger: LedgerGateway
    notifier: NotificationSink
    classifier: EvidenceClassifier
    verdicts: VerdictStrategy

@lru_cache
def get_gateways() -> Gateways:
    """기본 구성 (FastAPI 의존성, 테스트에서 override)"""
    return Gateways(
        ledger=WalletLedger(),
        notifier=build_default_sink(),
        classifier=OpenAIVisionClassifier(),
        verdicts=KeywordVerdictStrategy()
    )
