# app/services/ledger_service.py
"""
원장 게이트웨이

지갑 잔액 변경은 모두 여기를 거친다. 호출자의 세션(트랜잭션) 안에서
실행되며, 유저 행을 잠근 뒤 잔액을 바꾸고 LedgerEntry 를 남긴다.
idempotency_key 가 이미 존재하면 아무것도 바꾸지 않고 기존 기록을 돌려준다.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from sqlalchemy.orm import Session

from app.core.exceptions import InsufficientFunds, NotFound, ValidationError
from app.core.logger import logger, ledger_logger
from app.models.ledger import LedgerEntry, LedgerEntryType
from app.models.user import User

CENT = Decimal("0.01")

def to_money(value) -> Decimal:
    """금액을 소수점 2자리 Decimal로 변환"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)

class LedgerGateway:
    """원장 인터페이스 (debit / credit)"""

    def debit(self, db: Session, user_id: str, amount, key: str,
              entry_type: LedgerEntryType = LedgerEntryType.ENTRY_FEE,
              match_id: str = None) -> LedgerEntry:
        raise NotImplementedError

    def credit(self, db: Session, user_id: str, amount, key: str,
               entry_type: LedgerEntryType = LedgerEntryType.PRIZE,
               match_id: str = None) -> LedgerEntry:
        raise NotImplementedError

class WalletLedger(LedgerGateway):
    """users.wallet 컬럼 기반 원장 (매치 DB와 같은 트랜잭션)"""

    def _find_entry(self, db: Session, key: str) -> LedgerEntry | None:
        return db.query(LedgerEntry).filter(LedgerEntry.idempotency_key == key).first()

    def _lock_user(self, db: Session, user_id: str) -> User:
        user = db.query(User)\
            .filter(User.id == user_id)\
            .with_for_update()\
            .populate_existing()\
            .first()
        if not user:
            raise NotFound(f"User {user_id} not found")
        return user

    def debit(self, db, user_id, amount, key,
              entry_type=LedgerEntryType.ENTRY_FEE, match_id=None):
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Debit amount must be positive")

        existing = self._find_entry(db, key)
        if existing:
            logger.info(f"원장 차감 중복 요청 무시: key={key}")
            return existing

        user = self._lock_user(db, user_id)
        if to_money(user.wallet) < amount:
            raise InsufficientFunds(
                f"Insufficient funds: wallet {to_money(user.wallet)} is below {amount}"
            )

        user.wallet = to_money(user.wallet) - amount
        entry = LedgerEntry(
            user_id=user_id,
            match_id=match_id,
            amount=-amount,
            entry_type=entry_type,
            idempotency_key=key
        )
        db.add(entry)
        db.flush()

        ledger_logger(user_id, entry_type.value, -amount).info(f"원장 차감: user={user_id} amount={amount} key={key}")
        return entry

    def credit(self, db, user_id, amount, key,
               entry_type=LedgerEntryType.PRIZE, match_id=None):
        amount = to_money(amount)
        if amount < 0:
            raise ValidationError("Credit amount must not be negative")

        existing = self._find_entry(db, key)
        if existing:
            logger.info(f"원장 지급 중복 요청 무시: key={key}")
            return existing

        user = self._lock_user(db, user_id)
        user.wallet = to_money(user.wallet) + amount
        entry = LedgerEntry(
            user_id=user_id,
            match_id=match_id,
            amount=amount,
            entry_type=entry_type,
            idempotency_key=key
        )
        db.add(entry)
        db.flush()

        ledger_logger(user_id, entry_type.value, amount).info(f"원장 지급: user={user_id} amount={amount} key={key}")
        return entry

def get_user_ledger(db: Session, user_id: str, limit: int = 100) -> List[LedgerEntry]:
    """유저 거래 내역 (참가비 / 환불 / 상금, 최신순)"""
    return db.query(LedgerEntry)\
        .filter(LedgerEntry.user_id == user_id)\
        .order_by(LedgerEntry.created_at.desc())\
        .limit(limit)\
        .all()
