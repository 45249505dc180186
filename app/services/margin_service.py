# app/services/margin_service.py
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.orm import Session

from app.config import settings
from app.core.context import Actor
from app.core.exceptions import NotAuthorized, ValidationError
from app.core.logger import logger
from app.models.margin import PrizeMargin

def get_current_margin(db: Session) -> Decimal:
    """현재 플랫폼 수수료율 (없으면 기본값 행 추가)"""
    row = db.query(PrizeMargin).order_by(PrizeMargin.id.desc()).first()
    if row is None:
        row = PrizeMargin(margin=settings.default_margin_percent, set_by=settings.system_actor_id)
        db.add(row)
        db.flush()
    return Decimal(str(row.margin))

def update_margin(db: Session, actor: Actor, margin) -> PrizeMargin:
    """수수료율 변경 (관리자, 새 행 추가)"""
    if not actor.can_arbitrate:
        raise NotAuthorized("Only admins can change the prize margin")

    margin = Decimal(str(margin))
    if margin < 0 or margin > 100:
        raise ValidationError("Margin must be between 0 and 100")

    row = PrizeMargin(margin=margin, set_by=actor.user_id)
    db.add(row)
    db.commit()
    db.refresh(row)

    logger.info(f"수수료율 변경: {margin}% by {actor.user_id}")
    return row

def compute_prize_pool(entry_fee: Decimal, team_size: int, margin: Decimal) -> Decimal:
    """
    상금 계산
    - 전체 참가비 = 참가비 × 팀 인원 × 2
    - 수수료 차감 후 원 단위 반올림
    """
    total = Decimal(str(entry_fee)) * team_size * 2
    platform_fee = total * margin / Decimal("100")
    return (total - platform_fee).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
