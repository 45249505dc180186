# app/api/routes/users.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.context import Actor
from app.core.exceptions import NotFound
from app.api.deps import get_current_actor
from app.models.user import User
from app.schemas.match import UserMatchHistory
from app.schemas.user import UserResponse, LedgerEntryResponse
from app.services import formation_service, ledger_service

router = APIRouter(prefix="/api/v1/users", tags=["유저"])

@router.get("/me", response_model=UserResponse)
def get_me(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """내 정보 (지갑, 전적)"""
    user = db.query(User).filter(User.id == actor.user_id).first()
    if not user:
        raise NotFound(f"User {actor.user_id} not found")
    return user

@router.get("/me/matches", response_model=List[UserMatchHistory])
def get_my_matches(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """내 매치 기록"""
    return formation_service.get_user_matches(db, actor.user_id)

@router.get("/me/ledger", response_model=List[LedgerEntryResponse])
def get_my_ledger(
    limit: int = 100,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """내 거래 내역"""
    return ledger_service.get_user_ledger(db, actor.user_id, limit=min(max(limit, 1), 500))
