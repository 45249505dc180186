# app/api/deps.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.context import Actor
from app.core.security import decode_access_token, ADMIN_ROLE
from app.services.gateways import Gateways, get_gateways

# JWT Bearer 토큰 스킴
security = HTTPBearer()

def get_current_actor(
    token: HTTPAuthorizationCredentials = Depends(security)
) -> Actor:
    """JWT 토큰으로 요청 주체 가져오기 (토큰은 외부 인증 서버에서 발급)"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token.credentials)
    if payload is None:
        raise credentials_exception

    user_id: str = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    return Actor(user_id=user_id, is_admin=payload.get("role") == ADMIN_ROLE)

def get_arbiter(actor: Actor = Depends(get_current_actor)) -> Actor:
    """관리자 전용 엔드포인트"""
    if not actor.can_arbitrate:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return actor

def get_engine_gateways() -> Gateways:
    """원장 / 알림 / 분류기 묶음 (테스트에서 override)"""
    return get_gateways()
