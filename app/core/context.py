# app/core/context.py
from dataclasses import dataclass

from app.config import settings


@dataclass(frozen=True)
class Actor:
    """요청 주체 (유저 / 관리자 / 시스템)"""
    user_id: str
    is_admin: bool = False
    is_system: bool = False

    @classmethod
    def system(cls) -> "Actor":
        """자동 판정, 자동 분쟁 등록에 쓰이는 시스템 액터"""
        return cls(user_id=settings.system_actor_id, is_admin=True, is_system=True)

    @property
    def can_arbitrate(self) -> bool:
        return self.is_admin or self.is_system
