# app/config.py
from decimal import Decimal
from typing import List

from pydantic_settings import BaseSettings
from pydantic import field_validator

class Settings(BaseSettings):
    """환경변수 설정"""

    # API 기본 설정
    app_name: str = "Match Arena API"
    debug: bool = False

    # Database
    database_url: str

    # JWT (토큰 발급은 외부 인증 서버 담당)
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # 매치 설정
    allowed_team_sizes: List[int] = [1, 4, 6, 8]
    default_margin_percent: Decimal = Decimal("0")
    frontend_url: str = "http://localhost:5173"

    # 로그
    log_dir: str = "logs"
    log_level: str = "INFO"

    # 시스템 액터 (자동 분쟁 등록, 시스템 알림 발신자)
    system_actor_id: str = "system"

    # 결과 판정 키워드 (순서대로 검사: 승리 → 패배)
    win_keywords: List[str] = ["victory", "winner", "you win", "1st place", "champion", "win"]
    loss_keywords: List[str] = ["defeat", "you lose", "game over", "lose"]

    # 결과 스크린샷 로컬 저장 위치 (그 밖의 경로는 거부)
    evidence_dir: str = "uploads/evidence"

    # OpenAI API (스크린샷 텍스트 추출)
    openai_api_key: str = ""
    classifier_model: str = "gpt-4o"
    classifier_timeout: float = 30.0

    # 푸시 알림 게이트웨이 (비어 있으면 로그만 남김)
    push_gateway_url: str = ""
    push_timeout: float = 5.0

    @field_validator('secret_key')
    def validate_secret_key(cls, v):
        if len(v) < 32:
            raise ValueError('SECRET_KEY must be at least 32 characters')
        return v

    @field_validator('default_margin_percent')
    def validate_margin(cls, v):
        if v < 0 or v > 100:
            raise ValueError('margin must be between 0 and 100')
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False

# 싱글톤 인스턴스
settings = Settings()
