# app/database.py
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from app.config import settings
from app.core.exceptions import Conflict

# 데이터베이스 엔진 생성
engine = create_engine(
    settings.database_url,
    echo=settings.debug,  # SQL 쿼리 로그 출력
    pool_pre_ping=True
)

# 세션 팩토리
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base 클래스 (모든 모델의 부모)
Base = declarative_base()

# DB 세션 의존성 (FastAPI에서 사용)
def get_db():
    """DB 세션 생성 및 종료"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def transaction(db: Session):
    """
    하나의 트랜잭션 범위
    - 정상 종료 시 commit
    - 예외 발생 시 rollback 후 그대로 전파
    - 유니크 제약 위반(동시 요청 경쟁에서 패배)은 Conflict로 변환
    """
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("Concurrent update lost the race, please retry") from e
    except Exception:
        db.rollback()
        raise

def enum_values(enum_cls):
    """SQLEnum에 이름 대신 값("waiting" 등)을 저장"""
    return [member.value for member in enum_cls]
