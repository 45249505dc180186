# app/core/logger.py
from loguru import logger
import sys
import os

from app.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
LEDGER_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {extra[user_id]} | {extra[entry_type]} | {extra[amount]} | {message}"

def _is_ledger_record(record) -> bool:
    return record["extra"].get("ledger", False)

def setup_logging(log_dir: str = None, level: str = None) -> None:
    """콘솔 / 전체 로그 / 에러 로그 / 원장 감사 로그 싱크 등록"""
    log_dir = log_dir or settings.log_dir
    level = level or settings.log_level
    os.makedirs(log_dir, exist_ok=True)

    logger.remove()

    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=level)

    logger.add(
        f"{log_dir}/arena.log",
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        format=FILE_FORMAT,
        level="DEBUG",
        enqueue=True
    )

    logger.add(
        f"{log_dir}/error.log",
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        format=FILE_FORMAT,
        level="ERROR",
        enqueue=True
    )

    # 지갑 잔액 변동만 따로 (삭제하지 않음)
    logger.add(
        f"{log_dir}/ledger.log",
        rotation="50 MB",
        compression="zip",
        format=LEDGER_FORMAT,
        filter=_is_ledger_record,
        level="INFO",
        enqueue=True
    )

setup_logging()

def ledger_logger(user_id: str, entry_type: str, amount):
    """원장 감사 로그용 바인딩 로거"""
    return logger.bind(ledger=True, user_id=user_id, entry_type=entry_type, amount=str(amount))
