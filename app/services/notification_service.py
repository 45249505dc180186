# app/services/notification_service.py
"""
알림 전송 (fire-and-forget)

트랜잭션 안에서는 Notice 목록만 만들고, commit 이후 dispatch()로 보낸다.
전송 실패는 로그만 남기고 매치 상태에는 영향이 없다.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import httpx

from app.config import settings
from app.core.logger import logger

@dataclass
class Notice:
    """전송 대기 알림 1건"""
    user_id: str
    title: str
    body: str
    payload: dict = field(default_factory=dict)

class NotificationSink:
    """알림 전송 인터페이스"""

    def notify(self, user_id: str, title: str, body: str, payload: Optional[dict] = None) -> None:
        raise NotImplementedError

class LogNotificationSink(NotificationSink):
    """푸시 게이트웨이가 없을 때: 로그만 기록"""

    def notify(self, user_id, title, body, payload=None):
        logger.info(f"[알림] user={user_id} title={title!r} payload={payload or {}}")

class PushGatewaySink(NotificationSink):
    """푸시 게이트웨이 HTTP 전송"""

    def __init__(self, url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None):
        self.url = url
        self.client = client or httpx.Client(timeout=timeout)

    def notify(self, user_id, title, body, payload=None):
        response = self.client.post(
            self.url,
            json={
                "user_id": user_id,
                "title": title,
                "body": body,
                # 푸시 데이터 필드는 문자열만 허용
                "data": {k: str(v) for k, v in (payload or {}).items()},
            }
        )
        response.raise_for_status()

def build_default_sink() -> NotificationSink:
    if settings.push_gateway_url:
        return PushGatewaySink(settings.push_gateway_url, timeout=settings.push_timeout)
    return LogNotificationSink()

def notices_for(
    user_ids: Iterable[str],
    title: str,
    body: str,
    payload: Optional[dict] = None,
    exclude: Iterable[str] = ()
) -> List[Notice]:
    """여러 참가자에게 같은 알림"""
    skip = set(exclude)
    seen = set()
    notices = []
    for user_id in user_ids:
        if user_id in skip or user_id in seen:
            continue
        seen.add(user_id)
        notices.append(Notice(user_id=user_id, title=title, body=body, payload=dict(payload or {})))
    return notices

def dispatch(sink: NotificationSink, notices: Iterable[Notice]) -> int:
    """알림 일괄 전송, 성공 건수 반환"""
    sent = 0
    for notice in notices:
        try:
            sink.notify(notice.user_id, notice.title, notice.body, notice.payload)
            sent += 1
        except Exception as e:
            logger.error(f"알림 전송 실패 (user={notice.user_id}, title={notice.title!r}): {e}")
    return sent
