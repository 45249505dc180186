# app/core/logging_middleware.py
from fastapi import Request
from app.core.logger import logger
import time
import uuid

async def log_requests(request: Request, call_next):
    """요청/응답 로깅 (요청 ID 부여)"""

    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    start_time = time.perf_counter()

    with logger.contextualize(request_id=request_id):
        logger.info(f"➡️  [{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"❌ [{request_id}] {request.method} {request.url.path} "
                f"- Error: {e} - Time: {elapsed:.2f}ms"
            )
            logger.exception("Unhandled exception")
            raise

        elapsed = (time.perf_counter() - start_time) * 1000
        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            f"⬅️  [{request_id}] {request.method} {request.url.path} "
            f"- Status: {response.status_code} - Time: {elapsed:.2f}ms"
        )

        response.headers["X-Request-ID"] = request_id
        return response
