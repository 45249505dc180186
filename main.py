# main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config import settings
from app.api.routes import matches, users, admin
from app.core.exceptions import MatchError
from app.core.logging_middleware import log_requests
from app.core.logger import logger

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug
)

# ===== 로깅 미들웨어 추가 (가장 먼저) =====
@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    return await log_requests(request, call_next)
# ==========================================

# 요청 크기 제한 미들웨어
MAX_REQUEST_SIZE = 1 * 1024 * 1024

@app.middleware("http")
async def limit_request_size(request: Request, call_next):
    """요청 크기 제한"""
    if request.method in ["POST", "PUT", "PATCH"]:
        content_length = request.headers.get("content-length")
        if content_length and int(content_length) > MAX_REQUEST_SIZE:
            return JSONResponse(
                status_code=413,
                content={
                    "detail": f"Request body too large. Max: {MAX_REQUEST_SIZE // 1024 // 1024}MB",
                    "code": "request_too_large"
                }
            )
    return await call_next(request)

# 매치 엔진 에러 → HTTP 응답
@app.exception_handler(MatchError)
async def match_error_handler(request: Request, exc: MatchError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} 거부 - {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code}
    )

# CORS 설정
origins = [
    "http://localhost:3000",
    "http://localhost:8081",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8081",
    settings.frontend_url,
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 라우터 등록
app.include_router(matches.router)
app.include_router(users.router)
app.include_router(admin.router)

# ===== 시작 로그 추가 =====
@app.on_event("startup")
async def startup_event():
    logger.info("Match Arena API 서버 시작")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Match Arena API 서버 종료")
# ==========================

@app.get("/health")
def health_check():
    """헬스체크"""
    return {
        "status": "healthy",
        "service": settings.app_name
    }
