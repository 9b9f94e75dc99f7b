"""
Mingli Engine - Main App
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
- 사주(八字) / 자미두수(紫微斗数) / 주역(易经) 계산 API
- /health 는 라우터 로드 여부와 무관하게 즉시 응답
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mingli.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="1.0.0", debug=settings.debug)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "status": "running",
        "solar_term_method": settings.solar_term_method,
        "year_boundary": settings.year_boundary,
        "ziwei_lunar_mode": settings.ziwei_lunar_mode,
    }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 라우터 등록
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
from mingli.routers import calculate, divination  # noqa: E402

app.include_router(calculate.router, prefix="/api/v1", tags=["Calculate"])
app.include_router(divination.router, prefix="/api/v1", tags=["Divination"])
logger.info("✅ calculate, divination 라우터 등록")


@app.get("/api/v1/cache/stats", tags=["Calculate"])
async def cache_stats():
    from mingli.services import get_cache_service
    return get_cache_service().get_stats()


@app.exception_handler(Exception)
async def error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error_code": "INTERNAL_ERROR",
            "message": "서버 내부 오류가 발생했습니다.",
            "detail": str(exc)[:100],
        },
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
