"""
주역 기괘 엔드포인트

- POST /yijing/cast: 기괘 (coin / time / number / plum_blossom / personalized)
- GET /yijing/random-stats: 난수 풀 상태와 품질
- POST /yijing/refresh-entropy: 엔트로피 풀 재초기화
"""
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from fastapi import APIRouter, HTTPException
import logging

from mingli.models.schemas import (
    DivinationRequest,
    DivinationResponse,
    ErrorResponse,
    RandomStatsResponse,
)
from mingli.routers.calculate import calculation_http_error
from mingli.services import get_yijing_engine
from mingli.services.errors import CalculationError

logger = logging.getLogger(__name__)
router = APIRouter()


def resolve_local_time(local_time: Optional[datetime], user_timezone: Optional[str]) -> datetime:
    """
    기괘 기준 시각

    local_time 우선, 없으면 user_timezone의 현재 시각, 둘 다 없으면 서버 시각
    """
    tz = None
    if user_timezone:
        try:
            tz = ZoneInfo(user_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(
                status_code=400,
                detail={
                    "error_code": "INVALID_TIMEZONE",
                    "message": "알 수 없는 타임존입니다.",
                    "detail": user_timezone,
                }
            )

    if local_time is not None:
        if local_time.tzinfo is None and tz is not None:
            return local_time.replace(tzinfo=tz)
        return local_time
    return datetime.now(tz) if tz is not None else datetime.now()


@router.post(
    "/yijing/cast",
    response_model=DivinationResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="주역 기괘",
    description="""
질문을 받아 괘를 세웁니다.

- `local_time`: 사용자 현지 시각 (시간법/매화역수는 현지 시/분을 사용)
- 본괘와 함께 변괘, 호괘, 착괘, 종괘, 상하괘 오행 관계를 반환합니다.
    """
)
async def cast_hexagram(request: DivinationRequest):
    engine = get_yijing_engine()
    now = resolve_local_time(request.local_time, request.user_timezone)

    try:
        result = engine.cast(
            method=request.method.value,
            now=now,
            user_id=request.user_id,
            question=request.question,
        )
    except CalculationError as e:
        logger.error(f"Yijing cast error: {type(e).__name__}: {e}")
        raise calculation_http_error(e)

    logger.info(
        f"Yijing cast: {result.method} | {result.hexagram.number}.{result.hexagram.name} | "
        f"changing: {result.changing_lines}"
    )
    return DivinationResponse(result=result.to_dict())


@router.get(
    "/yijing/random-stats",
    response_model=RandomStatsResponse,
    summary="난수 생성기 상태"
)
async def random_stats():
    source = get_yijing_engine().random
    if not hasattr(source, "statistics"):
        raise HTTPException(
            status_code=501,
            detail={
                "error_code": "STATS_NOT_SUPPORTED",
                "message": "현재 난수 소스는 통계를 제공하지 않습니다.",
            }
        )
    return RandomStatsResponse(statistics=source.statistics())


@router.post(
    "/yijing/refresh-entropy",
    response_model=RandomStatsResponse,
    summary="엔트로피 풀 재초기화"
)
async def refresh_entropy():
    source = get_yijing_engine().random
    source.refresh()
    logger.info("Entropy pool refreshed")
    return RandomStatsResponse(statistics={"refreshed": True, "quality": source.quality_report()})
