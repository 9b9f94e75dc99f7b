"""
계산 엔드포인트 - 사주 / 자미두수 / 절기

- POST /bazi: 사주 원국, 십신, 오행, 대운
- POST /ziwei: 자미두수 명반
- GET /solar-terms/{year}: 24절기
- GET /calculate/hour-options: 12시진 선택 옵션
"""
from fastapi import APIRouter, HTTPException, Path
from typing import List
import logging

from mingli.models.schemas import (
    BaziResponse,
    BirthRequest,
    ErrorResponse,
    HourOption,
    SolarTermsResponse,
    ZiweiRequest,
    ZiweiResponse,
)
from mingli.services import get_bazi_engine, get_cache_service, get_ziwei_engine
from mingli.services.errors import CalculationError, InvalidInput
from mingli.services.ganji import HOUR_OPTIONS
from mingli.services.solar_terms import solar_terms_engine

logger = logging.getLogger(__name__)
router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def calculation_http_error(e: CalculationError) -> HTTPException:
    """엔진 오류 → HTTPException (입력 오류 400, 그 외 500)"""
    if isinstance(e, InvalidInput):
        return HTTPException(
            status_code=400,
            detail={
                "error_code": e.error_code,
                "message": "입력값이 올바르지 않습니다.",
                "detail": str(e),
            }
        )
    return HTTPException(
        status_code=500,
        detail={
            "error_code": e.error_code,
            "message": "계산에 실패했습니다.",
            "detail": str(e),
        }
    )


def birth_info(year: int, month: int, day: int, hour, minute: int) -> str:
    info = f"{year}년 {month}월 {day}일"
    if hour is not None:
        info += f" {hour}시"
        if minute > 0:
            info += f" {minute}분"
    return info


@router.post(
    "/bazi",
    response_model=BaziResponse,
    responses=ERROR_RESPONSES,
    summary="사주 계산",
    description="""
양력 생년월일(시)로 사주 원국을 계산합니다.

- 연주: 입춘 기준 (설정으로 양력 1월 1일 기준 선택 가능)
- 월주: 절기 기준
- 일주: 만년력 보정 테이블 → 공식
- 시주: 23시는 야자시(다음 날 일간), 0시는 조자시
- `use_solar_time=true` + 경도 입력시 진태양시 보정
    """
)
async def calculate_bazi(request: BirthRequest):
    year, month, day, hour, minute = request.parts()
    gender = request.gender.value if request.gender else None
    cache = get_cache_service()

    key = (year, month, day, hour, minute, gender, request.longitude, request.use_solar_time)
    cached = cache.get_bazi(*key)
    if cached is not None:
        return BaziResponse(birth_info=birth_info(year, month, day, hour, minute), chart=cached)

    try:
        chart = get_bazi_engine().calculate(
            year, month, day, hour, minute,
            gender=gender,
            longitude=request.longitude,
            latitude=request.latitude,
            use_solar_time=request.use_solar_time,
        )
    except CalculationError as e:
        logger.error(f"Bazi calculation error: {type(e).__name__}: {e}")
        raise calculation_http_error(e)

    data = chart.to_dict()
    cache.set_bazi(*key, data=data)
    logger.info(
        f"Bazi calculated: {year}-{month}-{day} | "
        f"{' '.join(p['ganji'] for p in data['pillars'].values())} | day: {chart.day_pillar.source}"
    )
    return BaziResponse(birth_info=birth_info(year, month, day, hour, minute), chart=data)


@router.post(
    "/ziwei",
    response_model=ZiweiResponse,
    responses=ERROR_RESPONSES,
    summary="자미두수 명반",
    description="""
사주 계산 결과를 바탕으로 명궁, 오행국, 14주성/육길성/육살성, 사화, 대한을 배치합니다.

- 각 궁은 궁간지(오호둔), 각 대한은 대한사화를 포함합니다.
- `flow_year` (+ `flow_month`) 지정시 대한/유년/유월 사화를 `flow`에 반환합니다.
- 성별이 없으면 대한은 생략됩니다.
    """
)
async def calculate_ziwei(request: ZiweiRequest):
    year, month, day, hour, minute = request.parts()
    gender = request.gender.value if request.gender else None
    cache = get_cache_service()

    key = (
        year, month, day, hour, minute, gender, request.longitude, request.use_solar_time,
        request.flow_year, request.flow_month,
    )
    cached = cache.get_ziwei(*key)
    if cached is not None:
        return ZiweiResponse(birth_info=birth_info(year, month, day, hour, minute), chart=cached)

    try:
        chart = get_ziwei_engine().calculate_from_birth(
            year, month, day, hour, minute,
            gender=gender,
            longitude=request.longitude,
            latitude=request.latitude,
            use_solar_time=request.use_solar_time,
            flow_year=request.flow_year,
            flow_month=request.flow_month,
        )
    except CalculationError as e:
        logger.error(f"Ziwei calculation error: {type(e).__name__}: {e}")
        raise calculation_http_error(e)

    data = chart.to_dict()
    cache.set_ziwei(*key, data=data)
    logger.info(f"Ziwei calculated: {year}-{month}-{day} | {chart.bureau_name} | lunar: {chart.lunar.mode}")
    return ZiweiResponse(birth_info=birth_info(year, month, day, hour, minute), chart=data)


@router.get(
    "/solar-terms/{year}",
    response_model=SolarTermsResponse,
    responses=ERROR_RESPONSES,
    summary="연도별 24절기",
    description="입춘부터 다음 해 대한까지 24절기 절입 시각 (UTC+8)"
)
async def get_solar_terms(year: int = Path(..., ge=1, le=9998)):
    try:
        terms = solar_terms_engine.year_solar_terms(year)
    except CalculationError as e:
        logger.error(f"Solar term error: {type(e).__name__}: {e}")
        raise calculation_http_error(e)
    return {
        "year": year,
        "method": solar_terms_engine.method,
        "terms": [t.to_dict() for t in terms],
    }


@router.get(
    "/calculate/hour-options",
    response_model=List[HourOption],
    summary="시간대 선택 옵션",
    description="출생 시간 입력을 위한 시간대(2시간 단위) 선택 옵션 목록"
)
async def get_hour_options():
    """시간대 선택 옵션 목록"""
    return [
        {
            "index": h["index"],
            "branch": h["branch"],
            "branch_ko": h["branch_ko"],
            "range_start": h["start"],
            "range_end": h["end"],
            "label": f"{h['shichen']} ({h['branch_ko']}시) - {h['start']}~{h['end']}",
        }
        for h in HOUR_OPTIONS
    ]
