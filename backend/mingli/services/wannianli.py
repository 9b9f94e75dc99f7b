"""
만년력(万年历) 일주 보정 테이블
- 검증된 날짜의 일주를 공식 계산보다 우선 적용
- 테이블에 없으면 공식 계산 (1900-01-01 = 甲戌일 기준)
"""
import logging
from datetime import date
from typing import Dict, Optional, Tuple

from mingli.services.errors import InvalidInput
from mingli.services.ganji import StemBranch, parse_ganji, stem_branch_at

logger = logging.getLogger(__name__)

# 기준: 1900년 1월 1일 = 甲戌일 (60갑자 10번째)
# 2000-01-01 = 戊午(54)와 동일한 계열
BASE_DATE = date(1900, 1, 1)
BASE_INDEX = 10

# 검증된 일주 (만년력 대조)
_DAY_PILLAR_TABLE: Dict[Tuple[int, int, int], str] = {
    (1900, 1, 1): "甲戌",
    (1949, 10, 1): "甲子",
    (1976, 3, 17): "戊辰",
    (1978, 5, 16): "戊寅",
    (1988, 8, 8): "乙未",
    (1990, 1, 15): "庚辰",
    (2000, 1, 1): "戊午",
    (2024, 2, 4): "戊戌",
}

DAY_PILLAR_TABLE: Dict[Tuple[int, int, int], StemBranch] = {
    key: parse_ganji(value) for key, value in _DAY_PILLAR_TABLE.items()
}


def _to_date(year: int, month: int, day: int) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise InvalidInput(f"잘못된 날짜: {year}-{month}-{day} ({e})")


def lookup_day_pillar(year: int, month: int, day: int) -> Optional[StemBranch]:
    """만년력 테이블 조회 (없으면 None - 오류 아님)"""
    return DAY_PILLAR_TABLE.get((year, month, day))


def formula_day_pillar(year: int, month: int, day: int) -> StemBranch:
    """기준일로부터 경과 일수 mod 60"""
    days_diff = (_to_date(year, month, day) - BASE_DATE).days
    return stem_branch_at((BASE_INDEX + days_diff) % 60)


def resolve_day_pillar(year: int, month: int, day: int) -> Tuple[StemBranch, str]:
    """
    일주 결정 (테이블 우선 → 공식)

    Returns:
        (일주, "wannianli" | "formula")
    """
    _to_date(year, month, day)

    tabulated = lookup_day_pillar(year, month, day)
    if tabulated is not None:
        logger.debug(f"[WanNianLi] 테이블 적용: {year}-{month}-{day} = {tabulated.ganji}")
        return tabulated, "wannianli"

    return formula_day_pillar(year, month, day), "formula"
