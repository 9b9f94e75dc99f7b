"""
24절기 계산 및 절입 시각 판정
- 월주 계산의 핵심: 어느 절기 구간인지 판단
- 입춘 기준 연주 보정
- 기본: 2000년 기준 절입 시각 + 회귀년(365.2422일) 선형 보정
- 선택: ephem 태양 황경 기반 정밀 보정 (Newton 반복)

모든 시각은 중국 표준시(UTC+8) naive datetime.
"""
import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import ephem
from cachetools import LRUCache

from mingli.config import get_settings
from mingli.services.errors import InvalidInput, UnresolvedSolarTerm
from mingli.services.ganji import BRANCHES

logger = logging.getLogger(__name__)

TROPICAL_YEAR_DAYS = 365.2422
UTC_OFFSET_HOURS = 8


@dataclass
class SolarTerm:
    """절기 정보"""
    name: str           # 절기 이름
    index: int          # 0=立春, 1=雨水, ..., 21=冬至, 22=小寒, 23=大寒
    longitude: float    # 태양 황경 (도)
    time: datetime      # 절입 시각 (UTC+8)
    year: int           # 절기 연도 (입춘 기준)

    @property
    def is_jie(self) -> bool:
        """월의 시작이 되는 절(節) 여부 (짝수 인덱스)"""
        return self.index % 2 == 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "index": self.index,
            "longitude": self.longitude,
            "time": self.time.isoformat(timespec="minutes"),
            "year": self.year,
            "is_jie": self.is_jie,
        }


# 24절기 (입춘부터), 태양 황경, 2000년 기준 절입 시각 (월, 일, 시, 분)
# 小寒/大寒은 다음 해 1월
SOLAR_TERM_TABLE: List[Tuple[str, float, Tuple[int, int, int, int]]] = [
    ("立春", 315.0, (2, 4, 20, 32)),
    ("雨水", 330.0, (2, 19, 13, 3)),
    ("惊蛰", 345.0, (3, 5, 2, 9)),
    ("春分", 0.0, (3, 20, 13, 35)),
    ("清明", 15.0, (4, 4, 21, 3)),
    ("谷雨", 30.0, (4, 20, 4, 33)),
    ("立夏", 45.0, (5, 5, 14, 47)),
    ("小满", 60.0, (5, 21, 3, 37)),
    ("芒种", 75.0, (6, 5, 18, 52)),
    ("夏至", 90.0, (6, 21, 11, 32)),
    ("小暑", 105.0, (7, 7, 5, 5)),
    ("大暑", 120.0, (7, 22, 22, 17)),
    ("立秋", 135.0, (8, 7, 14, 54)),
    ("处暑", 150.0, (8, 23, 5, 35)),
    ("白露", 165.0, (9, 7, 17, 53)),
    ("秋分", 180.0, (9, 23, 3, 20)),
    ("寒露", 195.0, (10, 8, 9, 41)),
    ("霜降", 210.0, (10, 23, 12, 51)),
    ("立冬", 225.0, (11, 7, 13, 4)),
    ("小雪", 240.0, (11, 22, 10, 36)),
    ("大雪", 255.0, (12, 7, 6, 5)),
    ("冬至", 270.0, (12, 22, 0, 3)),
    ("小寒", 285.0, (1, 5, 17, 24)),
    ("大寒", 300.0, (1, 20, 10, 45)),
]

SOLAR_TERM_NAMES = [name for name, _, _ in SOLAR_TERM_TABLE]

BASE_YEAR = 2000

# 夏至부터 大雪까지 12절기 = 음둔, 나머지 = 양둔
YIN_HALF_TERMS = frozenset(SOLAR_TERM_NAMES[9:21])


def _base_instant(index: int) -> datetime:
    _, _, (month, day, hour, minute) = SOLAR_TERM_TABLE[index]
    year = BASE_YEAR + 1 if index >= 22 else BASE_YEAR
    return datetime(year, month, day, hour, minute)


def _formula_term_time(year: int, index: int) -> datetime:
    """기준 시각 + 경과 연수 × 회귀년 (월 넘김은 datetime이 처리)"""
    shifted = _base_instant(index) + timedelta(days=(year - BASE_YEAR) * TROPICAL_YEAR_DAYS)
    return shifted.replace(second=0, microsecond=0)


def _sun_longitude(dt_local: datetime) -> float:
    """ephem으로 태양 겉보기 황경 계산 (도, 당일 분점 기준 - J2000 아님)"""
    dt_utc = dt_local - timedelta(hours=UTC_OFFSET_HOURS)

    sun = ephem.Sun()
    observer = ephem.Observer()
    observer.date = dt_utc
    sun.compute(observer)

    apparent = ephem.Equatorial(sun.g_ra, sun.g_dec, epoch=observer.date)
    ecliptic = ephem.Ecliptic(apparent, epoch=observer.date)
    return math.degrees(ecliptic.lon)


def _refine_with_ephem(estimate: datetime, longitude: float, iterations: int = 6) -> datetime:
    """황경이 목표값에 도달하는 시각을 Newton 반복으로 찾음"""
    dt = estimate
    for _ in range(iterations):
        diff = (longitude - _sun_longitude(dt) + 180.0) % 360.0 - 180.0
        step = timedelta(days=diff / 360.0 * TROPICAL_YEAR_DAYS)
        dt = dt + step
        if abs(step.total_seconds()) < 30:
            break
    else:
        logger.warning(f"[SolarTerms] ephem 수렴 실패 ({longitude}°), 공식값 사용: {estimate}")
        return estimate
    return dt.replace(second=0, microsecond=0)


class SolarTermsEngine:
    """
    절기 엔진
    - 연도별 24절기 시각 계산
    - 출생일시가 어느 절기 구간에 속하는지 판정
    - 월지 / 입춘 보정 연도 반환
    """

    def __init__(self, method: Optional[str] = None):
        self._method = method
        self._cache: LRUCache = LRUCache(maxsize=512)
        self._lock = threading.Lock()

    @property
    def method(self) -> str:
        return self._method or get_settings().solar_term_method

    # ===== 연도별 절기 =====

    def year_solar_terms(self, year: int) -> List[SolarTerm]:
        """
        해당 연도의 24절기 (입춘 ~ 다음 해 대한)

        Returns:
            시간순 정렬된 SolarTerm 24개
        """
        if not 1 <= year <= 9998:
            raise InvalidInput(f"연도 범위 오류: {year}")

        method = self.method
        key = (year, method)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        terms = []
        for index, (name, longitude, _) in enumerate(SOLAR_TERM_TABLE):
            when = _formula_term_time(year, index)
            if method == "ephem":
                when = _refine_with_ephem(when, longitude)
            terms.append(SolarTerm(name, index, longitude, when, year))

        for prev, cur in zip(terms, terms[1:]):
            if cur.time <= prev.time:
                raise UnresolvedSolarTerm(f"{year}년 절기 순서 오류: {prev.name} ≥ {cur.name}")

        logger.debug(f"[SolarTerms] {year}년 절기 계산 ({method})")
        with self._lock:
            self._cache[key] = terms
        return list(terms)

    def _terms_around(self, dt: datetime) -> List[SolarTerm]:
        """전년/당년/다음 해 절기 (1~2월 경계 처리용)"""
        out: List[SolarTerm] = []
        for y in (dt.year - 1, dt.year, dt.year + 1):
            out.extend(self.year_solar_terms(y))
        return out

    # ===== 절기 판정 =====

    def solar_term_at(self, dt: datetime) -> Tuple[SolarTerm, str]:
        """
        현재 적용 중인 절기와 음둔/양둔 반환

        Returns:
            (절기, "阴遁" | "阳遁")
        """
        current = None
        for term in self._terms_around(dt):
            if term.time <= dt:
                current = term
            else:
                break

        if current is None:
            raise UnresolvedSolarTerm(f"절기 구간을 찾을 수 없음: {dt.isoformat()}")

        half = "阴遁" if current.name in YIN_HALF_TERMS else "阳遁"
        return current, half

    def month_branch_for(self, dt: datetime) -> Dict:
        """
        절(節) 기준 월지 판정

        Returns:
            {
                "term_name": 현재 월을 연 절기,
                "month_branch": 월지 (寅~丑),
                "month_index": 0=寅월, ..., 11=丑월,
                "lunar_month": 1=寅월, ..., 12=丑월,
                "term_year": 입춘 보정 연도,
            }
        """
        jie = None
        for term in self._terms_around(dt):
            if not term.is_jie:
                continue
            if term.time <= dt:
                jie = term
            else:
                break

        if jie is None:
            raise UnresolvedSolarTerm(f"월지 판정 실패: {dt.isoformat()}")

        month_index = jie.index // 2
        return {
            "term_name": jie.name,
            "term_time": jie.time,
            "month_branch": BRANCHES[(month_index + 2) % 12],
            "month_index": month_index,
            "lunar_month": month_index + 1,
            "term_year": jie.year,
        }

    def nearest_jie(self, dt: datetime, forward: bool = True) -> SolarTerm:
        """다음(forward) 또는 직전 절(節)"""
        jies = [t for t in self._terms_around(dt) if t.is_jie]
        if forward:
            for term in jies:
                if term.time > dt:
                    return term
        else:
            for term in reversed(jies):
                if term.time <= dt:
                    return term
        raise UnresolvedSolarTerm(f"인접 절기를 찾을 수 없음: {dt.isoformat()}")

    def term_context(self, dt: datetime, threshold_hours: Optional[int] = None) -> Dict:
        """
        현재/다음 절기 및 경계 여부

        경계: 가장 가까운 절(節)이 ±threshold_hours 이내
        - "near_lichun" | "near_term_change" | None
        """
        if threshold_hours is None:
            threshold_hours = get_settings().boundary_threshold_hours

        terms = self._terms_around(dt)
        current, half = self.solar_term_at(dt)
        position = next(i for i, t in enumerate(terms) if t is current)
        upcoming = terms[position + 1]

        prev_jie = self.nearest_jie(dt, forward=False)
        next_jie = self.nearest_jie(dt, forward=True)
        closest = min(
            (prev_jie, next_jie),
            key=lambda t: abs((dt - t.time).total_seconds())
        )
        is_boundary = abs((dt - closest.time).total_seconds()) <= threshold_hours * 3600
        reason = None
        if is_boundary:
            reason = "near_lichun" if closest.name == "立春" else "near_term_change"

        return {
            "current": current,
            "next": upcoming,
            "half": half,
            "days_from_current": round((dt - current.time).total_seconds() / 86400, 2),
            "days_to_next": round((upcoming.time - dt).total_seconds() / 86400, 2),
            "is_boundary": is_boundary,
            "boundary_reason": reason,
        }


# 싱글톤
solar_terms_engine = SolarTermsEngine()


def get_lichun_adjusted_year(dt: datetime) -> int:
    """입춘 보정된 연도 반환"""
    return solar_terms_engine.month_branch_for(dt)["term_year"]
