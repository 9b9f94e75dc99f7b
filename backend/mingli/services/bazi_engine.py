"""
사주(八字) 계산 엔진
- 연주/월주/일주/시주 (절기 기준 월 경계)
- 조자시(早子时) / 야자시(晚子时) 구분
- 십신, 오행 강약, 대운
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from mingli.config import get_settings
from mingli.services.errors import InvalidInput
from mingli.services.ganji import (
    ELEMENT_EN,
    ELEMENTS,
    STEMS,
    StemBranch,
    branch_element,
    ganji_ko,
    hidden_stems,
    hour_branch_index,
    stem_element,
    stem_polarity,
)
from mingli.services.solar_terms import SolarTermsEngine, solar_terms_engine
from mingli.services.wannianli import resolve_day_pillar

logger = logging.getLogger(__name__)


# 기둥 위치별 가중치 (년, 월, 일, 시)
STEM_WEIGHTS = [1.2, 1.5, 2.0, 1.0]
BRANCH_WEIGHTS = [1.0, 1.8, 1.5, 0.8]
HIDDEN_STEM_FACTOR = 0.3

# 십신: (대상 천간 - 일간 + 10) % 10
TEN_GODS_YANG = ["比肩", "劫财", "食神", "伤官", "偏财", "正财", "七杀", "正官", "偏印", "正印"]
# 음간 일간은 홀짝 관계가 뒤집힘
TEN_GODS_YIN = ["比肩", "伤官", "食神", "正财", "偏财", "正官", "七杀", "正印", "偏印", "劫财"]

DECADE_LUCK_COUNT = 8

POSITIONS = ["year", "month", "day", "hour"]


def lmt_correction(longitude: float, standard_meridian: float = 120.0) -> float:
    """
    진태양시(지방 평균시) 보정량 (분)

    중국 표준시는 동경 120° 기준. 서쪽일수록 시계 시간보다 이르다.
    예: 우루무치(87.6°E) → (87.6 - 120) * 4 = -129.6분
    """
    return (longitude - standard_meridian) * 4.0


def apply_solar_time(clock_time: datetime, longitude: float,
                     standard_meridian: float = 120.0) -> datetime:
    return clock_time + timedelta(minutes=lmt_correction(longitude, standard_meridian))


@dataclass
class Pillar:
    """사주 기둥 (년/월/일/시주)"""
    position: str
    stem_branch: StemBranch
    zishi_type: Optional[str] = None    # 시주 전용: "late" | "early" | None
    source: Optional[str] = None        # 일주 전용: "wannianli" | "formula"

    @property
    def stem(self) -> str:
        return self.stem_branch.stem

    @property
    def branch(self) -> str:
        return self.stem_branch.branch

    @property
    def element(self) -> str:
        return stem_element(self.stem)

    @property
    def branch_element(self) -> str:
        return branch_element(self.branch)

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "stem": self.stem,
            "branch": self.branch,
            "ganji": self.stem_branch.ganji,
            "ganji_ko": ganji_ko(self.stem_branch.stem_index, self.stem_branch.branch_index),
            "element": self.element,
            "branch_element": self.branch_element,
            "stem_index": self.stem_branch.stem_index,
            "branch_index": self.stem_branch.branch_index,
            "cycle_index": self.stem_branch.cycle_index,
            "hidden_stems": [
                {"stem": s, "weight": w, "element": stem_element(s)}
                for s, w in hidden_stems(self.branch)
            ],
            "zishi_type": self.zishi_type,
            "source": self.source,
        }


@dataclass
class ElementStrength:
    """오행 강약"""
    counts: Dict[str, int]
    strengths: Dict[str, float]
    percentages: Dict[str, int]
    total_strength: float
    strongest: str
    weakest: str

    def to_dict(self) -> dict:
        return {
            "counts": self.counts,
            "strengths": {k: round(v, 2) for k, v in self.strengths.items()},
            "percentages": self.percentages,
            "total_strength": round(self.total_strength, 2),
            "strongest": self.strongest,
            "weakest": self.weakest,
        }


@dataclass
class DecadeLuck:
    """대운 한 구간"""
    number: int
    stem_branch: StemBranch
    start_age: int
    end_age: int
    start_year: int
    end_year: int
    ten_god: str

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "ganji": self.stem_branch.ganji,
            "stem": self.stem_branch.stem,
            "branch": self.stem_branch.branch,
            "start_age": self.start_age,
            "end_age": self.end_age,
            "start_year": self.start_year,
            "end_year": self.end_year,
            "ten_god": self.ten_god,
        }


@dataclass
class BaziChart:
    """사주 원국 + 분석 결과"""
    birth: datetime                      # 입력 시각 (표준시)
    effective_time: datetime             # 진태양시 보정 후 시각
    has_birth_time: bool
    gender: Optional[str]
    longitude: Optional[float]
    latitude: Optional[float]
    year_pillar: Pillar
    month_pillar: Pillar
    day_pillar: Pillar
    hour_pillar: Optional[Pillar]
    solar_term: Dict
    ten_gods: Dict[str, Optional[str]] = field(default_factory=dict)
    hidden_ten_gods: Dict[str, List[Dict]] = field(default_factory=dict)
    element_strength: Optional[ElementStrength] = None
    luck_direction: Optional[str] = None
    luck_start_age: Optional[int] = None
    decade_luck: List[DecadeLuck] = field(default_factory=list)

    @property
    def pillars(self) -> List[Pillar]:
        out = [self.year_pillar, self.month_pillar, self.day_pillar]
        if self.hour_pillar is not None:
            out.append(self.hour_pillar)
        return out

    @property
    def day_master(self) -> str:
        return self.day_pillar.stem

    @property
    def day_master_element(self) -> str:
        return self.day_pillar.element

    def to_dict(self) -> dict:
        term = self.solar_term
        return {
            "birth": self.birth.isoformat(timespec="minutes"),
            "effective_time": self.effective_time.isoformat(timespec="minutes"),
            "gender": self.gender,
            "pillars": {p.position: p.to_dict() for p in self.pillars},
            "day_master": self.day_master,
            "day_master_element": self.day_master_element,
            "day_master_element_en": ELEMENT_EN[self.day_master_element],
            "day_master_polarity": stem_polarity(self.day_master),
            "ten_gods": self.ten_gods,
            "hidden_ten_gods": self.hidden_ten_gods,
            "element_strength": self.element_strength.to_dict() if self.element_strength else None,
            "decade_luck": {
                "direction": self.luck_direction,
                "start_age": self.luck_start_age,
                "periods": [d.to_dict() for d in self.decade_luck],
            } if self.decade_luck else None,
            "solar_term": {
                "current": term["current"].to_dict(),
                "next": term["next"].to_dict(),
                "half": term["half"],
                "days_from_current": term["days_from_current"],
                "days_to_next": term["days_to_next"],
                "month_term": term["month_term"],
            },
            "quality": {
                "has_birth_time": self.has_birth_time,
                "solar_term_boundary": term["is_boundary"],
                "boundary_reason": term["boundary_reason"],
                "day_pillar_source": self.day_pillar.source,
                "solar_time_applied": self.effective_time != self.birth,
            },
        }


def _validate(year: int, month: int, day: int, hour: Optional[int], minute: int) -> date:
    if hour is not None and not 0 <= hour <= 23:
        raise InvalidInput(f"시간 범위 오류: {hour} (0-23)")
    if not 0 <= minute <= 59:
        raise InvalidInput(f"분 범위 오류: {minute} (0-59)")
    try:
        return date(year, month, day)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"잘못된 날짜: {year}-{month}-{day} ({e})")


class BaziEngine:
    """
    사주 계산 엔진

    월주는 달력 월이 아니라 절(節) 입절 시각으로 결정한다.
    """

    def __init__(self, terms: Optional[SolarTermsEngine] = None):
        self.terms = terms or solar_terms_engine

    # ===== 연주 =====
    @staticmethod
    def year_pillar(year: int) -> Pillar:
        """
        연주 계산 (달력 연도 기준, 1984년 = 甲子년)

        입춘 보정이 필요하면 month_branch_for()의 term_year를 넘길 것
        """
        return Pillar("year", StemBranch((year - 4) % 10, (year - 4) % 12))

    # ===== 월주 =====
    @staticmethod
    def month_pillar_from(year_stem_index: int, lunar_month: int) -> Pillar:
        """
        연간 + 절기월 → 월주 (오호둔)

        lunar_month: 1=寅월 ... 12=丑월
        월간 = (연간 × 2 + 월지번호) % 10, 子·丑월은 12·13으로 계속 센다
        """
        month_number = lunar_month + 1
        stem_index = (year_stem_index * 2 + month_number) % 10
        return Pillar("month", StemBranch(stem_index, month_number % 12))

    def month_pillar(
        self,
        year: int,
        month: int,
        day: int,
        hour: int = 12,
        minute: int = 0,
        longitude: Optional[float] = None,
        latitude: Optional[float] = None,
    ) -> Pillar:
        """
        월주 계산

        절입 시각(표준시)과 비교하므로 경도/위도는 판정에 쓰이지 않는다.
        연간은 입춘 보정 연도 기준.
        """
        _validate(year, month, day, hour, minute)
        info = self.terms.month_branch_for(datetime(year, month, day, hour, minute))
        year_stem = (info["term_year"] - 4) % 10
        return self.month_pillar_from(year_stem, info["lunar_month"])

    # ===== 일주 =====
    @staticmethod
    def day_pillar(year: int, month: int, day: int) -> Pillar:
        """일주 (만년력 테이블 우선 → 공식)"""
        pair, source = resolve_day_pillar(year, month, day)
        return Pillar("day", pair, source=source)

    # ===== 시주 =====
    @staticmethod
    def hour_pillar(
        day_stem_index: int,
        hour: int,
        minute: int = 0,
        next_day_stem_index: Optional[int] = None,
    ) -> Pillar:
        """
        시주 계산

        - 23:00~23:59 야자시(晚子时): 일주는 당일, 시간 천간은 다음 날 일간 기준
        - 00:00~00:59 조자시(早子时): 당일 일간 기준
        시간 천간 = (일간 × 2 + 시지) % 10
        """
        if not 0 <= minute <= 59:
            raise InvalidInput(f"분 범위 오류: {minute} (0-59)")
        branch_index = hour_branch_index(hour)

        zishi_type = None
        base_stem = day_stem_index
        if hour == 23:
            zishi_type = "late"
            base_stem = next_day_stem_index if next_day_stem_index is not None else (day_stem_index + 1) % 10
        elif hour == 0:
            zishi_type = "early"

        stem_index = (base_stem * 2 + branch_index) % 10
        return Pillar("hour", StemBranch(stem_index, branch_index), zishi_type=zishi_type)

    # ===== 십신 =====
    @staticmethod
    def ten_gods_relation(day_master: str, target: str) -> str:
        """일간 대비 대상 천간의 십신"""
        dm = STEMS.index(day_master)
        diff = (STEMS.index(target) - dm + 10) % 10
        table = TEN_GODS_YANG if dm % 2 == 0 else TEN_GODS_YIN
        return table[diff]

    # ===== 오행 강약 =====
    @staticmethod
    def element_strength(pillars: List[Pillar]) -> ElementStrength:
        """
        오행 강약

        천간/지지는 기둥 위치별 가중치, 지장간은 0.3배.
        백분율은 각각 반올림하므로 합이 정확히 100이 아닐 수 있다.
        """
        counts = {e: 0 for e in ELEMENTS}
        strengths = {e: 0.0 for e in ELEMENTS}

        for p in pillars:
            i = POSITIONS.index(p.position)
            counts[p.element] += 1
            strengths[p.element] += STEM_WEIGHTS[i]

            counts[p.branch_element] += 1
            strengths[p.branch_element] += BRANCH_WEIGHTS[i]

            for stem, weight in hidden_stems(p.branch):
                strengths[stem_element(stem)] += weight * HIDDEN_STEM_FACTOR

        total = sum(strengths.values())
        percentages = {
            e: int(round(strengths[e] / total * 100)) if total else 0
            for e in ELEMENTS
        }

        strongest, weakest = "木", "木"
        max_strength, min_strength = 0.0, float("inf")
        for e in ELEMENTS:
            if strengths[e] > max_strength:
                strongest, max_strength = e, strengths[e]
            if strengths[e] < min_strength:
                weakest, min_strength = e, strengths[e]

        return ElementStrength(counts, strengths, percentages, total, strongest, weakest)

    # ===== 대운 =====
    @staticmethod
    def luck_direction(year_stem: str, gender: str) -> str:
        """양남음녀 순행, 음남양녀 역행"""
        year_yang = stem_polarity(year_stem) == "阳"
        is_male = gender == "male"
        return "forward" if (is_male and year_yang) or (not is_male and not year_yang) else "backward"

    def luck_start_age(self, birth: datetime, direction: str) -> int:
        """출생 시각 ~ 인접 절(節)까지 일수 / 3 (3일 = 1년)"""
        jie = self.terms.nearest_jie(birth, forward=(direction == "forward"))
        days = abs((jie.time - birth).total_seconds()) / 86400
        return max(1, int(round(days / 3)))

    def decade_luck_sequence(
        self,
        chart: BaziChart,
        gender: str,
        start_age: Optional[int] = None,
    ) -> Tuple[str, int, List[DecadeLuck]]:
        """
        대운 8개 (월주에서 순행/역행)

        Returns:
            (방향, 시작 나이, 대운 리스트)
        """
        direction = self.luck_direction(chart.year_pillar.stem, gender)
        if start_age is None:
            start_age = self.luck_start_age(chart.birth, direction)

        step = 1 if direction == "forward" else -1
        birth_year = chart.birth.year
        periods = []
        for i in range(DECADE_LUCK_COUNT):
            pair = chart.month_pillar.stem_branch.shift(step * (i + 1))
            age = start_age + i * 10
            periods.append(DecadeLuck(
                number=i + 1,
                stem_branch=pair,
                start_age=age,
                end_age=age + 9,
                start_year=birth_year + age,
                end_year=birth_year + age + 9,
                ten_god=self.ten_gods_relation(chart.day_master, pair.stem),
            ))
        return direction, start_age, periods

    # ===== 통합 계산 =====
    def calculate(
        self,
        year: int,
        month: int,
        day: int,
        hour: Optional[int] = None,
        minute: int = 0,
        gender: Optional[str] = None,
        longitude: Optional[float] = None,
        latitude: Optional[float] = None,
        use_solar_time: Optional[bool] = None,
        start_age: Optional[int] = None,
    ) -> BaziChart:
        """
        사주 계산

        Args:
            year, month, day: 양력 생년월일
            hour: 출생 시 (0-23), None이면 시주 생략 (월 판정은 12시 기준)
            minute: 출생 분
            gender: "male" | "female", None이면 대운 생략
            longitude, latitude: 출생지 좌표 (경도 미입력시 default_longitude로 보정)
            use_solar_time: 진태양시 보정 (None이면 설정값)
            start_age: 대운 시작 나이 (None이면 절기 거리로 계산)
        """
        settings = get_settings()
        _validate(year, month, day, hour, minute)

        has_time = hour is not None
        birth = datetime(year, month, day, hour if has_time else 12, minute)

        if use_solar_time is None:
            use_solar_time = settings.use_solar_time
        effective = birth
        if use_solar_time and has_time:
            lon = longitude if longitude is not None else settings.default_longitude
            effective = apply_solar_time(birth, lon, settings.standard_meridian)
            logger.debug(f"[Bazi] 진태양시 보정: {birth} → {effective}")

        # 1. 절기 → 월지, 입춘 보정 연도
        month_info = self.terms.month_branch_for(birth)
        context = self.terms.term_context(birth)
        context["month_term"] = month_info["term_name"]

        # 2. 연주
        pillar_year = month_info["term_year"] if settings.year_boundary == "lichun" else year
        yp = self.year_pillar(pillar_year)

        # 3. 월주
        mp = self.month_pillar_from(yp.stem_branch.stem_index, month_info["lunar_month"])

        # 4. 일주 (보정 시각의 날짜)
        dp = self.day_pillar(effective.year, effective.month, effective.day)

        # 5. 시주
        hp = None
        if has_time:
            next_stem = None
            if effective.hour == 23:
                nd = effective.date() + timedelta(days=1)
                next_stem = self.day_pillar(nd.year, nd.month, nd.day).stem_branch.stem_index
            hp = self.hour_pillar(dp.stem_branch.stem_index, effective.hour, effective.minute, next_stem)

        chart = BaziChart(
            birth=birth,
            effective_time=effective,
            has_birth_time=has_time,
            gender=gender,
            longitude=longitude,
            latitude=latitude,
            year_pillar=yp,
            month_pillar=mp,
            day_pillar=dp,
            hour_pillar=hp,
            solar_term=context,
        )

        # 6. 십신
        chart.ten_gods = {
            p.position: (None if p.position == "day" else self.ten_gods_relation(chart.day_master, p.stem))
            for p in chart.pillars
        }
        chart.hidden_ten_gods = {
            p.position: [
                {"stem": s, "ten_god": self.ten_gods_relation(chart.day_master, s)}
                for s, _ in hidden_stems(p.branch)
            ]
            for p in chart.pillars
        }

        # 7. 오행
        chart.element_strength = self.element_strength(chart.pillars)

        # 8. 대운
        if gender in ("male", "female"):
            direction, age, periods = self.decade_luck_sequence(chart, gender, start_age)
            chart.luck_direction = direction
            chart.luck_start_age = age
            chart.decade_luck = periods

        logger.debug(
            f"[Bazi] {year}-{month}-{day} {hour}:{minute:02d} → "
            f"{yp.stem_branch.ganji} {mp.stem_branch.ganji} {dp.stem_branch.ganji} "
            f"{hp.stem_branch.ganji if hp else '-'}"
        )
        return chart


# 싱글톤
bazi_engine = BaziEngine()
