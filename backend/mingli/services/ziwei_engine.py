"""
자미두수(紫微斗数) 排盘 엔진
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
- 사주 결과를 받아 음력 정보 계산 (lunar_python)
- 명궁/신궁, 오행국
- 14주성, 육길성, 육살성 배치
- 사화, 묘왕리함, 대한(大限)
- 궁간(오호둔), 대한 / 유년 / 유월 사화
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from lunar_python import Solar

from mingli.config import get_settings
from mingli.services.bazi_engine import BaziChart, BaziEngine, bazi_engine
from mingli.services.errors import InvalidInput
from mingli.services.ganji import BRANCHES, STEMS, StemBranch, from_indices, hour_branch_index, parse_ganji
from mingli.services.ziwei_tables import (
    BRIGHTNESS,
    BRIGHTNESS_SCORE,
    BUREAU_BY_MING_BRANCH,
    HUO_LING_START,
    KUI_YUE,
    LUCKY_STARS,
    LUCUN,
    MAIN_STARS,
    PALACE_NAMES,
    SIHUA,
    SIHUA_KINDS,
    SIHUA_LEVELS,
    TIANFU_SERIES,
    UNLUCKY_STARS,
    ZIWEI_SERIES,
    ZIWEI_TABLE,
)

logger = logging.getLogger(__name__)

MAJOR_PERIOD_COUNT = 12


@dataclass
class LunarInfo:
    """음력 정보"""
    year: int
    month: int                  # 1~12 (윤달은 본달 번호)
    day: int                    # 1~30
    is_leap_month: bool
    year_stem: str
    year_branch: str
    hour_branch_index: int
    mode: str                   # "lunar" | "gregorian"
    label: str = ""

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "is_leap_month": self.is_leap_month,
            "year_ganzhi": self.year_stem + self.year_branch,
            "hour_branch": BRANCHES[self.hour_branch_index],
            "mode": self.mode,
            "label": self.label,
        }


@dataclass
class Palace:
    """십이궁 중 하나"""
    index: int                  # 명궁 기준 순번 (0=命宫)
    branch_index: int
    name: str
    main_stars: List[str] = field(default_factory=list)
    lucky_stars: List[str] = field(default_factory=list)
    unlucky_stars: List[str] = field(default_factory=list)
    is_shen_gong: bool = False
    stem_branch: Optional[StemBranch] = None    # 궁간지 (오호둔)

    @property
    def branch(self) -> str:
        return BRANCHES[self.branch_index]

    @property
    def stem(self) -> Optional[str]:
        return self.stem_branch.stem if self.stem_branch else None

    @property
    def all_stars(self) -> List[str]:
        return self.main_stars + self.lucky_stars + self.unlucky_stars

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "name": self.name,
            "branch": self.branch,
            "branch_index": self.branch_index,
            "stem": self.stem,
            "ganzhi": self.stem_branch.ganji if self.stem_branch else None,
            "main_stars": self.main_stars,
            "lucky_stars": self.lucky_stars,
            "unlucky_stars": self.unlucky_stars,
            "star_count": len(self.all_stars),
            "brightness": {
                star: star_brightness(star, self.branch_index) for star in self.all_stars
            },
            "main_star_score": sum(
                BRIGHTNESS_SCORE[star_brightness(s, self.branch_index)] for s in self.main_stars
            ),
            "is_shen_gong": self.is_shen_gong,
        }


@dataclass
class ZiweiChart:
    """자미두수 명반"""
    bazi: BaziChart
    lunar: LunarInfo
    ming_gong: int
    shen_gong: int
    bureau_name: str
    bureau_number: int
    bureau_element: str
    palaces: List[Palace]
    star_positions: Dict[str, int]
    four_transformations: List[Dict]
    major_periods: List[Dict]
    flow: Optional[Dict] = None     # 유년/유월 사화 (요청시)

    def main_star_count(self) -> int:
        return sum(len(p.main_stars) for p in self.palaces)

    def palace_of(self, star: str) -> Optional[Palace]:
        branch = self.star_positions.get(star)
        if branch is None:
            return None
        return next(p for p in self.palaces if p.branch_index == branch)

    def to_dict(self) -> dict:
        return {
            "bazi": self.bazi.to_dict(),
            "lunar": self.lunar.to_dict(),
            "ming_gong": {"index": self.ming_gong, "branch": BRANCHES[self.ming_gong]},
            "shen_gong": {"index": self.shen_gong, "branch": BRANCHES[self.shen_gong]},
            "bureau": {
                "name": self.bureau_name,
                "number": self.bureau_number,
                "element": self.bureau_element,
            },
            "palaces": [p.to_dict() for p in self.palaces],
            "four_transformations": self.four_transformations,
            "major_periods": self.major_periods,
            "flow": self.flow,
        }


def star_brightness(star: str, branch_index: int) -> str:
    """묘왕리함 (테이블에 없는 별은 得)"""
    row = BRIGHTNESS.get(star)
    return row[branch_index] if row else "得"


class ZiweiEngine:
    """
    자미두수 엔진

    사주 결과(BaziChart)를 재사용한다. 모든 별의 위치는
    {국수, 음력 일, 음력 월, 시지, 연간/연지}의 테이블 함수.
    """

    def __init__(self, bazi: Optional[BaziEngine] = None):
        self.bazi = bazi or bazi_engine

    # ===== 음력 =====

    def lunar_info(self, chart: BaziChart, mode: Optional[str] = None) -> LunarInfo:
        """
        음력 변환

        - lunar: lunar_python으로 실제 음력 변환
        - gregorian: 양력 월/일을 그대로 음력처럼 사용 (일은 30으로 제한)
        """
        mode = mode or get_settings().ziwei_lunar_mode
        t = chart.effective_time
        h = hour_branch_index(t.hour)

        if mode == "gregorian":
            return LunarInfo(
                year=t.year,
                month=t.month,
                day=min(t.day, 30),
                is_leap_month=False,
                year_stem=chart.year_pillar.stem,
                year_branch=chart.year_pillar.branch,
                hour_branch_index=h,
                mode=mode,
                label=f"{t.year}年{t.month}月{t.day}日",
            )

        lunar = Solar.fromYmdHms(t.year, t.month, t.day, t.hour, t.minute, 0).getLunar()
        month = lunar.getMonth()
        return LunarInfo(
            year=lunar.getYear(),
            month=abs(month),
            day=lunar.getDay(),
            is_leap_month=month < 0,
            year_stem=lunar.getYearGan(),
            year_branch=lunar.getYearZhi(),
            hour_branch_index=h,
            mode="lunar",
            label=f"{lunar.getYearInGanZhi()}年 {lunar.getMonthInChinese()}月{lunar.getDayInChinese()}",
        )

    # ===== 명궁 / 신궁 / 오행국 =====

    @staticmethod
    def ming_gong_index(lunar_month: int, hour_index: int) -> int:
        """명궁 = 寅 + 월 - 시"""
        return (2 + lunar_month - hour_index + 12) % 12

    @staticmethod
    def shen_gong_index(lunar_month: int, hour_index: int) -> int:
        """신궁 = 亥 + 월 + 시"""
        return (11 + lunar_month + hour_index) % 12

    @staticmethod
    def bureau(ming_index: int):
        """(국 이름, 국수, 오행)"""
        return BUREAU_BY_MING_BRANCH[ming_index]

    # ===== 별 배치 =====

    @staticmethod
    def main_star_positions(bureau_number: int, lunar_day: int) -> Dict[str, int]:
        """14주성 지지 인덱스"""
        if not 1 <= lunar_day <= 30:
            raise InvalidInput(f"음력 일 범위 오류: {lunar_day}")

        ziwei = ZIWEI_TABLE[bureau_number][lunar_day]
        tianfu = (4 - ziwei) % 12

        positions = {}
        for name, offset in ZIWEI_SERIES:
            positions[name] = (ziwei + offset) % 12
        for name, offset in TIANFU_SERIES:
            positions[name] = (tianfu + offset) % 12
        return positions

    @staticmethod
    def lucky_star_positions(hour_index: int, lunar_month: int, year_stem: str) -> Dict[str, int]:
        """육길성: 문창/문곡(시), 좌보/우필(월), 천괴/천월(연간)"""
        kui, yue = KUI_YUE[year_stem]
        return {
            "文昌": (10 - hour_index) % 12,
            "文曲": (4 + hour_index) % 12,
            "左辅": (3 + lunar_month) % 12,
            "右弼": (11 - lunar_month) % 12,
            "天魁": kui,
            "天钺": yue,
        }

    @staticmethod
    def unlucky_star_positions(hour_index: int, year_stem: str, year_branch: str) -> Dict[str, int]:
        """육살성: 경양/타라(녹존), 화성/영성(연지+시), 지공/지겁(시)"""
        lucun = LUCUN[year_stem]
        huo, ling = HUO_LING_START[year_branch]
        return {
            "擎羊": (lucun + 1) % 12,
            "陀罗": (lucun - 1) % 12,
            "火星": (huo + hour_index) % 12,
            "铃星": (ling + hour_index) % 12,
            "地空": (11 - hour_index) % 12,
            "地劫": (11 + hour_index) % 12,
        }

    # ===== 궁간 / 사화 / 대한 =====

    @staticmethod
    def palace_stem(year_stem: str, branch_index: int) -> StemBranch:
        """궁간지 (오호둔: 甲己년 寅궁 = 丙寅, 寅부터 순행)"""
        start = (STEMS.index(year_stem) * 2 + 2) % 10
        return from_indices(start + (branch_index - 2) % 12, branch_index)

    @staticmethod
    def four_transformations(stem: str, positions: Optional[Dict[str, int]] = None,
                             ming_index: int = 0) -> List[Dict]:
        """사화 (positions를 주면 별이 든 궁/지지 포함)"""
        stars = SIHUA[stem]
        result = []
        for (kind, label, meaning), star in zip(SIHUA_KINDS, stars):
            item = {"kind": kind, "label": label, "star": star, "meaning": meaning}
            if positions is not None:
                branch = positions.get(star)
                item["palace"] = PALACE_NAMES[(branch - ming_index) % 12] if branch is not None else None
                item["branch"] = BRANCHES[branch] if branch is not None else None
            result.append(item)
        return result

    def sihua_layer(self, level: str, pair: StemBranch, positions: Dict[str, int], ming_index: int) -> Dict:
        return {
            "level": level,
            "label": SIHUA_LEVELS[level],
            "stem": pair.stem,
            "ganzhi": pair.ganji,
            "transformations": self.four_transformations(pair.stem, positions, ming_index),
        }

    def major_periods(self, ming_index: int, bureau_number: int, gender: Optional[str], birth_year: int,
                      year_stem: str, positions: Dict[str, int]) -> List[Dict]:
        """
        대한 12개 (국수 나이부터 10년씩)

        남자 순행, 여자 역행 - 사주 대운과 방향 규칙이 다르다.
        성별이 없으면 생략. 각 대한은 궁간으로 대한사화를 가진다.
        """
        if gender not in ("male", "female"):
            return []

        direction = 1 if gender == "male" else -1
        periods = []
        for i in range(MAJOR_PERIOD_COUNT):
            branch = (ming_index + direction * i) % 12
            start_age = bureau_number + i * 10
            pair = self.palace_stem(year_stem, branch)
            periods.append({
                "sequence": i + 1,
                "palace_name": PALACE_NAMES[(branch - ming_index) % 12],
                "branch": BRANCHES[branch],
                "stem": pair.stem,
                "ganzhi": pair.ganji,
                "start_age": start_age,
                "end_age": start_age + 9,
                "start_year": birth_year + start_age,
                "end_year": birth_year + start_age + 9,
                "sihua": self.four_transformations(pair.stem, positions, ming_index),
            })
        return periods

    def flow_layers(self, chart: ZiweiChart, year: int, month: Optional[int] = None) -> Dict:
        """
        대한 / 유년 / 유월 사화

        Args:
            year: 유년 (양력 연도, 연간 = (year - 4) % 10)
            month: 유월 음력 월 1~12 (1=寅월), 월간은 유년 연간의 오호둔
        """
        if not 1 <= year <= 9998:
            raise InvalidInput(f"유년 범위 오류: {year}")
        if month is not None and not 1 <= month <= 12:
            raise InvalidInput(f"유월 범위 오류: {month} (1-12)")

        positions, ming = chart.star_positions, chart.ming_gong
        layers = []

        current = next(
            (p for p in chart.major_periods if p["start_year"] <= year <= p["end_year"]), None
        )
        if current is not None:
            layers.append(self.sihua_layer("decade", parse_ganji(current["ganzhi"]), positions, ming))

        year_pair = BaziEngine.year_pillar(year).stem_branch
        layers.append(self.sihua_layer("year", year_pair, positions, ming))

        if month is not None:
            month_pair = BaziEngine.month_pillar_from(year_pair.stem_index, month).stem_branch
            layers.append(self.sihua_layer("month", month_pair, positions, ming))

        return {
            "year": year,
            "month": month,
            "current_period": current["sequence"] if current else None,
            "layers": layers,
        }

    # ===== 통합 =====

    def calculate(self, chart: BaziChart, mode: Optional[str] = None,
                  flow_year: Optional[int] = None, flow_month: Optional[int] = None) -> ZiweiChart:
        if flow_month is not None and flow_year is None:
            raise InvalidInput("유월은 유년과 함께 지정해야 합니다")

        lunar = self.lunar_info(chart, mode)
        h = lunar.hour_branch_index

        ming = self.ming_gong_index(lunar.month, h)
        shen = self.shen_gong_index(lunar.month, h)
        bureau_name, bureau_number, bureau_element = self.bureau(ming)

        main = self.main_star_positions(bureau_number, lunar.day)
        lucky = self.lucky_star_positions(h, lunar.month, lunar.year_stem)
        unlucky = self.unlucky_star_positions(h, lunar.year_stem, lunar.year_branch)

        palaces = []
        for i, name in enumerate(PALACE_NAMES):
            branch = (ming + i) % 12
            palaces.append(Palace(
                index=i,
                branch_index=branch,
                name=name,
                main_stars=[s for s in MAIN_STARS if main[s] == branch],
                lucky_stars=[s for s in LUCKY_STARS if lucky[s] == branch],
                unlucky_stars=[s for s in UNLUCKY_STARS if unlucky[s] == branch],
                is_shen_gong=(branch == shen),
                stem_branch=self.palace_stem(lunar.year_stem, branch),
            ))

        positions = {**main, **lucky, **unlucky}

        result = ZiweiChart(
            bazi=chart,
            lunar=lunar,
            ming_gong=ming,
            shen_gong=shen,
            bureau_name=bureau_name,
            bureau_number=bureau_number,
            bureau_element=bureau_element,
            palaces=palaces,
            star_positions=positions,
            four_transformations=self.four_transformations(lunar.year_stem, positions, ming),
            major_periods=self.major_periods(
                ming, bureau_number, chart.gender, chart.birth.year, lunar.year_stem, positions
            ),
        )
        if flow_year is not None:
            result.flow = self.flow_layers(result, flow_year, flow_month)

        logger.debug(
            f"[Ziwei] 명궁 {BRANCHES[ming]} 신궁 {BRANCHES[shen]} {bureau_name} "
            f"紫微@{BRANCHES[main['紫微']]} ({lunar.mode})"
        )
        return result

    def calculate_from_birth(self, year: int, month: int, day: int, hour: Optional[int] = None,
                             minute: int = 0, gender: Optional[str] = None,
                             longitude: Optional[float] = None, latitude: Optional[float] = None,
                             use_solar_time: Optional[bool] = None,
                             mode: Optional[str] = None, flow_year: Optional[int] = None,
                             flow_month: Optional[int] = None) -> ZiweiChart:
        chart = self.bazi.calculate(
            year, month, day, hour, minute, gender,
            longitude=longitude, latitude=latitude, use_solar_time=use_solar_time,
        )
        return self.calculate(chart, mode, flow_year, flow_month)


# 싱글톤
ziwei_engine = ZiweiEngine()

