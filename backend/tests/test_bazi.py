"""
사주 계산 테스트 - 연/월/일/시주, 십신, 오행, 대운
"""
import pytest
from datetime import datetime

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mingli.config import get_settings
from mingli.services.bazi_engine import (
    BaziEngine,
    apply_solar_time,
    bazi_engine,
    lmt_correction,
)
from mingli.services.errors import InvalidInput
from mingli.services.ganji import parse_ganji
from mingli.services.wannianli import DAY_PILLAR_TABLE, formula_day_pillar


def ganji(pillar):
    return pillar.stem_branch.ganji


class TestPillars:
    """핵심 검증 케이스"""

    def test_1978_05_16_11h(self):
        """1978년 5월 16일 11시 → 戊午 丁巳 戊寅 戊午"""
        chart = bazi_engine.calculate(1978, 5, 16, 11, 0)

        assert ganji(chart.year_pillar) == "戊午", f"년주: got {ganji(chart.year_pillar)}"
        assert ganji(chart.month_pillar) == "丁巳", f"월주: got {ganji(chart.month_pillar)}"
        assert ganji(chart.day_pillar) == "戊寅", f"일주: got {ganji(chart.day_pillar)}"
        assert ganji(chart.hour_pillar) == "戊午", f"시주: got {ganji(chart.hour_pillar)}"

    def test_1990_01_15_before_lichun(self):
        """입춘 전 출생 → 전년도 연주, 丑월"""
        chart = bazi_engine.calculate(1990, 1, 15, 14, 30, longitude=116.4, latitude=39.9)

        assert ganji(chart.year_pillar) == "己巳"
        assert ganji(chart.month_pillar) == "丁丑"
        assert ganji(chart.day_pillar) == "庚辰"
        assert ganji(chart.hour_pillar) == "癸未"

    def test_late_zishi_uses_next_day_stem(self):
        """23시 야자시: 일주는 당일, 시간 천간은 다음 날(己巳) 기준"""
        chart = bazi_engine.calculate(1976, 3, 17, 23, 30)

        assert ganji(chart.day_pillar) == "戊辰"
        assert ganji(chart.hour_pillar) == "甲子"
        assert chart.hour_pillar.zishi_type == "late"

    def test_early_zishi_uses_same_day(self):
        """0시 조자시: 당일 일간 기준"""
        chart = bazi_engine.calculate(1988, 8, 8, 0, 18)

        assert ganji(chart.day_pillar) == "乙未"
        assert ganji(chart.hour_pillar) == "丙子"
        assert chart.hour_pillar.zishi_type == "early"

    def test_no_birth_time(self):
        chart = bazi_engine.calculate(1978, 5, 16)
        assert chart.hour_pillar is None
        assert len(chart.pillars) == 3
        assert chart.to_dict()["quality"]["has_birth_time"] is False

    def test_lichun_boundary_years(self):
        before = bazi_engine.calculate(2025, 2, 3, 12, 0)
        after = bazi_engine.calculate(2025, 2, 5, 12, 0)
        assert ganji(before.year_pillar) == "甲辰"
        assert ganji(after.year_pillar) == "乙巳"
        assert before.to_dict()["quality"]["boundary_reason"] == "near_lichun"

    def test_calendar_year_boundary(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "year_boundary", "calendar")
        chart = bazi_engine.calculate(2025, 2, 3, 12, 0)
        assert ganji(chart.year_pillar) == "乙巳"

    def test_day_pillar_source(self):
        assert bazi_engine.calculate(1988, 8, 8, 12).day_pillar.source == "wannianli"
        assert bazi_engine.calculate(1988, 8, 9, 12).day_pillar.source == "formula"

    @pytest.mark.parametrize("case", [
        {"year_stem": 0, "month": 1, "expected": "丙寅"},   # 甲년 寅월
        {"year_stem": 5, "month": 1, "expected": "丙寅"},   # 己년 寅월
        {"year_stem": 1, "month": 1, "expected": "戊寅"},   # 乙년 寅월
        {"year_stem": 4, "month": 1, "expected": "甲寅"},   # 戊년 寅월
        {"year_stem": 5, "month": 12, "expected": "丁丑"},  # 己년 丑월
        {"year_stem": 0, "month": 11, "expected": "丙子"},  # 甲년 子월
    ])
    def test_month_stem_rule(self, case):
        pillar = BaziEngine.month_pillar_from(case["year_stem"], case["month"])
        assert ganji(pillar) == case["expected"], \
            f"{case}: got {ganji(pillar)}"

    def test_year_pillar_cycle(self):
        assert ganji(BaziEngine.year_pillar(1984)) == "甲子"
        assert ganji(BaziEngine.year_pillar(2024)) == "甲辰"
        assert ganji(BaziEngine.year_pillar(1900)) == "庚子"


class TestValidation:
    @pytest.mark.parametrize("args", [
        (2023, 2, 30, 12, 0),
        (2023, 13, 1, 12, 0),
        (2023, 1, 1, 24, 0),
        (2023, 1, 1, 12, 60),
        (2023, 1, 1, -1, 0),
    ])
    def test_invalid_input(self, args):
        with pytest.raises(InvalidInput):
            bazi_engine.calculate(*args)


class TestSolarTime:
    def test_lmt_correction(self):
        assert lmt_correction(120.0) == 0
        assert lmt_correction(116.4) == pytest.approx(-14.4)
        assert lmt_correction(87.6) == pytest.approx(-129.6)

    def test_apply_solar_time(self):
        t = apply_solar_time(datetime(2000, 1, 1, 12, 0), 105.0)
        assert t == datetime(2000, 1, 1, 11, 0)

    def test_solar_time_moves_hour_pillar(self):
        """우루무치 13:30 → 진태양시 11:20 (午시)"""
        clock = bazi_engine.calculate(1990, 6, 1, 13, 30, longitude=87.6, use_solar_time=False)
        solar = bazi_engine.calculate(1990, 6, 1, 13, 30, longitude=87.6, use_solar_time=True)
        assert clock.hour_pillar.branch == "未"
        assert solar.hour_pillar.branch == "午"
        assert solar.to_dict()["quality"]["solar_time_applied"] is True

    def test_default_longitude_without_coordinates(self, monkeypatch):
        """경도 미입력 + 보정 켜짐 → default_longitude (90° = -120분)"""
        monkeypatch.setattr(get_settings(), "default_longitude", 90.0)
        chart = bazi_engine.calculate(1990, 6, 1, 13, 30, use_solar_time=True)
        assert chart.effective_time == datetime(1990, 6, 1, 11, 30)
        assert chart.hour_pillar.branch == "午"

    def test_default_longitude_at_meridian_is_noop(self):
        chart = bazi_engine.calculate(1990, 6, 1, 13, 30, use_solar_time=True)
        assert chart.effective_time == chart.birth


class TestTenGods:
    @pytest.mark.parametrize("case", [
        {"dm": "甲", "target": "甲", "expected": "比肩"},
        {"dm": "甲", "target": "乙", "expected": "劫财"},
        {"dm": "甲", "target": "丙", "expected": "食神"},
        {"dm": "甲", "target": "丁", "expected": "伤官"},
        {"dm": "甲", "target": "戊", "expected": "偏财"},
        {"dm": "甲", "target": "己", "expected": "正财"},
        {"dm": "甲", "target": "庚", "expected": "七杀"},
        {"dm": "甲", "target": "辛", "expected": "正官"},
        {"dm": "甲", "target": "壬", "expected": "偏印"},
        {"dm": "甲", "target": "癸", "expected": "正印"},
        {"dm": "乙", "target": "甲", "expected": "劫财"},
        {"dm": "乙", "target": "丙", "expected": "伤官"},
        {"dm": "乙", "target": "丁", "expected": "食神"},
        {"dm": "乙", "target": "戊", "expected": "正财"},
        {"dm": "乙", "target": "己", "expected": "偏财"},
        {"dm": "乙", "target": "庚", "expected": "正官"},
        {"dm": "乙", "target": "辛", "expected": "七杀"},
        {"dm": "乙", "target": "壬", "expected": "正印"},
        {"dm": "乙", "target": "癸", "expected": "偏印"},
        {"dm": "戊", "target": "丁", "expected": "正印"},
        {"dm": "癸", "target": "己", "expected": "七杀"},
    ])
    def test_relation(self, case):
        result = BaziEngine.ten_gods_relation(case["dm"], case["target"])
        assert result == case["expected"], f"{case['dm']}→{case['target']}: got {result}"

    def test_chart_ten_gods(self):
        chart = bazi_engine.calculate(1978, 5, 16, 11, 0)
        assert chart.ten_gods["day"] is None
        assert chart.ten_gods["year"] == "比肩"
        assert chart.ten_gods["month"] == "正印"
        assert chart.hidden_ten_gods["day"][0] == {"stem": "甲", "ten_god": "七杀"}


class TestElementStrength:
    @pytest.mark.parametrize("args", [
        (1978, 5, 16, 11, 0),
        (1990, 1, 15, 14, 30),
        (1988, 8, 8, 0, 18),
        (2000, 1, 1, None, 0),
    ])
    def test_percentages_near_100(self, args):
        chart = bazi_engine.calculate(*args)
        total = sum(chart.element_strength.percentages.values())
        assert 95 <= total <= 105, f"{args}: {chart.element_strength.percentages}"

    @pytest.mark.parametrize("month", range(1, 13))
    @pytest.mark.parametrize("hour", [0, 5, 11, 17, 23])
    def test_percentage_bounds_sweep(self, month, hour):
        chart = bazi_engine.calculate(1995, month, 14, hour, 30)
        percentages = chart.element_strength.percentages
        assert all(0 <= p <= 100 for p in percentages.values()), f"{month}월 {hour}시: {percentages}"
        assert 97 <= sum(percentages.values()) <= 103, f"{month}월 {hour}시: {percentages}"

    def test_counts(self):
        chart = bazi_engine.calculate(1978, 5, 16, 11, 0)
        strength = chart.element_strength
        assert sum(strength.counts.values()) == 8
        assert strength.counts["土"] == 3
        assert strength.counts["火"] == 4
        assert strength.strongest == "火"

    def test_weights(self):
        """甲子 단일 연주: 木 1.2, 水 1.0 + 지장간 癸 0.3"""
        pillar = BaziEngine.year_pillar(1984)
        strength = BaziEngine.element_strength([pillar])
        assert strength.strengths["木"] == pytest.approx(1.2)
        assert strength.strengths["水"] == pytest.approx(1.3)
        assert strength.weakest == "火"


class TestDecadeLuck:
    def test_direction(self):
        assert BaziEngine.luck_direction("戊", "male") == "forward"
        assert BaziEngine.luck_direction("戊", "female") == "backward"
        assert BaziEngine.luck_direction("己", "male") == "backward"
        assert BaziEngine.luck_direction("己", "female") == "forward"

    def test_forward_sequence(self):
        chart = bazi_engine.calculate(1978, 5, 16, 11, 0, gender="male")
        assert chart.luck_direction == "forward"
        assert len(chart.decade_luck) == 8
        assert chart.decade_luck[0].stem_branch.ganji == "戊午"
        assert chart.decade_luck[1].stem_branch.ganji == "己未"
        assert chart.luck_start_age >= 1

    def test_backward_sequence(self):
        chart = bazi_engine.calculate(1978, 5, 16, 11, 0, gender="female")
        assert chart.luck_direction == "backward"
        assert chart.decade_luck[0].stem_branch.ganji == "丙辰"

    def test_explicit_start_age(self):
        chart = bazi_engine.calculate(1978, 5, 16, 11, 0, gender="male", start_age=3)
        ages = [d.start_age for d in chart.decade_luck]
        assert ages == [3, 13, 23, 33, 43, 53, 63, 73]
        assert chart.decade_luck[0].start_year == 1981

    def test_no_gender_no_luck(self):
        chart = bazi_engine.calculate(1978, 5, 16, 11, 0)
        assert chart.decade_luck == []
        assert chart.to_dict()["decade_luck"] is None

    def test_start_age_from_term_distance(self):
        """1978-05-16 순행: 다음 절 芒种(6/6경)까지 약 21일 → 7세"""
        chart = bazi_engine.calculate(1978, 5, 16, 11, 0, gender="male")
        assert 6 <= chart.luck_start_age <= 8


class TestChartDict:
    def test_to_dict_shape(self):
        data = bazi_engine.calculate(1990, 1, 15, 14, 30, gender="male").to_dict()
        assert set(data["pillars"]) == {"year", "month", "day", "hour"}
        assert data["day_master"] == "庚"
        assert data["day_master_element"] == "金"
        assert data["solar_term"]["month_term"] == "小寒"
        assert data["pillars"]["day"]["source"] == "wannianli"


class TestDayPillarOverride:
    """만년력 테이블 값이 공식 계산보다 우선"""

    @pytest.fixture
    def patched_table(self, monkeypatch):
        monkeypatch.setitem(DAY_PILLAR_TABLE, (1988, 8, 9), parse_ganji("甲子"))

    def test_formula_differs(self):
        assert formula_day_pillar(1988, 8, 9).ganji == "丙申"

    def test_day_pillar_from_table(self, patched_table):
        chart = bazi_engine.calculate(1988, 8, 9, 12, 0)
        assert ganji(chart.day_pillar) == "甲子"
        assert chart.day_pillar.source == "wannianli"
        assert chart.day_master == "甲"

    def test_late_zishi_uses_tabulated_next_day(self, patched_table):
        """1988-08-08 23:30 → 다음 날 일간 甲 (테이블) 기준 甲子시"""
        chart = bazi_engine.calculate(1988, 8, 8, 23, 30)
        assert ganji(chart.day_pillar) == "乙未"
        assert ganji(chart.hour_pillar) == "甲子"
        assert chart.hour_pillar.zishi_type == "late"

    def test_late_zishi_without_override(self):
        chart = bazi_engine.calculate(1988, 8, 8, 23, 30)
        assert ganji(chart.hour_pillar) == "戊子"
