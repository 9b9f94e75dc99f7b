"""
자미두수 排盘 테스트
"""
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mingli.services.errors import InvalidInput
from mingli.services.ziwei_engine import ZiweiEngine, star_brightness, ziwei_engine
from mingli.services.ziwei_tables import (
    LUCKY_STARS,
    MAIN_STARS,
    PALACE_NAMES,
    UNLUCKY_STARS,
    ZIWEI_TABLE,
)


class TestZiweiTable:
    """자미성 위치 (초하루 / 초이틀 기준점)"""

    @pytest.mark.parametrize("bureau,day,expected", [
        (2, 1, 1),    # 水二局 初一 → 丑
        (2, 2, 2),    # 水二局 初二 → 寅
        (3, 1, 4),    # 木三局 初一 → 辰
        (4, 1, 11),   # 金四局 初一 → 亥
        (5, 1, 6),    # 土五局 初一 → 午
        (6, 1, 9),    # 火六局 初一 → 酉
        (6, 30, 6),   # 火六局 三十 → 午
        (2, 30, 4),   # 水二局 三十 → 辰
    ])
    def test_anchor(self, bureau, day, expected):
        assert ZIWEI_TABLE[bureau][day] == expected, \
            f"{bureau}국 {day}일: Expected {expected}, got {ZIWEI_TABLE[bureau][day]}"

    def test_table_complete(self):
        for bureau in (2, 3, 4, 5, 6):
            assert sorted(ZIWEI_TABLE[bureau]) == list(range(1, 31))
            assert all(0 <= v < 12 for v in ZIWEI_TABLE[bureau].values())


class TestPalaces:
    @pytest.mark.parametrize("month,hour,expected", [
        (1, 0, 3),    # 정월 子시 → 卯
        (1, 7, 8),    # 정월 未시 → 申
        (12, 0, 2),   # 12월 子시 → 寅
        (6, 6, 2),
    ])
    def test_ming_gong(self, month, hour, expected):
        assert ZiweiEngine.ming_gong_index(month, hour) == expected

    def test_shen_gong(self):
        assert ZiweiEngine.shen_gong_index(1, 0) == 0
        assert ZiweiEngine.shen_gong_index(1, 7) == 7

    @pytest.mark.parametrize("ming,expected", [
        (0, ("水二局", 2)), (2, ("木三局", 3)), (5, ("火六局", 6)),
        (8, ("金四局", 4)), (10, ("土五局", 5)),
    ])
    def test_bureau(self, ming, expected):
        name, number, _ = ZiweiEngine.bureau(ming)
        assert (name, number) == expected

    def test_tianfu_mirror(self):
        positions = ZiweiEngine.main_star_positions(2, 1)
        assert positions["紫微"] == 1
        assert positions["天府"] == 3
        assert positions["天机"] == 0
        assert positions["破军"] == (3 + 10) % 12

    @pytest.mark.parametrize("bureau,day", [(2, 1), (4, 15), (6, 30)])
    def test_sun_follows_ziwei_series(self, bureau, day):
        """太阳 = 紫微 - 3 (음력 일과 무관)"""
        positions = ZiweiEngine.main_star_positions(bureau, day)
        assert positions["太阳"] == (positions["紫微"] - 3) % 12

    def test_lunar_day_out_of_range(self):
        with pytest.raises(InvalidInput):
            ZiweiEngine.main_star_positions(2, 31)


class TestFullChart:
    """1990-01-15 14:30 남 (양력 월일 모드: 1월 15일 未시)"""

    @pytest.fixture
    def chart(self):
        return ziwei_engine.calculate_from_birth(1990, 1, 15, 14, 30, gender="male", mode="gregorian")

    def test_ming_and_bureau(self, chart):
        assert chart.ming_gong == 8
        assert chart.shen_gong == 7
        assert chart.bureau_name == "金四局"
        assert chart.star_positions["紫微"] == 4
        assert chart.star_positions["天府"] == 0

    def test_fourteen_main_stars_placed_once(self, chart):
        assert chart.main_star_count() == 14
        placed = [s for p in chart.palaces for s in p.main_stars]
        assert sorted(placed) == sorted(MAIN_STARS)

    def test_palace_rotation(self, chart):
        assert chart.palaces[0].name == "命宫"
        assert chart.palaces[0].branch_index == chart.ming_gong
        for i, palace in enumerate(chart.palaces):
            assert palace.name == PALACE_NAMES[i]
            assert palace.branch_index == (chart.ming_gong + i) % 12
        assert sum(p.is_shen_gong for p in chart.palaces) == 1

    def test_auxiliary_stars(self, chart):
        lucky = [s for p in chart.palaces for s in p.lucky_stars]
        unlucky = [s for p in chart.palaces for s in p.unlucky_stars]
        assert sorted(lucky) == sorted(LUCKY_STARS)
        assert sorted(unlucky) == sorted(UNLUCKY_STARS)

    def test_four_transformations(self, chart):
        """己년: 武曲化禄 贪狼化权 天梁化科 文曲化忌"""
        stars = [t["star"] for t in chart.four_transformations]
        assert stars == ["武曲", "贪狼", "天梁", "文曲"]
        for t in chart.four_transformations:
            assert t["palace"] in PALACE_NAMES

    def test_major_periods_forward(self, chart):
        periods = chart.major_periods
        assert len(periods) == 12
        assert periods[0]["start_age"] == 4
        assert periods[0]["palace_name"] == "命宫"
        assert periods[1]["palace_name"] == "兄弟宫"
        assert periods[0]["start_year"] == 1994

    def test_to_dict(self, chart):
        data = chart.to_dict()
        assert data["ming_gong"]["branch"] == "申"
        assert data["bureau"]["number"] == 4
        assert len(data["palaces"]) == 12
        assert data["lunar"]["mode"] == "gregorian"


class TestLunarMode:
    def test_real_lunar_conversion(self):
        """1990-01-15 = 음력 己巳년 12월 19일"""
        chart = ziwei_engine.calculate_from_birth(1990, 1, 15, 14, 30, mode="lunar")
        assert chart.lunar.month == 12
        assert chart.lunar.day == 19
        assert chart.lunar.year_stem == "己"
        assert chart.lunar.year_branch == "巳"
        assert chart.lunar.is_leap_month is False
        assert chart.main_star_count() == 14

    def test_female_periods_backward(self):
        chart = ziwei_engine.calculate_from_birth(1990, 1, 15, 14, 30, gender="female", mode="gregorian")
        assert chart.major_periods[1]["palace_name"] == "父母宫"


class TestBrightness:
    def test_known_brightness(self):
        assert star_brightness("紫微", 6) == "庙"
        assert star_brightness("太阳", 0) == "陷"
        assert star_brightness("地空", 3) == "陷"

    def test_unknown_star_defaults(self):
        assert star_brightness("不存在", 0) == "得"


class TestPalaceStems:
    """궁간지 (오호둔)"""

    @pytest.mark.parametrize("year_stem,branch,expected", [
        ("甲", 2, "丙寅"), ("己", 2, "丙寅"),
        ("乙", 2, "戊寅"), ("戊", 2, "甲寅"),
        ("甲", 0, "丙子"), ("甲", 1, "丁丑"),
        ("己", 8, "壬申"), ("癸", 11, "癸亥"),
    ])
    def test_palace_stem(self, year_stem, branch, expected):
        assert ZiweiEngine.palace_stem(year_stem, branch).ganji == expected

    def test_chart_palaces_carry_stems(self):
        chart = ziwei_engine.calculate_from_birth(1990, 1, 15, 14, 30, gender="male", mode="gregorian")
        assert chart.palaces[0].stem_branch.ganji == "壬申"
        for palace in chart.palaces:
            assert palace.stem_branch.branch_index == palace.branch_index
        assert chart.to_dict()["palaces"][0]["ganzhi"] == "壬申"


class TestSihuaLayers:
    """생년 / 대한 / 유년 / 유월 사화 (1990-01-15 14:30 남, 己년 명궁 申)"""

    @pytest.fixture
    def chart(self):
        return ziwei_engine.calculate_from_birth(
            1990, 1, 15, 14, 30, gender="male", mode="gregorian", flow_year=2024, flow_month=1,
        )

    @staticmethod
    def stars(transformations):
        return [t["star"] for t in transformations]

    def test_decade_stems_and_sihua(self, chart):
        first, second = chart.major_periods[0], chart.major_periods[1]
        assert first["ganzhi"] == "壬申"
        assert self.stars(first["sihua"]) == ["天梁", "紫微", "左辅", "武曲"]
        assert second["ganzhi"] == "癸酉"
        assert self.stars(second["sihua"]) == ["破军", "巨门", "太阴", "贪狼"]

    def test_flow_layers(self, chart):
        flow = chart.flow
        assert flow["current_period"] == 4
        assert [layer["level"] for layer in flow["layers"]] == ["decade", "year", "month"]

        decade, year, month = flow["layers"]
        assert decade["ganzhi"] == "乙亥"
        assert decade["label"] == "大限四化"
        assert self.stars(decade["transformations"]) == ["天机", "天梁", "紫微", "太阴"]
        assert year["ganzhi"] == "甲辰"
        assert self.stars(year["transformations"]) == ["廉贞", "破军", "武曲", "太阳"]
        assert month["ganzhi"] == "丙寅"
        assert self.stars(month["transformations"]) == ["天同", "天机", "文昌", "廉贞"]

    def test_flow_transformations_placed(self, chart):
        for layer in chart.flow["layers"]:
            for t in layer["transformations"]:
                assert t["palace"] in PALACE_NAMES, f"{layer['label']} {t['star']}"

    def test_flow_month_stem_follows_year(self):
        """甲년 子월(11) = 丙子"""
        chart = ziwei_engine.calculate_from_birth(1990, 1, 15, 14, 30, mode="gregorian", flow_year=2024, flow_month=11)
        assert chart.flow["layers"][-1]["ganzhi"] == "丙子"

    def test_flow_before_first_period(self, chart):
        flow = ziwei_engine.flow_layers(chart, 1990)
        assert flow["current_period"] is None
        assert [layer["level"] for layer in flow["layers"]] == ["year"]
        assert flow["layers"][0]["ganzhi"] == "庚午"

    def test_no_flow_by_default(self):
        chart = ziwei_engine.calculate_from_birth(1990, 1, 15, 14, 30, mode="gregorian")
        assert chart.flow is None
        assert chart.to_dict()["flow"] is None

    def test_flow_month_requires_year(self):
        with pytest.raises(InvalidInput):
            ziwei_engine.calculate_from_birth(1990, 1, 15, 14, 30, mode="gregorian", flow_month=3)

    def test_flow_month_out_of_range(self, chart):
        with pytest.raises(InvalidInput):
            ziwei_engine.flow_layers(chart, 2024, 13)


class TestWithoutGender:
    def test_no_major_periods(self):
        chart = ziwei_engine.calculate_from_birth(1990, 1, 15, 14, 30, mode="gregorian")
        assert chart.major_periods == []
        assert chart.main_star_count() == 14

    def test_flow_has_no_decade_layer(self):
        chart = ziwei_engine.calculate_from_birth(1990, 1, 15, 14, 30, mode="gregorian", flow_year=2024)
        assert chart.flow["current_period"] is None
        assert [layer["level"] for layer in chart.flow["layers"]] == ["year"]


class TestInvariantSweep:
    @pytest.mark.parametrize("month", range(1, 13))
    @pytest.mark.parametrize("hour", range(12))
    def test_palace_indices(self, month, hour):
        ming = ZiweiEngine.ming_gong_index(month, hour)
        shen = ZiweiEngine.shen_gong_index(month, hour)
        assert 0 <= ming < 12 and 0 <= shen < 12
        name, number, _ = ZiweiEngine.bureau(ming)
        assert number in (2, 3, 4, 5, 6)

    @pytest.mark.parametrize("bureau", [2, 3, 4, 5, 6])
    @pytest.mark.parametrize("day", range(1, 31))
    def test_main_star_positions(self, bureau, day):
        positions = ZiweiEngine.main_star_positions(bureau, day)
        assert sorted(positions) == sorted(MAIN_STARS)
        assert all(0 <= b < 12 for b in positions.values())

    @pytest.mark.parametrize("month", range(1, 13))
    @pytest.mark.parametrize("hour", [0, 4, 9, 13, 18, 23])
    def test_full_chart(self, month, hour):
        chart = ziwei_engine.calculate_from_birth(1985, month, 2 * month, hour, 15, gender="female")
        assert chart.main_star_count() == 14, f"{month}월 {hour}시"
        assert 0 <= chart.ming_gong < 12
        assert sum(p.is_shen_gong for p in chart.palaces) == 1
        assert len(chart.major_periods) == 12
        assert all(p.stem_branch is not None for p in chart.palaces)

    @pytest.mark.parametrize("day", range(1, 32))
    def test_gregorian_days(self, day):
        chart = ziwei_engine.calculate_from_birth(2001, 1, day, 8, 0, mode="gregorian")
        assert chart.lunar.day == min(day, 30)
        assert chart.main_star_count() == 14
