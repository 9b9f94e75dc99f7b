"""
자미두수 고정 테이블
- 오행국, 십이궁 이름
- 자미성 위치표 (생일 × 국수)
- 주성 배치 오프셋, 육길성/육살성 규칙, 사화, 묘왕리함
"""
from typing import Dict, List, Tuple

PALACE_NAMES = [
    "命宫", "兄弟宫", "夫妻宫", "子女宫", "财帛宫", "疾厄宫",
    "迁移宫", "交友宫", "事业宫", "田宅宫", "福德宫", "父母宫",
]

# 명궁 지지 → (국 이름, 국수, 오행)
BUREAU_BY_MING_BRANCH: List[Tuple[str, int, str]] = [
    ("水二局", 2, "水"),  # 子
    ("土五局", 5, "土"),  # 丑
    ("木三局", 3, "木"),  # 寅
    ("木三局", 3, "木"),  # 卯
    ("土五局", 5, "土"),  # 辰
    ("火六局", 6, "火"),  # 巳
    ("火六局", 6, "火"),  # 午
    ("土五局", 5, "土"),  # 未
    ("金四局", 4, "金"),  # 申
    ("金四局", 4, "金"),  # 酉
    ("土五局", 5, "土"),  # 戌
    ("水二局", 2, "水"),  # 亥
]


def _ziwei_branch(day: int, bureau: int) -> int:
    """
    자미성 지지 인덱스

    생일에 x를 더해 국수로 나누어떨어지게 하고, 몫만큼 寅에서 센 뒤
    x가 홀수면 x칸 역행, 짝수면 x칸 순행
    """
    x = 0
    while (day + x) % bureau:
        x += 1
    base = (2 + (day + x) // bureau - 1) % 12
    return (base - x) % 12 if x % 2 else (base + x) % 12


# 자미성 위치표: ZIWEI_TABLE[bureau][day] (day 1~30)
ZIWEI_TABLE: Dict[int, Dict[int, int]] = {
    bureau: {day: _ziwei_branch(day, bureau) for day in range(1, 31)}
    for bureau in (2, 3, 4, 5, 6)
}

# 자미성계 (자미에서 역행)
# 太阳은 음력 일로 따로 두지 않고 전통 자미성계 (紫微-3) 위치를 따른다
ZIWEI_SERIES = [
    ("紫微", 0), ("天机", -1), ("太阳", -3), ("武曲", -4), ("天同", -5), ("廉贞", -8),
]

# 천부성계 (천부에서 순행)
TIANFU_SERIES = [
    ("天府", 0), ("太阴", 1), ("贪狼", 2), ("巨门", 3),
    ("天相", 4), ("天梁", 5), ("七杀", 6), ("破军", 10),
]

MAIN_STARS = [name for name, _ in ZIWEI_SERIES] + [name for name, _ in TIANFU_SERIES]

LUCKY_STARS = ["文昌", "文曲", "左辅", "右弼", "天魁", "天钺"]
UNLUCKY_STARS = ["擎羊", "陀罗", "火星", "铃星", "地空", "地劫"]

# 천괴/천월 (연간 기준)
KUI_YUE: Dict[str, Tuple[int, int]] = {
    "甲": (1, 7), "戊": (1, 7), "庚": (1, 7),
    "乙": (0, 8), "己": (0, 8),
    "丙": (11, 9), "丁": (11, 9),
    "辛": (6, 2),
    "壬": (3, 5), "癸": (3, 5),
}

# 녹존 (연간 기준) - 경양 = 녹존+1, 타라 = 녹존-1
LUCUN: Dict[str, int] = {
    "甲": 2, "乙": 3, "丙": 5, "丁": 6, "戊": 5,
    "己": 6, "庚": 8, "辛": 9, "壬": 11, "癸": 0,
}

# 화성/영성 기점 (연지 삼합 그룹) → (화성, 영성)
HUO_LING_START: Dict[str, Tuple[int, int]] = {
    "寅": (1, 3), "午": (1, 3), "戌": (1, 3),
    "申": (2, 10), "子": (2, 10), "辰": (2, 10),
    "巳": (3, 10), "酉": (3, 10), "丑": (3, 10),
    "亥": (9, 10), "卯": (9, 10), "未": (9, 10),
}

# 사화 (연간 기준): 화록, 화권, 화과, 화기
SIHUA: Dict[str, Tuple[str, str, str, str]] = {
    "甲": ("廉贞", "破军", "武曲", "太阳"),
    "乙": ("天机", "天梁", "紫微", "太阴"),
    "丙": ("天同", "天机", "文昌", "廉贞"),
    "丁": ("太阴", "天同", "天机", "巨门"),
    "戊": ("贪狼", "太阴", "右弼", "天机"),
    "己": ("武曲", "贪狼", "天梁", "文曲"),
    "庚": ("太阳", "武曲", "太阴", "天同"),
    "辛": ("巨门", "太阳", "文曲", "文昌"),
    "壬": ("天梁", "紫微", "左辅", "武曲"),
    "癸": ("破军", "巨门", "太阴", "贪狼"),
}

SIHUA_KINDS = [
    ("hua_lu", "化禄", "财禄"),
    ("hua_quan", "化权", "权力"),
    ("hua_ke", "化科", "名声"),
    ("hua_ji", "化忌", "阻碍"),
]

# 사화 층위: 생년 / 대한 / 유년 / 유월
SIHUA_LEVELS = {
    "natal": "生年四化",
    "decade": "大限四化",
    "year": "流年四化",
    "month": "流月四化",
}

# 묘왕리함 (子~亥 순서, 12글자)
_BRIGHTNESS_ROWS = {
    "紫微": "旺得旺得旺得庙得旺得旺得",
    "天机": "旺利庙旺利陷陷利陷利利旺",
    "太阳": "陷利旺庙旺庙庙旺利陷利陷",
    "武曲": "得庙得陷得利陷利旺庙得得",
    "天同": "庙得得旺得利陷利得得得旺",
    "廉贞": "利得旺庙旺庙得得利陷利得",
    "天府": "得庙得得庙得得庙得得庙得",
    "太阴": "庙旺利陷利陷陷利利旺旺庙",
    "贪狼": "利得旺庙得利利得利得得旺",
    "巨门": "旺得利陷利庙旺庙利得得利",
    "天相": "得庙得得庙得得庙得得庙得",
    "天梁": "得庙旺庙旺得利得利得得旺",
    "七杀": "旺得利陷利得庙得庙旺得利",
    "破军": "庙得得旺得利陷利得得得旺",
    "文昌": "得庙得得庙得得庙得得庙得",
    "文曲": "庙得得庙得得庙得得庙得得",
    "左辅": "庙庙庙庙庙庙庙庙庙庙庙庙",
    "右弼": "庙庙庙庙庙庙庙庙庙庙庙庙",
    "天魁": "庙庙庙庙庙庙庙庙庙庙庙庙",
    "天钺": "庙庙庙庙庙庙庙庙庙庙庙庙",
    "擎羊": "陷利得旺得利庙旺得利得陷",
    "陀罗": "陷得利得旺庙利得旺庙利陷",
    "火星": "陷利庙旺利得得利得利旺陷",
    "铃星": "陷得利得旺庙利得旺得利陷",
    "地空": "陷陷陷陷陷陷陷陷陷陷陷陷",
    "地劫": "陷陷陷陷陷陷陷陷陷陷陷陷",
}

BRIGHTNESS: Dict[str, List[str]] = {star: list(row) for star, row in _BRIGHTNESS_ROWS.items()}

BRIGHTNESS_SCORE = {"庙": 5, "旺": 4, "得": 3, "利": 2, "陷": 1}
