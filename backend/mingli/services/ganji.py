"""
60갑자 계산 모듈
- 천간(10개) × 지지(12개) = 60갑자
- 천간/지지 오행, 음양, 지장간
- 갑자 인덱스 ↔ 간지 변환 (음양이 다른 조합은 거부)
"""
from dataclasses import dataclass
from typing import Dict, List, Tuple

from mingli.services.errors import InvalidCombination, InvalidInput

# 천간 (10개)
STEMS = ["甲", "乙", "丙", "丁", "戊", "己", "庚", "辛", "壬", "癸"]

# 지지 (12개)
BRANCHES = ["子", "丑", "寅", "卯", "辰", "巳", "午", "未", "申", "酉", "戌", "亥"]

# 한글 독음
STEMS_KO = ["갑", "을", "병", "정", "무", "기", "경", "신", "임", "계"]
BRANCHES_KO = ["자", "축", "인", "묘", "진", "사", "오", "미", "신", "유", "술", "해"]

# 오행 순서 (목화토금수)
ELEMENTS = ["木", "火", "土", "金", "水"]

ELEMENT_EN = {
    "木": "Wood", "火": "Fire", "土": "Earth", "金": "Metal", "水": "Water"
}

# 천간-오행 매핑 (두 개씩)
STEM_ELEMENT = {
    "甲": "木", "乙": "木",
    "丙": "火", "丁": "火",
    "戊": "土", "己": "土",
    "庚": "金", "辛": "金",
    "壬": "水", "癸": "水"
}

# 지지-오행 매핑
BRANCH_ELEMENT = {
    "子": "水", "丑": "土", "寅": "木", "卯": "木",
    "辰": "土", "巳": "火", "午": "火", "未": "土",
    "申": "金", "酉": "金", "戌": "土", "亥": "水"
}

# 지장간 (본기 1.0 / 중기 0.6 / 여기 0.3)
HIDDEN_STEMS: Dict[str, List[Tuple[str, float]]] = {
    "子": [("癸", 1.0)],
    "丑": [("己", 1.0), ("癸", 0.6), ("辛", 0.3)],
    "寅": [("甲", 1.0), ("丙", 0.6), ("戊", 0.3)],
    "卯": [("乙", 1.0)],
    "辰": [("戊", 1.0), ("乙", 0.6), ("癸", 0.3)],
    "巳": [("丙", 1.0), ("戊", 0.6), ("庚", 0.3)],
    "午": [("丁", 1.0), ("己", 0.6)],
    "未": [("己", 1.0), ("丁", 0.6), ("乙", 0.3)],
    "申": [("庚", 1.0), ("壬", 0.6), ("戊", 0.3)],
    "酉": [("辛", 1.0)],
    "戌": [("戊", 1.0), ("辛", 0.6), ("丁", 0.3)],
    "亥": [("壬", 1.0), ("甲", 0.6)],
}

# 오행 상생 / 상극
GENERATES = {"木": "火", "火": "土", "土": "金", "金": "水", "水": "木"}
CONTROLS = {"木": "土", "土": "水", "水": "火", "火": "金", "金": "木"}

# 시간대 옵션 (자시는 23:00~00:59로 자정을 걸침)
HOUR_OPTIONS = [
    {"index": i, "branch": BRANCHES[i], "branch_ko": BRANCHES_KO[i],
     "start": start, "end": end, "shichen": f"{BRANCHES[i]}时"}
    for i, (start, end) in enumerate([
        ("23:00", "00:59"), ("01:00", "02:59"), ("03:00", "04:59"),
        ("05:00", "06:59"), ("07:00", "08:59"), ("09:00", "10:59"),
        ("11:00", "12:59"), ("13:00", "14:59"), ("15:00", "16:59"),
        ("17:00", "18:59"), ("19:00", "20:59"), ("21:00", "22:59"),
    ])
]


@dataclass(frozen=True)
class StemBranch:
    """간지 한 쌍 (60갑자 중 하나)"""
    stem_index: int
    branch_index: int

    @property
    def stem(self) -> str:
        return STEMS[self.stem_index]

    @property
    def branch(self) -> str:
        return BRANCHES[self.branch_index]

    @property
    def cycle_index(self) -> int:
        return index_of(self.stem, self.branch)

    @property
    def ganji(self) -> str:
        return self.stem + self.branch

    def shift(self, steps: int) -> "StemBranch":
        """60갑자 순서로 steps만큼 이동 (음수면 역행)"""
        return stem_branch_at((self.cycle_index + steps) % 60)


# ===== 인덱스 조회 =====

def stem_at(index: int) -> str:
    if not 0 <= index < 10:
        raise InvalidInput(f"천간 인덱스 범위 오류: {index}")
    return STEMS[index]


def branch_at(index: int) -> str:
    if not 0 <= index < 12:
        raise InvalidInput(f"지지 인덱스 범위 오류: {index}")
    return BRANCHES[index]


def stem_branch_at(index: int) -> StemBranch:
    """60갑자 인덱스 → 간지"""
    if not 0 <= index < 60:
        raise InvalidInput(f"60갑자 인덱스 범위 오류: {index}")
    return StemBranch(index % 10, index % 12)


def index_of(stem: str, branch: str) -> int:
    """
    간지 → 60갑자 인덱스

    천간과 지지의 음양(홀짝)이 같아야 성립한다.
    甲子=0, 乙丑=1, ..., 癸亥=59
    """
    if stem not in STEMS or branch not in BRANCHES:
        raise InvalidCombination(f"알 수 없는 간지: {stem}{branch}")

    s = STEMS.index(stem)
    b = BRANCHES.index(branch)
    if s % 2 != b % 2:
        raise InvalidCombination(f"음양이 맞지 않는 간지: {stem}{branch}")

    # 6 * s - 5 * b ≡ s (mod 10), ≡ b (mod 12)
    return (6 * s - 5 * b) % 60


def from_indices(stem_index: int, branch_index: int) -> StemBranch:
    """천간/지지 인덱스 → 간지 (조합 검증 포함)"""
    pair = StemBranch(stem_index % 10, branch_index % 12)
    index_of(pair.stem, pair.branch)
    return pair


def parse_ganji(text: str) -> StemBranch:
    """'甲子' 형태 문자열 → 간지"""
    s = str(text).strip()
    if len(s) != 2:
        raise InvalidInput(f"간지 문자열 형식 오류: {text}")
    return stem_branch_at(index_of(s[0], s[1]))


# ===== 오행 / 음양 =====

def stem_element(stem: str) -> str:
    return STEM_ELEMENT[stem]


def branch_element(branch: str) -> str:
    return BRANCH_ELEMENT[branch]


def stem_polarity(stem: str) -> str:
    """양간: 甲丙戊庚壬 / 음간: 乙丁己辛癸"""
    return "阳" if STEMS.index(stem) % 2 == 0 else "阴"


def branch_polarity(branch: str) -> str:
    """양지: 子寅辰午申戌 / 음지: 丑卯巳未酉亥"""
    return "阳" if BRANCHES.index(branch) % 2 == 0 else "阴"


def hidden_stems(branch: str) -> List[Tuple[str, float]]:
    return list(HIDDEN_STEMS[branch])


# ===== 시간 =====

def hour_branch_index(hour: int) -> int:
    """
    시간 → 지지 인덱스

    23시~00시59분 = 자시(0), 01시~02시59분 = 축시(1), ...
    """
    if not 0 <= hour <= 23:
        raise InvalidInput(f"시간 범위 오류: {hour}")
    if hour == 23:
        return 0
    return (hour + 1) // 2


# 유틸리티 함수
def ganji_str(stem_index: int, branch_index: int) -> str:
    return f"{STEMS[stem_index]}{BRANCHES[branch_index]}"


def ganji_ko(stem_index: int, branch_index: int) -> str:
    """간지 한글 독음"""
    return f"{STEMS_KO[stem_index]}{BRANCHES_KO[branch_index]}"


SIXTY_JIAZI = [ganji_str(i % 10, i % 12) for i in range(60)]
