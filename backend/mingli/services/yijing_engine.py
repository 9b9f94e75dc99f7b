"""
주역(易经) 기괘 엔진
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
- 기괘 방법 5종: 동전 / 시간 / 숫자 / 매화역수 / 개인화
- 파생괘: 변괘(之卦), 호괘(互卦), 착괘(错卦), 종괘(综卦)
- 상괘/하괘 오행 관계

괘의 이진 문자열은 위에서 아래 순서 (index 0 = 상효, index 5 = 초효)
1 = 양효, 0 = 음효
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from mingli.services.errors import InvalidInput
from mingli.services.ganji import CONTROLS, GENERATES
from mingli.services.random_source import RandomSource, get_random_source

logger = logging.getLogger(__name__)

# 선천팔괘 번호 → (이름, 이진, 오행, 음양, 자연상)
TRIGRAMS: Dict[int, Dict[str, str]] = {
    1: {"name": "乾", "binary": "111", "element": "金", "nature": "阳", "image": "天"},
    2: {"name": "兑", "binary": "011", "element": "金", "nature": "阴", "image": "泽"},
    3: {"name": "离", "binary": "101", "element": "火", "nature": "阴", "image": "火"},
    4: {"name": "震", "binary": "001", "element": "木", "nature": "阳", "image": "雷"},
    5: {"name": "巽", "binary": "110", "element": "木", "nature": "阴", "image": "风"},
    6: {"name": "坎", "binary": "010", "element": "水", "nature": "阳", "image": "水"},
    7: {"name": "艮", "binary": "100", "element": "土", "nature": "阳", "image": "山"},
    8: {"name": "坤", "binary": "000", "element": "土", "nature": "阴", "image": "地"},
}

TRIGRAM_BY_BINARY = {t["binary"]: number for number, t in TRIGRAMS.items()}

# 문왕 64괘: 상괘 행 × 하괘 열 (乾兑离震巽坎艮坤 순)
_KING_WEN_ROWS = [
    [(1, "乾"), (10, "履"), (13, "同人"), (25, "无妄"), (44, "姤"), (6, "讼"), (33, "遁"), (12, "否")],
    [(43, "夬"), (58, "兑"), (49, "革"), (17, "随"), (28, "大过"), (47, "困"), (31, "咸"), (45, "萃")],
    [(14, "大有"), (38, "睽"), (30, "离"), (21, "噬嗑"), (50, "鼎"), (64, "未济"), (56, "旅"), (35, "晋")],
    [(34, "大壮"), (54, "归妹"), (55, "丰"), (51, "震"), (32, "恒"), (40, "解"), (62, "小过"), (16, "豫")],
    [(9, "小畜"), (61, "中孚"), (37, "家人"), (42, "益"), (57, "巽"), (59, "涣"), (53, "渐"), (20, "观")],
    [(5, "需"), (60, "节"), (63, "既济"), (3, "屯"), (48, "井"), (29, "坎"), (39, "蹇"), (8, "比")],
    [(26, "大畜"), (41, "损"), (22, "贲"), (27, "颐"), (18, "蛊"), (4, "蒙"), (52, "艮"), (23, "剥")],
    [(11, "泰"), (19, "临"), (36, "明夷"), (24, "复"), (46, "升"), (7, "师"), (15, "谦"), (2, "坤")],
]

KING_WEN = {
    (upper, lower): entry
    for upper, row in enumerate(_KING_WEN_ROWS, start=1)
    for lower, entry in enumerate(row, start=1)
}

METHOD_LABELS = {
    "coin": "金钱卦",
    "time": "时间起卦",
    "number": "数字起卦",
    "plum_blossom": "梅花易数",
    "personalized": "个性化起卦",
}

QUESTION_KEYWORDS = ["事业", "感情", "财运", "健康", "学业", "婚姻", "工作", "投资"]

# 세 동전 합 → (효 이름, 양효 여부, 동효 여부)
LINE_SUMS = {
    6: ("老阴", False, True),
    7: ("少阳", True, False),
    8: ("少阴", False, False),
    9: ("老阳", True, True),
}

_BINARY_RE = re.compile(r"^[01]{6}$")


@dataclass(frozen=True)
class Hexagram:
    """64괘 중 하나 (상괘/하괘 번호 1~8)"""
    upper: int
    lower: int

    def __post_init__(self):
        if self.upper not in TRIGRAMS or self.lower not in TRIGRAMS:
            raise InvalidInput(f"괘 번호 범위 오류: upper={self.upper}, lower={self.lower} (1-8)")

    @classmethod
    def from_binary(cls, binary: str) -> "Hexagram":
        if not _BINARY_RE.match(binary or ""):
            raise InvalidInput(f"괘 이진 문자열 오류: {binary!r}")
        return cls(TRIGRAM_BY_BINARY[binary[:3]], TRIGRAM_BY_BINARY[binary[3:]])

    @property
    def binary(self) -> str:
        return TRIGRAMS[self.upper]["binary"] + TRIGRAMS[self.lower]["binary"]

    @property
    def index(self) -> int:
        """내부 순번 1~64 (상괘-1)*8 + 하괘"""
        return (self.upper - 1) * 8 + self.lower

    @property
    def number(self) -> int:
        """문왕 괘서 번호"""
        return KING_WEN[(self.upper, self.lower)][0]

    @property
    def name(self) -> str:
        return KING_WEN[(self.upper, self.lower)][1]

    @property
    def full_name(self) -> str:
        upper, lower = TRIGRAMS[self.upper], TRIGRAMS[self.lower]
        if self.upper == self.lower:
            return f"{self.name}为{upper['image']}"
        return f"{upper['image']}{lower['image']}{self.name}"

    def line(self, position: int) -> int:
        """효 값 (position 1 = 초효 ... 6 = 상효)"""
        if not 1 <= position <= 6:
            raise InvalidInput(f"효 위치 범위 오류: {position} (1-6)")
        return int(self.binary[6 - position])

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "index": self.index,
            "name": self.name,
            "full_name": self.full_name,
            "binary": self.binary,
            "upper": {"number": self.upper, **TRIGRAMS[self.upper]},
            "lower": {"number": self.lower, **TRIGRAMS[self.lower]},
        }


ALL_HEXAGRAMS = [Hexagram(u, l) for u in range(1, 9) for l in range(1, 9)]


# ===== 파생괘 =====

def changing_hexagram(hexagram: Hexagram, positions: List[int]) -> Hexagram:
    """변괘: 동효 반전"""
    bits = list(hexagram.binary)
    for pos in positions:
        if not 1 <= pos <= 6:
            raise InvalidInput(f"효 위치 범위 오류: {pos} (1-6)")
        i = 6 - pos
        bits[i] = "0" if bits[i] == "1" else "1"
    return Hexagram.from_binary("".join(bits))


def mutual_hexagram(hexagram: Hexagram) -> Hexagram:
    """호괘: 3~5효 → 상괘, 2~4효 → 하괘"""
    b = hexagram.binary
    return Hexagram.from_binary(b[1:4] + b[2:5])


def opposite_hexagram(hexagram: Hexagram) -> Hexagram:
    """착괘: 모든 효 반전"""
    return Hexagram.from_binary("".join("0" if c == "1" else "1" for c in hexagram.binary))


def reversed_hexagram(hexagram: Hexagram) -> Hexagram:
    """종괘: 상하 뒤집기"""
    return Hexagram.from_binary(hexagram.binary[::-1])


def element_relation(hexagram: Hexagram) -> Dict:
    """상괘/하괘 오행 생극"""
    upper = TRIGRAMS[hexagram.upper]["element"]
    lower = TRIGRAMS[hexagram.lower]["element"]

    if upper == lower:
        relation = "和谐"
    elif GENERATES[upper] == lower:
        relation = "上生下"
    elif GENERATES[lower] == upper:
        relation = "下生上"
    elif CONTROLS[upper] == lower:
        relation = "上克下"
    else:
        relation = "下克上"

    return {
        "upper_element": upper,
        "lower_element": lower,
        "relation": relation,
        "harmony": relation == "和谐" or "生" in relation,
    }


def _wrap8(value: int) -> int:
    """mod 8, 0은 8(坤)"""
    return value % 8 or 8


def _user_number(user_id: Optional[str], digits: int, default: int) -> int:
    """user_id 끝 n자리의 선행 정수 (없거나 0이면 기본값)"""
    if not user_id:
        return default
    m = re.match(r"\s*([+-]?\d+)", user_id[-digits:])
    value = int(m.group(1)) if m else 0
    return value or default


def _epoch_millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def question_weight(question: Optional[str]) -> float:
    """
    질문 가중치 0~1

    길이(50자 만점), 키워드 수(8개 만점), 물음표 수(3개 만점)의 평균
    질문이 없으면 0.5
    """
    if not question:
        return 0.5
    length_score = min(len(question) / 50, 1)
    keyword_score = min(sum(1 for k in QUESTION_KEYWORDS if k in question) / 8, 1)
    mark_score = min((question.count("？") + question.count("?")) / 3, 1)
    return (length_score + keyword_score + mark_score) / 3


@dataclass
class HexagramCastResult:
    """기괘 결과 (method로 구분)"""
    method: str
    hexagram: Hexagram
    changing_lines: List[int]
    cast_at: datetime
    question: Optional[str] = None
    line_sums: Optional[List[int]] = None
    factors: Dict = field(default_factory=dict)
    random_quality: Optional[Dict] = None

    @property
    def changed(self) -> Optional[Hexagram]:
        if not self.changing_lines:
            return None
        return changing_hexagram(self.hexagram, self.changing_lines)

    @property
    def mutual(self) -> Hexagram:
        return mutual_hexagram(self.hexagram)

    @property
    def opposite(self) -> Hexagram:
        return opposite_hexagram(self.hexagram)

    @property
    def reversed(self) -> Hexagram:
        return reversed_hexagram(self.hexagram)

    def lines(self) -> List[Dict]:
        out = []
        for pos in range(1, 7):
            is_yang = self.hexagram.line(pos) == 1
            entry = {
                "position": pos,
                "yin_yang": "阳" if is_yang else "阴",
                "changing": pos in self.changing_lines,
            }
            if self.line_sums:
                entry["sum"] = self.line_sums[pos - 1]
                entry["line_name"] = LINE_SUMS[self.line_sums[pos - 1]][0]
            out.append(entry)
        return out

    def to_dict(self) -> dict:
        changed = self.changed
        return {
            "method": self.method,
            "method_label": METHOD_LABELS[self.method],
            "question": self.question,
            "cast_at": self.cast_at.isoformat(),
            "hexagram": self.hexagram.to_dict(),
            "lines": self.lines(),
            "changing_lines": self.changing_lines,
            "changed": changed.to_dict() if changed else None,
            "mutual": self.mutual.to_dict(),
            "opposite": self.opposite.to_dict(),
            "reversed": self.reversed.to_dict(),
            "element_relation": element_relation(self.hexagram),
            "factors": self.factors,
            "random_quality": self.random_quality,
        }


class YijingEngine:
    """
    주역 기괘 엔진

    난수 소스는 주입 가능 (기본: 프로세스 공유 EnhancedRandom)
    """

    def __init__(self, random_source: Optional[RandomSource] = None):
        self.random = random_source or get_random_source()

    # ===== 동전법 =====
    def by_coin(self, now: Optional[datetime] = None, question: Optional[str] = None) -> HexagramCastResult:
        """
        동전 세 개를 여섯 번 (초효부터)

        합 6 노음(동), 7 소양, 8 소음, 9 노양(동)
        """
        now = now or datetime.now()
        sums = []
        tosses = []
        for _ in range(6):
            total, coins = self.random.coin_line()
            sums.append(total)
            tosses.append(coins)

        bottom_up = ["1" if LINE_SUMS[s][1] else "0" for s in sums]
        hexagram = Hexagram.from_binary("".join(reversed(bottom_up)))
        changing = [i + 1 for i, s in enumerate(sums) if LINE_SUMS[s][2]]

        return HexagramCastResult(
            method="coin",
            hexagram=hexagram,
            changing_lines=changing,
            cast_at=now,
            question=question,
            line_sums=sums,
            factors={"tosses": tosses},
            random_quality=self.random.quality_report(),
        )

    # ===== 시간법 =====
    def by_time(self, now: Optional[datetime] = None, user_id: Optional[str] = None,
                question: Optional[str] = None) -> HexagramCastResult:
        """연월일(+시분) + 사용자 인자 + 난수 보정"""
        now = now or datetime.now()
        user_factor = _user_number(user_id, 2, 1)
        boost = int(self.random.next_float() * 100)

        date_sum = now.year + now.month + now.day + user_factor + boost
        full_sum = date_sum + now.hour + now.minute

        upper = _wrap8(date_sum)
        lower = _wrap8(full_sum)
        line = full_sum % 6 + 1

        return HexagramCastResult(
            method="time",
            hexagram=Hexagram(upper, lower),
            changing_lines=[line],
            cast_at=now,
            question=question,
            factors={"user_factor": user_factor, "random_boost": boost},
        )

    # ===== 숫자법 =====
    def by_number(self, now: Optional[datetime] = None, user_id: Optional[str] = None,
                  question: Optional[str] = None) -> HexagramCastResult:
        """타임스탬프(ms) + 사용자 번호 + 난수"""
        now = now or datetime.now()
        millis = _epoch_millis(now)
        user_num = _user_number(user_id, 3, 123)
        random_factor = int(self.random.next_float() * 1000)

        upper = _wrap8(millis // 1000 + user_num + random_factor)
        lower = _wrap8(millis // 100 + user_num * 2 + random_factor * 2)
        line = (millis + user_num + random_factor) % 6 + 1

        return HexagramCastResult(
            method="number",
            hexagram=Hexagram(upper, lower),
            changing_lines=[line],
            cast_at=now,
            question=question,
            factors={"timestamp_ms": millis, "user_number": user_num, "random_factor": random_factor},
            random_quality=self.random.quality_report(),
        )

    # ===== 매화역수 =====
    def by_plum_blossom(self, now: Optional[datetime] = None, user_id: Optional[str] = None,
                        question: Optional[str] = None) -> HexagramCastResult:
        """질문 길이 + 시분 + 사용자 인자 + 난수"""
        now = now or datetime.now()
        question_len = len(question) if question else 8
        time_sum = now.hour + now.minute
        user_factor = _user_number(user_id, 2, 12)
        random_factor = int(self.random.next_float() * 50)

        upper = _wrap8(question_len + time_sum + random_factor)
        lower = _wrap8(question_len + time_sum + user_factor + random_factor)
        line = (question_len + time_sum + user_factor + random_factor) % 6 + 1

        return HexagramCastResult(
            method="plum_blossom",
            hexagram=Hexagram(upper, lower),
            changing_lines=[line],
            cast_at=now,
            question=question,
            factors={
                "question_length": question_len,
                "time_sum": time_sum,
                "user_factor": user_factor,
                "random_factor": random_factor,
            },
        )

    # ===== 개인화 =====
    def by_personalized(self, now: Optional[datetime] = None, user_id: Optional[str] = None,
                        question: Optional[str] = None) -> HexagramCastResult:
        """사용자/질문 시드 난수 + 질문 가중치 + 하루 중 시각 비율의 평균"""
        now = now or datetime.now()
        personal = self.random.personalized_float(user_id, question, now)
        weight = question_weight(question)
        time_factor = (_epoch_millis(now) % 86400000) / 86400000

        combined = (personal + weight + time_factor) / 3
        upper = min(int(combined * 8) + 1, 8)
        lower = int((combined * 13) % 8) + 1
        line = (int(personal * 6) + len(question or "") % 6) % 6 + 1

        return HexagramCastResult(
            method="personalized",
            hexagram=Hexagram(upper, lower),
            changing_lines=[line],
            cast_at=now,
            question=question,
            factors={
                "personalized_random": round(personal, 6),
                "question_weight": round(weight, 6),
                "time_factor": round(time_factor, 6),
            },
        )

    def cast(self, method: Optional[str] = None, now: Optional[datetime] = None,
             user_id: Optional[str] = None, question: Optional[str] = None) -> HexagramCastResult:
        """기괘 (기본: personalized)"""
        method = method or "personalized"
        if method == "coin":
            result = self.by_coin(now, question)
        elif method == "time":
            result = self.by_time(now, user_id, question)
        elif method == "number":
            result = self.by_number(now, user_id, question)
        elif method == "plum_blossom":
            result = self.by_plum_blossom(now, user_id, question)
        elif method == "personalized":
            result = self.by_personalized(now, user_id, question)
        else:
            raise InvalidInput(f"알 수 없는 기괘 방법: {method} ({', '.join(METHOD_LABELS)})")

        logger.debug(
            f"[Yijing] {method} → {result.hexagram.name} "
            f"({result.hexagram.binary}) 동효={result.changing_lines}"
        )
        return result


# 싱글톤
yijing_engine = YijingEngine()
