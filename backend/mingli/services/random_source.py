"""
기괘용 난수 소스
- RandomSource 인터페이스: next_float / quality_report / refresh
- EnhancedRandom: 256칸 LCG 엔트로피 풀 + OS 난수 혼합 (프로세스 공유, Lock 보호)
- SeededRandom: 시드 고정 (테스트 / 재현용)
"""
import logging
import os
import random
import secrets
import threading
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

LCG_A = 1664525
LCG_C = 1013904223
LCG_M = 2147483647

POOL_SIZE = 256

# 동전 앞면(양) 확률
COIN_HEADS_PROBABILITY = 0.501

# 세 동전 합 → 爻 (6 노음, 7 소양, 8 소음, 9 노양)
LINE_DISTRIBUTION = {
    "old_yin": 0.125,
    "young_yang": 0.375,
    "young_yin": 0.375,
    "old_yang": 0.125,
}


class RandomSource(Protocol):
    def next_float(self) -> float:
        ...

    def quality_report(self) -> Dict:
        ...

    def refresh(self) -> None:
        ...

    def coin_line(self) -> Tuple[int, List[int]]:
        ...

    def personalized_float(self, user_id: Optional[str], question: Optional[str], now: datetime) -> float:
        ...


def assess_quality(draw: Callable[[], float], samples: int = 100) -> Dict:
    """
    난수 품질 평가

    균등분포 [0, 1)의 기대값: 평균 0.5, 분산 1/12 ≈ 0.083
    """
    values = [draw() for _ in range(samples)]
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)

    mean_ok = abs(mean - 0.5) < 0.05
    variance_ok = 0.08 < variance < 0.12
    return {
        "overall": "excellent" if mean_ok and variance_ok else "good",
        "mean": round(mean, 4),
        "variance": round(variance, 4),
        "samples": len(values),
    }


def string_hash(text: str) -> int:
    """32비트 문자열 해시 (hash * 31 + code)"""
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class CastingDraws:
    """next_float 위에 얹는 기괘 보조 함수"""

    def next_float(self) -> float:
        raise NotImplementedError

    def coin_toss(self) -> int:
        """앞면 3 / 뒷면 2"""
        return 3 if self.next_float() < COIN_HEADS_PROBABILITY else 2

    def coin_line(self) -> Tuple[int, List[int]]:
        """동전 세 개 → (합계 6~9, 개별 값)"""
        coins = [self.coin_toss() for _ in range(3)]
        return sum(coins), coins

    def personalized_float(self, user_id: Optional[str], question: Optional[str], now: datetime) -> float:
        """
        사용자/질문/시각 시드 LCG 값과 소스 난수의 평균

        같은 사용자가 같은 질문을 해도 시각과 소스 난수에 따라 달라진다.
        """
        millis = int(now.timestamp() * 1000)
        seed = (
            string_hash(user_id or "anonymous")
            ^ string_hash(question or "general")
            ^ (millis % 86400000)
        ) % LCG_M
        seeded = ((LCG_A * seed + LCG_C) % LCG_M) / LCG_M
        return (seeded + self.next_float()) / 2


class EnhancedRandom(CastingDraws):
    """
    향상된 난수 생성기

    풀 상태는 프로세스 전역에서 공유되므로 모든 변경은 Lock 안에서 수행한다.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pool = [0] * POOL_SIZE
        self._index = 0
        self._draws = 0
        self._refreshed_at = 0.0
        self._init_pool()

    def _init_pool(self) -> None:
        sources = [
            time.time_ns(),
            time.perf_counter_ns(),
            os.getpid(),
            secrets.randbits(32),
        ]
        for i in range(POOL_SIZE):
            entropy = 0
            for j, source in enumerate(sources):
                entropy ^= (source * (i + j + 1)) & 0xFFFFFFFF
            self._pool[i] = (entropy ^ secrets.randbits(32)) % LCG_M
        self._index = 0
        self._refreshed_at = time.time()

    def _draw(self) -> float:
        self._index = (self._index + 1) % POOL_SIZE
        self._pool[self._index] = (LCG_A * self._pool[self._index] + LCG_C) % LCG_M
        self._draws += 1

        pool_value = self._pool[self._index] / LCG_M
        os_value = secrets.randbits(32) / 4294967295
        return (pool_value + os_value) / 2

    def next_float(self) -> float:
        with self._lock:
            return self._draw()

    def quality_report(self) -> Dict:
        with self._lock:
            return assess_quality(self._draw)

    def refresh(self) -> None:
        with self._lock:
            self._init_pool()
        logger.info("[Random] 엔트로피 풀 재초기화")

    def statistics(self) -> Dict:
        with self._lock:
            quality = assess_quality(self._draw)
            return {
                "pool_size": POOL_SIZE,
                "current_index": self._index,
                "draws": self._draws,
                "refreshed_at": self._refreshed_at,
                "coin_heads_probability": COIN_HEADS_PROBABILITY,
                "line_distribution": LINE_DISTRIBUTION,
                "quality": quality,
            }


class SeededRandom(CastingDraws):
    """시드 고정 난수 (테스트 주입용)"""

    def __init__(self, seed: int = 0):
        self.seed = seed
        self._rng = random.Random(seed)

    def next_float(self) -> float:
        return self._rng.random()

    def quality_report(self) -> Dict:
        return assess_quality(self._rng.random)

    def refresh(self) -> None:
        self._rng = random.Random(self.seed)

    def statistics(self) -> Dict:
        return {"seed": self.seed, "quality": self.quality_report()}


_default_source = None
_default_lock = threading.Lock()


def get_random_source() -> EnhancedRandom:
    """프로세스 공유 EnhancedRandom"""
    global _default_source
    with _default_lock:
        if _default_source is None:
            _default_source = EnhancedRandom()
    return _default_source
