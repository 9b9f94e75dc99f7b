"""
캐시 서비스
- 동일 출생 정보에 대한 사주/자미 계산 결과 캐싱
- 메모리 기반 TTLCache (Lock 보호)
"""
import hashlib
import json
import threading
from typing import Any, Optional

from cachetools import TTLCache

from mingli.config import get_settings


class CacheService:
    """
    계산 결과 캐싱 서비스

    캐시 전략:
    1. 사주 결과: TTL 설정값 (출생 정보가 같으면 결과 고정)
    2. 자미 결과: TTL 설정값
    3. 주역 기괘: 캐시 안 함 (매번 달라야 함)
    """

    def __init__(self):
        settings = get_settings()
        self._lock = threading.Lock()

        self.bazi_cache = TTLCache(
            maxsize=settings.cache_max_size,
            ttl=settings.cache_ttl_seconds
        )
        self.ziwei_cache = TTLCache(
            maxsize=settings.cache_max_size,
            ttl=settings.cache_ttl_seconds
        )

        self._hits = 0
        self._misses = 0

    def _make_key(self, *args) -> str:
        """캐시 키 생성"""
        key_str = json.dumps(args, sort_keys=True, default=str)
        return hashlib.md5(key_str.encode()).hexdigest()

    def _get(self, cache: TTLCache, key: str) -> Optional[Any]:
        with self._lock:
            result = cache.get(key)
            if result is not None:
                self._hits += 1
            else:
                self._misses += 1
            return result

    def _set(self, cache: TTLCache, key: str, data: Any):
        with self._lock:
            cache[key] = data

    # ========== 사주 ==========

    def get_bazi(self, *birth) -> Optional[dict]:
        return self._get(self.bazi_cache, self._make_key("bazi", *birth))

    def set_bazi(self, *birth, data: dict):
        self._set(self.bazi_cache, self._make_key("bazi", *birth), data)

    # ========== 자미두수 ==========

    def get_ziwei(self, *birth) -> Optional[dict]:
        return self._get(self.ziwei_cache, self._make_key("ziwei", *birth))

    def set_ziwei(self, *birth, data: dict):
        self._set(self.ziwei_cache, self._make_key("ziwei", *birth), data)

    # ========== 통계 ==========

    def get_stats(self) -> dict:
        """캐시 통계 조회"""
        with self._lock:
            total = self._hits + self._misses
            hit_rate = (self._hits / total * 100) if total > 0 else 0
            return {
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": f"{hit_rate:.1f}%",
                "bazi_cache_size": len(self.bazi_cache),
                "ziwei_cache_size": len(self.ziwei_cache),
            }

    def clear(self):
        """캐시 초기화"""
        with self._lock:
            self.bazi_cache.clear()
            self.ziwei_cache.clear()
            self._hits = 0
            self._misses = 0


# 싱글톤 인스턴스
cache_service = CacheService()
