# services package - lazy getters so the app starts even if one engine fails to load
from mingli.services.errors import CalculationError, InvalidInput

_bazi_engine = None
_ziwei_engine = None
_yijing_engine = None
_cache_service = None


def get_bazi_engine():
    global _bazi_engine
    if _bazi_engine is None:
        from mingli.services.bazi_engine import bazi_engine as _engine
        _bazi_engine = _engine
    return _bazi_engine


def get_ziwei_engine():
    global _ziwei_engine
    if _ziwei_engine is None:
        from mingli.services.ziwei_engine import ziwei_engine as _engine
        _ziwei_engine = _engine
    return _ziwei_engine


def get_yijing_engine():
    global _yijing_engine
    if _yijing_engine is None:
        from mingli.services.yijing_engine import yijing_engine as _engine
        _yijing_engine = _engine
    return _yijing_engine


def get_cache_service():
    global _cache_service
    if _cache_service is None:
        from mingli.services.cache import cache_service as _cache
        _cache_service = _cache
    return _cache_service
