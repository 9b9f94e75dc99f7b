"""
Mingli Engine Settings
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
명리 계산 엔진 설정:
- 절기 계산 방식 (공식 / ephem 정밀 보정)
- 연주 경계 (입춘 / 양력 1월 1일)
- 자미두수 음력 변환 모드
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
from pydantic_settings import BaseSettings
from typing import List, Literal, Optional


class Settings(BaseSettings):
    # Server
    app_name: str = "Mingli Engine"
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # 절기 / 사주
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    solar_term_method: Literal["formula", "ephem"] = "formula"
    year_boundary: Literal["lichun", "calendar"] = "lichun"
    boundary_threshold_hours: int = 48

    # 진태양시 보정 (중국 표준시 기준 경도 120°)
    use_solar_time: bool = False
    default_longitude: float = 120.0
    standard_meridian: float = 120.0

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # 자미두수
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # lunar: 실제 음력 변환 / gregorian: 양력 월일을 음력처럼 사용 (레거시)
    ziwei_lunar_mode: Literal["lunar", "gregorian"] = "lunar"

    # Cache
    cache_ttl_seconds: int = 86400
    cache_max_size: int = 10000

    # CORS
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


_settings: Optional[Settings] = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
