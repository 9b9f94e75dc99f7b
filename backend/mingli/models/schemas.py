"""
Pydantic 스키마 정의
API 요청/응답 모델
"""
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class CastMethod(str, Enum):
    COIN = "coin"
    TIME = "time"
    NUMBER = "number"
    PLUM_BLOSSOM = "plum_blossom"
    PERSONALIZED = "personalized"


# ============ 출생 정보 요청 ============

class BirthRequest(BaseModel):
    """출생 정보 (사주 / 자미두수 공통)"""
    name: Optional[str] = Field(None, max_length=50, description="이름/닉네임")
    birth_date: str = Field(..., description="생년월일 (양력, YYYY-MM-DD)")
    birth_time: Optional[str] = Field(None, description="출생 시각 (HH:MM, 선택)")
    gender: Optional[Gender] = Field(None, description="성별 (대운/대한 방향)")
    birth_place: Optional[str] = Field(None, max_length=100, description="출생지")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="출생지 경도")
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="출생지 위도")
    use_solar_time: Optional[bool] = Field(None, description="진태양시 보정 (미지정시 서버 설정)")

    @field_validator("birth_date")
    @classmethod
    def _check_date(cls, v: str) -> str:
        try:
            d = date.fromisoformat(v)
        except ValueError:
            raise ValueError("birth_date는 YYYY-MM-DD 형식이어야 합니다")
        if not 1800 <= d.year <= 2100:
            raise ValueError("birth_date 연도는 1800-2100 범위여야 합니다")
        return v

    @field_validator("birth_time")
    @classmethod
    def _check_time(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        try:
            datetime.strptime(v, "%H:%M")
        except ValueError:
            raise ValueError("birth_time은 HH:MM 형식이어야 합니다")
        return v

    def parts(self):
        """(year, month, day, hour, minute) - 시각 미입력시 hour=None"""
        d = date.fromisoformat(self.birth_date)
        if self.birth_time:
            t = datetime.strptime(self.birth_time, "%H:%M")
            return d.year, d.month, d.day, t.hour, t.minute
        return d.year, d.month, d.day, None, 0

    class Config:
        json_schema_extra = {
            "example": {
                "name": "张三",
                "birth_date": "1990-01-15",
                "birth_time": "14:30",
                "gender": "male",
                "birth_place": "北京",
                "longitude": 116.4,
                "latitude": 39.9,
            }
        }


class ZiweiRequest(BirthRequest):
    """자미두수 요청 (유년/유월 사화 선택)"""
    flow_year: Optional[int] = Field(None, ge=1800, le=2200, description="유년 (양력 연도)")
    flow_month: Optional[int] = Field(None, ge=1, le=12, description="유월 (음력 월, 1=寅월)")

    @model_validator(mode="after")
    def _check_flow(self):
        if self.flow_month is not None and self.flow_year is None:
            raise ValueError("flow_month는 flow_year와 함께 지정해야 합니다")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "birth_date": "1990-01-15",
                "birth_time": "14:30",
                "gender": "female",
                "flow_year": 2024,
                "flow_month": 3,
            }
        }


class BaziResponse(BaseModel):
    """사주 계산 응답"""
    success: bool = True
    birth_info: str = Field(..., description="입력된 출생 정보 요약")
    chart: Dict[str, Any] = Field(..., description="사주 원국 / 십신 / 오행 / 대운 / 절기")


class ZiweiResponse(BaseModel):
    """자미두수 명반 응답"""
    success: bool = True
    birth_info: str
    chart: Dict[str, Any] = Field(..., description="명궁 / 오행국 / 12궁 / 사화 / 대한")


class SolarTermItem(BaseModel):
    name: str
    index: int
    longitude: float
    time: str
    year: int
    is_jie: bool


class SolarTermsResponse(BaseModel):
    year: int
    method: str = Field(..., description="formula | ephem")
    terms: List[SolarTermItem]


class HourOption(BaseModel):
    """시간대 선택 옵션"""
    index: int = Field(..., description="지지 인덱스 (0-11)")
    branch: str = Field(..., description="지지 (子~亥)")
    branch_ko: str = Field(..., description="지지 한글 (자~해)")
    range_start: str = Field(..., description="시작 시간 (HH:MM)")
    range_end: str = Field(..., description="종료 시간 (HH:MM)")
    label: str = Field(..., description="표시 라벨")


# ============ 주역 ============

class DivinationRequest(BaseModel):
    """주역 기괘 요청"""
    question: str = Field(..., min_length=2, max_length=200, description="질문")
    user_id: Optional[str] = Field(None, max_length=64, description="사용자 ID (개인화 인자)")
    method: CastMethod = Field(CastMethod.PERSONALIZED, description="기괘 방법")
    local_time: Optional[datetime] = Field(None, description="사용자 현지 시각 (ISO 8601, 미지정시 서버 시각)")
    user_timezone: Optional[str] = Field(None, max_length=64, description="IANA 타임존 (예: Asia/Shanghai)")

    class Config:
        json_schema_extra = {
            "example": {
                "question": "今年的事业发展如何？",
                "user_id": "user_0042",
                "method": "personalized",
                "user_timezone": "Asia/Shanghai",
            }
        }


class DivinationResponse(BaseModel):
    success: bool = True
    result: Dict[str, Any] = Field(..., description="본괘 / 동효 / 변괘 / 호괘 / 착괘 / 종괘 / 오행 관계")


class RandomStatsResponse(BaseModel):
    success: bool = True
    statistics: Dict[str, Any]


# ============ 에러 응답 ============

class ErrorResponse(BaseModel):
    """에러 응답"""
    success: bool = False
    error_code: str
    message: str
    detail: Optional[str] = None
