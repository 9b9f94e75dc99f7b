"""
계산 오류 정의
- 모든 엔진 오류는 CalculationError 하위 클래스
- 라우터에서 error_code로 변환
"""


class CalculationError(Exception):
    """계산 오류"""
    error_code = "CALCULATION_ERROR"


class InvalidInput(CalculationError):
    """잘못된 입력 (날짜/시간 범위, 간지 조합 등)"""
    error_code = "INVALID_INPUT"


class InvalidCombination(InvalidInput):
    """천간/지지 음양이 맞지 않는 조합 (예: 甲丑)"""
    error_code = "INVALID_COMBINATION"


class UnresolvedSolarTerm(CalculationError):
    """절기 구간을 찾지 못함 - 절기 데이터 내부 오류"""
    error_code = "UNRESOLVED_SOLAR_TERM"
