"""값 변환 정책 모델."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable

from core.domain.models.advance_payment import today_iso


@dataclass(frozen=True)
class CoercionPolicy:
    """파싱할 수 없는 셀 값을 대체하는 규칙.

    Attributes:
        default_amount: 숫자로 해석할 수 없는 금액의 대체값
        fallback_date: 날짜로 해석할 수 없는 값의 대체값을 만드는 함수
        strict: True면 대체가 일어날 때마다 경고를 남긴다 (오류로 취급하지 않음)
    """
    default_amount: Decimal = Decimal("0")
    fallback_date: Callable[[], str] = field(default=today_iso)
    strict: bool = False


LENIENT = CoercionPolicy()
STRICT = CoercionPolicy(strict=True)
