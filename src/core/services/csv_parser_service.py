"""선수선급금 CSV 파싱 서비스."""

import logging
import re
import sys
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import pandas as pd

# Python 3.11+ 사용 시 tomllib, 이하 버전은 tomli 사용
if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        raise ImportError("Python 3.10 이하에서는 'tomli' 패키지가 필요합니다. pip install tomli")

from core.domain.models.advance_payment import AdvancePayment, CSVParseResult, UNASSIGNED
from core.domain.models.coercion_policy import CoercionPolicy, LENIENT

logger = logging.getLogger(__name__)

HEADER_NOT_FOUND = "CSV 헤더를 찾을 수 없습니다."

_NUMBER_PATTERN = re.compile(r"-?\d*\.?\d+")
_ISO_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
_YEAR_MONTH_PATTERN = re.compile(r"\d{4}-\d{2}")
# 인코딩이 깨지면서 생기는 대체 문자
_BROKEN_CHARS = re.compile("[\ufffd?]+")


@dataclass
class ParserSettings:
    """헤더 탐지와 행 필터링에 쓰는 설정값.

    ``config/parser_settings.toml`` 에서 읽으며, 파일이 없으면 기본값을 사용한다.
    """
    header_markers: List[str] = field(default_factory=lambda: ["고유"])
    data_markers: List[str] = field(default_factory=lambda: ["023-"])
    scan_limit: int = 10
    skip_markers: List[str] = field(default_factory=lambda: ["고유", "마감", "("])
    min_columns: int = 10
    advance_payment_keyword: str = "선급금"
    prepayment_keyword: str = "선수금"

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "ParserSettings":
        """TOML 설정 파일을 읽어 설정 객체를 만든다.

        Args:
            config_path: 설정 파일 경로. None이면 기본 경로 사용: config/parser_settings.toml
        """
        if config_path is None:
            # 프로젝트 루트에서 config 디렉토리 찾기
            project_root = Path(__file__).parent.parent.parent.parent
            path = project_root / "config" / "parser_settings.toml"
        else:
            path = Path(config_path)

        settings = cls()
        if not path.exists():
            logger.debug(f"설정 파일이 없어 기본값을 사용합니다: {path}")
            return settings

        with open(path, "rb") as f:
            config = tomllib.load(f)

        header = config.get("header", {})
        rows = config.get("rows", {})
        classification = config.get("classification", {})
        settings.header_markers = header.get("markers", settings.header_markers)
        settings.data_markers = header.get("data_markers", settings.data_markers)
        settings.scan_limit = header.get("scan_limit", settings.scan_limit)
        settings.skip_markers = rows.get("skip_markers", settings.skip_markers)
        settings.min_columns = rows.get("min_columns", settings.min_columns)
        settings.advance_payment_keyword = classification.get("advance_payment", settings.advance_payment_keyword)
        settings.prepayment_keyword = classification.get("prepayment", settings.prepayment_keyword)
        return settings


class HeaderLocator(ABC):
    """헤더 행 위치를 찾는 전략."""

    @abstractmethod
    def locate(self, lines: Sequence[str]) -> Optional[int]:
        """헤더 행 인덱스를 반환한다.

        데이터는 반환값 다음 줄부터 시작한다. 헤더 없이 첫 줄부터 데이터라면 -1,
        헤더를 찾지 못하면 ``None``.
        """
        raise NotImplementedError


class MarkerHeaderLocator(HeaderLocator):
    """처음 몇 줄에서 헤더 라벨 조각 또는 데이터 행 조각을 찾는다.

    - 헤더 조각(예: "고유")이 있는 줄 → 그 줄이 헤더
    - 데이터 조각(예: "023-")이 있는 줄 → 바로 앞 줄을 헤더로 간주
    """

    def __init__(
        self,
        markers: Sequence[str] = ("고유",),
        data_markers: Sequence[str] = ("023-",),
        scan_limit: int = 10
    ):
        self._markers = list(markers)
        self._data_markers = list(data_markers)
        self._scan_limit = scan_limit

    @classmethod
    def from_settings(cls, settings: ParserSettings) -> "MarkerHeaderLocator":
        return cls(settings.header_markers, settings.data_markers, settings.scan_limit)

    def locate(self, lines: Sequence[str]) -> Optional[int]:
        for idx, line in enumerate(lines[:self._scan_limit]):
            if any(marker in line for marker in self._markers):
                return idx
            if any(marker in line for marker in self._data_markers):
                return idx - 1
        return None


class FixedSkipHeaderLocator(HeaderLocator):
    """앞의 고정된 줄 수를 헤더 영역으로 건너뛴다 (이전 대시보드 방식)."""

    def __init__(self, skip: int = 3):
        self._skip = skip

    def locate(self, lines: Sequence[str]) -> Optional[int]:
        if len(lines) < self._skip:
            return None
        return self._skip - 1


class AdvancePaymentCsvParser:
    """선수선급금 CSV 원문을 ``AdvancePayment`` 리스트로 변환하는 파서.

    - 최대한 많은 행을 살리는 것이 목적이며, 개별 행의 문제로 예외를 던지지 않는다
    - 컬럼 순서는 고정 (``COLUMNS`` 참고)
    - 숫자/날짜 변환 실패는 ``CoercionPolicy`` 의 기본값으로 대체된다
    """

    # 고정 컬럼 순서 (0부터 시작)
    COLUMNS = (
        "id", "electric_key", "account", "gl_account_name", "mold_master",
        "mold_master_details", "contract_number", "company_code", "company_name",
        "year_month", "electric_date", "currency", "voucher_currency_amount",
        "local_currency_amount", "base_date", "start_plan_number",
        "payment_plan_number", "reference", "collection_manager", "department",
        "business_place", "investment_budget", "voucher_number", "text",
        "payment_status", "settlement_progress", "notes", "overdue",
        "overdue_months", "customer_name", "responsible_team", "sales_manager",
    )

    def __init__(
        self,
        settings: Optional[ParserSettings] = None,
        header_locator: Optional[HeaderLocator] = None,
        policy: CoercionPolicy = LENIENT
    ):
        """초기화.

        Args:
            settings: 파서 설정. None이면 기본 설정 파일을 읽는다.
            header_locator: 헤더 탐지 전략. None이면 설정 기반 ``MarkerHeaderLocator``.
            policy: 숫자/날짜 대체 정책
        """
        self._settings = settings or ParserSettings.load()
        self._header_locator = header_locator or MarkerHeaderLocator.from_settings(self._settings)
        self._policy = policy

    @property
    def policy(self) -> CoercionPolicy:
        return self._policy

    def parse(self, csv_content: str) -> CSVParseResult:
        """CSV 원문 전체를 파싱합니다.

        헤더를 찾지 못한 경우에만 파일 전체가 실패하며, 그 외의 문제는 행 단위로
        건너뛰거나 기본값으로 대체됩니다.
        """
        if csv_content.startswith("\ufeff"):
            csv_content = csv_content[1:]

        lines = re.split(r"\r?\n", csv_content)

        header_index = self._header_locator.locate(lines)
        if header_index is None:
            logger.error(f"CSV 헤더를 찾을 수 없습니다. 처음 몇 줄: {lines[:5]}")
            return CSVParseResult(errors=[HEADER_NOT_FOUND], header_found=False)

        # (원본 라인 인덱스, 라인) - 빈 줄 제외
        candidates = [
            (idx, line)
            for idx, line in enumerate(lines)
            if idx > header_index and line.strip()
        ]
        result = CSVParseResult(total_rows=len(candidates))

        for row_index, (line_index, line) in enumerate(candidates):
            try:
                columns = self.parse_line(line)
                if self._should_skip(columns):
                    continue
                payment = self._build_payment(columns, row_index, line_index + 1, result.warnings)
                result.data.append(payment)
                result.parsed_rows += 1
            except Exception as e:
                error_msg = f"라인 {line_index + 1}: {str(e) or '파싱 오류'}"
                result.errors.append(error_msg)
                logger.warning(error_msg)

        return result

    @staticmethod
    def parse_line(line: str) -> List[str]:
        """따옴표를 고려해 한 줄을 컬럼으로 나눈다.

        따옴표 안의 쉼표는 구분자가 아니며 ``""`` 는 따옴표 문자 하나가 된다.
        닫히지 않은 따옴표는 오류 없이 그대로 진행한다.
        """
        result = []
        current = []
        in_quotes = False
        i = 0
        while i < len(line):
            char = line[i]
            if char == '"':
                if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = not in_quotes
            elif char == "," and not in_quotes:
                result.append("".join(current).strip())
                current = []
            else:
                current.append(char)
            i += 1

        result.append("".join(current).strip())
        return result

    @staticmethod
    def clean_value(value: Optional[str]) -> str:
        """공백과 바깥 따옴표 한 겹, 깨진 문자를 제거한다."""
        if not value:
            return ""
        cleaned = value.strip()
        cleaned = re.sub(r"^[\"']|[\"']$", "", cleaned)
        cleaned = cleaned.strip()
        return _BROKEN_CHARS.sub("", cleaned)

    def parse_number(self, value: Optional[str]) -> Decimal:
        """금액 문자열을 Decimal로 변환. 해석할 수 없으면 정책의 기본값."""
        number = self._to_decimal(value)
        return self._policy.default_amount if number is None else number

    def parse_date(self, value: Optional[str]) -> str:
        """날짜 문자열을 YYYY-MM-DD로 변환. 해석할 수 없으면 정책의 대체 날짜."""
        parsed = self._to_date(value)
        return self._policy.fallback_date() if parsed is None else parsed

    def _should_skip(self, columns: List[str]) -> bool:
        """필수 데이터가 없거나 헤더/마감 행이면 True."""
        if len(columns) < self._settings.min_columns:
            return True
        first = columns[0].strip()
        if not first:
            return True
        return any(marker in first for marker in self._settings.skip_markers)

    @staticmethod
    def _to_decimal(value: Optional[str]) -> Optional[Decimal]:
        if not value:
            return None
        # 쉼표, 공백, 따옴표 제거
        cleaned = re.sub(r"[\",\s]", "", value)
        if not _NUMBER_PATTERN.fullmatch(cleaned):
            return None
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None

    def _to_date(self, value: Optional[str]) -> Optional[str]:
        cleaned = self.clean_value(value)
        if not cleaned:
            return None
        if _ISO_DATE_PATTERN.fullmatch(cleaned):
            return cleaned
        if _YEAR_MONTH_PATTERN.fullmatch(cleaned):
            return f"{cleaned}-01"

        try:
            parsed = pd.to_datetime(cleaned, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
        if pd.isna(parsed):
            return None
        return parsed.date().isoformat()

    def _build_payment(
        self,
        columns: List[str],
        row_index: int,
        line_no: int,
        warnings: List[str]
    ) -> AdvancePayment:
        """고정 컬럼 순서에 따라 레코드를 만든다."""

        def raw(idx: int) -> str:
            return columns[idx] if idx < len(columns) else ""

        def text(idx: int) -> str:
            return self.clean_value(raw(idx))

        def coerce(idx: int, convert: Callable[[str], Optional[object]], fallback: Callable[[], object]):
            value = convert(raw(idx))
            if value is not None:
                return value
            default = fallback()
            if self._policy.strict and raw(idx).strip():
                warnings.append(f"라인 {line_no}: {self.COLUMNS[idx]} 값 '{raw(idx)}' → {default}")
            return default

        def amount(idx: int) -> Decimal:
            return coerce(idx, self._to_decimal, lambda: self._policy.default_amount)

        def date_value(idx: int) -> str:
            return coerce(idx, self._to_date, self._policy.fallback_date)

        electric_key = amount(1)
        overdue_months = int(amount(28)) if raw(28) else None

        return AdvancePayment(
            id=text(0) or f"auto-{int(time.time() * 1000)}-{row_index}",
            electric_key=int(electric_key) or 1,
            account=text(2),
            gl_account_name=text(3),
            mold_master=text(4),
            mold_master_details=text(5),
            contract_number=text(6),
            company_code=text(7),
            company_name=text(8) or "알 수 없음",
            year_month=text(9),
            electric_date=date_value(10),
            currency=text(11) or "KRW",
            voucher_currency_amount=amount(12),
            local_currency_amount=amount(13),
            base_date=date_value(14),
            start_plan_number=text(15),
            payment_plan_number=text(16),
            reference=text(17),
            collection_manager=text(18),
            department=text(19) or UNASSIGNED,
            business_place=text(20),
            investment_budget=text(21),
            voucher_number=text(22) or f"V-{row_index}",
            text=text(23),
            payment_status=text(24) or "확인 필요",
            settlement_progress=text(25),
            notes=text(26),
            overdue=text(27),
            overdue_months=overdue_months,
            customer_name=text(29),
            responsible_team=text(30) or text(19) or UNASSIGNED,
            sales_manager=text(31) or text(18),
        )
