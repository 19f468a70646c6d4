"""선수선급금 도메인 모델."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


UNASSIGNED = "미지정"
OVERDUE_EXCEEDED = "초과"


class PaymentClassification(Enum):
    """G/L계정명 기준 분류."""
    ADVANCE_PAYMENT = "선급금"
    PREPAYMENT = "선수금"
    NONE = ""


def classify_gl_account(
    gl_account_name: str,
    advance_keyword: str = PaymentClassification.ADVANCE_PAYMENT.value,
    prepayment_keyword: str = PaymentClassification.PREPAYMENT.value
) -> PaymentClassification:
    """G/L계정명에 포함된 키워드로 선급금/선수금 여부를 판단한다.

    선급금 키워드가 먼저 검사되므로 두 키워드를 모두 포함하는 계정은 선급금이다.
    """
    name = gl_account_name or ""
    if advance_keyword in name:
        return PaymentClassification.ADVANCE_PAYMENT
    if prepayment_keyword in name:
        return PaymentClassification.PREPAYMENT
    return PaymentClassification.NONE


@dataclass
class AdvancePayment:
    """선수선급금 레코드 엔티티."""
    id: str = ""                                  # 고유넘버
    electric_key: int = 1                         # 전기키
    account: str = ""                             # 계정
    gl_account_name: str = ""                     # G/L계정명
    mold_master: str = ""                         # 금형마스터
    mold_master_details: str = ""                 # 금형마스터내역
    contract_number: Optional[str] = None         # 계약번호
    company_code: str = ""                        # 업체코드
    company_name: str = ""                        # 업체명
    year_month: str = ""                          # 연도/월
    electric_date: str = ""                       # 전기일 (YYYY-MM-DD)
    currency: str = "KRW"                         # 통화
    voucher_currency_amount: Decimal = Decimal("0")  # 전표통화액
    local_currency_amount: Decimal = Decimal("0")    # 현지통화액
    base_date: str = ""                           # 기준일 (YYYY-MM-DD)
    start_plan_number: Optional[str] = None       # 착수기안번호
    payment_plan_number: Optional[str] = None     # 지급기안번호
    reference: Optional[str] = None               # 참조
    collection_manager: str = ""                  # 회수담당
    department: str = UNASSIGNED                  # 부서
    business_place: Optional[str] = None          # 사업장
    investment_budget: Optional[str] = None       # 투자예산
    voucher_number: str = ""                      # 전표번호
    text: str = ""                                # 텍스트
    payment_status: str = ""                      # 대금지급
    settlement_progress: Optional[str] = None     # 정산진행현황
    notes: Optional[str] = None                   # 비고
    overdue: str = ""                             # 기한경과
    overdue_months: Optional[int] = None          # 경과기간(개월)
    customer_name: Optional[str] = None           # 고객명
    responsible_team: str = ""                    # 담당팀
    sales_manager: str = ""                       # 영업담당
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_overdue(self) -> bool:
        return self.overdue == OVERDUE_EXCEEDED

    @property
    def classification(self) -> PaymentClassification:
        return classify_gl_account(self.gl_account_name)


@dataclass
class DateRange:
    """전기일 범위 (양 끝 포함)."""
    start: str
    end: str


@dataclass
class AdvancePaymentFilters:
    """레코드 목록 필터. ``None`` 또는 빈 값인 조건은 전체와 일치한다."""
    company_name: Optional[str] = None
    department: Optional[str] = None
    payment_status: Optional[str] = None
    overdue: Optional[str] = None
    date_range: Optional[DateRange] = None
    search_term: Optional[str] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    currency: Optional[str] = None


@dataclass
class GroupAmount:
    """그룹별 건수/금액."""
    count: int = 0
    amount: Decimal = Decimal("0")


@dataclass
class AdvancePaymentStats:
    """전체 레코드 기준 단순 통계."""
    total_amount: Decimal = Decimal("0")
    total_count: int = 0
    overdue_amount: Decimal = Decimal("0")
    overdue_count: int = 0
    by_department: Dict[str, GroupAmount] = field(default_factory=dict)
    by_status: Dict[str, GroupAmount] = field(default_factory=dict)


@dataclass
class CSVParseResult:
    """CSV 파싱 결과.

    Attributes:
        data: 파싱된 레코드 리스트
        errors: 라인 번호가 포함된 오류 메시지
        total_rows: 헤더 이후 비어있지 않은 후보 데이터 라인 수
        parsed_rows: 레코드로 변환된 라인 수
        warnings: strict 모드에서 기본값으로 대체된 값에 대한 경고
        header_found: 헤더 탐지 성공 여부 (False면 파일 전체 실패)
    """
    data: List[AdvancePayment] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    total_rows: int = 0
    parsed_rows: int = 0
    warnings: List[str] = field(default_factory=list)
    header_found: bool = True


def sample_payment() -> AdvancePayment:
    """CSV 로드 실패 시 화면이 비지 않도록 사용하는 샘플 레코드."""
    now = datetime.now().isoformat()
    return AdvancePayment(
        id="sample-1",
        electric_key=1,
        account="0000110630",
        gl_account_name="지급금(영업)",
        mold_master="SAMPLE001",
        mold_master_details="Sample Data - CSV 로드 실패",
        contract_number="SAMPLE",
        company_code="99999",
        company_name="샘플 데이터",
        year_month="2025-01",
        electric_date="2025-01-01",
        currency="KRW",
        voucher_currency_amount=Decimal("1000000"),
        local_currency_amount=Decimal("1000000"),
        base_date="2025-12-31",
        start_plan_number="SAMPLE-001",
        payment_plan_number="SAMPLE-001",
        reference="CSV 파일 로드 실패로 인한 샘플 데이터",
        collection_manager="시스템",
        department="테스트팀",
        business_place="1000",
        investment_budget="TEST",
        voucher_number="SAMPLE001",
        text="CSV 파일을 정상적으로 로드할 수 없어 샘플 데이터를 표시합니다.",
        payment_status="확인 필요",
        settlement_progress="",
        notes="CSV 파일 로드 오류",
        overdue="",
        overdue_months=None,
        customer_name="",
        responsible_team="테스트팀",
        sales_manager="시스템",
        created_at=now,
        updated_at=now,
    )


def today_iso() -> str:
    """오늘 날짜 (YYYY-MM-DD)."""
    return date.today().isoformat()
