"""프로젝트별/담당자별 분석 모델."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional


@dataclass
class AnalysisItem(ABC):
    """부서 하위 집계 항목의 공통 필드."""
    department: str
    settlement_progress: str = "미진행"            # 정산진행현황
    advance_payment_amount: Decimal = Decimal("0")  # 선급금
    prepayment_amount: Decimal = Decimal("0")       # 선수금
    total_amount: Decimal = Decimal("0")            # 합계
    item_count: int = 0

    @property
    @abstractmethod
    def key(self) -> str:
        """부서 안에서 하위 항목을 구분하는 키."""


@dataclass
class ProjectAnalysisItem(AnalysisItem):
    """프로젝트(금형마스터)별 집계."""
    mold_master: str = ""
    mold_master_details: str = ""
    payment_status: str = ""
    currency: str = ""

    @property
    def key(self) -> str:
        return self.mold_master


@dataclass
class ManagerAnalysisItem(AnalysisItem):
    """회수담당자별 집계."""
    collection_manager: str = ""

    @property
    def key(self) -> str:
        return self.collection_manager


@dataclass
class CurrencyAmount:
    """통화별 선급금/선수금/합계."""
    advance_payment: Decimal = Decimal("0")
    prepayment: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


@dataclass
class DepartmentSummary:
    """부서별 요약. ``children`` 은 금액 절대값 내림차순으로 정렬된다."""
    department: str
    total_advance_payment: Decimal = Decimal("0")
    total_prepayment: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    item_count: int = 0
    child_count: int = 0
    children: List[AnalysisItem] = field(default_factory=list)
    currency_breakdown: Dict[str, CurrencyAmount] = field(default_factory=dict)


@dataclass
class AnalysisStats:
    """분석 전체 통계."""
    total_departments: int = 0
    total_children: int = 0
    total_advance_payment: Decimal = Decimal("0")
    total_prepayment: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")
    top_department: str = ""
    top_child: str = ""


@dataclass
class ProjectAnalysisFilters:
    department: Optional[str] = None
    mold_master: Optional[str] = None
    payment_status: Optional[str] = None
    settlement_progress: Optional[str] = None
    currency: Optional[str] = None
    search_term: Optional[str] = None


@dataclass
class ManagerAnalysisFilters:
    department: Optional[str] = None
    collection_manager: Optional[str] = None
    settlement_progress: Optional[str] = None
    search_term: Optional[str] = None
