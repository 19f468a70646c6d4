"""부서별 프로젝트/담당자 분석 서비스."""

import csv
import dataclasses
import io
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Callable, Dict, Generic, List, Optional, Sequence, TypeVar

import pandas as pd

from core.domain.models.advance_payment import (
    AdvancePayment,
    PaymentClassification,
    UNASSIGNED,
    classify_gl_account,
)
from core.domain.models.analysis import (
    AnalysisItem,
    AnalysisStats,
    CurrencyAmount,
    DepartmentSummary,
    ManagerAnalysisFilters,
    ManagerAnalysisItem,
    ProjectAnalysisFilters,
    ProjectAnalysisItem,
)

logger = logging.getLogger(__name__)

ALL = "all"

ItemT = TypeVar("ItemT", bound=AnalysisItem)
FiltersT = TypeVar("FiltersT")


def _by_abs_total(item) -> Decimal:
    # 정렬 키: 금액 절대값 내림차순 (안정 정렬이므로 동률은 발견 순서 유지)
    return -abs(item.total_amount)


def format_amount(value: Decimal) -> str:
    """천 단위 구분 기호를 넣은 금액 문자열. 끝자리 0은 표시하지 않는다 (1234.50 → "1,234.5")."""
    # normalize() 가 만드는 1E+6 같은 지수 표기는 0을 더해 일반 표기로 되돌린다
    return f"{value.normalize() + Decimal('0'):,}"


def _active(value: Optional[str]) -> bool:
    return bool(value) and value != ALL


class DepartmentAnalysisService(ABC, Generic[ItemT, FiltersT]):
    """레코드를 부서 → 하위 항목(프로젝트/담당자)으로 묶어 집계하는 서비스.

    - ``generate_analysis`` 는 매번 전체를 다시 계산한다 (증분 갱신 없음)
    - 필터는 하위 항목을 걸러낸 뒤 부서 합계를 남은 항목으로 다시 계산한다
    - 집계 중 예외는 ``error`` 에 남기고 이전 결과를 유지한다
    """

    #: 오류 메시지에 쓰는 분석 이름
    NAME = "분석"
    #: 내보내기 헤더
    EXPORT_HEADER: Sequence[str] = ()

    def __init__(
        self,
        advance_keyword: str = PaymentClassification.ADVANCE_PAYMENT.value,
        prepayment_keyword: str = PaymentClassification.PREPAYMENT.value
    ):
        self._advance_keyword = advance_keyword
        self._prepayment_keyword = prepayment_keyword

        self.department_summaries: List[DepartmentSummary] = []
        self.filtered_summaries: List[DepartmentSummary] = []
        self.stats = AnalysisStats()
        self.filters: FiltersT = self._empty_filters()
        self.loading = False
        self.error: Optional[str] = None

    # ---------------------------------------------------------------------
    # 하위 클래스 구현 지점
    # ---------------------------------------------------------------------
    @abstractmethod
    def _empty_filters(self) -> FiltersT:
        raise NotImplementedError

    @abstractmethod
    def _child_key(self, payment: AdvancePayment) -> str:
        """하위 항목을 묶는 키."""
        raise NotImplementedError

    @abstractmethod
    def _new_child(self, department: str, key: str, payment: AdvancePayment) -> ItemT:
        """첫 레코드로 하위 항목을 만든다 (금액은 0으로 시작)."""
        raise NotImplementedError

    def _merge_child(self, child: ItemT, payment: AdvancePayment) -> None:
        """이미 있는 하위 항목에 레코드를 추가로 반영할 때의 추가 처리."""

    @abstractmethod
    def _child_filters(self, filters: FiltersT) -> List[Callable[[ItemT], bool]]:
        """활성화된 하위 항목 필터 조건 목록."""
        raise NotImplementedError

    @abstractmethod
    def _count_children(self, summaries: List[DepartmentSummary]) -> int:
        raise NotImplementedError

    @abstractmethod
    def _export_child_row(self, child: ItemT) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def _export_subtotal_row(self, summary: DepartmentSummary) -> List[str]:
        raise NotImplementedError

    # ---------------------------------------------------------------------
    # 집계
    # ---------------------------------------------------------------------
    def generate_analysis(self, payments: Sequence[AdvancePayment]) -> None:
        """레코드 전체로 부서별 요약과 통계를 다시 만듭니다."""
        self.loading = True
        self.error = None
        try:
            if not payments:
                self.department_summaries = []
                self.filtered_summaries = []
                self.stats = AnalysisStats()
                return

            summaries = self.group(payments)
            self.stats = self._calculate_stats(summaries)
            self.department_summaries = summaries
            self.apply_filters()
        except Exception as e:
            logger.exception(f"{self.NAME} 생성 오류: {e}")
            self.error = f"{self.NAME} 생성에 실패했습니다."
        finally:
            self.loading = False

    def group(self, payments: Sequence[AdvancePayment]) -> List[DepartmentSummary]:
        """부서 → 하위 항목 2단계 그룹핑 후 금액 절대값 내림차순 정렬."""
        departments: Dict[str, DepartmentSummary] = {}
        children: Dict[str, Dict[str, ItemT]] = {}

        for payment in payments:
            dept = payment.department or UNASSIGNED
            summary = departments.get(dept)
            if summary is None:
                summary = departments[dept] = DepartmentSummary(department=dept)
                children[dept] = {}

            classification = classify_gl_account(
                payment.gl_account_name, self._advance_keyword, self._prepayment_keyword
            )
            amount = payment.local_currency_amount
            self._accumulate(summary, classification, amount)

            key = self._child_key(payment) or UNASSIGNED
            child = children[dept].get(key)
            if child is None:
                child = children[dept][key] = self._new_child(dept, key, payment)
                summary.children.append(child)
                summary.child_count += 1
            else:
                self._merge_child(child, payment)
            self._accumulate_child(child, classification, amount)

            self._on_record(summary, payment, classification, amount)

        result = sorted(departments.values(), key=_by_abs_total)
        for summary in result:
            summary.children.sort(key=_by_abs_total)
        return result

    def _on_record(
        self,
        summary: DepartmentSummary,
        payment: AdvancePayment,
        classification: PaymentClassification,
        amount: Decimal
    ) -> None:
        """부서 단위로 레코드마다 추가 집계가 필요할 때 사용."""

    @staticmethod
    def _accumulate(summary: DepartmentSummary, classification: PaymentClassification, amount: Decimal) -> None:
        if classification is PaymentClassification.ADVANCE_PAYMENT:
            summary.total_advance_payment += amount
        elif classification is PaymentClassification.PREPAYMENT:
            summary.total_prepayment += amount
        summary.total_amount += amount
        summary.item_count += 1

    @staticmethod
    def _accumulate_child(child: AnalysisItem, classification: PaymentClassification, amount: Decimal) -> None:
        if classification is PaymentClassification.ADVANCE_PAYMENT:
            child.advance_payment_amount += amount
        elif classification is PaymentClassification.PREPAYMENT:
            child.prepayment_amount += amount
        child.total_amount += amount
        child.item_count += 1

    def _calculate_stats(self, summaries: List[DepartmentSummary]) -> AnalysisStats:
        all_children = sorted(
            (child for summary in summaries for child in summary.children),
            key=_by_abs_total
        )
        return AnalysisStats(
            total_departments=len(summaries),
            total_children=self._count_children(summaries),
            total_advance_payment=sum((s.total_advance_payment for s in summaries), Decimal("0")),
            total_prepayment=sum((s.total_prepayment for s in summaries), Decimal("0")),
            grand_total=sum((s.total_amount for s in summaries), Decimal("0")),
            top_department=summaries[0].department if summaries else "",
            top_child=all_children[0].key if all_children else "",
        )

    # ---------------------------------------------------------------------
    # 필터
    # ---------------------------------------------------------------------
    def set_filters(self, **clauses) -> None:
        self.filters = dataclasses.replace(self.filters, **clauses)
        self.apply_filters()

    def clear_filters(self) -> None:
        self.filters = self._empty_filters()
        self.apply_filters()

    def apply_filters(self) -> None:
        """현재 필터를 요약에 적용합니다. 원본 요약은 변경하지 않습니다."""
        self.filtered_summaries = self.filter_summaries(self.department_summaries, self.filters)

    def filter_summaries(
        self,
        summaries: Sequence[DepartmentSummary],
        filters: FiltersT
    ) -> List[DepartmentSummary]:
        """부서 필터 → 하위 항목 필터 → 빈 부서 제거 → 부서 합계 재계산."""
        department = getattr(filters, "department", None)
        selected = [s for s in summaries if not _active(department) or s.department == department]

        predicates = self._child_filters(filters)
        result = []
        for summary in selected:
            children = [c for c in summary.children if all(p(c) for p in predicates)]
            if not children:
                continue
            if predicates:
                result.append(self._recompute(summary, children))
            else:
                result.append(dataclasses.replace(summary, children=list(children)))
        return result

    def _recompute(self, summary: DepartmentSummary, children: List[ItemT]) -> DepartmentSummary:
        """남은 하위 항목으로 부서 합계를 다시 계산한 사본."""
        return dataclasses.replace(
            summary,
            children=children,
            total_advance_payment=sum((c.advance_payment_amount for c in children), Decimal("0")),
            total_prepayment=sum((c.prepayment_amount for c in children), Decimal("0")),
            total_amount=sum((c.total_amount for c in children), Decimal("0")),
            item_count=sum(c.item_count for c in children),
            child_count=len(children),
        )

    # ---------------------------------------------------------------------
    # 내보내기
    # ---------------------------------------------------------------------
    def export_rows(self) -> List[List[str]]:
        """필터 결과를 내보내기 행으로 변환 (하위 항목 행, 부서 소계 행, 빈 행 반복)."""
        rows = [list(self.EXPORT_HEADER)]
        for summary in self.filtered_summaries:
            for child in summary.children:
                rows.append(self._export_child_row(child))
            rows.append(self._export_subtotal_row(summary))
            rows.append([""])
        return rows

    def export_csv_text(self) -> str:
        """모든 셀을 큰따옴표로 감싼 UTF-8 BOM CSV 문자열."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerows(self.export_rows())
        return "\ufeff" + buffer.getvalue().rstrip("\n")

    def to_dataframe(self) -> pd.DataFrame:
        """필터 결과의 하위 항목을 DataFrame으로 변환 (엑셀 저장용)."""
        header = list(self.EXPORT_HEADER)
        records = [
            dict(zip(header, self._export_child_row(child)))
            for summary in self.filtered_summaries
            for child in summary.children
        ]
        return pd.DataFrame(records, columns=header)


class ProjectAnalysisService(DepartmentAnalysisService[ProjectAnalysisItem, ProjectAnalysisFilters]):
    """부서 → 프로젝트(금형마스터) 분석."""

    NAME = "프로젝트 분석"
    EXPORT_HEADER = ("부서", "금형마스터", "금형마스터내역", "정산진행현황", "대금지급",
                     "선급금", "선수금", "합계", "통화", "항목수")

    def _empty_filters(self) -> ProjectAnalysisFilters:
        return ProjectAnalysisFilters()

    def _child_key(self, payment: AdvancePayment) -> str:
        return payment.mold_master

    def _new_child(self, department: str, key: str, payment: AdvancePayment) -> ProjectAnalysisItem:
        return ProjectAnalysisItem(
            department=department,
            mold_master=key,
            mold_master_details=payment.mold_master_details,
            settlement_progress=payment.settlement_progress or "미진행",
            payment_status=payment.payment_status,
            currency=payment.currency,
        )

    def _on_record(self, summary, payment, classification, amount) -> None:
        # 통화별 분석
        currency = summary.currency_breakdown.setdefault(payment.currency, CurrencyAmount())
        if classification is PaymentClassification.ADVANCE_PAYMENT:
            currency.advance_payment += amount
        elif classification is PaymentClassification.PREPAYMENT:
            currency.prepayment += amount
        currency.total += amount

    def _recompute(self, summary, children):
        recomputed = super()._recompute(summary, children)
        breakdown: Dict[str, CurrencyAmount] = {}
        for child in children:
            currency = breakdown.setdefault(child.currency, CurrencyAmount())
            currency.advance_payment += child.advance_payment_amount
            currency.prepayment += child.prepayment_amount
            currency.total += child.total_amount
        return dataclasses.replace(recomputed, currency_breakdown=breakdown)

    def _child_filters(self, filters: ProjectAnalysisFilters):
        predicates = []
        if filters.mold_master:
            keyword = filters.mold_master.lower()
            predicates.append(
                lambda p: keyword in p.mold_master.lower() or keyword in p.mold_master_details.lower()
            )
        if _active(filters.payment_status):
            predicates.append(lambda p: p.payment_status == filters.payment_status)
        if _active(filters.settlement_progress):
            predicates.append(lambda p: p.settlement_progress == filters.settlement_progress)
        if _active(filters.currency):
            predicates.append(lambda p: p.currency == filters.currency)
        if filters.search_term:
            term = filters.search_term.lower()
            predicates.append(
                lambda p: any(
                    term in value.lower()
                    for value in (p.mold_master, p.mold_master_details, p.payment_status, p.settlement_progress)
                )
            )
        return predicates

    def _count_children(self, summaries: List[DepartmentSummary]) -> int:
        return sum(s.child_count for s in summaries)

    def _export_child_row(self, child: ProjectAnalysisItem) -> List[str]:
        return [
            child.department,
            child.mold_master,
            child.mold_master_details,
            child.settlement_progress,
            child.payment_status,
            format_amount(child.advance_payment_amount),
            format_amount(child.prepayment_amount),
            format_amount(child.total_amount),
            child.currency,
            str(child.item_count),
        ]

    def _export_subtotal_row(self, summary: DepartmentSummary) -> List[str]:
        return [
            f"{summary.department} 소계", "", "", "", "",
            format_amount(summary.total_advance_payment),
            format_amount(summary.total_prepayment),
            format_amount(summary.total_amount),
            "",
            str(summary.item_count),
        ]


class ManagerAnalysisService(DepartmentAnalysisService[ManagerAnalysisItem, ManagerAnalysisFilters]):
    """부서 → 회수담당자 분석."""

    NAME = "담당자별 분석"
    EXPORT_HEADER = ("부서", "회수담당", "정산진행현황", "선급금", "선수금", "합계", "항목수")

    def _empty_filters(self) -> ManagerAnalysisFilters:
        return ManagerAnalysisFilters()

    def _child_key(self, payment: AdvancePayment) -> str:
        return payment.collection_manager

    def _new_child(self, department: str, key: str, payment: AdvancePayment) -> ManagerAnalysisItem:
        return ManagerAnalysisItem(
            department=department,
            collection_manager=key,
            settlement_progress=payment.settlement_progress or "미진행",
        )

    def _merge_child(self, child: ManagerAnalysisItem, payment: AdvancePayment) -> None:
        # 입력 순서상 마지막으로 나온 정산진행현황으로 덮어쓴다
        if payment.settlement_progress:
            child.settlement_progress = payment.settlement_progress

    def _child_filters(self, filters: ManagerAnalysisFilters):
        predicates = []
        if filters.collection_manager:
            keyword = filters.collection_manager.lower()
            predicates.append(lambda m: keyword in m.collection_manager.lower())
        if _active(filters.settlement_progress):
            predicates.append(lambda m: m.settlement_progress == filters.settlement_progress)
        if filters.search_term:
            term = filters.search_term.lower()
            predicates.append(
                lambda m: any(
                    term in value.lower()
                    for value in (m.collection_manager, m.settlement_progress, m.department)
                )
            )
        return predicates

    def _count_children(self, summaries: List[DepartmentSummary]) -> int:
        # 같은 담당자가 여러 부서에 나올 수 있으므로 이름 기준으로 센다
        return len({child.collection_manager for s in summaries for child in s.children})

    def _export_child_row(self, child: ManagerAnalysisItem) -> List[str]:
        return [
            child.department,
            child.collection_manager,
            child.settlement_progress,
            format_amount(child.advance_payment_amount),
            format_amount(child.prepayment_amount),
            format_amount(child.total_amount),
            str(child.item_count),
        ]

    def _export_subtotal_row(self, summary: DepartmentSummary) -> List[str]:
        return [
            f"{summary.department} 소계", "", "",
            format_amount(summary.total_advance_payment),
            format_amount(summary.total_prepayment),
            format_amount(summary.total_amount),
            str(summary.item_count),
        ]
