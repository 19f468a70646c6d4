"""선수선급금 레코드 저장소 서비스."""

import dataclasses
import logging
import threading
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional

from core.domain.models.advance_payment import (
    AdvancePayment,
    AdvancePaymentFilters,
    AdvancePaymentStats,
    CSVParseResult,
    GroupAmount,
    sample_payment,
)
from core.ports.file_reader_port import FileReaderPort
from core.services.csv_parser_service import AdvancePaymentCsvParser

logger = logging.getLogger(__name__)

LOAD_FAILED = "CSV 파일을 불러오는데 실패했습니다."


class AdvancePaymentStore:
    """레코드 원본, 필터, 선택 상태를 보관하는 상태 컨테이너.

    - 모든 변경 작업 후 필터 결과(``filtered_payments``)와 통계(``stats``)를 즉시 다시 계산
    - 파생 상태를 모두 계산한 뒤에 원본과 함께 교체하므로, 실패한 작업은 이전 상태를 그대로 남긴다
    - 통계는 필터와 무관하게 전체 레코드 기준
    - 각 작업에서 발생한 예외는 ``error`` 에 메시지로 남기고 밖으로 던지지 않음
    """

    def __init__(
        self,
        parser: Optional[AdvancePaymentCsvParser] = None,
        file_reader: Optional[FileReaderPort] = None
    ):
        self._parser = parser or AdvancePaymentCsvParser()
        self._file_reader = file_reader
        self._load_lock = threading.Lock()

        self.payments: List[AdvancePayment] = []
        self.filtered_payments: List[AdvancePayment] = []
        self.stats = AdvancePaymentStats()
        self.filters = AdvancePaymentFilters()
        self.selected_payments: List[str] = []
        self.loading = False
        self.error: Optional[str] = None
        self.last_parse_result: Optional[CSVParseResult] = None

    # ---------------------------------------------------------------------
    # 데이터 변경
    # ---------------------------------------------------------------------
    def set_payments(self, payments: Iterable[AdvancePayment]) -> bool:
        """레코드 원본을 교체합니다. 타임스탬프가 없는 레코드에는 현재 시각을 기록합니다."""
        try:
            now = datetime.now().isoformat()
            self._commit([
                payment if payment.created_at else dataclasses.replace(payment, created_at=now, updated_at=now)
                for payment in payments
            ])
            return True
        except Exception as e:
            logger.exception(f"레코드 설정 실패: {e}")
            self.error = "데이터를 설정하지 못했습니다."
            return False

    def add_payment(self, fields: Mapping[str, Any]) -> Optional[AdvancePayment]:
        """새 레코드를 추가합니다.

        Args:
            fields: ``id``/``created_at``/``updated_at`` 을 제외한 레코드 필드

        Returns:
            추가된 레코드, 실패 시 None
        """
        try:
            data = {k: v for k, v in fields.items() if k not in ("id", "created_at", "updated_at")}
            now = datetime.now().isoformat()
            payment = AdvancePayment(**data, id=uuid.uuid4().hex, created_at=now, updated_at=now)
            self._commit([*self.payments, payment])
            return payment
        except Exception as e:
            logger.exception(f"레코드 추가 실패: {e}")
            self.error = "항목 추가에 실패했습니다."
            return None

    def update_payment(self, payment_id: str, updates: Mapping[str, Any]) -> bool:
        """일치하는 레코드에 일부 필드를 반영합니다.

        Returns:
            수정 여부. 없는 id면 상태를 바꾸지 않고 False.
        """
        if not any(p.id == payment_id for p in self.payments):
            logger.warning(f"수정 대상 레코드가 없습니다: {payment_id}")
            return False

        try:
            changes = {k: v for k, v in updates.items() if k not in ("id", "created_at")}
            now = datetime.now().isoformat()
            self._commit([
                dataclasses.replace(p, **{**changes, "updated_at": now}) if p.id == payment_id else p
                for p in self.payments
            ])
            return True
        except Exception as e:
            logger.exception(f"레코드 수정 실패 ({payment_id}): {e}")
            self.error = "항목 수정에 실패했습니다."
            return False

    def delete_payment(self, payment_id: str) -> bool:
        """단일 레코드를 삭제하고 선택 목록에서도 제거합니다."""
        try:
            remaining = [p for p in self.payments if p.id != payment_id]
            if len(remaining) == len(self.payments):
                logger.warning(f"삭제 대상 레코드가 없습니다: {payment_id}")
                return False

            self._commit(remaining)
            self.selected_payments = [sid for sid in self.selected_payments if sid != payment_id]
            return True
        except Exception as e:
            logger.exception(f"레코드 삭제 실패 ({payment_id}): {e}")
            self.error = "항목 삭제에 실패했습니다."
            return False

    def delete_payments(self, payment_ids: Iterable[str]) -> int:
        """여러 레코드를 삭제하고 선택을 초기화합니다.

        Returns:
            삭제된 레코드 수
        """
        try:
            ids = set(payment_ids)
            remaining = [p for p in self.payments if p.id not in ids]
            removed = len(self.payments) - len(remaining)

            self._commit(remaining)
            self.selected_payments = []
            return removed
        except Exception as e:
            logger.exception(f"레코드 일괄 삭제 실패: {e}")
            self.error = "항목 삭제에 실패했습니다."
            return 0

    # ---------------------------------------------------------------------
    # 필터
    # ---------------------------------------------------------------------
    def set_filters(self, **clauses: Any) -> bool:
        """기존 필터에 조건을 합쳐 다시 적용합니다. 실패하면 이전 필터를 유지합니다."""
        try:
            filters = dataclasses.replace(self.filters, **clauses)
            filtered = self._filter(self.payments, filters)
        except Exception as e:
            logger.exception(f"필터 적용 실패 ({clauses}): {e}")
            self.error = "필터를 적용하지 못했습니다."
            return False

        self.filters = filters
        self.filtered_payments = filtered
        return True

    def clear_filters(self) -> None:
        self.filters = AdvancePaymentFilters()
        self.filtered_payments = list(self.payments)

    def apply_filters(self) -> bool:
        """현재 필터로 ``filtered_payments`` 를 다시 계산합니다."""
        try:
            self.filtered_payments = self._filter(self.payments, self.filters)
            return True
        except Exception as e:
            logger.exception(f"필터 적용 실패: {e}")
            self.error = "필터를 적용하지 못했습니다."
            return False

    def _filter(self, payments: List[AdvancePayment], filters: AdvancePaymentFilters) -> List[AdvancePayment]:
        # 금액 조건은 한 번만 변환 (잘못된 값이면 여기서 실패)
        min_amount = Decimal(str(filters.min_amount)) if filters.min_amount is not None else None
        max_amount = Decimal(str(filters.max_amount)) if filters.max_amount is not None else None
        return [p for p in payments if self._matches(p, filters, min_amount, max_amount)]

    @staticmethod
    def _matches(
        payment: AdvancePayment,
        filters: AdvancePaymentFilters,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None
    ) -> bool:
        """모든 조건을 AND로 결합한 필터 판정."""
        if filters.company_name and filters.company_name.lower() not in payment.company_name.lower():
            return False
        if filters.department and payment.department != filters.department:
            return False
        if filters.payment_status and payment.payment_status != filters.payment_status:
            return False
        if filters.overdue and payment.overdue != filters.overdue:
            return False

        if filters.date_range:
            try:
                electric_date = date.fromisoformat(payment.electric_date)
                start = date.fromisoformat(filters.date_range.start)
                end = date.fromisoformat(filters.date_range.end)
            except (TypeError, ValueError):
                return False
            if not start <= electric_date <= end:
                return False

        if filters.search_term:
            term = filters.search_term.lower()
            haystacks = (
                payment.company_name,
                payment.text,
                payment.contract_number or "",
                payment.voucher_number,
            )
            if not any(term in value.lower() for value in haystacks):
                return False

        amount = payment.local_currency_amount
        if min_amount is not None and amount < min_amount:
            return False
        if max_amount is not None and amount > max_amount:
            return False

        if filters.currency and payment.currency != filters.currency:
            return False
        return True

    # ---------------------------------------------------------------------
    # 선택 관리
    # ---------------------------------------------------------------------
    def select_payment(self, payment_id: str) -> None:
        """선택 상태를 토글합니다."""
        if payment_id in self.selected_payments:
            self.selected_payments = [sid for sid in self.selected_payments if sid != payment_id]
        else:
            self.selected_payments = [*self.selected_payments, payment_id]

    def select_all_payments(self) -> None:
        self.selected_payments = [p.id for p in self.filtered_payments]

    def clear_selection(self) -> None:
        self.selected_payments = []

    # ---------------------------------------------------------------------
    # 통계
    # ---------------------------------------------------------------------
    def update_stats(self) -> bool:
        """전체 레코드 기준 통계 계산."""
        try:
            self.stats = self._calculate_stats(self.payments)
            return True
        except Exception as e:
            logger.exception(f"통계 계산 실패: {e}")
            self.error = "통계를 계산하지 못했습니다."
            return False

    @staticmethod
    def _calculate_stats(payments: List[AdvancePayment]) -> AdvancePaymentStats:
        stats = AdvancePaymentStats(total_count=len(payments))

        for payment in payments:
            amount = payment.local_currency_amount
            stats.total_amount += amount
            if payment.is_overdue:
                stats.overdue_count += 1
                stats.overdue_amount += amount

            dept = stats.by_department.setdefault(payment.department, GroupAmount())
            dept.count += 1
            dept.amount += amount

            status = stats.by_status.setdefault(payment.payment_status, GroupAmount())
            status.count += 1
            status.amount += amount

        return stats

    # ---------------------------------------------------------------------
    # CSV 로드
    # ---------------------------------------------------------------------
    def parse_csv_data(self, csv_data: str) -> CSVParseResult:
        """CSV 원문을 파싱해 레코드 원본을 교체합니다.

        헤더를 찾지 못하면 오류 메시지와 함께 샘플 레코드를 표시합니다.
        """
        result = self._parser.parse(csv_data)
        self.last_parse_result = result

        if result.errors:
            logger.warning(f"CSV 파싱 중 오류: {result.errors}")
        logger.info(f"CSV 파싱 완료: {result.parsed_rows}/{result.total_rows} 행 처리됨")

        if not result.header_found:
            self.error = result.errors[0] if result.errors else "CSV 파싱에 실패했습니다."
            self.set_payments([sample_payment()])
            return result

        self.set_payments(result.data)
        return result

    def load_csv(self, source: str) -> bool:
        """파일 경로 또는 URL에서 CSV를 읽어 로드합니다.

        다른 로드가 진행 중이면 (다른 스레드든 같은 호출 안이든) 요청을 무시합니다.
        읽기에 실패하면 샘플 레코드를 표시합니다.

        Returns:
            정상 로드 여부
        """
        if self._file_reader is None:
            logger.error("FileReaderPort가 설정되지 않았습니다.")
            self.error = LOAD_FAILED
            return False

        if not self._load_lock.acquire(blocking=False):
            logger.warning(f"이미 CSV를 로드하는 중입니다. 요청을 무시합니다: {source}")
            return False

        self.loading = True
        self.error = None
        try:
            csv_content = self._file_reader.read_text(source)
            result = self.parse_csv_data(csv_content)
            return result.header_found and self.error is None
        except Exception as e:
            logger.exception(f"CSV 파일 로드 실패: {e}")
            self.error = LOAD_FAILED
            self.set_payments([sample_payment()])
            return False
        finally:
            self.loading = False
            self._load_lock.release()

    def _commit(self, payments: List[AdvancePayment]) -> None:
        """필터 결과와 통계를 먼저 계산한 뒤 원본과 함께 교체한다."""
        filtered = self._filter(payments, self.filters)
        stats = self._calculate_stats(payments)
        self.payments, self.filtered_payments, self.stats = payments, filtered, stats
