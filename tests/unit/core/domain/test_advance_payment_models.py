"""선수선급금 도메인 모델 테스트."""

from decimal import Decimal

import pytest

from core.domain.models.advance_payment import (
    AdvancePayment,
    PaymentClassification,
    classify_gl_account,
    sample_payment,
)
from core.domain.models.analysis import AnalysisItem, ManagerAnalysisItem, ProjectAnalysisItem
from core.domain.models.coercion_policy import LENIENT, STRICT


@pytest.mark.parametrize("name, expected", [
    ("선급금(국내)", PaymentClassification.ADVANCE_PAYMENT),
    ("선수금(해외)", PaymentClassification.PREPAYMENT),
    ("선급금/선수금 대체", PaymentClassification.ADVANCE_PAYMENT),
    ("미지급금", PaymentClassification.NONE),
    ("", PaymentClassification.NONE),
    (None, PaymentClassification.NONE),
])
def test_classify_gl_account(name, expected):
    """선급금 키워드가 우선한다."""
    assert classify_gl_account(name) is expected


def test_payment_properties():
    payment = AdvancePayment(id="1", gl_account_name="선수금", overdue="초과")

    assert payment.is_overdue is True
    assert payment.classification is PaymentClassification.PREPAYMENT
    assert AdvancePayment(id="2", overdue="정상").is_overdue is False


def test_payment_defaults():
    payment = AdvancePayment()

    assert payment.currency == "KRW"
    assert payment.department == "미지정"
    assert payment.local_currency_amount == Decimal("0")
    assert payment.overdue_months is None


def test_sample_payment():
    payment = sample_payment()

    assert payment.id == "sample-1"
    assert payment.department == "테스트팀"
    assert payment.local_currency_amount == Decimal("1000000")
    assert payment.created_at is not None


def test_coercion_policies():
    assert LENIENT.strict is False
    assert STRICT.strict is True
    assert STRICT.default_amount == Decimal("0")
    assert len(LENIENT.fallback_date()) == 10


def test_analysis_item_base_is_abstract():
    """집계 키가 없는 기본 항목은 만들 수 없다."""
    with pytest.raises(TypeError):
        AnalysisItem(department="PM팀")


def test_analysis_item_keys():
    assert ProjectAnalysisItem(department="PM팀", mold_master="PJT-A").key == "PJT-A"
    assert ManagerAnalysisItem(department="PM팀", collection_manager="김철수").key == "김철수"
