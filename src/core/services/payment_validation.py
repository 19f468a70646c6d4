"""레코드 입력값 검증."""

from typing import Any, Dict, Mapping

# 필수 필드 → 오류 메시지
REQUIRED_FIELDS = {
    "company_name": "업체명은 필수입니다.",
    "mold_master": "금형마스터는 필수입니다.",
    "electric_date": "전기일은 필수입니다.",
    "department": "부서는 필수입니다.",
    "voucher_number": "전표번호는 필수입니다.",
}


def validate_payment_fields(fields: Mapping[str, Any]) -> Dict[str, str]:
    """입력 폼 기준 필수값 검증.

    Args:
        fields: 레코드 필드 (``AdvancePayment`` 속성명 기준)

    Returns:
        {필드명: 오류 메시지}. 비어 있으면 유효하다.
    """
    errors = {}
    for name, message in REQUIRED_FIELDS.items():
        value = str(fields.get(name) or "").strip()
        if not value or (name == "department" and value == "none"):
            errors[name] = message
    return errors
