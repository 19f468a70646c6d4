"""공용 테스트 픽스처."""

from pathlib import Path
from typing import Dict, List

import pytest

from core.services.csv_parser_service import AdvancePaymentCsvParser

FIXTURE_CSV = Path(__file__).parent / "fixtures" / "test_data" / "advance_payments.csv"

HEADER_LINE = (
    "고유넘버,전기키,계정,G/L계정명,금형마스터,금형마스터내역,계약번호,업체코드,업체명,연도/월,"
    "전기일,통화,전표통화액,현지통화액,기준일,착수기안번호,지급기안번호,참조,회수담당,부서,"
    "사업장,투자예산,전표번호,텍스트,대금지급,정산진행현황,비고,기한경과,경과기간(개월),"
    "고객명,담당팀,영업담당"
)

DEFAULT_ROW: Dict[str, str] = {
    "id": "2023-9000",
    "electric_key": "1",
    "account": "0000110610",
    "gl_account_name": "선급금(국내)",
    "mold_master": "PJT-X",
    "mold_master_details": "테스트 프로젝트",
    "contract_number": "C-900",
    "company_code": "90000",
    "company_name": "테스트상사",
    "year_month": "2025-05",
    "electric_date": "2025-05-10",
    "currency": "KRW",
    "voucher_currency_amount": "100",
    "local_currency_amount": "100",
    "base_date": "2025-06-30",
    "collection_manager": "홍길동",
    "department": "PM팀",
    "voucher_number": "V-9000",
    "text": "테스트",
    "payment_status": "지급대기",
}


def _quote(value: str) -> str:
    if "," in value or '"' in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def make_row(**fields: str) -> str:
    """32컬럼 CSV 한 줄을 만든다. 지정하지 않은 필드는 DEFAULT_ROW 또는 빈 값."""
    values = {**DEFAULT_ROW, **fields}
    return ",".join(_quote(values.get(name, "")) for name in AdvancePaymentCsvParser.COLUMNS)


def make_csv(rows: List[str], preamble: List[str] = None, bom: bool = False) -> str:
    """제목 줄 + 헤더 + 데이터 줄로 CSV 원문을 만든다."""
    lines = list(preamble if preamble is not None else ["선수선급금 현황"])
    lines.append(HEADER_LINE)
    lines.extend(rows)
    content = "\n".join(lines)
    return ("\ufeff" + content) if bom else content


@pytest.fixture
def parser() -> AdvancePaymentCsvParser:
    """기본 설정 파일을 사용하는 파서."""
    return AdvancePaymentCsvParser()


@pytest.fixture
def fixture_csv_path() -> Path:
    return FIXTURE_CSV
