"""AdvancePaymentCsvParser 테스트."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import make_csv, make_row
from core.domain.models.coercion_policy import CoercionPolicy, STRICT
from core.services.csv_parser_service import (
    AdvancePaymentCsvParser,
    FixedSkipHeaderLocator,
    HEADER_NOT_FOUND,
    MarkerHeaderLocator,
    ParserSettings,
)


# ---------------------------------------------------------------------
# 값 변환
# ---------------------------------------------------------------------
@pytest.mark.parametrize("raw, expected", [
    ("1,234,567", Decimal("1234567")),
    (" -42 ", Decimal("-42")),
    ("abc", Decimal("0")),
    ("", Decimal("0")),
    ('"3,000"', Decimal("3000")),
    ("12.50", Decimal("12.50")),
    ("1.", Decimal("0")),
])
def test_parse_number(parser, raw, expected):
    """금액 문자열 변환. 해석할 수 없으면 0."""
    assert parser.parse_number(raw) == expected


def test_parse_date_formats(parser):
    """YYYY-MM-DD 그대로, YYYY-MM은 1일, 그 외는 일반 날짜 파싱."""
    assert parser.parse_date("2025-03") == "2025-03-01"
    assert parser.parse_date("2025-03-15") == "2025-03-15"
    assert parser.parse_date('"2025-03-15"') == "2025-03-15"
    assert parser.parse_date("2025/03/15") == "2025-03-15"


def test_parse_date_falls_back_to_today(parser):
    """날짜로 해석할 수 없으면 오늘 날짜."""
    today = date.today().isoformat()
    assert parser.parse_date("garbage") == today
    assert parser.parse_date("") == today


def test_policy_defaults_are_used():
    """CoercionPolicy의 기본값으로 대체된다."""
    policy = CoercionPolicy(default_amount=Decimal("-1"), fallback_date=lambda: "1999-12-31")
    parser = AdvancePaymentCsvParser(settings=ParserSettings(), policy=policy)

    assert parser.parse_number("n/a") == Decimal("-1")
    assert parser.parse_date("n/a") == "1999-12-31"


def test_clean_value():
    """공백, 바깥 따옴표 한 겹, 깨진 문자 제거."""
    assert AdvancePaymentCsvParser.clean_value('  "abc"  ') == "abc"
    assert AdvancePaymentCsvParser.clean_value("'abc'") == "abc"
    assert AdvancePaymentCsvParser.clean_value("고유?\ufffd버") == "고유버"
    assert AdvancePaymentCsvParser.clean_value("") == ""
    assert AdvancePaymentCsvParser.clean_value(None) == ""


def test_parse_line_quotes():
    """따옴표 안 쉼표, 이중 따옴표, 닫히지 않은 따옴표 처리."""
    assert AdvancePaymentCsvParser.parse_line('a,"b,c",d') == ["a", "b,c", "d"]
    assert AdvancePaymentCsvParser.parse_line('a,"say ""hi""",c') == ["a", 'say "hi"', "c"]
    assert AdvancePaymentCsvParser.parse_line('a,"b,c') == ["a", "b,c"]
    assert AdvancePaymentCsvParser.parse_line(" a , b ") == ["a", "b"]


# ---------------------------------------------------------------------
# 헤더 탐지
# ---------------------------------------------------------------------
def test_header_not_found_is_fatal(parser):
    """헤더가 없으면 파일 전체 실패."""
    result = parser.parse("제목\n아무 내용\n없음")

    assert result.header_found is False
    assert result.errors == [HEADER_NOT_FOUND]
    assert result.data == []
    assert result.total_rows == 0
    assert result.parsed_rows == 0


def test_bom_and_crlf(parser):
    """BOM 제거, CRLF 줄바꿈 처리."""
    content = make_csv([make_row(id="A-1"), make_row(id="A-2")], bom=True).replace("\n", "\r\n")

    result = parser.parse(content)

    assert [p.id for p in result.data] == ["A-1", "A-2"]
    assert result.total_rows == 2
    assert result.parsed_rows == 2


def test_header_detected_from_data_marker(parser):
    """헤더 라벨이 깨져도 데이터 행 조각으로 시작 위치를 찾는다."""
    content = "\n".join(["깨진 헤더 ???", make_row(id="2023-0001"), make_row(id="2023-0002")])

    result = parser.parse(content)

    assert [p.id for p in result.data] == ["2023-0001", "2023-0002"]


def test_data_on_first_line(parser):
    """첫 줄부터 데이터인 경우도 놓치지 않는다."""
    result = parser.parse(make_row(id="2023-0001"))

    assert result.header_found is True
    assert [p.id for p in result.data] == ["2023-0001"]


def test_marker_locator_scan_limit():
    """scan_limit 이후의 헤더는 찾지 않는다."""
    lines = ["x"] * 10 + ["고유넘버"]
    assert MarkerHeaderLocator(scan_limit=10).locate(lines) is None
    assert MarkerHeaderLocator(scan_limit=11).locate(lines) == 10


def test_fixed_skip_locator():
    """고정 3줄 건너뛰기 전략."""
    parser = AdvancePaymentCsvParser(settings=ParserSettings(), header_locator=FixedSkipHeaderLocator(3))
    content = make_csv([make_row(id="R-1")], preamble=["제목", "부제목"])

    result = parser.parse(content)

    assert [p.id for p in result.data] == ["R-1"]
    assert FixedSkipHeaderLocator(3).locate(["a", "b"]) is None


# ---------------------------------------------------------------------
# 행 처리
# ---------------------------------------------------------------------
def test_skipped_rows_are_not_errors(parser):
    """짧은 행, 빈 첫 컬럼, 헤더/마감 행은 오류 없이 건너뛴다."""
    rows = [
        make_row(id="OK-1"),
        "OK-2,1,2,3,4,5",                 # 컬럼 부족
        make_row(id=""),                  # 첫 컬럼 비어 있음
        make_row(id="마감"),
        make_row(id="(합계)"),
        make_row(id="고유넘버"),
        "",
        "   ",
    ]

    result = parser.parse(make_csv(rows))

    assert [p.id for p in result.data] == ["OK-1"]
    assert result.errors == []
    assert result.total_rows == 6
    assert result.parsed_rows == 1


def test_field_mapping(parser):
    """고정 컬럼 순서에 따른 필드 매핑."""
    row = make_row(
        id="M-1",
        gl_account_name="선수금(해외)",
        mold_master="PJT-9",
        company_name="Global Motors",
        electric_date="2025-02",
        currency="USD",
        voucher_currency_amount="-400",
        local_currency_amount='-500,000',
        collection_manager="박민수",
        department="엔진1팀",
        payment_status="일시보류",
        settlement_progress="정산중",
        overdue="초과",
        overdue_months="3",
        responsible_team="영업2팀",
        sales_manager="최영업",
    )

    payment = parser.parse(make_csv([row])).data[0]

    assert payment.id == "M-1"
    assert payment.gl_account_name == "선수금(해외)"
    assert payment.mold_master == "PJT-9"
    assert payment.company_name == "Global Motors"
    assert payment.electric_date == "2025-02-01"
    assert payment.currency == "USD"
    assert payment.voucher_currency_amount == Decimal("-400")
    assert payment.local_currency_amount == Decimal("-500000")
    assert payment.collection_manager == "박민수"
    assert payment.department == "엔진1팀"
    assert payment.payment_status == "일시보류"
    assert payment.settlement_progress == "정산중"
    assert payment.overdue == "초과"
    assert payment.overdue_months == 3
    assert payment.responsible_team == "영업2팀"
    assert payment.sales_manager == "최영업"
    assert payment.created_at is None


def test_field_defaults(parser):
    """빈 값은 기본값으로 채운다."""
    row = make_row(
        id="D-1",
        electric_key="",
        company_name="",
        currency="",
        department="",
        voucher_number="",
        payment_status="",
        collection_manager="이담당",
    )

    payment = parser.parse(make_csv([row])).data[0]

    assert payment.electric_key == 1
    assert payment.company_name == "알 수 없음"
    assert payment.currency == "KRW"
    assert payment.department == "미지정"
    assert payment.voucher_number == "V-0"
    assert payment.payment_status == "확인 필요"
    assert payment.responsible_team == "미지정"
    assert payment.sales_manager == "이담당"
    assert payment.overdue_months is None


def test_short_row_reads_missing_columns_as_empty(parser):
    """10컬럼 이상이면 뒤쪽 컬럼이 없어도 레코드가 된다."""
    row = "S-1,1,0000110610,선급금,PJT-S,내역,C-1,100,업체,2025-01"

    result = parser.parse(make_csv([row]))

    assert result.parsed_rows == 1
    payment = result.data[0]
    assert payment.company_name == "업체"
    assert payment.local_currency_amount == Decimal("0")
    assert payment.department == "미지정"
    assert payment.electric_date == date.today().isoformat()


def test_row_exception_is_recorded_and_skipped():
    """행 처리 중 예외는 라인 번호와 함께 기록하고 다음 행을 계속 처리."""
    def boom() -> str:
        raise ValueError("날짜 변환 실패")

    parser = AdvancePaymentCsvParser(
        settings=ParserSettings(),
        policy=CoercionPolicy(fallback_date=boom)
    )
    rows = [make_row(id="E-1"), make_row(id="E-2", electric_date="garbage"), make_row(id="E-3")]

    result = parser.parse(make_csv(rows))

    assert [p.id for p in result.data] == ["E-1", "E-3"]
    # 제목(1) + 헤더(2) 다음이므로 두 번째 데이터 행은 4번째 줄
    assert result.errors == ["라인 4: 날짜 변환 실패"]
    assert result.total_rows == 3
    assert result.parsed_rows == 2


def test_strict_policy_reports_warnings():
    """strict 모드에서는 대체값이 경고로 남고, 오류로 취급되지 않는다."""
    parser = AdvancePaymentCsvParser(settings=ParserSettings(), policy=STRICT)
    row = make_row(id="W-1", local_currency_amount="abc", electric_date="2025-05-01")

    result = parser.parse(make_csv([row]))

    assert result.errors == []
    assert result.data[0].local_currency_amount == Decimal("0")
    assert len(result.warnings) == 1
    assert "local_currency_amount" in result.warnings[0]


def test_lenient_policy_has_no_warnings(parser):
    result = parser.parse(make_csv([make_row(local_currency_amount="abc")]))
    assert result.warnings == []


@pytest.mark.parametrize("garbage", [
    '"""",,,"',
    ",,,,,,,,,,,,,,",
    '2023-1,"unterminated,quote,1,2,3,4,5,6,7,8,9',
    "2023-2,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x,x",
    "\t\t",
])
def test_parse_never_raises_with_header(parser, garbage):
    """헤더가 있으면 어떤 입력이든 예외 없이 끝나고 parsed_rows <= total_rows."""
    result = parser.parse(make_csv([garbage, make_row()]))

    assert result.header_found is True
    assert result.parsed_rows <= result.total_rows


def test_fixture_file(parser, fixture_csv_path):
    """실제 형식의 CSV 파일 파싱."""
    result = parser.parse(fixture_csv_path.read_text(encoding="utf-8"))

    assert result.total_rows == 6
    assert result.parsed_rows == 4
    assert result.errors == []
    assert [p.id for p in result.data] == ["2023-0001", "2023-0002", "2023-0003", "2023-0004"]

    first, _, third, fourth = result.data
    assert first.company_name == "(주)한빛정밀"
    assert first.text == "금형 선급, 1차"
    assert first.local_currency_amount == Decimal("1000000")
    assert third.electric_date == "2025-03-01"
    assert third.responsible_team == "PM팀"
    assert third.sales_manager == "김철수"
    assert fourth.voucher_currency_amount == Decimal("0")
    assert fourth.mold_master == ""


# ---------------------------------------------------------------------
# 설정
# ---------------------------------------------------------------------
def test_settings_from_toml(tmp_path):
    """TOML 설정으로 헤더 조각을 바꿀 수 있다."""
    config = tmp_path / "parser_settings.toml"
    config.write_text(
        '[header]\nmarkers = ["RECORD-ID"]\ndata_markers = []\nscan_limit = 5\n'
        '[classification]\nadvance_payment = "ADV"\n',
        encoding="utf-8",
    )

    settings = ParserSettings.load(str(config))
    parser = AdvancePaymentCsvParser(settings=settings)
    result = parser.parse("\n".join(["RECORD-ID,...", make_row(id="T-1")]))

    assert settings.scan_limit == 5
    assert settings.advance_payment_keyword == "ADV"
    assert settings.prepayment_keyword == "선수금"
    assert [p.id for p in result.data] == ["T-1"]


def test_settings_missing_file_uses_defaults(tmp_path):
    settings = ParserSettings.load(str(tmp_path / "없는파일.toml"))
    assert settings == ParserSettings()


def test_default_config_file_is_loaded():
    """저장소의 config/parser_settings.toml 을 읽는다."""
    settings = ParserSettings.load()
    assert "고유" in settings.header_markers
    assert settings.min_columns == 10
