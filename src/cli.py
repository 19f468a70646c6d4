"""CLI 인터페이스."""

import os
import sys
import logging
from decimal import Decimal
from pathlib import Path
from typing import Dict, Optional

import typer
from rich.console import Console
from rich.table import Table
from dotenv import load_dotenv

# src 디렉토리를 모듈 검색 경로에 추가
sys.path.append(str(Path(__file__).parent))

from core.domain.models.advance_payment import DateRange, GroupAmount
from core.domain.models.coercion_policy import LENIENT, STRICT
from core.services.advance_payment_store import AdvancePaymentStore
from core.services.analysis_service import (
    DepartmentAnalysisService,
    ManagerAnalysisService,
    ProjectAnalysisService,
    format_amount,
)
from core.services.csv_parser_service import AdvancePaymentCsvParser, ParserSettings
from core.services.payment_validation import validate_payment_fields
from infra.adapters.http_file_reader_adapter import SourceFileReaderAdapter
from infra.adapters.local_storage_adapter import LocalStorageAdapter

# Typer 앱 생성
app = typer.Typer(
    name="advance-payments",
    help="선수선급금 CSV 분석 도구",
    add_completion=False
)

# Rich console
console = Console()

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)

# 기본 설정
DEFAULT_SOURCE = "data/advance-payments.csv"
DEFAULT_OUTPUT_DIRECTORY = "./output"


def _resolve_source(source: Optional[str]) -> str:
    """명령줄 인자 → ADVANCE_PAYMENT_CSV 환경 변수 → 기본 경로 순서."""
    load_dotenv()
    return source or os.getenv("ADVANCE_PAYMENT_CSV") or DEFAULT_SOURCE


def _load_store(source: Optional[str], strict: bool = False) -> AdvancePaymentStore:
    """CSV를 읽어 저장소를 만듭니다. 로드 실패 시 샘플 레코드와 함께 경고를 표시합니다."""
    source = _resolve_source(source)
    settings = ParserSettings.load()
    parser = AdvancePaymentCsvParser(settings=settings, policy=STRICT if strict else LENIENT)
    store = AdvancePaymentStore(parser=parser, file_reader=SourceFileReaderAdapter())

    console.print(f"[cyan]📂 CSV 로드: {source}[/cyan]")
    store.load_csv(source)
    if store.error:
        console.print(f"[yellow]⚠️  {store.error} (샘플 데이터를 표시합니다)[/yellow]")

    result = store.last_parse_result
    if result is not None:
        console.print(f"[green]✅ {result.parsed_rows}/{result.total_rows} 행 처리됨[/green]")
        if result.errors and result.header_found:
            console.print(f"[yellow]⚠️  파싱 오류 {len(result.errors)}건[/yellow]")
    return store


def _fmt(value: Decimal) -> str:
    return format_amount(value)


def _group_table(title: str, label: str, groups: Dict[str, GroupAmount]) -> Table:
    table = Table(title=title)
    table.add_column(label)
    table.add_column("건수", justify="right")
    table.add_column("금액", justify="right")
    for key, group in groups.items():
        table.add_row(key, str(group.count), _fmt(group.amount))
    return table


def _print_analysis(service: DepartmentAnalysisService, child_label: str) -> None:
    if service.error:
        console.print(f"[red]❌ {service.error}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"{service.NAME} ({len(service.filtered_summaries)}개 부서)")
    table.add_column("부서")
    table.add_column(child_label)
    table.add_column("정산진행현황")
    table.add_column("선급금", justify="right")
    table.add_column("선수금", justify="right")
    table.add_column("합계", justify="right")
    table.add_column("항목수", justify="right")

    for summary in service.filtered_summaries:
        for child in summary.children:
            table.add_row(
                summary.department,
                child.key,
                child.settlement_progress,
                _fmt(child.advance_payment_amount),
                _fmt(child.prepayment_amount),
                _fmt(child.total_amount),
                str(child.item_count),
            )
        table.add_row(
            f"[bold]{summary.department} 소계[/bold]", "", "",
            _fmt(summary.total_advance_payment),
            _fmt(summary.total_prepayment),
            f"[bold]{_fmt(summary.total_amount)}[/bold]",
            str(summary.item_count),
            end_section=True,
        )
    console.print(table)

    stats = service.stats
    console.print(
        f"[cyan]부서 {stats.total_departments}개 · {child_label} {stats.total_children}개 · "
        f"선급금 {_fmt(stats.total_advance_payment)} · 선수금 {_fmt(stats.total_prepayment)} · "
        f"합계 {_fmt(stats.grand_total)}[/cyan]"
    )
    console.print(f"[cyan]최대 부서: {stats.top_department} · 최대 {child_label}: {stats.top_child}[/cyan]")


def _export(service: DepartmentAnalysisService, output: Optional[str]) -> None:
    """``--output`` 확장자에 따라 CSV 또는 엑셀로 저장.

    파일명만 주어지면 OUTPUT_DIRECTORY (기본 ./output) 아래에 저장합니다.
    """
    if not output:
        return
    path = Path(output)
    if path.parent == Path("."):
        path = Path(os.getenv("OUTPUT_DIRECTORY", DEFAULT_OUTPUT_DIRECTORY)) / path
    output = str(path)

    storage = LocalStorageAdapter()
    if output.endswith(".xlsx"):
        storage.save_excel_with_sheets({service.NAME: service.to_dataframe()}, output)
    else:
        storage.save_text(service.export_csv_text(), output)
    console.print(f"[green]✅ 저장 완료: {output}[/green]")
    logger.info(f"{service.NAME} 내보내기: {output}")


def _classification_keywords() -> Dict[str, str]:
    settings = ParserSettings.load()
    return {
        "advance_keyword": settings.advance_payment_keyword,
        "prepayment_keyword": settings.prepayment_keyword,
    }


@app.command()
def summary(
    source: Optional[str] = typer.Argument(None, help="CSV 파일 경로 또는 URL"),
):
    """전체 레코드 통계를 출력합니다.

    Examples:
        $ advance-payments summary data/advance-payments.csv
    """
    store = _load_store(source)
    stats = store.stats

    console.print(f"[bold]총 {stats.total_count:,}건 · 총액 {_fmt(stats.total_amount)}[/bold]")
    console.print(f"[bold red]기한초과 {stats.overdue_count:,}건 · {_fmt(stats.overdue_amount)}[/bold red]")
    console.print(_group_table("부서별", "부서", stats.by_department))
    console.print(_group_table("대금지급 상태별", "상태", stats.by_status))


@app.command("list")
def list_payments(
    source: Optional[str] = typer.Argument(None, help="CSV 파일 경로 또는 URL"),
    company: Optional[str] = typer.Option(None, "--company", help="업체명 (부분 일치)"),
    department: Optional[str] = typer.Option(None, "--department", "-d", help="부서"),
    status: Optional[str] = typer.Option(None, "--status", help="대금지급 상태"),
    overdue: Optional[str] = typer.Option(None, "--overdue", help="기한경과 (예: 초과)"),
    start: Optional[str] = typer.Option(None, "--from", help="전기일 시작 (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--to", help="전기일 종료 (YYYY-MM-DD)"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="업체명/텍스트/계약번호/전표번호 검색"),
    min_amount: Optional[float] = typer.Option(None, "--min", help="최소 현지통화액"),
    max_amount: Optional[float] = typer.Option(None, "--max", help="최대 현지통화액"),
    currency: Optional[str] = typer.Option(None, "--currency", help="통화"),
    limit: int = typer.Option(50, "--limit", "-n", help="출력할 최대 행 수"),
):
    """필터를 적용한 레코드 목록을 출력합니다."""
    store = _load_store(source)

    date_range = None
    if start or end:
        date_range = DateRange(start=start or "0001-01-01", end=end or "9999-12-31")

    applied = store.set_filters(
        company_name=company,
        department=department,
        payment_status=status,
        overdue=overdue,
        date_range=date_range,
        search_term=search,
        min_amount=Decimal(str(min_amount)) if min_amount is not None else None,
        max_amount=Decimal(str(max_amount)) if max_amount is not None else None,
        currency=currency,
    )
    if not applied:
        console.print(f"[red]❌ {store.error}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"레코드 {len(store.filtered_payments):,}건")
    for column in ("고유넘버", "전기일", "업체명", "부서", "대금지급", "기한경과", "현지통화액"):
        table.add_column(column, justify="right" if column == "현지통화액" else "left")
    for payment in store.filtered_payments[:limit]:
        table.add_row(
            payment.id,
            payment.electric_date,
            payment.company_name,
            payment.department,
            payment.payment_status,
            payment.overdue,
            _fmt(payment.local_currency_amount),
        )
    console.print(table)


@app.command()
def projects(
    source: Optional[str] = typer.Argument(None, help="CSV 파일 경로 또는 URL"),
    department: Optional[str] = typer.Option(None, "--department", "-d", help="부서"),
    mold_master: Optional[str] = typer.Option(None, "--mold-master", "-m", help="금형마스터/내역 (부분 일치)"),
    status: Optional[str] = typer.Option(None, "--status", help="대금지급 상태"),
    settlement: Optional[str] = typer.Option(None, "--settlement", help="정산진행현황"),
    currency: Optional[str] = typer.Option(None, "--currency", help="통화"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="통합 검색"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="저장 경로 (.csv 또는 .xlsx)"),
):
    """부서 → 프로젝트(금형마스터)별 선급금/선수금 분석."""
    store = _load_store(source)
    service = ProjectAnalysisService(**_classification_keywords())
    service.generate_analysis(store.payments)
    service.set_filters(
        department=department,
        mold_master=mold_master,
        payment_status=status,
        settlement_progress=settlement,
        currency=currency,
        search_term=search,
    )
    _print_analysis(service, "금형마스터")
    _export(service, output)


@app.command()
def managers(
    source: Optional[str] = typer.Argument(None, help="CSV 파일 경로 또는 URL"),
    department: Optional[str] = typer.Option(None, "--department", "-d", help="부서"),
    manager: Optional[str] = typer.Option(None, "--manager", "-m", help="회수담당 (부분 일치)"),
    settlement: Optional[str] = typer.Option(None, "--settlement", help="정산진행현황"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="통합 검색"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="저장 경로 (.csv 또는 .xlsx)"),
):
    """부서 → 회수담당자별 선급금/선수금 분석."""
    store = _load_store(source)
    service = ManagerAnalysisService(**_classification_keywords())
    service.generate_analysis(store.payments)
    service.set_filters(
        department=department,
        collection_manager=manager,
        settlement_progress=settlement,
        search_term=search,
    )
    _print_analysis(service, "회수담당")
    _export(service, output)


@app.command()
def validate(
    source: Optional[str] = typer.Argument(None, help="CSV 파일 경로 또는 URL"),
    strict: bool = typer.Option(False, "--strict", help="숫자/날짜 대체값을 경고로 표시"),
):
    """데이터 품질 점검: 파싱 오류, 필수값 누락, (strict) 대체값 경고."""
    store = _load_store(source, strict=strict)
    result = store.last_parse_result
    problems = 0

    if result is not None:
        for error in result.errors:
            console.print(f"[red]❌ {error}[/red]")
        for warning in result.warnings:
            console.print(f"[yellow]⚠️  {warning}[/yellow]")
        problems += len(result.errors) + len(result.warnings)

    for payment in store.payments:
        errors = validate_payment_fields(vars(payment))
        if errors:
            problems += 1
            console.print(f"[yellow]⚠️  {payment.id}: {' / '.join(errors.values())}[/yellow]")

    if problems:
        console.print(f"[red]문제 {problems}건 발견[/red]")
        raise typer.Exit(code=1)
    console.print("[green]✅ 문제가 없습니다.[/green]")


if __name__ == "__main__":
    app()
