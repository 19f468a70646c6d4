"""분석 결과 파일 저장 어댑터."""

import unicodedata
from pathlib import Path
from typing import Dict

import pandas as pd
from openpyxl.styles import Font

from core.ports.storage_port import StoragePort


def _display_width(value) -> int:
    # 한글 등 전각 문자는 엑셀에서 두 칸을 차지한다
    if value is None:
        return 0
    return sum(2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1 for ch in str(value))


class LocalStorageAdapter(StoragePort):
    """프로젝트/담당자 분석 결과를 로컬 파일로 남기는 어댑터.

    CSV 내보내기는 서비스가 만든 문자열(BOM 포함)을 손대지 않고 기록하고,
    엑셀은 분석별 시트를 한 파일에 모은다.
    """

    def __init__(self, ensure_dir: bool = True):
        """초기화.

        Args:
            ensure_dir: True이면 저장 전 상위 디렉터리를 만든다
        """
        self._ensure_dir = ensure_dir

    def _prepare(self, file_path: str) -> None:
        if self._ensure_dir:
            Path(file_path).parent.mkdir(parents=True, exist_ok=True)

    def save_text(self, content: str, file_path: str) -> None:
        self._prepare(file_path)
        # newline="" : 내보내기 문자열의 \n 을 플랫폼 줄바꿈으로 바꾸지 않는다
        with open(file_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)

    def save_excel_with_sheets(
        self,
        dataframes: Dict[str, pd.DataFrame],
        file_path: str
    ) -> None:
        """분석 결과 DataFrame들을 시트별로 저장한다.

        머리글 행은 굵게 표시하고 고정하며, 열 너비는 가장 긴 셀에 맞춘다.
        """
        self._prepare(file_path)

        with pd.ExcelWriter(file_path, engine='openpyxl') as writer:
            for sheet_name, df in dataframes.items():
                df.to_excel(writer, sheet_name=sheet_name, index=False)

            for worksheet in writer.sheets.values():
                for cell in worksheet[1]:
                    cell.font = Font(bold=True)
                worksheet.freeze_panes = "A2"

                for column_cells in worksheet.iter_cols():
                    widest = max(_display_width(cell.value) for cell in column_cells)
                    worksheet.column_dimensions[column_cells[0].column_letter].width = widest + 2
