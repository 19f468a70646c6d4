"""분석 결과 저장 포트."""

from abc import ABC, abstractmethod
from typing import Dict
import pandas as pd


class StoragePort(ABC):
    """내보내기 결과를 파일로 남기는 포트."""

    @abstractmethod
    def save_text(self, content: str, file_path: str) -> None:
        """CSV 내보내기 문자열을 UTF-8로 저장.

        Args:
            content: 저장할 문자열 (BOM 포함 가능, 그대로 기록)
            file_path: 저장 경로
        """
        raise NotImplementedError

    @abstractmethod
    def save_excel_with_sheets(
        self,
        dataframes: Dict[str, pd.DataFrame],
        file_path: str
    ) -> None:
        """분석 이름을 시트명으로 하여 엑셀 한 파일에 저장.

        Args:
            dataframes: {시트명: 분석 결과 DataFrame}
            file_path: 저장 경로 (.xlsx)
        """
        raise NotImplementedError
