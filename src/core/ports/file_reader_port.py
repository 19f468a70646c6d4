"""원천 CSV 읽기를 위한 포트 인터페이스."""

from abc import ABC, abstractmethod


class FileReaderPort(ABC):
    """CSV 원문 읽기 포트."""

    @abstractmethod
    def read_text(self, source: str) -> str:
        """원천(파일 경로 또는 URL)의 내용을 문자열로 읽어옵니다.

        BOM 제거는 파서가 담당하므로 어댑터는 원문을 그대로 돌려줍니다.

        Args:
            source: 읽을 파일 경로 또는 URL

        Returns:
            CSV 원문 문자열
        """
        raise NotImplementedError
