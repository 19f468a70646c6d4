"""로컬 파일 시스템 CSV 읽기 어댑터."""

import logging
from pathlib import Path

from core.ports.file_reader_port import FileReaderPort

logger = logging.getLogger(__name__)


def decode_csv_bytes(raw: bytes) -> str:
    """CSV 바이트를 문자열로 변환.

    UTF-8 → CP949 순서로 시도하고, 둘 다 실패하면 깨진 문자를 대체 문자로
    바꿔서라도 읽는다 (정리는 파서가 담당).
    """
    for encoding in ("utf-8", "cp949"):
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    logger.warning("UTF-8/CP949 디코딩 실패. 깨진 문자를 대체해서 읽습니다.")
    return raw.decode("utf-8", errors="replace")


class LocalFileReaderAdapter(FileReaderPort):
    """로컬 파일 시스템에서 CSV를 읽는 어댑터."""
    
    def read_text(self, source: str) -> str:
        """CSV 파일을 문자열로 읽어옵니다.
        
        Args:
            source: 읽을 CSV 파일 경로
            
        Returns:
            CSV 원문 문자열
            
        Raises:
            FileNotFoundError: 파일이 존재하지 않을 경우
        """
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"파일을 찾을 수 없습니다: {source}")

        return decode_csv_bytes(path.read_bytes())
