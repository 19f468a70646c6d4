"""HTTP(S) CSV 읽기 어댑터."""

import logging
from typing import Optional

import requests

from core.ports.file_reader_port import FileReaderPort
from infra.adapters.local_file_reader_adapter import LocalFileReaderAdapter, decode_csv_bytes

logger = logging.getLogger(__name__)


class HttpFileReaderAdapter(FileReaderPort):
    """URL에서 CSV를 내려받는 어댑터.

    - 응답 본문은 바이트로 받아 로컬 어댑터와 같은 규칙으로 디코딩한다
    - HTTP 오류는 ``requests.HTTPError`` 로 그대로 올린다
    """

    def __init__(self, timeout: int = 30):
        """생성자.

        Args:
            timeout: 요청 타임아웃(초)
        """
        self._timeout = timeout

    def read_text(self, source: str) -> str:
        logger.info(f"CSV 다운로드: {source}")
        response = requests.get(source, timeout=self._timeout)
        response.raise_for_status()
        return decode_csv_bytes(response.content)


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


class SourceFileReaderAdapter(FileReaderPort):
    """원천 형태(경로/URL)에 따라 로컬 또는 HTTP 어댑터로 위임."""

    def __init__(
        self,
        local: Optional[FileReaderPort] = None,
        http: Optional[FileReaderPort] = None
    ):
        self._local = local or LocalFileReaderAdapter()
        self._http = http or HttpFileReaderAdapter()

    def read_text(self, source: str) -> str:
        reader = self._http if is_url(source) else self._local
        return reader.read_text(source)
