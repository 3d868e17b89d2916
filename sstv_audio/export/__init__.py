"""
오프라인 렌더링 및 WAV 내보내기 모듈 패키지

공통 데이터 타입:
- ExportArtifact: 다운로드/저장 가능한 WAV 결과물 (파일명 + 바이트)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportArtifact:
    """
    오프라인 렌더링 결과물입니다. 생성 후 소유권은 호출자에게 넘어갑니다.

    필드:
        filename: 저장 파일명 ({YYYYMMDD}-{HHMMSS}_SSTV_{모드명}.wav)
        data: 44바이트 RIFF 헤더 + int16 LE 샘플 바이트
        mode_name: 인코더 모드 이름
        duration: 렌더링 길이 (초, 리드인 포함)
        sample_count: 샘플 수
        created_at: 내보내기 완료 시각 (UTC)
        content_type: MIME 타입
    """
    filename: str
    data: bytes
    mode_name: str
    duration: float
    sample_count: int
    created_at: datetime
    content_type: str = "audio/wav"

    @property
    def size(self) -> int:
        return len(self.data)

    def save(self, directory: str | Path) -> Path:
        """
        directory 아래에 filename으로 저장하고 저장 경로를 반환합니다.

        에러:
            OSError: 디렉토리 생성 또는 파일 쓰기 실패 시 (로깅 후 전파)
        """
        filepath = Path(directory) / self.filename
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            filepath.write_bytes(self.data)
        except OSError as exc:
            logger.error(f"WAV 파일 저장 실패: {filepath}, 오류: {exc}")
            raise

        logger.info(f"WAV 파일 저장 완료: {filepath} ({self.size} bytes)")
        return filepath
