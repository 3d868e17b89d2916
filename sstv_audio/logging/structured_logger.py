"""
구조화 로깅 설정 모듈입니다.

setup_logging()은 root 로거에 콘솔 핸들러와 순환 파일 핸들러를 붙입니다.
두 핸들러 모두 _SessionFilter를 거치므로 각 레코드에 session_id가 채워지고,
포맷은 system.log_format에 따라 JSON(python-json-logger) 또는 텍스트로 선택됩니다.

각 모듈은 평소처럼 logging.getLogger(__name__)만 사용합니다.
extra={"mode": "Robot 36"} 같은 추가 필드는 JSON 포맷에서 그대로 키가 됩니다.
"""

from __future__ import annotations

import logging
import logging.handlers
import uuid
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

from sstv_audio.config.schema import AppConfig

LOG_FILENAME = "sstv_audio.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

_session_id: str = ""


class _SessionFilter(logging.Filter):
    """레코드에 session_id와 텍스트 접두어용 short_sid를 붙입니다."""

    def __init__(self, session_id: str) -> None:
        super().__init__()
        self.session_id = session_id
        self.short_sid = session_id[:8] if session_id else "no-sid"

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self.session_id
        record.short_sid = self.short_sid
        return True


class _JsonFormatter(jsonlogger.JsonFormatter):
    """level, module, session_id 키를 갖는 한 줄 JSON 포맷터입니다."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(session_id)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            rename_fields={"levelname": "level", "name": "module"},
        )


class _TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s [%(short_sid)s] %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def get_session_id() -> str:
    """마지막 setup_logging()이 사용한 로깅 세션 ID를 반환합니다."""
    return _session_id


def setup_logging(config: AppConfig, session_id: Optional[str] = None) -> str:
    """
    root 로거를 설정 파일의 system 섹션에 맞게 다시 구성합니다.

    여러 번 호출해도 이전 핸들러를 닫고 교체하므로 핸들러가 누적되지 않습니다.
    로그 디렉토리를 만들 수 없으면 콘솔 출력만 사용합니다.

    파라미터:
        config: AppConfig (system.log_level, log_format, log_dir, session_id 사용)
        session_id: 명시 세션 ID. 없으면 config.system.session_id, 그것도 비어 있으면 UUID4

    반환값:
        str: 적용된 세션 ID
    """
    global _session_id
    _session_id = session_id or config.system.session_id or str(uuid.uuid4())

    system_cfg = config.system
    level = getattr(logging, system_cfg.log_level, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    file_error: Optional[OSError] = None
    try:
        log_dir = Path(system_cfg.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            filename=log_dir / LOG_FILENAME,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        ))
    except OSError as exc:
        file_error = exc

    session_filter = _SessionFilter(_session_id)
    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(session_filter)
        handler.setFormatter(_JsonFormatter() if system_cfg.log_format == "json" else _TextFormatter())
        root.addHandler(handler)

    logger = logging.getLogger(__name__)
    if file_error is not None:
        logger.warning(f"로그 파일 핸들러 생성 실패, 콘솔만 사용: {file_error}")
    logger.info(
        f"로깅 초기화: level={system_cfg.log_level}, format={system_cfg.log_format}, "
        f"session={_session_id}"
    )
    return _session_id
