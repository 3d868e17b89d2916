"""
SSTV 오디오 파이프라인 설정 로더입니다.

설정값 우선순위 (뒤가 앞을 덮어씀):
    AppConfig 기본값 < config.yaml < SSTV_<SECTION>_<FIELD> 환경변수

환경변수는 AppConfig 스키마에 실제로 존재하는 필드에만 매핑합니다.
값은 문자열 그대로 넘기고 타입 변환은 pydantic이 담당합니다.
    SSTV_PLAYBACK_BACKEND=null            -> playback.backend = "null"
    SSTV_PLAYBACK_PROGRESS_INTERVAL_MS=33 -> playback.progress_interval_ms = 33
    SSTV_ENCODER_PATH=pkg.mod:Robot36     -> encoder.path

사용 예시:
    >>> manager = ConfigManager()
    >>> config = manager.load_or_default("config.yaml")
    >>> manager.get("export.output_dir")
    'output/exports'
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from sstv_audio.config.schema import AppConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "SSTV_"


class ConfigLoadError(Exception):
    """설정을 만들 수 없을 때 발생하는 에러의 기본 클래스입니다."""


class ConfigValidationError(ConfigLoadError):
    """병합된 설정값이 AppConfig 스키마를 통과하지 못했을 때 발생합니다."""


class ConfigFileNotFoundError(ConfigLoadError):
    """명시한 설정 파일이 없을 때 발생합니다."""


def env_overrides(environ: Mapping[str, str]) -> dict[str, dict[str, str]]:
    """
    환경변수 중 AppConfig 필드에 대응하는 항목을 섹션별 딕셔너리로 모읍니다.

    파라미터:
        environ: 환경변수 매핑 (보통 os.environ)

    반환값:
        {"playback": {"backend": "null"}, ...} 형태의 오버라이드
    """
    overrides: dict[str, dict[str, str]] = {}

    for section_name, section_field in AppConfig.model_fields.items():
        section_model = section_field.annotation
        for field_name in section_model.model_fields:
            env_key = f"{ENV_PREFIX}{section_name}_{field_name}".upper()
            if env_key in environ:
                overrides.setdefault(section_name, {})[field_name] = environ[env_key]
                logger.info(f"환경변수 오버라이드: {env_key} -> {section_name}.{field_name}")

    return overrides


class ConfigManager:
    """
    config.yaml과 환경변수를 병합해 검증된 AppConfig를 만드는 클래스입니다.

    마지막으로 만든 설정은 config 속성과 get()으로 다시 조회할 수 있습니다.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        # None이면 호출 시점의 os.environ을 사용
        self._environ = environ
        self._config: Optional[AppConfig] = None
        self.source: Optional[Path] = None

    @property
    def config(self) -> Optional[AppConfig]:
        """마지막으로 로드한 설정을 반환합니다. 로드 전에는 None입니다."""
        return self._config

    def load(self, filepath: str | Path) -> AppConfig:
        """
        YAML 설정 파일을 읽고 환경변수를 덮어쓴 뒤 검증합니다.

        파라미터:
            filepath: config.yaml 경로

        반환값:
            AppConfig: 검증된 설정

        에러:
            ConfigFileNotFoundError: 파일이 없을 때
            ConfigLoadError: YAML 문법 오류, 최상위가 매핑이 아님, 읽기 실패
            ConfigValidationError: 스키마 검증 실패
        """
        filepath = Path(filepath)
        if not filepath.is_file():
            logger.error(f"설정 파일을 찾을 수 없습니다: {filepath}")
            raise ConfigFileNotFoundError(f"설정 파일을 찾을 수 없습니다: {filepath}")

        config = self._build(self._read_yaml(filepath))
        self.source = filepath
        logger.info(
            f"설정 로드: {filepath} (backend={config.playback.backend}, "
            f"encoder={config.encoder.path}, export_dir={config.export.output_dir})"
        )
        return config

    def load_or_default(self, filepath: str | Path) -> AppConfig:
        """
        파일이 있으면 load()와 같고, 없으면 기본값에 환경변수만 적용합니다.

        파일이 있는데 내용이 잘못된 경우에는 기본값으로 대체하지 않고 에러를 전파합니다.
        """
        filepath = Path(filepath)
        if filepath.exists():
            return self.load(filepath)

        logger.warning(f"설정 파일이 없어 기본 설정을 사용합니다: {filepath}")
        self.source = None
        return self._build({})

    def get(self, key: str, default: Any = None) -> Any:
        """
        "playback.backend" 같은 점 표기 키로 설정값을 조회합니다.

        에러:
            RuntimeError: 아직 설정을 로드하지 않았을 때
        """
        if self._config is None:
            raise RuntimeError("설정이 아직 로드되지 않았습니다. load()를 먼저 호출하세요.")

        value: Any = self._config
        for part in key.split("."):
            if not hasattr(value, part):
                return default
            value = getattr(value, part)
        return value

    # =========================================================================
    # 내부 메서드
    # =========================================================================

    def _read_yaml(self, filepath: Path) -> dict:
        try:
            raw = yaml.safe_load(filepath.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            logger.error(f"YAML 파싱 실패: {filepath}: {exc}")
            raise ConfigLoadError(f"YAML 파싱 실패: {exc}") from exc
        except OSError as exc:
            logger.error(f"설정 파일 읽기 실패: {filepath}: {exc}")
            raise ConfigLoadError(f"설정 파일 읽기 실패: {exc}") from exc

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ConfigLoadError(
                f"설정 파일 최상위는 매핑이어야 합니다: {type(raw).__name__}"
            )
        return raw

    def _build(self, raw: dict) -> AppConfig:
        environ = os.environ if self._environ is None else self._environ
        for section_name, fields in env_overrides(environ).items():
            section = raw.get(section_name)
            if section is None:
                section = raw[section_name] = {}
            if not isinstance(section, dict):
                raise ConfigLoadError(f"'{section_name}' 섹션은 매핑이어야 합니다")
            section.update(fields)

        try:
            config = AppConfig(**raw)
        except ValidationError as exc:
            for error in exc.errors():
                field_path = ".".join(str(loc) for loc in error["loc"])
                logger.error(f"설정 검증 실패: {field_path}: {error['msg']}")
            raise ConfigValidationError(
                f"설정 스키마 검증 실패: {exc.error_count()}개 항목"
            ) from exc

        self._config = config
        return config
