"""
config.yaml 구조를 정의하는 Pydantic v2 모델입니다.

섹션:
    system   로깅 레벨/포맷/디렉토리, 로깅 세션 ID
    playback 실시간 출력 백엔드와 진행률 보고 주기
    export   WAV 저장 위치
    encoder  기본 인코더 import 경로

48kHz / 16bit / mono는 내보내기 포맷의 고정값이라 설정 항목이 아닙니다
(sstv_audio.audio 상수 참고).

사용 예시:
    >>> config = AppConfig(**{"playback": {"backend": "null"}})
    >>> config.export.output_dir
    'output/exports'
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")
BACKENDS = ("sounddevice", "null")
LATENCIES = ("low", "high")


def _one_of(field_name: str, value: str, allowed: tuple[str, ...]) -> str:
    if value not in allowed:
        raise ValueError(f"{field_name}은(는) {allowed} 중 하나여야 합니다. 입력값: '{value}'")
    return value


# =============================================================================
# system
# =============================================================================

class SystemConfig(BaseModel):
    """로그 출력과 로깅 세션 식별 설정입니다."""

    log_level: str = Field(default="INFO", description="DEBUG | INFO | WARNING | ERROR | CRITICAL")
    log_format: str = Field(default="text", description="json | text")
    log_dir: str = Field(default="output/logs", description="sstv_audio.log 저장 디렉토리")
    # 비어 있으면 setup_logging이 UUID4를 발급
    session_id: str = Field(default="", description="로그 레코드에 붙는 세션 ID")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """대소문자 구분 없이 받고 대문자로 정규화합니다."""
        return _one_of("log_level", value.upper(), LOG_LEVELS)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        return _one_of("log_format", value, LOG_FORMATS)


# =============================================================================
# playback
# =============================================================================

class PlaybackConfig(BaseModel):
    """
    실시간 재생 설정입니다.

    - backend: "sounddevice"는 PortAudio 장치 출력, "null"은 장치 없이 시계만 진행
    - device / blocksize / latency: sounddevice.OutputStream 인자 그대로
    - progress_interval_ms: 진행률 보고 주기. 기본 16ms는 60Hz 화면 갱신 주기
    - simulation_speed: null 백엔드 시계 배속 (헤드리스 실행, 테스트)
    """

    backend: str = Field(default="sounddevice", description="sounddevice | null")
    # None이면 시스템 기본 출력 장치
    device: Optional[Union[int, str]] = Field(default=None, description="장치 인덱스 또는 이름")
    blocksize: int = Field(default=1024, ge=64, le=16384, description="콜백 블록 크기 (frames)")
    latency: str = Field(default="high", description="low | high")
    progress_interval_ms: int = Field(default=16, ge=1, le=1000, description="진행률 보고 주기 (ms)")
    simulation_speed: float = Field(default=1.0, gt=0.0, description="null 백엔드 배속")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, value: str) -> str:
        return _one_of("backend", value, BACKENDS)

    @field_validator("device", mode="before")
    @classmethod
    def normalize_device(cls, value):
        """숫자 문자열("3")은 장치 인덱스로, 빈 문자열은 기본 장치(None)로 바꿉니다."""
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            if stripped.isdigit():
                return int(stripped)
        return value

    @field_validator("latency")
    @classmethod
    def validate_latency(cls, value: str) -> str:
        return _one_of("latency", value, LATENCIES)


# =============================================================================
# export / encoder
# =============================================================================

class ExportConfig(BaseModel):
    output_dir: str = Field(default="output/exports", description="내보낸 WAV 저장 디렉토리")


class EncoderConfig(BaseModel):
    """기본 인코더를 "module:attr" import 경로로 지정합니다 (encoder.load_encoder 참고)."""

    path: str = Field(
        default="sstv_audio.encoder.tone_sequence:CalibrationHeaderEncoder",
        description="인코더 팩토리 import 경로",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, value: str) -> str:
        module_name, sep, attr_name = value.partition(":")
        if not sep or not module_name or not attr_name:
            raise ValueError(f"path는 'module:attr' 형식이어야 합니다. 입력값: '{value}'")
        return value


class AppConfig(BaseModel):
    """config.yaml 최상위 모델입니다. 누락된 섹션은 기본값으로 채워집니다."""

    system: SystemConfig = Field(default_factory=SystemConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    encoder: EncoderConfig = Field(default_factory=EncoderConfig)
