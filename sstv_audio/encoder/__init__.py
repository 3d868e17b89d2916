"""
SSTV 인코더 계약 패키지

공통 인터페이스:
- SSTVEncoder: 재생/내보내기 경로가 소비하는 인코더 추상 클래스
- load_encoder: "module:attr" import 경로로 인코더 인스턴스 생성

인코더 계약:
    prepare_image(pixel_data)          RGBA 픽셀 버퍼 검증/변환
    encode_sstv(oscillator, start)     주파수 이벤트 예약 후 종료 시각 반환
    get_encoded_length()               렌더링 없이 계산한 총 신호 길이(초)
    mode_name                          표시용 모드 이름

encode_sstv는 같은 픽셀 데이터와 시작 시각에 대해 항상 같은 스케줄을 만들며,
렌더링 세션당 최대 한 번 호출됩니다.
"""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod

from sstv_audio.audio.oscillator import Oscillator
from sstv_audio.errors import EncoderLoadError

logger = logging.getLogger(__name__)


class SSTVEncoder(ABC):
    """이미지 픽셀을 주파수/시간 이벤트 스케줄로 변환하는 인코더의 추상 클래스입니다."""

    #: 표시용 모드 이름 (예: "Robot 36")
    mode_name: str = ""

    @abstractmethod
    def prepare_image(self, pixel_data) -> None:
        """원시 RGBA 픽셀 버퍼를 검증하고 내부 표현으로 변환합니다."""

    @abstractmethod
    def encode_sstv(self, oscillator: Oscillator, start_time: float) -> float:
        """
        start_time부터 oscillator.frequency에 주파수 이벤트를 예약합니다.

        반환값:
            float: 신호가 끝나는 절대 시각 (초)
        """

    @abstractmethod
    def get_encoded_length(self) -> float:
        """렌더링 없이 계산한 총 신호 길이(초)를 반환합니다."""


def load_encoder(path: str) -> SSTVEncoder:
    """
    "module:attr" 형식의 경로에서 인코더를 로드합니다.

    attr이 클래스/팩토리 함수이면 인자 없이 호출한 결과를, 이미 인스턴스이면
    그대로 반환합니다.

    파라미터:
        path: import 경로 (예: "sstv_audio.encoder.tone_sequence:CalibrationHeaderEncoder")

    반환값:
        SSTVEncoder: 인코더 인스턴스

    에러:
        EncoderLoadError: 모듈/속성을 찾을 수 없거나 인코더 계약을 만족하지 않을 때
    """
    module_name, sep, attr_name = path.partition(":")
    if not sep or not module_name or not attr_name:
        raise EncoderLoadError(f"인코더 경로는 'module:attr' 형식이어야 합니다: '{path}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        logger.error(f"인코더 모듈 import 실패: {module_name}", exc_info=True)
        raise EncoderLoadError(f"인코더 모듈을 찾을 수 없습니다: {module_name}") from exc

    try:
        target = getattr(module, attr_name)
    except AttributeError as exc:
        raise EncoderLoadError(f"'{module_name}'에 '{attr_name}'이 없습니다") from exc

    if callable(target) and not _is_encoder(target):
        try:
            encoder = target()
        except TypeError as exc:
            raise EncoderLoadError(f"'{path}'를 인자 없이 생성할 수 없습니다: {exc}") from exc
    else:
        encoder = target

    if not _is_encoder(encoder):
        raise EncoderLoadError(f"'{path}'는 SSTV 인코더 계약을 만족하지 않습니다")

    logger.info(f"인코더 로드 완료: {path} (mode={encoder.mode_name})")
    return encoder


def _is_encoder(obj) -> bool:
    """인코더 계약(메서드 3개 + mode_name)을 만족하는 인스턴스인지 확인합니다."""
    if isinstance(obj, type):
        return False
    return all(
        callable(getattr(obj, name, None))
        for name in ("prepare_image", "encode_sstv", "get_encoded_length")
    ) and isinstance(getattr(obj, "mode_name", None), str)
