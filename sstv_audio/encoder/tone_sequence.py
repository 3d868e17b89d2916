"""
고정 톤 시퀀스 인코더 모듈입니다.

역할:
- (주파수, 길이) 목록을 그대로 주파수 스케줄로 예약하는 ToneSequenceEncoder
- 모든 SSTV 모드가 공유하는 교정 헤더(리더-브레이크-리더)와 선택적 VIS 코드를
  송출하는 CalibrationHeaderEncoder

픽셀→주파수 매핑은 모드별 인코더의 책임이며 이 모듈은 다루지 않습니다.

사용 예시:
    >>> encoder = ToneSequenceEncoder([Tone(1900.0, 0.3), Tone(1200.0, 0.01)], "Leader")
    >>> end_time = encoder.encode_sstv(oscillator, 1.0)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from sstv_audio.audio.oscillator import Oscillator
from sstv_audio.encoder import SSTVEncoder

logger = logging.getLogger(__name__)

# SSTV 톤 주파수 (Hz)
FREQ_LEADER = 1900.0
FREQ_BREAK = 1200.0
FREQ_VIS_BIT_1 = 1100.0
FREQ_VIS_BIT_0 = 1300.0

# VIS 헤더 타이밍 (초)
LEADER_DURATION = 0.300
BREAK_DURATION = 0.010
VIS_BIT_DURATION = 0.030

# RGBA 픽셀당 바이트 수
_BYTES_PER_PIXEL = 4


@dataclass(frozen=True)
class Tone:
    """
    단일 톤 구간입니다.

    필드:
        frequency_hz: 주파수 (Hz)
        duration_sec: 길이 (초)
    """
    frequency_hz: float
    duration_sec: float


class ToneSequenceEncoder(SSTVEncoder):
    """
    주어진 톤 목록을 순서대로 예약하는 인코더입니다.

    이미지 내용과 무관하게 항상 같은 스케줄을 만들며, prepare_image는
    RGBA 버퍼 형식만 검증합니다.
    """

    def __init__(self, tones: Sequence[Tone], mode_name: str = "Tone Sequence") -> None:
        """
        에러:
            ValueError: 톤 목록이 비어있거나 길이/주파수가 양수가 아닌 톤이 있을 때
        """
        if not tones:
            raise ValueError("톤 목록이 비어있습니다")
        for tone in tones:
            if tone.duration_sec <= 0 or tone.frequency_hz <= 0:
                raise ValueError(f"톤의 주파수와 길이는 양수여야 합니다: {tone}")

        self.mode_name = mode_name
        self._tones: tuple[Tone, ...] = tuple(tones)
        self._pixels: Optional[np.ndarray] = None

    @property
    def tones(self) -> tuple[Tone, ...]:
        return self._tones

    @property
    def pixel_count(self) -> int:
        """prepare_image로 받은 픽셀 수를 반환합니다 (준비 전에는 0)."""
        return 0 if self._pixels is None else len(self._pixels) // _BYTES_PER_PIXEL

    def prepare_image(self, pixel_data) -> None:
        """
        RGBA 픽셀 버퍼(bytes 또는 uint8 배열)를 검증하여 보관합니다.

        에러:
            ValueError: 버퍼 길이가 4의 배수가 아닐 때
        """
        if isinstance(pixel_data, (bytes, bytearray, memoryview)):
            pixels = np.frombuffer(bytes(pixel_data), dtype=np.uint8)
        else:
            pixels = np.asarray(pixel_data, dtype=np.uint8).ravel()

        if len(pixels) % _BYTES_PER_PIXEL != 0:
            raise ValueError(f"RGBA 픽셀 버퍼 길이가 4의 배수가 아닙니다: {len(pixels)}")

        self._pixels = pixels
        logger.debug(f"{self.mode_name}: 이미지 준비 완료 ({self.pixel_count} pixels)")

    def encode_sstv(self, oscillator: Oscillator, start_time: float) -> float:
        current_time = start_time
        for tone in self._tones:
            oscillator.frequency.set_value_at_time(tone.frequency_hz, current_time)
            current_time += tone.duration_sec

        logger.debug(
            f"{self.mode_name}: {len(self._tones)}개 톤 예약 "
            f"({start_time:.3f}s → {current_time:.3f}s)"
        )
        return current_time

    def get_encoded_length(self) -> float:
        return float(sum(tone.duration_sec for tone in self._tones))


class CalibrationHeaderEncoder(ToneSequenceEncoder):
    """
    SSTV 교정 헤더 인코더입니다.

    송출 순서:
        리더 1900Hz 300ms → 브레이크 1200Hz 10ms → 리더 1900Hz 300ms
        [vis_code 지정 시]
        → 시작 비트 1200Hz 30ms → 데이터 7비트(LSB 먼저, 1=1100Hz, 0=1300Hz)
        → 짝수 패리티 비트 → 정지 비트 1200Hz 30ms
    """

    def __init__(self, vis_code: Optional[int] = None) -> None:
        """
        에러:
            ValueError: vis_code가 0~127 범위를 벗어날 때
        """
        if vis_code is not None and not 0 <= vis_code <= 0x7F:
            raise ValueError(f"VIS 코드는 0~127 범위여야 합니다: {vis_code}")

        tones = [
            Tone(FREQ_LEADER, LEADER_DURATION),
            Tone(FREQ_BREAK, BREAK_DURATION),
            Tone(FREQ_LEADER, LEADER_DURATION),
        ]
        if vis_code is not None:
            tones.extend(_vis_tones(vis_code))

        mode_name = "Calibration Header" if vis_code is None else f"Calibration Header VIS {vis_code}"
        super().__init__(tones, mode_name)
        self.vis_code = vis_code


def _vis_tones(vis_code: int) -> list[Tone]:
    """VIS 코드를 시작/데이터/패리티/정지 비트 톤 목록으로 변환합니다."""
    bits = [(vis_code >> i) & 1 for i in range(7)]
    parity = sum(bits) % 2

    tones = [Tone(FREQ_BREAK, VIS_BIT_DURATION)]
    for bit in bits + [parity]:
        tones.append(Tone(FREQ_VIS_BIT_1 if bit else FREQ_VIS_BIT_0, VIS_BIT_DURATION))
    tones.append(Tone(FREQ_BREAK, VIS_BIT_DURATION))
    return tones
