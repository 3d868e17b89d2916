"""
톤 생성기(오실레이터) 모듈입니다.

역할:
- 예약 가능한 주파수 파라미터(AudioParam.set_value_at_time)를 가진 사인파 톤 생성기
- start(t) / stop(t) 구간 밖은 무음(0.0) 출력
- 블록 단위 렌더링 시 위상을 이어받아 블록 경계에서 클릭이 생기지 않도록 보장

인코더는 encode_sstv(oscillator, start_time) 호출 안에서
oscillator.frequency.set_value_at_time(hz, t)만 사용합니다.

사용 예시:
    >>> osc = Oscillator()
    >>> osc.frequency.set_value_at_time(1900.0, 1.0)
    >>> osc.start(1.0)
    >>> osc.stop(1.3)
    >>> block = osc.render(0.0, 48000, 48000)
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

# 주파수 파라미터 기본값 (Hz)
_DEFAULT_FREQUENCY = 440.0

_TWO_PI = 2.0 * math.pi


class AudioParam:
    """
    시각별 값 변경 이벤트를 보관하는 계단형(step) 자동화 파라미터입니다.

    같은 시각에 여러 이벤트가 예약되면 나중에 예약된 값이 적용됩니다.
    첫 이벤트 이전 구간은 value(기본값)를 사용합니다.
    """

    def __init__(self, default_value: float) -> None:
        self.value: float = float(default_value)
        self._event_times: list[float] = []
        self._event_values: list[float] = []
        # 렌더링용 정렬 배열 캐시 (이벤트 추가 시 무효화)
        self._sorted: Optional[tuple[np.ndarray, np.ndarray]] = None

    @property
    def event_count(self) -> int:
        """예약된 이벤트 수를 반환합니다."""
        return len(self._event_times)

    def set_value_at_time(self, value: float, start_time: float) -> "AudioParam":
        """
        start_time 시각부터 value를 적용하도록 예약합니다.

        파라미터:
            value: 적용할 값 (주파수 파라미터의 경우 Hz)
            start_time: 적용 시각 (초, 컨텍스트 시계 기준)

        반환값:
            AudioParam: 메서드 체이닝을 위한 자기 자신

        에러:
            ValueError: start_time이 음수이거나 유한하지 않을 때
        """
        if not math.isfinite(start_time) or start_time < 0:
            raise ValueError(f"start_time은 0 이상의 유한한 값이어야 합니다: {start_time}")
        if not math.isfinite(value):
            raise ValueError(f"value는 유한한 값이어야 합니다: {value}")

        self._event_times.append(float(start_time))
        self._event_values.append(float(value))
        self._sorted = None
        return self

    def values_at(self, times: np.ndarray) -> np.ndarray:
        """
        각 시각에 적용되는 파라미터 값을 배열로 반환합니다.

        파라미터:
            times: 조회할 시각 배열 (초)

        반환값:
            np.ndarray: times와 같은 길이의 float64 값 배열
        """
        if not self._event_times:
            return np.full(len(times), self.value, dtype=np.float64)

        event_times, event_values = self._sorted_events()
        # side="right": 이벤트 시각과 정확히 같은 샘플부터 새 값 적용
        indices = np.searchsorted(event_times, times, side="right") - 1
        values = np.where(
            indices >= 0,
            event_values[np.clip(indices, 0, None)],
            self.value,
        )
        return values.astype(np.float64, copy=False)

    def _sorted_events(self) -> tuple[np.ndarray, np.ndarray]:
        """이벤트를 시각 순으로 안정 정렬한 배열을 반환합니다."""
        if self._sorted is None:
            times = np.asarray(self._event_times, dtype=np.float64)
            values = np.asarray(self._event_values, dtype=np.float64)
            order = np.argsort(times, kind="stable")
            self._sorted = (times[order], values[order])
        return self._sorted


class Oscillator:
    """
    주파수 스케줄을 따라 진폭 1.0 사인파를 생성하는 톤 생성기입니다.

    렌더링 흐름:
        샘플 시각 배열 생성 → start/stop 구간 마스크
            → 샘플별 주파수 조회(AudioParam) → 위상 누적(cumsum)
            → sin(위상) → 구간 밖 0.0
    """

    def __init__(self, waveform: str = "sine") -> None:
        """
        파라미터:
            waveform: 파형 종류 (현재 "sine"만 지원)

        에러:
            ValueError: 지원하지 않는 파형일 때
        """
        if waveform != "sine":
            raise ValueError(f"지원하지 않는 파형입니다: {waveform}")

        self.waveform = waveform
        self.frequency = AudioParam(_DEFAULT_FREQUENCY)
        self._start_time: Optional[float] = None
        self._stop_time: Optional[float] = None
        # 다음 블록으로 이어지는 위상 (라디안)
        self._phase: float = 0.0

    @property
    def start_time(self) -> Optional[float]:
        return self._start_time

    @property
    def stop_time(self) -> Optional[float]:
        return self._stop_time

    def start(self, when: float = 0.0) -> None:
        """
        when 시각부터 출력을 시작하도록 예약합니다.

        에러:
            RuntimeError: 이미 start()가 호출된 경우
            ValueError: when이 음수일 때
        """
        if self._start_time is not None:
            raise RuntimeError("Oscillator.start()는 한 번만 호출할 수 있습니다")
        if when < 0:
            raise ValueError(f"시작 시각은 0 이상이어야 합니다: {when}")
        self._start_time = float(when)
        logger.debug(f"Oscillator 시작 예약: {when:.3f}s")

    def stop(self, when: float) -> None:
        """
        when 시각에 출력을 멈추도록 예약합니다.

        에러:
            RuntimeError: start() 호출 전일 때
        """
        if self._start_time is None:
            raise RuntimeError("Oscillator.stop()은 start() 이후에만 호출할 수 있습니다")
        self._stop_time = max(float(when), self._start_time)
        logger.debug(f"Oscillator 정지 예약: {self._stop_time:.3f}s")

    def has_ended(self, when: float) -> bool:
        """when 시각에 예약된 정지 시각을 지났는지 반환합니다."""
        return self._stop_time is not None and when >= self._stop_time

    def render(self, block_start_time: float, frames: int, sample_rate: int) -> np.ndarray:
        """
        block_start_time부터 frames개 샘플을 float32로 렌더링합니다.

        연속된 블록을 순서대로 렌더링하면 위상이 이어집니다.

        파라미터:
            block_start_time: 첫 샘플의 컨텍스트 시각 (초)
            frames: 렌더링할 샘플 수
            sample_rate: 샘플링레이트 (Hz)

        반환값:
            np.ndarray: shape=(frames,) float32 배열 (-1.0~+1.0)
        """
        if frames <= 0:
            return np.zeros(0, dtype=np.float32)
        if self._start_time is None:
            return np.zeros(frames, dtype=np.float32)

        times = block_start_time + np.arange(frames, dtype=np.float64) / sample_rate

        active = times >= self._start_time
        if self._stop_time is not None:
            active &= times < self._stop_time
        if not active.any():
            return np.zeros(frames, dtype=np.float32)

        increments = np.where(
            active,
            _TWO_PI * self.frequency.values_at(times) / sample_rate,
            0.0,
        )
        # 각 샘플의 위상 = 블록 시작 위상 + 이전 샘플까지의 누적 증분
        cumulative = np.cumsum(increments)
        phases = self._phase + cumulative - increments
        self._phase = float((self._phase + cumulative[-1]) % _TWO_PI)

        samples = np.where(active, np.sin(phases), 0.0)
        return samples.astype(np.float32)
