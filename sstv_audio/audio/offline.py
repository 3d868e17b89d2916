"""
비실시간(오프라인) 렌더 컨텍스트 모듈입니다.

역할:
- 고정 길이(length 프레임) mono 버퍼로 오실레이터를 실시간 제약 없이 렌더링
- 렌더링은 이벤트 루프를 막지 않도록 기본 executor에서 수행
- 렌더링 결과는 한 번만 생성되며 이후 변경되지 않음

사용 예시:
    >>> ctx = OfflineRenderContext(1, 48000 * 11, 48000)
    >>> osc = ctx.create_oscillator()
    >>> osc.start(1.0)
    >>> samples = await ctx.start_rendering()
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import numpy as np

from sstv_audio.audio.oscillator import Oscillator
from sstv_audio.errors import RenderError

logger = logging.getLogger(__name__)

# 렌더링 블록 크기 (샘플 수, 메모리 사용량 제한용)
_RENDER_BLOCK_FRAMES = 48000 * 10


class OfflineRenderContext:
    """
    mono 전용 비실시간 렌더 컨텍스트입니다.

    컨텍스트에서 생성한 모든 오실레이터 출력을 합산하여
    -1.0~+1.0 범위를 벗어날 수 있는 float32 버퍼로 반환합니다.
    (양자화 시 클리핑은 WAV 직렬화 단계의 책임입니다.)
    """

    def __init__(self, number_of_channels: int, length: int, sample_rate: int) -> None:
        """
        파라미터:
            number_of_channels: 채널 수 (1만 지원)
            length: 렌더링할 총 프레임 수
            sample_rate: 샘플링레이트 (Hz)

        에러:
            ValueError: 채널 수가 1이 아니거나 length/sample_rate가 양수가 아닐 때
        """
        if number_of_channels != 1:
            raise ValueError(f"mono(1채널)만 지원합니다: channels={number_of_channels}")
        if length <= 0:
            raise ValueError(f"length는 양수여야 합니다: {length}")
        if sample_rate <= 0:
            raise ValueError(f"sample_rate는 양수여야 합니다: {sample_rate}")

        self.number_of_channels = number_of_channels
        self.length = int(length)
        self.sample_rate = int(sample_rate)

        self._oscillators: list[Oscillator] = []
        self._rendered: Optional[np.ndarray] = None
        self._rendering_started: bool = False

    @property
    def duration(self) -> float:
        """컨텍스트 길이(초)를 반환합니다."""
        return self.length / self.sample_rate

    def create_oscillator(self) -> Oscillator:
        """이 컨텍스트의 출력에 연결된 사인파 오실레이터를 생성합니다."""
        oscillator = Oscillator("sine")
        self._oscillators.append(oscillator)
        return oscillator

    async def start_rendering(self) -> np.ndarray:
        """
        전체 컨텍스트를 렌더링하고 mono float32 샘플 배열을 반환합니다.

        반환값:
            np.ndarray: shape=(length,) float32 배열

        에러:
            RenderError: 이미 렌더링을 시작했거나 렌더링 중 오류가 발생했을 때
        """
        if self._rendering_started:
            raise RenderError("OfflineRenderContext는 한 번만 렌더링할 수 있습니다")
        self._rendering_started = True

        loop = asyncio.get_running_loop()
        started_at = time.perf_counter()
        try:
            rendered = await loop.run_in_executor(None, self._render)
        except Exception as exc:
            logger.error(f"오프라인 렌더링 실패: {exc}", exc_info=True)
            raise RenderError(f"오프라인 렌더링 실패: {exc}") from exc

        rendered.flags.writeable = False
        self._rendered = rendered
        logger.info(
            f"오프라인 렌더링 완료: {self.length} samples "
            f"({self.duration:.2f}s @ {self.sample_rate}Hz), "
            f"소요 {time.perf_counter() - started_at:.2f}s"
        )
        return rendered

    def _render(self) -> np.ndarray:
        """executor 스레드에서 블록 단위로 전체 버퍼를 렌더링합니다."""
        output = np.zeros(self.length, dtype=np.float32)

        for offset in range(0, self.length, _RENDER_BLOCK_FRAMES):
            frames = min(_RENDER_BLOCK_FRAMES, self.length - offset)
            block_start_time = offset / self.sample_rate
            for oscillator in self._oscillators:
                output[offset:offset + frames] += oscillator.render(
                    block_start_time, frames, self.sample_rate
                )

        return output
