"""
실시간 오디오 출력 모듈입니다.

역할:
- 재생 세션이 공유하는 "오디오 컨텍스트": 시계(current_time), 전원 상태(state), resume()
- open_stream(oscillator)로 세션당 출력 스트림 리소스 1개를 할당
- 스트림 종료(예약된 정지 시각 도달 또는 stop())를 asyncio Future로 통보

백엔드:
- SoundDeviceOutput: sounddevice(PortAudio) OutputStream 콜백으로 실제 장치에 출력
- NullAudioOutput: 장치 없이 이벤트 루프 시계만 진행 (헤드리스 실행/테스트용,
  simulation_speed 배속 지원)

사용 예시:
    >>> output = create_output(config)
    >>> stream = output.open_stream(oscillator)
    >>> await stream.wait_ended()
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

import numpy as np

from sstv_audio.audio import CHANNELS, SAMPLE_RATE
from sstv_audio.audio.oscillator import Oscillator
from sstv_audio.config.schema import AppConfig
from sstv_audio.errors import AudioDeviceError

logger = logging.getLogger(__name__)

# 출력 컨텍스트 전원 상태
STATE_RUNNING = "running"
STATE_SUSPENDED = "suspended"
STATE_CLOSED = "closed"


class OutputStreamHandle(ABC):
    """
    세션 하나가 소유하는 출력 스트림 핸들입니다.

    ended Future는 이벤트 루프 스레드에서만 완료되며, 여러 번 종료 처리되어도
    한 번만 완료됩니다.
    """

    def __init__(self, output: "AudioOutput", oscillator: Oscillator) -> None:
        self.oscillator = oscillator
        self._output = output
        self._loop = asyncio.get_running_loop()
        self._ended: asyncio.Future = self._loop.create_future()
        self._end_callbacks: list[Callable[[], None]] = []

    @property
    def ended(self) -> bool:
        """스트림이 종료되었는지 반환합니다."""
        return self._ended.done()

    async def wait_ended(self) -> None:
        """스트림이 종료될 때까지 대기합니다."""
        await asyncio.shield(self._ended)

    def add_end_callback(self, callback: Callable[[], None]) -> None:
        """
        스트림이 종료되는 바로 그 시점에 동기 호출될 콜백을 등록합니다.

        wait_ended() 대기자보다 먼저 실행됩니다. 이미 종료된 스트림이면 즉시 호출합니다.
        """
        if self._ended.done():
            callback()
            return
        self._end_callbacks.append(callback)

    @abstractmethod
    def stop(self) -> None:
        """스트림을 즉시 정지하고 리소스를 해제합니다."""

    def _mark_ended(self) -> None:
        """종료 상태로 전환하고 출력 컨텍스트에서 스트림을 해제합니다."""
        if self._ended.done():
            return
        self._output._release(self)
        self._ended.set_result(None)
        callbacks, self._end_callbacks = self._end_callbacks, []
        for callback in callbacks:
            callback()


class AudioOutput(ABC):
    """
    실시간 출력 백엔드의 공통 인터페이스입니다.

    current_time은 컨텍스트 생성 시점부터 흐른 시간(초)이며,
    오실레이터의 start/stop/set_value_at_time 시각은 모두 이 시계를 기준으로 합니다.
    """

    sample_rate: int = SAMPLE_RATE

    def __init__(self) -> None:
        self._state: str = STATE_RUNNING
        self._streams: set[OutputStreamHandle] = set()

    @property
    @abstractmethod
    def current_time(self) -> float:
        """컨텍스트 시계의 현재 시각(초)을 반환합니다."""

    @property
    def state(self) -> str:
        """전원 상태를 반환합니다 ("running" | "suspended" | "closed")."""
        return self._state

    @property
    def active_stream_count(self) -> int:
        """현재 열려 있는 출력 스트림 수를 반환합니다."""
        return len(self._streams)

    async def resume(self) -> None:
        """suspended 상태이면 running으로 전환합니다. 그 외 상태에서는 아무 작업도 하지 않습니다."""
        if self._state == STATE_SUSPENDED:
            self._state = STATE_RUNNING
            logger.info("오디오 출력 재개 (suspended → running)")

    def suspend(self) -> None:
        """running 상태이면 suspended로 전환합니다."""
        if self._state == STATE_RUNNING:
            self._state = STATE_SUSPENDED
            logger.info("오디오 출력 일시 중지 (running → suspended)")

    def open_stream(self, oscillator: Oscillator) -> OutputStreamHandle:
        """
        오실레이터를 출력하는 스트림을 열고 즉시 시작합니다.

        에러:
            RuntimeError: 출력 컨텍스트가 닫힌 상태일 때
            AudioDeviceError: 실제 출력 장치를 열 수 없을 때 (SoundDeviceOutput)
        """
        if self._state == STATE_CLOSED:
            raise RuntimeError("닫힌 오디오 출력에는 스트림을 열 수 없습니다")

        handle = self._create_stream(oscillator)
        self._streams.add(handle)
        logger.debug(f"출력 스트림 열림 (활성 스트림 {len(self._streams)}개)")
        return handle

    def close(self) -> None:
        """열린 스트림을 모두 정지하고 컨텍스트를 닫습니다."""
        for handle in list(self._streams):
            handle.stop()
        self._state = STATE_CLOSED
        logger.info(f"{type(self).__name__} 닫힘")

    @abstractmethod
    def _create_stream(self, oscillator: Oscillator) -> OutputStreamHandle:
        """백엔드별 스트림 핸들을 생성하고 시작합니다."""

    def _release(self, handle: OutputStreamHandle) -> None:
        self._streams.discard(handle)


# =============================================================================
# NullAudioOutput: 장치 없는 시뮬레이션 출력
# =============================================================================

class _NullOutputStream(OutputStreamHandle):
    """예약된 정지 시각에 이벤트 루프 타이머로 종료되는 가상 스트림입니다."""

    def __init__(self, output: "NullAudioOutput", oscillator: Oscillator) -> None:
        super().__init__(output, oscillator)
        self._timer: Optional[asyncio.TimerHandle] = None

        stop_time = oscillator.stop_time
        if stop_time is not None:
            delay_sec = max(0.0, (stop_time - output.current_time) / output.simulation_speed)
            self._timer = self._loop.call_later(delay_sec, self._mark_ended)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._mark_ended()


class NullAudioOutput(AudioOutput):
    """
    실제 장치 없이 시계만 진행하는 출력 백엔드입니다.

    SoundDeviceOutput과 동일한 인터페이스를 제공하여 오디오 장치 없이
    재생 스케줄러 전체 흐름을 실행할 수 있습니다.
    simulation_speed > 1이면 컨텍스트 시계가 실제 시간보다 빠르게 흐릅니다.
    """

    def __init__(self, simulation_speed: float = 1.0) -> None:
        super().__init__()
        if simulation_speed <= 0:
            raise ValueError(f"simulation_speed는 양수여야 합니다: {simulation_speed}")
        self.simulation_speed = float(simulation_speed)
        self._origin = time.monotonic()
        logger.info(f"NullAudioOutput 초기화: simulation_speed={self.simulation_speed}x")

    @property
    def current_time(self) -> float:
        return (time.monotonic() - self._origin) * self.simulation_speed

    def _create_stream(self, oscillator: Oscillator) -> OutputStreamHandle:
        return _NullOutputStream(self, oscillator)


# =============================================================================
# SoundDeviceOutput: PortAudio 장치 출력
# =============================================================================

class _SoundDeviceStream(OutputStreamHandle):
    """
    sounddevice OutputStream 콜백으로 오실레이터를 블록 단위 렌더링하는 스트림입니다.

    WARNING: _callback은 PortAudio 오디오 스레드에서 실행됩니다.
    이벤트 루프 객체는 call_soon_threadsafe로만 접근합니다.
    """

    def __init__(self, output: "SoundDeviceOutput", oscillator: Oscillator) -> None:
        super().__init__(output, oscillator)
        self._sample_rate = output.sample_rate
        self._frames_written: int = 0
        self._underflow_count: int = 0

        try:
            # PortAudio 공유 라이브러리가 없으면 import 시점에 OSError 발생
            import sounddevice as sd
        except OSError as exc:
            logger.error(f"sounddevice 로드 실패 (PortAudio 확인 필요): {exc}")
            raise AudioDeviceError(f"PortAudio를 로드할 수 없습니다: {exc}") from exc

        self._callback_stop = sd.CallbackStop
        self._stream = None
        try:
            self._stream = sd.OutputStream(
                samplerate=self._sample_rate,
                channels=CHANNELS,
                dtype="float32",
                blocksize=output.blocksize,
                device=output.device,
                latency=output.latency,
                callback=self._callback,
                finished_callback=self._finished_callback,
            )
            # 첫 샘플이 대응하는 컨텍스트 시각
            self._stream_origin = output.current_time
            self._stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            if self._stream is not None:
                self._stream.close()
                self._stream = None
            logger.error(f"출력 스트림 열기 실패: device={output.device}, 오류: {exc}", exc_info=True)
            raise AudioDeviceError(f"출력 장치를 열 수 없습니다: {exc}") from exc

    def stop(self) -> None:
        if self._stream is not None:
            self._stream.abort()
            self._stream.close()
            self._stream = None
        self._mark_ended()

    def _callback(self, outdata: np.ndarray, frames: int, time_info, status) -> None:
        if status.output_underflow:
            self._underflow_count += 1

        block_start_time = self._stream_origin + self._frames_written / self._sample_rate
        outdata[:, 0] = self.oscillator.render(block_start_time, frames, self._sample_rate)
        self._frames_written += frames

        if self.oscillator.has_ended(block_start_time + frames / self._sample_rate):
            raise self._callback_stop

    def _finished_callback(self) -> None:
        if self._underflow_count:
            logger.warning(f"출력 언더플로 {self._underflow_count}회 발생")
        if not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._on_finished)

    def _on_finished(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        self._mark_ended()


class SoundDeviceOutput(AudioOutput):
    """
    sounddevice(PortAudio)를 사용하는 실제 장치 출력 백엔드입니다.

    컨텍스트 시계는 time.monotonic() 기준이며, 각 스트림은 열린 시각을
    첫 샘플의 컨텍스트 시각으로 삼아 샘플 위치를 시계에 대응시킵니다.
    """

    def __init__(
        self,
        device: Optional[Union[int, str]] = None,
        blocksize: int = 1024,
        latency: str = "high",
    ) -> None:
        super().__init__()
        self.device = device
        self.blocksize = blocksize
        self.latency = latency
        self._origin = time.monotonic()
        logger.info(
            f"SoundDeviceOutput 초기화: device={device if device is not None else 'default'}, "
            f"blocksize={blocksize}, latency={latency}, {self.sample_rate}Hz/mono"
        )

    @property
    def current_time(self) -> float:
        return time.monotonic() - self._origin

    def _create_stream(self, oscillator: Oscillator) -> OutputStreamHandle:
        return _SoundDeviceStream(self, oscillator)


def create_output(config: AppConfig) -> AudioOutput:
    """설정에 따라 적절한 출력 백엔드를 생성합니다."""
    playback_cfg = config.playback
    if playback_cfg.backend == "null":
        return NullAudioOutput(simulation_speed=playback_cfg.simulation_speed)
    return SoundDeviceOutput(
        device=playback_cfg.device,
        blocksize=playback_cfg.blocksize,
        latency=playback_cfg.latency,
    )
