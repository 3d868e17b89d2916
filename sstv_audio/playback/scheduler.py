"""
SSTV 신호 재생 스케줄러 모듈입니다.

역할:
- 인코더 스케줄에 따라 톤 생성기(Oscillator) 하나를 출력 장치로 재생
- 주입된 PlaybackContext로 활성 세션을 1개로 제한
- 재생 중 다시 start_playback을 호출하면 기존 세션을 취소만 하고 반환 (토글)
- 진행률 리포터 태스크와 완료 처리 태스크를 세션마다 생성

재생 흐름:
    start_playback(pixel_data, encoder)
        → Oscillator 생성 → start_time = now + LEAD_IN_SEC
        → encoder.prepare_image → end_time = encoder.encode_sstv(osc, start_time)
        → osc.start(start_time) / osc.stop(end_time) → 출력 스트림 열기
        → ProgressReporter 태스크 + 완료 대기 태스크 생성

사용 예시:
    >>> scheduler = SignalScheduler(config, NullAudioOutput())
    >>> result = scheduler.start_playback(pixels, encoder, on_progress=print)
    >>> outcome = await result.session.wait()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sstv_audio.audio import LEAD_IN_SEC
from sstv_audio.audio.oscillator import Oscillator
from sstv_audio.audio.output import AudioOutput
from sstv_audio.config.schema import AppConfig
from sstv_audio.encoder import SSTVEncoder
from sstv_audio.errors import EncoderNotSelectedError
from sstv_audio.playback import (
    CompleteCallback,
    PlaybackResult,
    ProgressCallback,
    SessionOutcome,
    SessionState,
)
from sstv_audio.playback.progress import ProgressReporter
from sstv_audio.playback.session import PlaybackContext, PlaybackSession

logger = logging.getLogger(__name__)


class SignalScheduler:
    """
    실시간 SSTV 재생 세션을 관리하는 스케줄러입니다.

    모든 공개 메서드는 실행 중인 asyncio 이벤트 루프 안에서 호출해야 합니다.
    출력 스트림 종료 통보, 진행률 보고, 완료 콜백은 모두 같은 루프에서 실행됩니다.
    """

    def __init__(
        self,
        config: AppConfig,
        output: AudioOutput,
        context: Optional[PlaybackContext] = None,
    ) -> None:
        """
        파라미터:
            config (AppConfig): 전체 애플리케이션 설정 객체
            output (AudioOutput): 세션들이 공유하는 출력 컨텍스트
            context (PlaybackContext | None): 활성 세션 소유 컨텍스트 (None이면 새로 생성)
        """
        self._config = config
        self._output = output
        self._context = context if context is not None else PlaybackContext()
        self._progress_interval_ms: int = config.playback.progress_interval_ms

        logger.info(
            f"SignalScheduler 초기화: output={type(output).__name__}, "
            f"progress_interval={self._progress_interval_ms}ms, lead_in={LEAD_IN_SEC}s"
        )

    @property
    def context(self) -> PlaybackContext:
        return self._context

    @property
    def is_playing(self) -> bool:
        return self._context.state is SessionState.PLAYING

    # =========================================================================
    # 공개 메서드
    # =========================================================================

    def start_playback(
        self,
        pixel_data,
        encoder: Optional[SSTVEncoder],
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> PlaybackResult:
        """
        인코더 스케줄로 새 재생 세션을 시작하거나, 재생 중이면 기존 세션을 취소합니다.

        파라미터:
            pixel_data: RGBA 픽셀 버퍼 (인코더가 검증)
            encoder: SSTV 인코더
            on_progress: 진행률(0.0~1.0) 콜백
            on_complete: 정상 완료 시 한 번 호출되는 콜백 (취소 시 호출되지 않음)

        반환값:
            PlaybackResult: started=True이면 duration과 session 포함,
                기존 세션을 취소한 경우 started=False, cancelled_previous=True

        에러:
            EncoderNotSelectedError: encoder가 None일 때 (상태 변경 없음)
        """
        if encoder is None:
            error_message = "SSTV 인코더가 선택되지 않았습니다"
            logger.error(error_message)
            raise EncoderNotSelectedError(error_message)

        if self.is_playing:
            self.cancel()
            logger.info("재생 중 start_playback 호출: 이전 신호 정지")
            return PlaybackResult(started=False, cancelled_previous=True)

        oscillator = Oscillator("sine")
        start_time = self._output.current_time + LEAD_IN_SEC

        encoder.prepare_image(pixel_data)
        end_time = encoder.encode_sstv(oscillator, start_time)

        oscillator.start(start_time)
        oscillator.stop(end_time)

        stream = self._output.open_stream(oscillator)
        session = PlaybackSession(start_time, end_time, encoder.mode_name, stream)
        self._context.begin(session)
        # 스트림이 끝나는 즉시 IDLE로 전환 (완료 태스크가 실행되기 전에도 새 세션 시작 가능)
        stream.add_end_callback(lambda: self._context.release(session))

        reporter = ProgressReporter(
            self._output,
            start_time,
            end_time,
            session.token,
            callback=on_progress,
            interval_ms=self._progress_interval_ms,
        )
        session.reporter = reporter
        session.progress_task = asyncio.create_task(
            reporter.run(), name="sstv_progress_reporter"
        )
        session.completion_task = asyncio.create_task(
            self._await_completion(session, on_progress, on_complete),
            name="sstv_playback_completion",
        )

        logger.info(
            f"재생 시작: mode={encoder.mode_name}, "
            f"start={start_time:.3f}s, end={end_time:.3f}s, duration={session.duration:.3f}s"
        )
        return PlaybackResult(started=True, duration=session.duration, session=session)

    def cancel(self) -> bool:
        """
        활성 세션을 취소합니다 (출력 스트림 정지 및 해제, 진행률 0.0 보고).

        반환값:
            bool: 취소한 세션이 있었으면 True
        """
        session = self._context.session
        if session is None:
            return False

        session.cancel()
        self._context.release(session)
        return True

    async def close(self) -> None:
        """활성 세션을 취소하고 완료 처리를 기다린 뒤 출력 컨텍스트를 닫습니다."""
        session = self._context.session
        self.cancel()
        if session is not None and session.completion_task is not None:
            await session.completion_task
        self._output.close()
        logger.info("SignalScheduler 종료 완료")

    # =========================================================================
    # 내부 처리 메서드
    # =========================================================================

    async def _await_completion(
        self,
        session: PlaybackSession,
        on_progress: Optional[ProgressCallback],
        on_complete: Optional[CompleteCallback],
    ) -> None:
        """
        출력 스트림 종료를 기다린 뒤 세션을 정리합니다.

        처리 순서:
        1. 컨텍스트 해제 확인 (보통 스트림 종료 콜백에서 이미 해제됨)
        2. 진행률 태스크 정리 (취소 시에는 0.0 보고를 마치도록 대기)
        3. 정상 완료이면 진행률 1.0 보고 + on_complete 호출
        4. 세션 결과 Future 완료
        """
        try:
            await session.stream.wait_ended()
            self._context.release(session)

            progress_task = session.progress_task
            if progress_task is not None and not progress_task.done():
                if not session.cancelled:
                    progress_task.cancel()
                # 리포터 태스크의 CancelledError는 여기로 전파되지 않음
                await asyncio.wait([progress_task])
        except asyncio.CancelledError:
            # 완료 태스크 자체가 취소됨 (루프 종료 등): 세션을 취소로 마감하고 전파
            session.cancel()
            self._context.release(session)
            if session.progress_task is not None:
                session.progress_task.cancel()
            session._resolve(SessionOutcome.CANCELLED)
            logger.warning(f"재생 완료 처리 태스크 취소됨: mode={session.mode_name}")
            raise

        if session.cancelled:
            # 리포터가 1.0 도달 후 먼저 끝난 경우에도 취소 보고는 0.0으로 마무리
            if session.reporter is not None:
                session.reporter.report_cancelled()
            session._resolve(SessionOutcome.CANCELLED)
            logger.info(f"재생 세션 종료 (취소됨): mode={session.mode_name}")
            return

        _invoke_callback(on_progress, 1.0)
        _invoke_callback(on_complete)
        session._resolve(SessionOutcome.COMPLETED)
        logger.info(f"재생 세션 종료 (완료): mode={session.mode_name}")


def _invoke_callback(callback, *args) -> None:
    """사용자 콜백을 호출하고, 예외는 로깅 후 격리합니다."""
    if callback is None:
        return
    try:
        callback(*args)
    except Exception as exc:
        logger.error(f"재생 콜백 실행 중 에러: {exc}", exc_info=True)
