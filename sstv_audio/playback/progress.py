"""
재생 진행률 리포터 모듈입니다.

역할:
- 출력 컨텍스트 시계로 (now - start) / (end - start)를 계산하여 0.0~1.0 진행률 보고
- 화면 갱신 주기(progress_interval_ms)마다 이벤트 루프에서 반복 실행
- 보고값은 세션 동안 감소하지 않음
- 취소 토큰이 설정되면 0.0을 마지막으로 보고하고 루프 종료

진행률 1.0의 최종 보고는 SignalScheduler의 완료 처리에서 한 번 더 보장합니다.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sstv_audio.audio.output import AudioOutput
from sstv_audio.playback import ProgressCallback
from sstv_audio.playback.session import CancellationToken

logger = logging.getLogger(__name__)


class ProgressReporter:
    """
    세션 하나의 진행률을 주기적으로 보고하는 리포터입니다.

    루프 흐름:
        취소 확인 → 진행률 계산(클램프 + 단조 증가) → 콜백 호출
            → 1.0 미만이면 다음 주기까지 대기 (취소 시 즉시 깨어남)
    """

    def __init__(
        self,
        output: AudioOutput,
        start_time: float,
        end_time: float,
        token: CancellationToken,
        callback: Optional[ProgressCallback] = None,
        interval_ms: int = 16,
    ) -> None:
        self._output = output
        self._start_time = start_time
        self._end_time = end_time
        self._token = token
        self._callback = callback
        self._interval_sec = interval_ms / 1000.0
        # 마지막으로 보고한 진행률 (단조 증가 보장용)
        self._last_progress: float = 0.0
        self.report_count: int = 0
        self._cancel_reported: bool = False

    @property
    def last_progress(self) -> float:
        return self._last_progress

    def compute_progress(self, now: float) -> float:
        """
        now 시각의 진행률을 0.0~1.0 범위로 계산합니다.

        길이가 0 이하인 신호는 항상 1.0입니다.
        """
        duration = self._end_time - self._start_time
        if duration <= 0:
            return 1.0
        return min(max((now - self._start_time) / duration, 0.0), 1.0)

    async def run(self) -> None:
        """취소되거나 진행률이 1.0에 도달할 때까지 주기적으로 보고합니다."""
        while True:
            if self._token.cancelled:
                self.report_cancelled()
                logger.debug("진행률 리포터: 취소 감지, 0.0 보고 후 종료")
                return

            progress = max(self.compute_progress(self._output.current_time), self._last_progress)
            self._last_progress = progress
            self._emit(progress)

            if progress >= 1.0:
                return

            try:
                await asyncio.wait_for(self._token.wait(), timeout=self._interval_sec)
            except asyncio.TimeoutError:
                pass

    def report_cancelled(self) -> None:
        """취소 보고(0.0)를 한 번만 내보냅니다."""
        if self._cancel_reported:
            return
        self._cancel_reported = True
        self._emit(0.0)

    def _emit(self, progress: float) -> None:
        self.report_count += 1
        if self._callback is None:
            return
        try:
            self._callback(progress)
        except Exception as exc:
            # 콜백 오류가 재생 세션에 영향을 주지 않도록 격리
            logger.error(f"진행률 콜백 실행 중 에러: {exc}", exc_info=True)
