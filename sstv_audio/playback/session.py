"""
재생 세션 상태 모듈입니다.

역할:
- CancellationToken: 진행률 태스크와 완료 태스크가 함께 소비하는 취소 토큰
- PlaybackSession: 실시간 재생 1회에 묶인 상태 (시작/종료 시각, 출력 스트림, 결과 Future)
- PlaybackContext: 활성 세션 핸들을 소유하는 명시적 상태 (IDLE | PLAYING)

PlaybackContext는 SignalScheduler에 주입되며, 한 컨텍스트에는 세션이 최대 1개만
존재합니다.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from sstv_audio.audio.output import OutputStreamHandle
from sstv_audio.playback import SessionOutcome, SessionState

if TYPE_CHECKING:
    from sstv_audio.playback.progress import ProgressReporter

logger = logging.getLogger(__name__)


class CancellationToken:
    """asyncio.Event 기반 취소 토큰입니다. 한 번 취소되면 되돌릴 수 없습니다."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        """취소될 때까지 대기합니다."""
        await self._event.wait()


class PlaybackSession:
    """
    실시간 재생 1회의 상태를 담는 세션 핸들입니다.

    필드:
        start_time: 신호 시작 시각 (출력 컨텍스트 시계 기준, 초)
        end_time: 신호 종료 시각 (초)
        mode_name: 인코더 모드 이름
        token: 취소 토큰
        stream: 세션이 소유한 출력 스트림
    """

    def __init__(
        self,
        start_time: float,
        end_time: float,
        mode_name: str,
        stream: OutputStreamHandle,
    ) -> None:
        self.start_time = start_time
        self.end_time = end_time
        self.mode_name = mode_name
        self.stream = stream
        self.token = CancellationToken()
        self.reporter: Optional["ProgressReporter"] = None
        self.progress_task: Optional[asyncio.Task] = None
        self.completion_task: Optional[asyncio.Task] = None
        self._outcome: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def done(self) -> bool:
        return self._outcome.done()

    async def wait(self) -> SessionOutcome:
        """세션이 끝날 때까지 대기하고 종료 결과를 반환합니다."""
        return await asyncio.shield(self._outcome)

    def cancel(self) -> None:
        """취소 토큰을 설정하고 출력 스트림을 즉시 정지합니다."""
        if self.token.cancelled:
            return
        self.token.cancel()
        self.stream.stop()
        logger.info(f"재생 세션 취소: mode={self.mode_name}")

    def _resolve(self, outcome: SessionOutcome) -> None:
        if not self._outcome.done():
            self._outcome.set_result(outcome)


class PlaybackContext:
    """
    활성 재생 세션을 소유하는 컨텍스트입니다.

    상태 전이:
        IDLE --begin(session)--> PLAYING
        PLAYING --release(session)--> IDLE
    """

    def __init__(self) -> None:
        self._session: Optional[PlaybackSession] = None

    @property
    def state(self) -> SessionState:
        return SessionState.IDLE if self._session is None else SessionState.PLAYING

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    def begin(self, session: PlaybackSession) -> None:
        """
        IDLE 상태에서 세션을 활성화합니다.

        에러:
            RuntimeError: 이미 활성 세션이 있을 때
        """
        if self._session is not None:
            raise RuntimeError("이미 활성 재생 세션이 있습니다")
        self._session = session

    def release(self, session: PlaybackSession) -> bool:
        """
        session이 현재 활성 세션이면 해제하고 IDLE로 전환합니다.

        반환값:
            bool: 실제로 해제했으면 True (이미 다른 세션으로 교체된 경우 False)
        """
        if self._session is not session:
            return False
        self._session = None
        return True
