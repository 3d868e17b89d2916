"""
실시간 재생 모듈 패키지

공통 데이터 타입:
- SessionState: 재생 컨텍스트 상태 (IDLE | PLAYING)
- SessionOutcome: 세션 종료 결과 (COMPLETED | CANCELLED)
- PlaybackResult: start_playback 호출 결과
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from sstv_audio.playback.session import PlaybackSession

# 진행률 콜백: 0.0~1.0 진행률을 인자로 받음
ProgressCallback = Callable[[float], None]
# 완료 콜백: 인자 없음
CompleteCallback = Callable[[], None]


class SessionState(enum.Enum):
    """재생 컨텍스트의 상태입니다."""
    IDLE = "idle"
    PLAYING = "playing"


class SessionOutcome(enum.Enum):
    """재생 세션이 끝난 방식입니다."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class PlaybackResult:
    """
    start_playback 호출 결과입니다.

    필드:
        started: 새 세션이 시작되었으면 True
        duration: 신호 길이 (초, end_time - start_time). 시작하지 않았으면 0.0
        cancelled_previous: 이 호출이 기존 세션을 취소했으면 True
        session: 시작된 세션 핸들 (시작하지 않았으면 None)
    """
    started: bool
    duration: float = 0.0
    cancelled_previous: bool = False
    session: Optional["PlaybackSession"] = None

    def __bool__(self) -> bool:
        return self.started
