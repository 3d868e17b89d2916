"""
SignalScheduler 단위 테스트

NullAudioOutput을 20배속으로 실행하여 실제 장치 없이 재생 세션 전체 흐름을 검증합니다.

검증 항목:
- IDLE 상태 시작 → started=True, duration = end_time - start_time
- 재생 중 두 번째 호출 → 기존 세션 취소만 수행 (토글), 출력 스트림 최대 1개
- 정상 완료 시 진행률 단조 증가 + 마지막 보고 1.0 + on_complete 1회
- 취소 시 마지막 보고 0.0, 이후 보고 없음, on_complete 미호출
- 인코더 미선택 시 EncoderNotSelectedError, 상태 변경 없음
"""

from __future__ import annotations

import asyncio

import pytest

from sstv_audio.audio import LEAD_IN_SEC
from sstv_audio.audio.output import STATE_CLOSED, NullAudioOutput
from sstv_audio.config.schema import AppConfig
from sstv_audio.encoder.tone_sequence import CalibrationHeaderEncoder, Tone, ToneSequenceEncoder
from sstv_audio.errors import EncoderNotSelectedError
from sstv_audio.playback import SessionOutcome, SessionState
from sstv_audio.playback.scheduler import SignalScheduler
from sstv_audio.playback.session import PlaybackContext

_SIMULATION_SPEED = 20.0
_PIXELS = bytes(4 * 16)


# =============================================================================
# 테스트 픽스처
# =============================================================================

def _make_config(progress_interval_ms: int = 1) -> AppConfig:
    """null 백엔드 + 짧은 진행률 주기 설정을 생성합니다."""
    return AppConfig(**{
        "playback": {
            "backend": "null",
            "progress_interval_ms": progress_interval_ms,
            "simulation_speed": _SIMULATION_SPEED,
        },
    })


def _make_scheduler(context=None) -> tuple[SignalScheduler, NullAudioOutput]:
    output = NullAudioOutput(simulation_speed=_SIMULATION_SPEED)
    return SignalScheduler(_make_config(), output, context=context), output


def _one_second_encoder() -> ToneSequenceEncoder:
    return ToneSequenceEncoder([Tone(1500.0, 0.5), Tone(2300.0, 0.5)], "One Second")


class _Recorder:
    """진행률/완료 콜백 호출을 기록합니다."""

    def __init__(self) -> None:
        self.progress: list[float] = []
        self.complete_count = 0

    def on_progress(self, value: float) -> None:
        self.progress.append(value)

    def on_complete(self) -> None:
        self.complete_count += 1


# =============================================================================
# 정상 재생 테스트
# =============================================================================

@pytest.mark.asyncio
async def test_idle_start_reports_duration():
    scheduler, output = _make_scheduler()
    before = output.current_time

    result = scheduler.start_playback(_PIXELS, _one_second_encoder())

    assert result
    assert result.started is True
    assert result.cancelled_previous is False
    session = result.session
    assert result.duration == pytest.approx(session.end_time - session.start_time)
    assert result.duration == pytest.approx(1.0)
    assert session.start_time == pytest.approx(before + LEAD_IN_SEC, abs=0.2)
    assert scheduler.context.state is SessionState.PLAYING
    assert output.active_stream_count == 1

    assert await asyncio.wait_for(session.wait(), timeout=2.0) is SessionOutcome.COMPLETED
    await scheduler.close()


@pytest.mark.asyncio
async def test_completion_reports_final_one_and_calls_complete():
    scheduler, output = _make_scheduler()
    recorder = _Recorder()

    result = scheduler.start_playback(
        _PIXELS, _one_second_encoder(),
        on_progress=recorder.on_progress, on_complete=recorder.on_complete,
    )
    outcome = await asyncio.wait_for(result.session.wait(), timeout=2.0)

    assert outcome is SessionOutcome.COMPLETED
    assert recorder.complete_count == 1
    assert recorder.progress[-1] == 1.0
    assert recorder.progress == sorted(recorder.progress)
    assert all(0.0 <= value <= 1.0 for value in recorder.progress)
    assert any(0.0 < value < 1.0 for value in recorder.progress)
    assert scheduler.context.state is SessionState.IDLE
    assert output.active_stream_count == 0
    await scheduler.close()


@pytest.mark.asyncio
async def test_callback_errors_do_not_break_completion():
    scheduler, _ = _make_scheduler()

    def _broken(*args):
        raise RuntimeError("콜백 실패")

    result = scheduler.start_playback(
        _PIXELS, _one_second_encoder(), on_progress=_broken, on_complete=_broken
    )

    assert await asyncio.wait_for(result.session.wait(), timeout=2.0) is SessionOutcome.COMPLETED
    assert scheduler.is_playing is False
    await scheduler.close()


@pytest.mark.asyncio
async def test_new_session_after_completion():
    scheduler, _ = _make_scheduler()

    first = scheduler.start_playback(_PIXELS, _one_second_encoder())
    await asyncio.wait_for(first.session.wait(), timeout=2.0)
    second = scheduler.start_playback(_PIXELS, CalibrationHeaderEncoder())

    assert second.started is True
    assert second.session is not first.session
    assert second.session.mode_name == "Calibration Header"
    await scheduler.close()


# =============================================================================
# 토글 / 취소 테스트
# =============================================================================

@pytest.mark.asyncio
async def test_second_start_cancels_active_session():
    scheduler, output = _make_scheduler()
    recorder = _Recorder()

    first = scheduler.start_playback(
        _PIXELS, _one_second_encoder(),
        on_progress=recorder.on_progress, on_complete=recorder.on_complete,
    )
    await asyncio.sleep(0.01)
    second = scheduler.start_playback(_PIXELS, _one_second_encoder())

    assert second.started is False
    assert second.cancelled_previous is True
    assert second.session is None
    assert not second
    assert output.active_stream_count == 0
    assert scheduler.context.state is SessionState.IDLE

    assert await asyncio.wait_for(first.session.wait(), timeout=2.0) is SessionOutcome.CANCELLED
    assert recorder.complete_count == 0
    assert recorder.progress[-1] == 0.0

    reports_after_cancel = len(recorder.progress)
    await asyncio.sleep(0.05)
    assert len(recorder.progress) == reports_after_cancel
    await scheduler.close()


@pytest.mark.asyncio
async def test_immediate_double_start_keeps_single_stream():
    scheduler, output = _make_scheduler()

    scheduler.start_playback(_PIXELS, _one_second_encoder())
    assert output.active_stream_count == 1
    scheduler.start_playback(_PIXELS, _one_second_encoder())
    assert output.active_stream_count == 0

    third = scheduler.start_playback(_PIXELS, _one_second_encoder())
    assert third.started is True
    assert output.active_stream_count == 1
    await scheduler.close()


@pytest.mark.asyncio
async def test_explicit_cancel():
    scheduler, _ = _make_scheduler()
    recorder = _Recorder()

    assert scheduler.cancel() is False

    result = scheduler.start_playback(
        _PIXELS, _one_second_encoder(),
        on_progress=recorder.on_progress, on_complete=recorder.on_complete,
    )
    assert scheduler.cancel() is True
    outcome = await asyncio.wait_for(result.session.wait(), timeout=2.0)

    assert outcome is SessionOutcome.CANCELLED
    assert result.session.cancelled is True
    assert recorder.progress[-1] == 0.0
    assert recorder.complete_count == 0
    await scheduler.close()


@pytest.mark.asyncio
async def test_close_cancels_and_closes_output():
    scheduler, output = _make_scheduler()
    result = scheduler.start_playback(_PIXELS, _one_second_encoder())

    await scheduler.close()

    assert result.session.done is True
    assert await result.session.wait() is SessionOutcome.CANCELLED
    assert output.state == STATE_CLOSED


# =============================================================================
# 에러 테스트
# =============================================================================

@pytest.mark.asyncio
async def test_missing_encoder_raises_without_state_change():
    scheduler, output = _make_scheduler()

    with pytest.raises(EncoderNotSelectedError):
        scheduler.start_playback(_PIXELS, None)

    assert scheduler.context.state is SessionState.IDLE
    assert output.active_stream_count == 0
    await scheduler.close()


@pytest.mark.asyncio
async def test_missing_encoder_does_not_cancel_active_session():
    scheduler, _ = _make_scheduler()
    result = scheduler.start_playback(_PIXELS, _one_second_encoder())

    with pytest.raises(EncoderNotSelectedError):
        scheduler.start_playback(_PIXELS, None)

    assert scheduler.context.session is result.session
    assert result.session.cancelled is False
    await scheduler.close()


@pytest.mark.asyncio
async def test_injected_context_is_used():
    context = PlaybackContext()
    scheduler, _ = _make_scheduler(context=context)

    result = scheduler.start_playback(_PIXELS, _one_second_encoder())

    assert scheduler.context is context
    assert context.session is result.session
    await scheduler.close()


@pytest.mark.asyncio
async def test_context_rejects_second_begin():
    context = PlaybackContext()
    scheduler, _ = _make_scheduler(context=context)
    result = scheduler.start_playback(_PIXELS, _one_second_encoder())

    with pytest.raises(RuntimeError):
        context.begin(result.session)

    assert context.release(result.session) is True
    assert context.release(result.session) is False
    result.session.cancel()
    assert await asyncio.wait_for(result.session.wait(), timeout=2.0) is SessionOutcome.CANCELLED
    await scheduler.close()


# =============================================================================
# 스트림 종료 직후 / 완료 태스크 취소 테스트
# =============================================================================

@pytest.mark.asyncio
async def test_stream_end_releases_context_immediately():
    """스트림이 끝난 같은 루프 단계에서 호출해도 새 세션이 시작되고 이전 세션은 정상 완료됩니다."""
    scheduler, _ = _make_scheduler()
    recorder = _Recorder()
    first = scheduler.start_playback(
        _PIXELS, ToneSequenceEncoder([Tone(1500.0, 10.0)], "Long Tone"),
        on_progress=recorder.on_progress, on_complete=recorder.on_complete,
    )

    # 예약된 정지 시각 도달과 같은 경로: 세션 토큰은 건드리지 않고 스트림만 종료
    first.session.stream.stop()
    assert scheduler.is_playing is False
    assert scheduler.cancel() is False

    second = scheduler.start_playback(_PIXELS, _one_second_encoder())

    assert second.started is True
    assert second.cancelled_previous is False
    assert await asyncio.wait_for(first.session.wait(), timeout=2.0) is SessionOutcome.COMPLETED
    assert first.session.cancelled is False
    assert recorder.complete_count == 1
    assert recorder.progress[-1] == 1.0
    assert scheduler.context.session is second.session
    await scheduler.close()


@pytest.mark.asyncio
async def test_cancelled_completion_task_resolves_session_and_propagates():
    scheduler, output = _make_scheduler()
    recorder = _Recorder()
    result = scheduler.start_playback(
        _PIXELS, _one_second_encoder(),
        on_progress=recorder.on_progress, on_complete=recorder.on_complete,
    )
    await asyncio.sleep(0.01)

    completion_task = result.session.completion_task
    completion_task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await completion_task

    assert await result.session.wait() is SessionOutcome.CANCELLED
    assert result.session.cancelled is True
    assert recorder.complete_count == 0
    assert scheduler.is_playing is False
    assert output.active_stream_count == 0
    await scheduler.close()
