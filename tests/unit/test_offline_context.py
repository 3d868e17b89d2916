"""
OfflineRenderContext 단위 테스트

검증 항목:
- 생성 인자 검증 (mono 전용, 양수 길이/샘플레이트)
- 렌더링 결과 길이/자료형/불변성
- 블록 경계를 넘는 긴 렌더링의 위상 연속성
- 두 번째 렌더링 및 렌더링 실패 시 RenderError
"""

from __future__ import annotations

import numpy as np
import pytest

from sstv_audio.audio.offline import OfflineRenderContext
from sstv_audio.errors import RenderError

SAMPLE_RATE = 48000


@pytest.mark.parametrize("channels, length, sample_rate", [
    (2, 48000, SAMPLE_RATE),
    (1, 0, SAMPLE_RATE),
    (1, 48000, 0),
])
def test_invalid_arguments_raise(channels, length, sample_rate):
    with pytest.raises(ValueError):
        OfflineRenderContext(channels, length, sample_rate)


def test_duration():
    ctx = OfflineRenderContext(1, 96000, SAMPLE_RATE)

    assert ctx.duration == 2.0


@pytest.mark.asyncio
async def test_render_without_oscillator_is_silent():
    ctx = OfflineRenderContext(1, 4800, SAMPLE_RATE)

    samples = await ctx.start_rendering()

    assert samples.shape == (4800,)
    assert samples.dtype == np.float32
    assert not samples.any()


@pytest.mark.asyncio
async def test_rendered_buffer_is_read_only():
    ctx = OfflineRenderContext(1, 480, SAMPLE_RATE)
    osc = ctx.create_oscillator()
    osc.start(0.0)

    samples = await ctx.start_rendering()

    with pytest.raises(ValueError):
        samples[0] = 1.0


@pytest.mark.asyncio
async def test_long_render_crosses_block_boundary():
    """10초 블록 경계를 넘어도 사인파가 끊기지 않는지 확인합니다."""
    length = SAMPLE_RATE * 12
    ctx = OfflineRenderContext(1, length, SAMPLE_RATE)
    osc = ctx.create_oscillator()
    osc.frequency.set_value_at_time(1000.0, 0.0)
    osc.start(1.0)

    samples = await ctx.start_rendering()

    assert not samples[:SAMPLE_RATE].any()
    n = np.arange(length - SAMPLE_RATE)
    expected = np.sin(2 * np.pi * 1000.0 * n / SAMPLE_RATE)
    np.testing.assert_allclose(samples[SAMPLE_RATE:], expected, atol=1e-4)


@pytest.mark.asyncio
async def test_second_render_raises():
    ctx = OfflineRenderContext(1, 480, SAMPLE_RATE)
    await ctx.start_rendering()

    with pytest.raises(RenderError):
        await ctx.start_rendering()


@pytest.mark.asyncio
async def test_render_failure_wrapped_in_render_error(monkeypatch):
    ctx = OfflineRenderContext(1, 480, SAMPLE_RATE)
    osc = ctx.create_oscillator()
    osc.start(0.0)

    def _broken_render(*args, **kwargs):
        raise MemoryError("buffer allocation failed")

    monkeypatch.setattr(osc, "render", _broken_render)

    with pytest.raises(RenderError):
        await ctx.start_rendering()
