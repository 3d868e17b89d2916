"""
ToneSequenceEncoder / CalibrationHeaderEncoder 단위 테스트

검증 항목:
- encode_sstv가 톤 목록대로 set_value_at_time 이벤트를 예약하고 종료 시각 반환
- get_encoded_length가 렌더링 없이 총 길이 반환
- prepare_image RGBA 버퍼 검증
- 교정 헤더/VIS 코드 비트 구성 (LSB 먼저, 짝수 패리티)
"""

from __future__ import annotations

import numpy as np
import pytest

from sstv_audio.audio.oscillator import Oscillator
from sstv_audio.encoder import SSTVEncoder
from sstv_audio.encoder.tone_sequence import (
    FREQ_BREAK,
    FREQ_LEADER,
    FREQ_VIS_BIT_0,
    FREQ_VIS_BIT_1,
    CalibrationHeaderEncoder,
    Tone,
    ToneSequenceEncoder,
)


# =============================================================================
# ToneSequenceEncoder 테스트
# =============================================================================

def test_encode_schedules_each_tone():
    encoder = ToneSequenceEncoder([Tone(1900.0, 0.3), Tone(1200.0, 0.01)], "Two Tones")
    osc = Oscillator()

    end_time = encoder.encode_sstv(osc, 2.0)

    assert end_time == pytest.approx(2.31)
    assert osc.frequency.event_count == 2
    values = osc.frequency.values_at(np.array([2.0, 2.299, 2.3, 2.305]))
    np.testing.assert_array_equal(values, [1900.0, 1900.0, 1200.0, 1200.0])


def test_encoded_length_matches_encode_span():
    encoder = ToneSequenceEncoder([Tone(1500.0, 0.25), Tone(2300.0, 0.5), Tone(1100.0, 0.125)])

    start = 1.0
    end = encoder.encode_sstv(Oscillator(), start)

    assert encoder.get_encoded_length() == pytest.approx(end - start)
    assert encoder.get_encoded_length() == pytest.approx(0.875)


def test_encode_is_deterministic():
    encoder = ToneSequenceEncoder([Tone(1500.0, 0.1), Tone(1900.0, 0.2)])
    first, second = Oscillator(), Oscillator()

    assert encoder.encode_sstv(first, 1.0) == encoder.encode_sstv(second, 1.0)
    times = np.linspace(0.9, 1.4, 50)
    np.testing.assert_array_equal(
        first.frequency.values_at(times), second.frequency.values_at(times)
    )


def test_is_encoder_contract():
    encoder = ToneSequenceEncoder([Tone(1500.0, 0.1)])

    assert isinstance(encoder, SSTVEncoder)
    assert encoder.mode_name == "Tone Sequence"


@pytest.mark.parametrize("tones", [
    [],
    [Tone(1500.0, 0.0)],
    [Tone(-1.0, 0.1)],
])
def test_invalid_tones_raise(tones):
    with pytest.raises(ValueError):
        ToneSequenceEncoder(tones)


def test_prepare_image_accepts_bytes_and_arrays():
    encoder = ToneSequenceEncoder([Tone(1500.0, 0.1)])

    encoder.prepare_image(bytes(16))
    assert encoder.pixel_count == 4

    encoder.prepare_image(np.zeros((2, 3, 4), dtype=np.uint8))
    assert encoder.pixel_count == 6


def test_prepare_image_rejects_partial_pixel():
    encoder = ToneSequenceEncoder([Tone(1500.0, 0.1)])

    with pytest.raises(ValueError):
        encoder.prepare_image(bytes(6))


def test_pixel_count_before_prepare():
    assert ToneSequenceEncoder([Tone(1500.0, 0.1)]).pixel_count == 0


# =============================================================================
# CalibrationHeaderEncoder 테스트
# =============================================================================

def test_calibration_header_without_vis():
    encoder = CalibrationHeaderEncoder()

    assert encoder.mode_name == "Calibration Header"
    assert [t.frequency_hz for t in encoder.tones] == [FREQ_LEADER, FREQ_BREAK, FREQ_LEADER]
    assert encoder.get_encoded_length() == pytest.approx(0.61)


def test_calibration_header_with_vis_bits():
    """VIS 8(Robot 36): 0001000 → LSB 먼저 0,0,0,1,0,0,0 / 패리티 1."""
    encoder = CalibrationHeaderEncoder(vis_code=8)

    vis_tones = encoder.tones[3:]
    assert encoder.mode_name == "Calibration Header VIS 8"
    assert len(vis_tones) == 10
    assert vis_tones[0].frequency_hz == FREQ_BREAK
    assert vis_tones[-1].frequency_hz == FREQ_BREAK

    bit_freqs = [t.frequency_hz for t in vis_tones[1:-1]]
    expected_bits = [0, 0, 0, 1, 0, 0, 0, 1]
    assert bit_freqs == [FREQ_VIS_BIT_1 if b else FREQ_VIS_BIT_0 for b in expected_bits]
    assert encoder.get_encoded_length() == pytest.approx(0.61 + 10 * 0.03)


def test_calibration_header_even_parity_zero():
    encoder = CalibrationHeaderEncoder(vis_code=0b0000011)

    parity_tone = encoder.tones[3 + 8]
    assert parity_tone.frequency_hz == FREQ_VIS_BIT_0


@pytest.mark.parametrize("vis_code", [-1, 128])
def test_calibration_header_rejects_out_of_range_vis(vis_code):
    with pytest.raises(ValueError):
        CalibrationHeaderEncoder(vis_code=vis_code)
