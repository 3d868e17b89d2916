"""
main.py 진입점 단위 테스트

검증 항목:
- Pillow 이미지 → RGBA 바이트 버퍼 변환
- 커맨드라인 오버라이드 반영
- export 서브커맨드 흐름 (null 백엔드 / 실제 장치 없이)
- play 서브커맨드 흐름 (null 백엔드 고배속)
"""

from __future__ import annotations

import argparse

import numpy as np
import pytest
from PIL import Image

import main
from sstv_audio.config.schema import AppConfig
from sstv_audio.encoder.tone_sequence import Tone, ToneSequenceEncoder


def _write_image(tmp_path, size=(8, 4)):
    image_path = tmp_path / "card.png"
    Image.new("RGB", size, color=(255, 0, 0)).save(image_path)
    return image_path


def test_load_pixel_data_returns_rgba_bytes(tmp_path):
    pixels = main._load_pixel_data(str(_write_image(tmp_path)))

    assert pixels.dtype == np.uint8
    assert pixels.shape == (8 * 4 * 4,)
    np.testing.assert_array_equal(pixels[:4], [255, 0, 0, 255])


def test_apply_overrides():
    args = argparse.Namespace(encoder="pkg.mod:Enc", backend="null", output_dir="out/x")

    config = main._apply_overrides(AppConfig(), args)

    assert config.encoder.path == "pkg.mod:Enc"
    assert config.playback.backend == "null"
    assert config.export.output_dir == "out/x"


def test_apply_overrides_keeps_config_when_absent():
    args = argparse.Namespace(encoder=None)

    config = main._apply_overrides(AppConfig(), args)

    assert config == AppConfig()


@pytest.mark.asyncio
async def test_run_export_writes_wav(tmp_path):
    config = AppConfig(**{"export": {"output_dir": str(tmp_path / "exports")}})
    encoder = ToneSequenceEncoder([Tone(1500.0, 0.05)], "Cli Export")

    exit_code = await main._run_export(config, np.zeros(16, dtype=np.uint8), encoder)

    assert exit_code == 0
    saved = list((tmp_path / "exports").glob("*_SSTV_CliExport.wav"))
    assert len(saved) == 1
    assert saved[0].read_bytes()[:4] == b"RIFF"


@pytest.mark.asyncio
async def test_run_play_with_null_backend():
    config = AppConfig(**{
        "playback": {"backend": "null", "simulation_speed": 50.0, "progress_interval_ms": 1},
    })
    encoder = ToneSequenceEncoder([Tone(1500.0, 0.5)], "Cli Play")

    exit_code = await main._run_play(config, np.zeros(16, dtype=np.uint8), encoder)

    assert exit_code == 0
