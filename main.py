"""
SSTV 오디오 렌더링/내보내기 진입점

역할:
- play: 이미지를 인코더로 스케줄링하여 출력 장치로 실시간 재생 (진행률 표시)
- export: 이미지를 오프라인 렌더링하여 16비트 mono WAV 파일로 저장
- SIGINT/SIGTERM 시그널로 재생 세션 취소

실행 예시:
    실시간 재생:
        python main.py play --image tests/fixtures/test_card.png

    장치 없이 재생 (시뮬레이션 출력):
        python main.py play --image test_card.png --backend null

    WAV 내보내기:
        python main.py export --image test_card.png --output-dir output/wav
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

import numpy as np
from PIL import Image

from sstv_audio.audio.output import create_output
from sstv_audio.config.config_manager import ConfigLoadError, ConfigManager
from sstv_audio.config.schema import AppConfig
from sstv_audio.encoder import load_encoder
from sstv_audio.errors import SSTVAudioError
from sstv_audio.export.renderer import OfflineRenderer
from sstv_audio.logging import setup_logging
from sstv_audio.playback import SessionOutcome
from sstv_audio.playback.scheduler import SignalScheduler

logger = logging.getLogger(__name__)


# =============================================================================
# 서브커맨드
# =============================================================================

async def _run_play(config: AppConfig, pixel_data: np.ndarray, encoder) -> int:
    """실시간 재생을 실행하고 세션이 끝날 때까지 대기합니다."""
    output = create_output(config)
    scheduler = SignalScheduler(config, output)

    def _on_progress(progress: float) -> None:
        sys.stdout.write(f"\r재생 진행률: {progress * 100:5.1f}%")
        sys.stdout.flush()

    def _on_complete() -> None:
        sys.stdout.write("\n")
        logger.info("재생 완료")

    # SIGINT/SIGTERM 핸들러 등록 (asyncio-safe 방식)
    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        logger.info("종료 시그널 수신, 재생 취소")
        scheduler.cancel()

    loop.add_signal_handler(signal.SIGINT, _signal_handler)
    loop.add_signal_handler(signal.SIGTERM, _signal_handler)

    try:
        await output.resume()
        result = scheduler.start_playback(
            pixel_data, encoder, on_progress=_on_progress, on_complete=_on_complete
        )
        logger.info(f"신호 길이: {result.duration:.2f}s (mode={encoder.mode_name})")
        outcome = await result.session.wait()
    finally:
        loop.remove_signal_handler(signal.SIGINT)
        loop.remove_signal_handler(signal.SIGTERM)
        await scheduler.close()

    if outcome is SessionOutcome.CANCELLED:
        sys.stdout.write("\n")
        logger.info("재생이 취소되었습니다")
        return 130
    return 0


async def _run_export(config: AppConfig, pixel_data: np.ndarray, encoder) -> int:
    """오프라인 렌더링 후 WAV 파일을 저장합니다."""
    renderer = OfflineRenderer()
    artifact = await renderer.render_to_file(pixel_data, encoder)
    filepath = artifact.save(config.export.output_dir)
    print(f"WAV 저장: {filepath} ({artifact.duration:.2f}s, {artifact.size} bytes)")
    return 0


# =============================================================================
# 내부 헬퍼
# =============================================================================

def _load_pixel_data(image_path: str) -> np.ndarray:
    """이미지 파일을 RGBA uint8 픽셀 버퍼로 읽습니다."""
    with Image.open(image_path) as image:
        rgba = image.convert("RGBA")
        logger.info(f"이미지 로드: {image_path} ({rgba.width}x{rgba.height})")
        return np.asarray(rgba, dtype=np.uint8).ravel()


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """커맨드라인 인자로 설정을 오버라이드합니다."""
    # Pydantic 모델을 직접 수정하지 않고 dict로 재구성
    config_dict = config.model_dump()
    if args.encoder:
        config_dict["encoder"]["path"] = args.encoder
    if getattr(args, "backend", None):
        config_dict["playback"]["backend"] = args.backend
    if getattr(args, "output_dir", None):
        config_dict["export"]["output_dir"] = args.output_dir
    return AppConfig(**config_dict)


# =============================================================================
# 진입점
# =============================================================================

def _parse_args() -> argparse.Namespace:
    """커맨드라인 인자를 파싱합니다."""
    parser = argparse.ArgumentParser(
        description="SSTV 오디오: 실시간 재생 및 WAV 내보내기"
    )
    parser.add_argument(
        "--config", default="config.yaml", help="설정 파일 경로 (기본: config.yaml)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    play_parser = subparsers.add_parser("play", help="출력 장치로 실시간 재생")
    play_parser.add_argument(
        "--backend", choices=["sounddevice", "null"], help="출력 백엔드 (config.yaml 오버라이드)"
    )

    export_parser = subparsers.add_parser("export", help="WAV 파일로 내보내기")
    export_parser.add_argument("--output-dir", help="저장 디렉토리 (config.yaml 오버라이드)")

    for sub in (play_parser, export_parser):
        sub.add_argument("--image", required=True, help="송출할 이미지 파일 경로")
        sub.add_argument("--encoder", help="인코더 경로 'module:attr' (config.yaml 오버라이드)")

    return parser.parse_args()


async def _main() -> int:
    """비동기 메인 함수입니다."""
    args = _parse_args()

    # 설정 로드 (파일이 없으면 기본값)
    manager = ConfigManager()
    try:
        config = _apply_overrides(manager.load_or_default(args.config), args)
    except ConfigLoadError as exc:
        print(f"설정 로드 실패: {exc}", file=sys.stderr)
        return 2

    setup_logging(config)
    logger.info(f"SSTV 오디오 시작: command={args.command}")

    try:
        encoder = load_encoder(config.encoder.path)
        pixel_data = _load_pixel_data(args.image)

        if args.command == "play":
            return await _run_play(config, pixel_data, encoder)
        return await _run_export(config, pixel_data, encoder)

    except (SSTVAudioError, OSError) as exc:
        logger.error(f"{args.command} 실패: {exc}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(_main()))
