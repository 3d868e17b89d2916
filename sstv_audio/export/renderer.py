"""
SSTV 신호 오프라인 렌더러 모듈입니다.

역할:
- 인코더 스케줄 전체를 OfflineRenderContext로 실시간 제약 없이 렌더링
- 렌더링 결과를 16비트 mono PCM WAV 바이트로 직렬화
- 내보내기 완료 시각(UTC)으로 파일명을 만들어 ExportArtifact 반환

렌더링 조건 (고정):
    48000Hz, 16bit, 1채널 PCM
    총 길이 = encoder.get_encoded_length() + LEAD_IN_SEC
    신호는 LEAD_IN_SEC 위치에서 시작하며 그 전 구간은 무음

사용 예시:
    >>> renderer = OfflineRenderer()
    >>> artifact = await renderer.render_to_file(pixels, encoder)
    >>> artifact.save("output/wav")
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sstv_audio.audio import CHANNELS, LEAD_IN_SEC, SAMPLE_RATE
from sstv_audio.audio.offline import OfflineRenderContext
from sstv_audio.audio.output import STATE_SUSPENDED, AudioOutput
from sstv_audio.encoder import SSTVEncoder
from sstv_audio.errors import EncoderNotSelectedError
from sstv_audio.export import ExportArtifact
from sstv_audio.export.wav_writer import build_filename, encode_wav

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OfflineRenderer:
    """
    인코더 스케줄을 WAV 결과물로 렌더링하는 클래스입니다.

    실시간 재생(SignalScheduler)과 런타임 상태를 공유하지 않으므로
    재생 중에도 동시에 사용할 수 있습니다.
    """

    def __init__(
        self,
        output: Optional[AudioOutput] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        파라미터:
            output (AudioOutput | None): 일시정지 상태면 렌더링 전에 재개할 실시간 출력
            clock (Callable | None): 파일명 시각 제공 함수 (기본: 현재 UTC 시각)
        """
        self._output = output
        self._clock = clock if clock is not None else _utc_now

    async def render_to_file(
        self,
        pixel_data,
        encoder: Optional[SSTVEncoder],
    ) -> ExportArtifact:
        """
        인코더 스케줄 전체를 렌더링하여 WAV 결과물을 생성합니다.

        파라미터:
            pixel_data: RGBA 픽셀 버퍼 (인코더가 검증)
            encoder: SSTV 인코더

        반환값:
            ExportArtifact: 헤더 + int16 LE 샘플 바이트와 파일명

        에러:
            EncoderNotSelectedError: encoder가 None일 때
            RenderError: 오프라인 렌더링 실패 시 (결과물 없음)
        """
        if encoder is None:
            error_message = "SSTV 인코더가 선택되지 않았습니다"
            logger.error(error_message)
            raise EncoderNotSelectedError(error_message)

        if self._output is not None and self._output.state == STATE_SUSPENDED:
            await self._output.resume()

        duration = encoder.get_encoded_length() + LEAD_IN_SEC
        context = OfflineRenderContext(CHANNELS, round(SAMPLE_RATE * duration), SAMPLE_RATE)

        oscillator = context.create_oscillator()
        encoder.prepare_image(pixel_data)
        encoder.encode_sstv(oscillator, LEAD_IN_SEC)
        # stop은 예약하지 않음: 컨텍스트 끝까지 발진
        oscillator.start(LEAD_IN_SEC)

        logger.info(
            f"오프라인 렌더링 시작: mode={encoder.mode_name}, "
            f"duration={duration:.3f}s, samples={context.length}"
        )
        samples = await context.start_rendering()

        data = encode_wav(samples)
        created_at = self._clock()
        artifact = ExportArtifact(
            filename=build_filename(encoder.mode_name, created_at),
            data=data,
            mode_name=encoder.mode_name,
            duration=duration,
            sample_count=len(samples),
            created_at=created_at,
        )
        logger.info(f"WAV 내보내기 완료: {artifact.filename} ({artifact.size} bytes)")
        return artifact
