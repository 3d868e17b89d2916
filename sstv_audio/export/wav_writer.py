"""
16비트 mono PCM WAV 직렬화 모듈입니다.

역할:
- float 샘플을 포화(saturating) 방식으로 int16 LE로 양자화
- 데이터 길이만으로 결정되는 44바이트 RIFF/WAVE 헤더 생성
- 내보내기 파일명 생성

헤더 레이아웃 (모든 정수는 little-endian):
    offset  크기  값
    0       4     "RIFF"
    4       4     36 + N
    8       4     "WAVE"
    12      4     "fmt "
    16      4     16 (PCM fmt 청크 크기)
    20      2     1 (PCM)
    22      2     1 (채널 수)
    24      4     48000 (샘플링레이트)
    28      4     96000 (byte rate)
    32      2     2 (block align)
    34      2     16 (bits per sample)
    36      4     "data"
    40      4     N (데이터 바이트 수)
"""

from __future__ import annotations

import re
import struct
from datetime import datetime

import numpy as np

from sstv_audio.audio import BIT_DEPTH, CHANNELS, SAMPLE_RATE

WAV_HEADER_SIZE = 44

_HEADER_FORMAT = "<4sI4s4sIHHIIHH4sI"
_PCM_FORMAT_TAG = 1
_PCM_FMT_CHUNK_SIZE = 16
_INT16_FULL_SCALE = 32767

_BLOCK_ALIGN = CHANNELS * BIT_DEPTH // 8
_BYTE_RATE = SAMPLE_RATE * _BLOCK_ALIGN

_WHITESPACE_PATTERN = re.compile(r"\s+")


def create_wav_header(data_length: int) -> bytes:
    """
    data_length 바이트의 PCM 데이터에 대한 44바이트 WAV 헤더를 생성합니다.

    에러:
        ValueError: data_length가 음수이거나 32비트 범위를 넘을 때
    """
    if data_length < 0 or 36 + data_length > 0xFFFFFFFF:
        raise ValueError(f"WAV 데이터 길이가 범위를 벗어났습니다: {data_length}")

    return struct.pack(
        _HEADER_FORMAT,
        b"RIFF",
        36 + data_length,
        b"WAVE",
        b"fmt ",
        _PCM_FMT_CHUNK_SIZE,
        _PCM_FORMAT_TAG,
        CHANNELS,
        SAMPLE_RATE,
        _BYTE_RATE,
        _BLOCK_ALIGN,
        BIT_DEPTH,
        b"data",
        data_length,
    )


def quantize_to_int16(samples: np.ndarray) -> np.ndarray:
    """
    float 샘플을 round(clip(x, -1, 1) * 32767)로 양자화합니다.

    범위를 벗어난 값은 ±32767로 포화되며 랩어라운드되지 않습니다.

    반환값:
        np.ndarray: little-endian int16 배열
    """
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    return np.round(clipped * _INT16_FULL_SCALE).astype("<i2")


def encode_wav(samples: np.ndarray) -> bytes:
    """float 샘플 버퍼를 헤더가 포함된 WAV 바이트로 직렬화합니다."""
    pcm = quantize_to_int16(samples).tobytes()
    return create_wav_header(len(pcm)) + pcm


def build_filename(mode_name: str, timestamp: datetime) -> str:
    """
    내보내기 파일명을 생성합니다.

    형식: {YYYYMMDD}-{HHMMSS}_SSTV_{공백을 제거한 모드명}.wav
    """
    compact_mode = _WHITESPACE_PATTERN.sub("", mode_name)
    return f"{timestamp:%Y%m%d-%H%M%S}_SSTV_{compact_mode}.wav"
