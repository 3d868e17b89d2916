"""
오디오 처리 모듈 패키지

고정 포맷 상수:
- SAMPLE_RATE: 렌더링/내보내기 샘플링레이트 (48000Hz)
- BIT_DEPTH: 내보내기 비트뎁스 (16bit)
- CHANNELS: 채널 수 (1, mono)
- LEAD_IN_SEC: 신호 시작 전 스케줄링 여유 시간 (1초)

하위 모듈:
- oscillator: 주파수 스케줄 기반 사인파 톤 생성기 (Oscillator, AudioParam)
- output: 실시간 출력 장치 (SoundDeviceOutput, NullAudioOutput)
- offline: 비실시간 렌더 컨텍스트 (OfflineRenderContext)
"""

SAMPLE_RATE = 48000
BIT_DEPTH = 16
CHANNELS = 1
LEAD_IN_SEC = 1.0
