"""
SSTV 오디오 렌더링/내보내기 패키지

구성:
- playback: 실시간 재생 스케줄러(SignalScheduler)와 진행률 리포터(ProgressReporter)
- export: 오프라인 렌더링 및 WAV 직렬화(OfflineRenderer)
- audio: 톤 생성기(Oscillator), 출력 장치, 오프라인 렌더 컨텍스트
- encoder: SSTV 인코더 계약(SSTVEncoder) 및 기본 인코더
"""

__version__ = "0.1.0"
