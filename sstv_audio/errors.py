"""
SSTV 오디오 파이프라인 공통 예외 모듈입니다.

예외 계층:
    SSTVAudioError
      ├─ EncoderNotSelectedError  (인코더 없이 재생/내보내기 요청)
      ├─ EncoderLoadError         (module:attr 경로로 인코더 로드 실패)
      ├─ RenderError              (오프라인 렌더링 실패, 부분 결과물 없음)
      └─ AudioDeviceError         (출력 장치/PortAudio 초기화 실패)
"""


class SSTVAudioError(Exception):
    """SSTV 오디오 파이프라인 에러의 기본 클래스입니다."""
    pass


class EncoderNotSelectedError(SSTVAudioError):
    """인코딩 모드(인코더)가 선택되지 않았을 때 발생하는 에러입니다."""
    pass


class EncoderLoadError(SSTVAudioError):
    """인코더 import 경로를 해석할 수 없을 때 발생하는 에러입니다."""
    pass


class RenderError(SSTVAudioError):
    """오프라인 렌더링 단계가 실패했을 때 발생하는 에러입니다."""
    pass


class AudioDeviceError(SSTVAudioError):
    """실시간 출력 장치를 열 수 없을 때 발생하는 에러입니다."""
    pass
