"""
구조화 로깅 패키지
"""

from sstv_audio.logging.structured_logger import get_session_id, setup_logging

__all__ = ["get_session_id", "setup_logging"]
