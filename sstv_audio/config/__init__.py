"""
설정 모듈 패키지

- schema: Pydantic 설정 스키마(AppConfig)
- config_manager: YAML 로드 및 환경변수 오버라이드(ConfigManager)
"""
