"""
설정 패키지

YAML 설정 로드(ConfigManager)와 Pydantic 스키마(AppConfig)를 제공합니다.
"""

from speechnorm.config.config_manager import (
    ConfigFileNotFoundError,
    ConfigLoadError,
    ConfigManager,
    ConfigValidationError,
)
from speechnorm.config.schema import AppConfig, LoudnessConfig, OutputConfig, SystemConfig

__all__ = [
    "AppConfig",
    "ConfigFileNotFoundError",
    "ConfigLoadError",
    "ConfigManager",
    "ConfigValidationError",
    "LoudnessConfig",
    "OutputConfig",
    "SystemConfig",
]
