"""
speechnorm 설정 스키마 정의 모듈입니다.

역할:
- Pydantic v2 BaseModel 기반으로 config.yaml의 전체 구조를 타입 안전하게 정의
- 각 섹션(system, loudness, output)을 독립적인 중첩 모델로 분리
- 필드별 기본값, 허용 범위, 유효성 검증(validator)을 포함

사용 예시:
    >>> from speechnorm.config.schema import AppConfig
    >>> config = AppConfig(**yaml_data)
    >>> print(config.loudness.target_lkfs)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

# 모듈 로거 설정
logger = logging.getLogger(__name__)


# =============================================================================
# system 섹션: 시스템 전역 설정
# =============================================================================

class SystemConfig(BaseModel):
    """
    시스템 전역 설정을 정의하는 모델입니다.

    역할:
    - 로깅 레벨 및 포맷 지정
    - 세션 식별자 관리
    """
    # 로그 출력 레벨
    log_level: str = Field(default="INFO", description="로그 레벨 (DEBUG | INFO | WARNING | ERROR)")
    # 로그 출력 포맷
    log_format: str = Field(default="json", description="로그 포맷 (json | text)")
    # 순환 로그 파일(log_dir/speechnorm.log) 기록 여부
    log_to_file: bool = Field(default=False, description="로그 파일 기록 여부")
    # 로그 파일 저장 디렉토리 경로
    log_dir: str = Field(default="output/logs", description="로그 저장 디렉토리")
    # 세션 고유 식별자 (빈 문자열이면 UUID로 자동 생성)
    session_id: str = Field(default="", description="세션 ID (비어있으면 UUID 자동생성)")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """로그 레벨이 유효한 Python 로깅 레벨인지 검증합니다."""
        allowed_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        # 대소문자 구분 없이 비교 후 대문자로 정규화
        upper_value = value.upper()
        if upper_value not in allowed_levels:
            error_message = f"log_level은 {allowed_levels} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return upper_value

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        """로그 포맷이 지원되는 형식인지 검증합니다."""
        allowed_formats = ("json", "text")
        if value not in allowed_formats:
            error_message = f"log_format은 {allowed_formats} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value


# =============================================================================
# loudness 섹션: 라우드니스 측정 및 정규화 설정
# =============================================================================

class LoudnessConfig(BaseModel):
    """
    합성 음성의 라우드니스 측정(BS.1770) 및 정규화 설정입니다.

    역할:
    - 목표 라우드니스(LKFS) 지정
    - 무음 판정 RMS 하한값 지정
    - tanh 소프트 리미터(compressor) 활성화
    - K-weighting 필터 및 게이팅 파라미터 설정
    """
    # 목표 통합 라우드니스 (LKFS)
    target_lkfs: float = Field(default=-14.0, description="목표 라우드니스 (LKFS)")
    # 이 값보다 RMS가 낮으면 측정 없이 원본 유지
    silence_rms_floor: float = Field(default=2e-3, description="무음 판정 RMS 하한 (0.0~1.0)")
    # 게인 적용 후 tanh 소프트 리미팅 여부
    loudness_compressor: bool = Field(default=False, description="tanh 소프트 리미터 사용 여부")
    # K-weighting 프리필터 적용 여부 (False면 단순 mean-square)
    k_weighting: bool = Field(default=True, description="K-weighting 필터 사용 여부")
    # 게이팅 블록을 구성하는 100ms 윈도우 개수 (4 = 400ms 블록)
    gating_block_windows: int = Field(default=4, description="게이팅 블록당 100ms 윈도우 수")
    # 절대 게이트 (LKFS)
    absolute_gate_lkfs: float = Field(default=-70.0, description="절대 게이트 (LKFS)")
    # 상대 게이트 (dB, 1차 게이트 평균 기준)
    relative_gate_db: float = Field(default=-10.0, description="상대 게이트 (dB)")

    @field_validator("target_lkfs")
    @classmethod
    def validate_target_lkfs(cls, value: float) -> float:
        """
        목표 라우드니스가 의미 있는 범위(-70 ~ 0 LKFS) 내인지 검증합니다.
        """
        min_lkfs = -70.0
        max_lkfs = 0.0
        if not min_lkfs <= value <= max_lkfs:
            error_message = (
                f"target_lkfs는 {min_lkfs}~{max_lkfs} 범위여야 합니다. "
                f"입력값: {value}"
            )
            raise ValueError(error_message)
        return value

    @field_validator("silence_rms_floor")
    @classmethod
    def validate_silence_rms_floor(cls, value: float) -> float:
        """무음 하한값이 0.0~1.0 범위인지 검증합니다."""
        if not 0.0 <= value <= 1.0:
            error_message = f"silence_rms_floor는 0.0~1.0 범위여야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value

    @field_validator("gating_block_windows")
    @classmethod
    def validate_gating_block_windows(cls, value: int) -> int:
        """게이팅 블록 윈도우 수가 1 이상인지 검증합니다."""
        if value < 1:
            error_message = f"gating_block_windows는 1 이상이어야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value

    @field_validator("relative_gate_db")
    @classmethod
    def validate_relative_gate_db(cls, value: float) -> float:
        """상대 게이트는 0 이하(평균보다 낮은 쪽)여야 합니다."""
        if value > 0.0:
            error_message = f"relative_gate_db는 0 이하여야 합니다. 입력값: {value}"
            raise ValueError(error_message)
        return value


# =============================================================================
# output 섹션: 결과 파일 저장 설정
# =============================================================================

class OutputConfig(BaseModel):
    """
    정규화된 음성 파일 저장 설정입니다.
    """
    # WAV 파일 출력 디렉토리
    output_dir: str = Field(default="output/audio", description="WAV 출력 디렉토리")


# =============================================================================
# 최상위 AppConfig: 모든 섹션을 통합하는 루트 모델
# =============================================================================

class AppConfig(BaseModel):
    """
    애플리케이션 전체 설정을 통합하는 최상위 모델입니다.

    역할:
    - config.yaml의 모든 섹션을 하나의 타입 안전한 객체로 통합
    - Pydantic v2 유효성 검증을 통해 설정 무결성 보장
    - 각 섹션이 누락된 경우 기본값으로 자동 생성

    사용 예시:
        >>> import yaml
        >>> with open("config.yaml") as f:
        ...     raw = yaml.safe_load(f)
        >>> config = AppConfig(**raw)
        >>> print(config.loudness.target_lkfs)
        -14.0
    """
    # 시스템 전역 설정
    system: SystemConfig = Field(default_factory=SystemConfig, description="시스템 설정")
    # 라우드니스 측정/정규화 설정
    loudness: LoudnessConfig = Field(default_factory=LoudnessConfig, description="라우드니스 설정")
    # 출력 파일 설정
    output: OutputConfig = Field(default_factory=OutputConfig, description="출력 설정")
