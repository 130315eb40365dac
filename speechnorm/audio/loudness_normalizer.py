"""
합성 음성 라우드니스 정규화 모듈입니다.

역할:
- 전체 RMS가 무음 하한 미만이면 측정 없이 원본 유지
- BS.1770 통합 라우드니스 측정 (speechnorm.audio.bs1770)
- 목표 라우드니스(-14 LKFS)까지의 선형 게인 계산 및 적용
- 선택적 tanh 소프트 리미팅

사용 예시:
    >>> normalizer = LoudnessNormalizer(config)
    >>> result = normalizer.normalize(wav, 24000)
    >>> result.gain, result.measured_lkfs
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from pydantic import ValidationError

from speechnorm.audio import NormalizationResult
from speechnorm.audio.bs1770 import (
    DEFAULT_ABSOLUTE_GATE_LKFS,
    DEFAULT_BLOCK_WINDOWS,
    DEFAULT_RELATIVE_GATE_DB,
    measure_loudness,
)
from speechnorm.config.schema import AppConfig, LoudnessConfig

logger = logging.getLogger(__name__)

# 목표 통합 라우드니스 (LKFS)
TARGET_LOUDNESS_LKFS = -14.0

# 이 RMS 미만(-1~+1 스케일)은 무음으로 보고 게인을 적용하지 않음
SILENCE_RMS_FLOOR = 2e-3


class LoudnessProcessingError(ValueError):
    """파형이 올바르지 않아 라우드니스 처리를 할 수 없을 때 발생하는 에러입니다."""
    pass


def normalize_loudness(
    wav: np.ndarray,
    sample_rate: int,
    loudness_compressor: bool = False,
    *,
    target_lkfs: float = TARGET_LOUDNESS_LKFS,
    silence_rms_floor: float = SILENCE_RMS_FLOOR,
    k_weighting: bool = True,
    block_windows: int = DEFAULT_BLOCK_WINDOWS,
) -> np.ndarray:
    """
    파형을 목표 라우드니스로 정규화한 새 배열을 반환합니다.

    측정이 불가능하면(무음 또는 게이트 통과 블록 없음) 입력 복사본을 그대로 반환합니다.

    에러:
        LoudnessProcessingError: 1차원 유한 실수 배열이 아니거나 파라미터가 허용 범위를 벗어난 경우
    """
    try:
        config = LoudnessConfig(
            target_lkfs=target_lkfs,
            silence_rms_floor=silence_rms_floor,
            loudness_compressor=loudness_compressor,
            k_weighting=k_weighting,
            gating_block_windows=block_windows,
        )
    except ValidationError as exc:
        raise LoudnessProcessingError(f"라우드니스 파라미터가 올바르지 않습니다: {exc}") from exc
    return LoudnessNormalizer(AppConfig(loudness=config)).normalize(wav, sample_rate).samples


class LoudnessNormalizer:
    """
    AppConfig.loudness 설정에 따라 파형의 라우드니스를 정규화하는 클래스입니다.

    호출 간 공유 상태가 없으므로 여러 파형을 독립적으로 처리할 수 있습니다.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        self._config = config or AppConfig()
        self._loudness_cfg = self._config.loudness

    @property
    def loudness_config(self) -> LoudnessConfig:
        return self._loudness_cfg

    def measure(self, wav: np.ndarray, sample_rate: int) -> Optional[float]:
        """
        통합 라우드니스(LKFS)를 측정합니다. 게이트 통과 블록이 없으면 None.

        무음 하한 검사는 하지 않습니다.
        """
        samples = _validate_waveform(wav)
        _validate_sample_rate(sample_rate)
        return self._measure(samples, sample_rate)

    def normalize(self, wav: np.ndarray, sample_rate: int) -> NormalizationResult:
        """
        파형을 목표 라우드니스로 정규화합니다.

        처리 단계:
        1. 입력 검증 (1차원, 유한 실수)
        2. 전체 RMS < silence_rms_floor 이면 원본 유지
        3. BS.1770 통합 라우드니스 측정, None이면 원본 유지
        4. gain = 10^((target - measured) / 20) 적용
        5. loudness_compressor 설정 시 tanh 적용

        반환값:
            NormalizationResult: 새 파형 + 측정/게인 정보

        에러:
            LoudnessProcessingError: 파형이 올바르지 않은 경우
        """
        cfg = self._loudness_cfg
        samples = _validate_waveform(wav)
        _validate_sample_rate(sample_rate)

        # 1. 무음 판정
        energy = _rms(samples)
        if energy < cfg.silence_rms_floor:
            logger.debug(f"RMS {energy:.2e} < {cfg.silence_rms_floor:.2e}, 정규화 생략")
            return NormalizationResult(
                samples=samples.copy(),
                sample_rate=sample_rate,
                skip_reason="silence",
            )

        # 2. 통합 라우드니스 측정
        measured = self._measure(samples, sample_rate)
        if measured is None:
            logger.debug("게이트 통과 블록 없음, 정규화 생략")
            return NormalizationResult(
                samples=samples.copy(),
                sample_rate=sample_rate,
                skip_reason="ungated",
            )

        # 3. 게인 적용
        gain = 10.0 ** ((cfg.target_lkfs - measured) / 20.0)
        gained = samples * samples.dtype.type(gain)

        # 4. 소프트 리미팅
        if cfg.loudness_compressor:
            gained = np.tanh(gained)

        logger.debug(
            f"라우드니스 정규화: measured={measured:.2f}LKFS, "
            f"target={cfg.target_lkfs:.2f}LKFS, gain={gain:.4f}, "
            f"compressor={cfg.loudness_compressor}"
        )

        return NormalizationResult(
            samples=gained.astype(samples.dtype, copy=False),
            sample_rate=sample_rate,
            measured_lkfs=measured,
            gain=gain,
            applied=True,
            compressed=cfg.loudness_compressor,
        )

    def _measure(self, samples: np.ndarray, sample_rate: int) -> Optional[float]:
        cfg = self._loudness_cfg
        try:
            return measure_loudness(
                samples,
                sample_rate,
                k_weighting=cfg.k_weighting,
                block_windows=cfg.gating_block_windows,
                absolute_gate_lkfs=cfg.absolute_gate_lkfs,
                relative_gate_db=cfg.relative_gate_db,
            )
        except ValueError as exc:
            raise LoudnessProcessingError(f"라우드니스 측정 실패: {exc}") from exc


# =============================================================================
# 모듈 레벨 헬퍼 함수
# =============================================================================

def _validate_waveform(wav: np.ndarray) -> np.ndarray:
    """
    파형을 1차원 float 배열로 검증합니다.

    float 배열은 dtype을 유지하고, 그 외 숫자 배열은 float32로 변환합니다.
    """
    try:
        samples = np.asarray(wav)
    except (TypeError, ValueError) as exc:
        raise LoudnessProcessingError(f"파형을 배열로 변환할 수 없습니다: {exc}") from exc

    if samples.ndim != 1:
        raise LoudnessProcessingError(f"mono 1차원 파형만 지원합니다: shape={samples.shape}")
    if not np.issubdtype(samples.dtype, np.floating):
        if not np.issubdtype(samples.dtype, np.number) or np.issubdtype(samples.dtype, np.complexfloating):
            raise LoudnessProcessingError(f"실수 파형만 지원합니다: dtype={samples.dtype}")
        samples = samples.astype(np.float32)
    if not np.all(np.isfinite(samples)):
        raise LoudnessProcessingError("파형에 NaN 또는 Inf 샘플이 포함되어 있습니다")
    return samples


def _validate_sample_rate(sample_rate: int) -> None:
    if sample_rate <= 0:
        raise LoudnessProcessingError(f"sample_rate는 양수여야 합니다: {sample_rate}")


def _rms(samples: np.ndarray) -> float:
    """파형 전체 RMS를 계산합니다. 빈 파형은 0.0."""
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))
