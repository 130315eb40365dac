"""
오디오 처리 모듈 패키지

공통 데이터 타입:
- SynthesizedAudio: 음성 모델이 생성한 mono float 파형 + 샘플레이트
- NormalizationResult: 라우드니스 정규화 결과 컨테이너
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass
class SynthesizedAudio:
    """
    음성 합성 모델이 생성한 mono 파형 컨테이너입니다.

    SpeechSynthesizer가 생성하고 SpeechPostProcessor가 소비합니다.

    필드:
        samples: 1차원 float 샘플 배열 (-1.0~+1.0 기준, 범위 초과 가능)
        sample_rate: 샘플링레이트 (Hz)
    """
    samples: np.ndarray
    sample_rate: int

    @property
    def num_samples(self) -> int:
        """샘플 수를 반환합니다."""
        return int(len(self.samples))

    @property
    def duration_sec(self) -> float:
        """재생 길이(초)를 반환합니다."""
        if self.sample_rate <= 0:
            return 0.0
        return self.num_samples / self.sample_rate


@dataclass
class NormalizationResult:
    """
    라우드니스 정규화 결과 컨테이너입니다.

    LoudnessNormalizer.normalize()가 생성합니다.

    필드:
        samples: 정규화된 새 파형 (입력과 같은 길이/dtype)
        sample_rate: 샘플링레이트 (Hz, 입력과 동일)
        measured_lkfs: 측정된 통합 라우드니스 (측정 불가 시 None)
        gain: 적용된 선형 게인 (미적용 시 1.0)
        applied: 게인 적용 여부
        compressed: tanh 소프트 리미터 적용 여부
        skip_reason: 미적용 사유 ("silence" | "ungated" | None)
    """
    samples: np.ndarray
    sample_rate: int
    measured_lkfs: Optional[float] = None
    gain: float = 1.0
    applied: bool = False
    compressed: bool = False
    skip_reason: Optional[str] = None

    def to_audio(self) -> SynthesizedAudio:
        """결과 파형을 SynthesizedAudio로 변환합니다."""
        return SynthesizedAudio(samples=self.samples, sample_rate=self.sample_rate)
