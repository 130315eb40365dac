"""
음성 합성 경계 모듈 패키지

공통 타입:
- SpeechSynthesizer: 텍스트를 SynthesizedAudio로 변환하는 외부 모델 프로토콜

모델 추론, 디바이스 선택, 가중치 다운로드는 이 패키지의 범위가 아니며
SpeechSynthesizer를 구현하는 쪽에서 담당합니다.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from speechnorm.audio import SynthesizedAudio


@runtime_checkable
class SpeechSynthesizer(Protocol):
    """
    음성 합성 모델 프로토콜입니다.

    구현체는 자신의 출력 샘플레이트를 알려주고,
    synthesize()에서 mono float 파형(-1.0~+1.0 기준)을 반환해야 합니다.
    """

    @property
    def sample_rate(self) -> int:
        """출력 샘플링레이트 (Hz)."""
        ...

    def synthesize(self, text: str) -> SynthesizedAudio:
        """텍스트를 음성 파형으로 합성합니다."""
        ...


__all__ = ["SpeechSynthesizer"]
