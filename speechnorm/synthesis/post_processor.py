"""
합성 음성 후처리 파이프라인 모듈입니다.

역할:
- 모델 출력 파형 → 라우드니스 정규화 → 16bit PCM WAV 인코딩을 한 번에 수행
- 발화 단위 처리 결과(라우드니스, 게인, 처리시간)를 로그로 기록

파이프라인:
    SpeechSynthesizer.synthesize(text)
        → SynthesizedAudio (float, sample_rate)
        → LoudnessNormalizer.normalize()   (BS.1770 측정 + 게인 + tanh)
        → write_pcm_as_wav()                (RIFF/WAVE 16bit mono)
        → 바이트 싱크 / 파일

사용 예시:
    >>> processor = SpeechPostProcessor(config)
    >>> wav_bytes = processor.render_wav(audio)
    >>> processor.save(audio, "output/audio/hello.wav")
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import BinaryIO, Optional, Union

from speechnorm.audio import NormalizationResult, SynthesizedAudio
from speechnorm.audio.loudness_normalizer import LoudnessNormalizer
from speechnorm.audio.wav_writer import encode_wav, save_wav, write_pcm_as_wav
from speechnorm.config.schema import AppConfig
from speechnorm.synthesis import SpeechSynthesizer

logger = logging.getLogger(__name__)


class SpeechPostProcessor:
    """
    합성된 발화 하나를 정규화하고 WAV로 인코딩하는 클래스입니다.

    호출 간 공유 상태가 없으므로 발화별로 독립적으로 사용할 수 있습니다.
    단, 같은 싱크에 여러 write()를 동시에 호출해서는 안 됩니다.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        self._config = config or AppConfig()
        self._normalizer = LoudnessNormalizer(self._config)

    @property
    def normalizer(self) -> LoudnessNormalizer:
        return self._normalizer

    def process(self, audio: SynthesizedAudio) -> NormalizationResult:
        """
        파형의 라우드니스를 정규화합니다.

        에러:
            LoudnessProcessingError: 파형이 올바르지 않은 경우
        """
        start_ns = time.time_ns()
        result = self._normalizer.normalize(audio.samples, audio.sample_rate)
        elapsed_ms = (time.time_ns() - start_ns) / 1_000_000

        if result.applied:
            logger.info(
                f"발화 정규화 완료: duration={audio.duration_sec:.2f}s, "
                f"loudness={result.measured_lkfs:.2f}LKFS, gain={result.gain:.3f}, "
                f"compressed={result.compressed}, elapsed={elapsed_ms:.1f}ms"
            )
        else:
            logger.info(
                f"발화 정규화 생략: duration={audio.duration_sec:.2f}s, "
                f"reason={result.skip_reason}, elapsed={elapsed_ms:.1f}ms"
            )
        return result

    def write(self, audio: SynthesizedAudio, sink: BinaryIO) -> int:
        """
        정규화된 발화를 WAV로 싱크에 기록합니다.

        반환값:
            int: 기록한 바이트 수

        에러:
            LoudnessProcessingError: 파형이 올바르지 않은 경우
            WavWriteError: 싱크 기록 실패
        """
        result = self.process(audio)
        return write_pcm_as_wav(sink, result.samples, result.sample_rate)

    def render_wav(self, audio: SynthesizedAudio) -> bytes:
        """정규화된 발화를 WAV 바이트열로 반환합니다."""
        result = self.process(audio)
        return encode_wav(result.samples, result.sample_rate)

    def save(
        self,
        audio: SynthesizedAudio,
        filepath: Union[str, Path, None] = None,
        name: str = "utterance",
    ) -> Path:
        """
        정규화된 발화를 WAV 파일로 저장합니다.

        파라미터:
            audio: 합성된 발화
            filepath: 저장 경로. None이면 output.output_dir/{name}.wav
            name: filepath가 None일 때 사용할 파일 이름

        반환값:
            Path: 저장된 파일 경로
        """
        if filepath is None:
            filepath = Path(self._config.output.output_dir) / f"{name}.wav"
        result = self.process(audio)
        saved = save_wav(filepath, result.samples, result.sample_rate)
        logger.info(f"WAV 저장 완료: {saved} ({len(result.samples)} samples, {result.sample_rate}Hz)")
        return saved


def synthesize_to_wav(
    synthesizer: SpeechSynthesizer,
    text: str,
    filepath: Union[str, Path],
    post_processor: Optional[SpeechPostProcessor] = None,
) -> Path:
    """
    텍스트를 합성하고 정규화된 WAV 파일로 저장합니다.

    합성 결과의 샘플레이트가 합성기 선언값과 다르면 ValueError를 발생시킵니다.
    """
    processor = post_processor or SpeechPostProcessor()
    audio = synthesizer.synthesize(text)
    if audio.sample_rate != synthesizer.sample_rate:
        raise ValueError(
            f"합성 결과 샘플레이트({audio.sample_rate}Hz)가 "
            f"합성기 선언값({synthesizer.sample_rate}Hz)과 다릅니다"
        )
    logger.debug(f"합성 완료: chars={len(text)}, samples={audio.num_samples}")
    return processor.save(audio, filepath)
