"""
SpeechPostProcessor / synthesize_to_wav 단위 테스트

검증 항목:
- SpeechSynthesizer 프로토콜 구조적 타입 검사
- 합성 → 정규화 → WAV 저장 파이프라인 (결과 ≈ -14 LKFS)
- 합성기 선언 샘플레이트 불일치 시 ValueError
- 무음 발화는 게인 없이 그대로 인코딩
- 기본 저장 경로 (output.output_dir/{name}.wav)
"""

from __future__ import annotations

import io

import numpy as np
import pytest
import soundfile as sf

from speechnorm.audio import SynthesizedAudio
from speechnorm.audio.bs1770 import measure_loudness
from speechnorm.audio.wav_writer import WAV_HEADER_SIZE, samples_to_i16
from speechnorm.config.schema import AppConfig
from speechnorm.synthesis import SpeechSynthesizer
from speechnorm.synthesis.post_processor import SpeechPostProcessor, synthesize_to_wav


# =============================================================================
# 테스트용 합성기
# =============================================================================

class _ToneSynthesizer:
    """글자 수에 비례한 길이의 톤을 생성하는 가짜 합성기입니다."""

    def __init__(self, sample_rate: int = 24000, amplitude: float = 0.05,
                 reported_rate: int | None = None) -> None:
        self._sample_rate = sample_rate
        self._amplitude = amplitude
        self._reported_rate = reported_rate or sample_rate

    @property
    def sample_rate(self) -> int:
        return self._reported_rate

    def synthesize(self, text: str) -> SynthesizedAudio:
        num_samples = int(self._sample_rate * 0.1 * max(len(text), 1))
        t = np.arange(num_samples) / self._sample_rate
        samples = self._amplitude * (
            np.sin(2 * np.pi * 300 * t) + 0.3 * np.sin(2 * np.pi * 1200 * t)
        )
        return SynthesizedAudio(samples=samples.astype(np.float32), sample_rate=self._sample_rate)


class _SilentSynthesizer:
    sample_rate = 16000

    def synthesize(self, text: str) -> SynthesizedAudio:
        return SynthesizedAudio(samples=np.zeros(16000, dtype=np.float32), sample_rate=16000)


def _make_config(output_dir: str = "output/audio", compress: bool = False) -> AppConfig:
    return AppConfig(**{
        "loudness": {"loudness_compressor": compress},
        "output": {"output_dir": output_dir},
    })


# =============================================================================
# 프로토콜 테스트
# =============================================================================

class TestSynthesizerProtocol:
    def test_fake_satisfies_protocol(self):
        assert isinstance(_ToneSynthesizer(), SpeechSynthesizer)
        assert isinstance(_SilentSynthesizer(), SpeechSynthesizer)

    def test_object_without_synthesize_rejected(self):
        class _NotSynth:
            sample_rate = 16000

        assert not isinstance(_NotSynth(), SpeechSynthesizer)


# =============================================================================
# 파이프라인 테스트
# =============================================================================

class TestSynthesizeToWav:
    def test_output_normalized_to_target(self, tmp_path):
        target = tmp_path / "hello.wav"
        saved = synthesize_to_wav(_ToneSynthesizer(), "안녕하세요 여러분", target)

        assert saved == target
        decoded, sample_rate = sf.read(str(target), dtype="float32")
        assert sample_rate == 24000
        # int16 양자화 오차 범위 내에서 목표 라우드니스
        assert measure_loudness(decoded, sample_rate) == pytest.approx(-14.0, abs=0.05)

    def test_uses_given_post_processor(self, tmp_path):
        processor = SpeechPostProcessor(_make_config())
        target = tmp_path / "out.wav"
        synthesize_to_wav(_ToneSynthesizer(), "테스트 문장입니다", target, post_processor=processor)

        decoded, _ = sf.read(str(target), dtype="float32")
        assert measure_loudness(decoded, 24000) == pytest.approx(-14.0, abs=0.05)

    def test_sample_rate_mismatch_rejected(self, tmp_path):
        synthesizer = _ToneSynthesizer(sample_rate=24000, reported_rate=22050)
        with pytest.raises(ValueError):
            synthesize_to_wav(synthesizer, "불일치", tmp_path / "bad.wav")
        assert not (tmp_path / "bad.wav").exists()


class TestSpeechPostProcessor:
    def test_process_reports_gain(self):
        audio = _ToneSynthesizer().synthesize("가나다라마바사아")
        result = SpeechPostProcessor().process(audio)

        assert result.applied is True
        assert result.gain > 1.0
        assert result.sample_rate == audio.sample_rate
        assert len(result.samples) == audio.num_samples

    def test_render_wav_length(self):
        audio = _ToneSynthesizer().synthesize("가나다라마")
        data = SpeechPostProcessor().render_wav(audio)
        assert len(data) == WAV_HEADER_SIZE + 2 * audio.num_samples

    def test_write_to_sink(self):
        audio = _ToneSynthesizer().synthesize("가나다라마")
        sink = io.BytesIO()
        written = SpeechPostProcessor().write(audio, sink)

        assert written == len(sink.getvalue())
        decoded, sample_rate = sf.read(io.BytesIO(sink.getvalue()), dtype="int16")
        assert sample_rate == 24000
        assert len(decoded) == audio.num_samples

    def test_silence_encoded_unchanged(self):
        audio = _SilentSynthesizer().synthesize("...")
        processor = SpeechPostProcessor()

        result = processor.process(audio)
        assert result.applied is False
        assert result.skip_reason == "silence"

        data = processor.render_wav(audio)
        assert data[WAV_HEADER_SIZE:] == bytes(2 * audio.num_samples)

    def test_compressed_output_matches_tanh(self):
        audio = _ToneSynthesizer().synthesize("가나다라마")
        processor = SpeechPostProcessor(_make_config(compress=True))
        result = processor.process(audio)

        assert result.compressed is True
        data = processor.render_wav(audio)
        pcm = np.frombuffer(data[WAV_HEADER_SIZE:], dtype="<i2")
        np.testing.assert_array_equal(pcm, samples_to_i16(result.samples))

    def test_half_precision_waveform_encodes(self):
        audio = _ToneSynthesizer().synthesize("가나다라마")
        half = SynthesizedAudio(samples=audio.samples.astype(np.float16), sample_rate=24000)
        processor = SpeechPostProcessor()

        result = processor.process(half)
        assert result.samples.dtype == np.float16

        data = processor.render_wav(half)
        assert len(data) == WAV_HEADER_SIZE + 2 * half.num_samples
        pcm = np.frombuffer(data[WAV_HEADER_SIZE:], dtype="<i2")
        np.testing.assert_array_equal(pcm, samples_to_i16(result.samples.astype(np.float32)))

    def test_save_default_path(self, tmp_path):
        processor = SpeechPostProcessor(_make_config(output_dir=str(tmp_path / "audio")))
        audio = _ToneSynthesizer().synthesize("가나다")

        saved = processor.save(audio, name="greeting")

        assert saved == tmp_path / "audio" / "greeting.wav"
        assert saved.stat().st_size == WAV_HEADER_SIZE + 2 * audio.num_samples

    def test_result_to_audio(self):
        audio = _ToneSynthesizer().synthesize("가나다")
        result = SpeechPostProcessor().process(audio)
        converted = result.to_audio()

        assert converted.sample_rate == audio.sample_rate
        assert converted.duration_sec == pytest.approx(audio.duration_sec)
