"""
speechnorm 커맨드라인 진입점

역할:
- WAV 파일을 읽어 BS.1770 통합 라우드니스를 측정
- 목표 라우드니스(-14 LKFS 기본)로 정규화 후 16bit mono PCM WAV로 저장
- 설정 파일(config.yaml) + 커맨드라인 오버라이드

실행 예시:
    정규화:
        python main.py input.wav output.wav

    tanh 소프트 리미터 사용, 목표 -16 LKFS:
        python main.py input.wav output.wav --compress --target-lkfs -16

    측정만:
        python main.py input.wav --measure-only

    로그를 output/logs/speechnorm.log 에도 기록:
        python main.py input.wav output.wav --log-file
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import soundfile as sf

from speechnorm.audio import SynthesizedAudio
from speechnorm.audio.loudness_normalizer import LoudnessProcessingError
from speechnorm.audio.wav_writer import WavWriteError
from speechnorm.config.config_manager import ConfigLoadError, ConfigManager
from speechnorm.config.schema import AppConfig
from speechnorm.logging import setup_logging
from speechnorm.synthesis.post_processor import SpeechPostProcessor

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = "config.yaml"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """커맨드라인 인자를 파싱합니다."""
    parser = argparse.ArgumentParser(
        description="speechnorm: 합성 음성 라우드니스 정규화 및 WAV 인코딩"
    )
    parser.add_argument("input", help="입력 WAV 파일 경로 (mono)")
    parser.add_argument("output", nargs="?", help="출력 WAV 파일 경로")
    parser.add_argument(
        "--config", default=None,
        help=f"설정 파일 경로 (기본: {_DEFAULT_CONFIG_PATH}, 없으면 기본값 사용)",
    )
    parser.add_argument(
        "--target-lkfs", type=float, default=None, help="목표 라우드니스 (config 오버라이드)"
    )
    parser.add_argument(
        "--compress", action="store_true", help="tanh 소프트 리미터 사용"
    )
    parser.add_argument(
        "--measure-only", action="store_true", help="라우드니스만 측정하고 저장하지 않음"
    )
    parser.add_argument(
        "--log-file", action="store_true",
        help="system.log_dir/speechnorm.log 에도 로그 기록 (config 오버라이드)",
    )
    args = parser.parse_args(argv)
    if not args.measure_only and not args.output:
        parser.error("output 경로가 필요합니다 (--measure-only 제외)")
    return args


def _load_config(args: argparse.Namespace) -> AppConfig:
    """설정 파일을 로드하고 커맨드라인 오버라이드를 적용합니다."""
    manager = ConfigManager()
    if args.config:
        config = manager.load(args.config)
    elif Path(_DEFAULT_CONFIG_PATH).exists():
        config = manager.load(_DEFAULT_CONFIG_PATH)
    else:
        config = manager.load_defaults()

    # 설정 dict를 재구성 (오버라이드 값도 스키마 검증을 거치도록 재생성)
    config_dict = config.model_dump()
    if args.target_lkfs is not None:
        config_dict["loudness"]["target_lkfs"] = args.target_lkfs
    if args.compress:
        config_dict["loudness"]["loudness_compressor"] = True
    if args.log_file:
        config_dict["system"]["log_to_file"] = True
    return AppConfig(**config_dict)


def _read_mono_wav(filepath: str) -> SynthesizedAudio:
    """WAV 파일을 float32 mono 파형으로 읽습니다."""
    samples, sample_rate = sf.read(filepath, dtype="float32", always_2d=False)
    if samples.ndim != 1:
        raise LoudnessProcessingError(
            f"mono 파일만 지원합니다: {filepath} (channels={samples.shape[1]})"
        )
    return SynthesizedAudio(samples=samples, sample_rate=int(sample_rate))


def main(argv: list[str] | None = None) -> int:
    """CLI 메인 함수입니다. 종료 코드를 반환합니다."""
    args = _parse_args(argv)

    try:
        config = _load_config(args)
    except (ConfigLoadError, ValueError) as exc:
        print(f"설정 로드 실패: {exc}", file=sys.stderr)
        return 2

    setup_logging(config)

    try:
        audio = _read_mono_wav(args.input)
        processor = SpeechPostProcessor(config)

        if args.measure_only:
            loudness = processor.normalizer.measure(audio.samples, audio.sample_rate)
            if loudness is None:
                logger.info(f"라우드니스 측정 불가 (게이트 통과 블록 없음): {args.input}")
            else:
                logger.info(f"통합 라우드니스: {loudness:.2f} LKFS ({args.input})")
            return 0

        saved = processor.save(audio, args.output)
        logger.info(f"출력 완료: {saved}")
        return 0

    except (sf.LibsndfileError, LoudnessProcessingError, WavWriteError) as exc:
        logger.error(f"처리 실패: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
