"""
16bit mono PCM WAV 인코딩 모듈입니다.

역할:
- 샘플 타입별(float32/float64/int16) int16 변환 규칙 제공
- RIFF/WAVE 헤더(44바이트)와 샘플 데이터를 임의의 바이트 싱크에 순차 기록
- 메모리(bytes) / 파일 출력 헬퍼

바이트 레이아웃 (little-endian):
    0   "RIFF"  4   전체길이-8   8  "WAVE"
    12  "fmt "  16  16          20 1(PCM)   22 1(mono)
    24  sample_rate             28 byte_rate = sample_rate × 2
    32  block_align = 2         34 16(bits)
    36  "data"  40  sample_count × 2
    44  int16 샘플 ...

사용 예시:
    >>> with open("out.wav", "wb") as f:
    ...     write_pcm_as_wav(f, samples, 24000)
    >>> data = encode_wav(samples, 24000)
"""

from __future__ import annotations

import io
import struct
from collections.abc import Iterable
from functools import singledispatch
from pathlib import Path
from typing import BinaryIO, Union

import numpy as np

# int16 최대값 (float → int16 스케일 기준)
_INT16_MAX = 32767.0
_INT16_MIN_INT = -32768
_INT16_MAX_INT = 32767

_NUM_CHANNELS = 1
_BYTES_PER_SAMPLE = 2
_BITS_PER_SAMPLE = 16
_FORMAT_PCM = 1
_FMT_CHUNK_SIZE = 16

# RIFF(12) + fmt(24) + data 헤더(8)
WAV_HEADER_SIZE = 44

# 32bit RIFF 길이 필드 한계
_MAX_RIFF_SIZE = 0xFFFFFFFF

# 데이터 블록 기록 단위 (샘플 수)
_WRITE_CHUNK_SAMPLES = 8192


class WavWriteError(OSError):
    """바이트 싱크 기록 실패 시 발생하는 에러입니다. 출력은 사용할 수 없는 상태입니다."""
    pass


# =============================================================================
# 샘플 → int16 변환
# =============================================================================

@singledispatch
def to_i16(sample) -> int:
    """
    샘플 하나를 16bit 부호 정수로 변환합니다.

    - float: [-1.0, 1.0]으로 클램프 후 32767을 곱하고 0 방향으로 버림 (NaN → 0)
    - int: 그대로 통과 (int16 범위를 벗어나면 ValueError)
    """
    raise TypeError(f"int16으로 변환할 수 없는 샘플 타입: {type(sample).__name__}")


@to_i16.register(float)
def _(sample: float) -> int:
    # numpy.float64는 float의 하위 클래스이므로 여기서 함께 처리
    if sample != sample:
        return 0
    return int(min(max(sample, -1.0), 1.0) * _INT16_MAX)


@to_i16.register(np.float16)
@to_i16.register(np.float32)
def _(sample) -> int:
    # float16은 float32로 넓혀서 변환
    sample = np.float32(sample)
    if np.isnan(sample):
        return 0
    clamped = np.float32(min(max(sample, np.float32(-1.0)), np.float32(1.0)))
    return int(clamped * np.float32(_INT16_MAX))


@to_i16.register(np.int16)
def _(sample: np.int16) -> int:
    return int(sample)


@to_i16.register(int)
def _(sample: int) -> int:
    if isinstance(sample, bool):
        raise TypeError("bool 샘플은 지원하지 않습니다")
    if not _INT16_MIN_INT <= sample <= _INT16_MAX_INT:
        raise ValueError(f"int16 범위를 벗어난 정수 샘플: {sample}")
    return sample


def samples_to_i16(samples: Union[np.ndarray, Iterable]) -> np.ndarray:
    """
    샘플 시퀀스를 int16 배열로 변환합니다.

    numpy float32/float64 배열은 해당 정밀도로(float16은 float32로 넓혀서) 벡터 변환하고,
    int16 배열은 그대로 사용합니다.
    그 외 iterable은 샘플마다 to_i16()을 적용합니다.

    에러:
        TypeError: 지원하지 않는 샘플 타입
        ValueError: int16 범위를 벗어난 정수 샘플, 다차원 배열
    """
    if isinstance(samples, np.ndarray):
        if samples.ndim != 1:
            raise ValueError(f"mono 1차원 샘플만 지원합니다: shape={samples.shape}")
        if samples.dtype == np.int16:
            return samples
        if samples.dtype == np.float16:
            samples = samples.astype(np.float32)
        if samples.dtype in (np.float32, np.float64):
            scale = samples.dtype.type(_INT16_MAX)
            clamped = np.clip(samples, -1.0, 1.0).astype(samples.dtype, copy=False)
            scaled = np.nan_to_num(clamped * scale, nan=0.0)
            return scaled.astype(np.int16)
        if np.issubdtype(samples.dtype, np.integer):
            if samples.size and (samples.min() < _INT16_MIN_INT or samples.max() > _INT16_MAX_INT):
                raise ValueError("int16 범위를 벗어난 정수 샘플이 포함되어 있습니다")
            return samples.astype(np.int16)
        raise TypeError(f"int16으로 변환할 수 없는 배열 dtype: {samples.dtype}")

    return np.fromiter((to_i16(sample) for sample in samples), dtype=np.int16)


# =============================================================================
# WAV 기록
# =============================================================================

def wav_header(num_samples: int, sample_rate: int) -> bytes:
    """
    mono 16bit PCM WAV 헤더(44바이트)를 생성합니다.

    에러:
        ValueError: sample_rate가 양수가 아니거나 RIFF 길이 필드를 초과하는 경우
    """
    if sample_rate <= 0 or sample_rate > _MAX_RIFF_SIZE:
        raise ValueError(f"올바르지 않은 sample_rate: {sample_rate}")
    if num_samples < 0:
        raise ValueError(f"올바르지 않은 샘플 수: {num_samples}")

    data_size = num_samples * _BYTES_PER_SAMPLE * _NUM_CHANNELS
    riff_size = WAV_HEADER_SIZE - 8 + data_size
    if riff_size > _MAX_RIFF_SIZE:
        raise ValueError(f"WAV 최대 크기를 초과했습니다: {num_samples} samples")

    byte_rate = sample_rate * _BYTES_PER_SAMPLE * _NUM_CHANNELS
    block_align = _BYTES_PER_SAMPLE * _NUM_CHANNELS

    return b"".join([
        b"RIFF",
        struct.pack("<I", riff_size),
        b"WAVE",
        b"fmt ",
        struct.pack("<I", _FMT_CHUNK_SIZE),
        struct.pack("<H", _FORMAT_PCM),
        struct.pack("<H", _NUM_CHANNELS),
        struct.pack("<I", sample_rate),
        struct.pack("<I", byte_rate),
        struct.pack("<H", block_align),
        struct.pack("<H", _BITS_PER_SAMPLE),
        b"data",
        struct.pack("<I", data_size),
    ])


def write_pcm_as_wav(
    sink: BinaryIO,
    samples: Union[np.ndarray, Iterable],
    sample_rate: int,
) -> int:
    """
    샘플을 mono 16bit PCM WAV로 싱크에 기록합니다.

    헤더 필드와 데이터 블록을 순서대로 sink.write()에 넘기며, 별도 버퍼링은 하지 않습니다.
    기록 도중 실패하면 즉시 중단하며 싱크에는 잘린 스트림이 남을 수 있습니다.

    파라미터:
        sink: write(bytes)를 지원하는 바이트 싱크 (파일, BytesIO, 소켓 래퍼 등)
        samples: float32/float64/int16 샘플 시퀀스
        sample_rate: 샘플링레이트 (Hz)

    반환값:
        int: 기록한 총 바이트 수

    에러:
        WavWriteError: 싱크 기록 실패
        ValueError / TypeError: 샘플 또는 sample_rate가 올바르지 않은 경우
    """
    pcm = samples_to_i16(samples)
    header = wav_header(len(pcm), sample_rate)

    # 헤더는 필드 단위로 기록
    field_offsets = (0, 4, 8, 12, 16, 20, 22, 24, 28, 32, 34, 36, 40, WAV_HEADER_SIZE)
    written = 0
    for start, end in zip(field_offsets, field_offsets[1:]):
        written += _write_all(sink, header[start:end])

    little_endian = pcm.astype("<i2", copy=False)
    for offset in range(0, len(little_endian), _WRITE_CHUNK_SAMPLES):
        written += _write_all(sink, little_endian[offset:offset + _WRITE_CHUNK_SAMPLES].tobytes())

    return written


def encode_wav(samples: Union[np.ndarray, Iterable], sample_rate: int) -> bytes:
    """샘플을 WAV 바이트열로 인코딩합니다."""
    buffer = io.BytesIO()
    write_pcm_as_wav(buffer, samples, sample_rate)
    return buffer.getvalue()


def save_wav(
    filepath: Union[str, Path],
    samples: Union[np.ndarray, Iterable],
    sample_rate: int,
) -> Path:
    """
    샘플을 WAV 파일로 저장합니다. 상위 디렉토리는 자동 생성됩니다.

    에러:
        WavWriteError: 파일 생성 또는 기록 실패
    """
    filepath = Path(filepath)
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        wav_file = open(filepath, "wb")
    except OSError as exc:
        raise WavWriteError(f"WAV 파일을 열 수 없습니다: {filepath}: {exc}") from exc

    with wav_file:
        write_pcm_as_wav(wav_file, samples, sample_rate)
    return filepath


def _write_all(sink: BinaryIO, data: bytes) -> int:
    """
    data 전체를 싱크에 기록합니다.

    raw I/O처럼 일부만 기록하는 싱크는 나머지를 이어서 기록하고,
    None을 반환하는 싱크는 전체가 기록된 것으로 간주합니다.
    """
    view = memoryview(data)
    total = len(view)
    while view:
        try:
            count = sink.write(view.tobytes())
        except (OSError, ValueError) as exc:
            # 닫힌 파일 객체는 ValueError를 발생시킴
            raise WavWriteError(f"WAV 기록 실패: {exc}") from exc
        if count is None:
            break
        if count <= 0:
            raise WavWriteError("싱크가 데이터를 받아들이지 않습니다 (0 바이트 기록)")
        view = view[count:]
    return total
