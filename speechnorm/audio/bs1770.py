"""
ITU-R BS.1770 라우드니스 측정 모듈입니다.

역할:
- K-weighting 프리필터(high-shelf + high-pass 2단 biquad)를 샘플레이트별로 설계
- mono 샘플 스트림을 100ms 윈도우 단위 mean-square 파워로 누적
- 절대 게이트(-70 LKFS) + 상대 게이트(-10 dB) 2단 게이팅으로 통합 라우드니스 계산

측정 흐름:
    samples (iterable, 1회 소비)
        → K-weighting (scipy.signal.sosfilt, 필터 상태는 push 간 유지)
        → 제곱 → 100ms 윈도우 평균 (마지막 미완성 윈도우는 버림)
        → 게이팅 블록 (연속 윈도우 block_windows개 평균, 1윈도우씩 이동)
        → 절대 게이트 → 상대 게이트 → 통과 블록 평균 파워
        → LKFS = -0.691 + 10·log10(power)

사용 예시:
    >>> meter = ChannelLoudnessMeter(48000)
    >>> meter.push(samples)
    >>> power = gated_mean(meter.as_100ms_windows())
    >>> power.loudness_lkfs() if power else None
"""

from __future__ import annotations

import itertools
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy.signal import sosfilt

# BS.1770 라우드니스 오프셋 (dB)
_LKFS_OFFSET = -0.691

# 윈도우 길이: 100ms = sample_rate / 10
_WINDOWS_PER_SECOND = 10

# iterable 입력을 numpy로 변환할 때의 청크 크기 (샘플 수)
_PUSH_CHUNK_SAMPLES = 65536

# K-weighting 1단: high-shelf (머리 음향 효과 보정)
# 48kHz에서 ITU-R BS.1770-4 Table 1 계수를 재현하는 아날로그 프로토타입 값
_SHELF_FREQ_HZ = 1681.974450955533
_SHELF_GAIN_DB = 3.999843853973347
_SHELF_Q = 0.7071752369554196
_SHELF_BAND_EXPONENT = 0.4996667741545416

# K-weighting 2단: high-pass (RLB 가중, Table 2)
_HIGHPASS_FREQ_HZ = 38.13547087602444
_HIGHPASS_Q = 0.5003270373238773

DEFAULT_BLOCK_WINDOWS = 4
DEFAULT_ABSOLUTE_GATE_LKFS = -70.0
DEFAULT_RELATIVE_GATE_DB = -10.0


@dataclass(frozen=True, order=True)
class Power:
    """
    mean-square 파워 값입니다.

    loudness_lkfs()로 BS.1770 라우드니스 단위로 변환합니다.
    """
    value: float

    def loudness_lkfs(self) -> float:
        """파워를 LKFS로 변환합니다. 파워가 0이면 -inf를 반환합니다."""
        if self.value <= 0.0:
            return float("-inf")
        return _LKFS_OFFSET + 10.0 * math.log10(self.value)

    @classmethod
    def from_lkfs(cls, lkfs: float) -> Power:
        """LKFS 값에 해당하는 파워를 생성합니다."""
        return cls(10.0 ** ((lkfs - _LKFS_OFFSET) / 10.0))

    @staticmethod
    def mean(powers: Iterable[Power]) -> Optional[Power]:
        """파워 평균을 반환합니다. 입력이 비어 있으면 None."""
        values = [power.value for power in powers]
        if not values:
            return None
        return Power(math.fsum(values) / len(values))


class Windows100ms(Sequence):
    """
    100ms 윈도우 파워 시퀀스입니다.

    유한하며, 매 순회마다 첫 윈도우부터 다시 시작합니다.
    """

    def __init__(self, powers: Union[np.ndarray, Iterable[float]]) -> None:
        self._powers = np.array(powers, dtype=np.float64).reshape(-1)

    def __len__(self) -> int:
        return int(self._powers.size)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Windows100ms(self._powers[index])
        return Power(float(self._powers[index]))

    def __iter__(self):
        for value in self._powers:
            yield Power(float(value))

    def __repr__(self) -> str:
        return f"Windows100ms(len={len(self)})"

    @property
    def powers(self) -> np.ndarray:
        """윈도우 파워 배열 복사본을 반환합니다."""
        return self._powers.copy()


@dataclass(frozen=True)
class GatingStats:
    """
    게이팅 단계별 결과입니다.

    필드:
        ungated: 게이트 적용 전 전체 윈도우 평균 파워 (윈도우가 없으면 None)
        block_count: 생성된 게이팅 블록 수
        absolute_survivors: 절대 게이트 통과 블록 수
        relative_survivors: 상대 게이트까지 통과한 블록 수
        relative_threshold: 상대 게이트 임계 파워 (절대 게이트 통과 블록이 없으면 None)
        power: 최종 게이트 평균 파워 (통과 블록이 없으면 None)
    """
    ungated: Optional[Power]
    block_count: int
    absolute_survivors: int
    relative_survivors: int
    relative_threshold: Optional[Power]
    power: Optional[Power]

    @property
    def ungated_lkfs(self) -> Optional[float]:
        """게이트 적용 전 잠정 라우드니스 (LKFS)."""
        return self.ungated.loudness_lkfs() if self.ungated is not None else None

    @property
    def integrated_lkfs(self) -> Optional[float]:
        """게이트 적용 후 통합 라우드니스 (LKFS)."""
        return self.power.loudness_lkfs() if self.power is not None else None


# =============================================================================
# K-weighting 필터 설계
# =============================================================================

def _high_shelf_section(sample_rate: int) -> list[float]:
    """K-weighting 1단 high-shelf biquad 계수 [b0, b1, b2, 1, a1, a2]."""
    k = math.tan(math.pi * _SHELF_FREQ_HZ / sample_rate)
    v_high = 10.0 ** (_SHELF_GAIN_DB / 20.0)
    v_band = v_high ** _SHELF_BAND_EXPONENT
    a0 = 1.0 + k / _SHELF_Q + k * k

    b0 = (v_high + v_band * k / _SHELF_Q + k * k) / a0
    b1 = 2.0 * (k * k - v_high) / a0
    b2 = (v_high - v_band * k / _SHELF_Q + k * k) / a0
    a1 = 2.0 * (k * k - 1.0) / a0
    a2 = (1.0 - k / _SHELF_Q + k * k) / a0
    return [b0, b1, b2, 1.0, a1, a2]


def _high_pass_section(sample_rate: int) -> list[float]:
    """K-weighting 2단 high-pass biquad 계수 [1, -2, 1, 1, a1, a2] (분자는 정규화하지 않음)."""
    k = math.tan(math.pi * _HIGHPASS_FREQ_HZ / sample_rate)
    a0 = 1.0 + k / _HIGHPASS_Q + k * k

    a1 = 2.0 * (k * k - 1.0) / a0
    a2 = (1.0 - k / _HIGHPASS_Q + k * k) / a0
    return [1.0, -2.0, 1.0, 1.0, a1, a2]


def k_weighting_sos(sample_rate: int) -> np.ndarray:
    """
    샘플레이트에 맞춘 K-weighting 필터를 second-order sections로 반환합니다.

    코너 주파수가 나이퀴스트 이상인 단은 해당 샘플레이트에서 정의되지 않으므로 제외합니다.

    반환값:
        np.ndarray: shape=(n_sections, 6)
    """
    if sample_rate <= 0:
        raise ValueError(f"sample_rate는 양수여야 합니다: {sample_rate}")

    nyquist = sample_rate / 2.0
    sections = []
    if _SHELF_FREQ_HZ < nyquist:
        sections.append(_high_shelf_section(sample_rate))
    if _HIGHPASS_FREQ_HZ < nyquist:
        sections.append(_high_pass_section(sample_rate))
    return np.array(sections, dtype=np.float64).reshape(-1, 6)


# =============================================================================
# 채널 라우드니스 미터
# =============================================================================

class ChannelLoudnessMeter:
    """
    mono 채널 하나의 100ms 윈도우 파워를 누적하는 미터입니다.

    push()는 여러 번 호출할 수 있으며, 필터 상태와 미완성 윈도우가
    호출 간에 이어지므로 파형을 나눠서 넣어도 한 번에 넣은 것과 같은 윈도우가 생성됩니다.
    """

    def __init__(self, sample_rate: int, k_weighting: bool = True) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate는 양수여야 합니다: {sample_rate}")
        samples_per_window = sample_rate // _WINDOWS_PER_SECOND
        if samples_per_window == 0:
            raise ValueError(
                f"sample_rate={sample_rate}Hz에서는 100ms 윈도우를 구성할 수 없습니다"
            )

        self._sample_rate = sample_rate
        self._samples_per_window = samples_per_window
        self._k_weighting = k_weighting

        # K-weighting 필터 계수 및 상태 (sosfilt zi)
        self._sos: Optional[np.ndarray] = None
        self._zi: Optional[np.ndarray] = None
        if k_weighting:
            sos = k_weighting_sos(sample_rate)
            if len(sos):
                self._sos = sos
                self._zi = np.zeros((len(sos), 2), dtype=np.float64)

        # 완성된 윈도우 파워 목록
        self._windows: list[float] = []
        # 미완성 윈도우의 제곱합 / 샘플 수
        self._partial_sum: float = 0.0
        self._partial_count: int = 0

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def samples_per_window(self) -> int:
        """100ms 윈도우당 샘플 수."""
        return self._samples_per_window

    @property
    def window_count(self) -> int:
        """지금까지 완성된 100ms 윈도우 수."""
        return len(self._windows)

    def push(self, samples: Union[np.ndarray, Iterable[float]]) -> None:
        """
        샘플을 미터에 추가합니다.

        numpy 배열은 1차원이어야 합니다. 그 외 iterable은 청크 단위로 한 번만 소비합니다.

        에러:
            ValueError: 다차원 배열이 입력된 경우
        """
        if isinstance(samples, np.ndarray):
            if samples.ndim != 1:
                raise ValueError(f"mono 1차원 배열만 지원합니다: shape={samples.shape}")
            data = samples.astype(np.float64, copy=False)
            for offset in range(0, data.size, _PUSH_CHUNK_SAMPLES):
                self._process(data[offset:offset + _PUSH_CHUNK_SAMPLES])
            return

        iterator = iter(samples)
        while True:
            chunk = np.fromiter(
                itertools.islice(iterator, _PUSH_CHUNK_SAMPLES), dtype=np.float64
            )
            if chunk.size == 0:
                break
            self._process(chunk)

    def as_100ms_windows(self) -> Windows100ms:
        """완성된 100ms 윈도우 파워 시퀀스를 반환합니다 (미완성 윈도우 제외)."""
        return Windows100ms(self._windows)

    def reset(self) -> None:
        """누적 윈도우와 필터 상태를 초기화합니다."""
        self._windows = []
        self._partial_sum = 0.0
        self._partial_count = 0
        if self._zi is not None:
            self._zi = np.zeros_like(self._zi)

    def _process(self, chunk: np.ndarray) -> None:
        """청크 하나를 필터링하고 윈도우 파워로 누적합니다."""
        if self._sos is not None:
            chunk, self._zi = sosfilt(self._sos, chunk, zi=self._zi)

        squares = chunk * chunk
        window = self._samples_per_window
        position = 0

        # 1. 이전 호출에서 남은 미완성 윈도우 채우기
        if self._partial_count:
            needed = window - self._partial_count
            head = squares[:needed]
            self._partial_sum += float(head.sum())
            self._partial_count += head.size
            position = head.size
            if self._partial_count == window:
                self._windows.append(self._partial_sum / window)
                self._partial_sum = 0.0
                self._partial_count = 0

        # 2. 완전한 윈도우 일괄 처리
        full_windows = (squares.size - position) // window
        if full_windows:
            end = position + full_windows * window
            block = squares[position:end].reshape(full_windows, window)
            self._windows.extend((block.sum(axis=1) / window).tolist())
            position = end

        # 3. 나머지는 다음 push를 위해 보관
        tail = squares[position:]
        if tail.size:
            self._partial_sum += float(tail.sum())
            self._partial_count += tail.size


# =============================================================================
# 게이팅
# =============================================================================

def _as_power_array(windows: Union[Windows100ms, Iterable]) -> np.ndarray:
    """Windows100ms / Power iterable / float iterable을 float64 배열로 변환합니다."""
    if isinstance(windows, Windows100ms):
        return windows.powers
    values = [w.value if isinstance(w, Power) else float(w) for w in windows]
    return np.array(values, dtype=np.float64)


def gate(
    windows: Union[Windows100ms, Iterable],
    block_windows: int = DEFAULT_BLOCK_WINDOWS,
    absolute_gate_lkfs: float = DEFAULT_ABSOLUTE_GATE_LKFS,
    relative_gate_db: float = DEFAULT_RELATIVE_GATE_DB,
) -> GatingStats:
    """
    100ms 윈도우 파워에 BS.1770 2단 게이팅을 적용합니다.

    처리 단계:
    1. 전체 윈도우 평균 파워 (잠정 라우드니스)
    2. 연속 block_windows개 윈도우 평균으로 게이팅 블록 구성 (1윈도우씩 이동)
    3. 절대 게이트: 라우드니스가 absolute_gate_lkfs 초과인 블록만 유지
    4. 상대 게이트: 3단계 통과 블록 평균 라우드니스 + relative_gate_db 초과 블록만 유지
    5. 최종 통과 블록의 평균 파워

    파라미터:
        windows: 100ms 윈도우 파워 시퀀스
        block_windows: 게이팅 블록당 윈도우 수 (4 = 400ms, 1 = 윈도우 단위 게이팅)
        absolute_gate_lkfs: 절대 게이트 (LKFS)
        relative_gate_db: 상대 게이트 (dB, 0 이하)

    반환값:
        GatingStats: 단계별 결과
    """
    if block_windows < 1:
        raise ValueError(f"block_windows는 1 이상이어야 합니다: {block_windows}")

    powers = _as_power_array(windows)
    ungated = Power(float(powers.mean())) if powers.size else None

    if powers.size >= block_windows:
        blocks = sliding_window_view(powers, block_windows).mean(axis=1)
    else:
        blocks = np.empty(0, dtype=np.float64)

    # 절대 게이트
    with np.errstate(divide="ignore"):
        block_lkfs = _LKFS_OFFSET + 10.0 * np.log10(blocks)
    absolute_gated = blocks[block_lkfs > absolute_gate_lkfs]

    if absolute_gated.size == 0:
        return GatingStats(
            ungated=ungated,
            block_count=int(blocks.size),
            absolute_survivors=0,
            relative_survivors=0,
            relative_threshold=None,
            power=None,
        )

    # 상대 게이트
    absolute_mean = Power(float(absolute_gated.mean()))
    relative_threshold = Power.from_lkfs(absolute_mean.loudness_lkfs() + relative_gate_db)
    relative_gated = absolute_gated[absolute_gated > relative_threshold.value]

    power = Power(float(relative_gated.mean())) if relative_gated.size else None
    return GatingStats(
        ungated=ungated,
        block_count=int(blocks.size),
        absolute_survivors=int(absolute_gated.size),
        relative_survivors=int(relative_gated.size),
        relative_threshold=relative_threshold,
        power=power,
    )


def gated_mean(
    windows: Union[Windows100ms, Iterable],
    block_windows: int = DEFAULT_BLOCK_WINDOWS,
    absolute_gate_lkfs: float = DEFAULT_ABSOLUTE_GATE_LKFS,
    relative_gate_db: float = DEFAULT_RELATIVE_GATE_DB,
) -> Optional[Power]:
    """게이트 통과 블록의 평균 파워를 반환합니다. 통과 블록이 없으면 None."""
    return gate(windows, block_windows, absolute_gate_lkfs, relative_gate_db).power


def measure_loudness(
    samples: Union[np.ndarray, Iterable[float]],
    sample_rate: int,
    k_weighting: bool = True,
    block_windows: int = DEFAULT_BLOCK_WINDOWS,
    absolute_gate_lkfs: float = DEFAULT_ABSOLUTE_GATE_LKFS,
    relative_gate_db: float = DEFAULT_RELATIVE_GATE_DB,
) -> Optional[float]:
    """
    mono 샘플의 통합 라우드니스(LKFS)를 계산합니다.

    반환값:
        Optional[float]: LKFS, 게이트 통과 블록이 없으면 None
    """
    meter = ChannelLoudnessMeter(sample_rate, k_weighting=k_weighting)
    meter.push(samples)
    power = gated_mean(
        meter.as_100ms_windows(),
        block_windows=block_windows,
        absolute_gate_lkfs=absolute_gate_lkfs,
        relative_gate_db=relative_gate_db,
    )
    return power.loudness_lkfs() if power is not None else None
