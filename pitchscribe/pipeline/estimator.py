"""
Pitch estimation: one sample window in, one (frequency, clarity) pair out.

Implements a McLeod-style pitch method (MPM):

1. RMS energy gate (cheap short-circuit for silence).
2. Normalized square difference function (NSDF) over lags [0, N/2).
3. Key maxima: the peak of every positive lobe after the lobe at lag 0.
4. Clarity = highest key maximum; reject below ``min_clarity``.
5. Octave-error guard: choose the *first* key maximum >= k * highest.
6. Parabolic interpolation of the chosen lag, frequency = sr / lag.

The estimator only holds configuration; every call is independent.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional

import numpy as np
import scipy.signal

from .config import EstimatorConfig, validate_estimator
from .errors import InvalidInput
from .models import PitchEstimate, UNDETERMINED

logger = logging.getLogger(__name__)

__all__ = [
    "PitchEstimator",
    "rms",
    "nsdf",
    "collect_peaks",
    "parabolic_interpolation",
]


def rms(x: np.ndarray) -> float:
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(x))))


def nsdf(x: np.ndarray) -> np.ndarray:
    """
    NSDF over lags ``tau`` in ``[0, N // 2)``:

        nsdf[tau] = 2 * sum_i x[i] x[i + tau] / sum_i (x[i]^2 + x[i + tau]^2),  i < N // 2

    The product term is a cross-correlation of the window against its first
    half (FFT-backed via scipy for large windows); the energy term comes from
    a running sum of squares. Lags with zero energy map to 0.
    """
    x = np.asarray(x, dtype=np.float64)
    half = x.size // 2
    if half == 0:
        return np.zeros(0, dtype=np.float64)

    head = x[:half]
    acf = scipy.signal.correlate(x, head, mode="valid", method="auto")[:half]

    cs = np.concatenate(([0.0], np.cumsum(np.square(x))))
    lags = np.arange(half)
    m = cs[half] + (cs[lags + half] - cs[lags])

    out = np.zeros(half, dtype=np.float64)
    np.divide(2.0 * acf, m, out=out, where=m > 0.0)
    return out


def collect_peaks(curve: np.ndarray) -> List[int]:
    """Index of the maximum of every positive lobe, skipping the lobe at lag 0."""
    n = len(curve)
    peaks: List[int] = []
    pos = 0

    # The lag-0 lobe always wins trivially
    while pos < n - 1 and curve[pos] > 0:
        pos += 1

    while pos < n - 1:
        while pos < n - 1 and curve[pos] <= 0:
            pos += 1
        if pos >= n - 1:
            break

        best = pos
        while pos < n - 1 and curve[pos] > 0:
            if curve[pos] > curve[best]:
                best = pos
            pos += 1
        peaks.append(best)

    return peaks


def parabolic_interpolation(curve: np.ndarray, index: int) -> float:
    """Sub-sample position of the vertex through ``index`` and its two neighbours."""
    if index <= 0 or index >= len(curve) - 1:
        return float(index)
    s0, s1, s2 = float(curve[index - 1]), float(curve[index]), float(curve[index + 1])
    a = (s0 + s2 - 2.0 * s1) / 2.0
    b = (s2 - s0) / 2.0
    if a == 0.0:
        return float(index)
    return index - b / (2.0 * a)


class PitchEstimator:
    """Stateless pitch estimator; the config is fixed at construction."""

    def __init__(self, config: Optional[EstimatorConfig] = None) -> None:
        config = config or EstimatorConfig()
        validate_estimator(config)
        self._config = config

    @property
    def config(self) -> EstimatorConfig:
        return self._config

    @property
    def window_size(self) -> int:
        return self._config.window_size

    def _check_window(self, samples, sample_rate) -> np.ndarray:
        x = np.asarray(samples, dtype=np.float64)
        if x.ndim != 1:
            raise InvalidInput(f"Sample window must be 1-D, got shape {x.shape}")
        if x.size != self.window_size:
            raise InvalidInput(
                f"Sample window length {x.size} does not match configured window_size {self.window_size}"
            )
        if sample_rate is None or not math.isfinite(sample_rate) or sample_rate <= 0:
            raise InvalidInput(f"Sample rate must be positive, got {sample_rate!r}")
        if not np.all(np.isfinite(x)):
            raise InvalidInput("Sample window contains NaN or infinite values")
        return x

    def estimate(self, samples, sample_rate: float) -> PitchEstimate:
        x = self._check_window(samples, sample_rate)
        cfg = self._config

        if rms(x) < cfg.silence_rms:
            return PitchEstimate(UNDETERMINED, 0.0)

        curve = nsdf(x)
        peaks = collect_peaks(curve)
        if not peaks:
            return PitchEstimate(UNDETERMINED, 0.0)

        highest = max(float(curve[p]) for p in peaks)
        clarity = float(min(1.0, highest))
        if highest < cfg.min_clarity:
            return PitchEstimate(UNDETERMINED, clarity)

        # Harmonics (octave up) can out-score the fundamental; take the
        # earliest peak that is close enough to the best one.
        threshold = cfg.octave_ratio * highest
        best_tau = next(p for p in peaks if curve[p] >= threshold)

        tau = parabolic_interpolation(curve, best_tau)
        if tau <= 0.0:
            return PitchEstimate(UNDETERMINED, clarity)

        frequency = float(sample_rate) / tau
        if not math.isfinite(frequency) or frequency <= 0.0:
            return PitchEstimate(UNDETERMINED, clarity)
        return PitchEstimate(frequency, clarity)
