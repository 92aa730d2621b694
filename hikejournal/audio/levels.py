"""Peak level measurement for 16-bit PCM audio."""

import numpy as np

SILENCE_DB = -160.0
FULL_SCALE = 32768.0


def peak_dbfs(chunk: bytes) -> float:
    """Peak level of a 16-bit PCM chunk in dB relative to full scale.

    Returns SILENCE_DB for empty or all-zero chunks.
    """
    samples = np.frombuffer(chunk, dtype=np.int16)
    if samples.size == 0:
        return SILENCE_DB

    peak = int(np.max(np.abs(samples.astype(np.int32))))
    if peak == 0:
        return SILENCE_DB

    return max(SILENCE_DB, float(20.0 * np.log10(peak / FULL_SCALE)))


def normalize_peak(peak_db: float) -> float:
    """Convert a decibel peak reading to a linear level in [0, 1]."""
    return float(np.clip(10.0 ** (peak_db / 20.0), 0.0, 1.0))
