"""
Circular sample history for the DEMON analyzer.
"""

from typing import Optional

import numpy as np

DEFAULT_CAPACITY = 131072  # ~3 s at 44.1 kHz


class SampleRingBuffer:
    """
    Fixed-capacity float32 ring buffer.

    Attributes:
        capacity: Buffer length [samples]
        write_index: Next write position
        sample_count: Valid samples held (saturates at capacity)
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = int(capacity)
        self._data = np.zeros(self.capacity, dtype=np.float32)
        self.write_index = 0
        self.sample_count = 0

    def push(self, samples: np.ndarray) -> None:
        """Append samples; non-finite values are stored as 0."""
        samples = np.asarray(samples, dtype=np.float32).ravel()
        if samples.size == 0:
            return
        samples = np.where(np.isfinite(samples), samples, 0.0).astype(np.float32)

        if samples.size >= self.capacity:
            self._data[:] = samples[-self.capacity :]
            self.write_index = 0
            self.sample_count = self.capacity
            return

        end = self.write_index + samples.size
        if end <= self.capacity:
            self._data[self.write_index : end] = samples
        else:
            first = self.capacity - self.write_index
            self._data[self.write_index :] = samples[:first]
            self._data[: end - self.capacity] = samples[first:]

        self.write_index = end % self.capacity
        self.sample_count = min(self.capacity, self.sample_count + samples.size)

    def latest(self, length: int) -> Optional[np.ndarray]:
        """
        Most recent `length` samples in chronological order.

        Returns:
            float64 copy, or None when fewer samples are held
        """
        if length <= 0 or length > self.sample_count:
            return None
        start = (self.write_index - length) % self.capacity
        idx = (start + np.arange(length)) % self.capacity
        return self._data[idx].astype(np.float64)

    def snapshot(self) -> np.ndarray:
        """Copy of the raw storage, indexed by buffer position."""
        return self._data.copy()

    def reset(self) -> None:
        """Forget history and zero the contents."""
        self._data.fill(0.0)
        self.write_index = 0
        self.sample_count = 0
