"""
NumPy reference for the window engine.

The reference keeps the whole zero-padded frame in memory and slices every
stride-aligned window out of it directly. It is the golden model the
line-buffer hardware and the cycle model are checked against.
"""

import numpy as np

from .config import WindowConfig
from .util.columns import Window


def pad_frame(frame: np.ndarray, config: WindowConfig) -> np.ndarray:
    """Surround a (frame_y, frame_x) frame with the configured zero border."""
    assert frame.shape == (config.frame_y, config.frame_x), (
        f"frame shape {frame.shape} does not match ({config.frame_y}, {config.frame_x})"
    )
    return np.pad(
        frame.astype(np.int64),
        ((config.pad_y, config.pad_y), (config.pad_x, config.pad_x)),
        mode="constant",
        constant_values=0,
    )


def reference_windows(frame: np.ndarray, config: WindowConfig) -> list[Window]:
    """
    Enumerate all emitted windows of one frame by brute force.

    Anchors are visited in row-major order:
        anchor_y = 0, stride_y, 2*stride_y, ... while the window fits
        anchor_x = 0, stride_x, 2*stride_x, ... while the window fits
    """
    padded = pad_frame(frame, config)
    windows = []
    for anchor_y in range(0, config.padded_height - config.window_y + 1, config.stride_y):
        for anchor_x in range(0, config.padded_width - config.window_x + 1, config.stride_x):
            data = padded[
                anchor_y : anchor_y + config.window_y,
                anchor_x : anchor_x + config.window_x,
            ].copy()
            windows.append(Window(anchor_x=anchor_x, anchor_y=anchor_y, data=data))
    return windows


def ramp_frame(config: WindowConfig, start: int = 0) -> np.ndarray:
    """Row-major ramp start, start+1, ... wrapped to the sample width."""
    values = np.arange(start, start + config.samples_per_frame, dtype=np.int64)
    return (values & config.sample_mask).reshape(config.frame_y, config.frame_x)


def random_frame(config: WindowConfig, rng: np.random.Generator) -> np.ndarray:
    """Uniformly random samples covering the full sample width."""
    return rng.integers(
        0, 1 << config.sample_bits, size=(config.frame_y, config.frame_x), dtype=np.int64
    )
