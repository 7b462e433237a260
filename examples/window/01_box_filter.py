#!/usr/bin/env python3
"""
Box Filter Demo.

This example uses the window engine as the front end of a 2D convolution:
every emitted window is reduced to its mean, giving a box-filtered image. It
shows:

1. Problem Setup
   - Generate a random test image with NumPy
   - Configure the engine for 3x3 windows with 'same' zero padding

2. RTL Simulation
   - Stream the image through WindowEngine, one sample per transfer
   - Optionally stall the input and output streams at random

3. Verification
   - Reduce each window to its mean
   - Compare against a NumPy box filter over the zero-padded image

Usage:
    python 01_box_filter.py [--size N] [--kernel K] [--stride S] [--stall P]
"""

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

# Add src to path if running from the repository
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from convwin import StallProfile, WindowConfig, simulate_frames  # noqa: E402
from convwin.reference import pad_frame, random_frame  # noqa: E402


def numpy_box_filter(image: np.ndarray, config: WindowConfig) -> np.ndarray:
    """Mean over every stride-aligned window of the zero-padded image."""
    padded = pad_frame(image, config)
    out = np.zeros((config.windows_y, config.windows_x))
    for oy in range(config.windows_y):
        for ox in range(config.windows_x):
            ay = oy * config.stride_y
            ax = ox * config.stride_x
            out[oy, ox] = padded[ay : ay + config.window_y, ax : ax + config.window_x].mean()
    return out


def main():
    parser = argparse.ArgumentParser(description="Box filter through the window engine")
    parser.add_argument("--size", type=int, default=8, help="image size (default: 8)")
    parser.add_argument("--kernel", type=int, default=3, help="kernel size (default: 3)")
    parser.add_argument("--stride", type=int, default=1, help="stride (default: 1)")
    parser.add_argument("--stall", type=float, default=0.0, help="stall probability")
    parser.add_argument("--seed", type=int, default=0, help="random seed")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every window")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    config = WindowConfig(
        frame_x=args.size,
        frame_y=args.size,
        window_x=args.kernel,
        window_y=args.kernel,
        pad_x=args.kernel // 2,
        pad_y=args.kernel // 2,
        stride_x=args.stride,
        stride_y=args.stride,
    )
    image = random_frame(config, np.random.default_rng(args.seed))

    print("=" * 60)
    print(f"Box filter {args.kernel}x{args.kernel}, stride {args.stride}")
    print(f"Image: {args.size}x{args.size}, padding {config.pad_x}")
    print(f"Line buffer: {config.line_buffer_bits} bits, {config.windows_per_frame} windows")
    print("=" * 60)

    stall = StallProfile(input_stall=args.stall, output_stall=args.stall, seed=args.seed)
    result = simulate_frames(config, [image], stall=stall)

    filtered = np.zeros((config.windows_y, config.windows_x))
    for window in result.windows[0]:
        filtered[window.anchor_y // config.stride_y, window.anchor_x // config.stride_x] = (
            window.data.mean()
        )

    expected = numpy_box_filter(image, config)
    print("Filtered image:")
    print(np.array2string(filtered, precision=1))
    print(f"Simulated cycles: {result.cycles}")

    if np.allclose(filtered, expected):
        print("PASS: matches NumPy reference")
        return 0
    print("FAIL: mismatch against NumPy reference")
    return 1


if __name__ == "__main__":
    sys.exit(main())
