"""
Command line front-end for the window engine.

Usage:
    convwin trace --frame-x 4 --frame-y 4 --window-x 2 --window-y 2 --pad-x 0 --pad-y 0
    convwin trace --pattern random --frames 2 --input-stall 0.3 --output-stall 0.3
    convwin verilog --frame-x 640 --frame-y 480 -o gen/window_engine.v

The trace command runs the gateware simulation, prints every emitted window
and compares it with the NumPy reference (exit status 1 on mismatch). The
verilog command converts WindowEngine for the given configuration.
"""

import logging
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path

import numpy as np

from .config import DEFAULT_WINDOW_CONFIG, WindowConfig
from .engine import WindowEngine
from .reference import ramp_frame, random_frame, reference_windows
from .sim import StallProfile, simulate_frames

logger = logging.getLogger(__name__)


def add_window_args(
    parser: ArgumentParser, *, defaults: WindowConfig = DEFAULT_WINDOW_CONFIG
) -> None:
    """
    Add the WindowConfig parameters to a parser.

    Adds these arguments:
        --frame-x N / --frame-y N     Unpadded frame size
        --window-x N / --window-y N   Window size
        --stride-x N / --stride-y N   Stride between window anchors
        --pad-x N / --pad-y N         Zero border on each side
        --sample-bits N               Sample width in bits
    """
    group = parser.add_argument_group("window configuration")
    group.add_argument("--frame-x", type=int, default=defaults.frame_x, help="frame width")
    group.add_argument("--frame-y", type=int, default=defaults.frame_y, help="frame height")
    group.add_argument("--window-x", type=int, default=defaults.window_x, help="window width")
    group.add_argument("--window-y", type=int, default=defaults.window_y, help="window height")
    group.add_argument("--stride-x", type=int, default=defaults.stride_x, help="horizontal stride")
    group.add_argument("--stride-y", type=int, default=defaults.stride_y, help="vertical stride")
    group.add_argument("--pad-x", type=int, default=defaults.pad_x, help="left/right zero padding")
    group.add_argument("--pad-y", type=int, default=defaults.pad_y, help="top/bottom zero padding")
    group.add_argument(
        "--sample-bits", type=int, default=defaults.sample_bits, help="sample width in bits"
    )


def config_from_args(args: Namespace) -> WindowConfig:
    """Build a WindowConfig from parsed arguments."""
    return WindowConfig(
        sample_bits=args.sample_bits,
        frame_x=args.frame_x,
        frame_y=args.frame_y,
        pad_x=args.pad_x,
        pad_y=args.pad_y,
        window_x=args.window_x,
        window_y=args.window_y,
        stride_x=args.stride_x,
        stride_y=args.stride_y,
    )


def cmd_trace(args: Namespace, config: WindowConfig) -> int:
    """Simulate frames and print every emitted window."""
    rng = np.random.default_rng(args.seed)
    if args.pattern == "ramp":
        frames = [
            ramp_frame(config, start=i * config.samples_per_frame) for i in range(args.frames)
        ]
    else:
        frames = [random_frame(config, rng) for _ in range(args.frames)]

    stall = StallProfile(
        input_stall=args.input_stall,
        output_stall=args.output_stall,
        seed=args.seed,
    )
    result = simulate_frames(config, frames, stall=stall, vcd_path=args.vcd)

    mismatches = 0
    for index, (frame, windows) in enumerate(zip(frames, result.windows)):
        expected = reference_windows(frame, config)
        print(f"frame {index}: {len(windows)} windows")
        for window, reference in zip(windows, expected):
            ok = window.matches(reference)
            mismatches += not ok
            columns = window.data.T.tolist()
            status = "" if ok else f"  MISMATCH (expected {reference.data.T.tolist()})"
            print(f"  anchor ({window.anchor_x}, {window.anchor_y}) columns {columns}{status}")
        if len(windows) != len(expected):
            mismatches += 1
            print(f"  MISMATCH: expected {len(expected)} windows")

    print(f"{result.cycles} cycles, {mismatches} mismatch(es)")
    return 1 if mismatches else 0


def cmd_verilog(args: Namespace, config: WindowConfig) -> int:
    """Convert WindowEngine to Verilog."""
    from amaranth.back import verilog

    logger.info("converting %s with %d line buffer bits", args.name, config.line_buffer_bits)
    output = verilog.convert(WindowEngine(config), name=args.name)
    if args.output is None:
        sys.stdout.write(output)
    else:
        path = Path(args.output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(output)
        print(f"Generated {path}")
    return 0


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="convwin", description="Sliding window engine tools")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="more logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    trace = subparsers.add_parser("trace", help="simulate frames and print emitted windows")
    add_window_args(trace)
    trace.add_argument("--frames", type=int, default=1, help="number of frames to stream")
    trace.add_argument("--pattern", choices=["ramp", "random"], default="ramp")
    trace.add_argument("--seed", type=int, default=0, help="random seed")
    trace.add_argument("--input-stall", type=float, default=0.0, help="input stall probability")
    trace.add_argument("--output-stall", type=float, default=0.0, help="output stall probability")
    trace.add_argument("--vcd", default=None, help="write a VCD waveform to this path")
    trace.set_defaults(handler=cmd_trace)

    gen = subparsers.add_parser("verilog", help="generate Verilog for the engine")
    add_window_args(gen)
    gen.add_argument("-o", "--output", default=None, help="output file (default: stdout)")
    gen.add_argument("--name", default="window_engine", help="top-level module name")
    gen.set_defaults(handler=cmd_verilog)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = config_from_args(args)
    except AssertionError as e:
        parser.error(str(e))

    return args.handler(args, config)


if __name__ == "__main__":
    sys.exit(main())
