"""
Simulation harness for the window engine gateware.

Runs WindowEngine under amaranth.sim with two concurrent testbenches:

    producer:  presents the frames' samples in raster order on in_valid/in_data
               and holds each one until the engine raises in_ready
    consumer:  raises out_ready, collects columns and assembles windows,
               checking the out_last marker and the anchor sidebands

Both sides can insert random stall cycles (StallProfile) to exercise the
backpressure paths. The consumer enforces a cycle budget so a stuck engine
fails with SimulationTimeout instead of hanging.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from amaranth.sim import Simulator

from .config import WindowConfig
from .engine import WindowEngine
from .util.columns import Window, unpack_column

logger = logging.getLogger(__name__)


class SimulationTimeout(RuntimeError):
    """The engine did not produce the expected windows within the cycle budget."""


@dataclass
class StallProfile:
    """
    Random stall injection for the stream testbenches.

    input_stall: Probability that the producer withholds in_valid in a cycle
    output_stall: Probability that the consumer withholds out_ready in a cycle
    seed: Seed for the NumPy random generator
    """

    input_stall: float = 0.0
    output_stall: float = 0.0
    seed: int = 0

    def __post_init__(self):
        """Validate stall probabilities."""
        assert 0.0 <= self.input_stall < 1.0, "input_stall must be in [0, 1)"
        assert 0.0 <= self.output_stall < 1.0, "output_stall must be in [0, 1)"


@dataclass
class SimulationResult:
    """Windows collected per frame and the number of simulated cycles."""

    windows: list[list[Window]] = field(default_factory=list)
    cycles: int = 0

    @property
    def all_windows(self) -> list[Window]:
        return [w for frame in self.windows for w in frame]


def simulate_frames(
    config: WindowConfig,
    frames: list[np.ndarray],
    *,
    stall: StallProfile | None = None,
    vcd_path: str | Path | None = None,
    max_cycles: int | None = None,
) -> SimulationResult:
    """
    Stream frames through WindowEngine and collect the emitted windows.

    Args:
        config: Window engine configuration
        frames: Frames of shape (frame_y, frame_x), streamed back to back
        stall: Optional random stall injection
        vcd_path: Write a VCD waveform of the run to this path
        max_cycles: Cycle budget (default scales with the expected work)

    Returns:
        SimulationResult with one list of windows per frame

    Raises:
        SimulationTimeout: The windows did not arrive within max_cycles
    """
    stall = stall or StallProfile()
    for frame in frames:
        assert frame.shape == (config.frame_y, config.frame_x), (
            f"frame shape {frame.shape} does not match ({config.frame_y}, {config.frame_x})"
        )

    if max_cycles is None:
        slack = 1.0 / (1.0 - max(stall.input_stall, stall.output_stall))
        max_cycles = int(4 * slack * config.cycles_per_frame * len(frames)) + 100

    dut = WindowEngine(config)
    in_rng = np.random.default_rng([stall.seed, 0])
    out_rng = np.random.default_rng([stall.seed, 1])
    samples = [int(v) for frame in frames for v in frame.flatten()]
    expected = config.windows_per_frame * len(frames)
    result = SimulationResult()
    collected: list[Window] = []

    logger.info(
        "simulating %d frame(s): %dx%d frame, %dx%d window, stride %dx%d, pad %dx%d",
        len(frames),
        config.frame_x,
        config.frame_y,
        config.window_x,
        config.window_y,
        config.stride_x,
        config.stride_y,
        config.pad_x,
        config.pad_y,
    )

    async def producer(ctx):
        for sample in samples:
            ctx.set(dut.in_data, sample)
            while True:
                valid = not (in_rng.random() < stall.input_stall)
                ctx.set(dut.in_valid, valid)
                ready = ctx.get(dut.in_ready)
                await ctx.tick()
                if valid and ready:
                    break
        ctx.set(dut.in_valid, 0)

    async def consumer(ctx):
        columns: list[list[int]] = []
        anchor = None
        cycles = 0

        while len(collected) < expected:
            ready = not (out_rng.random() < stall.output_stall)
            ctx.set(dut.out_ready, ready)

            if ready and ctx.get(dut.out_valid):
                col = ctx.get(dut.out_col)
                current = (ctx.get(dut.out_anchor_x), ctx.get(dut.out_anchor_y))
                assert col == len(columns), f"column {col} arrived, expected {len(columns)}"
                if anchor is None:
                    anchor = current
                assert current == anchor, f"anchor changed from {anchor} to {current} mid-window"

                columns.append(unpack_column(ctx.get(dut.out_data), config))
                last = bool(ctx.get(dut.out_last))
                assert last == (len(columns) == config.window_x), (
                    f"out_last={int(last)} on column {len(columns) - 1} of {config.window_x}"
                )
                if last:
                    window = Window.from_columns(anchor[0], anchor[1], columns)
                    logger.debug("window %d at %s", len(collected), window.anchor)
                    collected.append(window)
                    columns = []
                    anchor = None

            await ctx.tick()
            cycles += 1
            if cycles > max_cycles:
                raise SimulationTimeout(
                    f"collected {len(collected)} of {expected} windows in {max_cycles} cycles"
                )

        ctx.set(dut.out_ready, 0)
        result.cycles = cycles

    sim = Simulator(dut)
    sim.add_clock(1e-6)
    sim.add_testbench(producer)
    sim.add_testbench(consumer)

    if vcd_path is not None:
        with sim.write_vcd(str(vcd_path)):
            sim.run()
    else:
        sim.run()

    per_frame = config.windows_per_frame
    result.windows = [collected[i : i + per_frame] for i in range(0, expected, per_frame)]
    logger.info("collected %d window(s) in %d cycles", len(collected), result.cycles)
    return result
