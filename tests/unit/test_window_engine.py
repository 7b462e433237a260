"""
Unit tests for the WindowEngine gateware.

These tests verify:
1. Port shapes and the reset state
2. Emitted windows against the NumPy reference (padding, stride, sizes)
3. Input and output backpressure
4. Synchronous restart
5. Cycle-by-cycle agreement with WindowEngineModel under random traffic
"""

import numpy as np
import pytest
from amaranth.sim import Simulator

from convwin import (
    EngineState,
    StallProfile,
    WindowConfig,
    WindowEngine,
    WindowEngineModel,
    reference_windows,
    simulate_frames,
)
from convwin.config import SMALL_WINDOW_CONFIG, STRIDED_WINDOW_CONFIG
from convwin.reference import ramp_frame, random_frame
from convwin.util import Window, pack_column, unpack_column


def run(dut, testbench):
    sim = Simulator(dut)
    sim.add_clock(1e-6)
    sim.add_testbench(testbench)
    sim.run()


async def stream_frame(ctx, dut, config, frame):
    """Stream one frame with both sides always ready and collect its windows."""
    samples = [int(v) for v in frame.flatten()]
    sent = 0
    columns = []
    windows = []
    ctx.set(dut.out_ready, 1)
    while len(windows) < config.windows_per_frame:
        ctx.set(dut.in_valid, sent < len(samples))
        ctx.set(dut.in_data, samples[sent] if sent < len(samples) else 0)
        if sent < len(samples) and ctx.get(dut.in_ready):
            sent += 1
        if ctx.get(dut.out_valid):
            columns.append(unpack_column(ctx.get(dut.out_data), config))
            if ctx.get(dut.out_last):
                anchor = (ctx.get(dut.out_anchor_x), ctx.get(dut.out_anchor_y))
                windows.append(Window.from_columns(*anchor, columns))
                columns = []
        await ctx.tick()
    ctx.set(dut.in_valid, 0)
    return windows


def assert_windows_match(actual, expected):
    assert len(actual) == len(expected)
    for got, want in zip(actual, expected):
        assert got.matches(want), f"got {got}, expected {want}"


# =============================================================================
# Structure
# =============================================================================


class TestWindowEngineStructure:
    """Test suite for ports and reset state."""

    @pytest.fixture
    def dut(self):
        return WindowEngine(STRIDED_WINDOW_CONFIG)

    def test_port_widths(self, dut):
        cfg = STRIDED_WINDOW_CONFIG
        assert len(dut.in_data) == cfg.sample_bits
        assert len(dut.out_data) == cfg.column_bits
        assert len(dut.out_col) == cfg.send_bits
        assert len(dut.out_anchor_x) == cfg.x_bits
        assert len(dut.out_anchor_y) == cfg.y_bits
        assert len(dut.state) == 3

    def test_reset_state(self, dut):
        results = {}

        async def testbench(ctx):
            results["state"] = ctx.get(dut.state)
            results["in_ready"] = ctx.get(dut.in_ready)
            results["out_valid"] = ctx.get(dut.out_valid)
            await ctx.tick()
            results["next_state"] = ctx.get(dut.state)
            results["pos"] = (ctx.get(dut.pos_x), ctx.get(dut.pos_y))

        run(dut, testbench)
        assert results["state"] == EngineState.IDLE
        assert results["in_ready"] == 0
        assert results["out_valid"] == 0
        assert results["next_state"] == EngineState.EMPTY_PAD
        assert results["pos"] == (0, 0)


# =============================================================================
# Window contents
# =============================================================================


class TestWindowEngineWindows:
    """Test suite for emitted windows."""

    def test_small_frame(self):
        """4x4 ramp, 2x2 windows: nine windows in raster order."""
        cfg = SMALL_WINDOW_CONFIG
        result = simulate_frames(cfg, [ramp_frame(cfg)])
        windows = result.windows[0]

        assert [w.anchor for w in windows] == [(x, y) for y in range(3) for x in range(3)]
        assert windows[0].data.tolist() == [[0, 1], [4, 5]]
        assert windows[1].data.tolist() == [[1, 2], [5, 6]]
        assert windows[-1].data.tolist() == [[10, 11], [14, 15]]

    def test_small_frame_cycles(self):
        """With no stalls the last column leaves on the last counted cycle."""
        cfg = SMALL_WINDOW_CONFIG
        result = simulate_frames(cfg, [ramp_frame(cfg)])
        assert result.cycles == cfg.cycles_per_frame

    def test_corner_window_in_padding(self):
        cfg = WindowConfig(frame_x=3, frame_y=3, pad_x=2, pad_y=2, window_x=2, window_y=2)
        result = simulate_frames(cfg, [ramp_frame(cfg, start=1)])
        assert result.windows[0][0].anchor == (0, 0)
        assert not result.windows[0][0].data.any()

    @pytest.mark.parametrize(
        "cfg",
        [
            WindowConfig(frame_x=4, frame_y=4),
            STRIDED_WINDOW_CONFIG,
            WindowConfig(
                frame_x=5, frame_y=3, pad_x=1, pad_y=0, window_x=3, window_y=2, stride_x=2
            ),
            WindowConfig(frame_x=4, frame_y=3, pad_x=0, pad_y=0, window_x=2, window_y=1),
            WindowConfig(frame_x=3, frame_y=2, pad_x=0, pad_y=0, window_x=1, window_y=1),
            WindowConfig(
                frame_x=5, frame_y=6, pad_x=1, pad_y=1, window_x=2, window_y=3, stride_y=2
            ),
            WindowConfig(sample_bits=4, frame_x=4, frame_y=4, window_x=3, window_y=3),
        ],
    )
    def test_matches_reference(self, cfg):
        frame = random_frame(cfg, np.random.default_rng(11))
        result = simulate_frames(cfg, [frame])
        assert_windows_match(result.windows[0], reference_windows(frame, cfg))

    def test_back_to_back_frames(self):
        cfg = STRIDED_WINDOW_CONFIG
        rng = np.random.default_rng(5)
        frames = [random_frame(cfg, rng) for _ in range(3)]
        result = simulate_frames(cfg, frames)
        assert len(result.windows) == 3
        for frame, windows in zip(frames, result.windows):
            assert_windows_match(windows, reference_windows(frame, cfg))

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_random_stalls(self, seed):
        cfg = WindowConfig(frame_x=5, frame_y=5, window_x=3, window_y=2, stride_x=2)
        rng = np.random.default_rng(seed)
        frames = [random_frame(cfg, rng) for _ in range(2)]
        stall = StallProfile(input_stall=0.4, output_stall=0.5, seed=seed)
        result = simulate_frames(cfg, frames, stall=stall)
        for frame, windows in zip(frames, result.windows):
            assert_windows_match(windows, reference_windows(frame, cfg))
        assert result.cycles > 2 * cfg.cycles_per_frame


# =============================================================================
# Backpressure and restart
# =============================================================================


class TestWindowEngineHandshake:
    """Test suite for stream handshakes and restart."""

    @pytest.fixture
    def dut(self):
        return WindowEngine(SMALL_WINDOW_CONFIG)

    def test_input_stall_holds_position(self, dut):
        results = []

        async def testbench(ctx):
            ctx.set(dut.in_valid, 0)
            for _ in range(6):
                await ctx.tick()
                results.append(
                    (ctx.get(dut.state), ctx.get(dut.in_ready), ctx.get(dut.pos_x))
                )

        run(dut, testbench)
        assert results == [(EngineState.EMPTY_GET, 1, 0)] * 6

    def test_output_stall_holds_column(self, dut):
        samples = [int(v) for v in ramp_frame(SMALL_WINDOW_CONFIG).flatten()]
        held = []
        released = []
        after = {}

        async def testbench(ctx):
            ctx.set(dut.out_ready, 0)
            sent = 0
            while not ctx.get(dut.out_valid):
                ctx.set(dut.in_valid, 1)
                ctx.set(dut.in_data, samples[sent])
                if ctx.get(dut.in_ready):
                    sent += 1
                await ctx.tick()
            after["sent"] = sent

            # Sink stalls while the source keeps offering the next sample
            ctx.set(dut.in_data, samples[sent])
            for _ in range(4):
                held.append(
                    (
                        ctx.get(dut.out_valid),
                        ctx.get(dut.in_ready),
                        ctx.get(dut.out_col),
                        ctx.get(dut.out_data),
                        ctx.get(dut.out_anchor_x),
                        ctx.get(dut.out_anchor_y),
                    )
                )
                await ctx.tick()
            after["pos"] = (ctx.get(dut.pos_x), ctx.get(dut.pos_y))

            ctx.set(dut.out_ready, 1)
            for _ in range(2):
                released.append(
                    (ctx.get(dut.out_col), ctx.get(dut.out_last), ctx.get(dut.out_data))
                )
                await ctx.tick()
            after["state"] = ctx.get(dut.state)
            after["out_valid"] = ctx.get(dut.out_valid)

        run(dut, testbench)
        assert after["sent"] == 6
        assert held == [(1, 0, 0, pack_column([0, 4], 8), 0, 0)] * 4
        assert after["pos"] == (2, 1)
        assert released == [
            (0, 0, pack_column([0, 4], 8)),
            (1, 1, pack_column([1, 5], 8)),
        ]
        assert after["state"] == EngineState.EMPTY_GET
        assert after["out_valid"] == 0

    def test_restart_mid_frame(self, dut):
        cfg = SMALL_WINDOW_CONFIG
        frame = ramp_frame(cfg, start=40)
        results = {}

        async def testbench(ctx):
            ctx.set(dut.out_ready, 1)
            sent = 0
            while sent < 7:
                ctx.set(dut.in_valid, 1)
                ctx.set(dut.in_data, 0xEE)
                if ctx.get(dut.in_ready):
                    sent += 1
                await ctx.tick()

            ctx.set(dut.in_valid, 1)
            ctx.set(dut.restart, 1)
            results["in_ready"] = ctx.get(dut.in_ready)
            results["out_valid"] = ctx.get(dut.out_valid)
            await ctx.tick()
            ctx.set(dut.restart, 0)
            ctx.set(dut.in_valid, 0)
            results["state"] = ctx.get(dut.state)
            results["pos"] = (ctx.get(dut.pos_x), ctx.get(dut.pos_y))

            results["windows"] = await stream_frame(ctx, dut, cfg, frame)

        run(dut, testbench)
        assert results["in_ready"] == 0
        assert results["out_valid"] == 0
        assert results["state"] == EngineState.IDLE
        assert results["pos"] == (0, 0)
        assert_windows_match(results["windows"], reference_windows(frame, cfg))

    def test_restart_gates_output(self, dut):
        results = []

        async def testbench(ctx):
            ctx.set(dut.out_ready, 0)
            ctx.set(dut.in_valid, 1)
            while not ctx.get(dut.out_valid):
                await ctx.tick()
            ctx.set(dut.restart, 1)
            results.append(ctx.get(dut.out_valid))
            await ctx.tick()
            ctx.set(dut.restart, 0)
            results.append(ctx.get(dut.state))

        run(dut, testbench)
        assert results == [0, EngineState.IDLE]


# =============================================================================
# Lockstep with the behavioral model
# =============================================================================


class TestWindowEngineLockstep:
    """Compare gateware and model outputs on every cycle."""

    @pytest.mark.parametrize(
        "cfg",
        [
            SMALL_WINDOW_CONFIG,
            WindowConfig(
                frame_x=5, frame_y=4, pad_x=1, pad_y=1, window_x=3, window_y=2, stride_x=2
            ),
            WindowConfig(
                frame_x=4, frame_y=5, pad_x=0, pad_y=2, window_x=2, window_y=3, stride_y=2
            ),
        ],
    )
    def test_lockstep_random_traffic(self, cfg):
        dut = WindowEngine(cfg)
        model = WindowEngineModel(cfg)
        rng = np.random.default_rng(cfg.padded_width * 31 + cfg.padded_height)
        cycles = 3 * cfg.cycles_per_frame
        mismatches = []

        async def testbench(ctx):
            for cycle in range(cycles):
                in_valid = bool(rng.random() < 0.7)
                out_ready = bool(rng.random() < 0.6)
                restart = bool(rng.random() < 0.01)
                in_data = int(rng.integers(0, 1 << cfg.sample_bits))

                ctx.set(dut.in_valid, in_valid)
                ctx.set(dut.in_data, in_data)
                ctx.set(dut.out_ready, out_ready)
                ctx.set(dut.restart, restart)

                expected = model.step(in_valid, in_data, out_ready, restart)
                actual = {
                    "state": ctx.get(dut.state),
                    "pos": (ctx.get(dut.pos_x), ctx.get(dut.pos_y)),
                    "in_ready": bool(ctx.get(dut.in_ready)),
                    "out_valid": bool(ctx.get(dut.out_valid)),
                }
                want = {
                    "state": int(expected.state),
                    "pos": (expected.pos_x, expected.pos_y),
                    "in_ready": expected.in_ready,
                    "out_valid": expected.out_valid,
                }
                if expected.out_valid:
                    actual["column"] = (
                        ctx.get(dut.out_data),
                        bool(ctx.get(dut.out_last)),
                        ctx.get(dut.out_col),
                        ctx.get(dut.out_anchor_x),
                        ctx.get(dut.out_anchor_y),
                    )
                    want["column"] = (
                        expected.out_data,
                        expected.out_last,
                        expected.out_col,
                        expected.out_anchor_x,
                        expected.out_anchor_y,
                    )
                if actual != want:
                    mismatches.append((cycle, actual, want))
                await ctx.tick()

        run(dut, testbench)
        assert mismatches == []
        assert model.windows_emitted > 0
