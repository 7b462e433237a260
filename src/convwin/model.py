"""
Cycle-accurate behavioral model of the window engine.

The model mirrors WindowEngine register for register. One call to step()
corresponds to one clock edge: it reports the combinational outputs the
hardware presents in the current state and then applies the state update.
Decisions are taken by the shared functions in control.py, so the model and
the gateware cannot drift apart in policy, only in implementation.

Typical use:
    >>> model = WindowEngineModel(SMALL_WINDOW_CONFIG)
    >>> windows = model.process_frame(ramp_frame(SMALL_WINDOW_CONFIG))
    >>> [w.anchor for w in windows][:3]
    [(0, 0), (1, 0), (2, 0)]
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .config import WindowConfig
from .control import (
    GET_STATES,
    PAD_STATES,
    RESTORE_STATES,
    EngineState,
    advance_position,
    fill_state,
    is_direct_write_row,
    is_window_row,
    next_strides,
    stride_due,
    window_ready,
)
from .util.columns import Window, pack_column, unpack_column


@dataclass
class StepResult:
    """Outputs of the engine during one cycle (before the clock edge)."""

    state: EngineState = EngineState.IDLE
    pos_x: int = 0
    pos_y: int = 0

    # Input handshake
    in_ready: bool = False
    accepted: bool = False

    # Output handshake
    out_valid: bool = False
    out_data: int = 0
    out_last: bool = False
    out_col: int = 0
    out_anchor_x: int = 0
    out_anchor_y: int = 0
    transferred: bool = False


@dataclass
class WindowEngineModel:
    """
    Behavioral simulation model of WindowEngine.

    The line buffer is a list of padded_width column stacks, each a list of
    window_y samples (slot 0 = oldest row).
    """

    config: WindowConfig

    # Architectural state
    state: EngineState = field(init=False)
    x: int = field(init=False)
    y: int = field(init=False)
    stride_x: int = field(init=False)
    stride_y: int = field(init=False)
    restore_idx: int = field(init=False)
    prev_x: int = field(init=False)
    prev_y: int = field(init=False)
    send_idx: int = field(init=False)
    resume_state: EngineState = field(init=False)
    resume_stride_x: int = field(init=False)
    resume_stride_y: int = field(init=False)
    buffer: list[list[int]] = field(init=False)

    # Statistics
    total_cycles: int = 0
    input_stall_cycles: int = 0
    output_stall_cycles: int = 0
    samples_accepted: int = 0
    windows_emitted: int = 0
    frames_completed: int = 0

    def __post_init__(self) -> None:
        """Start from the reset state."""
        self._restart()

    def _restart(self) -> None:
        cfg = self.config
        self.state = EngineState.IDLE
        self.x = 0
        self.y = 0
        self.stride_x = cfg.stride_x
        self.stride_y = 0
        self.restore_idx = 0
        self.prev_x = 0
        self.prev_y = 0
        self.send_idx = 0
        self.resume_state = EngineState.IDLE
        self.resume_stride_x = cfg.stride_x
        self.resume_stride_y = 0
        self.buffer = [[0] * cfg.window_y for _ in range(cfg.padded_width)]

    def reset(self) -> None:
        """Return to the power-on state and clear the statistics."""
        self._restart()
        self.total_cycles = 0
        self.input_stall_cycles = 0
        self.output_stall_cycles = 0
        self.samples_accepted = 0
        self.windows_emitted = 0
        self.frames_completed = 0

    def read_column(self, x: int) -> list[int]:
        """Column stack at horizontal position x, oldest row first."""
        return list(self.buffer[x])

    # =========================================================================
    # Clock step
    # =========================================================================

    def step(
        self,
        in_valid: bool = False,
        in_data: int = 0,
        out_ready: bool = False,
        restart: bool = False,
    ) -> StepResult:
        """
        Advance the model by one clock cycle.

        Args:
            in_valid: Source presents a sample
            in_data: The presented sample
            out_ready: Sink accepts a column
            restart: Synchronous restart

        Returns:
            Combinational outputs seen during this cycle
        """
        cfg = self.config
        state = self.state
        result = StepResult(state=state, pos_x=self.x, pos_y=self.y)

        if state in GET_STATES:
            result.in_ready = not restart

        if state == EngineState.SEND:
            result.out_valid = not restart
            result.out_last = self.send_idx == cfg.window_x - 1
            result.out_col = self.send_idx
            result.out_anchor_x = self.prev_x
            result.out_anchor_y = self.prev_y
            result.out_data = pack_column(
                self.buffer[self.prev_x + self.send_idx], cfg.sample_bits
            )

        self.total_cycles += 1

        if restart:
            self._restart()
            return result

        if state == EngineState.IDLE:
            self.state = fill_state(cfg, self.x, self.y)

        elif state in PAD_STATES:
            self._write_sample(0)

        elif state in GET_STATES:
            if in_valid:
                self._write_sample(int(in_data) & cfg.sample_mask)
                self.samples_accepted += 1
                result.accepted = True
            else:
                self.input_stall_cycles += 1

        elif state in RESTORE_STATES:
            column = self.buffer[self.x]
            column[self.restore_idx] = column[self.restore_idx + 1]
            if self.restore_idx == cfg.window_y - 2:
                self.restore_idx = 0
                if state == EngineState.FULL_PAD_RESTORE:
                    self.state = EngineState.FULL_PAD
                else:
                    self.state = EngineState.FULL_GET
            else:
                self.restore_idx += 1

        elif state == EngineState.SEND:
            if out_ready:
                result.transferred = True
                if self.send_idx == cfg.window_x - 1:
                    self.send_idx = 0
                    self.state = self.resume_state
                    self.stride_x = self.resume_stride_x
                    self.stride_y = self.resume_stride_y
                    self.windows_emitted += 1
                else:
                    self.send_idx += 1
            else:
                self.output_stall_cycles += 1

        else:
            self.state = EngineState.IDLE

        return result

    def _write_sample(self, sample: int) -> None:
        """Store the sample for (x, y) and advance the scan position."""
        cfg = self.config
        x, y = self.x, self.y

        slot = y if is_direct_write_row(cfg, y) else cfg.window_y - 1
        self.buffer[x][slot] = sample

        if x >= cfg.window_x - 1:
            self.prev_x = x - (cfg.window_x - 1)
        if is_window_row(cfg, y):
            self.prev_y = y - (cfg.window_y - 1)

        emit = bool(window_ready(cfg, x, y) and stride_due(cfg, self.stride_x, self.stride_y))
        stride_x, stride_y = next_strides(cfg, x, y, self.stride_x, self.stride_y, emit)

        self.x, self.y = advance_position(cfg, x, y)
        if (self.x, self.y) == (0, 0):
            self.frames_completed += 1
            next_state = EngineState.IDLE
        else:
            next_state = fill_state(cfg, self.x, self.y)

        if emit:
            self.state = EngineState.SEND
            self.resume_state = next_state
            self.resume_stride_x = stride_x
            self.resume_stride_y = stride_y
        else:
            self.state = next_state
            self.stride_x = stride_x
            self.stride_y = stride_y

    # =========================================================================
    # Convenience drivers
    # =========================================================================

    def process_frame(self, frame: np.ndarray) -> list[Window]:
        """
        Run one frame with an always-valid source and an always-ready sink.

        Must be called on a frame boundary (IDLE state).

        Returns:
            Emitted windows in emission order
        """
        cfg = self.config
        assert self.state == EngineState.IDLE, "process_frame must start on a frame boundary"
        assert frame.shape == (cfg.frame_y, cfg.frame_x), (
            f"frame shape {frame.shape} does not match ({cfg.frame_y}, {cfg.frame_x})"
        )

        samples = [int(v) for v in frame.flatten()]
        next_sample = 0
        start_frames = self.frames_completed
        budget = 2 * cfg.cycles_per_frame + 1

        windows: list[Window] = []
        columns: list[list[int]] = []

        for _ in range(budget):
            have_sample = next_sample < len(samples)
            result = self.step(
                in_valid=have_sample,
                in_data=samples[next_sample] if have_sample else 0,
                out_ready=True,
            )
            if result.accepted:
                next_sample += 1
            if result.transferred:
                columns.append(unpack_column(result.out_data, cfg))
                if result.out_last:
                    windows.append(
                        Window.from_columns(result.out_anchor_x, result.out_anchor_y, columns)
                    )
                    columns = []
            if self.frames_completed > start_frames and self.state == EngineState.IDLE:
                return windows

        raise RuntimeError(f"frame did not complete within {budget} cycles")

    def get_statistics(self) -> dict[str, Any]:
        """Get model statistics."""
        return {
            "total_cycles": self.total_cycles,
            "input_stall_cycles": self.input_stall_cycles,
            "output_stall_cycles": self.output_stall_cycles,
            "samples_accepted": self.samples_accepted,
            "windows_emitted": self.windows_emitted,
            "frames_completed": self.frames_completed,
        }
