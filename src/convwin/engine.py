"""
Sliding Window Engine.

The window engine consumes a raster-scanned sample stream (one sample per
accepted transfer, row-major), surrounds it with a zero border, and emits
every stride-aligned window_x × window_y window of the padded frame as a
sequence of window_x columns.

Top-Level Architecture:
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          WINDOW ENGINE                              │
    │                                                                     │
    │  in_valid/in_data   ┌──────────────────┐                            │
    │  ──────────────────►│  Position        │  (x, y), stride_x/y        │
    │  ◄──────────────────│  Tracker         │                            │
    │  in_ready           └────────┬─────────┘                            │
    │                              │                                      │
    │                              ▼                                      │
    │                     ┌──────────────────┐     ┌──────────────────┐   │
    │                     │  Controller FSM  │────►│  Line Buffer     │   │
    │                     │  pad/get/restore │     │  W column stacks │   │
    │                     └────────┬─────────┘     └────────┬─────────┘   │
    │                              │ window due             │ read_x      │
    │                              ▼                        ▼             │
    │                     ┌─────────────────────────────────────────┐     │
    │                     │  Window Emitter (SEND)                  │     │
    │                     │  column prev_x + send_idx, last marker  │     │
    │                     └────────────────────┬────────────────────┘     │
    │                                          │                          │
    │                                          ▼                          │
    │                       out_valid/out_data/out_last ◄── out_ready     │
    └─────────────────────────────────────────────────────────────────────┘

Controller FSM:
    IDLE ──► EMPTY_PAD / EMPTY_GET                  rows 0 .. window_y-1
         ──► FULL_*_RESTORE ──► FULL_PAD / FULL_GET rows window_y ..
         ──► SEND ──► (resume state) ...            when a window is due
         ──► IDLE                                   after the last position

Every state takes one clock cycle, except FULL/EMPTY_GET which wait for
in_valid and SEND which waits for out_ready on each column.
"""

from amaranth import Module, Mux, Signal, unsigned
from amaranth.lib.wiring import Component, In, Out

from .config import WindowConfig
from .control import (
    STATE_BITS,
    EngineState,
    is_direct_write_row,
    is_padding,
    is_window_row,
    stride_due,
    window_ready,
)
from .line_buffer import LineBuffer


class WindowEngine(Component):
    """
    Line-buffer sliding window generator with padding and stride.

    Ports:
        # Input stream (row-major samples of the unpadded frame)
        in_valid: Input sample valid
        in_ready: Engine accepts the sample this cycle
        in_data: Input sample

        # Output stream (one column of window_y samples per transfer)
        out_valid: Output column valid
        out_ready: Consumer ready
        out_data: Column packed, top row (oldest) in the LSBs
        out_last: Last column of the window
        out_col: Column index within the window
        out_anchor_x: Window left edge in padded coordinates
        out_anchor_y: Window top edge in padded coordinates

        # Control
        restart: Synchronous restart (clears buffer, counters and position)

        # Status
        state: Current FSM state (EngineState)
        pos_x: Scan position x in the padded frame
        pos_y: Scan position y in the padded frame
    """

    def __init__(self, config: WindowConfig):
        """
        Initialize the window engine.

        Args:
            config: Window engine configuration
        """
        self.config = config

        super().__init__(
            {
                # Input stream
                "in_valid": In(1),
                "in_ready": Out(1),
                "in_data": In(unsigned(config.sample_bits)),
                # Output stream
                "out_valid": Out(1),
                "out_ready": In(1),
                "out_data": Out(unsigned(config.column_bits)),
                "out_last": Out(1),
                "out_col": Out(unsigned(config.send_bits)),
                "out_anchor_x": Out(unsigned(config.x_bits)),
                "out_anchor_y": Out(unsigned(config.y_bits)),
                # Control
                "restart": In(1),
                # Status
                "state": Out(unsigned(STATE_BITS)),
                "pos_x": Out(unsigned(config.x_bits)),
                "pos_y": Out(unsigned(config.y_bits)),
            }
        )

    def _fill_state(self, x, y):
        """State handling scan position (x, y), as an Amaranth expression."""
        cfg = self.config
        pad = is_padding(cfg, x, y)
        if cfg.window_y > 1:
            full_pad, full_get = EngineState.FULL_PAD_RESTORE, EngineState.FULL_GET_RESTORE
        else:
            full_pad, full_get = EngineState.FULL_PAD, EngineState.FULL_GET
        return Mux(
            is_direct_write_row(cfg, y),
            Mux(pad, EngineState.EMPTY_PAD, EngineState.EMPTY_GET),
            Mux(pad, full_pad, full_get),
        )

    def elaborate(self, _platform):
        m = Module()
        cfg = self.config

        m.submodules.line_buffer = line_buffer = LineBuffer(cfg)

        # =====================================================================
        # Registers
        # =====================================================================

        fsm_state = Signal(unsigned(STATE_BITS), name="fsm_state")  # IDLE

        # Position tracker
        x = Signal(unsigned(cfg.x_bits), name="x")
        y = Signal(unsigned(cfg.y_bits), name="y")
        stride_x = Signal(unsigned(cfg.stride_bits), init=cfg.stride_x, name="stride_x")
        stride_y = Signal(unsigned(cfg.stride_bits), name="stride_y")

        # Restore cursor (slot being shifted)
        restore_idx = Signal(unsigned(cfg.slot_bits), name="restore_idx")

        # Window anchor and emission cursor
        prev_x = Signal(unsigned(cfg.x_bits), name="prev_x")
        prev_y = Signal(unsigned(cfg.y_bits), name="prev_y")
        send_idx = Signal(unsigned(cfg.send_bits), name="send_idx")

        # Where control resumes after SEND
        resume_state = Signal(unsigned(STATE_BITS), name="resume_state")
        resume_stride_x = Signal(
            unsigned(cfg.stride_bits), init=cfg.stride_x, name="resume_stride_x"
        )
        resume_stride_y = Signal(unsigned(cfg.stride_bits), name="resume_stride_y")

        m.d.comb += [
            self.state.eq(fsm_state),
            self.pos_x.eq(x),
            self.pos_y.eq(y),
        ]

        # =====================================================================
        # Position Tracker
        # =====================================================================

        last_col = Signal(name="last_col")
        last_row = Signal(name="last_row")
        frame_wrap = Signal(name="frame_wrap")
        next_x = Signal(unsigned(cfg.x_bits), name="next_x")
        next_y = Signal(unsigned(cfg.y_bits), name="next_y")

        m.d.comb += [
            last_col.eq(x == cfg.padded_width - 1),
            last_row.eq(y == cfg.padded_height - 1),
            frame_wrap.eq(last_col & last_row),
            next_x.eq(Mux(last_col, 0, x + 1)),
            next_y.eq(Mux(last_col, Mux(last_row, 0, y + 1), y)),
        ]

        # =====================================================================
        # Window / Stride Decisions
        # =====================================================================

        ready = Signal(name="ready")
        emit = Signal(name="emit")
        m.d.comb += [
            ready.eq(window_ready(cfg, x, y)),
            emit.eq(ready & stride_due(cfg, stride_x, stride_y)),
        ]

        next_stride_x = Signal(unsigned(cfg.stride_bits), name="next_stride_x")
        next_stride_y = Signal(unsigned(cfg.stride_bits), name="next_stride_y")

        # First candidate of every row is due horizontally
        with m.If(last_col):
            m.d.comb += next_stride_x.eq(cfg.stride_x)
        with m.Elif(emit):
            m.d.comb += next_stride_x.eq(0)
        with m.Elif(ready):
            m.d.comb += next_stride_x.eq(stride_x + 1)
        with m.Else():
            m.d.comb += next_stride_x.eq(stride_x)

        with m.If(frame_wrap):
            m.d.comb += next_stride_y.eq(0)
        with m.Elif(last_col & is_window_row(cfg, y)):
            m.d.comb += next_stride_y.eq(Mux(stride_y == cfg.stride_y - 1, 0, stride_y + 1))
        with m.Else():
            m.d.comb += next_stride_y.eq(stride_y)

        next_state = Signal(unsigned(STATE_BITS), name="next_state")
        m.d.comb += next_state.eq(
            Mux(frame_wrap, EngineState.IDLE, self._fill_state(next_x, next_y))
        )

        # =====================================================================
        # Line Buffer Connections
        # =====================================================================

        m.d.comb += [
            line_buffer.write_x.eq(x),
            line_buffer.write_slot.eq(Mux(is_direct_write_row(cfg, y), y, cfg.window_y - 1)),
            line_buffer.shift_x.eq(x),
            line_buffer.shift_slot.eq(restore_idx),
            line_buffer.read_x.eq(prev_x + send_idx),
            line_buffer.clear.eq(self.restart),
        ]

        def commit_sample():
            """Advance past the sample written this cycle."""
            m.d.sync += [
                x.eq(next_x),
                y.eq(next_y),
            ]

            with m.If(x >= cfg.window_x - 1):
                m.d.sync += prev_x.eq(x - (cfg.window_x - 1))
            with m.If(is_window_row(cfg, y)):
                m.d.sync += prev_y.eq(y - (cfg.window_y - 1))

            with m.If(emit):
                m.d.sync += [
                    fsm_state.eq(EngineState.SEND),
                    resume_state.eq(next_state),
                    resume_stride_x.eq(next_stride_x),
                    resume_stride_y.eq(next_stride_y),
                ]
            with m.Else():
                m.d.sync += [
                    fsm_state.eq(next_state),
                    stride_x.eq(next_stride_x),
                    stride_y.eq(next_stride_y),
                ]

        # =====================================================================
        # Controller FSM
        # =====================================================================

        with m.Switch(fsm_state):
            with m.Case(EngineState.IDLE):
                m.d.sync += fsm_state.eq(self._fill_state(x, y))

            with m.Case(EngineState.EMPTY_PAD, EngineState.FULL_PAD):
                m.d.comb += [
                    line_buffer.write_en.eq(1),
                    line_buffer.write_data.eq(0),
                ]
                commit_sample()

            with m.Case(EngineState.EMPTY_GET, EngineState.FULL_GET):
                m.d.comb += [
                    self.in_ready.eq(~self.restart),
                    line_buffer.write_data.eq(self.in_data),
                ]
                with m.If(self.in_valid):
                    m.d.comb += line_buffer.write_en.eq(1)
                    commit_sample()

            if cfg.window_y > 1:
                with m.Case(EngineState.FULL_PAD_RESTORE, EngineState.FULL_GET_RESTORE):
                    m.d.comb += line_buffer.shift_en.eq(1)
                    with m.If(restore_idx == cfg.window_y - 2):
                        m.d.sync += restore_idx.eq(0)
                        with m.If(fsm_state == EngineState.FULL_PAD_RESTORE):
                            m.d.sync += fsm_state.eq(EngineState.FULL_PAD)
                        with m.Else():
                            m.d.sync += fsm_state.eq(EngineState.FULL_GET)
                    with m.Else():
                        m.d.sync += restore_idx.eq(restore_idx + 1)

            with m.Case(EngineState.SEND):
                m.d.comb += [
                    self.out_valid.eq(~self.restart),
                    self.out_last.eq(send_idx == cfg.window_x - 1),
                ]
                with m.If(self.out_ready):
                    with m.If(send_idx == cfg.window_x - 1):
                        m.d.sync += [
                            send_idx.eq(0),
                            fsm_state.eq(resume_state),
                            stride_x.eq(resume_stride_x),
                            stride_y.eq(resume_stride_y),
                        ]
                    with m.Else():
                        m.d.sync += send_idx.eq(send_idx + 1)

            # Unreachable encodings recover to IDLE
            with m.Default():
                m.d.sync += fsm_state.eq(EngineState.IDLE)

        # =====================================================================
        # Window Emitter Datapath
        # =====================================================================

        m.d.comb += [
            self.out_data.eq(line_buffer.read_data),
            self.out_col.eq(send_idx),
            self.out_anchor_x.eq(prev_x),
            self.out_anchor_y.eq(prev_y),
        ]

        # =====================================================================
        # Restart
        # =====================================================================

        with m.If(self.restart):
            m.d.sync += [
                fsm_state.eq(EngineState.IDLE),
                x.eq(0),
                y.eq(0),
                stride_x.eq(cfg.stride_x),
                stride_y.eq(0),
                restore_idx.eq(0),
                prev_x.eq(0),
                prev_y.eq(0),
                send_idx.eq(0),
                resume_state.eq(EngineState.IDLE),
                resume_stride_x.eq(cfg.stride_x),
                resume_stride_y.eq(0),
            ]

        return m
