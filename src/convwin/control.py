"""
Control policy for the sliding window engine.

The engine's next-state logic is expressed as a handful of pure decision
functions. They only use comparison and bitwise operators, so the same
function builds an Amaranth expression when handed signals and evaluates to a
plain bool when handed Python ints. The gateware in engine.py and the
software model in model.py therefore share one definition of:

    is_padding          position lies in the zero border
    is_direct_write_row row is still filling the column stacks slot by slot
    is_window_row       row is deep enough to be the bottom row of a window
    window_ready        a full window ends at this position
    stride_due          stride policy allows emitting the ready window

State families (window_y = 3 example):

    y = 0, 1, 2   EMPTY_PAD / EMPTY_GET        write slot y directly
    y >= 3        FULL_*_RESTORE, FULL_*       shift slots 0..1, write slot 2
"""

from enum import IntEnum

from .config import WindowConfig


class EngineState(IntEnum):
    """States of the window engine controller."""

    IDLE = 0
    EMPTY_PAD = 1  # Pre-fill row, synthesize a zero sample
    EMPTY_GET = 2  # Pre-fill row, wait for an input sample
    FULL_PAD_RESTORE = 3  # Shift the column stack before a padding write
    FULL_PAD = 4
    FULL_GET_RESTORE = 5  # Shift the column stack before an input write
    FULL_GET = 6
    SEND = 7  # Stream the window out column by column


PAD_STATES = (EngineState.EMPTY_PAD, EngineState.FULL_PAD)
GET_STATES = (EngineState.EMPTY_GET, EngineState.FULL_GET)
RESTORE_STATES = (EngineState.FULL_PAD_RESTORE, EngineState.FULL_GET_RESTORE)

STATE_BITS = (len(EngineState) - 1).bit_length()


# =============================================================================
# Decision functions (int or Amaranth value)
# =============================================================================


def is_padding(cfg: WindowConfig, x, y):
    """True when (x, y) lies outside the real frame in padded coordinates."""
    return (
        (x < cfg.pad_x)
        | (x >= cfg.frame_x + cfg.pad_x)
        | (y < cfg.pad_y)
        | (y >= cfg.frame_y + cfg.pad_y)
    )


def is_direct_write_row(cfg: WindowConfig, y):
    """True while row y fills the column stacks without shifting (slot = y)."""
    return y < cfg.window_y


def is_window_row(cfg: WindowConfig, y):
    """True when row y can be the bottom row of a window."""
    return y >= cfg.window_y - 1


def window_ready(cfg: WindowConfig, x, y):
    """True when a complete window has its bottom-right corner at (x, y)."""
    return (x >= cfg.window_x - 1) & (y >= cfg.window_y - 1)


def stride_due(cfg: WindowConfig, stride_x, stride_y):
    """
    True when the stride policy emits the current candidate window.

    stride_x counts skipped candidates since the last emitted window in this
    row; stride_y is the window row phase, zero on rows that emit.
    """
    return (stride_x >= cfg.stride_x - 1) & (stride_y == 0)


# =============================================================================
# Integer helpers (software models)
# =============================================================================


def advance_position(cfg: WindowConfig, x: int, y: int) -> tuple[int, int]:
    """Next scan position in raster order over the padded frame."""
    if x == cfg.padded_width - 1:
        if y == cfg.padded_height - 1:
            return 0, 0
        return 0, y + 1
    return x + 1, y


def fill_state(cfg: WindowConfig, x: int, y: int) -> EngineState:
    """State that handles the sample at scan position (x, y)."""
    pad = is_padding(cfg, x, y)
    if is_direct_write_row(cfg, y):
        return EngineState.EMPTY_PAD if pad else EngineState.EMPTY_GET
    if cfg.window_y > 1:
        return EngineState.FULL_PAD_RESTORE if pad else EngineState.FULL_GET_RESTORE
    return EngineState.FULL_PAD if pad else EngineState.FULL_GET


def next_strides(
    cfg: WindowConfig, x: int, y: int, stride_x: int, stride_y: int, emit: bool
) -> tuple[int, int]:
    """
    Stride counters after the sample at (x, y) has been written.

    Rules:
        ready window emitted      stride_x <- 0
        ready window skipped      stride_x <- stride_x + 1
        row wrap                  stride_x <- cfg.stride_x (first candidate due)
        row wrap on a window row  stride_y <- (stride_y + 1) mod cfg.stride_y
        frame wrap                stride_y <- 0
    """
    last_col = x == cfg.padded_width - 1
    last_row = y == cfg.padded_height - 1

    if last_col:
        next_x = cfg.stride_x
    elif window_ready(cfg, x, y):
        next_x = 0 if emit else stride_x + 1
    else:
        next_x = stride_x

    if last_col and last_row:
        next_y = 0
    elif last_col and is_window_row(cfg, y):
        next_y = 0 if stride_y == cfg.stride_y - 1 else stride_y + 1
    else:
        next_y = stride_y

    return next_x, next_y
