"""
Window Engine Configuration Module

This module defines the configuration dataclass for the sliding window engine.
All hardware parameters (frame geometry, window size, stride and padding) are
fixed at construction time and propagate through the line buffer, the control
state machine and the window emitter.

Padded coordinate space:
    ┌───────────────────────────────────────┐
    │ pad_y rows of zeros                   │
    │      ┌─────────────────────────┐      │
    │ pad_x│  frame_x × frame_y      │pad_x │
    │      │  (real input samples)   │      │
    │      └─────────────────────────┘      │
    │ pad_y rows of zeros                   │
    └───────────────────────────────────────┘
      padded_width  = frame_x + 2 * pad_x
      padded_height = frame_y + 2 * pad_y
"""

from dataclasses import dataclass


@dataclass
class WindowConfig:
    """
    Configuration for the sliding window engine.

    Example:
        >>> config = WindowConfig(frame_x=4, frame_y=4, window_x=2, window_y=2)
        >>> print(config.windows_per_frame)  # 9
    """

    # =========================================================================
    # Sample Format
    # =========================================================================
    sample_bits: int = 8
    """Bit width of one input sample (unsigned)."""

    # =========================================================================
    # Frame Geometry
    # =========================================================================
    frame_x: int = 32
    """Width of the unpadded input frame in samples."""

    frame_y: int = 32
    """Height of the unpadded input frame in rows."""

    pad_x: int = 1
    """Zero columns added on the left and on the right of the frame."""

    pad_y: int = 1
    """Zero rows added above and below the frame."""

    # =========================================================================
    # Window and Stride
    # =========================================================================
    window_x: int = 3
    """Window width (number of columns emitted per window)."""

    window_y: int = 3
    """Window height (number of samples per emitted column)."""

    stride_x: int = 1
    """Horizontal distance between consecutive window anchors."""

    stride_y: int = 1
    """Vertical distance between consecutive window anchor rows."""

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def padded_width(self) -> int:
        """Width of the zero-padded frame."""
        return self.frame_x + 2 * self.pad_x

    @property
    def padded_height(self) -> int:
        """Height of the zero-padded frame."""
        return self.frame_y + 2 * self.pad_y

    @property
    def x_bits(self) -> int:
        """Bits needed for a horizontal position in the padded frame."""
        return max(1, (self.padded_width - 1).bit_length())

    @property
    def y_bits(self) -> int:
        """Bits needed for a vertical position in the padded frame."""
        return max(1, (self.padded_height - 1).bit_length())

    @property
    def slot_bits(self) -> int:
        """Bits needed to address one slot of a column stack."""
        return max(1, (self.window_y - 1).bit_length())

    @property
    def send_bits(self) -> int:
        """Bits needed for the emission cursor (0 .. window_x - 1)."""
        return max(1, (self.window_x - 1).bit_length())

    @property
    def stride_bits(self) -> int:
        """
        Bits needed for the stride counters.

        stride_x restarts at stride_x on every row and can count up to one
        step per candidate position in that row.
        """
        return max(self.padded_width, self.stride_x, self.stride_y).bit_length() + 1

    @property
    def column_bits(self) -> int:
        """Width of one emitted column (window_y packed samples)."""
        return self.window_y * self.sample_bits

    @property
    def sample_mask(self) -> int:
        """Mask selecting the valid bits of one sample."""
        return (1 << self.sample_bits) - 1

    @property
    def line_buffer_bits(self) -> int:
        """Total line buffer storage in bits."""
        return self.padded_width * self.window_y * self.sample_bits

    @property
    def windows_x(self) -> int:
        """Number of emitted windows per window row."""
        return (self.padded_width - self.window_x) // self.stride_x + 1

    @property
    def windows_y(self) -> int:
        """Number of emitted window rows per frame."""
        return (self.padded_height - self.window_y) // self.stride_y + 1

    @property
    def windows_per_frame(self) -> int:
        """Number of windows emitted for one frame."""
        return self.windows_x * self.windows_y

    @property
    def samples_per_frame(self) -> int:
        """Number of real input samples consumed per frame."""
        return self.frame_x * self.frame_y

    @property
    def cycles_per_frame(self) -> int:
        """
        Exact number of engine steps for one frame.

        Assumes the source always has a sample available and the sink is
        always ready: one IDLE step, one write per padded position, one shift
        per restored slot on every row past the pre-fill rows, and one step
        per emitted column.
        """
        writes = self.padded_width * self.padded_height
        restores = (self.padded_height - self.window_y) * self.padded_width * (self.window_y - 1)
        sends = self.windows_per_frame * self.window_x
        return 1 + writes + restores + sends

    def __post_init__(self):
        """Validate configuration parameters."""
        assert self.sample_bits > 0, "sample_bits must be positive"
        assert self.frame_x > 0, "frame_x must be positive"
        assert self.frame_y > 0, "frame_y must be positive"
        assert self.pad_x >= 0, "pad_x must not be negative"
        assert self.pad_y >= 0, "pad_y must not be negative"
        assert self.window_x > 0, "window_x must be positive"
        assert self.window_y > 0, "window_y must be positive"
        assert self.stride_x > 0, "stride_x must be positive"
        assert self.stride_y > 0, "stride_y must be positive"
        assert self.window_x <= self.padded_width, (
            f"window_x ({self.window_x}) must not exceed frame_x + 2 * pad_x ({self.padded_width})"
        )
        assert self.window_y <= self.padded_height, (
            f"window_y ({self.window_y}) must not exceed frame_y + 2 * pad_y ({self.padded_height})"
        )


# Pre-defined configurations
DEFAULT_WINDOW_CONFIG = WindowConfig()
"""Default configuration: 3x3 windows over a 32x32 frame with 'same' padding."""

SMALL_WINDOW_CONFIG = WindowConfig(
    frame_x=4,
    frame_y=4,
    pad_x=0,
    pad_y=0,
    window_x=2,
    window_y=2,
)
"""Small configuration for testing: 2x2 windows over a 4x4 frame."""

STRIDED_WINDOW_CONFIG = WindowConfig(
    frame_x=8,
    frame_y=8,
    pad_x=1,
    pad_y=1,
    window_x=3,
    window_y=3,
    stride_x=2,
    stride_y=2,
)
"""Downsampling configuration: 3x3 windows, stride 2, over an 8x8 frame."""
