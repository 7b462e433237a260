"""
Column word packing for the window engine output stream.

Each output transfer carries one window column of window_y samples packed
into a single word, oldest row first:

    bit:  [ (window_y-1)*B ... ]  ...  [ 2B-1 .. B ]  [ B-1 .. 0 ]
          row window_y-1 (bottom)  ...  row 1          row 0 (top)

    (B = sample_bits)

A window is window_x such words, leftmost column first.
"""

from dataclasses import dataclass

import numpy as np

from ..config import WindowConfig


def pack_column(samples, sample_bits: int) -> int:
    """
    Pack a column of samples into one word, first sample in the LSBs.

    Example:
        >>> hex(pack_column([0x01, 0x02, 0x03], sample_bits=8))
        '0x30201'
    """
    mask = (1 << sample_bits) - 1
    word = 0
    for i, sample in enumerate(samples):
        word |= (int(sample) & mask) << (i * sample_bits)
    return word


def unpack_column(word: int, config: WindowConfig) -> list[int]:
    """Unpack one output word into window_y samples, top row first."""
    return [(word >> (i * config.sample_bits)) & config.sample_mask for i in range(config.window_y)]


@dataclass(eq=False)
class Window:
    """
    One emitted window.

    anchor_x/anchor_y are the left/top edge in padded coordinates; data is
    indexed [row, column] with shape (window_y, window_x).
    """

    anchor_x: int
    anchor_y: int
    data: np.ndarray

    @property
    def anchor(self) -> tuple[int, int]:
        return self.anchor_x, self.anchor_y

    @classmethod
    def from_columns(cls, anchor_x: int, anchor_y: int, columns: list[list[int]]) -> "Window":
        """Build a window from its columns, leftmost first."""
        data = np.array(columns, dtype=np.int64).T
        return cls(anchor_x=anchor_x, anchor_y=anchor_y, data=data)

    def matches(self, other: "Window") -> bool:
        """True when anchor and contents are identical."""
        return self.anchor == other.anchor and np.array_equal(self.data, other.data)

    def __repr__(self) -> str:
        return f"Window(anchor=({self.anchor_x}, {self.anchor_y}), data={self.data.tolist()})"
