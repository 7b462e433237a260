"""
Line Buffer for the Window Engine.

The line buffer keeps, for every horizontal position of the padded frame, a
column stack holding the most recent window_y rows at that position. Windows
are assembled by reading window_x neighbouring column stacks, so no
full-frame storage is needed.

Architecture (window_y = 3, padded_width = W):
    ┌─────────────────────────────────────────────────────────────┐
    │                        LINE BUFFER                          │
    │                                                             │
    │            x = 0      x = 1      x = 2          x = W-1     │
    │  slot 0  [ row-2 ]  [ row-2 ]  [ row-2 ]  ...  [ row-2 ]    │  oldest
    │  slot 1  [ row-1 ]  [ row-1 ]  [ row-1 ]  ...  [ row-1 ]    │
    │  slot 2  [ row   ]  [ row   ]  [ row   ]  ...  [ row   ]    │  newest
    │                                                             │
    │  write:  one slot at (write_x, write_slot)                  │
    │  shift:  slot i <- slot i+1 at shift_x (one slot per cycle) │
    │  read:   whole column at read_x, slot 0 in the LSBs         │
    └─────────────────────────────────────────────────────────────┘

Row rollover (restore) at one x position:
    before:  [ r0, r1, r2 ]
    shift 0: [ r1, r1, r2 ]
    shift 1: [ r1, r2, r2 ]
    write 2: [ r1, r2, r3 ]
"""

from amaranth import Array, Cat, Module, Signal, unsigned
from amaranth.lib.wiring import Component, In, Out

from .config import WindowConfig


class LineBuffer(Component):
    """
    Register array of padded_width column stacks, window_y samples each.

    All cells reset to zero. Writes and shifts are synchronous, reads are
    combinational so a column can be emitted in the cycle it is addressed.

    Ports:
        # Slot write
        write_en: Write enable
        write_x: Column stack to write
        write_slot: Slot within the stack
        write_data: Sample to store

        # Restore step
        shift_en: Shift enable
        shift_x: Column stack to shift
        shift_slot: Destination slot, receives slot shift_slot + 1

        # Column read
        read_x: Column stack to read
        read_data: window_y samples packed, slot 0 in the LSBs

        # Control
        clear: Zero every cell (takes priority over write and shift)
    """

    def __init__(self, config: WindowConfig):
        """
        Initialize the line buffer.

        Args:
            config: Window engine configuration
        """
        self.config = config

        super().__init__(
            {
                # Slot write
                "write_en": In(1),
                "write_x": In(unsigned(config.x_bits)),
                "write_slot": In(unsigned(config.slot_bits)),
                "write_data": In(unsigned(config.sample_bits)),
                # Restore step
                "shift_en": In(1),
                "shift_x": In(unsigned(config.x_bits)),
                "shift_slot": In(unsigned(config.slot_bits)),
                # Column read
                "read_x": In(unsigned(config.x_bits)),
                "read_data": Out(unsigned(config.column_bits)),
                # Control
                "clear": In(1),
            }
        )

    def elaborate(self, _platform):
        m = Module()
        cfg = self.config

        # cells[x][slot] holds one sample
        cells = [
            [
                Signal(unsigned(cfg.sample_bits), name=f"cell_x{x}_s{slot}")
                for slot in range(cfg.window_y)
            ]
            for x in range(cfg.padded_width)
        ]

        # =====================================================================
        # Restore step: slot i <- slot i+1
        # =====================================================================

        if cfg.window_y > 1:
            with m.If(self.shift_en), m.Switch(self.shift_x):
                for x, column in enumerate(cells):
                    with m.Case(x), m.Switch(self.shift_slot):
                        for slot in range(cfg.window_y - 1):
                            with m.Case(slot):
                                m.d.sync += column[slot].eq(column[slot + 1])

        # =====================================================================
        # Slot write
        # =====================================================================

        with m.If(self.write_en), m.Switch(self.write_x):
            for x, column in enumerate(cells):
                with m.Case(x), m.Switch(self.write_slot):
                    for slot, cell in enumerate(column):
                        with m.Case(slot):
                            m.d.sync += cell.eq(self.write_data)

        # Clear overrides any write or shift in the same cycle
        with m.If(self.clear):
            for column in cells:
                m.d.sync += [cell.eq(0) for cell in column]

        # =====================================================================
        # Column read
        # =====================================================================

        columns = Array(Cat(*column) for column in cells)
        m.d.comb += self.read_data.eq(columns[self.read_x])

        return m
